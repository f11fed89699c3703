"""Event lookup by provider id with a team/date fallback search."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any

from wager_engine.errors import ProviderUnavailable
from wager_engine.events.cache import InMemoryTTLCache, TTLCache
from wager_engine.events.models import Event
from wager_engine.names import team_matches
from wager_engine.sgo_client import EventProvider
from wager_engine.time_utils import as_utc

logger = logging.getLogger(__name__)

DEFAULT_LEAGUE = "NBA"

LEAGUE_ALIASES = {
    "COLLEGE FOOTBALL": "NCAAF",
    "COLLEGE BASKETBALL": "NCAAB",
}

_ID_LOOKUP_FLAGS = {
    "limit": 1,
    "includeOpposingOdds": True,
    "includeAltLines": True,
    "oddsPresent": True,
}


def league_id(league: str | None, *, default: str = DEFAULT_LEAGUE) -> str:
    """Map a free-text league name onto a provider league id."""
    raw = (league or "").strip().upper()
    if not raw:
        return default
    return LEAGUE_ALIASES.get(raw, raw)


@dataclass(frozen=True)
class EventLookup:
    """Team/date hints used when the provider id lookup fails."""

    home_team: str
    away_team: str
    start_time: datetime
    league: str = ""

    def usable(self) -> bool:
        return bool(self.home_team.strip() and self.away_team.strip())


class EventGateway:
    """Fetches events from the provider; returns None instead of raising."""

    def __init__(
        self,
        provider: EventProvider,
        *,
        cache: TTLCache | None = None,
        fallback_window: timedelta = timedelta(hours=12),
        search_limit: int = 200,
        default_league: str = DEFAULT_LEAGUE,
    ) -> None:
        self.provider = provider
        self.cache = cache if cache is not None else InMemoryTTLCache(15.0)
        self.fallback_window = fallback_window
        self.search_limit = search_limit
        self.default_league = default_league

    def _query(self, **filters: Any) -> list[Event]:
        try:
            payloads = self.provider.get_events(**filters)
        except ProviderUnavailable as exc:
            logger.warning("event query failed (%s): %s", _describe(filters), exc)
            return []
        except Exception:
            logger.exception("unexpected provider error (%s)", _describe(filters))
            return []
        events = []
        for payload in payloads:
            event = Event.from_payload(payload)
            if event is not None:
                events.append(event)
        return events

    def _remember(self, event: Event, *keys: str) -> None:
        for key in {key for key in keys if key}:
            self.cache.set(key, event)

    def get_event(self, event_id: str | None, fallback: EventLookup | None = None) -> Event | None:
        """Look up by id (``eventID`` then ``eventIDs``), then by teams and date."""
        event_id = (event_id or "").strip()
        if event_id:
            cached = self.cache.get(event_id)
            if isinstance(cached, Event):
                return cached
            for id_filter in ("eventID", "eventIDs"):
                events = self._query(**{id_filter: event_id}, **_ID_LOOKUP_FLAGS)
                if events:
                    self._remember(events[0], event_id)
                    return events[0]
            logger.info("event %s not found by id", event_id)

        if fallback is None or not fallback.usable():
            return None
        event = self.find_event_by_teams(fallback)
        if event is not None:
            self._remember(event, event_id, event.event_id)
        return event

    def find_event_by_teams(self, lookup: EventLookup) -> Event | None:
        """Search a window around the start time and match teams in either orientation."""
        start = as_utc(lookup.start_time)
        candidates = self._query(
            leagueID=league_id(lookup.league, default=self.default_league),
            startsAfter=start - self.fallback_window,
            startsBefore=start + self.fallback_window,
            oddsPresent=True,
            limit=self.search_limit,
        )
        for event in candidates:
            straight = team_matches(event.home, lookup.home_team) and team_matches(
                event.away, lookup.away_team
            )
            swapped = team_matches(event.home, lookup.away_team) and team_matches(
                event.away, lookup.home_team
            )
            if straight or swapped:
                return event
        logger.info(
            "no event matched %s @ %s near %s",
            lookup.away_team,
            lookup.home_team,
            start.isoformat(),
        )
        return None


def _describe(filters: dict[str, Any]) -> str:
    return ",".join(f"{key}={value}" for key, value in sorted(filters.items()))
