"""Typed views over SportsGameOdds event payloads.

Every provider field is optional. Parsing never raises: malformed sub-objects are
skipped and numeric strings are coerced with ``safe_float``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Literal

from wager_engine.time_utils import parse_iso_z
from wager_engine.util.parsing import safe_dict, safe_float, safe_str

TeamSide = Literal["home", "away"]

SCORE_KEYS = ("home", "away")


@dataclass(frozen=True)
class EventStatus:
    started: bool = False
    live: bool = False
    completed: bool = False
    finalized: bool = False
    cancelled: bool = False
    starts_at: datetime | None = None

    @classmethod
    def from_payload(cls, payload: Any) -> EventStatus:
        raw = safe_dict(payload)
        return cls(
            started=raw.get("started") is True,
            live=raw.get("live") is True,
            completed=raw.get("completed") is True,
            finalized=raw.get("finalized") is True,
            cancelled=raw.get("cancelled") is True,
            starts_at=parse_iso_z(safe_str(raw.get("startsAt"))),
        )


@dataclass(frozen=True)
class Team:
    team_id: str = ""
    names: tuple[str, ...] = ()
    score: float | None = None

    @classmethod
    def from_payload(cls, payload: Any) -> Team:
        raw = safe_dict(payload)
        names = safe_dict(raw.get("names"))
        variants = tuple(
            value
            for value in (safe_str(names.get(key)) for key in ("long", "medium", "short"))
            if value
        )
        return cls(
            team_id=safe_str(raw.get("teamID")),
            names=variants,
            score=safe_float(raw.get("score")),
        )


@dataclass(frozen=True)
class Player:
    player_id: str
    name: str = ""
    first_name: str = ""
    last_name: str = ""
    alias: str = ""
    team_id: str = ""

    def name_variants(self) -> list[str]:
        full = f"{self.first_name} {self.last_name}".strip() if self.first_name else ""
        return [value for value in (self.name, full, self.alias) if value]

    @classmethod
    def from_payload(cls, player_id: str, payload: Any) -> Player:
        raw = safe_dict(payload)
        return cls(
            player_id=player_id,
            name=safe_str(raw.get("name")),
            first_name=safe_str(raw.get("firstName")),
            last_name=safe_str(raw.get("lastName")),
            alias=safe_str(raw.get("alias")),
            team_id=safe_str(raw.get("teamID")),
        )


@dataclass(frozen=True)
class BookmakerQuote:
    bookmaker: str
    odds: float | None = None
    spread: float | None = None
    over_under: float | None = None
    available: bool = True

    @classmethod
    def from_payload(cls, bookmaker: str, payload: Any) -> BookmakerQuote:
        raw = safe_dict(payload)
        return cls(
            bookmaker=bookmaker,
            odds=safe_float(raw.get("odds")),
            spread=safe_float(raw.get("spread")),
            over_under=safe_float(raw.get("overUnder")),
            available=raw.get("available") is not False,
        )


@dataclass(frozen=True)
class Odd:
    odd_id: str
    bet_type: str = ""
    period: str = ""
    side: str = ""
    stat_id: str = ""
    stat_entity: str = ""
    player_id: str = ""
    market_name: str = ""
    book_odds: float | None = None
    fair_odds: float | None = None
    book_spread: float | None = None
    fair_spread: float | None = None
    book_over_under: float | None = None
    fair_over_under: float | None = None
    by_bookmaker: tuple[BookmakerQuote, ...] = ()

    @classmethod
    def from_payload(cls, odd_id: str, payload: Any) -> Odd:
        raw = safe_dict(payload)
        quotes = tuple(
            BookmakerQuote.from_payload(str(book), entry)
            for book, entry in safe_dict(raw.get("byBookmaker")).items()
            if isinstance(entry, dict)
        )
        return cls(
            odd_id=safe_str(raw.get("oddID")) or odd_id,
            bet_type=safe_str(raw.get("betTypeID")),
            period=safe_str(raw.get("periodID")),
            side=safe_str(raw.get("sideID")),
            stat_id=safe_str(raw.get("statID")),
            stat_entity=safe_str(raw.get("statEntityID")),
            player_id=safe_str(raw.get("playerID")),
            market_name=safe_str(raw.get("marketName")),
            book_odds=safe_float(raw.get("bookOdds")),
            fair_odds=safe_float(raw.get("fairOdds")),
            book_spread=safe_float(raw.get("bookSpread")),
            fair_spread=safe_float(raw.get("fairSpread")),
            book_over_under=safe_float(raw.get("bookOverUnder")),
            fair_over_under=safe_float(raw.get("fairOverUnder")),
            by_bookmaker=quotes,
        )


def _numeric_stats(payload: Any) -> dict[str, float]:
    stats: dict[str, float] = {}
    for key, value in safe_dict(payload).items():
        parsed = safe_float(value)
        if parsed is not None:
            stats[str(key)] = parsed
    return stats


@dataclass(frozen=True)
class Event:
    event_id: str
    league_id: str = ""
    status: EventStatus = field(default_factory=EventStatus)
    home: Team = field(default_factory=Team)
    away: Team = field(default_factory=Team)
    players: dict[str, Player] = field(default_factory=dict)
    odds: tuple[Odd, ...] = ()
    results: dict[str, dict[str, float]] = field(default_factory=dict)

    def team(self, side: TeamSide) -> Team:
        return self.home if side == "home" else self.away

    def score(self, side: TeamSide) -> float | None:
        """Team score, falling back to game results points."""
        team_score = self.team(side).score
        if team_score is not None:
            return team_score
        return self.results.get(side, {}).get("points")

    def player_stats(self, player_key: str) -> dict[str, float] | None:
        if not player_key or player_key in SCORE_KEYS:
            return None
        return self.results.get(player_key)

    @classmethod
    def from_payload(cls, payload: Any) -> Event | None:
        """Build an event from a provider payload; None when it carries no id."""
        raw = safe_dict(payload)
        event_id = safe_str(raw.get("eventID"))
        if not event_id:
            return None
        teams = safe_dict(raw.get("teams"))
        players = {
            str(player_id): Player.from_payload(str(player_id), entry)
            for player_id, entry in safe_dict(raw.get("players")).items()
            if isinstance(entry, dict)
        }
        odds = tuple(
            Odd.from_payload(str(odd_id), entry)
            for odd_id, entry in safe_dict(raw.get("odds")).items()
            if isinstance(entry, dict)
        )
        game_results = safe_dict(safe_dict(raw.get("results")).get("game"))
        results = {
            str(key): _numeric_stats(entry)
            for key, entry in game_results.items()
            if isinstance(entry, dict)
        }
        return cls(
            event_id=event_id,
            league_id=safe_str(raw.get("leagueID")),
            status=EventStatus.from_payload(raw.get("status")),
            home=Team.from_payload(teams.get("home")),
            away=Team.from_payload(teams.get("away")),
            players=players,
            odds=odds,
            results=results,
        )
