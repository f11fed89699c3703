"""Outcome grading for finished games and parlay aggregation."""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable
from datetime import datetime
from typing import Protocol, assert_never

from wager_engine.bets import (
    PENDING,
    Bet,
    BetResult,
    MoneylineMarket,
    ParlayMarket,
    PlayerPropMarket,
    SpreadMarket,
    TotalMarket,
)
from wager_engine.events.gateway import EventGateway
from wager_engine.events.models import Event, TeamSide
from wager_engine.markets import Direction, map_stat_type_to_stat_id
from wager_engine.names import ContainmentResolver, NameResolver
from wager_engine.time_utils import as_utc, utc_now

logger = logging.getLogger(__name__)

SCORE_EPSILON = 1e-9
DOUBLE_DOUBLE_THRESHOLD = 10.0

COMPOSITE_STATS: dict[str, tuple[str, ...]] = {
    "points+rebounds+assists": ("points", "rebounds", "assists"),
    "points+rebounds": ("points", "rebounds"),
    "points+assists": ("points", "assists"),
    "rebounds+assists": ("rebounds", "assists"),
}

TOUCHDOWN_STATS = (
    "touchdowns",
    "rushing_touchdowns",
    "receiving_touchdowns",
    "kickoffReturn_touchdowns",
    "puntReturn_touchdowns",
    "fumbleReturn_touchdowns",
    "defense_touchdowns",
)

STAT_FALLBACKS: dict[str, tuple[str, ...]] = {
    "pitcher_strikeouts": ("pitcher_strikeouts", "pitching_strikeouts"),
    "pitcher_outsRecorded": ("pitcher_outsRecorded", "pitching_outsRecorded"),
}

DOUBLE_STATS = {"double_double": 2, "triple_double": 3}
DOUBLE_CATEGORIES = ("points", "rebounds", "assists", "steals", "blocks")


def get_scores(event: Event) -> tuple[float | None, float | None]:
    return event.score("home"), event.score("away")


def is_game_ended(event: Event, start_time: datetime, *, now: datetime | None = None) -> bool:
    """Started by the clock, finalized, not cancelled, and both scores present."""
    current = as_utc(now) if now is not None else utc_now()
    if current < as_utc(start_time):
        return False
    if not event.status.finalized or event.status.cancelled:
        return False
    home, away = get_scores(event)
    return home is not None and away is not None


def _sum_components(stats: dict[str, float], keys: Iterable[str]) -> float:
    return float(sum(stats.get(key, 0.0) for key in keys))


def compute_player_stat_value(stat_id: str, stats: dict[str, float]) -> float | None:
    """Stat value for grading; composites sum their parts, missing parts count 0."""
    if stat_id in COMPOSITE_STATS:
        return _sum_components(stats, COMPOSITE_STATS[stat_id])
    if stat_id == "touchdowns":
        return _sum_components(stats, TOUCHDOWN_STATS)
    if stat_id in STAT_FALLBACKS:
        for key in STAT_FALLBACKS[stat_id]:
            if key in stats:
                return stats[key]
        return None
    if stat_id in DOUBLE_STATS and stat_id not in stats:
        present = [stats[key] for key in DOUBLE_CATEGORIES if key in stats]
        if not present:
            return None
        reached = sum(1 for value in present if value >= DOUBLE_DOUBLE_THRESHOLD)
        return 1.0 if reached >= DOUBLE_STATS[stat_id] else 0.0
    return stats.get(stat_id)


def grade_moneyline(side: TeamSide | None, home_score: float, away_score: float) -> BetResult:
    if side is None:
        return "void"
    if home_score == away_score:
        return "push"
    winner = "home" if home_score > away_score else "away"
    return "win" if winner == side else "loss"


def grade_spread(
    side: TeamSide | None, line: float | None, home_score: float, away_score: float
) -> BetResult:
    if side is None or line is None:
        return "void"
    if side == "home":
        adjusted = home_score + line - away_score
    else:
        adjusted = away_score + line - home_score
    if abs(adjusted) < SCORE_EPSILON:
        return "push"
    return "win" if adjusted > 0 else "loss"


def grade_over_under(direction: Direction | None, line: float | None, value: float) -> BetResult:
    if direction is None or line is None:
        return "void"
    if abs(value - line) < SCORE_EPSILON:
        return "push"
    if direction == "Over":
        return "win" if value > line else "loss"
    return "win" if value < line else "loss"


def grade_total(direction: Direction | None, line: float | None, total: float) -> BetResult:
    return grade_over_under(direction, line, total)


def resolve_player_key(
    market: PlayerPropMarket, event: Event, resolver: NameResolver
) -> str | None:
    """Stored key, then legacy id, then a name lookup on the event roster."""
    return market.stored_player_key() or resolver.find_player_key(event, market.player_name)


def grade_player_prop(market: PlayerPropMarket, event: Event, resolver: NameResolver) -> BetResult:
    """Pending whenever the provider may still publish the stat.

    Yes/no props grade like over/under against their line, pushing on it.
    """
    if not market.stat_type or market.over_under is None or market.line is None:
        return "void"

    player_key = resolve_player_key(market, event, resolver)
    if not player_key:
        return PENDING
    stats = event.player_stats(player_key)
    if stats is None:
        return PENDING
    stat_id = map_stat_type_to_stat_id(market.stat_type)
    if not stat_id:
        return "void"
    value = compute_player_stat_value(stat_id, stats)
    if value is None:
        return PENDING
    return grade_over_under(market.over_under, market.line, value)


def aggregate_parlay(leg_results: list[str]) -> BetResult:
    """All-or-nothing: any loss loses, any push/void voids, otherwise all must win."""
    if not leg_results:
        return "void"
    if any(result == PENDING for result in leg_results):
        return PENDING
    if "loss" in leg_results:
        return "loss"
    if "void" in leg_results or "push" in leg_results:
        return "void"
    if all(result == "win" for result in leg_results):
        return "win"
    return "void"


class LegSource(Protocol):
    """Lookup of parlay legs by parent bet id."""

    def legs_for(self, parent_id: str) -> list[Bet]:
        raise NotImplementedError


class BetSettler:
    """Grades single bets from provider data and aggregates parlays from legs."""

    def __init__(
        self,
        gateway: EventGateway,
        legs: LegSource,
        *,
        resolver: NameResolver | None = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self.gateway = gateway
        self.legs = legs
        self.resolver = resolver or ContainmentResolver()
        self.clock = clock

    def fetch_event(self, bet: Bet) -> Event | None:
        return self.gateway.get_event(bet.provider_event_id, bet.event_lookup())

    def is_game_ended(self, event: Event, start_time: datetime) -> bool:
        return is_game_ended(event, start_time, now=self.clock())

    def grade(self, bet: Bet, event: Event) -> BetResult:
        """Grade a single bet against an already-fetched event."""
        if not self.is_game_ended(event, bet.start_time):
            return PENDING
        home, away = get_scores(event)
        if home is None or away is None:
            return PENDING

        market = bet.market
        match market:
            case MoneylineMarket(selection=selection):
                return grade_moneyline(self.resolver.resolve_side(event, selection), home, away)
            case SpreadMarket(selection=selection, line=line):
                return grade_spread(self.resolver.resolve_side(event, selection), line, home, away)
            case TotalMarket(over_under=over_under, line=line):
                return grade_total(over_under, line, home + away)
            case PlayerPropMarket():
                return grade_player_prop(market, event, self.resolver)
            case ParlayMarket():
                return PENDING
            case _:
                assert_never(market)

    def settle_bet(self, bet: Bet) -> BetResult:
        """Compute (not persist) the bet's result; parlays go through their legs."""
        if bet.is_parlay:
            return self.settle_parlay(bet)
        event = self.fetch_event(bet)
        if event is None:
            logger.info("bet %s pending: event unavailable", bet.bet_id)
            return PENDING
        return self.grade(bet, event)

    def settle_parlay(self, parent: Bet) -> BetResult:
        if not parent.bet_id:
            return "void"
        legs = self.legs.legs_for(parent.bet_id)
        return aggregate_parlay([leg.result for leg in legs])
