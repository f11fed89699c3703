"""Terminal voids for finished games whose provider data never arrived."""

from __future__ import annotations

from typing import assert_never

from wager_engine.bets import (
    Bet,
    MoneylineMarket,
    ParlayMarket,
    PlayerPropMarket,
    SpreadMarket,
    TotalMarket,
)
from wager_engine.errors import DataMissingAfterGameEnd
from wager_engine.events.models import Event
from wager_engine.markets import map_stat_type_to_stat_id
from wager_engine.names import ContainmentResolver, NameResolver
from wager_engine.settlement import compute_player_stat_value, get_scores, resolve_player_key

REASON_PREFIX = "Game has ended but provider data is missing. "


class MissingDataVoider:
    """Explains why an ended game still cannot grade a bet.

    Callers run this only after the game is confirmed ended and the grader
    returned pending for a non-parlay bet.
    """

    def __init__(self, resolver: NameResolver | None = None) -> None:
        self.resolver = resolver or ContainmentResolver()

    def assess(self, bet: Bet, event: Event) -> str | None:
        """Return a void reason, or None when nothing required is missing."""
        market = bet.market
        match market:
            case PlayerPropMarket():
                detail = self._prop_gap(market, event)
            case MoneylineMarket() | SpreadMarket() | TotalMarket():
                home, away = get_scores(event)
                detail = None
                if home is None or away is None:
                    detail = f"Scores unavailable for {market.market_type} bet."
            case ParlayMarket():
                detail = None
            case _:
                assert_never(market)
        if detail is None:
            return None
        return REASON_PREFIX + detail

    def raise_if_missing(self, bet: Bet, event: Event) -> None:
        reason = self.assess(bet, event)
        if reason is not None:
            raise DataMissingAfterGameEnd(reason)

    def _prop_gap(self, market: PlayerPropMarket, event: Event) -> str | None:
        player_key = resolve_player_key(market, event, self.resolver)
        if not player_key:
            return f"Player key not found for {market.player_name or 'unknown player'}."
        stats = event.player_stats(player_key)
        if stats is None:
            return f"Player stats not found for {market.player_name or player_key}."
        stat_id = map_stat_type_to_stat_id(market.stat_type)
        if not stat_id:
            return f"Invalid stat type: {market.stat_type!r}."
        if compute_player_stat_value(stat_id, stats) is None:
            return f"Stat {stat_id} not found for {market.player_name or player_key}."
        return None
