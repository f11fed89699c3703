"""Creation-time validation of bets against live provider data.

Validators return a ``ValidationResult`` for every expected failure; they do not
raise. Odds are compared in decimal form, lines by relative error, both against the
configured tolerance.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime
from typing import assert_never

from wager_engine.bets import (
    Market,
    MoneylineMarket,
    ParlayMarket,
    PlayerPropMarket,
    SpreadMarket,
    TotalMarket,
)
from wager_engine.errors import ValidationError
from wager_engine.events.gateway import EventGateway
from wager_engine.events.models import Event
from wager_engine.markets import (
    Direction,
    LineKind,
    find_game_odd,
    pick_line,
    pick_price,
    prop_candidates,
    prop_side,
    resolve_prop_bet_type,
    select_prop_odd,
)
from wager_engine.names import ContainmentResolver, NameResolver
from wager_engine.odds_math import (
    OddsValue,
    american_to_decimal,
    format_odds,
    normalize_to_decimal,
    parlay_decimal,
)
from wager_engine.time_utils import as_utc, utc_now

logger = logging.getLogger(__name__)

DEFAULT_TOLERANCE = 0.05
ZERO_LINE_EPSILON = 0.01
GAME_STARTED_ERROR = "Cannot create bet after game has started"
EVENT_UNAVAILABLE_ERROR = "Unable to fetch event data from SportsGameOdds."

_TEAM_MARKET_LABELS = {"sp": "Spread", "ou": "Total"}


@dataclass(frozen=True)
class ValidationResult:
    valid: bool
    error: str = ""

    @classmethod
    def ok(cls) -> ValidationResult:
        return cls(valid=True)

    @classmethod
    def fail(cls, error: str) -> ValidationResult:
        return cls(valid=False, error=error)

    def raise_for_error(self) -> None:
        if not self.valid:
            raise ValidationError(self.error)


@dataclass(frozen=True)
class GameStartCheck:
    started: bool
    error: str = ""


@dataclass(frozen=True)
class ParlayLeg:
    """One leg of a parlay being created."""

    market: Market
    start_time: datetime
    event_id: str = ""
    league: str = ""
    odds: OddsValue | None = None
    label: str = ""


def check_odds_tolerance(
    provider_decimal: float | None, submitted: float, *, tolerance: float = DEFAULT_TOLERANCE
) -> ValidationResult | None:
    """None when submitted decimal odds sit within tolerance of the provider's."""
    if provider_decimal is None or provider_decimal <= 0:
        return ValidationResult.fail("Invalid odds from provider")
    deviation = abs(submitted - provider_decimal) / provider_decimal
    if deviation > tolerance:
        return ValidationResult.fail(
            f"Odds differ by more than {tolerance:.0%} from provider. "
            f"Submitted: {submitted:.2f}, Provider: {provider_decimal:.2f}"
        )
    return None


def check_line_tolerance(
    submitted: float, provider_line: float, *, tolerance: float = DEFAULT_TOLERANCE
) -> ValidationResult | None:
    """None when the submitted line sits within tolerance of the provider's."""
    if provider_line == 0:
        if abs(submitted) > ZERO_LINE_EPSILON:
            return ValidationResult.fail(
                f"Line must be 0 when provider line is 0. Submitted: {submitted:g}"
            )
        return None
    deviation = abs(submitted - provider_line) / abs(provider_line)
    if deviation > tolerance:
        return ValidationResult.fail(
            f"Line differs by more than {tolerance:.0%} from provider. "
            f"Submitted: {submitted:g}, Provider: {provider_line:g}"
        )
    return None


class BetValidator:
    """Checks proposed bets against the provider's current event snapshot."""

    def __init__(
        self,
        gateway: EventGateway,
        *,
        resolver: NameResolver | None = None,
        tolerance: float = DEFAULT_TOLERANCE,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self.gateway = gateway
        self.resolver = resolver or ContainmentResolver()
        self.tolerance = tolerance
        self.clock = clock

    def _started_error(self, event: Event | None, start_time: datetime) -> ValidationResult | None:
        if as_utc(self.clock()) >= as_utc(start_time):
            return ValidationResult.fail(GAME_STARTED_ERROR)
        if event is not None and (
            event.status.started or event.status.live or event.status.completed
            or event.status.finalized
        ):
            return ValidationResult.fail(GAME_STARTED_ERROR)
        return None

    def _open_event(
        self, event_id: str | None, start_time: datetime
    ) -> tuple[Event | None, ValidationResult | None]:
        event = self.gateway.get_event(event_id) if event_id else None
        started = self._started_error(event, start_time)
        if started is not None:
            return event, started
        if event is None:
            return None, ValidationResult.fail(EVENT_UNAVAILABLE_ERROR)
        return event, None

    def _check_price(self, price: float | None, submitted: float, label: str) -> ValidationResult:
        if price is None:
            return ValidationResult.fail(f"Provider did not return odds for this {label}.")
        failed = check_odds_tolerance(
            american_to_decimal(price), submitted, tolerance=self.tolerance
        )
        return failed or ValidationResult.ok()

    def check_game_started(
        self, league: str | None, event_id: str | None, start_time: datetime
    ) -> GameStartCheck:
        """Whether betting on the event is closed; league is informational."""
        event = self.gateway.get_event(event_id) if event_id else None
        failed = self._started_error(event, start_time)
        if failed is not None:
            return GameStartCheck(started=True, error=failed.error)
        return GameStartCheck(started=False)

    def validate_moneyline_bet(
        self,
        league: str | None,
        event_id: str,
        selection: str,
        odds: float,
        start_time: datetime,
    ) -> ValidationResult:
        event, failed = self._open_event(event_id, start_time)
        if failed is not None or event is None:
            return failed or ValidationResult.fail(EVENT_UNAVAILABLE_ERROR)
        side = self.resolver.resolve_side(event, selection)
        if side is None:
            return ValidationResult.fail(f'Could not match "{selection}" to event teams')
        odd = find_game_odd(event, "ml", side)
        if odd is None:
            return ValidationResult.fail("Moneyline odds not available for this selection.")
        return self._check_price(pick_price(odd), odds, "moneyline")

    def _validate_line_market(
        self,
        *,
        event_id: str,
        bet_type: str,
        side_or_selection: str,
        line: float,
        odds: float | None,
        start_time: datetime,
    ) -> ValidationResult:
        event, failed = self._open_event(event_id, start_time)
        if failed is not None or event is None:
            return failed or ValidationResult.fail(EVENT_UNAVAILABLE_ERROR)
        label = _TEAM_MARKET_LABELS[bet_type]
        kind: LineKind = "spread" if bet_type == "sp" else "total"
        if bet_type == "sp":
            side = self.resolver.resolve_side(event, side_or_selection)
            if side is None:
                return ValidationResult.fail(
                    f'Could not match "{side_or_selection}" to event teams'
                )
        else:
            side = side_or_selection.lower()
        odd = find_game_odd(event, bet_type, side)
        if odd is None:
            return ValidationResult.fail(f"{label} odds not available for this selection.")
        provider_line = pick_line(odd, kind)
        if provider_line is None:
            return ValidationResult.fail(f"Provider did not return a {label.lower()} line.")
        failed_line = check_line_tolerance(line, provider_line, tolerance=self.tolerance)
        if failed_line is not None:
            return failed_line
        if odds is None:
            return ValidationResult.ok()
        return self._check_price(pick_price(odd), odds, label.lower())

    def validate_spread_bet(
        self,
        league: str | None,
        event_id: str,
        selection: str,
        line: float,
        odds: float,
        start_time: datetime,
    ) -> ValidationResult:
        return self._validate_line_market(
            event_id=event_id,
            bet_type="sp",
            side_or_selection=selection,
            line=line,
            odds=odds,
            start_time=start_time,
        )

    def validate_spread_line_only(
        self, league: str | None, event_id: str, selection: str, line: float, start_time: datetime
    ) -> ValidationResult:
        return self._validate_line_market(
            event_id=event_id,
            bet_type="sp",
            side_or_selection=selection,
            line=line,
            odds=None,
            start_time=start_time,
        )

    def validate_total_bet(
        self,
        league: str | None,
        event_id: str,
        over_under: Direction,
        line: float,
        odds: float,
        start_time: datetime,
    ) -> ValidationResult:
        return self._validate_line_market(
            event_id=event_id,
            bet_type="ou",
            side_or_selection=over_under,
            line=line,
            odds=odds,
            start_time=start_time,
        )

    def validate_total_line_only(
        self,
        league: str | None,
        event_id: str,
        over_under: Direction,
        line: float,
        start_time: datetime,
    ) -> ValidationResult:
        return self._validate_line_market(
            event_id=event_id,
            bet_type="ou",
            side_or_selection=over_under,
            line=line,
            odds=None,
            start_time=start_time,
        )

    def _validate_prop(
        self,
        *,
        player_key: str,
        stat_type: str,
        line: float,
        over_under: Direction,
        odds: float | None,
        start_time: datetime,
        event_id: str | None,
    ) -> ValidationResult:
        if not event_id:
            return ValidationResult.fail("Missing provider event ID for player prop validation.")
        event, failed = self._open_event(event_id, start_time)
        if failed is not None or event is None:
            return failed or ValidationResult.fail(EVENT_UNAVAILABLE_ERROR)

        player_odds = [odd for odd in event.odds if odd.player_id == player_key]
        if not player_odds:
            return ValidationResult.fail("No props available for the selected player.")
        bet_type = resolve_prop_bet_type(stat_type)
        side = prop_side(stat_type, over_under)
        if not any(odd.bet_type == bet_type and odd.side == side for odd in player_odds):
            return ValidationResult.fail(
                f'Stat type "{stat_type}" with side "{over_under}" not available for this player.'
            )
        chosen = select_prop_odd(
            prop_candidates(event, player_key, stat_type, over_under), stat_type, line
        )
        if chosen is None:
            return ValidationResult.fail(f'Stat type "{stat_type}" not available for this player.')

        if bet_type == "ou":
            if chosen.provider_line is None:
                return ValidationResult.fail(
                    "Provider did not return a line for this player prop."
                )
            failed_line = check_line_tolerance(
                line, chosen.provider_line, tolerance=self.tolerance
            )
            if failed_line is not None:
                return failed_line
        if odds is None:
            return ValidationResult.ok()
        return self._check_price(pick_price(chosen.odd), odds, "player prop")

    def validate_player_prop_bet(
        self,
        player_key: str,
        stat_type: str,
        line: float,
        over_under: Direction,
        odds: float,
        start_time: datetime,
        event_id: str | None = None,
    ) -> ValidationResult:
        return self._validate_prop(
            player_key=player_key,
            stat_type=stat_type,
            line=line,
            over_under=over_under,
            odds=odds,
            start_time=start_time,
            event_id=event_id,
        )

    def validate_player_prop_line_only(
        self,
        player_key: str,
        stat_type: str,
        line: float,
        over_under: Direction,
        start_time: datetime,
        event_id: str | None = None,
    ) -> ValidationResult:
        return self._validate_prop(
            player_key=player_key,
            stat_type=stat_type,
            line=line,
            over_under=over_under,
            odds=None,
            start_time=start_time,
            event_id=event_id,
        )

    def validate_bet(
        self,
        market: Market,
        *,
        event_id: str,
        league: str | None,
        odds: float | None,
        start_time: datetime,
    ) -> ValidationResult:
        """Dispatch on market variant; ``odds=None`` runs the line-only checks."""
        match market:
            case MoneylineMarket(selection=selection):
                if odds is None:
                    started = self.check_game_started(league, event_id, start_time)
                    return ValidationResult(valid=not started.started, error=started.error)
                return self.validate_moneyline_bet(league, event_id, selection, odds, start_time)
            case SpreadMarket(selection=selection, line=line):
                if line is None:
                    return ValidationResult.fail("Spread line is required.")
                if odds is None:
                    return self.validate_spread_line_only(
                        league, event_id, selection, line, start_time
                    )
                return self.validate_spread_bet(league, event_id, selection, line, odds, start_time)
            case TotalMarket(over_under=over_under, line=line):
                if line is None or over_under is None:
                    return ValidationResult.fail("Total line and Over/Under are required.")
                if odds is None:
                    return self.validate_total_line_only(
                        league, event_id, over_under, line, start_time
                    )
                return self.validate_total_bet(league, event_id, over_under, line, odds, start_time)
            case PlayerPropMarket():
                player_key = market.stored_player_key()
                if not player_key:
                    return ValidationResult.fail("Player information is required for player props.")
                if market.line is None or market.over_under is None:
                    return ValidationResult.fail("Prop line and Over/Under are required.")
                return self._validate_prop(
                    player_key=player_key,
                    stat_type=market.stat_type,
                    line=market.line,
                    over_under=market.over_under,
                    odds=odds,
                    start_time=start_time,
                    event_id=event_id,
                )
            case ParlayMarket():
                return ValidationResult.fail("Parlays are validated leg by leg.")
            case _:
                assert_never(market)

    def validate_parlay(
        self, submitted: OddsValue, legs: list[ParlayLeg], start_time: datetime
    ) -> ValidationResult:
        """Check parlay odds against the leg product, then validate every leg."""
        if len(legs) < 2:
            return ValidationResult.fail("Parlay must have at least 2 legs")
        leg_odds = [leg.odds for leg in legs]
        try:
            submitted_decimal = normalize_to_decimal(submitted)
            leg_decimals = [normalize_to_decimal(value) for value in leg_odds if value is not None]
        except ValueError as exc:
            return ValidationResult.fail(str(exc))

        if len(leg_decimals) == len(legs):
            expected = parlay_decimal(leg_decimals)
            deviation = abs(submitted_decimal - expected) / expected
            if deviation > self.tolerance:
                return ValidationResult.fail(
                    "Parlay odds mismatch. "
                    f"Calculated from legs: {format_odds(expected, submitted.format)}, "
                    f"Submitted: {format_odds(submitted_decimal, submitted.format)}. "
                    "Please use the calculated parlay odds."
                )

        for index, leg in enumerate(legs, start=1):
            failed = self._validate_leg(leg, index=index, default_start=start_time)
            if failed is not None:
                return failed
        return ValidationResult.ok()

    def _validate_leg(
        self, leg: ParlayLeg, *, index: int, default_start: datetime
    ) -> ValidationResult | None:
        name = leg.label or f"leg {index}"
        leg_start = leg.start_time or default_start
        if isinstance(leg.market, ParlayMarket):
            return ValidationResult.fail(f'Parlay leg "{name}" cannot itself be a parlay')
        if isinstance(leg.market, PlayerPropMarket) and not leg.market.stored_player_key():
            return ValidationResult.fail(
                f'Player information is required for player prop in parlay leg "{name}"'
            )
        if not leg.event_id:
            if as_utc(self.clock()) >= as_utc(leg_start):
                return ValidationResult.fail(
                    f'Cannot create parlay: Game "{name}" has already started'
                )
            return None

        line_result = self.validate_bet(
            leg.market, event_id=leg.event_id, league=leg.league, odds=None, start_time=leg_start
        )
        if not line_result.valid:
            if line_result.error == GAME_STARTED_ERROR:
                return ValidationResult.fail(
                    f'Cannot create parlay: Game "{name}" has already started'
                )
            return line_result
        if leg.odds is None:
            return None
        odds_result = self.validate_bet(
            leg.market,
            event_id=leg.event_id,
            league=leg.league,
            odds=normalize_to_decimal(leg.odds),
            start_time=leg_start,
        )
        if not odds_result.valid:
            logger.info("parlay leg %s rejected: %s", name, odds_result.error)
            return odds_result
        return None
