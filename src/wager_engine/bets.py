"""Bet records, market variants, and the pending->terminal result transition."""

from __future__ import annotations

from dataclasses import InitVar, dataclass, field
from datetime import datetime
from typing import Any, ClassVar, Literal, assert_never

from wager_engine.errors import AlreadySettledError
from wager_engine.events.gateway import EventLookup
from wager_engine.markets import Direction
from wager_engine.odds_math import MIN_DECIMAL_ODDS, OddsFormat
from wager_engine.time_utils import as_utc, iso_z, parse_iso_z
from wager_engine.util.parsing import safe_float, safe_str

BetResult = Literal["pending", "win", "loss", "push", "void"]
MarketType = Literal["ML", "Spread", "Total", "Player Prop", "Parlay"]

PENDING: BetResult = "pending"
TERMINAL_RESULTS: frozenset[str] = frozenset({"win", "loss", "push", "void"})
MIN_UNITS = 0.01
MAX_UNITS = 2.0


@dataclass(frozen=True)
class MoneylineMarket:
    market_type: ClassVar[MarketType] = "ML"
    selection: str


@dataclass(frozen=True)
class SpreadMarket:
    market_type: ClassVar[MarketType] = "Spread"
    selection: str
    line: float | None


@dataclass(frozen=True)
class TotalMarket:
    market_type: ClassVar[MarketType] = "Total"
    over_under: Direction | None
    line: float | None


@dataclass(frozen=True)
class PlayerPropMarket:
    market_type: ClassVar[MarketType] = "Player Prop"
    player_name: str
    stat_type: str
    line: float | None
    over_under: Direction | None
    player_key: str | None = None
    player_id: str | None = None

    def stored_player_key(self) -> str | None:
        """Explicit key first, then the legacy numeric id."""
        return self.player_key or self.player_id or None


@dataclass(frozen=True)
class ParlayMarket:
    market_type: ClassVar[MarketType] = "Parlay"
    summary: str = ""


Market = MoneylineMarket | SpreadMarket | TotalMarket | PlayerPropMarket | ParlayMarket


def _direction(value: Any) -> Direction | None:
    raw = safe_str(value).lower()
    if raw == "over":
        return "Over"
    if raw == "under":
        return "Under"
    return None


def market_from_dict(row: dict[str, Any]) -> Market:
    market_type = safe_str(row.get("market_type"))
    line = safe_float(row.get("line"))
    if market_type == "ML":
        return MoneylineMarket(selection=safe_str(row.get("selection")))
    if market_type == "Spread":
        return SpreadMarket(selection=safe_str(row.get("selection")), line=line)
    if market_type == "Total":
        return TotalMarket(over_under=_direction(row.get("over_under")), line=line)
    if market_type == "Player Prop":
        return PlayerPropMarket(
            player_name=safe_str(row.get("player_name")),
            stat_type=safe_str(row.get("stat_type")),
            line=line,
            over_under=_direction(row.get("over_under")),
            player_key=safe_str(row.get("player_key")) or None,
            player_id=safe_str(row.get("player_id")) or None,
        )
    if market_type == "Parlay":
        return ParlayMarket(summary=safe_str(row.get("parlay_summary")))
    raise ValueError(f"unknown market type: {market_type!r}")


def market_to_dict(market: Market) -> dict[str, Any]:
    row: dict[str, Any] = {"market_type": market.market_type}
    match market:
        case MoneylineMarket(selection=selection):
            row["selection"] = selection
        case SpreadMarket(selection=selection, line=line):
            row.update(selection=selection, line=line)
        case TotalMarket(over_under=over_under, line=line):
            row.update(over_under=over_under, line=line)
        case PlayerPropMarket():
            row.update(
                player_name=market.player_name,
                stat_type=market.stat_type,
                line=market.line,
                over_under=market.over_under,
                player_key=market.player_key,
                player_id=market.player_id,
            )
        case ParlayMarket(summary=summary):
            row["parlay_summary"] = summary
        case _:
            assert_never(market)
    return row


@dataclass
class Bet:
    bet_id: str
    market: Market
    start_time: datetime
    odds: float
    odds_format: OddsFormat = "decimal"
    odds_american: float | None = None
    units: float = 1.0
    provider_event_id: str = ""
    league: str = ""
    home_team: str = ""
    away_team: str = ""
    parlay_id: str | None = None
    locked: bool = False
    initial_result: InitVar[str] = PENDING
    _result: BetResult = field(init=False, default=PENDING)

    def __post_init__(self, initial_result: str) -> None:
        if initial_result != PENDING and initial_result not in TERMINAL_RESULTS:
            raise ValueError(f"unknown bet result: {initial_result!r}")
        self._result = initial_result  # type: ignore[assignment]
        self.start_time = as_utc(self.start_time)

    @property
    def result(self) -> BetResult:
        return self._result

    @property
    def is_pending(self) -> bool:
        return self._result == PENDING

    @property
    def is_parlay(self) -> bool:
        return isinstance(self.market, ParlayMarket)

    def settle(self, result: str) -> None:
        """Move a pending bet to a terminal result exactly once."""
        if result not in TERMINAL_RESULTS:
            raise ValueError(f"cannot settle to non-terminal result: {result!r}")
        if self._result != PENDING:
            raise AlreadySettledError(f"bet {self.bet_id} already settled as {self._result}")
        self._result = result  # type: ignore[assignment]

    def refresh_lock(self, now: datetime) -> bool:
        """Lock once the start time passes; never unlocks."""
        if as_utc(now) >= self.start_time:
            self.locked = True
        return self.locked

    @property
    def event_name(self) -> str:
        if self.home_team and self.away_team:
            return f"{self.away_team} @ {self.home_team}"
        return self.home_team or self.away_team or "Event"

    def event_lookup(self) -> EventLookup:
        return EventLookup(
            home_team=self.home_team,
            away_team=self.away_team,
            start_time=self.start_time,
            league=self.league,
        )

    @classmethod
    def from_dict(cls, row: dict[str, Any]) -> Bet:
        start_time = parse_iso_z(safe_str(row.get("start_time")))
        if start_time is None:
            raise ValueError(f"bet {row.get('bet_id')!r} missing start_time")
        odds = safe_float(row.get("odds"))
        if odds is None:
            raise ValueError(f"bet {row.get('bet_id')!r} missing odds")
        odds_format = "american" if safe_str(row.get("odds_format")) == "american" else "decimal"
        return cls(
            bet_id=safe_str(row.get("bet_id")),
            market=market_from_dict(row),
            start_time=start_time,
            odds=odds,
            odds_format=odds_format,
            odds_american=safe_float(row.get("odds_american")),
            units=safe_float(row.get("units")) or 1.0,
            provider_event_id=safe_str(row.get("provider_event_id")),
            league=safe_str(row.get("league")),
            home_team=safe_str(row.get("home_team")),
            away_team=safe_str(row.get("away_team")),
            parlay_id=safe_str(row.get("parlay_id")) or None,
            locked=row.get("locked") is True,
            initial_result=safe_str(row.get("result")) or PENDING,
        )

    def to_dict(self) -> dict[str, Any]:
        row: dict[str, Any] = {
            "bet_id": self.bet_id,
            "start_time": iso_z(self.start_time),
            "odds": self.odds,
            "odds_format": self.odds_format,
            "odds_american": self.odds_american,
            "units": self.units,
            "provider_event_id": self.provider_event_id,
            "league": self.league,
            "home_team": self.home_team,
            "away_team": self.away_team,
            "parlay_id": self.parlay_id,
            "locked": self.locked,
            "result": self._result,
        }
        row.update(market_to_dict(self.market))
        return row


def can_edit_bet(start_time: datetime, locked: bool, now: datetime) -> tuple[bool, str]:
    """Edits are allowed only before the event starts and while unlocked."""
    if locked:
        return False, "Bet is locked. Event has already started."
    if as_utc(now) >= as_utc(start_time):
        return False, "Cannot edit bet after event start time."
    return True, ""


def validate_bet_creation(
    *, event_name: str, start_time: datetime, odds: float, units: float, now: datetime
) -> tuple[bool, str]:
    """Basic field checks applied before any provider validation."""
    if as_utc(start_time) <= as_utc(now):
        return False, "Start time must be in the future"
    if odds < MIN_DECIMAL_ODDS:
        return False, f"Odds must be at least {MIN_DECIMAL_ODDS}"
    if units < MIN_UNITS:
        return False, f"Units must be at least {MIN_UNITS}"
    if units > MAX_UNITS:
        return False, f"Maximum bet is {MAX_UNITS:g} units"
    if not event_name.strip():
        return False, "Event name is required"
    return True, ""
