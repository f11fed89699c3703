"""Odds conversion helpers shared by validation and bet creation."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from typing import Literal

MIN_DECIMAL_ODDS = 1.01

OddsFormat = Literal["american", "decimal"]


@dataclass(frozen=True)
class OddsValue:
    """Odds as the user entered them."""

    format: OddsFormat
    value: float


def american_to_decimal(price: float | None) -> float | None:
    """Convert American odds to decimal odds."""
    if price is None:
        return None
    if price > 0:
        return 1.0 + (price / 100.0)
    if price < 0:
        return 1.0 + (100.0 / abs(price))
    return None


def decimal_to_american(decimal_odds: float | None) -> float | None:
    """Convert decimal odds to American odds (unrounded inverse of american_to_decimal)."""
    if decimal_odds is None or decimal_odds <= 1.0:
        return None
    if decimal_odds >= 2.0:
        return (decimal_odds - 1.0) * 100.0
    return -100.0 / (decimal_odds - 1.0)


def validate_odds(odds: OddsValue) -> tuple[bool, str]:
    """Check entered odds are representable; returns (ok, error)."""
    if odds.format == "american":
        if abs(odds.value) < 100:
            return False, "American odds must be at least +100 or at most -100"
        return True, ""
    if odds.value < MIN_DECIMAL_ODDS:
        return False, f"Decimal odds must be at least {MIN_DECIMAL_ODDS}"
    return True, ""


def normalize_to_decimal(odds: OddsValue) -> float:
    """Return canonical decimal odds for entered odds."""
    ok, error = validate_odds(odds)
    if not ok:
        raise ValueError(error)
    if odds.format == "decimal":
        return float(odds.value)
    converted = american_to_decimal(odds.value)
    if converted is None:
        raise ValueError(f"invalid American odds: {odds.value}")
    return converted


def parlay_decimal(leg_odds: Iterable[float]) -> float:
    """Combine leg decimal odds into parlay decimal odds."""
    product = 1.0
    for value in leg_odds:
        product *= value
    return product


def format_odds(decimal_odds: float, fmt: OddsFormat) -> str:
    """Render decimal odds in the user's entry format."""
    if fmt == "american":
        american = decimal_to_american(decimal_odds)
        if american is None:
            return f"{decimal_odds:.2f}"
        rounded = round(american)
        return f"+{rounded}" if rounded > 0 else str(rounded)
    return f"{decimal_odds:.2f}"


def bet_metrics(odds: float, units: float) -> dict[str, float]:
    """Potential win, total return, risk and ROI for a stake, rounded to cents."""
    potential_win = units * (odds - 1.0)
    total_return = units * odds
    roi = round((potential_win / units) * 100.0, 2) if units > 0 and odds > 0 else 0.0
    return {
        "potential_win": round(potential_win, 2),
        "total_return": round(total_return, 2),
        "risk": round(units, 2),
        "roi": roi,
    }
