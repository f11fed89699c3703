from __future__ import annotations

import pytest

from wager_engine.odds_math import (
    OddsValue,
    american_to_decimal,
    bet_metrics,
    decimal_to_american,
    format_odds,
    normalize_to_decimal,
    parlay_decimal,
    validate_odds,
)


@pytest.mark.parametrize(
    ("price", "expected"),
    [
        (+100, 2.0),
        (+150, 2.5),
        (-200, 1.5),
        (None, None),
        (0, None),
    ],
)
def test_american_to_decimal(price: int | None, expected: float | None) -> None:
    assert american_to_decimal(price) == expected


@pytest.mark.parametrize(
    ("decimal_odds", "expected"),
    [
        (2.5, 150),
        (1.5, -200),
        (None, None),
        (1.0, None),
    ],
)
def test_decimal_to_american(decimal_odds: float | None, expected: int | None) -> None:
    assert decimal_to_american(decimal_odds) == expected


@pytest.mark.parametrize("price", [100, 105, 150, 333, 1200, -105, -110, -250, -1000])
def test_american_decimal_round_trip(price: int) -> None:
    decimal_odds = american_to_decimal(price)
    assert decimal_odds is not None
    assert decimal_to_american(decimal_odds) == pytest.approx(price)


@pytest.mark.parametrize(
    ("odds", "ok"),
    [
        (OddsValue("american", 150), True),
        (OddsValue("american", -100), True),
        (OddsValue("american", 99), False),
        (OddsValue("american", -50), False),
        (OddsValue("decimal", 1.01), True),
        (OddsValue("decimal", 1.0), False),
    ],
)
def test_validate_odds(odds: OddsValue, ok: bool) -> None:
    assert validate_odds(odds)[0] is ok


def test_normalize_to_decimal() -> None:
    assert normalize_to_decimal(OddsValue("american", -110)) == pytest.approx(1.909090909)
    assert normalize_to_decimal(OddsValue("decimal", 2.2)) == 2.2
    with pytest.raises(ValueError, match="American odds"):
        normalize_to_decimal(OddsValue("american", 50))


def test_parlay_decimal_and_format() -> None:
    combined = parlay_decimal([2.0, 1.5])

    assert combined == pytest.approx(3.0)
    assert format_odds(combined, "american") == "+200"
    assert format_odds(1.5, "american") == "-200"
    assert format_odds(combined, "decimal") == "3.00"


def test_bet_metrics() -> None:
    metrics = bet_metrics(2.5, 2.0)

    assert metrics == {"potential_win": 3.0, "total_return": 5.0, "risk": 2.0, "roi": 150.0}
