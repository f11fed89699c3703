from __future__ import annotations

from datetime import timedelta

import pytest
from fakes import BEFORE_START, START, TATUM, UPCOMING_STATUS, FakeProvider, make_event_payload

from wager_engine.bets import (
    MoneylineMarket,
    ParlayMarket,
    PlayerPropMarket,
    SpreadMarket,
    TotalMarket,
)
from wager_engine.errors import ValidationError
from wager_engine.events.gateway import EventGateway
from wager_engine.odds_math import OddsValue
from wager_engine.validation import (
    EVENT_UNAVAILABLE_ERROR,
    GAME_STARTED_ERROR,
    BetValidator,
    ParlayLeg,
    ValidationResult,
    check_line_tolerance,
    check_odds_tolerance,
)


def _validator(status=None, *, now=BEFORE_START) -> BetValidator:
    payload = make_event_payload(status=status or UPCOMING_STATUS)
    return BetValidator(EventGateway(FakeProvider([payload])), clock=lambda: now)


def test_check_odds_tolerance_boundaries() -> None:
    assert check_odds_tolerance(2.0, 2.099) is None
    assert check_odds_tolerance(2.0, 1.901) is None
    failed = check_odds_tolerance(2.0, 2.2)
    assert failed is not None
    assert "Submitted: 2.20, Provider: 2.00" in failed.error
    assert check_odds_tolerance(None, 2.0) == ValidationResult.fail("Invalid odds from provider")


def test_check_line_tolerance_relative_and_zero() -> None:
    assert check_line_tolerance(-3.6, -3.5) is None
    assert check_line_tolerance(-3.7, -3.5) is not None
    assert check_line_tolerance(0.005, 0.0) is None
    assert check_line_tolerance(0.5, 0.0) is not None


def test_check_line_tolerance_accepts_exact_edge() -> None:
    assert check_line_tolerance(-10.5, -10.0) is None
    assert check_line_tolerance(-9.5, -10.0) is None
    assert check_line_tolerance(-10.5000001, -10.0) is not None
    assert check_line_tolerance(0.01, 0.0) is None
    assert check_line_tolerance(0.0100001, 0.0) is not None


def test_validation_result_raise_for_error() -> None:
    ValidationResult.ok().raise_for_error()
    with pytest.raises(ValidationError, match="nope"):
        ValidationResult.fail("nope").raise_for_error()


def test_moneyline_within_tolerance() -> None:
    result = _validator().validate_moneyline_bet("NBA", "evt-1", "Celtics", 1.67, START)

    assert result == ValidationResult.ok()


def test_moneyline_rejects_odds_drift() -> None:
    result = _validator().validate_moneyline_bet("NBA", "evt-1", "Lakers", 2.6, START)

    assert not result.valid
    assert "Provider: 2.30" in result.error


def test_moneyline_unmatched_selection() -> None:
    result = _validator().validate_moneyline_bet("NBA", "evt-1", "Knicks", 2.0, START)

    assert result.error == 'Could not match "Knicks" to event teams'


@pytest.mark.parametrize(("line", "valid"), [(-3.5, True), (-3.6, True), (-3.7, False)])
def test_spread_line_tolerance(line: float, valid: bool) -> None:
    result = _validator().validate_spread_bet("NBA", "evt-1", "Boston", line, 1.91, START)

    assert result.valid is valid


@pytest.mark.parametrize(("line", "valid"), [(-10.5, True), (-9.5, True), (-10.5000001, False)])
def test_spread_line_at_tolerance_edge(line: float, valid: bool) -> None:
    payload = make_event_payload(status=UPCOMING_STATUS)
    payload["odds"]["points-home-game-sp-home"]["bookSpread"] = "-10"
    validator = BetValidator(EventGateway(FakeProvider([payload])), clock=lambda: BEFORE_START)

    result = validator.validate_spread_bet("NBA", "evt-1", "Boston", line, 1.91, START)

    assert result.valid is valid


def test_total_checks_line_then_odds() -> None:
    validator = _validator()

    assert validator.validate_total_bet("NBA", "evt-1", "Over", 225.0, 1.91, START).valid
    assert not validator.validate_total_bet("NBA", "evt-1", "Over", 240.0, 1.91, START).valid
    assert not validator.validate_total_bet("NBA", "evt-1", "Under", 220.5, 2.5, START).valid
    assert validator.validate_total_line_only("NBA", "evt-1", "Under", 220.5, START).valid


def test_rejects_after_start_time() -> None:
    validator = _validator(now=START + timedelta(seconds=1))

    result = validator.validate_moneyline_bet("NBA", "evt-1", "Celtics", 1.67, START)

    assert result.error == GAME_STARTED_ERROR


def test_rejects_when_provider_flags_live() -> None:
    status = dict(UPCOMING_STATUS, started=True, live=True)
    validator = _validator(status)

    check = validator.check_game_started("NBA", "evt-1", START)

    assert check.started is True
    assert check.error == GAME_STARTED_ERROR
    assert not validator.validate_spread_line_only("NBA", "evt-1", "BOS", -3.5, START).valid


def test_check_game_started_without_event() -> None:
    check = _validator().check_game_started("NBA", "", START)

    assert check.started is False


def test_missing_event_is_unavailable() -> None:
    result = _validator().validate_moneyline_bet("NBA", "nope", "Celtics", 1.67, START)

    assert result.error == EVENT_UNAVAILABLE_ERROR


def test_player_prop_validation() -> None:
    validator = _validator()

    assert validator.validate_player_prop_bet(
        TATUM, "Points", 27.5, "Over", 2.0, START, "evt-1"
    ).valid
    ok = validator.validate_player_prop_bet(TATUM, "Points", 28.5, "Over", 2.0, START, "evt-1")
    assert ok.valid
    far = validator.validate_player_prop_bet(TATUM, "Points", 40.0, "Over", 2.0, START, "evt-1")
    assert "Line differs" in far.error
    under = validator.validate_player_prop_bet(TATUM, "Points", 27.5, "Under", 2.0, START, "evt-1")
    assert "not available for this player" in under.error
    missing = validator.validate_player_prop_line_only(TATUM, "Points", 27.5, "Over", START)
    assert missing.error == "Missing provider event ID for player prop validation."
    nobody = validator.validate_player_prop_bet(
        "NOBODY", "Points", 27.5, "Over", 2.0, START, "evt-1"
    )
    assert nobody.error == "No props available for the selected player."


def test_validate_bet_dispatches_on_market() -> None:
    validator = _validator()

    def check(market):
        return validator.validate_bet(
            market, event_id="evt-1", league="NBA", odds=None, start_time=START
        )

    assert check(MoneylineMarket("Celtics")).valid
    assert check(SpreadMarket("Celtics", -3.5)).valid
    assert check(TotalMarket("Over", 220.5)).valid
    assert check(PlayerPropMarket("Jayson Tatum", "Points", 27.5, "Over", player_key=TATUM)).valid
    assert not check(PlayerPropMarket("Jayson Tatum", "Points", 27.5, "Over")).valid
    assert not check(SpreadMarket("Celtics", None)).valid
    assert not check(ParlayMarket()).valid


def _legs() -> list[ParlayLeg]:
    return [
        ParlayLeg(
            market=MoneylineMarket("Celtics"),
            start_time=START,
            event_id="evt-1",
            odds=OddsValue("decimal", 1.67),
            label="Celtics ML",
        ),
        ParlayLeg(
            market=TotalMarket("Over", 220.5),
            start_time=START,
            event_id="evt-1",
            odds=OddsValue("decimal", 1.91),
            label="Over 220.5",
        ),
    ]


def test_parlay_accepts_product_of_leg_odds() -> None:
    result = _validator().validate_parlay(OddsValue("decimal", 3.19), _legs(), START)

    assert result == ValidationResult.ok()


def test_parlay_rejects_mismatched_odds_in_entry_format() -> None:
    result = _validator().validate_parlay(OddsValue("american", 300), _legs(), START)

    assert not result.valid
    assert "Calculated from legs: +219" in result.error
    assert "Submitted: +300" in result.error


def test_parlay_requires_two_legs() -> None:
    result = _validator().validate_parlay(OddsValue("decimal", 1.67), _legs()[:1], START)

    assert result.error == "Parlay must have at least 2 legs"


def test_parlay_rejects_prop_leg_without_player_key() -> None:
    legs = _legs()
    legs[1] = ParlayLeg(
        market=PlayerPropMarket("Jayson Tatum", "Points", 27.5, "Over"),
        start_time=START,
        event_id="evt-1",
        label="Tatum points",
    )

    result = _validator().validate_parlay(OddsValue("decimal", 1.67), legs, START)

    assert "Player information is required" in result.error


def test_parlay_leg_without_event_id_checks_start_time() -> None:
    legs = _legs()
    legs[0] = ParlayLeg(market=MoneylineMarket("Knicks"), start_time=START, label="Knicks ML")
    validator = _validator(now=START + timedelta(minutes=5))

    result = validator.validate_parlay(OddsValue("decimal", 1.67), legs, START)

    assert result.error == 'Cannot create parlay: Game "Knicks ML" has already started'
