from __future__ import annotations

import json
from datetime import timedelta
from pathlib import Path

import pytest
from fakes import BEFORE_START, NOW, START, UPCOMING_STATUS, FakeProvider, make_event_payload

from wager_engine.bets import Bet, MoneylineMarket, ParlayMarket, PlayerPropMarket, TotalMarket
from wager_engine.errors import WagerEngineError
from wager_engine.events.gateway import EventGateway
from wager_engine.names import ContainmentResolver
from wager_engine.settlement import BetSettler
from wager_engine.sweep import (
    InMemoryBetStore,
    check_bet,
    load_bets_jsonl,
    render_settlement_markdown,
    settle_pending,
    write_bets_jsonl,
)


def _bet(bet_id: str, market, **overrides) -> Bet:
    values = {
        "bet_id": bet_id,
        "market": market,
        "start_time": START,
        "odds": 2.0,
        "provider_event_id": "evt-1",
        "home_team": "Boston Celtics",
        "away_team": "Los Angeles Lakers",
    }
    values.update(overrides)
    return Bet(**values)


def _settler(store: InMemoryBetStore, events=None, **kwargs) -> BetSettler:
    provider = FakeProvider(events if events is not None else [make_event_payload()])
    return BetSettler(EventGateway(provider), store, clock=lambda: NOW, **kwargs)


def _parlay_bets() -> list[Bet]:
    return [
        _bet("p1", ParlayMarket("2 legs"), provider_event_id="", home_team="", away_team=""),
        _bet("l1", MoneylineMarket("Celtics"), parlay_id="p1"),
        _bet("l2", TotalMarket("Over", 190.5), parlay_id="p1"),
    ]


def test_settle_pending_grades_singles_then_parlays() -> None:
    store = InMemoryBetStore(
        [
            _bet("ml", MoneylineMarket("Celtics")),
            _bet("prop", PlayerPropMarket("Jaylen Brown", "Points", 20.5, "Over")),
            _bet("future", MoneylineMarket("Celtics"), start_time=NOW + timedelta(hours=2)),
            _bet("noref", MoneylineMarket("Celtics"), provider_event_id="", home_team=""),
            *_parlay_bets(),
        ]
    )

    report = settle_pending(store, _settler(store))

    assert report.counts == {"settled": 4, "pending": 0, "voided": 1, "errors": 0}
    assert store.get("ml").result == "win"
    assert store.get("prop").result == "void"
    assert store.get("p1").result == "win"
    assert store.get("future").is_pending
    assert store.get("noref").is_pending
    assert store.get("ml").locked is True
    voided = [audit for audit in report.audits if audit.action == "bet_auto_voided"]
    assert [audit.bet_id for audit in voided] == ["prop"]
    assert voided[0].reason.startswith("Game has ended but provider data is missing.")
    assert report.audits[-1].bet_id == "p1"
    assert report.audits[-1].triggered_by == "sweep"


def test_settle_pending_leaves_live_games_pending() -> None:
    store = InMemoryBetStore([_bet("ml", MoneylineMarket("Celtics"))])
    live = dict(UPCOMING_STATUS, started=True, live=True)

    report = settle_pending(store, _settler(store, [make_event_payload(status=live)]))

    assert report.counts["pending"] == 1
    assert report.rows[0]["reason"] == "Game has not ended yet"
    assert store.get("ml").is_pending


def test_settle_pending_counts_errors_and_continues() -> None:
    class BrokenResolver(ContainmentResolver):
        def resolve_side(self, event, selection):
            raise RuntimeError("boom")

    store = InMemoryBetStore(
        [_bet("ml", MoneylineMarket("Celtics")), _bet("total", TotalMarket("Under", 190.5))]
    )

    report = settle_pending(store, _settler(store, resolver=BrokenResolver()))

    assert report.counts == {"settled": 1, "pending": 0, "voided": 0, "errors": 1}
    assert store.get("ml").is_pending
    assert store.get("total").result == "loss"


def test_settle_pending_rechecks_before_write() -> None:
    class RacingStore(InMemoryBetStore):
        def get(self, bet_id):
            bet = super().get(bet_id)
            if bet is not None and bet.is_pending:
                bet.settle("loss")
            return bet

    store = RacingStore([_bet("ml", MoneylineMarket("Celtics"))])

    report = settle_pending(store, _settler(store))

    assert report.counts["settled"] == 0
    assert report.audits == []
    assert store.get("ml").result == "loss"
    assert all(count == 0 for count in report.counts.values())
    (row,) = report.rows
    assert row["result"] == "already_settled"
    assert row["reason"] == "Bet was settled elsewhere as loss"


def test_check_bet_flows() -> None:
    store = InMemoryBetStore(
        [
            _bet("done", MoneylineMarket("Celtics"), initial_result="loss"),
            _bet("prop", PlayerPropMarket("Jaylen Brown", "Points", 20.5, "Over")),
            *_parlay_bets(),
        ]
    )
    store.get("l2").settle("win")
    settler = _settler(store)

    assert check_bet(store, settler, "done").status == "already_settled"
    early = check_bet(store, settler, "prop", now=BEFORE_START)
    assert (early.status, early.result) == ("not_started", "pending")

    voided = check_bet(store, settler, "prop")
    assert voided.status == "voided"
    assert voided.audit is not None
    assert voided.audit.action == "bet_auto_voided"

    leg = check_bet(store, settler, "l1")
    assert (leg.status, leg.result) == ("settled", "win")
    assert store.get("p1").result == "win"

    with pytest.raises(WagerEngineError, match="bet not found"):
        check_bet(store, settler, "missing")


def test_check_bet_pending_reason_when_event_missing() -> None:
    store = InMemoryBetStore([_bet("ml", MoneylineMarket("Celtics"), home_team="")])

    outcome = check_bet(store, _settler(store, []), "ml")

    assert outcome.status == "pending"
    assert outcome.reason == "Event data unavailable"


def test_jsonl_round_trip(tmp_path: Path) -> None:
    path = tmp_path / "bets.jsonl"
    bets = _parlay_bets()

    write_bets_jsonl(path, bets)
    path.write_text(path.read_text(encoding="utf-8") + "\n\n", encoding="utf-8")
    loaded = load_bets_jsonl(path)

    assert [bet.bet_id for bet in loaded] == ["p1", "l1", "l2"]
    assert loaded[1].parlay_id == "p1"
    assert json.loads(path.read_text(encoding="utf-8").splitlines()[0])["market_type"] == "Parlay"


def test_load_bets_jsonl_errors(tmp_path: Path) -> None:
    with pytest.raises(FileNotFoundError):
        load_bets_jsonl(tmp_path / "missing.jsonl")
    path = tmp_path / "bad.jsonl"
    path.write_text("[1, 2]\n", encoding="utf-8")
    with pytest.raises(ValueError, match="invalid bet row"):
        load_bets_jsonl(path)


def test_duplicate_bet_ids_rejected() -> None:
    with pytest.raises(ValueError, match="duplicate bet id"):
        InMemoryBetStore([_bet("a", MoneylineMarket("x")), _bet("a", MoneylineMarket("y"))])


def test_render_settlement_markdown() -> None:
    store = InMemoryBetStore([_bet("ml", MoneylineMarket("Celtics"))])
    report = settle_pending(store, _settler(store))

    markdown = render_settlement_markdown(report)

    assert "# Bet Settlement" in markdown
    assert "| 1 | 0 | 0 | 0 |" in markdown
    assert "| ml | Los Angeles Lakers @ Boston Celtics | ML | win |  |" in markdown

    empty = settle_pending(InMemoryBetStore(), _settler(InMemoryBetStore()))
    assert render_settlement_markdown(empty).endswith("- none\n")
