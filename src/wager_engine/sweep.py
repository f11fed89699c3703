"""Batch settlement of pending bets and the single-bet check flow."""

from __future__ import annotations

import json
import logging
from collections.abc import Iterable
from dataclasses import asdict, dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any, Literal, Protocol

from wager_engine.bets import PENDING, Bet, BetResult
from wager_engine.errors import WagerEngineError
from wager_engine.settlement import BetSettler
from wager_engine.time_utils import as_utc, iso_z
from wager_engine.voiding import MissingDataVoider

logger = logging.getLogger(__name__)

AuditAction = Literal["bet_auto_settled", "bet_auto_voided"]
CheckStatus = Literal["already_settled", "not_started", "settled", "voided", "pending"]


class BetStore(Protocol):
    def get(self, bet_id: str) -> Bet | None:
        raise NotImplementedError

    def legs_for(self, parent_id: str) -> list[Bet]:
        raise NotImplementedError

    def pending(self) -> list[Bet]:
        raise NotImplementedError

    def save(self, bet: Bet) -> None:
        raise NotImplementedError


class InMemoryBetStore:
    """Dict-backed store; insertion order is preserved for deterministic sweeps."""

    def __init__(self, bets: Iterable[Bet] = ()) -> None:
        self._bets: dict[str, Bet] = {}
        for bet in bets:
            if bet.bet_id in self._bets:
                raise ValueError(f"duplicate bet id: {bet.bet_id}")
            self._bets[bet.bet_id] = bet

    def get(self, bet_id: str) -> Bet | None:
        return self._bets.get(bet_id)

    def legs_for(self, parent_id: str) -> list[Bet]:
        return [bet for bet in self._bets.values() if bet.parlay_id == parent_id]

    def pending(self) -> list[Bet]:
        return [bet for bet in self._bets.values() if bet.is_pending]

    def save(self, bet: Bet) -> None:
        self._bets[bet.bet_id] = bet

    def all(self) -> list[Bet]:
        return list(self._bets.values())


def load_bets_jsonl(path: Path) -> list[Bet]:
    if not path.exists():
        raise FileNotFoundError(f"missing bets file: {path}")
    bets: list[Bet] = []
    for idx, line in enumerate(path.read_text(encoding="utf-8").splitlines(), start=1):
        raw = line.strip()
        if not raw:
            continue
        payload = json.loads(raw)
        if not isinstance(payload, dict):
            raise ValueError(f"invalid bet row at {path}:{idx}")
        bets.append(Bet.from_dict(payload))
    return bets


def write_bets_jsonl(path: Path, bets: Iterable[Bet]) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    lines = [json.dumps(bet.to_dict(), sort_keys=True) for bet in bets]
    path.write_text("\n".join(lines) + ("\n" if lines else ""), encoding="utf-8")


@dataclass(frozen=True)
class SettlementAudit:
    bet_id: str
    action: AuditAction
    result: BetResult
    reason: str
    triggered_by: str
    at: str

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class SweepReport:
    generated_at_utc: str
    counts: dict[str, int] = field(
        default_factory=lambda: {"settled": 0, "pending": 0, "voided": 0, "errors": 0}
    )
    audits: list[SettlementAudit] = field(default_factory=list)
    rows: list[dict[str, Any]] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "generated_at_utc": self.generated_at_utc,
            "counts": dict(self.counts),
            "audits": [audit.to_dict() for audit in self.audits],
            "rows": list(self.rows),
        }


@dataclass(frozen=True)
class CheckOutcome:
    bet_id: str
    status: CheckStatus
    result: BetResult
    reason: str = ""
    audit: SettlementAudit | None = None


@dataclass(frozen=True)
class _Decision:
    result: BetResult
    reason: str = ""
    voided: bool = False


def _decide(bet: Bet, settler: BetSettler, voider: MissingDataVoider) -> _Decision:
    if bet.is_parlay:
        result = settler.settle_parlay(bet)
        return _Decision(result, "" if result != PENDING else "Waiting for parlay legs")
    event = settler.fetch_event(bet)
    if event is None:
        return _Decision(PENDING, "Event data unavailable")
    result = settler.grade(bet, event)
    if result != PENDING:
        return _Decision(result)
    if not settler.is_game_ended(event, bet.start_time):
        return _Decision(PENDING, "Game has not ended yet")
    reason = voider.assess(bet, event)
    if reason is None:
        return _Decision(PENDING, "Waiting for provider data")
    return _Decision("void", reason, voided=True)


def _persist(
    store: BetStore,
    bet_id: str,
    decision: _Decision,
    *,
    now: datetime,
    triggered_by: str,
) -> SettlementAudit | None:
    """Re-read the bet and settle it only if it is still pending."""
    fresh = store.get(bet_id)
    if fresh is None or not fresh.is_pending:
        logger.info("bet %s no longer pending; skipping write", bet_id)
        return None
    fresh.refresh_lock(now)
    fresh.settle(decision.result)
    store.save(fresh)
    action: AuditAction = "bet_auto_voided" if decision.voided else "bet_auto_settled"
    logger.info("bet %s settled as %s (%s)", bet_id, decision.result, action)
    return SettlementAudit(
        bet_id=bet_id,
        action=action,
        result=decision.result,
        reason=decision.reason,
        triggered_by=triggered_by,
        at=iso_z(now),
    )


def _sweepable(bet: Bet, now: datetime) -> bool:
    if bet.is_parlay or now < bet.start_time:
        return False
    return bool(bet.provider_event_id or (bet.home_team and bet.away_team))


def settle_pending(
    store: BetStore,
    settler: BetSettler,
    *,
    voider: MissingDataVoider | None = None,
    now: datetime | None = None,
    triggered_by: str = "sweep",
) -> SweepReport:
    """Grade started single bets, then aggregate pending parlays from their legs."""
    voider = voider or MissingDataVoider(settler.resolver)
    current = as_utc(now) if now is not None else settler.clock()
    report = SweepReport(generated_at_utc=iso_z(current))

    singles = [bet for bet in store.pending() if _sweepable(bet, current)]
    for bet in singles:
        _sweep_one(store, settler, voider, bet, report, now=current, triggered_by=triggered_by)

    parlays = [bet for bet in store.pending() if bet.is_parlay]
    for bet in parlays:
        _sweep_one(store, settler, voider, bet, report, now=current, triggered_by=triggered_by)

    logger.info("settlement sweep finished: %s", report.counts)
    return report


def _sweep_one(
    store: BetStore,
    settler: BetSettler,
    voider: MissingDataVoider,
    bet: Bet,
    report: SweepReport,
    *,
    now: datetime,
    triggered_by: str,
) -> None:
    try:
        decision = _decide(bet, settler, voider)
        audit = None
        stored = None
        if decision.result != PENDING:
            audit = _persist(store, bet.bet_id, decision, now=now, triggered_by=triggered_by)
            if audit is None:
                stored = store.get(bet.bet_id)
    except Exception:
        logger.exception("failed to settle bet %s", bet.bet_id)
        report.counts["errors"] += 1
        report.rows.append(_row(bet, "error", "settlement raised"))
        return

    if decision.result == PENDING:
        report.counts["pending"] += 1
    elif audit is None:
        result = stored.result if stored is not None else "missing"
        report.rows.append(_row(bet, "already_settled", f"Bet was settled elsewhere as {result}"))
        return
    else:
        report.audits.append(audit)
        report.counts["voided" if decision.voided else "settled"] += 1
    report.rows.append(_row(bet, decision.result, decision.reason))


def _row(bet: Bet, result: str, reason: str) -> dict[str, Any]:
    return {
        "bet_id": bet.bet_id,
        "event": bet.event_name,
        "market": bet.market.market_type,
        "start_time": iso_z(bet.start_time),
        "result": result,
        "reason": reason,
    }


def check_bet(
    store: BetStore,
    settler: BetSettler,
    bet_id: str,
    *,
    voider: MissingDataVoider | None = None,
    now: datetime | None = None,
    triggered_by: str = "check",
) -> CheckOutcome:
    """Settle one bet on demand and re-aggregate its parent parlay if it settles."""
    bet = store.get(bet_id)
    if bet is None:
        raise WagerEngineError(f"bet not found: {bet_id}")
    if not bet.is_pending:
        return CheckOutcome(bet_id, "already_settled", bet.result, "Bet is already settled")
    voider = voider or MissingDataVoider(settler.resolver)
    current = as_utc(now) if now is not None else settler.clock()
    if not bet.is_parlay and current < bet.start_time:
        return CheckOutcome(bet_id, "not_started", PENDING, "Game has not started yet")

    decision = _decide(bet, settler, voider)
    if decision.result == PENDING:
        return CheckOutcome(bet_id, "pending", PENDING, decision.reason)

    audit = _persist(store, bet_id, decision, now=current, triggered_by=triggered_by)
    if audit is None:
        latest = store.get(bet_id)
        result = latest.result if latest is not None else decision.result
        return CheckOutcome(bet_id, "already_settled", result, "Bet is already settled")

    if bet.parlay_id:
        _refresh_parent(
            store, settler, voider, bet.parlay_id, now=current, triggered_by=triggered_by
        )
    status: CheckStatus = "voided" if decision.voided else "settled"
    return CheckOutcome(bet_id, status, decision.result, decision.reason, audit)


def _refresh_parent(
    store: BetStore,
    settler: BetSettler,
    voider: MissingDataVoider,
    parent_id: str,
    *,
    now: datetime,
    triggered_by: str,
) -> None:
    parent = store.get(parent_id)
    if parent is None or not parent.is_pending:
        return
    decision = _decide(parent, settler, voider)
    if decision.result != PENDING:
        _persist(store, parent_id, decision, now=now, triggered_by=triggered_by)


def render_settlement_markdown(report: SweepReport) -> str:
    """Render deterministic markdown for a settlement sweep."""
    counts = report.counts
    lines: list[str] = []
    lines.append("# Bet Settlement")
    lines.append("")
    lines.append(f"- generated_at_utc: `{report.generated_at_utc}`")
    lines.append("")
    lines.append("## Summary")
    lines.append("")
    lines.append("| Settled | Voided | Pending | Errors |")
    lines.append("| --- | --- | --- | --- |")
    lines.append(
        "| {} | {} | {} | {} |".format(
            counts.get("settled", 0),
            counts.get("voided", 0),
            counts.get("pending", 0),
            counts.get("errors", 0),
        )
    )
    lines.append("")
    lines.append("## Bets")
    lines.append("")
    if not report.rows:
        lines.append("- none")
        return "\n".join(lines) + "\n"

    lines.append("| Bet | Event | Market | Result | Reason |")
    lines.append("| --- | --- | --- | --- | --- |")
    for row in report.rows:
        lines.append(
            "| {} | {} | {} | {} | {} |".format(
                row.get("bet_id", ""),
                row.get("event", ""),
                row.get("market", ""),
                row.get("result", ""),
                row.get("reason", ""),
            )
        )
    lines.append("")
    lines.append("Pending bets are retried on the next sweep.")
    lines.append("")
    return "\n".join(lines)
