"""CLI entrypoint for wager-engine."""

from __future__ import annotations

import argparse
import json
import logging
import sys
from datetime import timedelta
from pathlib import Path
from typing import Any

from wager_engine.bets import Bet, ParlayMarket, validate_bet_creation
from wager_engine.errors import WagerEngineError
from wager_engine.events.cache import InMemoryTTLCache
from wager_engine.events.gateway import EventGateway
from wager_engine.odds_math import OddsValue
from wager_engine.settings import Settings
from wager_engine.settlement import BetSettler
from wager_engine.sgo_client import EventProvider, SportsGameOddsClient, SportsGameOddsError
from wager_engine.sweep import (
    InMemoryBetStore,
    check_bet,
    load_bets_jsonl,
    render_settlement_markdown,
    settle_pending,
    write_bets_jsonl,
)
from wager_engine.time_utils import utc_now
from wager_engine.validation import BetValidator, ParlayLeg


class CLIError(RuntimeError):
    """User-facing CLI error."""


def _make_provider(settings: Settings) -> EventProvider:
    return SportsGameOddsClient(settings)


def _build_gateway(settings: Settings, provider: EventProvider) -> EventGateway:
    return EventGateway(
        provider,
        cache=InMemoryTTLCache(settings.event_cache_ttl_s),
        fallback_window=timedelta(hours=settings.fallback_window_h),
        search_limit=settings.fallback_search_limit,
        default_league=settings.default_league,
    )


def _close(provider: EventProvider) -> None:
    close = getattr(provider, "close", None)
    if callable(close):
        close()


def _load_store(path: Path) -> InMemoryBetStore:
    try:
        return InMemoryBetStore(load_bets_jsonl(path))
    except (FileNotFoundError, ValueError) as exc:
        raise CLIError(str(exc)) from exc


def _cmd_settle(args: argparse.Namespace) -> int:
    settings = Settings()
    bets_path = Path(args.bets)
    store = _load_store(bets_path)
    provider = _make_provider(settings)
    try:
        settler = BetSettler(_build_gateway(settings, provider), store)
        report = settle_pending(store, settler)
    finally:
        _close(provider)

    print(render_settlement_markdown(report), end="")
    if args.report:
        report_path = Path(args.report)
        report_path.parent.mkdir(parents=True, exist_ok=True)
        report_path.write_text(
            json.dumps(report.to_dict(), sort_keys=True, indent=2) + "\n", encoding="utf-8"
        )
    if args.write:
        write_bets_jsonl(bets_path, store.all())
    return 1 if report.counts["errors"] else 0


def _cmd_check(args: argparse.Namespace) -> int:
    settings = Settings()
    bets_path = Path(args.bets)
    store = _load_store(bets_path)
    provider = _make_provider(settings)
    try:
        settler = BetSettler(_build_gateway(settings, provider), store)
        outcome = check_bet(store, settler, args.bet_id)
    except WagerEngineError as exc:
        raise CLIError(str(exc)) from exc
    finally:
        _close(provider)

    payload = {
        "bet_id": outcome.bet_id,
        "status": outcome.status,
        "result": outcome.result,
        "reason": outcome.reason,
    }
    print(json.dumps(payload, sort_keys=True, indent=2))
    if args.write and outcome.audit is not None:
        write_bets_jsonl(bets_path, store.all())
    return 0


def _submitted_odds(bet: Bet) -> OddsValue:
    if bet.odds_format == "american" and bet.odds_american is not None:
        return OddsValue("american", bet.odds_american)
    return OddsValue("decimal", bet.odds)


def _parlay_legs(rows: Any) -> list[ParlayLeg]:
    if not isinstance(rows, list):
        raise CLIError("parlay bet requires a list of legs")
    legs: list[ParlayLeg] = []
    for row in rows:
        if not isinstance(row, dict):
            raise CLIError("invalid parlay leg")
        leg = Bet.from_dict(row)
        legs.append(
            ParlayLeg(
                market=leg.market,
                start_time=leg.start_time,
                event_id=leg.provider_event_id,
                league=leg.league,
                odds=_submitted_odds(leg),
                label=leg.event_name,
            )
        )
    return legs


def _cmd_validate(args: argparse.Namespace) -> int:
    settings = Settings()
    path = Path(args.bet)
    if not path.exists():
        raise CLIError(f"missing bet file: {path}")
    payload = json.loads(path.read_text(encoding="utf-8"))
    if not isinstance(payload, dict):
        raise CLIError("bet file must contain a JSON object")
    bet = Bet.from_dict(payload)

    valid, error = validate_bet_creation(
        event_name=bet.event_name,
        start_time=bet.start_time,
        odds=bet.odds,
        units=bet.units,
        now=utc_now(),
    )
    if valid:
        provider = _make_provider(settings)
        try:
            validator = BetValidator(
                _build_gateway(settings, provider), tolerance=settings.tolerance
            )
            if isinstance(bet.market, ParlayMarket):
                result = validator.validate_parlay(
                    _submitted_odds(bet), _parlay_legs(payload.get("legs")), bet.start_time
                )
            else:
                result = validator.validate_bet(
                    bet.market,
                    event_id=bet.provider_event_id,
                    league=bet.league,
                    odds=bet.odds,
                    start_time=bet.start_time,
                )
        finally:
            _close(provider)
        valid, error = result.valid, result.error

    print(json.dumps({"bet_id": bet.bet_id, "valid": valid, "error": error}, sort_keys=True))
    return 0 if valid else 1


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="wager-engine")
    parser.add_argument("--log-level", default="WARNING")
    subparsers = parser.add_subparsers(dest="command")

    settle = subparsers.add_parser("settle", help="Settle every pending bet in a JSONL file")
    settle.set_defaults(func=_cmd_settle)
    settle.add_argument("--bets", required=True)
    settle.add_argument("--write", action="store_true")
    settle.add_argument("--report", default="")

    check = subparsers.add_parser("check", help="Settle or explain a single bet")
    check.set_defaults(func=_cmd_check)
    check.add_argument("--bets", required=True)
    check.add_argument("--bet-id", required=True)
    check.add_argument("--write", action="store_true")

    validate = subparsers.add_parser("validate", help="Validate a proposed bet")
    validate.set_defaults(func=_cmd_validate)
    validate.add_argument("--bet", required=True)
    return parser


def main(argv: list[str] | None = None) -> int:
    """Run the CLI."""
    parser = _build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(
        level=str(args.log_level).upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    func = getattr(args, "func", None)
    if func is None:
        parser.print_help()
        return 0
    try:
        return int(func(args))
    except (CLIError, SportsGameOddsError, FileNotFoundError, ValueError) as exc:
        print(str(exc), file=sys.stderr)
        return 2


if __name__ == "__main__":
    raise SystemExit(main())
