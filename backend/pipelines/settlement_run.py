"""Standalone job that settles declared results for one day."""

from __future__ import annotations

import argparse
import json
from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from pathlib import Path
from typing import Any, Callable, ContextManager
from uuid import uuid4

from loguru import logger

from app.core.config import Settings, get_settings
from app.db import init_db, session_scope
from app.domain import GameSession, MarketKind
from app.domain.dates import format_result_date, local_date
from app.errors import BettingError
from app.services.settlement_service import (
    SettlementOutcome,
    SettlementRequest,
    SettlementService,
)


@dataclass(slots=True)
class SettlementRunSummary:
    run_id: str
    market_kind: MarketKind
    result_date: str
    dry_run: bool
    settled: list[dict[str, Any]] = field(default_factory=list)
    failures: list[dict[str, Any]] = field(default_factory=list)

    @property
    def total_winners(self) -> int:
        return sum(item["winners"] for item in self.settled)

    @property
    def total_persisted(self) -> int:
        return sum(item["persisted"] for item in self.settled)

    @property
    def total_payout(self) -> Decimal:
        return sum((Decimal(item["total_payout"]) for item in self.settled), Decimal("0"))

    def record(self, outcome: SettlementOutcome) -> None:
        request = outcome.request
        self.settled.append(
            {
                "market_id": request.market_id,
                "session": request.session.value if request.session else None,
                "evaluated_rows": outcome.report.evaluated_rows,
                "winners": len(outcome.report.winners),
                "persisted": len(outcome.persisted),
                "already_settled": outcome.already_settled,
                "skipped": len(outcome.report.skipped),
                "total_payout": str(outcome.report.total_payout),
            }
        )

    def record_failure(self, request: SettlementRequest, exc: BettingError) -> None:
        self.failures.append(
            {
                "market_id": request.market_id,
                "session": request.session.value if request.session else None,
                **exc.to_dict(),
            }
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "run_id": self.run_id,
            "market_kind": self.market_kind.value,
            "result_date": self.result_date,
            "dry_run": self.dry_run,
            "total_winners": self.total_winners,
            "total_persisted": self.total_persisted,
            "total_payout": str(self.total_payout),
            "settled": self.settled,
            "failures": self.failures,
        }


def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Settle declared results against the bids placed on the same day",
    )
    parser.add_argument(
        "--market-kind",
        default=MarketKind.MAIN.value,
        help="Market kind to settle (main, starline or galidisawar)",
    )
    parser.add_argument(
        "--market-id",
        default=None,
        help="Settle a single market; every result declared on the date is settled otherwise",
    )
    parser.add_argument(
        "--result-date",
        default=None,
        help="Result date in DD-MM-YYYY format (defaults to today in the configured timezone)",
    )
    parser.add_argument("--session", default=None, help="open or close (main markets only)")
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Compute winners without recording them or crediting wallets",
    )
    parser.add_argument(
        "--summary-path",
        type=Path,
        default=None,
        help="Optional path where a JSON summary report will be written",
    )
    return parser.parse_args(argv)


def _resolve_requests(
    args: argparse.Namespace,
    service: SettlementService,
    *,
    market_kind: MarketKind,
    result_date: str,
) -> list[SettlementRequest]:
    session = GameSession.parse(args.session)
    if args.market_id:
        return [
            SettlementRequest(
                market_kind=market_kind,
                market_id=args.market_id,
                result_date=result_date,
                session=session,
            )
        ]

    requests = service.requests_for_date(market_kind, result_date)
    if session is not None:
        requests = [request for request in requests if request.session is session]
    return requests


def run_settlement(
    args: argparse.Namespace,
    settings: Settings,
    *,
    now: datetime | None = None,
    session_factory: Callable[[], ContextManager[Any]] | None = None,
    init_db_fn: Callable[[], None] = init_db,
    service_factory: Callable[[Any], SettlementService] | None = None,
) -> SettlementRunSummary:
    if session_factory is None:
        init_db_fn()
        session_factory = session_scope

    service_factory = service_factory or (
        lambda session: SettlementService(session, settings=settings)
    )

    market_kind = MarketKind.parse(args.market_kind)
    now = now or datetime.now(timezone.utc)
    result_date = args.result_date or format_result_date(local_date(now, settings.tzinfo))

    summary = SettlementRunSummary(
        run_id=str(uuid4()),
        market_kind=market_kind,
        result_date=result_date,
        dry_run=args.dry_run,
    )
    logger.info(
        "Starting settlement run {} ({} results on {}, dry_run={})",
        summary.run_id,
        market_kind.value,
        result_date,
        args.dry_run,
    )

    with session_factory() as session:
        service = service_factory(session)
        requests = _resolve_requests(
            args, service, market_kind=market_kind, result_date=result_date
        )
        if not requests:
            logger.info("No results declared for {} on {}", market_kind.value, result_date)

        for request in requests:
            try:
                if args.dry_run:
                    outcome = service.preview(request)
                else:
                    outcome = service.run(request)
            except BettingError as exc:
                session.rollback()
                logger.error("Settlement {} failed: {}", request.label, exc.message)
                summary.record_failure(request, exc)
                continue
            summary.record(outcome)

    logger.info(
        "Settlement run {} completed. results={}, winners={}, persisted={}, payout={}",
        summary.run_id,
        len(summary.settled),
        summary.total_winners,
        summary.total_persisted,
        summary.total_payout,
    )
    if summary.failures:
        logger.warning("Settlement run finished with {} failures", len(summary.failures))

    if args.summary_path:
        _write_summary(args.summary_path, summary)
        logger.info("Wrote settlement summary to {}", args.summary_path)

    return summary


def _write_summary(path: Path, summary: SettlementRunSummary) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(
        json.dumps(summary.to_dict(), indent=2, sort_keys=True) + "\n",
        encoding="utf-8",
    )


def main(argv: list[str] | None = None) -> SettlementRunSummary:
    args = _parse_args(argv)
    return run_settlement(args, get_settings())


if __name__ == "__main__":
    main()
