"""Settle declared results against recorded bids and persist the winners."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import tzinfo
from typing import Sequence

from loguru import logger
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core.config import Settings, get_settings
from app.domain import (
    GameSession,
    MarketKind,
    MarketRef,
    SettlementReport,
    WinnerRecord,
    project,
    settle_report,
)
from app.domain.dates import day_bounds, parse_result_date
from app.errors import InvalidValue
from app.models import Market, WinnerEntry
from app.repositories import (
    LedgerRepository,
    MarketRepository,
    ResultRepository,
    WagerRepository,
    WinnerRepository,
    to_declared,
)


@dataclass(slots=True, frozen=True)
class SettlementRequest:
    market_kind: MarketKind
    market_id: str
    result_date: str
    session: GameSession | None = None

    @property
    def label(self) -> str:
        label = f"{self.market_kind.value}:{self.market_id} {self.result_date}"
        if self.session is not None:
            label += f" {self.session.value}"
        return label


@dataclass(slots=True)
class SettlementOutcome:
    request: SettlementRequest
    report: SettlementReport
    dry_run: bool
    persisted: list[WinnerRecord] = field(default_factory=list)
    already_settled: int = 0


@dataclass(slots=True)
class WinnerQuery:
    market_kind: MarketKind = MarketKind.MAIN
    user_id: str | None = None
    result_date: str | None = None
    market_id: str | None = None
    limit: int = 50
    offset: int = 0


@dataclass(slots=True)
class WinnerQueryResult:
    total: int
    winners: Sequence[WinnerEntry]


class SettlementService:
    """Run the pure settlement core over stored data.

    ``preview`` never writes. ``run`` records each winning line once and
    credits the owner's wallet in the same transaction; lines persisted by an
    earlier run are skipped, so repeating a run is a no-op.
    """

    def __init__(
        self,
        session: Session,
        *,
        settings: Settings | None = None,
        tz: tzinfo | None = None,
    ):
        self._session = session
        self._settings = settings or get_settings()
        self._tz = tz or self._settings.tzinfo
        self._market_repo = MarketRepository(session)
        self._result_repo = ResultRepository(session)
        self._wager_repo = WagerRepository(session)
        self._winner_repo = WinnerRepository(session)
        self._ledger_repo = LedgerRepository(session)

    def preview(self, request: SettlementRequest) -> SettlementOutcome:
        _, report = self._evaluate(request)
        return SettlementOutcome(request=request, report=report, dry_run=True)

    def run(self, request: SettlementRequest) -> SettlementOutcome:
        market, report = self._evaluate(request)
        outcome = SettlementOutcome(request=request, report=report, dry_run=False)
        settled = self._winner_repo.settled_lines(
            request.market_id, request.result_date, request.session
        )

        for winner in report.winners:
            if winner.line_key in settled:
                outcome.already_settled += 1
                continue
            try:
                with self._session.begin_nested():
                    persisted = self._persist_winner(market, request, winner)
            except IntegrityError:
                # Another run recorded this line first; its savepoint is already rolled back.
                logger.warning(
                    "Settlement {} line {}#{} was written by another run",
                    request.label,
                    winner.slip_id,
                    winner.position,
                )
                outcome.already_settled += 1
                continue
            outcome.persisted.append(persisted)
        self._session.commit()

        logger.info(
            "Settled {}: {} rows evaluated, {} winners, {} new, {} already settled, {} skipped",
            request.label,
            report.evaluated_rows,
            len(report.winners),
            len(outcome.persisted),
            outcome.already_settled,
            len(report.skipped),
        )
        return outcome

    def requests_for_date(
        self, market_kind: MarketKind, result_date: str
    ) -> list[SettlementRequest]:
        """One request per result declared on ``result_date``, open before close."""

        parse_result_date(result_date)
        records = self._result_repo.list_results(market_kind=market_kind, result_date=result_date)
        requests = [
            SettlementRequest(
                market_kind=market_kind,
                market_id=record.market_id,
                result_date=record.result_date,
                session=GameSession.parse(record.session),
            )
            for record in records
        ]
        order = {None: 0, GameSession.OPEN: 0, GameSession.CLOSE: 1}
        return sorted(requests, key=lambda item: (item.market_id, order[item.session]))

    def winner_history(self, query: WinnerQuery) -> WinnerQueryResult:
        if query.result_date:
            parse_result_date(query.result_date)
        entries, total = self._winner_repo.list_winners(
            market_kind=query.market_kind,
            user_id=query.user_id,
            result_date=query.result_date,
            market_id=query.market_id,
            limit=query.limit,
            offset=query.offset,
        )
        return WinnerQueryResult(total=total, winners=entries)

    # ------------------------------------------------------------------
    # Internals

    def _evaluate(self, request: SettlementRequest) -> tuple[Market, SettlementReport]:
        target = parse_result_date(request.result_date)
        kind = request.market_kind
        if kind.uses_sessions and request.session is None:
            raise InvalidValue("Session is required to settle a main market")
        if not kind.uses_sessions and request.session is not None:
            raise InvalidValue(f"{kind.value} markets are settled without a session")

        market = self._market_repo.require_market(request.market_id, kind)
        market_ref = MarketRef(market_id=market.market_id, name=market.name, kind=kind)

        record = self._result_repo.get_result(
            request.market_id, request.result_date, request.session
        )
        declared = None
        if record is not None:
            declared = to_declared(record, jodi=self._main_jodi(request, record.digit))

        created_from, created_to = day_bounds(target, self._tz)
        slips = self._wager_repo.slips_for(
            market_kind=kind,
            market_id=request.market_id,
            created_from=created_from,
            created_to=created_to,
        )
        report = settle_report(
            market_ref,
            request.result_date,
            request.session,
            declared,
            project(slips),
            self._market_repo.get_rate_table(kind),
            tz=self._tz,
        )
        return market, report

    def _main_jodi(self, request: SettlementRequest, close_digit: str | None) -> str | None:
        """Open digit followed by close digit, once both halves are declared."""

        if request.session is not GameSession.CLOSE or not close_digit:
            return None
        open_record = self._result_repo.get_result(
            request.market_id, request.result_date, GameSession.OPEN
        )
        if open_record is None or not open_record.digit:
            return None
        return f"{open_record.digit}{close_digit}"

    def _persist_winner(
        self,
        market: Market,
        request: SettlementRequest,
        winner: WinnerRecord,
    ) -> WinnerRecord:
        transaction_id = None
        if winner.payout > 0:
            description = self._settings.settlement_credit_description.format(
                game_name=winner.game_name or market.name,
                bid_kind=winner.bid_kind.value.replace("_", " "),
                result_date=request.result_date,
            )
            transaction = self._ledger_repo.credit(
                winner.user_id, winner.payout, description=description
            )
            transaction_id = transaction.transaction_id

        self._winner_repo.record_winner(
            winner, market_kind=request.market_kind, transaction_id=transaction_id
        )
        return replace(winner, transaction_id=transaction_id)


__all__ = [
    "SettlementOutcome",
    "SettlementRequest",
    "SettlementService",
    "WinnerQuery",
    "WinnerQueryResult",
]
