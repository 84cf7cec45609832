"""Declared result storage keyed by (market, date, session)."""

from __future__ import annotations

from typing import Any

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, selectinload

from app.domain import DeclaredResult, GameSession, MarketKind
from app.domain.dates import parse_result_date
from app.errors import DuplicateResult, NotFound
from app.models import ResultRecord, session_key

from .inputs import ResultInput


def to_declared(record: ResultRecord, *, jodi: str | None = None) -> DeclaredResult:
    market = record.market
    return DeclaredResult(
        market_id=record.market_id,
        result_date=record.result_date,
        session=GameSession.parse(record.session),
        digit=record.digit,
        panna=record.panna,
        jodi=jodi,
        result_id=record.result_id,
        market_name=market.name if market is not None else None,
    )


class ResultRepository:
    """At most one result per key; duplicates surface as ``DuplicateResult``."""

    def __init__(self, session: Session) -> None:
        self._session = session

    def create_result(self, payload: ResultInput) -> ResultRecord:
        session_value = payload.session.value if payload.session else None
        if self.get_result(payload.market_id, payload.result_date, payload.session) is not None:
            raise DuplicateResult(_duplicate_message(payload))

        record = ResultRecord(
            market_kind=payload.market_kind.value,
            market_id=payload.market_id,
            result_date=payload.result_date,
            session=session_value,
            session_key=session_key(session_value),
            digit=payload.digit,
            panna=payload.panna,
        )
        self._session.add(record)
        try:
            self._session.flush()
        except IntegrityError as exc:
            self._session.rollback()
            raise DuplicateResult(_duplicate_message(payload)) from exc
        return record

    def get_result(
        self,
        market_id: str,
        result_date: str,
        session: GameSession | None = None,
    ) -> ResultRecord | None:
        query = (
            select(ResultRecord)
            .options(selectinload(ResultRecord.market))
            .where(
                ResultRecord.market_id == market_id,
                ResultRecord.result_date == result_date,
                ResultRecord.session_key == session_key(session.value if session else None),
            )
        )
        return self._session.execute(query).scalars().first()

    def delete_result(self, result_id: str) -> None:
        record = self._session.get(ResultRecord, result_id)
        if record is None:
            raise NotFound(f"Result {result_id} not found")
        self._session.delete(record)
        self._session.flush()

    def list_results(
        self,
        *,
        market_kind: MarketKind,
        result_date: str | None = None,
        market_id: str | None = None,
    ) -> list[ResultRecord]:
        filters: list[Any] = [ResultRecord.market_kind == market_kind.value]
        if result_date:
            filters.append(ResultRecord.result_date == result_date)
        if market_id:
            filters.append(ResultRecord.market_id == market_id)

        query = (
            select(ResultRecord)
            .options(selectinload(ResultRecord.market))
            .where(*filters)
            .order_by(ResultRecord.created_at.desc())
        )
        records = list(self._session.execute(query).scalars().all())
        # DD-MM-YYYY does not sort lexically, so order by the parsed date.
        records.sort(key=lambda record: parse_result_date(record.result_date), reverse=True)
        return records


def _duplicate_message(payload: ResultInput) -> str:
    label = f"{payload.market_id} on {payload.result_date}"
    if payload.session is not None:
        label += f" ({payload.session.value})"
    return f"Result already exists for {label}"


__all__ = ["ResultRepository", "to_declared"]
