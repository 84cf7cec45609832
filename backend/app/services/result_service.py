"""Declaring, listing and deleting market results."""

from __future__ import annotations

from loguru import logger
from sqlalchemy.orm import Session

from app.domain import DEFAULT_CATALOG, BidKind, Catalog, MarketKind, panna_digit
from app.domain.dates import parse_result_date
from app.errors import InvalidValue
from app.models import ResultRecord
from app.repositories import MarketRepository, ResultInput, ResultRepository
from app.schemas import Result, ResultCreate, ResultGroup, SessionResult


class ResultService:
    def __init__(self, session: Session, *, catalog: Catalog = DEFAULT_CATALOG):
        self._session = session
        self._catalog = catalog
        self._market_repo = MarketRepository(session)
        self._result_repo = ResultRepository(session)

    def declare(self, payload: ResultCreate) -> Result:
        parse_result_date(payload.result_date)
        self._market_repo.require_market(payload.market_id, payload.market_kind)
        digit, panna = self._validate_values(payload)

        record = self._result_repo.create_result(
            ResultInput(
                market_kind=payload.market_kind,
                market_id=payload.market_id,
                result_date=payload.result_date,
                session=payload.session,
                digit=digit,
                panna=panna,
            )
        )
        self._session.commit()
        logger.info(
            "Declared {} result for {} on {}{}: digit={} panna={}",
            payload.market_kind.value,
            payload.market_id,
            payload.result_date,
            f" ({payload.session.value})" if payload.session else "",
            digit,
            panna,
        )
        return Result.model_validate(record)

    def _validate_values(self, payload: ResultCreate) -> tuple[str, str | None]:
        kind = payload.market_kind
        if kind.uses_sessions and payload.session is None:
            raise InvalidValue("Session is required for main market results")
        if not kind.uses_sessions and payload.session is not None:
            raise InvalidValue(f"{kind.value} results take no session")

        if kind is MarketKind.GALIDISAWAR:
            if payload.panna is not None:
                raise InvalidValue("Gali disawar results declare a jodi, not a panna")
            return self._catalog.validate(BidKind.JODI, payload.digit), None

        if payload.panna is None:
            raise InvalidValue(f"{kind.value} results require a panna")
        if not self._catalog.classify(payload.panna).is_panna:
            raise InvalidValue(f"{payload.panna!r} is not a panna")

        expected = panna_digit(payload.panna)
        if payload.digit is not None and payload.digit != expected:
            raise InvalidValue(
                f"Digit {payload.digit} does not match panna {payload.panna} (expected {expected})"
            )
        return expected, payload.panna

    def delete(self, result_id: str) -> None:
        self._result_repo.delete_result(result_id)
        self._session.commit()
        logger.info("Deleted result {}", result_id)

    def groups(
        self,
        market_kind: MarketKind,
        *,
        result_date: str | None = None,
        market_id: str | None = None,
    ) -> list[ResultGroup]:
        """One entry per (date, market), newest date first, with session slots filled."""

        if result_date is not None:
            parse_result_date(result_date)
        records = self._result_repo.list_results(
            market_kind=market_kind, result_date=result_date, market_id=market_id
        )

        grouped: dict[tuple[str, str], ResultGroup] = {}
        for record in records:
            key = (record.result_date, record.market_id)
            group = grouped.get(key)
            if group is None:
                group = grouped[key] = ResultGroup(
                    result_date=record.result_date,
                    market_id=record.market_id,
                    game_name=record.market.name if record.market else None,
                )
            slot = _slot_for(record)
            setattr(group, slot, _session_result(record))
        return list(grouped.values())


def _slot_for(record: ResultRecord) -> str:
    if record.session == "open":
        return "open_session"
    if record.session == "close":
        return "close_session"
    return "result"


def _session_result(record: ResultRecord) -> SessionResult:
    return SessionResult(result_id=record.result_id, digit=record.digit, panna=record.panna)


__all__ = ["ResultService"]
