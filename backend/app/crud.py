from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence
from datetime import datetime
from decimal import Decimal

from sqlalchemy.orm import Session

from app.domain import BidKind, GameSession, MarketKind, RateTable
from app.repositories import (
    BidLineInput,
    MarketDayInput,
    MarketRepository,
    ResultInput,
    ResultRepository,
    WagerRepository,
)

from .models import AppUser, Market, ResultRecord, WagerSlipRecord


def create_market(
    session: Session,
    *,
    kind: MarketKind,
    name: str,
    is_active: bool = False,
    days: Iterable[MarketDayInput] = (),
) -> Market:
    return MarketRepository(session).create_market(
        kind=kind, name=name, is_active=is_active, days=days
    )


def find_market(session: Session, kind: MarketKind, name: str) -> Market | None:
    return MarketRepository(session).find_by_name(kind, name)


def set_rates(
    session: Session, kind: MarketKind, rates: Mapping[BidKind, Decimal]
) -> RateTable:
    return MarketRepository(session).set_rates(kind, rates)


def create_user(
    session: Session,
    *,
    name: str,
    mobile_number: str | None = None,
    balance: Decimal = Decimal("0"),
) -> AppUser:
    return WagerRepository(session).create_user(
        name=name, mobile_number=mobile_number, balance=balance
    )


def record_slip(
    session: Session,
    *,
    user_id: str,
    market_kind: MarketKind,
    lines: Sequence[BidLineInput],
    created_at: datetime | None = None,
) -> WagerSlipRecord:
    return WagerRepository(session).record_slip(
        user_id=user_id, market_kind=market_kind, lines=lines, created_at=created_at
    )


def create_result(session: Session, payload: ResultInput) -> ResultRecord:
    return ResultRepository(session).create_result(payload)


def get_result(
    session: Session,
    market_id: str,
    result_date: str,
    game_session: GameSession | None = None,
) -> ResultRecord | None:
    return ResultRepository(session).get_result(market_id, result_date, game_session)
