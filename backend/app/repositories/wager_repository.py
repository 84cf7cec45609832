"""Wager slip storage and the join step that feeds bid projection."""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any

from sqlalchemy import select
from sqlalchemy.orm import Session, selectinload

from app.domain import (
    BidKind,
    BidLine,
    GameSession,
    MarketKind,
    MarketRef,
    UserRef,
    WagerSlip,
)
from app.errors import NotFound
from app.models import AppUser, BidLineRecord, WagerSlipRecord

from .inputs import BidLineInput


def join_line(record: BidLineRecord) -> BidLine:
    market = record.market
    market_ref = None
    if record.market_id:
        market_ref = MarketRef(
            market_id=record.market_id,
            name=market.name if market is not None else None,
            kind=MarketKind(market.kind) if market is not None else None,
        )
    return BidLine(
        bid_kind=BidKind(record.bid_kind),
        stake=Decimal(record.stake),
        digit=record.digit,
        panna=record.panna,
        session=GameSession.parse(record.session),
        market=market_ref,
        position=record.position,
    )


def join_slip(record: WagerSlipRecord) -> WagerSlip:
    """Resolve user and market references into the pre-joined slip value."""

    user = record.user
    return WagerSlip(
        slip_id=record.slip_id,
        user=UserRef(
            user_id=record.user_id,
            name=user.name if user is not None else None,
            mobile_number=user.mobile_number if user is not None else None,
        ),
        created_at=record.created_at,
        lines=tuple(join_line(line) for line in record.lines),
        market_kind=MarketKind(record.market_kind),
    )


def join_slips(records: Iterable[WagerSlipRecord]) -> list[WagerSlip]:
    return [join_slip(record) for record in records]


class WagerRepository:
    """Persist wager slips and read them back newest first."""

    def __init__(self, session: Session) -> None:
        self._session = session

    def get_user(self, user_id: str) -> AppUser | None:
        return self._session.get(AppUser, user_id)

    def require_user(self, user_id: str) -> AppUser:
        user = self.get_user(user_id)
        if user is None:
            raise NotFound(f"User {user_id} not found")
        return user

    def create_user(
        self,
        *,
        name: str,
        mobile_number: str | None = None,
        balance: Decimal = Decimal("0"),
    ) -> AppUser:
        user = AppUser(name=name, mobile_number=mobile_number, balance=balance)
        self._session.add(user)
        self._session.flush()
        return user

    def record_slip(
        self,
        *,
        user_id: str,
        market_kind: MarketKind,
        lines: Sequence[BidLineInput],
        created_at: datetime | None = None,
    ) -> WagerSlipRecord:
        if created_at is not None:
            # Timestamps are stored in UTC; naive values are taken to be UTC already.
            if created_at.tzinfo is None:
                created_at = created_at.replace(tzinfo=timezone.utc)
            created_at = created_at.astimezone(timezone.utc)

        slip = WagerSlipRecord(
            user_id=user_id,
            market_kind=market_kind.value,
            total_amount=sum((Decimal(line.stake) for line in lines), Decimal("0")),
        )
        if created_at is not None:
            slip.created_at = created_at
        slip.lines = [
            BidLineRecord(
                position=position,
                market_id=line.market_id,
                bid_kind=line.bid_kind.value,
                digit=line.digit,
                panna=line.panna,
                session=line.session.value if line.session else None,
                stake=Decimal(line.stake),
            )
            for position, line in enumerate(lines)
        ]
        self._session.add(slip)
        self._session.flush()
        return slip

    def list_slips(
        self,
        *,
        market_kind: MarketKind,
        user_id: str | None = None,
        market_id: str | None = None,
        created_from: datetime | None = None,
        created_to: datetime | None = None,
    ) -> list[WagerSlipRecord]:
        filters: list[Any] = [WagerSlipRecord.market_kind == market_kind.value]
        if user_id:
            filters.append(WagerSlipRecord.user_id == user_id)
        if market_id:
            filters.append(
                WagerSlipRecord.lines.any(BidLineRecord.market_id == market_id)
            )
        if created_from is not None:
            filters.append(WagerSlipRecord.created_at >= created_from)
        if created_to is not None:
            filters.append(WagerSlipRecord.created_at < created_to)

        query = (
            select(WagerSlipRecord)
            .options(
                selectinload(WagerSlipRecord.user),
                selectinload(WagerSlipRecord.lines).selectinload(BidLineRecord.market),
            )
            .where(*filters)
            .order_by(WagerSlipRecord.created_at.desc(), WagerSlipRecord.slip_id)
        )
        return list(self._session.execute(query).scalars().all())

    def slips_for(self, **filters: Any) -> list[WagerSlip]:
        return join_slips(self.list_slips(**filters))


__all__ = ["WagerRepository", "join_line", "join_slip", "join_slips"]
