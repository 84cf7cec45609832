"""Market and rate table data access helpers."""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from decimal import Decimal
from typing import Any

from sqlalchemy import func, select
from sqlalchemy.orm import Session, selectinload

from app.domain import BidKind, MarketKind, RateTable
from app.errors import DuplicateMarket, NotFound
from app.models import Market, MarketDay, RateRecord

from .inputs import MarketDayInput


class MarketRepository:
    """Encapsulate market schedules, activation flags and rate tables."""

    def __init__(self, session: Session) -> None:
        self._session = session

    # ------------------------------------------------------------------
    # Markets

    def create_market(
        self,
        *,
        kind: MarketKind,
        name: str,
        is_active: bool = False,
        days: Iterable[MarketDayInput] = (),
    ) -> Market:
        name = name.strip()
        if self.find_by_name(kind, name) is not None:
            raise DuplicateMarket(f"A {kind.value} market named {name!r} already exists")

        market = Market(kind=kind.value, name=name, is_active=is_active)
        market.days = [
            MarketDay(
                day=entry.day.lower(),
                open_time=entry.open_time,
                close_time=entry.close_time,
                market_status=entry.market_status,
            )
            for entry in days
        ]
        self._session.add(market)
        self._session.flush()
        return market

    def find_by_name(self, kind: MarketKind, name: str) -> Market | None:
        query = select(Market).where(Market.kind == kind.value, Market.name == name)
        return self._session.execute(query).scalars().first()

    def get_market(self, market_id: str) -> Market | None:
        query = (
            select(Market)
            .options(selectinload(Market.days))
            .where(Market.market_id == market_id)
        )
        return self._session.execute(query).scalars().first()

    def require_market(self, market_id: str, kind: MarketKind | None = None) -> Market:
        market = self.get_market(market_id)
        if market is None or (kind is not None and market.kind != kind.value):
            label = f"{kind.value} market" if kind else "Market"
            raise NotFound(f"{label} {market_id} not found")
        return market

    def get_markets(self, market_ids: Iterable[str]) -> dict[str, Market]:
        ids = {market_id for market_id in market_ids if market_id}
        if not ids:
            return {}
        query = select(Market).where(Market.market_id.in_(ids))
        return {market.market_id: market for market in self._session.execute(query).scalars()}

    def list_markets(
        self,
        *,
        kind: MarketKind | None = None,
        is_active: bool | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> tuple[list[Market], int]:
        filters: list[Any] = []
        if kind is not None:
            filters.append(Market.kind == kind.value)
        if is_active is not None:
            filters.append(Market.is_active.is_(is_active))

        query = (
            select(Market)
            .options(selectinload(Market.days))
            .where(*filters)
            .order_by(Market.kind, Market.name)
            .limit(limit)
            .offset(offset)
        )
        total_query = select(func.count(Market.market_id)).where(*filters)

        markets = list(self._session.execute(query).scalars().all())
        total = self._session.execute(total_query).scalar_one()
        return markets, total

    def set_active(self, market_id: str, is_active: bool) -> Market:
        market = self.require_market(market_id)
        market.is_active = is_active
        self._session.flush()
        return market

    # ------------------------------------------------------------------
    # Rates

    def get_rate_table(self, kind: MarketKind) -> RateTable:
        query = select(RateRecord).where(RateRecord.market_kind == kind.value)
        records = self._session.execute(query).scalars().all()
        return RateTable(
            market_kind=kind,
            rates={BidKind(record.bid_kind): Decimal(record.rate) for record in records},
        )

    def set_rates(self, kind: MarketKind, rates: Mapping[BidKind, Decimal]) -> RateTable:
        query = select(RateRecord).where(RateRecord.market_kind == kind.value)
        existing = {
            record.bid_kind: record for record in self._session.execute(query).scalars().all()
        }
        for bid_kind, rate in rates.items():
            record = existing.get(bid_kind.value)
            if record is None:
                record = RateRecord(market_kind=kind.value, bid_kind=bid_kind.value)
                self._session.add(record)
            record.rate = Decimal(rate)
        self._session.flush()
        return self.get_rate_table(kind)


__all__ = ["MarketRepository"]
