"""Higher-level conveniences for markets and their rate tables."""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Mapping, Sequence

from loguru import logger
from sqlalchemy.orm import Session

from app.domain import BidKind, MarketKind, RateTable
from app.repositories import MarketDayInput, MarketRepository
from app.schemas import Market, MarketCreate


@dataclass(slots=True)
class MarketQuery:
    kind: MarketKind | None = None
    is_active: bool | None = None
    limit: int = 50
    offset: int = 0

    def to_repository_kwargs(self) -> dict[str, Any]:
        return {
            "kind": self.kind,
            "is_active": self.is_active,
            "limit": self.limit,
            "offset": self.offset,
        }


@dataclass(slots=True)
class MarketQueryResult:
    total: int
    markets: Sequence[Market]


class MarketService:
    """Facade over market schedules and rate tables used by the API and jobs."""

    def __init__(self, session: Session):
        self._session = session
        self._market_repo = MarketRepository(session)

    def list_markets(self, query: MarketQuery) -> MarketQueryResult:
        raw_markets, total = self._market_repo.list_markets(**query.to_repository_kwargs())
        markets = [Market.model_validate(record) for record in raw_markets]
        return MarketQueryResult(total=total, markets=markets)

    def get_market(self, market_id: str) -> Market | None:
        market = self._market_repo.get_market(market_id)
        if not market:
            return None
        return Market.model_validate(market)

    def create_market(self, payload: MarketCreate) -> Market:
        record = self._market_repo.create_market(
            kind=payload.kind,
            name=payload.name,
            is_active=payload.is_active,
            days=[
                MarketDayInput(
                    day=day.day,
                    open_time=day.open_time,
                    close_time=day.close_time,
                    market_status=day.market_status,
                )
                for day in payload.days
            ],
        )
        self._session.commit()
        logger.info("Created {} market {} ({})", record.kind, record.name, record.market_id)
        return Market.model_validate(record)

    def set_active(self, market_id: str, is_active: bool) -> Market:
        record = self._market_repo.set_active(market_id, is_active)
        self._session.commit()
        logger.info(
            "Market {} is now {}", market_id, "active" if is_active else "inactive"
        )
        return Market.model_validate(record)

    def get_rates(self, kind: MarketKind) -> RateTable:
        return self._market_repo.get_rate_table(kind)

    def set_rates(self, kind: MarketKind, rates: Mapping[BidKind, Decimal]) -> RateTable:
        table = self._market_repo.set_rates(kind, rates)
        self._session.commit()
        logger.info(
            "Updated {} rates: {}",
            kind.value,
            ", ".join(f"{bid_kind.value}={rate}" for bid_kind, rate in rates.items()),
        )
        return table
