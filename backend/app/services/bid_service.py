"""Bid history, sale reports and slip recording on top of projected rows."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import tzinfo
from decimal import Decimal
from typing import Any, Sequence

from loguru import logger
from sqlalchemy.orm import Session

from app.core.config import get_settings
from app.domain import (
    DEFAULT_CATALOG,
    MARKET_BID_KINDS,
    BidKind,
    Catalog,
    FlattenedBidRow,
    GameSession,
    MarketKind,
    WagerSlip,
    project,
)
from app.domain.dates import day_bounds, local_date, parse_result_date
from app.errors import InactiveMarket, InvalidValue, NotFound
from app.repositories import BidLineInput, MarketRepository, WagerRepository, join_slip
from app.schemas import BidLineCreate, SlipCreate


@dataclass(slots=True)
class BidQuery:
    market_kind: MarketKind = MarketKind.MAIN
    user_id: str | None = None
    market_id: str | None = None
    bid_date: str | None = None
    session: GameSession | None = None
    bid_kind: BidKind | None = None
    limit: int = 50
    offset: int = 0


@dataclass(slots=True)
class BidQueryResult:
    total: int
    rows: Sequence[FlattenedBidRow]


@dataclass(slots=True)
class SaleLine:
    bid_kind: BidKind
    value: str
    total_stake: Decimal = Decimal("0")
    bid_count: int = 0


@dataclass(slots=True)
class SaleReportResult:
    market_kind: MarketKind
    items: list[SaleLine] = field(default_factory=list)

    @property
    def total_stake(self) -> Decimal:
        return sum((item.total_stake for item in self.items), Decimal("0"))


class BidService:
    def __init__(
        self,
        session: Session,
        *,
        catalog: Catalog = DEFAULT_CATALOG,
        tz: tzinfo | None = None,
    ):
        self._session = session
        self._catalog = catalog
        self._tz = tz or get_settings().tzinfo
        self._wager_repo = WagerRepository(session)
        self._market_repo = MarketRepository(session)

    # ------------------------------------------------------------------
    # Reads

    def history(self, query: BidQuery) -> BidQueryResult:
        rows = self._rows(query)
        page = rows[query.offset : query.offset + query.limit]
        return BidQueryResult(total=len(rows), rows=page)

    def sales_report(self, query: BidQuery) -> SaleReportResult:
        """Total stake per (bid kind, value), ignoring zero stakes."""

        buckets: dict[tuple[BidKind, str], SaleLine] = {}
        for row in self._rows(query):
            if row.stake <= 0 or row.value is None:
                continue
            key = (row.bid_kind, row.value)
            line = buckets.get(key)
            if line is None:
                line = buckets[key] = SaleLine(bid_kind=row.bid_kind, value=row.value)
            line.total_stake += row.stake
            line.bid_count += 1

        items = sorted(buckets.values(), key=lambda item: (item.value, item.bid_kind.value))
        return SaleReportResult(market_kind=query.market_kind, items=items)

    def _rows(self, query: BidQuery) -> list[FlattenedBidRow]:
        filters: dict[str, Any] = {
            "market_kind": query.market_kind,
            "user_id": query.user_id,
            "market_id": query.market_id,
        }
        bid_date = None
        if query.bid_date:
            bid_date = parse_result_date(query.bid_date)
            filters["created_from"], filters["created_to"] = day_bounds(bid_date, self._tz)

        rows = project(self._wager_repo.slips_for(**filters))
        return [row for row in rows if self._row_matches(row, query, bid_date)]

    def _row_matches(self, row: FlattenedBidRow, query: BidQuery, bid_date: Any) -> bool:
        # A slip may mix markets, so line level filters are applied after projection.
        if query.market_id and row.game_id != query.market_id:
            return False
        if bid_date is not None and local_date(row.created_at, self._tz) != bid_date:
            return False
        if query.session is not None and row.session != query.session:
            return False
        if query.bid_kind is not None and row.bid_kind != query.bid_kind:
            return False
        return True

    # ------------------------------------------------------------------
    # Writes

    def record_slip(self, payload: SlipCreate) -> WagerSlip:
        self._wager_repo.require_user(payload.user_id)
        markets = self._market_repo.get_markets(line.market_id for line in payload.lines)
        lines = [
            self._validate_line(payload.market_kind, line, markets, position)
            for position, line in enumerate(payload.lines)
        ]

        record = self._wager_repo.record_slip(
            user_id=payload.user_id,
            market_kind=payload.market_kind,
            lines=lines,
            created_at=payload.created_at,
        )
        self._session.commit()
        slip = join_slip(record)
        logger.info(
            "Recorded {} slip {} for user {} with {} lines totalling {}",
            payload.market_kind.value,
            slip.slip_id,
            payload.user_id,
            len(slip.lines),
            slip.total_amount,
        )
        return slip

    def _validate_line(
        self,
        market_kind: MarketKind,
        line: BidLineCreate,
        markets: dict[str, Any],
        position: int,
    ) -> BidLineInput:
        market = markets.get(line.market_id)
        if market is None:
            raise NotFound(f"Market {line.market_id} not found")
        if market.kind != market_kind.value:
            raise InvalidValue(
                f"Line {position}: market {market.name} is not a {market_kind.value} market"
            )
        if not market.is_active:
            raise InactiveMarket(f"Market {market.name} is not accepting bids")
        if line.bid_kind not in MARKET_BID_KINDS[market_kind]:
            raise InvalidValue(
                f"Line {position}: {line.bid_kind.value} bids are not offered in "
                f"{market_kind.value} markets"
            )

        value = getattr(line, line.bid_kind.value_field)
        self._catalog.validate(line.bid_kind, value)
        if line.bid_kind.is_sangam and line.digit is not None:
            self._catalog.validate(BidKind.SINGLE_DIGIT, line.digit)

        session = line.session
        if not market_kind.uses_sessions:
            if session is not None:
                raise InvalidValue(f"Line {position}: {market_kind.value} bids take no session")
        elif line.bid_kind in (BidKind.JODI, BidKind.FULL_SANGAM):
            session = None
        elif session is None:
            raise InvalidValue(f"Line {position}: session is required for main market bids")

        return BidLineInput(
            bid_kind=line.bid_kind,
            stake=line.stake,
            market_id=line.market_id,
            digit=line.digit,
            panna=line.panna,
            session=session,
        )


__all__ = [
    "BidQuery",
    "BidQueryResult",
    "BidService",
    "SaleLine",
    "SaleReportResult",
]
