"""Input payloads accepted by the repository write paths."""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal

from app.domain import BidKind, GameSession, MarketKind


@dataclass(slots=True)
class MarketDayInput:
    day: str
    open_time: str
    close_time: str | None = None
    market_status: bool = False


@dataclass(slots=True)
class BidLineInput:
    bid_kind: BidKind
    stake: Decimal
    market_id: str
    digit: str | None = None
    panna: str | None = None
    session: GameSession | None = None


@dataclass(slots=True)
class ResultInput:
    market_kind: MarketKind
    market_id: str
    result_date: str
    session: GameSession | None
    digit: str | None
    panna: str | None


__all__ = ["BidLineInput", "MarketDayInput", "ResultInput"]
