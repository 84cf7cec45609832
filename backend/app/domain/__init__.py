"""Domain core: catalogs, bid projection and settlement."""

from .catalog import DEFAULT_CATALOG, Catalog, classify, panna_digit
from .models import (
    MARKET_BID_KINDS,
    BidKind,
    BidLine,
    DeclaredResult,
    FlattenedBidRow,
    GameSession,
    MarketKind,
    MarketRef,
    RateTable,
    SettlementReport,
    SkippedRow,
    UserRef,
    WagerSlip,
    WinnerRecord,
)
from .projection import project
from .settlement import settle, settle_report

__all__ = [
    "BidKind",
    "BidLine",
    "Catalog",
    "DEFAULT_CATALOG",
    "DeclaredResult",
    "FlattenedBidRow",
    "GameSession",
    "MARKET_BID_KINDS",
    "MarketKind",
    "MarketRef",
    "RateTable",
    "SettlementReport",
    "SkippedRow",
    "UserRef",
    "WagerSlip",
    "WinnerRecord",
    "classify",
    "panna_digit",
    "project",
    "settle",
    "settle_report",
]
