"""Repository abstractions for database interactions."""

from .inputs import BidLineInput, MarketDayInput, ResultInput
from .ledger_repository import LedgerRepository
from .market_repository import MarketRepository
from .result_repository import ResultRepository, to_declared
from .wager_repository import WagerRepository, join_slip, join_slips
from .winner_repository import WinnerRepository

__all__ = [
    "BidLineInput",
    "LedgerRepository",
    "MarketDayInput",
    "MarketRepository",
    "ResultInput",
    "ResultRepository",
    "WagerRepository",
    "WinnerRepository",
    "join_slip",
    "join_slips",
    "to_declared",
]
