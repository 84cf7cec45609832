"""Error taxonomy shared by the domain core, repositories and the API."""

from __future__ import annotations

from typing import Any


class BettingError(Exception):
    """Base class for failures that are reported to callers as structured results."""

    kind = "betting_error"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict[str, Any]:
        return {"kind": self.kind, "message": self.message}


class InvalidValue(BettingError):
    """A bid value, result value or enum token matched no catalog."""

    kind = "invalid_value"


class MissingResult(BettingError):
    """Settlement was requested before a Result was declared for the key."""

    kind = "missing_result"


class MissingRate(BettingError):
    """The rate table has no multiplier for a bid kind that needs one."""

    kind = "missing_rate"

    def __init__(self, market_kind: str, bid_kind: str) -> None:
        super().__init__(f"No rate configured for {bid_kind} in {market_kind} markets")
        self.market_kind = market_kind
        self.bid_kind = bid_kind


class DuplicateResult(BettingError):
    kind = "duplicate_result"


class DuplicateMarket(BettingError):
    kind = "duplicate_market"


class NotFound(BettingError):
    kind = "not_found"


class InactiveMarket(BettingError):
    kind = "inactive_market"


__all__ = [
    "BettingError",
    "DuplicateMarket",
    "DuplicateResult",
    "InactiveMarket",
    "InvalidValue",
    "MissingRate",
    "MissingResult",
    "NotFound",
]
