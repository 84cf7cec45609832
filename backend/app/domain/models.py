"""Typed domain representations used by projection, settlement and the API."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from enum import Enum
from types import MappingProxyType
from typing import Any, Mapping

from app.errors import InvalidValue, MissingRate


class MarketKind(str, Enum):
    MAIN = "main"
    STARLINE = "starline"
    GALIDISAWAR = "galidisawar"

    @property
    def uses_sessions(self) -> bool:
        return self is MarketKind.MAIN

    @classmethod
    def parse(cls, value: Any) -> "MarketKind":
        if isinstance(value, cls):
            return value
        token = str(value).strip().lower().replace("_", "").replace("-", "")
        for member in cls:
            if member.value == token:
                return member
        if token == "mainmarket":
            return cls.MAIN
        raise InvalidValue(f"Unknown market kind: {value!r}")


class GameSession(str, Enum):
    """Open/close half of a main market day."""

    OPEN = "open"
    CLOSE = "close"

    @classmethod
    def parse(cls, value: Any) -> "GameSession | None":
        if value is None or value == "":
            return None
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError as exc:
            raise InvalidValue(f"Session must be either open or close, got {value!r}") from exc


class BidKind(str, Enum):
    SINGLE_DIGIT = "single_digit"
    JODI = "jodi"
    SINGLE_PANNA = "single_panna"
    DOUBLE_PANNA = "double_panna"
    TRIPLE_PANNA = "triple_panna"
    # Gali-disawar positional bets on one half of the declared jodi.
    LEFT_DIGIT = "left_digit"
    RIGHT_DIGIT = "right_digit"
    # Main-market panna bets; a full sangam is only decided with the close result.
    HALF_SANGAM = "half_sangam"
    FULL_SANGAM = "full_sangam"

    @property
    def is_panna(self) -> bool:
        return self in _PANNA_KINDS

    @property
    def is_sangam(self) -> bool:
        return self in (BidKind.HALF_SANGAM, BidKind.FULL_SANGAM)

    @property
    def value_field(self) -> str:
        """Name of the bid line attribute that carries the wagered value."""

        return "panna" if self.is_panna or self.is_sangam else "digit"

    @classmethod
    def parse(cls, value: Any) -> "BidKind":
        if isinstance(value, cls):
            return value
        token = str(value).strip().lower().replace("-", "_")
        token = _BID_KIND_ALIASES.get(token, token)
        try:
            return cls(token)
        except ValueError as exc:
            raise InvalidValue(f"Unknown bid kind: {value!r}") from exc


_PANNA_KINDS = frozenset({BidKind.SINGLE_PANNA, BidKind.DOUBLE_PANNA, BidKind.TRIPLE_PANNA})

_BID_KIND_ALIASES = {
    "jodi_digit": "jodi",
}

MARKET_BID_KINDS: Mapping[MarketKind, tuple[BidKind, ...]] = MappingProxyType(
    {
        MarketKind.MAIN: (
            BidKind.SINGLE_DIGIT,
            BidKind.JODI,
            BidKind.SINGLE_PANNA,
            BidKind.DOUBLE_PANNA,
            BidKind.TRIPLE_PANNA,
            BidKind.HALF_SANGAM,
            BidKind.FULL_SANGAM,
        ),
        MarketKind.STARLINE: (
            BidKind.SINGLE_DIGIT,
            BidKind.SINGLE_PANNA,
            BidKind.DOUBLE_PANNA,
            BidKind.TRIPLE_PANNA,
        ),
        MarketKind.GALIDISAWAR: (
            BidKind.LEFT_DIGIT,
            BidKind.RIGHT_DIGIT,
            BidKind.JODI,
        ),
    }
)


@dataclass(slots=True, frozen=True)
class UserRef:
    """Display fields of the user owning a slip."""

    user_id: str
    name: str | None = None
    mobile_number: str | None = None


@dataclass(slots=True, frozen=True)
class MarketRef:
    market_id: str
    name: str | None = None
    kind: MarketKind | None = None


@dataclass(slots=True, frozen=True)
class BidLine:
    bid_kind: BidKind
    stake: Decimal
    digit: str | None = None
    panna: str | None = None
    session: GameSession | None = None
    market: MarketRef | None = None
    position: int = 0

    @property
    def value(self) -> str | None:
        return getattr(self, self.bid_kind.value_field)


@dataclass(slots=True, frozen=True)
class WagerSlip:
    """A user's bid placement, already joined with user and market display fields."""

    slip_id: str
    user: UserRef
    created_at: datetime
    lines: tuple[BidLine, ...] = ()
    market_kind: MarketKind = MarketKind.MAIN

    @property
    def total_amount(self) -> Decimal:
        return sum((line.stake for line in self.lines), Decimal("0"))


@dataclass(slots=True, frozen=True)
class FlattenedBidRow:
    """One bid line with its slip, user and market context copied alongside."""

    slip_id: str
    position: int
    user_id: str
    name: str | None
    mobile_number: str | None
    bid_kind: BidKind
    digit: str | None
    panna: str | None
    stake: Decimal
    session: GameSession | None
    game_id: str | None
    game_name: str | None
    created_at: datetime

    @property
    def value(self) -> str | None:
        return getattr(self, self.bid_kind.value_field)


@dataclass(slots=True, frozen=True)
class DeclaredResult:
    """Declared outcome for one (market, date, session) key."""

    market_id: str
    result_date: str
    session: GameSession | None
    digit: str | None = None
    panna: str | None = None
    jodi: str | None = None
    result_id: str | None = None
    market_name: str | None = None

    @property
    def key(self) -> tuple[str, str, GameSession | None]:
        return (self.market_id, self.result_date, self.session)

    @property
    def declared_jodi(self) -> str | None:
        if self.jodi:
            return self.jodi
        if self.digit and len(self.digit) == 2:
            return self.digit
        return None


@dataclass(slots=True, frozen=True)
class RateTable:
    """Immutable payout multipliers per bid kind for one market kind."""

    market_kind: MarketKind
    rates: Mapping[BidKind, Decimal] = field(default_factory=dict)

    def __post_init__(self) -> None:
        frozen = MappingProxyType({BidKind.parse(k): Decimal(v) for k, v in self.rates.items()})
        object.__setattr__(self, "rates", frozen)

    def rate_for(self, bid_kind: BidKind) -> Decimal:
        try:
            return self.rates[bid_kind]
        except KeyError:
            raise MissingRate(self.market_kind.value, bid_kind.value) from None


@dataclass(slots=True, frozen=True)
class WinnerRecord:
    market_id: str
    result_date: str
    session: GameSession | None
    slip_id: str
    position: int
    user_id: str
    user_name: str | None
    game_name: str | None
    bid_kind: BidKind
    digit: str | None
    panna: str | None
    stake: Decimal
    rate: Decimal
    payout: Decimal
    bid_created_at: datetime
    transaction_id: str | None = None

    @property
    def line_key(self) -> tuple[str, int]:
        return (self.slip_id, self.position)


@dataclass(slots=True, frozen=True)
class SkippedRow:
    row: FlattenedBidRow
    reason: str


@dataclass(slots=True)
class SettlementReport:
    winners: list[WinnerRecord] = field(default_factory=list)
    skipped: list[SkippedRow] = field(default_factory=list)
    evaluated_rows: int = 0

    @property
    def total_stake(self) -> Decimal:
        return sum((winner.stake for winner in self.winners), Decimal("0"))

    @property
    def total_payout(self) -> Decimal:
        return sum((winner.payout for winner in self.winners), Decimal("0"))
