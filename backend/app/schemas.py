from datetime import datetime
from decimal import Decimal
from typing import Any

from pydantic import BaseModel, Field, field_validator

from app.domain import BidKind, GameSession, MarketKind


def _as_float(value: Any) -> float | None:
    if value is None:
        return None
    return float(value)


class CatalogValues(BaseModel):
    bid_kind: BidKind
    values: list[str]


class PannaCatalog(BaseModel):
    single_panna: list[str]
    double_panna: list[str]
    triple_panna: list[str]


class Classification(BaseModel):
    value: str
    bid_kind: BidKind


class MarketDay(BaseModel):
    day: str
    open_time: str = Field(pattern=r"^\d{2}:\d{2}$")
    close_time: str | None = Field(default=None, pattern=r"^\d{2}:\d{2}$")
    market_status: bool = False

    model_config = {"from_attributes": True}


class Market(BaseModel):
    market_id: str
    kind: MarketKind
    name: str
    is_active: bool
    days: list[MarketDay] = Field(default_factory=list)
    created_at: datetime | None = None
    updated_at: datetime | None = None

    model_config = {"from_attributes": True}


class MarketList(BaseModel):
    total: int
    items: list[Market]


class MarketCreate(BaseModel):
    kind: MarketKind
    name: str = Field(min_length=1)
    is_active: bool = False
    days: list[MarketDay] = Field(default_factory=list)


class MarketStatusUpdate(BaseModel):
    is_active: bool


class RateTable(BaseModel):
    market_kind: MarketKind
    rates: dict[BidKind, float]

    @field_validator("rates", mode="before")
    @classmethod
    def _coerce_rates(cls, value: Any) -> Any:
        if isinstance(value, dict):
            return {key: _as_float(rate) for key, rate in value.items()}
        return value


class RateUpdate(BaseModel):
    rates: dict[BidKind, Decimal]

    @field_validator("rates")
    @classmethod
    def _non_negative(cls, value: dict[BidKind, Decimal]) -> dict[BidKind, Decimal]:
        for bid_kind, rate in value.items():
            if rate < 0:
                raise ValueError(f"rate for {bid_kind.value} must be non-negative")
        return value


class BidLineCreate(BaseModel):
    bid_kind: BidKind
    stake: Decimal = Field(ge=0)
    market_id: str
    digit: str | None = None
    panna: str | None = None
    session: GameSession | None = None

    @field_validator("bid_kind", mode="before")
    @classmethod
    def _parse_bid_kind(cls, value: Any) -> Any:
        return BidKind.parse(value) if isinstance(value, str) else value

    @field_validator("session", mode="before")
    @classmethod
    def _parse_session(cls, value: Any) -> Any:
        if isinstance(value, str):
            return value.strip().lower() or None
        return value


class SlipCreate(BaseModel):
    market_kind: MarketKind
    user_id: str
    lines: list[BidLineCreate] = Field(min_length=1)
    created_at: datetime | None = None


class SlipCreated(BaseModel):
    slip_id: str
    total_amount: float
    line_count: int

    @field_validator("total_amount", mode="before")
    @classmethod
    def _coerce_total(cls, value: Any) -> float | None:
        return _as_float(value)


class BidRow(BaseModel):
    slip_id: str
    position: int
    user_id: str
    name: str | None = None
    mobile_number: str | None = None
    bid_kind: BidKind
    digit: str | None = None
    panna: str | None = None
    stake: float
    session: GameSession | None = None
    game_id: str | None = None
    game_name: str | None = None
    created_at: datetime

    model_config = {"from_attributes": True}

    @field_validator("stake", mode="before")
    @classmethod
    def _coerce_stake(cls, value: Any) -> float | None:
        return _as_float(value)


class BidHistory(BaseModel):
    total: int
    items: list[BidRow]


class ResultCreate(BaseModel):
    market_kind: MarketKind
    market_id: str
    result_date: str = Field(pattern=r"^\d{2}-\d{2}-\d{4}$", examples=["05-01-2024"])
    session: GameSession | None = None
    digit: str | None = Field(default=None, pattern=r"^\d{1,2}$")
    panna: str | None = Field(default=None, pattern=r"^\d{3}$")

    @field_validator("session", mode="before")
    @classmethod
    def _parse_session(cls, value: Any) -> Any:
        if isinstance(value, str):
            return value.strip().lower() or None
        return value


class Result(BaseModel):
    result_id: str
    market_kind: MarketKind
    market_id: str
    result_date: str
    session: GameSession | None = None
    digit: str | None = None
    panna: str | None = None
    created_at: datetime

    model_config = {"from_attributes": True}


class SessionResult(BaseModel):
    result_id: str
    digit: str | None = None
    panna: str | None = None


class ResultGroup(BaseModel):
    result_date: str
    market_id: str
    game_name: str | None = None
    open_session: SessionResult | None = None
    close_session: SessionResult | None = None
    result: SessionResult | None = None


class SettlementRequest(BaseModel):
    market_kind: MarketKind
    market_id: str
    result_date: str = Field(pattern=r"^\d{2}-\d{2}-\d{4}$")
    session: GameSession | None = None

    @field_validator("session", mode="before")
    @classmethod
    def _parse_session(cls, value: Any) -> Any:
        if isinstance(value, str):
            return value.strip().lower() or None
        return value


class _Money(BaseModel):
    @field_validator("stake", "rate", "payout", mode="before", check_fields=False)
    @classmethod
    def _coerce_money(cls, value: Any) -> float | None:
        return _as_float(value)


class Winner(_Money):
    market_id: str
    result_date: str
    session: GameSession | None = None
    slip_id: str
    position: int
    user_id: str
    user_name: str | None = None
    game_name: str | None = None
    bid_kind: BidKind
    digit: str | None = None
    panna: str | None = None
    stake: float
    rate: float
    payout: float
    transaction_id: str | None = None

    model_config = {"from_attributes": True}


class SkippedLine(BaseModel):
    slip_id: str
    position: int
    bid_kind: BidKind
    reason: str


class Settlement(BaseModel):
    market_id: str
    result_date: str
    session: GameSession | None = None
    dry_run: bool
    evaluated_rows: int
    winners: list[Winner]
    skipped: list[SkippedLine] = Field(default_factory=list)
    total_stake: float
    total_payout: float
    persisted: int = 0
    already_settled: int = 0


class WinnerHistoryItem(_Money):
    winner_id: str
    market_kind: MarketKind
    market_id: str
    result_date: str
    session: GameSession | None = None
    user_id: str
    user_name: str | None = None
    game_name: str | None = None
    bid_kind: BidKind
    digit: str | None = None
    panna: str | None = None
    stake: float
    rate: float
    payout: float
    transaction_id: str | None = None
    created_at: datetime

    model_config = {"from_attributes": True}


class WinnerHistory(BaseModel):
    total: int
    items: list[WinnerHistoryItem]


class SaleLine(BaseModel):
    bid_kind: BidKind
    value: str
    total_stake: float
    bid_count: int

    @field_validator("total_stake", mode="before")
    @classmethod
    def _coerce_total(cls, value: Any) -> float | None:
        return _as_float(value)


class SaleReport(BaseModel):
    market_kind: MarketKind
    total_stake: float
    items: list[SaleLine]

    @field_validator("total_stake", mode="before")
    @classmethod
    def _coerce_total(cls, value: Any) -> float | None:
        return _as_float(value)
