from __future__ import annotations

import uuid
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .db import Base


class TransactionType(str, Enum):
    CREDIT = "credit"
    DEBIT = "debit"


class TransactionStatus(str, Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def new_id() -> str:
    return uuid.uuid4().hex


def session_key(session: str | None) -> str:
    """Non-null stand-in for an optional session inside unique constraints."""

    return session or ""


class Market(Base):
    __tablename__ = "markets"

    market_id: Mapped[str] = mapped_column(String, primary_key=True, default=new_id)
    kind: Mapped[str] = mapped_column(String(20), nullable=False, index=True)
    name: Mapped[str] = mapped_column(String, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow
    )

    days: Mapped[list["MarketDay"]] = relationship(
        "MarketDay",
        back_populates="market",
        cascade="all, delete-orphan",
        order_by="MarketDay.id",
    )

    __table_args__ = (UniqueConstraint("kind", "name", name="uq_market_kind_name"),)

    def is_open_on(self, day: str) -> bool:
        """True when the weekly schedule marks ``day`` (e.g. ``"monday"``) open."""

        day = day.lower()
        return any(entry.day == day and entry.market_status for entry in self.days)


class MarketDay(Base):
    __tablename__ = "market_days"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    market_id: Mapped[str] = mapped_column(String, ForeignKey("markets.market_id"), nullable=False)
    day: Mapped[str] = mapped_column(String(10), nullable=False)
    open_time: Mapped[str] = mapped_column(String(10), nullable=False)
    close_time: Mapped[str | None] = mapped_column(String(10), nullable=True)
    market_status: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    market: Mapped[Market] = relationship("Market", back_populates="days")


class AppUser(Base):
    __tablename__ = "app_users"

    user_id: Mapped[str] = mapped_column(String, primary_key=True, default=new_id)
    name: Mapped[str] = mapped_column(String, nullable=False)
    mobile_number: Mapped[str | None] = mapped_column(String(20), nullable=True, unique=True)
    balance: Mapped[Decimal] = mapped_column(Numeric(18, 2), nullable=False, default=Decimal("0"))
    is_blocked: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)


class WagerSlipRecord(Base):
    __tablename__ = "wager_slips"

    slip_id: Mapped[str] = mapped_column(String, primary_key=True, default=new_id)
    market_kind: Mapped[str] = mapped_column(String(20), nullable=False)
    user_id: Mapped[str] = mapped_column(String, ForeignKey("app_users.user_id"), nullable=False)
    total_amount: Mapped[Decimal] = mapped_column(Numeric(18, 2), nullable=False, default=Decimal("0"))
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)

    user: Mapped[AppUser] = relationship("AppUser")
    lines: Mapped[list["BidLineRecord"]] = relationship(
        "BidLineRecord",
        back_populates="slip",
        cascade="all, delete-orphan",
        order_by="BidLineRecord.position",
    )

    __table_args__ = (
        CheckConstraint("total_amount >= 0", name="chk_slip_total_nonneg"),
        Index("ix_wager_slips_user_created", "user_id", "created_at"),
        Index("ix_wager_slips_kind_created", "market_kind", "created_at"),
    )


class BidLineRecord(Base):
    __tablename__ = "bid_lines"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    slip_id: Mapped[str] = mapped_column(String, ForeignKey("wager_slips.slip_id"), nullable=False)
    position: Mapped[int] = mapped_column(Integer, nullable=False)
    market_id: Mapped[str | None] = mapped_column(String, ForeignKey("markets.market_id"), nullable=True)
    bid_kind: Mapped[str] = mapped_column(String(20), nullable=False)
    digit: Mapped[str | None] = mapped_column(String(2), nullable=True)
    panna: Mapped[str | None] = mapped_column(String(3), nullable=True)
    session: Mapped[str | None] = mapped_column(String(5), nullable=True)
    stake: Mapped[Decimal] = mapped_column(Numeric(18, 2), nullable=False)

    slip: Mapped[WagerSlipRecord] = relationship("WagerSlipRecord", back_populates="lines")
    market: Mapped[Market | None] = relationship("Market")

    __table_args__ = (
        UniqueConstraint("slip_id", "position", name="uq_bid_line_position"),
        CheckConstraint("stake >= 0", name="chk_bid_line_stake_nonneg"),
        Index("ix_bid_lines_market_kind", "market_id", "bid_kind", "session"),
    )


class ResultRecord(Base):
    __tablename__ = "results"

    result_id: Mapped[str] = mapped_column(String, primary_key=True, default=new_id)
    market_kind: Mapped[str] = mapped_column(String(20), nullable=False)
    market_id: Mapped[str] = mapped_column(String, ForeignKey("markets.market_id"), nullable=False)
    result_date: Mapped[str] = mapped_column(String(10), nullable=False)
    session: Mapped[str | None] = mapped_column(String(5), nullable=True)
    session_key: Mapped[str] = mapped_column(String(5), nullable=False, default="")
    digit: Mapped[str | None] = mapped_column(String(2), nullable=True)
    panna: Mapped[str | None] = mapped_column(String(3), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)

    market: Mapped[Market] = relationship("Market")

    __table_args__ = (
        UniqueConstraint("market_id", "result_date", "session_key", name="uq_result_key"),
        Index("ix_results_kind_date", "market_kind", "result_date"),
    )


class RateRecord(Base):
    __tablename__ = "rates"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    market_kind: Mapped[str] = mapped_column(String(20), nullable=False)
    bid_kind: Mapped[str] = mapped_column(String(20), nullable=False)
    rate: Mapped[Decimal] = mapped_column(Numeric(12, 4), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow
    )

    __table_args__ = (
        UniqueConstraint("market_kind", "bid_kind", name="uq_rate_kind"),
        CheckConstraint("rate >= 0", name="chk_rate_nonneg"),
    )


class LedgerTransaction(Base):
    __tablename__ = "transactions"

    transaction_id: Mapped[str] = mapped_column(String, primary_key=True, default=new_id)
    user_id: Mapped[str] = mapped_column(String, ForeignKey("app_users.user_id"), nullable=False)
    amount: Mapped[Decimal] = mapped_column(Numeric(18, 2), nullable=False)
    type: Mapped[str] = mapped_column(String(10), nullable=False)
    status: Mapped[str] = mapped_column(
        String(10), nullable=False, default=TransactionStatus.COMPLETED.value
    )
    description: Mapped[str | None] = mapped_column(String, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)

    user: Mapped[AppUser] = relationship("AppUser")


class WinnerEntry(Base):
    __tablename__ = "winner_records"

    winner_id: Mapped[str] = mapped_column(String, primary_key=True, default=new_id)
    market_kind: Mapped[str] = mapped_column(String(20), nullable=False)
    market_id: Mapped[str] = mapped_column(String, ForeignKey("markets.market_id"), nullable=False)
    result_date: Mapped[str] = mapped_column(String(10), nullable=False)
    session: Mapped[str | None] = mapped_column(String(5), nullable=True)
    session_key: Mapped[str] = mapped_column(String(5), nullable=False, default="")
    slip_id: Mapped[str] = mapped_column(String, ForeignKey("wager_slips.slip_id"), nullable=False)
    position: Mapped[int] = mapped_column(Integer, nullable=False)
    user_id: Mapped[str] = mapped_column(String, ForeignKey("app_users.user_id"), nullable=False)
    user_name: Mapped[str | None] = mapped_column(String, nullable=True)
    game_name: Mapped[str | None] = mapped_column(String, nullable=True)
    bid_kind: Mapped[str] = mapped_column(String(20), nullable=False)
    digit: Mapped[str | None] = mapped_column(String(2), nullable=True)
    panna: Mapped[str | None] = mapped_column(String(3), nullable=True)
    stake: Mapped[Decimal] = mapped_column(Numeric(18, 2), nullable=False)
    rate: Mapped[Decimal] = mapped_column(Numeric(12, 4), nullable=False)
    payout: Mapped[Decimal] = mapped_column(Numeric(18, 2), nullable=False)
    transaction_id: Mapped[str | None] = mapped_column(
        String, ForeignKey("transactions.transaction_id"), nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)

    transaction: Mapped[LedgerTransaction | None] = relationship("LedgerTransaction")

    __table_args__ = (
        UniqueConstraint(
            "market_id",
            "result_date",
            "session_key",
            "slip_id",
            "position",
            name="uq_winner_line",
        ),
        Index("ix_winner_records_user", "user_id"),
    )
