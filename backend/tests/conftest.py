from __future__ import annotations

import argparse
import sys
from datetime import datetime, timezone
from decimal import Decimal
from pathlib import Path
from zoneinfo import ZoneInfo

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.core.config import Settings
from app.db import Base, enable_sqlite_savepoints
from app.domain import BidKind, GameSession, MarketKind
from app.repositories import BidLineInput, MarketRepository, WagerRepository

IST = ZoneInfo("Asia/Kolkata")


@pytest.fixture
def test_settings(tmp_path, monkeypatch) -> Settings:
    settings = Settings(
        database_url=f"sqlite:///{tmp_path/'matka.db'}",
        timezone="Asia/Kolkata",
    )
    monkeypatch.setattr("app.core.config.get_settings", lambda: settings)
    monkeypatch.setattr("app.core.config.settings", settings)
    return settings


@pytest.fixture
def session_factory():
    """Session factory bound to a private in-memory SQLite database."""

    from app import models  # noqa: F401

    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        future=True,
    )
    enable_sqlite_savepoints(engine)
    Base.metadata.create_all(bind=engine)
    factory = sessionmaker(bind=engine, autoflush=True, future=True)
    yield factory
    engine.dispose()


@pytest.fixture
def db_session(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def make_market(db_session):
    def _make(
        kind: MarketKind = MarketKind.MAIN,
        name: str = "Kalyan",
        *,
        is_active: bool = True,
    ):
        market = MarketRepository(db_session).create_market(
            kind=kind, name=name, is_active=is_active
        )
        db_session.commit()
        return market

    return _make


@pytest.fixture
def make_user(db_session):
    counter = {"value": 0}

    def _make(name: str = "Ravi", balance: Decimal = Decimal("0")):
        counter["value"] += 1
        user = WagerRepository(db_session).create_user(
            name=name,
            mobile_number=f"98000000{counter['value']:02d}",
            balance=balance,
        )
        db_session.commit()
        return user

    return _make


@pytest.fixture
def place_slip(db_session):
    """Record a slip with (bid_kind, value, stake, session) tuples on one market."""

    def _place(
        user,
        market,
        lines,
        *,
        created_at: datetime = datetime(2024, 1, 5, 10, 0, tzinfo=IST),
    ):
        inputs = []
        for bid_kind, value, stake, session in lines:
            bid_kind = BidKind.parse(bid_kind)
            field_name = bid_kind.value_field
            inputs.append(
                BidLineInput(
                    bid_kind=bid_kind,
                    stake=Decimal(str(stake)),
                    market_id=market.market_id,
                    digit=value if field_name == "digit" else None,
                    panna=value if field_name == "panna" else None,
                    session=GameSession.parse(session),
                )
            )
        slip = WagerRepository(db_session).record_slip(
            user_id=user.user_id,
            market_kind=MarketKind(market.kind),
            lines=inputs,
            created_at=created_at,
        )
        db_session.commit()
        return slip

    return _place


@pytest.fixture
def settlement_args(tmp_path) -> argparse.Namespace:
    return argparse.Namespace(
        market_kind="main",
        market_id=None,
        result_date="05-01-2024",
        session=None,
        dry_run=False,
        summary_path=tmp_path / "summary.json",
    )


@pytest.fixture
def utc_noon() -> datetime:
    return datetime(2024, 1, 5, 12, 0, tzinfo=timezone.utc)
