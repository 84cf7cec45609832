from __future__ import annotations

import json
from contextlib import contextmanager
from decimal import Decimal
from unittest.mock import MagicMock

from app.domain import BidKind, GameSession, MarketKind
from app.errors import MissingResult
from app.repositories import MarketRepository, ResultInput, ResultRepository
from app.services.settlement_service import SettlementService
from pipelines.settlement_run import run_settlement


def _session_factory(db_session):
    @contextmanager
    def _factory():
        yield db_session
        db_session.commit()

    return _factory


def _seed(db_session, make_market, make_user, place_slip):
    market = make_market(MarketKind.MAIN, "Kalyan")
    MarketRepository(db_session).set_rates(MarketKind.MAIN, {BidKind.SINGLE_DIGIT: Decimal("9")})
    user = make_user()
    place_slip(
        user,
        market,
        [("single_digit", "7", 100, "open"), ("single_digit", "5", 10, "close")],
    )
    repo = ResultRepository(db_session)
    for session, digit, panna in ((GameSession.OPEN, "7", "133"), (GameSession.CLOSE, "5", "159")):
        repo.create_result(
            ResultInput(
                market_kind=MarketKind.MAIN,
                market_id=market.market_id,
                result_date="05-01-2024",
                session=session,
                digit=digit,
                panna=panna,
            )
        )
    db_session.commit()
    return market


def test_run_settles_every_result_on_the_date(
    db_session, make_market, make_user, place_slip, settlement_args, test_settings
):
    _seed(db_session, make_market, make_user, place_slip)
    init_db = MagicMock()

    summary = run_settlement(
        settlement_args,
        test_settings,
        session_factory=_session_factory(db_session),
        init_db_fn=init_db,
    )

    init_db.assert_not_called()
    assert [item["session"] for item in summary.settled] == ["open", "close"]
    assert summary.total_winners == 2
    assert summary.total_persisted == 2
    assert summary.total_payout == Decimal("990")
    assert summary.failures == []

    written = json.loads(settlement_args.summary_path.read_text(encoding="utf-8"))
    assert written["total_persisted"] == 2
    assert written["result_date"] == "05-01-2024"


def test_dry_run_and_session_filter(
    db_session, make_market, make_user, place_slip, settlement_args, test_settings
):
    _seed(db_session, make_market, make_user, place_slip)
    settlement_args.dry_run = True
    settlement_args.session = "close"

    summary = run_settlement(
        settlement_args,
        test_settings,
        session_factory=_session_factory(db_session),
    )

    assert [item["session"] for item in summary.settled] == ["close"]
    assert summary.total_winners == 1
    assert summary.total_persisted == 0


def test_failures_are_reported_and_do_not_stop_the_run(settlement_args, test_settings):
    settlement_args.market_id = "m-1"
    settlement_args.session = "open"
    service = MagicMock(spec=SettlementService)
    service.run.side_effect = MissingResult("No result declared for m-1 on 05-01-2024 (open)")
    session = MagicMock()

    @contextmanager
    def factory():
        yield session

    summary = run_settlement(
        settlement_args,
        test_settings,
        session_factory=factory,
        service_factory=lambda _session: service,
    )

    assert summary.settled == []
    assert summary.failures == [
        {
            "market_id": "m-1",
            "session": "open",
            "kind": "missing_result",
            "message": "No result declared for m-1 on 05-01-2024 (open)",
        }
    ]
    session.rollback.assert_called_once()
