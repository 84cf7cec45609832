from __future__ import annotations

from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from app.domain import BidKind, GameSession, MarketKind
from app.errors import DuplicateMarket, DuplicateResult, MissingRate, NotFound
from app.models import LedgerTransaction
from app.repositories import (
    LedgerRepository,
    MarketDayInput,
    MarketRepository,
    ResultInput,
    ResultRepository,
    WagerRepository,
    join_slips,
)


def _result_input(market, **overrides) -> ResultInput:
    payload = {
        "market_kind": MarketKind.MAIN,
        "market_id": market.market_id,
        "result_date": "05-01-2024",
        "session": GameSession.OPEN,
        "digit": "7",
        "panna": "133",
    }
    payload.update(overrides)
    return ResultInput(**payload)


def test_create_market_with_schedule(db_session):
    repo = MarketRepository(db_session)

    market = repo.create_market(
        kind=MarketKind.MAIN,
        name="  Kalyan ",
        is_active=True,
        days=[
            MarketDayInput(day="Monday", open_time="15:45", close_time="17:45", market_status=True),
            MarketDayInput(day="sunday", open_time="15:45", close_time="17:45"),
        ],
    )

    loaded = repo.get_market(market.market_id)
    assert loaded.name == "Kalyan"
    assert [day.day for day in loaded.days] == ["monday", "sunday"]
    assert loaded.is_open_on("MONDAY")
    assert not loaded.is_open_on("sunday")
    assert not loaded.is_open_on("tuesday")


def test_market_names_are_unique_per_kind(db_session, make_market):
    make_market(MarketKind.MAIN, "Kalyan")
    make_market(MarketKind.STARLINE, "Kalyan")

    with pytest.raises(DuplicateMarket):
        MarketRepository(db_session).create_market(kind=MarketKind.MAIN, name="Kalyan")


def test_list_markets_filters_and_counts(db_session, make_market):
    make_market(MarketKind.MAIN, "Kalyan")
    make_market(MarketKind.MAIN, "Milan Day", is_active=False)
    make_market(MarketKind.STARLINE, "Starline 10")
    repo = MarketRepository(db_session)

    markets, total = repo.list_markets(kind=MarketKind.MAIN, limit=1)
    assert total == 2
    assert [market.name for market in markets] == ["Kalyan"]

    active, active_total = repo.list_markets(is_active=True)
    assert active_total == 2
    assert {market.name for market in active} == {"Kalyan", "Starline 10"}


def test_require_market_checks_kind(db_session, make_market):
    market = make_market(MarketKind.STARLINE, "Starline 10")
    repo = MarketRepository(db_session)

    assert repo.require_market(market.market_id).name == "Starline 10"
    with pytest.raises(NotFound):
        repo.require_market(market.market_id, MarketKind.MAIN)
    with pytest.raises(NotFound):
        repo.require_market("missing")


def test_rate_table_round_trip_is_immutable(db_session):
    repo = MarketRepository(db_session)
    repo.set_rates(MarketKind.MAIN, {BidKind.SINGLE_DIGIT: Decimal("9")})
    table = repo.set_rates(MarketKind.MAIN, {BidKind.JODI: Decimal("90")})

    assert table.rate_for(BidKind.SINGLE_DIGIT) == Decimal("9")
    assert table.rate_for(BidKind.JODI) == Decimal("90")
    with pytest.raises(MissingRate):
        table.rate_for(BidKind.TRIPLE_PANNA)
    with pytest.raises(TypeError):
        table.rates[BidKind.TRIPLE_PANNA] = Decimal("1")
    assert repo.get_rate_table(MarketKind.STARLINE).rates == {}


def test_record_slip_totals_stakes_and_joins_display_fields(
    db_session, make_market, make_user, place_slip
):
    market = make_market()
    user = make_user("Ravi")

    record = place_slip(
        user,
        market,
        [("single_digit", "7", 100, "open"), ("single_panna", "127", 25, "close")],
    )

    assert record.total_amount == Decimal("125")
    (slip,) = join_slips(WagerRepository(db_session).list_slips(market_kind=MarketKind.MAIN))
    assert slip.user.name == "Ravi"
    assert [line.position for line in slip.lines] == [0, 1]
    assert slip.lines[0].market.name == "Kalyan"
    assert slip.lines[1].session is GameSession.CLOSE
    assert slip.total_amount == Decimal("125")


def test_list_slips_orders_newest_first_and_filters_window(
    db_session, make_market, make_user, place_slip
):
    market = make_market()
    user = make_user()
    base = datetime(2024, 1, 5, 6, 0, tzinfo=timezone.utc)
    older = place_slip(user, market, [("single_digit", "1", 10, "open")], created_at=base)
    newer = place_slip(
        user, market, [("single_digit", "2", 10, "open")], created_at=base + timedelta(hours=2)
    )
    place_slip(
        user, market, [("single_digit", "3", 10, "open")], created_at=base + timedelta(days=1)
    )
    repo = WagerRepository(db_session)

    slips = repo.list_slips(
        market_kind=MarketKind.MAIN,
        created_from=base,
        created_to=base + timedelta(hours=12),
    )

    assert [slip.slip_id for slip in slips] == [newer.slip_id, older.slip_id]
    assert repo.list_slips(market_kind=MarketKind.STARLINE) == []


def test_create_result_rejects_duplicates(db_session, make_market):
    market = make_market()
    repo = ResultRepository(db_session)
    repo.create_result(_result_input(market))
    db_session.commit()

    with pytest.raises(DuplicateResult):
        repo.create_result(_result_input(market, digit="8", panna="170"))

    # A different session on the same day is a separate key.
    close = repo.create_result(_result_input(market, session=GameSession.CLOSE))
    assert close.session_key == "close"


def test_unsessioned_results_are_unique_per_day(db_session, make_market):
    market = make_market(MarketKind.GALIDISAWAR, "Desawar")
    repo = ResultRepository(db_session)
    payload = _result_input(
        market,
        market_kind=MarketKind.GALIDISAWAR,
        session=None,
        digit="42",
        panna=None,
    )
    repo.create_result(payload)

    with pytest.raises(DuplicateResult):
        repo.create_result(payload)
    assert repo.get_result(market.market_id, "05-01-2024").digit == "42"


def test_list_results_sorts_by_calendar_date(db_session, make_market):
    market = make_market()
    repo = ResultRepository(db_session)
    for result_date in ("31-12-2023", "05-01-2024", "02-01-2024"):
        repo.create_result(_result_input(market, result_date=result_date))

    records = repo.list_results(market_kind=MarketKind.MAIN)

    assert [record.result_date for record in records] == [
        "05-01-2024",
        "02-01-2024",
        "31-12-2023",
    ]


def test_delete_result(db_session, make_market):
    market = make_market()
    repo = ResultRepository(db_session)
    record = repo.create_result(_result_input(market))

    repo.delete_result(record.result_id)

    assert repo.get_result(market.market_id, "05-01-2024", GameSession.OPEN) is None
    with pytest.raises(NotFound):
        repo.delete_result(record.result_id)


def test_ledger_credit_updates_balance(db_session, make_user):
    user = make_user(balance=Decimal("50"))

    transaction = LedgerRepository(db_session).credit(
        user.user_id, Decimal("900"), description="Winning amount"
    )

    assert user.balance == Decimal("950")
    stored = db_session.get(LedgerTransaction, transaction.transaction_id)
    assert stored.type == "credit"
    assert stored.status == "completed"
    assert stored.amount == Decimal("900")
