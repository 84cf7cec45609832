from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal
from zoneinfo import ZoneInfo

import pytest

from app.domain import (
    BidKind,
    DeclaredResult,
    FlattenedBidRow,
    GameSession,
    MarketKind,
    MarketRef,
    RateTable,
    settle,
    settle_report,
)
from app.errors import MissingRate, MissingResult

IST = ZoneInfo("Asia/Kolkata")
MAIN = MarketRef(market_id="m-1", name="Main", kind=MarketKind.MAIN)
STARLINE = MarketRef(market_id="s-1", name="Starline 10", kind=MarketKind.STARLINE)
GALI = MarketRef(market_id="g-1", name="Desawar", kind=MarketKind.GALIDISAWAR)
MAIN_RATES = RateTable(
    market_kind=MarketKind.MAIN,
    rates={
        BidKind.SINGLE_DIGIT: Decimal("9"),
        BidKind.JODI: Decimal("90"),
        BidKind.SINGLE_PANNA: Decimal("140"),
        BidKind.DOUBLE_PANNA: Decimal("280"),
        BidKind.TRIPLE_PANNA: Decimal("700"),
    },
)


def _row(
    *,
    bid_kind: BidKind = BidKind.SINGLE_DIGIT,
    digit: str | None = "7",
    panna: str | None = None,
    stake: str = "100",
    session: GameSession | None = GameSession.OPEN,
    market: MarketRef = MAIN,
    slip_id: str = "slip-1",
    position: int = 0,
    created_at: datetime = datetime(2024, 1, 5, 10, 0, tzinfo=timezone.utc),
) -> FlattenedBidRow:
    return FlattenedBidRow(
        slip_id=slip_id,
        position=position,
        user_id="u-1",
        name="Ravi",
        mobile_number="9800000001",
        bid_kind=bid_kind,
        digit=digit,
        panna=panna,
        stake=Decimal(stake),
        session=session,
        game_id=market.market_id,
        game_name=market.name,
        created_at=created_at,
    )


def _result(
    *,
    market: MarketRef = MAIN,
    session: GameSession | None = GameSession.OPEN,
    digit: str | None = "7",
    panna: str | None = "133",
    jodi: str | None = None,
    result_date: str = "05-01-2024",
) -> DeclaredResult:
    return DeclaredResult(
        market_id=market.market_id,
        result_date=result_date,
        session=session,
        digit=digit,
        panna=panna,
        jodi=jodi,
    )


def test_single_digit_winner_is_paid_stake_times_rate():
    rows = [
        _row(digit="7", stake="100"),
        _row(digit="3", stake="100", position=1),
    ]

    winners = settle(MAIN, "05-01-2024", GameSession.OPEN, _result(), rows, MAIN_RATES)

    assert len(winners) == 1
    winner = winners[0]
    assert winner.digit == "7"
    assert winner.rate == Decimal("9")
    assert winner.payout == Decimal("900")
    assert winner.line_key == ("slip-1", 0)
    assert winner.game_name == "Main"


def test_settle_filters_market_date_and_session():
    rows = [
        _row(),
        _row(market=STARLINE, session=None, position=1),
        _row(created_at=datetime(2024, 1, 6, 10, 0, tzinfo=timezone.utc), position=2),
        _row(session=GameSession.CLOSE, position=3),
    ]

    winners = settle(MAIN, "05-01-2024", GameSession.OPEN, _result(), rows, MAIN_RATES)

    assert [winner.position for winner in winners] == [0]


def test_settle_truncates_timestamps_in_the_given_zone():
    # 20:00 UTC on the 4th is already the 5th in India.
    late = _row(created_at=datetime(2024, 1, 4, 20, 0, tzinfo=timezone.utc))

    assert settle(MAIN, "05-01-2024", GameSession.OPEN, _result(), [late], MAIN_RATES) == []
    winners = settle(
        MAIN, "05-01-2024", GameSession.OPEN, _result(), [late], MAIN_RATES, tz=IST
    )
    assert len(winners) == 1


def test_panna_bids_match_declared_panna():
    rows = [
        _row(bid_kind=BidKind.DOUBLE_PANNA, digit=None, panna="133", stake="10"),
        _row(bid_kind=BidKind.DOUBLE_PANNA, digit=None, panna="144", stake="10", position=1),
    ]

    winners = settle(MAIN, "05-01-2024", GameSession.OPEN, _result(), rows, MAIN_RATES)

    assert [winner.panna for winner in winners] == ["133"]
    assert winners[0].payout == Decimal("2800")


def test_main_jodi_is_settled_with_close_session_only():
    jodi = _row(bid_kind=BidKind.JODI, digit="75", session=None, stake="10")
    close = _result(session=GameSession.CLOSE, digit="5", panna="159", jodi="75")

    assert settle(MAIN, "05-01-2024", GameSession.OPEN, _result(), [jodi], MAIN_RATES) == []
    winners = settle(MAIN, "05-01-2024", GameSession.CLOSE, close, [jodi], MAIN_RATES)
    assert len(winners) == 1
    assert winners[0].payout == Decimal("900")


def test_unsessioned_markets_ignore_row_sessions():
    rates = RateTable(
        market_kind=MarketKind.STARLINE, rates={BidKind.SINGLE_DIGIT: Decimal("9.5")}
    )
    row = _row(market=STARLINE, session=None, stake="20")
    result = _result(market=STARLINE, session=None)

    winners = settle(STARLINE, "05-01-2024", None, result, [row], rates)

    assert winners[0].payout == Decimal("190.0")


def test_gali_positional_digits_match_the_jodi():
    rates = RateTable(
        market_kind=MarketKind.GALIDISAWAR,
        rates={
            BidKind.LEFT_DIGIT: Decimal("9"),
            BidKind.RIGHT_DIGIT: Decimal("9"),
            BidKind.JODI: Decimal("90"),
        },
    )
    rows = [
        _row(market=GALI, session=None, bid_kind=BidKind.LEFT_DIGIT, digit="4"),
        _row(market=GALI, session=None, bid_kind=BidKind.RIGHT_DIGIT, digit="2", position=1),
        _row(market=GALI, session=None, bid_kind=BidKind.RIGHT_DIGIT, digit="4", position=2),
        _row(market=GALI, session=None, bid_kind=BidKind.JODI, digit="42", position=3),
    ]
    result = _result(market=GALI, session=None, digit="42", panna=None)

    winners = settle(GALI, "05-01-2024", None, result, rows, rates)

    assert [winner.position for winner in winners] == [0, 1, 3]


def test_settle_is_deterministic():
    rows = [_row(position=index) for index in range(5)]

    first = settle(MAIN, "05-01-2024", GameSession.OPEN, _result(), rows, MAIN_RATES)
    second = settle(MAIN, "05-01-2024", GameSession.OPEN, _result(), rows, MAIN_RATES)

    assert first == second


def test_missing_rate_is_fatal_for_settle():
    rates = RateTable(market_kind=MarketKind.MAIN, rates={BidKind.JODI: Decimal("90")})

    with pytest.raises(MissingRate) as exc_info:
        settle(MAIN, "05-01-2024", GameSession.OPEN, _result(), [_row()], rates)

    assert exc_info.value.bid_kind == "single_digit"


def test_settle_report_skips_rows_without_rate():
    rates = RateTable(
        market_kind=MarketKind.MAIN, rates={BidKind.DOUBLE_PANNA: Decimal("280")}
    )
    rows = [
        _row(),
        _row(bid_kind=BidKind.DOUBLE_PANNA, digit=None, panna="133", stake="10", position=1),
    ]

    report = settle_report(MAIN, "05-01-2024", GameSession.OPEN, _result(), rows, rates)

    assert report.evaluated_rows == 2
    assert [winner.position for winner in report.winners] == [1]
    assert len(report.skipped) == 1
    assert report.skipped[0].row.position == 0
    assert "single_digit" in report.skipped[0].reason
    assert report.total_payout == Decimal("2800")


@pytest.mark.parametrize(
    "result",
    [
        None,
        _result(session=GameSession.CLOSE),
        _result(result_date="06-01-2024"),
    ],
)
def test_missing_or_mismatched_result_raises(result):
    with pytest.raises(MissingResult):
        settle(MAIN, "05-01-2024", GameSession.OPEN, result, [_row()], MAIN_RATES)


def test_zero_stake_winner_pays_nothing():
    winners = settle(
        MAIN, "05-01-2024", GameSession.OPEN, _result(), [_row(stake="0")], MAIN_RATES
    )

    assert winners[0].payout == Decimal("0")


SANGAM_RATES = RateTable(
    market_kind=MarketKind.MAIN,
    rates={BidKind.HALF_SANGAM: Decimal("1000"), BidKind.FULL_SANGAM: Decimal("10000")},
)


def test_half_sangam_matches_the_panna_of_its_own_session():
    rows = [
        _row(bid_kind=BidKind.HALF_SANGAM, digit="5", panna="133"),
        _row(bid_kind=BidKind.HALF_SANGAM, digit=None, panna="133", session=GameSession.CLOSE, position=1),
        _row(bid_kind=BidKind.HALF_SANGAM, digit=None, panna="159", position=2),
    ]

    open_winners = settle(MAIN, "05-01-2024", GameSession.OPEN, _result(), rows, SANGAM_RATES)
    close_winners = settle(
        MAIN,
        "05-01-2024",
        GameSession.CLOSE,
        _result(session=GameSession.CLOSE, digit="3", panna="133"),
        rows,
        SANGAM_RATES,
    )

    assert [winner.position for winner in open_winners] == [0]
    assert open_winners[0].payout == Decimal("100000")
    assert [winner.position for winner in close_winners] == [1]


def test_full_sangam_is_only_decided_with_the_close_result():
    rows = [_row(bid_kind=BidKind.FULL_SANGAM, digit="7", panna="159", session=None)]
    close = _result(session=GameSession.CLOSE, digit="5", panna="159")

    assert settle(MAIN, "05-01-2024", GameSession.OPEN, _result(panna="159", digit="5"), rows, SANGAM_RATES) == []

    winners = settle(MAIN, "05-01-2024", GameSession.CLOSE, close, rows, SANGAM_RATES)
    assert len(winners) == 1
    assert winners[0].bid_kind is BidKind.FULL_SANGAM
    assert winners[0].payout == Decimal("1000000")


def test_unpriced_sangam_is_skipped_in_the_report():
    rows = [_row(bid_kind=BidKind.HALF_SANGAM, digit=None, panna="133")]

    report = settle_report(MAIN, "05-01-2024", GameSession.OPEN, _result(), rows, MAIN_RATES)

    assert report.winners == []
    assert [skipped.row.bid_kind for skipped in report.skipped] == [BidKind.HALF_SANGAM]
