"""Match flattened bid rows against a declared result and price the winners."""

from __future__ import annotations

from collections.abc import Iterable, Iterator
from datetime import tzinfo

from loguru import logger

from app.errors import MissingRate, MissingResult

from .dates import format_result_date, local_date
from .models import (
    BidKind,
    DeclaredResult,
    FlattenedBidRow,
    GameSession,
    MarketRef,
    RateTable,
    SettlementReport,
    SkippedRow,
    WinnerRecord,
)


def declared_value(bid_kind: BidKind, result: DeclaredResult) -> str | None:
    """Value a bid of ``bid_kind`` must equal to win against ``result``."""

    if bid_kind is BidKind.SINGLE_DIGIT:
        return result.digit
    if bid_kind is BidKind.JODI:
        return result.declared_jodi
    if bid_kind in (BidKind.LEFT_DIGIT, BidKind.RIGHT_DIGIT):
        jodi = result.declared_jodi
        if not jodi:
            return None
        return jodi[0] if bid_kind is BidKind.LEFT_DIGIT else jodi[1]
    return result.panna


def _check_result(
    market: MarketRef,
    result_date: str,
    session: GameSession | None,
    result: DeclaredResult | None,
) -> DeclaredResult:
    if result is None or result.key != (market.market_id, result_date, session):
        label = f"{market.name or market.market_id} on {result_date}"
        if session is not None:
            label += f" ({session.value})"
        raise MissingResult(f"No result declared for {label}")
    return result


def _uses_sessions(market: MarketRef, session: GameSession | None) -> bool:
    if market.kind is not None:
        return market.kind.uses_sessions
    return session is not None


def _in_scope(
    row: FlattenedBidRow,
    *,
    market: MarketRef,
    result_date: str,
    session: GameSession | None,
    uses_sessions: bool,
    tz: tzinfo | None,
) -> bool:
    if row.game_id != market.market_id:
        return False
    if format_result_date(local_date(row.created_at, tz)) != result_date:
        return False
    if not uses_sessions:
        return True
    if row.bid_kind in (BidKind.JODI, BidKind.FULL_SANGAM):
        # These span both halves of the day, so they are decided with the close result.
        return session is GameSession.CLOSE
    return row.session == session


def _matches(
    rows: Iterable[FlattenedBidRow],
    market: MarketRef,
    result_date: str,
    session: GameSession | None,
    result: DeclaredResult,
    tz: tzinfo | None,
) -> Iterator[FlattenedBidRow]:
    uses_sessions = _uses_sessions(market, session)
    for row in rows:
        if not _in_scope(
            row,
            market=market,
            result_date=result_date,
            session=session,
            uses_sessions=uses_sessions,
            tz=tz,
        ):
            continue
        expected = declared_value(row.bid_kind, result)
        if expected is not None and row.value == expected:
            yield row


def _winner(row: FlattenedBidRow, result: DeclaredResult, rates: RateTable) -> WinnerRecord:
    rate = rates.rate_for(row.bid_kind)
    return WinnerRecord(
        market_id=result.market_id,
        result_date=result.result_date,
        session=result.session,
        slip_id=row.slip_id,
        position=row.position,
        user_id=row.user_id,
        user_name=row.name,
        game_name=row.game_name or result.market_name,
        bid_kind=row.bid_kind,
        digit=row.digit,
        panna=row.panna,
        stake=row.stake,
        rate=rate,
        payout=row.stake * rate,
        bid_created_at=row.created_at,
    )


def settle(
    market: MarketRef,
    result_date: str,
    session: GameSession | None,
    result: DeclaredResult | None,
    rows: Iterable[FlattenedBidRow],
    rates: RateTable,
    *,
    tz: tzinfo | None = None,
) -> list[WinnerRecord]:
    """Return one winner per matching row, in row order.

    Raises ``MissingResult`` when ``result`` does not belong to the requested
    key and ``MissingRate`` when a matched row has no configured multiplier.
    """

    declared = _check_result(market, result_date, session, result)
    return [
        _winner(row, declared, rates)
        for row in _matches(rows, market, result_date, session, declared, tz)
    ]


def settle_report(
    market: MarketRef,
    result_date: str,
    session: GameSession | None,
    result: DeclaredResult | None,
    rows: Iterable[FlattenedBidRow],
    rates: RateTable,
    *,
    tz: tzinfo | None = None,
) -> SettlementReport:
    """Like :func:`settle`, but rows without a rate are skipped and reported."""

    declared = _check_result(market, result_date, session, result)
    rows = list(rows)
    report = SettlementReport(evaluated_rows=len(rows))
    for row in _matches(rows, market, result_date, session, declared, tz):
        try:
            report.winners.append(_winner(row, declared, rates))
        except MissingRate as exc:
            logger.warning(
                "Skipping winning line {}#{} for {}: {}",
                row.slip_id,
                row.position,
                market.market_id,
                exc.message,
            )
            report.skipped.append(SkippedRow(row=row, reason=exc.message))
    return report


__all__ = ["declared_value", "settle", "settle_report"]
