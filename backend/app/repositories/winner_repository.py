"""Persisted winner ledgers produced by settlement runs."""

from __future__ import annotations

from typing import Any

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from app.domain import GameSession, MarketKind, WinnerRecord
from app.models import WinnerEntry, session_key


class WinnerRepository:
    def __init__(self, session: Session) -> None:
        self._session = session

    def settled_lines(
        self,
        market_id: str,
        result_date: str,
        session: GameSession | None,
    ) -> set[tuple[str, int]]:
        """Return the (slip, position) pairs already paid for a result key."""

        query = select(WinnerEntry.slip_id, WinnerEntry.position).where(
            WinnerEntry.market_id == market_id,
            WinnerEntry.result_date == result_date,
            WinnerEntry.session_key == session_key(session.value if session else None),
        )
        return {(slip_id, position) for slip_id, position in self._session.execute(query).all()}

    def record_winner(
        self,
        winner: WinnerRecord,
        *,
        market_kind: MarketKind,
        transaction_id: str | None,
    ) -> WinnerEntry:
        session_value = winner.session.value if winner.session else None
        entry = WinnerEntry(
            market_kind=market_kind.value,
            market_id=winner.market_id,
            result_date=winner.result_date,
            session=session_value,
            session_key=session_key(session_value),
            slip_id=winner.slip_id,
            position=winner.position,
            user_id=winner.user_id,
            user_name=winner.user_name,
            game_name=winner.game_name,
            bid_kind=winner.bid_kind.value,
            digit=winner.digit,
            panna=winner.panna,
            stake=winner.stake,
            rate=winner.rate,
            payout=winner.payout,
            transaction_id=transaction_id,
        )
        self._session.add(entry)
        self._session.flush()
        return entry

    def list_winners(
        self,
        *,
        market_kind: MarketKind,
        user_id: str | None = None,
        result_date: str | None = None,
        market_id: str | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> tuple[list[WinnerEntry], int]:
        filters: list[Any] = [WinnerEntry.market_kind == market_kind.value]
        if user_id:
            filters.append(WinnerEntry.user_id == user_id)
        if result_date:
            filters.append(WinnerEntry.result_date == result_date)
        if market_id:
            filters.append(WinnerEntry.market_id == market_id)

        query = (
            select(WinnerEntry)
            .where(*filters)
            .order_by(WinnerEntry.created_at.desc(), WinnerEntry.winner_id)
            .limit(limit)
            .offset(offset)
        )
        total_query = select(func.count(WinnerEntry.winner_id)).where(*filters)

        winners = list(self._session.execute(query).scalars().all())
        total = self._session.execute(total_query).scalar_one()
        return winners, total


__all__ = ["WinnerRepository"]
