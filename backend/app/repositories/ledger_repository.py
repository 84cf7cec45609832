"""Wallet ledger writes."""

from __future__ import annotations

from decimal import Decimal

from sqlalchemy.orm import Session

from app.errors import NotFound
from app.models import AppUser, LedgerTransaction, TransactionStatus, TransactionType


class LedgerRepository:
    def __init__(self, session: Session) -> None:
        self._session = session

    def credit(self, user_id: str, amount: Decimal, *, description: str) -> LedgerTransaction:
        """Record a completed credit and add it to the user's balance."""

        user = self._session.get(AppUser, user_id)
        if user is None:
            raise NotFound(f"User {user_id} not found")

        user.balance = Decimal(user.balance or 0) + Decimal(amount)
        transaction = LedgerTransaction(
            user_id=user_id,
            amount=Decimal(amount),
            type=TransactionType.CREDIT.value,
            status=TransactionStatus.COMPLETED.value,
            description=description,
        )
        self._session.add(transaction)
        self._session.flush()
        return transaction


__all__ = ["LedgerRepository"]
