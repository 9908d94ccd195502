"""
Balance moves with their ledger rows. Every credit or debit writes a
transaction carrying the balance before and after.

Nothing here commits: callers wrap a whole money move in `with conn:`.
"""
from __future__ import annotations

import sqlite3

from backend.models import Currency, Transaction, User
from backend.persistence.repositories import TransactionRepository, UserRepository
from backend.services.errors import InsufficientFundsError, NotFoundError


class Wallet:
    def __init__(self) -> None:
        self._users = UserRepository()
        self._transactions = TransactionRepository()

    def _move(
        self,
        conn: sqlite3.Connection,
        user_id: str,
        currency: Currency,
        amount: int,
        tx_type: str,
        description: str,
        reference: str | None,
    ) -> Transaction:
        user = self._users.get(conn, user_id)
        if user is None:
            raise NotFoundError(f"User not found: {user_id}")
        before = user.bet_points if currency is Currency.BETPOINTS else user.diamonds
        if before + amount < 0:
            unit = "bet points" if currency is Currency.BETPOINTS else "diamonds"
            raise InsufficientFundsError(f"Insufficient {unit}: have {before}, need {-amount}")
        if currency is Currency.BETPOINTS:
            updated = self._users.adjust_balances(conn, user_id, bet_points=amount)
            after = updated.bet_points
        else:
            updated = self._users.adjust_balances(conn, user_id, diamonds=amount)
            after = updated.diamonds
        return self._transactions.create(
            conn,
            user_id=user_id,
            type=tx_type,
            amount=amount,
            currency=currency.value,
            description=description,
            balance_before=before,
            balance_after=after,
            reference=reference,
        )

    def credit(
        self,
        conn: sqlite3.Connection,
        user_id: str,
        currency: Currency,
        amount: int,
        tx_type: str,
        description: str,
        reference: str | None = None,
    ) -> Transaction:
        if amount < 0:
            raise ValueError("credit amount must be non-negative")
        return self._move(conn, user_id, currency, amount, tx_type, description, reference)

    def debit(
        self,
        conn: sqlite3.Connection,
        user_id: str,
        currency: Currency,
        amount: int,
        tx_type: str,
        description: str,
        reference: str | None = None,
    ) -> Transaction:
        if amount < 0:
            raise ValueError("debit amount must be non-negative")
        return self._move(conn, user_id, currency, -amount, tx_type, description, reference)

    def balance(self, conn: sqlite3.Connection, user_id: str) -> User:
        user = self._users.get(conn, user_id)
        if user is None:
            raise NotFoundError(f"User not found: {user_id}")
        return user
