"""
Account registration and login. New accounts get their starting balances
as SIGNUP_BONUS ledger rows so the balance is always explained by transactions.
"""
from __future__ import annotations

import logging
import sqlite3

from backend import config
from backend.auth import hash_password, verify_password
from backend.models import Currency, TransactionType, User, UserRole
from backend.persistence.repositories import UserRepository
from backend.services.errors import BettingError
from backend.services.wallet import Wallet

logger = logging.getLogger(__name__)


class RegistrationError(BettingError):
    """Username or email already in use."""


class AccountService:
    def __init__(self) -> None:
        self._users = UserRepository()
        self._wallet = Wallet()

    def register(
        self,
        conn: sqlite3.Connection,
        username: str,
        password: str,
        email: str | None = None,
    ) -> User:
        if self._users.get_by_username(conn, username):
            raise RegistrationError("Username already taken")
        if email and self._users.get_by_email(conn, email):
            raise RegistrationError("Email already registered")
        role = UserRole.ADMIN.value if config.ADMIN_USERNAME and username == config.ADMIN_USERNAME else UserRole.USER.value
        try:
            user = self._users.create(conn, username, hash_password(password), email=email, role=role)
        except sqlite3.IntegrityError as e:
            # a concurrent registration took the name between the check and the insert
            raise RegistrationError("Username or email already taken") from e
        with conn:
            if config.STARTING_BET_POINTS:
                self._wallet.credit(
                    conn, user.id, Currency.BETPOINTS, config.STARTING_BET_POINTS,
                    TransactionType.SIGNUP_BONUS.value, "Welcome bonus",
                )
            if config.STARTING_DIAMONDS:
                self._wallet.credit(
                    conn, user.id, Currency.DIAMONDS, config.STARTING_DIAMONDS,
                    TransactionType.SIGNUP_BONUS.value, "Welcome diamonds",
                )
        logger.info("Registered user %s (%s)", username, role)
        return self._users.get(conn, user.id) or user

    def authenticate(self, conn: sqlite3.Connection, username: str, password: str) -> User | None:
        user = self._users.get_by_username(conn, username)
        if user is None or not verify_password(password, user.password_hash):
            return None
        return user
