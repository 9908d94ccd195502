"""
Lifetime counters, win streaks and level progression shared by live and pre-match betting.
Every stake, win and loss also moves daily challenges and is checked against achievements.
Callers own the transaction.
"""
from __future__ import annotations

import logging
import sqlite3

from backend.betting.achievements import COMBO_MASTER_MIN_ODDS, HIGH_STAKE_THRESHOLD
from backend.betting.challenges import BetActivity
from backend.betting.diamonds import win_streak_bonus
from backend.betting.settlement import level_for_total_staked, level_up_rewards
from backend.models import BetType, Currency, TransactionType
from backend.persistence.repositories import NotificationRepository, UserRepository
from backend.services.achievement_service import AchievementService
from backend.services.challenge_service import ChallengeService
from backend.services.errors import NotFoundError
from backend.services.wallet import Wallet

logger = logging.getLogger(__name__)


class ProgressionService:
    def __init__(self, wallet: Wallet | None = None) -> None:
        self._users = UserRepository()
        self._notifications = NotificationRepository()
        self._wallet = wallet or Wallet()
        self._achievements = AchievementService(self._wallet)
        self._challenges = ChallengeService(self._wallet, self._achievements)

    def _track(self, conn: sqlite3.Connection, user_id: str, activity: BetActivity | None) -> None:
        if activity is not None:
            self._challenges.record_activity(conn, user_id, activity)
        self._achievements.check(conn, user_id)

    def record_stake(
        self,
        conn: sqlite3.Connection,
        user_id: str,
        stake: int,
        activity: BetActivity | None = None,
    ) -> int:
        """Count a placed bet and pay level-up bonuses. Returns the user's level afterwards."""
        high_stake = 1 if stake >= HIGH_STAKE_THRESHOLD else 0
        self._users.increment_counters(
            conn, user_id, total_bets=1, total_staked=stake, high_stake_bets=high_stake
        )
        user = self._users.get(conn, user_id)
        if user is None:
            raise NotFoundError(f"User not found: {user_id}")
        level = user.level
        new_level = level_for_total_staked(user.total_staked)
        if new_level > level:
            self._level_up(conn, user_id, level, new_level)
            level = new_level
        self._track(conn, user_id, activity)
        return level

    def _level_up(self, conn: sqlite3.Connection, user_id: str, old_level: int, new_level: int) -> None:
        bet_points, diamonds = level_up_rewards(old_level, new_level)
        self._users.set_level(conn, user_id, new_level)
        self._wallet.credit(
            conn, user_id, Currency.BETPOINTS, bet_points,
            TransactionType.LEVEL_BONUS.value, f"Level {new_level} reached",
        )
        self._wallet.credit(
            conn, user_id, Currency.DIAMONDS, diamonds,
            TransactionType.LEVEL_BONUS.value, f"Level {new_level} reached",
        )
        self._notifications.create(
            conn, user_id, "LEVEL_UP", f"Level {new_level}!",
            f"You reached level {new_level} and earned {bet_points} BP and {diamonds} diamonds.",
            {"level": new_level, "bet_points": bet_points, "diamonds": diamonds},
        )
        logger.info("User %s reached level %d", user_id, new_level)

    def record_win(
        self,
        conn: sqlite3.Connection,
        user_id: str,
        payout: int,
        activity: BetActivity | None = None,
    ) -> int:
        """Count a win and extend the streak. Returns streak bonus diamonds credited."""
        counters = {"total_wins": 1, "total_won": payout}
        if activity is not None:
            if activity.is_derby:
                counters["derby_wins"] = 1
            if activity.is_live:
                counters["live_wins"] = 1
            if activity.bet_type == BetType.PITKAVETO.value and activity.odds >= COMBO_MASTER_MIN_ODDS:
                counters["combo_wins"] = 1
        self._users.increment_counters(conn, user_id, **counters)
        self._users.record_biggest_win(conn, user_id, payout)
        user = self._users.get(conn, user_id)
        if user is None:
            raise NotFoundError(f"User not found: {user_id}")
        streak = user.current_streak + 1
        self._users.set_streak(conn, user_id, streak, max(streak, user.best_streak))
        bonus = win_streak_bonus(streak)
        if bonus:
            self._wallet.credit(
                conn, user_id, Currency.DIAMONDS, bonus,
                TransactionType.DIAMOND_EARNED.value, f"{streak}-win streak bonus",
            )
        self._track(conn, user_id, activity)
        return bonus

    def record_loss(self, conn: sqlite3.Connection, user_id: str, activity: BetActivity | None = None) -> None:
        user = self._users.get(conn, user_id)
        if user is None:
            raise NotFoundError(f"User not found: {user_id}")
        self._users.set_streak(conn, user_id, 0, user.best_streak)
        if activity is not None:
            self._challenges.record_activity(conn, user_id, activity)
