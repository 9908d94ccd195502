"""
Achievements: unlocked automatically as player stats cross their targets,
rewards paid when the player claims them.
"""
from __future__ import annotations

import logging
import sqlite3
from typing import Any

from backend.betting.achievements import (
    ACHIEVEMENTS,
    ACHIEVEMENTS_BY_ID,
    Achievement,
    PlayerStats,
    achievement_progress,
    newly_reached,
)
from backend.models import Currency, TransactionType, User
from backend.persistence.repositories import (
    AchievementRepository,
    LoginStreakRepository,
    NotificationRepository,
    UserRepository,
)
from backend.services.errors import ChallengeError, NotFoundError
from backend.services.wallet import Wallet

logger = logging.getLogger(__name__)


class AchievementService:
    def __init__(self, wallet: Wallet | None = None) -> None:
        self._users = UserRepository()
        self._streaks = LoginStreakRepository()
        self._achievements = AchievementRepository()
        self._notifications = NotificationRepository()
        self._wallet = wallet or Wallet()

    def _get_user(self, conn: sqlite3.Connection, user_id: str) -> User:
        user = self._users.get(conn, user_id)
        if user is None:
            raise NotFoundError(f"User not found: {user_id}")
        return user

    def player_stats(self, conn: sqlite3.Connection, user: User, longest_login_streak: int | None = None) -> PlayerStats:
        if longest_login_streak is None:
            longest_login_streak = self._streaks.get(conn, user.id).longest_streak
        return PlayerStats(
            total_bets=user.total_bets,
            total_wins=user.total_wins,
            best_streak=user.best_streak,
            biggest_win=user.biggest_win,
            longest_login_streak=longest_login_streak,
            level=user.level,
            derby_wins=user.derby_wins,
            live_wins=user.live_wins,
            high_stake_bets=user.high_stake_bets,
            combo_wins=user.combo_wins,
            challenges_completed=user.challenges_completed,
        )

    def check(
        self,
        conn: sqlite3.Connection,
        user_id: str,
        longest_login_streak: int | None = None,
    ) -> list[Achievement]:
        """Unlock every achievement the player now qualifies for. Caller owns the transaction."""
        user = self._get_user(conn, user_id)
        stats = self.player_stats(conn, user, longest_login_streak)
        unlocked: list[Achievement] = []
        for achievement in newly_reached(stats, set(self._achievements.list_by_user(conn, user_id))):
            if not self._achievements.unlock(conn, user_id, achievement.id):
                continue
            self._notifications.create(
                conn, user_id, "ACHIEVEMENT_UNLOCKED", f"Achievement unlocked: {achievement.name}",
                f"{achievement.description}. Claim {achievement.reward.bet_points} BP and "
                f"{achievement.reward.diamonds} diamonds.",
                {"achievement_id": achievement.id},
            )
            logger.info("User %s unlocked achievement %s", user_id, achievement.id)
            unlocked.append(achievement)
        return unlocked

    def list_for_user(self, conn: sqlite3.Connection, user_id: str) -> list[dict[str, Any]]:
        user = self._get_user(conn, user_id)
        stats = self.player_stats(conn, user)
        records = self._achievements.list_by_user(conn, user_id)
        out = []
        for achievement in ACHIEVEMENTS:
            progress, _ = achievement_progress(achievement, stats)
            record = records.get(achievement.id)
            d = achievement.to_dict()
            d["progress"] = progress
            d["unlocked"] = record is not None
            d["claimed"] = record is not None and record.claimed_at is not None
            d["unlocked_at"] = record.unlocked_at.isoformat() if record else None
            out.append(d)
        return out

    def claim(self, conn: sqlite3.Connection, user_id: str, achievement_id: str) -> dict[str, Any]:
        achievement = ACHIEVEMENTS_BY_ID.get(achievement_id)
        if achievement is None:
            raise NotFoundError(f"Achievement not found: {achievement_id}")
        self._get_user(conn, user_id)
        if achievement_id not in self._achievements.list_by_user(conn, user_id):
            raise ChallengeError(f"Achievement not unlocked: {achievement.name}")

        reward = achievement.reward
        with conn:
            if not self._achievements.mark_claimed(conn, user_id, achievement_id):
                raise ChallengeError("Reward already claimed")
            self._wallet.credit(
                conn, user_id, Currency.BETPOINTS, reward.bet_points,
                TransactionType.ACHIEVEMENT_REWARD.value, f"Achievement: {achievement.name}",
            )
            self._wallet.credit(
                conn, user_id, Currency.DIAMONDS, reward.diamonds,
                TransactionType.ACHIEVEMENT_REWARD.value, f"Achievement: {achievement.name}",
            )
            self._users.increment_counters(conn, user_id, xp=reward.xp)
        logger.info("User %s claimed achievement %s", user_id, achievement_id)
        user = self._get_user(conn, user_id)
        return {
            "achievement_id": achievement_id,
            "reward": reward.to_dict(),
            "bet_points": user.bet_points,
            "diamonds": user.diamonds,
        }
