"""
Daily login bonus: 7-day reward cycle with milestone bonuses for long streaks.
Calendar days are UTC.
"""
from __future__ import annotations

import logging
import sqlite3
from dataclasses import asdict, dataclass
from datetime import date, datetime, timedelta, timezone
from typing import Any

from backend.models import Currency, LoginStreak, TransactionType
from backend.persistence.repositories import (
    LoginStreakRepository,
    NotificationRepository,
    UserRepository,
)
from backend.services.achievement_service import AchievementService
from backend.services.errors import DailyBonusAlreadyClaimedError, NotFoundError
from backend.services.wallet import Wallet

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LoginReward:
    day: int
    bet_points: int
    diamonds: int
    xp: int


DAILY_LOGIN_REWARDS = [
    LoginReward(1, 100, 2, 25),
    LoginReward(2, 150, 3, 35),
    LoginReward(3, 200, 5, 50),
    LoginReward(4, 300, 7, 75),
    LoginReward(5, 400, 10, 100),
    LoginReward(6, 600, 15, 150),
    LoginReward(7, 1000, 25, 250),
]

# Completed weeks -> (bet points, diamonds, xp, title)
WEEKLY_MILESTONES: dict[int, tuple[int, int, int, str]] = {
    2: (2000, 50, 500, "Two weeks in a row"),
    4: (5000, 100, 1000, "Monthly legend"),
    8: (10000, 200, 2000, "Two-month master"),
    12: (20000, 500, 5000, "Quarter hero"),
}


def reward_for_streak(streak: int) -> LoginReward:
    """Reward for the streak-th consecutive day (1-based)."""
    return DAILY_LOGIN_REWARDS[(streak - 1) % len(DAILY_LOGIN_REWARDS)]


def milestone_for_streak(streak: int) -> tuple[int, int, int, str] | None:
    if streak % 7:
        return None
    return WEEKLY_MILESTONES.get(streak // 7)


def effective_streak(streak: LoginStreak, today: date) -> int:
    """Streak as it stands today: kept if the last claim was today or yesterday, else 0."""
    if streak.last_claimed_date is None:
        return 0
    if streak.last_claimed_date >= today - timedelta(days=1):
        return streak.current_streak
    return 0


class DailyLoginService:
    def __init__(self) -> None:
        self._users = UserRepository()
        self._streaks = LoginStreakRepository()
        self._notifications = NotificationRepository()
        self._wallet = Wallet()
        self._achievements = AchievementService(self._wallet)

    def status(self, conn: sqlite3.Connection, user_id: str, now: datetime | None = None) -> dict[str, Any]:
        today = (now or datetime.now(timezone.utc)).date()
        streak = self._streaks.get(conn, user_id)
        current = effective_streak(streak, today)
        claimed_today = streak.last_claimed_date == today
        return {
            "current_streak": current,
            "longest_streak": max(current, streak.longest_streak),
            "last_claimed_date": streak.last_claimed_date.isoformat() if streak.last_claimed_date else None,
            "claimed_today": claimed_today,
            "can_claim": not claimed_today,
            "week_progress": current % 7,
            "next_reward": asdict(reward_for_streak(current + 1)),
        }

    def claim(self, conn: sqlite3.Connection, user_id: str, now: datetime | None = None) -> dict[str, Any]:
        today = (now or datetime.now(timezone.utc)).date()
        if self._users.get(conn, user_id) is None:
            raise NotFoundError(f"User not found: {user_id}")
        streak = self._streaks.get(conn, user_id)
        if streak.last_claimed_date == today:
            raise DailyBonusAlreadyClaimedError("Daily bonus already claimed today")

        new_streak = effective_streak(streak, today) + 1
        longest = max(new_streak, streak.longest_streak)
        reward = reward_for_streak(new_streak)
        milestone = milestone_for_streak(new_streak)
        bet_points, diamonds, xp = reward.bet_points, reward.diamonds, reward.xp
        if milestone:
            bet_points += milestone[0]
            diamonds += milestone[1]
            xp += milestone[2]

        with conn:
            # the streak row is the claim lock; a concurrent claim for today writes nothing
            claimed = self._streaks.record_claim(conn, LoginStreak(
                user_id=user_id,
                current_streak=new_streak,
                longest_streak=longest,
                last_claimed_date=today,
            ))
            if not claimed:
                raise DailyBonusAlreadyClaimedError("Daily bonus already claimed today")
            self._wallet.credit(
                conn, user_id, Currency.BETPOINTS, bet_points,
                TransactionType.DAILY_BONUS.value, f"Daily login day {new_streak}",
            )
            self._wallet.credit(
                conn, user_id, Currency.DIAMONDS, diamonds,
                TransactionType.DAILY_BONUS.value, f"Daily login day {new_streak}",
            )
            self._users.increment_counters(conn, user_id, xp=xp)
            if milestone:
                self._notifications.create(
                    conn, user_id, "LOGIN_MILESTONE", milestone[3],
                    f"{new_streak // 7} weeks in a row! Bonus {milestone[0]} BP and {milestone[1]} diamonds.",
                    {"weeks": new_streak // 7},
                )
            self._achievements.check(conn, user_id, longest_login_streak=longest)
        logger.info("User %s claimed daily bonus day %d", user_id, new_streak)
        return {
            "streak": new_streak,
            "day": reward.day,
            "bet_points": bet_points,
            "diamonds": diamonds,
            "xp": xp,
            "milestone": milestone[3] if milestone else None,
        }
