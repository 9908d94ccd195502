"""
Daily challenges per player: generated on first touch each UTC day, moved
forward by bet activity, and paid out when claimed.
"""
from __future__ import annotations

import logging
import sqlite3
from datetime import date, datetime, timezone
from typing import Any

from backend.betting.challenges import (
    TEMPLATES_BY_ID,
    BetActivity,
    advance,
    challenge_seed,
    generate_daily_challenges,
)
from backend.derby import DerbyType, detect_derby
from backend.models import Currency, TransactionType, UserChallenge
from backend.persistence.repositories import (
    ChallengeRepository,
    MatchRepository,
    NotificationRepository,
    UserRepository,
)
from backend.services.achievement_service import AchievementService
from backend.services.errors import ChallengeError, ForbiddenError, NotFoundError
from backend.services.wallet import Wallet
from backend.simulation.rng import SeededRNG

logger = logging.getLogger(__name__)


class ChallengeService:
    def __init__(self, wallet: Wallet | None = None, achievements: AchievementService | None = None) -> None:
        self._users = UserRepository()
        self._matches = MatchRepository()
        self._challenges = ChallengeRepository()
        self._notifications = NotificationRepository()
        self._wallet = wallet or Wallet()
        self._achievements = achievements or AchievementService(self._wallet)

    def _derby_type_on(self, conn: sqlite3.Connection, day: date) -> DerbyType | None:
        for match in self._matches.derbies_on(conn, day):
            derby = detect_derby(match.home_team_name, match.away_team_name)
            if derby is not None:
                return derby.derby_type
        return None

    def ensure_today(self, conn: sqlite3.Connection, user_id: str, today: date) -> list[UserChallenge]:
        """Today's challenges, generating them on first call. Caller owns the transaction."""
        existing = self._challenges.list_for_day(conn, user_id, today)
        if existing:
            return existing
        user = self._users.get(conn, user_id)
        if user is None:
            raise NotFoundError(f"User not found: {user_id}")
        templates = generate_daily_challenges(
            today, user.level, SeededRNG(challenge_seed(user_id, today)), self._derby_type_on(conn, today)
        )
        for t in templates:
            self._challenges.create_if_missing(
                conn, user_id, today, t.id, t.name, t.description, t.requirement.value, t.difficulty.value,
                t.target, t.reward.bet_points, t.reward.diamonds, t.reward.xp,
            )
        logger.debug("Generated %d challenges for %s on %s", len(templates), user_id, today)
        return self._challenges.list_for_day(conn, user_id, today)

    def daily_challenges(self, conn: sqlite3.Connection, user_id: str, now: datetime | None = None) -> list[dict[str, Any]]:
        today = (now or datetime.now(timezone.utc)).date()
        with conn:
            challenges = self.ensure_today(conn, user_id, today)
        return [c.to_dict() for c in challenges]

    def record_activity(
        self,
        conn: sqlite3.Connection,
        user_id: str,
        activity: BetActivity,
        now: datetime | None = None,
    ) -> list[UserChallenge]:
        """Advance today's open challenges. Returns those completed by this activity. Caller owns the transaction."""
        today = (now or datetime.now(timezone.utc)).date()
        completed = []
        for challenge in self.ensure_today(conn, user_id, today):
            template = TEMPLATES_BY_ID.get(challenge.template_id)
            if template is None or challenge.completed:
                continue
            progress = advance(template, challenge.progress, activity)
            if progress == challenge.progress:
                continue
            done = progress >= challenge.target
            if self._challenges.update_progress(conn, challenge.id, progress, done):
                self._notifications.create(
                    conn, user_id, "CHALLENGE_COMPLETED", f"Challenge completed: {challenge.name}",
                    f"Claim {challenge.reward_bet_points} BP and {challenge.reward_diamonds} diamonds.",
                    {"challenge_id": challenge.id},
                )
                logger.info("User %s completed challenge %s", user_id, challenge.template_id)
                completed.append(challenge)
        return completed

    def claim(self, conn: sqlite3.Connection, user_id: str, challenge_id: str) -> dict[str, Any]:
        challenge = self._challenges.get(conn, challenge_id)
        if challenge is None:
            raise NotFoundError(f"Challenge not found: {challenge_id}")
        if challenge.user_id != user_id:
            raise ForbiddenError("Challenge belongs to another user")
        if not challenge.completed:
            raise ChallengeError(f"Challenge not completed: {challenge.name}")

        with conn:
            if not self._challenges.mark_claimed(conn, challenge.id):
                raise ChallengeError("Reward already claimed")
            self._wallet.credit(
                conn, user_id, Currency.BETPOINTS, challenge.reward_bet_points,
                TransactionType.CHALLENGE_REWARD.value, f"Challenge: {challenge.name}",
                reference=challenge.id,
            )
            self._wallet.credit(
                conn, user_id, Currency.DIAMONDS, challenge.reward_diamonds,
                TransactionType.CHALLENGE_REWARD.value, f"Challenge: {challenge.name}",
                reference=challenge.id,
            )
            self._users.increment_counters(conn, user_id, xp=challenge.reward_xp, challenges_completed=1)
            self._achievements.check(conn, user_id)
        logger.info("User %s claimed challenge %s", user_id, challenge.template_id)
        user = self._users.get(conn, user_id)
        if user is None:
            raise NotFoundError(f"User not found: {user_id}")
        return {
            "challenge_id": challenge.id,
            "reward": {
                "bet_points": challenge.reward_bet_points,
                "diamonds": challenge.reward_diamonds,
                "xp": challenge.reward_xp,
            },
            "bet_points": user.bet_points,
            "diamonds": user.diamonds,
        }
