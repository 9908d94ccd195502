"""
Achievement catalogue. Each achievement tracks one lifetime player stat
against a target; unlocks are permanent and the reward is claimed once.
"""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any

from .challenges import ChallengeReward

HIGH_STAKE_THRESHOLD = 1000
COMBO_MASTER_MIN_ODDS = 1000


class AchievementCategory(str, Enum):
    BETTING = "BETTING"
    WINNING = "WINNING"
    LOYALTY = "LOYALTY"
    SPECIAL = "SPECIAL"
    SOCIAL = "SOCIAL"


class AchievementTier(str, Enum):
    BRONZE = "BRONZE"
    SILVER = "SILVER"
    GOLD = "GOLD"


@dataclass(frozen=True)
class PlayerStats:
    total_bets: int = 0
    total_wins: int = 0
    best_streak: int = 0
    biggest_win: int = 0
    longest_login_streak: int = 0
    level: int = 1
    derby_wins: int = 0
    live_wins: int = 0
    high_stake_bets: int = 0
    combo_wins: int = 0
    challenges_completed: int = 0


@dataclass(frozen=True)
class Achievement:
    """stat names the PlayerStats field compared against target."""
    id: str
    name: str
    description: str
    category: AchievementCategory
    tier: AchievementTier
    stat: str
    target: int
    reward: ChallengeReward

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "category": self.category.value,
            "tier": self.tier.value,
            "target": self.target,
            "reward": self.reward.to_dict(),
        }


ACHIEVEMENTS: list[Achievement] = [
    Achievement(
        "first_bet", "First bet", "Place your first bet",
        AchievementCategory.BETTING, AchievementTier.BRONZE, "total_bets", 1, ChallengeReward(500, 10, 50),
    ),
    Achievement(
        "combo_master", "Combo master", "Win a pitkäveto at odds of 10.00 or more",
        AchievementCategory.BETTING, AchievementTier.SILVER, "combo_wins", 1, ChallengeReward(2000, 25, 100),
    ),
    Achievement(
        "high_roller", "High roller", "Place 50 bets staking 1000 BP or more",
        AchievementCategory.BETTING, AchievementTier.GOLD, "high_stake_bets", 50, ChallengeReward(5000, 50, 200),
    ),
    Achievement(
        "first_win", "First win", "Win your first bet",
        AchievementCategory.WINNING, AchievementTier.BRONZE, "total_wins", 1, ChallengeReward(750, 15, 75),
    ),
    Achievement(
        "win_streak", "Win streak", "Win 5 bets in a row",
        AchievementCategory.WINNING, AchievementTier.SILVER, "best_streak", 5, ChallengeReward(3000, 30, 150),
    ),
    Achievement(
        "big_winner", "Big winner", "Win a single bet paying 10 000 BP or more",
        AchievementCategory.WINNING, AchievementTier.GOLD, "biggest_win", 10000, ChallengeReward(7500, 75, 300),
    ),
    Achievement(
        "daily_visitor", "Daily visitor", "Claim the daily bonus 7 days in a row",
        AchievementCategory.LOYALTY, AchievementTier.SILVER, "longest_login_streak", 7,
        ChallengeReward(1500, 20, 100),
    ),
    Achievement(
        "veteran_player", "Veteran", "Reach level 10",
        AchievementCategory.LOYALTY, AchievementTier.GOLD, "level", 10, ChallengeReward(10000, 100, 500),
    ),
    Achievement(
        "derby_specialist", "Derby specialist", "Win 10 derby bets",
        AchievementCategory.SPECIAL, AchievementTier.SILVER, "derby_wins", 10, ChallengeReward(4000, 40, 200),
    ),
    Achievement(
        "live_legend", "Live legend", "Win 25 live bets",
        AchievementCategory.SPECIAL, AchievementTier.GOLD, "live_wins", 25, ChallengeReward(6000, 60, 250),
    ),
    Achievement(
        "challenge_champion", "Challenge champion", "Complete 20 daily challenges",
        AchievementCategory.SOCIAL, AchievementTier.SILVER, "challenges_completed", 20,
        ChallengeReward(2500, 35, 125),
    ),
]

ACHIEVEMENTS_BY_ID = {a.id: a for a in ACHIEVEMENTS}


def achievement_progress(achievement: Achievement, stats: PlayerStats) -> tuple[int, bool]:
    """(progress capped at target, reached)."""
    value = getattr(stats, achievement.stat)
    return min(value, achievement.target), value >= achievement.target


def newly_reached(stats: PlayerStats, unlocked: set[str]) -> list[Achievement]:
    return [
        a for a in ACHIEVEMENTS
        if a.id not in unlocked and achievement_progress(a, stats)[1]
    ]
