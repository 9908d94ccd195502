"""
Daily challenges: the template pool, per-day generation and progress rules.

Every player gets a fresh set each UTC day, drawn deterministically from
(user, day) so the set is stable across requests. The challenge service
stores progress and pays rewards; nothing here touches the database.
"""
from __future__ import annotations

import zlib
from dataclasses import dataclass, replace
from datetime import date
from enum import Enum

from backend.derby import DerbyType, derby_bonus
from backend.models import BetType
from backend.simulation.rng import SeededRNG

MAX_DAILY_CHALLENGES = 4
MEDIUM_FROM_LEVEL = 3
WEEKEND_FROM_LEVEL = 5
DERBY_FROM_LEVEL = 6
THIRD_FROM_LEVEL = 7
HARD_FROM_LEVEL = 8
MEDIUM_CHANCE = 0.7
HARD_CHANCE = 0.1


class Requirement(str, Enum):
    BETS_PLACED = "BETS_PLACED"
    BETS_WON = "BETS_WON"
    COMBO_BET_PLACED = "COMBO_BET_PLACED"
    HIGH_ODDS_WIN = "HIGH_ODDS_WIN"
    LIVE_BETS_PLACED = "LIVE_BETS_PLACED"
    WIN_STREAK = "WIN_STREAK"
    BIG_WIN = "BIG_WIN"
    PERFECT_COMBO_WIN = "PERFECT_COMBO_WIN"
    HIGH_STAKE_BETS = "HIGH_STAKE_BETS"
    WEEKEND_BETS = "WEEKEND_BETS"
    DERBY_WINS = "DERBY_WINS"


class Difficulty(str, Enum):
    EASY = "EASY"
    MEDIUM = "MEDIUM"
    HARD = "HARD"


class ActivityKind(str, Enum):
    PLACED = "PLACED"
    WON = "WON"
    LOST = "LOST"


@dataclass(frozen=True)
class ChallengeReward:
    bet_points: int
    diamonds: int
    xp: int

    def to_dict(self) -> dict[str, int]:
        return {"bet_points": self.bet_points, "diamonds": self.diamonds, "xp": self.xp}


@dataclass(frozen=True)
class ChallengeTemplate:
    """Odds and stakes in hundredths / BP. min_selections implies a pitkäveto."""
    id: str
    name: str
    description: str
    requirement: Requirement
    target: int
    reward: ChallengeReward
    difficulty: Difficulty
    weight: int
    min_odds: int | None = None
    max_odds: int | None = None
    min_stake: int | None = None
    min_selections: int | None = None


@dataclass(frozen=True)
class BetActivity:
    """One thing that happened to a bet: placed, or settled as won or lost."""
    kind: ActivityKind
    stake: int
    odds: int
    payout: int = 0
    is_live: bool = False
    is_derby: bool = False
    bet_type: str = BetType.SINGLE.value
    selection_count: int = 1


CHALLENGE_TEMPLATES: list[ChallengeTemplate] = [
    ChallengeTemplate(
        "daily_bet", "Daily bettor", "Place 3 bets today",
        Requirement.BETS_PLACED, 3, ChallengeReward(300, 5, 50), Difficulty.EASY, 25,
    ),
    ChallengeTemplate(
        "small_winner", "Small winner", "Win 2 bets today",
        Requirement.BETS_WON, 2, ChallengeReward(500, 8, 75), Difficulty.EASY, 20,
    ),
    ChallengeTemplate(
        "safe_bets", "Safe bets", "Place 3 bets with odds of 2.00 or lower",
        Requirement.BETS_PLACED, 3, ChallengeReward(400, 6, 60), Difficulty.EASY, 15,
        max_odds=200,
    ),
    ChallengeTemplate(
        "combo_builder", "Combo builder", "Place a pitkäveto with 4 or more selections",
        Requirement.COMBO_BET_PLACED, 1, ChallengeReward(800, 12, 100), Difficulty.MEDIUM, 8,
        min_selections=4,
    ),
    ChallengeTemplate(
        "risky_business", "Risky business", "Win a bet with odds of 3.00 or higher",
        Requirement.HIGH_ODDS_WIN, 1, ChallengeReward(1000, 15, 125), Difficulty.MEDIUM, 8,
        min_odds=300,
    ),
    ChallengeTemplate(
        "live_action", "Live action", "Place 3 live bets during matches",
        Requirement.LIVE_BETS_PLACED, 3, ChallengeReward(1200, 18, 150), Difficulty.MEDIUM, 6,
    ),
    ChallengeTemplate(
        "winning_streak", "Winning streak", "Win 3 bets in a row today",
        Requirement.WIN_STREAK, 3, ChallengeReward(1500, 20, 175), Difficulty.MEDIUM, 5,
    ),
    ChallengeTemplate(
        "jackpot_hunter", "Jackpot hunter", "Win a bet paying 2000 BP or more",
        Requirement.BIG_WIN, 2000, ChallengeReward(2500, 35, 250), Difficulty.HARD, 2,
    ),
    ChallengeTemplate(
        "perfect_combo", "Perfect combo", "Win a pitkäveto with 6 or more selections",
        Requirement.PERFECT_COMBO_WIN, 1, ChallengeReward(5000, 50, 400), Difficulty.HARD, 1,
        min_selections=6,
    ),
    ChallengeTemplate(
        "high_roller_day", "High roller day", "Place 5 bets staking 500 BP or more each",
        Requirement.HIGH_STAKE_BETS, 5, ChallengeReward(3000, 40, 300), Difficulty.HARD, 2,
        min_stake=500,
    ),
    # weight 0: added by the weekend and derby rules, never drawn
    ChallengeTemplate(
        "weekend_warrior", "Weekend warrior", "Place 10 bets over the weekend",
        Requirement.WEEKEND_BETS, 10, ChallengeReward(1500, 25, 200), Difficulty.MEDIUM, 0,
    ),
    ChallengeTemplate(
        "derby_day", "Derby day", "Win 2 derby bets today",
        Requirement.DERBY_WINS, 2, ChallengeReward(2000, 30, 250), Difficulty.HARD, 0,
    ),
]

TEMPLATES_BY_ID = {t.id: t for t in CHALLENGE_TEMPLATES}

# Settled on a win; everything else not listed here counts placements.
_COUNTS_WINS = {
    Requirement.BETS_WON,
    Requirement.HIGH_ODDS_WIN,
    Requirement.PERFECT_COMBO_WIN,
    Requirement.DERBY_WINS,
}


def challenge_seed(user_id: str, day: date) -> int:
    """Stable seed so a player's set for a day never changes between requests."""
    return zlib.crc32(f"{user_id}:{day.isoformat()}".encode())


def is_weekend(day: date) -> bool:
    return day.weekday() >= 5


def derby_day_challenge(derby_type: DerbyType) -> ChallengeTemplate:
    """derby_day with its reward scaled by the derby's bonus table."""
    base = TEMPLATES_BY_ID["derby_day"]
    reward = ChallengeReward(
        derby_bonus(base.reward.bet_points, derby_type, "BETPOINTS"),
        derby_bonus(base.reward.diamonds, derby_type, "DIAMONDS"),
        derby_bonus(base.reward.xp, derby_type, "XP"),
    )
    return replace(base, reward=reward)


def _pick(pool: list[ChallengeTemplate], rng: SeededRNG) -> ChallengeTemplate | None:
    total = sum(t.weight for t in pool)
    if total <= 0:
        return None
    roll = rng.random() * total
    for template in pool:
        roll -= template.weight
        if roll < 0:
            return template
    return pool[-1]


def generate_daily_challenges(
    day: date,
    level: int,
    rng: SeededRNG,
    derby_type: DerbyType | None = None,
) -> list[ChallengeTemplate]:
    """
    One easy challenge always; a second that is medium 70% of the time from
    level 3 (easy otherwise); a third from level 7, hard 10% of the time from
    level 8. Weekends add weekend_warrior from level 5 and derby days add a
    scaled derby_day from level 6. Never more than MAX_DAILY_CHALLENGES.
    """
    chosen: list[ChallengeTemplate] = []

    def pool(*difficulties: Difficulty) -> list[ChallengeTemplate]:
        return [
            t for t in CHALLENGE_TEMPLATES
            if t.difficulty in difficulties and t.weight > 0 and t not in chosen
        ]

    def add(template: ChallengeTemplate | None) -> None:
        if template is not None:
            chosen.append(template)

    add(_pick(pool(Difficulty.EASY), rng))
    if level >= MEDIUM_FROM_LEVEL and rng.chance(MEDIUM_CHANCE):
        add(_pick(pool(Difficulty.MEDIUM), rng))
    else:
        add(_pick(pool(Difficulty.EASY), rng))

    if level >= THIRD_FROM_LEVEL:
        if level >= HARD_FROM_LEVEL and rng.chance(HARD_CHANCE):
            add(_pick(pool(Difficulty.HARD), rng))
        else:
            add(_pick(pool(Difficulty.MEDIUM, Difficulty.EASY), rng))

    if is_weekend(day) and level >= WEEKEND_FROM_LEVEL:
        chosen.append(TEMPLATES_BY_ID["weekend_warrior"])
    if derby_type is not None and level >= DERBY_FROM_LEVEL:
        chosen.append(derby_day_challenge(derby_type))
    return chosen[:MAX_DAILY_CHALLENGES]


def qualifies(template: ChallengeTemplate, activity: BetActivity) -> bool:
    if template.min_odds is not None and activity.odds < template.min_odds:
        return False
    if template.max_odds is not None and activity.odds > template.max_odds:
        return False
    if template.min_stake is not None and activity.stake < template.min_stake:
        return False
    if template.min_selections is not None and (
        activity.bet_type != BetType.PITKAVETO.value or activity.selection_count < template.min_selections
    ):
        return False
    if template.requirement is Requirement.LIVE_BETS_PLACED and not activity.is_live:
        return False
    if template.requirement is Requirement.DERBY_WINS and not activity.is_derby:
        return False
    return True


def advance(template: ChallengeTemplate, progress: int, activity: BetActivity) -> int:
    """New progress after one bet activity. Completed challenges stay where they are."""
    if progress >= template.target:
        return progress
    won = activity.kind is ActivityKind.WON
    if template.requirement is Requirement.WIN_STREAK:
        if won:
            return progress + 1
        return 0 if activity.kind is ActivityKind.LOST else progress
    if template.requirement is Requirement.BIG_WIN:
        return max(progress, activity.payout) if won and activity.payout >= template.target else progress
    if not qualifies(template, activity):
        return progress
    if template.requirement in _COUNTS_WINS:
        return progress + 1 if won else progress
    return progress + 1 if activity.kind is ActivityKind.PLACED else progress

