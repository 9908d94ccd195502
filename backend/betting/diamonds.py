"""
Diamond economy: earn rates, odds boosts and timed diamond events.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any


class BoostType(str, Enum):
    SMALL = "SMALL"
    MEDIUM = "MEDIUM"
    LARGE = "LARGE"


@dataclass(frozen=True)
class BoostOption:
    cost: int
    multiplier: float
    label: str


BOOST_OPTIONS: dict[BoostType, BoostOption] = {
    BoostType.SMALL: BoostOption(10, 1.5, "Small boost"),
    BoostType.MEDIUM: BoostOption(25, 2.0, "Medium boost"),
    BoostType.LARGE: BoostOption(50, 3.0, "Large boost"),
}

LIVE_MULTIPLIER = 2
DERBY_MULTIPLIER = 3

# Streak length -> bonus diamonds
WIN_STREAK_BONUSES = {5: 10, 10: 25}


def live_bet_diamond_reward(odds: int, is_derby: bool) -> int:
    """Diamonds promised on a live bet, by odds tier, doubled for live, tripled for derbies."""
    decimal_odds = odds / 100
    if decimal_odds >= 5.0:
        diamonds = 8
    elif decimal_odds >= 4.0:
        diamonds = 6
    elif decimal_odds >= 3.0:
        diamonds = 4
    elif decimal_odds >= 2.0:
        diamonds = 3
    else:
        diamonds = 2
    diamonds *= LIVE_MULTIPLIER
    if is_derby:
        diamonds *= DERBY_MULTIPLIER
    return diamonds


def level_up_diamonds(level: int) -> int:
    return level * 10


def win_streak_bonus(streak: int) -> int:
    return WIN_STREAK_BONUSES.get(streak, 0)


def parse_boost(kind: str | BoostType) -> BoostType:
    try:
        return BoostType(kind)
    except ValueError:
        raise ValueError(f"Unknown diamond boost: {kind}") from None


def can_afford_boost(diamonds: int, kind: str | BoostType) -> bool:
    return diamonds >= BOOST_OPTIONS[parse_boost(kind)].cost


def apply_boost(odds: int, kind: str | BoostType) -> dict[str, Any]:
    boost = BOOST_OPTIONS[parse_boost(kind)]
    return {
        "boosted_odds": round(odds * boost.multiplier),
        "cost": boost.cost,
        "multiplier": boost.multiplier,
    }


def is_double_diamond_weekend(now: datetime) -> bool:
    # Friday, Saturday, Sunday
    return now.weekday() in (4, 5, 6)


def is_live_betting_rush(now: datetime) -> bool:
    return 18 <= now.hour <= 22


def active_diamond_events(now: datetime) -> list[str]:
    events = []
    if is_double_diamond_weekend(now):
        events.append("DOUBLE_DIAMOND_WEEKEND")
    if is_live_betting_rush(now):
        events.append("LIVE_BETTING_RUSH")
    return events
