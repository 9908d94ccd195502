"""
Betting limits by level, VIP status and role.
Pure checks; the service supplies today's and this week's totals.
"""
from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Any

from backend.models import UserRole, VipStatus

MIN_TOTAL_ODDS = 101
MAX_TOTAL_ODDS = 100_000


@dataclass
class BettingLimits:
    min_stake: int = 10
    max_stake: int = 10_000
    max_daily_bets: int = 50
    max_daily_stake: int = 50_000
    max_weekly_stake: int = 200_000
    max_selections: int = 10
    max_potential_win: int = 1_000_000

    def to_dict(self) -> dict[str, Any]:
        d = asdict(self)
        d["min_total_odds"] = MIN_TOTAL_ODDS
        d["max_total_odds"] = MAX_TOTAL_ODDS
        return d


def _scale(limits: BettingLimits, factor: float, daily_bets: int) -> None:
    limits.max_stake = int(limits.max_stake * factor)
    limits.max_daily_stake = int(limits.max_daily_stake * factor)
    limits.max_weekly_stake = int(limits.max_weekly_stake * factor)
    limits.max_potential_win = int(limits.max_potential_win * factor)
    limits.max_daily_bets = daily_bets


def limits_for(level: int, vip_status: str, role: str) -> BettingLimits:
    limits = BettingLimits()
    if level >= 10:
        limits.max_stake = 25_000
        limits.max_daily_stake = 100_000
        limits.max_weekly_stake = 500_000
        limits.max_selections = 15
        limits.max_potential_win = 2_000_000
    if level >= 20:
        limits.max_stake = 50_000
        limits.max_daily_stake = 200_000
        limits.max_weekly_stake = 1_000_000
        limits.max_selections = 20
        limits.max_potential_win = 5_000_000

    if vip_status == VipStatus.VIP_MONTHLY.value:
        _scale(limits, 1.5, 75)
    elif vip_status == VipStatus.SEASON_PASS.value:
        _scale(limits, 2.0, 100)

    if role == UserRole.ADMIN.value:
        limits.max_stake = 1_000_000
        limits.max_daily_stake = 10_000_000
        limits.max_weekly_stake = 100_000_000
        limits.max_daily_bets = 1000
        limits.max_potential_win = 100_000_000
    return limits


def check_stake(limits: BettingLimits, stake: int) -> str | None:
    if stake < limits.min_stake:
        return f"Minimum stake is {limits.min_stake} BetPoints"
    if stake > limits.max_stake:
        return f"Maximum stake is {limits.max_stake} BetPoints"
    return None


def check_bet(
    limits: BettingLimits,
    stake: int,
    selection_count: int,
    total_odds: int,
    bets_today: int,
    staked_today: int,
    staked_this_week: int,
) -> str | None:
    """First violated limit as a user-facing message, or None."""
    error = check_stake(limits, stake)
    if error:
        return error
    if selection_count > limits.max_selections:
        return f"Maximum {limits.max_selections} selections allowed"
    if total_odds < MIN_TOTAL_ODDS:
        return f"Minimum total odds is {MIN_TOTAL_ODDS / 100:.2f}"
    if total_odds > MAX_TOTAL_ODDS:
        return f"Maximum total odds is {MAX_TOTAL_ODDS / 100:.2f}"
    if stake * total_odds / 100 > limits.max_potential_win:
        return f"Maximum potential win is {limits.max_potential_win} BetPoints"
    if bets_today >= limits.max_daily_bets:
        return f"Daily bet limit reached ({limits.max_daily_bets} bets)"
    if staked_today + stake > limits.max_daily_stake:
        return f"Daily stake limit is {limits.max_daily_stake} BetPoints"
    if staked_this_week + stake > limits.max_weekly_stake:
        return f"Weekly stake limit is {limits.max_weekly_stake} BetPoints"
    return None
