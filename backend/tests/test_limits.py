"""
Tests for betting limits by level, VIP status and role.
"""
from __future__ import annotations

from pathlib import Path

import sys
sys.path.insert(0, str(Path(__file__).resolve().parent.parent.parent))

from backend.betting.limits import check_bet, check_stake, limits_for


def _check(limits, stake=100, selection_count=1, total_odds=200, bets_today=0, staked_today=0, staked_this_week=0):
    return check_bet(
        limits,
        stake=stake,
        selection_count=selection_count,
        total_odds=total_odds,
        bets_today=bets_today,
        staked_today=staked_today,
        staked_this_week=staked_this_week,
    )


def test_level_tiers():
    assert limits_for(1, "FREE", "USER").max_stake == 10_000
    assert limits_for(10, "FREE", "USER").max_stake == 25_000
    assert limits_for(25, "FREE", "USER").max_stake == 50_000


def test_vip_scaling():
    vip = limits_for(1, "VIP_MONTHLY", "USER")
    assert vip.max_stake == 15_000
    assert vip.max_daily_bets == 75
    season = limits_for(1, "SEASON_PASS", "USER")
    assert season.max_stake == 20_000
    assert season.max_weekly_stake == 400_000


def test_admin_override():
    limits = limits_for(1, "FREE", "ADMIN")
    assert limits.max_stake == 1_000_000
    assert limits.max_daily_bets == 1000


def test_check_stake():
    limits = limits_for(1, "FREE", "USER")
    assert check_stake(limits, 9) == "Minimum stake is 10 BetPoints"
    assert check_stake(limits, 10_001) == "Maximum stake is 10000 BetPoints"
    assert check_stake(limits, 500) is None


def test_check_bet_passes_normal_bet():
    assert _check(limits_for(1, "FREE", "USER")) is None


def test_check_bet_selection_and_odds_bounds():
    limits = limits_for(1, "FREE", "USER")
    assert "selections" in _check(limits, selection_count=11)
    assert "Minimum total odds" in _check(limits, total_odds=100)
    assert "Maximum total odds" in _check(limits, total_odds=100_001)


def test_check_bet_potential_win_cap():
    limits = limits_for(1, "FREE", "USER")
    assert "potential win" in _check(limits, stake=10_000, total_odds=20_000)


def test_check_bet_daily_and_weekly_caps():
    limits = limits_for(1, "FREE", "USER")
    assert "Daily bet limit" in _check(limits, bets_today=50)
    assert "Daily stake limit" in _check(limits, stake=1000, staked_today=49_500)
    assert "Weekly stake limit" in _check(limits, stake=1000, staked_this_week=199_500)
