"""
Tests for cash-out eligibility and valuation.
"""
from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path

import sys
sys.path.insert(0, str(Path(__file__).resolve().parent.parent.parent))

from backend.betting.cash_out import (
    calculate_cash_out,
    check_eligibility,
    market_adjustment,
    probability_shift,
    refresh_available,
    refresh_value,
    time_decay,
    value_changed,
)
from backend.models import LiveBet, Match

NOW = datetime(2026, 5, 1, 16, 0, tzinfo=timezone.utc)


def _match(minute: int = 30, home: int = 0, away: int = 0, status: str = "LIVE", is_derby: bool = False) -> Match:
    return Match(
        id="m1", league_id="l1", home_team_id="h", away_team_id="a", start_time=NOW,
        status=status, minute=minute, home_score=home, away_score=away, is_derby=is_derby,
        home_team_name="FC Haka", away_team_name="AC Oulu",
    )


def _bet(market: str = "match_result", selection: str = "HOME", odds: int = 250, placed: int = 10, status: str = "PENDING") -> LiveBet:
    return LiveBet(
        id="b1", user_id="u1", match_id="m1", market=market, selection=selection, odds=odds,
        stake=1000, potential_win=round(1000 * odds / 100), diamond_reward=4,
        placed_at_minute=placed, created_at=NOW, status=status,
    )


def test_eligible_mid_match():
    assert check_eligibility(_bet(), _match(minute=30)) == (True, None)


def test_not_eligible_in_first_minutes():
    ok, reason = check_eligibility(_bet(placed=0), _match(minute=3))
    assert not ok
    assert "first 5 minutes" in reason


def test_not_eligible_after_75():
    ok, reason = check_eligibility(_bet(), _match(minute=80))
    assert not ok
    assert "75th" in reason


def test_not_eligible_right_after_placement():
    ok, reason = check_eligibility(_bet(placed=29), _match(minute=30))
    assert not ok
    assert "2 minutes" in reason


def test_not_eligible_when_settled_or_not_live():
    assert check_eligibility(_bet(status="WON"), _match())[0] is False
    assert check_eligibility(_bet(), _match(status="FINISHED"))[0] is False


def test_probability_shift_is_clamped():
    assert probability_shift(250, 110) == 2.0
    assert probability_shift(110, 10_000) == 0.1
    assert round(probability_shift(200, 400), 2) == 0.5


def test_time_decay_floor():
    assert round(time_decay(10, 30), 4) == 0.9
    assert time_decay(0, 90) == 0.7


def test_market_adjustment():
    assert market_adjustment("next_goal", _match()) == 0.95
    assert market_adjustment("total_goals", _match(home=2, away=1)) == 1.05
    assert market_adjustment("btts", _match(minute=72)) == 0.9
    assert round(market_adjustment("next_goal", _match(is_derby=True)), 4) == 0.9025


def test_winning_position_cashes_out_above_stake():
    quote = calculate_cash_out(_bet(), _match(minute=30, home=1))
    assert quote.value == 1530
    assert quote.profit_loss == 530
    assert quote.profit_percentage == 53.0
    assert quote.factors["current_odds"] == 110
    assert quote.factors["bet_running_time"] == 20


def test_losing_position_cashes_out_below_stake():
    quote = calculate_cash_out(_bet(), _match(minute=30, away=1))
    assert quote.value == 245
    assert quote.profit_loss == -755


def test_value_never_below_ten_percent_of_stake():
    quote = calculate_cash_out(_bet(odds=110), _match(minute=30, away=3))
    assert quote.value == 100


def test_refresh_helpers():
    assert refresh_value(1000, 45) == 425
    assert refresh_value(1000, 95) == 0
    assert refresh_available(74)
    assert not refresh_available(75)


def test_value_changed_tolerance():
    assert not value_changed(1000, 1050)
    assert value_changed(900, 1000)
