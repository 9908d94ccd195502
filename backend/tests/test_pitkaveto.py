"""
Tests for pitkäveto (accumulator) pricing, validation, statistics and
selection settlement.
"""
from __future__ import annotations

from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

import sys
sys.path.insert(0, str(Path(__file__).resolve().parent.parent.parent))

from backend.betting.pitkaveto import (
    PricedSelection,
    parse_correct_score,
    pitkaveto_stats,
    potential_win,
    price_pitkaveto,
    selection_odds,
    validate_pitkaveto,
)
from backend.betting.settlement import (
    evaluate_live_bet,
    evaluate_selection,
    first_goal_after,
    level_for_total_staked,
    level_up_rewards,
)
from backend.models import Bet, BetSelection, MatchEventRecord, MatchOdds

NOW = datetime(2026, 5, 1, 12, 0, tzinfo=timezone.utc)
KICKOFF = NOW + timedelta(hours=4)


def _sel(match_id: str, odds: int, market: str = "MATCH_RESULT", is_derby: bool = False, start=KICKOFF) -> PricedSelection:
    return PricedSelection(match_id=match_id, market=market, selection="HOME", odds=odds, start_time=start, is_derby=is_derby)


def _board() -> MatchOdds:
    return MatchOdds(
        match_id="m1", home_win=200, draw=340, away_win=380,
        enhanced_home_win=260, enhanced_draw=440, enhanced_away_win=500,
        over_25=190, under_25=195, btts_yes=210, btts_no=220,
    )


def _goal(minute: int, team: str) -> MatchEventRecord:
    return MatchEventRecord(id=f"g{minute}", match_id="m1", minute=minute, event_type="goal", team=team, player=None, description="Goal")


# ---------- pricing ----------


def test_price_three_favourites():
    price = price_pitkaveto([_sel("a", 150), _sel("b", 160), _sel("c", 170)])
    assert price.base_odds == 408
    assert price.total_odds == 471
    assert price.bonus_reasons == ["3 selections: +5%", "All favourites bonus: +10%"]


def test_price_underdogs_mixed_markets_derby_and_boost():
    sels = [
        _sel("a", 400, "MATCH_RESULT"),
        _sel("b", 400, "BTTS", is_derby=True),
        _sel("c", 400, "CORRECT_SCORE"),
    ]
    price = price_pitkaveto(sels, diamond_boost="SMALL")
    assert price.base_odds == 6400
    assert price.total_odds == 15301
    assert len(price.bonus_reasons) == 5
    assert "Diamond boost: 1.5x" in price.bonus_reasons


def test_price_two_selections_has_no_bonus():
    price = price_pitkaveto([_sel("a", 200), _sel("b", 250)])
    assert price.total_odds == 500
    assert price.bonus_multiplier == 1.0
    assert price.bonus_reasons == []


def test_potential_win():
    assert potential_win(100, 471) == 471


# ---------- validation ----------


def test_validate_requires_two_selections():
    assert validate_pitkaveto([_sel("a", 200)], NOW) == ["Minimum 2 selections required"]


def test_validate_rejects_same_match_low_odds_and_started():
    errors = validate_pitkaveto(
        [_sel("a", 200), _sel("a", 105), _sel("b", 200, start=NOW - timedelta(minutes=1))],
        NOW,
    )
    assert "Cannot select multiple outcomes from the same match" in errors
    assert any("odds too low" in e for e in errors)
    assert any("already started" in e for e in errors)


def test_validate_accepts_valid_slip():
    assert validate_pitkaveto([_sel("a", 200), _sel("b", 300)], NOW) == []


# ---------- selection odds ----------


def test_selection_odds_from_board():
    board = _board()
    assert selection_odds(board, "MATCH_RESULT", "HOME") == 260
    assert selection_odds(board, "OVER_UNDER_25", "UNDER") == 195
    assert selection_odds(board, "BTTS", "NO") == 220
    assert selection_odds(board, "DOUBLE_CHANCE", "HOME_DRAW") == 126
    assert selection_odds(board, "CORRECT_SCORE", "2-1") == 1150
    assert selection_odds(board, "CORRECT_SCORE", "0-0") == 600


def test_selection_odds_rejects_bad_input():
    board = _board()
    with pytest.raises(ValueError, match="Unknown market"):
        selection_odds(board, "FIRST_SCORER", "HOME")
    with pytest.raises(ValueError):
        selection_odds(board, "BTTS", "MAYBE")
    with pytest.raises(ValueError):
        parse_correct_score("10-0")
    with pytest.raises(ValueError):
        parse_correct_score("two-one")


# ---------- statistics ----------


def test_pitkaveto_stats():
    def bet(i: int, status: str, payout: int) -> Bet:
        return Bet(
            id=f"b{i}", user_id="u1", bet_type="PITKAVETO", stake=100, total_odds=300 + 100 * i,
            potential_win=payout, created_at=NOW, status=status, payout=payout,
            settled_at=NOW + timedelta(hours=i),
            selections=[
                BetSelection(id=f"s{i}a", bet_id=f"b{i}", match_id="a", market="BTTS", selection="YES", odds=200),
                BetSelection(id=f"s{i}b", bet_id=f"b{i}", match_id="b", market="MATCH_RESULT", selection="HOME", odds=150),
                BetSelection(id=f"s{i}c", bet_id=f"b{i}", match_id="c", market="BTTS", selection="NO", odds=180),
            ],
        )

    stats = pitkaveto_stats([bet(1, "WON", 500), bet(2, "LOST", 0), bet(3, "WON", 300)])
    assert stats["total_placed"] == 3
    assert stats["total_won"] == 2
    assert stats["win_rate"] == 66.67
    assert stats["average_odds"] == 500
    assert stats["average_selections"] == 3
    assert stats["biggest_win"] == 500
    assert stats["current_streak"] == 1
    assert stats["best_streak"] == 1
    assert stats["favourite_market"] == "BTTS"
    assert stats["profit_loss"] == 500


def test_pitkaveto_stats_empty():
    stats = pitkaveto_stats([])
    assert stats["total_placed"] == 0
    assert stats["favourite_market"] == "MATCH_RESULT"


# ---------- settlement ----------


@pytest.mark.parametrize(
    "market,selection,home,away,expected",
    [
        ("MATCH_RESULT", "HOME", 2, 1, "WON"),
        ("MATCH_RESULT", "DRAW", 2, 1, "LOST"),
        ("OVER_UNDER_25", "OVER", 2, 1, "WON"),
        ("OVER_UNDER_25", "UNDER", 2, 1, "LOST"),
        ("BTTS", "NO", 1, 0, "WON"),
        ("DOUBLE_CHANCE", "AWAY_DRAW", 1, 1, "WON"),
        ("DOUBLE_CHANCE", "HOME_AWAY", 1, 1, "LOST"),
        ("CORRECT_SCORE", "2-1", 2, 1, "WON"),
        ("CORRECT_SCORE", "1-2", 2, 1, "LOST"),
    ],
)
def test_evaluate_selection(market, selection, home, away, expected):
    assert evaluate_selection(market, selection, home, away) == expected


def test_evaluate_selection_unknown_market():
    with pytest.raises(ValueError):
        evaluate_selection("FIRST_SCORER", "HOME", 1, 0)


def test_first_goal_after_is_strict():
    goals = [_goal(20, "home"), _goal(55, "away")]
    assert first_goal_after(goals, 10) == "home"
    assert first_goal_after(goals, 20) == "away"
    assert first_goal_after(goals, 60) is None


def test_evaluate_live_bet_markets():
    goals = [_goal(20, "home"), _goal(55, "away")]
    assert evaluate_live_bet("match_result", "DRAW", 1, 1, 10, goals) == "WON"
    assert evaluate_live_bet("total_goals", "over_1", 1, 1, 10, goals) == "WON"
    assert evaluate_live_bet("total_goals", "under_1", 1, 1, 10, goals) == "LOST"
    assert evaluate_live_bet("btts", "YES", 1, 1, 10, goals) == "WON"
    assert evaluate_live_bet("next_goal", "AWAY", 1, 1, 30, goals) == "WON"
    assert evaluate_live_bet("next_goal", "HOME", 1, 1, 30, goals) == "LOST"
    assert evaluate_live_bet("next_goal", "NONE", 1, 1, 60, goals) == "WON"


def test_evaluate_live_bet_unsettleable_is_void():
    assert evaluate_live_bet("corners", "OVER", 1, 1, 10, []) == "VOID"
    assert evaluate_live_bet("total_goals", "lots", 1, 1, 10, []) == "VOID"
    assert evaluate_live_bet("next_goal", "MAYBE", 1, 1, 10, []) == "VOID"


def test_levels_from_total_staked():
    assert level_for_total_staked(0) == 1
    assert level_for_total_staked(4_999) == 1
    assert level_for_total_staked(5_000) == 2
    assert level_for_total_staked(700_000) == 10
    assert level_up_rewards(1, 3) == (5000, 50)
    assert level_up_rewards(4, 4) == (0, 0)
