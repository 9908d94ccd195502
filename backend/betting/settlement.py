"""
Outcome evaluation for finished matches, plus level progression.
Pure functions; the services persist the results.
"""
from __future__ import annotations

from bisect import bisect_right

from backend.models import BetStatus, MatchEventRecord

from .diamonds import level_up_diamonds
from .odds import BTTS, MATCH_RESULT, NEXT_GOAL, TOTAL_GOALS, parse_goal_line
from .pitkaveto import parse_correct_score

WON = BetStatus.WON.value
LOST = BetStatus.LOST.value
VOID = BetStatus.VOID.value

# Minimum lifetime stake for each level, level 1 first
LEVEL_THRESHOLDS = [0, 5_000, 15_000, 35_000, 70_000, 125_000, 200_000, 300_000, 450_000, 650_000]
LEVEL_BONUS_BET_POINTS = 1000


def _result(won: bool) -> str:
    return WON if won else LOST


def match_outcome(home: int, away: int) -> str:
    if home > away:
        return "HOME"
    if away > home:
        return "AWAY"
    return "DRAW"


def evaluate_selection(market: str, selection: str, home: int, away: int) -> str:
    """Pre-match selection against the final score. Unknown markets raise ValueError."""
    outcome = match_outcome(home, away)
    if market == "MATCH_RESULT":
        return _result(selection == outcome)
    if market == "OVER_UNDER_25":
        over = home + away > 2.5
        return _result(over if selection == "OVER" else not over)
    if market == "BTTS":
        both = home > 0 and away > 0
        return _result(both if selection == "YES" else not both)
    if market == "DOUBLE_CHANCE":
        covered = {"HOME_DRAW": ("HOME", "DRAW"), "AWAY_DRAW": ("AWAY", "DRAW"), "HOME_AWAY": ("HOME", "AWAY")}
        if selection not in covered:
            raise ValueError(f"Invalid selection {selection} for {market}")
        return _result(outcome in covered[selection])
    if market == "CORRECT_SCORE":
        return _result(parse_correct_score(selection) == (home, away))
    raise ValueError(f"Unknown market: {market}")


def first_goal_after(goals: list[MatchEventRecord], minute: int) -> str | None:
    """Side ('home'/'away') of the first goal strictly after minute, or None."""
    for goal in sorted(goals, key=lambda g: g.minute):
        if goal.minute > minute:
            return goal.team
    return None


def evaluate_live_bet(
    market: str,
    selection: str,
    home: int,
    away: int,
    placed_at_minute: int,
    goals: list[MatchEventRecord],
) -> str:
    """WON / LOST for known live markets, VOID for anything unsettleable."""
    if market == MATCH_RESULT:
        if selection not in ("HOME", "DRAW", "AWAY"):
            return VOID
        return _result(selection == match_outcome(home, away))
    if market == TOTAL_GOALS:
        try:
            side, line = parse_goal_line(selection)
        except ValueError:
            return VOID
        over = home + away > line + 0.5
        return _result(over if side == "over" else not over)
    if market == BTTS:
        if selection not in ("YES", "NO"):
            return VOID
        both = home > 0 and away > 0
        return _result(both if selection == "YES" else not both)
    if market == NEXT_GOAL:
        if selection not in ("HOME", "AWAY", "NONE"):
            return VOID
        scorer = first_goal_after(goals, placed_at_minute)
        if scorer is None:
            return _result(selection == "NONE")
        return _result(selection == scorer.upper())
    return VOID


def level_for_total_staked(total_staked: int) -> int:
    return bisect_right(LEVEL_THRESHOLDS, total_staked)


def level_up_rewards(old_level: int, new_level: int) -> tuple[int, int]:
    """(bet_points, diamonds) owed for every level gained."""
    levels = range(old_level + 1, new_level + 1)
    return (
        sum(LEVEL_BONUS_BET_POINTS * lvl for lvl in levels),
        sum(level_up_diamonds(lvl) for lvl in levels),
    )
