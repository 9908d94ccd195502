"""
Live and pre-match odds.

All functions are pure: odds depend only on the selection, the score and the
minute (plus an RNG for pre-match generation). Odds are integer hundredths of
decimal odds (250 == 2.50).
"""
from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any, Protocol

from backend.models import MatchOdds

MATCH_RESULT = "match_result"
TOTAL_GOALS = "total_goals"
NEXT_GOAL = "next_goal"
BTTS = "btts"
LIVE_MARKETS = (MATCH_RESULT, TOTAL_GOALS, NEXT_GOAL, BTTS)
LIVE_SELECTIONS = {
    MATCH_RESULT: ("HOME", "DRAW", "AWAY"),
    NEXT_GOAL: ("HOME", "AWAY", "NONE"),
    BTTS: ("YES", "NO"),
}

UNKNOWN_MARKET_ODDS = 200
UNKNOWN_SELECTION_ODDS = 300
ENHANCED_LIVE_MULTIPLIER = 1.3
BOOKMAKER_MARGIN = 1.08
LIVE_OVER_UNDER_LINES = (1.5, 3.5)


class _Uniform(Protocol):
    def uniform(self, a: float, b: float) -> float: ...


def _clamp(lo: int, hi: int, value: float) -> int:
    return int(max(lo, min(hi, round(value))))


def time_remaining(minute: int) -> int:
    return max(0, 90 - minute)


# ---------- Single-selection live odds ----------


def match_result_odds(selection: str, score_diff: int, minute: int) -> int:
    """HOME / DRAW / AWAY. score_diff is home minus away."""
    tr = time_remaining(minute)
    if selection == "HOME":
        if score_diff > 0:
            return max(110, 200 - score_diff * 40 - tr * 2)
        if score_diff < 0:
            return min(1000, 400 + abs(score_diff) * 80 + tr * 5)
        return 280 - tr * 2
    if selection == "AWAY":
        if score_diff < 0:
            return max(110, 250 - abs(score_diff) * 40 - tr * 2)
        if score_diff > 0:
            return min(1000, 500 + score_diff * 80 + tr * 5)
        return 320 - tr * 2
    if selection == "DRAW":
        if score_diff == 0:
            return max(250, 400 - (90 - minute) * 10) if minute > 80 else 350
        return min(800, 400 + abs(score_diff) * 60)
    return UNKNOWN_SELECTION_ODDS


def parse_goal_line(selection: str) -> tuple[str, float]:
    """'over_2' -> ('over', 2.0). Raises ValueError on anything else."""
    side, _, raw = selection.lower().partition("_")
    if side not in ("over", "under") or not raw:
        raise ValueError(f"Invalid total goals selection: {selection}")
    try:
        line = float(raw)
    except ValueError:
        raise ValueError(f"Invalid total goals selection: {selection}") from None
    if not math.isfinite(line) or line < 0:
        raise ValueError(f"Invalid total goals selection: {selection}")
    return side, line


def check_live_selection(market: str, selection: str) -> str | None:
    """Error message if the selection cannot belong to a known live market. Unknown markets pass."""
    if market == TOTAL_GOALS:
        try:
            parse_goal_line(selection)
        except ValueError as e:
            return str(e)
        return None
    allowed = LIVE_SELECTIONS.get(market)
    if allowed is not None and selection not in allowed:
        return f"Invalid {market} selection: {selection} (expected one of {', '.join(allowed)})"
    return None


def total_goals_odds(selection: str, goals: int, minute: int) -> int:
    """over_X / under_X, settled against threshold X + 0.5."""
    side, line = parse_goal_line(selection)
    threshold = line + 0.5
    tr = time_remaining(minute)
    if side == "over":
        if goals > threshold:
            return 100
        needed = threshold - goals
        return max(110, round(200 + needed * 80 + (90 - tr) * 3))
    if goals <= threshold:
        return 110 if minute > 85 else max(110, 180 - tr * 2)
    return 1000


def next_goal_odds(selection: str, score_diff: int, minute: int) -> int:
    """HOME / AWAY / NONE."""
    if selection == "HOME":
        odds = 300
        if score_diff < 0:
            odds -= 80
        elif score_diff > 0:
            odds += 60
    elif selection == "AWAY":
        odds = 300
        if score_diff > 0:
            odds -= 80
        elif score_diff < 0:
            odds += 60
    else:
        odds = 400
        if minute > 80:
            odds -= 100
    if minute > 75:
        odds += 100
    return max(150, odds)


def btts_odds(selection: str, home_score: int, away_score: int, minute: int) -> int:
    both_scored = home_score > 0 and away_score > 0
    if selection == "YES":
        if both_scored:
            return 100
        return max(120, 200 + (90 - time_remaining(minute)) * 4)
    if both_scored:
        return 1000
    return 110 if minute > 80 else 180


def current_live_odds(market: str, selection: str, home_score: int, away_score: int, minute: int) -> int:
    """Dispatch by market. Unknown markets price at a flat fallback."""
    diff = home_score - away_score
    if market == MATCH_RESULT:
        return match_result_odds(selection, diff, minute)
    if market == TOTAL_GOALS:
        return total_goals_odds(selection, home_score + away_score, minute)
    if market == NEXT_GOAL:
        return next_goal_odds(selection, diff, minute)
    if market == BTTS:
        return btts_odds(selection, home_score, away_score, minute)
    return UNKNOWN_MARKET_ODDS


# ---------- Live boards (served to the live betting screen) ----------


def live_over_under(line: float, side: str, goals: int, minute: int) -> int:
    if side == "over":
        if goals > line:
            return 100
        needed = max(0.0, line - goals + 0.5)
        return _clamp(105, 800, 200 + 50 * needed + 2 * minute)
    if goals > line:
        return 800
    if minute > 85:
        return 110
    return _clamp(105, 800, 200 + 80 * goals - 2 * minute)


def next_corner_odds(side: str, score_diff: int, minute: int) -> int:
    odds = 450
    trailing = (side == "HOME" and score_diff < 0) or (side == "AWAY" and score_diff > 0)
    if trailing:
        odds -= 50
    if minute > 80:
        odds += 75
    return max(150, odds)


def next_card_odds(side: str, minute: int, is_derby: bool) -> int:
    odds = 350
    if is_derby:
        odds -= 50
    if minute > 80:
        odds += 75
    return max(150, odds)


def live_markets_board(home_score: int, away_score: int, minute: int, is_derby: bool) -> dict[str, int]:
    """Flat board of every in-play market, keyed market:selection."""
    diff = home_score - away_score
    goals = home_score + away_score
    board: dict[str, int] = {}
    for sel in ("HOME", "AWAY", "NONE"):
        board[f"next_goal:{sel}"] = next_goal_odds(sel, diff, minute)
    for line in LIVE_OVER_UNDER_LINES:
        board[f"over_under:over_{line}"] = live_over_under(line, "over", goals, minute)
        board[f"over_under:under_{line}"] = live_over_under(line, "under", goals, minute)
    board["btts:YES"] = btts_odds("YES", home_score, away_score, minute)
    board["btts:NO"] = btts_odds("NO", home_score, away_score, minute)
    for sel in ("HOME", "AWAY"):
        board[f"next_corner:{sel}"] = next_corner_odds(sel, diff, minute)
        board[f"next_card:{sel}"] = next_card_odds(sel, minute, is_derby)
    return board


def update_match_result_board(odds: MatchOdds, home_score: int, away_score: int, minute: int) -> MatchOdds:
    """Move the stored 1X2 row after a goal. Returns the same object, mutated."""
    diff = home_score - away_score
    tr = time_remaining(minute)
    if diff > 0:
        odds.home_win = max(110, odds.home_win - 20 * diff - 2 * tr)
        odds.away_win = min(800, odds.away_win + 40 * diff + 3 * tr)
    elif diff < 0:
        odds.away_win = max(110, odds.away_win - 20 * abs(diff) - 2 * tr)
        odds.home_win = min(800, odds.home_win + 40 * abs(diff) + 3 * tr)
    elif minute > 70:
        odds.draw = max(250, odds.draw - 5 * (90 - minute))
    odds.enhanced_home_win = round(odds.home_win * ENHANCED_LIVE_MULTIPLIER)
    odds.enhanced_draw = round(odds.draw * ENHANCED_LIVE_MULTIPLIER)
    odds.enhanced_away_win = round(odds.away_win * ENHANCED_LIVE_MULTIPLIER)
    odds.is_live = True
    odds.last_updated_minute = minute
    return odds


# ---------- Pre-match generation ----------


@dataclass
class TeamRating:
    name: str
    league_tier: int
    is_popular: bool = False


def team_strength(team: TeamRating, is_home: bool, rng: _Uniform) -> float:
    strength = 50.0
    if team.league_tier == 1:
        strength += 20
    elif team.league_tier == 2:
        strength += 10
    if team.is_popular:
        strength += 15
    if is_home:
        strength += 10
    strength += rng.uniform(-10, 10)
    return max(strength, 20.0)


def _enhance(odds: int, rng: _Uniform) -> int:
    return round(odds * rng.uniform(1.2, 1.6))


def generate_prematch_odds(match_id: str, home: TeamRating, away: TeamRating, rng: _Uniform) -> MatchOdds:
    """Opening board from team strengths with an 8% margin."""
    hs = team_strength(home, True, rng)
    as_ = team_strength(away, False, rng)
    home_p = hs / (hs + as_) * 0.7 + 0.15
    away_p = as_ / (hs + as_) * 0.7 + 0.15
    draw_p = 1 - home_p - away_p + 0.1
    total = home_p + draw_p + away_p
    home_win = round(BOOKMAKER_MARGIN / (home_p / total) * 100)
    draw = round(BOOKMAKER_MARGIN / (draw_p / total) * 100)
    away_win = round(BOOKMAKER_MARGIN / (away_p / total) * 100)
    btts_yes = round(rng.uniform(180, 260))
    return MatchOdds(
        match_id=match_id,
        home_win=home_win,
        draw=draw,
        away_win=away_win,
        enhanced_home_win=_enhance(home_win, rng),
        enhanced_draw=_enhance(draw, rng),
        enhanced_away_win=_enhance(away_win, rng),
        over_25=round(rng.uniform(150, 250)),
        under_25=round(rng.uniform(150, 250)),
        btts_yes=btts_yes,
        btts_no=round(rng.uniform(180, 260)),
    )


def odds_snapshot(odds: MatchOdds | None, home_score: int, away_score: int, minute: int, is_derby: bool) -> dict[str, Any]:
    """API payload: stored board plus freshly computed in-play markets."""
    data = odds.to_dict() if odds else {}
    data["live_markets"] = live_markets_board(home_score, away_score, minute, is_derby)
    return data
