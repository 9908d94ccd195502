"""
Pre-match markets and pitkäveto (accumulator) pricing.

A pitkäveto combines 2-15 selections from different matches. Its odds are the
product of the selection odds times F2P bonuses: selection count, all
favourites, all underdogs, mixed markets, derby included and an optional
diamond boost.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Iterable

from backend.models import Bet, BetStatus, MatchOdds

from .diamonds import BOOST_OPTIONS, parse_boost

MIN_SELECTIONS = 2
MAX_SELECTIONS = 15
MIN_ODDS_PER_SELECTION = 110

SELECTION_COUNT_BONUS = {n: round(1.0 + 0.05 * (n - 2), 2) for n in range(2, MAX_SELECTIONS + 1)}
ALL_FAVOURITES_BONUS = 1.1
ALL_UNDERDOGS_BONUS = 1.2
MIXED_MARKETS_BONUS = 1.15
DERBY_INCLUDED_BONUS = 1.1
FAVOURITE_BELOW = 200
UNDERDOG_ABOVE = 300

MARKETS: dict[str, tuple[str, ...]] = {
    "MATCH_RESULT": ("HOME", "DRAW", "AWAY"),
    "OVER_UNDER_25": ("OVER", "UNDER"),
    "BTTS": ("YES", "NO"),
    "DOUBLE_CHANCE": ("HOME_DRAW", "AWAY_DRAW", "HOME_AWAY"),
    "CORRECT_SCORE": (),
}
MAX_CORRECT_SCORE_GOALS = 9


@dataclass
class PricedSelection:
    match_id: str
    market: str
    selection: str
    odds: int
    start_time: datetime
    is_derby: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "match_id": self.match_id,
            "market": self.market,
            "selection": self.selection,
            "odds": self.odds,
            "is_derby": self.is_derby,
        }


@dataclass
class SlipPrice:
    base_odds: int
    bonus_multiplier: float
    total_odds: int
    bonus_reasons: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "base_odds": self.base_odds,
            "bonus_multiplier": round(self.bonus_multiplier, 4),
            "total_odds": self.total_odds,
            "bonus_reasons": list(self.bonus_reasons),
        }


def parse_correct_score(selection: str) -> tuple[int, int]:
    """'2-1' -> (2, 1)."""
    try:
        home_raw, away_raw = selection.split("-")
        home, away = int(home_raw), int(away_raw)
    except ValueError:
        raise ValueError(f"Invalid correct score selection: {selection}") from None
    if not (0 <= home <= MAX_CORRECT_SCORE_GOALS and 0 <= away <= MAX_CORRECT_SCORE_GOALS):
        raise ValueError(f"Invalid correct score selection: {selection}")
    return home, away


def validate_market(market: str, selection: str) -> None:
    if market not in MARKETS:
        raise ValueError(f"Unknown market: {market}")
    if market == "CORRECT_SCORE":
        parse_correct_score(selection)
    elif selection not in MARKETS[market]:
        raise ValueError(f"Invalid selection {selection} for {market}")


def _combine(*odds: int) -> int:
    """Odds for 'any of these outcomes' from their individual prices."""
    return max(101, round(10000 / sum(10000 / o for o in odds)))


def selection_odds(board: MatchOdds, market: str, selection: str) -> int:
    """Price a pre-match selection from the match's odds board."""
    validate_market(market, selection)
    if market == "MATCH_RESULT":
        return {
            "HOME": board.enhanced_home_win,
            "DRAW": board.enhanced_draw,
            "AWAY": board.enhanced_away_win,
        }[selection]
    if market == "OVER_UNDER_25":
        return board.over_25 if selection == "OVER" else board.under_25
    if market == "BTTS":
        return board.btts_yes if selection == "YES" else board.btts_no
    if market == "DOUBLE_CHANCE":
        pair = {
            "HOME_DRAW": (board.home_win, board.draw),
            "AWAY_DRAW": (board.away_win, board.draw),
            "HOME_AWAY": (board.home_win, board.away_win),
        }[selection]
        return _combine(*pair)
    home, away = parse_correct_score(selection)
    return correct_score_odds(home, away)


def correct_score_odds(home: int, away: int) -> int:
    """Flat correct-score ladder: low draws cheapest, blowouts longest."""
    return min(10_000, 600 + 150 * (home + away) + 100 * abs(home - away))


def validate_pitkaveto(selections: list[PricedSelection], now: datetime) -> list[str]:
    """Every rule violation as a message; empty list means valid."""
    errors: list[str] = []
    if len(selections) < MIN_SELECTIONS:
        errors.append(f"Minimum {MIN_SELECTIONS} selections required")
    if len(selections) > MAX_SELECTIONS:
        errors.append(f"Maximum {MAX_SELECTIONS} selections allowed")
    match_ids = [s.match_id for s in selections]
    if len(match_ids) != len(set(match_ids)):
        errors.append("Cannot select multiple outcomes from the same match")
    for i, sel in enumerate(selections, start=1):
        if sel.odds < MIN_ODDS_PER_SELECTION:
            errors.append(f"Selection {i} odds too low (min {MIN_ODDS_PER_SELECTION / 100:.2f})")
        if sel.start_time <= now:
            errors.append(f"Selection {i}: match has already started")
    return errors


def price_pitkaveto(selections: list[PricedSelection], diamond_boost: str | None = None) -> SlipPrice:
    base = 1.0
    for sel in selections:
        base *= sel.odds / 100
    multiplier = 1.0
    reasons: list[str] = []
    n = len(selections)

    count_bonus = SELECTION_COUNT_BONUS.get(n, 1.0)
    if count_bonus > 1:
        multiplier *= count_bonus
        reasons.append(f"{n} selections: +{round((count_bonus - 1) * 100)}%")
    if n >= 3 and all(s.odds < FAVOURITE_BELOW for s in selections):
        multiplier *= ALL_FAVOURITES_BONUS
        reasons.append("All favourites bonus: +10%")
    if n >= 3 and all(s.odds > UNDERDOG_ABOVE for s in selections):
        multiplier *= ALL_UNDERDOGS_BONUS
        reasons.append("All underdogs bonus: +20%")
    if len({s.market for s in selections}) >= 3:
        multiplier *= MIXED_MARKETS_BONUS
        reasons.append("Mixed markets bonus: +15%")
    if any(s.is_derby for s in selections):
        multiplier *= DERBY_INCLUDED_BONUS
        reasons.append("Derby included bonus: +10%")
    if diamond_boost:
        boost = BOOST_OPTIONS[parse_boost(diamond_boost)]
        multiplier *= boost.multiplier
        reasons.append(f"Diamond boost: {boost.multiplier}x")

    return SlipPrice(
        base_odds=round(base * 100),
        bonus_multiplier=multiplier,
        total_odds=round(base * multiplier * 100),
        bonus_reasons=reasons,
    )


def potential_win(stake: int, total_odds: int) -> int:
    return round(stake * total_odds / 100)


def pitkaveto_stats(bets: Iterable[Bet]) -> dict[str, Any]:
    bets = list(bets)
    if not bets:
        return {
            "total_placed": 0,
            "total_won": 0,
            "win_rate": 0.0,
            "average_odds": 0.0,
            "average_selections": 0.0,
            "biggest_win": 0,
            "current_streak": 0,
            "best_streak": 0,
            "favourite_market": "MATCH_RESULT",
            "profit_loss": 0,
        }
    won = [b for b in bets if b.status == BetStatus.WON.value]
    market_counts: dict[str, int] = {}
    for bet in bets:
        for sel in bet.selections:
            market_counts[sel.market] = market_counts.get(sel.market, 0) + 1
    favourite = max(market_counts.items(), key=lambda kv: kv[1])[0] if market_counts else "MATCH_RESULT"

    settled = sorted(
        (b for b in bets if b.status in (BetStatus.WON.value, BetStatus.LOST.value) and b.settled_at),
        key=lambda b: b.settled_at,
    )
    best = run = 0
    for bet in settled:
        run = run + 1 if bet.status == BetStatus.WON.value else 0
        best = max(best, run)

    return {
        "total_placed": len(bets),
        "total_won": len(won),
        "win_rate": round(len(won) / len(bets) * 100, 2),
        "average_odds": round(sum(b.total_odds for b in bets) / len(bets), 2),
        "average_selections": round(sum(len(b.selections) for b in bets) / len(bets), 2),
        "biggest_win": max((b.payout for b in won), default=0),
        "current_streak": run,
        "best_streak": best,
        "favourite_market": favourite,
        "profit_loss": sum(b.payout for b in won) - sum(b.stake for b in bets),
    }
