"""
Cash-out: eligibility and valuation of pending live bets.

Value = stake x probability shift x (1 - margin) x time decay, then market
and derby adjustments, floored at 10% of stake.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from backend.models import BetStatus, LiveBet, Match, MatchStatus

from .odds import BTTS, NEXT_GOAL, TOTAL_GOALS, current_live_odds

MARGIN = 0.15
DECAY_PER_MINUTE = 0.005
MIN_TIME_DECAY = 0.7
MIN_SHIFT = 0.1
MAX_SHIFT = 2.0
MIN_VALUE_FRACTION = 0.1
OPENS_AT_MINUTE = 5
CLOSES_AT_MINUTE = 75
MIN_RUNNING_MINUTES = 2
CONFIRM_TOLERANCE = 0.05


@dataclass
class CashOutQuote:
    value: int
    profit_loss: int
    profit_percentage: float
    factors: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "value": self.value,
            "profit_loss": self.profit_loss,
            "profit_percentage": self.profit_percentage,
            "factors": dict(self.factors),
        }


def check_eligibility(bet: LiveBet, match: Match) -> tuple[bool, str | None]:
    """(eligible, reason). reason is None when eligible."""
    if bet.status != BetStatus.PENDING.value:
        return False, "Bet is not active"
    if bet.cashed_out:
        return False, "Bet already cashed out"
    if match.status != MatchStatus.LIVE.value:
        return False, "Match is not live"
    if match.minute < OPENS_AT_MINUTE:
        return False, f"Cash-out not available in first {OPENS_AT_MINUTE} minutes"
    if match.minute >= CLOSES_AT_MINUTE:
        return False, f"Cash-out not available after {CLOSES_AT_MINUTE}th minute"
    if match.minute - bet.placed_at_minute < MIN_RUNNING_MINUTES:
        return False, f"Cash-out available {MIN_RUNNING_MINUTES} minutes after bet placement"
    return True, None


def probability_shift(original_odds: int, current_odds: int) -> float:
    """Ratio of current to original implied probability, clamped to [0.1, 2.0]."""
    ratio = (100 / current_odds) / (100 / original_odds)
    return max(MIN_SHIFT, min(MAX_SHIFT, ratio))


def time_decay(placed_at_minute: int, minute: int) -> float:
    return max(MIN_TIME_DECAY, 1 - (minute - placed_at_minute) * DECAY_PER_MINUTE)


def market_adjustment(market: str, match: Match) -> float:
    factor = 1.0
    if market == NEXT_GOAL:
        factor *= 0.95
    elif market == TOTAL_GOALS and match.home_score + match.away_score > 2:
        factor *= 1.05
    elif market == BTTS and match.minute > 70:
        factor *= 0.9
    if match.is_derby:
        factor *= 0.95
    return factor


def calculate_cash_out(bet: LiveBet, match: Match) -> CashOutQuote:
    """Quote for the current match state. Does not check eligibility."""
    current = current_live_odds(bet.market, bet.selection, match.home_score, match.away_score, match.minute)
    shift = probability_shift(bet.odds, current)
    decay = time_decay(bet.placed_at_minute, match.minute)
    value = bet.stake * shift * (1 - MARGIN) * decay * market_adjustment(bet.market, match)
    value = round(max(bet.stake * MIN_VALUE_FRACTION, value))
    profit_loss = value - bet.stake
    return CashOutQuote(
        value=value,
        profit_loss=profit_loss,
        profit_percentage=round(profit_loss / bet.stake * 100, 2),
        factors={
            "original_odds": bet.odds,
            "current_odds": current,
            "probability_shift": round(shift, 2),
            "time_decay": round(decay, 2),
            "margin": MARGIN,
            "bet_running_time": match.minute - bet.placed_at_minute,
        },
    )


def refresh_value(stake: int, minute: int) -> int:
    """Stored estimate updated by the engine between quotes."""
    return round(stake * 0.85 * max(0, 90 - minute) / 90)


def refresh_available(minute: int) -> bool:
    return minute < CLOSES_AT_MINUTE


def value_changed(value: int, confirm_value: int) -> bool:
    """True when the fresh quote moved more than 5% from what the user confirmed."""
    return abs(value - confirm_value) > confirm_value * CONFIRM_TOLERANCE
