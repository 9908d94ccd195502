"""
Betting core: odds, diamonds, cash-out, limits, pitkäveto pricing and settlement rules.
Pure functions only; persistence lives in the service layer.
"""
from .odds import (
    LIVE_MARKETS,
    current_live_odds,
    generate_prematch_odds,
    live_markets_board,
    odds_snapshot,
    update_match_result_board,
)
from .diamonds import (
    BOOST_OPTIONS,
    BoostType,
    active_diamond_events,
    apply_boost,
    can_afford_boost,
    live_bet_diamond_reward,
)
from .cash_out import CashOutQuote, calculate_cash_out, check_eligibility, refresh_value
from .limits import BettingLimits, check_bet, limits_for
from .pitkaveto import PricedSelection, SlipPrice, price_pitkaveto, validate_pitkaveto
from .settlement import evaluate_live_bet, evaluate_selection, level_for_total_staked

__all__ = [
    "LIVE_MARKETS",
    "current_live_odds",
    "generate_prematch_odds",
    "live_markets_board",
    "odds_snapshot",
    "update_match_result_board",
    "BOOST_OPTIONS",
    "BoostType",
    "active_diamond_events",
    "apply_boost",
    "can_afford_boost",
    "live_bet_diamond_reward",
    "CashOutQuote",
    "calculate_cash_out",
    "check_eligibility",
    "refresh_value",
    "BettingLimits",
    "check_bet",
    "limits_for",
    "PricedSelection",
    "SlipPrice",
    "price_pitkaveto",
    "validate_pitkaveto",
    "evaluate_live_bet",
    "evaluate_selection",
    "level_for_total_staked",
]
