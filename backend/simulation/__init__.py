"""
Football match simulation: deterministic, replayable minute-by-minute
matches for live odds, live betting and realtime feeds.
"""
from .schemas import EventType, MatchEvent, MatchState, MinuteResult, Side
from .rng import SeededRNG
from .match_simulator import (
    MatchSimulator,
    goal_probability,
    home_goal_share,
    simulate_minute,
    surname_pool,
)

__all__ = [
    "EventType",
    "MatchEvent",
    "MatchState",
    "MinuteResult",
    "Side",
    "SeededRNG",
    "MatchSimulator",
    "goal_probability",
    "home_goal_share",
    "simulate_minute",
    "surname_pool",
]
