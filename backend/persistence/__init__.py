"""
Persistence layer for the betting backend.
No business logic or simulation; only read/write interfaces.
"""
from .db import get_connection, init_db, set_db_path, get_db_path
from .repositories import (
    UserRepository,
    LeagueRepository,
    TeamRepository,
    MatchRepository,
    OddsRepository,
    MatchEventRepository,
    LiveBetRepository,
    BetRepository,
    TransactionRepository,
    NotificationRepository,
    LoginStreakRepository,
    ChallengeRepository,
    AchievementRepository,
)

__all__ = [
    "get_connection",
    "init_db",
    "set_db_path",
    "get_db_path",
    "UserRepository",
    "LeagueRepository",
    "TeamRepository",
    "MatchRepository",
    "OddsRepository",
    "MatchEventRepository",
    "LiveBetRepository",
    "BetRepository",
    "TransactionRepository",
    "NotificationRepository",
    "LoginStreakRepository",
    "ChallengeRepository",
    "AchievementRepository",
]
