"""
Leaderboards over lifetime user stats.
"""
from __future__ import annotations

import sqlite3
from typing import Any

from backend.persistence.repositories import UserRepository

# board name -> users column
LEADERBOARDS = {
    "level": "level",
    "xp": "xp",
    "wins": "total_wins",
    "winnings": "total_won",
    "betpoints": "bet_points",
    "diamonds": "diamonds",
    "streak": "best_streak",
}


def leaderboard(conn: sqlite3.Connection, board: str = "level", limit: int = 10) -> list[dict[str, Any]]:
    column = LEADERBOARDS.get(board)
    if column is None:
        raise ValueError(f"Unknown leaderboard: {board}")
    users = UserRepository().top_by(conn, column, limit=min(max(limit, 1), 100))
    return [
        {
            "rank": i,
            "user_id": u.id,
            "username": u.username,
            "level": u.level,
            "value": getattr(u, column),
        }
        for i, u in enumerate(users, start=1)
    ]
