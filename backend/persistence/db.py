"""
Database connection and initialization.
"""
from __future__ import annotations

import logging
import sqlite3
from pathlib import Path

from backend import config

from .schema import all_schema_sql

logger = logging.getLogger(__name__)


def _ensure_column(conn: sqlite3.Connection, table: str, col: str, ddl: str) -> None:
    cur = conn.execute(f"PRAGMA table_info({table})")
    cols = [row[1] for row in cur.fetchall()]
    if col not in cols:
        conn.execute(f"ALTER TABLE {table} ADD COLUMN {col} {ddl}")
        logger.info("Migrated %s: added column %s", table, col)


def _run_live_migrations(conn: sqlite3.Connection) -> None:
    """Columns added for the live engine on databases created before it existed."""
    _ensure_column(conn, "matches", "added_time", "INTEGER")
    _ensure_column(conn, "odds", "live_markets", "TEXT NOT NULL DEFAULT '{}'")
    _ensure_column(conn, "live_bets", "cash_out_value", "INTEGER")


def _run_progress_migrations(conn: sqlite3.Connection) -> None:
    """Player stat columns used by achievements."""
    for col in ("biggest_win", "derby_wins", "live_wins", "high_stake_bets", "combo_wins", "challenges_completed"):
        _ensure_column(conn, "users", col, "INTEGER NOT NULL DEFAULT 0")


# Default DB path (project root / data / betting.db)
def _default_db_path() -> Path:
    if config.DATABASE_PATH:
        return Path(config.DATABASE_PATH)
    return Path(__file__).resolve().parent.parent.parent / "data" / "betting.db"


_db_path: Path | None = None


def set_db_path(path: str | Path) -> None:
    """Set the database path. Call before first get_connection if not using default."""
    global _db_path
    _db_path = Path(path)


def get_db_path() -> Path:
    """Return the current database path."""
    if _db_path is not None:
        return _db_path
    return _default_db_path()


def get_connection(db_path: str | Path | None = None) -> sqlite3.Connection:
    """
    Return a new SQLite connection.
    Use as context manager or ensure close() is called.
    """
    path = Path(db_path) if db_path else get_db_path()
    path.parent.mkdir(parents=True, exist_ok=True)
    conn = sqlite3.connect(str(path), timeout=10)
    conn.row_factory = sqlite3.Row
    return conn


def init_db(db_path: str | Path | None = None, seed: bool = False) -> None:
    """
    Create or ensure all tables exist.
    If seed is set, also load leagues, clubs and a fixture list (uses backend.seed).
    """
    path = Path(db_path) if db_path else get_db_path()
    path.parent.mkdir(parents=True, exist_ok=True)
    conn = sqlite3.connect(str(path))
    conn.row_factory = sqlite3.Row
    try:
        conn.executescript(all_schema_sql())
        _run_live_migrations(conn)
        _run_progress_migrations(conn)
        conn.commit()
        if seed:
            from backend.seed import seed_reference_data
            seed_reference_data(conn)
            conn.commit()
    finally:
        conn.close()
