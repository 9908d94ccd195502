"""
Repository interfaces for betting data.
No business logic; only read/write operations.

Entity creation commits immediately. Balance, bet and ledger writes do not
commit: the service layer groups them in one `with conn:` block so a stake
debit and its ledger row land together or not at all.
"""
from __future__ import annotations

import json
import sqlite3
import uuid
from datetime import date, datetime, timezone
from typing import Any

from backend.models import (
    Bet,
    BetSelection,
    League,
    LiveBet,
    LoginStreak,
    Match,
    MatchEventRecord,
    MatchOdds,
    Notification,
    Team,
    Transaction,
    User,
    UserAchievement,
    UserChallenge,
)


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _parse_datetime(s: str | None) -> datetime:
    if s is None:
        raise ValueError("expected datetime string")
    return datetime.fromisoformat(s.replace("Z", "+00:00"))


def _parse_optional_datetime(s: str | None) -> datetime | None:
    return _parse_datetime(s) if s else None


# ---------- UserRepository ----------

_USER_COUNTERS = {
    "total_bets", "total_wins", "total_staked", "total_won", "xp",
    "derby_wins", "live_wins", "high_stake_bets", "combo_wins", "challenges_completed",
}


def _row_to_user(r: sqlite3.Row) -> User:
    return User(
        id=r["id"],
        username=r["username"],
        email=r["email"],
        password_hash=r["password_hash"],
        created_at=_parse_datetime(r["created_at"]),
        role=r["role"],
        vip_status=r["vip_status"],
        bet_points=r["bet_points"],
        diamonds=r["diamonds"],
        xp=r["xp"],
        level=r["level"],
        total_bets=r["total_bets"],
        total_wins=r["total_wins"],
        total_staked=r["total_staked"],
        total_won=r["total_won"],
        current_streak=r["current_streak"],
        best_streak=r["best_streak"],
        biggest_win=r["biggest_win"],
        derby_wins=r["derby_wins"],
        live_wins=r["live_wins"],
        high_stake_bets=r["high_stake_bets"],
        combo_wins=r["combo_wins"],
        challenges_completed=r["challenges_completed"],
    )


class UserRepository:
    """Accounts, balances and lifetime counters."""

    def create(
        self,
        conn: sqlite3.Connection,
        username: str,
        password_hash: str,
        email: str | None = None,
        bet_points: int = 0,
        diamonds: int = 0,
        role: str = "USER",
        id: str | None = None,
    ) -> User:
        uid = id or str(uuid.uuid4())
        conn.execute(
            """INSERT INTO users (id, username, email, password_hash, role, bet_points, diamonds, created_at)
               VALUES (?, ?, ?, ?, ?, ?, ?, ?)""",
            (uid, username, email, password_hash, role, bet_points, diamonds, _now_iso()),
        )
        conn.commit()
        user = self.get(conn, uid)
        if user is None:
            raise ValueError(f"User not found after insert: {uid}")
        return user

    def get(self, conn: sqlite3.Connection, user_id: str) -> User | None:
        row = conn.execute("SELECT * FROM users WHERE id = ?", (user_id,)).fetchone()
        return _row_to_user(row) if row else None

    def get_by_username(self, conn: sqlite3.Connection, username: str) -> User | None:
        row = conn.execute("SELECT * FROM users WHERE username = ?", (username,)).fetchone()
        return _row_to_user(row) if row else None

    def get_by_email(self, conn: sqlite3.Connection, email: str) -> User | None:
        row = conn.execute("SELECT * FROM users WHERE email = ?", (email,)).fetchone()
        return _row_to_user(row) if row else None

    def adjust_balances(
        self,
        conn: sqlite3.Connection,
        user_id: str,
        bet_points: int = 0,
        diamonds: int = 0,
    ) -> User:
        """Apply signed deltas to both currencies. Caller commits."""
        conn.execute(
            "UPDATE users SET bet_points = bet_points + ?, diamonds = diamonds + ? WHERE id = ?",
            (bet_points, diamonds, user_id),
        )
        user = self.get(conn, user_id)
        if user is None:
            raise ValueError(f"User not found: {user_id}")
        return user

    def increment_counters(self, conn: sqlite3.Connection, user_id: str, **deltas: int) -> None:
        """Increment lifetime counters listed in _USER_COUNTERS. Caller commits."""
        unknown = set(deltas) - _USER_COUNTERS
        if unknown:
            raise ValueError(f"Unknown user counters: {sorted(unknown)}")
        if not deltas:
            return
        assignments = ", ".join(f"{col} = {col} + ?" for col in deltas)
        conn.execute(
            f"UPDATE users SET {assignments} WHERE id = ?",
            (*deltas.values(), user_id),
        )

    def record_biggest_win(self, conn: sqlite3.Connection, user_id: str, payout: int) -> None:
        conn.execute("UPDATE users SET biggest_win = MAX(biggest_win, ?) WHERE id = ?", (payout, user_id))

    def set_level(self, conn: sqlite3.Connection, user_id: str, level: int) -> None:
        conn.execute("UPDATE users SET level = ? WHERE id = ?", (level, user_id))

    def set_streak(self, conn: sqlite3.Connection, user_id: str, current: int, best: int) -> None:
        conn.execute(
            "UPDATE users SET current_streak = ?, best_streak = ? WHERE id = ?",
            (current, best, user_id),
        )

    def top_by(self, conn: sqlite3.Connection, column: str, limit: int = 10) -> list[User]:
        """Leaderboard query. column is validated by the caller against a fixed set."""
        rows = conn.execute(
            f"SELECT * FROM users ORDER BY {column} DESC, created_at ASC LIMIT ?",
            (limit,),
        ).fetchall()
        return [_row_to_user(r) for r in rows]


# ---------- LeagueRepository / TeamRepository ----------


class LeagueRepository:
    def create(self, conn: sqlite3.Connection, name: str, country: str, tier: int, id: str | None = None) -> League:
        lid = id or str(uuid.uuid4())
        conn.execute(
            "INSERT INTO leagues (id, name, country, tier) VALUES (?, ?, ?, ?)",
            (lid, name, country, tier),
        )
        conn.commit()
        return League(id=lid, name=name, country=country, tier=tier)

    def get(self, conn: sqlite3.Connection, league_id: str) -> League | None:
        row = conn.execute("SELECT id, name, country, tier FROM leagues WHERE id = ?", (league_id,)).fetchone()
        return League(**dict(row)) if row else None

    def list_all(self, conn: sqlite3.Connection) -> list[League]:
        rows = conn.execute("SELECT id, name, country, tier FROM leagues ORDER BY country, tier, name").fetchall()
        return [League(**dict(r)) for r in rows]


def _row_to_team(r: sqlite3.Row) -> Team:
    return Team(
        id=r["id"],
        name=r["name"],
        short_name=r["short_name"],
        city=r["city"],
        league_id=r["league_id"],
        is_derby_team=bool(r["is_derby_team"]),
    )


class TeamRepository:
    def create(
        self,
        conn: sqlite3.Connection,
        name: str,
        short_name: str,
        city: str,
        league_id: str,
        is_derby_team: bool = False,
        id: str | None = None,
    ) -> Team:
        tid = id or str(uuid.uuid4())
        conn.execute(
            "INSERT INTO teams (id, name, short_name, city, league_id, is_derby_team) VALUES (?, ?, ?, ?, ?, ?)",
            (tid, name, short_name, city, league_id, 1 if is_derby_team else 0),
        )
        conn.commit()
        return Team(id=tid, name=name, short_name=short_name, city=city, league_id=league_id, is_derby_team=is_derby_team)

    def get(self, conn: sqlite3.Connection, team_id: str) -> Team | None:
        row = conn.execute("SELECT * FROM teams WHERE id = ?", (team_id,)).fetchone()
        return _row_to_team(row) if row else None

    def list_by_league(self, conn: sqlite3.Connection, league_id: str) -> list[Team]:
        rows = conn.execute("SELECT * FROM teams WHERE league_id = ? ORDER BY name", (league_id,)).fetchall()
        return [_row_to_team(r) for r in rows]


# ---------- MatchRepository ----------

_MATCH_SELECT = """
    SELECT m.*, ht.name AS home_team_name, at.name AS away_team_name,
           ht.is_derby_team AS home_is_derby_team, at.is_derby_team AS away_is_derby_team
    FROM matches m
    JOIN teams ht ON ht.id = m.home_team_id
    JOIN teams at ON at.id = m.away_team_id
"""


def _row_to_match(r: sqlite3.Row) -> Match:
    return Match(
        id=r["id"],
        league_id=r["league_id"],
        home_team_id=r["home_team_id"],
        away_team_id=r["away_team_id"],
        start_time=_parse_datetime(r["start_time"]),
        status=r["status"],
        minute=r["minute"],
        home_score=r["home_score"],
        away_score=r["away_score"],
        is_derby=bool(r["is_derby"]),
        added_time=r["added_time"],
        home_team_name=r["home_team_name"],
        away_team_name=r["away_team_name"],
        home_is_derby_team=bool(r["home_is_derby_team"]),
        away_is_derby_team=bool(r["away_is_derby_team"]),
    )


class MatchRepository:
    """Fixtures and live state (minute, score, status)."""

    def create(
        self,
        conn: sqlite3.Connection,
        league_id: str,
        home_team_id: str,
        away_team_id: str,
        start_time: datetime,
        is_derby: bool = False,
        id: str | None = None,
    ) -> Match:
        mid = id or str(uuid.uuid4())
        conn.execute(
            """INSERT INTO matches (id, league_id, home_team_id, away_team_id, start_time, is_derby)
               VALUES (?, ?, ?, ?, ?, ?)""",
            (mid, league_id, home_team_id, away_team_id, start_time.isoformat(), 1 if is_derby else 0),
        )
        conn.commit()
        match = self.get(conn, mid)
        if match is None:
            raise ValueError(f"Match not found after insert: {mid}")
        return match

    def get(self, conn: sqlite3.Connection, match_id: str) -> Match | None:
        row = conn.execute(_MATCH_SELECT + " WHERE m.id = ?", (match_id,)).fetchone()
        return _row_to_match(row) if row else None

    def list(
        self,
        conn: sqlite3.Connection,
        status: str | None = None,
        league_id: str | None = None,
        limit: int = 50,
    ) -> list[Match]:
        clauses: list[str] = []
        args: list[Any] = []
        if status:
            clauses.append("m.status = ?")
            args.append(status)
        if league_id:
            clauses.append("m.league_id = ?")
            args.append(league_id)
        where = (" WHERE " + " AND ".join(clauses)) if clauses else ""
        rows = conn.execute(
            _MATCH_SELECT + where + " ORDER BY m.start_time ASC LIMIT ?",
            (*args, limit),
        ).fetchall()
        return [_row_to_match(r) for r in rows]

    def derbies_on(self, conn: sqlite3.Connection, day: date) -> list[Match]:
        """Derby fixtures kicking off on a UTC calendar day. start_time is stored as UTC isoformat."""
        rows = conn.execute(
            _MATCH_SELECT + " WHERE m.is_derby = 1 AND substr(m.start_time, 1, 10) = ? ORDER BY m.start_time",
            (day.isoformat(),),
        ).fetchall()
        return [_row_to_match(r) for r in rows]

    def list_by_ids(self, conn: sqlite3.Connection, match_ids: list[str]) -> list[Match]:
        if not match_ids:
            return []
        placeholders = ", ".join("?" for _ in match_ids)
        rows = conn.execute(_MATCH_SELECT + f" WHERE m.id IN ({placeholders})", tuple(match_ids)).fetchall()
        return [_row_to_match(r) for r in rows]

    def update_live_state(
        self,
        conn: sqlite3.Connection,
        match_id: str,
        minute: int,
        home_score: int,
        away_score: int,
        status: str,
        added_time: int | None = None,
        commit: bool = True,
    ) -> None:
        conn.execute(
            """UPDATE matches SET minute = ?, home_score = ?, away_score = ?, status = ?,
               added_time = COALESCE(?, added_time) WHERE id = ?""",
            (minute, home_score, away_score, status, added_time, match_id),
        )
        if commit:
            conn.commit()

    def reset(self, conn: sqlite3.Connection, match_id: str) -> None:
        """Back to scheduled 0-0; clears events. For admin testing."""
        conn.execute(
            """UPDATE matches SET status = 'SCHEDULED', minute = 0, home_score = 0, away_score = 0,
               added_time = NULL WHERE id = ?""",
            (match_id,),
        )
        conn.execute("DELETE FROM match_events WHERE match_id = ?", (match_id,))
        conn.commit()


# ---------- OddsRepository ----------


def _row_to_odds(r: sqlite3.Row) -> MatchOdds:
    return MatchOdds(
        match_id=r["match_id"],
        home_win=r["home_win"],
        draw=r["draw"],
        away_win=r["away_win"],
        enhanced_home_win=r["enhanced_home_win"],
        enhanced_draw=r["enhanced_draw"],
        enhanced_away_win=r["enhanced_away_win"],
        over_25=r["over_25"],
        under_25=r["under_25"],
        btts_yes=r["btts_yes"],
        btts_no=r["btts_no"],
        is_live=bool(r["is_live"]),
        last_updated_minute=r["last_updated_minute"],
        live_markets=json.loads(r["live_markets"] or "{}"),
    )


class OddsRepository:
    def upsert(self, conn: sqlite3.Connection, odds: MatchOdds, commit: bool = True) -> None:
        conn.execute(
            """INSERT INTO odds (match_id, home_win, draw, away_win, enhanced_home_win, enhanced_draw,
                   enhanced_away_win, over_25, under_25, btts_yes, btts_no, is_live, last_updated_minute, live_markets)
               VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
               ON CONFLICT(match_id) DO UPDATE SET
                   home_win = excluded.home_win, draw = excluded.draw, away_win = excluded.away_win,
                   enhanced_home_win = excluded.enhanced_home_win, enhanced_draw = excluded.enhanced_draw,
                   enhanced_away_win = excluded.enhanced_away_win, over_25 = excluded.over_25,
                   under_25 = excluded.under_25, btts_yes = excluded.btts_yes, btts_no = excluded.btts_no,
                   is_live = excluded.is_live, last_updated_minute = excluded.last_updated_minute,
                   live_markets = excluded.live_markets""",
            (
                odds.match_id, odds.home_win, odds.draw, odds.away_win,
                odds.enhanced_home_win, odds.enhanced_draw, odds.enhanced_away_win,
                odds.over_25, odds.under_25, odds.btts_yes, odds.btts_no,
                1 if odds.is_live else 0, odds.last_updated_minute, json.dumps(odds.live_markets),
            ),
        )
        if commit:
            conn.commit()

    def get(self, conn: sqlite3.Connection, match_id: str) -> MatchOdds | None:
        row = conn.execute("SELECT * FROM odds WHERE match_id = ?", (match_id,)).fetchone()
        return _row_to_odds(row) if row else None


# ---------- MatchEventRepository ----------


class MatchEventRepository:
    def create(
        self,
        conn: sqlite3.Connection,
        match_id: str,
        minute: int,
        event_type: str,
        team: str,
        description: str,
        player: str | None = None,
        commit: bool = True,
    ) -> MatchEventRecord:
        eid = str(uuid.uuid4())
        conn.execute(
            """INSERT INTO match_events (id, match_id, minute, event_type, team, player, description)
               VALUES (?, ?, ?, ?, ?, ?, ?)""",
            (eid, match_id, minute, event_type, team, player, description),
        )
        if commit:
            conn.commit()
        return MatchEventRecord(
            id=eid, match_id=match_id, minute=minute, event_type=event_type,
            team=team, player=player, description=description,
        )

    def list_for_match(self, conn: sqlite3.Connection, match_id: str, event_type: str | None = None) -> list[MatchEventRecord]:
        sql = "SELECT * FROM match_events WHERE match_id = ?"
        args: tuple = (match_id,)
        if event_type:
            sql += " AND event_type = ?"
            args = args + (event_type,)
        # rowid keeps insertion order for events within the same minute
        rows = conn.execute(sql + " ORDER BY minute, rowid", args).fetchall()
        return [
            MatchEventRecord(
                id=r["id"], match_id=r["match_id"], minute=r["minute"], event_type=r["event_type"],
                team=r["team"], player=r["player"], description=r["description"],
            )
            for r in rows
        ]


# ---------- LiveBetRepository ----------


def _row_to_live_bet(r: sqlite3.Row) -> LiveBet:
    return LiveBet(
        id=r["id"],
        user_id=r["user_id"],
        match_id=r["match_id"],
        market=r["market"],
        selection=r["selection"],
        odds=r["odds"],
        stake=r["stake"],
        potential_win=r["potential_win"],
        diamond_reward=r["diamond_reward"],
        placed_at_minute=r["placed_at_minute"],
        created_at=_parse_datetime(r["created_at"]),
        status=r["status"],
        cash_out_value=r["cash_out_value"],
        cash_out_available=bool(r["cash_out_available"]),
        cashed_out=bool(r["cashed_out"]),
        win_amount=r["win_amount"],
        settled_at=_parse_optional_datetime(r["settled_at"]),
    )


class LiveBetRepository:
    def create(
        self,
        conn: sqlite3.Connection,
        user_id: str,
        match_id: str,
        market: str,
        selection: str,
        odds: int,
        stake: int,
        potential_win: int,
        diamond_reward: int,
        placed_at_minute: int,
    ) -> LiveBet:
        """Caller commits."""
        bid = str(uuid.uuid4())
        conn.execute(
            """INSERT INTO live_bets (id, user_id, match_id, market, selection, odds, stake, potential_win,
                   diamond_reward, placed_at_minute, created_at)
               VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)""",
            (bid, user_id, match_id, market, selection, odds, stake, potential_win,
             diamond_reward, placed_at_minute, _now_iso()),
        )
        bet = self.get(conn, bid)
        if bet is None:
            raise ValueError(f"Live bet not found after insert: {bid}")
        return bet

    def get(self, conn: sqlite3.Connection, bet_id: str) -> LiveBet | None:
        row = conn.execute("SELECT * FROM live_bets WHERE id = ?", (bet_id,)).fetchone()
        return _row_to_live_bet(row) if row else None

    def list_by_user(self, conn: sqlite3.Connection, user_id: str, status: str | None = None, limit: int = 50) -> list[LiveBet]:
        sql = "SELECT * FROM live_bets WHERE user_id = ?"
        args: tuple = (user_id,)
        if status:
            sql += " AND status = ?"
            args = args + (status,)
        rows = conn.execute(sql + " ORDER BY created_at DESC LIMIT ?", args + (limit,)).fetchall()
        return [_row_to_live_bet(r) for r in rows]

    def list_pending_for_match(self, conn: sqlite3.Connection, match_id: str) -> list[LiveBet]:
        rows = conn.execute(
            "SELECT * FROM live_bets WHERE match_id = ? AND status = 'PENDING' ORDER BY created_at",
            (match_id,),
        ).fetchall()
        return [_row_to_live_bet(r) for r in rows]

    def list_cash_out_candidates(self, conn: sqlite3.Connection) -> list[LiveBet]:
        rows = conn.execute(
            """SELECT * FROM live_bets
               WHERE status = 'PENDING' AND cash_out_available = 1 AND cashed_out = 0
               ORDER BY created_at"""
        ).fetchall()
        return [_row_to_live_bet(r) for r in rows]

    def update_cash_out_value(self, conn: sqlite3.Connection, bet_id: str, value: int, available: bool) -> None:
        conn.execute(
            "UPDATE live_bets SET cash_out_value = ?, cash_out_available = ? WHERE id = ?",
            (value, 1 if available else 0, bet_id),
        )

    def settle(
        self,
        conn: sqlite3.Connection,
        bet_id: str,
        status: str,
        win_amount: int,
        cashed_out: bool = False,
    ) -> int:
        """Settle only if still pending. Returns rows changed (0 means someone settled it first). Caller commits."""
        cur = conn.execute(
            """UPDATE live_bets SET status = ?, win_amount = ?, cashed_out = ?, cash_out_available = 0,
                   settled_at = ? WHERE id = ? AND status = 'PENDING'""",
            (status, win_amount, 1 if cashed_out else 0, _now_iso(), bet_id),
        )
        return cur.rowcount

    def stake_summary_since(self, conn: sqlite3.Connection, user_id: str, since: datetime) -> tuple[int, int]:
        row = conn.execute(
            "SELECT COUNT(*), COALESCE(SUM(stake), 0) FROM live_bets WHERE user_id = ? AND created_at >= ?",
            (user_id, since.isoformat()),
        ).fetchone()
        return int(row[0]), int(row[1])


# ---------- BetRepository ----------


def _row_to_bet(r: sqlite3.Row, selections: list[BetSelection]) -> Bet:
    return Bet(
        id=r["id"],
        user_id=r["user_id"],
        bet_type=r["bet_type"],
        stake=r["stake"],
        total_odds=r["total_odds"],
        potential_win=r["potential_win"],
        created_at=_parse_datetime(r["created_at"]),
        status=r["status"],
        diamond_boost=r["diamond_boost"],
        diamonds_used=r["diamonds_used"],
        payout=r["payout"],
        settled_at=_parse_optional_datetime(r["settled_at"]),
        selections=selections,
    )


class BetRepository:
    """Pre-match slips and their selections."""

    def create(
        self,
        conn: sqlite3.Connection,
        user_id: str,
        bet_type: str,
        stake: int,
        total_odds: int,
        potential_win: int,
        selections: list[dict[str, Any]],
        diamond_boost: str | None = None,
        diamonds_used: int = 0,
    ) -> Bet:
        """selections: dicts with match_id, market, selection, odds. Caller commits."""
        bid = str(uuid.uuid4())
        conn.execute(
            """INSERT INTO bets (id, user_id, bet_type, stake, total_odds, potential_win, diamond_boost,
                   diamonds_used, created_at)
               VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)""",
            (bid, user_id, bet_type, stake, total_odds, potential_win, diamond_boost, diamonds_used, _now_iso()),
        )
        for sel in selections:
            conn.execute(
                """INSERT INTO bet_selections (id, bet_id, match_id, market, selection, odds)
                   VALUES (?, ?, ?, ?, ?, ?)""",
                (str(uuid.uuid4()), bid, sel["match_id"], sel["market"], sel["selection"], sel["odds"]),
            )
        bet = self.get(conn, bid)
        if bet is None:
            raise ValueError(f"Bet not found after insert: {bid}")
        return bet

    def _selections(self, conn: sqlite3.Connection, bet_id: str) -> list[BetSelection]:
        rows = conn.execute(
            "SELECT * FROM bet_selections WHERE bet_id = ? ORDER BY rowid", (bet_id,)
        ).fetchall()
        return [
            BetSelection(
                id=r["id"], bet_id=r["bet_id"], match_id=r["match_id"], market=r["market"],
                selection=r["selection"], odds=r["odds"], result=r["result"],
            )
            for r in rows
        ]

    def get(self, conn: sqlite3.Connection, bet_id: str) -> Bet | None:
        row = conn.execute("SELECT * FROM bets WHERE id = ?", (bet_id,)).fetchone()
        if row is None:
            return None
        return _row_to_bet(row, self._selections(conn, bet_id))

    def list_by_user(
        self,
        conn: sqlite3.Connection,
        user_id: str,
        status: str | None = None,
        bet_type: str | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> list[Bet]:
        sql = "SELECT * FROM bets WHERE user_id = ?"
        args: tuple = (user_id,)
        if status:
            sql += " AND status = ?"
            args = args + (status,)
        if bet_type:
            sql += " AND bet_type = ?"
            args = args + (bet_type,)
        rows = conn.execute(sql + " ORDER BY created_at DESC LIMIT ? OFFSET ?", args + (limit, offset)).fetchall()
        return [_row_to_bet(r, self._selections(conn, r["id"])) for r in rows]

    def list_pending_ids(self, conn: sqlite3.Connection) -> list[str]:
        rows = conn.execute("SELECT id FROM bets WHERE status = 'PENDING' ORDER BY created_at").fetchall()
        return [r["id"] for r in rows]

    def update_selection_result(self, conn: sqlite3.Connection, selection_id: str, result: str) -> None:
        conn.execute("UPDATE bet_selections SET result = ? WHERE id = ?", (result, selection_id))

    def settle(self, conn: sqlite3.Connection, bet_id: str, status: str, payout: int) -> int:
        """Settle only if still pending. Caller commits."""
        cur = conn.execute(
            "UPDATE bets SET status = ?, payout = ?, settled_at = ? WHERE id = ? AND status = 'PENDING'",
            (status, payout, _now_iso(), bet_id),
        )
        return cur.rowcount

    def stake_summary_since(self, conn: sqlite3.Connection, user_id: str, since: datetime) -> tuple[int, int]:
        row = conn.execute(
            "SELECT COUNT(*), COALESCE(SUM(stake), 0) FROM bets WHERE user_id = ? AND created_at >= ?",
            (user_id, since.isoformat()),
        ).fetchone()
        return int(row[0]), int(row[1])


# ---------- TransactionRepository / NotificationRepository ----------


class TransactionRepository:
    def create(
        self,
        conn: sqlite3.Connection,
        user_id: str,
        type: str,
        amount: int,
        currency: str,
        description: str,
        balance_before: int,
        balance_after: int,
        reference: str | None = None,
    ) -> Transaction:
        """Caller commits."""
        tid = str(uuid.uuid4())
        now = _now_iso()
        conn.execute(
            """INSERT INTO transactions (id, user_id, type, amount, currency, description, reference,
                   balance_before, balance_after, created_at)
               VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)""",
            (tid, user_id, type, amount, currency, description, reference, balance_before, balance_after, now),
        )
        return Transaction(
            id=tid, user_id=user_id, type=type, amount=amount, currency=currency,
            description=description, balance_before=balance_before, balance_after=balance_after,
            created_at=_parse_datetime(now), reference=reference,
        )

    def list_by_user(
        self,
        conn: sqlite3.Connection,
        user_id: str,
        currency: str | None = None,
        limit: int = 50,
    ) -> list[Transaction]:
        sql = "SELECT * FROM transactions WHERE user_id = ?"
        args: tuple = (user_id,)
        if currency:
            sql += " AND currency = ?"
            args = args + (currency,)
        rows = conn.execute(sql + " ORDER BY created_at DESC, rowid DESC LIMIT ?", args + (limit,)).fetchall()
        return [
            Transaction(
                id=r["id"], user_id=r["user_id"], type=r["type"], amount=r["amount"],
                currency=r["currency"], description=r["description"],
                balance_before=r["balance_before"], balance_after=r["balance_after"],
                created_at=_parse_datetime(r["created_at"]), reference=r["reference"],
            )
            for r in rows
        ]

    def list_by_reference(self, conn: sqlite3.Connection, reference: str) -> list[Transaction]:
        rows = conn.execute(
            "SELECT * FROM transactions WHERE reference = ? ORDER BY rowid", (reference,)
        ).fetchall()
        return [
            Transaction(
                id=r["id"], user_id=r["user_id"], type=r["type"], amount=r["amount"],
                currency=r["currency"], description=r["description"],
                balance_before=r["balance_before"], balance_after=r["balance_after"],
                created_at=_parse_datetime(r["created_at"]), reference=r["reference"],
            )
            for r in rows
        ]


class NotificationRepository:
    def create(
        self,
        conn: sqlite3.Connection,
        user_id: str,
        type: str,
        title: str,
        message: str,
        data: dict[str, Any] | None = None,
    ) -> Notification:
        """Caller commits."""
        nid = str(uuid.uuid4())
        now = _now_iso()
        conn.execute(
            "INSERT INTO notifications (id, user_id, type, title, message, data, created_at) VALUES (?, ?, ?, ?, ?, ?, ?)",
            (nid, user_id, type, title, message, json.dumps(data or {}), now),
        )
        return Notification(
            id=nid, user_id=user_id, type=type, title=title, message=message,
            created_at=_parse_datetime(now), data=data or {},
        )

    def list_by_user(self, conn: sqlite3.Connection, user_id: str, limit: int = 20) -> list[Notification]:
        rows = conn.execute(
            "SELECT * FROM notifications WHERE user_id = ? ORDER BY created_at DESC, rowid DESC LIMIT ?",
            (user_id, limit),
        ).fetchall()
        return [
            Notification(
                id=r["id"], user_id=r["user_id"], type=r["type"], title=r["title"], message=r["message"],
                created_at=_parse_datetime(r["created_at"]), data=json.loads(r["data"] or "{}"),
                read=bool(r["read"]),
            )
            for r in rows
        ]


# ---------- LoginStreakRepository ----------


class LoginStreakRepository:
    def get(self, conn: sqlite3.Connection, user_id: str) -> LoginStreak:
        row = conn.execute(
            "SELECT user_id, current_streak, longest_streak, last_claimed_date FROM login_streaks WHERE user_id = ?",
            (user_id,),
        ).fetchone()
        if row is None:
            return LoginStreak(user_id=user_id)
        last = date.fromisoformat(row["last_claimed_date"]) if row["last_claimed_date"] else None
        return LoginStreak(
            user_id=row["user_id"],
            current_streak=row["current_streak"],
            longest_streak=row["longest_streak"],
            last_claimed_date=last,
        )

    def record_claim(self, conn: sqlite3.Connection, streak: LoginStreak) -> int:
        """
        Write the streak for a new claim day only if the stored claim is older.
        Returns rows written; 0 means another claim for that day got there first. Caller commits.
        """
        cur = conn.execute(
            """INSERT INTO login_streaks (user_id, current_streak, longest_streak, last_claimed_date)
               VALUES (?, ?, ?, ?)
               ON CONFLICT(user_id) DO UPDATE SET current_streak = excluded.current_streak,
                   longest_streak = excluded.longest_streak, last_claimed_date = excluded.last_claimed_date
               WHERE login_streaks.last_claimed_date IS NULL
                   OR login_streaks.last_claimed_date < excluded.last_claimed_date""",
            (
                streak.user_id,
                streak.current_streak,
                streak.longest_streak,
                streak.last_claimed_date.isoformat() if streak.last_claimed_date else None,
            ),
        )
        return cur.rowcount


# ---------- ChallengeRepository / AchievementRepository ----------


def _row_to_challenge(r: sqlite3.Row) -> UserChallenge:
    return UserChallenge(
        id=r["id"],
        user_id=r["user_id"],
        challenge_date=date.fromisoformat(r["challenge_date"]),
        template_id=r["template_id"],
        name=r["name"],
        description=r["description"],
        requirement=r["requirement"],
        difficulty=r["difficulty"],
        target=r["target"],
        reward_bet_points=r["reward_bet_points"],
        reward_diamonds=r["reward_diamonds"],
        reward_xp=r["reward_xp"],
        progress=r["progress"],
        completed_at=_parse_optional_datetime(r["completed_at"]),
        claimed_at=_parse_optional_datetime(r["claimed_at"]),
    )


class ChallengeRepository:
    """Daily challenge rows and their progress. Nothing here commits."""

    def create_if_missing(
        self,
        conn: sqlite3.Connection,
        user_id: str,
        challenge_date: date,
        template_id: str,
        name: str,
        description: str,
        requirement: str,
        difficulty: str,
        target: int,
        reward_bet_points: int,
        reward_diamonds: int,
        reward_xp: int,
    ) -> None:
        conn.execute(
            """INSERT OR IGNORE INTO user_challenges (id, user_id, challenge_date, template_id, name, description,
                   requirement, difficulty, target, reward_bet_points, reward_diamonds, reward_xp)
               VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)""",
            (str(uuid.uuid4()), user_id, challenge_date.isoformat(), template_id, name, description,
             requirement, difficulty, target, reward_bet_points, reward_diamonds, reward_xp),
        )

    def get(self, conn: sqlite3.Connection, challenge_id: str) -> UserChallenge | None:
        row = conn.execute("SELECT * FROM user_challenges WHERE id = ?", (challenge_id,)).fetchone()
        return _row_to_challenge(row) if row else None

    def list_for_day(self, conn: sqlite3.Connection, user_id: str, challenge_date: date) -> list[UserChallenge]:
        rows = conn.execute(
            "SELECT * FROM user_challenges WHERE user_id = ? AND challenge_date = ? ORDER BY rowid",
            (user_id, challenge_date.isoformat()),
        ).fetchall()
        return [_row_to_challenge(r) for r in rows]

    def update_progress(self, conn: sqlite3.Connection, challenge_id: str, progress: int, completed: bool) -> int:
        """Move progress on an open challenge. Returns 1 only on the update that completes it."""
        cur = conn.execute(
            """UPDATE user_challenges SET progress = ?, completed_at = CASE WHEN ? THEN ? ELSE NULL END
               WHERE id = ? AND completed_at IS NULL""",
            (progress, 1 if completed else 0, _now_iso(), challenge_id),
        )
        return cur.rowcount if completed else 0

    def mark_claimed(self, conn: sqlite3.Connection, challenge_id: str) -> int:
        """Claim a completed challenge once. Returns rows changed (0 if not completed or already claimed)."""
        cur = conn.execute(
            """UPDATE user_challenges SET claimed_at = ?
               WHERE id = ? AND completed_at IS NOT NULL AND claimed_at IS NULL""",
            (_now_iso(), challenge_id),
        )
        return cur.rowcount


class AchievementRepository:
    """Unlocked achievements per player. Nothing here commits."""

    def unlock(self, conn: sqlite3.Connection, user_id: str, achievement_id: str) -> int:
        """Returns 1 when newly unlocked, 0 when it already was."""
        cur = conn.execute(
            "INSERT OR IGNORE INTO user_achievements (user_id, achievement_id, unlocked_at) VALUES (?, ?, ?)",
            (user_id, achievement_id, _now_iso()),
        )
        return cur.rowcount

    def list_by_user(self, conn: sqlite3.Connection, user_id: str) -> dict[str, UserAchievement]:
        rows = conn.execute(
            "SELECT * FROM user_achievements WHERE user_id = ? ORDER BY unlocked_at", (user_id,)
        ).fetchall()
        return {
            r["achievement_id"]: UserAchievement(
                user_id=r["user_id"],
                achievement_id=r["achievement_id"],
                unlocked_at=_parse_datetime(r["unlocked_at"]),
                claimed_at=_parse_optional_datetime(r["claimed_at"]),
            )
            for r in rows
        }

    def mark_claimed(self, conn: sqlite3.Connection, user_id: str, achievement_id: str) -> int:
        cur = conn.execute(
            """UPDATE user_achievements SET claimed_at = ?
               WHERE user_id = ? AND achievement_id = ? AND claimed_at IS NULL""",
            (_now_iso(), user_id, achievement_id),
        )
        return cur.rowcount
