"""
SQLite schema for betting entities.
Migration-friendly: each table created with IF NOT EXISTS.
"""
from __future__ import annotations


def users_schema() -> str:
    return """
    CREATE TABLE IF NOT EXISTS users (
        id TEXT PRIMARY KEY,
        username TEXT NOT NULL,
        email TEXT,
        password_hash TEXT NOT NULL,
        role TEXT NOT NULL DEFAULT 'USER',
        vip_status TEXT NOT NULL DEFAULT 'FREE',
        bet_points INTEGER NOT NULL DEFAULT 0 CHECK (bet_points >= 0),
        diamonds INTEGER NOT NULL DEFAULT 0 CHECK (diamonds >= 0),
        xp INTEGER NOT NULL DEFAULT 0,
        level INTEGER NOT NULL DEFAULT 1,
        total_bets INTEGER NOT NULL DEFAULT 0,
        total_wins INTEGER NOT NULL DEFAULT 0,
        total_staked INTEGER NOT NULL DEFAULT 0,
        total_won INTEGER NOT NULL DEFAULT 0,
        current_streak INTEGER NOT NULL DEFAULT 0,
        best_streak INTEGER NOT NULL DEFAULT 0,
        biggest_win INTEGER NOT NULL DEFAULT 0,
        derby_wins INTEGER NOT NULL DEFAULT 0,
        live_wins INTEGER NOT NULL DEFAULT 0,
        high_stake_bets INTEGER NOT NULL DEFAULT 0,
        combo_wins INTEGER NOT NULL DEFAULT 0,
        challenges_completed INTEGER NOT NULL DEFAULT 0,
        created_at TEXT NOT NULL
    );
    CREATE UNIQUE INDEX IF NOT EXISTS ix_users_username ON users(username);
    CREATE UNIQUE INDEX IF NOT EXISTS ix_users_email ON users(email) WHERE email IS NOT NULL;
    """
    # Balances are guarded by CHECK constraints; services still check before debiting.


def leagues_schema() -> str:
    return """
    CREATE TABLE IF NOT EXISTS leagues (
        id TEXT PRIMARY KEY,
        name TEXT NOT NULL,
        country TEXT NOT NULL,
        tier INTEGER NOT NULL DEFAULT 1
    );
    CREATE UNIQUE INDEX IF NOT EXISTS ix_leagues_name_country ON leagues(name, country);
    """


def teams_schema() -> str:
    return """
    CREATE TABLE IF NOT EXISTS teams (
        id TEXT PRIMARY KEY,
        name TEXT NOT NULL,
        short_name TEXT NOT NULL,
        city TEXT NOT NULL,
        league_id TEXT NOT NULL,
        is_derby_team INTEGER NOT NULL DEFAULT 0,
        FOREIGN KEY (league_id) REFERENCES leagues(id)
    );
    CREATE UNIQUE INDEX IF NOT EXISTS ix_teams_name ON teams(name);
    CREATE INDEX IF NOT EXISTS ix_teams_league ON teams(league_id);
    """


def matches_schema() -> str:
    """status: SCHEDULED | LIVE | FINISHED. added_time drawn once when minute 90 is reached."""
    return """
    CREATE TABLE IF NOT EXISTS matches (
        id TEXT PRIMARY KEY,
        league_id TEXT NOT NULL,
        home_team_id TEXT NOT NULL,
        away_team_id TEXT NOT NULL,
        start_time TEXT NOT NULL,
        status TEXT NOT NULL DEFAULT 'SCHEDULED',
        minute INTEGER NOT NULL DEFAULT 0,
        home_score INTEGER NOT NULL DEFAULT 0,
        away_score INTEGER NOT NULL DEFAULT 0,
        is_derby INTEGER NOT NULL DEFAULT 0,
        added_time INTEGER,
        FOREIGN KEY (league_id) REFERENCES leagues(id),
        FOREIGN KEY (home_team_id) REFERENCES teams(id),
        FOREIGN KEY (away_team_id) REFERENCES teams(id)
    );
    CREATE INDEX IF NOT EXISTS ix_matches_status ON matches(status);
    CREATE INDEX IF NOT EXISTS ix_matches_start ON matches(start_time);
    """


def odds_schema() -> str:
    """One odds board per match. live_markets: JSON object of in-play boards."""
    return """
    CREATE TABLE IF NOT EXISTS odds (
        match_id TEXT PRIMARY KEY,
        home_win INTEGER NOT NULL,
        draw INTEGER NOT NULL,
        away_win INTEGER NOT NULL,
        enhanced_home_win INTEGER NOT NULL,
        enhanced_draw INTEGER NOT NULL,
        enhanced_away_win INTEGER NOT NULL,
        over_25 INTEGER NOT NULL,
        under_25 INTEGER NOT NULL,
        btts_yes INTEGER NOT NULL,
        btts_no INTEGER NOT NULL,
        is_live INTEGER NOT NULL DEFAULT 0,
        last_updated_minute INTEGER,
        live_markets TEXT NOT NULL DEFAULT '{}',
        FOREIGN KEY (match_id) REFERENCES matches(id)
    );
    """


def match_events_schema() -> str:
    return """
    CREATE TABLE IF NOT EXISTS match_events (
        id TEXT PRIMARY KEY,
        match_id TEXT NOT NULL,
        minute INTEGER NOT NULL,
        event_type TEXT NOT NULL,
        team TEXT NOT NULL,
        player TEXT,
        description TEXT NOT NULL,
        FOREIGN KEY (match_id) REFERENCES matches(id)
    );
    CREATE INDEX IF NOT EXISTS ix_match_events_match ON match_events(match_id, minute);
    """


def live_bets_schema() -> str:
    """status: PENDING | WON | LOST | CASHED_OUT | VOID."""
    return """
    CREATE TABLE IF NOT EXISTS live_bets (
        id TEXT PRIMARY KEY,
        user_id TEXT NOT NULL,
        match_id TEXT NOT NULL,
        market TEXT NOT NULL,
        selection TEXT NOT NULL,
        odds INTEGER NOT NULL,
        stake INTEGER NOT NULL CHECK (stake > 0),
        potential_win INTEGER NOT NULL,
        diamond_reward INTEGER NOT NULL DEFAULT 0,
        placed_at_minute INTEGER NOT NULL,
        status TEXT NOT NULL DEFAULT 'PENDING',
        cash_out_value INTEGER,
        cash_out_available INTEGER NOT NULL DEFAULT 1,
        cashed_out INTEGER NOT NULL DEFAULT 0,
        win_amount INTEGER NOT NULL DEFAULT 0,
        created_at TEXT NOT NULL,
        settled_at TEXT,
        FOREIGN KEY (user_id) REFERENCES users(id),
        FOREIGN KEY (match_id) REFERENCES matches(id)
    );
    CREATE INDEX IF NOT EXISTS ix_live_bets_user ON live_bets(user_id);
    CREATE INDEX IF NOT EXISTS ix_live_bets_match_status ON live_bets(match_id, status);
    """


def bets_schema() -> str:
    return """
    CREATE TABLE IF NOT EXISTS bets (
        id TEXT PRIMARY KEY,
        user_id TEXT NOT NULL,
        bet_type TEXT NOT NULL,
        stake INTEGER NOT NULL CHECK (stake > 0),
        total_odds INTEGER NOT NULL,
        potential_win INTEGER NOT NULL,
        status TEXT NOT NULL DEFAULT 'PENDING',
        diamond_boost TEXT,
        diamonds_used INTEGER NOT NULL DEFAULT 0,
        payout INTEGER NOT NULL DEFAULT 0,
        created_at TEXT NOT NULL,
        settled_at TEXT,
        FOREIGN KEY (user_id) REFERENCES users(id)
    );
    CREATE INDEX IF NOT EXISTS ix_bets_user ON bets(user_id, created_at);
    CREATE INDEX IF NOT EXISTS ix_bets_status ON bets(status);

    CREATE TABLE IF NOT EXISTS bet_selections (
        id TEXT PRIMARY KEY,
        bet_id TEXT NOT NULL,
        match_id TEXT NOT NULL,
        market TEXT NOT NULL,
        selection TEXT NOT NULL,
        odds INTEGER NOT NULL,
        result TEXT NOT NULL DEFAULT 'PENDING',
        FOREIGN KEY (bet_id) REFERENCES bets(id),
        FOREIGN KEY (match_id) REFERENCES matches(id)
    );
    CREATE INDEX IF NOT EXISTS ix_bet_selections_bet ON bet_selections(bet_id);
    """


def transactions_schema() -> str:
    """Append-only ledger. amount signed (debits negative)."""
    return """
    CREATE TABLE IF NOT EXISTS transactions (
        id TEXT PRIMARY KEY,
        user_id TEXT NOT NULL,
        type TEXT NOT NULL,
        amount INTEGER NOT NULL,
        currency TEXT NOT NULL,
        description TEXT NOT NULL,
        reference TEXT,
        balance_before INTEGER NOT NULL,
        balance_after INTEGER NOT NULL,
        created_at TEXT NOT NULL,
        FOREIGN KEY (user_id) REFERENCES users(id)
    );
    CREATE INDEX IF NOT EXISTS ix_transactions_user ON transactions(user_id, created_at);
    """


def notifications_schema() -> str:
    return """
    CREATE TABLE IF NOT EXISTS notifications (
        id TEXT PRIMARY KEY,
        user_id TEXT NOT NULL,
        type TEXT NOT NULL,
        title TEXT NOT NULL,
        message TEXT NOT NULL,
        data TEXT NOT NULL DEFAULT '{}',
        read INTEGER NOT NULL DEFAULT 0,
        created_at TEXT NOT NULL,
        FOREIGN KEY (user_id) REFERENCES users(id)
    );
    CREATE INDEX IF NOT EXISTS ix_notifications_user ON notifications(user_id, created_at);
    """


def login_streaks_schema() -> str:
    return """
    CREATE TABLE IF NOT EXISTS login_streaks (
        user_id TEXT PRIMARY KEY,
        current_streak INTEGER NOT NULL DEFAULT 0,
        longest_streak INTEGER NOT NULL DEFAULT 0,
        last_claimed_date TEXT,
        FOREIGN KEY (user_id) REFERENCES users(id)
    );
    """


def challenges_schema() -> str:
    """One row per player per challenge per UTC day. completed_at set once progress reaches target."""
    return """
    CREATE TABLE IF NOT EXISTS user_challenges (
        id TEXT PRIMARY KEY,
        user_id TEXT NOT NULL,
        challenge_date TEXT NOT NULL,
        template_id TEXT NOT NULL,
        name TEXT NOT NULL,
        description TEXT NOT NULL,
        requirement TEXT NOT NULL,
        difficulty TEXT NOT NULL,
        target INTEGER NOT NULL,
        reward_bet_points INTEGER NOT NULL,
        reward_diamonds INTEGER NOT NULL,
        reward_xp INTEGER NOT NULL,
        progress INTEGER NOT NULL DEFAULT 0,
        completed_at TEXT,
        claimed_at TEXT,
        FOREIGN KEY (user_id) REFERENCES users(id)
    );
    CREATE UNIQUE INDEX IF NOT EXISTS ix_user_challenges_day ON user_challenges(user_id, challenge_date, template_id);
    """


def achievements_schema() -> str:
    return """
    CREATE TABLE IF NOT EXISTS user_achievements (
        user_id TEXT NOT NULL,
        achievement_id TEXT NOT NULL,
        unlocked_at TEXT NOT NULL,
        claimed_at TEXT,
        PRIMARY KEY (user_id, achievement_id),
        FOREIGN KEY (user_id) REFERENCES users(id)
    );
    """


def all_schema_sql() -> str:
    """Full schema for all tables (order respects foreign keys)."""
    return "\n".join([
        users_schema(),
        leagues_schema(),
        teams_schema(),
        matches_schema(),
        odds_schema(),
        match_events_schema(),
        live_bets_schema(),
        bets_schema(),
        transactions_schema(),
        notifications_schema(),
        login_streaks_schema(),
        challenges_schema(),
        achievements_schema(),
    ])
