"""
Data models for the betting backend.
Domain objects only: no persistence or API logic.

Odds are integers in hundredths of decimal odds (250 == 2.50) everywhere.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import Any


# ---------- Match status (state machine) ----------
class MatchStatus(str, Enum):
    """Match lifecycle: scheduled → live → finished."""
    SCHEDULED = "SCHEDULED"
    LIVE = "LIVE"
    FINISHED = "FINISHED"


class BetStatus(str, Enum):
    PENDING = "PENDING"
    WON = "WON"
    LOST = "LOST"
    CASHED_OUT = "CASHED_OUT"
    VOID = "VOID"


class BetType(str, Enum):
    SINGLE = "SINGLE"
    PITKAVETO = "PITKAVETO"


class Currency(str, Enum):
    BETPOINTS = "BETPOINTS"
    DIAMONDS = "DIAMONDS"


class TransactionType(str, Enum):
    SIGNUP_BONUS = "SIGNUP_BONUS"
    BET_PLACED = "BET_PLACED"
    BET_WON = "BET_WON"
    CASH_OUT = "CASH_OUT"
    REFUND = "REFUND"
    DAILY_BONUS = "DAILY_BONUS"
    DIAMOND_EARNED = "DIAMOND_EARNED"
    DIAMOND_SPENT = "DIAMOND_SPENT"
    LEVEL_BONUS = "LEVEL_BONUS"
    CHALLENGE_REWARD = "CHALLENGE_REWARD"
    ACHIEVEMENT_REWARD = "ACHIEVEMENT_REWARD"


class UserRole(str, Enum):
    USER = "USER"
    ADMIN = "ADMIN"


class VipStatus(str, Enum):
    FREE = "FREE"
    VIP_MONTHLY = "VIP_MONTHLY"
    SEASON_PASS = "SEASON_PASS"


# ---------- User ----------
@dataclass
class User:
    """
    A player account with both currencies and lifetime betting stats.
    password_hash is never serialized.
    """
    id: str
    username: str
    email: str | None
    password_hash: str
    created_at: datetime
    role: str = UserRole.USER.value
    vip_status: str = VipStatus.FREE.value
    bet_points: int = 0
    diamonds: int = 0
    xp: int = 0
    level: int = 1
    total_bets: int = 0
    total_wins: int = 0
    total_staked: int = 0
    total_won: int = 0
    current_streak: int = 0
    best_streak: int = 0
    biggest_win: int = 0
    derby_wins: int = 0
    live_wins: int = 0
    high_stake_bets: int = 0
    combo_wins: int = 0
    challenges_completed: int = 0

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN.value

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "username": self.username,
            "email": self.email,
            "role": self.role,
            "vip_status": self.vip_status,
            "bet_points": self.bet_points,
            "diamonds": self.diamonds,
            "xp": self.xp,
            "level": self.level,
            "total_bets": self.total_bets,
            "total_wins": self.total_wins,
            "total_staked": self.total_staked,
            "total_won": self.total_won,
            "current_streak": self.current_streak,
            "best_streak": self.best_streak,
            "biggest_win": self.biggest_win,
            "derby_wins": self.derby_wins,
            "live_wins": self.live_wins,
            "challenges_completed": self.challenges_completed,
            "created_at": self.created_at.isoformat(),
        }


# ---------- League / Team ----------
@dataclass
class League:
    id: str
    name: str
    country: str
    tier: int

    def to_dict(self) -> dict[str, Any]:
        return {"id": self.id, "name": self.name, "country": self.country, "tier": self.tier}


@dataclass
class Team:
    id: str
    name: str
    short_name: str
    city: str
    league_id: str
    is_derby_team: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "short_name": self.short_name,
            "city": self.city,
            "league_id": self.league_id,
            "is_derby_team": self.is_derby_team,
        }


# ---------- Match ----------
@dataclass
class Match:
    """
    A fixture. minute/score are only meaningful once live.
    Team names are denormalized by the repository join for display.
    """
    id: str
    league_id: str
    home_team_id: str
    away_team_id: str
    start_time: datetime
    status: str = MatchStatus.SCHEDULED.value
    minute: int = 0
    home_score: int = 0
    away_score: int = 0
    is_derby: bool = False
    added_time: int | None = None
    home_team_name: str = ""
    away_team_name: str = ""
    home_is_derby_team: bool = False
    away_is_derby_team: bool = False

    @property
    def name(self) -> str:
        return f"{self.home_team_name} vs {self.away_team_name}"

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "league_id": self.league_id,
            "home_team_id": self.home_team_id,
            "away_team_id": self.away_team_id,
            "home_team": self.home_team_name,
            "away_team": self.away_team_name,
            "start_time": self.start_time.isoformat(),
            "status": self.status,
            "minute": self.minute,
            "home_score": self.home_score,
            "away_score": self.away_score,
            "is_derby": self.is_derby,
        }


@dataclass
class MatchOdds:
    """Odds board for one match. live_markets holds the in-play boards (next goal, corners, ...)."""
    match_id: str
    home_win: int
    draw: int
    away_win: int
    enhanced_home_win: int
    enhanced_draw: int
    enhanced_away_win: int
    over_25: int
    under_25: int
    btts_yes: int
    btts_no: int
    is_live: bool = False
    last_updated_minute: int | None = None
    live_markets: dict[str, int] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "match_id": self.match_id,
            "match_result": {"HOME": self.home_win, "DRAW": self.draw, "AWAY": self.away_win},
            "enhanced_match_result": {
                "HOME": self.enhanced_home_win,
                "DRAW": self.enhanced_draw,
                "AWAY": self.enhanced_away_win,
            },
            "over_under_25": {"OVER": self.over_25, "UNDER": self.under_25},
            "btts": {"YES": self.btts_yes, "NO": self.btts_no},
            "is_live": self.is_live,
            "last_updated_minute": self.last_updated_minute,
            "live_markets": dict(self.live_markets),
        }


@dataclass
class MatchEventRecord:
    id: str
    match_id: str
    minute: int
    event_type: str
    team: str
    player: str | None
    description: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "match_id": self.match_id,
            "minute": self.minute,
            "type": self.event_type,
            "team": self.team,
            "player": self.player,
            "description": self.description,
        }


# ---------- Bets ----------
@dataclass
class LiveBet:
    """In-play single bet. odds is the effective (possibly enhanced) odds at placement."""
    id: str
    user_id: str
    match_id: str
    market: str
    selection: str
    odds: int
    stake: int
    potential_win: int
    diamond_reward: int
    placed_at_minute: int
    created_at: datetime
    status: str = BetStatus.PENDING.value
    cash_out_value: int | None = None
    cash_out_available: bool = True
    cashed_out: bool = False
    win_amount: int = 0
    settled_at: datetime | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "match_id": self.match_id,
            "market": self.market,
            "selection": self.selection,
            "odds": self.odds,
            "stake": self.stake,
            "potential_win": self.potential_win,
            "diamond_reward": self.diamond_reward,
            "placed_at_minute": self.placed_at_minute,
            "status": self.status,
            "cash_out_value": self.cash_out_value,
            "cash_out_available": self.cash_out_available,
            "cashed_out": self.cashed_out,
            "win_amount": self.win_amount,
            "created_at": self.created_at.isoformat(),
            "settled_at": self.settled_at.isoformat() if self.settled_at else None,
        }


@dataclass
class BetSelection:
    id: str
    bet_id: str
    match_id: str
    market: str
    selection: str
    odds: int
    result: str = BetStatus.PENDING.value

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "match_id": self.match_id,
            "market": self.market,
            "selection": self.selection,
            "odds": self.odds,
            "result": self.result,
        }


@dataclass
class Bet:
    """Pre-match single or pitkäveto slip. total_odds includes every bonus and boost."""
    id: str
    user_id: str
    bet_type: str
    stake: int
    total_odds: int
    potential_win: int
    created_at: datetime
    status: str = BetStatus.PENDING.value
    diamond_boost: str | None = None
    diamonds_used: int = 0
    payout: int = 0
    settled_at: datetime | None = None
    selections: list[BetSelection] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "bet_type": self.bet_type,
            "stake": self.stake,
            "total_odds": self.total_odds,
            "potential_win": self.potential_win,
            "status": self.status,
            "diamond_boost": self.diamond_boost,
            "diamonds_used": self.diamonds_used,
            "payout": self.payout,
            "created_at": self.created_at.isoformat(),
            "settled_at": self.settled_at.isoformat() if self.settled_at else None,
            "selections": [s.to_dict() for s in self.selections],
        }


# ---------- Ledger ----------
@dataclass
class Transaction:
    """Append-only ledger row. amount is signed; balance_* are for the row's currency."""
    id: str
    user_id: str
    type: str
    amount: int
    currency: str
    description: str
    balance_before: int
    balance_after: int
    created_at: datetime
    reference: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "type": self.type,
            "amount": self.amount,
            "currency": self.currency,
            "description": self.description,
            "reference": self.reference,
            "balance_before": self.balance_before,
            "balance_after": self.balance_after,
            "created_at": self.created_at.isoformat(),
        }


@dataclass
class Notification:
    id: str
    user_id: str
    type: str
    title: str
    message: str
    created_at: datetime
    data: dict[str, Any] = field(default_factory=dict)
    read: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "type": self.type,
            "title": self.title,
            "message": self.message,
            "data": self.data,
            "read": self.read,
            "created_at": self.created_at.isoformat(),
        }


@dataclass
class LoginStreak:
    user_id: str
    current_streak: int = 0
    longest_streak: int = 0
    last_claimed_date: date | None = None


@dataclass
class UserChallenge:
    """One of a player's challenges for a UTC day. Template fields are copied so rewards stay fixed."""
    id: str
    user_id: str
    challenge_date: date
    template_id: str
    name: str
    description: str
    requirement: str
    difficulty: str
    target: int
    reward_bet_points: int
    reward_diamonds: int
    reward_xp: int
    progress: int = 0
    completed_at: datetime | None = None
    claimed_at: datetime | None = None

    @property
    def completed(self) -> bool:
        return self.completed_at is not None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "template_id": self.template_id,
            "challenge_date": self.challenge_date.isoformat(),
            "name": self.name,
            "description": self.description,
            "requirement": self.requirement,
            "difficulty": self.difficulty,
            "target": self.target,
            "progress": min(self.progress, self.target),
            "completed": self.completed,
            "claimed": self.claimed_at is not None,
            "reward": {
                "bet_points": self.reward_bet_points,
                "diamonds": self.reward_diamonds,
                "xp": self.reward_xp,
            },
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
            "claimed_at": self.claimed_at.isoformat() if self.claimed_at else None,
        }


@dataclass
class UserAchievement:
    user_id: str
    achievement_id: str
    unlocked_at: datetime
    claimed_at: datetime | None = None
