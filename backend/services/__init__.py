"""
Service layer: betting rules, money moves and settlement.
Services own transactions; repositories never see business rules.
"""
from .errors import (
    BettingError,
    InsufficientFundsError,
    BettingClosedError,
    CashOutNotAllowedError,
    CashOutValueChangedError,
    NotFoundError,
    ForbiddenError,
    DailyBonusAlreadyClaimedError,
    ChallengeError,
)
from .wallet import Wallet
from .achievement_service import AchievementService
from .challenge_service import ChallengeService
from .progression import ProgressionService
from .betting_service import BettingService, stake_usage
from .live_betting_service import LiveBettingService
from .daily_login_service import DailyLoginService
from .leaderboard_service import LEADERBOARDS, leaderboard
from .account_service import AccountService, RegistrationError

__all__ = [
    "BettingError",
    "InsufficientFundsError",
    "BettingClosedError",
    "CashOutNotAllowedError",
    "CashOutValueChangedError",
    "NotFoundError",
    "ForbiddenError",
    "DailyBonusAlreadyClaimedError",
    "ChallengeError",
    "Wallet",
    "AchievementService",
    "ChallengeService",
    "ProgressionService",
    "BettingService",
    "stake_usage",
    "LiveBettingService",
    "DailyLoginService",
    "LEADERBOARDS",
    "leaderboard",
    "AccountService",
    "RegistrationError",
]
