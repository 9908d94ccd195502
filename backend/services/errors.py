"""
Domain errors raised by the service layer. The API maps them to HTTP status codes.
"""
from __future__ import annotations


class BettingError(ValueError):
    """Bet rejected by a business rule (limits, validation, odds)."""


class InsufficientFundsError(BettingError):
    """Balance too low for the stake or diamond cost."""


class BettingClosedError(BettingError):
    """Match not open for betting (not live, too late, already started)."""


class CashOutNotAllowedError(BettingError):
    """Bet not eligible for cash-out right now."""


class CashOutValueChangedError(BettingError):
    """Fresh cash-out quote moved beyond the confirmed value."""

    def __init__(self, message: str, current_value: int) -> None:
        super().__init__(message)
        self.current_value = current_value


class NotFoundError(ValueError):
    """Referenced entity does not exist."""


class ForbiddenError(ValueError):
    """Caller does not own the resource."""


class DailyBonusAlreadyClaimedError(ValueError):
    """Daily login bonus already claimed for today (UTC)."""


class ChallengeError(ValueError):
    """Challenge or achievement reward not claimable (not completed, already claimed)."""
