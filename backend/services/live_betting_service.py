"""
Live betting: placement on running matches, cash-out and settlement.

Every money move (stake debit, cash-out credit, payout) runs inside one
`with conn:` block so the bet row, the balance and the ledger agree.
"""
from __future__ import annotations

import logging
import sqlite3
from datetime import datetime, timezone
from typing import Any

from backend.betting.cash_out import (
    calculate_cash_out,
    check_eligibility,
    refresh_available,
    refresh_value,
    value_changed,
)
from backend.betting.challenges import ActivityKind, BetActivity
from backend.betting.diamonds import live_bet_diamond_reward
from backend.betting.limits import check_bet, limits_for
from backend.betting.odds import check_live_selection
from backend.betting.settlement import LOST, VOID, WON, evaluate_live_bet
from backend.models import (
    BetStatus,
    Currency,
    LiveBet,
    Match,
    MatchStatus,
    TransactionType,
    User,
)
from backend.persistence.repositories import (
    LiveBetRepository,
    MatchEventRepository,
    MatchRepository,
    NotificationRepository,
    UserRepository,
)
from backend.services.errors import (
    BettingClosedError,
    BettingError,
    CashOutNotAllowedError,
    CashOutValueChangedError,
    ForbiddenError,
    NotFoundError,
)
from backend.services.betting_service import stake_usage
from backend.services.progression import ProgressionService
from backend.services.wallet import Wallet

logger = logging.getLogger(__name__)

BETTING_CLOSES_AT_MINUTE = 75
MIN_ODDS = 101


class LiveBettingService:
    def __init__(self) -> None:
        self._users = UserRepository()
        self._matches = MatchRepository()
        self._events = MatchEventRepository()
        self._bets = LiveBetRepository()
        self._notifications = NotificationRepository()
        self._wallet = Wallet()
        self._progression = ProgressionService(self._wallet)

    # ---------- helpers ----------

    def _get_user(self, conn: sqlite3.Connection, user_id: str) -> User:
        user = self._users.get(conn, user_id)
        if user is None:
            raise NotFoundError(f"User not found: {user_id}")
        return user

    def _get_match(self, conn: sqlite3.Connection, match_id: str) -> Match:
        match = self._matches.get(conn, match_id)
        if match is None:
            raise NotFoundError(f"Match not found: {match_id}")
        return match

    def _get_owned_bet(self, conn: sqlite3.Connection, user_id: str, bet_id: str) -> LiveBet:
        bet = self._bets.get(conn, bet_id)
        if bet is None:
            raise NotFoundError(f"Live bet not found: {bet_id}")
        if bet.user_id != user_id:
            raise ForbiddenError("Bet belongs to another user")
        return bet

    # ---------- placement ----------

    def place_live_bet(
        self,
        conn: sqlite3.Connection,
        user_id: str,
        match_id: str,
        market: str,
        selection: str,
        odds: int,
        stake: int,
        enhanced_odds: int | None = None,
    ) -> tuple[LiveBet, int]:
        """Place an in-play single. Returns (bet, bet point balance after)."""
        if not market or not selection:
            raise BettingError("Market and selection are required")
        selection_error = check_live_selection(market, selection)
        if selection_error:
            raise BettingError(selection_error)
        effective_odds = enhanced_odds or odds
        if effective_odds < MIN_ODDS:
            raise BettingError(f"Odds must be at least {MIN_ODDS / 100:.2f}")
        if stake <= 0:
            raise BettingError("Stake must be positive")

        match = self._get_match(conn, match_id)
        if match.status != MatchStatus.LIVE.value:
            raise BettingClosedError("Match is not live")
        if match.minute >= BETTING_CLOSES_AT_MINUTE:
            raise BettingClosedError(f"Betting closed after {BETTING_CLOSES_AT_MINUTE}th minute")

        user = self._get_user(conn, user_id)
        usage = stake_usage(conn, user_id, datetime.now(timezone.utc))
        limit_error = check_bet(
            limits_for(user.level, user.vip_status, user.role),
            stake=stake,
            selection_count=1,
            total_odds=effective_odds,
            **usage,
        )
        if limit_error:
            raise BettingError(limit_error)

        potential_win = round(stake * effective_odds / 100)
        diamond_reward = live_bet_diamond_reward(effective_odds, match.is_derby)
        with conn:
            bet = self._bets.create(
                conn,
                user_id=user_id,
                match_id=match_id,
                market=market,
                selection=selection,
                odds=effective_odds,
                stake=stake,
                potential_win=potential_win,
                diamond_reward=diamond_reward,
                placed_at_minute=match.minute,
            )
            self._wallet.debit(
                conn, user_id, Currency.BETPOINTS, stake,
                TransactionType.BET_PLACED.value,
                f"Live bet: {match.name} - {market}",
                reference=bet.id,
            )
            self._progression.record_stake(
                conn, user_id, stake,
                BetActivity(ActivityKind.PLACED, stake, effective_odds, is_live=True, is_derby=match.is_derby),
            )
        logger.info("Live bet %s placed: %s %s @ %d, stake %d", bet.id, market, selection, effective_odds, stake)
        balance = self._get_user(conn, user_id).bet_points
        return bet, balance

    def list_user_bets(self, conn: sqlite3.Connection, user_id: str, status: str | None = None) -> list[dict[str, Any]]:
        bets = self._bets.list_by_user(conn, user_id, status=status)
        matches = {m.id: m for m in self._matches.list_by_ids(conn, list({b.match_id for b in bets}))}
        out = []
        for bet in bets:
            d = bet.to_dict()
            match = matches.get(bet.match_id)
            if match:
                d["match"] = match.to_dict()
            out.append(d)
        return out

    # ---------- cash-out ----------

    def quote_cash_out(self, conn: sqlite3.Connection, user_id: str, bet_id: str) -> dict[str, Any]:
        bet = self._get_owned_bet(conn, user_id, bet_id)
        match = self._get_match(conn, bet.match_id)
        eligible, reason = check_eligibility(bet, match)
        result: dict[str, Any] = {"bet_id": bet.id, "eligible": eligible, "reason": reason}
        if eligible:
            result["cash_out"] = calculate_cash_out(bet, match).to_dict()
        return result

    def execute_cash_out(
        self,
        conn: sqlite3.Connection,
        user_id: str,
        bet_id: str,
        confirm_value: int | None = None,
    ) -> dict[str, Any]:
        bet = self._get_owned_bet(conn, user_id, bet_id)
        match = self._get_match(conn, bet.match_id)
        eligible, reason = check_eligibility(bet, match)
        if not eligible:
            raise CashOutNotAllowedError(reason or "Cash-out not available")
        quote = calculate_cash_out(bet, match)
        if confirm_value is not None and value_changed(quote.value, confirm_value):
            raise CashOutValueChangedError(
                f"Cash-out value changed from {confirm_value} to {quote.value}", quote.value
            )
        with conn:
            if self._bets.settle(conn, bet.id, BetStatus.CASHED_OUT.value, quote.value, cashed_out=True) == 0:
                raise CashOutNotAllowedError("Bet is not active")
            tx = self._wallet.credit(
                conn, user_id, Currency.BETPOINTS, quote.value,
                TransactionType.CASH_OUT.value,
                f"Cash-out: {match.name} - {bet.market}",
                reference=bet.id,
            )
            self._notifications.create(
                conn, user_id, "CASH_OUT", "Cash-out completed",
                f"You cashed out {quote.value} BP ({quote.profit_loss:+d}).",
                {"bet_id": bet.id, "value": quote.value},
            )
        logger.info("Live bet %s cashed out for %d", bet.id, quote.value)
        return {
            "bet_id": bet.id,
            "cash_out_value": quote.value,
            "profit_loss": quote.profit_loss,
            "profit_percentage": quote.profit_percentage,
            "new_balance": tx.balance_after,
        }

    def list_cash_out_values(self, conn: sqlite3.Connection, user_id: str) -> list[dict[str, Any]]:
        bets = self._bets.list_by_user(conn, user_id, status=BetStatus.PENDING.value, limit=200)
        matches = {m.id: m for m in self._matches.list_by_ids(conn, list({b.match_id for b in bets}))}
        out = []
        for bet in bets:
            match = matches[bet.match_id]
            eligible, reason = check_eligibility(bet, match)
            entry: dict[str, Any] = {
                "bet_id": bet.id,
                "match": match.name,
                "market": bet.market,
                "selection": bet.selection,
                "stake": bet.stake,
                "eligible": eligible,
                "reason": reason,
            }
            if eligible:
                try:
                    entry["cash_out"] = calculate_cash_out(bet, match).to_dict()
                except ValueError as e:
                    logger.warning("No cash-out quote for live bet %s: %s", bet.id, e)
                    entry["eligible"] = False
                    entry["reason"] = "Cash-out not available for this selection"
            out.append(entry)
        return out

    # ---------- settlement ----------

    def settle_live_bets(self, conn: sqlite3.Connection, match_id: str) -> dict[str, int]:
        """Settle every pending live bet on a finished match. Safe to call repeatedly."""
        match = self._get_match(conn, match_id)
        if match.status != MatchStatus.FINISHED.value:
            raise BettingError("Match is not finished")
        goals = self._events.list_for_match(conn, match_id, event_type="goal")
        summary = {"won": 0, "lost": 0, "void": 0}
        for bet in self._bets.list_pending_for_match(conn, match_id):
            outcome = evaluate_live_bet(
                bet.market, bet.selection, match.home_score, match.away_score, bet.placed_at_minute, goals
            )
            with conn:
                if outcome == WON:
                    if not self._bets.settle(conn, bet.id, WON, bet.potential_win):
                        continue
                    self._pay_winner(conn, bet, match)
                elif outcome == LOST:
                    if not self._bets.settle(conn, bet.id, LOST, 0):
                        continue
                    self._progression.record_loss(
                        conn, bet.user_id,
                        BetActivity(ActivityKind.LOST, bet.stake, bet.odds, is_live=True, is_derby=match.is_derby),
                    )
                else:
                    if not self._bets.settle(conn, bet.id, VOID, bet.stake):
                        continue
                    self._wallet.credit(
                        conn, bet.user_id, Currency.BETPOINTS, bet.stake,
                        TransactionType.REFUND.value,
                        f"Void live bet refund: {match.name} - {bet.market}",
                        reference=bet.id,
                    )
            summary[outcome.lower()] += 1
        logger.info(
            "Settled live bets for %s (%d-%d): %s",
            match.name, match.home_score, match.away_score, summary,
        )
        return summary

    def _pay_winner(self, conn: sqlite3.Connection, bet: LiveBet, match: Match) -> None:
        self._wallet.credit(
            conn, bet.user_id, Currency.BETPOINTS, bet.potential_win,
            TransactionType.BET_WON.value,
            f"Live bet won: {match.name} - {bet.market}",
            reference=bet.id,
        )
        if bet.diamond_reward:
            self._wallet.credit(
                conn, bet.user_id, Currency.DIAMONDS, bet.diamond_reward,
                TransactionType.DIAMOND_EARNED.value,
                f"Live bet diamonds: {match.name}",
                reference=bet.id,
            )
        streak_bonus = self._progression.record_win(
            conn, bet.user_id, bet.potential_win,
            BetActivity(
                ActivityKind.WON, bet.stake, bet.odds, payout=bet.potential_win,
                is_live=True, is_derby=match.is_derby,
            ),
        )
        self._notifications.create(
            conn, bet.user_id, "BET_WON", "Live bet won!",
            f"{match.name}: you won {bet.potential_win} BP and {bet.diamond_reward + streak_bonus} diamonds.",
            {"bet_id": bet.id, "win_amount": bet.potential_win, "diamonds": bet.diamond_reward + streak_bonus},
        )

    # ---------- engine support ----------

    def refresh_cash_out_values(self, conn: sqlite3.Connection) -> int:
        """Store the periodic cash-out estimate on every open live bet. Returns bets updated."""
        bets = self._bets.list_cash_out_candidates(conn)
        matches = {m.id: m for m in self._matches.list_by_ids(conn, list({b.match_id for b in bets}))}
        updated = 0
        with conn:
            for bet in bets:
                match = matches.get(bet.match_id)
                if match is None or match.status != MatchStatus.LIVE.value:
                    continue
                self._bets.update_cash_out_value(
                    conn, bet.id, refresh_value(bet.stake, match.minute), refresh_available(match.minute)
                )
                updated += 1
        return updated
