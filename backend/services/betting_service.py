"""
Pre-match betting: singles and pitkäveto slips, priced from the stored odds
boards, plus settlement once every match on a slip has finished.
"""
from __future__ import annotations

import logging
import sqlite3
from datetime import datetime, timedelta, timezone
from typing import Any

from backend.betting.challenges import ActivityKind, BetActivity
from backend.betting.diamonds import apply_boost, can_afford_boost, parse_boost
from backend.betting.limits import check_bet, limits_for
from backend.betting.pitkaveto import (
    PricedSelection,
    SlipPrice,
    pitkaveto_stats,
    potential_win,
    price_pitkaveto,
    selection_odds,
    validate_pitkaveto,
)
from backend.betting.settlement import LOST, WON, evaluate_selection
from backend.models import Bet, BetStatus, BetType, Currency, MatchStatus, TransactionType
from backend.persistence.repositories import (
    BetRepository,
    LiveBetRepository,
    MatchRepository,
    NotificationRepository,
    OddsRepository,
    UserRepository,
)
from backend.services.errors import (
    BettingClosedError,
    BettingError,
    ForbiddenError,
    InsufficientFundsError,
    NotFoundError,
)
from backend.services.progression import ProgressionService
from backend.services.wallet import Wallet

logger = logging.getLogger(__name__)


def stake_usage(conn: sqlite3.Connection, user_id: str, now: datetime) -> dict[str, int]:
    """Bets and stakes so far today and this ISO week (UTC), live and pre-match combined."""
    day_start = now.replace(hour=0, minute=0, second=0, microsecond=0)
    week_start = day_start - timedelta(days=day_start.weekday())
    bets, live = BetRepository(), LiveBetRepository()
    day_count, day_stake = bets.stake_summary_since(conn, user_id, day_start)
    live_day_count, live_day_stake = live.stake_summary_since(conn, user_id, day_start)
    _, week_stake = bets.stake_summary_since(conn, user_id, week_start)
    _, live_week_stake = live.stake_summary_since(conn, user_id, week_start)
    return {
        "bets_today": day_count + live_day_count,
        "staked_today": day_stake + live_day_stake,
        "staked_this_week": week_stake + live_week_stake,
    }


class BettingService:
    def __init__(self) -> None:
        self._users = UserRepository()
        self._matches = MatchRepository()
        self._odds = OddsRepository()
        self._bets = BetRepository()
        self._notifications = NotificationRepository()
        self._wallet = Wallet()
        self._progression = ProgressionService(self._wallet)

    # ---------- pricing ----------

    def price_slip(
        self,
        conn: sqlite3.Connection,
        bet_type: str,
        selections: list[dict[str, str]],
        diamond_boost: str | None = None,
        now: datetime | None = None,
    ) -> tuple[list[PricedSelection], SlipPrice]:
        """Validate and price a slip against current boards. Raises BettingError on any rule."""
        now = now or datetime.now(timezone.utc)
        if bet_type not in (BetType.SINGLE.value, BetType.PITKAVETO.value):
            raise BettingError(f"Unknown bet type: {bet_type}")
        if diamond_boost:
            try:
                parse_boost(diamond_boost)
            except ValueError as e:
                raise BettingError(str(e)) from e

        priced: list[PricedSelection] = []
        for raw in selections:
            match = self._matches.get(conn, raw["match_id"])
            if match is None:
                raise NotFoundError(f"Match not found: {raw['match_id']}")
            if match.status != MatchStatus.SCHEDULED.value or match.start_time <= now:
                raise BettingClosedError(f"{match.name} has already started")
            board = self._odds.get(conn, match.id)
            if board is None:
                raise BettingError(f"No odds available for {match.name}")
            try:
                odds = selection_odds(board, raw["market"], raw["selection"])
            except ValueError as e:
                raise BettingError(str(e)) from e
            priced.append(PricedSelection(
                match_id=match.id,
                market=raw["market"],
                selection=raw["selection"],
                odds=odds,
                start_time=match.start_time,
                is_derby=match.is_derby,
            ))

        if bet_type == BetType.SINGLE.value:
            if len(priced) != 1:
                raise BettingError("A single bet needs exactly one selection")
            odds = priced[0].odds
            if not diamond_boost:
                return priced, SlipPrice(odds, 1.0, odds, [])
            boost = apply_boost(odds, diamond_boost)
            multiplier = boost["multiplier"]
            return priced, SlipPrice(odds, multiplier, boost["boosted_odds"], [f"Diamond boost: {multiplier}x"])

        errors = validate_pitkaveto(priced, now)
        if errors:
            raise BettingError("; ".join(errors))
        return priced, price_pitkaveto(priced, diamond_boost)

    # ---------- placement ----------

    def place_bet(
        self,
        conn: sqlite3.Connection,
        user_id: str,
        bet_type: str,
        stake: int,
        selections: list[dict[str, str]],
        diamond_boost: str | None = None,
        now: datetime | None = None,
    ) -> tuple[Bet, SlipPrice]:
        now = now or datetime.now(timezone.utc)
        user = self._users.get(conn, user_id)
        if user is None:
            raise NotFoundError(f"User not found: {user_id}")
        priced, price = self.price_slip(conn, bet_type, selections, diamond_boost, now)

        limit_error = check_bet(
            limits_for(user.level, user.vip_status, user.role),
            stake=stake,
            selection_count=len(priced),
            total_odds=price.total_odds,
            **stake_usage(conn, user_id, now),
        )
        if limit_error:
            raise BettingError(limit_error)
        if user.bet_points < stake:
            raise InsufficientFundsError(f"Insufficient bet points: have {user.bet_points}, need {stake}")
        boost_cost = 0
        if diamond_boost:
            boost_cost = apply_boost(price.base_odds, diamond_boost)["cost"]
            if not can_afford_boost(user.diamonds, diamond_boost):
                raise InsufficientFundsError(f"Insufficient diamonds: have {user.diamonds}, need {boost_cost}")

        win = potential_win(stake, price.total_odds)
        label = "Pitkäveto" if bet_type == BetType.PITKAVETO.value else "Single"
        with conn:
            bet = self._bets.create(
                conn,
                user_id=user_id,
                bet_type=bet_type,
                stake=stake,
                total_odds=price.total_odds,
                potential_win=win,
                selections=[s.to_dict() for s in priced],
                diamond_boost=diamond_boost,
                diamonds_used=boost_cost,
            )
            self._wallet.debit(
                conn, user_id, Currency.BETPOINTS, stake,
                TransactionType.BET_PLACED.value,
                f"{label} bet ({len(priced)} selections) @ {price.total_odds / 100:.2f}",
                reference=bet.id,
            )
            if boost_cost:
                self._wallet.debit(
                    conn, user_id, Currency.DIAMONDS, boost_cost,
                    TransactionType.DIAMOND_SPENT.value,
                    f"{diamond_boost} odds boost",
                    reference=bet.id,
                )
            self._progression.record_stake(
                conn, user_id, stake,
                BetActivity(
                    ActivityKind.PLACED, stake, price.total_odds,
                    is_derby=any(p.is_derby for p in priced),
                    bet_type=bet_type, selection_count=len(priced),
                ),
            )
        logger.info("%s bet %s placed by %s: stake %d @ %d", label, bet.id, user_id, stake, price.total_odds)
        return bet, price

    # ---------- queries ----------

    def history(
        self,
        conn: sqlite3.Connection,
        user_id: str,
        status: str | None = None,
        bet_type: str | None = None,
        limit: int = 20,
        offset: int = 0,
    ) -> list[Bet]:
        return self._bets.list_by_user(conn, user_id, status=status, bet_type=bet_type, limit=limit, offset=offset)

    def get_user_bet(self, conn: sqlite3.Connection, user_id: str, bet_id: str) -> Bet:
        bet = self._bets.get(conn, bet_id)
        if bet is None:
            raise NotFoundError(f"Bet not found: {bet_id}")
        if bet.user_id != user_id:
            raise ForbiddenError("Bet belongs to another user")
        return bet

    def pitkaveto_stats(self, conn: sqlite3.Connection, user_id: str) -> dict[str, Any]:
        bets = self._bets.list_by_user(conn, user_id, bet_type=BetType.PITKAVETO.value, limit=10_000)
        return pitkaveto_stats(bets)

    # ---------- settlement ----------

    def settle_bet(self, conn: sqlite3.Connection, bet_id: str) -> Bet:
        """Settle once every match on the slip is finished; otherwise leave it pending."""
        bet = self._bets.get(conn, bet_id)
        if bet is None:
            raise NotFoundError(f"Bet not found: {bet_id}")
        if bet.status != BetStatus.PENDING.value:
            return bet
        matches = {m.id: m for m in self._matches.list_by_ids(conn, [s.match_id for s in bet.selections])}
        if any(m.status != MatchStatus.FINISHED.value for m in matches.values()):
            return bet

        results = {
            sel.id: evaluate_selection(
                sel.market, sel.selection, matches[sel.match_id].home_score, matches[sel.match_id].away_score
            )
            for sel in bet.selections
        }
        won = all(r == WON for r in results.values())
        activity = BetActivity(
            ActivityKind.WON if won else ActivityKind.LOST, bet.stake, bet.total_odds,
            payout=bet.potential_win if won else 0,
            is_derby=any(m.is_derby for m in matches.values()),
            bet_type=bet.bet_type, selection_count=len(bet.selections),
        )
        with conn:
            if not self._bets.settle(conn, bet.id, WON if won else LOST, bet.potential_win if won else 0):
                return self._bets.get(conn, bet.id) or bet
            for sel_id, result in results.items():
                self._bets.update_selection_result(conn, sel_id, result)
            if won:
                self._wallet.credit(
                    conn, bet.user_id, Currency.BETPOINTS, bet.potential_win,
                    TransactionType.BET_WON.value,
                    f"{bet.bet_type.title()} bet won @ {bet.total_odds / 100:.2f}",
                    reference=bet.id,
                )
                self._progression.record_win(conn, bet.user_id, bet.potential_win, activity)
                self._notifications.create(
                    conn, bet.user_id, "BET_WON", "Bet won!",
                    f"Your {bet.bet_type.lower()} bet won {bet.potential_win} BP.",
                    {"bet_id": bet.id, "payout": bet.potential_win},
                )
            else:
                self._progression.record_loss(conn, bet.user_id, activity)
        logger.info("Bet %s settled: %s", bet.id, "WON" if won else "LOST")
        settled = self._bets.get(conn, bet.id)
        if settled is None:
            raise NotFoundError(f"Bet not found: {bet.id}")
        return settled

    def settle_all_pending(self, conn: sqlite3.Connection) -> dict[str, int]:
        summary = {"won": 0, "lost": 0, "pending": 0}
        for bet_id in self._bets.list_pending_ids(conn):
            bet = self.settle_bet(conn, bet_id)
            if bet.status == BetStatus.WON.value:
                summary["won"] += 1
            elif bet.status == BetStatus.LOST.value:
                summary["lost"] += 1
            else:
                summary["pending"] += 1
        return summary
