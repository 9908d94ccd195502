#!/usr/bin/env python3
"""
Vertical slice: Register → Bet pre-match and live → Play matches → Settle → Ledger.
Run from project root: python3 scripts/vertical_slice.py
"""
from __future__ import annotations

import sys
import uuid
from pathlib import Path

# Ensure project root on path
PROJECT_ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from backend.live_match_engine import LiveMatchEngine
from backend.persistence import MatchRepository, TransactionRepository, get_connection, init_db
from backend.persistence.db import set_db_path
from backend.services import AccountService, BettingService, LiveBettingService


def main() -> None:
    # Use data/vertical_slice.db for demo (distinct from betting.db)
    db_path = PROJECT_ROOT / "data" / "vertical_slice.db"
    if db_path.exists():
        db_path.unlink()
    set_db_path(db_path)
    init_db(db_path=db_path, seed=True)

    conn = get_connection()
    try:
        matches = MatchRepository()
        fixtures = matches.list(conn, status="SCHEDULED", limit=3)

        # 1. Register
        user = AccountService().register(conn, f"slice-{uuid.uuid4().hex[:6]}", "slicepass")
        print(f"Registered {user.username}: {user.bet_points} BP, {user.diamonds} diamonds")

        # 2. Pitkäveto on the first two fixtures, boosted
        bet, price = BettingService().place_bet(
            conn, user.id, "PITKAVETO", 500,
            [{"match_id": m.id, "market": "MATCH_RESULT", "selection": "HOME"} for m in fixtures[:2]],
            diamond_boost="SMALL",
        )
        print(f"Pitkäveto {bet.id[:8]}: {price.total_odds / 100:.2f} ({', '.join(price.bonus_reasons) or 'no bonus'})")

        # 3. Live bet on the third fixture at minute 10
        live = fixtures[2]
        matches.update_live_state(conn, live.id, 10, 0, 0, "LIVE")
        live_bet, balance = LiveBettingService().place_live_bet(
            conn, user.id, live.id, "total_goals", "over_1", 170, 1000
        )
        print(f"Live bet {live_bet.id[:8]} on {live.name} at 10': balance {balance} BP")
    finally:
        conn.close()

    # 4. Play all three to full time (settles live and pre-match bets)
    engine = LiveMatchEngine()
    for i, m in enumerate(fixtures):
        payload = engine.run_to_completion(m.id, seed=1000 + i)
        print(f"FT {payload['home_team']} {payload['home_score']}-{payload['away_score']} {payload['away_team']}")

    # 5. Results and ledger
    conn = get_connection()
    try:
        settled = BettingService().get_user_bet(conn, user.id, bet.id)
        print(f"Pitkäveto: {settled.status} (payout {settled.payout})")
        for d in LiveBettingService().list_user_bets(conn, user.id):
            print(f"Live bet: {d['status']} (win {d['win_amount']})")
        print("\nLedger:")
        for tx in reversed(TransactionRepository().list_by_user(conn, user.id)):
            print(f"  {tx.type:<15} {tx.amount:>+7} {tx.currency:<9} -> {tx.balance_after}")
    finally:
        conn.close()

    print("\nVertical slice complete.")


if __name__ == "__main__":
    main()
