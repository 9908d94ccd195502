"""
Tests for live bet placement, cash-out and settlement against a seeded database.
"""
from __future__ import annotations

from pathlib import Path

import pytest

import sys
sys.path.insert(0, str(Path(__file__).resolve().parent.parent.parent))

from backend.models import Match, MatchStatus
from backend.persistence import get_connection, init_db, set_db_path
from backend.persistence.repositories import (
    LiveBetRepository,
    MatchEventRepository,
    MatchRepository,
    NotificationRepository,
    TransactionRepository,
    UserRepository,
)
from backend.services import (
    AccountService,
    BettingClosedError,
    BettingError,
    CashOutValueChangedError,
    ForbiddenError,
    InsufficientFundsError,
    LiveBettingService,
)


@pytest.fixture
def conn(tmp_path):
    db_path = tmp_path / "live.db"
    set_db_path(db_path)
    init_db(db_path=db_path, seed=True)
    c = get_connection()
    yield c
    c.close()


@pytest.fixture
def user(conn):
    return AccountService().register(conn, "pekka", "salasana1")


def _regular_match(conn) -> Match:
    return next(m for m in MatchRepository().list(conn, status="SCHEDULED", limit=100) if not m.is_derby)


def _set_state(conn, match: Match, minute: int, home: int = 0, away: int = 0, status: str = "LIVE") -> None:
    MatchRepository().update_live_state(conn, match.id, minute, home, away, status)


@pytest.fixture
def live_match(conn):
    match = _regular_match(conn)
    _set_state(conn, match, 20)
    return match


def test_place_live_bet_debits_stake(conn, user, live_match):
    service = LiveBettingService()
    bet, balance = service.place_live_bet(conn, user.id, live_match.id, "match_result", "HOME", 150, 1000)
    assert balance == 9000
    assert bet.placed_at_minute == 20
    assert bet.potential_win == 1500
    assert bet.diamond_reward == 4
    ledger = TransactionRepository().list_by_reference(conn, bet.id)
    assert [t.type for t in ledger] == ["BET_PLACED"]
    assert ledger[0].balance_before == 10000
    assert ledger[0].balance_after == 9000


def test_enhanced_odds_take_precedence(conn, user, live_match):
    bet, _ = LiveBettingService().place_live_bet(
        conn, user.id, live_match.id, "match_result", "HOME", 150, 100, enhanced_odds=195
    )
    assert bet.odds == 195
    assert bet.potential_win == 195


def test_betting_closes_at_minute_75(conn, user, live_match):
    _set_state(conn, live_match, 75)
    with pytest.raises(BettingClosedError, match="75th minute"):
        LiveBettingService().place_live_bet(conn, user.id, live_match.id, "match_result", "HOME", 150, 100)


def test_cannot_bet_on_match_that_is_not_live(conn, user):
    match = _regular_match(conn)
    with pytest.raises(BettingClosedError, match="not live"):
        LiveBettingService().place_live_bet(conn, user.id, match.id, "match_result", "HOME", 150, 100)


def test_rejects_low_odds_and_bad_stake(conn, user, live_match):
    service = LiveBettingService()
    with pytest.raises(BettingError, match="at least"):
        service.place_live_bet(conn, user.id, live_match.id, "match_result", "HOME", 100, 100)
    with pytest.raises(BettingError, match="positive"):
        service.place_live_bet(conn, user.id, live_match.id, "match_result", "HOME", 150, 0)


def test_insufficient_funds_rolls_back(conn, user, live_match):
    service = LiveBettingService()
    service.place_live_bet(conn, user.id, live_match.id, "match_result", "HOME", 150, 6000)
    with pytest.raises(InsufficientFundsError):
        service.place_live_bet(conn, user.id, live_match.id, "match_result", "AWAY", 300, 6000)
    bets = LiveBetRepository().list_by_user(conn, user.id)
    assert len(bets) == 1
    assert service._get_user(conn, user.id).bet_points == 4000


# ---------- cash-out ----------


def test_cash_out_flow(conn, user, live_match):
    service = LiveBettingService()
    bet, _ = service.place_live_bet(conn, user.id, live_match.id, "match_result", "HOME", 150, 1000)

    early = service.quote_cash_out(conn, user.id, bet.id)
    assert early["eligible"] is False
    assert "2 minutes" in early["reason"]

    _set_state(conn, live_match, 30, home=1)
    quote = service.quote_cash_out(conn, user.id, bet.id)
    assert quote["eligible"] is True
    value = quote["cash_out"]["value"]
    assert value > 0

    with pytest.raises(CashOutValueChangedError) as exc:
        service.execute_cash_out(conn, user.id, bet.id, confirm_value=value + 1000)
    assert exc.value.current_value == value

    result = service.execute_cash_out(conn, user.id, bet.id, confirm_value=value)
    assert result["cash_out_value"] == value
    assert result["new_balance"] == 9000 + value
    stored = LiveBetRepository().get(conn, bet.id)
    assert stored.status == "CASHED_OUT"
    assert stored.cashed_out


def test_cash_out_other_users_bet_is_forbidden(conn, user, live_match):
    service = LiveBettingService()
    bet, _ = service.place_live_bet(conn, user.id, live_match.id, "match_result", "HOME", 150, 1000)
    other = AccountService().register(conn, "matti", "salasana2")
    with pytest.raises(ForbiddenError):
        service.quote_cash_out(conn, other.id, bet.id)


def test_list_cash_out_values(conn, user, live_match):
    service = LiveBettingService()
    service.place_live_bet(conn, user.id, live_match.id, "match_result", "HOME", 150, 1000)
    _set_state(conn, live_match, 40)
    entries = service.list_cash_out_values(conn, user.id)
    assert len(entries) == 1
    assert entries[0]["eligible"]
    assert "cash_out" in entries[0]


def test_rejects_selection_outside_its_market(conn, user, live_match):
    service = LiveBettingService()
    with pytest.raises(BettingError, match="Invalid total goals selection"):
        service.place_live_bet(conn, user.id, live_match.id, "total_goals", "over_abc", 200, 500)
    with pytest.raises(BettingError, match="expected one of HOME, DRAW, AWAY"):
        service.place_live_bet(conn, user.id, live_match.id, "match_result", "X", 200, 500)
    with pytest.raises(BettingError):
        service.place_live_bet(conn, user.id, live_match.id, "btts", "MAYBE", 200, 500)
    assert service._get_user(conn, user.id).bet_points == 10000
    bet, _ = service.place_live_bet(conn, user.id, live_match.id, "total_goals", "over_2", 200, 500)
    assert bet.selection == "over_2"


def test_list_cash_out_values_survives_unpriceable_bet(conn, user, live_match):
    service = LiveBettingService()
    good, _ = service.place_live_bet(conn, user.id, live_match.id, "match_result", "HOME", 150, 1000)
    with conn:
        bad = LiveBetRepository().create(
            conn, user.id, live_match.id, "total_goals", "over_abc", 200, 500, 1000, 3, 20,
        )
    _set_state(conn, live_match, 30)

    entries = {e["bet_id"]: e for e in service.list_cash_out_values(conn, user.id)}
    assert entries[good.id]["eligible"]
    assert "cash_out" in entries[good.id]
    assert entries[bad.id]["eligible"] is False
    assert entries[bad.id]["reason"] == "Cash-out not available for this selection"


def test_refresh_cash_out_values(conn, user, live_match):
    service = LiveBettingService()
    bet, _ = service.place_live_bet(conn, user.id, live_match.id, "match_result", "HOME", 150, 1000)
    assert service.refresh_cash_out_values(conn) == 1
    assert LiveBetRepository().get(conn, bet.id).cash_out_value is not None


# ---------- settlement ----------


def test_settle_winning_bet_pays_once(conn, user, live_match):
    service = LiveBettingService()
    service.place_live_bet(conn, user.id, live_match.id, "match_result", "HOME", 150, 1000)
    _set_state(conn, live_match, 93, home=2, status=MatchStatus.FINISHED.value)

    assert service.settle_live_bets(conn, live_match.id) == {"won": 1, "lost": 0, "void": 0}
    after = service._get_user(conn, user.id)
    assert after.bet_points == 10500
    assert after.diamonds == 54
    assert after.total_wins == 1

    assert service.settle_live_bets(conn, live_match.id) == {"won": 0, "lost": 0, "void": 0}
    assert service._get_user(conn, user.id).bet_points == 10500


def test_unknown_market_is_void_and_refunded(conn, user, live_match):
    service = LiveBettingService()
    bet, _ = service.place_live_bet(conn, user.id, live_match.id, "corners", "OVER", 200, 500)
    _set_state(conn, live_match, 92, status=MatchStatus.FINISHED.value)
    assert service.settle_live_bets(conn, live_match.id)["void"] == 1
    assert service._get_user(conn, user.id).bet_points == 10000
    assert LiveBetRepository().get(conn, bet.id).status == "VOID"


def test_next_goal_none_loses_when_a_goal_follows(conn, user, live_match):
    service = LiveBettingService()
    service.place_live_bet(conn, user.id, live_match.id, "next_goal", "NONE", 400, 500)
    MatchEventRepository().create(conn, live_match.id, 60, "goal", team="away", player="Virtanen", description="Goal")
    _set_state(conn, live_match, 94, away=1, status=MatchStatus.FINISHED.value)
    assert service.settle_live_bets(conn, live_match.id)["lost"] == 1
    assert service._get_user(conn, user.id).current_streak == 0


def test_settling_unfinished_match_raises(conn, live_match):
    with pytest.raises(BettingError, match="not finished"):
        LiveBettingService().settle_live_bets(conn, live_match.id)


# ---------- progression ----------


def test_crossing_level_threshold_pays_level_bonus(conn, user, live_match):
    bet, balance = LiveBettingService().place_live_bet(
        conn, user.id, live_match.id, "match_result", "HOME", 150, 5000
    )
    # 10000 - 5000 stake + 2000 level 2 bonus
    assert balance == 7000
    after = UserRepository().get(conn, user.id)
    assert after.level == 2
    assert after.diamonds == 70
    bonus = [t for t in TransactionRepository().list_by_user(conn, user.id) if t.type == "LEVEL_BONUS"]
    assert sorted((t.currency, t.amount) for t in bonus) == [("BETPOINTS", 2000), ("DIAMONDS", 20)]
    notes = NotificationRepository().list_by_user(conn, user.id)
    assert any(n.type == "LEVEL_UP" for n in notes)


def test_fifth_straight_win_pays_streak_bonus(conn, user, live_match):
    service = LiveBettingService()
    for _ in range(5):
        service.place_live_bet(conn, user.id, live_match.id, "match_result", "HOME", 150, 100)
    _set_state(conn, live_match, 92, home=1, status=MatchStatus.FINISHED.value)

    assert service.settle_live_bets(conn, live_match.id)["won"] == 5
    after = UserRepository().get(conn, user.id)
    assert after.current_streak == 5
    assert after.best_streak == 5
    # 4 diamonds per winning bet plus the 5-win bonus
    assert after.diamonds == 50 + 5 * 4 + 10
    streak_tx = [
        t for t in TransactionRepository().list_by_user(conn, user.id, currency="DIAMONDS")
        if t.description == "5-win streak bonus"
    ]
    assert len(streak_tx) == 1
    assert streak_tx[0].amount == 10
