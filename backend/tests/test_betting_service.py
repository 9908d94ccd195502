"""
Tests for pre-match singles and pitkäveto slips: placement, boosts,
limits and settlement once matches finish.
"""
from __future__ import annotations

from datetime import timedelta
from pathlib import Path

import pytest

import sys
sys.path.insert(0, str(Path(__file__).resolve().parent.parent.parent))

from backend.persistence import get_connection, init_db, set_db_path
from backend.persistence.repositories import MatchRepository, TransactionRepository
from backend.services import (
    AccountService,
    BettingClosedError,
    BettingError,
    BettingService,
    ForbiddenError,
    InsufficientFundsError,
    leaderboard,
)


@pytest.fixture
def conn(tmp_path):
    db_path = tmp_path / "bets.db"
    set_db_path(db_path)
    init_db(db_path=db_path, seed=True)
    c = get_connection()
    yield c
    c.close()


@pytest.fixture
def user(conn):
    return AccountService().register(conn, "liisa", "salasana1")


@pytest.fixture
def fixtures(conn):
    return MatchRepository().list(conn, status="SCHEDULED", limit=10)


def _sel(match, market="MATCH_RESULT", selection="HOME"):
    return {"match_id": match.id, "market": market, "selection": selection}


def _finish(conn, match, home, away):
    MatchRepository().update_live_state(conn, match.id, 92, home, away, "FINISHED")


def test_single_bet_debits_stake(conn, user, fixtures):
    service = BettingService()
    bet, price = service.place_bet(conn, user.id, "SINGLE", 100, [_sel(fixtures[0])])
    assert bet.status == "PENDING"
    assert bet.total_odds == price.total_odds
    assert bet.potential_win == round(100 * price.total_odds / 100)
    assert service._users.get(conn, user.id).bet_points == 9900
    assert [t.type for t in TransactionRepository().list_by_reference(conn, bet.id)] == ["BET_PLACED"]


def test_single_needs_exactly_one_selection(conn, user, fixtures):
    with pytest.raises(BettingError, match="exactly one"):
        BettingService().place_bet(conn, user.id, "SINGLE", 100, [_sel(fixtures[0]), _sel(fixtures[1])])


def test_pitkaveto_rejects_same_match_twice(conn, user, fixtures):
    with pytest.raises(BettingError, match="same match"):
        BettingService().place_bet(
            conn, user.id, "PITKAVETO", 100,
            [_sel(fixtures[0]), _sel(fixtures[0], "BTTS", "YES")],
        )


def test_diamond_boost_costs_diamonds(conn, user, fixtures):
    service = BettingService()
    _, plain = service.price_slip(conn, "SINGLE", [_sel(fixtures[0])])
    bet, price = service.place_bet(conn, user.id, "SINGLE", 100, [_sel(fixtures[0])], diamond_boost="MEDIUM")
    assert price.total_odds == round(plain.total_odds * 2.0)
    assert bet.diamonds_used == 25
    assert service._users.get(conn, user.id).diamonds == 25


def test_boost_beyond_diamond_balance_is_rejected(conn, user, fixtures):
    service = BettingService()
    service.place_bet(conn, user.id, "SINGLE", 100, [_sel(fixtures[0])], diamond_boost="MEDIUM")
    with pytest.raises(InsufficientFundsError, match="have 25, need 50"):
        service.place_bet(conn, user.id, "SINGLE", 100, [_sel(fixtures[1])], diamond_boost="LARGE")
    after = service._users.get(conn, user.id)
    assert after.diamonds == 25
    assert after.bet_points == 9900


def test_unknown_boost_is_rejected(conn, fixtures):
    with pytest.raises(BettingError, match="Unknown diamond boost"):
        BettingService().price_slip(conn, "SINGLE", [_sel(fixtures[0])], diamond_boost="HUGE")


def test_minimum_stake(conn, user, fixtures):
    with pytest.raises(BettingError, match="Minimum stake"):
        BettingService().place_bet(conn, user.id, "SINGLE", 5, [_sel(fixtures[0])])


def test_started_match_is_closed(conn, user, fixtures):
    later = fixtures[0].start_time + timedelta(minutes=1)
    with pytest.raises(BettingClosedError, match="already started"):
        BettingService().place_bet(conn, user.id, "SINGLE", 100, [_sel(fixtures[0])], now=later)


def test_pitkaveto_settles_won_after_all_matches_finish(conn, user, fixtures):
    service = BettingService()
    bet, _ = service.place_bet(conn, user.id, "PITKAVETO", 100, [_sel(fixtures[0]), _sel(fixtures[1])])

    _finish(conn, fixtures[0], 2, 0)
    assert service.settle_bet(conn, bet.id).status == "PENDING"

    _finish(conn, fixtures[1], 1, 0)
    settled = service.settle_bet(conn, bet.id)
    assert settled.status == "WON"
    assert settled.payout == bet.potential_win
    assert all(s.result == "WON" for s in settled.selections)
    assert service._users.get(conn, user.id).bet_points == 9900 + bet.potential_win

    # settling again changes nothing
    assert service.settle_bet(conn, bet.id).status == "WON"
    assert service._users.get(conn, user.id).bet_points == 9900 + bet.potential_win


def test_settle_all_pending(conn, user, fixtures):
    service = BettingService()
    service.place_bet(conn, user.id, "SINGLE", 100, [_sel(fixtures[0])])
    service.place_bet(conn, user.id, "SINGLE", 100, [_sel(fixtures[1], "MATCH_RESULT", "AWAY")])
    service.place_bet(conn, user.id, "SINGLE", 100, [_sel(fixtures[2])])
    _finish(conn, fixtures[0], 1, 0)
    _finish(conn, fixtures[1], 1, 0)
    assert service.settle_all_pending(conn) == {"won": 1, "lost": 1, "pending": 1}


def test_get_user_bet_checks_owner(conn, user, fixtures):
    service = BettingService()
    bet, _ = service.place_bet(conn, user.id, "SINGLE", 100, [_sel(fixtures[0])])
    other = AccountService().register(conn, "ville", "salasana2")
    assert service.get_user_bet(conn, user.id, bet.id).id == bet.id
    with pytest.raises(ForbiddenError):
        service.get_user_bet(conn, other.id, bet.id)


def test_history_and_stats(conn, user, fixtures):
    service = BettingService()
    service.place_bet(conn, user.id, "PITKAVETO", 100, [_sel(fixtures[0]), _sel(fixtures[1])])
    service.place_bet(conn, user.id, "SINGLE", 100, [_sel(fixtures[2])])
    assert len(service.history(conn, user.id)) == 2
    assert len(service.history(conn, user.id, bet_type="SINGLE")) == 1
    assert service.pitkaveto_stats(conn, user.id)["total_placed"] == 1


def test_leaderboard(conn, user, fixtures):
    rich = AccountService().register(conn, "rikas", "salasana3")
    BettingService().place_bet(conn, user.id, "SINGLE", 100, [_sel(fixtures[0])])
    entries = leaderboard(conn, "betpoints", limit=5)
    assert [e["username"] for e in entries] == ["rikas", "liisa"]
    assert entries[0]["rank"] == 1
    assert entries[0]["value"] == 10000
    assert entries[0]["user_id"] == rich.id
    with pytest.raises(ValueError):
        leaderboard(conn, "gold")
