"""
Tests for the live match engine: synchronous fast-forward, settlement at the
final whistle and the asyncio tick loop with subscribers.
"""
from __future__ import annotations

import asyncio
import threading
from pathlib import Path

import pytest

import sys
sys.path.insert(0, str(Path(__file__).resolve().parent.parent.parent))

from backend.live_match_engine import LiveMatchEngine, state_from_match
from backend.persistence import get_connection, init_db, set_db_path
from backend.persistence.repositories import (
    LiveBetRepository,
    MatchEventRepository,
    MatchRepository,
    OddsRepository,
)
from backend.services import AccountService, LiveBettingService


@pytest.fixture
def conn(tmp_path):
    db_path = tmp_path / "engine.db"
    set_db_path(db_path)
    init_db(db_path=db_path, seed=True)
    c = get_connection()
    yield c
    c.close()


@pytest.fixture
def match(conn):
    return MatchRepository().list(conn, status="SCHEDULED", limit=1)[0]


def test_state_from_match(match):
    state = state_from_match(match)
    assert state.match_id == match.id
    assert state.home_team == match.home_team_name
    assert state.minute == 0


def test_run_to_completion_finishes_match(conn, match):
    engine = LiveMatchEngine()
    payload = engine.run_to_completion(match.id, seed=42)

    assert payload["finished"]
    assert payload["status"] == "FINISHED"
    stored = MatchRepository().get(conn, match.id)
    assert stored.status == "FINISHED"
    assert stored.minute == 90 + stored.added_time
    assert (stored.home_score, stored.away_score) == (payload["home_score"], payload["away_score"])

    goals = MatchEventRepository().list_for_match(conn, match.id, event_type="goal")
    assert len(goals) == stored.home_score + stored.away_score
    assert len(payload["goals"]) == len(goals)

    odds = OddsRepository().get(conn, match.id)
    assert odds.is_live is False
    assert odds.last_updated_minute == stored.minute


def test_same_seed_same_result(conn, match):
    first = LiveMatchEngine().run_to_completion(match.id, seed=9)
    MatchRepository().reset(conn, match.id)
    second = LiveMatchEngine().run_to_completion(match.id, seed=9)
    assert (first["home_score"], first["away_score"]) == (second["home_score"], second["away_score"])
    assert first["goals"] == second["goals"]


def test_finished_match_cannot_restart(match):
    engine = LiveMatchEngine()
    engine.run_to_completion(match.id, seed=1)
    with pytest.raises(ValueError, match="cannot start"):
        engine.run_to_completion(match.id, seed=1)


def test_unknown_match(conn):
    with pytest.raises(ValueError, match="not found"):
        LiveMatchEngine().run_to_completion("missing")


def test_live_bets_are_settled_at_full_time(conn, match):
    MatchRepository().update_live_state(conn, match.id, 10, 0, 0, "LIVE")
    user = AccountService().register(conn, "eero", "salasana1")
    bet, _ = LiveBettingService().place_live_bet(conn, user.id, match.id, "match_result", "DRAW", 320, 500)

    payload = LiveMatchEngine().run_to_completion(match.id, seed=3)

    settled = LiveBetRepository().get(conn, bet.id)
    assert settled.status in ("WON", "LOST")
    assert sum(payload["settlement"].values()) == 1
    draw = payload["home_score"] == payload["away_score"]
    assert (settled.status == "WON") == draw


def test_async_engine_broadcasts_every_minute(conn, match):
    engine = LiveMatchEngine(seconds_per_minute=0, cash_out_refresh_seconds=3600)
    received = []

    def failing(payload):
        raise RuntimeError("socket closed")

    async def main():
        engine.subscribe(received.append, match.id)
        engine.subscribe(failing)
        task = engine.start_match(match.id, seed=11)
        assert engine.is_running(match.id)
        await task
        engine.stop_all()

    asyncio.run(main())

    stored = MatchRepository().get(conn, match.id)
    assert stored.status == "FINISHED"
    assert len(received) == stored.minute
    assert received[-1]["finished"]
    assert [p["minute"] for p in received] == list(range(1, stored.minute + 1))
    assert engine.active_matches() == []
    assert None not in engine._subscribers



def test_cancel_match_leaves_match_live(conn, match):
    engine = LiveMatchEngine(seconds_per_minute=0.01, cash_out_refresh_seconds=3600)

    async def main():
        engine.start_match(match.id, seed=5)
        await asyncio.sleep(0.1)
        assert await engine.cancel_match(match.id)
        assert not engine.is_running(match.id)
        engine.stop_all()

    asyncio.run(main())
    stored = MatchRepository().get(conn, match.id)
    assert stored.status == "LIVE"
    assert stored.minute < 90
    assert not engine.stop_match(match.id)


def test_run_to_completion_refuses_running_match(conn, match):
    engine = LiveMatchEngine(seconds_per_minute=0.01, cash_out_refresh_seconds=3600)

    async def main():
        engine.start_match(match.id, seed=5)
        with pytest.raises(ValueError, match="already running"):
            engine.run_to_completion(match.id)
        engine.stop_all()

    asyncio.run(main())


def test_fast_forward_takes_over_running_match(conn, match):
    engine = LiveMatchEngine(seconds_per_minute=0.01, cash_out_refresh_seconds=3600)

    async def main():
        engine.start_match(match.id, seed=8)
        await asyncio.sleep(0.1)
        payload = await engine.fast_forward(match.id, seed=8)
        engine.stop_all()
        return payload

    payload = asyncio.run(main())
    stored = MatchRepository().get(conn, match.id)
    assert payload["finished"]
    assert stored.status == "FINISHED"
    assert engine.active_matches() == []
    # every simulated minute written exactly once
    assert stored.minute == 90 + stored.added_time
    goals = MatchEventRepository().list_for_match(conn, match.id, event_type="goal")
    assert len(goals) == stored.home_score + stored.away_score


def test_ticks_run_off_the_event_loop_thread(conn, match):
    threads = []

    def tracking_conn():
        threads.append(threading.get_ident())
        return get_connection()

    engine = LiveMatchEngine(get_conn=tracking_conn, seconds_per_minute=0, cash_out_refresh_seconds=3600)

    async def main():
        task = engine.start_match(match.id, seed=2)
        loop_thread = threading.get_ident()
        await task
        engine.stop_all()
        return loop_thread

    loop_thread = asyncio.run(main())
    assert threads[0] == loop_thread
    assert len(threads) > 1
    assert loop_thread not in threads[1:]
