"""
Live match engine: drives LIVE fixtures one simulated minute per tick,
persists events and score, keeps the odds boards moving and settles live
bets at the final whistle. Ticks run as asyncio tasks and hand their sqlite
work to the default executor, one connection per call, so the event loop
never blocks on the database. run_to_completion is the synchronous
fast-forward used by the CLI; fast_forward wraps it for the admin API.

Task bookkeeping (start, cancel, the _tasks dict) must happen on the event
loop thread.
"""
from __future__ import annotations

import asyncio
import inspect
import logging
import sqlite3
from typing import Any, Awaitable, Callable

from backend import config
from backend.betting.odds import live_markets_board, update_match_result_board
from backend.models import Match, MatchStatus
from backend.persistence import get_connection
from backend.persistence.repositories import (
    MatchEventRepository,
    MatchRepository,
    OddsRepository,
)
from backend.services.betting_service import BettingService
from backend.services.live_betting_service import LiveBettingService
from backend.simulation import MatchSimulator, MatchState

logger = logging.getLogger(__name__)

Subscriber = Callable[[dict[str, Any]], Awaitable[None] | None]


def state_from_match(match: Match) -> MatchState:
    return MatchState(
        match_id=match.id,
        home_team=match.home_team_name,
        away_team=match.away_team_name,
        home_is_derby_team=match.home_is_derby_team,
        away_is_derby_team=match.away_is_derby_team,
        is_derby=match.is_derby,
        minute=match.minute,
        home_score=match.home_score,
        away_score=match.away_score,
        added_time=match.added_time,
    )


def step_match(conn: sqlite3.Connection, sim: MatchSimulator) -> dict[str, Any]:
    """
    Simulate one minute and persist it: events, score and minute, then the
    odds row (1X2 moved after goals, in-play boards every minute).
    At the final whistle the match is FINISHED and its bets are settled.
    Returns the live_update payload.
    """
    matches, events, odds_repo = MatchRepository(), MatchEventRepository(), OddsRepository()
    result = sim.step()
    state = sim.state
    status = MatchStatus.FINISHED.value if result.finished else MatchStatus.LIVE.value

    with conn:
        for ev in result.events:
            events.create(
                conn, state.match_id, ev.minute, ev.type, ev.team, ev.description,
                player=ev.player, commit=False,
            )
        matches.update_live_state(
            conn, state.match_id, state.minute, state.home_score, state.away_score, status,
            added_time=state.added_time, commit=False,
        )
        odds = odds_repo.get(conn, state.match_id)
        if odds is not None:
            if result.goals:
                update_match_result_board(odds, state.home_score, state.away_score, state.minute)
            odds.live_markets = live_markets_board(
                state.home_score, state.away_score, state.minute, state.is_derby
            )
            odds.is_live = not result.finished
            odds.last_updated_minute = state.minute
            odds_repo.upsert(conn, odds, commit=False)

    for goal in result.goals:
        logger.info(
            "GOAL %s %d' %s (%s) %d-%d",
            state.match_id, goal.minute, goal.player, goal.team, state.home_score, state.away_score,
        )

    payload: dict[str, Any] = {
        "type": "live_update",
        "match_id": state.match_id,
        "status": status,
        "minute": state.minute,
        "added_time": state.added_time,
        "home_team": state.home_team,
        "away_team": state.away_team,
        "home_score": state.home_score,
        "away_score": state.away_score,
        "events": [e.to_dict() for e in result.events],
        "odds": odds.to_dict() if odds is not None else None,
        "finished": result.finished,
    }
    if result.finished:
        payload["settlement"] = LiveBettingService().settle_live_bets(conn, state.match_id)
        payload["prematch_settlement"] = BettingService().settle_all_pending(conn)
        logger.info(
            "Full time %s: %s %d-%d %s",
            state.match_id, state.home_team, state.home_score, state.away_score, state.away_team,
        )
    return payload


class LiveMatchEngine:
    """
    Owns one asyncio task per running match plus the periodic cash-out
    refresher. Subscribers receive every live_update payload; a subscriber
    registered with match_id=None receives updates for all matches.
    """

    def __init__(
        self,
        get_conn: Callable[[], sqlite3.Connection] = get_connection,
        seconds_per_minute: float | None = None,
        cash_out_refresh_seconds: float | None = None,
    ) -> None:
        self._get_conn = get_conn
        self.seconds_per_minute = (
            config.LIVE_SECONDS_PER_MINUTE if seconds_per_minute is None else seconds_per_minute
        )
        self.cash_out_refresh_seconds = (
            config.CASH_OUT_REFRESH_SECONDS if cash_out_refresh_seconds is None else cash_out_refresh_seconds
        )
        self._matches = MatchRepository()
        self._odds = OddsRepository()
        self._tasks: dict[str, asyncio.Task] = {}
        self._subscribers: dict[str | None, list[Subscriber]] = {}
        self._refresh_task: asyncio.Task | None = None

    # ---------- lifecycle ----------

    def active_matches(self) -> list[str]:
        return [mid for mid, task in self._tasks.items() if not task.done()]

    def is_running(self, match_id: str) -> bool:
        task = self._tasks.get(match_id)
        return task is not None and not task.done()

    def _prepare(self, conn: sqlite3.Connection, match_id: str) -> Match:
        """Validate and flip a fixture to LIVE. A LIVE match without a task resumes where it stopped."""
        match = self._matches.get(conn, match_id)
        if match is None:
            raise ValueError(f"Match not found: {match_id}")
        if self.is_running(match_id):
            raise ValueError(f"Match already running: {match_id}")
        if match.status == MatchStatus.SCHEDULED.value:
            self._matches.update_live_state(conn, match_id, 0, 0, 0, MatchStatus.LIVE.value)
            odds = self._odds.get(conn, match_id)
            if odds is not None:
                odds.is_live = True
                odds.last_updated_minute = 0
                odds.live_markets = live_markets_board(0, 0, 0, match.is_derby)
                self._odds.upsert(conn, odds)
            match.status = MatchStatus.LIVE.value
            match.minute, match.home_score, match.away_score = 0, 0, 0
        elif match.status != MatchStatus.LIVE.value:
            raise ValueError(f"Match {match_id} is {match.status}, cannot start")
        return match

    def start_match(self, match_id: str, seed: int | None = None) -> asyncio.Task:
        """Start ticking a match. Must be called from inside a running event loop."""
        conn = self._get_conn()
        try:
            match = self._prepare(conn, match_id)
        finally:
            conn.close()
        sim = MatchSimulator(state_from_match(match), seed=seed)
        task = asyncio.get_running_loop().create_task(self._run(match_id, sim))
        self._tasks[match_id] = task
        self._ensure_cash_out_refresh()
        logger.info("Live engine started %s (%s), seed=%s", match_id, match.name, seed)
        return task

    def start_test_matches(self, limit: int = 3) -> list[str]:
        """Kick off the next scheduled fixtures for demo and testing."""
        conn = self._get_conn()
        try:
            candidates = self._matches.list(conn, status=MatchStatus.SCHEDULED.value, limit=limit)
        finally:
            conn.close()
        started = []
        for match in candidates:
            self.start_match(match.id)
            started.append(match.id)
        return started

    def stop_match(self, match_id: str) -> bool:
        """Request cancellation of a running match task. The match stays LIVE at its current minute."""
        task = self._tasks.pop(match_id, None)
        if task is None or task.done():
            return False
        task.cancel()
        logger.info("Live engine stopped %s", match_id)
        return True

    async def cancel_match(self, match_id: str) -> bool:
        """Stop a match and wait until its task has ended, including any minute being written."""
        task = self._tasks.get(match_id)
        if not self.stop_match(match_id):
            return False
        await asyncio.wait({task})
        return True

    async def fast_forward(self, match_id: str, seed: int | None = None) -> dict[str, Any]:
        """Stop the tick task if there is one, then play the rest of the match in the executor."""
        await self.cancel_match(match_id)
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, self.run_to_completion, match_id, seed)

    def stop_all(self) -> None:
        for match_id in list(self._tasks):
            self.stop_match(match_id)
        if self._refresh_task is not None and not self._refresh_task.done():
            self._refresh_task.cancel()
        self._refresh_task = None

    def _step(self, sim: MatchSimulator) -> dict[str, Any]:
        conn = self._get_conn()
        try:
            return step_match(conn, sim)
        finally:
            conn.close()

    async def _run(self, match_id: str, sim: MatchSimulator) -> None:
        loop = asyncio.get_running_loop()
        try:
            while not sim.finished:
                await asyncio.sleep(self.seconds_per_minute)
                step = loop.run_in_executor(None, self._step, sim)
                try:
                    payload = await asyncio.shield(step)
                except asyncio.CancelledError:
                    # the minute in flight still commits before the task ends
                    await asyncio.wait({step})
                    raise
                await self._broadcast(payload)
        except asyncio.CancelledError:
            logger.info("Live task for %s cancelled at minute %d", match_id, sim.state.minute)
            raise
        except Exception:
            logger.exception("Live task for %s failed at minute %d", match_id, sim.state.minute)
            raise
        finally:
            if self._tasks.get(match_id) is asyncio.current_task():
                del self._tasks[match_id]

    def run_to_completion(self, match_id: str, seed: int | None = None) -> dict[str, Any]:
        """
        Play the rest of a match synchronously. Returns the final live_update payload.
        Raises ValueError if a tick task is still running for the match; stop it first.
        """
        conn = self._get_conn()
        try:
            match = self._prepare(conn, match_id)
            sim = MatchSimulator(state_from_match(match), seed=seed)
            goals: list[dict[str, Any]] = []
            payload: dict[str, Any] = {}
            while not sim.finished:
                payload = step_match(conn, sim)
                goals.extend(e for e in payload["events"] if e["type"] == "goal")
        finally:
            conn.close()
        payload["goals"] = goals
        return payload

    # ---------- cash-out refresh ----------

    def refresh_cash_out_values(self) -> int:
        conn = self._get_conn()
        try:
            return LiveBettingService().refresh_cash_out_values(conn)
        finally:
            conn.close()

    def _ensure_cash_out_refresh(self) -> None:
        if self._refresh_task is None or self._refresh_task.done():
            self._refresh_task = asyncio.get_running_loop().create_task(self._refresh_loop())

    async def _refresh_loop(self) -> None:
        loop = asyncio.get_running_loop()
        while self.active_matches():
            await asyncio.sleep(self.cash_out_refresh_seconds)
            updated = await loop.run_in_executor(None, self.refresh_cash_out_values)
            logger.debug("Refreshed cash-out values on %d live bets", updated)

    # ---------- subscribers ----------

    def subscribe(self, callback: Subscriber, match_id: str | None = None) -> None:
        self._subscribers.setdefault(match_id, []).append(callback)

    def unsubscribe(self, callback: Subscriber, match_id: str | None = None) -> None:
        subs = self._subscribers.get(match_id)
        if subs and callback in subs:
            subs.remove(callback)
            if not subs:
                del self._subscribers[match_id]

    async def _broadcast(self, payload: dict[str, Any]) -> None:
        match_id = payload["match_id"]
        targets = [(match_id, cb) for cb in self._subscribers.get(match_id, [])]
        targets += [(None, cb) for cb in self._subscribers.get(None, [])]
        for key, callback in targets:
            try:
                result = callback(payload)
                if inspect.isawaitable(result):
                    await result
            except Exception as e:
                logger.warning("Dropping live subscriber for %s: %s", key or "all matches", e)
                self.unsubscribe(callback, key)
