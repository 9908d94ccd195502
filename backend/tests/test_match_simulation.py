"""
Tests for the minute-by-minute football simulation.
Same seed => same event stream; matches always end after stoppage time.
"""
from __future__ import annotations

from pathlib import Path

import pytest

import sys
sys.path.insert(0, str(Path(__file__).resolve().parent.parent.parent))

from backend.simulation import (
    MatchSimulator,
    MatchState,
    SeededRNG,
    goal_probability,
    home_goal_share,
    simulate_minute,
    surname_pool,
)
from backend.simulation.match_simulator import FINNISH_SURNAMES, SWEDISH_SURNAMES


def _state(**kw) -> MatchState:
    values = dict(match_id="m1", home_team="HJK Helsinki", away_team="HIFK Helsinki")
    values.update(kw)
    return MatchState(**values)


def _play(seed: int, **kw) -> tuple[MatchState, list]:
    state = _state(**kw)
    results = list(MatchSimulator(state, seed=seed).run())
    return state, results


def test_same_seed_same_match():
    s1, r1 = _play(123)
    s2, r2 = _play(123)
    assert [r.to_dict() for r in r1] == [r.to_dict() for r in r2]
    assert (s1.home_score, s1.away_score, s1.added_time) == (s2.home_score, s2.away_score, s2.added_time)


def test_match_runs_through_stoppage_time():
    state, results = _play(7)
    assert 1 <= state.added_time <= 5
    assert len(results) == 90 + state.added_time
    assert [r.minute for r in results] == list(range(1, 91 + state.added_time))
    assert results[-1].finished
    assert not any(r.finished for r in results[:-1])


def test_score_matches_goal_events():
    for seed in range(20):
        state, results = _play(seed, is_derby=True)
        goals = [g for r in results for g in r.goals]
        assert state.home_score == sum(1 for g in goals if g.team == "home")
        assert state.away_score == sum(1 for g in goals if g.team == "away")
        assert all(g.player for g in goals)


def test_simulating_a_finished_match_raises():
    state = _state(minute=93, added_time=3)
    assert state.finished
    with pytest.raises(ValueError, match="already finished"):
        simulate_minute(state, SeededRNG(1))


def test_on_minute_callback_sees_every_minute():
    seen = []
    state = _state()
    for _ in MatchSimulator(state, seed=5).run(on_minute=seen.append):
        pass
    assert len(seen) == state.minute


def test_goal_probability():
    assert goal_probability(10, False) == 0.02
    assert round(goal_probability(82, False), 4) == 0.03
    assert round(goal_probability(88, True), 4) == round(0.02 * 1.5 * 1.2 * 1.3, 4)


def test_home_goal_share():
    assert home_goal_share(_state()) == 0.55
    assert round(home_goal_share(_state(home_is_derby_team=True, away_is_derby_team=True)), 2) == 0.6
    assert round(home_goal_share(_state(home_score=1)), 2) == 0.45
    assert round(home_goal_share(_state(away_score=1)), 2) == 0.65


def test_surname_pool():
    assert surname_pool("HJK Helsinki") == FINNISH_SURNAMES
    assert surname_pool("KuPS Kuopio") == FINNISH_SURNAMES
    assert surname_pool("Malmö FF") == SWEDISH_SURNAMES
