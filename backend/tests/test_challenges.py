"""
Tests for daily challenge generation and progress, and the challenge and
achievement services against a seeded database.
"""
from __future__ import annotations

from datetime import date, datetime, timezone
from pathlib import Path

import pytest

import sys
sys.path.insert(0, str(Path(__file__).resolve().parent.parent.parent))

from backend.betting.achievements import ACHIEVEMENTS_BY_ID, PlayerStats, achievement_progress, newly_reached
from backend.betting.challenges import (
    TEMPLATES_BY_ID,
    ActivityKind,
    BetActivity,
    Difficulty,
    advance,
    challenge_seed,
    generate_daily_challenges,
)
from backend.derby import DerbyType
from backend.models import MatchStatus
from backend.persistence import get_connection, init_db, set_db_path
from backend.persistence.repositories import (
    MatchRepository,
    NotificationRepository,
    TransactionRepository,
    UserRepository,
)
from backend.services import (
    AccountService,
    AchievementService,
    ChallengeError,
    ChallengeService,
    ForbiddenError,
    LiveBettingService,
    NotFoundError,
)
from backend.simulation.rng import SeededRNG

SATURDAY = date(2026, 10, 17)
WEDNESDAY = date(2026, 10, 14)


def _placed(odds=150, stake=100, **kw) -> BetActivity:
    return BetActivity(ActivityKind.PLACED, stake, odds, **kw)


def _won(odds=150, stake=100, payout=150, **kw) -> BetActivity:
    return BetActivity(ActivityKind.WON, stake, odds, payout=payout, **kw)


def _lost(odds=150, stake=100, **kw) -> BetActivity:
    return BetActivity(ActivityKind.LOST, stake, odds, **kw)


# ---------- generation ----------


def test_new_players_get_two_distinct_easy_challenges():
    for seed in range(50):
        picked = generate_daily_challenges(WEDNESDAY, 1, SeededRNG(seed))
        assert len(picked) == 2
        assert all(t.difficulty is Difficulty.EASY for t in picked)
        assert picked[0].id != picked[1].id


def test_third_challenge_from_level_seven():
    assert len(generate_daily_challenges(WEDNESDAY, 6, SeededRNG(1))) == 2
    picked = generate_daily_challenges(WEDNESDAY, 7, SeededRNG(1))
    assert len(picked) == 3
    assert len({t.id for t in picked}) == 3
    assert all(t.difficulty is not Difficulty.HARD for t in picked)


def test_weekend_adds_weekend_warrior_from_level_five():
    assert "weekend_warrior" not in [t.id for t in generate_daily_challenges(SATURDAY, 4, SeededRNG(3))]
    assert "weekend_warrior" in [t.id for t in generate_daily_challenges(SATURDAY, 5, SeededRNG(3))]
    assert "weekend_warrior" not in [t.id for t in generate_daily_challenges(WEDNESDAY, 9, SeededRNG(3))]


def test_derby_day_reward_scaled_by_derby_type():
    picked = generate_daily_challenges(WEDNESDAY, 6, SeededRNG(5), derby_type=DerbyType.HELSINKI_DERBY)
    derby = next(t for t in picked if t.id == "derby_day")
    assert (derby.reward.bet_points, derby.reward.diamonds, derby.reward.xp) == (4000, 40, 500)
    assert "derby_day" not in [
        t.id for t in generate_daily_challenges(WEDNESDAY, 5, SeededRNG(5), derby_type=DerbyType.HELSINKI_DERBY)
    ]


def test_never_more_than_four_challenges():
    for seed in range(30):
        picked = generate_daily_challenges(SATURDAY, 10, SeededRNG(seed), derby_type=DerbyType.REGIONAL_DERBY)
        assert len(picked) == 4
        assert "weekend_warrior" in [t.id for t in picked]


def test_same_player_and_day_draw_the_same_set():
    seed = challenge_seed("user-1", WEDNESDAY)
    assert seed == challenge_seed("user-1", WEDNESDAY)
    assert seed != challenge_seed("user-1", SATURDAY)
    first = [t.id for t in generate_daily_challenges(WEDNESDAY, 8, SeededRNG(seed))]
    again = [t.id for t in generate_daily_challenges(WEDNESDAY, 8, SeededRNG(seed))]
    assert first == again


# ---------- progress ----------


def test_counting_challenges_follow_their_conditions():
    safe = TEMPLATES_BY_ID["safe_bets"]
    assert advance(safe, 0, _placed(odds=200)) == 1
    assert advance(safe, 0, _placed(odds=210)) == 0
    assert advance(safe, 1, _won(odds=150)) == 1

    live = TEMPLATES_BY_ID["live_action"]
    assert advance(live, 0, _placed()) == 0
    assert advance(live, 0, _placed(is_live=True)) == 1

    combo = TEMPLATES_BY_ID["combo_builder"]
    assert advance(combo, 0, _placed(bet_type="PITKAVETO", selection_count=3)) == 0
    assert advance(combo, 0, _placed(bet_type="PITKAVETO", selection_count=4)) == 1

    high = TEMPLATES_BY_ID["high_roller_day"]
    assert advance(high, 0, _placed(stake=499)) == 0
    assert advance(high, 0, _placed(stake=500)) == 1


def test_win_challenges_count_only_qualifying_wins():
    risky = TEMPLATES_BY_ID["risky_business"]
    assert advance(risky, 0, _won(odds=299)) == 0
    assert advance(risky, 0, _placed(odds=400)) == 0
    assert advance(risky, 0, _won(odds=300)) == 1

    derby = TEMPLATES_BY_ID["derby_day"]
    assert advance(derby, 0, _won()) == 0
    assert advance(derby, 0, _won(is_derby=True)) == 1


def test_win_streak_resets_on_loss():
    streak = TEMPLATES_BY_ID["winning_streak"]
    assert advance(streak, 2, _won()) == 3
    assert advance(streak, 2, _lost()) == 0
    assert advance(streak, 2, _placed()) == 2


def test_big_win_tracks_largest_qualifying_payout():
    jackpot = TEMPLATES_BY_ID["jackpot_hunter"]
    assert advance(jackpot, 0, _won(payout=1999)) == 0
    assert advance(jackpot, 0, _won(payout=2400)) == 2400


def test_completed_challenge_is_frozen():
    streak = TEMPLATES_BY_ID["winning_streak"]
    assert advance(streak, 3, _lost()) == 3


# ---------- achievements catalogue ----------


def test_achievement_progress_is_capped():
    stats = PlayerStats(total_bets=3, best_streak=7)
    assert achievement_progress(ACHIEVEMENTS_BY_ID["first_bet"], stats) == (1, True)
    assert achievement_progress(ACHIEVEMENTS_BY_ID["win_streak"], stats) == (5, True)
    assert achievement_progress(ACHIEVEMENTS_BY_ID["high_roller"], stats) == (0, False)
    reached = [a.id for a in newly_reached(stats, {"first_bet"})]
    assert reached == ["win_streak"]


# ---------- services ----------


@pytest.fixture
def conn(tmp_path):
    db_path = tmp_path / "challenges.db"
    set_db_path(db_path)
    init_db(db_path=db_path, seed=True)
    c = get_connection()
    yield c
    c.close()


@pytest.fixture
def user(conn):
    return AccountService().register(conn, "aino", "salasana1")


@pytest.fixture
def live_match(conn):
    match = next(m for m in MatchRepository().list(conn, status="SCHEDULED", limit=100) if not m.is_derby)
    MatchRepository().update_live_state(conn, match.id, 20, 0, 0, MatchStatus.LIVE.value)
    return match


def test_daily_challenges_are_stable_for_the_day(conn, user):
    service = ChallengeService()
    first = service.daily_challenges(conn, user.id)
    assert len(first) == 2
    assert all(c["difficulty"] == "EASY" and c["progress"] == 0 for c in first)
    assert [c["id"] for c in service.daily_challenges(conn, user.id)] == [c["id"] for c in first]


def test_completed_challenges_pay_once_when_claimed(conn, user, live_match):
    live = LiveBettingService()
    for _ in range(3):
        live.place_live_bet(conn, user.id, live_match.id, "match_result", "HOME", 150, 100)
    MatchRepository().update_live_state(conn, live_match.id, 92, 1, 0, MatchStatus.FINISHED.value)
    assert live.settle_live_bets(conn, live_match.id)["won"] == 3

    service = ChallengeService()
    challenges = service.daily_challenges(conn, user.id)
    assert all(c["completed"] and not c["claimed"] for c in challenges)
    notes = NotificationRepository().list_by_user(conn, user.id, limit=50)
    assert sum(n.type == "CHALLENGE_COMPLETED" for n in notes) == 2

    # 10000 - 3 * 100 stake + 3 * 150 payout
    before = UserRepository().get(conn, user.id)
    assert before.bet_points == 10150
    for c in challenges:
        service.claim(conn, user.id, c["id"])
    after = UserRepository().get(conn, user.id)
    assert after.bet_points == 10150 + sum(c["reward"]["bet_points"] for c in challenges)
    assert after.diamonds == before.diamonds + sum(c["reward"]["diamonds"] for c in challenges)
    assert after.challenges_completed == 2
    rewards = [t for t in TransactionRepository().list_by_user(conn, user.id) if t.type == "CHALLENGE_REWARD"]
    assert len(rewards) == 4

    with pytest.raises(ChallengeError, match="already claimed"):
        service.claim(conn, user.id, challenges[0]["id"])
    assert UserRepository().get(conn, user.id).bet_points == after.bet_points


def test_claim_rules(conn, user):
    service = ChallengeService()
    challenge = service.daily_challenges(conn, user.id)[0]
    with pytest.raises(ChallengeError, match="not completed"):
        service.claim(conn, user.id, challenge["id"])
    other = AccountService().register(conn, "eino", "salasana1")
    with pytest.raises(ForbiddenError):
        service.claim(conn, other.id, challenge["id"])
    with pytest.raises(NotFoundError):
        service.claim(conn, user.id, "no-such-challenge")


def test_first_bet_unlocks_achievement_claimed_once(conn, user, live_match):
    LiveBettingService().place_live_bet(conn, user.id, live_match.id, "match_result", "HOME", 150, 100)
    service = AchievementService()
    listed = {a["id"]: a for a in service.list_for_user(conn, user.id)}
    assert listed["first_bet"]["unlocked"] and not listed["first_bet"]["claimed"]
    assert not listed["first_win"]["unlocked"]
    notes = NotificationRepository().list_by_user(conn, user.id)
    assert any(n.type == "ACHIEVEMENT_UNLOCKED" for n in notes)

    result = service.claim(conn, user.id, "first_bet")
    assert result["bet_points"] == 10000 - 100 + 500
    assert result["diamonds"] == 50 + 10
    assert UserRepository().get(conn, user.id).xp == 50
    with pytest.raises(ChallengeError, match="already claimed"):
        service.claim(conn, user.id, "first_bet")
    with pytest.raises(ChallengeError, match="not unlocked"):
        service.claim(conn, user.id, "big_winner")
    with pytest.raises(NotFoundError):
        service.claim(conn, user.id, "team_supporter")


def test_live_wins_feed_player_stats(conn, user, live_match):
    live = LiveBettingService()
    live.place_live_bet(conn, user.id, live_match.id, "match_result", "HOME", 400, 600)
    MatchRepository().update_live_state(conn, live_match.id, 92, 2, 1, MatchStatus.FINISHED.value)
    live.settle_live_bets(conn, live_match.id)
    after = UserRepository().get(conn, user.id)
    assert after.live_wins == 1
    assert after.biggest_win == 2400
    assert after.derby_wins == 0


def test_derby_fixture_adds_scaled_derby_challenge(conn, user):
    teams = {r["name"]: r for r in conn.execute("SELECT id, name, league_id FROM teams").fetchall()}
    hjk, hifk = teams["HJK Helsinki"], teams["HIFK Helsinki"]
    kickoff = datetime(2030, 6, 5, 17, 0, tzinfo=timezone.utc)
    MatchRepository().create(conn, hjk["league_id"], hjk["id"], hifk["id"], kickoff, is_derby=True)
    with conn:
        UserRepository().set_level(conn, user.id, 6)

    challenges = ChallengeService().daily_challenges(conn, user.id, now=kickoff)
    derby = next(c for c in challenges if c["template_id"] == "derby_day")
    assert derby["reward"] == {"bet_points": 4000, "diamonds": 40, "xp": 500}
    assert derby["challenge_date"] == "2030-06-05"
