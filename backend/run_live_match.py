"""
Run a simulated football match in the terminal.

Without --match-id two clubs from the same league are drawn at random (or
given with --home/--away) and the match is simulated in memory, printing
events minute by minute as if it were on the radio. With --match-id the
fixture is played through the live engine against the database: events and
score are persisted and live bets are settled at full time.
"""
from __future__ import annotations

import argparse
import logging
import random
import sys
import time
from pathlib import Path

# Run from project root: python -m backend.run_live_match
sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from backend import config
from backend.derby import detect_derby
from backend.seed import TEAMS
from backend.simulation import MatchSimulator, MatchState, MinuteResult


def _club(name: str) -> tuple[str, bool]:
    for clubs in TEAMS.values():
        for club_name, _short, _city, derby_team in clubs:
            if club_name == name:
                return club_name, derby_team
    raise SystemExit(f"Unknown club: {name}")


def _pick_two_from_same_league(rng: random.Random) -> tuple[tuple[str, bool], tuple[str, bool]]:
    league = rng.choice(sorted(TEAMS))
    home, away = rng.sample(TEAMS[league], 2)
    return (home[0], home[3]), (away[0], away[3])


def _print_minute(result: MinuteResult, state: MatchState, all_events: bool) -> None:
    for ev in result.events:
        if ev.type == "goal":
            print(f"  {ev.minute:>3}'  GOAL! {ev.description} ({ev.player})   {state.home_score}-{state.away_score}")
        elif all_events:
            side = state.home_team if ev.team == "home" else state.away_team
            print(f"  {ev.minute:>3}'  {ev.description} - {side}")


def run(
    seed: int | None = None,
    home: str | None = None,
    away: str | None = None,
    delay: float = 0.0,
    all_events: bool = False,
) -> MatchState:
    if seed is None:
        seed = random.randint(1, 2**31 - 1)
    if (home is None) != (away is None):
        raise SystemExit("Give both --home and --away, or neither")
    if home and away:
        home_club, away_club = _club(home), _club(away)
    else:
        home_club, away_club = _pick_two_from_same_league(random.Random(seed))

    derby = detect_derby(home_club[0], away_club[0])
    state = MatchState(
        match_id=f"cli-{seed}",
        home_team=home_club[0],
        away_team=away_club[0],
        home_is_derby_team=home_club[1],
        away_is_derby_team=away_club[1],
        is_derby=derby is not None,
    )
    print(f"\n  {state.home_team}  vs  {state.away_team}  [seed={seed}]")
    if derby:
        print(f"  {derby.derby_type.value.replace('_', ' ').title()} in {derby.city} ({derby.rivalry_level.value} rivalry)")
    print("  " + "-" * 56)

    sim = MatchSimulator(state, seed=seed)
    for result in sim.run():
        _print_minute(result, state, all_events)
        if result.minute == 45:
            print(f"  HT  {state.home_score}-{state.away_score}")
        if delay > 0:
            time.sleep(delay)

    print()
    print("=" * 60)
    print(f"  FULL TIME (90+{state.added_time}): {state.home_team} {state.home_score}-{state.away_score} {state.away_team}")
    print("=" * 60)
    print()
    return state


def run_persisted(match_id: str, seed: int | None = None, db_path: str | None = None) -> None:
    """Play a stored fixture to the end through the live engine and settle its bets."""
    from backend.live_match_engine import LiveMatchEngine
    from backend.persistence import init_db, set_db_path

    if db_path:
        set_db_path(db_path)
    init_db(seed=config.SEED_ON_STARTUP)
    try:
        final = LiveMatchEngine().run_to_completion(match_id, seed=seed)
    except ValueError as e:
        raise SystemExit(str(e)) from e
    print(f"\n  {final['home_team']}  vs  {final['away_team']}")
    print("  " + "-" * 56)
    for goal in final["goals"]:
        print(f"  {goal['minute']:>3}'  GOAL! {goal['description']} ({goal['player']})")
    print(f"\n  FULL TIME: {final['home_score']}-{final['away_score']}")
    print(f"  Live bets settled: {final['settlement']}")
    print(f"  Pre-match bets: {final['prematch_settlement']}\n")


def main():
    parser = argparse.ArgumentParser(description="Run a simulated football match minute by minute.")
    parser.add_argument("--seed", type=int, default=None, help="RNG seed for reproducibility")
    parser.add_argument("--home", default=None, help="Home club name, e.g. 'HJK Helsinki'")
    parser.add_argument("--away", default=None, help="Away club name, e.g. 'HIFK Helsinki'")
    parser.add_argument("--delay", type=float, default=0.1, help="Seconds to wait per simulated minute")
    parser.add_argument("--fast", action="store_true", help="No delay between minutes")
    parser.add_argument("--all-events", action="store_true", help="Also print corners and cards")
    parser.add_argument("--match-id", default=None, help="Play a stored fixture and settle its bets")
    parser.add_argument("--db", default=None, help="Database path (with --match-id)")
    args = parser.parse_args()
    logging.basicConfig(level=config.LOG_LEVEL, format="%(levelname)s %(name)s: %(message)s")
    if args.match_id:
        run_persisted(args.match_id, seed=args.seed, db_path=args.db)
        return
    run(
        seed=args.seed,
        home=args.home,
        away=args.away,
        delay=0.0 if args.fast else args.delay,
        all_events=args.all_events,
    )


if __name__ == "__main__":
    main()
