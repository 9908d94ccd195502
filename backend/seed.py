"""
Reference data: Nordic leagues, clubs, a week of fixtures and opening odds.
Idempotent: does nothing once leagues exist.
"""
from __future__ import annotations

import logging
import random
import sqlite3
from datetime import datetime, timedelta, timezone

from backend.betting.odds import TeamRating, generate_prematch_odds
from backend.derby import DERBY_CLUBS, is_derby
from backend.models import Team
from backend.persistence.repositories import (
    LeagueRepository,
    MatchRepository,
    OddsRepository,
    TeamRepository,
)

logger = logging.getLogger(__name__)

# (name, country, tier)
LEAGUES = [
    ("Veikkausliiga", "Finland", 1),
    ("Ykkösliiga", "Finland", 2),
    ("Allsvenskan", "Sweden", 1),
    ("Superettan", "Sweden", 2),
]

# league name -> (club name, short name, city, derby club)
TEAMS: dict[str, list[tuple[str, str, str, bool]]] = {
    "Veikkausliiga": [
        ("HJK Helsinki", "HJK", "Helsinki", True),
        ("KuPS Kuopio", "KuPS", "Kuopio", False),
        ("FC Inter Turku", "Inter", "Turku", False),
        ("FC Haka", "Haka", "Valkeakoski", False),
        ("SJK Seinäjoki", "SJK", "Seinäjoki", False),
        ("FC Honka", "Honka", "Espoo", True),
        ("FC Lahti", "Lahti", "Lahti", False),
        ("AC Oulu", "Oulu", "Oulu", False),
        ("VPS Vaasa", "VPS", "Vaasa", False),
        ("FC Ilves", "Ilves", "Tampere", False),
        ("IFK Mariehamn", "MIFK", "Mariehamn", False),
        ("HIFK Helsinki", "HIFK", "Helsinki", True),
    ],
    "Ykkösliiga": [
        ("TPS Turku", "TPS", "Turku", False),
        ("RoPS Rovaniemi", "RoPS", "Rovaniemi", False),
        ("JJK Jyväskylä", "JJK", "Jyväskylä", False),
        ("KTP Kotka", "KTP", "Kotka", False),
    ],
    "Allsvenskan": [
        ("Malmö FF", "MFF", "Malmö", False),
        ("AIK Stockholm", "AIK", "Stockholm", True),
        ("Djurgården Stockholm", "DIF", "Stockholm", True),
        ("Hammarby Stockholm", "HIF", "Stockholm", True),
        ("IFK Göteborg", "IFK", "Göteborg", False),
        ("BK Häcken", "Häcken", "Göteborg", False),
        ("IF Elfsborg", "Elfsborg", "Borås", False),
        ("IFK Norrköping", "Norrköping", "Norrköping", False),
        ("Kalmar FF", "KFF", "Kalmar", False),
        ("IK Sirius", "Sirius", "Uppsala", False),
    ],
    "Superettan": [
        ("GIF Sundsvall", "GIF", "Sundsvall", False),
        ("Östersunds FK", "ÖFK", "Östersund", False),
        ("GAIS Göteborg", "GAIS", "Göteborg", False),
        ("Helsingborgs IF", "HBK", "Helsingborg", False),
    ],
}

# Marquee fixtures on day one so derbies are always available
FEATURED_FIXTURES = [
    ("HJK Helsinki", "HIFK Helsinki"),
    ("AIK Stockholm", "Djurgården Stockholm"),
    ("FC Inter Turku", "TPS Turku"),
]

FIXTURE_DAYS = 7
KICKOFF_HOUR_UTC = 16


def _rating(team: Team, tier: int) -> TeamRating:
    return TeamRating(name=team.name, league_tier=tier, is_popular=team.is_derby_team or team.name in DERBY_CLUBS)


def seed_reference_data(conn: sqlite3.Connection, seed: int = 2024, now: datetime | None = None) -> int:
    """Create leagues, teams, fixtures and odds. Returns the number of fixtures created."""
    league_repo = LeagueRepository()
    if league_repo.list_all(conn):
        return 0
    team_repo = TeamRepository()
    match_repo = MatchRepository()
    odds_repo = OddsRepository()
    rng = random.Random(seed)
    now = now or datetime.now(timezone.utc)
    first_day = (now + timedelta(days=1)).replace(hour=KICKOFF_HOUR_UTC, minute=0, second=0, microsecond=0)

    teams_by_name: dict[str, tuple[Team, int]] = {}
    teams_by_league: dict[str, list[Team]] = {}
    for name, country, tier in LEAGUES:
        league = league_repo.create(conn, name, country, tier)
        teams_by_league[league.id] = []
        for club, short, city, derby_club in TEAMS[name]:
            team = team_repo.create(conn, club, short, city, league.id, is_derby_team=derby_club)
            teams_by_name[club] = (team, tier)
            teams_by_league[league.id].append(team)

    def add_fixture(home: Team, away: Team, tier: int, start: datetime) -> None:
        match = match_repo.create(
            conn,
            league_id=home.league_id,
            home_team_id=home.id,
            away_team_id=away.id,
            start_time=start,
            is_derby=is_derby(home.name, away.name),
        )
        board = generate_prematch_odds(match.id, _rating(home, tier), _rating(away, tier), rng)
        odds_repo.upsert(conn, board)

    created = 0
    for i, (home_name, away_name) in enumerate(FEATURED_FIXTURES):
        home, tier = teams_by_name[home_name]
        away, _ = teams_by_name[away_name]
        add_fixture(home, away, tier, first_day + timedelta(hours=2 * i))
        created += 1

    top_leagues = [lid for lid, teams in teams_by_league.items() if len(teams) >= 10]
    for day in range(FIXTURE_DAYS):
        kickoff = first_day + timedelta(days=day)
        for slot in range(4):
            league_id = top_leagues[slot % len(top_leagues)]
            home, away = rng.sample(teams_by_league[league_id], 2)
            tier = teams_by_name[home.name][1]
            add_fixture(home, away, tier, kickoff + timedelta(hours=2 * slot + 1))
            created += 1

    logger.info("Seeded %d leagues, %d teams, %d fixtures", len(LEAGUES), len(teams_by_name), created)
    return created
