"""
Derby detection and derby reward bonuses.

A derby needs both clubs in the rivalry table and a rivalry declared from
either side. Club names match the seeded team names.
"""
from __future__ import annotations

import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class DerbyType(str, Enum):
    HELSINKI_DERBY = "HELSINKI_DERBY"
    STOCKHOLM_DERBY = "STOCKHOLM_DERBY"
    FINNISH_CLASICO = "FINNISH_CLASICO"
    SWEDISH_CLASICO = "SWEDISH_CLASICO"
    REGIONAL_DERBY = "REGIONAL_DERBY"


class RivalryLevel(str, Enum):
    HIGH = "HIGH"
    MEDIUM = "MEDIUM"
    LOW = "LOW"


@dataclass(frozen=True)
class DerbyClub:
    city: str
    rivals: frozenset[str]
    bonus_multiplier: float


@dataclass(frozen=True)
class DerbyBonusConfig:
    xp_multiplier: float
    reward_multiplier: float
    diamond_bonus: int
    enhanced_odds: bool


DERBY_CLUBS: dict[str, DerbyClub] = {
    "HJK Helsinki": DerbyClub(
        "Helsinki",
        frozenset({"FC Honka", "HIFK Helsinki", "KuPS Kuopio", "FC Inter Turku", "FC Lahti"}),
        2.0,
    ),
    "FC Honka": DerbyClub("Espoo", frozenset({"HJK Helsinki", "HIFK Helsinki"}), 2.0),
    "HIFK Helsinki": DerbyClub("Helsinki", frozenset({"HJK Helsinki", "FC Honka"}), 1.8),
    "AIK Stockholm": DerbyClub("Stockholm", frozenset({"Djurgården Stockholm", "Hammarby Stockholm"}), 2.0),
    "Djurgården Stockholm": DerbyClub("Stockholm", frozenset({"AIK Stockholm", "Hammarby Stockholm"}), 2.0),
    "Hammarby Stockholm": DerbyClub("Stockholm", frozenset({"AIK Stockholm", "Djurgården Stockholm"}), 2.0),
    "KuPS Kuopio": DerbyClub("Kuopio", frozenset({"HJK Helsinki", "SJK Seinäjoki"}), 1.5),
    "FC Inter Turku": DerbyClub("Turku", frozenset({"HJK Helsinki", "TPS Turku"}), 1.5),
    "FC Lahti": DerbyClub("Lahti", frozenset({"HJK Helsinki"}), 1.5),
    "SJK Seinäjoki": DerbyClub("Seinäjoki", frozenset({"KuPS Kuopio"}), 1.3),
    "TPS Turku": DerbyClub("Turku", frozenset({"FC Inter Turku"}), 1.3),
    "Malmö FF": DerbyClub("Malmö", frozenset({"IFK Göteborg"}), 1.5),
    "IFK Göteborg": DerbyClub("Göteborg", frozenset({"Malmö FF"}), 1.5),
}

GREATER_HELSINKI = frozenset({"Helsinki", "Espoo"})
FINNISH_BIG_CLUBS = frozenset({"HJK Helsinki", "KuPS Kuopio", "FC Inter Turku", "FC Lahti"})
SWEDISH_BIG_CLUBS = frozenset({"Malmö FF", "IFK Göteborg", "AIK Stockholm", "Djurgården Stockholm", "Hammarby Stockholm"})

DERBY_BONUS_CONFIG: dict[DerbyType, DerbyBonusConfig] = {
    DerbyType.HELSINKI_DERBY: DerbyBonusConfig(2.0, 2.0, 10, True),
    DerbyType.STOCKHOLM_DERBY: DerbyBonusConfig(2.0, 2.0, 10, True),
    DerbyType.FINNISH_CLASICO: DerbyBonusConfig(1.5, 1.5, 5, False),
    DerbyType.SWEDISH_CLASICO: DerbyBonusConfig(1.5, 1.5, 5, False),
    DerbyType.REGIONAL_DERBY: DerbyBonusConfig(1.3, 1.3, 2, False),
}


@dataclass
class DerbyMatch:
    home_team: str
    away_team: str
    derby_type: DerbyType
    city: str
    rivalry_level: RivalryLevel
    bonus_multiplier: float
    features: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "home_team": self.home_team,
            "away_team": self.away_team,
            "derby_type": self.derby_type.value,
            "city": self.city,
            "rivalry_level": self.rivalry_level.value,
            "bonus_multiplier": self.bonus_multiplier,
            "features": list(self.features),
        }


def _derby_type(home: str, away: str, home_club: DerbyClub, away_club: DerbyClub) -> DerbyType:
    if home_club.city in GREATER_HELSINKI and away_club.city in GREATER_HELSINKI:
        return DerbyType.HELSINKI_DERBY
    if home_club.city == "Stockholm" and away_club.city == "Stockholm":
        return DerbyType.STOCKHOLM_DERBY
    if home in FINNISH_BIG_CLUBS and away in FINNISH_BIG_CLUBS:
        return DerbyType.FINNISH_CLASICO
    if home in SWEDISH_BIG_CLUBS and away in SWEDISH_BIG_CLUBS:
        return DerbyType.SWEDISH_CLASICO
    return DerbyType.REGIONAL_DERBY


def _rivalry_level(derby_type: DerbyType) -> RivalryLevel:
    if derby_type in (DerbyType.HELSINKI_DERBY, DerbyType.STOCKHOLM_DERBY):
        return RivalryLevel.HIGH
    if derby_type in (DerbyType.FINNISH_CLASICO, DerbyType.SWEDISH_CLASICO):
        return RivalryLevel.MEDIUM
    return RivalryLevel.LOW


def _features(derby_type: DerbyType) -> list[str]:
    cfg = DERBY_BONUS_CONFIG[derby_type]
    features = [f"{cfg.xp_multiplier}x XP", f"{cfg.reward_multiplier}x rewards"]
    if cfg.enhanced_odds:
        features.append("Enhanced odds")
    if cfg.diamond_bonus:
        features.append(f"+{cfg.diamond_bonus} diamonds")
    return features


def detect_derby(home_team: str, away_team: str) -> DerbyMatch | None:
    """Return derby details, or None when the fixture is not a rivalry."""
    home_club = DERBY_CLUBS.get(home_team)
    away_club = DERBY_CLUBS.get(away_team)
    if home_club is None or away_club is None:
        return None
    if away_team not in home_club.rivals and home_team not in away_club.rivals:
        return None
    derby_type = _derby_type(home_team, away_team, home_club, away_club)
    return DerbyMatch(
        home_team=home_team,
        away_team=away_team,
        derby_type=derby_type,
        city=home_club.city,
        rivalry_level=_rivalry_level(derby_type),
        bonus_multiplier=max(home_club.bonus_multiplier, away_club.bonus_multiplier),
        features=_features(derby_type),
    )


def is_derby(home_team: str, away_team: str) -> bool:
    return detect_derby(home_team, away_team) is not None


def derby_bonus(base: int, derby_type: DerbyType, kind: str) -> int:
    """Scale a base reward. kind: XP | BETPOINTS | DIAMONDS."""
    cfg = DERBY_BONUS_CONFIG[derby_type]
    if kind == "XP":
        return math.floor(base * cfg.xp_multiplier)
    if kind == "BETPOINTS":
        return math.floor(base * cfg.reward_multiplier)
    if kind == "DIAMONDS":
        return base + cfg.diamond_bonus
    raise ValueError(f"Unknown reward kind: {kind}")
