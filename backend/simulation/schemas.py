"""
Event and state types for the minute-by-minute football simulation.
Events are plain dataclasses so they can go straight into WebSocket payloads.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class EventType(str, Enum):
    GOAL = "goal"
    CORNER = "corner"
    CARD = "card"


class Side(str, Enum):
    HOME = "home"
    AWAY = "away"


@dataclass
class MatchEvent:
    minute: int
    type: str  # EventType value
    team: str  # Side value
    description: str
    player: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "minute": self.minute,
            "type": self.type,
            "team": self.team,
            "player": self.player,
            "description": self.description,
        }


@dataclass
class MatchState:
    """
    Mutable simulation state for one fixture.
    added_time stays None until minute 90 is reached.
    """
    match_id: str
    home_team: str
    away_team: str
    home_is_derby_team: bool = False
    away_is_derby_team: bool = False
    is_derby: bool = False
    minute: int = 0
    home_score: int = 0
    away_score: int = 0
    added_time: int | None = None

    @property
    def score_diff(self) -> int:
        return self.home_score - self.away_score

    @property
    def total_goals(self) -> int:
        return self.home_score + self.away_score

    @property
    def finished(self) -> bool:
        return self.added_time is not None and self.minute >= 90 + self.added_time


@dataclass
class MinuteResult:
    """What happened in one simulated minute; scores are after the minute."""
    minute: int
    events: list[MatchEvent] = field(default_factory=list)
    home_score: int = 0
    away_score: int = 0
    finished: bool = False

    @property
    def goals(self) -> list[MatchEvent]:
        return [e for e in self.events if e.type == EventType.GOAL.value]

    def to_dict(self) -> dict[str, Any]:
        return {
            "minute": self.minute,
            "events": [e.to_dict() for e in self.events],
            "home_score": self.home_score,
            "away_score": self.away_score,
            "finished": self.finished,
        }
