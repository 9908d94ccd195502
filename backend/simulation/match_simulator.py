"""
Minute-by-minute football match simulation.

One call to simulate_minute advances the clock by one minute and may produce
a goal, a corner and a yellow card. Stoppage time (1-5 minutes) is drawn once
at minute 90. All randomness goes through SeededRNG, so a seed fixes the
whole event stream.
"""
from __future__ import annotations

from typing import Callable, Iterator

from .rng import SeededRNG
from .schemas import EventType, MatchEvent, MatchState, MinuteResult, Side

BASE_GOAL_PROBABILITY = 0.02
CORNER_PROBABILITY = 0.08
CARD_PROBABILITY = 0.03
BASE_HOME_SHARE = 0.55
REGULATION_MINUTES = 90
MAX_ADDED_TIME = 5

FINNISH_SURNAMES = (
    "Väinämöinen", "Koskinen", "Virtanen", "Hämäläinen", "Mäkinen",
    "Laine", "Hakala", "Nieminen", "Korhonen", "Järvinen",
)
SWEDISH_SURNAMES = (
    "Andersson", "Johansson", "Karlsson", "Nilsson", "Eriksson",
    "Larsson", "Olsson", "Persson", "Svensson", "Gustafsson",
)
_FINNISH_MARKERS = ("Helsinki", "Kuopio", "Turku", "HJK", "KuPS")


def goal_probability(minute: int, is_derby: bool) -> float:
    """Per-minute chance of a goal. Late minutes and derbies are livelier."""
    p = BASE_GOAL_PROBABILITY
    if minute > 80:
        p *= 1.5
    if minute > 85:
        p *= 1.2
    if is_derby:
        p *= 1.3
    return p


def home_goal_share(state: MatchState) -> float:
    """Probability that a goal this minute is scored by the home side."""
    share = BASE_HOME_SHARE
    if state.home_is_derby_team:
        share += 0.1
    if state.away_is_derby_team:
        share -= 0.05
    if state.score_diff > 0:
        share -= 0.1
    elif state.score_diff < 0:
        share += 0.1
    return share


def surname_pool(team_name: str) -> tuple[str, ...]:
    if any(marker in team_name for marker in _FINNISH_MARKERS):
        return FINNISH_SURNAMES
    return SWEDISH_SURNAMES


def simulate_minute(state: MatchState, rng: SeededRNG) -> MinuteResult:
    """
    Advance state by one minute in place and return what happened.
    Calling it on a finished match is an error.
    """
    if state.finished:
        raise ValueError(f"Match {state.match_id} already finished")
    state.minute += 1
    minute = state.minute
    events: list[MatchEvent] = []

    if rng.chance(goal_probability(minute, state.is_derby)):
        side = Side.HOME if rng.chance(home_goal_share(state)) else Side.AWAY
        team_name = state.home_team if side is Side.HOME else state.away_team
        if side is Side.HOME:
            state.home_score += 1
        else:
            state.away_score += 1
        events.append(MatchEvent(
            minute=minute,
            type=EventType.GOAL.value,
            team=side.value,
            description=f"{team_name} scores!",
            player=rng.choice(surname_pool(team_name)),
        ))

    if rng.chance(CORNER_PROBABILITY):
        side = Side.HOME if rng.chance(0.5) else Side.AWAY
        events.append(MatchEvent(minute=minute, type=EventType.CORNER.value, team=side.value, description="Corner kick"))

    if rng.chance(CARD_PROBABILITY):
        side = Side.HOME if rng.chance(0.5) else Side.AWAY
        events.append(MatchEvent(minute=minute, type=EventType.CARD.value, team=side.value, description="Yellow card"))

    if minute >= REGULATION_MINUTES and state.added_time is None:
        state.added_time = rng.randint(1, MAX_ADDED_TIME)

    return MinuteResult(
        minute=minute,
        events=events,
        home_score=state.home_score,
        away_score=state.away_score,
        finished=state.finished,
    )


class MatchSimulator:
    """Runs one fixture minute by minute with its own seeded RNG."""

    def __init__(self, state: MatchState, seed: int | None = None) -> None:
        self.state = state
        self.rng = SeededRNG(seed)

    @property
    def finished(self) -> bool:
        return self.state.finished

    def step(self) -> MinuteResult:
        return simulate_minute(self.state, self.rng)

    def run(self, on_minute: Callable[[MinuteResult], None] | None = None) -> Iterator[MinuteResult]:
        """Yield every remaining minute until the final whistle."""
        while not self.state.finished:
            result = self.step()
            if on_minute:
                on_minute(result)
            yield result
