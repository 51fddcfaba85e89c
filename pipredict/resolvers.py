"""
Outcome resolvers.

A resolver is any callable ``resolver(pool) -> str | Resolution`` returning the
winning outcome label, ``Resolution.PENDING`` while the event is still running,
or ``Resolution.UNAVAILABLE`` when the data source cannot answer. Settlement
consults it once per attempt, outside every lock.
"""

import threading
from enum import Enum
from typing import Optional, Protocol, Union

from .errors import InvalidOutcomeError
from .models import EventPool, Outcome


class Resolution(str, Enum):
    PENDING = "pending"
    UNAVAILABLE = "unavailable"


class OutcomeResolver(Protocol):
    def __call__(self, pool: EventPool) -> Union[str, Resolution]:  # pragma: no cover - Protocol
        ...


def outcome_from_scores(home_score: int, away_score: int, allow_draw: bool = True) -> str:
    if home_score > away_score:
        return Outcome.HOME.value
    if away_score > home_score:
        return Outcome.AWAY.value
    if not allow_draw:
        raise InvalidOutcomeError(f"Level score {home_score}-{away_score} in a sport without draws")
    return Outcome.DRAW.value


class StaticOutcomeResolver:
    """Resolver fed by hand or by a results webhook."""

    def __init__(self, results: Optional[dict[str, str]] = None):
        self._results: dict[str, str] = dict(results or {})
        self._unavailable: set[str] = set()
        self._lock = threading.Lock()

    def set_result(self, pool_id: str, outcome: str) -> None:
        with self._lock:
            self._results[pool_id] = outcome
            self._unavailable.discard(pool_id)

    def set_score(self, pool: EventPool, home_score: int, away_score: int) -> str:
        outcome = outcome_from_scores(home_score, away_score, allow_draw=Outcome.DRAW.value in pool.outcomes)
        self.set_result(pool.id, outcome)
        return outcome

    def mark_unavailable(self, pool_id: str) -> None:
        with self._lock:
            self._unavailable.add(pool_id)

    def __call__(self, pool: EventPool) -> Union[str, Resolution]:
        with self._lock:
            if pool.id in self._unavailable:
                return Resolution.UNAVAILABLE
            return self._results.get(pool.id, Resolution.PENDING)
