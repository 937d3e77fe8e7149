"""
prediction_store.py — In-memory latest-prediction cache with single-flight.

Holds the only shared mutable state of the pipeline:
  - crisis id → latest CrisisPrediction (overwritten, never deleted)
  - crisis id → in-flight asyncio.Task producing the next one

Everything runs on one event loop and none of these methods await, so
each read or write is atomic with respect to other coroutines.
"""

import asyncio
import logging
from datetime import datetime, timezone
from typing import Awaitable, Callable, Optional, TypeVar

from aidconnect.models.prediction import CrisisPrediction

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_STALENESS_SECONDS = 600


class PredictionStore:
    def __init__(self, clock: Optional[Callable[[], datetime]] = None) -> None:
        self.clock = clock or (lambda: datetime.now(tz=timezone.utc))
        self._predictions: dict[str, CrisisPrediction] = {}
        self._in_flight: dict[str, asyncio.Task] = {}

    # ── Cache ────────────────────────────────────────────────────────────────

    def get(self, crisis_id: str) -> Optional[CrisisPrediction]:
        return self._predictions.get(crisis_id)

    def set(self, crisis_id: str, prediction: CrisisPrediction) -> None:
        self._predictions[crisis_id] = prediction

    def snapshot(self) -> dict[str, CrisisPrediction]:
        return dict(self._predictions)

    def is_stale(self, crisis_id: str, threshold_seconds: float = DEFAULT_STALENESS_SECONDS) -> bool:
        """True if nothing is cached or the cached prediction is older than the threshold."""
        prediction = self._predictions.get(crisis_id)
        if prediction is None:
            return True
        stamp = prediction.timestamp
        if stamp.tzinfo is None:
            stamp = stamp.replace(tzinfo=timezone.utc)
        age = (self.clock() - stamp).total_seconds()
        return age > threshold_seconds

    # ── Single-flight ────────────────────────────────────────────────────────

    def in_flight(self, crisis_id: str) -> bool:
        return crisis_id in self._in_flight

    @property
    def any_in_flight(self) -> bool:
        return bool(self._in_flight)

    def single_flight(self, crisis_id: str, factory: Callable[[], Awaitable[T]]) -> "asyncio.Task[T]":
        """
        Return the in-flight task for `crisis_id`, starting one from `factory` if none.

        A second caller for the same id gets the same task (coalesced);
        `factory` is not invoked again until the first task finishes.
        """
        task = self._in_flight.get(crisis_id)
        if task is not None:
            logger.info("Joining in-flight prediction for %s", crisis_id)
            return task

        task = asyncio.ensure_future(factory())
        self._in_flight[crisis_id] = task
        task.add_done_callback(self._clear_in_flight(crisis_id))
        return task

    def _clear_in_flight(self, crisis_id: str) -> Callable[[asyncio.Task], None]:
        def _clear(task: asyncio.Task) -> None:
            if self._in_flight.get(crisis_id) is task:
                del self._in_flight[crisis_id]
        return _clear
