"""
orchestrator.py — Entry point of the live crisis impact prediction pipeline.

    start_prediction(crisis_id)
        │  fresh cached prediction and no refresh? → return it
        ▼
    PredictionStore.single_flight(crisis_id)      (joins an in-flight run)
        │
        ▼
    DataAggregator.collect   → SignalBag          (5 sources, concurrent)
    build_prediction_prompt  → prompt str         (pure)
    PredictionClient.predict → CrisisPrediction   (one model call)
    PredictionStore.set                           (only after a full decode)

Per-crisis state machine: IDLE → FETCHING → SUCCESS | FAILED. SUCCESS and
FAILED are the last outcome, kept for display; any non-FETCHING state
accepts a new trigger. Runs for different crisis ids proceed concurrently.

Observable surface (for the HTTP / WebSocket layer): is_fetching,
prediction_error, predictions, per-crisis states, and subscribe() for
change notifications.
"""

import asyncio
import logging
from enum import Enum
from typing import Callable, Optional

from aidconnect.ai.errors import PredictionClientError
from aidconnect.ai.prediction_client import PredictionClient
from aidconnect.ai.prompt_builder import build_prediction_prompt
from aidconnect.core.config import settings
from aidconnect.models.crisis import Crisis
from aidconnect.models.prediction import CrisisPrediction, PredictionSnapshot
from aidconnect.models.signals import SignalBag
from aidconnect.services.aggregator import CrisisNotFoundError, DataAggregator
from aidconnect.services.crisis_feed import CrisisFeed
from aidconnect.services.prediction_store import PredictionStore

logger = logging.getLogger(__name__)

Listener = Callable[[PredictionSnapshot], None]
PromptBuilder = Callable[[Crisis, SignalBag], str]


class PredictionState(str, Enum):
    IDLE = "idle"
    FETCHING = "fetching"
    SUCCESS = "success"
    FAILED = "failed"


class PredictionOrchestrator:
    def __init__(
        self,
        feed: CrisisFeed,
        aggregator: Optional[DataAggregator] = None,
        client: Optional[PredictionClient] = None,
        store: Optional[PredictionStore] = None,
        prompt_builder: PromptBuilder = build_prediction_prompt,
        staleness_seconds: Optional[float] = None,
    ) -> None:
        self.feed = feed
        self.aggregator = aggregator or DataAggregator(feed)
        self.client = client or PredictionClient()
        self.store = store or PredictionStore()
        self.prompt_builder = prompt_builder
        self.staleness_seconds = (
            settings.prediction_staleness_seconds if staleness_seconds is None else staleness_seconds
        )

        self.prediction_error: Optional[str] = None
        self._states: dict[str, PredictionState] = {}
        self._errors: dict[str, str] = {}
        self._listeners: list[Listener] = []

    # ── Observable surface ───────────────────────────────────────────────────

    @property
    def is_fetching(self) -> bool:
        return any(s is PredictionState.FETCHING for s in self._states.values())

    @property
    def predictions(self) -> dict[str, CrisisPrediction]:
        return self.store.snapshot()

    def state(self, crisis_id: str) -> PredictionState:
        return self._states.get(crisis_id, PredictionState.IDLE)

    def error_for(self, crisis_id: str) -> Optional[str]:
        """Last failure message for this crisis, if its last run failed."""
        return self._errors.get(crisis_id)

    def snapshot(self) -> PredictionSnapshot:
        return PredictionSnapshot(
            is_fetching=self.is_fetching,
            prediction_error=self.prediction_error,
            predictions=self.store.snapshot(),
            states={k: v.value for k, v in self._states.items()},
        )

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register a change listener; returns an unsubscribe callable."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _notify(self) -> None:
        if not self._listeners:
            return
        snapshot = self.snapshot()
        for listener in list(self._listeners):
            try:
                listener(snapshot)
            except Exception:
                logger.exception("Prediction listener failed")

    def _transition(self, crisis_id: str, state: PredictionState, error: Optional[str] = None) -> None:
        self._states[crisis_id] = state
        if state is PredictionState.FETCHING:
            self.prediction_error = None
            self._errors.pop(crisis_id, None)
        elif state is PredictionState.FAILED:
            self.prediction_error = error
            self._errors[crisis_id] = error or "Prediction failed."
        self._notify()

    # ── Pipeline ─────────────────────────────────────────────────────────────

    async def start_prediction(self, crisis_id: str, refresh: bool = False) -> Optional[CrisisPrediction]:
        """
        Return a prediction for `crisis_id`, running the pipeline if needed.

        - Fresh cached prediction and refresh=False → returned without a model call.
        - A run already in flight for this id → joined, never duplicated.
        - Otherwise a new run starts.

        Returns None if the run failed; the reason is in prediction_error
        and error_for(crisis_id). Never raises for upstream failures.
        """
        if (
            not refresh
            and not self.store.in_flight(crisis_id)
            and not self.store.is_stale(crisis_id, self.staleness_seconds)
        ):
            logger.debug("Serving cached prediction for %s", crisis_id)
            return self.store.get(crisis_id)

        task = self.store.single_flight(crisis_id, lambda: self._run(crisis_id))
        # shield: a cancelled caller must not cancel the run other callers share
        return await asyncio.shield(task)

    async def _run(self, crisis_id: str) -> Optional[CrisisPrediction]:
        self._transition(crisis_id, PredictionState.FETCHING)

        try:
            crisis = self.aggregator.resolve(crisis_id)
            signals = await self.aggregator.collect(crisis)
            prompt = self.prompt_builder(crisis, signals)
            prediction = await self.client.predict(crisis, prompt)
        except CrisisNotFoundError as exc:
            logger.warning("Prediction requested for unknown crisis %s", crisis_id)
            message = exc.message
        except PredictionClientError as exc:
            logger.error("Prediction failed for %s: %s", crisis_id, exc.message)
            message = f"Failed to get prediction: {exc.message}"
        except Exception as exc:
            logger.exception("Unexpected error in prediction pipeline for %s", crisis_id)
            message = f"Failed to get prediction: unexpected {type(exc).__name__}."
        else:
            self.store.set(crisis_id, prediction)
            self._transition(crisis_id, PredictionState.SUCCESS)
            logger.info("Stored prediction for crisis %s", crisis_id)
            return prediction

        self._transition(crisis_id, PredictionState.FAILED, error=message)
        return None
