"""
pytest configuration and shared fixtures for the prediction API tests.

Key concern: tests must not reach NASA EONET, Gemini, Serper,
OpenWeatherMap or the NWS. We achieve this by:
  1. Forcing AI_MOCK_MODE=true and blank provider keys so every adapter
     takes its mock / simulated path.
  2. Disabling the startup feed refresh (CRISIS_FEED_AUTOLOAD=false).
  3. Giving each API test a fresh CrisisFeed + PredictionOrchestrator on
     app.state, seeded with one known crisis.

Pipeline unit tests build their own collaborators from the stubs below
(StaticSource, StubModel, ...) instead of patching module globals.
"""

import asyncio
import os
from datetime import datetime, timezone
from typing import Optional

import pytest
from httpx import ASGITransport, AsyncClient

# Set env vars BEFORE importing the app so Settings picks them up correctly
os.environ["AI_MOCK_MODE"] = "true"
os.environ.setdefault("ENVIRONMENT", "test")
os.environ["CRISIS_FEED_AUTOLOAD"] = "false"
os.environ["GEMINI_API_KEY"] = ""
os.environ["SERPER_API_KEY"] = ""
os.environ["OPENWEATHER_API_KEY"] = ""
os.environ["NWS_ALERTS_ENABLED"] = "false"

from aidconnect.models.crisis import Coordinates, Crisis, CrisisType  # noqa: E402
from aidconnect.models.prediction import PredictionRequest  # noqa: E402
from aidconnect.models.signals import SignalName  # noqa: E402
from aidconnect.services.sources import SignalSource  # noqa: E402

FIXED_NOW = datetime(2025, 6, 1, 12, 0, 0, tzinfo=timezone.utc)

STUB_ANSWER = (
    '{"id":"ignored","timestamp":"2000-01-01T00:00:00Z","predictionNarrative":"test",'
    '"riskHeatmapPoints":[{"latitude":10.1,"longitude":20.1,"intensity":0.8}]}'
)


def make_crisis(crisis_id: str = "EQ-1", **overrides) -> Crisis:
    fields = dict(
        id=crisis_id,
        name="Coastal Earthquake",
        location="Africa, 10.0°N 20.0°E",
        severity=4,
        start_date=datetime(2025, 5, 30, 6, 0, 0, tzinfo=timezone.utc),
        description="A magnitude 6.4 earthquake struck near the coast.",
        affected_population=42_000,
        coordinator_contact="info@globalaidconnect.org",
        coordinates=Coordinates(latitude=10.0, longitude=20.0),
    )
    fields.update(overrides)
    return Crisis(**fields)


# ─── Stub collaborators ───────────────────────────────────────────────────────


class StaticSource(SignalSource):
    """Returns a fixed snippet."""

    def __init__(self, name: SignalName, text: Optional[str], delay: float = 0.0, **kwargs) -> None:
        super().__init__(timeout=kwargs.pop("timeout", 1.0), **kwargs)
        self.name = name
        self.text = text
        self.delay = delay
        self.calls = 0

    async def _fetch(self, crisis: Crisis, crisis_type: CrisisType) -> Optional[str]:
        self.calls += 1
        if self.delay:
            await asyncio.sleep(self.delay)
        return self.text


class FailingSource(SignalSource):
    """Raises from inside the fetch boundary."""

    def __init__(self, name: SignalName, **kwargs) -> None:
        super().__init__(timeout=kwargs.pop("timeout", 1.0), **kwargs)
        self.name = name

    async def _fetch(self, crisis: Crisis, crisis_type: CrisisType) -> Optional[str]:
        raise RuntimeError(f"{self.name.value} upstream exploded")


class StubModel:
    """
    Call-counting stand-in for GeminiClient.

    Set `gate` to an asyncio.Event to hold every call until the test
    releases it; set `error` to make calls raise.
    """

    def __init__(self, answer: str = STUB_ANSWER, error: Optional[Exception] = None) -> None:
        self.answer = answer
        self.error = error
        self.gate: Optional[asyncio.Event] = None
        self.calls = 0
        self.requests: list[PredictionRequest] = []

    async def generate(self, request: PredictionRequest, response_key: str = "default") -> str:
        self.calls += 1
        self.requests.append(request)
        if self.gate is not None:
            await self.gate.wait()
        if self.error is not None:
            raise self.error
        return self.answer


def stub_sources(**overrides) -> list[SignalSource]:
    """One StaticSource per live signal, with predictable snippets."""
    texts = {
        SignalName.WEATHER: "Temp 30C, wind 20 km/h NE",
        SignalName.NEWS: "Rescue teams deployed",
        SignalName.OFFICIAL_ALERT: "AFTERSHOCK ADVISORY",
        SignalName.SATELLITE: "InSAR shows 12 cm deformation",
        SignalName.ADDITIONAL_CONTEXT: "Region has frequent seismic activity",
    }
    sources: list[SignalSource] = []
    for name, text in texts.items():
        override = overrides.get(name.value)
        sources.append(override if override is not None else StaticSource(name, text))
    return sources


# ─── Fixtures ─────────────────────────────────────────────────────────────────


@pytest.fixture()
def crisis() -> Crisis:
    return make_crisis()


@pytest.fixture()
def feed(crisis):
    from aidconnect.services.crisis_feed import CrisisFeed

    f = CrisisFeed()
    f.set_crises([crisis])
    return f


@pytest.fixture()
def stub_model() -> StubModel:
    return StubModel()


@pytest.fixture()
def orchestrator(feed, stub_model):
    from aidconnect.ai.prediction_client import PredictionClient
    from aidconnect.services.aggregator import DataAggregator
    from aidconnect.services.orchestrator import PredictionOrchestrator

    return PredictionOrchestrator(
        feed,
        aggregator=DataAggregator(feed, sources=stub_sources()),
        client=PredictionClient(model=stub_model),
    )


@pytest.fixture()
def app_state(feed, orchestrator):
    """
    Install the test feed + orchestrator on app.state for one test.

    Restores the originals afterwards and clears the rate-limit buckets.
    """
    from aidconnect.core.rate_limit import limiter
    from aidconnect.main import app

    original_feed = app.state.crisis_feed
    original_orchestrator = app.state.orchestrator
    app.state.crisis_feed = feed
    app.state.orchestrator = orchestrator
    limiter.reset()

    yield app

    app.state.crisis_feed = original_feed
    app.state.orchestrator = original_orchestrator
    limiter.reset()


@pytest.fixture()
async def client(app_state):
    """
    HTTPX async test client wired to the FastAPI app.

    Usage:
        async def test_something(client):
            response = await client.get("/health")
            assert response.status_code == 200
    """
    async with AsyncClient(transport=ASGITransport(app=app_state), base_url="http://test") as ac:
        yield ac
