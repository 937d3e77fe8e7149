"""
sources.py — The five real-time signal sources for a crisis.

  WeatherSource            OpenWeatherMap current conditions (or simulated)
  NewsSource               Serper.dev news search (or templated snippet)
  OfficialAlertSource      US NWS active alerts (or templated advisory)
  SatelliteSource          simulated satellite-derived estimate per crisis type
  AdditionalContextSource  secondary Gemini call for background facts

Contract
────────
SignalSource.fetch() never raises. Timeouts, non-2xx statuses, malformed
payloads and empty answers all come back as None, so the aggregator can
simply keep whatever is present. Each fetch is bounded by
settings.http_timeout_seconds.

Simulated snippets are derived deterministically from the coordinates so
the same crisis always produces the same text.
"""

import asyncio
import logging
import math
from datetime import datetime, timezone
from typing import Callable, Optional

import httpx

from aidconnect.ai.gemini_client import GeminiClient, gemini_client
from aidconnect.ai.serper_adapter import SerperAdapter, serper_adapter
from aidconnect.core.config import settings
from aidconnect.models.crisis import Crisis, CrisisType
from aidconnect.models.prediction import PredictionRequest
from aidconnect.models.signals import SignalName

logger = logging.getLogger(__name__)

OPENWEATHER_URL = "https://api.openweathermap.org/data/2.5/weather"
NWS_ALERTS_URL = "https://api.weather.gov/alerts/active"

_COMPASS = ["N", "NE", "E", "SE", "S", "SW", "W", "NW"]


def _coords(crisis: Crisis) -> tuple[float, float]:
    # Crises without coordinates are queried at (0, 0).
    if crisis.coordinates is None:
        return 0.0, 0.0
    return crisis.coordinates.latitude, crisis.coordinates.longitude


def _pick(options: list[str], value: float) -> str:
    return options[int(abs(value) * len(options)) % len(options)]


class SignalSource:
    """Base class: bounded, failure-absorbing wrapper around one upstream."""

    name: SignalName

    def __init__(
        self,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.timeout = timeout if timeout is not None else settings.http_timeout_seconds
        self._transport = transport

    async def fetch(self, crisis: Crisis, crisis_type: CrisisType) -> Optional[str]:
        """Return a snippet, or None on any failure or empty result."""
        try:
            snippet = await asyncio.wait_for(self._fetch(crisis, crisis_type), timeout=self.timeout)
        except asyncio.TimeoutError:
            logger.warning("%s source timed out after %.1fs", self.name.value, self.timeout)
            return None
        except Exception as exc:
            logger.warning("%s source failed: %s", self.name.value, exc)
            return None

        if not snippet or not snippet.strip():
            return None
        return snippet.strip()

    async def _fetch(self, crisis: Crisis, crisis_type: CrisisType) -> Optional[str]:
        raise NotImplementedError

    def _client(self, **kwargs) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=self.timeout, transport=self._transport, **kwargs)


# ── Weather ───────────────────────────────────────────────────────────────────

def simulated_weather(latitude: float, longitude: float) -> str:
    temp = 20.0 + math.sin(latitude) * 15 + math.cos(longitude) * 10
    humidity = round(abs(math.sin(latitude * longitude)) * 100)
    wind_speed = float(round(5 + abs(math.cos(latitude)) * 15))
    wind_dir = _pick(_COMPASS, math.sin(latitude * longitude))
    pressure = int(1000 + abs(math.cos(latitude * 0.1)) * 30)
    return (
        f"Current conditions: Temperature {temp:.1f}°C, Humidity {humidity}%, "
        f"Wind {wind_speed:.1f} km/h {wind_dir}, Pressure {pressure} hPa"
    )


class WeatherSource(SignalSource):
    name = SignalName.WEATHER

    def __init__(self, api_key: Optional[str] = None, **kwargs) -> None:
        super().__init__(**kwargs)
        self.api_key = settings.openweather_api_key if api_key is None else api_key

    async def _fetch(self, crisis: Crisis, crisis_type: CrisisType) -> Optional[str]:
        latitude, longitude = _coords(crisis)
        if not self.api_key:
            return simulated_weather(latitude, longitude)

        async with self._client() as client:
            response = await client.get(
                OPENWEATHER_URL,
                params={"lat": latitude, "lon": longitude, "appid": self.api_key, "units": "metric"},
            )
            response.raise_for_status()
            data = response.json()

        main = data["main"]
        wind = data.get("wind", {})
        summary = (data.get("weather") or [{}])[0].get("description", "")
        wind_kmh = float(wind.get("speed", 0.0)) * 3.6
        wind_dir = _COMPASS[int(((float(wind.get("deg", 0.0)) + 22.5) % 360) // 45)]
        prefix = f"Current conditions: {summary}, " if summary else "Current conditions: "
        return (
            f"{prefix}Temperature {float(main['temp']):.1f}°C, Humidity {int(main['humidity'])}%, "
            f"Wind {wind_kmh:.1f} km/h {wind_dir}, Pressure {int(main['pressure'])} hPa"
        )


# ── News ──────────────────────────────────────────────────────────────────────

_NEWS_TEMPLATES = {
    CrisisType.WILDFIRE: (
        "Regional authorities in {region} report containment efforts continue for the {name}. "
        "Local fire departments have deployed additional resources to affected areas."
    ),
    CrisisType.FLOOD: (
        "Flood waters in {region} have affected key infrastructure. Local authorities are "
        "working to restore access to communities isolated by the {name}."
    ),
    CrisisType.STORM: (
        "The {name} has caused significant power outages across {region}. Utility companies "
        "estimate restoration will take 3-5 days for the most affected areas."
    ),
    CrisisType.EARTHQUAKE: (
        "Rescue teams in {region} continue search operations following the {name}. "
        "Structural engineers are assessing damage to critical infrastructure."
    ),
    CrisisType.OTHER: (
        "Officials in {region} are monitoring the {name} situation and coordinating response "
        "efforts. Residents are advised to follow local authority guidance."
    ),
}


class NewsSource(SignalSource):
    name = SignalName.NEWS

    def __init__(self, search: Optional[SerperAdapter] = None, **kwargs) -> None:
        super().__init__(**kwargs)
        self.search = search or serper_adapter

    async def _fetch(self, crisis: Crisis, crisis_type: CrisisType) -> Optional[str]:
        region = crisis.location.split(",")[0].strip() or crisis.location
        if not self.search.enabled:
            return _NEWS_TEMPLATES[crisis_type].format(region=region, name=crisis.name)

        headlines = await self.search.news_search(f"{crisis.name} {region}", num_results=3)
        return " | ".join(h.as_line() for h in headlines)


# ── Official alerts ───────────────────────────────────────────────────────────

_ALERT_LEVELS = {
    CrisisType.WILDFIRE: "RED FLAG WARNING",
    CrisisType.FLOOD: "FLOOD WARNING",
    CrisisType.STORM: "SEVERE STORM WARNING",
    CrisisType.EARTHQUAKE: "AFTERSHOCK ADVISORY",
    CrisisType.OTHER: "EMERGENCY NOTIFICATION",
}

_ALERT_ZONES = ["Northeast", "Northwest", "Central", "Southeast", "Southwest"]


def simulated_alert(latitude: float, longitude: float, crisis_type: CrisisType) -> str:
    zone = _ALERT_ZONES[int(abs(math.sin(latitude) * math.cos(longitude) * 10000)) % len(_ALERT_ZONES)]
    return (
        f"{_ALERT_LEVELS[crisis_type]}: Official alert issued for {zone} zones in the affected "
        "region. Local authorities advise residents to follow evacuation orders and emergency "
        "protocols."
    )


class OfficialAlertSource(SignalSource):
    name = SignalName.OFFICIAL_ALERT

    def __init__(self, live: Optional[bool] = None, **kwargs) -> None:
        super().__init__(**kwargs)
        self.live = settings.nws_alerts_enabled if live is None else live

    async def _fetch(self, crisis: Crisis, crisis_type: CrisisType) -> Optional[str]:
        latitude, longitude = _coords(crisis)
        if not self.live:
            return simulated_alert(latitude, longitude, crisis_type)

        # NWS rejects requests without a User-Agent.
        headers = {"User-Agent": settings.nws_user_agent, "Accept": "application/geo+json"}
        async with self._client(headers=headers) as client:
            response = await client.get(NWS_ALERTS_URL, params={"point": f"{latitude:.4f},{longitude:.4f}"})
            response.raise_for_status()
            features = response.json().get("features", [])

        headlines = []
        for feature in features[:3]:
            props = feature.get("properties", {})
            line = props.get("headline") or props.get("event")
            if line:
                headlines.append(line)
        return " | ".join(headlines)


# ── Satellite ─────────────────────────────────────────────────────────────────

def simulated_satellite(latitude: float, longitude: float, crisis_type: CrisisType, day: str) -> str:
    if crisis_type is CrisisType.WILDFIRE:
        increase = round(abs(math.sin(latitude * 2)) * 50)
        area = round(abs(math.cos(longitude * 0.5)) * 30 + 5)
        return (
            f"NASA FIRMS data from {day} shows a {increase}% increase in thermal anomalies. "
            f"Satellite imagery indicates active burning in an area of approximately {area} square kilometers."
        )
    if crisis_type is CrisisType.FLOOD:
        area = round(abs(math.sin(latitude * longitude * 0.01)) * 100 + 20)
        trend = _pick(["rising", "stable", "falling"], math.cos(latitude))
        return (
            f"Sentinel-1 SAR imagery from {day} shows flood waters covering an estimated {area} "
            f"square kilometers. Water levels appear to be {trend}."
        )
    if crisis_type is CrisisType.STORM:
        wind = round(abs(math.sin(latitude + longitude)) * 60 + 40)
        trend = _pick(["intensifying", "maintaining strength", "weakening"], math.sin(latitude * 2))
        return (
            f"NOAA satellite data from {day} indicates maximum sustained winds of {wind} km/h. "
            f"Cloud patterns suggest the system is {trend}."
        )
    if crisis_type is CrisisType.EARTHQUAKE:
        deformation = float(round(abs(math.sin(latitude * 0.1)) * 30 + 5))
        activity = _pick(["high", "moderate", "low"], math.cos(longitude * 0.5))
        return (
            f"InSAR data analysis from {day} shows ground deformation of up to {deformation:.1f} cm "
            f"in the affected area. Aftershock activity remains {activity}."
        )
    area = round(abs(math.sin(latitude * longitude * 0.01)) * 50 + 10)
    return (
        f"Satellite imagery from {day} shows the affected area spans approximately {area} square "
        "kilometers. Monitoring systems continue to track changes in the affected region."
    )


class SatelliteSource(SignalSource):
    name = SignalName.SATELLITE

    def __init__(self, clock: Optional[Callable[[], datetime]] = None, **kwargs) -> None:
        super().__init__(**kwargs)
        self.clock = clock or (lambda: datetime.now(tz=timezone.utc))

    async def _fetch(self, crisis: Crisis, crisis_type: CrisisType) -> Optional[str]:
        latitude, longitude = _coords(crisis)
        day = self.clock().strftime("%b %d, %Y")
        return simulated_satellite(latitude, longitude, crisis_type, day)


# ── Additional context (secondary model call) ─────────────────────────────────

_CONTEXT_PROMPT = """I need factual information about {name} in {location}.
This is a {crisis_type} event with severity {severity} out of 5.

Please provide:
1. Recent historical context for this type of event in this region
2. Typical progression patterns for this disaster type
3. Known vulnerabilities in the affected region
4. Key facts about {name} specifically

Focus only on verifiable facts, keep it concise (maximum 250 words), and avoid speculation."""


class AdditionalContextSource(SignalSource):
    """Background facts from a small, independent model call (plain text, no JSON)."""

    name = SignalName.ADDITIONAL_CONTEXT

    def __init__(self, model: Optional[GeminiClient] = None, **kwargs) -> None:
        super().__init__(**kwargs)
        self.model = model or gemini_client

    async def _fetch(self, crisis: Crisis, crisis_type: CrisisType) -> Optional[str]:
        prompt = _CONTEXT_PROMPT.format(
            name=crisis.name,
            location=crisis.location,
            crisis_type=crisis_type.value,
            severity=crisis.severity,
        )
        request = PredictionRequest(
            prompt=prompt,
            temperature=settings.context_temperature,
            max_output_tokens=settings.context_max_output_tokens,
            response_mime_type=None,
        )
        return await self.model.generate(request, response_key="crisis_context")


def default_sources() -> list[SignalSource]:
    return [
        WeatherSource(),
        NewsSource(),
        OfficialAlertSource(),
        SatelliteSource(),
        AdditionalContextSource(),
    ]
