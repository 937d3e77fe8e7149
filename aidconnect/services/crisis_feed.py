"""
crisis_feed.py — Active crisis list backed by the NASA EONET v3 events feed.

CrisisFeed owns the `active_crises` state the prediction pipeline reads.
The list is replaced wholesale on every successful refresh; a failed
refresh keeps the previous list so selected crises stay resolvable.

EONET needs no API key:
    GET https://eonet.gsfc.nasa.gov/api/v3/events?status=open&days=30&limit=20
"""

import logging
import random
from datetime import datetime, timezone
from typing import Optional

import httpx
from pydantic import ValidationError

from aidconnect.core.config import settings
from aidconnect.models.crisis import Coordinates, Crisis, EONETEvent, EONETResponse
from aidconnect.services.classifier import format_location

logger = logging.getLogger(__name__)

COORDINATOR_CONTACT = "info@globalaidconnect.org"

# First category title → severity. Extreme wildfires are bumped to 5 below.
_SEVERITY_BY_CATEGORY = {
    "Volcanoes": 5,
    "Severe Storms": 5,
    "Wildfires": 4,
    "Floods": 4,
    "Earthquakes": 4,
    "Drought": 3,
    "Landslides": 3,
    "Sea and Lake Ice": 2,
    "Snow": 2,
}

# category → (base, max extra) for the affected-population estimate
_POPULATION_BY_CATEGORY = {
    "Wildfires": (5_000, 10_000),
    "Volcanoes": (15_000, 50_000),
    "Severe Storms": (25_000, 75_000),
    "Floods": (25_000, 75_000),
    "Earthquakes": (30_000, 100_000),
    "Drought": (50_000, 150_000),
}
_DEFAULT_POPULATION = (1_000, 5_000)


class CrisisFeedError(Exception):
    """The feed could not be fetched or decoded."""


def estimate_severity(category: str, title: str) -> int:
    if category == "Wildfires" and "Extreme" in title:
        return 5
    return _SEVERITY_BY_CATEGORY.get(category, 1)


def estimate_affected_population(category: str, event_id: str) -> int:
    """Category base plus a variance seeded by the event id (stable across refreshes)."""
    base, spread = _POPULATION_BY_CATEGORY.get(category, _DEFAULT_POPULATION)
    return base + random.Random(event_id).randint(0, spread)


def _parse_date(raw: str) -> datetime:
    try:
        parsed = datetime.fromisoformat(raw.replace("Z", "+00:00"))
    except ValueError:
        return datetime.now(tz=timezone.utc)
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)


def event_to_crisis(event: EONETEvent) -> Optional[Crisis]:
    """Map one EONET event to a Crisis; None if it has no usable point geometry."""
    if not event.geometry:
        return None
    geometry = event.geometry[0]
    if len(geometry.coordinates) < 2:
        return None
    try:
        longitude = float(geometry.coordinates[0])
        latitude = float(geometry.coordinates[1])
    except (TypeError, ValueError):
        # Polygon geometries nest lists here; skip them
        return None

    category = event.categories[0].title if event.categories else "Unknown"
    description = event.description or (
        f"A {category.lower()} event has been reported in this area. "
        "Monitor local authorities for more information."
    )

    return Crisis(
        id=event.id,
        name=event.title,
        location=format_location(latitude, longitude),
        severity=estimate_severity(category, event.title),
        start_date=_parse_date(geometry.date),
        description=description,
        affected_population=estimate_affected_population(category, event.id),
        coordinator_contact=COORDINATOR_CONTACT,
        coordinates=Coordinates(latitude=latitude, longitude=longitude),
    )


class CrisisFeed:
    """In-memory active crisis list with an EONET refresh."""

    def __init__(self, transport: Optional[httpx.AsyncBaseTransport] = None) -> None:
        self._transport = transport
        self._crises: dict[str, Crisis] = {}
        self.last_refreshed: Optional[datetime] = None

    @property
    def active_crises(self) -> list[Crisis]:
        return list(self._crises.values())

    def get(self, crisis_id: str) -> Optional[Crisis]:
        return self._crises.get(crisis_id)

    def set_crises(self, crises: list[Crisis]) -> None:
        """Replace the whole list (feed refresh, seeding, tests)."""
        self._crises = {c.id: c for c in crises}

    async def refresh(self) -> list[Crisis]:
        """
        Fetch open events from EONET and replace the active list.

        Raises:
            CrisisFeedError: on transport failure, non-2xx, or undecodable
                payload. The previous list is kept in that case.
        """
        url = f"{settings.eonet_base_url}/events"
        params = {"status": "open", "days": settings.eonet_days, "limit": settings.eonet_limit}

        try:
            async with httpx.AsyncClient(
                timeout=settings.http_timeout_seconds, transport=self._transport
            ) as client:
                response = await client.get(url, params=params)
                response.raise_for_status()
                payload = EONETResponse.model_validate(response.json())
        except httpx.HTTPStatusError as exc:
            logger.error("EONET error: %s — %s", exc.response.status_code, exc.response.text[:200])
            raise CrisisFeedError(f"Crisis feed returned status {exc.response.status_code}") from exc
        except httpx.HTTPError as exc:
            logger.error("EONET request failed: %s", exc)
            raise CrisisFeedError(f"Crisis feed unreachable: {exc}") from exc
        except (ValueError, ValidationError) as exc:
            logger.error("EONET payload malformed: %s", exc)
            raise CrisisFeedError("Crisis feed payload was malformed") from exc

        crises = [c for c in (event_to_crisis(e) for e in payload.events) if c is not None]
        self.set_crises(crises)
        self.last_refreshed = datetime.now(tz=timezone.utc)
        logger.info("Crisis feed refreshed: %d active crises", len(crises))
        return crises
