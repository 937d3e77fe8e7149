"""
crisis.py — Pydantic models for tracked crises and the EONET feed payload.

Crisis        — static, externally sourced event record (read-only for the
                prediction pipeline; replaced wholesale on each feed refresh)
Coordinates   — latitude / longitude pair, also used for polygon vertices
CrisisType    — coarse classification driving the signal source templates
EONET*        — the subset of the NASA EONET v3 /events payload we consume
"""

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class Coordinates(BaseModel):
    latitude: float
    longitude: float


class CrisisType(str, Enum):
    WILDFIRE = "wildfire"
    FLOOD = "flood"
    STORM = "storm"
    EARTHQUAKE = "earthquake"
    OTHER = "other"


class Crisis(BaseModel):
    """A tracked disaster / emergency event."""

    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    location: str                       # human-readable, e.g. "Asia, 35.7°N 139.7°E"
    severity: int = Field(ge=1, le=5)
    start_date: datetime
    description: str
    affected_population: int = 0
    coordinator_contact: Optional[str] = None
    coordinates: Optional[Coordinates] = None


# ── EONET v3 payload ──────────────────────────────────────────────────────────
# EONET geometry coordinates are [longitude, latitude] for Point events.

class EONETCategory(BaseModel):
    id: str
    title: str


class EONETSource(BaseModel):
    id: str
    url: str


class EONETGeometry(BaseModel):
    date: str
    type: str
    coordinates: list = Field(default_factory=list)


class EONETEvent(BaseModel):
    id: str
    title: str
    description: Optional[str] = None
    closed: Optional[str] = None
    categories: list[EONETCategory] = Field(default_factory=list)
    sources: list[EONETSource] = Field(default_factory=list)
    geometry: list[EONETGeometry] = Field(default_factory=list)


class EONETResponse(BaseModel):
    title: str = ""
    description: str = ""
    events: list[EONETEvent] = Field(default_factory=list)
