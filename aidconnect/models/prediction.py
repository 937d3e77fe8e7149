"""
prediction.py — Pydantic models for the live crisis impact prediction.

PredictionRequest  — rendered prompt + generation parameters for one model call
PredictionAnswer   — the model's JSON answer, decoded leniently
CrisisPrediction   — the normalised, cached output unit (keyed by crisis id)
HeatmapPoint       — weighted risk point for the map heatmap overlay

Wire format
───────────
The model contract and the API responses use camelCase keys
(predictionNarrative, riskHeatmapPoints, ...). Python code uses the
snake_case attribute names; serialise with model_dump(by_alias=True).

Trust boundary
──────────────
PredictionAnswer has no id / timestamp fields at all: whatever the model
writes there is ignored, never parsed. CrisisPrediction gets both from
the caller via PredictionAnswer.to_prediction().
"""

import logging
from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError, field_validator

from aidconnect.models.crisis import Coordinates

logger = logging.getLogger(__name__)

MIN_POLYGON_VERTICES = 3

_STR = TypeAdapter(str)


class HeatmapPoint(BaseModel):
    model_config = ConfigDict(frozen=True)

    latitude: float
    longitude: float
    intensity: float   # nominally 0.0–1.0, passed through unclamped


class PredictionRequest(BaseModel):
    """One generateContent call: a single user prompt plus generation config."""

    prompt: str
    temperature: float = 0.3
    max_output_tokens: int = 2048
    response_mime_type: Optional[str] = "application/json"

    def to_payload(self) -> dict[str, Any]:
        """Render as a Gemini REST generateContent request body."""
        generation_config: dict[str, Any] = {
            "temperature": self.temperature,
            "maxOutputTokens": self.max_output_tokens,
        }
        if self.response_mime_type:
            generation_config["responseMimeType"] = self.response_mime_type
        return {
            "contents": [{"role": "user", "parts": [{"text": self.prompt}]}],
            "generationConfig": generation_config,
        }


class CrisisPrediction(BaseModel):
    """Model-generated forecast for one crisis, as stored and served."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    id: str
    timestamp: datetime
    prediction_narrative: str = Field(alias="predictionNarrative")
    next_6_hours_outlook: str = Field(default="", alias="next6HoursOutlook")
    next_24_hours_outlook: str = Field(default="", alias="next24HoursOutlook")
    estimated_new_affected_population: Optional[int] = Field(
        default=None, alias="estimatedNewAffectedPopulation"
    )
    critical_infrastructure_at_risk: Optional[list[str]] = Field(
        default=None, alias="criticalInfrastructureAtRisk"
    )
    recommended_immediate_actions: Optional[list[str]] = Field(
        default=None, alias="recommendedImmediateActions"
    )
    risk_heatmap_points: Optional[list[HeatmapPoint]] = Field(
        default=None, alias="riskHeatmapPoints"
    )
    predicted_spread_polygons: Optional[list[list[Coordinates]]] = Field(
        default=None, alias="predictedSpreadPolygons"
    )


# ── Lenient element filters ───────────────────────────────────────────────────

def _vertex(raw: Any) -> Any:
    # Some answers use [lat, lon] pairs instead of objects.
    if isinstance(raw, (list, tuple)) and len(raw) == 2:
        return {"latitude": raw[0], "longitude": raw[1]}
    return raw


def _polygon(raw: Any) -> Optional[list[Coordinates]]:
    """A polygon survives only if it is a list of ≥3 well-formed vertices."""
    if not isinstance(raw, list) or len(raw) < MIN_POLYGON_VERTICES:
        return None
    try:
        return [Coordinates.model_validate(_vertex(v)) for v in raw]
    except ValidationError:
        return None


class PredictionAnswer(BaseModel):
    """
    The model's answer, decoded with per-element tolerance.

    Malformed heatmap points, polygons and list entries are dropped
    individually; only a missing / non-string narrative or a wrongly
    typed top-level field fails the whole decode.
    """

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    prediction_narrative: str = Field(alias="predictionNarrative")
    next_6_hours_outlook: str = Field(default="", alias="next6HoursOutlook")
    next_24_hours_outlook: str = Field(default="", alias="next24HoursOutlook")
    estimated_new_affected_population: Optional[int] = Field(
        default=None, alias="estimatedNewAffectedPopulation"
    )
    critical_infrastructure_at_risk: Optional[list[str]] = Field(
        default=None, alias="criticalInfrastructureAtRisk"
    )
    recommended_immediate_actions: Optional[list[str]] = Field(
        default=None, alias="recommendedImmediateActions"
    )
    risk_heatmap_points: Optional[list[HeatmapPoint]] = Field(
        default=None, alias="riskHeatmapPoints"
    )
    predicted_spread_polygons: Optional[list[list[Coordinates]]] = Field(
        default=None, alias="predictedSpreadPolygons"
    )

    @field_validator("next_6_hours_outlook", "next_24_hours_outlook", mode="before")
    @classmethod
    def _null_outlook(cls, value: Any) -> Any:
        return "" if value is None else value

    @field_validator("estimated_new_affected_population", mode="before")
    @classmethod
    def _population(cls, value: Any) -> Optional[int]:
        if value is None:
            return None
        try:
            count = TypeAdapter(int).validate_python(value)
        except ValidationError:
            logger.debug("Dropping unparseable estimatedNewAffectedPopulation: %r", value)
            return None
        return count if count >= 0 else None

    @field_validator("critical_infrastructure_at_risk", "recommended_immediate_actions", mode="before")
    @classmethod
    def _string_items(cls, value: Any) -> Any:
        if not isinstance(value, list):
            return value
        kept = []
        for item in value:
            try:
                kept.append(_STR.validate_python(item))
            except ValidationError:
                continue
        return kept

    @field_validator("risk_heatmap_points", mode="before")
    @classmethod
    def _heatmap_points(cls, value: Any) -> Any:
        if not isinstance(value, list):
            return value
        kept = []
        for item in value:
            try:
                kept.append(HeatmapPoint.model_validate(item))
            except ValidationError:
                logger.debug("Dropping malformed heatmap point: %r", item)
        return kept

    @field_validator("predicted_spread_polygons", mode="before")
    @classmethod
    def _spread_polygons(cls, value: Any) -> Any:
        if not isinstance(value, list):
            return value
        kept = []
        for raw in value:
            polygon = _polygon(raw)
            if polygon is None:
                logger.debug("Dropping polygon with too few / malformed vertices")
                continue
            kept.append(polygon)
        return kept

    def to_prediction(self, crisis_id: str, timestamp: datetime) -> CrisisPrediction:
        """Attach the caller-owned id and timestamp."""
        return CrisisPrediction(
            id=crisis_id,
            timestamp=timestamp,
            **self.model_dump(),
        )


# ── API responses ─────────────────────────────────────────────────────────────

class PredictionEnvelope(BaseModel):
    """Response for GET /api/v1/predictions/{crisis_id}."""

    prediction: CrisisPrediction
    stale: bool


class PredictionSnapshot(BaseModel):
    """
    The observable surface: busy flag, error slot, prediction-by-id map.

    Pushed over the WebSocket stream on every orchestrator state change
    and returned by GET /api/v1/predictions.
    """

    is_fetching: bool
    prediction_error: Optional[str] = None
    predictions: dict[str, CrisisPrediction] = Field(default_factory=dict)
    states: dict[str, str] = Field(default_factory=dict)
