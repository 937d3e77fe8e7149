"""
prompt_builder.py — Renders the crisis impact prediction prompt.

Pure: same (crisis, signals, now) always yields the same string. Pass
`now` explicitly to pin the embedded timestamp in tests.

The prompt carries
  - the target JSON shape, with the exact crisis id and timestamp to echo
  - the crisis's static details
  - every non-empty live signal as a labelled "- name: snippet" line
  - field-by-field instructions and a "use only the data above" rule
"""

from datetime import datetime, timezone
from typing import Optional

from aidconnect.models.crisis import Crisis
from aidconnect.models.signals import LIVE_SIGNALS, STATIC_SIGNALS, SignalBag

_STATIC_KEYS = {s.value for s in STATIC_SIGNALS}
_LIVE_ORDER = [s.value for s in LIVE_SIGNALS]

_SCHEMA = """{{
  "id": "{crisis_id}",
  "timestamp": "{timestamp}",
  "predictionNarrative": "A concise overall summary of the predicted impact and evolution.",
  "next6HoursOutlook": "Specific outlook for the next 6 hours (e.g., spread direction, new risks).",
  "next24HoursOutlook": "Broader outlook for the next 24 hours.",
  "estimatedNewAffectedPopulation": null,
  "criticalInfrastructureAtRisk": [],
  "recommendedImmediateActions": [],
  "riskHeatmapPoints": [
    {{ "latitude": 0.0, "longitude": 0.0, "intensity": 0.0 }}
  ],
  "predictedSpreadPolygons": [
    [ {{ "latitude": 0.0, "longitude": 0.0 }}, {{ "latitude": 0.0, "longitude": 0.0 }}, {{ "latitude": 0.0, "longitude": 0.0 }} ]
  ]
}}"""

_FIELD_NOTES = """Field rules:
- "id" must be exactly "{crisis_id}". "timestamp" must be "{timestamp}".
- "estimatedNewAffectedPopulation" is an integer or null if not predictable.
- "criticalInfrastructureAtRisk" and "recommendedImmediateActions" are arrays of strings or null.
- "riskHeatmapPoints" is an array of {{latitude, longitude, intensity}} objects or null; intensity is 0.0 to 1.0.
- "predictedSpreadPolygons" is an array of polygons or null; each polygon is an array of at least 3 {{latitude, longitude}} objects."""

_INSTRUCTIONS = """Based on ALL the above information about "{name}":
1.  Write a `predictionNarrative` summarizing the likely evolution and key impacts of {name}.
2.  Detail the `next6HoursOutlook` and `next24HoursOutlook` specific to {name}.
3.  Estimate any `estimatedNewAffectedPopulation` in addition to the current.
4.  List any specific `criticalInfrastructureAtRisk` (e.g., hospitals, roads, power lines).
5.  Suggest 2-3 `recommendedImmediateActions` for response teams.
6.  Provide `riskHeatmapPoints`: identify 5-10 key coordinates that will experience increased risk or impact, each with latitude, longitude and an intensity (0.1 to 1.0, 1.0 being highest risk). If the crisis is a wildfire, these points might follow the predicted spread path; if it is a flood, they might be in newly inundated areas. MAKE SURE these coordinates are near the crisis location ({latitude}, {longitude}).
7.  Provide `predictedSpreadPolygons` (may be null if not applicable): if the crisis is likely to spread, outline the predicted affected area for the next 6-12 hours with simple polygons of 3-7 vertices.

Use ONLY the data supplied above. Do not invent facts, figures, places or sources that are not given.
Focus on actionable intelligence. Return ONLY valid JSON matching the structure shown, with no commentary."""


def format_timestamp(now: datetime) -> str:
    return now.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


def _signal_lines(signals: SignalBag) -> list[str]:
    live = {k: v for k, v in signals.items() if k not in _STATIC_KEYS and v and v.strip()}
    ordered = [k for k in _LIVE_ORDER if k in live]
    ordered += sorted(k for k in live if k not in _LIVE_ORDER)
    return [f"- {key}: {live[key].strip()}" for key in ordered]


def build_prediction_prompt(
    crisis: Crisis,
    signals: SignalBag,
    now: Optional[datetime] = None,
) -> str:
    """Render the full prediction prompt for one crisis."""
    timestamp = format_timestamp(now or datetime.now(tz=timezone.utc))

    if crisis.coordinates is not None:
        latitude, longitude = crisis.coordinates.latitude, crisis.coordinates.longitude
        where = f"at coordinates {latitude}, {longitude}"
    else:
        latitude, longitude = 0.0, 0.0
        where = f"with general location {crisis.location}"

    lines = _signal_lines(signals) or [
        "- No real-time updates were available; rely on the crisis details above."
    ]

    sections = [
        f'Analyze the ongoing crisis "{crisis.name}" and predict its evolution for the next 6-24 hours.',
        "Provide the output strictly in JSON format matching the following structure:",
        "```json\n" + _SCHEMA.format(crisis_id=crisis.id, timestamp=timestamp) + "\n```",
        _FIELD_NOTES.format(crisis_id=crisis.id, timestamp=timestamp),
        "\n".join([
            f'Current Crisis Details for "{crisis.name}":',
            f"- Name: {crisis.name}",
            f"- ID: {crisis.id}",
            f"- Location: {where} ({crisis.location})",
            f"- Description: {crisis.description}",
            f"- Current Severity: {crisis.severity} (1-5 scale)",
            f"- Start Date: {format_timestamp(crisis.start_date)}",
            f"- Current Affected Population: {crisis.affected_population}",
        ]),
        "\n".join([f'Latest Real-Time Data Updates for "{crisis.name}":', *lines]),
        _INSTRUCTIONS.format(name=crisis.name, latitude=latitude, longitude=longitude),
    ]
    return "\n\n".join(sections)
