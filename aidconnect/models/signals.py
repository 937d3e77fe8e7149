"""
signals.py — Names and container type for per-request real-time signals.

A SignalBag is a plain dict built fresh for every prediction attempt:
signal name → text snippet. Any live signal may be missing (its source
failed); the four static crisis fields are always present.
"""

from enum import Enum


class SignalName(str, Enum):
    # Live signals, one per source
    WEATHER = "weatherReport"
    NEWS = "newsSnippet"
    OFFICIAL_ALERT = "officialAlert"
    SATELLITE = "satelliteData"
    ADDITIONAL_CONTEXT = "additionalContext"

    # Echoed crisis static fields
    CRISIS_NAME = "crisisName"
    CRISIS_DESCRIPTION = "crisisDescription"
    CRISIS_LOCATION = "crisisLocation"
    CRISIS_SEVERITY = "crisisSeverity"


LIVE_SIGNALS = (
    SignalName.WEATHER,
    SignalName.NEWS,
    SignalName.OFFICIAL_ALERT,
    SignalName.SATELLITE,
    SignalName.ADDITIONAL_CONTEXT,
)

STATIC_SIGNALS = (
    SignalName.CRISIS_NAME,
    SignalName.CRISIS_DESCRIPTION,
    SignalName.CRISIS_LOCATION,
    SignalName.CRISIS_SEVERITY,
)

SignalBag = dict[str, str]
