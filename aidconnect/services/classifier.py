"""
classifier.py — Coarse keyword classification for crises and coordinates.

Pure functions, no I/O. classify_crisis() drives the per-type templates in
the signal sources; approximate_region() labels feed locations until a
real reverse-geocoder is wired in.
"""

from aidconnect.models.crisis import CrisisType

# Checked in order, first matching group wins.
_KEYWORDS: list[tuple[CrisisType, tuple[str, ...]]] = [
    (CrisisType.WILDFIRE,   ("fire", "wildfire", "burn")),
    (CrisisType.FLOOD,      ("flood", "water", "river", "dam")),
    (CrisisType.STORM,      ("storm", "hurricane", "typhoon", "cyclone", "tornado")),
    (CrisisType.EARTHQUAKE, ("earthquake", "seismic", "tremor")),
]


def classify_crisis(name: str, description: str) -> CrisisType:
    """Map a crisis name + description to a CrisisType by keyword match."""
    text = f"{name} {description}".lower()
    for crisis_type, words in _KEYWORDS:
        if any(w in text for w in words):
            return crisis_type
    return CrisisType.OTHER


def approximate_region(latitude: float, longitude: float) -> str:
    """Very coarse bounding-box region label."""
    if latitude > 30 and -30 < longitude < 60:
        return "Europe"
    if latitude > 10 and 60 < longitude < 150:
        return "Asia"
    if latitude < 0 and 110 < longitude < 180:
        return "Australia"
    if latitude > 10 and -150 < longitude < -50:
        return "North America"
    if -60 < latitude < 10 and -90 < longitude < -30:
        return "South America"
    if -40 < latitude < 40 and -20 < longitude < 60:
        return "Africa"
    return "Ocean Region"


def format_location(latitude: float, longitude: float) -> str:
    """e.g. "Asia, 35.7°N 139.7°E"."""
    lat_dir = "N" if latitude >= 0 else "S"
    lon_dir = "E" if longitude >= 0 else "W"
    region = approximate_region(latitude, longitude)
    return f"{region}, {abs(latitude):.1f}°{lat_dir} {abs(longitude):.1f}°{lon_dir}"
