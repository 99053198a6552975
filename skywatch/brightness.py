"""
Brightness Estimation

Heuristic apparent magnitude for ranking objects by how easy they are to spot:

    magnitude = class base magnitude + 5 * log10(range_km / 1000)

The base magnitude is a typical value at 1000 km range and half phase for the
object's class. Phase angle, size, attitude and albedo are not modelled, so the
result is a relative ranking, not a radiometric prediction.
"""

import math
import re
from enum import Enum

MIN_RANGE_KM = 1.0


class ObjectClass(str, Enum):
    CREWED_STATION = "crewed_station"
    PAYLOAD = "payload"
    CONSTELLATION = "constellation"
    ROCKET_BODY = "rocket_body"
    DEBRIS = "debris"
    UNKNOWN = "unknown"


# Typical magnitude at 1000 km
BASE_MAGNITUDES = {
    ObjectClass.CREWED_STATION: -1.3,
    ObjectClass.PAYLOAD: 4.5,
    ObjectClass.CONSTELLATION: 5.0,
    ObjectClass.ROCKET_BODY: 3.5,
    ObjectClass.DEBRIS: 5.5,
    ObjectClass.UNKNOWN: 5.0,
}

_STATION_RE = re.compile(r"\b(ISS|ZARYA|TIANHE|TIANGONG|CSS)\b")
_ROCKET_BODY_RE = re.compile(r"(\bR/B\b|\bRB\b|\bROCKET BODY\b)")
_DEBRIS_RE = re.compile(r"\bDEB\b")
_CONSTELLATION_RE = re.compile(r"^(STARLINK|ONEWEB|IRIDIUM|GLOBALSTAR|ORBCOMM|KUIPER)\b")


def classify_object(name: str) -> ObjectClass:
    """Classify an object from catalog naming conventions (e.g. ``R/B``, ``DEB``)."""
    name = (name or "").strip().upper()
    if not name or name.startswith("SAT_"):
        return ObjectClass.UNKNOWN
    if _DEBRIS_RE.search(name):
        return ObjectClass.DEBRIS
    if _ROCKET_BODY_RE.search(name):
        return ObjectClass.ROCKET_BODY
    if _STATION_RE.search(name):
        return ObjectClass.CREWED_STATION
    if _CONSTELLATION_RE.search(name):
        return ObjectClass.CONSTELLATION
    return ObjectClass.PAYLOAD


def estimate_magnitude(object_class: ObjectClass, range_km: float) -> float:
    """
    Estimated apparent magnitude (lower is brighter).

    Args:
        object_class: Class from ``classify_object``
        range_km: Observer-to-object distance; clamped to at least 1 km

    Raises:
        ValueError: if the range is negative or not finite
    """
    if not math.isfinite(range_km) or range_km < 0.0:
        raise ValueError(f"range must be a finite non-negative distance, got {range_km}")

    range_km = max(range_km, MIN_RANGE_KM)
    return BASE_MAGNITUDES[ObjectClass(object_class)] + 5.0 * math.log10(range_km / 1000.0)


def brightness_label(magnitude: float) -> str:
    if magnitude < 0.0:
        return "Very Bright"
    if magnitude < 2.0:
        return "Bright"
    if magnitude < 4.0:
        return "Moderate"
    return "Dim"
