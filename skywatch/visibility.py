"""
Visibility Classification

Decides whether an object counts as visible to the observer. The baseline rule is
purely geometric (above the horizon). Stricter policies add a clock-hour dark
window or a Sun-below-twilight plus object-in-sunlight test.

Sun positions use the low-precision almanac formulae (about 0.01 deg), which is
ample for a twilight and shadow decision.
"""

import logging
import math
from datetime import datetime
from enum import Enum
from typing import Optional

import numpy as np

from skywatch.constants import AU_KM, EARTH_RADIUS_KM, JD_J2000
from skywatch.frames import teme_to_ecef, topocentric
from skywatch.models import LookAngles, ObserverLocation
from skywatch.timeutils import datetime_to_jd_fr, ensure_utc

logger = logging.getLogger(__name__)

# Sun depression angles below the horizon (degrees)
TWILIGHT_DEGS = {"civil": 6.0, "nautical": 12.0, "astronomical": 18.0}

DARK_START_HOUR = 21
DARK_END_HOUR = 6


class VisibilityPolicy(str, Enum):
    GEOMETRIC = "geometric"
    DARK_SKY = "dark_sky"
    NAKED_EYE = "naked_eye"


def is_visible(look_angles: LookAngles, observer_local_time: Optional[datetime] = None) -> bool:
    """
    Baseline visibility: the object is strictly above the horizon.

    ``observer_local_time`` is accepted for interface symmetry with the stricter
    policies and does not affect the result.
    """
    return look_angles.elevation_deg > 0.0


def sun_position_teme(at_time: datetime) -> np.ndarray:
    """
    Geocentric Sun position (km) in the true equator frame of date.

    Args:
        at_time: UTC instant

    Returns:
        Position vector [x, y, z] in km
    """
    jd, fr = datetime_to_jd_fr(at_time)
    n = (jd - JD_J2000) + fr

    mean_longitude = math.radians((280.460 + 0.9856474 * n) % 360.0)
    mean_anomaly = math.radians((357.528 + 0.9856003 * n) % 360.0)

    # Equation of center
    ecliptic_longitude = (
        mean_longitude
        + math.radians(1.915) * math.sin(mean_anomaly)
        + math.radians(0.020) * math.sin(2.0 * mean_anomaly)
    )
    obliquity = math.radians(23.439 - 4.0e-7 * n)
    distance_au = 1.00014 - 0.01671 * math.cos(mean_anomaly) - 0.00014 * math.cos(2.0 * mean_anomaly)

    distance_km = distance_au * AU_KM
    return np.array([
        distance_km * math.cos(ecliptic_longitude),
        distance_km * math.cos(obliquity) * math.sin(ecliptic_longitude),
        distance_km * math.sin(obliquity) * math.sin(ecliptic_longitude),
    ])


def sun_elevation_deg(observer: ObserverLocation, at_time: datetime) -> float:
    """Elevation of the Sun's centre above the observer's horizon (degrees)."""
    sun_ecef, _ = teme_to_ecef(sun_position_teme(at_time), np.zeros(3), at_time)
    _, elevation, _ = topocentric(sun_ecef, observer)
    return elevation


def is_sunlit(position_teme: np.ndarray, at_time: datetime) -> bool:
    """
    True when the object is outside Earth's shadow.

    Uses a cylindrical shadow of Earth's equatorial radius aligned with the Sun
    direction; penumbra is treated as sunlit.
    """
    sun_dir = sun_position_teme(at_time)
    sun_dir = sun_dir / np.linalg.norm(sun_dir)
    position_teme = np.asarray(position_teme, dtype=float)

    projection = float(np.dot(position_teme, sun_dir))
    if projection >= 0.0:
        return True

    perpendicular = position_teme - projection * sun_dir
    return float(np.linalg.norm(perpendicular)) > EARTH_RADIUS_KM


class VisibilityClassifier:
    """
    Visibility predicate with a configurable policy.

    Policies:
        GEOMETRIC: elevation above ``min_elevation_deg``
        DARK_SKY: geometric, and the observer's local clock hour is in the dark
            window (``dark_start_hour`` to ``dark_end_hour``, wrapping midnight)
        NAKED_EYE: geometric, the Sun below ``-twilight_deg`` at the observer,
            and the object sunlit when its TEME position is supplied

    An elevation exactly at the threshold is not visible.
    """

    def __init__(self, policy: VisibilityPolicy = VisibilityPolicy.GEOMETRIC,
                 min_elevation_deg: float = 0.0,
                 dark_start_hour: int = DARK_START_HOUR,
                 dark_end_hour: int = DARK_END_HOUR,
                 twilight_deg: float = TWILIGHT_DEGS["nautical"]):
        for hour in (dark_start_hour, dark_end_hour):
            if not 0 <= hour <= 23:
                raise ValueError(f"dark window hours must be in 0-23, got {hour}")
        if twilight_deg < 0.0:
            raise ValueError(f"twilight depression must be positive, got {twilight_deg}")

        self.policy = VisibilityPolicy(policy)
        self.min_elevation_deg = min_elevation_deg
        self.dark_start_hour = dark_start_hour
        self.dark_end_hour = dark_end_hour
        self.twilight_deg = twilight_deg

    def is_dark_hour(self, local_time: datetime) -> bool:
        hour = local_time.hour
        if self.dark_start_hour > self.dark_end_hour:
            return hour >= self.dark_start_hour or hour < self.dark_end_hour
        return self.dark_start_hour <= hour < self.dark_end_hour

    def is_visible(self, look_angles: LookAngles,
                   observer_local_time: Optional[datetime] = None,
                   observer: Optional[ObserverLocation] = None,
                   position_teme: Optional[np.ndarray] = None) -> bool:
        """
        Apply the configured policy.

        Args:
            look_angles: Current look angles to the object
            observer_local_time: Observer's local time (required by DARK_SKY and
                NAKED_EYE; must be timezone-aware for NAKED_EYE)
            observer: Observer location (required by NAKED_EYE)
            position_teme: Object TEME position for the shadow test (optional)

        Raises:
            ValueError: if the policy needs an input that was not supplied
        """
        if look_angles.elevation_deg <= self.min_elevation_deg:
            return False

        if self.policy is VisibilityPolicy.GEOMETRIC:
            return True

        if observer_local_time is None:
            raise ValueError(f"{self.policy.value} visibility needs the observer's local time")

        if self.policy is VisibilityPolicy.DARK_SKY:
            return self.is_dark_hour(observer_local_time)

        if observer is None:
            raise ValueError("naked_eye visibility needs the observer location")
        if observer_local_time.tzinfo is None:
            raise ValueError("naked_eye visibility needs a timezone-aware local time")

        at_time = ensure_utc(observer_local_time)
        if sun_elevation_deg(observer, at_time) > -self.twilight_deg:
            return False
        if position_teme is not None and not is_sunlit(position_teme, at_time):
            return False
        return True
