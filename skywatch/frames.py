"""
Frame Transforms

TEME (SGP4 output) -> ECEF (Earth-fixed) -> topocentric look angles for a ground
observer, plus geodetic conversions on the WGS-84 ellipsoid.

The TEME -> ECEF rotation uses Greenwich Mean Sidereal Time (IAU-82) about the
Z axis. Polar motion is ignored and UT1 is taken as UTC; both contribute well
under the accuracy of a TLE.
"""

import math
from datetime import datetime
from typing import Optional, Tuple

import numpy as np

from skywatch.constants import EARTH_ROTATION_RATE, JD_J2000, TWOPI, WGS84_A_KM, WGS84_E2, WGS84_F
from skywatch.models import LookAngles, ObserverLocation, StateVector
from skywatch.timeutils import datetime_to_jd_fr


def gmst(at_time: datetime) -> float:
    """
    Greenwich Mean Sidereal Time in radians, normalised to [0, 2*pi).

    Args:
        at_time: UTC instant (UT1 assumed equal to UTC)
    """
    jd, fr = datetime_to_jd_fr(at_time)
    T = ((jd - JD_J2000) + fr) / 36525.0

    gmst_sec = (
        67310.54841 +
        (876600.0 * 3600.0 + 8640184.812866) * T +
        0.093104 * T * T -
        6.2e-6 * T * T * T
    )
    return (gmst_sec % 86400.0) * (TWOPI / 86400.0)


def teme_to_ecef(position: np.ndarray, velocity: np.ndarray,
                 at_time: datetime) -> Tuple[np.ndarray, np.ndarray]:
    """
    Rotate a TEME state into the Earth-fixed frame.

    Args:
        position: TEME position [x, y, z] (km)
        velocity: TEME velocity [vx, vy, vz] (km/s)
        at_time: Instant of the state

    Returns:
        Tuple of (r_ecef, v_ecef); velocity is relative to the rotating Earth
    """
    theta = gmst(at_time)
    cos_t = math.cos(theta)
    sin_t = math.sin(theta)

    r_ecef = np.array([
        cos_t * position[0] + sin_t * position[1],
        -sin_t * position[0] + cos_t * position[1],
        position[2],
    ])

    v_ecef = np.array([
        cos_t * velocity[0] + sin_t * velocity[1] + EARTH_ROTATION_RATE * r_ecef[1],
        -sin_t * velocity[0] + cos_t * velocity[1] - EARTH_ROTATION_RATE * r_ecef[0],
        velocity[2],
    ])
    return r_ecef, v_ecef


def geodetic_to_ecef(latitude_deg: float, longitude_deg: float, altitude_km: float) -> np.ndarray:
    """Geodetic coordinates on WGS-84 to an ECEF position (km)."""
    lat = math.radians(latitude_deg)
    lon = math.radians(longitude_deg)
    sin_lat = math.sin(lat)
    cos_lat = math.cos(lat)

    N = WGS84_A_KM / math.sqrt(1.0 - WGS84_E2 * sin_lat * sin_lat)
    return np.array([
        (N + altitude_km) * cos_lat * math.cos(lon),
        (N + altitude_km) * cos_lat * math.sin(lon),
        (N * (1.0 - WGS84_E2) + altitude_km) * sin_lat,
    ])


def observer_ecef(observer: ObserverLocation) -> np.ndarray:
    return geodetic_to_ecef(observer.latitude_deg, observer.longitude_deg, observer.altitude_km)


def ecef_to_geodetic(position: np.ndarray) -> Tuple[float, float, float]:
    """
    ECEF to geodetic conversion using Bowring's method.

    Args:
        position: Position vector in ECEF coordinates [x, y, z] (km)

    Returns:
        Tuple of (latitude_deg, longitude_deg, altitude_km)
    """
    a = WGS84_A_KM
    b = a * (1.0 - WGS84_F)
    e2 = WGS84_E2
    ep2 = e2 / (1.0 - e2)

    x, y, z = (float(c) for c in position)
    lon = math.atan2(y, x)
    p = math.hypot(x, y)

    if p < 1e-10:
        lat = math.pi / 2.0 if z >= 0 else -math.pi / 2.0
        return math.degrees(lat), math.degrees(lon), abs(z) - b

    # Parametric (reduced) latitude seed
    beta = math.atan2(z * a, p * b)
    lat = beta
    for _ in range(5):
        sin_b = math.sin(beta)
        cos_b = math.cos(beta)
        lat = math.atan2(z + ep2 * b * sin_b ** 3, p - e2 * a * cos_b ** 3)
        new_beta = math.atan2(b * math.sin(lat), a * math.cos(lat))
        if abs(new_beta - beta) < 1e-12:
            break
        beta = new_beta

    sin_lat = math.sin(lat)
    cos_lat = math.cos(lat)
    N = a / math.sqrt(1.0 - e2 * sin_lat * sin_lat)

    if abs(cos_lat) > 1e-10:
        alt = p / cos_lat - N
    else:
        alt = z / sin_lat - N * (1.0 - e2)

    return math.degrees(lat), math.degrees(lon), alt


def subpoint(state: StateVector) -> Tuple[float, float, float]:
    """Sub-satellite point (latitude_deg, longitude_deg, altitude_km) of a TEME state."""
    r_ecef, _ = teme_to_ecef(state.position, state.velocity, state.time)
    return ecef_to_geodetic(r_ecef)


def _enu_basis(observer: ObserverLocation) -> np.ndarray:
    lat = math.radians(observer.latitude_deg)
    lon = math.radians(observer.longitude_deg)
    sin_lat, cos_lat = math.sin(lat), math.cos(lat)
    sin_lon, cos_lon = math.sin(lon), math.cos(lon)
    return np.array([
        [-sin_lon, cos_lon, 0.0],
        [-sin_lat * cos_lon, -sin_lat * sin_lon, cos_lat],
        [cos_lat * cos_lon, cos_lat * sin_lon, sin_lat],
    ])


def _wrap_azimuth(azimuth_deg: float) -> float:
    azimuth_deg = azimuth_deg % 360.0
    # -tiny % 360.0 rounds up to exactly 360.0
    if azimuth_deg >= 360.0:
        azimuth_deg = 0.0
    return azimuth_deg


def topocentric(target_ecef: np.ndarray, observer: ObserverLocation) -> Tuple[float, float, float]:
    """
    Azimuth, elevation and range of an ECEF point seen from the observer.

    Returns:
        Tuple of (azimuth_deg in [0, 360), elevation_deg in [-90, 90], range_km)

    Raises:
        ValueError: if the target is non-finite or coincides with the observer
    """
    target_ecef = np.asarray(target_ecef, dtype=float)
    if not np.all(np.isfinite(target_ecef)):
        raise ValueError("target position is not finite")

    rho = target_ecef - observer_ecef(observer)
    range_km = float(np.linalg.norm(rho))
    if range_km <= 0.0:
        raise ValueError("target coincides with the observer")

    east, north, up = _enu_basis(observer) @ rho
    azimuth = _wrap_azimuth(math.degrees(math.atan2(east, north)))
    elevation = math.degrees(math.asin(float(np.clip(up / range_km, -1.0, 1.0))))
    return azimuth, elevation, range_km


def to_look_angles(state: StateVector, observer: ObserverLocation,
                   at_time: Optional[datetime] = None) -> LookAngles:
    """
    Look angles from the observer to a propagated object.

    Args:
        state: TEME state from the propagator
        observer: Ground observer
        at_time: Instant used for Earth rotation (defaults to the state's time)

    Returns:
        LookAngles with range rate (positive when receding) and inertial speed
    """
    if not state.is_finite():
        raise ValueError("state vector is not finite")

    at_time = at_time or state.time
    r_ecef, v_ecef = teme_to_ecef(state.position, state.velocity, at_time)
    azimuth, elevation, range_km = topocentric(r_ecef, observer)

    rho = r_ecef - observer_ecef(observer)
    range_rate = float(np.dot(rho, v_ecef)) / range_km

    return LookAngles(
        azimuth_deg=azimuth,
        elevation_deg=elevation,
        range_km=range_km,
        range_rate_km_s=range_rate,
        speed_km_s=state.speed,
    )


COMPASS_POINTS = (
    "N", "NNE", "NE", "ENE", "E", "ESE", "SE", "SSE",
    "S", "SSW", "SW", "WSW", "W", "WNW", "NW", "NNW",
)


def compass_point(azimuth_deg: float) -> str:
    """16-point compass direction for an azimuth in degrees."""
    return COMPASS_POINTS[int(round((azimuth_deg % 360.0) / 22.5)) % 16]
