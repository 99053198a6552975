"""
Value types passed between the propagation pipeline and its collaborators.

StateVector and LookAngles are lightweight dataclasses recomputed every cycle.
ObserverLocation, Pass and TrackedSatellite are pydantic models so they validate on
construction and serialise straight to JSON for the HTTP service.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional

import numpy as np
from pydantic import BaseModel, ConfigDict, Field, computed_field, model_validator


class ObserverLocation(BaseModel):
    """Observer geodetic coordinates (WGS-84)."""

    model_config = ConfigDict(frozen=True, allow_inf_nan=False)

    latitude_deg: float = Field(ge=-90.0, le=90.0)
    longitude_deg: float = Field(ge=-180.0, le=180.0)
    altitude_m: float = 0.0

    @property
    def altitude_km(self) -> float:
        return self.altitude_m / 1000.0

    def local_time(self, at_time: datetime) -> datetime:
        """
        Local mean solar time at the observer's longitude.

        The offset is longitude / 15 hours, so the clock hour tracks the Sun rather
        than any civil time zone.
        """
        offset = timedelta(minutes=round(self.longitude_deg * 4.0))
        if at_time.tzinfo is None:
            at_time = at_time.replace(tzinfo=timezone.utc)
        return at_time.astimezone(timezone(offset))


@dataclass
class StateVector:
    """TEME position (km) and velocity (km/s) at a specific instant."""

    time: datetime
    position: np.ndarray
    velocity: np.ndarray

    @property
    def speed(self) -> float:
        return float(np.linalg.norm(self.velocity))

    def is_finite(self) -> bool:
        return bool(np.all(np.isfinite(self.position)) and np.all(np.isfinite(self.velocity)))


@dataclass(frozen=True)
class LookAngles:
    """Observer-relative direction and distance to an object."""

    azimuth_deg: float
    elevation_deg: float
    range_km: float
    range_rate_km_s: float
    speed_km_s: float


class Pass(BaseModel):
    """Predicted rise-to-set window for one object over one observer."""

    model_config = ConfigDict(frozen=True)

    start: datetime
    end: datetime
    culmination: datetime
    max_elevation_deg: float
    truncated: bool = False

    @computed_field
    @property
    def duration_minutes(self) -> float:
        return (self.end - self.start).total_seconds() / 60.0

    @model_validator(mode="after")
    def _check_window(self) -> "Pass":
        if self.end <= self.start:
            raise ValueError("pass must end after it starts")
        return self


class TrackedSatellite(BaseModel):
    """One object's snapshot entry for one refresh cycle."""

    model_config = ConfigDict(frozen=True)

    catalog_id: int
    name: str
    azimuth_deg: float
    elevation_deg: float
    range_km: float
    speed_km_s: float
    magnitude: float
    is_visible: bool
    next_pass: Optional[Pass] = None
    latitude_deg: Optional[float] = None
    longitude_deg: Optional[float] = None
    altitude_km: Optional[float] = None

    @model_validator(mode="after")
    def _visible_or_upcoming(self) -> "TrackedSatellite":
        # A visible object has no "next" pass; the two are mutually exclusive.
        if self.is_visible and self.next_pass is not None:
            raise ValueError("a visible satellite cannot carry a next pass")
        return self
