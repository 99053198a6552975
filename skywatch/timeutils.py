"""Time conversion helpers shared by the propagator and frame transforms."""

from datetime import datetime, timedelta, timezone
from typing import Tuple

from sgp4.api import jday


def ensure_utc(dt: datetime) -> datetime:
    """Return ``dt`` as an aware UTC datetime. Naive datetimes are taken as UTC."""
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def datetime_to_jd_fr(dt: datetime) -> Tuple[float, float]:
    """
    Convert datetime to Julian date and fraction.

    Args:
        dt: Datetime object (naive values are treated as UTC)

    Returns:
        Tuple of (julian_day, fraction) as expected by ``Satrec.sgp4``
    """
    dt = ensure_utc(dt)
    seconds = dt.second + dt.microsecond / 1e6
    return jday(dt.year, dt.month, dt.day, dt.hour, dt.minute, seconds)


def epoch_to_datetime(epoch_year: int, epoch_days: float) -> datetime:
    """
    Convert TLE epoch to datetime.

    Args:
        epoch_year: Two-digit year (57-99 -> 19xx, 00-56 -> 20xx)
        epoch_days: Day of year with fractional part (1.0 = Jan 1 00:00)

    Returns:
        Datetime object in UTC
    """
    year = 1900 + epoch_year if epoch_year >= 57 else 2000 + epoch_year
    return datetime(year, 1, 1, tzinfo=timezone.utc) + timedelta(days=epoch_days - 1.0)
