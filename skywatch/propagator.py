"""
SGP4/SDP4 Propagation

Thin, pure wrapper over the sgp4 library. The library selects the near-Earth
(SGP4) or deep-space (SDP4) branch from the orbital period; this module maps its
numeric error codes onto the skywatch exception hierarchy and returns TEME state
vectors.

Note: Accuracy degrades with distance from the element epoch (roughly 1-3 km/day
for LEO). Propagation far from epoch is allowed; callers decide what is stale.
"""

import logging
from datetime import datetime
from functools import lru_cache

import numpy as np
from sgp4.api import Satrec

from skywatch.elements import DEFAULT_MAX_AGE, ElementSet
from skywatch.exceptions import DecayedError, InvalidOrbitError
from skywatch.models import StateVector
from skywatch.timeutils import datetime_to_jd_fr, ensure_utc

logger = logging.getLogger(__name__)


# SGP4 error code meanings
SGP4_ERROR_CODES = {
    0: "No error",
    1: "Mean eccentricity < 0.0 or > 1.0",
    2: "Mean motion < 0.0",
    3: "Perturbed eccentricity < 0.0 or > 1.0",
    4: "Semi-latus rectum < 0.0",
    5: "Epoch elements are sub-orbital",
    6: "Satellite has decayed",
}

DECAY_CODES = frozenset({4, 5, 6})


@lru_cache(maxsize=4096)
def _satrec_for(element_set: ElementSet) -> Satrec:
    return element_set.to_satrec()


def propagate(element_set: ElementSet, at_time: datetime) -> StateVector:
    """
    Propagate an element set to the given instant.

    Args:
        element_set: Validated mean elements
        at_time: Target time (naive values are treated as UTC)

    Returns:
        StateVector with TEME position (km) and velocity (km/s)

    Raises:
        DecayedError: SGP4 codes 4-6 (object has re-entered or is sub-orbital)
        InvalidOrbitError: SGP4 codes 1-3 or a non-finite result
    """
    at_time = ensure_utc(at_time)
    satrec = _satrec_for(element_set)

    age = element_set.age(at_time)
    if abs(age) > DEFAULT_MAX_AGE:
        logger.debug(
            f"Propagating {element_set.catalog_id} {age.total_seconds() / 86400.0:.1f} days "
            f"from epoch; accuracy is degraded"
        )

    jd, fr = datetime_to_jd_fr(at_time)
    error, position, velocity = satrec.sgp4(jd, fr)

    if error != 0:
        message = SGP4_ERROR_CODES.get(error, f"Unknown error code {error}")
        logger.debug(f"SGP4 error {error} for satellite {element_set.catalog_id}: {message}")
        exc_class = DecayedError if error in DECAY_CODES else InvalidOrbitError
        raise exc_class(
            f"SGP4 error {error} for {element_set.catalog_id}: {message}",
            catalog_id=element_set.catalog_id,
            code=error,
        )

    state = StateVector(
        time=at_time,
        position=np.array(position, dtype=float),
        velocity=np.array(velocity, dtype=float),
    )
    if not state.is_finite():
        raise InvalidOrbitError(
            f"Non-finite state for {element_set.catalog_id}",
            catalog_id=element_set.catalog_id,
        )
    return state
