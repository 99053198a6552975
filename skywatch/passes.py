"""
Pass Prediction

Finds the next rise-to-set window of an object over an observer by sampling
elevation at a fixed step, then refining the horizon crossings by bisection and
the culmination by golden-section search.

An elevation of exactly 0 deg counts as not risen. A pass already in progress at
the search start is skipped, so ``next_pass`` always reports a future rise.
"""

import logging
import math
from datetime import datetime, timedelta
from typing import Callable, List, Optional, Tuple

from skywatch.elements import ElementSet
from skywatch.exceptions import PredictionHorizonExceeded
from skywatch.frames import to_look_angles
from skywatch.models import ObserverLocation, Pass
from skywatch.propagator import propagate
from skywatch.timeutils import ensure_utc

logger = logging.getLogger(__name__)

DEFAULT_STEP = timedelta(seconds=60)
DEFAULT_HORIZON = timedelta(hours=24)
DEFAULT_TOLERANCE = timedelta(seconds=1)

_INV_PHI = (math.sqrt(5.0) - 1.0) / 2.0


class PassPredictor:
    """
    Fixed-step pass search.

    Args:
        step: Sampling interval. Passes shorter than one step can be missed.
        horizon: How far ahead ``next_pass`` searches for a rise
        refine: Bisect rise/set and golden-section the culmination
        tolerance: Time resolution of the refinements
        max_pass_duration: Passes still up after this long are returned with
            ``truncated=True`` (defaults to ``horizon``)
        min_elevation_deg: Elevation that counts as risen (strictly above)
    """

    def __init__(self, step: timedelta = DEFAULT_STEP, horizon: timedelta = DEFAULT_HORIZON,
                 refine: bool = True, tolerance: timedelta = DEFAULT_TOLERANCE,
                 max_pass_duration: Optional[timedelta] = None,
                 min_elevation_deg: float = 0.0):
        if step <= timedelta(0):
            raise ValueError("step must be positive")
        if horizon <= timedelta(0):
            raise ValueError("horizon must be positive")
        if tolerance <= timedelta(0):
            raise ValueError("tolerance must be positive")

        self.step = step
        self.horizon = horizon
        self.refine = refine
        self.tolerance = tolerance
        self.max_pass_duration = max_pass_duration or horizon
        self.min_elevation_deg = min_elevation_deg

    def next_pass(self, element_set: ElementSet, observer: ObserverLocation,
                  from_time: datetime) -> Optional[Pass]:
        """
        Next pass starting after ``from_time``.

        Returns:
            Pass, or None when no rise occurs within the horizon

        Raises:
            PropagationError: if the object cannot be propagated over the search
        """
        from_time = ensure_utc(from_time)
        try:
            return self._find_pass(element_set, observer, from_time, from_time + self.horizon)
        except PredictionHorizonExceeded as e:
            logger.debug(str(e))
            return None

    def passes_between(self, element_set: ElementSet, observer: ObserverLocation,
                       start: datetime, end: datetime) -> List[Pass]:
        """All passes rising within [start, end], in time order."""
        start = ensure_utc(start)
        end = ensure_utc(end)

        passes: List[Pass] = []
        cursor = start
        while cursor < end:
            try:
                found = self._find_pass(element_set, observer, cursor, end)
            except PredictionHorizonExceeded:
                break
            passes.append(found)
            cursor = found.end
        return passes

    def _elevation_fn(self, element_set: ElementSet,
                      observer: ObserverLocation) -> Callable[[datetime], float]:
        def elevation(at_time: datetime) -> float:
            state = propagate(element_set, at_time)
            return to_look_angles(state, observer, at_time).elevation_deg
        return elevation

    def _is_up(self, elevation_deg: float) -> bool:
        return elevation_deg > self.min_elevation_deg

    def _find_pass(self, element_set: ElementSet, observer: ObserverLocation,
                   from_time: datetime, until: datetime) -> Pass:
        elevation = self._elevation_fn(element_set, observer)
        no_rise = PredictionHorizonExceeded(
            f"No rise for {element_set.catalog_id} between "
            f"{from_time.isoformat()} and {until.isoformat()}",
            catalog_id=element_set.catalog_id,
        )

        # Skip any pass already in progress
        prev = from_time
        while self._is_up(elevation(prev)):
            if prev >= until:
                raise no_rise
            prev = min(prev + self.step, until)

        # Sample forward to the first risen instant
        while True:
            if prev >= until:
                raise no_rise
            t = min(prev + self.step, until)
            el = elevation(t)
            if self._is_up(el):
                break
            prev = t

        start = self._crossing(elevation, prev, t) if self.refine else t
        best_time, best_el = t, el

        # Track the pass to its set
        limit = start + self.max_pass_duration
        truncated = False
        prev = t
        while True:
            if prev >= limit:
                end = limit
                truncated = True
                break
            t = min(prev + self.step, limit)
            el = elevation(t)
            if not self._is_up(el):
                end = self._crossing(elevation, prev, t) if self.refine else t
                break
            if el > best_el:
                best_time, best_el = t, el
            prev = t

        if self.refine:
            lo = max(best_time - self.step, start)
            hi = min(best_time + self.step, end)
            peak_time, peak_el = self._culmination(elevation, lo, hi)
            if peak_el > best_el:
                best_time, best_el = peak_time, peak_el

        if truncated:
            logger.debug(f"Pass of {element_set.catalog_id} truncated at {end.isoformat()}")

        return Pass(
            start=start,
            end=end,
            culmination=best_time,
            max_elevation_deg=best_el,
            truncated=truncated,
        )

    def _crossing(self, elevation: Callable[[datetime], float],
                  lo: datetime, hi: datetime) -> datetime:
        """
        Bisect a horizon crossing between ``lo`` and ``hi``.

        Returns the earliest instant found on the ``hi`` side of the crossing.
        """
        hi_up = self._is_up(elevation(hi))
        while hi - lo > self.tolerance:
            mid = lo + (hi - lo) / 2
            if self._is_up(elevation(mid)) == hi_up:
                hi = mid
            else:
                lo = mid
        return hi

    def _culmination(self, elevation: Callable[[datetime], float],
                     lo: datetime, hi: datetime) -> Tuple[datetime, float]:
        """Golden-section search for the maximum elevation in [lo, hi]."""
        a = lo
        b = hi
        c = b - (b - a) * _INV_PHI
        d = a + (b - a) * _INV_PHI
        fc = elevation(c)
        fd = elevation(d)
        while b - a > self.tolerance:
            if fc > fd:
                b, d, fd = d, c, fc
                c = b - (b - a) * _INV_PHI
                fc = elevation(c)
            else:
                a, c, fc = c, d, fd
                d = a + (b - a) * _INV_PHI
                fd = elevation(d)
        return (c, fc) if fc > fd else (d, fd)
