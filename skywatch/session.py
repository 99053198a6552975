"""
Tracking Session

Owns the observer, the data source and the refresh timer. Each refresh computes a
complete snapshot from scratch and publishes it by replacing a single tuple, so
readers never see a half-updated list.

State machine::

    IDLE --start--> REFRESHING --> READY --timer/refresh--> REFRESHING --> ...
    any --stop--> STOPPED
"""

import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Callable, Dict, Iterable, List, Optional, Tuple

from skywatch.elements import ElementSet
from skywatch.exceptions import SessionStateError, SkywatchError
from skywatch.models import ObserverLocation, TrackedSatellite
from skywatch.sources import SatelliteDataSource
from skywatch.timeutils import ensure_utc

logger = logging.getLogger(__name__)

DEFAULT_REFRESH_INTERVAL = timedelta(seconds=30)

Snapshot = Tuple[TrackedSatellite, ...]
Listener = Callable[[Snapshot], None]


class SessionState(str, Enum):
    IDLE = "idle"
    REFRESHING = "refreshing"
    READY = "ready"
    STOPPED = "stopped"


def compute_snapshot(source: SatelliteDataSource, observer: ObserverLocation,
                     at_time: datetime,
                     executor: Optional[ThreadPoolExecutor] = None) -> Tuple[Snapshot, Dict[int, str]]:
    """
    Track every catalog entry of ``source`` at ``at_time``.

    Any error for one object drops that object from the snapshot and is recorded
    in the returned failure map; the rest of the catalog is unaffected. A
    SkywatchError is logged as a warning, anything else with its traceback.
    With an executor, entries are computed in parallel and merged in catalog
    order once all have completed.

    Returns:
        Tuple of (snapshot, failures by catalog id)
    """
    at_time = ensure_utc(at_time)

    def _track(catalog_id: int):
        try:
            return catalog_id, source.track(catalog_id, observer, at_time), None
        except SkywatchError as e:
            logger.warning(f"Skipping {catalog_id} for this cycle: {e}")
            return catalog_id, None, str(e)
        except Exception as e:
            logger.exception(f"Unexpected error tracking {catalog_id}; skipping for this cycle")
            return catalog_id, None, f"{type(e).__name__}: {e}"

    catalog_ids = source.entries()
    if executor is not None:
        results = list(executor.map(_track, catalog_ids))
    else:
        results = [_track(catalog_id) for catalog_id in catalog_ids]

    snapshot = tuple(entry for _, entry, _ in results if entry is not None)
    failures = {catalog_id: error for catalog_id, _, error in results if error is not None}
    return snapshot, failures


class TrackingSession:
    """
    Periodic tracking of one catalog for one observer.

    Args:
        source: Data source producing snapshot entries
        refresh_interval: Time between scheduled refreshes
        clock: Callable returning the current time (defaults to UTC now)
        max_workers: Worker threads per refresh (1 computes serially)
    """

    def __init__(self, source: SatelliteDataSource,
                 refresh_interval: timedelta = DEFAULT_REFRESH_INTERVAL,
                 clock: Optional[Callable[[], datetime]] = None,
                 max_workers: int = 1):
        if refresh_interval <= timedelta(0):
            raise ValueError("refresh_interval must be positive")
        if max_workers < 1:
            raise ValueError("max_workers must be at least 1")

        self.source = source
        self.refresh_interval = refresh_interval
        self.clock = clock or (lambda: datetime.now(timezone.utc))
        self.max_workers = max_workers

        self.state = SessionState.IDLE
        self.observer: Optional[ObserverLocation] = None
        self.snapshot: Snapshot = ()
        self.failures: Dict[int, str] = {}
        self.last_refresh: Optional[datetime] = None

        self._lock = threading.RLock()
        self._timer: Optional[threading.Timer] = None
        self._listeners: List[Listener] = []
        self._executor = ThreadPoolExecutor(max_workers=max_workers) if max_workers > 1 else None

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.stop()

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register a callback for each published snapshot; returns an unsubscribe function."""
        with self._lock:
            self._listeners.append(listener)

        def unsubscribe():
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)
        return unsubscribe

    def start(self, observer: ObserverLocation,
              catalog: Optional[Iterable[ElementSet]] = None) -> Snapshot:
        """
        Load the catalog (if given), publish a first snapshot and start the timer.

        Raises:
            SessionStateError: if the session was already started or stopped
        """
        with self._lock:
            if self.state is not SessionState.IDLE:
                raise SessionStateError(f"Cannot start a session in state {self.state.value}")

            self.observer = observer
            if catalog is not None:
                self.source.load_catalog(catalog)

            snapshot = self._refresh_locked()
            self._schedule()
            logger.info(
                f"Tracking session started ({self.source.name} source, "
                f"refresh every {self.refresh_interval.total_seconds():.0f}s)"
            )
            return snapshot

    def refresh(self) -> Snapshot:
        """Recompute and publish the snapshot now."""
        with self._lock:
            if self.state is SessionState.STOPPED:
                raise SessionStateError("Cannot refresh a stopped session")
            if self.observer is None:
                raise SessionStateError("Cannot refresh before an observer is set")
            return self._refresh_locked()

    def set_observer(self, observer: ObserverLocation) -> None:
        """Move the observer; a running session refreshes immediately and reschedules."""
        with self._lock:
            if self.state is SessionState.STOPPED:
                raise SessionStateError("Cannot move the observer of a stopped session")

            self.observer = observer
            if self.state is SessionState.IDLE:
                return

            self._cancel_timer()
            self._refresh_locked()
            self._schedule()

    def stop(self) -> None:
        """Cancel the pending refresh. Safe to call more than once."""
        with self._lock:
            if self.state is SessionState.STOPPED:
                return
            self._cancel_timer()
            self.state = SessionState.STOPPED
            if self._executor is not None:
                self._executor.shutdown(wait=False)
            logger.info("Tracking session stopped")

    @property
    def is_running(self) -> bool:
        return self.state in (SessionState.REFRESHING, SessionState.READY)

    def _refresh_locked(self) -> Snapshot:
        previous_state = self.state
        self.state = SessionState.REFRESHING
        at_time = ensure_utc(self.clock())

        try:
            snapshot, failures = compute_snapshot(self.source, self.observer, at_time, self._executor)
        except Exception:
            self.state = previous_state
            raise

        self.snapshot = snapshot
        self.failures = failures
        self.last_refresh = at_time
        self.state = SessionState.READY
        logger.info(
            f"Snapshot at {at_time.isoformat()}: {len(snapshot)} objects, "
            f"{sum(1 for s in snapshot if s.is_visible)} visible, {len(failures)} failed"
        )

        for listener in list(self._listeners):
            try:
                listener(snapshot)
            except Exception:
                logger.exception("Snapshot listener raised")
        return snapshot

    def _schedule(self) -> None:
        self._cancel_timer()
        timer = threading.Timer(self.refresh_interval.total_seconds(), self._on_timer)
        timer.daemon = True
        self._timer = timer
        timer.start()

    def _cancel_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def _on_timer(self) -> None:
        with self._lock:
            # A cancelled or superseded timer may still fire once
            if self.state is SessionState.STOPPED or threading.current_thread() is not self._timer:
                return
            try:
                self._refresh_locked()
            except Exception:
                logger.exception("Scheduled refresh failed")
            self._schedule()
