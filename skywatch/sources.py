"""
Satellite Data Sources

One interface, three interchangeable implementations selected by configuration:

- LocalPropagationSource: full on-device pipeline (propagate -> look angles ->
  visibility -> brightness -> next pass) over an ElementSetStore
- SimulatedSource: deterministic synthetic data for demos and UI work
- RemoteServiceSource: positions and passes from the N2YO REST API

Every ``track`` call either returns a TrackedSatellite or raises a SkywatchError
subclass; the tracking session isolates those per object.
"""

import logging
import math
from abc import ABC, abstractmethod
from datetime import datetime, timedelta, timezone
from typing import Dict, Iterable, List, Optional, Tuple

import numpy as np
import requests

from skywatch.brightness import BASE_MAGNITUDES, classify_object, estimate_magnitude
from skywatch.constants import EARTH_RADIUS_KM, GRAVITATIONAL_PARAMETER
from skywatch.elements import ElementSet, ElementSetStore
from skywatch.exceptions import DataSourceError, InvalidOrbitError
from skywatch.frames import geodetic_to_ecef, observer_ecef, subpoint, to_look_angles
from skywatch.models import LookAngles, ObserverLocation, Pass, TrackedSatellite
from skywatch.passes import PassPredictor
from skywatch.propagator import propagate
from skywatch.timeutils import ensure_utc
from skywatch.visibility import VisibilityClassifier, VisibilityPolicy

logger = logging.getLogger(__name__)

N2YO_API_BASE = "https://api.n2yo.com/rest/v1/satellite"

# Demonstration catalog: (catalog id, name, typical magnitude)
DEMO_CATALOG: Tuple[Tuple[int, str, float], ...] = (
    (25544, "ISS (ZARYA)", -2.5),
    (40128, "STARLINK-1007", 4.2),
    (43013, "STARLINK-1130", 3.8),
    (25400, "COSMOS 2251 DEB", 5.1),
    (28654, "SPOT 5", 4.5),
    (39166, "GAOFEN 7", 4.8),
    (37849, "TIANHE", 3.2),
    (43596, "STARLINK-1662", 4.1),
)


class SatelliteDataSource(ABC):
    """Common interface for everything that can produce tracked-object entries."""

    name = "abstract"

    @abstractmethod
    def load_catalog(self, element_sets: Iterable[ElementSet]) -> None:
        """Replace the set of objects this source reports on."""

    @abstractmethod
    def entries(self) -> List[int]:
        """Catalog ids to track, in reporting order."""

    @abstractmethod
    def track(self, catalog_id: int, observer: ObserverLocation,
              at_time: datetime) -> TrackedSatellite:
        """Snapshot entry for one object."""

    @abstractmethod
    def passes(self, catalog_id: int, observer: ObserverLocation,
               start: datetime, end: datetime) -> List[Pass]:
        """Passes of one object rising within [start, end]."""


class LocalPropagationSource(SatelliteDataSource):
    """Runs the full propagation pipeline locally."""

    name = "local"

    def __init__(self, store: Optional[ElementSetStore] = None,
                 predictor: Optional[PassPredictor] = None,
                 classifier: Optional[VisibilityClassifier] = None):
        self.store = store if store is not None else ElementSetStore()
        self.predictor = predictor or PassPredictor()
        self.classifier = classifier or VisibilityClassifier()

    def load_catalog(self, element_sets: Iterable[ElementSet]) -> None:
        self.store.replace_all(element_sets)

    def entries(self) -> List[int]:
        return [es.catalog_id for es in self.store]

    def _element_set(self, catalog_id: int) -> ElementSet:
        element_set = self.store.get(catalog_id)
        if element_set is None:
            raise DataSourceError(f"No element set for {catalog_id}", catalog_id)
        return element_set

    def track(self, catalog_id: int, observer: ObserverLocation,
              at_time: datetime) -> TrackedSatellite:
        at_time = ensure_utc(at_time)
        element_set = self._element_set(catalog_id)

        state = propagate(element_set, at_time)
        try:
            look = to_look_angles(state, observer, at_time)
        except ValueError as exc:
            raise InvalidOrbitError(str(exc), catalog_id=catalog_id) from exc
        latitude, longitude, altitude = subpoint(state)

        visible = self.classifier.is_visible(
            look, observer.local_time(at_time), observer, state.position
        )
        next_pass = None if visible else self.predictor.next_pass(element_set, observer, at_time)

        return TrackedSatellite(
            catalog_id=catalog_id,
            name=element_set.name,
            azimuth_deg=look.azimuth_deg,
            elevation_deg=look.elevation_deg,
            range_km=look.range_km,
            speed_km_s=look.speed_km_s,
            magnitude=estimate_magnitude(classify_object(element_set.name), look.range_km),
            is_visible=visible,
            next_pass=next_pass,
            latitude_deg=latitude,
            longitude_deg=longitude,
            altitude_km=altitude,
        )

    def passes(self, catalog_id: int, observer: ObserverLocation,
               start: datetime, end: datetime) -> List[Pass]:
        return self.predictor.passes_between(self._element_set(catalog_id), observer, start, end)


class SimulatedSource(SatelliteDataSource):
    """
    Synthetic, deterministic tracking data.

    Positions follow a smooth function of time; the random parts (visibility,
    range, speed, magnitude jitter, next pass) come from a generator seeded with
    (seed, catalog id, whole seconds), so the same inputs give the same output.
    Objects are only ever visible during the local night (21:00-06:00).
    """

    name = "simulated"

    def __init__(self, seed: int = 0):
        self.seed = seed
        self._catalog: Dict[int, Tuple[str, float]] = {
            cid: (name, magnitude) for cid, name, magnitude in DEMO_CATALOG
        }

    def load_catalog(self, element_sets: Iterable[ElementSet]) -> None:
        self._catalog = {
            es.catalog_id: (es.name, BASE_MAGNITUDES[classify_object(es.name)])
            for es in element_sets
        }

    def entries(self) -> List[int]:
        return list(self._catalog)

    def _rng(self, catalog_id: int, at_time: datetime) -> np.random.Generator:
        return np.random.default_rng([self.seed, catalog_id, int(at_time.timestamp())])

    def track(self, catalog_id: int, observer: ObserverLocation,
              at_time: datetime) -> TrackedSatellite:
        at_time = ensure_utc(at_time)
        if catalog_id not in self._catalog:
            raise DataSourceError(f"Unknown catalog id {catalog_id}", catalog_id)
        name, base_magnitude = self._catalog[catalog_id]
        index = self.entries().index(catalog_id)
        rng = self._rng(catalog_id, at_time)

        time_offset = (at_time.timestamp() + index * 1000.0) / 5000.0
        azimuth = (time_offset * 50.0 + index * 45.0) % 360.0
        elevation = math.sin(time_offset + index) * 60.0 + 30.0

        hour = observer.local_time(at_time).hour
        night = hour < 6 or hour > 20
        visible = bool(night and elevation > 10.0 and rng.random() > 0.6)

        magnitude = base_magnitude + (rng.random() - 0.5)
        range_km = 400.0 + rng.random() * 800.0
        speed = 7.5 + rng.random() * 0.5

        next_pass = None
        if not visible:
            start = at_time + timedelta(hours=1.0 + rng.random() * 5.0)
            duration = timedelta(minutes=math.floor(2 + rng.random() * 6))
            next_pass = Pass(
                start=start,
                end=start + duration,
                culmination=start + duration / 2,
                max_elevation_deg=float(math.floor(20 + rng.random() * 70)),
            )

        return TrackedSatellite(
            catalog_id=catalog_id,
            name=name,
            azimuth_deg=azimuth,
            elevation_deg=max(10.0, elevation) if visible else -10.0,
            range_km=range_km,
            speed_km_s=speed,
            magnitude=magnitude,
            is_visible=visible,
            next_pass=next_pass,
        )

    def passes(self, catalog_id: int, observer: ObserverLocation,
               start: datetime, end: datetime) -> List[Pass]:
        start = ensure_utc(start)
        end = ensure_utc(end)
        if catalog_id not in self._catalog:
            raise DataSourceError(f"Unknown catalog id {catalog_id}", catalog_id)

        rng = self._rng(catalog_id, start)
        passes = []
        rise = start + timedelta(minutes=rng.random() * 90.0)
        while rise <= end:
            duration = timedelta(minutes=math.floor(2 + rng.random() * 6))
            passes.append(Pass(
                start=rise,
                end=rise + duration,
                culmination=rise + duration / 2,
                max_elevation_deg=float(math.floor(20 + rng.random() * 70)),
            ))
            rise += timedelta(minutes=90.0 + rng.random() * 10.0)
        return passes


class RemoteServiceSource(SatelliteDataSource):
    """
    Tracking data from the N2YO REST API.

    Slant range is derived from the reported sub-satellite point and speed is the
    circular orbital speed at the reported altitude; N2YO reports neither.
    """

    name = "remote"

    def __init__(self, api_key: str, base_url: str = N2YO_API_BASE, timeout: float = 10.0,
                 session: Optional[requests.Session] = None,
                 classifier: Optional[VisibilityClassifier] = None,
                 pass_days: int = 1, min_pass_elevation_deg: int = 10):
        if not api_key:
            raise ValueError("N2YO API key is required for the remote data source")

        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()
        self.classifier = classifier or VisibilityClassifier()
        self.pass_days = pass_days
        self.min_pass_elevation_deg = min_pass_elevation_deg
        self._names: Dict[int, str] = {cid: name for cid, name, _ in DEMO_CATALOG}

    def load_catalog(self, element_sets: Iterable[ElementSet]) -> None:
        self._names = {es.catalog_id: es.name for es in element_sets}

    def entries(self) -> List[int]:
        return list(self._names)

    def _get(self, catalog_id: int, path: str) -> dict:
        url = f"{self.base_url}/{path}/&apiKey={self.api_key}"
        try:
            response = self.session.get(url, timeout=self.timeout)
            response.raise_for_status()
            payload = response.json()
        except (requests.RequestException, ValueError) as exc:
            raise DataSourceError(f"N2YO request failed for {catalog_id}: {exc}", catalog_id) from exc

        if not isinstance(payload, dict):
            raise DataSourceError(f"Unexpected N2YO response for {catalog_id}", catalog_id)
        if payload.get("error"):
            raise DataSourceError(f"N2YO error for {catalog_id}: {payload['error']}", catalog_id)
        return payload

    def _observer_path(self, observer: ObserverLocation) -> str:
        return f"{observer.latitude_deg}/{observer.longitude_deg}/{observer.altitude_m:.0f}"

    def _fetch_passes(self, catalog_id: int, observer: ObserverLocation, days: int) -> List[Pass]:
        payload = self._get(
            catalog_id,
            f"radiopasses/{catalog_id}/{self._observer_path(observer)}/{days}/{self.min_pass_elevation_deg}",
        )
        passes = []
        try:
            for item in payload.get("passes") or []:
                passes.append(Pass(
                    start=datetime.fromtimestamp(item["startUTC"], tz=timezone.utc),
                    end=datetime.fromtimestamp(item["endUTC"], tz=timezone.utc),
                    culmination=datetime.fromtimestamp(item["maxUTC"], tz=timezone.utc),
                    max_elevation_deg=float(item["maxEl"]),
                ))
        except (KeyError, TypeError, ValueError) as exc:
            raise DataSourceError(f"Malformed N2YO pass data for {catalog_id}: {exc}", catalog_id) from exc
        return passes

    def track(self, catalog_id: int, observer: ObserverLocation,
              at_time: datetime) -> TrackedSatellite:
        at_time = ensure_utc(at_time)
        payload = self._get(catalog_id, f"positions/{catalog_id}/{self._observer_path(observer)}/1")

        try:
            position = payload["positions"][0]
            latitude = float(position["satlatitude"])
            longitude = float(position["satlongitude"])
            altitude = float(position["sataltitude"])
            azimuth = float(position["azimuth"]) % 360.0
            elevation = float(position["elevation"])
            eclipsed = bool(position.get("eclipsed", False))
            satname = (payload.get("info") or {}).get("satname")
        except (KeyError, IndexError, TypeError, ValueError, AttributeError) as exc:
            raise DataSourceError(f"Malformed N2YO position for {catalog_id}: {exc}", catalog_id) from exc

        name = satname or self._names.get(catalog_id, f"SAT_{catalog_id}")
        range_km = float(np.linalg.norm(
            geodetic_to_ecef(latitude, longitude, altitude) - observer_ecef(observer)
        ))
        speed = math.sqrt(GRAVITATIONAL_PARAMETER / (EARTH_RADIUS_KM + altitude))
        look = LookAngles(
            azimuth_deg=azimuth,
            elevation_deg=elevation,
            range_km=range_km,
            range_rate_km_s=0.0,
            speed_km_s=speed,
        )

        visible = self.classifier.is_visible(look, observer.local_time(at_time), observer)
        if visible and eclipsed and self.classifier.policy is VisibilityPolicy.NAKED_EYE:
            visible = False

        next_pass = None
        if not visible:
            upcoming = [p for p in self._fetch_passes(catalog_id, observer, self.pass_days)
                        if p.start > at_time]
            next_pass = upcoming[0] if upcoming else None

        return TrackedSatellite(
            catalog_id=catalog_id,
            name=name,
            azimuth_deg=azimuth,
            elevation_deg=elevation,
            range_km=range_km,
            speed_km_s=speed,
            magnitude=estimate_magnitude(classify_object(name), range_km),
            is_visible=visible,
            next_pass=next_pass,
            latitude_deg=latitude,
            longitude_deg=longitude,
            altitude_km=altitude,
        )

    def passes(self, catalog_id: int, observer: ObserverLocation,
               start: datetime, end: datetime) -> List[Pass]:
        start = ensure_utc(start)
        end = ensure_utc(end)
        days = max(1, min(10, math.ceil((end - start).total_seconds() / 86400.0)))
        return [p for p in self._fetch_passes(catalog_id, observer, days)
                if start <= p.start <= end]


def make_source(config) -> SatelliteDataSource:
    """
    Build the data source named by ``config.data_source``.

    Args:
        config: TrackerConfig (or any object with the same attributes)
    """
    kind = config.data_source
    if kind == "local":
        classifier = VisibilityClassifier(
            policy=config.visibility_policy,
            min_elevation_deg=config.min_elevation_deg,
        )
        predictor = PassPredictor(
            step=timedelta(seconds=config.pass_step_s),
            horizon=timedelta(hours=config.pass_horizon_hours),
            min_elevation_deg=config.min_elevation_deg,
        )
        return LocalPropagationSource(predictor=predictor, classifier=classifier)
    if kind == "simulated":
        return SimulatedSource(seed=config.simulation_seed)
    if kind == "remote":
        return RemoteServiceSource(
            api_key=config.n2yo_api_key,
            base_url=config.n2yo_api_base,
            timeout=config.http_timeout_s,
            classifier=VisibilityClassifier(
                policy=config.visibility_policy,
                min_elevation_deg=config.min_elevation_deg,
            ),
        )
    raise ValueError(f"Unknown data source {kind!r} (expected local, simulated or remote)")
