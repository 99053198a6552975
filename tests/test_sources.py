"""
Unit Tests for Satellite Data Sources

Tests the local propagation pipeline, the deterministic simulated source, the
N2YO-backed remote source (with a mocked HTTP session) and source selection from
configuration.

Run with:
    python -m pytest tests/test_sources.py -v
"""

import unittest
from datetime import datetime, timedelta, timezone
from unittest import mock

import requests

from config import TrackerConfig
from skywatch.elements import parse_tle
from skywatch.exceptions import DataSourceError
from skywatch.models import ObserverLocation
from skywatch.passes import PassPredictor
from skywatch.session import compute_snapshot
from skywatch.sources import (
    DEMO_CATALOG,
    LocalPropagationSource,
    RemoteServiceSource,
    SimulatedSource,
    make_source,
)
from skywatch.visibility import VisibilityClassifier, VisibilityPolicy

ISS_LINE1 = "1 25544U 98067A   23259.57580000  .00012022  00000-0  21844-3 0  9995"
ISS_LINE2 = "2 25544  51.6416 220.9944 0004263 122.0101 312.2755 15.49541986415598"


class TestLocalPropagationSource(unittest.TestCase):
    """Test the on-device pipeline."""

    @classmethod
    def setUpClass(cls):
        cls.iss = parse_tle(ISS_LINE1, ISS_LINE2, "ISS (ZARYA)")
        cls.observer = ObserverLocation(latitude_deg=51.4779, longitude_deg=-0.0015)

    def setUp(self):
        self.source = LocalPropagationSource(predictor=PassPredictor())
        self.source.load_catalog([self.iss])

    def test_entries(self):
        self.assertEqual(self.source.entries(), [25544])

    def test_track(self):
        at_time = self.iss.epoch + timedelta(minutes=10)
        entry = self.source.track(25544, self.observer, at_time)

        self.assertEqual(entry.name, "ISS (ZARYA)")
        self.assertGreaterEqual(entry.azimuth_deg, 0.0)
        self.assertLess(entry.azimuth_deg, 360.0)
        self.assertGreater(entry.range_km, 0.0)
        self.assertAlmostEqual(entry.speed_km_s, 7.66, delta=0.1)
        self.assertAlmostEqual(entry.altitude_km, 420.0, delta=30.0)
        if entry.is_visible:
            self.assertIsNone(entry.next_pass)
        else:
            self.assertIsNotNone(entry.next_pass)
            self.assertGreater(entry.next_pass.start, at_time)

    def test_visibility_matches_elevation(self):
        for minutes in range(0, 24 * 60, 45):
            at_time = self.iss.epoch + timedelta(minutes=minutes)
            entry = self.source.track(25544, self.observer, at_time)
            self.assertEqual(entry.is_visible, entry.elevation_deg > 0.0)

    def test_unknown_object(self):
        with self.assertRaises(DataSourceError):
            self.source.track(99999, self.observer, self.iss.epoch)

    def test_passes(self):
        start = self.iss.epoch
        passes = self.source.passes(25544, self.observer, start, start + timedelta(hours=12))
        self.assertTrue(passes)
        self.assertTrue(all(start < p.start for p in passes))


class TestSimulatedSource(unittest.TestCase):
    """Test synthetic tracking data."""

    def setUp(self):
        self.source = SimulatedSource(seed=7)
        self.observer = ObserverLocation(latitude_deg=0.0, longitude_deg=0.0)
        self.night = datetime(2024, 1, 1, 23, 0, tzinfo=timezone.utc)
        self.noon = datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)

    def test_demo_catalog(self):
        self.assertEqual(self.source.entries(), [cid for cid, _, _ in DEMO_CATALOG])

    def test_deterministic(self):
        first = [self.source.track(cid, self.observer, self.night) for cid in self.source.entries()]
        again = [SimulatedSource(seed=7).track(cid, self.observer, self.night)
                 for cid in self.source.entries()]
        self.assertEqual(first, again)

    def test_nothing_visible_at_noon(self):
        for minutes in range(0, 60, 7):
            at_time = self.noon + timedelta(minutes=minutes)
            for cid in self.source.entries():
                entry = self.source.track(cid, self.observer, at_time)
                self.assertFalse(entry.is_visible)
                self.assertIsNotNone(entry.next_pass)
                self.assertGreater(entry.next_pass.start, at_time)

    def test_visible_entries_are_above_horizon(self):
        for minutes in range(0, 6 * 60, 13):
            at_time = self.night + timedelta(minutes=minutes)
            for cid in self.source.entries():
                entry = self.source.track(cid, self.observer, at_time)
                if entry.is_visible:
                    self.assertGreaterEqual(entry.elevation_deg, 10.0)
                    self.assertIsNone(entry.next_pass)

    def test_unknown_object(self):
        with self.assertRaises(DataSourceError):
            self.source.track(1, self.observer, self.night)
        with self.assertRaises(DataSourceError):
            self.source.passes(1, self.observer, self.night, self.night + timedelta(hours=1))

    def test_load_catalog(self):
        self.source.load_catalog([parse_tle(ISS_LINE1, ISS_LINE2, "ISS (ZARYA)")])
        self.assertEqual(self.source.entries(), [25544])
        self.assertEqual(self.source.track(25544, self.observer, self.night).name, "ISS (ZARYA)")

    def test_passes_ordered(self):
        end = self.night + timedelta(hours=12)
        passes = self.source.passes(25544, self.observer, self.night, end)
        self.assertGreater(len(passes), 3)
        for p in passes:
            self.assertGreaterEqual(p.start, self.night)
            self.assertLessEqual(p.start, end)
        for earlier, later in zip(passes, passes[1:]):
            self.assertGreater(later.start, earlier.end)


def fake_response(payload, status_error=None):
    response = mock.Mock()
    response.json.return_value = payload
    if status_error is not None:
        response.raise_for_status.side_effect = status_error
    return response


POSITION_PAYLOAD = {
    "info": {"satname": "SPACE STATION", "satid": 25544},
    "positions": [{
        "satlatitude": 51.4,
        "satlongitude": 0.0,
        "sataltitude": 420.0,
        "azimuth": 12.5,
        "elevation": 85.0,
        "eclipsed": False,
        "timestamp": 1704150000,
    }],
}

BELOW_HORIZON_PAYLOAD = {
    "info": {"satname": "SPACE STATION", "satid": 25544},
    "positions": [{
        "satlatitude": -30.0,
        "satlongitude": 120.0,
        "sataltitude": 420.0,
        "azimuth": 200.0,
        "elevation": -60.0,
        "eclipsed": True,
        "timestamp": 1704150000,
    }],
}

PASSES_PAYLOAD = {
    "info": {"satname": "SPACE STATION", "satid": 25544, "passescount": 2},
    "passes": [
        {"startUTC": 1704150600, "maxUTC": 1704150900, "endUTC": 1704151200, "maxEl": 45.3},
        {"startUTC": 1704156600, "maxUTC": 1704156840, "endUTC": 1704157080, "maxEl": 12.1},
    ],
}


class TestRemoteServiceSource(unittest.TestCase):
    """Test the N2YO-backed source against canned responses."""

    def setUp(self):
        self.session = mock.Mock()
        self.source = RemoteServiceSource(
            api_key="TESTKEY", base_url="https://n2yo.test/rest/v1/satellite/", session=self.session
        )
        self.observer = ObserverLocation(latitude_deg=51.4, longitude_deg=0.0, altitude_m=46.0)
        self.at_time = datetime.fromtimestamp(1704150000, tz=timezone.utc)

    def test_requires_api_key(self):
        with self.assertRaises(ValueError):
            RemoteServiceSource(api_key="")

    def test_visible_position(self):
        self.session.get.return_value = fake_response(POSITION_PAYLOAD)

        entry = self.source.track(25544, self.observer, self.at_time)

        url = self.session.get.call_args[0][0]
        self.assertEqual(url, "https://n2yo.test/rest/v1/satellite/positions/25544/51.4/0.0/46/1/&apiKey=TESTKEY")
        self.assertEqual(entry.name, "SPACE STATION")
        self.assertTrue(entry.is_visible)
        self.assertIsNone(entry.next_pass)
        self.assertEqual(entry.azimuth_deg, 12.5)
        self.assertAlmostEqual(entry.range_km, 420.0, delta=5.0)
        self.assertAlmostEqual(entry.speed_km_s, 7.66, delta=0.05)

    def test_below_horizon_fetches_next_pass(self):
        self.session.get.side_effect = [
            fake_response(BELOW_HORIZON_PAYLOAD),
            fake_response(PASSES_PAYLOAD),
        ]

        entry = self.source.track(25544, self.observer, self.at_time)

        self.assertFalse(entry.is_visible)
        self.assertIsNotNone(entry.next_pass)
        self.assertEqual(entry.next_pass.max_elevation_deg, 45.3)
        self.assertEqual(entry.next_pass.start, datetime.fromtimestamp(1704150600, tz=timezone.utc))
        passes_url = self.session.get.call_args[0][0]
        self.assertIn("/radiopasses/25544/51.4/0.0/46/1/10/", passes_url)

    def test_naked_eye_rejects_eclipsed(self):
        payload = {"info": POSITION_PAYLOAD["info"],
                   "positions": [dict(POSITION_PAYLOAD["positions"][0], eclipsed=True)]}
        self.session.get.side_effect = [fake_response(payload), fake_response(PASSES_PAYLOAD)]
        source = RemoteServiceSource(
            api_key="TESTKEY",
            session=self.session,
            classifier=VisibilityClassifier(VisibilityPolicy.NAKED_EYE),
        )
        midnight_observer = ObserverLocation(latitude_deg=51.4, longitude_deg=0.0)
        at_time = datetime(2024, 1, 1, 0, 0, tzinfo=timezone.utc)

        entry = source.track(25544, midnight_observer, at_time)
        self.assertFalse(entry.is_visible)

    def test_passes_window(self):
        self.session.get.return_value = fake_response(PASSES_PAYLOAD)
        start = self.at_time
        passes = self.source.passes(25544, self.observer, start, start + timedelta(hours=1))
        self.assertEqual(len(passes), 1)
        self.assertEqual(passes[0].max_elevation_deg, 45.3)

    def test_error_payload(self):
        self.session.get.return_value = fake_response({"error": "Invalid API Key!"})
        with self.assertRaises(DataSourceError) as ctx:
            self.source.track(25544, self.observer, self.at_time)
        self.assertEqual(ctx.exception.catalog_id, 25544)

    def test_http_failure(self):
        self.session.get.side_effect = requests.ConnectionError("unreachable")
        with self.assertRaises(DataSourceError):
            self.source.track(25544, self.observer, self.at_time)

    def test_http_status_failure(self):
        self.session.get.return_value = fake_response({}, status_error=requests.HTTPError("500"))
        with self.assertRaises(DataSourceError):
            self.source.track(25544, self.observer, self.at_time)

    def test_malformed_position(self):
        self.session.get.return_value = fake_response({"positions": []})
        with self.assertRaises(DataSourceError):
            self.source.track(25544, self.observer, self.at_time)

    def test_null_info_falls_back_to_catalog_name(self):
        payload = dict(POSITION_PAYLOAD, info=None)
        self.session.get.return_value = fake_response(payload)

        entry = self.source.track(25544, self.observer, self.at_time)
        self.assertEqual(entry.name, "ISS (ZARYA)")

    def test_non_mapping_info_is_malformed(self):
        payload = dict(POSITION_PAYLOAD, info=["SPACE STATION"])
        self.session.get.return_value = fake_response(payload)
        with self.assertRaises(DataSourceError):
            self.source.track(25544, self.observer, self.at_time)

    def test_null_info_does_not_abort_snapshot(self):
        self.source.load_catalog([parse_tle(ISS_LINE1, ISS_LINE2, "ISS (ZARYA)")])
        self.session.get.return_value = fake_response(dict(POSITION_PAYLOAD, info=None))

        snapshot, failures = compute_snapshot(self.source, self.observer, self.at_time)
        self.assertEqual([entry.catalog_id for entry in snapshot], [25544])
        self.assertEqual(failures, {})


class TestMakeSource(unittest.TestCase):
    """Test source selection from configuration."""

    def test_local_default(self):
        source = make_source(TrackerConfig(environ={}))
        self.assertIsInstance(source, LocalPropagationSource)
        self.assertEqual(source.classifier.policy, VisibilityPolicy.GEOMETRIC)

    def test_local_with_policy(self):
        source = make_source(TrackerConfig(environ={
            "SKYWATCH_VISIBILITY_POLICY": "naked_eye",
            "SKYWATCH_MIN_ELEVATION_DEG": "10",
            "SKYWATCH_PASS_STEP_S": "30",
        }))
        self.assertEqual(source.classifier.policy, VisibilityPolicy.NAKED_EYE)
        self.assertEqual(source.classifier.min_elevation_deg, 10.0)
        self.assertEqual(source.predictor.step, timedelta(seconds=30))
        self.assertEqual(source.predictor.min_elevation_deg, 10.0)

    def test_simulated(self):
        source = make_source(TrackerConfig(environ={
            "SKYWATCH_DATA_SOURCE": "simulated",
            "SKYWATCH_SIMULATION_SEED": "42",
        }))
        self.assertIsInstance(source, SimulatedSource)
        self.assertEqual(source.seed, 42)

    def test_remote(self):
        source = make_source(TrackerConfig(environ={
            "SKYWATCH_DATA_SOURCE": "remote",
            "N2YO_API_KEY": "abc",
        }))
        self.assertIsInstance(source, RemoteServiceSource)
        self.assertEqual(source.api_key, "abc")


if __name__ == "__main__":
    unittest.main()
