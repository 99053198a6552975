"""
Tests for the Flask HTTP service.

Uses the simulated data source and a fixed clock so responses are deterministic.

Run with:
    python -m pytest tests/test_app.py -v
"""

import unittest
from datetime import datetime, timezone

from config import TrackerConfig
from skywatch.app import create_app
from skywatch.catalog import fetch_catalog
from skywatch.elements import parse_tle
from skywatch.exceptions import DataSourceError
from skywatch.sources import DEMO_CATALOG, LocalPropagationSource, SimulatedSource

NOW = datetime(2023, 9, 16, 22, 0, tzinfo=timezone.utc)

ISS_LINE1 = "1 25544U 98067A   23259.57580000  .00012022  00000-0  21844-3 0  9995"
ISS_LINE2 = "2 25544  51.6416 220.9944 0004263 122.0101 312.2755 15.49541986415598"


def stub_fetcher(group, base_url, timeout):
    return [parse_tle(ISS_LINE1, ISS_LINE2, "ISS (ZARYA)")]


def failing_fetcher(group, base_url, timeout):
    raise DataSourceError("CelesTrak unreachable")


class AppTestCase(unittest.TestCase):

    fetcher = staticmethod(stub_fetcher)

    def setUp(self):
        self.source = SimulatedSource(seed=1)
        app = create_app(
            source=self.source,
            config=TrackerConfig(environ={"SKYWATCH_DATA_SOURCE": "simulated"}),
            clock=lambda: NOW,
            fetcher=self.fetcher,
        )
        app.testing = True
        self.client = app.test_client()


class TestHealth(AppTestCase):

    def test_health(self):
        response = self.client.get('/health')
        self.assertEqual(response.status_code, 200)

        data = response.get_json()
        self.assertEqual(data["status"], "healthy")
        self.assertEqual(data["source"], "simulated")
        self.assertEqual(data["satellites_loaded"], len(DEMO_CATALOG))
        self.assertEqual(data["timestamp"], NOW.isoformat())
        self.assertEqual(data["configuration"]["data_source"], "simulated")


class TestSatellites(AppTestCase):

    def test_snapshot(self):
        response = self.client.get('/api/satellites?lat=51.5&lon=-0.1&alt=20')
        self.assertEqual(response.status_code, 200)

        data = response.get_json()
        self.assertEqual(data["count"], len(DEMO_CATALOG))
        self.assertEqual(data["observer"]["latitude_deg"], 51.5)
        self.assertEqual(data["failures"], {})
        for entry in data["satellites"]:
            if entry["is_visible"]:
                self.assertIsNone(entry["next_pass"])
            else:
                self.assertIn("start", entry["next_pass"])
        self.assertEqual(data["visible"], sum(1 for e in data["satellites"] if e["is_visible"]))

    def test_missing_observer(self):
        response = self.client.get('/api/satellites?lat=51.5')
        self.assertEqual(response.status_code, 400)
        self.assertIn("error", response.get_json())

    def test_invalid_observer(self):
        for query in ('lat=abc&lon=0', 'lat=95&lon=0', 'lat=0&lon=200'):
            with self.subTest(query=query):
                response = self.client.get(f'/api/satellites?{query}')
                self.assertEqual(response.status_code, 400)


class TestPasses(AppTestCase):

    def test_passes(self):
        response = self.client.get('/api/satellites/25544/passes?lat=51.5&lon=-0.1&hours=12')
        self.assertEqual(response.status_code, 200)

        data = response.get_json()
        self.assertEqual(data["catalog_id"], 25544)
        self.assertEqual(data["prediction_window_hours"], 12.0)
        self.assertTrue(data["passes"])
        self.assertIn("duration_minutes", data["passes"][0])

    def test_unknown_satellite(self):
        response = self.client.get('/api/satellites/1/passes?lat=51.5&lon=-0.1')
        self.assertEqual(response.status_code, 404)

    def test_invalid_window(self):
        for hours in ('0', '-3', '500', 'soon'):
            with self.subTest(hours=hours):
                response = self.client.get(f'/api/satellites/25544/passes?lat=51.5&lon=-0.1&hours={hours}')
                self.assertEqual(response.status_code, 400)


class TestCatalogRefresh(AppTestCase):

    def test_refresh(self):
        response = self.client.post('/api/catalog/refresh?group=stations')
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.get_json(), {"group": "stations", "count": 1})
        self.assertEqual(self.source.entries(), [25544])


class TestCatalogRefreshFailure(AppTestCase):

    fetcher = staticmethod(failing_fetcher)

    def test_upstream_failure(self):
        response = self.client.post('/api/catalog/refresh')
        self.assertEqual(response.status_code, 502)
        self.assertEqual(self.source.entries(), [cid for cid, _, _ in DEMO_CATALOG])


class TestCatalogRefreshUnknownGroup(AppTestCase):

    fetcher = staticmethod(fetch_catalog)

    def test_unknown_group(self):
        response = self.client.post('/api/catalog/refresh?group=everything')
        self.assertEqual(response.status_code, 400)


class TestLocalFallback(unittest.TestCase):

    def test_empty_local_source_gets_fallback_iss(self):
        source = LocalPropagationSource()
        app = create_app(source=source, config=TrackerConfig(environ={}), clock=lambda: NOW)
        client = app.test_client()

        self.assertEqual(source.entries(), [25544])
        self.assertEqual(client.get('/health').get_json()["satellites_loaded"], 1)


if __name__ == "__main__":
    unittest.main()
