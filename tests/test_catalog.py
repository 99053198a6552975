"""
Tests for CelesTrak catalog acquisition (network mocked).

Run with:
    python -m pytest tests/test_catalog.py -v
"""

import unittest
from unittest import mock

import requests

from skywatch.catalog import catalog_url, fetch_catalog
from skywatch.exceptions import DataSourceError

CATALOG_TEXT = """ISS (ZARYA)
1 25544U 98067A   23259.57580000  .00012022  00000-0  21844-3 0  9995
2 25544  51.6416 220.9944 0004263 122.0101 312.2755 15.49541986415598
VANGUARD 1
1 00005U 58002B   00179.78495062  .00000023  00000-0  28098-4 0  4753
2 00005  34.2682 348.7242 1859667 331.7664  19.3264 10.82419157413667
"""


class TestCatalogUrl(unittest.TestCase):

    def test_group_mapping(self):
        self.assertEqual(
            catalog_url("gps", "https://celestrak.org/"),
            "https://celestrak.org/NORAD/elements/gp.php?GROUP=gps-ops&FORMAT=tle",
        )

    def test_unknown_group(self):
        with self.assertRaises(ValueError):
            catalog_url("everything")


class TestFetchCatalog(unittest.TestCase):
    """Test download, parsing and failure reporting."""

    def setUp(self):
        self.session = mock.Mock()

    def test_fetch(self):
        self.session.get.return_value = mock.Mock(text=CATALOG_TEXT)

        element_sets = fetch_catalog("visual", session=self.session)

        self.assertEqual([es.catalog_id for es in element_sets], [25544, 5])
        self.assertEqual(element_sets[0].name, "ISS (ZARYA)")
        url = self.session.get.call_args[0][0]
        self.assertIn("GROUP=visual", url)
        self.assertEqual(self.session.get.call_args[1]["timeout"], 30.0)

    def test_http_error(self):
        response = mock.Mock()
        response.raise_for_status.side_effect = requests.HTTPError("503 Service Unavailable")
        self.session.get.return_value = response

        with self.assertRaises(DataSourceError):
            fetch_catalog("visual", session=self.session)

    def test_connection_error(self):
        self.session.get.side_effect = requests.ConnectionError("unreachable")
        with self.assertRaises(DataSourceError):
            fetch_catalog("stations", session=self.session)

    def test_empty_catalog(self):
        self.session.get.return_value = mock.Mock(text="<html>Invalid query</html>\n")
        with self.assertRaises(DataSourceError):
            fetch_catalog("visual", session=self.session)

    def test_unknown_group_does_not_hit_network(self):
        with self.assertRaises(ValueError):
            fetch_catalog("everything", session=self.session)
        self.session.get.assert_not_called()


if __name__ == "__main__":
    unittest.main()
