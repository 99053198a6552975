"""
Catalog acquisition from CelesTrak.

Downloads a GP element group in TLE format and parses it into ElementSets. This
is the only place the core touches the network for element data; callers hand
the result to a data source or tracking session explicitly.
"""

import logging
from typing import List, Optional

import requests

from skywatch.elements import ElementSet, parse_tle_catalog
from skywatch.exceptions import DataSourceError

logger = logging.getLogger(__name__)

CELESTRAK_BASE = "https://celestrak.org"

# Friendly names -> CelesTrak GP group names
CATALOG_GROUPS = {
    "visual": "visual",
    "stations": "stations",
    "active": "active",
    "starlink": "starlink",
    "gps": "gps-ops",
    "weather": "weather",
    "science": "science",
}


def catalog_url(group: str = "visual", base_url: str = CELESTRAK_BASE) -> str:
    if group not in CATALOG_GROUPS:
        raise ValueError(f"Unknown catalog group {group!r}; choose from {sorted(CATALOG_GROUPS)}")
    return f"{base_url.rstrip('/')}/NORAD/elements/gp.php?GROUP={CATALOG_GROUPS[group]}&FORMAT=tle"


def fetch_catalog(group: str = "visual", base_url: str = CELESTRAK_BASE,
                  timeout: float = 30.0,
                  session: Optional[requests.Session] = None) -> List[ElementSet]:
    """
    Fetch and parse a CelesTrak element group.

    Args:
        group: One of CATALOG_GROUPS
        base_url: CelesTrak base URL
        timeout: Request timeout in seconds
        session: Optional requests session (for connection reuse)

    Returns:
        List of validated element sets (malformed records are skipped)

    Raises:
        DataSourceError: on network/HTTP failure or an empty catalog
    """
    url = catalog_url(group, base_url)
    http = session or requests

    logger.info(f"Fetching {group} catalog from {url}")
    try:
        response = http.get(url, timeout=timeout)
        response.raise_for_status()
    except requests.RequestException as exc:
        raise DataSourceError(f"Failed to fetch {group} catalog: {exc}") from exc

    element_sets = parse_tle_catalog(response.text)
    if not element_sets:
        raise DataSourceError(f"Catalog {group} contained no valid element sets")
    return element_sets
