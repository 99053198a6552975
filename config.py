"""
Skywatch Configuration

This module contains fallback TLE data and the runtime configuration read from
environment variables. Physical constants live in skywatch.constants.

Fallback TLE Data:
    Hardcoded ISS TLE data for demonstrations and testing when live data is unavailable.

    IMPORTANT: Update this TLE data periodically for accuracy.
    - Low Earth Orbit (LEO) satellites: Update weekly
    - Medium Earth Orbit (MEO): Update monthly
    - Geostationary (GEO): Update quarterly

    Sources for updated TLEs:
    - Space-Track.org (requires free registration)
    - CelesTrak.org (public access)

Environment variables:
    SKYWATCH_DATA_SOURCE         local | simulated | remote (default: local)
    SKYWATCH_REFRESH_INTERVAL_S  seconds between snapshot refreshes (default: 30)
    SKYWATCH_PASS_HORIZON_HOURS  pass search horizon (default: 24)
    SKYWATCH_PASS_STEP_S         pass search step (default: 60)
    SKYWATCH_VISIBILITY_POLICY   geometric | dark_sky | naked_eye (default: geometric)
    SKYWATCH_MIN_ELEVATION_DEG   visibility elevation threshold (default: 0)
    SKYWATCH_MAX_WORKERS         worker threads per refresh (default: 1)
    SKYWATCH_CATALOG_GROUP       CelesTrak group to fetch (default: visual)
    SKYWATCH_SIMULATION_SEED     seed for the simulated source (default: 0)
    SKYWATCH_LOG_LEVEL           logging level name (default: INFO)
    CELESTRAK_API_BASE           CelesTrak base URL
    N2YO_API_BASE                N2YO REST base URL
    N2YO_API_KEY                 API key for the remote source
    SKYWATCH_HTTP_TIMEOUT_S      HTTP timeout in seconds (default: 10)
"""

import os
from typing import Any, Dict, Mapping, Optional

# Fallback ISS TLE for demonstrations and testing
FALLBACK_ISS_TLE: Dict[str, Any] = {
    'name': 'ISS (ZARYA)',
    'norad_id': 25544,
    'line1': '1 25544U 98067A   25230.51041667  .00002182  00000-0  13103-3 0  9996',
    'line2': '2 25544  51.6416  45.1234 0002329  75.6910 284.4861 15.50000000123457',
    'epoch': '2025-08-18T12:15:00Z',
}

DATA_SOURCES = ('local', 'simulated', 'remote')
VISIBILITY_POLICIES = ('geometric', 'dark_sky', 'naked_eye')


class TrackerConfig:
    """Runtime configuration, read from the environment at construction."""

    def __init__(self, environ: Optional[Mapping[str, str]] = None):
        env = os.environ if environ is None else environ

        self.data_source = env.get('SKYWATCH_DATA_SOURCE', 'local').lower()
        self.refresh_interval_s = float(env.get('SKYWATCH_REFRESH_INTERVAL_S', '30'))
        self.pass_horizon_hours = float(env.get('SKYWATCH_PASS_HORIZON_HOURS', '24'))
        self.pass_step_s = float(env.get('SKYWATCH_PASS_STEP_S', '60'))
        self.visibility_policy = env.get('SKYWATCH_VISIBILITY_POLICY', 'geometric').lower()
        self.min_elevation_deg = float(env.get('SKYWATCH_MIN_ELEVATION_DEG', '0'))
        self.max_workers = int(env.get('SKYWATCH_MAX_WORKERS', '1'))
        self.catalog_group = env.get('SKYWATCH_CATALOG_GROUP', 'visual')
        self.simulation_seed = int(env.get('SKYWATCH_SIMULATION_SEED', '0'))
        self.log_level = env.get('SKYWATCH_LOG_LEVEL', 'INFO').upper()
        self.celestrak_base = env.get('CELESTRAK_API_BASE', 'https://celestrak.org')
        self.n2yo_api_base = env.get('N2YO_API_BASE', 'https://api.n2yo.com/rest/v1/satellite')
        self.n2yo_api_key = env.get('N2YO_API_KEY', '')
        self.http_timeout_s = float(env.get('SKYWATCH_HTTP_TIMEOUT_S', '10'))

        self.validate()

    def validate(self) -> None:
        if self.data_source not in DATA_SOURCES:
            raise ValueError(f"SKYWATCH_DATA_SOURCE must be one of {DATA_SOURCES}, got {self.data_source!r}")
        if self.visibility_policy not in VISIBILITY_POLICIES:
            raise ValueError(
                f"SKYWATCH_VISIBILITY_POLICY must be one of {VISIBILITY_POLICIES}, "
                f"got {self.visibility_policy!r}"
            )
        if self.refresh_interval_s <= 0 or self.pass_step_s <= 0 or self.pass_horizon_hours <= 0:
            raise ValueError("refresh interval, pass step and pass horizon must be positive")
        if self.max_workers < 1:
            raise ValueError("SKYWATCH_MAX_WORKERS must be at least 1")
        if self.data_source == 'remote' and not self.n2yo_api_key:
            raise ValueError("N2YO_API_KEY is required when SKYWATCH_DATA_SOURCE=remote")

    def as_dict(self) -> Dict[str, Any]:
        data = dict(vars(self))
        if data['n2yo_api_key']:
            data['n2yo_api_key'] = '***'
        return data
