"""
Skywatch Overhead Satellite Demonstration

This script demonstrates the overhead-satellite tracking pipeline:
- TLE parsing and validation
- SGP4 propagation and observer look angles
- Visibility classification and brightness estimation
- Next-pass prediction
- Periodic tracking with a live session

Usage:
    python demo.py --lat 51.48 --lon -0.0 [--source local] [--fetch] [--watch] [--verbose]

Arguments:
    --lat, --lon, --alt: Observer location (degrees, degrees, metres)
    --source: Data source (local, simulated, remote)
    --fetch: Download the CelesTrak catalog instead of the built-in ISS element set
    --watch: Keep refreshing until interrupted
    --verbose: Enable debug logging
"""

import argparse
import logging
import time
from datetime import timedelta
from typing import Sequence

from config import FALLBACK_ISS_TLE, TrackerConfig
from logging_config import configure_logging, get_logger
from skywatch.brightness import brightness_label
from skywatch.catalog import fetch_catalog
from skywatch.elements import parse_tle
from skywatch.exceptions import DataSourceError
from skywatch.frames import compass_point
from skywatch.models import ObserverLocation, TrackedSatellite
from skywatch.session import TrackingSession
from skywatch.sources import make_source

logger = get_logger(__name__)

# ISS TLE data (as of September 2023)
ISS_LINE1 = "1 25544U 98067A   23259.57580000  .00012022  00000-0  21844-3 0  9995"
ISS_LINE2 = "2 25544  51.6416 220.9944 0004263 122.0101 312.2755 15.49541986415598"


def report_snapshot(snapshot: Sequence[TrackedSatellite]) -> None:
    """
    Log one snapshot: visible objects first, then upcoming passes.

    Parameters
    ----------
    snapshot : sequence of TrackedSatellite
        Published snapshot entries
    """
    visible = sorted((s for s in snapshot if s.is_visible), key=lambda s: s.magnitude)
    upcoming = sorted(
        (s for s in snapshot if s.next_pass is not None), key=lambda s: s.next_pass.start
    )

    logger.info(f"Currently visible ({len(visible)})")
    for sat in visible:
        logger.info(
            f"  {sat.name:<24} az={sat.azimuth_deg:6.1f} ({compass_point(sat.azimuth_deg):>3}) "
            f"el={sat.elevation_deg:5.1f} range={sat.range_km:7.0f}km "
            f"mag={sat.magnitude:+.1f} ({brightness_label(sat.magnitude)})"
        )

    logger.info(f"Upcoming passes ({len(upcoming)})")
    for sat in upcoming:
        p = sat.next_pass
        logger.info(
            f"  {sat.name:<24} {p.start:%Y-%m-%d %H:%M:%S}Z "
            f"{p.duration_minutes:4.1f}min max_el={p.max_elevation_deg:4.1f}"
            f"{' (truncated)' if p.truncated else ''}"
        )


def main() -> None:
    """Main demonstration entry point."""
    parser = argparse.ArgumentParser(description="Skywatch Overhead Satellite Demonstration")
    parser.add_argument("--lat", type=float, required=True, help="Observer latitude (deg)")
    parser.add_argument("--lon", type=float, required=True, help="Observer longitude (deg)")
    parser.add_argument("--alt", type=float, default=0.0, help="Observer altitude (m)")
    parser.add_argument("--source", choices=["local", "simulated", "remote"],
                        help="Data source (overrides SKYWATCH_DATA_SOURCE)")
    parser.add_argument("--fetch", action="store_true", help="Download the CelesTrak catalog")
    parser.add_argument("--watch", action="store_true", help="Keep refreshing until interrupted")
    parser.add_argument("--verbose", action="store_true", help="Enable debug logging")

    args = parser.parse_args()

    config = TrackerConfig()
    if args.source:
        config.data_source = args.source
        config.validate()

    configure_logging(level=logging.DEBUG if args.verbose else config.log_level)

    observer = ObserverLocation(latitude_deg=args.lat, longitude_deg=args.lon, altitude_m=args.alt)
    logger.info("Skywatch Overhead Satellite Demonstration")
    logger.info("=" * 60)
    logger.info(f"Observer: {observer.latitude_deg:.4f}, {observer.longitude_deg:.4f} "
                f"({observer.altitude_m:.0f} m), source={config.data_source}")

    catalog = None
    if config.data_source == "local":
        if args.fetch:
            try:
                catalog = fetch_catalog(config.catalog_group, config.celestrak_base,
                                        timeout=config.http_timeout_s)
            except DataSourceError as e:
                logger.error(f"Catalog download failed: {e}; using built-in ISS element set")
        if catalog is None:
            catalog = [parse_tle(ISS_LINE1, ISS_LINE2, FALLBACK_ISS_TLE['name'])]

    session = TrackingSession(
        make_source(config),
        refresh_interval=timedelta(seconds=config.refresh_interval_s),
        max_workers=config.max_workers,
    )
    session.subscribe(report_snapshot)

    with session:
        session.start(observer, catalog)
        for catalog_id, error in session.failures.items():
            logger.warning(f"{catalog_id}: {error}")

        if args.watch:
            logger.info("Watching; press Ctrl+C to stop")
            try:
                while True:
                    time.sleep(1.0)
            except KeyboardInterrupt:
                logger.info("Interrupted")

    logger.info("=" * 60)
    logger.info("Demonstration complete")


if __name__ == "__main__":
    main()
