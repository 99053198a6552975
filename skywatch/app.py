"""
Skywatch HTTP Service

Flask JSON API over a satellite data source:

    GET  /health
    GET  /api/satellites?lat=&lon=&alt=
    GET  /api/satellites/<id>/passes?lat=&lon=&alt=&hours=
    POST /api/catalog/refresh?group=

Every request passes the observer explicitly; the service keeps no per-user state.
"""

from datetime import datetime, timedelta, timezone
from typing import Callable, Optional

import structlog
from flask import Flask, jsonify, request
from flask_cors import CORS

from config import FALLBACK_ISS_TLE, TrackerConfig
from logging_config import configure_structlog
from skywatch import __version__
from skywatch.catalog import fetch_catalog
from skywatch.elements import parse_tle
from skywatch.exceptions import DataSourceError, PropagationError
from skywatch.models import ObserverLocation
from skywatch.session import compute_snapshot
from skywatch.sources import LocalPropagationSource, SatelliteDataSource, make_source

MAX_PASS_WINDOW_HOURS = 240

logger = structlog.get_logger(__name__)


def _observer_from_args(args) -> ObserverLocation:
    """Build an observer from query parameters; raises ValueError on bad input."""
    if "lat" not in args or "lon" not in args:
        raise ValueError("lat and lon query parameters are required")
    return ObserverLocation(
        latitude_deg=float(args["lat"]),
        longitude_deg=float(args["lon"]),
        altitude_m=float(args.get("alt", 0.0)),
    )


def create_app(source: Optional[SatelliteDataSource] = None,
               config: Optional[TrackerConfig] = None,
               clock: Optional[Callable[[], datetime]] = None,
               fetcher: Callable = fetch_catalog) -> Flask:
    """
    Application factory.

    Args:
        source: Data source (defaults to the one named by ``config``)
        config: Runtime configuration (defaults to the environment)
        clock: Callable returning the current UTC time
        fetcher: Catalog download function used by the refresh endpoint
    """
    configure_structlog()
    config = config or TrackerConfig()
    clock = clock or (lambda: datetime.now(timezone.utc))
    source = source or make_source(config)

    if isinstance(source, LocalPropagationSource) and not source.entries():
        source.load_catalog([parse_tle(
            FALLBACK_ISS_TLE['line1'], FALLBACK_ISS_TLE['line2'], FALLBACK_ISS_TLE['name']
        )])
        logger.warning("No catalog loaded; using fallback ISS element set")

    app = Flask(__name__)
    CORS(app)

    @app.route('/health', methods=['GET'])
    def health_check():
        """Service health and configuration summary"""
        return jsonify({
            "status": "healthy",
            "timestamp": clock().isoformat(),
            "version": __version__,
            "source": source.name,
            "satellites_loaded": len(source.entries()),
            "configuration": config.as_dict(),
        })

    @app.route('/api/satellites', methods=['GET'])
    def get_satellites():
        """Snapshot of every tracked object for the observer in the query"""
        try:
            observer = _observer_from_args(request.args)
        except ValueError as e:
            return jsonify({"error": str(e)}), 400

        at_time = clock()
        snapshot, failures = compute_snapshot(source, observer, at_time)
        logger.info("snapshot_served", count=len(snapshot), failed=len(failures))

        return jsonify({
            "timestamp": at_time.isoformat(),
            "observer": observer.model_dump(),
            "count": len(snapshot),
            "visible": sum(1 for entry in snapshot if entry.is_visible),
            "satellites": [entry.model_dump(mode="json") for entry in snapshot],
            "failures": {str(catalog_id): error for catalog_id, error in failures.items()},
        })

    @app.route('/api/satellites/<int:catalog_id>/passes', methods=['GET'])
    def predict_satellite_passes(catalog_id: int):
        """Predict passes of one object over the observer"""
        try:
            observer = _observer_from_args(request.args)
            hours = float(request.args.get('hours', 24))
            if not 0 < hours <= MAX_PASS_WINDOW_HOURS:
                raise ValueError(f"hours must be in (0, {MAX_PASS_WINDOW_HOURS}]")
        except ValueError as e:
            return jsonify({"error": str(e)}), 400

        if catalog_id not in source.entries():
            return jsonify({"error": f"Satellite {catalog_id} not found"}), 404

        start = clock()
        try:
            passes = source.passes(catalog_id, observer, start, start + timedelta(hours=hours))
        except PropagationError as e:
            logger.warning("pass_prediction_failed", catalog_id=catalog_id, error=str(e))
            return jsonify({"error": str(e)}), 422
        except DataSourceError as e:
            logger.error("pass_source_failed", catalog_id=catalog_id, error=str(e))
            return jsonify({"error": str(e)}), 502

        return jsonify({
            "catalog_id": catalog_id,
            "passes": [p.model_dump(mode="json") for p in passes],
            "observer": observer.model_dump(),
            "prediction_window_hours": hours,
        })

    @app.route('/api/catalog/refresh', methods=['POST'])
    def refresh_catalog():
        """Download a CelesTrak group and load it into the data source"""
        group = request.args.get('group', config.catalog_group)
        try:
            element_sets = fetcher(group, base_url=config.celestrak_base, timeout=config.http_timeout_s)
        except ValueError as e:
            return jsonify({"error": str(e)}), 400
        except DataSourceError as e:
            logger.error("catalog_refresh_failed", group=group, error=str(e))
            return jsonify({"error": str(e)}), 502

        source.load_catalog(element_sets)
        logger.info("catalog_refreshed", group=group, count=len(element_sets))
        return jsonify({"group": group, "count": len(element_sets)})

    return app


if __name__ == '__main__':
    create_app().run(host='0.0.0.0', port=5000)
