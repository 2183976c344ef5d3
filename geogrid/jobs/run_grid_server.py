"""HTTP entrypoint serving geo-grid ranking estimates (Cloud Run friendly)."""

from __future__ import annotations

import logging
import os
from typing import Any, Dict, Mapping

import requests
from flask import Flask, jsonify, request

from geogrid.core.config import ConfigError, get_settings
from geogrid.core.db import save_grid_run
from geogrid.core.estimator import estimate_geo_grid_rankings
from geogrid.core.lookup import build_rank_lookup
from geogrid.core.models import GeoPoint, GridRequest, GridShape, GridValidationError, RankLookupError
from geogrid.etl.transform import to_grid_payload, to_local_rankings_payload, to_local_search_payload
from geogrid.vendors import dataforseo

# ---------- Logging ----------
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)s %(name)s - %(message)s",
)
logger = logging.getLogger(__name__)

# ---------- App ----------
app = Flask(__name__)

# ---------- Routes ----------


@app.get("/")
def root() -> Any:
    """Simple root to avoid 404 on GET /"""
    return "ok", 200


@app.get("/healthz")
def healthcheck() -> Any:
    """Lightweight health endpoint; reads settings only, never calls a provider."""
    settings = get_settings()
    return (
        jsonify(
            {
                "status": "ok",
                "rank_provider": settings.rank_provider,
                "worker_port_config": settings.worker_port,
                "revision": os.getenv("K_REVISION", "unknown"),
            }
        ),
        200,
    )


@app.post("/geo-grid")
def geo_grid() -> Any:
    """
    Estimate geo-grid rankings.
    Required JSON fields: keyword, businessName, centerLat, centerLng
    Optional: gridSize (int), radiusKm (float), shape, location, persist ("true"/"1"/"yes")
    """
    payload: Dict[str, Any] = request.get_json(silent=True) or {}

    required = ("keyword", "businessName", "centerLat", "centerLng")
    missing = [f for f in required if payload.get(f) in (None, "")]
    if missing:
        return jsonify({"success": False, "message": f"missing fields: {', '.join(missing)}"}), 400

    try:
        grid_request = _build_grid_request(payload, lat_key="centerLat", lng_key="centerLng")
    except GridValidationError as exc:
        return jsonify({"success": False, "message": str(exc)}), 400

    try:
        result = _estimate(grid_request)
    except GridValidationError as exc:
        return jsonify({"success": False, "message": str(exc)}), 400
    except ConfigError as exc:
        logger.error("Rank provider is not configured: %s", exc)
        return jsonify({"success": False, "message": "rank provider is not configured"}), 500

    data = to_grid_payload(result)
    if _is_truthy(payload.get("persist")):
        try:
            data["runId"] = save_grid_run(grid_request, result)
        except Exception as exc:  # noqa: BLE001
            logger.exception("Failed to persist grid run: %s", exc)
            data["runId"] = None

    return jsonify({"success": True, "data": data}), 200


@app.get("/local-rankings")
def local_rankings() -> Any:
    """Grid plus AFPR/TGRM/TSS metrics for the Rankings dashboard."""
    params = request.args.to_dict()

    required = ("keyword", "businessName", "lat", "lng")
    if any(not params.get(f) for f in required):
        return (
            jsonify({"success": False, "message": "Keyword, business name, latitude, and longitude are required"}),
            400,
        )

    try:
        grid_request = _build_grid_request(params, lat_key="lat", lng_key="lng")
    except GridValidationError as exc:
        return jsonify({"success": False, "message": str(exc)}), 400

    try:
        result = _estimate(grid_request)
    except GridValidationError as exc:
        return jsonify({"success": False, "message": str(exc)}), 400
    except ConfigError as exc:
        logger.error("Rank provider is not configured: %s", exc)
        return jsonify({"success": False, "message": "rank provider is not configured"}), 500

    return (
        jsonify(
            {
                "success": True,
                "data": to_local_rankings_payload(result),
                "source": get_settings().rank_provider,
            }
        ),
        200,
    )


@app.post("/business-ranking")
def business_ranking() -> Any:
    """Single ranking lookup for keyword/businessName/location with the configured provider."""
    payload: Dict[str, Any] = request.get_json(silent=True) or {}
    keyword = str(payload.get("keyword") or "").strip()
    business_name = str(payload.get("businessName") or "").strip()
    location = str(payload.get("location") or "").strip()
    if not keyword or not business_name or not location:
        return jsonify({"success": False, "message": "Keyword, business name, and location are required"}), 400

    try:
        find_ranking = build_rank_lookup(get_settings())
        rank = find_ranking(keyword, business_name, location)
    except ConfigError as exc:
        logger.error("Rank provider is not configured: %s", exc)
        return jsonify({"success": False, "message": "rank provider is not configured"}), 500
    except RankLookupError as exc:
        logger.error("Business ranking lookup failed for keyword=%r: %s", keyword, exc)
        return jsonify({"success": False, "message": f"Error getting business ranking: {exc}"}), 502

    return jsonify({"success": True, "rank": rank}), 200


@app.post("/local-search")
def local_search() -> Any:
    """Raw DataForSEO results for keyword at location."""
    payload: Dict[str, Any] = request.get_json(silent=True) or {}
    keyword = str(payload.get("keyword") or "").strip()
    location = str(payload.get("location") or "").strip()
    if not keyword or not location:
        return jsonify({"success": False, "message": "Keyword and location are required"}), 400

    settings = get_settings()
    if not settings.dataforseo_login or not settings.dataforseo_password:
        logger.error("Local search requested without DataForSEO credentials")
        return jsonify({"success": False, "message": "DataForSEO credentials are not configured"}), 500

    try:
        results = dataforseo.get_local_search_results(
            keyword,
            location,
            (settings.dataforseo_login, settings.dataforseo_password),
            task_timeout=settings.task_timeout_seconds,
        )
    except (RankLookupError, requests.RequestException) as exc:
        logger.error("Local search failed for keyword=%r: %s", keyword, exc)
        return jsonify({"success": False, "message": f"Error getting local search results: {exc}"}), 502

    return jsonify({"success": True, "results": to_local_search_payload(results)}), 200


@app.post("/credentials/test")
def test_credentials() -> Any:
    """Check DataForSEO credentials against the status endpoint."""
    payload: Dict[str, Any] = request.get_json(silent=True) or {}
    login = payload.get("login")
    password = payload.get("password")
    if not login or not password:
        return jsonify({"success": False, "message": "login and password are required"}), 400

    success, message = dataforseo.test_credentials(str(login), str(password))
    return jsonify({"success": success, "message": message}), 200


# ---------- Internals ----------


def _get_or_default(payload: Mapping[str, Any], key: str, default: Any) -> Any:
    value = payload.get(key)
    return default if value in (None, "") else value


def _is_truthy(value: Any) -> bool:
    return str(value).lower() in {"1", "true", "yes"}


def _parse_grid_size(value: Any) -> int:
    if isinstance(value, bool) or (isinstance(value, float) and not value.is_integer()):
        raise ValueError(f"gridSize must be an integer, got {value!r}")
    return int(value)


def _build_grid_request(payload: Mapping[str, Any], *, lat_key: str, lng_key: str) -> GridRequest:
    settings = get_settings()
    try:
        lat = float(payload[lat_key])
        lng = float(payload[lng_key])
        grid_size = _parse_grid_size(_get_or_default(payload, "gridSize", settings.default_grid_size))
        radius_km = float(_get_or_default(payload, "radiusKm", settings.default_radius_km))
    except (TypeError, ValueError) as exc:
        raise GridValidationError("latitude, longitude and radiusKm must be numeric and gridSize an integer") from exc

    return GridRequest(
        keyword=str(payload["keyword"]).strip(),
        business_name=str(payload["businessName"]).strip(),
        center=GeoPoint(latitude=lat, longitude=lng),
        grid_size=grid_size,
        radius_km=radius_km,
        shape=GridShape.parse(payload.get("shape") or settings.default_shape),
        location=payload.get("location") or None,
    )


def _estimate(grid_request: GridRequest):
    settings = get_settings()
    find_ranking = build_rank_lookup(settings)
    return estimate_geo_grid_rankings(grid_request, find_ranking, lookup_timeout=settings.lookup_timeout_seconds)


def main() -> None:
    """Cloud Run injects PORT; fall back to WORKER_PORT locally."""
    env_port = os.getenv("PORT")
    logger.info("[BOOT] ENV PORT=%s", env_port)

    port = int(env_port or get_settings().worker_port)
    logger.info("[BOOT] Binding on 0.0.0.0:%d", port)

    app.run(host="0.0.0.0", port=port)


if __name__ == "__main__":
    main()
