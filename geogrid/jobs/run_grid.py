"""CLI job to estimate geo-grid rankings for one keyword and business."""

import argparse
import json
import logging
import random
from typing import Optional

from geogrid.core.config import ConfigError, get_settings
from geogrid.core.db import save_grid_run
from geogrid.core.estimator import estimate_geo_grid_rankings
from geogrid.core.lookup import build_rank_lookup
from geogrid.core.models import GeoPoint, GridRequest, GridShape, GridValidationError
from geogrid.etl.transform import to_grid_payload

logger = logging.getLogger(__name__)


def run_grid_job(
    *,
    keyword: str,
    business_name: str,
    lat: float,
    lng: float,
    grid_size: int,
    radius_km: float,
    shape: str,
    location: Optional[str] = None,
    seed: Optional[int] = None,
    persist: bool = False,
) -> dict:
    settings = get_settings()
    request = GridRequest(
        keyword=keyword,
        business_name=business_name,
        center=GeoPoint(latitude=lat, longitude=lng),
        grid_size=grid_size,
        radius_km=radius_km,
        shape=GridShape.parse(shape),
        location=location,
    )
    find_ranking = build_rank_lookup(settings)

    logger.info("Running %dx%d grid for keyword=%r business=%r", grid_size, grid_size, keyword, business_name)
    result = estimate_geo_grid_rankings(
        request,
        find_ranking,
        rng=random.Random(seed) if seed is not None else None,
        lookup_timeout=settings.lookup_timeout_seconds,
    )
    payload = to_grid_payload(result)

    if persist:
        payload["runId"] = save_grid_run(request, result)

    logger.info("Completed grid: status=%s points=%d", result.status.value, len(result.points))
    return payload


def build_parser() -> argparse.ArgumentParser:
    settings = get_settings()
    parser = argparse.ArgumentParser(description="Estimate geo-grid local rankings")
    parser.add_argument("--keyword", required=True, help="Search keyword, e.g. 'plumber'")
    parser.add_argument("--business", dest="business_name", required=True, help="Business name to locate")
    parser.add_argument("--lat", type=float, required=True, help="Center latitude")
    parser.add_argument("--lng", type=float, required=True, help="Center longitude")
    parser.add_argument(
        "--grid-size",
        dest="grid_size",
        type=int,
        default=settings.default_grid_size,
        help="Points per grid side",
    )
    parser.add_argument(
        "--radius-km",
        dest="radius_km",
        type=float,
        default=settings.default_radius_km,
        help="Grid radius in kilometers",
    )
    parser.add_argument(
        "--shape",
        choices=[shape.value for shape in GridShape],
        default=settings.default_shape,
        help="Grid footprint",
    )
    parser.add_argument("--location", help="Location name passed to the ranking provider")
    parser.add_argument("--seed", type=int, help="Seed for reproducible jitter")
    parser.add_argument("--persist", action="store_true", help="Save the run to the database")
    return parser


def main() -> None:
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s - %(message)s")
    parser = build_parser()
    args = parser.parse_args()

    try:
        payload = run_grid_job(
            keyword=args.keyword,
            business_name=args.business_name,
            lat=args.lat,
            lng=args.lng,
            grid_size=args.grid_size,
            radius_km=args.radius_km,
            shape=args.shape,
            location=args.location,
            seed=args.seed,
            persist=args.persist,
        )
    except (ConfigError, GridValidationError) as exc:
        logger.error("Cannot run grid: %s", exc)
        raise SystemExit(2) from exc

    print(json.dumps(payload, indent=2))


if __name__ == "__main__":
    main()
