"""Geo-grid rank estimation.

One real measurement is taken at the grid center through an injected lookup;
every other point gets a synthetic rank that degrades with its distance from
the center plus a small random jitter. A business missing from the center
results is reported missing everywhere, and a failed lookup yields an
"unavailable" grid instead of an exception.
"""

from __future__ import annotations

import logging
import math
import random
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError
from typing import Callable, Optional, Tuple

from geogrid.core.geo import format_coordinate_context, haversine_distance_km
from geogrid.core.grid import generate_geo_grid
from geogrid.core.models import (
    NOT_FOUND,
    EstimationStatus,
    GeoPoint,
    GridPoint,
    GridRequest,
    GridResult,
)

logger = logging.getLogger(__name__)

MAX_VARIATION = 10
SEARCH_VOLUME_RANGE = (100, 599)

RankLookup = Callable[[str, str, str], int]

_lookup_executor = ThreadPoolExecutor(max_workers=4, thread_name_prefix="rank-lookup")


def calculate_rank_variation(distance_km: float, radius_km: float, center_rank: int, rng: random.Random) -> int:
    """Synthesize the rank at distance_km from a center ranked center_rank."""
    if center_rank == NOT_FOUND:
        return NOT_FOUND

    normalized_distance = min(distance_km / radius_km, 1.0)
    variation = math.floor(normalized_distance * MAX_VARIATION)
    jitter = rng.randint(-1, 1)
    return max(1, center_rank + variation + jitter)


def _location_context(request: GridRequest) -> str:
    if request.location and request.location.strip():
        return request.location.strip()
    return format_coordinate_context(request.center)


def _validate_rank(value: object) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or (value < 1 and value != NOT_FOUND):
        raise ValueError(f"ranking lookup returned an invalid rank: {value!r}")
    return value


def _lookup_center_rank(
    request: GridRequest,
    find_ranking: RankLookup,
    lookup_timeout: Optional[float],
) -> Optional[int]:
    """Run the lookup once. Returns None when it failed or timed out."""
    location_context = _location_context(request)
    logger.info(
        "Looking up center rank for %r keyword=%r location=%s",
        request.business_name, request.keyword, location_context,
    )
    future = None
    try:
        if lookup_timeout is None:
            raw_rank = find_ranking(request.keyword, request.business_name, location_context)
        else:
            future = _lookup_executor.submit(find_ranking, request.keyword, request.business_name, location_context)
            raw_rank = future.result(timeout=lookup_timeout)
    except FutureTimeoutError:
        # a lookup still queued behind busy workers must never reach the provider
        cancelled = future.cancel() if future is not None else False
        logger.error(
            "Ranking lookup timed out after %ss for keyword=%r (cancelled=%s)",
            lookup_timeout, request.keyword, cancelled,
        )
        return None
    except Exception as exc:  # noqa: BLE001
        logger.error("Ranking lookup failed for keyword=%r: %s", request.keyword, exc, exc_info=True)
        return None

    return _validate_rank(raw_rank)


def _unranked(points: Tuple[GeoPoint, ...], rng: random.Random) -> Tuple[GridPoint, ...]:
    return tuple(
        GridPoint(
            latitude=point.latitude,
            longitude=point.longitude,
            sequence_id=index,
            rank=NOT_FOUND,
            search_volume=rng.randint(*SEARCH_VOLUME_RANGE),
        )
        for index, point in enumerate(points, start=1)
    )


def estimate_geo_grid_rankings(
    request: GridRequest,
    find_ranking: RankLookup,
    *,
    rng: Optional[random.Random] = None,
    lookup_timeout: Optional[float] = None,
) -> GridResult:
    """Build and score the grid described by request.

    Args:
        request: Validated grid request.
        find_ranking: Collaborator returning the center rank or NOT_FOUND.
        rng: Random source for jitter and illustrative search volume.
        lookup_timeout: Seconds to wait for find_ranking; None waits forever.

    Returns:
        GridResult whose status is RANKED, NOT_FOUND or UNAVAILABLE.
    """
    rng = rng or random.Random()
    points = tuple(generate_geo_grid(request.center, request.radius_km, request.grid_size, request.shape))
    logger.info("Generated %d grid points for keyword=%r", len(points), request.keyword)

    center_rank = _lookup_center_rank(request, find_ranking, lookup_timeout)
    if center_rank is None:
        return GridResult(points=_unranked(points, rng), status=EstimationStatus.UNAVAILABLE)
    if center_rank == NOT_FOUND:
        logger.info("Business %r not found at center; grid left unranked", request.business_name)
        return GridResult(points=_unranked(points, rng), status=EstimationStatus.NOT_FOUND)

    logger.info("Business ranking at center: %d", center_rank)
    scored = []
    for index, point in enumerate(points, start=1):
        distance = haversine_distance_km(request.center, point)
        scored.append(
            GridPoint(
                latitude=point.latitude,
                longitude=point.longitude,
                sequence_id=index,
                rank=calculate_rank_variation(distance, request.radius_km, center_rank, rng),
                search_volume=rng.randint(*SEARCH_VOLUME_RANGE),
            )
        )

    return GridResult(points=tuple(scored), status=EstimationStatus.RANKED, center_rank=center_rank)
