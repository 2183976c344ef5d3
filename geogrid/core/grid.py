"""Grid generation for local-rank sampling around a business location.

A grid_size x grid_size lattice is laid over the square [-1, 1] x [-1, 1],
scaled by the radius and projected onto the sphere around the center. The
circular shape drops lattice points whose scaled distance exceeds the radius;
the square shape keeps every lattice point, so its corners sit at
radius * sqrt(2).
"""

from __future__ import annotations

import logging
import math
from typing import List

from geogrid.core.geo import destination_point, distance_to_nearest_pole_km
from geogrid.core.models import GeoPoint, GridShape, GridValidationError

logger = logging.getLogger(__name__)


def _lattice_coordinate(index: int, grid_size: int) -> float:
    if grid_size == 1:
        return 0.0
    return 2 * index / (grid_size - 1) - 1


def grid_reach_km(radius_km: float, shape: GridShape) -> float:
    """Farthest distance from the center a generated point can lie."""
    if shape is GridShape.SQUARE:
        return radius_km * math.sqrt(2)
    return radius_km


def generate_geo_grid(
    center: GeoPoint,
    radius_km: float,
    grid_size: int,
    shape: GridShape = GridShape.CIRCULAR,
) -> List[GeoPoint]:
    """Generate grid points around center in row-major order.

    Args:
        center: Grid center.
        radius_km: Radius of the sampled area in km.
        grid_size: Number of lattice points per side.
        shape: CIRCULAR discards points beyond radius_km, SQUARE keeps them all.

    Returns:
        List of GeoPoint objects; exactly [center] when grid_size is 1.
    """
    if isinstance(grid_size, bool) or not isinstance(grid_size, int) or grid_size < 1:
        raise GridValidationError("grid_size must be a positive integer")
    if not math.isfinite(radius_km) or radius_km <= 0:
        raise GridValidationError("radius_km must be positive")
    shape = GridShape.parse(shape)

    reach = grid_reach_km(radius_km, shape)
    if grid_size > 1 and distance_to_nearest_pole_km(center) <= reach:
        raise GridValidationError(
            f"center ({center.latitude}, {center.longitude}) is within {reach:.1f} km of a pole"
        )

    points: List[GeoPoint] = []
    for i in range(grid_size):
        x = _lattice_coordinate(i, grid_size)
        for j in range(grid_size):
            y = _lattice_coordinate(j, grid_size)

            distance_km = radius_km * math.sqrt(x * x + y * y)
            if shape is GridShape.CIRCULAR and distance_km > radius_km:
                continue

            bearing = math.atan2(y, x)
            points.append(destination_point(center, bearing, distance_km))

    logger.debug(
        "Generated %s grid: %d points, size=%d radius=%.2fkm around (%.5f, %.5f)",
        shape.value, len(points), grid_size, radius_km, center.latitude, center.longitude,
    )
    return points
