"""Database helpers for persisting completed grid runs."""

import logging
from contextlib import contextmanager
from typing import Any, Dict, Optional

from psycopg2 import extras, pool

from geogrid.core.config import get_settings
from geogrid.core.models import GridRequest, GridResult
from geogrid.etl.transform import to_grid_payload

logger = logging.getLogger(__name__)

_connection_pool: Optional[pool.SimpleConnectionPool] = None


def init_pool(minconn: int = 1, maxconn: int = 5) -> pool.SimpleConnectionPool:
    """Initialise and return the shared connection pool."""
    global _connection_pool
    if _connection_pool is None:
        settings = get_settings()
        if not settings.database_url:
            raise RuntimeError("DATABASE_URL is required for database connections")
        _connection_pool = pool.SimpleConnectionPool(
            minconn,
            maxconn,
            dsn=settings.database_url,
            connect_timeout=10,
        )
        logger.info("Database connection pool initialised")
    return _connection_pool


@contextmanager
def get_connection():
    """Context manager yielding a pooled connection."""
    pg_pool = init_pool()
    conn = pg_pool.getconn()
    try:
        yield conn
    finally:
        pg_pool.putconn(conn)


def _prepare_params(request: GridRequest, result: GridResult) -> Dict[str, Any]:
    summary = result.summary
    return {
        "keyword": request.keyword,
        "business_name": request.business_name,
        "center_lat": request.center.latitude,
        "center_lng": request.center.longitude,
        "grid_size": request.grid_size,
        "radius_km": request.radius_km,
        "shape": request.shape.value,
        "status": result.status.value,
        "center_rank": result.center_rank,
        "afpr": summary.average_first_page_rank,
        "tgrm": summary.total_grid_rank_mean,
        "tss": summary.top_spot_share,
        "points": extras.Json(to_grid_payload(result)["gridPoints"]),
    }


_INSERT_GRID_RUN = """
INSERT INTO geo_grid_runs (
    keyword,
    business_name,
    center_lat,
    center_lng,
    grid_size,
    radius_km,
    shape,
    status,
    center_rank,
    afpr,
    tgrm,
    tss,
    points,
    created_at
) VALUES (
    %(keyword)s,
    %(business_name)s,
    %(center_lat)s,
    %(center_lng)s,
    %(grid_size)s,
    %(radius_km)s,
    %(shape)s,
    %(status)s,
    %(center_rank)s,
    %(afpr)s,
    %(tgrm)s,
    %(tss)s,
    %(points)s,
    NOW()
)
RETURNING id;
"""


def save_grid_run(request: GridRequest, result: GridResult) -> int:
    """Persist one grid run and return its id."""
    params = _prepare_params(request, result)

    with get_connection() as conn:
        with conn.cursor() as cur:
            cur.execute(_INSERT_GRID_RUN, params)
            run_id = cur.fetchone()[0]
        conn.commit()
    logger.info("Saved grid run %s for keyword=%r status=%s", run_id, request.keyword, params["status"])
    return run_id
