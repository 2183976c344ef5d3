"""Utilities for transforming provider responses and grid results into payloads."""

import logging
from typing import Any, Dict, List, Optional

from geogrid.core.models import GridPoint, GridResult, LocalSearchResult

logger = logging.getLogger(__name__)


def _safe_int(value: Any) -> Optional[int]:
    if value is None or isinstance(value, bool):
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def _safe_float(value: Any) -> Optional[float]:
    if value is None:
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def to_local_search_result(item: Dict[str, Any], fallback_position: int) -> LocalSearchResult:
    """Map a DataForSEO SERP item; items without a usable position keep their list order."""
    position = _safe_int(item.get("rank_group") or item.get("rank_absolute") or item.get("position"))
    if position is None or position < 1:
        position = fallback_position

    rating = item.get("rating") or {}
    if not isinstance(rating, dict):
        rating = {}

    return LocalSearchResult(
        position=position,
        title=item.get("title") or "",
        url=item.get("url") or "",
        description=item.get("description") or "",
        domain=item.get("domain") or "",
        type=item.get("type") or "",
        rating=_safe_float(rating.get("rating_value") or rating.get("value")),
        reviews_count=_safe_int(rating.get("rating_count") or rating.get("votes_count")),
        address=item.get("address"),
        phone=item.get("phone"),
        raw_snapshot=item,
    )


def _point_payload(point: GridPoint) -> Dict[str, Any]:
    return {
        "id": point.sequence_id,
        "lat": point.latitude,
        "lng": point.longitude,
        "rank": point.rank,
        "searchVolume": point.search_volume,
        "rankChange": point.rank_change,
        "competitors": list(point.competitors),
    }


def to_grid_payload(result: GridResult) -> Dict[str, Any]:
    summary = result.summary
    return {
        "status": result.status.value,
        "centerRank": result.center_rank,
        "gridPoints": [_point_payload(point) for point in result.points],
        "summary": {
            "averageFirstPageRank": summary.average_first_page_rank,
            "totalGridRankMean": summary.total_grid_rank_mean,
            "topSpotShare": summary.top_spot_share,
        },
    }


def to_local_rankings_payload(result: GridResult) -> Dict[str, Any]:
    """Shape a grid result for the dashboard's local-rankings view (AFPR/TGRM/TSS)."""
    summary = result.summary
    grid_data: List[Dict[str, Any]] = [_point_payload(point) for point in result.points]
    return {
        "status": result.status.value,
        "gridData": grid_data,
        "afpr": summary.average_first_page_rank,
        "tgrm": summary.total_grid_rank_mean,
        "tss": summary.top_spot_share,
    }


def to_local_search_payload(results: List[LocalSearchResult]) -> List[Dict[str, Any]]:
    return [
        {
            "position": result.position,
            "title": result.title,
            "url": result.url,
            "description": result.description,
            "domain": result.domain,
            "type": result.type,
            "rating": result.rating,
            "reviewsCount": result.reviews_count,
            "address": result.address,
            "phone": result.phone,
        }
        for result in results
    ]
