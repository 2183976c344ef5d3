"""SerpAPI Google Maps helpers used as an alternate ranking provider."""

from __future__ import annotations

import logging
import random
import time
from typing import Any, Dict, Iterable, List, Optional

from serpapi import GoogleSearch

from geogrid.core.geo import parse_coordinate_context
from geogrid.core.matching import match_business_position
from geogrid.core.models import NOT_FOUND, LocalSearchResult, RankLookupError

logger = logging.getLogger(__name__)

RETRY_LIMIT = 2
RETRY_DELAY_SECONDS = 1.2
MAP_ZOOM = 14


def build_serpapi_params(keyword: str, location: str, api_key: str) -> Dict[str, Any]:
    """Construct SerpAPI request parameters for the Google Maps engine."""
    if not keyword or not keyword.strip():
        raise ValueError("Keyword must be provided for SerpAPI lookups.")

    params: Dict[str, Any] = {
        "engine": "google_maps",
        "api_key": api_key,
        "type": "search",
    }
    point = parse_coordinate_context(location)
    if point is not None:
        params["q"] = keyword.strip()
        params["ll"] = f"@{point.latitude:.6f},{point.longitude:.6f},{MAP_ZOOM}z"
    elif location and location.strip():
        params["q"] = f"{keyword.strip()} in {location.strip()}"
    else:
        params["q"] = keyword.strip()
    return params


def fetch_from_serpapi(params: Dict[str, Any]) -> Dict[str, Any]:
    """Call SerpAPI Google Maps and return the raw JSON response with retry logic.

    SerpAPI charges per request; every attempt is logged so usage can be
    audited against the grid runs that triggered it.
    """
    attempt = 0
    while True:
        attempt += 1
        try:
            logger.info("Calling SerpAPI (attempt %s) for q=%s ll=%s", attempt, params.get("q"), params.get("ll"))
            data = GoogleSearch(params).get_dict()
            if not data:
                raise ValueError("SerpAPI returned an empty payload.")
            if "error" in data:
                raise RuntimeError(f"SerpAPI returned an error response: {data.get('error') or data}")
            return data
        except Exception as exc:  # noqa: BLE001
            logger.warning("SerpAPI request failed (attempt %s/%s): %s", attempt, RETRY_LIMIT + 1, exc)
            if attempt > RETRY_LIMIT:
                logger.error("SerpAPI request exhausted retries for q=%s", params.get("q"))
                raise RankLookupError(f"SerpAPI lookup failed: {exc}") from exc
            time.sleep(RETRY_DELAY_SECONDS + random.uniform(0, 0.8))


def parse_serpapi_maps(data: Optional[Dict[str, Any]]) -> List[LocalSearchResult]:
    """Extract SerpAPI local results into LocalSearchResult objects in ranking order."""
    if not data:
        return []

    items = list(_extract_items(data))
    if not items:
        logger.warning("SerpAPI response missing local_results iterable. keys=%s", list(data.keys())[:10])
        place_results = data.get("place_results")
        if isinstance(place_results, list):
            items = place_results
        elif isinstance(place_results, dict):
            items = [place_results]

    results: List[LocalSearchResult] = []
    for index, raw in enumerate(items, start=1):
        if not isinstance(raw, dict):
            continue

        title = (raw.get("title") or raw.get("name") or "").strip()
        if not title:
            continue

        position = _safe_int(raw.get("position"))
        results.append(
            LocalSearchResult(
                position=position if position and position > 0 else index,
                title=title,
                url=_strip_or_none(raw.get("website")) or "",
                description=_strip_or_none(raw.get("description")) or "",
                type=_strip_or_none(raw.get("type")) or "",
                rating=_safe_float(raw.get("rating")),
                reviews_count=_safe_int(raw.get("reviews_count") or raw.get("reviews")),
                address=_strip_or_none(raw.get("address")),
                phone=_strip_or_none(raw.get("phone")),
                raw_snapshot=raw,
            )
        )
    return results


def find_business_ranking(keyword: str, business_name: str, location: str, *, api_key: str) -> int:
    """Return the business's Google Maps position for keyword near location, or NOT_FOUND."""
    params = build_serpapi_params(keyword, location, api_key)
    results = parse_serpapi_maps(fetch_from_serpapi(params))
    if not results:
        logger.info("No local results returned from SerpAPI for q=%s", params["q"])
        return NOT_FOUND
    return match_business_position(results, business_name)


def _extract_items(data: Dict[str, Any]) -> Iterable[Any]:
    """SerpAPI sometimes returns local_results as a list or nested dict."""
    local_results = data.get("local_results")
    if isinstance(local_results, list):
        return local_results
    if isinstance(local_results, dict):
        for key in ("places", "results", "local_results"):
            maybe = local_results.get(key)
            if isinstance(maybe, list):
                return maybe
    return []


def _strip_or_none(value: Any) -> Optional[str]:
    if value is None:
        return None
    value_str = str(value).strip()
    return value_str or None


def _safe_float(value: Any) -> Optional[float]:
    try:
        if value is None:
            return None
        return float(value)
    except (TypeError, ValueError):
        return None


def _safe_int(value: Any) -> Optional[int]:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return int(value)
    if isinstance(value, str):
        digits = "".join(ch for ch in value if ch.isdigit())
        if digits:
            return int(digits)
    return None
