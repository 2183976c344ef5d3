"""Client utilities for the DataForSEO SERP API (task-based Google organic search)."""

import logging
import time
from typing import Any, Dict, List, Optional, Tuple

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from geogrid.core.geo import parse_coordinate_context
from geogrid.core.matching import match_business_position
from geogrid.core.models import NOT_FOUND, LocalSearchResult, RankLookupError
from geogrid.etl.transform import to_local_search_result

logger = logging.getLogger(__name__)

_BASE_URL = "https://api.dataforseo.com/v3"
_OK_STATUS = 20000
_TASK_IN_PROGRESS = "Task In Progress."
_TASK_OK = "Ok."

DEFAULT_LOCATION_CODE = 2840  # United States
REQUEST_TIMEOUT = 10
POLL_INTERVAL_SECONDS = 2.0
RESULT_MAX_RETRIES = 3
IN_PROGRESS_DELAY_SECONDS = 5.0
TIMEOUT_RETRY_DELAY_SECONDS = 2.0
SEARCH_DEPTH = 20
COORDINATE_RADIUS_KM = 5

LOCATION_CODES: Dict[str, int] = {
    "United States": 2840,
    "New York": 1022300,
    "Los Angeles": 1022462,
    "Chicago": 1016367,
    "San Francisco": 1023191,
    "Miami": 1020275,
    "Dallas": 1020584,
    "Houston": 1020432,
    "Atlanta": 1015212,
    "Boston": 1019026,
    "Seattle": 1024497,
    "Denver": 1019634,
    "Phoenix": 1022135,
    "Las Vegas": 1021339,
    "UK": 2826,
    "London": 1006894,
    "Canada": 2124,
    "Toronto": 1010223,
    "Australia": 2036,
    "Sydney": 1007402,
}

Auth = Tuple[str, str]


class DataForSEOError(RankLookupError):
    """Raised when DataForSEO returns a non-successful response."""


def _build_session() -> requests.Session:
    session = requests.Session()
    retries = Retry(
        total=3,
        backoff_factor=1,
        status_forcelist=(500, 502, 503, 504),
        allowed_methods=("POST", "GET"),
    )
    session.mount("https://", HTTPAdapter(max_retries=retries))
    session.headers.update({"Content-Type": "application/json"})
    return session


_SESSION = _build_session()


def _check_payload(payload: Dict[str, Any]) -> Dict[str, Any]:
    status_code = payload.get("status_code", _OK_STATUS)
    if status_code != _OK_STATUS:
        logger.error("DataForSEO error: status=%s message=%s", status_code, payload.get("status_message"))
        raise DataForSEOError(f"DataForSEO error {status_code}: {payload.get('status_message', 'Unknown')}")
    return payload


def _first_task(payload: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    tasks = payload.get("tasks") or []
    return tasks[0] if tasks else None


def get_location_code(location: str) -> int:
    """Resolve a location name to a DataForSEO location code, defaulting to the US."""
    if location in LOCATION_CODES:
        return LOCATION_CODES[location]

    lowered = location.strip().lower()
    for name, code in LOCATION_CODES.items():
        if name.lower() == lowered:
            return code

    if lowered:
        for name, code in LOCATION_CODES.items():
            if lowered in name.lower() or name.lower() in lowered:
                return code

    return DEFAULT_LOCATION_CODE


def build_task_payload(keyword: str, location: str) -> List[Dict[str, Any]]:
    task: Dict[str, Any] = {
        "keyword": keyword,
        "language_code": "en",
        "device": "desktop",
        "os": "windows",
        "depth": SEARCH_DEPTH,
    }
    point = parse_coordinate_context(location)
    if point is not None:
        task["location_coordinate"] = f"{point.latitude:.6f},{point.longitude:.6f},{COORDINATE_RADIUS_KM}"
    else:
        task["location_code"] = get_location_code(location)
    return [task]


def test_credentials(login: str, password: str) -> Tuple[bool, str]:
    try:
        response = _SESSION.get(f"{_BASE_URL}/status", auth=(login, password), timeout=REQUEST_TIMEOUT)
    except requests.RequestException as exc:
        logger.error("DataForSEO credential check failed: %s", exc)
        return False, f"Connection error: {exc}"

    if response.status_code == 401:
        return False, "Authentication failed. Please check your DataForSEO credentials."
    if response.status_code != 200:
        return False, f"API call failed with status: {response.status_code}"
    return True, "Successfully connected to DataForSEO API"


def create_search_task(keyword: str, location: str, auth: Auth) -> str:
    logger.info("Creating search task for keyword=%r location=%r", keyword, location)
    response = _SESSION.post(
        f"{_BASE_URL}/serp/google/organic/task_post",
        json=build_task_payload(keyword, location),
        auth=auth,
        timeout=REQUEST_TIMEOUT,
    )
    response.raise_for_status()
    task = _first_task(_check_payload(response.json()))
    if not task or not task.get("id"):
        raise DataForSEOError("No task ID found in task_post response")
    return task["id"]


def check_task_ready(task_id: str, auth: Auth) -> bool:
    response = _SESSION.get(f"{_BASE_URL}/serp/google/organic/tasks_ready", auth=auth, timeout=REQUEST_TIMEOUT)
    response.raise_for_status()
    for task in _check_payload(response.json()).get("tasks") or []:
        for ready in task.get("result") or []:
            if ready.get("id") == task_id:
                return True

    response = _SESSION.get(
        f"{_BASE_URL}/serp/google/organic/task_get/{task_id}", auth=auth, timeout=REQUEST_TIMEOUT
    )
    response.raise_for_status()
    task = _first_task(response.json())
    return bool(task and task.get("status_message") == _TASK_OK and task.get("result"))


def wait_for_task_completion(task_id: str, auth: Auth, timeout: float = 20.0) -> bool:
    logger.info("Waiting up to %.0fs for task %s", timeout, task_id)
    started = time.monotonic()
    deadline = started + timeout
    while time.monotonic() < deadline:
        try:
            if check_task_ready(task_id, auth):
                logger.info("Task %s completed after %.1fs", task_id, time.monotonic() - started)
                return True
        except requests.RequestException as exc:
            logger.warning("Error checking task %s: %s", task_id, exc)
        time.sleep(POLL_INTERVAL_SECONDS)

    logger.warning("Task %s not ready after %.0fs", task_id, timeout)
    return False


def get_task_results(task_id: str, auth: Auth) -> List[Dict[str, Any]]:
    """Fetch SERP items for a finished task, retrying while it is still in progress."""
    attempt = 0
    while True:
        try:
            response = _SESSION.get(
                f"{_BASE_URL}/serp/google/organic/task_get/{task_id}", auth=auth, timeout=REQUEST_TIMEOUT
            )
        except requests.Timeout:
            if attempt >= RESULT_MAX_RETRIES:
                raise
            attempt += 1
            logger.warning("Timeout fetching task %s (attempt %d/%d)", task_id, attempt, RESULT_MAX_RETRIES)
            time.sleep(TIMEOUT_RETRY_DELAY_SECONDS)
            continue

        response.raise_for_status()
        task = _first_task(_check_payload(response.json()))
        if not task:
            raise DataForSEOError(f"task_get returned no task for {task_id}")

        status = task.get("status_message")
        if status == _TASK_OK:
            results = task.get("result") or []
            if not results:
                return []
            return results[0].get("items") or []

        if status == _TASK_IN_PROGRESS and attempt < RESULT_MAX_RETRIES:
            attempt += 1
            logger.info("Task %s still in progress (attempt %d/%d)", task_id, attempt, RESULT_MAX_RETRIES)
            time.sleep(IN_PROGRESS_DELAY_SECONDS)
            continue

        raise DataForSEOError(f"Task {task_id} did not complete: {status}")


def get_local_search_results(
    keyword: str, location: str, auth: Auth, task_timeout: float = 20.0
) -> List[LocalSearchResult]:
    task_id = create_search_task(keyword, location, auth)
    if not wait_for_task_completion(task_id, auth, timeout=task_timeout):
        logger.info("Fetching results for task %s despite readiness timeout", task_id)

    items = get_task_results(task_id, auth)
    logger.info("Retrieved %d results for task %s", len(items), task_id)
    return [to_local_search_result(item, index) for index, item in enumerate(items, start=1)]


def find_business_ranking(
    keyword: str,
    business_name: str,
    location: str,
    *,
    login: str,
    password: str,
    task_timeout: float = 20.0,
) -> int:
    """Return the business's organic position for keyword at location, or NOT_FOUND."""
    logger.info("Finding ranking for %r in %r with keyword %r", business_name, location, keyword)
    try:
        results = get_local_search_results(keyword, location, (login, password), task_timeout=task_timeout)
    except requests.RequestException as exc:
        raise RankLookupError(f"DataForSEO request failed: {exc}") from exc

    if not results:
        logger.info("No results returned from DataForSEO")
        return NOT_FOUND
    return match_business_position(results, business_name)
