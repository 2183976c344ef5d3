import pytest
import requests

from geogrid.core.models import NOT_FOUND, RankLookupError
from geogrid.vendors import dataforseo

AUTH = ("user@example.com", "secret")


class DummyResponse:
    def __init__(self, status_code=200, payload=None):
        self.status_code = status_code
        self._payload = payload or {}

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"http error {self.status_code}")

    def json(self):
        return self._payload


class DummySession:
    """Routes requests by URL suffix; the last queued response for a route repeats."""

    def __init__(self):
        self.routes = {}
        self.calls = []

    def route(self, suffix, *responses):
        self.routes[suffix] = list(responses)

    def _dispatch(self, method, url, **kwargs):
        self.calls.append((method, url, kwargs))
        for suffix, responses in self.routes.items():
            if url.endswith(suffix):
                response = responses[0] if len(responses) == 1 else responses.pop(0)
                if isinstance(response, Exception):
                    raise response
                return response
        raise AssertionError(f"unexpected request {method} {url}")

    def get(self, url, **kwargs):
        return self._dispatch("GET", url, **kwargs)

    def post(self, url, **kwargs):
        return self._dispatch("POST", url, **kwargs)


def _task_payload(status_message="Ok.", items=None, task_id="task-1"):
    result = [{"items": items}] if items is not None else None
    return {
        "status_code": 20000,
        "tasks": [{"id": task_id, "status_code": 20000, "status_message": status_message, "result": result}],
    }


@pytest.fixture(autouse=True)
def patch_session(monkeypatch):
    session = DummySession()
    monkeypatch.setattr(dataforseo, "_SESSION", session)
    monkeypatch.setattr(dataforseo.time, "sleep", lambda _: None)
    return session


@pytest.mark.parametrize(
    "location, code",
    [
        ("London", 1006894),
        ("new york", 1022300),
        ("Downtown Seattle, WA", 1024497),
        ("Nowhere", 2840),
        ("", 2840),
    ],
)
def test_get_location_code(location, code):
    assert dataforseo.get_location_code(location) == code


def test_build_task_payload_uses_coordinates_when_given():
    [task] = dataforseo.build_task_payload("plumber", "37.774900,-122.419400")
    assert task["location_coordinate"] == "37.774900,-122.419400,5"
    assert "location_code" not in task
    assert task["depth"] == 20
    assert task["language_code"] == "en"

    [task] = dataforseo.build_task_payload("plumber", "San Francisco")
    assert task["location_code"] == 1023191
    assert "location_coordinate" not in task


def test_create_search_task_success(patch_session):
    patch_session.route("/task_post", DummyResponse(payload=_task_payload(task_id="abc-123")))

    task_id = dataforseo.create_search_task("plumber", "Boston", AUTH)

    assert task_id == "abc-123"
    method, url, kwargs = patch_session.calls[0]
    assert method == "POST"
    assert url.endswith("/serp/google/organic/task_post")
    assert kwargs["auth"] == AUTH
    assert kwargs["timeout"] == 10
    assert kwargs["json"][0]["keyword"] == "plumber"
    assert kwargs["json"][0]["location_code"] == 1019026


def test_create_search_task_api_error(patch_session):
    patch_session.route(
        "/task_post", DummyResponse(payload={"status_code": 40100, "status_message": "You are not authorized"})
    )
    with pytest.raises(dataforseo.DataForSEOError):
        dataforseo.create_search_task("plumber", "Boston", AUTH)


def test_check_task_ready_from_ready_list(patch_session):
    patch_session.route(
        "/tasks_ready",
        DummyResponse(payload={"status_code": 20000, "tasks": [{"result": [{"id": "other"}, {"id": "task-1"}]}]}),
    )
    assert dataforseo.check_task_ready("task-1", AUTH) is True


def test_check_task_ready_falls_back_to_task_get(patch_session):
    patch_session.route("/tasks_ready", DummyResponse(payload={"status_code": 20000, "tasks": []}))
    patch_session.route("/task_get/task-1", DummyResponse(payload=_task_payload(status_message="Task In Progress.")))
    assert dataforseo.check_task_ready("task-1", AUTH) is False


def test_wait_for_task_completion_times_out(monkeypatch, patch_session):
    clock = {"now": 0.0}

    def fake_sleep(seconds):
        clock["now"] += seconds

    monkeypatch.setattr(dataforseo.time, "sleep", fake_sleep)
    monkeypatch.setattr(dataforseo.time, "monotonic", lambda: clock["now"])
    patch_session.route("/tasks_ready", DummyResponse(payload={"status_code": 20000, "tasks": []}))
    patch_session.route("/task_get/task-1", DummyResponse(payload=_task_payload(status_message="Task In Progress.")))

    assert dataforseo.wait_for_task_completion("task-1", AUTH, timeout=6) is False
    assert clock["now"] == pytest.approx(6.0)


def test_get_task_results_retries_while_in_progress(patch_session):
    patch_session.route(
        "/task_get/task-1",
        DummyResponse(payload=_task_payload(status_message="Task In Progress.")),
        DummyResponse(payload=_task_payload(items=[{"title": "Acme"}])),
    )

    items = dataforseo.get_task_results("task-1", AUTH)

    assert items == [{"title": "Acme"}]
    assert len(patch_session.calls) == 2


def test_get_task_results_gives_up_after_retries(patch_session):
    patch_session.route("/task_get/task-1", DummyResponse(payload=_task_payload(status_message="Task In Progress.")))

    with pytest.raises(dataforseo.DataForSEOError):
        dataforseo.get_task_results("task-1", AUTH)

    assert len(patch_session.calls) == dataforseo.RESULT_MAX_RETRIES + 1


def test_get_task_results_retries_timeouts(patch_session):
    patch_session.route(
        "/task_get/task-1",
        requests.Timeout("read timed out"),
        DummyResponse(payload=_task_payload(items=[])),
    )
    assert dataforseo.get_task_results("task-1", AUTH) == []


def test_find_business_ranking_end_to_end(patch_session):
    items = [
        {"type": "organic", "rank_group": 1, "title": "Fast Fix Plumbing"},
        {"type": "organic", "rank_group": 2, "title": "Acme Plumbing | San Francisco"},
    ]
    patch_session.route("/task_post", DummyResponse(payload=_task_payload()))
    patch_session.route(
        "/tasks_ready", DummyResponse(payload={"status_code": 20000, "tasks": [{"result": [{"id": "task-1"}]}]})
    )
    patch_session.route("/task_get/task-1", DummyResponse(payload=_task_payload(items=items)))

    rank = dataforseo.find_business_ranking(
        "plumber", "Acme Plumbing", "San Francisco", login=AUTH[0], password=AUTH[1]
    )

    assert rank == 2


def test_find_business_ranking_not_found_for_empty_results(patch_session):
    patch_session.route("/task_post", DummyResponse(payload=_task_payload()))
    patch_session.route(
        "/tasks_ready", DummyResponse(payload={"status_code": 20000, "tasks": [{"result": [{"id": "task-1"}]}]})
    )
    patch_session.route("/task_get/task-1", DummyResponse(payload=_task_payload(items=[])))

    rank = dataforseo.find_business_ranking("plumber", "Acme", "Boston", login=AUTH[0], password=AUTH[1])

    assert rank == NOT_FOUND


def test_find_business_ranking_wraps_http_errors(patch_session):
    patch_session.route("/task_post", DummyResponse(status_code=500))

    with pytest.raises(RankLookupError):
        dataforseo.find_business_ranking("plumber", "Acme", "Boston", login=AUTH[0], password=AUTH[1])


def test_test_credentials(patch_session):
    patch_session.route("/status", DummyResponse(status_code=200))
    assert dataforseo.test_credentials(*AUTH) == (True, "Successfully connected to DataForSEO API")

    patch_session.route("/status", DummyResponse(status_code=401))
    success, message = dataforseo.test_credentials(*AUTH)
    assert success is False
    assert "Authentication failed" in message

    patch_session.route("/status", requests.ConnectionError("refused"))
    success, message = dataforseo.test_credentials(*AUTH)
    assert success is False
    assert message.startswith("Connection error")
