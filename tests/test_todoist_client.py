import json

import httpx
import pytest

from thinktask.errors import RemoteCallError
from thinktask.schemas import ActionDescriptor, ExecutionResult
from thinktask.todoist_client import (
    build_url,
    execute_action,
    fetch_endpoint,
    fetch_preparation_data,
    normalize_endpoint_names,
    validate_api_key,
)

API_KEY = "todoist-test-key"


def test_build_url_joins_base_and_endpoint(monkeypatch):
    monkeypatch.setenv("TODOIST_API_URL", "https://api.example.com/rest/v2/")
    assert build_url("/tasks/1") == "https://api.example.com/rest/v2/tasks/1"
    assert build_url("projects") == "https://api.example.com/rest/v2/projects"


def test_normalize_endpoint_names():
    assert normalize_endpoint_names(["/projects", "sections/", " ", "projects", "/tasks"]) == [
        "projects",
        "sections",
        "tasks",
    ]


def test_post_body_is_sent_as_json_with_resolved_tokens(todoist, http):
    todoist.add("POST", "tasks", {"id": "1"})
    store = {"p1": ExecutionResult(success=True, data={"id": "999"})}
    descriptor = ActionDescriptor(
        id="t1",
        endpoint="tasks",
        method="POST",
        body={"content": "Pack", "project_id": "{p1.id}", "labels": ["trip"]},
    )

    assert execute_action(descriptor, API_KEY, store, client=http) == {"id": "1"}

    request = todoist.requests[0]
    assert request.headers["Content-Type"] == "application/json"
    assert json.loads(request.content) == {"content": "Pack", "project_id": "999", "labels": ["trip"]}
    assert request.url.query == b""


@pytest.mark.parametrize("method", ["DELETE", "GET"])
def test_query_methods_send_body_as_parameters(todoist, http, method):
    todoist.add(method, "tasks/7", status=204)
    descriptor = ActionDescriptor(id="d", endpoint="tasks/7", method=method, body={"reason": "done", "count": 2})

    assert execute_action(descriptor, API_KEY, {}, client=http) is None

    request = todoist.requests[0]
    assert request.method == method
    assert dict(request.url.params) == {"reason": "done", "count": "2"}
    assert request.content == b""


@pytest.mark.parametrize("method", ["POST", "PUT", "PATCH"])
def test_payload_methods_send_body_as_json(todoist, http, method):
    todoist.add(method, "tasks/7", {"id": "7"})
    descriptor = ActionDescriptor(id="u", endpoint="tasks/7", method=method, body={"content": "Renamed", "priority": 3})

    execute_action(descriptor, API_KEY, {}, client=http)

    request = todoist.requests[0]
    assert request.method == method
    assert json.loads(request.content) == {"content": "Renamed", "priority": 3}
    assert request.url.query == b""


def test_get_body_becomes_query_parameters(todoist, http):
    todoist.add("GET", "tasks", [])
    descriptor = ActionDescriptor(
        id="q",
        endpoint="tasks",
        method="GET",
        body={"project_id": "5", "ids": [1, 2], "label": None, "active": True},
    )

    execute_action(descriptor, API_KEY, {}, client=http)

    params = todoist.requests[0].url.params
    assert params["project_id"] == "5"
    assert params["ids"] == "[1,2]"
    assert params["active"] == "true"
    assert "label" not in params
    assert todoist.requests[0].content == b""


def test_error_status_raises_remote_call_error(todoist, http):
    todoist.add("POST", "tasks/1/close", status=404, text="Task not found")
    descriptor = ActionDescriptor(id="c", endpoint="tasks/1/close", method="POST")

    with pytest.raises(RemoteCallError) as exc_info:
        execute_action(descriptor, API_KEY, {}, client=http)

    error = exc_info.value
    assert error.status_code == 404
    assert error.endpoint == "tasks/1/close"
    assert error.response_text == "Task not found"
    assert str(error) == "Request failed with status code 404 (POST tasks/1/close): Task not found"


def test_invalid_json_response_raises(todoist, http):
    todoist.add("GET", "projects", status=200, text="<html>oops</html>")

    with pytest.raises(RemoteCallError, match="Invalid JSON response from projects"):
        fetch_endpoint("/projects", API_KEY, client=http)


def test_transport_error_raises_remote_call_error():
    def refuse(request):
        raise httpx.ConnectError("connection refused", request=request)

    with httpx.Client(transport=httpx.MockTransport(refuse)) as client:
        with pytest.raises(RemoteCallError, match="GET projects failed: connection refused") as exc_info:
            fetch_endpoint("projects", API_KEY, client=client)

    assert exc_info.value.status_code is None


def test_validate_api_key(todoist, http):
    todoist.add("GET", "projects", [{"id": "1", "name": "Inbox"}])

    assert validate_api_key(API_KEY, client=http) is True
    assert todoist.requests[0].headers["Authorization"] == f"Bearer {API_KEY}"


def test_validate_api_key_rejected(todoist, http):
    todoist.add("GET", "projects", status=401, text="Unauthorized")

    assert validate_api_key("wrong", client=http) is False


def test_validate_blank_key_makes_no_request(todoist, http):
    assert validate_api_key("", client=http) is False
    assert validate_api_key("   ", client=http) is False
    assert todoist.requests == []


def test_prefetch_labels_blocks_in_requested_order(todoist, http):
    todoist.add("GET", "projects", [{"id": "1", "name": "Inbox"}])
    todoist.add("GET", "sections", [])

    text = fetch_preparation_data(["/sections", "/projects", "sections"], API_KEY, client=http)

    assert text == (
        "### sections\n[]\n\n"
        "### projects\n" + json.dumps([{"id": "1", "name": "Inbox"}], indent=2)
    )
    assert sorted(todoist.paths()) == [("GET", "projects"), ("GET", "sections")]


def test_prefetch_skips_failed_endpoints(todoist, http):
    todoist.add("GET", "projects", [{"id": "1"}])
    todoist.add("GET", "labels", status=500, text="down")

    text = fetch_preparation_data(["/labels", "/projects"], API_KEY, client=http, max_workers=2)

    assert text.startswith("### projects\n")
    assert "labels" not in text


def test_prefetch_of_nothing_makes_no_request(todoist):
    assert fetch_preparation_data([], API_KEY) == ""
    assert todoist.requests == []


@pytest.mark.parametrize("endpoint", ["tasks\x00/x", "tasks\n", "sec\ttions"])
def test_unbuildable_url_raises_remote_call_error(todoist, http, endpoint):
    descriptor = ActionDescriptor(id="bad", endpoint=endpoint, method="POST")

    with pytest.raises(RemoteCallError, match="failed") as exc_info:
        execute_action(descriptor, API_KEY, {}, client=http)

    assert exc_info.value.status_code is None
    assert todoist.requests == []


def test_prefetch_skips_unbuildable_endpoint(todoist, http, log_events):
    todoist.add("GET", "projects", [{"id": "1"}])

    text = fetch_preparation_data(["projects", "sec\x00tions"], API_KEY, client=http)

    assert text == "### projects\n" + json.dumps([{"id": "1"}], indent=2)
    skipped = [e for e in log_events if e["event"] == "prefetch_endpoint_failed"]
    assert [e["endpoint"] for e in skipped] == ["sec\x00tions"]
