import json

import httpx
import pytest
from structlog.testing import capture_logs

from thinktask import todoist_client

BASE_URL = "https://todoist.test/rest/v2"


class FakeTodoist:
    """In-memory stand-in for the Todoist REST API, served through httpx.MockTransport."""

    def __init__(self):
        self.routes = {}
        self.requests = []

    def add(self, method, path, payload=None, status=200, text=None):
        """Register a response. payload may be a callable taking the request."""
        self.routes[(method, path)] = (status, payload, text)

    def handler(self, request):
        self.requests.append(request)
        path = request.url.path.split("/rest/v2/", 1)[-1]
        route = self.routes.get((request.method, path))
        if route is None:
            return httpx.Response(404, text=f"No route for {request.method} {path}")

        status, payload, text = route
        if callable(payload):
            payload = payload(request)
        if text is not None:
            return httpx.Response(status, text=text)
        if payload is None:
            return httpx.Response(status)
        return httpx.Response(status, json=payload)

    def client(self):
        return httpx.Client(transport=httpx.MockTransport(self.handler))

    def paths(self):
        return [(r.method, r.url.path.split("/rest/v2/", 1)[-1]) for r in self.requests]

    def json_bodies(self):
        return [json.loads(r.content) if r.content else None for r in self.requests]


def echo(extra=None):
    """Route payload that answers with the request body plus extra fields."""
    def respond(request):
        body = json.loads(request.content) if request.content else {}
        return {**body, **(extra or {})}
    return respond


@pytest.fixture(autouse=True)
def _isolated_env(monkeypatch):
    """Point the client at the fake API and clear credentials from the environment."""
    monkeypatch.setenv("TODOIST_API_URL", BASE_URL)
    for key in (
        "TODOIST_API_TOKEN",
        "ANTHROPIC_API_KEY",
        "OPENAI_API_KEY",
        "THINKTASK_STRICT_REFERENCES",
        "THINKTASK_PREFETCH_WORKERS",
    ):
        monkeypatch.delenv(key, raising=False)
    yield


@pytest.fixture
def todoist(monkeypatch):
    """Fake Todoist API; code that opens its own client gets one bound to it."""
    fake = FakeTodoist()
    monkeypatch.setattr(todoist_client, "_get_client", fake.client)
    return fake


@pytest.fixture
def http(todoist):
    with todoist.client() as client:
        yield client


@pytest.fixture(autouse=True)
def log_events():
    """Capture structlog events so nothing is printed to stdout during tests."""
    with capture_logs() as events:
        yield events
