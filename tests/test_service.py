import json

import pytest

from conftest import echo
from thinktask import service
from thinktask.ai_providers import ModelProvider
from thinktask.schemas import ActionDescriptor, ExecutionResult, ToolCall

PLAN = [
    {"id": "p1", "endpoint": "projects", "method": "POST", "body": {"name": "Rome trip"}},
    {
        "id": "t1",
        "endpoint": "tasks",
        "method": "POST",
        "body": {"content": "Book hotel", "project_id": "{p1.id}", "due_string": "tomorrow"},
    },
]


class ScriptedProvider(ModelProvider):
    name = "ScriptedProvider"

    def __init__(self, responses):
        super().__init__("scripted")
        self.responses = list(responses)
        self.prompts = []

    def _complete(self, prompt):
        self.prompts.append(prompt)
        return self.responses.pop(0)


@pytest.fixture
def provider(monkeypatch):
    scripted = ScriptedProvider(['["/projects"]', json.dumps(PLAN)])
    keys = {}

    def fake_create_provider(anthropic_api_key=None, openai_api_key=None):
        keys.update(anthropic=anthropic_api_key, openai=openai_api_key)
        return scripted

    monkeypatch.setattr(service, "create_provider", fake_create_provider)
    scripted.keys = keys
    return scripted


def call(**arguments):
    return service.handle_tool_call({"name": service.TOOL_NAME, "arguments": arguments})


def test_plan_executes_and_summarizes(todoist, provider):
    todoist.add("GET", "projects", [{"id": "1", "name": "Inbox"}])
    todoist.add("POST", "projects", {"id": "999", "name": "Rome trip"})
    todoist.add("POST", "tasks", echo({"id": "5001"}))

    result = call(instruction="Plan my trip to Rome", todoist_api_key="td", anthropic_api_key="an")

    assert result.is_error is False
    assert result.content == (
        "✅ **Plan created successfully!** Successfully created 1 project, 1 task.\n"
        "📁 Rome trip\n"
        "✅ Book hotel - tomorrow"
    )
    assert todoist.paths() == [
        ("GET", "projects"),
        ("GET", "projects"),
        ("POST", "projects"),
        ("POST", "tasks"),
    ]
    assert todoist.json_bodies()[3]["project_id"] == "999"
    assert '"name": "Inbox"' in provider.prompts[1]
    assert provider.keys == {"anthropic": "an", "openai": None}


def test_keys_fall_back_to_environment(todoist, provider, monkeypatch):
    monkeypatch.setenv("TODOIST_API_TOKEN", "env-td")
    monkeypatch.setenv("OPENAI_API_KEY", "env-oa")
    todoist.add("GET", "projects", [])
    todoist.add("POST", "projects", {"id": "1", "name": "Rome trip"})
    todoist.add("POST", "tasks", echo({"id": "2"}))

    result = call(instruction="Plan my trip")

    assert result.is_error is False
    assert todoist.requests[0].headers["Authorization"] == "Bearer env-td"
    assert provider.keys == {"anthropic": None, "openai": "env-oa"}


def test_failure_reports_completed_items(todoist, provider):
    todoist.add("GET", "projects", [])
    todoist.add("POST", "projects", {"id": "999", "name": "Rome trip"})
    todoist.add("POST", "tasks", status=400, text="bad request")

    result = call(instruction="Plan my trip", todoist_api_key="td", anthropic_api_key="an")

    assert result.is_error is True
    assert result.content == (
        "❌ Error: Planning failed: Error executing action t1: "
        "Request failed with status code 400 (POST tasks): bad request\n"
        "Completed before the failure:\n"
        "📁 Rome trip"
    )


def test_missing_todoist_key(todoist, provider):
    result = call(instruction="Plan", anthropic_api_key="an")

    assert result.is_error is True
    assert result.content == service.NO_TODOIST_KEY_MESSAGE
    assert todoist.requests == []


def test_missing_ai_keys(todoist, provider):
    result = call(instruction="Plan", todoist_api_key="td")

    assert result.is_error is True
    assert result.content == service.NO_AI_KEY_MESSAGE


def test_invalid_todoist_key(todoist, provider):
    todoist.add("GET", "projects", status=401, text="Unauthorized")

    result = call(instruction="Plan", todoist_api_key="bad", anthropic_api_key="an")

    assert result.content == "❌ Error: Invalid Todoist API key provided"
    assert provider.prompts == []


def test_unparseable_plan(todoist, monkeypatch):
    todoist.add("GET", "projects", [])
    monkeypatch.setattr(
        service,
        "create_provider",
        lambda anthropic_api_key=None, openai_api_key=None: ScriptedProvider(["[]", "I cannot do that"]),
    )

    result = call(instruction="Plan", todoist_api_key="td", anthropic_api_key="an")

    assert result.is_error is True
    assert result.content.startswith("❌ Error: Planning failed: Could not parse JSON")


def test_empty_instruction():
    result = call(instruction="   ")

    assert result.is_error is True
    assert result.content == "❌ Error: Instruction is required and cannot be empty"


def test_unknown_tool():
    result = service.handle_tool_call(ToolCall(name="delete_everything"))

    assert result.to_wire() == {"content": "❌ Error: Unknown tool: delete_everything", "isError": True}


def test_tools_definition():
    (tool,) = service.get_tools_definition()

    assert tool["name"] == "plan_intelligent_tasks"
    assert tool["inputSchema"]["required"] == ["instruction"]
    assert set(tool["inputSchema"]["properties"]) == {
        "instruction",
        "todoist_api_key",
        "anthropic_api_key",
        "openai_api_key",
    }


def test_summary_counts_successful_creations():
    actions = [
        ActionDescriptor(id="p", endpoint="projects", method="POST"),
        ActionDescriptor(id="a", endpoint="tasks", method="POST"),
        ActionDescriptor(id="b", endpoint="/tasks", method="POST"),
        ActionDescriptor(id="c", endpoint="tasks/3/close", method="POST"),
        ActionDescriptor(id="l", endpoint="labels", method="POST"),
    ]
    results = {
        "p": ExecutionResult(success=True, data={"id": "1"}),
        "a": ExecutionResult(success=True, data={"id": "2"}),
        "b": ExecutionResult(success=True, data={"id": "3"}),
        "c": ExecutionResult(success=True, data=None),
        "l": ExecutionResult(success=False, error="x"),
    }

    assert service.generate_summary(actions, results) == "Successfully created 1 project, 2 tasks."
    assert service.generate_summary([], {}) == "No items were created."


def test_created_items_use_response_due_and_default_emoji():
    actions = [
        ActionDescriptor(id="t", endpoint="tasks", method="POST", body={"due_date": "2025-05-15"}),
        ActionDescriptor(id="c", endpoint="comments", method="POST"),
        ActionDescriptor(id="x", endpoint="tasks/1/close", method="POST"),
    ]
    results = {
        "t": ExecutionResult(success=True, data={"content": "Venue", "due": {"string": "May 15", "date": "2025-05-15"}}),
        "c": ExecutionResult(success=True, data={"id": "9"}),
        "x": ExecutionResult(success=True, data=None),
    }

    assert service.format_created_items(results, actions) == "✅ Venue - May 15\n📋 Unnamed item"


def test_health_and_info():
    assert service.health_status()["status"] == "healthy"
    assert service.service_info()["endpoints"]["tools"] == "/api/mcp/tools"


def test_unbuildable_endpoint_becomes_error_result(todoist, monkeypatch):
    todoist.add("GET", "projects", [])
    plan = [{"id": "t1", "endpoint": "tasks\n", "method": "POST", "body": {"content": "x"}}]
    monkeypatch.setattr(
        service,
        "create_provider",
        lambda anthropic_api_key=None, openai_api_key=None: ScriptedProvider(["[]", json.dumps(plan)]),
    )

    result = call(instruction="Plan", todoist_api_key="td", anthropic_api_key="an")

    assert result.is_error is True
    assert result.content.startswith("❌ Error: Planning failed: Error executing action t1: POST tasks\n failed")
