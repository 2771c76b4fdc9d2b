"""
The plan_intelligent_tasks tool.

Glues the pipeline together for the HTTP, stdio and CLI front-ends:
1. Resolve credentials (arguments first, then environment)
2. Pre-flight check of the Todoist key
3. Ask the model which endpoints to prefetch, and fetch them
4. Ask the model for the action list
5. Execute the actions and summarize what was created

Errors never escape handle_tool_call(): they become error ToolResults.
"""

from datetime import datetime, timezone
from typing import Any, Dict, List, Mapping, Optional, Sequence, Union

import structlog

from thinktask.ai_providers import DEFAULT_ANTHROPIC_MODEL, create_provider
from thinktask.engine import execute_actions
from thinktask.errors import ActionExecutionError, ThinkTaskError, ToolCallError
from thinktask.planner import determine_required_fetches, parse_task
from thinktask.schemas import ActionDescriptor, ExecutionResult, PlanTasksArguments, ToolCall, ToolResult
from thinktask.todoist_client import client_scope, fetch_preparation_data, validate_api_key
from thinktask.utils import SERVICE_VERSION, get_optional_env

logger = structlog.get_logger(__name__)

TOOL_NAME = "plan_intelligent_tasks"
SERVICE_TITLE = "ThinkTask MCP Service"

NO_TODOIST_KEY_MESSAGE = (
    "⚠️ No Todoist API key provided. Please provide a todoist_api_key in the request "
    "or set the TODOIST_API_TOKEN environment variable."
)
NO_AI_KEY_MESSAGE = (
    "⚠️ No AI API key provided. Please provide either an anthropic_api_key or openai_api_key "
    "in the request, or set the ANTHROPIC_API_KEY or OPENAI_API_KEY environment variables."
)

ENDPOINT_EMOJI = {
    "projects": "📁",
    "sections": "📂",
    "tasks": "✅",
    "labels": "🏷️",
}
DEFAULT_EMOJI = "📋"

# Resource types counted in the summary, in display order
SUMMARY_RESOURCES = [
    ("projects", "project"),
    ("sections", "section"),
    ("tasks", "task"),
    ("labels", "label"),
]


def get_tools_definition() -> List[Dict[str, Any]]:
    """Tool list in MCP format."""
    return [
        {
            "name": TOOL_NAME,
            "description": (
                "Transform any natural language instruction into comprehensive Todoist projects, "
                "sections, and tasks with intelligent scheduling and organization. Supports both "
                "Anthropic Claude and OpenAI GPT models for AI-powered task planning."
            ),
            "inputSchema": {
                "type": "object",
                "properties": {
                    "instruction": {
                        "type": "string",
                        "description": (
                            "Natural language instruction describing what you want to accomplish. "
                            'Examples: "Plan my wedding for May 15", "Call mom tomorrow at 2pm"'
                        ),
                    },
                    "todoist_api_key": {
                        "type": "string",
                        "description": "Your Todoist API key (optional). Defaults to TODOIST_API_TOKEN.",
                    },
                    "anthropic_api_key": {
                        "type": "string",
                        "description": "Your Anthropic API key (optional). Defaults to ANTHROPIC_API_KEY.",
                    },
                    "openai_api_key": {
                        "type": "string",
                        "description": (
                            "Your OpenAI API key (optional). Defaults to OPENAI_API_KEY. "
                            "Used when no Anthropic key is available."
                        ),
                    },
                },
                "required": ["instruction"],
            },
        }
    ]


def handle_tool_call(tool_call: Union[ToolCall, Mapping[str, Any]]) -> ToolResult:
    """
    Dispatch a tool call and always return a ToolResult.

    Args:
        tool_call: ToolCall or a {"name": ..., "arguments": {...}} dict

    Returns:
        ToolResult; is_error is set when anything went wrong
    """
    try:
        call = tool_call if isinstance(tool_call, ToolCall) else ToolCall.model_validate(tool_call)

        if call.name != TOOL_NAME:
            raise ToolCallError(f"Unknown tool: {call.name}")

        return plan_intelligent_tasks(call.arguments)

    except (ThinkTaskError, ValueError) as e:
        logger.error("tool_execution_failed", error=str(e))
        return ToolResult(content=f"❌ Error: {e}", is_error=True)


def plan_intelligent_tasks(arguments: Mapping[str, Any]) -> ToolResult:
    """
    Run the whole instruction -> Todoist pipeline.

    Raises:
        ToolCallError: Empty instruction or invalid Todoist key
        ThinkTaskError: If planning or execution fails
    """
    args = PlanTasksArguments.model_validate(dict(arguments))

    instruction = args.instruction.strip()
    if not instruction:
        raise ToolCallError("Instruction is required and cannot be empty")

    todoist_api_key = args.todoist_api_key or get_optional_env("TODOIST_API_TOKEN")
    anthropic_api_key = args.anthropic_api_key or get_optional_env("ANTHROPIC_API_KEY")
    openai_api_key = args.openai_api_key or get_optional_env("OPENAI_API_KEY")

    if not todoist_api_key:
        return ToolResult(content=NO_TODOIST_KEY_MESSAGE, is_error=True)
    if not anthropic_api_key and not openai_api_key:
        return ToolResult(content=NO_AI_KEY_MESSAGE, is_error=True)

    with client_scope(None) as http:
        if not validate_api_key(todoist_api_key, client=http):
            raise ToolCallError("Invalid Todoist API key provided")

        try:
            provider = create_provider(anthropic_api_key, openai_api_key)

            endpoints = determine_required_fetches(instruction, provider)
            logger.info("prefetching", endpoints=endpoints)
            preparation_data = fetch_preparation_data(endpoints, todoist_api_key, client=http)

            actions = parse_task(instruction, preparation_data, provider)
            logger.info("executing_actions", count=len(actions))
            results = execute_actions(actions, todoist_api_key, client=http)

        except ActionExecutionError as e:
            message = f"Planning failed: {e}"
            completed = format_created_items(e.results or {}, actions)
            if completed:
                message += f"\nCompleted before the failure:\n{completed}"
            raise ThinkTaskError(message) from e

        except ThinkTaskError as e:
            raise ThinkTaskError(f"Planning failed: {e}") from e

    summary = generate_summary(actions, results)
    items = format_created_items(results, actions) or "No items created"
    return ToolResult(content=f"✅ **Plan created successfully!** {summary}\n{items}")


def format_created_items(
    results: Mapping[str, ExecutionResult],
    actions: Sequence[ActionDescriptor],
) -> str:
    """One "{emoji} {name}{ - due}" line per successful action with a payload."""
    items = []

    for action in actions:
        result = results.get(action.id)
        if result is None or not result.success or not result.data:
            continue

        emoji = ENDPOINT_EMOJI.get(_resource_of(action.endpoint), DEFAULT_EMOJI)
        name = _extract_name(result.data) or "Unnamed item"
        items.append(f"{emoji} {name}{_date_info(action, result.data)}")

    return "\n".join(items)


def generate_summary(
    actions: Sequence[ActionDescriptor],
    results: Mapping[str, ExecutionResult],
) -> str:
    """Count created projects, sections, tasks and labels."""
    counts = {resource: 0 for resource, _ in SUMMARY_RESOURCES}

    for action in actions:
        result = results.get(action.id)
        endpoint = action.endpoint.strip("/")
        if result is not None and result.success and endpoint in counts:
            counts[endpoint] += 1

    parts = []
    for resource, singular in SUMMARY_RESOURCES:
        count = counts[resource]
        if count > 0:
            parts.append(f"{count} {singular}{'s' if count > 1 else ''}")

    if not parts:
        return "No items were created."
    return f"Successfully created {', '.join(parts)}."


def service_info() -> Dict[str, Any]:
    """Static description of the service."""
    return {
        "name": "ThinkTask: Intelligent Todoist MCP Service",
        "description": "Transform any natural language instruction into perfect Todoist structure",
        "version": SERVICE_VERSION,
        "capabilities": [
            "Natural language task planning",
            "Intelligent project breakdown",
            "Dynamic scheduling with time reasoning",
            "Multi-language support",
            "Dependency resolution",
        ],
        "endpoints": {
            "tools": "/api/mcp/tools",
            "call-tool": "/api/mcp/call-tool",
            "health": "/api/mcp/health",
        },
        "ai_engine": DEFAULT_ANTHROPIC_MODEL,
        "integration": "Todoist API v2",
    }


def health_status() -> Dict[str, Any]:
    return {
        "status": "healthy",
        "service": SERVICE_TITLE,
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "version": SERVICE_VERSION,
    }


def _resource_of(endpoint: str) -> str:
    """'tasks/123/close' -> 'tasks'."""
    return endpoint.strip("/").split("/")[0]


def _extract_name(data: Any) -> Optional[str]:
    if isinstance(data, dict):
        for key in ("name", "content"):
            if isinstance(data.get(key), str):
                return data[key]
    return None


def _date_info(action: ActionDescriptor, data: Any) -> str:
    due_string = action.body.get("due_string") or ""
    due_date = action.body.get("due_date") or ""

    # The response's due object wins over what was requested
    if isinstance(data, dict) and isinstance(data.get("due"), dict):
        due_string = data["due"].get("string") or due_string
        due_date = data["due"].get("date") or due_date

    if due_string:
        return f" - {due_string}"
    if due_date:
        return f" - {due_date}"
    return ""
