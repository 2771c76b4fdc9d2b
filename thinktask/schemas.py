"""
Pydantic models for planned Todoist actions and their outcomes.

These schemas define the shape of the action descriptors produced by the
planner, the per-action execution results, and the tool call envelope used by
the HTTP and stdio front-ends.
"""

from enum import Enum
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, JsonValue, ValidationError, field_validator

from thinktask.errors import MalformedActionError


class HttpMethod(str, Enum):
    """HTTP methods an action may use against the Todoist API."""
    GET = "GET"
    POST = "POST"
    PUT = "PUT"
    PATCH = "PATCH"
    DELETE = "DELETE"


# Methods whose resolved body travels as query parameters
QUERY_PARAM_METHODS = frozenset({HttpMethod.GET, HttpMethod.DELETE})


class ActionDescriptor(BaseModel):
    """
    A planned, not-yet-executed Todoist API call.

    The body may contain {id} or {id.property} tokens pointing at the results
    of actions earlier in the same batch. depends_on only documents the
    intended ordering; list order is the schedule.
    """

    model_config = ConfigDict(frozen=True)

    id: str = Field(..., min_length=1, description="Unique id within the batch, used as a reference key")
    endpoint: str = Field(..., min_length=1, description="Path relative to the API base URL, e.g. 'tasks/123'")
    method: HttpMethod
    body: Dict[str, JsonValue] = Field(default_factory=dict, description="JSON payload or query parameters")
    depends_on: Optional[Union[str, List[str]]] = Field(None, description="Informational ordering hint")

    @field_validator("method", mode="before")
    @classmethod
    def _normalize_method(cls, value: Any) -> Any:
        if isinstance(value, str):
            return value.strip().upper()
        return value

    @field_validator("body", mode="before")
    @classmethod
    def _default_body(cls, value: Any) -> Any:
        return {} if value is None else value

    @property
    def uses_query_params(self) -> bool:
        """GET and DELETE send the body as query parameters."""
        return self.method in QUERY_PARAM_METHODS


class ExecutionResult(BaseModel):
    """Outcome of attempting one action."""

    model_config = ConfigDict(frozen=True)

    success: bool
    data: JsonValue = None
    error: Optional[str] = None


class PlanTasksArguments(BaseModel):
    """Arguments of the plan_intelligent_tasks tool."""

    instruction: str = ""
    todoist_api_key: Optional[str] = None
    anthropic_api_key: Optional[str] = None
    openai_api_key: Optional[str] = None


class ToolCall(BaseModel):
    """A tool invocation coming from a front-end."""

    name: str = Field(..., min_length=1)
    arguments: Dict[str, Any] = Field(default_factory=dict)


class ToolResult(BaseModel):
    """Tool output as seen by MCP clients: text content plus an error flag."""

    model_config = ConfigDict(populate_by_name=True)

    content: str
    is_error: bool = Field(False, alias="isError")

    def to_wire(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True)


def parse_action(item: Any, index: int) -> ActionDescriptor:
    """
    Coerce one raw item into an ActionDescriptor.

    Args:
        item: ActionDescriptor or a plain dict (e.g. decoded model output)
        index: Position in the batch, used in error messages

    Returns:
        Validated ActionDescriptor

    Raises:
        MalformedActionError: If the item is not an object, or id, endpoint,
            method or body is missing or invalid
    """
    if isinstance(item, ActionDescriptor):
        return item

    if not isinstance(item, dict):
        raise MalformedActionError(f"Action at index {index} is not an object", index=index)

    try:
        return ActionDescriptor.model_validate(item)
    except ValidationError as e:
        error = e.errors()[0]
        loc = error.get("loc") or ()
        field = str(loc[0]) if loc else None
        if error.get("type") == "missing":
            message = f"Action at index {index} missing valid {field}"
        else:
            message = f"Action at index {index} has invalid {field}: {error.get('msg')}"
        raise MalformedActionError(message, index=index, field=field) from e
