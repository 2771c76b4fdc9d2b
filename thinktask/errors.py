"""
Exception hierarchy for ThinkTask.

Every error raised on purpose by this package derives from ThinkTaskError so
the tool service can turn it into an error result at the outermost boundary.
"""

from typing import Any, Optional


class ThinkTaskError(Exception):
    """Base class for all ThinkTask errors."""


class MalformedActionError(ThinkTaskError):
    """An action descriptor is missing a required field or is otherwise invalid."""

    def __init__(self, message: str, index: Optional[int] = None, field: Optional[str] = None):
        super().__init__(message)
        self.index = index
        self.field = field


class RemoteCallError(ThinkTaskError):
    """A Todoist API call failed: transport error, non-2xx status, or undecodable body."""

    def __init__(
        self,
        message: str,
        endpoint: Optional[str] = None,
        status_code: Optional[int] = None,
        response_text: Optional[str] = None,
    ):
        super().__init__(message)
        self.endpoint = endpoint
        self.status_code = status_code
        self.response_text = response_text


class ActionExecutionError(RemoteCallError):
    """
    The first failing action of a batch.

    Carries the failing action id and the partial result store, which already
    contains the failed entry.
    """

    def __init__(
        self,
        action_id: str,
        message: str,
        results: Any = None,
        endpoint: Optional[str] = None,
        status_code: Optional[int] = None,
        response_text: Optional[str] = None,
    ):
        super().__init__(
            f"Error executing action {action_id}: {message}",
            endpoint=endpoint,
            status_code=status_code,
            response_text=response_text,
        )
        self.action_id = action_id
        self.reason = message
        self.results = results


class UnresolvedReferenceError(ThinkTaskError):
    """A {id} or {id.property} token could not be resolved in strict mode."""

    def __init__(self, token: str, reason: str):
        super().__init__(f"Unresolved reference {{{token}}}: {reason}")
        self.token = token
        self.reason = reason


class DuplicateResultError(ThinkTaskError):
    """A result store id was written twice."""


class ModelProviderError(ThinkTaskError):
    """The language model call failed or returned nothing usable."""


class PlanParsingError(ThinkTaskError):
    """The language model output is not the expected JSON shape."""


class ToolCallError(ThinkTaskError):
    """Unknown tool name or invalid tool arguments."""
