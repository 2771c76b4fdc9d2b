# ThinkTask - natural language instructions to Todoist API calls
#
# The language model plans; this package executes. The execution engine takes
# an ordered list of action descriptors, resolves {id.property} references
# between them, and runs them fail-fast against the Todoist REST API.

from thinktask.engine import ResultStore, execute_actions
from thinktask.references import resolve
from thinktask.schemas import ActionDescriptor, ExecutionResult, HttpMethod

__all__ = [
    "ActionDescriptor",
    "ExecutionResult",
    "HttpMethod",
    "ResultStore",
    "execute_actions",
    "resolve",
]
