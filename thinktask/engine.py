"""
Action execution engine.

Runs an ordered batch of planned Todoist actions:
1. Ingestion: coerce and validate every descriptor before any network call
2. Execution: run each action in list order, resolving its references
   against the results of the actions before it
3. Fail-fast: record the first failure, stop, and raise

List order is the whole schedule. depends_on is never used to reorder.
Side effects of actions that already succeeded are not rolled back.
"""

from collections.abc import Mapping
from typing import Any, Dict, Iterator, List, Optional, Sequence

import httpx
import structlog

from thinktask.errors import (
    ActionExecutionError,
    DuplicateResultError,
    MalformedActionError,
    RemoteCallError,
    UnresolvedReferenceError,
)
from thinktask.references import validate_reference_order
from thinktask.schemas import ActionDescriptor, ExecutionResult, parse_action
from thinktask.todoist_client import client_scope, execute_action
from thinktask.utils import strict_references_default

logger = structlog.get_logger(__name__)


class ResultStore(Mapping):
    """
    Append-only map from action id to ExecutionResult for one batch.

    Reads go through the Mapping interface. record() is the only write path
    and refuses to overwrite an id.
    """

    def __init__(self):
        self._results: Dict[str, ExecutionResult] = {}

    def __getitem__(self, action_id: str) -> ExecutionResult:
        return self._results[action_id]

    def __iter__(self) -> Iterator[str]:
        return iter(self._results)

    def __len__(self) -> int:
        return len(self._results)

    def __repr__(self) -> str:
        return f"ResultStore({self._results!r})"

    def record(self, action_id: str, result: ExecutionResult) -> None:
        if action_id in self._results:
            raise DuplicateResultError(f"Result for action '{action_id}' already recorded")
        self._results[action_id] = result

    @property
    def all_succeeded(self) -> bool:
        return all(result.success for result in self._results.values())

    def to_dict(self) -> Dict[str, Dict[str, Any]]:
        """Plain JSON-ready view: {id: {"success": ..., "data" | "error": ...}}."""
        output = {}
        for action_id, result in self._results.items():
            if result.success:
                output[action_id] = {"success": True, "data": result.data}
            else:
                output[action_id] = {"success": False, "error": result.error}
        return output


def ingest_actions(descriptors: Sequence[Any], strict: bool = False) -> List[ActionDescriptor]:
    """
    Validate a whole batch before anything is sent.

    Args:
        descriptors: ActionDescriptor objects or plain dicts, in execution order
        strict: Also require every reference to point at an earlier action

    Returns:
        List of validated ActionDescriptor objects

    Raises:
        MalformedActionError: Missing id/endpoint/method, bad method, or duplicate id
        UnresolvedReferenceError: In strict mode, for a missing or forward reference
    """
    actions = [parse_action(item, index) for index, item in enumerate(descriptors)]

    seen = set()
    for index, action in enumerate(actions):
        if action.id in seen:
            raise MalformedActionError(
                f"Duplicate action id '{action.id}' at index {index}",
                index=index,
                field="id",
            )
        seen.add(action.id)

    if strict:
        validate_reference_order(actions)

    return actions


def execute_actions(
    descriptors: Sequence[Any],
    api_key: str,
    strict: Optional[bool] = None,
    client: Optional[httpx.Client] = None,
) -> ResultStore:
    """
    Execute a batch of actions in order, stopping at the first failure.

    Args:
        descriptors: Actions (ActionDescriptor or dict) in execution order
        api_key: Todoist API token
        strict: Strict reference mode; None reads THINKTASK_STRICT_REFERENCES
        client: Optional HTTP client shared by every call in the batch

    Returns:
        ResultStore with one successful result per action

    Raises:
        MalformedActionError: Before any network call, for an invalid batch
        UnresolvedReferenceError: Before any network call, in strict mode
        ActionExecutionError: For the first failing action. Its results
            attribute holds the partial store including the failed entry.
    """
    if strict is None:
        strict = strict_references_default()

    actions = ingest_actions(descriptors, strict)
    results = ResultStore()

    logger.info("batch_started", actions=len(actions), strict=strict)

    with client_scope(client) as http:
        for index, action in enumerate(actions):
            log = logger.bind(action_id=action.id, method=action.method.value, endpoint=action.endpoint)

            try:
                data = execute_action(action, api_key, results, client=http, strict=strict)
            except (RemoteCallError, UnresolvedReferenceError) as e:
                message = str(e)
                results.record(action.id, ExecutionResult(success=False, error=message))
                log.error("action_failed", error=message, skipped=len(actions) - index - 1)
                raise ActionExecutionError(
                    action.id,
                    message,
                    results=results,
                    endpoint=getattr(e, "endpoint", None) or action.endpoint,
                    status_code=getattr(e, "status_code", None),
                    response_text=getattr(e, "response_text", None),
                ) from e

            results.record(action.id, ExecutionResult(success=True, data=data))
            log.info("action_completed")

    logger.info("batch_completed", actions=len(actions))
    return results
