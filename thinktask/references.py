"""
Reference resolution between actions of one batch.

Action bodies may embed tokens of the form {actionId} or {actionId.property}.
Before an action is sent, every token is replaced with data taken from the
results of actions that already ran in the same batch:

- {actionId} becomes the whole result payload (JSON for objects and arrays)
- {actionId.property} becomes one field of the payload

In lenient mode (the default) a token that cannot be resolved becomes the empty
string. In strict mode it raises UnresolvedReferenceError.
"""

import json
import math
import re
from decimal import Decimal
from typing import Any, List, Mapping, NamedTuple, Optional, Sequence

from thinktask.errors import UnresolvedReferenceError
from thinktask.schemas import ActionDescriptor, ExecutionResult

# Non-nested, single pass, no escaping
REFERENCE_PATTERN = re.compile(r"\{([^}]+)\}")


class Reference(NamedTuple):
    """One parsed {id} / {id.property} token."""
    token: str
    action_id: str
    prop: Optional[str]


def parse_token(token: str) -> Reference:
    """Split 'task1.id' into ('task1', 'id'). Segments after the second are ignored."""
    parts = token.split(".")
    prop = parts[1] if len(parts) > 1 and parts[1] else None
    return Reference(token=token, action_id=parts[0], prop=prop)


def resolve(value: Any, store: Mapping[str, ExecutionResult], strict: bool = False) -> Any:
    """
    Substitute reference tokens inside value using the results in store.

    Args:
        value: String, list, dict or scalar (arbitrarily nested JSON data)
        store: Results of the actions executed so far, keyed by action id
        strict: Raise instead of substituting '' for unresolvable tokens

    Returns:
        A value of the same shape with every token replaced

    Raises:
        UnresolvedReferenceError: In strict mode, for the first token whose
            action is missing, failed, returned no data, or lacks the property
    """
    if isinstance(value, str):
        return REFERENCE_PATTERN.sub(
            lambda match: _substitute(parse_token(match.group(1)), store, strict),
            value,
        )

    if isinstance(value, (list, tuple)):
        return [resolve(item, store, strict) for item in value]

    if isinstance(value, dict):
        return {key: resolve(item, store, strict) for key, item in value.items()}

    return value


def find_references(value: Any) -> List[Reference]:
    """List every reference token inside value, in document order."""
    if isinstance(value, str):
        return [parse_token(match.group(1)) for match in REFERENCE_PATTERN.finditer(value)]

    if isinstance(value, (list, tuple)):
        return [ref for item in value for ref in find_references(item)]

    if isinstance(value, dict):
        return [ref for item in value.values() for ref in find_references(item)]

    return []


def validate_reference_order(descriptors: Sequence[ActionDescriptor]) -> None:
    """
    Check that every token references an action earlier in the list.

    Raises:
        UnresolvedReferenceError: For the first token pointing at a missing
            action, at the action itself, or at a later action
    """
    all_ids = {descriptor.id for descriptor in descriptors}
    seen = set()

    for descriptor in descriptors:
        for ref in find_references(descriptor.body):
            if ref.action_id in seen:
                continue
            if ref.action_id == descriptor.id:
                reason = f"action '{descriptor.id}' references its own result"
            elif ref.action_id in all_ids:
                reason = f"action '{ref.action_id}' runs after '{descriptor.id}'"
            else:
                reason = f"no action with id '{ref.action_id}' in the batch"
            raise UnresolvedReferenceError(ref.token, reason)
        seen.add(descriptor.id)


def stringify(value: Any) -> str:
    """Render a result value the way it is spliced into a string: JSON for containers."""
    if isinstance(value, (dict, list)):
        return json.dumps(value, separators=(",", ":"), ensure_ascii=False)
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float):
        return _format_float(value)
    return str(value)


def _format_float(value: float) -> str:
    """
    Number spelling used in reference substitution.

    Exponent notation only below 1e-6 or from 1e21 up, no zero-padded
    exponents, and NaN / Infinity spelled out.
    """
    if math.isnan(value):
        return "NaN"
    if math.isinf(value):
        return "Infinity" if value > 0 else "-Infinity"

    text = repr(value)
    magnitude = abs(value)

    if magnitude != 0 and (magnitude < 1e-6 or magnitude >= 1e21):
        if "e" not in text:
            text = f"{value:e}"
        mantissa, exponent = text.split("e")
        if "." in mantissa:
            mantissa = mantissa.rstrip("0").rstrip(".")
        return f"{mantissa}e{int(exponent):+d}"

    if value.is_integer():
        return str(int(value))
    if "e" in text:
        return format(Decimal(text), "f")
    return text


def _substitute(ref: Reference, store: Mapping[str, ExecutionResult], strict: bool) -> str:
    result = store.get(ref.action_id)

    if result is None:
        return _unresolved(ref, f"no result for action '{ref.action_id}'", strict)
    if not result.success:
        return _unresolved(ref, f"action '{ref.action_id}' failed", strict)
    if result.data is None:
        return _unresolved(ref, f"action '{ref.action_id}' returned no data", strict)

    if ref.prop is None:
        return stringify(result.data)

    data = result.data
    if not isinstance(data, dict) or data.get(ref.prop) is None:
        return _unresolved(ref, f"result of '{ref.action_id}' has no property '{ref.prop}'", strict)

    return stringify(data[ref.prop])


def _unresolved(ref: Reference, reason: str, strict: bool) -> str:
    if strict:
        raise UnresolvedReferenceError(ref.token, reason)
    return ""
