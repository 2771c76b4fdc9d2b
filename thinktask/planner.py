"""
LLM-based planning of Todoist API calls.

Two model round-trips turn an instruction into executable actions:
1. determine_required_fetches: which read-only endpoints give useful context
2. parse_task: the ordered action list, given the prefetched data

The model output is parsed and validated here; the engine only ever sees
well-formed ActionDescriptor objects.
"""

import json
import re
from typing import Any, List

import structlog

from thinktask.ai_providers import ModelProvider
from thinktask.errors import MalformedActionError, PlanParsingError
from thinktask.prompts import build_fetches_prompt, build_parse_task_prompt
from thinktask.schemas import ActionDescriptor, parse_action
from thinktask.todoist_client import normalize_endpoint_names

logger = structlog.get_logger(__name__)

_CODE_BLOCK = re.compile(r"```(?:json)?\s*([\s\S]*?)\s*```")
_JSON_SPAN = re.compile(r"\[[\s\S]*\]|\{[\s\S]*\}")


def extract_json(response_text: str) -> Any:
    """
    Parse JSON from LLM response, handling common issues.

    Accepts a fenced ```json block, bare JSON, or JSON surrounded by prose.

    Raises:
        PlanParsingError: If no JSON value can be decoded
    """
    text = response_text.strip()

    match = _CODE_BLOCK.search(text)
    if match:
        text = match.group(1)

    try:
        return json.loads(text)
    except json.JSONDecodeError:
        # Try to find a JSON array or object in the text
        span = _JSON_SPAN.search(text)
        if span:
            try:
                return json.loads(span.group())
            except json.JSONDecodeError:
                pass

    raise PlanParsingError(f"Could not parse JSON from response: {text[:500]}")


def determine_required_fetches(instruction: str, provider: ModelProvider) -> List[str]:
    """
    Ask the model which GET endpoints to prefetch for an instruction.

    Args:
        instruction: The user's instruction
        provider: Model provider to query

    Returns:
        Normalized endpoint names, e.g. ["projects", "sections"]

    Raises:
        PlanParsingError: If the answer is not a JSON array of strings
    """
    raw = provider.call_model(build_fetches_prompt(instruction))
    parsed = extract_json(raw)

    if not isinstance(parsed, list) or not all(isinstance(item, str) for item in parsed):
        raise PlanParsingError(f"Expected a JSON array of endpoint names, got: {raw[:200]}")

    endpoints = normalize_endpoint_names(parsed)
    logger.info("fetches_determined", endpoints=endpoints)
    return endpoints


def parse_task(instruction: str, preparation_data: str, provider: ModelProvider) -> List[ActionDescriptor]:
    """
    Ask the model for the ordered action list.

    Args:
        instruction: The user's instruction
        preparation_data: Labeled prefetch output (may be empty)
        provider: Model provider to query

    Returns:
        Validated ActionDescriptor list in execution order

    Raises:
        ValueError: If the instruction is empty
        PlanParsingError: If the answer is not a JSON array of valid actions
    """
    if not instruction or not instruction.strip():
        raise ValueError("Input text must be a non-empty string")

    raw = provider.call_model(build_parse_task_prompt(instruction, preparation_data))
    parsed = extract_json(raw)

    if not isinstance(parsed, list):
        raise PlanParsingError("Expected JSON array from AI response")

    actions = []
    for index, item in enumerate(parsed):
        if isinstance(item, dict) and item.get("body") is not None and not isinstance(item["body"], dict):
            raise PlanParsingError(f"Invalid JSON response from AI: Action at index {index} missing valid body")
        try:
            actions.append(parse_action(item, index))
        except MalformedActionError as e:
            raise PlanParsingError(f"Invalid JSON response from AI: {e}") from e

    logger.info("actions_planned", count=len(actions))
    return actions
