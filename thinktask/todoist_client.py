"""
Todoist REST API integration.

This module handles all network traffic to Todoist, including:
- Executing one planned action (method, endpoint, resolved body)
- Validating an API key with a minimal authenticated read
- Prefetching read-only "preparation data" for the planner, concurrently

Every call takes the API key explicitly. Nothing is cached and nothing is
retried: a failed call raises RemoteCallError and the caller decides.
"""

import json
import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from contextlib import contextmanager
from typing import Any, Dict, Iterable, Iterator, List, Mapping, Optional

import httpx
import structlog

from thinktask.errors import RemoteCallError
from thinktask.references import resolve
from thinktask.schemas import ActionDescriptor, ExecutionResult
from thinktask.utils import http_timeout, prefetch_workers, todoist_api_url

logger = structlog.get_logger(__name__)

# Endpoint used for key validation: cheap, always readable
VALIDATION_ENDPOINT = "projects"

# Cap on response text copied into error messages
MAX_ERROR_TEXT = 500


def _get_client() -> httpx.Client:
    """Get an HTTP client configured for Todoist."""
    return httpx.Client(timeout=http_timeout())


@contextmanager
def client_scope(client: Optional[httpx.Client]) -> Iterator[httpx.Client]:
    """Use the caller's client, or open (and close) a fresh one."""
    if client is not None:
        yield client
        return
    with _get_client() as owned:
        yield owned


def _get_headers(api_key: str) -> Dict[str, str]:
    """Get headers required for Todoist requests."""
    return {
        "Authorization": f"Bearer {api_key}",
        "Content-Type": "application/json",
    }


def normalize_endpoint_name(endpoint: str) -> str:
    """'/projects/' -> 'projects'."""
    return endpoint.strip().strip("/")


def normalize_endpoint_names(endpoints: Iterable[str]) -> List[str]:
    """Normalize endpoint names, dropping blanks and duplicates but keeping order."""
    names = []
    for endpoint in endpoints:
        name = normalize_endpoint_name(endpoint)
        if name and name not in names:
            names.append(name)
    return names


def build_url(endpoint: str) -> str:
    """Join the API base URL and an endpoint path such as 'tasks/123'."""
    return f"{todoist_api_url()}/{endpoint.lstrip('/')}"


def _query_params(body: Mapping[str, Any]) -> Dict[str, Any]:
    """Flatten a resolved body into query parameters. None values are dropped."""
    params = {}
    for key, value in body.items():
        if value is None:
            continue
        if isinstance(value, (dict, list)):
            params[key] = json.dumps(value, separators=(",", ":"), ensure_ascii=False)
        elif isinstance(value, bool):
            params[key] = "true" if value else "false"
        else:
            params[key] = value
    return params


def _decode(response: httpx.Response, endpoint: str) -> Any:
    """Decode a JSON response body; an empty body decodes to None."""
    if not response.content.strip():
        return None
    try:
        return response.json()
    except ValueError as e:
        raise RemoteCallError(
            f"Invalid JSON response from {endpoint}: {e}",
            endpoint=endpoint,
            status_code=response.status_code,
            response_text=response.text[:MAX_ERROR_TEXT],
        ) from e


def _send(
    client: httpx.Client,
    method: str,
    endpoint: str,
    api_key: str,
    params: Optional[Dict[str, Any]] = None,
    json_body: Optional[Dict[str, Any]] = None,
) -> Any:
    """
    Perform one authenticated request and decode the response.

    Raises:
        RemoteCallError: On transport errors, unbuildable URLs, non-2xx status, or bad JSON
    """
    url = build_url(endpoint)
    start = time.time()

    try:
        response = client.request(
            method,
            url,
            headers=_get_headers(api_key),
            params=params,
            json=json_body,
        )
        response.raise_for_status()
    except httpx.HTTPStatusError as e:
        status = e.response.status_code
        text = e.response.text[:MAX_ERROR_TEXT]
        message = f"Request failed with status code {status} ({method} {endpoint})"
        if text:
            message += f": {text}"
        raise RemoteCallError(message, endpoint=endpoint, status_code=status, response_text=text) from e
    except (httpx.HTTPError, httpx.InvalidURL) as e:
        # InvalidURL is raised while building the request and is not an HTTPError
        raise RemoteCallError(f"{method} {endpoint} failed: {e}", endpoint=endpoint) from e

    logger.debug(
        "todoist_request",
        method=method,
        endpoint=endpoint,
        status_code=response.status_code,
        duration_ms=int((time.time() - start) * 1000),
    )

    return _decode(response, endpoint)


def execute_action(
    descriptor: ActionDescriptor,
    api_key: str,
    store: Mapping[str, ExecutionResult],
    client: Optional[httpx.Client] = None,
    strict: bool = False,
) -> Any:
    """
    Execute one planned action against Todoist.

    Args:
        descriptor: The action to perform
        api_key: Todoist API token, sent as a Bearer header
        store: Results of the actions already executed in this batch
        client: Optional shared HTTP client (a new one is opened otherwise)
        strict: Fail on unresolvable reference tokens instead of using ''

    Returns:
        Decoded response payload, or None for an empty body

    Raises:
        RemoteCallError: If the request fails or the response is not JSON
        UnresolvedReferenceError: In strict mode, for an unresolvable token
    """
    body = resolve(descriptor.body or {}, store, strict)
    method = descriptor.method.value

    if descriptor.uses_query_params:
        request_kwargs = {"params": _query_params(body)}
    else:
        request_kwargs = {"json_body": body}

    with client_scope(client) as http:
        return _send(http, method, descriptor.endpoint, api_key, **request_kwargs)


def fetch_endpoint(endpoint: str, api_key: str, client: Optional[httpx.Client] = None) -> Any:
    """
    GET one read-only endpoint, e.g. 'projects' or 'tasks'.

    Raises:
        RemoteCallError: If the request fails
    """
    with client_scope(client) as http:
        return _send(http, "GET", normalize_endpoint_name(endpoint), api_key)


def validate_api_key(api_key: str, client: Optional[httpx.Client] = None) -> bool:
    """
    Check that an API key authenticates against Todoist.

    Never raises: any failure (network or auth) returns False.
    """
    if not api_key or not api_key.strip():
        return False

    try:
        fetch_endpoint(VALIDATION_ENDPOINT, api_key, client)
        return True
    except Exception as e:
        logger.warning("todoist_api_key_invalid", error=str(e))
        return False


def format_preparation_block(name: str, payload: Any) -> str:
    """Label one endpoint payload for the planner prompt."""
    return f"### {name}\n{json.dumps(payload, indent=2, ensure_ascii=False)}"


def fetch_preparation_data(
    endpoint_names: Iterable[str],
    api_key: str,
    client: Optional[httpx.Client] = None,
    max_workers: Optional[int] = None,
) -> str:
    """
    Fetch several read-only endpoints concurrently and label each payload.

    The reads are independent, so they run on a thread pool in any order.
    Blocks are joined in the order the names were given. An endpoint that
    fails is logged and left out rather than aborting the prefetch.

    Args:
        endpoint_names: Endpoints such as ["/projects", "/sections"]
        api_key: Todoist API token
        client: Optional shared HTTP client
        max_workers: Thread pool size (THINKTASK_PREFETCH_WORKERS by default)

    Returns:
        Text with one "### name" block per fetched endpoint, or '' if none
    """
    names = normalize_endpoint_names(endpoint_names)
    if not names:
        return ""

    workers = min(max_workers or prefetch_workers(), len(names))
    payloads = {}

    with client_scope(client) as http, ThreadPoolExecutor(max_workers=workers) as pool:
        futures = {pool.submit(fetch_endpoint, name, api_key, http): name for name in names}
        for future in as_completed(futures):
            name = futures[future]
            try:
                payloads[name] = future.result()
            except RemoteCallError as e:
                logger.warning("prefetch_endpoint_failed", endpoint=name, error=str(e))

    logger.info("prefetch_complete", requested=len(names), fetched=len(payloads))

    return "\n\n".join(
        format_preparation_block(name, payloads[name]) for name in names if name in payloads
    )
