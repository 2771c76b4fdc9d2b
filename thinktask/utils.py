"""
Shared configuration and helpers for the ThinkTask modules.
"""

import os
from typing import Optional

from dotenv import load_dotenv

# Load environment variables
load_dotenv()

SERVICE_NAME = "thinktask"
SERVICE_VERSION = "1.0.0"

_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off", ""}


def get_env(key: str, default: str = None) -> str:
    """Get environment variable with optional default."""
    value = os.getenv(key, default)
    if value is None:
        raise ValueError(f"Environment variable {key} not set")
    return value


def get_optional_env(key: str) -> Optional[str]:
    """Get environment variable, treating unset and blank values as None."""
    value = os.getenv(key)
    if value is None or not value.strip():
        return None
    return value.strip()


def get_bool_env(key: str, default: bool = False) -> bool:
    """Read a boolean flag such as THINKTASK_STRICT_REFERENCES=true."""
    value = os.getenv(key)
    if value is None:
        return default

    normalized = value.strip().lower()
    if normalized in _TRUE_VALUES:
        return True
    if normalized in _FALSE_VALUES:
        return False
    raise ValueError(f"Environment variable {key} must be a boolean, got {value!r}")


def get_float_env(key: str, default: float) -> float:
    """Read a float setting, falling back to default when unset."""
    value = os.getenv(key)
    if value is None or not value.strip():
        return default
    try:
        return float(value)
    except ValueError:
        raise ValueError(f"Environment variable {key} must be a number, got {value!r}")


def get_int_env(key: str, default: int) -> int:
    """Read an integer setting, falling back to default when unset."""
    value = os.getenv(key)
    if value is None or not value.strip():
        return default
    try:
        return int(value)
    except ValueError:
        raise ValueError(f"Environment variable {key} must be an integer, got {value!r}")


def todoist_api_url() -> str:
    """Base URL of the Todoist REST API, without a trailing slash."""
    return get_env("TODOIST_API_URL", "https://api.todoist.com/rest/v2").rstrip("/")


def strict_references_default() -> bool:
    """Whether unresolved reference tokens fail the batch instead of becoming ''."""
    return get_bool_env("THINKTASK_STRICT_REFERENCES", False)


def http_timeout() -> float:
    """Timeout in seconds for each Todoist request."""
    return get_float_env("THINKTASK_HTTP_TIMEOUT", 30.0)


def prefetch_workers() -> int:
    """Thread pool size for concurrent preparation-data reads."""
    return max(1, get_int_env("THINKTASK_PREFETCH_WORKERS", 4))
