"""
Structured logging setup.

structlog on top of the stdlib logging module, always writing to stderr so
stdout stays free for CLI output and stdio protocol frames.
"""

import logging
import sys
from typing import Any, Dict

import structlog

from thinktask.utils import SERVICE_NAME, SERVICE_VERSION, get_env


def setup_logging(
    log_level: str = None,
    log_format: str = None,
    service_name: str = SERVICE_NAME,
) -> None:
    """Setup structured logging configuration"""

    log_level = log_level or get_env("LOG_LEVEL", "INFO")
    log_format = log_format or get_env("LOG_FORMAT", "console")

    # stdout is reserved for protocol frames in stdio mode
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stderr,
        level=getattr(logging, log_level.upper(), logging.INFO),
        force=True,
    )

    processors = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        add_service_context,
    ]

    if log_format == "json":
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer())

    structlog.configure(
        processors=processors,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    structlog.contextvars.bind_contextvars(service=service_name)


def add_service_context(logger: logging.Logger, method_name: str, event_dict: Dict[str, Any]) -> Dict[str, Any]:
    """Add service version to all log entries"""
    event_dict.setdefault("version", SERVICE_VERSION)
    return event_dict
