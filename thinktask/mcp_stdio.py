"""
Line-delimited JSON-RPC 2.0 front-end over stdin/stdout.

Each input line is one request object; each response is written as one line
on stdout. Logging goes to stderr so it never corrupts the protocol stream.

Methods:
    initialize  -> {"capabilities": {}}
    getTools    -> {"tools": [...]}
    callTool    -> ToolResult ({"content": ..., "isError": ...})
    health      -> health payload
    info        -> service info
"""

import json
import sys
from typing import Any, Callable, Dict, Optional, TextIO

import structlog

from thinktask import service

logger = structlog.get_logger(__name__)

JSONRPC_VERSION = "2.0"

PARSE_ERROR = -32700
INVALID_REQUEST = -32600
METHOD_NOT_FOUND = -32601
INTERNAL_ERROR = -32000


def _call_tool(params: Any) -> Dict[str, Any]:
    if not isinstance(params, dict):
        params = {}
    return service.handle_tool_call(params).to_wire()


METHODS: Dict[str, Callable[[Any], Any]] = {
    "initialize": lambda params: {"capabilities": {}},
    "getTools": lambda params: {"tools": service.get_tools_definition()},
    "callTool": _call_tool,
    "health": lambda params: service.health_status(),
    "info": lambda params: service.service_info(),
}


def _error(request_id: Any, code: int, message: str, data: Optional[str] = None) -> Dict[str, Any]:
    error = {"code": code, "message": message}
    if data is not None:
        error["data"] = data
    return {"jsonrpc": JSONRPC_VERSION, "id": request_id, "error": error}


def handle_line(line: str) -> Dict[str, Any]:
    """Turn one input line into one JSON-RPC response object."""
    try:
        message = json.loads(line)
    except json.JSONDecodeError as e:
        return _error(None, PARSE_ERROR, "Parse error", str(e))

    if not isinstance(message, dict):
        return _error(None, INVALID_REQUEST, "Invalid Request")

    request_id = message.get("id")
    method = message.get("method")

    handler = METHODS.get(method) if isinstance(method, str) else None
    if handler is None:
        return _error(request_id, METHOD_NOT_FOUND, "Method not found")

    try:
        result = handler(message.get("params"))
    except Exception as e:
        logger.exception("stdio_method_failed", method=method)
        return _error(request_id, INTERNAL_ERROR, "Internal error", str(e))

    return {"jsonrpc": JSONRPC_VERSION, "id": request_id, "result": result}


def serve(stdin: TextIO = None, stdout: TextIO = None) -> None:
    """Read requests until EOF, answering each on its own line."""
    stdin = stdin or sys.stdin
    stdout = stdout or sys.stdout

    logger.info("stdio_server_started")

    for line in stdin:
        if not line.strip():
            continue
        response = handle_line(line)
        stdout.write(json.dumps(response, ensure_ascii=False) + "\n")
        stdout.flush()

    logger.info("stdio_server_stopped")
