"""
ThinkTask HTTP API Server.

Endpoints:
    GET  /                     - Service banner
    GET  /health               - Health check
    GET  /api/mcp              - Service info
    GET  /api/mcp/tools        - Tool definitions (MCP format)
    POST /api/mcp/call-tool    - Run a tool: {"name": ..., "arguments": {...}}
    GET  /api/mcp/health       - Health check
    POST /api/siri-task        - Shortcut-friendly: {"text": ..., "todoist_api_key": ...}

Run with: thinktask serve --port 3000
"""

import time

import structlog
from flask import Flask, g, jsonify, request
from flask_cors import CORS

from thinktask import service
from thinktask.api_auth import accept_bearer_key, error_response
from thinktask.schemas import ToolResult

logger = structlog.get_logger(__name__)

app = Flask(__name__)
CORS(app)

BANNER = """
🎯 ThinkTask: Intelligent Todoist MCP Service

Transform any natural language instruction into perfect Todoist structure.

Examples:
• "Plan my wedding for May 15" → Complete wedding project with venues, catering, photography sections
• "Call mom tomorrow at 2pm" → Scheduled task with proper timing

🔧 MCP Endpoint: /api/mcp
📋 Available tools: /api/mcp/tools
❤️ Health check: /api/mcp/health
"""


def _json_body():
    """Parsed JSON object body, or None when missing or not an object."""
    data = request.get_json(silent=True)
    return data if isinstance(data, dict) else None


# ──────────────── Request logging ────────────────

@app.before_request
def _start_timer():
    g.request_start = time.time()


@app.after_request
def _log_request(response):
    duration_ms = int((time.time() - g.get("request_start", time.time())) * 1000)
    log = logger.error if response.status_code >= 500 else logger.info
    log(
        "http_request",
        method=request.method,
        path=request.path,
        status_code=response.status_code,
        duration_ms=duration_ms,
    )
    return response


# ──────────────── Info & health ────────────────

@app.route('/')
def landing():
    """Plain-text service banner."""
    return BANNER, 200, {"Content-Type": "text/plain; charset=utf-8"}


@app.route('/health', methods=['GET'])
@app.route('/api/mcp/health', methods=['GET'])
def health():
    """Health check."""
    return jsonify(service.health_status())


@app.route('/api/mcp', methods=['GET'])
def info():
    return jsonify(service.service_info())


@app.route('/api/mcp/tools', methods=['GET'])
def tools():
    return jsonify({"tools": service.get_tools_definition()})


# ──────────────── Tool calls ────────────────

@app.route('/api/mcp/call-tool', methods=['POST'])
@accept_bearer_key
def call_tool():
    """Run a tool. Tool failures come back as 200 with isError=true."""
    data = _json_body()
    if data is None:
        return error_response("bad_request", "Request body must be a JSON object", 400)

    name = data.get("name")
    if not isinstance(name, str) or not name.strip():
        return error_response("bad_request", "Missing required field: 'name'", 400)

    arguments = data.get("arguments") or {}
    if not isinstance(arguments, dict):
        return error_response("bad_request", "Field 'arguments' must be an object", 400)

    if g.todoist_api_key and not arguments.get("todoist_api_key"):
        arguments = {**arguments, "todoist_api_key": g.todoist_api_key}

    logger.info("tool_called", tool=name)
    result = service.handle_tool_call({"name": name, "arguments": arguments})
    return jsonify(result.to_wire())


@app.route('/api/siri-task', methods=['POST'])
@accept_bearer_key
def siri_task():
    """Single-field endpoint for voice shortcuts."""
    data = _json_body()
    if data is None:
        return error_response("bad_request", "Request body must be a JSON object", 400)

    text = data.get("text")
    if not isinstance(text, str) or not text.strip():
        return error_response("bad_request", "Missing required field: 'text'", 400)

    arguments = {
        "instruction": text,
        "todoist_api_key": data.get("todoist_api_key") or g.todoist_api_key,
        "anthropic_api_key": data.get("anthropic_api_key"),
        "openai_api_key": data.get("openai_api_key"),
    }
    result: ToolResult = service.handle_tool_call({"name": service.TOOL_NAME, "arguments": arguments})
    return jsonify({"message": result.to_wire()})


@app.errorhandler(404)
def not_found(_error):
    return error_response("not_found", f"No route for {request.method} {request.path}", 404)


@app.errorhandler(405)
def method_not_allowed(_error):
    return error_response("method_not_allowed", f"{request.method} not allowed on {request.path}", 405)


def run_server(host: str = "127.0.0.1", port: int = 3000, debug: bool = False) -> None:
    """Start the development server."""
    print(f"""
╔══════════════════════════════════════════════════════════════╗
║                    ThinkTask MCP Service                     ║
╠══════════════════════════════════════════════════════════════╣
║  API Info: http://{host}:{port}/api/mcp
║  Tools:    http://{host}:{port}/api/mcp/tools
║  Health:   http://{host}:{port}/api/mcp/health
╠══════════════════════════════════════════════════════════════╣
║  Press Ctrl+C to stop                                        ║
╚══════════════════════════════════════════════════════════════╝
    """)

    app.run(host=host, port=port, debug=debug)
