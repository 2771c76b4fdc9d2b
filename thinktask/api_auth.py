"""
Bearer-token handling for the Flask front-end.

Callers may pass their Todoist API token as "Authorization: Bearer <token>"
instead of (or in addition to) the todoist_api_key body field.

Usage:
    @app.route('/api/mcp/call-tool', methods=['POST'])
    @accept_bearer_key
    def call_tool():
        key = g.todoist_api_key  # None when no header was sent
        ...
"""

from functools import wraps

from flask import g, jsonify, request


def error_response(code: str, message: str, status: int):
    """Build a standard error response."""
    return jsonify({"error": {"code": code, "message": message, "status": status}}), status


def accept_bearer_key(f):
    """Flask decorator that exposes an optional Bearer token as g.todoist_api_key."""
    @wraps(f)
    def decorated(*args, **kwargs):
        auth_header = request.headers.get("Authorization", "")
        g.todoist_api_key = None

        if auth_header:
            scheme, _, token = auth_header.strip().partition(" ")
            if scheme != "Bearer":
                return error_response(
                    "malformed_authorization",
                    "Malformed Authorization header. Expected: Bearer <todoist_api_token>",
                    401,
                )

            token = token.strip()
            if not token:
                return error_response("missing_api_key", "Empty Bearer token.", 401)
            g.todoist_api_key = token

        return f(*args, **kwargs)

    return decorated
