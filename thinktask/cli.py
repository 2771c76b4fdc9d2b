"""
Command-line interface for ThinkTask.

Usage:
    thinktask plan "Plan my trip to Rome next month"
    thinktask execute actions.json --strict
    thinktask prefetch /projects /sections
    thinktask validate-key
    thinktask serve --port 3000
    thinktask stdio
"""

import argparse
import json
import sys

from thinktask import service
from thinktask.engine import execute_actions
from thinktask.errors import ActionExecutionError, ThinkTaskError
from thinktask.logging_config import setup_logging
from thinktask.todoist_client import fetch_preparation_data, validate_api_key
from thinktask.utils import get_int_env, get_optional_env


def _todoist_key(args) -> str:
    key = args.todoist_key or get_optional_env("TODOIST_API_TOKEN")
    if not key:
        print("Error: no Todoist API key. Pass --todoist-key or set TODOIST_API_TOKEN.")
        sys.exit(1)
    return key


def _print_results(results) -> None:
    for action_id, result in results.items():
        if result.success:
            print(f"  ✓ {action_id}")
            print(f"      {json.dumps(result.data, ensure_ascii=False)[:200]}")
        else:
            print(f"  ✗ {action_id}: {result.error}")


def cmd_plan(args):
    """Plan and execute a natural-language instruction."""
    result = service.handle_tool_call({
        "name": service.TOOL_NAME,
        "arguments": {
            "instruction": args.instruction,
            "todoist_api_key": args.todoist_key,
            "anthropic_api_key": args.anthropic_key,
            "openai_api_key": args.openai_key,
        },
    })
    print(result.content)
    if result.is_error:
        sys.exit(1)


def cmd_execute(args):
    """Execute a JSON file containing an array of actions."""
    api_key = _todoist_key(args)

    try:
        with open(args.file, "r", encoding="utf-8") as f:
            actions = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        print(f"Error: could not read {args.file}: {e}")
        sys.exit(1)

    if not isinstance(actions, list):
        print("Error: the action file must contain a JSON array")
        sys.exit(1)

    print(f"\nExecuting {len(actions)} action(s)...")

    try:
        results = execute_actions(actions, api_key, strict=args.strict or None)
    except ActionExecutionError as e:
        _print_results(e.results or {})
        print(f"\nAborted: {e}")
        sys.exit(1)
    except ThinkTaskError as e:
        print(f"Error: {e}")
        sys.exit(1)

    _print_results(results)
    print(f"\n✓ {len(results)} action(s) completed")


def cmd_prefetch(args):
    """Print the preparation data the planner would see."""
    api_key = _todoist_key(args)
    print(fetch_preparation_data(args.endpoints, api_key) or "(no data)")


def cmd_validate_key(args):
    """Check a Todoist API key."""
    api_key = _todoist_key(args)
    if validate_api_key(api_key):
        print("  Todoist API key is valid.")
    else:
        print("  Error: Todoist API key was rejected.")
        sys.exit(1)


def cmd_serve(args):
    """Run the HTTP API server."""
    from thinktask.api_server import run_server
    run_server(host=args.host, port=args.port, debug=args.debug)


def cmd_stdio(args):
    """Run the line-delimited JSON-RPC server on stdin/stdout."""
    from thinktask.mcp_stdio import serve
    serve()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="ThinkTask: natural language to Todoist")
    parser.add_argument("--log-level", default=None, help="Log level (default: LOG_LEVEL or INFO)")
    parser.add_argument("--log-format", default=None, choices=["console", "json"], help="Log format")
    subparsers = parser.add_subparsers(dest="command", help="Command to run")

    key_parent = argparse.ArgumentParser(add_help=False)
    key_parent.add_argument("--todoist-key", help="Todoist API token (default: TODOIST_API_TOKEN)")

    # plan
    plan_parser = subparsers.add_parser("plan", parents=[key_parent], help="Plan and execute an instruction")
    plan_parser.add_argument("instruction", help="Natural language instruction")
    plan_parser.add_argument("--anthropic-key", help="Anthropic API key (default: ANTHROPIC_API_KEY)")
    plan_parser.add_argument("--openai-key", help="OpenAI API key (default: OPENAI_API_KEY)")

    # execute
    execute_parser = subparsers.add_parser("execute", parents=[key_parent], help="Execute an action file")
    execute_parser.add_argument("file", help="JSON file with an array of actions")
    execute_parser.add_argument("--strict", action="store_true", help="Fail on unresolved references")

    # prefetch
    prefetch_parser = subparsers.add_parser("prefetch", parents=[key_parent], help="Fetch preparation data")
    prefetch_parser.add_argument("endpoints", nargs="+", help="Endpoints such as /projects /tasks")

    # validate-key
    subparsers.add_parser("validate-key", parents=[key_parent], help="Check a Todoist API key")

    # serve
    serve_parser = subparsers.add_parser("serve", help="Run the HTTP API server")
    serve_parser.add_argument("--host", default="127.0.0.1", help="Host to bind to")
    serve_parser.add_argument("--port", type=int, default=get_int_env("PORT", 3000), help="Port to run on")
    serve_parser.add_argument("--debug", action="store_true", help="Enable debug mode")

    # stdio
    subparsers.add_parser("stdio", help="Run the JSON-RPC server on stdin/stdout")

    return parser


def main(argv=None):
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        sys.exit(1)

    setup_logging(log_level=args.log_level, log_format=args.log_format)

    commands = {
        "plan": cmd_plan,
        "execute": cmd_execute,
        "prefetch": cmd_prefetch,
        "validate-key": cmd_validate_key,
        "serve": cmd_serve,
        "stdio": cmd_stdio,
    }
    commands[args.command](args)


if __name__ == "__main__":
    main()
