"""
Entry point for running workout_tracker as a module.

Usage:
    python -m workout_tracker                    # Run with stdio transport
    python -m workout_tracker --http             # Run with HTTP transport
    python -m workout_tracker --http --port 9000 # Run HTTP on custom port
"""

import argparse
import os

from workout_tracker import create_app
from workout_tracker.client_factory import close_all


def main():
    parser = argparse.ArgumentParser(
        description="Workout Tracker MCP Server - session-based workout logging with offline sync"
    )
    parser.add_argument(
        "--http",
        action="store_true",
        help="Use http transport instead of stdio"
    )
    parser.add_argument(
        "--host",
        default="0.0.0.0",
        help="Host to bind to (default: 0.0.0.0)"
    )
    parser.add_argument(
        "--port",
        type=int,
        default=8081,
        help="Port for HTTP transport (default: 8081)"
    )

    args = parser.parse_args()

    if args.http:
        os.environ["MCP_TRANSPORT"] = "http"
        os.environ["MCP_HOST"] = args.host
        os.environ["MCP_PORT"] = str(args.port)
    else:
        os.environ["MCP_TRANSPORT"] = "stdio"

    app = create_app()

    try:
        if args.http:
            print(f"Starting Workout Tracker MCP server on http://{args.host}:{args.port}/mcp")
            app.run(transport="http", host=args.host, port=args.port)
        else:
            app.run()
    finally:
        close_all()


if __name__ == "__main__":
    main()
