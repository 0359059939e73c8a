"""
Modular MCP Server for a workout tracker

Provides tools to sign in, log strength workouts and manage the body
profile via the Model Context Protocol (MCP).

Workouts are written to a local offline cache first and synced to the
Firebase backend when it is reachable.

Supports two transport modes:
- stdio: For single-user local usage (default)
- http: For multi-user HTTP server deployment
"""

import os

from fastmcp import FastMCP

from workout_tracker import auth_tool
from workout_tracker import profile
from workout_tracker import workouts


def create_app() -> FastMCP:
    """Create and configure the MCP app with all tools registered."""
    # Create the MCP app
    app = FastMCP("Workout Tracker v1.0")

    # Register auth tools (login, registration, session management, identity)
    app = auth_tool.register_tools(app)

    # Register workout tools
    app = workouts.register_tools(app)

    # Register profile tools
    app = profile.register_tools(app)

    return app


def main():
    """Initialize the MCP server and run with configured transport.

    Environment variables:
    - MCP_TRANSPORT: 'stdio' (default) or 'http'
    - MCP_HOST: Host to bind to (default: '0.0.0.0')
    - MCP_PORT: Port for HTTP transport (default: 8081)
    """
    app = create_app()

    transport = os.environ.get("MCP_TRANSPORT", "stdio")

    if transport == "http":
        host = os.environ.get("MCP_HOST", "0.0.0.0")
        port = int(os.environ.get("MCP_PORT", "8081"))
        app.run(transport="http", host=host, port=port)
    else:
        app.run()


if __name__ == "__main__":
    main()
