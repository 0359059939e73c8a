"""
Authentication tools for the workout tracker MCP server.

Provides login, registration, session management, and identity tools.
"""

import json
import logging

from fastmcp import Context

logger = logging.getLogger(__name__)
logging.basicConfig(level=logging.INFO)

from workout_tracker.client_factory import (
    get_session_tracker,
    get_tracker,
    set_session_tokens,
    clear_session_tokens,
)


def register_tools(app):
    """Register authentication and identity tools with the MCP app."""

    @app.tool()
    async def tracker_login(identifier: str, password: str, ctx: Context) -> dict:
        """
        Sign in to the workout tracker.

        Accepts either the account email or the display name
        (display names match case-insensitively).

        Args:
            identifier: Account email address or display name
            password: Account password

        Returns:
            Login result with user info or error message
        """
        tracker = get_session_tracker(ctx)
        result = tracker.session.sign_in(identifier, password)
        if result.success:
            set_session_tokens(ctx, result.tokens)
        return result.to_dict()

    @app.tool()
    async def tracker_register(
        email: str,
        password: str,
        confirm_password: str,
        display_name: str,
        ctx: Context,
        first_name: str = "",
        last_name: str = "",
    ) -> dict:
        """
        Create a workout tracker account.

        The display name must be unique (case-insensitive). Passwords
        must match and be at least 6 characters.

        Args:
            email: Account email address
            password: Account password
            confirm_password: Same password again
            display_name: Public name, also usable to sign in
            first_name: Optional first name
            last_name: Optional last name

        Returns:
            Registration result with user info or error message
        """
        tracker = get_session_tracker(ctx)
        result = tracker.session.register(
            email, password, confirm_password, display_name,
            first_name=first_name, last_name=last_name,
        )
        if result.success:
            set_session_tokens(ctx, result.tokens)
        return result.to_dict()

    @app.tool()
    async def tracker_logout(ctx: Context) -> dict:
        """
        Sign out of the current session.

        Workouts that have not reached the server yet are discarded.

        Returns:
            Logout confirmation
        """
        tracker = get_session_tracker(ctx)
        discarded = tracker.workouts.unsynced_count()
        tracker.session.sign_out()
        clear_session_tokens(ctx)
        result = {"success": True, "message": "Logged out"}
        if discarded:
            result["discarded_unsynced"] = discarded
        return result

    @app.tool()
    async def get_current_user(ctx: Context) -> str:
        """
        Get the signed-in user's identity.

        Returns:
            JSON with user id, email and display name
        """
        try:
            tracker = get_tracker(ctx)
        except ValueError as e:
            return json.dumps({"error": str(e), "error_code": "NOT_LOGGED_IN"}, indent=2)

        profile = tracker.profile.profile
        auth = tracker.client.auth
        return json.dumps({
            "user_id": auth.user_id,
            "email": auth.email,
            "display_name": profile.display_name if profile else None,
        }, indent=2)

    return app
