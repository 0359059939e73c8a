"""
Profile tools for the workout tracker MCP server.

Body metrics and display unit preferences.
"""

import json
from concurrent.futures import TimeoutError as FutureTimeout

from fastmcp import Context

from workout_tracker.client_factory import get_tracker
from workout_tracker.workouts import SYNC_WAIT


def register_tools(app):
    """Register profile tools with the MCP app."""

    @app.tool()
    async def get_profile(ctx: Context) -> str:
        """
        Get the user's profile with body metrics in the preferred units.

        Returns:
            JSON with identity, body metrics and unit preferences
        """
        tracker = get_tracker(ctx)
        profile = tracker.profile.profile
        if profile is None:
            return json.dumps({"error": "Profile not available", "error_code": "NOT_FOUND"}, indent=2)

        prefs = tracker.profile.units
        return json.dumps({
            "user_id": profile.user_id,
            "email": profile.email,
            "display_name": profile.display_name,
            "first_name": profile.first_name,
            "last_name": profile.last_name,
            "weight": tracker.profile.display_weight() or None,
            "weight_unit": prefs.weight_unit,
            "height": tracker.profile.display_height() or None,
            "height_unit": prefs.height_unit,
            "photo_url": profile.photo_url,
            "workout_count": len(profile.workouts),
        }, indent=2)

    @app.tool()
    async def update_body_metrics(
        ctx: Context,
        weight: str = None,
        height: str = None,
        weight_unit: str = None,
        height_unit: str = None,
    ) -> str:
        """
        Update body weight and/or height.

        Values are entered in the given unit (the preferred unit when
        omitted) and stored as kg and cm.

        Args:
            weight: Body weight, e.g. "80" or "176.5"
            height: Height, e.g. "180" or "71"
            weight_unit: "kg" or "lbs"
            height_unit: "cm" or "in"

        Returns:
            JSON with the update result
        """
        tracker = get_tracker(ctx)
        if weight is None and height is None:
            return json.dumps({"error": "Nothing to update", "error_code": "INVALID_INPUT"}, indent=2)

        futures = {}
        try:
            if weight is not None:
                futures["weight"] = tracker.profile.update_weight(weight, weight_unit)
            if height is not None:
                futures["height"] = tracker.profile.update_height(height, height_unit)
        except ValueError as e:
            return json.dumps({"error": str(e), "error_code": "INVALID_INPUT"}, indent=2)

        errors = {}
        for field, future in futures.items():
            try:
                exc = future.exception(timeout=SYNC_WAIT)
            except FutureTimeout:
                errors[field] = "Server did not confirm the update in time"
                continue
            if exc is not None:
                errors[field] = str(exc)

        result = {
            "success": not errors,
            "weight": tracker.profile.display_weight() or None,
            "height": tracker.profile.display_height() or None,
        }
        if errors:
            result["errors"] = errors
        return json.dumps(result, indent=2)

    @app.tool()
    async def set_unit_preferences(
        ctx: Context,
        weight_unit: str = None,
        height_unit: str = None,
    ) -> str:
        """
        Choose the units used to show and enter body metrics and weights.

        Args:
            weight_unit: "kg" or "lbs"
            height_unit: "cm" or "in"

        Returns:
            JSON with the saved preferences
        """
        tracker = get_tracker(ctx)
        try:
            prefs = tracker.profile.set_units(weight_unit, height_unit)
        except ValueError as e:
            return json.dumps({"error": str(e), "error_code": "INVALID_INPUT"}, indent=2)
        return json.dumps(prefs.to_dict(), indent=2)

    return app
