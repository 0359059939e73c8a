"""
Shared utility functions for the workout tracker MCP server.

Date parsing and display formatting used across tool modules.
"""

from datetime import datetime
from typing import Optional

from workout_tracker.api.model import Workout, as_utc
from workout_tracker.api.units import to_display_weight


def parse_datetime(value: Optional[str]) -> Optional[datetime]:
    """Parse an ISO 8601 date-time string; naive values are taken as UTC.

    Args:
        value: e.g. "2025-01-27T18:30:00Z" or "2025-01-27 18:30"

    Returns:
        Timezone-aware datetime, or None for empty input

    Raises:
        ValueError: If the string is not ISO 8601
    """
    if not value:
        return None
    return as_utc(datetime.fromisoformat(value.strip().replace("Z", "+00:00")))


def format_duration(minutes: Optional[int]) -> str:
    """Format whole minutes as "1h05m" or "47m".

    Returns:
        Formatted string, or "in progress" when there is no duration
    """
    if minutes is None:
        return "in progress"
    if minutes < 0:
        return "0m"
    h, m = divmod(minutes, 60)
    if h > 0:
        return f"{h}h{m:02d}m"
    return f"{m}m"


def format_workout(workout: Workout, weight_unit: str = None, detailed: bool = True) -> dict:
    """Render a workout for display.

    Stored weights are kilograms; each exercise shows them in weight_unit
    when given, else in its own display unit.
    """
    result = {
        "id": workout.id,
        "name": workout.name,
        "start": workout.start_time.isoformat(),
        "end": workout.end_time.isoformat() if workout.end_time else None,
        "duration": format_duration(workout.duration),
        "description": workout.description or None,
        "exercise_count": len(workout.exercises),
    }
    if detailed:
        result["exercises"] = [
            {
                "name": exercise.name,
                "unit": weight_unit or exercise.weight_unit,
                "sets": [
                    _clean_nones({
                        "weight": to_display_weight(s.weight, weight_unit or exercise.weight_unit),
                        "reps": s.reps,
                        "notes": s.notes or None,
                    })
                    for s in exercise.sets
                ],
            }
            for exercise in workout.exercises
        ]
    return _clean_nones(result)


def _clean_nones(d):
    """Recursively remove None values from a dict."""
    if isinstance(d, dict):
        return {k: _clean_nones(v) for k, v in d.items() if v is not None}
    if isinstance(d, list):
        return [_clean_nones(i) for i in d]
    return d
