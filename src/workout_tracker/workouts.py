"""
Workout logging tools for the workout tracker MCP server.

Log, list, edit and delete workouts. Every write is cached locally first,
so tools report whether the backend confirmed it or it is queued for the
next reconnect.
"""

import json
import os
from concurrent.futures import TimeoutError as FutureTimeout, wait

from fastmcp import Context

from workout_tracker.api.model import Exercise, ExerciseSet, WorkoutDraft
from workout_tracker.api.units import convert_exercise_sets_to_kg
from workout_tracker.client_factory import get_tracker
from workout_tracker.utils import format_workout, parse_datetime

# Seconds a tool waits for the backend before reporting a write as queued
SYNC_WAIT = float(os.environ.get("TRACKER_SYNC_WAIT", "10"))


def _build_exercises(exercises: list[dict]) -> list[Exercise]:
    """
    Raises:
        ValueError: On an unknown weight unit
    """
    built = []
    for e in exercises or []:
        exercise = Exercise(
            name=e.get("name", ""),
            weight_unit=e.get("weight_unit", "kg"),
            sets=[
                ExerciseSet(
                    weight=str(s.get("weight", "")),
                    reps=str(s.get("reps", "")),
                    notes=s.get("notes", ""),
                )
                for s in e.get("sets", [])
            ],
        )
        exercise.validate()
        built.append(exercise)
    return built


def _confirmed(future) -> bool:
    """True if the backend confirmed the write within SYNC_WAIT."""
    try:
        return bool(future.result(timeout=SYNC_WAIT))
    except FutureTimeout:
        return False


def register_tools(app):
    """Register workout tools with the MCP app."""

    @app.tool()
    async def log_workout(
        ctx: Context,
        name: str,
        exercises: list[dict],
        start_time: str = None,
        end_time: str = None,
        description: str = "",
    ) -> str:
        """
        Log a completed (or in-progress) workout.

        Weights are entered in each exercise's unit and stored in kg.

        Args:
            name: Workout name (e.g. "Push Day")
            exercises: List of exercises. Each is a dict with:
                - name: Exercise name
                - weight_unit: "kg" or "lbs" (default "kg")
                - sets: list of {"weight": "100", "reps": "5", "notes": ""}
                Example: [
                    {"name": "Bench Press", "weight_unit": "lbs",
                     "sets": [{"weight": "185", "reps": "5"}]}
                ]
            start_time: ISO 8601 start (default: now)
            end_time: ISO 8601 end; omit for an unfinished workout
            description: Optional notes

        Returns:
            JSON with the saved workout and whether it reached the server
        """
        tracker = get_tracker(ctx)
        try:
            draft = WorkoutDraft(
                name=name.strip(),
                description=description,
                exercises=_build_exercises(exercises),
            )
            if start_time:
                draft.start_time = parse_datetime(start_time)
            draft.end_time = parse_datetime(end_time)
        except ValueError as e:
            return json.dumps({"error": str(e), "error_code": "INVALID_INPUT"}, indent=2)

        saved = tracker.workouts.save_workout(draft)
        if saved is None:
            return json.dumps({"error": "Workout name cannot be empty", "error_code": "INVALID_INPUT"}, indent=2)

        synced = _confirmed(saved.future)
        return json.dumps({
            "success": True,
            "synced": synced,
            "message": "Workout saved" if synced else "Workout saved offline; it will sync when the connection returns",
            "workout": format_workout(saved.workout),
        }, indent=2)

    @app.tool()
    async def list_workouts(ctx: Context, limit: int = 20, detailed: bool = False) -> str:
        """
        List the user's workouts, newest first.

        Includes workouts that have not reached the server yet.

        Args:
            limit: Maximum number of workouts (default 20)
            detailed: Include exercises and sets

        Returns:
            JSON with workouts in the preferred weight unit
        """
        tracker = get_tracker(ctx)
        tracker.workouts.refresh()
        workouts = tracker.workouts.user_workouts
        weight_unit = tracker.profile.units.weight_unit

        return json.dumps({
            "count": len(workouts),
            "unsynced": tracker.workouts.unsynced_count(),
            "workouts": [format_workout(w, weight_unit, detailed=detailed) for w in workouts[:limit]],
        }, indent=2)

    @app.tool()
    async def get_workout(ctx: Context, workout_id: str) -> str:
        """
        Get one workout with all exercises and sets.

        Args:
            workout_id: Workout ID from list_workouts

        Returns:
            JSON with the workout, weights in each exercise's own unit
        """
        tracker = get_tracker(ctx)
        workout = tracker.workouts.get_workout(workout_id)
        if workout is None:
            return json.dumps({"error": f"Workout {workout_id} not found", "error_code": "NOT_FOUND"}, indent=2)
        return json.dumps(format_workout(workout), indent=2)

    @app.tool()
    async def update_workout(
        ctx: Context,
        workout_id: str,
        name: str = None,
        description: str = None,
        start_time: str = None,
        end_time: str = None,
        exercises: list[dict] = None,
    ) -> str:
        """
        Edit a workout. Only the given fields change.

        Args:
            workout_id: Workout ID from list_workouts
            name: New name
            description: New notes
            start_time: New ISO 8601 start
            end_time: New ISO 8601 end
            exercises: Replacement exercise list, same shape as log_workout

        Returns:
            JSON with the updated workout and whether it reached the server
        """
        tracker = get_tracker(ctx)
        workout = tracker.workouts.get_workout(workout_id)
        if workout is None:
            return json.dumps({"error": f"Workout {workout_id} not found", "error_code": "NOT_FOUND"}, indent=2)

        changes = {}
        try:
            if name is not None:
                if not name.strip():
                    raise ValueError("Workout name cannot be empty")
                changes["name"] = name.strip()
            if description is not None:
                changes["description"] = description
            if start_time:
                changes["start_time"] = parse_datetime(start_time)
            if end_time:
                changes["end_time"] = parse_datetime(end_time)
            if exercises is not None:
                changes["exercises"] = convert_exercise_sets_to_kg(_build_exercises(exercises))
        except ValueError as e:
            return json.dumps({"error": str(e), "error_code": "INVALID_INPUT"}, indent=2)

        future = tracker.workouts.update_workout(workout.replace(**changes))
        if future is None:
            return json.dumps({"error": f"Workout {workout_id} was deleted", "error_code": "NOT_FOUND"}, indent=2)

        synced = _confirmed(future)
        return json.dumps({
            "success": True,
            "synced": synced,
            "workout": format_workout(tracker.workouts.get_workout(workout_id) or workout),
        }, indent=2)

    @app.tool()
    async def delete_workout(ctx: Context, workout_id: str) -> str:
        """
        Delete a workout everywhere.

        It disappears from the list at once; the server delete is retried
        on reconnect if it fails now.

        Args:
            workout_id: Workout ID from list_workouts

        Returns:
            JSON with deletion result
        """
        tracker = get_tracker(ctx)
        if tracker.workouts.get_workout(workout_id) is None:
            return json.dumps({"error": f"Workout {workout_id} not found", "error_code": "NOT_FOUND"}, indent=2)

        future = tracker.workouts.delete_workout(workout_id)
        synced = _confirmed(future)
        return json.dumps({
            "success": True,
            "synced": synced,
            "message": "Workout deleted" if synced else "Workout removed; server delete is queued",
        }, indent=2)

    @app.tool()
    async def sync_workouts(ctx: Context) -> str:
        """
        Push every unsynced workout and queued delete now.

        Returns:
            JSON with how many changes synced and how many remain
        """
        tracker = get_tracker(ctx)
        futures = tracker.workouts.replay_unsynced()
        done, _ = wait(futures, timeout=SYNC_WAIT)
        synced = sum(1 for f in done if f.exception() is None and f.result())
        tracker.workouts.refresh()

        return json.dumps({
            "attempted": len(futures),
            "synced": synced,
            "remaining": tracker.workouts.unsynced_count(),
        }, indent=2)

    @app.tool()
    async def get_sync_status(ctx: Context) -> str:
        """
        Report connectivity and the number of changes waiting to sync.

        Returns:
            JSON with reachability and unsynced counts
        """
        tracker = get_tracker(ctx)
        state = tracker.monitor.state
        return json.dumps({
            "connectivity": state.value if state else "unknown",
            "unsynced": tracker.workouts.unsynced_count(),
        }, indent=2)

    return app
