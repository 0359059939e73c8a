"""
High-Level API — Domain model for workout tracking.

Composes with the low-level SDK internally.

Modules:
    model        — Workouts, exercises, sets, profile, the draft
    units        — kg/lbs and cm/inches conversion
    cache        — Local key-value store and the unsynced-workout cache
    connectivity — Reachability watcher firing on reconnect
    remote       — Workout documents and the owner's reference list
    sync         — Save / update / delete / listen with offline replay
    profile      — Body metrics, unit preferences, avatar
    session      — Sign-in, registration, sign-out
"""

# Model
from workout_tracker.api.model import Exercise, ExerciseSet, UserProfile, Workout, WorkoutDraft

# Units
from workout_tracker.api.units import (
    to_canonical_weight,
    to_display_weight,
    to_canonical_height,
    to_display_height,
)

# Components
from workout_tracker.api.cache import KeyValueStore, LocalWorkoutCache
from workout_tracker.api.connectivity import ConnectivityMonitor, Reachability
from workout_tracker.api.remote import RemoteWorkoutStore, Subscription
from workout_tracker.api.sync import WorkoutSyncEngine
from workout_tracker.api.profile import ProfileStore, UnitPreferences
from workout_tracker.api.session import AuthResult, SessionManager

__all__ = [
    # Model
    "Exercise", "ExerciseSet", "UserProfile", "Workout", "WorkoutDraft",
    # Units
    "to_canonical_weight", "to_display_weight", "to_canonical_height", "to_display_height",
    # Components
    "KeyValueStore", "LocalWorkoutCache",
    "ConnectivityMonitor", "Reachability",
    "RemoteWorkoutStore", "Subscription",
    "WorkoutSyncEngine",
    "ProfileStore", "UnitPreferences",
    "AuthResult", "SessionManager",
]
