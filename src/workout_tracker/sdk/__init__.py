"""
Firebase Low-Level SDK.

Thin typed wrapper over the Firebase REST APIs (Identity Toolkit,
Firestore, Storage). Each function maps 1:1 to an endpoint.
"""

from workout_tracker.sdk.client import AuthSession, FirebaseClient, FirebaseError
from workout_tracker.sdk.types import (
    WeightUnit,
    HeightUnit,
    USER_COLLECTION,
    WORKOUT_COLLECTION,
    DISPLAY_NAME_COLLECTION,
    WORKOUTS_FIELD,
    AVATAR_PATH,
)

__all__ = [
    "AuthSession",
    "FirebaseClient",
    "FirebaseError",
    "WeightUnit",
    "HeightUnit",
    "USER_COLLECTION",
    "WORKOUT_COLLECTION",
    "DISPLAY_NAME_COLLECTION",
    "WORKOUTS_FIELD",
    "AVATAR_PATH",
]
