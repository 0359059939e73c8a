"""
Backend types, enums, and constants.

Collection names, storage paths, and unit codes live here.
"""

from enum import Enum


class WeightUnit(str, Enum):
    """Weight display/input units. Storage is always kilograms."""
    KG = "kg"
    LBS = "lbs"


class HeightUnit(str, Enum):
    """Height display/input units. Storage is always centimeters."""
    CM = "cm"
    INCHES = "in"


# Firestore collections
USER_COLLECTION = "user-data"
WORKOUT_COLLECTION = "workouts"
DISPLAY_NAME_COLLECTION = "display-names"

# Array field on user-data documents holding owned workout ids
WORKOUTS_FIELD = "workouts"

# Storage object path for profile pictures
AVATAR_PATH = "profile_pictures/{user_id}.jpg"
