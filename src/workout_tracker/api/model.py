"""
Domain types for workout logging.

Workouts, exercises and sets travel as dataclasses; to_dict()/from_dict()
map them to the camelCase document shape stored in the database and the
local cache.
"""

import dataclasses
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from workout_tracker.sdk.types import WeightUnit


VALID_WEIGHT_UNITS = {u.value for u in WeightUnit}


def new_id() -> str:
    return str(uuid.uuid4()).upper()


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def duration_minutes(start: datetime, end: Optional[datetime]) -> Optional[int]:
    """Whole minutes from start to end, or None while unfinished."""
    if end is None:
        return None
    return int((end - start).total_seconds() / 60)


def as_utc(value: datetime) -> datetime:
    """Treat naive timestamps as UTC so every workout sorts on one clock."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _as_datetime(value: Any) -> Optional[datetime]:
    if value is None:
        return None
    if not isinstance(value, datetime):
        value = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    return as_utc(value)


class _Record:
    def replace(self, **changes):
        return dataclasses.replace(self, **changes)


@dataclass
class ExerciseSet(_Record):
    """One performed set. Weight is in the parent exercise's unit."""
    weight: str = ""
    reps: str = ""
    notes: str = ""
    id: str = field(default_factory=new_id)

    @classmethod
    def from_dict(cls, d: dict) -> "ExerciseSet":
        return cls(
            id=d.get("id") or new_id(),
            weight=str(d.get("weight", "")),
            reps=str(d.get("reps", "")),
            notes=d.get("notes", ""),
        )

    def to_dict(self) -> dict:
        return {"id": self.id, "weight": self.weight, "reps": self.reps, "notes": self.notes}


@dataclass
class Exercise(_Record):
    """A named movement with ordered sets."""
    name: str = ""
    sets: List[ExerciseSet] = field(default_factory=list)
    weight_unit: str = WeightUnit.KG.value
    id: str = field(default_factory=new_id)

    @classmethod
    def from_dict(cls, d: dict) -> "Exercise":
        return cls(
            id=d.get("id") or new_id(),
            name=d.get("name", ""),
            sets=[ExerciseSet.from_dict(s) for s in d.get("sets", [])],
            weight_unit=d.get("weightUnit", WeightUnit.KG.value),
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "sets": [s.to_dict() for s in self.sets],
            "weightUnit": self.weight_unit,
        }

    def validate(self):
        """
        Raises:
            ValueError: If the weight unit is unknown.
        """
        if self.weight_unit not in VALID_WEIGHT_UNITS:
            raise ValueError(
                f"Invalid weight unit '{self.weight_unit}'. "
                f"Must be one of: {', '.join(sorted(VALID_WEIGHT_UNITS))}"
            )


@dataclass
class Workout(_Record):
    """A persisted workout. Set weights are always kilograms."""
    id: str
    name: str
    start_time: datetime
    created_by: str
    end_time: Optional[datetime] = None
    duration: Optional[int] = None
    description: str = ""
    exercises: List[Exercise] = field(default_factory=list)

    def with_duration(self) -> "Workout":
        """Copy with duration recomputed from start/end."""
        return self.replace(duration=duration_minutes(self.start_time, self.end_time))

    @classmethod
    def from_dict(cls, d: dict) -> "Workout":
        """Build from a document or cache entry.

        Raises:
            ValueError: If required fields are missing or malformed.
        """
        try:
            return cls(
                id=d["id"],
                name=d["name"],
                start_time=_as_datetime(d["startTime"]),
                end_time=_as_datetime(d.get("endTime")),
                duration=d.get("duration"),
                description=d.get("description", ""),
                exercises=[Exercise.from_dict(e) for e in d.get("exercises", [])],
                created_by=d["createdBy"],
            )
        except (KeyError, TypeError, AttributeError) as e:
            raise ValueError(f"Malformed workout document: {e}") from e

    def to_dict(self, json_safe: bool = False) -> dict:
        """Document shape. json_safe renders timestamps as ISO strings."""
        start, end = self.start_time, self.end_time
        if json_safe:
            start = start.isoformat()
            end = end.isoformat() if end else None
        data = {
            "id": self.id,
            "name": self.name,
            "startTime": start,
            "description": self.description,
            "exercises": [e.to_dict() for e in self.exercises],
            "createdBy": self.created_by,
        }
        # Optional fields are omitted rather than stored as null
        if end is not None:
            data["endTime"] = end
        if self.duration is not None:
            data["duration"] = self.duration
        return data


@dataclass
class UserProfile(_Record):
    """The signed-in user's profile document.

    height is centimeters and weight kilograms, both as strings.
    """
    user_id: str
    email: str = ""
    display_name: str = ""
    first_name: str = ""
    last_name: str = ""
    height: str = ""
    weight: str = ""
    photo_url: Optional[str] = None
    workouts: List[str] = field(default_factory=list)

    @classmethod
    def from_dict(cls, user_id: str, d: dict) -> "UserProfile":
        return cls(
            user_id=user_id,
            email=d.get("email", ""),
            display_name=d.get("displayName", ""),
            first_name=d.get("firstName", ""),
            last_name=d.get("lastName", ""),
            height=str(d.get("height", "")),
            weight=str(d.get("weight", "")),
            photo_url=d.get("photoURL"),
            workouts=list(d.get("workouts") or []),
        )

    def to_dict(self) -> dict:
        data = {
            "email": self.email,
            "displayName": self.display_name,
            "displayNameLower": self.display_name.lower(),
            "firstName": self.first_name,
            "lastName": self.last_name,
            "height": self.height,
            "weight": self.weight,
            "workouts": list(self.workouts),
        }
        if self.photo_url:
            data["photoURL"] = self.photo_url
        return data


@dataclass
class WorkoutDraft:
    """The in-progress workout being composed before save."""
    name: str = ""
    start_time: datetime = field(default_factory=utcnow)
    end_time: Optional[datetime] = None
    description: str = ""
    exercises: List[Exercise] = field(default_factory=list)

    def add_exercise(self, name: str = "", weight_unit: str = WeightUnit.KG.value) -> Exercise:
        """Append an exercise that starts with one empty set."""
        exercise = Exercise(name=name, sets=[ExerciseSet()], weight_unit=weight_unit)
        exercise.validate()
        self.exercises.append(exercise)
        return exercise

    def remove_exercise(self, index: int) -> None:
        del self.exercises[index]

    def add_set(self, exercise_index: int, weight: str = "", reps: str = "", notes: str = "") -> ExerciseSet:
        new_set = ExerciseSet(weight=weight, reps=reps, notes=notes)
        self.exercises[exercise_index].sets.append(new_set)
        return new_set

    def remove_set(self, exercise_index: int, set_index: int) -> None:
        del self.exercises[exercise_index].sets[set_index]

    def toggle_weight_unit(self, exercise_index: int) -> str:
        """Flip an exercise between kg and lbs; entered numbers are kept as typed."""
        exercise = self.exercises[exercise_index]
        exercise.weight_unit = WeightUnit.LBS.value if exercise.weight_unit == WeightUnit.KG else WeightUnit.KG.value
        return exercise.weight_unit

    def finish(self, now: datetime = None) -> None:
        self.end_time = now or utcnow()

    def reset(self) -> None:
        self.name = ""
        self.start_time = utcnow()
        self.end_time = None
        self.description = ""
        self.exercises = []

    def summary(self) -> Dict[str, Any]:
        """Name, duration (if finished) and exercise count."""
        result = {"name": self.name, "exercises": len(self.exercises)}
        minutes = duration_minutes(self.start_time, self.end_time)
        if minutes is not None:
            result["duration_minutes"] = minutes
        return result
