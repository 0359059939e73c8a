"""
Local persistence — the unsynced-workout cache and its key-value store.

KeyValueStore is a JSON file of top-level keys, rewritten atomically on
every set. LocalWorkoutCache keeps every not-yet-confirmed workout as a
single JSON blob under one key, plus a queue of deletes that still have
to reach the backend.
"""

import json
import logging
import os
import threading
from pathlib import Path
from typing import Any, Dict, List, Optional

from workout_tracker.api.model import Workout

logger = logging.getLogger(__name__)

WORKOUTS_KEY = "unsynced_workouts"
PENDING_DELETES_KEY = "pending_deletes"


class KeyValueStore:
    """Process-surviving key-value store backed by one JSON file."""

    def __init__(self, path: Path):
        self._path = Path(path)
        self._lock = threading.RLock()

    def get(self, key: str, default: Any = None) -> Any:
        with self._lock:
            return self._load().get(key, default)

    def set(self, key: str, value: Any) -> None:
        with self._lock:
            data = self._load()
            data[key] = value
            self._save(data)

    def delete(self, key: str) -> None:
        with self._lock:
            data = self._load()
            if key in data:
                del data[key]
                self._save(data)

    def _load(self) -> Dict[str, Any]:
        if not self._path.exists():
            return {}
        try:
            with open(self._path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (json.JSONDecodeError, IOError) as e:
            logger.warning(f"Ignoring unreadable store {self._path}: {e}")
            return {}
        return data if isinstance(data, dict) else {}

    def _save(self, data: Dict[str, Any]) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self._path.with_suffix(self._path.suffix + ".tmp")
        with open(tmp, "w", encoding="utf-8") as f:
            json.dump(data, f)
        os.replace(tmp, self._path)


class LocalWorkoutCache:
    """Workouts written locally but not yet confirmed by the backend.

    Every read-modify-write holds the cache lock, so concurrent save,
    delete, replay and merge flows never lose each other's updates.
    """

    def __init__(self, store: KeyValueStore):
        self._store = store
        self._lock = threading.RLock()

    def put(self, workout: Workout) -> None:
        """Insert, or replace the entry with the same id in place."""
        entry = workout.to_dict(json_safe=True)
        with self._lock:
            entries = self._entries()
            for i, existing in enumerate(entries):
                if existing.get("id") == workout.id:
                    entries[i] = entry
                    break
            else:
                entries.append(entry)
            self._store.set(WORKOUTS_KEY, json.dumps(entries))

    def get_all(self) -> List[Workout]:
        """All cached workouts; an absent or corrupt blob reads as empty."""
        with self._lock:
            entries = self._entries()

        workouts = []
        for entry in entries:
            try:
                workouts.append(Workout.from_dict(entry))
            except ValueError as e:
                logger.warning(f"Skipping undecodable cached workout: {e}")
        return workouts

    def get(self, workout_id: str) -> Optional[Workout]:
        for workout in self.get_all():
            if workout.id == workout_id:
                return workout
        return None

    def remove(self, workout_id: str) -> None:
        with self._lock:
            entries = self._entries()
            remaining = [e for e in entries if e.get("id") != workout_id]
            if len(remaining) != len(entries):
                self._store.set(WORKOUTS_KEY, json.dumps(remaining))

    def discard_synced(self, workout: Workout) -> bool:
        """Remove the entry only if it still matches what was uploaded.

        A newer edit cached while the upload was in flight is kept.
        """
        entry = workout.to_dict(json_safe=True)
        with self._lock:
            entries = self._entries()
            remaining = [e for e in entries if e != entry]
            if len(remaining) == len(entries):
                return False
            self._store.set(WORKOUTS_KEY, json.dumps(remaining))
            return True

    def clear(self) -> None:
        with self._lock:
            self._store.delete(WORKOUTS_KEY)
            self._store.delete(PENDING_DELETES_KEY)

    # ── Pending deletes ──────────────────────────────────────────────────

    def queue_delete(self, workout_id: str, user_id: str) -> None:
        with self._lock:
            pending = self._store.get(PENDING_DELETES_KEY) or {}
            pending[workout_id] = user_id
            self._store.set(PENDING_DELETES_KEY, pending)

    def pending_deletes(self) -> Dict[str, str]:
        """workout id → owning user id for deletes not yet confirmed."""
        with self._lock:
            return dict(self._store.get(PENDING_DELETES_KEY) or {})

    def resolve_delete(self, workout_id: str) -> None:
        with self._lock:
            pending = self._store.get(PENDING_DELETES_KEY) or {}
            if workout_id in pending:
                del pending[workout_id]
                self._store.set(PENDING_DELETES_KEY, pending)

    def _entries(self) -> List[Dict[str, Any]]:
        blob = self._store.get(WORKOUTS_KEY)
        if not blob:
            return []
        try:
            entries = json.loads(blob)
        except (json.JSONDecodeError, TypeError) as e:
            logger.warning(f"Discarding undecodable workout cache: {e}")
            return []
        if not isinstance(entries, list):
            return []
        return [e for e in entries if isinstance(e, dict)]
