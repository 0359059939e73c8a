"""
Remote workout store — workout documents and the owner's reference list.

Every call goes straight to the database; failures propagate to the
caller, which owns the retry policy.
"""

import logging
import threading
from typing import Any, Callable, Dict, List, Optional

import requests

from workout_tracker.api.connectivity import POLL_INTERVAL
from workout_tracker.api.model import Workout
from workout_tracker.sdk import firestore
from workout_tracker.sdk.client import FirebaseClient
from workout_tracker.sdk.types import USER_COLLECTION, WORKOUT_COLLECTION, WORKOUTS_FIELD

logger = logging.getLogger(__name__)

# Transport failures, backend error payloads and undecodable documents
# (ValueError), and calls made without credentials (RuntimeError)
REMOTE_ERRORS = (requests.RequestException, ValueError, RuntimeError)


class Subscription:
    """Polls a document and reports each distinct snapshot.

    The REST API has no push channel, so "listening" is a watcher thread
    comparing successive reads. The first snapshot is always delivered.
    """

    _MISSING = object()

    def __init__(
        self,
        read: Callable[[], Any],
        on_change: Callable[[Any], None],
        interval: float = POLL_INTERVAL,
        name: str = "subscription",
    ):
        self._read = read
        self._on_change = on_change
        self._interval = interval
        self._last = self._MISSING
        self._stop = threading.Event()
        self._thread = threading.Thread(target=self._run, name=name, daemon=True)

    @property
    def active(self) -> bool:
        return not self._stop.is_set()

    def start(self) -> "Subscription":
        self._thread.start()
        return self

    def poll(self) -> bool:
        """Read once; deliver if changed. Returns True if delivered."""
        try:
            snapshot = self._read()
        except REMOTE_ERRORS as e:
            logger.error(f"Error listening for changes: {e}")
            return False
        if self._stop.is_set() or snapshot == self._last:
            return False
        self._last = snapshot
        self._on_change(snapshot)
        return True

    def remove(self) -> None:
        self._stop.set()
        if self._thread.is_alive() and self._thread is not threading.current_thread():
            self._thread.join(timeout=self._interval + 1)

    def _run(self) -> None:
        while not self._stop.is_set():
            self.poll()
            self._stop.wait(self._interval)


class RemoteWorkoutStore:
    def __init__(self, client: FirebaseClient, poll_interval: float = POLL_INTERVAL):
        self._client = client
        self._poll_interval = poll_interval

    @property
    def client(self) -> FirebaseClient:
        return self._client

    def create_or_replace(self, workout: Workout) -> None:
        """Full write of workouts/{id}. Idempotent."""
        firestore.set_document(self._client, WORKOUT_COLLECTION, workout.id, workout.to_dict())

    def link_to_user(self, workout_id: str, user_id: str) -> None:
        firestore.array_union(self._client, USER_COLLECTION, user_id, WORKOUTS_FIELD, [workout_id])

    def unlink_from_user(self, workout_id: str, user_id: str) -> None:
        firestore.array_remove(self._client, USER_COLLECTION, user_id, WORKOUTS_FIELD, [workout_id])

    def delete(self, workout_id: str) -> None:
        firestore.delete_document(self._client, WORKOUT_COLLECTION, workout_id)

    def fetch(self, workout_id: str) -> Optional[Workout]:
        """
        Read one workout.

        Returns:
            The workout, or None if the document does not exist

        Raises:
            ValueError: If the document cannot be decoded
        """
        data = firestore.get_document(self._client, WORKOUT_COLLECTION, workout_id)
        if data is None:
            return None
        return Workout.from_dict(data)

    def fetch_workout_ids(self, user_id: str) -> List[str]:
        """The user's workout reference list; empty if the profile is missing."""
        data = firestore.get_document(self._client, USER_COLLECTION, user_id)
        return _workout_ids(data)

    def fetch_user(self, user_id: str) -> Optional[Dict[str, Any]]:
        return firestore.get_document(self._client, USER_COLLECTION, user_id)

    def subscribe(self, user_id: str, on_change: Callable[[List[str]], None]) -> Subscription:
        """Watch the user's workout id list; on_change gets each new list."""
        return Subscription(
            lambda: self.fetch_workout_ids(user_id),
            on_change,
            interval=self._poll_interval,
            name=f"workouts-{user_id}",
        ).start()

    def subscribe_user(self, user_id: str, on_change: Callable[[Optional[Dict[str, Any]]], None]) -> Subscription:
        """Watch the whole profile document."""
        return Subscription(
            lambda: self.fetch_user(user_id),
            on_change,
            interval=self._poll_interval,
            name=f"profile-{user_id}",
        ).start()


def _workout_ids(data: Optional[Dict[str, Any]]) -> List[str]:
    if not data:
        return []
    ids = data.get(WORKOUTS_FIELD)
    if not isinstance(ids, list):
        return []
    return [i for i in ids if isinstance(i, str)]
