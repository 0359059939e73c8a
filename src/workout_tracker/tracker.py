"""
Tracker — owns one signed-in (or signed-out) app session.

Builds every component around a single FirebaseClient and data
directory, and wires the lifecycle:

- sign-in / restore → sync engine listens, profile loads
- sign-out          → listener torn down, workout cache and avatar cleared
- reconnect         → unsynced workouts and deletes replayed
"""

import logging
import os
from pathlib import Path
from typing import Optional

from workout_tracker.api.cache import KeyValueStore, LocalWorkoutCache
from workout_tracker.api.connectivity import ConnectivityMonitor
from workout_tracker.api.model import UserProfile
from workout_tracker.api.profile import ProfileStore
from workout_tracker.api.remote import REMOTE_ERRORS, RemoteWorkoutStore, Subscription
from workout_tracker.api.session import SessionManager
from workout_tracker.api.sync import WorkoutSyncEngine
from workout_tracker.sdk.client import FirebaseClient

logger = logging.getLogger(__name__)

DATA_DIR = Path(os.environ.get("TRACKER_DATA_DIR", Path.home() / ".workout_tracker"))
STORE_FILE = "store.json"


class Tracker:
    def __init__(
        self,
        client: FirebaseClient = None,
        data_dir: Path = None,
        monitor: ConnectivityMonitor = None,
        executor=None,
    ):
        self.data_dir = Path(data_dir or DATA_DIR)
        self.client = client or FirebaseClient()
        self.store = KeyValueStore(self.data_dir / STORE_FILE)

        self.cache = LocalWorkoutCache(self.store)
        self.remote = RemoteWorkoutStore(self.client)
        self.workouts = WorkoutSyncEngine(self.cache, self.remote, executor=executor)
        self.profile = ProfileStore(self.client, self.store, self.data_dir, executor=executor)
        self.session = SessionManager(self.client, self.remote)
        self.monitor = monitor or ConnectivityMonitor()

        self._profile_watch: Optional[Subscription] = None
        self._active_user: Optional[str] = None

        self.session.add_listener(self._on_user_changed)
        self.monitor.on_reconnect(self.workouts.replay_unsynced)

    def start(self) -> "Tracker":
        """Start the connectivity watcher; resume listening if signed in."""
        self.monitor.start()
        if self.session.user_id:
            self._on_user_changed(self.session.user_id)
        return self

    def _on_user_changed(self, user_id: Optional[str]) -> None:
        previous, self._active_user = self._active_user, user_id
        if self._profile_watch:
            self._profile_watch.remove()
            self._profile_watch = None

        if previous and not user_id:
            # Sign-out drops anything not yet synced for the old session
            self.cache.clear()
            self.profile.clear()

        self.workouts.on_session_change(user_id)

        if user_id:
            try:
                self.profile.load(user_id)
            except REMOTE_ERRORS as e:
                logger.error(f"Error loading profile: {e}")
            self._profile_watch = self.session.watch_profile(self._on_profile)

    def _on_profile(self, profile: Optional[UserProfile]) -> None:
        if profile is not None:
            self.profile.apply_snapshot(profile)

    def close(self) -> None:
        self.monitor.stop()
        if self._profile_watch:
            self._profile_watch.remove()
            self._profile_watch = None
        self.workouts.close()
        self.profile.close()
