"""
Workout sync engine — save, update, delete and listen with an offline queue.

Every write lands in the LocalWorkoutCache before the backend is tried;
the cache entry is dropped only once the backend confirms. Whatever is
still cached (or queued for deletion) is replayed when connectivity
returns.

Threading:
    Visible state (user_workouts, the draft) changes only under the
    engine lock. Remote I/O runs on the executor, and remote sequences
    for the same workout id are serialized by a per-id lock.
"""

import logging
import threading
from concurrent.futures import Executor, Future, ThreadPoolExecutor, wait
from typing import Callable, Dict, List, NamedTuple, Optional, Tuple

from workout_tracker.api.cache import LocalWorkoutCache
from workout_tracker.api.model import Workout, WorkoutDraft, as_utc, new_id
from workout_tracker.api.remote import REMOTE_ERRORS, RemoteWorkoutStore, Subscription
from workout_tracker.api.units import convert_exercise_sets_to_kg

logger = logging.getLogger(__name__)

WorkoutsListener = Callable[[List[Workout]], None]


class SavedWorkout(NamedTuple):
    """The workout as saved locally and the Future of its upload."""
    workout: Workout
    future: Future


class WorkoutSyncEngine:
    def __init__(
        self,
        cache: LocalWorkoutCache,
        remote: RemoteWorkoutStore,
        executor: Executor = None,
        dispatch: Callable[[Callable[[], None]], None] = None,
    ):
        """
        Args:
            cache: Local store for unconfirmed writes
            remote: Backend workout store
            executor: Runs remote I/O (a private thread pool by default)
            dispatch: Schedules listener notifications on the observer's
                thread; notifications run inline when omitted
        """
        self._cache = cache
        self._remote = remote
        self._owns_executor = executor is None
        self._executor = executor or ThreadPoolExecutor(max_workers=4, thread_name_prefix="workout-sync")
        self._dispatch = dispatch

        self._lock = threading.RLock()
        self._user_id: Optional[str] = None
        self._workouts: List[Workout] = []
        self._draft = WorkoutDraft()
        self._subscription: Optional[Subscription] = None
        self._merge_seq = 0
        self._merges_in_flight = 0
        self._write_seq = 0
        self._recent_writes: Dict[str, Tuple[int, Workout]] = {}
        self._deleted = set()
        self._uploads_in_flight: Dict[str, int] = {}
        self._listeners: List[WorkoutsListener] = []

        self._id_locks: Dict[str, threading.Lock] = {}
        self._id_locks_guard = threading.Lock()

    # ── State ────────────────────────────────────────────────────────────

    @property
    def user_id(self) -> Optional[str]:
        return self._user_id

    @property
    def user_workouts(self) -> List[Workout]:
        with self._lock:
            return list(self._workouts)

    @property
    def draft(self) -> WorkoutDraft:
        return self._draft

    def get_workout(self, workout_id: str) -> Optional[Workout]:
        with self._lock:
            for workout in self._workouts:
                if workout.id == workout_id:
                    return workout
        return None

    def unsynced_count(self) -> int:
        pending = self._cache.pending_deletes()
        return len([w for w in self._cache.get_all() if w.created_by == self._user_id]) + len(
            [wid for wid, owner in pending.items() if owner == self._user_id]
        )

    def add_listener(self, callback: WorkoutsListener) -> None:
        self._listeners.append(callback)

    def _publish(self) -> None:
        snapshot = self.user_workouts

        def notify():
            for callback in list(self._listeners):
                try:
                    callback(snapshot)
                except Exception as e:
                    logger.error(f"Workout listener failed: {e}")

        if self._dispatch:
            self._dispatch(notify)
        else:
            notify()

    # ── Save / update / delete ───────────────────────────────────────────

    def save_workout(self, draft: WorkoutDraft = None) -> Optional[SavedWorkout]:
        """
        Persist the draft (the engine's own unless one is given).

        Returns:
            SavedWorkout with the built workout and a Future resolving to
            True once the backend confirmed, False if the workout stays
            cached for replay; None if nothing was saved
        """
        with self._lock:
            draft = draft or self._draft
            user_id = self._user_id
            if not user_id:
                logger.error("Error: No authenticated user found")
                return None
            if not draft.name:
                logger.warning("Workout name cannot be empty")
                return None

            workout = Workout(
                id=new_id(),
                name=draft.name,
                start_time=as_utc(draft.start_time),
                end_time=as_utc(draft.end_time) if draft.end_time else None,
                description=draft.description,
                exercises=convert_exercise_sets_to_kg(draft.exercises),
                created_by=user_id,
            ).with_duration()

            self._cache.put(workout)
            self._workouts.append(workout)
            self._record_write(workout)
            self._track_upload(workout.id)
            # The form resets whether or not the backend is reachable
            draft.reset()

        self._publish()
        return SavedWorkout(workout, self._executor.submit(self._upload, workout))

    def update_workout(self, workout: Workout) -> Optional[Future]:
        """
        Replace an existing workout with an edited copy.

        The copy's set weights must already be kilograms; only duration
        is recomputed. Returns the upload Future, or None for a deleted
        or unknown workout.
        """
        workout = workout.replace(
            start_time=as_utc(workout.start_time),
            end_time=as_utc(workout.end_time) if workout.end_time else None,
        ).with_duration()

        with self._lock:
            if workout.id in self._deleted:
                logger.warning(f"Ignoring update of deleted workout {workout.id}")
                return None
            for i, existing in enumerate(self._workouts):
                if existing.id == workout.id:
                    self._workouts[i] = workout
                    break
            else:
                if self._cache.get(workout.id) is None:
                    logger.warning(f"Ignoring update of unknown workout {workout.id}")
                    return None
            self._cache.put(workout)
            self._record_write(workout)
            self._track_upload(workout.id)

        self._publish()
        return self._executor.submit(self._upload, workout)

    def delete_workout(self, workout_id: str) -> Optional[Future]:
        """
        Remove a workout locally at once, then from the backend.

        The delete stays queued until both the document delete and the
        reference removal succeed.

        Returns:
            Future resolving to True once the backend confirmed; None
            without a signed-in user
        """
        with self._lock:
            user_id = self._user_id
            if not user_id:
                logger.error("Error: No authenticated user found")
                return None
            self._deleted.add(workout_id)
            self._workouts = [w for w in self._workouts if w.id != workout_id]
            self._cache.remove(workout_id)
            self._cache.queue_delete(workout_id, user_id)

        self._publish()
        return self._executor.submit(self._remote_delete, workout_id, user_id)

    def _id_lock(self, workout_id: str) -> threading.Lock:
        with self._id_locks_guard:
            return self._id_locks.setdefault(workout_id, threading.Lock())

    def _record_write(self, workout: Workout) -> None:
        """Remember a local write so merges already running keep it. Caller holds the lock."""
        self._write_seq += 1
        if self._merges_in_flight:
            self._recent_writes[workout.id] = (self._write_seq, workout)

    def _release_tombstones(self) -> None:
        """Forget deleted ids that nothing can upload or show again. Caller holds the lock."""
        if self._merges_in_flight or not self._deleted:
            return
        pending = self._cache.pending_deletes()
        self._deleted = {
            wid for wid in self._deleted
            if wid in pending or self._uploads_in_flight.get(wid)
        }

    def _track_upload(self, workout_id: str) -> None:
        # Caller holds the lock
        self._uploads_in_flight[workout_id] = self._uploads_in_flight.get(workout_id, 0) + 1

    def _upload(self, workout: Workout) -> bool:
        try:
            return self._upload_locked(workout)
        finally:
            with self._lock:
                remaining = self._uploads_in_flight.get(workout.id, 1) - 1
                if remaining > 0:
                    self._uploads_in_flight[workout.id] = remaining
                else:
                    self._uploads_in_flight.pop(workout.id, None)
                self._release_tombstones()

    def _upload_locked(self, workout: Workout) -> bool:
        with self._id_lock(workout.id):
            if workout.id in self._deleted:
                self._cache.remove(workout.id)
                return False
            try:
                self._remote.create_or_replace(workout)
                # Idempotent; also links workouts whose first upload failed
                self._remote.link_to_user(workout.id, workout.created_by)
            except REMOTE_ERRORS as e:
                logger.error(f"Error saving workout {workout.id}, keeping it for later sync: {e}")
                return False

            self._cache.discard_synced(workout)
            logger.info(f"Workout successfully saved with ID: {workout.id}")
            return True

    def _remote_delete(self, workout_id: str, user_id: str) -> bool:
        with self._id_lock(workout_id):
            try:
                self._remote.delete(workout_id)
            except REMOTE_ERRORS as e:
                logger.error(f"Error deleting workout {workout_id}: {e}")
                return False
            try:
                self._remote.unlink_from_user(workout_id, user_id)
            except REMOTE_ERRORS as e:
                logger.error(f"Error removing workout ID {workout_id} from user: {e}")
                return False

            self._cache.resolve_delete(workout_id)
            with self._lock:
                self._release_tombstones()
            logger.info(f"Workout {workout_id} successfully deleted")
            return True

    # ── Replay ───────────────────────────────────────────────────────────

    def replay_unsynced(self) -> List[Future]:
        """Retry queued deletes, then every cached workout of the active user."""
        user_id = self._user_id
        if not user_id:
            return []

        futures = []
        pending = self._cache.pending_deletes()
        for workout_id, owner in pending.items():
            if owner == user_id:
                futures.append(self._executor.submit(self._remote_delete, workout_id, owner))

        # Counted under the lock so a concurrent delete keeps its tombstone
        with self._lock:
            uploads = [
                w for w in self._cache.get_all()
                if w.created_by == user_id and w.id not in pending
            ]
            for workout in uploads:
                self._track_upload(workout.id)
        futures.extend(self._executor.submit(self._upload, w) for w in uploads)

        if futures:
            logger.info(f"Replaying {len(futures)} unsynced change(s)")
        return futures

    # ── Listen ───────────────────────────────────────────────────────────

    def on_session_change(self, user_id: Optional[str]) -> None:
        """Drop the previous user's list and listener; listen for the new one."""
        with self._lock:
            self._user_id = user_id or None
            self._workouts = []
            self._merge_seq += 1
            subscription, self._subscription = self._subscription, None

        if subscription:
            subscription.remove()
        self._publish()

        if user_id:
            self.start_listening(user_id)

    def start_listening(self, user_id: str) -> None:
        with self._lock:
            previous, self._subscription = self._subscription, None
        if previous:
            previous.remove()

        subscription = self._remote.subscribe(user_id, lambda ids: self._merge(ids, user_id))
        with self._lock:
            if self._user_id == user_id and self._subscription is None:
                self._subscription = subscription
                return
        # Session changed while subscribing
        subscription.remove()

    def stop_listening(self) -> None:
        with self._lock:
            subscription, self._subscription = self._subscription, None
        if subscription:
            subscription.remove()

    def refresh(self) -> bool:
        """One-shot fetch of the user's workouts; True if a list was published."""
        user_id = self._user_id
        if not user_id:
            logger.error("Error: No authenticated user found")
            return False
        try:
            workout_ids = self._remote.fetch_workout_ids(user_id)
        except REMOTE_ERRORS as e:
            logger.error(f"Error fetching user data: {e}")
            return False
        return self._merge(workout_ids, user_id)

    def _merge(self, workout_ids: List[str], user_id: str) -> bool:
        """Combine cached workouts with the remote id list and publish.

        Fetches run in parallel; the sorted list is published only after
        all of them finish, and only if no newer merge or session change
        happened meanwhile. Saves and edits made while the fetches run
        are kept over what was fetched.
        """
        with self._lock:
            if self._user_id != user_id:
                return False
            self._merge_seq += 1
            seq = self._merge_seq
            write_mark = self._write_seq
            self._merges_in_flight += 1

        try:
            # Cached workouts first, so offline-only ones never drop out
            merged = {w.id: w for w in self._cache.get_all() if w.created_by == user_id}
            pending = self._cache.pending_deletes()

            to_fetch = [
                wid for wid in dict.fromkeys(workout_ids)
                if wid not in merged and wid not in pending
            ]
            futures = {self._executor.submit(self._remote.fetch, wid): wid for wid in to_fetch}
            wait(futures)

            for future, wid in futures.items():
                try:
                    workout = future.result()
                except REMOTE_ERRORS as e:
                    logger.error(f"Error fetching workout {wid}: {e}")
                    continue
                if workout is not None:
                    merged[workout.id] = workout

            with self._lock:
                if self._merge_seq != seq or self._user_id != user_id:
                    return False
                for write_seq, workout in self._recent_writes.values():
                    if write_seq > write_mark and workout.created_by == user_id:
                        merged[workout.id] = workout
                workouts = sorted(merged.values(), key=lambda w: w.start_time, reverse=True)
                self._workouts = [w for w in workouts if w.id not in self._deleted]
        finally:
            with self._lock:
                self._merges_in_flight -= 1
                if not self._merges_in_flight:
                    self._recent_writes.clear()
                    self._release_tombstones()

        self._publish()
        return True

    def close(self) -> None:
        self.stop_listening()
        if self._owns_executor:
            self._executor.shutdown(wait=True)
