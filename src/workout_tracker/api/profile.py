"""
Profile store — body metrics, unit preferences and the avatar.

Metrics are validated before any I/O and stored in canonical units
(kilograms, centimeters). Remote writes are best-effort: the returned
Future carries the failure, nothing is retried.
"""

import logging
import threading
from concurrent.futures import Executor, Future, ThreadPoolExecutor
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional

from workout_tracker.api import units
from workout_tracker.api.cache import KeyValueStore
from workout_tracker.api.model import UserProfile
from workout_tracker.sdk import firestore, storage
from workout_tracker.sdk.client import FirebaseClient
from workout_tracker.sdk.types import AVATAR_PATH, USER_COLLECTION, HeightUnit, WeightUnit

logger = logging.getLogger(__name__)

PROFILE_KEY = "profile"
UNITS_KEY = "unit_preferences"
AVATAR_FILE = "avatar.jpg"


@dataclass
class UnitPreferences:
    weight_unit: str = WeightUnit.KG.value
    height_unit: str = HeightUnit.CM.value

    @classmethod
    def from_dict(cls, d: dict) -> "UnitPreferences":
        return cls(
            weight_unit=d.get("weight_unit", WeightUnit.KG.value),
            height_unit=d.get("height_unit", HeightUnit.CM.value),
        )

    def to_dict(self) -> dict:
        return {"weight_unit": self.weight_unit, "height_unit": self.height_unit}


class ProfileStore:
    def __init__(
        self,
        client: FirebaseClient,
        store: KeyValueStore,
        data_dir: Path,
        executor: Executor = None,
    ):
        self._client = client
        self._store = store
        self._avatar_path = Path(data_dir) / AVATAR_FILE
        self._owns_executor = executor is None
        self._executor = executor or ThreadPoolExecutor(max_workers=2, thread_name_prefix="profile")
        self._lock = threading.Lock()
        self._profile: Optional[UserProfile] = None

    # ── Profile ──────────────────────────────────────────────────────────

    @property
    def profile(self) -> Optional[UserProfile]:
        """Last known profile, falling back to the locally cached copy."""
        with self._lock:
            if self._profile is None:
                cached = self._store.get(PROFILE_KEY)
                if cached and cached.get("user_id"):
                    self._profile = UserProfile.from_dict(cached["user_id"], cached.get("fields", {}))
            return self._profile

    def apply_snapshot(self, profile: Optional[UserProfile]) -> None:
        """Adopt a profile read from the backend and cache it locally."""
        with self._lock:
            self._profile = profile
            if profile is None:
                self._store.delete(PROFILE_KEY)
            else:
                self._store.set(PROFILE_KEY, {"user_id": profile.user_id, "fields": profile.to_dict()})

    def load(self, user_id: str) -> Optional[UserProfile]:
        """Fetch the profile document and cache it."""
        data = firestore.get_document(self._client, USER_COLLECTION, user_id)
        if data is None:
            logger.warning(f"No profile document for user {user_id}")
            return None
        profile = UserProfile.from_dict(user_id, data)
        self.apply_snapshot(profile)
        return profile

    def update_weight(self, value: str, unit: str = None) -> Future:
        """
        Store body weight given in unit (the preferred unit by default).

        Raises:
            ValueError: If value is not a number
        """
        if not units.is_numeric(value):
            raise ValueError("Please enter a valid weight.")
        kilograms = units.to_canonical_weight(value, unit or self.units.weight_unit)
        return self._update_fields({"weight": kilograms})

    def update_height(self, value: str, unit: str = None) -> Future:
        """
        Store height given in unit (the preferred unit by default).

        Raises:
            ValueError: If value is not a number
        """
        if not units.is_numeric(value):
            raise ValueError("Please enter a valid height.")
        centimeters = units.to_canonical_height(value, unit or self.units.height_unit)
        return self._update_fields({"height": centimeters})

    def update_names(self, first_name: str, last_name: str) -> Future:
        return self._update_fields({"firstName": first_name, "lastName": last_name})

    def _update_fields(self, fields: Dict[str, Any]) -> Future:
        profile = self._require_profile()
        with self._lock:
            # Optimistic local copy; the next snapshot confirms it
            self._profile = _with_fields(profile, fields)
            self._store.set(PROFILE_KEY, {"user_id": profile.user_id, "fields": self._profile.to_dict()})
        return self._executor.submit(self._write_fields, profile.user_id, fields)

    def _write_fields(self, user_id: str, fields: Dict[str, Any]) -> None:
        try:
            firestore.update_fields(self._client, USER_COLLECTION, user_id, fields)
        except Exception as e:
            logger.error(f"Error updating profile fields {sorted(fields)}: {e}")
            raise
        logger.info(f"Profile fields {sorted(fields)} updated")

    def _require_profile(self) -> UserProfile:
        profile = self.profile
        if profile is None:
            raise RuntimeError("No profile loaded. Sign in first.")
        return profile

    # ── Units ────────────────────────────────────────────────────────────

    @property
    def units(self) -> UnitPreferences:
        return UnitPreferences.from_dict(self._store.get(UNITS_KEY) or {})

    def set_units(self, weight_unit: str = None, height_unit: str = None) -> UnitPreferences:
        """
        Raises:
            ValueError: On an unknown unit
        """
        prefs = self.units
        if weight_unit is not None:
            prefs.weight_unit = WeightUnit(weight_unit).value
        if height_unit is not None:
            prefs.height_unit = HeightUnit(height_unit).value
        self._store.set(UNITS_KEY, prefs.to_dict())
        return prefs

    def display_weight(self) -> str:
        profile = self.profile
        if profile is None or not profile.weight:
            return ""
        return units.to_display_weight(profile.weight, self.units.weight_unit)

    def display_height(self) -> str:
        profile = self.profile
        if profile is None or not profile.height:
            return ""
        return units.to_display_height(profile.height, self.units.height_unit)

    # ── Avatar ───────────────────────────────────────────────────────────

    def upload_avatar(self, data: bytes) -> Future:
        """Upload a JPEG avatar, record its URL, and keep a local copy."""
        profile = self._require_profile()
        self._write_avatar(data)
        return self._executor.submit(self._upload_avatar, profile.user_id, data)

    def _upload_avatar(self, user_id: str, data: bytes) -> str:
        try:
            url = storage.upload(self._client, AVATAR_PATH.format(user_id=user_id), data)
            firestore.update_fields(self._client, USER_COLLECTION, user_id, {"photoURL": url})
        except Exception as e:
            logger.error(f"Error uploading profile picture: {e}")
            raise

        with self._lock:
            if self._profile and self._profile.user_id == user_id:
                self._profile = self._profile.replace(photo_url=url)
        return url

    def cached_avatar(self) -> Optional[bytes]:
        """Local avatar bytes; downloads and caches photoURL on a miss."""
        if self._avatar_path.exists():
            return self._avatar_path.read_bytes()
        profile = self.profile
        if profile is None or not profile.photo_url:
            return None
        data = storage.download(self._client, profile.photo_url)
        self._write_avatar(data)
        return data

    def _write_avatar(self, data: bytes) -> None:
        self._avatar_path.parent.mkdir(parents=True, exist_ok=True)
        self._avatar_path.write_bytes(data)

    def clear_avatar(self) -> None:
        if self._avatar_path.exists():
            self._avatar_path.unlink()

    def clear(self) -> None:
        """Forget everything cached for the signed-out user."""
        self.apply_snapshot(None)
        self.clear_avatar()

    def close(self) -> None:
        if self._owns_executor:
            self._executor.shutdown(wait=True)


def _with_fields(profile: UserProfile, fields: Dict[str, Any]) -> UserProfile:
    mapping = {"weight": "weight", "height": "height", "firstName": "first_name", "lastName": "last_name"}
    return profile.replace(**{mapping[k]: v for k, v in fields.items()})
