"""
Session manager — sign-in, registration, sign-out and the profile watch.

Auth failures come back as an AuthResult with an error code and a
user-facing message; they are never retried. "User changed" is a typed
listener channel rather than a broadcast.
"""

import logging
from dataclasses import dataclass
from typing import Callable, List, Optional

import requests

from workout_tracker.api.model import UserProfile
from workout_tracker.api.remote import RemoteWorkoutStore, Subscription
from workout_tracker.sdk import auth as sdk_auth
from workout_tracker.sdk import firestore
from workout_tracker.sdk.client import FirebaseClient, FirebaseError
from workout_tracker.sdk.types import DISPLAY_NAME_COLLECTION, USER_COLLECTION

logger = logging.getLogger(__name__)

UserListener = Callable[[Optional[str]], None]

# Backend error token → (error_code, message)
_AUTH_ERRORS = {
    "INVALID_PASSWORD": ("INVALID_CREDENTIALS", "The email or password you entered is incorrect."),
    "INVALID_LOGIN_CREDENTIALS": ("INVALID_CREDENTIALS", "The email or password you entered is incorrect."),
    "INVALID_EMAIL": ("INVALID_CREDENTIALS", "The email address is badly formatted."),
    "EMAIL_NOT_FOUND": ("USER_NOT_FOUND", "No account found with this email address."),
    "USER_DISABLED": ("USER_NOT_FOUND", "This account has been disabled."),
    "WEAK_PASSWORD": ("WEAK_PASSWORD", "Password should be at least 6 characters."),
    "EMAIL_EXISTS": ("EMAIL_IN_USE", "The email address is already in use by another account."),
}


@dataclass
class AuthResult:
    """Result of a sign-in or registration attempt."""
    success: bool
    user_id: Optional[str] = None
    email: Optional[str] = None
    display_name: Optional[str] = None
    tokens: Optional[str] = None
    error: Optional[str] = None
    error_code: Optional[str] = None

    @classmethod
    def failure(cls, error_code: str, error: str) -> "AuthResult":
        return cls(success=False, error=error, error_code=error_code)

    def to_dict(self) -> dict:
        """Convert to dictionary, excluding None values."""
        result = {"success": self.success}
        if self.success:
            for key in ("user_id", "email", "display_name", "tokens"):
                value = getattr(self, key)
                if value:
                    result[key] = value
        else:
            result["error"] = self.error
            result["error_code"] = self.error_code
        return result


def _auth_failure(error: Exception) -> AuthResult:
    if isinstance(error, FirebaseError):
        code, message = _AUTH_ERRORS.get(error.code, ("AUTH_ERROR", None))
        return AuthResult.failure(code, message or f"Authentication failed: {error}")
    if isinstance(error, requests.RequestException):
        return AuthResult.failure("NETWORK_ERROR", "Could not reach the server. Check your connection.")
    return AuthResult.failure("AUTH_ERROR", f"Authentication failed: {error}")


class SessionManager:
    def __init__(self, client: FirebaseClient, remote: RemoteWorkoutStore):
        self._client = client
        self._remote = remote
        self._listeners: List[UserListener] = []
        self._display_name: Optional[str] = None

    @property
    def user_id(self) -> Optional[str]:
        return self._client.user_id

    @property
    def is_authenticated(self) -> bool:
        return self._client.is_logged_in

    def add_listener(self, callback: UserListener) -> None:
        """callback(user_id) on every sign-in / sign-out; None means signed out."""
        self._listeners.append(callback)

    def _notify(self) -> None:
        user_id = self.user_id
        for callback in list(self._listeners):
            callback(user_id)

    # ── Sign-in ──────────────────────────────────────────────────────────

    def sign_in(self, identifier: str, password: str) -> AuthResult:
        """
        Sign in with an email address or a display name.

        Display names match case-insensitively and resolve to the
        account's email before the email sign-in.
        """
        identifier = (identifier or "").strip()
        if not identifier or not password:
            return AuthResult.failure("MISSING_FIELDS", "Enter your email or display name and password.")

        email = identifier
        display_name = None
        if "@" not in identifier:
            try:
                matches = firestore.query_equal(
                    self._client, USER_COLLECTION, "displayNameLower", identifier.lower()
                )
            except (FirebaseError, requests.RequestException) as e:
                logger.error(f"Display name lookup failed: {e}")
                return _auth_failure(e)
            if not matches or not matches[0]["fields"].get("email"):
                return AuthResult.failure("USER_NOT_FOUND", "No account found with this display name.")
            email = matches[0]["fields"]["email"]
            display_name = matches[0]["fields"].get("displayName")

        try:
            session = sdk_auth.sign_in(self._client, email, password)
        except (FirebaseError, requests.RequestException) as e:
            logger.info(f"Login failed: {e}")
            return _auth_failure(e)

        logger.info(f"Login successful: {session.email}")
        self._display_name = display_name
        self._notify()
        return self._success(display_name)

    # ── Registration ─────────────────────────────────────────────────────

    def register(
        self,
        email: str,
        password: str,
        confirm_password: str,
        display_name: str,
        first_name: str = "",
        last_name: str = "",
    ) -> AuthResult:
        """
        Create an account with a unique display name and its profile document.

        The name is reserved with a create-if-absent write, so two
        concurrent registrations cannot both claim it; the loser's fresh
        account is deleted again.
        """
        display_name = (display_name or "").strip()
        if not email or not password or not confirm_password or not display_name:
            return AuthResult.failure("MISSING_FIELDS", "All fields are required.")
        if password != confirm_password:
            return AuthResult.failure("PASSWORD_MISMATCH", "Passwords do not match.")

        name_key = display_name.lower()
        try:
            taken = firestore.query_equal(self._client, USER_COLLECTION, "displayNameLower", name_key)
        except (FirebaseError, requests.RequestException) as e:
            logger.error(f"Display name check failed: {e}")
            return _auth_failure(e)
        if taken:
            return _name_taken()

        try:
            session = sdk_auth.sign_up(self._client, email, password)
        except (FirebaseError, requests.RequestException) as e:
            logger.info(f"Registration failed: {e}")
            return _auth_failure(e)

        try:
            firestore.create_document(
                self._client, DISPLAY_NAME_COLLECTION, name_key, {"uid": session.user_id}
            )
        except FirebaseError as e:
            self._abandon_account()
            if e.code in ("ALREADY_EXISTS", "FAILED_PRECONDITION"):
                logger.info(f"Display name {display_name!r} claimed concurrently")
                return _name_taken()
            return _auth_failure(e)
        except requests.RequestException as e:
            self._abandon_account()
            return _auth_failure(e)

        profile = UserProfile(
            user_id=session.user_id,
            email=session.email or email,
            display_name=display_name,
            first_name=first_name,
            last_name=last_name,
        )
        try:
            firestore.set_document(self._client, USER_COLLECTION, session.user_id, profile.to_dict())
        except (FirebaseError, requests.RequestException) as e:
            # The account exists; the profile can be rewritten later
            logger.error(f"Error creating profile document: {e}")

        logger.info(f"Registration successful: {profile.email}")
        self._display_name = display_name
        self._notify()
        return self._success(display_name)

    def _abandon_account(self) -> None:
        try:
            sdk_auth.delete_account(self._client)
        except (FirebaseError, requests.RequestException, RuntimeError) as e:
            logger.error(f"Could not delete abandoned account: {e}")
            self._client.logout()

    # ── Session ──────────────────────────────────────────────────────────

    def sign_out(self) -> None:
        self._client.logout()
        self._display_name = None
        logger.info("Logout successful")
        self._notify()

    def restore(self, tokens: str) -> AuthResult:
        """Resume a session from export_tokens() output."""
        try:
            self._client.load_token(tokens)
        except (ValueError, KeyError, TypeError) as e:
            return AuthResult.failure("AUTH_ERROR", f"Invalid session tokens: {e}")
        self._notify()
        return self._success(None)

    def export_tokens(self) -> str:
        return self._client.export_token()

    def watch_profile(self, on_change: Callable[[Optional[UserProfile]], None]) -> Subscription:
        """
        Live profile of the signed-in user; None when the document is missing.

        Raises:
            RuntimeError: If nobody is signed in
        """
        user_id = self.user_id
        if not user_id:
            raise RuntimeError("Not signed in. Call sign_in() first.")

        def deliver(data):
            on_change(UserProfile.from_dict(user_id, data) if data is not None else None)

        return self._remote.subscribe_user(user_id, deliver)

    def _success(self, display_name: Optional[str]) -> AuthResult:
        auth = self._client.auth
        return AuthResult(
            success=True,
            user_id=auth.user_id,
            email=auth.email,
            display_name=display_name,
            tokens=self._client.export_token(),
        )


def _name_taken() -> AuthResult:
    return AuthResult.failure("DISPLAY_NAME_TAKEN", "That display name is already taken.")
