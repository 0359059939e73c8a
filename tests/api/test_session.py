"""Tests for api/session.py — sign-in, registration and sign-out."""

import json

import pytest
import requests
from unittest.mock import Mock, patch

from workout_tracker.api.session import SessionManager
from workout_tracker.sdk.client import AuthSession, FirebaseClient, FirebaseError


@pytest.fixture
def client():
    return FirebaseClient(api_key="k", project_id="demo", session=Mock())


@pytest.fixture
def sdk_auth(client):
    """Patched sdk.auth whose sign-in/up store a session on the real client."""
    def store_session(c, email, password):
        c.auth = AuthSession("user-1", email, "id-1", "refresh-1")
        return c.auth

    with patch("workout_tracker.api.session.sdk_auth") as sdk_auth:
        sdk_auth.sign_in.side_effect = store_session
        sdk_auth.sign_up.side_effect = store_session
        sdk_auth.delete_account.side_effect = lambda c: c.logout()
        yield sdk_auth


@pytest.fixture
def firestore_mock():
    with patch("workout_tracker.api.session.firestore") as firestore:
        firestore.query_equal.return_value = []
        yield firestore


@pytest.fixture
def manager(client):
    return SessionManager(client, Mock())


class TestSignIn:
    def test_email_sign_in(self, manager, sdk_auth, firestore_mock):
        listener = Mock()
        manager.add_listener(listener)

        result = manager.sign_in("lifter@example.com", "secret")

        assert result.success is True
        assert result.user_id == "user-1"
        assert json.loads(result.tokens)["refresh_token"] == "refresh-1"
        assert manager.is_authenticated
        listener.assert_called_once_with("user-1")
        firestore_mock.query_equal.assert_not_called()

    def test_display_name_resolves_case_insensitively(self, manager, sdk_auth, firestore_mock):
        firestore_mock.query_equal.return_value = [
            {"id": "user-1", "fields": {"email": "lifter@example.com", "displayName": "Alice"}}
        ]

        result = manager.sign_in("ALICE", "secret")

        assert result.success is True
        assert result.display_name == "Alice"
        assert firestore_mock.query_equal.call_args.args[1:] == ("user-data", "displayNameLower", "alice")
        sdk_auth.sign_in.assert_called_once()
        assert sdk_auth.sign_in.call_args.args[1] == "lifter@example.com"

    def test_unknown_display_name(self, manager, sdk_auth, firestore_mock):
        result = manager.sign_in("nobody", "secret")
        assert result.error_code == "USER_NOT_FOUND"
        sdk_auth.sign_in.assert_not_called()

    def test_missing_fields(self, manager, sdk_auth):
        result = manager.sign_in("  ", "secret")
        assert result.error_code == "MISSING_FIELDS"
        sdk_auth.sign_in.assert_not_called()

    def test_wrong_password(self, manager, sdk_auth):
        sdk_auth.sign_in.side_effect = FirebaseError("INVALID_PASSWORD", code="INVALID_PASSWORD")
        result = manager.sign_in("lifter@example.com", "wrong")
        assert result.success is False
        assert result.error_code == "INVALID_CREDENTIALS"
        assert manager.is_authenticated is False

    def test_network_error(self, manager, sdk_auth):
        sdk_auth.sign_in.side_effect = requests.ConnectionError("down")
        assert manager.sign_in("lifter@example.com", "secret").error_code == "NETWORK_ERROR"

    def test_failure_dict_has_no_tokens(self, manager, sdk_auth):
        sdk_auth.sign_in.side_effect = FirebaseError("EMAIL_NOT_FOUND", code="EMAIL_NOT_FOUND")
        data = manager.sign_in("x@example.com", "secret").to_dict()
        assert data == {
            "success": False,
            "error": "No account found with this email address.",
            "error_code": "USER_NOT_FOUND",
        }


class TestRegister:
    def test_creates_account_reservation_and_profile(self, manager, sdk_auth, firestore_mock):
        result = manager.register("lifter@example.com", "secret", "secret", "Alice", "Al", "Ice")

        assert result.success is True
        firestore_mock.create_document.assert_called_once_with(
            manager._client, "display-names", "alice", {"uid": "user-1"}
        )
        collection, doc_id, profile = firestore_mock.set_document.call_args.args[1:]
        assert (collection, doc_id) == ("user-data", "user-1")
        assert profile["displayName"] == "Alice"
        assert profile["displayNameLower"] == "alice"
        assert profile["firstName"] == "Al"

    def test_validation_runs_before_any_io(self, manager, sdk_auth, firestore_mock):
        assert manager.register("lifter@example.com", "secret", "", "Alice").error_code == "MISSING_FIELDS"
        assert manager.register("lifter@example.com", "secret", "other", "Alice").error_code == "PASSWORD_MISMATCH"
        firestore_mock.query_equal.assert_not_called()
        sdk_auth.sign_up.assert_not_called()

    def test_taken_name_rejected_before_sign_up(self, manager, sdk_auth, firestore_mock):
        firestore_mock.query_equal.return_value = [{"id": "user-9", "fields": {}}]
        result = manager.register("lifter@example.com", "secret", "secret", "alice")
        assert result.error_code == "DISPLAY_NAME_TAKEN"
        sdk_auth.sign_up.assert_not_called()

    def test_lost_reservation_race_deletes_account(self, manager, sdk_auth, firestore_mock):
        firestore_mock.create_document.side_effect = FirebaseError("exists", code="ALREADY_EXISTS", status_code=409)
        listener = Mock()
        manager.add_listener(listener)

        result = manager.register("lifter@example.com", "secret", "secret", "Alice")

        assert result.error_code == "DISPLAY_NAME_TAKEN"
        sdk_auth.delete_account.assert_called_once()
        assert manager.is_authenticated is False
        firestore_mock.set_document.assert_not_called()
        listener.assert_not_called()

    def test_email_in_use(self, manager, sdk_auth, firestore_mock):
        sdk_auth.sign_up.side_effect = FirebaseError("EMAIL_EXISTS", code="EMAIL_EXISTS")
        assert manager.register("lifter@example.com", "secret", "secret", "Alice").error_code == "EMAIL_IN_USE"

    def test_weak_password(self, manager, sdk_auth, firestore_mock):
        sdk_auth.sign_up.side_effect = FirebaseError("WEAK_PASSWORD", code="WEAK_PASSWORD")
        assert manager.register("lifter@example.com", "123", "123", "Alice").error_code == "WEAK_PASSWORD"

    def test_profile_write_failure_still_signs_in(self, manager, sdk_auth, firestore_mock):
        firestore_mock.set_document.side_effect = requests.ConnectionError("down")
        assert manager.register("lifter@example.com", "secret", "secret", "Alice").success is True


class TestSession:
    def test_sign_out_notifies_none(self, manager, sdk_auth, firestore_mock):
        manager.sign_in("lifter@example.com", "secret")
        listener = Mock()
        manager.add_listener(listener)

        manager.sign_out()

        listener.assert_called_once_with(None)
        assert manager.user_id is None

    def test_restore(self, manager, tracker_tokens):
        result = manager.restore(tracker_tokens)
        assert result.success is True
        assert manager.user_id == "user-1"

    def test_restore_invalid_tokens(self, manager):
        result = manager.restore("{}")
        assert result.success is False
        assert manager.is_authenticated is False

    def test_watch_profile_requires_sign_in(self, manager):
        with pytest.raises(RuntimeError):
            manager.watch_profile(Mock())

    def test_watch_profile_decodes_snapshots(self, manager, tracker_tokens):
        manager.restore(tracker_tokens)
        on_change = Mock()

        manager.watch_profile(on_change)
        deliver = manager._remote.subscribe_user.call_args.args[1]
        deliver({"displayName": "Alice"})
        deliver(None)

        assert on_change.call_args_list[0].args[0].display_name == "Alice"
        assert on_change.call_args_list[1].args[0] is None
