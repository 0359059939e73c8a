"""
Shared pytest fixtures for workout tracker testing.
"""
import json
from concurrent.futures import Executor, Future
from datetime import datetime, timedelta, timezone

import pytest
import requests
from unittest.mock import Mock, patch

# Monkey-patch: production uses fastmcp.FastMCP, tests use mcp.server.fastmcp.
# Patch fastmcp.Context to match mcp.server.fastmcp.Context so tools work
# with the test FastMCP.
import fastmcp
from mcp.server.fastmcp import server as mcp_server
fastmcp.Context = mcp_server.Context

from mcp.server.fastmcp import FastMCP

from workout_tracker.api.cache import KeyValueStore, LocalWorkoutCache
from workout_tracker.api.model import Exercise, ExerciseSet, Workout
from workout_tracker.sdk.client import AuthSession


def get_tool_result_text(result):
    """Extract text from tool result.

    FastMCP call_tool returns a tuple (list_of_TextContent, metadata_dict).
    This helper extracts the text from the first TextContent item.
    """
    # Handle tuple return: (content_list, metadata)
    if isinstance(result, tuple) and len(result) > 0:
        result = result[0]
    if isinstance(result, list) and len(result) > 0:
        if hasattr(result[0], 'text'):
            return result[0].text
    return str(result)


def create_test_app(module):
    """Helper to create a FastMCP app with a specific module registered."""
    app = FastMCP(f"Test Tracker {module.__name__}")
    app = module.register_tools(app)
    return app


def make_workout(workout_id="W1", user_id="user-1", start=None, minutes=47, **kwargs):
    """A workout with one bench press set; minutes=None leaves it unfinished."""
    start = start or datetime(2025, 1, 27, 18, 0, tzinfo=timezone.utc)
    exercises = kwargs.pop("exercises", None) or [
        Exercise(name="Bench Press", sets=[ExerciseSet(weight="100", reps="5", id="S1")], id="E1"),
    ]
    return Workout(
        id=workout_id,
        name=kwargs.pop("name", "Push Day"),
        start_time=start,
        end_time=start + timedelta(minutes=minutes) if minutes is not None else None,
        created_by=user_id,
        exercises=exercises,
        **kwargs,
    ).with_duration()


class ImmediateExecutor(Executor):
    """Runs submitted calls inline so tests stay deterministic."""

    def submit(self, fn, *args, **kwargs):
        future = Future()
        try:
            future.set_result(fn(*args, **kwargs))
        except Exception as e:
            future.set_exception(e)
        return future


class FakeRemoteStore:
    """In-memory RemoteWorkoutStore with switchable failures."""

    def __init__(self):
        self.documents = {}
        self.user_workouts = {}
        self.offline = False
        self.calls = []
        self.subscriptions = []

    def _check(self, op):
        self.calls.append(op)
        if self.offline:
            raise requests.ConnectionError(f"{op} failed: offline")

    def create_or_replace(self, workout):
        self._check("create_or_replace")
        self.documents[workout.id] = workout

    def link_to_user(self, workout_id, user_id):
        self._check("link_to_user")
        ids = self.user_workouts.setdefault(user_id, [])
        if workout_id not in ids:
            ids.append(workout_id)

    def unlink_from_user(self, workout_id, user_id):
        self._check("unlink_from_user")
        ids = self.user_workouts.get(user_id, [])
        self.user_workouts[user_id] = [i for i in ids if i != workout_id]

    def delete(self, workout_id):
        self._check("delete")
        self.documents.pop(workout_id, None)

    def fetch(self, workout_id):
        self._check("fetch")
        return self.documents.get(workout_id)

    def fetch_workout_ids(self, user_id):
        self._check("fetch_workout_ids")
        return list(self.user_workouts.get(user_id, []))

    def subscribe(self, user_id, on_change):
        subscription = Mock()
        subscription.user_id = user_id
        subscription.on_change = on_change
        self.subscriptions.append(subscription)
        return subscription

    def subscribe_user(self, user_id, on_change):
        return self.subscribe(user_id, on_change)


@pytest.fixture
def executor():
    return ImmediateExecutor()


@pytest.fixture
def remote():
    return FakeRemoteStore()


@pytest.fixture
def store(tmp_path):
    return KeyValueStore(tmp_path / "store.json")


@pytest.fixture
def cache(store):
    return LocalWorkoutCache(store)


@pytest.fixture
def auth_session():
    return AuthSession(
        user_id="user-1",
        email="lifter@example.com",
        id_token="id-token",
        refresh_token="refresh-token",
    )


@pytest.fixture
def tracker_tokens(auth_session):
    """Sample exported tokens for session restoration."""
    return json.dumps({
        "user_id": auth_session.user_id,
        "email": auth_session.email,
        "id_token": auth_session.id_token,
        "refresh_token": auth_session.refresh_token,
    })


@pytest.fixture
def mock_tracker():
    """A Mock Tracker with the components tool modules touch."""
    tracker = Mock()
    tracker.session.is_authenticated = True
    tracker.client.auth = AuthSession("user-1", "lifter@example.com", "id-token", "refresh-token")
    tracker.profile.units.weight_unit = "kg"
    tracker.profile.units.height_unit = "cm"
    tracker.workouts.unsynced_count.return_value = 0
    return tracker


@pytest.fixture(autouse=True)
def mock_get_tracker(mock_tracker):
    """Auto-mock client_factory tracker lookups in all tool modules.

    Yields the mock get_tracker function so tests can set side_effect
    for error scenarios like "not logged in".
    """
    get_tracker_fn = Mock(return_value=mock_tracker)

    targets = [
        "workout_tracker.auth_tool.get_tracker",
        "workout_tracker.auth_tool.get_session_tracker",
        "workout_tracker.auth_tool.set_session_tokens",
        "workout_tracker.auth_tool.clear_session_tokens",
        "workout_tracker.workouts.get_tracker",
        "workout_tracker.profile.get_tracker",
    ]

    patchers = []
    for target in targets:
        if target.endswith("session_tokens"):
            p = patch(target, Mock())
        elif target.endswith("get_session_tracker"):
            p = patch(target, Mock(return_value=mock_tracker))
        else:
            p = patch(target, get_tracker_fn)
        p.start()
        patchers.append(p)

    yield get_tracker_fn

    for p in patchers:
        p.stop()
