"""
Tests for workout tools.

Tools run against a real sync engine backed by the in-memory remote store.
"""
import json
import pytest
from concurrent.futures import Future

from workout_tracker import workouts
from workout_tracker.api.connectivity import Reachability
from workout_tracker.api.sync import SavedWorkout, WorkoutSyncEngine
from tests.conftest import FakeRemoteStore, ImmediateExecutor, create_test_app, get_tool_result_text, make_workout

BENCH = [{"name": "Bench Press", "weight_unit": "lbs", "sets": [{"weight": "100", "reps": "5"}]}]


@pytest.fixture
def remote_store():
    return FakeRemoteStore()


@pytest.fixture
def engine(mock_tracker, cache, remote_store):
    engine = WorkoutSyncEngine(cache, remote_store, executor=ImmediateExecutor())
    engine.on_session_change("user-1")
    mock_tracker.workouts = engine
    mock_tracker.monitor.state = Reachability.REACHABLE
    return engine


@pytest.fixture
def app():
    return create_test_app(workouts)


async def _call(app, name, args=None):
    result = await app.call_tool(name, args or {})
    return json.loads(get_tool_result_text(result))


class TestLogWorkout:
    @pytest.mark.asyncio
    async def test_logs_and_syncs(self, app, engine, remote_store):
        data = await _call(app, "log_workout", {
            "name": "Push Day",
            "exercises": BENCH,
            "start_time": "2025-01-27T18:00:00Z",
            "end_time": "2025-01-27T18:47:00Z",
        })

        assert data["success"] is True
        assert data["synced"] is True
        assert data["workout"]["duration"] == "47m"
        assert data["workout"]["exercises"][0]["sets"][0]["weight"] == "100"
        [stored] = remote_store.documents.values()
        assert stored.exercises[0].sets[0].weight == "45.3592"

    @pytest.mark.asyncio
    async def test_offline_is_queued(self, app, engine, remote_store, cache):
        remote_store.offline = True
        data = await _call(app, "log_workout", {"name": "Push Day", "exercises": BENCH})
        assert data["synced"] is False
        assert "offline" in data["message"]
        assert len(cache.get_all()) == 1

    @pytest.mark.asyncio
    async def test_empty_name_rejected(self, app, engine, remote_store):
        data = await _call(app, "log_workout", {"name": "  ", "exercises": BENCH})
        assert data["error_code"] == "INVALID_INPUT"
        assert remote_store.calls == []

    @pytest.mark.asyncio
    async def test_bad_unit_rejected(self, app, engine):
        data = await _call(app, "log_workout", {
            "name": "Push Day", "exercises": [{"name": "Row", "weight_unit": "stone", "sets": []}],
        })
        assert "Invalid weight unit" in data["error"]

    @pytest.mark.asyncio
    async def test_bad_date_rejected(self, app, engine):
        data = await _call(app, "log_workout", {"name": "Push Day", "exercises": [], "start_time": "yesterday"})
        assert data["error_code"] == "INVALID_INPUT"

    @pytest.mark.asyncio
    async def test_reports_saved_workout_after_list_changes(self, app, mock_tracker):
        future = Future()
        future.set_result(False)
        mock_tracker.workouts.save_workout.return_value = SavedWorkout(make_workout("W7"), future)
        # A merge replaced the visible list before the tool read it
        mock_tracker.workouts.user_workouts = []

        data = await _call(app, "log_workout", {"name": "Push Day", "exercises": BENCH})

        assert data["synced"] is False
        assert data["workout"]["id"] == "W7"


class TestListAndGet:
    @pytest.mark.asyncio
    async def test_list_newest_first_in_preferred_unit(self, app, engine, remote_store, mock_tracker):
        older = make_workout("A", start=make_workout().start_time.replace(day=20))
        newer = make_workout("B")
        remote_store.documents.update({"A": older, "B": newer})
        remote_store.user_workouts["user-1"] = ["A", "B"]
        mock_tracker.profile.units.weight_unit = "lbs"

        data = await _call(app, "list_workouts", {"detailed": True})

        assert data["count"] == 2
        assert [w["id"] for w in data["workouts"]] == ["B", "A"]
        assert data["workouts"][0]["exercises"][0]["unit"] == "lbs"
        assert data["workouts"][0]["exercises"][0]["sets"][0]["weight"] == "220"

    @pytest.mark.asyncio
    async def test_list_limit(self, app, engine, remote_store):
        for i in range(3):
            remote_store.documents[f"W{i}"] = make_workout(f"W{i}")
        remote_store.user_workouts["user-1"] = ["W0", "W1", "W2"]
        data = await _call(app, "list_workouts", {"limit": 2})
        assert data["count"] == 3
        assert len(data["workouts"]) == 2
        assert "exercises" not in data["workouts"][0]

    @pytest.mark.asyncio
    async def test_get_workout(self, app, engine, remote_store):
        remote_store.documents["A"] = make_workout("A")
        remote_store.user_workouts["user-1"] = ["A"]
        engine.refresh()

        data = await _call(app, "get_workout", {"workout_id": "A"})

        assert data["name"] == "Push Day"
        assert data["exercises"][0]["sets"][0]["reps"] == "5"

    @pytest.mark.asyncio
    async def test_get_missing(self, app, engine):
        data = await _call(app, "get_workout", {"workout_id": "nope"})
        assert data["error_code"] == "NOT_FOUND"


class TestUpdateAndDelete:
    @pytest.mark.asyncio
    async def test_update_fields(self, app, engine, remote_store):
        await _call(app, "log_workout", {
            "name": "Push Day", "exercises": BENCH,
            "start_time": "2025-01-27T18:00:00Z", "end_time": "2025-01-27T18:47:00Z",
        })
        [workout] = engine.user_workouts

        data = await _call(app, "update_workout", {
            "workout_id": workout.id, "name": "Chest Day", "end_time": "2025-01-27T19:00:00Z",
        })

        assert data["synced"] is True
        assert data["workout"]["name"] == "Chest Day"
        assert data["workout"]["duration"] == "1h00m"
        assert remote_store.documents[workout.id].exercises[0].sets[0].weight == "45.3592"

    @pytest.mark.asyncio
    async def test_update_exercises_converted(self, app, engine):
        await _call(app, "log_workout", {"name": "Push Day", "exercises": BENCH})
        [workout] = engine.user_workouts

        await _call(app, "update_workout", {
            "workout_id": workout.id,
            "exercises": [{"name": "Bench Press", "weight_unit": "lbs", "sets": [{"weight": "200", "reps": "3"}]}],
        })

        assert engine.get_workout(workout.id).exercises[0].sets[0].weight == "90.7184"

    @pytest.mark.asyncio
    async def test_update_missing(self, app, engine):
        data = await _call(app, "update_workout", {"workout_id": "nope", "name": "x"})
        assert data["error_code"] == "NOT_FOUND"

    @pytest.mark.asyncio
    async def test_delete(self, app, engine, remote_store):
        await _call(app, "log_workout", {"name": "Push Day", "exercises": BENCH})
        [workout] = engine.user_workouts

        data = await _call(app, "delete_workout", {"workout_id": workout.id})

        assert data["synced"] is True
        assert engine.user_workouts == []
        assert remote_store.documents == {}


class TestSync:
    @pytest.mark.asyncio
    async def test_sync_pushes_queued_changes(self, app, engine, remote_store):
        remote_store.offline = True
        await _call(app, "log_workout", {"name": "Push Day", "exercises": BENCH})
        remote_store.offline = False

        data = await _call(app, "sync_workouts")

        assert data == {"attempted": 1, "synced": 1, "remaining": 0}
        assert len(remote_store.documents) == 1

    @pytest.mark.asyncio
    async def test_sync_status(self, app, engine, remote_store):
        remote_store.offline = True
        await _call(app, "log_workout", {"name": "Push Day", "exercises": BENCH})

        data = await _call(app, "get_sync_status")

        assert data == {"connectivity": "reachable", "unsynced": 1}
