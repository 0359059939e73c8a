"""
Tracker factory for the workout tracker MCP server.

Provides session-based Tracker management using FastMCP Context.
Each MCP connection has isolated session state via mcp-session-id header.

Session Persistence:
- One Tracker per MCP session is kept in memory while the process runs
- Auth tokens are also stored in {TRACKER_SESSION_DIR}/{session_id}.json
  so a restarted server can resume the session
- Each session gets its own data directory for the offline workout cache
"""

import json
import logging
import os
import threading
from pathlib import Path
from typing import Dict

from fastmcp import Context

from workout_tracker.tracker import DATA_DIR, Tracker

logger = logging.getLogger(__name__)

TRACKER_TOKENS_KEY = "tracker_tokens"
SESSION_STORE_DIR = Path(os.environ.get("TRACKER_SESSION_DIR", DATA_DIR / "sessions"))
DEFAULT_SESSION = "local"

_trackers: Dict[str, Tracker] = {}
_trackers_lock = threading.Lock()


def _session_id(ctx: Context) -> str:
    try:
        session_id = ctx.session_id
    except RuntimeError:
        # session_id not available (stdio / not in request context)
        return DEFAULT_SESSION
    return _safe_id(session_id or DEFAULT_SESSION)


def _safe_id(session_id: str) -> str:
    # Sanitize session_id to prevent path traversal
    return "".join(c for c in session_id if c.isalnum() or c in "-_") or DEFAULT_SESSION


def _get_session_file_path(session_id: str) -> Path:
    """Get the file path for a session's data."""
    SESSION_STORE_DIR.mkdir(parents=True, exist_ok=True)
    return SESSION_STORE_DIR / f"{session_id}.json"


def _load_session_data(session_id: str) -> dict:
    """Load session data from file system."""
    session_file = _get_session_file_path(session_id)
    if not session_file.exists():
        return {}
    try:
        with open(session_file, "r") as f:
            return json.load(f)
    except (json.JSONDecodeError, IOError):
        return {}


def _save_session_data(session_id: str, data: dict) -> None:
    """Save session data to file system."""
    session_file = _get_session_file_path(session_id)
    try:
        with open(session_file, "w") as f:
            json.dump(data, f)
    except IOError as e:
        # Session won't persist across restarts but the tools still work
        logger.warning(f"Failed to save session data: {e}")


def _create_tracker(session_id: str) -> Tracker:
    return Tracker(data_dir=DATA_DIR / session_id).start()


def get_session_tracker(ctx: Context) -> Tracker:
    """
    Get (or create) the Tracker for this MCP session, signed in or not.

    Restores stored tokens the first time a session is seen.
    """
    session_id = _session_id(ctx)
    with _trackers_lock:
        tracker = _trackers.get(session_id)
        if tracker is None:
            tracker = _create_tracker(session_id)
            _trackers[session_id] = tracker
            tokens = _load_session_data(session_id).get(TRACKER_TOKENS_KEY)
            if tokens:
                result = tracker.session.restore(tokens)
                if not result.success:
                    logger.warning(f"Discarding stored session: {result.error}")
    return tracker


def get_tracker(ctx: Context) -> Tracker:
    """
    Get the signed-in Tracker for this MCP session.

    Usage in tools:
        @app.tool()
        async def list_workouts(ctx: Context) -> str:
            tracker = get_tracker(ctx)
            return json.dumps(...)

    Raises:
        ValueError: If no one is signed in for this session
    """
    tracker = get_session_tracker(ctx)
    if not tracker.session.is_authenticated:
        raise ValueError("No workout tracker session. Call tracker_login() first.")
    return tracker


def set_session_tokens(ctx: Context, tokens: str) -> None:
    """Persist auth tokens for this MCP session."""
    session_id = _session_id(ctx)
    data = _load_session_data(session_id)
    data[TRACKER_TOKENS_KEY] = tokens
    _save_session_data(session_id, data)


def clear_session_tokens(ctx: Context) -> None:
    """Remove persisted auth tokens for this MCP session."""
    session_file = _get_session_file_path(_session_id(ctx))
    if session_file.exists():
        session_file.unlink()


def close_all() -> None:
    """Stop every Tracker's background threads."""
    with _trackers_lock:
        trackers = list(_trackers.values())
        _trackers.clear()
    for tracker in trackers:
        tracker.close()
