"""
Network reachability watcher.

Polls a probe on a daemon thread and calls the reconnect callbacks once
per UNREACHABLE → REACHABLE transition. The first observation only sets
the state.
"""

import logging
import os
import threading
from enum import Enum
from typing import Callable, List, Optional

import requests

logger = logging.getLogger(__name__)

PROBE_URL = os.environ.get("TRACKER_CONNECTIVITY_URL", "https://firestore.googleapis.com/")
POLL_INTERVAL = float(os.environ.get("TRACKER_POLL_INTERVAL", "5"))


class Reachability(Enum):
    UNREACHABLE = "unreachable"
    REACHABLE = "reachable"


def http_probe(url: str = PROBE_URL, timeout: float = 3.0) -> bool:
    """True if url answers at all; any HTTP status counts as reachable."""
    try:
        requests.head(url, timeout=timeout)
    except requests.RequestException:
        return False
    return True


class ConnectivityMonitor:
    def __init__(
        self,
        probe: Callable[[], bool] = None,
        interval: float = POLL_INTERVAL,
    ):
        self._probe = probe or http_probe
        self._interval = interval
        self._state: Optional[Reachability] = None
        self._callbacks: List[Callable[[], None]] = []
        self._lock = threading.Lock()
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None

    @property
    def state(self) -> Optional[Reachability]:
        """Last observed state, None before the first probe."""
        return self._state

    @property
    def is_reachable(self) -> bool:
        return self._state == Reachability.REACHABLE

    def on_reconnect(self, callback: Callable[[], None]) -> None:
        self._callbacks.append(callback)

    def observe(self, reachable: bool) -> bool:
        """Feed one observation. Returns True if it fired the callbacks."""
        new_state = Reachability.REACHABLE if reachable else Reachability.UNREACHABLE
        with self._lock:
            previous, self._state = self._state, new_state
        if previous != Reachability.UNREACHABLE or new_state != Reachability.REACHABLE:
            return False

        logger.info("Network reachable again")
        for callback in list(self._callbacks):
            try:
                callback()
            except Exception as e:
                logger.error(f"Reconnect callback failed: {e}")
        return True

    def start(self) -> None:
        if self._thread and self._thread.is_alive():
            return
        self._stop.clear()
        self._thread = threading.Thread(target=self._run, name="connectivity-monitor", daemon=True)
        self._thread.start()

    def stop(self) -> None:
        self._stop.set()
        if self._thread:
            self._thread.join(timeout=self._interval + 1)
            self._thread = None

    def _run(self) -> None:
        while not self._stop.is_set():
            self.observe(self._probe())
            self._stop.wait(self._interval)
