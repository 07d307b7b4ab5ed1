"""Outcome of the most recent remote loads and pushes."""
import threading
from datetime import UTC, datetime


class SyncStatus:
    """Track the last load and push attempt, for status reporting.

    Failures are recorded here instead of being raised, so a transient
    error shows up in ``/sync/status`` while local state stays usable.
    """

    KINDS = ("load", "push")

    def __init__(self):
        self._lock = threading.Lock()
        self._state: dict[str, dict] = {
            kind: {"time": None, "success": None, "error": None} for kind in self.KINDS
        }

    def record_success(self, kind: str) -> None:
        with self._lock:
            self._state[kind] = {"time": datetime.now(UTC), "success": True, "error": None}

    def record_failure(self, kind: str, error: Exception | str) -> None:
        with self._lock:
            self._state[kind] = {"time": datetime.now(UTC), "success": False, "error": str(error)}

    def get(self, kind: str) -> dict:
        with self._lock:
            return dict(self._state[kind])

    def as_dict(self) -> dict:
        result = {}
        for kind in self.KINDS:
            state = self.get(kind)
            result[f"last_{kind}_time"] = state["time"].isoformat() if state["time"] else None
            result[f"last_{kind}_success"] = state["success"]
            result[f"last_{kind}_error"] = state["error"]
        return result
