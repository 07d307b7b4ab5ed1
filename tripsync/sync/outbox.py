"""Outbox of recovered fields waiting to be written back to the remote.

After reconciliation restores ``settled_by`` from the local copy, the value
is queued here so other devices converge too. Draining is best effort: a
failed row is marked failed with its error and never blocks the others.
Failed entries stay inspectable and can be put back to pending with
``retry_failed``.
"""
import logging
import threading
from enum import Enum
from typing import Any, Protocol

from pydantic import Field

from tripsync.core.errors import SyncError
from tripsync.models.base import EntityId, WireModel, new_id, utc_timestamp

logger = logging.getLogger(__name__)


class ExpenseWriter(Protocol):
    def update_expense(self, expense_id: EntityId, changes: dict[str, Any]) -> None:
        ...


class OutboxStatus(str, Enum):
    PENDING = "pending"
    DONE = "done"
    FAILED = "failed"


class OutboxEntry(WireModel):
    """A pending write of recovered expense fields."""
    id: str = Field(default_factory=new_id)
    expense_id: EntityId
    changes: dict[str, Any]
    status: OutboxStatus = OutboxStatus.PENDING
    attempts: int = 0
    last_error: str | None = None
    created_at: str = Field(default_factory=utc_timestamp)
    updated_at: str = Field(default_factory=utc_timestamp)


class ReconciliationOutbox:
    """In-memory, thread-safe queue of reconciliation writes."""

    def __init__(self):
        self._entries: list[OutboxEntry] = []
        self._lock = threading.Lock()

    def enqueue(self, expense_id: EntityId, changes: dict[str, Any]) -> OutboxEntry:
        """Queue a write. An unfinished entry for the same expense is replaced."""
        with self._lock:
            for entry in self._entries:
                if entry.expense_id == expense_id and entry.status != OutboxStatus.DONE:
                    entry.changes = {**entry.changes, **changes}
                    entry.status = OutboxStatus.PENDING
                    entry.updated_at = utc_timestamp()
                    return entry.model_copy()
            entry = OutboxEntry(expense_id=expense_id, changes=changes)
            self._entries.append(entry)
            return entry.model_copy()

    def entries(self, status: OutboxStatus | None = None) -> list[OutboxEntry]:
        with self._lock:
            return [
                e.model_copy()
                for e in self._entries
                if status is None or e.status == status
            ]

    def summary(self) -> dict[str, int]:
        with self._lock:
            counts = {status.value: 0 for status in OutboxStatus}
            for entry in self._entries:
                counts[entry.status.value] += 1
            return counts

    def drain(self, writer: ExpenseWriter) -> dict[str, int]:
        """Attempt every pending entry once.

        Returns:
            dict with keys: pushed, failed
        """
        stats = {"pushed": 0, "failed": 0}
        with self._lock:
            pending = [e for e in self._entries if e.status == OutboxStatus.PENDING]

        for entry in pending:
            error: str | None = None
            try:
                writer.update_expense(entry.expense_id, entry.changes)
            except SyncError as e:
                error = str(e)
                logger.warning(f"Outbox write for expense {entry.expense_id} failed: {e}")

            with self._lock:
                entry.attempts += 1
                entry.updated_at = utc_timestamp()
                entry.last_error = error
                entry.status = OutboxStatus.FAILED if error else OutboxStatus.DONE
            stats["failed" if error else "pushed"] += 1

        if pending:
            logger.info(f"Outbox drain completed: {stats}")
        return stats

    def retry_failed(self) -> int:
        """Move failed entries back to pending. Returns how many moved."""
        with self._lock:
            failed = [e for e in self._entries if e.status == OutboxStatus.FAILED]
            for entry in failed:
                entry.status = OutboxStatus.PENDING
                entry.updated_at = utc_timestamp()
            return len(failed)

    def clear_done(self) -> int:
        with self._lock:
            before = len(self._entries)
            self._entries = [e for e in self._entries if e.status != OutboxStatus.DONE]
            return before - len(self._entries)
