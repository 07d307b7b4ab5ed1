"""Tests for the reconciliation outbox."""

from tripsync.core.errors import SchemaError, TransportError
from tripsync.sync.outbox import OutboxStatus, ReconciliationOutbox


class RecordingWriter:
    def __init__(self, failing=()):
        self.failing = set(failing)
        self.writes = []

    def update_expense(self, expense_id, changes):
        if expense_id in self.failing:
            raise TransportError(f"cannot reach remote for {expense_id}")
        self.writes.append((expense_id, changes))


class TestReconciliationOutbox:
    def test_enqueue_and_drain(self):
        outbox = ReconciliationOutbox()
        outbox.enqueue(7, {"settled_by": ["Bob"]})

        stats = outbox.drain(RecordingWriter())

        assert stats == {"pushed": 1, "failed": 0}
        assert outbox.summary() == {"pending": 0, "done": 1, "failed": 0}

    def test_failure_does_not_block_other_rows(self):
        outbox = ReconciliationOutbox()
        outbox.enqueue(1, {"settled_by": ["Bob"]})
        outbox.enqueue(2, {"settled_by": ["Cara"]})
        outbox.enqueue(3, {"settled_by": ["Bob"]})
        writer = RecordingWriter(failing={2})

        stats = outbox.drain(writer)

        assert stats == {"pushed": 2, "failed": 1}
        assert [w[0] for w in writer.writes] == [1, 3]
        failed = outbox.entries(OutboxStatus.FAILED)
        assert len(failed) == 1
        assert failed[0].expense_id == 2
        assert "cannot reach remote" in failed[0].last_error
        assert failed[0].attempts == 1

    def test_schema_error_recorded(self):
        class NoColumnWriter:
            def update_expense(self, expense_id, changes):
                raise SchemaError("no settled_by column")

        outbox = ReconciliationOutbox()
        outbox.enqueue(1, {"settled_by": ["Bob"]})
        assert outbox.drain(NoColumnWriter()) == {"pushed": 0, "failed": 1}

    def test_retry_failed(self):
        outbox = ReconciliationOutbox()
        outbox.enqueue(2, {"settled_by": ["Cara"]})
        outbox.drain(RecordingWriter(failing={2}))

        assert outbox.retry_failed() == 1
        stats = outbox.drain(RecordingWriter())

        assert stats == {"pushed": 1, "failed": 0}
        entry = outbox.entries()[0]
        assert entry.status == OutboxStatus.DONE
        assert entry.attempts == 2
        assert entry.last_error is None

    def test_enqueue_merges_unfinished_entry(self):
        outbox = ReconciliationOutbox()
        outbox.enqueue(5, {"settled_by": ["Bob"]})
        outbox.enqueue(5, {"settled_by": ["Bob", "Cara"]})

        entries = outbox.entries()
        assert len(entries) == 1
        assert entries[0].changes == {"settled_by": ["Bob", "Cara"]}

    def test_done_entries_not_redrained(self):
        outbox = ReconciliationOutbox()
        outbox.enqueue(5, {"settled_by": ["Bob"]})
        writer = RecordingWriter()
        outbox.drain(writer)
        outbox.drain(writer)
        assert len(writer.writes) == 1

    def test_clear_done(self):
        outbox = ReconciliationOutbox()
        outbox.enqueue(1, {"settled_by": ["Bob"]})
        outbox.enqueue(2, {"settled_by": ["Bob"]})
        outbox.drain(RecordingWriter(failing={2}))

        assert outbox.clear_done() == 1
        assert [e.expense_id for e in outbox.entries()] == [2]

    def test_entries_are_copies(self):
        outbox = ReconciliationOutbox()
        outbox.enqueue(1, {"settled_by": ["Bob"]})
        outbox.entries()[0].status = OutboxStatus.DONE
        assert outbox.summary()["pending"] == 1

    def test_wire_format(self):
        outbox = ReconciliationOutbox()
        entry = outbox.enqueue(1, {"settled_by": ["Bob"]})
        wire = entry.to_wire()
        assert wire["expenseId"] == 1
        assert wire["status"] == "pending"
