"""Trip store: the device's working copy of the trip.

The store owns the checklist, expenses, itinerary, notes, roster and rates.
Every mutation follows the same path:

1. Update the in-memory collection (optimistic, always succeeds).
2. Persist the collection to the Local Store.
3. Notify subscribers with the collection name.
4. Propagate to the remote:
   - Snapshot mode: restart the debounced push on the scheduler.
   - Entity mode: call the adapter right away. A failure is logged and
     recorded in the sync status; the local change stays.

Loading reads the Local Store first and then the remote. In Entity mode
the remote is authoritative except for ``settled_by``, which is merged back
from the local copy (see ``tripsync.sync.reconcile``).
"""
import json
import logging
import threading
from collections.abc import Callable
from datetime import date
from typing import Any

from fastapi import Request
from pydantic import ValidationError
from sqlalchemy.engine import Engine

from tripsync.core.config import DataMode, Settings
from tripsync.core.errors import ImportValidationError, StorageQuotaError, SyncError
from tripsync.core.local_store import FallbackStore, LocalStore
from tripsync.core.scheduler import SyncScheduler
from tripsync.ledger.currency import Rates, to_thb
from tripsync.ledger.settlement import Settlement, settle
from tripsync.models.base import EntityId, coerce_names, new_id, utc_timestamp
from tripsync.models.checklist import ChecklistItem
from tripsync.models.expense import Expense
from tripsync.models.itinerary import Activity, DayPlan
from tripsync.models.snapshot import Snapshot
from tripsync.remote.base import RemoteAdapter
from tripsync.remote.client import create_supabase_client
from tripsync.remote.entities import EntityAdapter
from tripsync.remote.snapshot import SnapshotAdapter
from tripsync.sync.outbox import ReconciliationOutbox
from tripsync.sync.reconcile import merge_expenses
from tripsync.sync.status import SyncStatus

logger = logging.getLogger(__name__)

DEFAULT_PEOPLE = ["You", "Friend 1", "Friend 2"]

# Store attribute -> (collection, key) in the Local Store
STORAGE_KEYS = {
    "checklist": ("checklist", "items"),
    "expenses": ("expenses", "items"),
    "itinerary": ("itinerary", "items"),
    "notes": ("notes", "text"),
    "rates": ("settings", "rates"),
    "people": ("settings", "people"),
}

# Changes to these are pushed in Snapshot mode; rates stay on the device.
SYNCED = {"checklist", "expenses", "itinerary", "notes", "people"}

EXPENSE_FIELDS = {
    "item", "amount", "currency", "category", "date",
    "bill_photo", "paid_by", "participants", "settled_by",
}
ACTIVITY_FIELDS = {
    "title", "description", "cost", "currency", "category",
    "map_link", "arrive_time", "leave_time",
}


def _same_id(a: EntityId, b: EntityId) -> bool:
    """Ids from URLs arrive as strings; entity ids are integers."""
    return str(a) == str(b)


class TripStore:
    """Explicit owner of the trip collections for one device.

    Args:
        local: Local Store used for persistence.
        remote: Remote adapter, or None when sync is not configured.
        scheduler: Scheduler for debounced pushes and background jobs.
            Without one, outbox drains run inline.
        outbox: Outbox for reconciliation writes.
        default_people: Roster used when none is stored.
        default_rates: Rates used when none are stored.
    """

    def __init__(
        self,
        local: LocalStore,
        remote: RemoteAdapter | None = None,
        scheduler: SyncScheduler | None = None,
        outbox: ReconciliationOutbox | None = None,
        default_people: list[str] | None = None,
        default_rates: Rates | None = None,
    ):
        self.local = local
        self.remote = remote
        self.scheduler = scheduler
        self.outbox = outbox or ReconciliationOutbox()
        self.default_people = list(default_people or DEFAULT_PEOPLE)
        self.default_rates = default_rates or Rates()
        self.status = SyncStatus()

        self.checklist: list[ChecklistItem] = []
        self.expenses: list[Expense] = []
        self.itinerary: list[DayPlan] = []
        self.notes: str = ""
        self.people: list[str] = list(self.default_people)
        self.rates = self.default_rates
        self.ready = False

        self._lock = threading.RLock()
        self._subscribers: list[Callable[[str], Any]] = []

        if scheduler is not None and scheduler.push is None:
            scheduler.push = self.push_to_remote

    # ===== LIFECYCLE =====

    @property
    def entities(self) -> EntityAdapter | None:
        """The remote, when it is a per-row entity backend."""
        return self.remote if isinstance(self.remote, EntityAdapter) else None

    @property
    def snapshot_mode(self) -> bool:
        return self.remote is not None and not self.remote.pushes_per_mutation

    def load(self) -> None:
        """Hydrate from the Local Store, then from the remote if configured."""
        with self._lock:
            self.checklist = self._read_records("checklist", ChecklistItem)
            self.expenses = self._read_records("expenses", Expense)
            self.itinerary = self._read_records("itinerary", DayPlan)
            notes = self.local.get("notes", "text")
            self.notes = notes if isinstance(notes, str) else ""
            rates = self.local.get("settings", "rates")
            self.rates = Rates.model_validate(rates) if isinstance(rates, dict) else self.default_rates
            self.people = coerce_names(self.local.get("settings", "people")) or list(self.default_people)
            self.ready = True
        logger.info(
            f"Loaded local state: {len(self.checklist)} checklist items, "
            f"{len(self.expenses)} expenses, {len(self.itinerary)} days"
        )
        if self.remote is not None:
            self.reload_from_remote()

    def close(self) -> None:
        if self.scheduler is not None:
            self.scheduler.shutdown()
        self._subscribers.clear()

    def subscribe(self, callback: Callable[[str], Any]) -> Callable[[], None]:
        """Register a change listener. Returns a function that removes it."""
        self._subscribers.append(callback)

        def unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe

    # ===== INTERNALS =====

    def _read_records(self, collection: str, model):
        raw = self.local.get(collection, "items")
        if not isinstance(raw, list):
            return []
        return [model.model_validate(r) for r in raw if isinstance(r, dict)]

    def _serialize(self, name: str) -> Any:
        value = getattr(self, name)
        if name == "rates":
            return value.model_dump()
        if isinstance(value, list) and name != "people":
            return [record.to_wire() for record in value]
        return value

    def _changed(self, *names: str, push: bool = True) -> None:
        for name in names:
            collection, key = STORAGE_KEYS[name]
            # Serialize and write under one lock so writes land in mutation order
            with self._lock:
                try:
                    self.local.set(collection, key, self._serialize(name))
                except StorageQuotaError as e:
                    logger.error(f"Could not persist {name} locally: {e}")
            for callback in list(self._subscribers):
                try:
                    callback(name)
                except Exception as e:
                    logger.error(f"Subscriber failed for {name}: {e}")
        if push and self.snapshot_mode and self.scheduler is not None and SYNCED.intersection(names):
            self.scheduler.notify_mutated()

    def _remote_call(self, action: str, fn: Callable, *args) -> Any:
        """Run an entity write. Returns None when it failed."""
        try:
            result = fn(*args)
        except SyncError as e:
            logger.warning(f"Remote {action} failed, keeping local change: {e}")
            self.status.record_failure("push", e)
            return None
        self.status.record_success("push")
        return result

    def _clean_settled(self, expense: Expense) -> list[str] | None:
        """Keep only settled names that are non-paying participants."""
        if not expense.settled_by:
            return None
        allowed = set(expense.sharers(self.people)) - {expense.paid_by}
        return [name for name in expense.settled_by if name in allowed] or None

    # ===== CHECKLIST =====

    def add_checklist_item(self, text: str) -> ChecklistItem:
        text = text.strip()
        item = None
        if self.entities:
            item = self._remote_call("add checklist item", self.entities.add_checklist_item, text)
        if item is None:
            item = ChecklistItem(text=text)
        with self._lock:
            self.checklist = [*self.checklist, item]
        self._changed("checklist")
        return item

    def toggle_checklist_item(self, item_id: EntityId) -> ChecklistItem | None:
        with self._lock:
            current = next((i for i in self.checklist if _same_id(i.id, item_id)), None)
            if current is None:
                return None
            updated = current.model_copy(update={"checked": not current.checked})
            self.checklist = [updated if i is current else i for i in self.checklist]
        self._changed("checklist")
        if self.entities:
            self._remote_call(
                "toggle checklist item", self.entities.set_checklist_checked, updated.id, updated.checked
            )
        return updated

    def delete_checklist_item(self, item_id: EntityId) -> bool:
        with self._lock:
            current = next((i for i in self.checklist if _same_id(i.id, item_id)), None)
            if current is None:
                return False
            self.checklist = [i for i in self.checklist if i is not current]
        self._changed("checklist")
        if self.entities:
            self._remote_call("delete checklist item", self.entities.delete_checklist_item, current.id)
        return True

    def clear_checked(self) -> None:
        """Uncheck every item."""
        with self._lock:
            was_checked = [i for i in self.checklist if i.checked]
            self.checklist = [i.model_copy(update={"checked": False}) for i in self.checklist]
        self._changed("checklist")
        if self.entities:
            for item in was_checked:
                self._remote_call("uncheck checklist item", self.entities.set_checklist_checked, item.id, False)

    def reset_checklist(self) -> None:
        with self._lock:
            removed = self.checklist
            self.checklist = []
        self._changed("checklist")
        if self.entities:
            for item in removed:
                self._remote_call("delete checklist item", self.entities.delete_checklist_item, item.id)

    # ===== EXPENSES =====

    def get_expense(self, expense_id: EntityId) -> Expense | None:
        with self._lock:
            return next((e for e in self.expenses if _same_id(e.id, expense_id)), None)

    def add_expense(self, expense: Expense) -> Expense:
        """Add an expense. The id is assigned here, or by the entity backend."""
        expense = expense.model_copy(
            update={
                "id": new_id(),
                "timestamp": utc_timestamp(),
                "date": expense.date or date.today().isoformat(),
            }
        )
        expense = expense.model_copy(update={"settled_by": self._clean_settled(expense)})
        if self.entities:
            remote_id = self._remote_call("add expense", self.entities.add_expense, expense)
            if remote_id is not None:
                expense = expense.model_copy(update={"id": remote_id})
        with self._lock:
            self.expenses = [*self.expenses, expense]
        self._changed("expenses")
        return expense

    def update_expense(self, expense_id: EntityId, **changes: Any) -> Expense | None:
        """Replace selected fields of an expense (by attribute name)."""
        unknown = set(changes) - EXPENSE_FIELDS
        if unknown:
            raise ValueError(f"Unknown expense fields: {', '.join(sorted(unknown))}")
        with self._lock:
            current = self.get_expense(expense_id)
            if current is None:
                return None
            updated = Expense.model_validate(
                {**current.model_dump(), **changes, "timestamp": utc_timestamp()}
            )
            updated = updated.model_copy(update={"settled_by": self._clean_settled(updated)})
            self.expenses = [updated if e is current else e for e in self.expenses]
        self._changed("expenses")
        if self.entities:
            remote_changes = {field: getattr(updated, field) for field in changes}
            if self.entities.has_settled_column is False:
                # Kept on this device only; reconciliation restores it on reload
                remote_changes.pop("settled_by", None)
            if remote_changes:
                self._remote_call("update expense", self.entities.update_expense, updated.id, remote_changes)
        return updated

    def update_expense_amount(self, expense_id: EntityId, amount: float) -> Expense | None:
        return self.update_expense(expense_id, amount=amount)

    def set_expense_settled(self, expense_id: EntityId, person: str, settled: bool) -> Expense | None:
        """Mark whether ``person`` has paid the payer back for this expense."""
        current = self.get_expense(expense_id)
        if current is None:
            return None
        names = [n for n in (current.settled_by or []) if n != person]
        if settled:
            names.append(person)
        return self.update_expense(expense_id, settled_by=names)

    def delete_expense(self, expense_id: EntityId) -> bool:
        with self._lock:
            current = self.get_expense(expense_id)
            if current is None:
                return False
            self.expenses = [e for e in self.expenses if e is not current]
        self._changed("expenses")
        if self.entities:
            self._remote_call("delete expense", self.entities.delete_expense, current.id)
        return True

    def reset_expenses(self) -> None:
        with self._lock:
            removed = self.expenses
            self.expenses = []
        self._changed("expenses")
        if self.entities:
            for expense in removed:
                self._remote_call("delete expense", self.entities.delete_expense, expense.id)

    # ===== ITINERARY =====

    def get_day(self, day_id: EntityId) -> DayPlan | None:
        with self._lock:
            return next((d for d in self.itinerary if _same_id(d.id, day_id)), None)

    def add_day(self, title: str) -> DayPlan:
        title = title.strip()
        day = DayPlan(title=title)
        if self.entities:
            remote_id = self._remote_call("add day", self.entities.add_day, title)
            if remote_id is not None:
                day = day.model_copy(update={"id": remote_id})
        with self._lock:
            self.itinerary = [*self.itinerary, day]
        self._changed("itinerary")
        return day

    def delete_day(self, day_id: EntityId) -> bool:
        with self._lock:
            current = self.get_day(day_id)
            if current is None:
                return False
            self.itinerary = [d for d in self.itinerary if d is not current]
        self._changed("itinerary")
        if self.entities:
            self._remote_call("delete day", self.entities.delete_day, current.id)
        return True

    def _replace_day(self, day: DayPlan, activities: list[Activity]) -> None:
        updated = day.model_copy(update={"activities": activities})
        self.itinerary = [updated if d is day else d for d in self.itinerary]

    def add_activity(self, day_id: EntityId, activity: Activity) -> Activity | None:
        day = self.get_day(day_id)
        if day is None:
            return None
        activity = activity.model_copy(update={"id": new_id()})
        if self.entities:
            remote_id = self._remote_call("add activity", self.entities.add_activity, day.id, activity)
            if remote_id is not None:
                activity = activity.model_copy(update={"id": remote_id})
        with self._lock:
            day = self.get_day(day_id)
            if day is None:
                return None
            self._replace_day(day, [*day.activities, activity])
        self._changed("itinerary")
        return activity

    def update_activity(self, day_id: EntityId, activity_id: EntityId, **changes: Any) -> Activity | None:
        unknown = set(changes) - ACTIVITY_FIELDS
        if unknown:
            raise ValueError(f"Unknown activity fields: {', '.join(sorted(unknown))}")
        with self._lock:
            day = self.get_day(day_id)
            if day is None:
                return None
            current = next((a for a in day.activities if _same_id(a.id, activity_id)), None)
            if current is None:
                return None
            updated = Activity.model_validate({**current.model_dump(), **changes})
            self._replace_day(day, [updated if a is current else a for a in day.activities])
        self._changed("itinerary")
        if self.entities:
            remote_changes = {field: getattr(updated, field) for field in changes}
            self._remote_call(
                "update activity", self.entities.update_activity, day.id, updated.id, remote_changes
            )
        return updated

    def delete_activity(self, day_id: EntityId, activity_id: EntityId) -> bool:
        with self._lock:
            day = self.get_day(day_id)
            if day is None:
                return False
            current = next((a for a in day.activities if _same_id(a.id, activity_id)), None)
            if current is None:
                return False
            self._replace_day(day, [a for a in day.activities if a is not current])
        self._changed("itinerary")
        if self.entities:
            self._remote_call("delete activity", self.entities.delete_activity, day.id, current.id)
        return True

    # ===== SETTINGS & NOTES =====

    def set_people(self, names: list[str]) -> list[str]:
        """Replace the roster. Duplicates and blanks are dropped."""
        cleaned = coerce_names([n.strip() for n in names if isinstance(n, str)]) or []
        with self._lock:
            self.people = cleaned
        self._changed("people")
        if self.entities:
            self._remote_call("replace members", self.entities.replace_members, cleaned)
        return cleaned

    def set_rates(self, **partial: Any) -> Rates:
        with self._lock:
            self.rates = Rates.model_validate({**self.rates.model_dump(), **partial})
        self._changed("rates")
        return self.rates

    def set_notes(self, text: str) -> None:
        with self._lock:
            self.notes = text
        self._changed("notes")

    # ===== IMPORT / EXPORT =====

    def snapshot(self) -> Snapshot:
        with self._lock:
            return Snapshot(
                checklist=list(self.checklist),
                expenses=list(self.expenses),
                itinerary=list(self.itinerary),
                notes=self.notes,
                people=list(self.people),
                export_date=utc_timestamp(),
            )

    def export_data(self) -> str:
        """The trip as a pretty-printed import/export document."""
        document = self.snapshot().to_wire()
        document.pop("people", None)
        return json.dumps(document, indent=2)

    def import_data(self, text: str | bytes) -> list[str]:
        """Replace collections present in an exported document.

        Malformed fields are coerced to safe defaults. A document that is not
        valid JSON, or not a JSON object, is rejected without changes.

        Returns:
            Names of the collections that were replaced.
        """
        try:
            data = json.loads(text)
        except (TypeError, ValueError) as e:
            raise ImportValidationError(f"Import is not valid JSON: {e}") from e
        if not isinstance(data, dict):
            raise ImportValidationError("Import document must be a JSON object")
        try:
            snapshot = Snapshot.model_validate(data)
        except ValidationError as e:
            raise ImportValidationError(f"Import document is malformed: {e}") from e
        changed = self._adopt(snapshot)
        logger.info(f"Imported collections: {changed}")
        return changed

    def _adopt(self, snapshot: Snapshot, push: bool = True) -> list[str]:
        """Take every collection present in ``snapshot``; leave the rest."""
        changed = []
        with self._lock:
            if snapshot.checklist is not None:
                self.checklist = snapshot.checklist
                changed.append("checklist")
            if snapshot.expenses is not None:
                self.expenses = snapshot.expenses
                changed.append("expenses")
            if snapshot.itinerary is not None:
                self.itinerary = snapshot.itinerary
                changed.append("itinerary")
            if snapshot.notes is not None:
                self.notes = snapshot.notes
                changed.append("notes")
            if snapshot.people:
                self.people = snapshot.people
                changed.append("people")
        if changed:
            self._changed(*changed, push=push)
        return changed

    # ===== REMOTE =====

    def reload_from_remote(self) -> bool:
        """Fetch the remote state and merge it into the store.

        Returns:
            True on success. Failures leave local state as it was.
        """
        if self.remote is None:
            return False
        try:
            remote = self.remote.load()
        except SyncError as e:
            logger.warning(f"Remote load failed, keeping local state: {e}")
            self.status.record_failure("load", e)
            return False

        if self.entities:
            self._adopt_entities(remote)
        else:
            changed = self._adopt(remote, push=False)
            logger.info(f"Adopted snapshot collections: {changed}")
        self.status.record_success("load")
        return True

    def _adopt_entities(self, remote: Snapshot) -> None:
        local_raw = self.local.get("expenses", "items")
        local = [
            Expense.model_validate(r) for r in (local_raw if isinstance(local_raw, list) else [])
            if isinstance(r, dict)
        ]
        merged, recoveries = merge_expenses(remote.expenses or [], local)

        with self._lock:
            self.checklist = remote.checklist or []
            self.expenses = merged
            self.itinerary = remote.itinerary or []
            if remote.people:
                self.people = remote.people
        self._changed("checklist", "expenses", "itinerary", "people", push=False)

        for recovery in recoveries:
            self.outbox.enqueue(recovery.expense_id, {"settled_by": recovery.settled_by})
        if recoveries:
            if self.scheduler is not None:
                self.scheduler.schedule_outbox_drain(self.drain_outbox)
            else:
                self.drain_outbox()

    def drain_outbox(self) -> dict[str, int]:
        """Push pending reconciliation writes. A clean drain prunes finished entries."""
        if not self.entities:
            return {"pushed": 0, "failed": 0}
        stats = self.outbox.drain(self.entities)
        if not stats["failed"]:
            cleared = self.outbox.clear_done()
            if cleared:
                logger.debug(f"Pruned {cleared} finished outbox entries")
        return stats

    def retry_outbox(self) -> dict[str, int]:
        """Put failed outbox entries back to pending and drain again."""
        self.outbox.retry_failed()
        return self.drain_outbox()

    def push_to_remote(self) -> bool:
        """Push the full state. Entity mode writes per action, so nothing to do."""
        if self.remote is None:
            return False
        if self.remote.pushes_per_mutation:
            return True
        try:
            self.remote.push(self.snapshot())
        except SyncError as e:
            logger.warning(f"Remote push failed, local state unchanged: {e}")
            self.status.record_failure("push", e)
            return False
        self.status.record_success("push")
        return True

    def sync_status(self) -> dict:
        return {
            "mode": self.remote.mode.value if self.remote else None,
            "remote_enabled": self.remote is not None,
            "ready": self.ready,
            "pending_push": bool(self.scheduler and self.scheduler.has_pending_push()),
            "outbox": self.outbox.summary(),
            **self.status.as_dict(),
        }

    def remote_health(self) -> dict | None:
        """Check the remote tables. None when no remote is configured."""
        if self.remote is None:
            return None
        return self.remote.health()

    # ===== DERIVED =====

    def settlement(self) -> Settlement:
        with self._lock:
            return settle(list(self.expenses), list(self.people), self.rates)

    def to_thb(self, amount: float, currency: str) -> float:
        return to_thb(amount, currency, self.rates)


def build_remote_adapter(config: Settings, client=None) -> RemoteAdapter | None:
    """Pick the remote strategy named by ``data_mode``."""
    client = client if client is not None else create_supabase_client(config)
    if client is None:
        return None
    if config.data_mode == DataMode.ENTITIES:
        return EntityAdapter(client, trip_id=config.trip_id)
    return SnapshotAdapter(client, table=config.supabase_table, record_id=config.supabase_record_id)


def build_trip_store(config: Settings, engine: Engine | None) -> TripStore:
    """Wire the Local Store, remote adapter and scheduler from settings."""
    local = LocalStore(
        engine,
        FallbackStore(config.fallback_store_path, config.fallback_quota_bytes),
        mirror_photo_max_length=config.mirror_photo_max_length,
    )
    remote = build_remote_adapter(config)
    logger.info(f"Remote sync mode: {remote.mode.value if remote else 'disabled'}")
    return TripStore(
        local,
        remote=remote,
        scheduler=SyncScheduler(delay_ms=config.sync_debounce_ms),
        default_people=config.default_people,
    )


def get_trip_store(request: Request) -> TripStore:
    """Return the trip store built at startup."""
    return request.app.state.trip_store
