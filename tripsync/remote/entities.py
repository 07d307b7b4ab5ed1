"""Entity adapter: per-row CRUD against the normalized trip tables.

Every query is scoped to one trip id. Activities have no trip column, so
they are only ever read or written through a day that belongs to the trip.

The ``settled_by`` expense column is optional. The adapter detects it on the
first load: if selecting it fails with a schema error the load is retried
without it, and writes of settled-by data then raise ``SchemaError`` so the
caller keeps the value locally.
"""
import logging
from datetime import UTC, datetime
from typing import Any

from supabase import Client

from tripsync.core.config import DataMode
from tripsync.core.errors import SchemaError, SyncError
from tripsync.models.base import EntityId
from tripsync.models.checklist import ChecklistItem
from tripsync.models.expense import Expense
from tripsync.models.itinerary import Activity, DayPlan
from tripsync.models.snapshot import Snapshot
from tripsync.remote.base import RemoteAdapter
from tripsync.remote.client import execute

logger = logging.getLogger(__name__)

EXPENSE_COLUMNS = "id,item,amount,currency,category,date,bill_photo,updated_at,paid_by,participants"
SETTLED_COLUMN = "settled_by"
ACTIVITY_COLUMNS = (
    "id,day_id,title,description,cost,currency,category,map_link,arrive_time,leave_time,sort_order"
)

# Expense attribute -> expenses column
EXPENSE_FIELD_COLUMNS = {
    "item": "item",
    "amount": "amount",
    "currency": "currency",
    "category": "category",
    "date": "date",
    "bill_photo": "bill_photo",
    "paid_by": "paid_by",
    "participants": "participants",
    "settled_by": SETTLED_COLUMN,
    "timestamp": "updated_at",
}

# Activity attribute -> itinerary_activities column
ACTIVITY_FIELD_COLUMNS = {
    "title": "title",
    "description": "description",
    "cost": "cost",
    "currency": "currency",
    "category": "category",
    "map_link": "map_link",
    "arrive_time": "arrive_time",
    "leave_time": "leave_time",
}


def _sort_order() -> int:
    """New rows sort after existing ones."""
    return int(datetime.now(UTC).timestamp())


def expense_from_row(row: dict) -> Expense:
    return Expense(
        id=row.get("id"),
        item=row.get("item"),
        amount=row.get("amount"),
        currency=row.get("currency"),
        category=row.get("category"),
        date=row.get("date"),
        timestamp=row.get("updated_at"),
        bill_photo=row.get("bill_photo"),
        paid_by=row.get("paid_by"),
        participants=row.get("participants"),
        settled_by=row.get(SETTLED_COLUMN),
    )


def activity_from_row(row: dict) -> Activity:
    return Activity(
        id=row.get("id"),
        title=row.get("title"),
        description=row.get("description"),
        cost=row.get("cost"),
        currency=row.get("currency"),
        category=row.get("category"),
        map_link=row.get("map_link"),
        arrive_time=row.get("arrive_time"),
        leave_time=row.get("leave_time"),
    )


class EntityAdapter(RemoteAdapter):
    """Normalized-table backend for one trip."""

    mode = DataMode.ENTITIES
    pushes_per_mutation = True

    def __init__(self, client: Client, trip_id: int = 1):
        self.client = client
        self.trip_id = trip_id
        # None until a load tells us whether expenses.settled_by exists
        self.has_settled_column: bool | None = None

    # ===== LOAD =====

    def load(self) -> Snapshot:
        """Fetch every collection for the trip. Notes are not modeled remotely."""
        checklist = execute(
            self.client.table("checklist")
            .select("id,text,checked,sort_order")
            .eq("trip_id", self.trip_id)
            .order("sort_order")
            .order("id"),
            "load checklist",
        ).data or []

        expenses = self._load_expense_rows()

        days = execute(
            self.client.table("itinerary_days")
            .select("id,title,sort_order")
            .eq("trip_id", self.trip_id)
            .order("sort_order")
            .order("id"),
            "load itinerary days",
        ).data or []

        activities: list[dict] = []
        day_ids = [d["id"] for d in days]
        if day_ids:
            activities = execute(
                self.client.table("itinerary_activities")
                .select(ACTIVITY_COLUMNS)
                .in_("day_id", day_ids)
                .order("sort_order")
                .order("id"),
                "load itinerary activities",
            ).data or []

        members = execute(
            self.client.table("trip_members")
            .select("name,sort_order")
            .eq("trip_id", self.trip_id)
            .order("sort_order"),
            "load trip members",
        ).data or []

        itinerary = [
            DayPlan(
                id=day["id"],
                title=day.get("title"),
                activities=[
                    activity_from_row(a) for a in activities if a.get("day_id") == day["id"]
                ],
            )
            for day in days
        ]

        logger.info(
            f"Loaded trip {self.trip_id}: {len(checklist)} checklist items, "
            f"{len(expenses)} expenses, {len(days)} days, {len(members)} members"
        )
        return Snapshot(
            checklist=[ChecklistItem(id=r["id"], text=r.get("text"), checked=r.get("checked")) for r in checklist],
            expenses=[expense_from_row(r) for r in expenses],
            itinerary=itinerary,
            people=[m.get("name") for m in members],
        )

    def _load_expense_rows(self) -> list[dict]:
        def query(columns: str):
            return (
                self.client.table("expenses")
                .select(columns)
                .eq("trip_id", self.trip_id)
                .order("date")
                .order("id")
            )

        if self.has_settled_column is not False:
            try:
                rows = execute(query(f"{EXPENSE_COLUMNS},{SETTLED_COLUMN}"), "load expenses").data or []
                self.has_settled_column = True
                return rows
            except SchemaError:
                logger.info("Remote expenses table has no settled_by column, keeping it local")
                self.has_settled_column = False
        return execute(query(EXPENSE_COLUMNS), "load expenses").data or []

    def push(self, snapshot: Snapshot) -> None:
        """Nothing to do: entity writes happen as each mutation occurs."""

    # ===== CHECKLIST =====

    def add_checklist_item(self, text: str) -> ChecklistItem:
        response = execute(
            self.client.table("checklist").insert(
                {"trip_id": self.trip_id, "text": text, "checked": False, "sort_order": _sort_order()}
            ),
            "add checklist item",
        )
        row = response.data[0]
        return ChecklistItem(id=row["id"], text=row.get("text"), checked=row.get("checked"))

    def set_checklist_checked(self, item_id: EntityId, checked: bool) -> None:
        execute(
            self.client.table("checklist")
            .update({"checked": checked})
            .eq("id", item_id)
            .eq("trip_id", self.trip_id),
            "update checklist item",
        )

    def delete_checklist_item(self, item_id: EntityId) -> None:
        execute(
            self.client.table("checklist").delete().eq("id", item_id).eq("trip_id", self.trip_id),
            "delete checklist item",
        )

    # ===== EXPENSES =====

    def _expense_columns(self, changes: dict[str, Any]) -> dict[str, Any]:
        row = {}
        for field, value in changes.items():
            column = EXPENSE_FIELD_COLUMNS.get(field)
            if column is None:
                continue
            if column == SETTLED_COLUMN and not self.has_settled_column:
                raise SchemaError("Remote expenses table has no settled_by column")
            if field == "participants" and not value:
                value = None
            row[column] = value
        return row

    def add_expense(self, expense: Expense) -> EntityId:
        """Insert an expense and return the server-assigned id."""
        fields = expense.model_dump(exclude={"id", "timestamp"})
        if not (self.has_settled_column and expense.settled_by):
            fields.pop("settled_by")
        row = {"trip_id": self.trip_id, **self._expense_columns(fields)}
        response = execute(self.client.table("expenses").insert(row), "add expense")
        return response.data[0]["id"]

    def update_expense(self, expense_id: EntityId, changes: dict[str, Any]) -> None:
        """Update selected expense fields, given by attribute name."""
        row = self._expense_columns(changes)
        if not row:
            return
        execute(
            self.client.table("expenses").update(row).eq("id", expense_id).eq("trip_id", self.trip_id),
            "update expense",
        )

    def delete_expense(self, expense_id: EntityId) -> None:
        execute(
            self.client.table("expenses").delete().eq("id", expense_id).eq("trip_id", self.trip_id),
            "delete expense",
        )

    # ===== ITINERARY =====

    def add_day(self, title: str) -> EntityId:
        response = execute(
            self.client.table("itinerary_days").insert(
                {"trip_id": self.trip_id, "title": title, "sort_order": _sort_order()}
            ),
            "add itinerary day",
        )
        return response.data[0]["id"]

    def _owns_day(self, day_id: EntityId) -> bool:
        response = execute(
            self.client.table("itinerary_days")
            .select("id")
            .eq("id", day_id)
            .eq("trip_id", self.trip_id)
            .limit(1),
            "look up itinerary day",
        )
        return bool(response.data)

    def delete_day(self, day_id: EntityId) -> None:
        if not self._owns_day(day_id):
            logger.warning(f"Day {day_id} is not part of trip {self.trip_id}, not deleting")
            return
        execute(
            self.client.table("itinerary_activities").delete().eq("day_id", day_id),
            "delete day activities",
        )
        execute(
            self.client.table("itinerary_days").delete().eq("id", day_id).eq("trip_id", self.trip_id),
            "delete itinerary day",
        )

    def add_activity(self, day_id: EntityId, activity: Activity) -> EntityId:
        if not self._owns_day(day_id):
            raise SchemaError(f"Day {day_id} is not part of trip {self.trip_id}")
        row = {
            "day_id": day_id,
            "sort_order": _sort_order(),
            **{
                column: getattr(activity, field)
                for field, column in ACTIVITY_FIELD_COLUMNS.items()
            },
        }
        response = execute(self.client.table("itinerary_activities").insert(row), "add activity")
        return response.data[0]["id"]

    def update_activity(self, day_id: EntityId, activity_id: EntityId, changes: dict[str, Any]) -> None:
        row = {
            ACTIVITY_FIELD_COLUMNS[field]: value
            for field, value in changes.items()
            if field in ACTIVITY_FIELD_COLUMNS
        }
        if not row or not self._owns_day(day_id):
            return
        execute(
            self.client.table("itinerary_activities").update(row).eq("id", activity_id).eq("day_id", day_id),
            "update activity",
        )

    def delete_activity(self, day_id: EntityId, activity_id: EntityId) -> None:
        if not self._owns_day(day_id):
            return
        execute(
            self.client.table("itinerary_activities").delete().eq("id", activity_id).eq("day_id", day_id),
            "delete activity",
        )

    # ===== MEMBERS =====

    def replace_members(self, names: list[str]) -> None:
        """Replace the trip roster (delete then insert in order)."""
        execute(
            self.client.table("trip_members").delete().eq("trip_id", self.trip_id),
            "clear trip members",
        )
        if not names:
            return
        rows = [
            {"trip_id": self.trip_id, "name": name, "sort_order": idx + 1}
            for idx, name in enumerate(names)
        ]
        execute(self.client.table("trip_members").insert(rows), "add trip members")

    # ===== HEALTH =====

    def health(self) -> dict:
        result: dict[str, Any] = {"ok": True, "mode": self.mode.value, "trip_id": self.trip_id}
        for table in ("checklist", "expenses", "itinerary_days", "trip_members"):
            try:
                response = execute(
                    self.client.table(table).select("trip_id").eq("trip_id", self.trip_id).limit(1),
                    f"check {table}",
                )
                result[table] = {"reachable": True, "has_rows": bool(response.data)}
            except SyncError as e:
                result["ok"] = False
                result[table] = {"reachable": False, "error": str(e)}
        return result
