from tripsync.models.checklist import ChecklistItem
from tripsync.models.expense import Expense
from tripsync.models.itinerary import Activity, DayPlan
from tripsync.models.kv import KVEntry
from tripsync.models.snapshot import Snapshot

__all__ = ["ChecklistItem", "Expense", "Activity", "DayPlan", "KVEntry", "Snapshot"]
