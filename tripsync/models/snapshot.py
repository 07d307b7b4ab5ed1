"""Snapshot model: the whole trip state as one document.

A snapshot is what Snapshot-mode sync upserts and fetches, and it is also
the import/export file format. Every collection is optional on the way in:
a field that is absent (None) leaves the corresponding local state alone.
"""

from typing import Any

from pydantic import field_validator

from tripsync.models.base import WireModel, coerce_names, coerce_optional_text
from tripsync.models.checklist import ChecklistItem
from tripsync.models.expense import Expense
from tripsync.models.itinerary import DayPlan


def _records(value: Any) -> list | None:
    """Keep only object entries from a collection; non-lists count as absent."""
    if not isinstance(value, list):
        return None
    return [v for v in value if isinstance(v, dict | WireModel)]


class Snapshot(WireModel):
    checklist: list[ChecklistItem] | None = None
    expenses: list[Expense] | None = None
    itinerary: list[DayPlan] | None = None
    notes: str | None = None
    people: list[str] | None = None
    export_date: str | None = None

    @field_validator("checklist", "expenses", "itinerary", mode="before")
    @classmethod
    def _normalize_records(cls, value: Any) -> list | None:
        return _records(value)

    @field_validator("notes", mode="before")
    @classmethod
    def _normalize_notes(cls, value: Any) -> str | None:
        return value if isinstance(value, str) else None

    @field_validator("people", mode="before")
    @classmethod
    def _normalize_people(cls, value: Any) -> list[str] | None:
        return coerce_names(value)

    @field_validator("export_date", mode="before")
    @classmethod
    def _normalize_export_date(cls, value: Any) -> str | None:
        return coerce_optional_text(value)

    def to_wire(self) -> dict[str, Any]:
        """Dump without absent collections, so a partial snapshot stays partial."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)
