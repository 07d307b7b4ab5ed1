"""Itinerary models: days and the activities planned for each."""

from typing import Any

from pydantic import Field, field_validator

from tripsync.models.base import (
    Currency,
    EntityId,
    WireModel,
    coerce_amount,
    coerce_currency,
    coerce_id,
    coerce_optional_text,
    coerce_text,
    new_id,
)


class Activity(WireModel):
    """A planned stop within a day.

    Attributes:
        id: Unique within the activity table.
        title: Short label, e.g. "Lunch - Ichiran Ramen".
        description: Free-form notes.
        cost: Expected non-negative cost in ``currency``.
        currency: One of THB, USD, JPY. Defaults to THB.
        category: Label such as Food, Transport, Activity.
        map_link: Optional link to a map location.
        arrive_time: Optional local arrival time, "HH:MM".
        leave_time: Optional local departure time, "HH:MM".
    """
    id: EntityId = Field(default_factory=new_id)
    title: str = ""
    description: str = ""
    cost: float = 0.0
    currency: Currency = "THB"
    category: str = "Activity"
    map_link: str | None = None
    arrive_time: str | None = None
    leave_time: str | None = None

    @field_validator("id", mode="before")
    @classmethod
    def _normalize_id(cls, value: Any) -> EntityId:
        return coerce_id(value)

    @field_validator("cost", mode="before")
    @classmethod
    def _normalize_cost(cls, value: Any) -> float:
        return coerce_amount(value)

    @field_validator("currency", mode="before")
    @classmethod
    def _normalize_currency(cls, value: Any) -> str:
        return coerce_currency(value)

    @field_validator("title", "description", mode="before")
    @classmethod
    def _normalize_text(cls, value: Any) -> str:
        return coerce_text(value)

    @field_validator("category", mode="before")
    @classmethod
    def _normalize_category(cls, value: Any) -> str:
        return coerce_text(value) or "Activity"

    @field_validator("map_link", "arrive_time", "leave_time", mode="before")
    @classmethod
    def _normalize_optional_text(cls, value: Any) -> str | None:
        return coerce_optional_text(value)


class DayPlan(WireModel):
    """One day of the itinerary with its ordered activities."""
    id: EntityId = Field(default_factory=new_id)
    title: str = ""
    activities: list[Activity] = Field(default_factory=list)

    @field_validator("id", mode="before")
    @classmethod
    def _normalize_id(cls, value: Any) -> EntityId:
        return coerce_id(value)

    @field_validator("title", mode="before")
    @classmethod
    def _normalize_title(cls, value: Any) -> str:
        return coerce_text(value)

    @field_validator("activities", mode="before")
    @classmethod
    def _normalize_activities(cls, value: Any) -> list:
        if not isinstance(value, list):
            return []
        return [a for a in value if isinstance(a, dict | Activity)]
