"""Checklist item model for trip preparation tracking."""

from typing import Any

from pydantic import Field, field_validator

from tripsync.models.base import EntityId, WireModel, coerce_id, coerce_text, new_id


class ChecklistItem(WireModel):
    """A thing to pack or do before the trip.

    Attributes:
        id: Unique within the checklist. A UUID hex string when created
            locally, or the integer row id assigned by the entity backend.
        text: Display text for the item.
        checked: Whether the item has been ticked off.
    """
    id: EntityId = Field(default_factory=new_id)
    text: str = ""
    checked: bool = False

    @field_validator("id", mode="before")
    @classmethod
    def _normalize_id(cls, value: Any) -> EntityId:
        return coerce_id(value)

    @field_validator("text", mode="before")
    @classmethod
    def _normalize_text(cls, value: Any) -> str:
        return coerce_text(value)

    @field_validator("checked", mode="before")
    @classmethod
    def _normalize_checked(cls, value: Any) -> bool:
        return bool(value)
