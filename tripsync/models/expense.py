"""Expense model for the shared trip ledger.

An expense records who paid (``paid_by``), who shares the cost
(``participants``), and which of those participants have already paid the
payer back (``settled_by``). Settlement is derived from these fields; see
``tripsync.ledger.settlement``.
"""

from typing import Any

from pydantic import Field, field_validator

from tripsync.models.base import (
    Currency,
    EntityId,
    WireModel,
    coerce_amount,
    coerce_currency,
    coerce_id,
    coerce_names,
    coerce_optional_text,
    coerce_text,
    new_id,
    utc_timestamp,
)


class Expense(WireModel):
    """A single shared expense.

    Attributes:
        id: Unique within the expense collection.
        item: What was bought.
        amount: Non-negative amount in ``currency``.
        currency: One of THB, USD, JPY. Defaults to THB.
        category: Free-form category label.
        date: Calendar date of the expense (``YYYY-MM-DD``).
        timestamp: Instant of the last write, ISO-8601.
        bill_photo: Opaque reference to a receipt image: a storage path,
            a URL, or an inline data URL.
        paid_by: Person who fronted the money, if recorded.
        participants: People sharing the cost equally. None means the
            whole roster at the time settlement is computed.
        settled_by: Participants who already reimbursed the payer. Only
            names in ``participants`` other than ``paid_by`` count.
    """
    id: EntityId = Field(default_factory=new_id)
    item: str = ""
    amount: float = 0.0
    currency: Currency = "THB"
    category: str = ""
    date: str = ""
    timestamp: str = Field(default_factory=utc_timestamp)
    bill_photo: str | None = None
    paid_by: str | None = None
    participants: list[str] | None = None
    settled_by: list[str] | None = None

    @field_validator("id", mode="before")
    @classmethod
    def _normalize_id(cls, value: Any) -> EntityId:
        return coerce_id(value)

    @field_validator("amount", mode="before")
    @classmethod
    def _normalize_amount(cls, value: Any) -> float:
        return coerce_amount(value)

    @field_validator("currency", mode="before")
    @classmethod
    def _normalize_currency(cls, value: Any) -> str:
        return coerce_currency(value)

    @field_validator("item", "category", "date", mode="before")
    @classmethod
    def _normalize_text(cls, value: Any) -> str:
        return coerce_text(value)

    @field_validator("timestamp", mode="before")
    @classmethod
    def _normalize_timestamp(cls, value: Any) -> str:
        return coerce_optional_text(value) or utc_timestamp()

    @field_validator("bill_photo", "paid_by", mode="before")
    @classmethod
    def _normalize_optional_text(cls, value: Any) -> str | None:
        return coerce_optional_text(value)

    @field_validator("participants", "settled_by", mode="before")
    @classmethod
    def _normalize_names(cls, value: Any) -> list[str] | None:
        return coerce_names(value)

    def sharers(self, roster: list[str]) -> list[str]:
        """People sharing this expense, falling back to the roster."""
        return list(self.participants) if self.participants else list(roster)

    def settled_names(self) -> set[str]:
        return set(self.settled_by or ())
