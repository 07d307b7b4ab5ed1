"""Shared pieces for the trip domain models.

Every model serializes with camelCase keys (``billPhoto``, ``paidBy``,
``settledBy``...) because that is the shape of the snapshot blob and of the
import/export file, while Python code uses snake_case attributes.

Normalization happens on the way in: numbers that cannot be parsed become
0, unknown currencies become THB, and missing ids get a fresh UUID. A
malformed field is coerced rather than rejecting the whole record.
"""

import math
from datetime import UTC, datetime
from typing import Any, Literal
from uuid import uuid4

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

Currency = Literal["THB", "USD", "JPY"]
SUPPORTED_CURRENCIES: tuple[str, ...] = ("THB", "USD", "JPY")
HOME_CURRENCY = "THB"

EntityId = int | str


def new_id() -> str:
    """Client-generated id, safe against rapid creates and clock skew."""
    return uuid4().hex


def utc_timestamp() -> str:
    return datetime.now(UTC).isoformat()


def coerce_id(value: Any) -> EntityId:
    if isinstance(value, bool) or value is None or value == "":
        return new_id()
    if isinstance(value, int | str):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    return str(value)


def coerce_amount(value: Any) -> float:
    """Coerce to a finite, non-negative float; anything else becomes 0."""
    try:
        number = float(value)
    except (TypeError, ValueError):
        return 0.0
    if not math.isfinite(number) or number < 0:
        return 0.0
    return number


def coerce_currency(value: Any) -> str:
    if isinstance(value, str) and value.upper() in SUPPORTED_CURRENCIES:
        return value.upper()
    return HOME_CURRENCY


def coerce_text(value: Any) -> str:
    if value is None:
        return ""
    return value if isinstance(value, str) else str(value)


def coerce_optional_text(value: Any) -> str | None:
    if value is None or value == "":
        return None
    return value if isinstance(value, str) else str(value)


def coerce_names(value: Any) -> list[str] | None:
    """Normalize a list of person names to an ordered set.

    Returns None for anything that is not a non-empty list, so "everyone"
    is stored as absent rather than as an expanded roster.
    """
    if not isinstance(value, list | tuple | set):
        return None
    names: list[str] = []
    for name in value:
        if isinstance(name, str) and name and name not in names:
            names.append(name)
    return names or None


class WireModel(BaseModel):
    """Base model with camelCase aliases and lenient input handling."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )

    def to_wire(self) -> dict[str, Any]:
        """Dump to the JSON-ready camelCase form used on disk and remotely."""
        return self.model_dump(mode="json", by_alias=True)
