"""Key/value table backing the primary Local Store.

Each row holds one key of one collection (for example ``expenses/items``)
as a JSON document. The composite primary key makes every write an upsert
on ``(collection, key)``.
"""

from datetime import UTC, datetime

from sqlmodel import Field, SQLModel


class KVEntry(SQLModel, table=True):
    """A stored value in the device-local cache.

    Attributes:
        collection: Logical collection: checklist, expenses, itinerary,
            notes, or settings.
        key: Key within the collection, e.g. "items", "text", "rates".
        value: JSON-encoded value.
        updated_at: When the value was last written on this device.
    """
    __tablename__ = "kv_entry"

    collection: str = Field(primary_key=True)
    key: str = Field(primary_key=True)
    value: str
    updated_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
