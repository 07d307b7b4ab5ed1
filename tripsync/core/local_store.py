"""Device-local key/value cache with a degraded fallback.

The primary store is the SQLite ``kv_entry`` table. When it cannot be used
(the engine is missing or an operation raises a SQLAlchemy error) reads and
writes go to a JSON file addressed by ``"{collection}:{key}"``. The file has
a byte capacity, like browser local storage, so large values can fail to
fit there.

Expense writes refresh a lightweight mirror in the fallback file with inline
photo data stripped, after the full record is stored. If the primary store
later becomes unreadable the mirror still holds every expense, minus the
heavy payloads. Quota pressure only ever drops the mirror.
"""
import json
import logging
import os
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session

from tripsync.core.errors import StorageQuotaError
from tripsync.models.kv import KVEntry

logger = logging.getLogger(__name__)

COLLECTIONS = ("checklist", "expenses", "itinerary", "notes", "settings")
MIRROR_KEY = "expenses:lite"


def is_storage_path(value: str | None) -> bool:
    """True for bucket paths, False for inline data URLs and web URLs."""
    if not value:
        return False
    return not value.startswith(("data:", "http://", "https://"))


class FallbackStore:
    """Persistent string-keyed store backed by a single JSON file.

    Every write rewrites the file through a temporary file and an atomic
    rename, so a crash leaves either the old or the new contents.
    """

    def __init__(self, path: Path, quota_bytes: int = 5_000_000):
        self.path = Path(path)
        self.quota_bytes = quota_bytes
        self._data: dict[str, str] = self._read()

    def _read(self) -> dict[str, str]:
        try:
            raw = self.path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return {}
        try:
            data = json.loads(raw)
        except json.JSONDecodeError:
            logger.warning(f"Fallback store at {self.path} is unreadable, starting empty")
            return {}
        if not isinstance(data, dict):
            return {}
        return {k: v for k, v in data.items() if isinstance(v, str)}

    def _flush(self) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self.path.with_name(self.path.name + ".tmp")
        tmp.write_text(json.dumps(self._data), encoding="utf-8")
        os.replace(tmp, self.path)

    def used_bytes(self, data: dict[str, str] | None = None) -> int:
        data = self._data if data is None else data
        return sum(len(k) + len(v) for k, v in data.items())

    def get_item(self, key: str) -> str | None:
        return self._data.get(key)

    def set_item(self, key: str, value: str) -> None:
        """Store a string value. Raises StorageQuotaError if it does not fit."""
        updated = {**self._data, key: value}
        if self.used_bytes(updated) > self.quota_bytes:
            raise StorageQuotaError(
                f"Writing {key} needs {self.used_bytes(updated)} bytes, quota is {self.quota_bytes}"
            )
        self._data = updated
        self._flush()

    def remove_item(self, key: str) -> None:
        if self._data.pop(key, None) is not None:
            self._flush()


class LocalStore:
    """Collection x key -> JSON value cache for one device.

    Args:
        engine: SQLAlchemy engine for the primary store, or None to run on
            the fallback only.
        fallback: Fallback file store.
        mirror_photo_max_length: Longest bill photo reference kept in the
            lightweight expense mirror.
    """

    def __init__(
        self,
        engine: Engine | None,
        fallback: FallbackStore,
        mirror_photo_max_length: int = 512,
    ):
        self.engine = engine
        self.fallback = fallback
        self.mirror_photo_max_length = mirror_photo_max_length

    @staticmethod
    def _check_collection(collection: str) -> None:
        if collection not in COLLECTIONS:
            raise ValueError(f"Unknown collection: {collection}")

    def get(self, collection: str, key: str) -> Any | None:
        """Return the stored value, or None when the key is absent."""
        self._check_collection(collection)
        if self.engine is not None:
            try:
                with Session(self.engine) as session:
                    entry = session.get(KVEntry, (collection, key))
                    return json.loads(entry.value) if entry else None
            except SQLAlchemyError as e:
                logger.warning(f"Primary store read failed for {collection}:{key}, using fallback: {e}")
        return self._fallback_get(collection, key)

    def set(self, collection: str, key: str, value: Any) -> None:
        """Store a JSON-serializable value.

        Raises StorageQuotaError only when the primary store is unavailable
        and the value does not fit in the fallback.
        """
        self._check_collection(collection)
        encoded = json.dumps(value)
        is_expenses = collection == "expenses" and key == "items"

        written = False
        if self.engine is not None:
            try:
                self._primary_set(collection, key, encoded)
                written = True
            except SQLAlchemyError as e:
                logger.warning(f"Primary store write failed for {collection}:{key}, using fallback: {e}")

        if written:
            # A stale fallback copy would shadow the mirror on a later outage
            self.fallback.remove_item(f"{collection}:{key}")
        else:
            try:
                self.fallback.set_item(f"{collection}:{key}", encoded)
            except StorageQuotaError:
                if not is_expenses or self.fallback.get_item(MIRROR_KEY) is None:
                    raise
                logger.warning(f"Dropping lightweight expense mirror to fit {collection}:{key}")
                self.fallback.remove_item(MIRROR_KEY)
                self.fallback.set_item(f"{collection}:{key}", encoded)

        if is_expenses:
            self._write_mirror(value)

    def delete(self, collection: str, key: str) -> None:
        self._check_collection(collection)
        if self.engine is not None:
            try:
                with Session(self.engine) as session:
                    entry = session.get(KVEntry, (collection, key))
                    if entry:
                        session.delete(entry)
                        session.commit()
            except SQLAlchemyError as e:
                logger.warning(f"Primary store delete failed for {collection}:{key}: {e}")
        self.fallback.remove_item(f"{collection}:{key}")

    def _primary_set(self, collection: str, key: str, encoded: str) -> None:
        with Session(self.engine) as session:
            entry = session.get(KVEntry, (collection, key))
            if entry:
                entry.value = encoded
                entry.updated_at = datetime.now(UTC)
            else:
                entry = KVEntry(collection=collection, key=key, value=encoded)
            session.add(entry)
            session.commit()

    def _fallback_get(self, collection: str, key: str) -> Any | None:
        raw = self.fallback.get_item(f"{collection}:{key}")
        if raw is None and collection == "expenses" and key == "items":
            raw = self.fallback.get_item(MIRROR_KEY)
        if raw is None:
            return None
        try:
            return json.loads(raw)
        except json.JSONDecodeError:
            logger.warning(f"Discarding corrupt fallback value for {collection}:{key}")
            return None

    def _lite_expense(self, expense: dict) -> dict:
        photo = expense.get("billPhoto")
        keep = (
            isinstance(photo, str)
            and is_storage_path(photo)
            and len(photo) < self.mirror_photo_max_length
        )
        return {**expense, "billPhoto": photo if keep else None}

    def _write_mirror(self, expenses: Any) -> None:
        if not isinstance(expenses, list):
            return
        lite = [self._lite_expense(e) for e in expenses if isinstance(e, dict)]
        try:
            self.fallback.set_item(MIRROR_KEY, json.dumps(lite))
        except StorageQuotaError as e:
            logger.warning(f"Clearing lightweight expense mirror: {e}")
            self.fallback.remove_item(MIRROR_KEY)
