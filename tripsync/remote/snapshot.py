"""Snapshot adapter: the whole trip as one JSON row."""
import logging
from datetime import UTC, datetime

from pydantic import ValidationError
from supabase import Client

from tripsync.core.config import DataMode
from tripsync.core.errors import SchemaError, SyncError
from tripsync.models.snapshot import Snapshot
from tripsync.remote.base import RemoteAdapter
from tripsync.remote.client import execute

logger = logging.getLogger(__name__)


class SnapshotAdapter(RemoteAdapter):
    """Upserts and fetches a single ``{id, payload, updated_at}`` row.

    The last successful push wins for the whole document.
    """

    mode = DataMode.SNAPSHOT

    def __init__(self, client: Client, table: str = "travel_data", record_id: int = 1):
        self.client = client
        self.table = table
        self.record_id = record_id

    def push(self, snapshot: Snapshot) -> None:
        row = {
            "id": self.record_id,
            "payload": snapshot.to_wire(),
            "updated_at": datetime.now(UTC).isoformat(),
        }
        execute(
            self.client.table(self.table).upsert(row, on_conflict="id"),
            "push snapshot",
        )
        logger.info(f"Pushed snapshot to {self.table}#{self.record_id}")

    def load(self) -> Snapshot:
        response = execute(
            self.client.table(self.table).select("payload").eq("id", self.record_id).limit(1),
            "load snapshot",
        )
        rows = response.data or []
        if not rows or not isinstance(rows[0].get("payload"), dict):
            logger.info(f"No snapshot stored at {self.table}#{self.record_id}")
            return Snapshot()
        try:
            return Snapshot.model_validate(rows[0]["payload"])
        except ValidationError as e:
            raise SchemaError(f"Stored snapshot payload is malformed: {e}") from e

    def health(self) -> dict:
        try:
            response = execute(
                self.client.table(self.table).select("id").eq("id", self.record_id).limit(1),
                "check snapshot table",
            )
        except SyncError as e:
            return {"ok": False, "mode": self.mode.value, "error": str(e)}
        return {
            "ok": True,
            "mode": self.mode.value,
            "payload_exists": bool(response.data),
        }
