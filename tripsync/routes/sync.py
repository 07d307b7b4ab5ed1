"""Sync routes for triggering and monitoring remote sync."""
from fastapi import APIRouter, Depends

from tripsync.core.config import settings
from tripsync.core.trip_store import TripStore, get_trip_store
from tripsync.sync.outbox import OutboxStatus

router = APIRouter(prefix="/sync", tags=["sync"])


@router.post("/now")
async def trigger_sync(store: TripStore = Depends(get_trip_store)):
    """
    Push local state to the remote immediately.

    In snapshot mode this uploads the whole trip, bypassing the debounce
    timer. Entity mode writes every change as it happens, so there is
    nothing left to send. Failures are reported, never raised.
    """
    ok = store.push_to_remote()
    return {"ok": ok, "status": store.sync_status()}


@router.post("/reload")
async def trigger_reload(store: TripStore = Depends(get_trip_store)):
    """Fetch the remote state and merge it into local state."""
    ok = store.reload_from_remote()
    return {"ok": ok, "status": store.sync_status()}


@router.get("/status")
async def sync_status(store: TripStore = Depends(get_trip_store)):
    """
    Get current sync status.

    Returns JSON with the remote mode, whether a debounced push is pending,
    outbox counts, the outcome of the last load and push, and a live check
    of the remote tables.
    """
    return {
        **store.sync_status(),
        "remote_health": store.remote_health(),
        "debounce_ms": settings.sync_debounce_ms,
        "reload_interval_minutes": settings.reload_interval_minutes,
    }


@router.get("/outbox")
async def list_outbox(status: OutboxStatus | None = None, store: TripStore = Depends(get_trip_store)):
    """List reconciliation writes, optionally filtered by status."""
    return {
        "summary": store.outbox.summary(),
        "entries": [e.to_wire() for e in store.outbox.entries(status)],
    }


@router.post("/outbox/retry")
async def retry_outbox(store: TripStore = Depends(get_trip_store)):
    """Requeue failed reconciliation writes and drain them once."""
    stats = store.retry_outbox()
    return {**stats, "summary": store.outbox.summary()}
