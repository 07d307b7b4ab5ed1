"""Checklist routes for trip preparation items."""
from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field

from tripsync.core.trip_store import TripStore, get_trip_store

router = APIRouter(prefix="/checklist", tags=["checklist"])


class ChecklistItemCreate(BaseModel):
    text: str = Field(min_length=1)


def _summary(store: TripStore) -> dict:
    checked_count = sum(1 for i in store.checklist if i.checked)
    return {
        "items": [i.to_wire() for i in store.checklist],
        "checked_count": checked_count,
        "total_count": len(store.checklist),
    }


@router.get("")
async def list_items(store: TripStore = Depends(get_trip_store)):
    """List checklist items with checked/total counts."""
    return _summary(store)


@router.post("", status_code=201)
async def create_item(body: ChecklistItemCreate, store: TripStore = Depends(get_trip_store)):
    if not body.text.strip():
        raise HTTPException(status_code=400, detail="Item text cannot be blank")
    item = store.add_checklist_item(body.text)
    return item.to_wire()


@router.post("/clear-checked")
async def clear_checked(store: TripStore = Depends(get_trip_store)):
    """Uncheck every item, keeping the list for the next trip."""
    store.clear_checked()
    return _summary(store)


@router.post("/{item_id}/toggle")
async def toggle_item(item_id: str, store: TripStore = Depends(get_trip_store)):
    """
    Toggle item checked state.

    Returns the updated item plus list counts so a client can refresh its
    progress indicator without another request.
    """
    item = store.toggle_checklist_item(item_id)
    if item is None:
        raise HTTPException(status_code=404, detail="Checklist item not found")
    checked_count = sum(1 for i in store.checklist if i.checked)
    return {
        "item": item.to_wire(),
        "checked_count": checked_count,
        "total_count": len(store.checklist),
        "all_checked": checked_count == len(store.checklist),
    }


@router.delete("/{item_id}")
async def delete_item(item_id: str, store: TripStore = Depends(get_trip_store)):
    if not store.delete_checklist_item(item_id):
        raise HTTPException(status_code=404, detail="Checklist item not found")
    return {"success": True}


@router.delete("")
async def reset_checklist(store: TripStore = Depends(get_trip_store)):
    """Delete every checklist item."""
    store.reset_checklist()
    return {"success": True}
