"""Itinerary routes for days and their activities."""
from typing import Any

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel

from tripsync.core.trip_store import TripStore, get_trip_store
from tripsync.models.base import WireModel
from tripsync.models.itinerary import Activity

router = APIRouter(prefix="/itinerary", tags=["itinerary"])


class DayCreate(BaseModel):
    title: str


class ActivityCreate(WireModel):
    title: str
    description: str = ""
    cost: Any = 0
    currency: Any = "THB"
    category: str = "Activity"
    map_link: str | None = None
    arrive_time: str | None = None
    leave_time: str | None = None


class ActivityUpdate(WireModel):
    title: str | None = None
    description: str | None = None
    cost: Any = None
    currency: Any = None
    category: str | None = None
    map_link: str | None = None
    arrive_time: str | None = None
    leave_time: str | None = None


@router.get("")
async def list_days(store: TripStore = Depends(get_trip_store)):
    return {"days": [d.to_wire() for d in store.itinerary]}


@router.post("", status_code=201)
async def create_day(body: DayCreate, store: TripStore = Depends(get_trip_store)):
    if not body.title.strip():
        raise HTTPException(status_code=400, detail="Day title cannot be blank")
    return store.add_day(body.title).to_wire()


@router.delete("/{day_id}")
async def delete_day(day_id: str, store: TripStore = Depends(get_trip_store)):
    """Delete a day together with its activities."""
    if not store.delete_day(day_id):
        raise HTTPException(status_code=404, detail="Day not found")
    return {"success": True}


@router.post("/{day_id}/activities", status_code=201)
async def create_activity(
    day_id: str, body: ActivityCreate, store: TripStore = Depends(get_trip_store)
):
    if not body.title.strip():
        raise HTTPException(status_code=400, detail="Activity title cannot be blank")
    activity = store.add_activity(day_id, Activity.model_validate(body.model_dump()))
    if activity is None:
        raise HTTPException(status_code=404, detail="Day not found")
    return activity.to_wire()


@router.patch("/{day_id}/activities/{activity_id}")
async def update_activity(
    day_id: str,
    activity_id: str,
    body: ActivityUpdate,
    store: TripStore = Depends(get_trip_store),
):
    activity = store.update_activity(day_id, activity_id, **body.model_dump(exclude_unset=True))
    if activity is None:
        raise HTTPException(status_code=404, detail="Activity not found")
    return activity.to_wire()


@router.delete("/{day_id}/activities/{activity_id}")
async def delete_activity(
    day_id: str, activity_id: str, store: TripStore = Depends(get_trip_store)
):
    if not store.delete_activity(day_id, activity_id):
        raise HTTPException(status_code=404, detail="Activity not found")
    return {"success": True}
