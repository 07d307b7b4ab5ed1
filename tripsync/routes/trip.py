"""Trip settings routes: roster, exchange rates, notes and the converter."""
from typing import Literal

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel

from tripsync.core.trip_store import TripStore, get_trip_store
from tripsync.ledger.currency import convert

router = APIRouter(prefix="/trip", tags=["trip"])


class PeopleUpdate(BaseModel):
    people: list[str]


class RatesUpdate(BaseModel):
    USD: float | None = None
    JPY: float | None = None


class NotesUpdate(BaseModel):
    text: str


@router.get("/people")
async def get_people(store: TripStore = Depends(get_trip_store)):
    return {"people": list(store.people)}


@router.put("/people")
async def set_people(body: PeopleUpdate, store: TripStore = Depends(get_trip_store)):
    """Replace the roster. Blank and duplicate names are dropped."""
    return {"people": store.set_people(body.people)}


@router.get("/rates")
async def get_rates(store: TripStore = Depends(get_trip_store)):
    return store.rates.model_dump()


@router.patch("/rates")
async def update_rates(body: RatesUpdate, store: TripStore = Depends(get_trip_store)):
    """Change one or both rates. Rates are a device setting and never sync."""
    return store.set_rates(**body.model_dump(exclude_none=True)).model_dump()


@router.get("/notes")
async def get_notes(store: TripStore = Depends(get_trip_store)):
    return {"text": store.notes}


@router.put("/notes")
async def set_notes(body: NotesUpdate, store: TripStore = Depends(get_trip_store)):
    store.set_notes(body.text)
    return {"text": store.notes}


@router.get("/convert")
async def convert_amount(
    amount: float = Query(ge=0),
    from_currency: Literal["THB", "USD", "JPY"] = Query("THB", alias="from"),
    to_currency: Literal["THB", "USD", "JPY"] = Query("THB", alias="to"),
    store: TripStore = Depends(get_trip_store),
):
    """Convert an amount between supported currencies using the current rates."""
    return {
        "amount": amount,
        "from": from_currency,
        "to": to_currency,
        "result": round(convert(amount, from_currency, to_currency, store.rates), 2),
    }
