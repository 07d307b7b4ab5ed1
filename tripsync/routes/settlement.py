"""Settlement route: balances and suggested transfers."""
from fastapi import APIRouter, Depends

from tripsync.core.trip_store import TripStore, get_trip_store

router = APIRouter(prefix="/settlement", tags=["settlement"])


@router.get("")
async def get_settlement(store: TripStore = Depends(get_trip_store)):
    """
    Compute who owes whom.

    Recomputed from the current expenses, roster and rates on every call.
    Amounts are in THB. ``allSettled`` is true when no transfers remain.
    """
    result = store.settlement()
    return {**result.to_wire(), "allSettled": result.all_settled}
