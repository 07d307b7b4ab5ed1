"""Import/export routes for backing up and restoring a trip."""
from datetime import date

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import Response

from tripsync.core.errors import ImportValidationError
from tripsync.core.trip_store import TripStore, get_trip_store

router = APIRouter(prefix="/data", tags=["data"])


@router.get("/export")
async def export_data(store: TripStore = Depends(get_trip_store)):
    """Download the trip as a JSON file."""
    filename = f"trip-backup-{date.today().isoformat()}.json"
    return Response(
        content=store.export_data(),
        media_type="application/json",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@router.post("/import")
async def import_data(request: Request, store: TripStore = Depends(get_trip_store)):
    """
    Restore a trip from an exported JSON document.

    Collections present in the document replace local ones; absent ones are
    left alone. Malformed fields are coerced (an unparseable amount becomes
    0, an unknown currency THB). A body that is not a JSON object is
    rejected with 400 and nothing changes.
    """
    body = await request.body()
    try:
        imported = store.import_data(body)
    except ImportValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return {"success": True, "imported": imported}
