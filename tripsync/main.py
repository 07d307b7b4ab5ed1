"""Trip Sync Web Application."""
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

from tripsync.core.config import settings
from tripsync.core.database import create_db_and_tables, engine
from tripsync.core.trip_store import build_trip_store
from tripsync.routes import checklist, data, expenses, itinerary, settlement, sync, trip

# Configure logging
settings.log_dir.mkdir(parents=True, exist_ok=True)
log_file = settings.log_dir / "latest.log"

logging.basicConfig(
    level=logging.DEBUG if settings.debug else logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    filename=str(log_file),
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application startup and shutdown lifecycle."""
    # Startup
    logger.info("Starting Trip Sync application")
    create_db_and_tables()
    store = build_trip_store(settings, engine)
    store.scheduler.start()
    store.load()
    store.scheduler.schedule_periodic_reload(store.reload_from_remote, settings.reload_interval_minutes)
    app.state.trip_store = store
    yield
    # Shutdown
    store.close()
    logger.info("Trip Sync application shut down")


app = FastAPI(
    title=settings.app_name,
    description="Offline-first trip checklist, shared expenses and itinerary with remote sync",
    version="0.1.0",
    lifespan=lifespan,
)

# Configure CORS for external access
origins = (
    ["*"]
    if settings.allowed_origins == "*"
    else [o.strip() for o in settings.allowed_origins.split(",")]
)
app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(checklist.router)
app.include_router(expenses.router)
app.include_router(itinerary.router)
app.include_router(trip.router)
app.include_router(settlement.router)
app.include_router(sync.router)
app.include_router(data.router)


@app.get("/health")
async def health(request: Request):
    """Health check endpoint."""
    store = getattr(request.app.state, "trip_store", None)
    return {
        "status": "healthy",
        "app": settings.app_name,
        "ready": bool(store and store.ready),
        "mode": store.remote.mode.value if store and store.remote else None,
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("tripsync.main:app", host=settings.host, port=settings.port)
