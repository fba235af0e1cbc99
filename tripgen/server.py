"""FastAPI server for the trip generator."""
import logging
import sys
from typing import Optional

from dotenv import load_dotenv
from fastapi import FastAPI, Header, HTTPException, Query, WebSocket, WebSocketDisconnect
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import ValidationError

from tripgen.config import settings
from tripgen.errors import StoreWriteError, TripGenError, TripNotFoundError, describe_failure
from tripgen.factory import TripServiceFactory
from tripgen.trips.models import CamelModel, Owner, TripDocument, TripPreferences
from tripgen.trips.options import PLACE_FILTERS
from tripgen.trips.places import photo_url
from tripgen.trips.projection import TripProgress, watch_trip

# Load environment variables
load_dotenv()

# Configure logging
logging.basicConfig(
    level=settings.log_level,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    handlers=[
        logging.FileHandler('tripgen.log'),
        logging.StreamHandler(sys.stdout)
    ]
)

logger = logging.getLogger("server")

app = FastAPI(
    title="Trip Generator",
    description="Two-phase AI itinerary generation with live updates",
    version="1.0.0"
)

# CORS middleware for local development
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Restrict in production
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

factory = TripServiceFactory(settings)


@app.on_event("startup")
async def startup_event():
    """Initialize services on server startup."""
    logger.info("=== Starting Trip Generator Server ===")
    logger.info(f"Server host: {settings.server_host}:{settings.server_port}")
    logger.info(f"Models: {', '.join(settings.model_candidates())}")
    await factory.initialize()
    logger.info("=== Server startup complete ===")


@app.on_event("shutdown")
async def shutdown_event():
    """Wait for background passes and close HTTP clients."""
    logger.info("=== Shutting down server ===")
    await factory.cleanup()
    logger.info("=== Shutdown complete ===")


def _owner(user_id: Optional[str], user_email: Optional[str]) -> Owner:
    if not user_id:
        raise HTTPException(status_code=401, detail="Missing X-User-Id header")
    try:
        return Owner(id=user_id, email=user_email or None)
    except ValidationError:
        raise HTTPException(status_code=400, detail="Invalid X-User-Email header")


def _services():
    if not factory.ready:
        raise HTTPException(status_code=503, detail="Server not initialized")
    return factory


async def _owned_trip(trip_id: str, owner: Owner) -> TripDocument:
    try:
        trip = await _services().trips.get_trip(trip_id)
    except TripNotFoundError:
        raise HTTPException(status_code=404, detail=f"Trip {trip_id} not found")
    if trip.owner_id != owner.id:
        # Other users' trips are indistinguishable from missing ones
        raise HTTPException(status_code=404, detail=f"Trip {trip_id} not found")
    return trip


def _failure_response(exc: Exception) -> JSONResponse:
    failure = describe_failure(exc)
    return JSONResponse(
        status_code=502,
        content={"error": failure.category, "message": failure.message, "detail": str(exc)},
    )


@app.get("/api/health")
async def health_check():
    """Health check endpoint - basic liveness probe."""
    return {
        "status": "healthy",
        "service": "tripgen",
        "version": "1.0.0",
    }


@app.get("/api/ready")
async def readiness_check():
    """
    Readiness check endpoint - indicates when server is ready to accept requests.
    Returns 200 when services are initialized, 503 otherwise.
    """
    if not factory.ready:
        return JSONResponse(
            status_code=503,
            content={
                "ready": False,
                "message": "Services not initialized yet"
            }
        )

    return {
        "ready": True,
        "message": "Server is ready to accept requests",
        "service": "tripgen",
        "version": "1.0.0"
    }


@app.post("/api/trips", status_code=201)
async def create_trip(
    preferences: TripPreferences,
    x_user_id: Optional[str] = Header(None),
    x_user_email: Optional[str] = Header(None),
):
    """
    Generate a trip skeleton and start enhancing it in the background.

    Returns the skeleton document immediately; watch /ws/trips/{id} for the
    enhanced itinerary and photos.
    """
    owner = _owner(x_user_id, x_user_email)
    services = _services()
    logger.info(f"Creating trip to {preferences.destination} for {owner.id}")

    try:
        trip = await services.trips.create_trip(preferences, owner)
    except TripGenError as e:
        logger.error(f"Trip generation failed: {e}")
        return _failure_response(e)

    return trip.to_store()


@app.get("/api/trips")
async def list_trips(
    x_user_id: Optional[str] = Header(None),
    x_user_email: Optional[str] = Header(None),
):
    owner = _owner(x_user_id, x_user_email)
    trips = await _services().trips.list_trips(owner.id)
    return [trip.to_store() for trip in trips]


@app.get("/api/trips/{trip_id}")
async def get_trip(
    trip_id: str,
    x_user_id: Optional[str] = Header(None),
    x_user_email: Optional[str] = Header(None),
):
    trip = await _owned_trip(trip_id, _owner(x_user_id, x_user_email))
    return trip.to_store()


@app.delete("/api/trips/{trip_id}")
async def delete_trip(
    trip_id: str,
    x_user_id: Optional[str] = Header(None),
    x_user_email: Optional[str] = Header(None),
):
    """Delete a trip. The removed document is returned so the client can offer undo."""
    await _owned_trip(trip_id, _owner(x_user_id, x_user_email))
    trip = await _services().trips.delete_trip(trip_id)
    return trip.to_store()


@app.post("/api/trips/restore", status_code=201)
async def restore_trip(
    trip: TripDocument,
    x_user_id: Optional[str] = Header(None),
    x_user_email: Optional[str] = Header(None),
):
    owner = _owner(x_user_id, x_user_email)
    if trip.owner_id != owner.id:
        raise HTTPException(status_code=403, detail="Cannot restore another user's trip")
    try:
        restored = await _services().trips.restore_trip(trip)
    except StoreWriteError as e:
        raise HTTPException(status_code=409, detail=str(e))
    return restored.to_store()


class MorePlacesRequest(CamelModel):
    """Request model for adding places of one category to a trip."""
    filter_type: str


@app.post("/api/trips/{trip_id}/more-places")
async def more_places(
    trip_id: str,
    request: MorePlacesRequest,
    x_user_id: Optional[str] = Header(None),
    x_user_email: Optional[str] = Header(None),
):
    """
    Add 3-5 places of a category (attractions, restaurants, nature, shopping,
    entertainment) to an existing trip.
    """
    if request.filter_type not in PLACE_FILTERS:
        raise HTTPException(
            status_code=400,
            detail=f"Unknown filter {request.filter_type!r}. Choose one of: {', '.join(PLACE_FILTERS)}"
        )
    await _owned_trip(trip_id, _owner(x_user_id, x_user_email))

    try:
        added = await _services().more_places.generate_more_places(trip_id, request.filter_type)
    except TripNotFoundError:
        raise HTTPException(status_code=404, detail=f"Trip {trip_id} not found")
    except TripGenError as e:
        logger.error(f"Generating more places failed for trip {trip_id}: {e}")
        return _failure_response(e)

    return {"success": True, "placesAdded": added}


@app.get("/api/photos/url")
async def get_photo_url(
    token: str = Query(..., min_length=1),
    max_width: Optional[int] = Query(None, ge=1, alias="maxWidth"),
):
    """Form a displayable image URL from a stored photo token."""
    return {
        "url": photo_url(
            token,
            settings.google_places_api_key,
            max_width=max_width or settings.photo_max_width,
            api_base=settings.places_api_base,
        )
    }


@app.websocket("/ws/trips/{trip_id}")
async def trip_updates(websocket: WebSocket, trip_id: str):
    """
    Stream snapshots of a trip as it is enhanced.

    Each message is {"type": "snapshot", "events": [...], "trip": {...}};
    the stream ends with {"type": "end"} once the trip is enhanced and its
    photos are in, when it is deleted or missing, or after an idle timeout.
    """
    if not factory.ready:
        await websocket.close(code=1011, reason="Server not initialized")
        return

    await websocket.accept()
    progress = TripProgress()

    try:
        async for trip in watch_trip(
            factory.store, settings.trips_collection, trip_id, timeout=settings.websocket_timeout
        ):
            events = progress.apply(trip)
            if trip is None:
                await websocket.send_json({"type": "missing", "events": events, "tripId": trip_id})
                continue
            await websocket.send_json({"type": "snapshot", "events": events, "trip": trip.to_store()})

        await websocket.send_json({"type": "end", "enhanced": not progress.enhancing})
        await websocket.close()
    except WebSocketDisconnect:
        logger.info(f"Client stopped watching trip {trip_id}")


if __name__ == "__main__":
    import uvicorn

    # Run server
    uvicorn.run(
        "tripgen.server:app",
        host=settings.server_host,
        port=settings.server_port,
        reload=True,  # Enable auto-reload for development
        log_level=settings.log_level.lower(),
    )
