"""HTTP API for listing, creating and booking events."""

import json
import logging
import re
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Any, Dict, List, Optional

from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field, ValidationError
from starlette.datastructures import UploadFile

from devevent.cache import EventCache
from devevent.database.connections import ConnectionCache, cleanup_connection_cache, initialize_connection_cache
from devevent.database.repositories import BookingRepository, EventRepository, prepare_event
from devevent.exceptions import (
    BookingNotFoundError,
    DatabaseConnectionError,
    DevEventError,
    DuplicateSlugError,
    EventNotFoundError,
    EventValidationError,
    ImageUploadError,
    NormalizationError,
)
from devevent.media import ImageUploader
from devevent.models.booking import Booking
from devevent.models.config import DevEventConfig
from devevent.models.event import Event

logger = logging.getLogger(__name__)

SLUG_PATTERN = re.compile(r"^[a-z0-9-]+$")

# Stands in for the banner URL while the other fields are validated.
PENDING_IMAGE = "pending-upload"

# Form fields copied verbatim onto a new event; tags, agenda and image are handled separately.
EVENT_FORM_FIELDS = (
    "title", "description", "overview", "venue", "location",
    "date", "time", "mode", "audience", "organizer",
)

ERROR_STATUS_CODES = {
    NormalizationError: 400,
    EventValidationError: 400,
    EventNotFoundError: 404,
    BookingNotFoundError: 404,
    DuplicateSlugError: 409,
    ImageUploadError: 502,
    DatabaseConnectionError: 503,
}


class BookingRequest(BaseModel):
    """Booking form submission."""
    event_id: int = Field(..., description="ID of the event to book")
    email: str = Field(..., description="Attendee e-mail address")
    slug: Optional[str] = Field(None, description="Slug of the booked event, informational")


def status_code_for(exc: DevEventError) -> int:
    for error_type, status_code in ERROR_STATUS_CODES.items():
        if isinstance(exc, error_type):
            return status_code
    return 500


def create_error_response(status_code: int, error: str, message: str) -> JSONResponse:
    """Create a standardized error response."""
    return JSONResponse(status_code=status_code, content={"error": error, "message": message})


def validation_message(exc: ValidationError) -> str:
    return "; ".join(
        f"{'.'.join(str(part) for part in err['loc']) or 'body'}: {err['msg']}"
        for err in exc.errors()
    )


class EventRequestHandler:
    """Handler for event and booking requests."""

    def __init__(self,
                 events: EventRepository,
                 bookings: BookingRepository,
                 uploader: Optional[ImageUploader] = None,
                 cache: Optional[EventCache] = None,
                 connections: Optional[ConnectionCache] = None):
        """Initialize the handler."""
        self.events = events
        self.bookings = bookings
        self.uploader = uploader
        self.cache = cache
        self.connections = connections

    async def list_events(self) -> List[Event]:
        return await self.events.find_newest()

    async def get_event(self, slug: str) -> Event:
        """Look an event up by slug, consulting the cache first."""
        if self.cache is not None:
            cached = await self.cache.get(slug)
            if cached is not None:
                return cached

        event = await self.events.find_by_slug(slug)
        if event is None:
            raise EventNotFoundError(f"No event found with slug: {slug}")

        if self.cache is not None:
            await self.cache.set(event)
        return event

    async def similar_events(self, slug: str) -> List[Event]:
        """Events sharing a tag with ``slug``; empty when it does not resolve."""
        try:
            event = await self.events.find_by_slug(slug)
            if event is None:
                return []
            return await self.events.find_similar(event)
        except Exception as e:
            logger.error(f"Error finding events similar to {slug}: {e}")
            return []

    async def create_event(self, fields: Dict[str, Any], image: UploadFile) -> Event:
        """Validate the fields, upload the banner image and store the event.

        Nothing is uploaded unless the fields form a storable event.
        """
        event = prepare_event(Event(**dict(fields, image=PENDING_IMAGE)))

        if self.uploader is None:
            raise ImageUploadError("Image hosting is not configured")

        data = await image.read()
        event.image = await self.uploader.upload(
            data, filename=image.filename or "image", content_type=image.content_type
        )

        stored = await self.events.save(event)

        if self.cache is not None:
            await self.cache.invalidate(stored.slug)
        logger.info(f"Event created: {stored.slug}")
        return stored

    async def count_bookings(self, slug: str) -> int:
        event = await self.get_event(slug)
        return await self.bookings.count_for_event(event.id)

    async def create_booking(self, request: BookingRequest) -> Booking:
        booking = Booking(event_id=request.event_id, email=request.email)
        return await self.bookings.save(booking)


# Global handler instance
event_handler: Optional[EventRequestHandler] = None


def build_handler(config: DevEventConfig) -> EventRequestHandler:
    """Wire repositories, media host and cache from configuration."""
    cache = initialize_connection_cache(config)
    events = EventRepository(cache)
    bookings = BookingRepository(cache, events)

    uploader = ImageUploader.from_config(config) if config.cloudinary_enabled else None
    if uploader is None:
        logger.warning("Cloudinary credentials missing, event creation is disabled")

    event_cache = EventCache.from_url(config.redis_url, ttl=config.event_cache_ttl) if config.redis_url else None

    return EventRequestHandler(events, bookings, uploader=uploader, cache=event_cache, connections=cache)


@asynccontextmanager
async def lifespan(app_instance: FastAPI):
    """Application lifespan manager."""
    # Startup
    global event_handler
    config = DevEventConfig()
    event_handler = build_handler(config)
    logger.info("DevEvent HTTP server started")
    yield
    # Shutdown
    logger.info("DevEvent HTTP server shutting down")
    if event_handler.cache is not None:
        await event_handler.cache.close()
    await cleanup_connection_cache()


app = FastAPI(
    title="DevEvent API",
    description="Event listings and bookings",
    version="1.0.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def get_handler() -> EventRequestHandler:
    if event_handler is None:
        raise HTTPException(status_code=500, detail="Service not initialized")
    return event_handler


@app.exception_handler(DevEventError)
async def devevent_exception_handler(request: Request, exc: DevEventError):
    status_code = status_code_for(exc)
    if status_code >= 500:
        logger.error(f"{exc.title}: {exc.message}")
    return create_error_response(status_code, exc.title, exc.message)


@app.exception_handler(ValidationError)
async def model_validation_exception_handler(request: Request, exc: ValidationError):
    return create_error_response(400, "Validation error", validation_message(exc))


@app.exception_handler(RequestValidationError)
async def request_validation_exception_handler(request: Request, exc: RequestValidationError):
    return create_error_response(400, "Validation error", validation_message(exc))


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException):
    return create_error_response(exc.status_code, "Request failed", str(exc.detail))


@app.get("/health")
async def health():
    """Health check endpoint, including the database when it is wired."""
    body: Dict[str, Any] = {"status": "healthy", "timestamp": datetime.utcnow().isoformat()}

    if event_handler is not None and event_handler.connections is not None:
        database = await event_handler.connections.health_check()
        body["database"] = database
        if database["status"] != "healthy":
            body["status"] = "unhealthy"
            return JSONResponse(status_code=503, content=body)

    return body


@app.get("/api/events")
async def list_events():
    """List all events, newest first."""
    handler = get_handler()
    try:
        events = await handler.list_events()
    except DevEventError:
        raise
    except Exception as e:
        logger.error(f"Event fetching failed: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Event fetching failed")

    return {"message": "Events fetched", "events": [event.to_response() for event in events]}


@app.post("/api/events", status_code=201)
async def create_event(request: Request):
    """Create an event from multipart form data with an ``image`` file."""
    handler = get_handler()
    form = await request.form()

    image = form.get("image")
    if not isinstance(image, UploadFile):
        return JSONResponse(status_code=400, content={"message": "Image file is required"})

    try:
        tags = json.loads(form.get("tags") or "")
        if not isinstance(tags, list):
            raise ValueError("tags must be a JSON array")
    except (TypeError, ValueError):
        return JSONResponse(status_code=400, content={"message": "Invalid tags format"})

    try:
        agenda = json.loads(form.get("agenda") or "")
        if not isinstance(agenda, list):
            raise ValueError("agenda must be a JSON array")
    except (TypeError, ValueError):
        return JSONResponse(status_code=400, content={"message": "Invalid agenda format"})

    fields = {name: form.get(name) for name in EVENT_FORM_FIELDS if form.get(name) is not None}
    fields.update(tags=tags, agenda=agenda)

    try:
        event = await handler.create_event(fields, image)
    except (DevEventError, ValidationError):
        raise
    except Exception as e:
        logger.error(f"Event creation failed: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Event creation failed")

    return {"message": "Event created successfully", "event": event.to_response()}


def sanitize_slug(slug: str) -> str:
    """Trim and lower-case a slug path parameter, rejecting anything not URL-safe."""
    sanitized = slug.strip().lower()
    if not sanitized:
        raise EventValidationError("Slug parameter is required and must be a non-empty string")
    if not SLUG_PATTERN.match(sanitized):
        raise EventValidationError("Slug must contain only lowercase letters, numbers, and hyphens")
    return sanitized


@app.get("/api/events/{slug}")
async def get_event(slug: str):
    """Fetch event details by slug."""
    handler = get_handler()
    sanitized = sanitize_slug(slug)

    try:
        event = await handler.get_event(sanitized)
    except DevEventError:
        raise
    except Exception as e:
        logger.error(f"Error fetching event by slug: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="An unexpected error occurred while fetching the event")

    return {"success": True, "data": event.to_response()}


@app.get("/api/events/{slug}/similar")
async def similar_events(slug: str):
    """Events sharing at least one tag with the given event."""
    handler = get_handler()
    events = await handler.similar_events(sanitize_slug(slug))
    return {"events": [event.to_response() for event in events]}


@app.get("/api/events/{slug}/bookings")
async def count_bookings(slug: str):
    """Number of bookings for an event."""
    handler = get_handler()
    sanitized = sanitize_slug(slug)
    count = await handler.count_bookings(sanitized)
    return {"slug": sanitized, "count": count}


@app.post("/api/bookings", status_code=201)
async def create_booking(request: BookingRequest):
    """Book a spot at an event."""
    handler = get_handler()
    try:
        booking = await handler.create_booking(request)
    except ValidationError as e:
        return JSONResponse(status_code=400, content={"success": False, "message": validation_message(e)})
    except DevEventError as e:
        logger.error(f"Create booking failed: {e.message}")
        return JSONResponse(status_code=status_code_for(e), content={"success": False, "message": e.message})
    except Exception as e:
        logger.error(f"Create booking failed: {e}", exc_info=True)
        return JSONResponse(status_code=500, content={"success": False, "message": "Booking failed"})

    return {"success": True, "booking": booking.to_response()}
