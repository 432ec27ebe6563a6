"""Booking repository for managing event reservations."""

from typing import Any, Dict, List
import structlog

from devevent.database.connections import ConnectionCache
from devevent.database.repositories.base import BaseRepository
from devevent.database.repositories.event_repository import EventRepository
from devevent.exceptions import BookingNotFoundError, EventNotFoundError
from devevent.models.booking import Booking


logger = structlog.get_logger(__name__)


class BookingRepository(BaseRepository[Booking]):
    """Repository for bookings; every booking must point at a stored event."""

    model_class = Booking

    def __init__(self, cache: ConnectionCache, event_repository: EventRepository = None):
        """Initialize booking repository."""
        super().__init__(cache, "bookings")
        self.event_repository = event_repository or EventRepository(cache)
        self.logger = logger.bind(component="booking_repository")

    def _model_to_dict(self, model: Booking) -> Dict[str, Any]:
        return {
            'event_id': model.event_id,
            'email': model.email,
        }

    async def save(self, booking: Booking) -> Booking:
        """
        Persist a booking after checking that its event exists.

        Raises:
            EventNotFoundError: If ``booking.event_id`` does not reference an event
            BookingNotFoundError: If a stored booking was deleted meanwhile
        """
        if booking.id is None or booking.is_modified("event_id"):
            if not await self.event_repository.exists(booking.event_id):
                self.logger.warning("Booking references missing event", event_id=booking.event_id)
                raise EventNotFoundError(f"Referenced event {booking.event_id} does not exist")

        if booking.id is None:
            stored = await self.create(booking)
        else:
            stored = await self.update(booking)

        if stored is None:
            raise BookingNotFoundError(f"Booking {booking.id} no longer exists")

        booking.mark_clean()
        return stored

    async def find_by_event(self, event_id: int, limit: int = 1000) -> List[Booking]:
        """List the bookings for an event, oldest first."""
        return await self.find_by_field("event_id", event_id, order_by="created_at ASC, id ASC", limit=limit)

    async def count_for_event(self, event_id: int) -> int:
        """Number of bookings made for an event."""
        return await self.count_by_field("event_id", event_id)
