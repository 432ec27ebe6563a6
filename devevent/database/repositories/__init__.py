"""Database repositories for DevEvent data persistence."""

from .base import BaseRepository
from .booking_repository import BookingRepository
from .event_repository import EventRepository, prepare_event

__all__ = ["BaseRepository", "BookingRepository", "EventRepository", "prepare_event"]
