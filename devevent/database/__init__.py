"""Database package for DevEvent."""

from .connections import (
    ConnectionCache,
    ConnectionState,
    acquire_connection,
    get_connection_cache,
    initialize_connection_cache,
    release_connection,
)
from .repositories import BookingRepository, EventRepository

__all__ = [
    "ConnectionCache",
    "ConnectionState",
    "acquire_connection",
    "get_connection_cache",
    "initialize_connection_cache",
    "release_connection",
    "BookingRepository",
    "EventRepository",
]
