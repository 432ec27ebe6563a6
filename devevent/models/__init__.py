"""Data models for DevEvent."""

from .booking import Booking
from .config import DevEventConfig
from .event import Event, EventMode, TrackedModel

__all__ = ["Booking", "DevEventConfig", "Event", "EventMode", "TrackedModel"]
