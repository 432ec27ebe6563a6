"""Event record with explicit dirty-field tracking."""

from datetime import datetime
from enum import Enum
from typing import Any, Dict, FrozenSet, List, Optional, Set
from pydantic import BaseModel, ConfigDict, Field, PrivateAttr


class EventMode(str, Enum):
    """How attendees take part in an event."""

    ONLINE = "online"
    OFFLINE = "offline"
    HYBRID = "hybrid"


class TrackedModel(BaseModel):
    """Base model that remembers which fields were assigned since the last write.

    A record built in memory starts with every field it was given marked
    dirty. Records loaded from storage go through ``from_storage`` and start
    clean. Assigning to a field marks it dirty again.
    """

    model_config = ConfigDict(
        validate_assignment=True,
        str_strip_whitespace=True,
        from_attributes=True,
        use_enum_values=True,
    )

    _dirty_fields: Set[str] = PrivateAttr(default_factory=set)

    def model_post_init(self, __context: Any) -> None:
        self._dirty_fields = set(self.model_fields_set)

    def __setattr__(self, name: str, value: Any) -> None:
        super().__setattr__(name, value)
        if name in type(self).model_fields:
            self._dirty_fields.add(name)

    @classmethod
    def from_storage(cls, data: Dict[str, Any]):
        """Build a clean record from a stored row."""
        instance = cls.model_validate(data)
        instance.mark_clean()
        return instance

    @property
    def dirty_fields(self) -> FrozenSet[str]:
        return frozenset(self._dirty_fields)

    def is_modified(self, field_name: str) -> bool:
        return field_name in self._dirty_fields

    def mark_clean(self) -> None:
        self._dirty_fields = set()


class Event(TrackedModel):
    """An event listed on the site."""

    id: Optional[int] = None
    title: str = Field(..., min_length=1, description="Event title")
    slug: Optional[str] = Field(None, description="URL-safe identifier derived from the title")
    description: str = Field(..., min_length=1)
    overview: str = Field(..., min_length=1)
    image: str = Field(..., min_length=1, description="Banner image URL")
    venue: str = Field(..., min_length=1)
    location: str = Field(..., min_length=1)
    date: str = Field(..., min_length=1, description="Event date, YYYY-MM-DD once normalized")
    time: str = Field(..., min_length=1, description="Start time, HH:MM once normalized")
    mode: EventMode
    audience: str = Field(..., min_length=1)
    agenda: List[str] = Field(..., min_length=1, description="Agenda items")
    organizer: str = Field(..., min_length=1)
    tags: List[str] = Field(..., min_length=1)
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    def to_response(self) -> Dict[str, Any]:
        """Serialize for API responses."""
        return self.model_dump(mode="json")
