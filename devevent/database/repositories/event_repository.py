"""Event repository for managing event data."""

from typing import Any, Dict, List, Optional
import asyncpg
import structlog

from devevent.database.connections import ConnectionCache
from devevent.database.repositories.base import BaseRepository
from devevent.exceptions import DuplicateSlugError, EventNotFoundError, EventValidationError
from devevent.models.event import Event
from devevent.normalizers import normalize_event


logger = structlog.get_logger(__name__)


def prepare_event(event: Event) -> Event:
    """Normalize the modified fields of an event and check it can be stored.

    Raises:
        InvalidDateError: If the date cannot be normalized
        InvalidTimeError: If the time cannot be normalized
        EventValidationError: If the title yields an empty slug
    """
    normalize_event(event)

    if not event.slug:
        raise EventValidationError(
            f"Title {event.title!r} must contain at least one letter or digit"
        )
    return event


class EventRepository(BaseRepository[Event]):
    """Repository for managing event data in PostgreSQL."""

    model_class = Event

    def __init__(self, cache: ConnectionCache):
        """Initialize event repository."""
        super().__init__(cache, "events")
        self.logger = logger.bind(component="event_repository")

    def _model_to_dict(self, model: Event) -> Dict[str, Any]:
        """Convert Event model to dictionary for database storage."""
        return {
            'title': model.title,
            'slug': model.slug,
            'description': model.description,
            'overview': model.overview,
            'image': model.image,
            'venue': model.venue,
            'location': model.location,
            'date': model.date,
            'time': model.time,
            'mode': model.mode,
            'audience': model.audience,
            'agenda': list(model.agenda),
            'organizer': model.organizer,
            'tags': list(model.tags),
        }

    async def save(self, event: Event) -> Event:
        """
        Normalize the modified fields of an event and persist it.

        New events are inserted, stored ones have their dirty fields updated.

        Args:
            event: Event to persist

        Returns:
            The stored event

        Raises:
            InvalidDateError: If the date cannot be normalized
            InvalidTimeError: If the time cannot be normalized
            EventValidationError: If the title yields an empty slug
            DuplicateSlugError: If another event already has the slug
            EventNotFoundError: If a stored event was deleted meanwhile
        """
        prepare_event(event)

        try:
            if event.id is None:
                stored = await self.create(event)
            else:
                stored = await self.update(event)
        except asyncpg.UniqueViolationError as e:
            self.logger.warning("Duplicate event slug", slug=event.slug)
            raise DuplicateSlugError(event.slug) from e

        if stored is None:
            raise EventNotFoundError(f"Event {event.id} no longer exists")

        event.mark_clean()
        return stored

    async def find_by_slug(self, slug: str) -> Optional[Event]:
        """
        Find an event by its slug.

        Args:
            slug: Event slug

        Returns:
            Event if found, None otherwise
        """
        return await self.find_one_by_field("slug", slug)

    async def find_newest(self, limit: int = 1000, offset: int = 0) -> List[Event]:
        """List events, most recently created first."""
        return await self.find_all(order_by="created_at DESC, id DESC", limit=limit, offset=offset)

    async def find_similar(self, event: Event, limit: int = 1000) -> List[Event]:
        """
        Find other events sharing at least one tag with ``event``.

        Args:
            event: Stored event to compare against
            limit: Maximum number of events

        Returns:
            List of similar events, excluding ``event`` itself
        """
        try:
            events = await self.find_by_criteria(
                "id <> $1 AND tags && $2::text[]",
                [event.id, list(event.tags)],
                order_by="created_at DESC, id DESC",
                limit=limit
            )

            self.logger.info("Found similar events", slug=event.slug, count=len(events))

            return events

        except Exception as e:
            self.logger.error("Error finding similar events", slug=event.slug, error=str(e))
            raise
