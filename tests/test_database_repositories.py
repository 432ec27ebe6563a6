"""Tests for database repositories and data persistence layer."""

import pytest
from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock
import asyncpg

from devevent.database.connections import ConnectionCache
from devevent.database.repositories.booking_repository import BookingRepository
from devevent.database.repositories.event_repository import EventRepository, prepare_event
from devevent.database.schema import SCHEMA_STATEMENTS, create_schema
from devevent.exceptions import (
    BookingNotFoundError,
    DuplicateSlugError,
    EventNotFoundError,
    EventValidationError,
    InvalidDateError,
    InvalidTimeError,
)
from devevent.models.booking import Booking
from devevent.models.event import Event


NOW = datetime(2025, 1, 1, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def mock_conn():
    return AsyncMock()


@pytest.fixture
def mock_cache(mock_conn):
    """Mock connection cache."""
    cache = MagicMock(spec=ConnectionCache)
    cache.connection.return_value.__aenter__.return_value = mock_conn
    cache.transaction.return_value.__aenter__.return_value = mock_conn
    return cache


@pytest.fixture
def raw_event():
    """Sample event as entered by a user."""
    return Event(
        title="PyCon US 2025: Pittsburgh",
        description="The largest annual gathering for the Python community",
        overview="Tutorials, talks and sprints",
        image="https://res.cloudinary.com/demo/image/upload/pycon.png",
        venue="David L. Lawrence Convention Center",
        location="Pittsburgh, PA",
        date="May 14, 2025",
        time="8:30 AM",
        mode="offline",
        audience="Python developers",
        agenda=["Tutorials", "Conference talks", "Sprints"],
        organizer="Python Software Foundation",
        tags=["python", "community"],
    )


def event_row(**overrides):
    row = {
        'id': 1,
        'title': "PyCon US 2025: Pittsburgh",
        'slug': "pycon-us-2025-pittsburgh",
        'description': "The largest annual gathering for the Python community",
        'overview': "Tutorials, talks and sprints",
        'image': "https://res.cloudinary.com/demo/image/upload/pycon.png",
        'venue': "David L. Lawrence Convention Center",
        'location': "Pittsburgh, PA",
        'date': "2025-05-14",
        'time': "08:30",
        'mode': "offline",
        'audience': "Python developers",
        'agenda': ["Tutorials", "Conference talks", "Sprints"],
        'organizer': "Python Software Foundation",
        'tags': ["python", "community"],
        'created_at': NOW,
        'updated_at': NOW,
    }
    row.update(overrides)
    return row


class TestEventRepository:
    """Test EventRepository functionality."""

    def test_init(self, mock_cache):
        repo = EventRepository(mock_cache)
        assert repo.cache == mock_cache
        assert repo.table_name == "events"

    def test_row_to_model(self, mock_cache):
        event = EventRepository(mock_cache)._row_to_model(event_row())

        assert event.id == 1
        assert event.slug == "pycon-us-2025-pittsburgh"
        assert event.dirty_fields == frozenset()

    @pytest.mark.asyncio
    async def test_save_new_event_normalizes_then_inserts(self, mock_cache, mock_conn, raw_event):
        mock_conn.fetchrow.return_value = event_row()
        repo = EventRepository(mock_cache)

        stored = await repo.save(raw_event)

        query, *values = mock_conn.fetchrow.await_args.args
        assert "INSERT INTO events" in query
        assert "pycon-us-2025-pittsburgh" in values
        assert "2025-05-14" in values
        assert "08:30" in values
        assert "May 14, 2025" not in values
        assert stored.id == 1
        assert raw_event.dirty_fields == frozenset()

    @pytest.mark.asyncio
    async def test_save_rejects_bad_date_before_writing(self, mock_cache, mock_conn, raw_event):
        raw_event.date = "not a date"
        repo = EventRepository(mock_cache)

        with pytest.raises(InvalidDateError):
            await repo.save(raw_event)

        mock_conn.fetchrow.assert_not_called()
        assert raw_event.is_modified("date")

    @pytest.mark.asyncio
    async def test_save_rejects_bad_time_before_writing(self, mock_cache, mock_conn, raw_event):
        raw_event.time = "half past"
        repo = EventRepository(mock_cache)

        with pytest.raises(InvalidTimeError):
            await repo.save(raw_event)

        mock_conn.fetchrow.assert_not_called()

    @pytest.mark.asyncio
    async def test_save_rejects_empty_slug(self, mock_cache, mock_conn, raw_event):
        raw_event.title = "!!!"
        repo = EventRepository(mock_cache)

        with pytest.raises(EventValidationError):
            await repo.save(raw_event)

        mock_conn.fetchrow.assert_not_called()

    @pytest.mark.asyncio
    async def test_save_duplicate_slug(self, mock_cache, mock_conn, raw_event):
        mock_conn.fetchrow.side_effect = asyncpg.UniqueViolationError("duplicate key value")
        repo = EventRepository(mock_cache)

        with pytest.raises(DuplicateSlugError) as exc_info:
            await repo.save(raw_event)

        assert exc_info.value.slug == "pycon-us-2025-pittsburgh"

    @pytest.mark.asyncio
    async def test_save_stored_event_updates_dirty_fields_only(self, mock_cache, mock_conn):
        event = Event.from_storage(event_row())
        event.title = "PyCon US 2026"
        mock_conn.fetchrow.return_value = event_row(title="PyCon US 2026", slug="pycon-us-2026")
        repo = EventRepository(mock_cache)

        stored = await repo.save(event)

        query, *values = mock_conn.fetchrow.await_args.args
        assert query.strip().startswith("UPDATE events")
        assert "title = $" in query
        assert "slug = $" in query
        assert "date = $" not in query
        assert "time = $" not in query
        assert values[0] == 1
        assert set(values[1:]) == {"PyCon US 2026", "pycon-us-2026"}
        assert stored.slug == "pycon-us-2026"

    @pytest.mark.asyncio
    async def test_save_stored_event_that_vanished(self, mock_cache, mock_conn):
        event = Event.from_storage(event_row())
        event.venue = "Online"
        mock_conn.fetchrow.return_value = None
        repo = EventRepository(mock_cache)

        with pytest.raises(EventNotFoundError):
            await repo.save(event)

        assert event.is_modified("venue")

    def test_prepare_event_normalizes_without_writing(self, mock_conn, raw_event):
        prepared = prepare_event(raw_event)

        assert prepared is raw_event
        assert raw_event.slug == "pycon-us-2025-pittsburgh"
        assert raw_event.date == "2025-05-14"
        assert raw_event.time == "08:30"
        mock_conn.fetchrow.assert_not_called()

    @pytest.mark.asyncio
    async def test_update_without_changes_skips_query(self, mock_cache, mock_conn):
        event = Event.from_storage(event_row())
        repo = EventRepository(mock_cache)

        assert await repo.update(event) is event
        mock_conn.fetchrow.assert_not_called()

    @pytest.mark.asyncio
    async def test_find_by_slug(self, mock_cache, mock_conn):
        mock_conn.fetchrow.return_value = event_row()
        repo = EventRepository(mock_cache)

        event = await repo.find_by_slug("pycon-us-2025-pittsburgh")

        assert event.title == "PyCon US 2025: Pittsburgh"
        query, value = mock_conn.fetchrow.await_args.args
        assert "WHERE slug = $1" in query
        assert value == "pycon-us-2025-pittsburgh"

    @pytest.mark.asyncio
    async def test_find_by_slug_missing(self, mock_cache, mock_conn):
        mock_conn.fetchrow.return_value = None
        assert await EventRepository(mock_cache).find_by_slug("nope") is None

    @pytest.mark.asyncio
    async def test_find_by_field_rejects_unknown_column(self, mock_cache):
        with pytest.raises(ValueError):
            await EventRepository(mock_cache).find_by_field("slug; DROP TABLE events", "x")

    @pytest.mark.asyncio
    async def test_find_newest(self, mock_cache, mock_conn):
        mock_conn.fetch.return_value = [event_row(id=2, slug="b"), event_row(id=1, slug="a")]
        repo = EventRepository(mock_cache)

        events = await repo.find_newest()

        assert [e.id for e in events] == [2, 1]
        assert "ORDER BY created_at DESC" in mock_conn.fetch.await_args.args[0]

    @pytest.mark.asyncio
    async def test_find_similar(self, mock_cache, mock_conn):
        event = Event.from_storage(event_row())
        mock_conn.fetch.return_value = [event_row(id=3, slug="djangocon")]
        repo = EventRepository(mock_cache)

        similar = await repo.find_similar(event)

        assert [e.slug for e in similar] == ["djangocon"]
        query, *params = mock_conn.fetch.await_args.args
        assert "id <> $1" in query
        assert "tags && $2" in query
        assert params[:2] == [1, ["python", "community"]]

    @pytest.mark.asyncio
    async def test_database_error_propagates(self, mock_cache, mock_conn):
        mock_conn.fetch.side_effect = asyncpg.PostgresError("boom")

        with pytest.raises(asyncpg.PostgresError):
            await EventRepository(mock_cache).find_newest()

    @pytest.mark.asyncio
    async def test_delete(self, mock_cache, mock_conn):
        mock_conn.execute.return_value = "DELETE 1"
        assert await EventRepository(mock_cache).delete(1) is True

        mock_conn.execute.return_value = "DELETE 0"
        assert await EventRepository(mock_cache).delete(1) is False


class TestBookingRepository:
    """Test BookingRepository functionality."""

    @pytest.mark.asyncio
    async def test_save_checks_event_exists(self, mock_cache, mock_conn):
        mock_conn.fetchval.return_value = 1
        mock_conn.fetchrow.return_value = {
            'id': 10, 'event_id': 1, 'email': "jane@example.com",
            'created_at': NOW, 'updated_at': NOW,
        }
        repo = BookingRepository(mock_cache)

        booking = await repo.save(Booking(event_id=1, email="Jane@Example.com"))

        assert booking.id == 10
        exists_query, event_id = mock_conn.fetchval.await_args.args
        assert "FROM events" in exists_query
        assert event_id == 1
        insert_query, *values = mock_conn.fetchrow.await_args.args
        assert "INSERT INTO bookings" in insert_query
        assert values == [1, "jane@example.com"]

    @pytest.mark.asyncio
    async def test_save_for_missing_event(self, mock_cache, mock_conn):
        mock_conn.fetchval.return_value = None
        repo = BookingRepository(mock_cache)

        with pytest.raises(EventNotFoundError):
            await repo.save(Booking(event_id=99, email="jane@example.com"))

        mock_conn.fetchrow.assert_not_called()

    @pytest.mark.asyncio
    async def test_save_stored_booking_that_vanished(self, mock_cache, mock_conn):
        booking = Booking.from_storage({
            'id': 10, 'event_id': 1, 'email': "jane@example.com",
            'created_at': NOW, 'updated_at': NOW,
        })
        booking.email = "john@example.com"
        mock_conn.fetchrow.return_value = None

        with pytest.raises(BookingNotFoundError):
            await BookingRepository(mock_cache).save(booking)

        assert booking.is_modified("email")

    @pytest.mark.asyncio
    async def test_count_for_event(self, mock_cache, mock_conn):
        mock_conn.fetchval.return_value = 4

        assert await BookingRepository(mock_cache).count_for_event(1) == 4
        query, value = mock_conn.fetchval.await_args.args
        assert "COUNT(*) FROM bookings WHERE event_id = $1" in query
        assert value == 1

    @pytest.mark.asyncio
    async def test_find_by_event(self, mock_cache, mock_conn):
        mock_conn.fetch.return_value = [
            {'id': 1, 'event_id': 1, 'email': "a@example.com", 'created_at': NOW, 'updated_at': NOW},
            {'id': 2, 'event_id': 1, 'email': "b@example.com", 'created_at': NOW, 'updated_at': NOW},
        ]

        bookings = await BookingRepository(mock_cache).find_by_event(1)

        assert [b.email for b in bookings] == ["a@example.com", "b@example.com"]


@pytest.mark.asyncio
async def test_create_schema(mock_cache, mock_conn):
    await create_schema(mock_cache)

    assert mock_conn.execute.await_count == len(SCHEMA_STATEMENTS)
    statements = " ".join(call.args[0] for call in mock_conn.execute.await_args_list)
    assert "CREATE TABLE IF NOT EXISTS events" in statements
    assert "CREATE TABLE IF NOT EXISTS bookings" in statements
