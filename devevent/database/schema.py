"""Table definitions for events and bookings."""

import structlog

from devevent.database.connections import ConnectionCache


logger = structlog.get_logger(__name__)


SCHEMA_STATEMENTS = [
    """
    CREATE TABLE IF NOT EXISTS events (
        id BIGSERIAL PRIMARY KEY,
        title TEXT NOT NULL,
        slug TEXT NOT NULL UNIQUE,
        description TEXT NOT NULL,
        overview TEXT NOT NULL,
        image TEXT NOT NULL,
        venue TEXT NOT NULL,
        location TEXT NOT NULL,
        date TEXT NOT NULL,
        time TEXT NOT NULL,
        mode TEXT NOT NULL CHECK (mode IN ('online', 'offline', 'hybrid')),
        audience TEXT NOT NULL,
        agenda TEXT[] NOT NULL,
        organizer TEXT NOT NULL,
        tags TEXT[] NOT NULL,
        created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
        updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_events_tags ON events USING GIN (tags)",
    "CREATE INDEX IF NOT EXISTS idx_events_created_at ON events (created_at DESC)",
    """
    CREATE TABLE IF NOT EXISTS bookings (
        id BIGSERIAL PRIMARY KEY,
        event_id BIGINT NOT NULL REFERENCES events (id) ON DELETE CASCADE,
        email TEXT NOT NULL,
        created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
        updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_bookings_event_id ON bookings (event_id)",
]


async def create_schema(cache: ConnectionCache) -> None:
    """Create the tables and indexes if they do not exist yet."""
    async with cache.transaction() as conn:
        for statement in SCHEMA_STATEMENTS:
            await conn.execute(statement)
    logger.info("Database schema ensured", statements=len(SCHEMA_STATEMENTS))
