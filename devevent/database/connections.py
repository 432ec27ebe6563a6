"""Database connection management for DevEvent."""

import asyncio
from contextlib import asynccontextmanager
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, Generic, Optional, TypeVar
import asyncpg
import structlog

from devevent.exceptions import ConfigurationError, DatabaseConnectionError
from devevent.models.config import DevEventConfig


logger = structlog.get_logger(__name__)

H = TypeVar("H")


class ConnectionState(str, Enum):
    """Lifecycle state of a connection cache."""

    UNINITIALIZED = "uninitialized"
    CONNECTING = "connecting"
    CONNECTED = "connected"


class ConnectionCache(Generic[H]):
    """Holds at most one live connection handle and one in-flight attempt.

    Concurrent ``acquire`` calls made before a handle exists all await the
    same establishment attempt. A failed attempt is reported to each of its
    waiters and then forgotten, so the next call starts fresh.

    A cache belongs to the event loop that first acquires through it. It is
    not thread-safe; code running on another thread or loop must create its
    own cache.
    """

    def __init__(self,
                 connect: Callable[[], Awaitable[H]],
                 close: Optional[Callable[[H], Awaitable[None]]] = None,
                 timeout: Optional[float] = None):
        """
        Initialize the cache.

        Args:
            connect: Coroutine function that establishes a new handle
            close: Coroutine function that tears a handle down
            timeout: Seconds allowed for one establishment attempt
        """
        self._connect = connect
        self._close = close
        self._timeout = timeout
        self._handle: Optional[H] = None
        self._pending: Optional["asyncio.Future[H]"] = None
        self.attempts = 0
        self.logger = logger.bind(component="connection_cache")

    @property
    def state(self) -> ConnectionState:
        if self._handle is not None:
            return ConnectionState.CONNECTED
        if self._pending is not None:
            return ConnectionState.CONNECTING
        return ConnectionState.UNINITIALIZED

    async def acquire(self) -> H:
        """
        Return the cached handle, establishing it first if needed.

        Returns:
            The live connection handle

        Raises:
            DatabaseConnectionError: If the establishment attempt fails or times out
        """
        if self._handle is not None:
            return self._handle

        # No await between the check and the assignment.
        if self._pending is None:
            self._pending = asyncio.ensure_future(self._establish())

        # Cancelling one waiter must not cancel the attempt the others share.
        return await asyncio.shield(self._pending)

    async def _establish(self) -> H:
        self.attempts += 1
        attempt = self.attempts
        self.logger.info("Establishing database connection", attempt=attempt)

        try:
            if self._timeout is not None:
                handle = await asyncio.wait_for(self._connect(), timeout=self._timeout)
            else:
                handle = await self._connect()
        except asyncio.TimeoutError as e:
            self.logger.error("Database connection timed out", attempt=attempt, timeout=self._timeout)
            raise DatabaseConnectionError(
                f"Timed out after {self._timeout}s while connecting to the database"
            ) from e
        except Exception as e:
            self.logger.error("Database connection failed", attempt=attempt, error=str(e))
            raise DatabaseConnectionError(f"Unable to connect to database: {e}") from e
        else:
            self._handle = handle
            self.logger.info("Database connection established", attempt=attempt)
            return handle
        finally:
            self._pending = None

    async def release(self) -> None:
        """Close the cached handle and return to ``UNINITIALIZED``.

        An attempt that is still running is allowed to finish first. Calling
        this with nothing cached does nothing.
        """
        if self._pending is not None:
            try:
                await asyncio.shield(self._pending)
            except DatabaseConnectionError:
                pass

        handle, self._handle = self._handle, None
        if handle is None:
            return

        if self._close is not None:
            try:
                await self._close(handle)
            except Exception as e:
                self.logger.error("Error closing database connection", error=str(e))
                raise
        self.logger.info("Database connection released")

    @asynccontextmanager
    async def connection(self):
        """
        Get a PostgreSQL connection from the cached pool.

        Yields:
            asyncpg.Connection: Database connection
        """
        pool = await self.acquire()
        async with pool.acquire() as conn:
            try:
                yield conn
            except Exception as e:
                self.logger.error("Database operation error", error=str(e))
                raise

    @asynccontextmanager
    async def transaction(self):
        """
        Get a PostgreSQL connection with an active transaction.

        Yields:
            asyncpg.Connection: Database connection with active transaction
        """
        async with self.connection() as conn:
            async with conn.transaction():
                yield conn

    async def health_check(self) -> Dict[str, Any]:
        """Report whether the database answers, then the cache state after asking."""
        health: Dict[str, Any] = {}
        try:
            async with self.connection() as conn:
                await conn.fetchval("SELECT 1")
            health["status"] = "healthy"
        except Exception as e:
            health["status"] = "unhealthy"
            health["error"] = str(e)

        health["state"] = self.state.value
        health["attempts"] = self.attempts
        return health


def mask_password(database_url: str) -> str:
    """Mask password in database URL for logging."""
    try:
        if "://" in database_url and "@" in database_url:
            scheme, rest = database_url.split("://", 1)
            if "@" in rest:
                auth, host_part = rest.split("@", 1)
                if ":" in auth:
                    user, _ = auth.split(":", 1)
                    return f"{scheme}://{user}:***@{host_part}"
        return database_url
    except Exception:
        return "***"


def create_postgres_connector(config: DevEventConfig) -> Callable[[], Awaitable[asyncpg.Pool]]:
    """
    Build the coroutine function that opens the asyncpg pool.

    Raises:
        ConfigurationError: If no connection string is configured
    """
    if not config.database_url or not config.database_url.strip():
        raise ConfigurationError("DATABASE_URL environment variable is required")

    pool_config = {
        "min_size": min(config.db_pool_min_size, config.db_pool_size),
        "max_size": config.db_pool_size,
        "max_inactive_connection_lifetime": 300,
        "command_timeout": config.db_command_timeout,
        "server_settings": {
            "application_name": "devevent",
            "timezone": "UTC"
        }
    }

    async def connect() -> asyncpg.Pool:
        logger.info("Creating PostgreSQL connection pool",
                    database_url=mask_password(config.database_url))
        return await asyncpg.create_pool(config.database_url, **pool_config)

    return connect


async def close_postgres_pool(pool: asyncpg.Pool) -> None:
    await pool.close()


def create_connection_cache(config: DevEventConfig) -> ConnectionCache[asyncpg.Pool]:
    """Create a cache that lazily opens the PostgreSQL pool described by ``config``."""
    return ConnectionCache(
        create_postgres_connector(config),
        close=close_postgres_pool,
        timeout=config.db_connect_timeout,
    )


# Global connection cache instance
_connection_cache: Optional[ConnectionCache] = None


def initialize_connection_cache(config: DevEventConfig) -> ConnectionCache:
    """
    Install the process-wide connection cache.

    Repeated calls return the existing cache, so hot reloads do not open a
    second pool.

    Args:
        config: Application configuration

    Returns:
        ConnectionCache: The process-wide cache
    """
    global _connection_cache

    if _connection_cache is None:
        _connection_cache = create_connection_cache(config)

    return _connection_cache


def set_connection_cache(cache: Optional[ConnectionCache]) -> None:
    """Replace the process-wide cache, e.g. with one wrapping a fake handle."""
    global _connection_cache
    _connection_cache = cache


def get_connection_cache() -> ConnectionCache:
    """
    Get the process-wide connection cache.

    Raises:
        RuntimeError: If the cache has not been initialized
    """
    if _connection_cache is None:
        raise RuntimeError("Connection cache not initialized. Call initialize_connection_cache() first.")

    return _connection_cache


async def acquire_connection():
    """Return the live pool from the process-wide cache."""
    return await get_connection_cache().acquire()


async def release_connection() -> None:
    """Tear down the process-wide pool, if any."""
    if _connection_cache is not None:
        await _connection_cache.release()


async def cleanup_connection_cache() -> None:
    """Release the process-wide cache and forget it."""
    global _connection_cache

    if _connection_cache is not None:
        await _connection_cache.release()
        _connection_cache = None
