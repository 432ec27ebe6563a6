"""Redis-backed cache of event lookups by slug."""

import json
from typing import Optional
import redis.asyncio as redis
import structlog

from devevent.models.event import Event


logger = structlog.get_logger(__name__)


class EventCache:
    """Caches serialized events under ``event:<slug>`` with a fixed expiry.

    Redis failures are logged and treated as cache misses.
    """

    key_prefix = "event:"

    def __init__(self, client: redis.Redis, ttl: int = 3600):
        """
        Initialize the cache.

        Args:
            client: Redis client (created with ``decode_responses=True``)
            ttl: Expiry time in seconds
        """
        self.client = client
        self.ttl = ttl
        self.logger = logger.bind(component="event_cache")

    @classmethod
    def from_url(cls, redis_url: str, ttl: int = 3600) -> "EventCache":
        client = redis.from_url(
            redis_url,
            retry_on_timeout=True,
            health_check_interval=30,
            decode_responses=True
        )
        return cls(client, ttl=ttl)

    def _key(self, slug: str) -> str:
        return f"{self.key_prefix}{slug}"

    async def get(self, slug: str) -> Optional[Event]:
        """Return the cached event for ``slug``, or None on a miss."""
        try:
            value = await self.client.get(self._key(slug))
            if value is None:
                return None
            return Event.from_storage(json.loads(value))
        except Exception as e:
            self.logger.warning("Cache get failed", slug=slug, error=str(e))
            return None

    async def set(self, event: Event) -> None:
        """Cache ``event`` under its slug."""
        try:
            await self.client.setex(self._key(event.slug), self.ttl, event.model_dump_json())
        except Exception as e:
            self.logger.warning("Cache set failed", slug=event.slug, error=str(e))

    async def invalidate(self, slug: str) -> None:
        """Drop the cached entry for ``slug``."""
        try:
            await self.client.delete(self._key(slug))
        except Exception as e:
            self.logger.warning("Cache delete failed", slug=slug, error=str(e))

    async def close(self) -> None:
        await self.client.aclose()
