"""Short-lived route records in Redis.

Returned itineraries are stored under ``route:{route_id}`` for a few minutes
so clients can fetch full detail (instructions, elevation) after the search.
Writes happen in the background and never fail a request; a missing record
on read just means it expired.
"""

import asyncio
import json
import logging
from typing import Any, Dict, Optional, Set

import redis.asyncio as redis
from pydantic import BaseModel

from bikeshare_planner.config import settings

logger = logging.getLogger(__name__)


class RouteCache:
    """Write-once, TTL-bound store for route records."""

    def __init__(
        self,
        redis_url: Optional[str] = None,
        client: Optional[Any] = None,
        ttl_seconds: Optional[int] = None,
        key_prefix: Optional[str] = None,
    ):
        self._redis_url = redis_url or settings.redis_url
        self._redis = client
        self.ttl_seconds = ttl_seconds or settings.route_cache_ttl_seconds
        self.key_prefix = key_prefix or settings.route_cache_key_prefix
        self._pending: Set[asyncio.Task] = set()

    async def _get_redis(self):
        """Get or create Redis connection."""
        if self._redis is None:
            self._redis = redis.from_url(
                self._redis_url,
                encoding="utf-8",
                decode_responses=True
            )
        return self._redis

    def key_for(self, route_id: str) -> str:
        return f"{self.key_prefix}:{route_id}"

    async def save(self, route_id: str, record: BaseModel) -> None:
        """Store a record and wait for Redis to acknowledge it."""
        client = await self._get_redis()
        await client.setex(self.key_for(route_id), self.ttl_seconds, record.model_dump_json())

    def save_in_background(self, route_id: str, record: BaseModel) -> asyncio.Task:
        """Schedule a write without waiting for it.

        Must be called from a running event loop. The task is tracked until it
        finishes so shutdown can wait for in-flight writes.
        """
        task = asyncio.create_task(self._save_quietly(route_id, record))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        return task

    async def _save_quietly(self, route_id: str, record: BaseModel) -> None:
        try:
            await self.save(route_id, record)
        except Exception as e:
            logger.warning(f"Failed to cache route {route_id}: {e}")

    async def get(self, route_id: str) -> Optional[Dict[str, Any]]:
        """Cached record, or ``None`` when it never existed or has expired."""
        client = await self._get_redis()
        raw = await client.get(self.key_for(route_id))
        if raw is None:
            return None
        return json.loads(raw)

    async def ping(self) -> bool:
        client = await self._get_redis()
        return bool(await client.ping())

    @property
    def pending_writes(self) -> int:
        return len(self._pending)

    async def drain(self) -> None:
        """Wait for background writes that are still running."""
        if self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    async def close(self) -> None:
        """Flush pending writes and close the Redis connection."""
        await self.drain()
        if self._redis is not None:
            await self._redis.close()
            self._redis = None
