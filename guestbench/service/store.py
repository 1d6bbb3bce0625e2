"""
List stores backing the guestbook: Redis in production, an in-memory list for local runs.
"""

import asyncio
import logging
from typing import List

import redis.asyncio as aioredis
from redis.exceptions import RedisError

from guestbench.configuration import REDIS_ADDR, REDIS_DB, REDIS_PASSWORD

logger = logging.getLogger(__name__)


class StoreError(Exception):
    """The backing list store could not complete an operation."""


class ListStore:
    """Push-to-head / range-read list interface used by the guestbook handlers."""

    async def push(self, key: str, value: str) -> None:
        raise NotImplementedError

    async def range(self, key: str, start: int, stop: int) -> List[str]:
        """Inclusive range, like Redis LRANGE."""
        raise NotImplementedError

    async def close(self) -> None:
        pass


class InMemoryListStore(ListStore):
    """Process-local list store."""

    def __init__(self):
        self._lists = {}
        self._lock = asyncio.Lock()

    async def push(self, key: str, value: str) -> None:
        async with self._lock:
            self._lists.setdefault(key, []).insert(0, value)

    async def range(self, key: str, start: int, stop: int) -> List[str]:
        async with self._lock:
            items = self._lists.get(key, [])
            # LRANGE semantics: stop is inclusive, -1 means the last element
            end = len(items) if stop == -1 else stop + 1
            return list(items[start:end])


class RedisListStore(ListStore):
    """Redis-backed list store using LPUSH / LRANGE."""

    def __init__(self, addr: str = REDIS_ADDR, password: str = REDIS_PASSWORD, db: int = REDIS_DB):
        host, _, port = addr.rpartition(":")
        if not host:
            host, port = addr, "6379"
        self.addr = addr
        self.client = aioredis.Redis(
            host=host,
            port=int(port),
            password=password or None,
            db=db,
            decode_responses=True,
        )
        logger.info(f"Initialized Redis list store at {addr} (db={db})")

    async def push(self, key: str, value: str) -> None:
        try:
            await self.client.lpush(key, value)
        except RedisError as e:
            raise StoreError(f"LPUSH {key} failed: {e}") from e

    async def range(self, key: str, start: int, stop: int) -> List[str]:
        try:
            return await self.client.lrange(key, start, stop)
        except RedisError as e:
            raise StoreError(f"LRANGE {key} failed: {e}") from e

    async def close(self) -> None:
        await self.client.aclose()
