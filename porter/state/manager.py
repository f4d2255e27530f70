"""Redis-based state manager backing the document stores."""

import json
from typing import Any, Callable

import redis.asyncio as redis
from redis.exceptions import WatchError

from porter.config import get_settings
from porter.utils.logging import get_logger

logger = get_logger(__name__)


class StateManager:
    """Centralized state management using Redis."""

    def __init__(
        self,
        redis_client: redis.Redis | None = None,
        key_prefix: str | None = None,
    ) -> None:
        settings = get_settings()
        self.redis_client: redis.Redis | None = redis_client
        self.redis_url = settings.redis_url
        self.key_prefix = key_prefix if key_prefix is not None else settings.key_prefix

    def key(self, *parts: Any) -> str:
        """Build a namespaced key such as ``porter:orders:<id>``."""
        return ":".join([self.key_prefix, *(str(part) for part in parts)])

    async def connect(self) -> None:
        """Establish Redis connection."""
        if self.redis_client is None:
            self.redis_client = await redis.from_url(
                self.redis_url,
                encoding="utf-8",
                decode_responses=True,
            )
            logger.info("redis_connected", url=self.redis_url)

    async def disconnect(self) -> None:
        """Close Redis connection."""
        if self.redis_client:
            await self.redis_client.aclose()
            self.redis_client = None
            logger.info("redis_disconnected")

    async def _client(self) -> redis.Redis:
        if not self.redis_client:
            await self.connect()
        return self.redis_client

    async def ping(self) -> bool:
        client = await self._client()
        return bool(await client.ping())

    async def set(self, key: str, value: Any, ttl: int | None = None) -> None:
        """Set a value in Redis with optional TTL."""
        client = await self._client()

        if isinstance(value, (dict, list)):
            value = json.dumps(value)

        await client.set(key, value, ex=ttl)
        logger.debug("state_set", key=key, ttl=ttl)

    async def get(self, key: str) -> Any:
        """Get a value from Redis, decoding JSON documents."""
        client = await self._client()
        return _decode(await client.get(key))

    async def mget(self, keys: list[str]) -> list[Any]:
        """Fetch several values in one round trip."""
        if not keys:
            return []
        client = await self._client()
        return [_decode(value) for value in await client.mget(keys)]

    async def delete(self, key: str) -> None:
        client = await self._client()
        await client.delete(key)
        logger.debug("state_deleted", key=key)

    async def exists(self, key: str) -> bool:
        client = await self._client()
        return bool(await client.exists(key))

    async def sadd(self, key: str, *members: str) -> None:
        client = await self._client()
        await client.sadd(key, *members)

    async def srem(self, key: str, *members: str) -> None:
        client = await self._client()
        await client.srem(key, *members)

    async def smembers(self, key: str) -> frozenset[str]:
        client = await self._client()
        return frozenset(await client.smembers(key))

    async def hsetnx(self, key: str, field: str, value: str) -> bool:
        """Set a hash field only if it does not exist yet."""
        client = await self._client()
        return bool(await client.hsetnx(key, field, value))

    async def hget(self, key: str, field: str) -> str | None:
        client = await self._client()
        return await client.hget(key, field)

    async def hdel(self, key: str, *fields: str) -> None:
        client = await self._client()
        await client.hdel(key, *fields)

    async def rpush(self, key: str, value: Any) -> None:
        client = await self._client()
        if isinstance(value, (dict, list)):
            value = json.dumps(value)
        await client.rpush(key, value)

    async def lrange(self, key: str, start: int = 0, end: int = -1) -> list[Any]:
        client = await self._client()
        return [_decode(value) for value in await client.lrange(key, start, end)]

    async def lrem(self, key: str, value: Any) -> None:
        """Remove every occurrence of ``value`` from a list."""
        client = await self._client()
        if isinstance(value, (dict, list)):
            value = json.dumps(value)
        await client.lrem(key, 0, value)

    async def clear_namespace(self) -> int:
        """Delete every key under ``key_prefix``; returns how many were removed."""
        client = await self._client()
        removed = 0
        async for key in client.scan_iter(match=f"{self.key_prefix}:*", count=500):
            removed += await client.delete(key)
        logger.info("namespace_cleared", prefix=self.key_prefix, removed=removed)
        return removed

    async def compare_and_set(
        self,
        key: str,
        update: Callable[[Any], Any],
    ) -> Any:
        """
        Atomically read-modify-write a JSON document.

        ``update`` receives the current decoded value (``None`` when the key
        is missing) and returns the value to store. Returning ``None`` leaves
        the key untouched. Exceptions raised by ``update`` abort the write and
        propagate. The read is retried whenever another writer touched the key
        between the read and the write.
        """
        client = await self._client()

        async with client.pipeline(transaction=True) as pipe:
            while True:
                try:
                    await pipe.watch(key)
                    current = _decode(await pipe.get(key))
                    new_value = update(current)

                    if new_value is None:
                        await pipe.unwatch()
                        return None

                    pipe.multi()
                    pipe.set(key, json.dumps(new_value))
                    await pipe.execute()
                    return new_value
                except WatchError:
                    logger.debug("compare_and_set_retry", key=key)
                    continue


def _decode(value: Any) -> Any:
    if value:
        try:
            return json.loads(value)
        except (json.JSONDecodeError, TypeError):
            return value
    return None


# Global state manager instance
_state_manager: StateManager | None = None


async def get_state_manager() -> StateManager:
    """Get the global state manager instance."""
    global _state_manager
    if _state_manager is None:
        _state_manager = StateManager()
        await _state_manager.connect()
    return _state_manager
