"""Key-value stores backing sessions, activities and adjustments.

The engine treats persistence as an async key-value store holding
JSON-serializable values. Two backends are provided:
- InMemoryKeyValueStore: process-local, used in tests and single-process apps
- RedisKeyValueStore: values JSON-encoded under a key prefix
"""

import copy
import json
from typing import Any, Protocol

import redis.asyncio as redis
from loguru import logger


class KeyValueStore(Protocol):
    """Async get/set contract consumed by the repository."""

    async def get(self, key: str, default: Any = None) -> Any: ...

    async def set(self, key: str, value: Any) -> None: ...


class InMemoryKeyValueStore:
    """Process-local store.

    Values are deep-copied in and out so that callers never alias stored
    state, which mirrors what a serializing backend would do.
    """

    def __init__(self, initial: dict[str, Any] | None = None):
        self._data: dict[str, Any] = copy.deepcopy(initial) if initial else {}

    async def get(self, key: str, default: Any = None) -> Any:
        if key not in self._data:
            return default
        return copy.deepcopy(self._data[key])

    async def set(self, key: str, value: Any) -> None:
        self._data[key] = copy.deepcopy(value)

    def keys(self) -> list[str]:
        return list(self._data)


class RedisKeyValueStore:
    """Redis-backed store; every value is stored as a JSON string."""

    def __init__(self, redis_url: str, key_prefix: str = "loadguard"):
        self._client = redis.from_url(redis_url, decode_responses=True)
        self._key_prefix = key_prefix

    def _key(self, key: str) -> str:
        return f"{self._key_prefix}:{key}"

    async def get(self, key: str, default: Any = None) -> Any:
        raw = await self._client.get(self._key(key))
        if raw is None:
            return default
        try:
            return json.loads(raw)
        except json.JSONDecodeError as e:
            logger.bind(key=key, error=str(e)).warning("Discarding undecodable value from Redis")
            return default

    async def set(self, key: str, value: Any) -> None:
        await self._client.set(self._key(key), json.dumps(value, default=str))

    async def close(self) -> None:
        await self._client.aclose()
