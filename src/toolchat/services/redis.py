import json
import logging
from typing import Any

from redis.asyncio import Redis
from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import TimeoutError as RedisTimeoutError

from ..settings import get_settings

logger = logging.getLogger(__name__)

KEY_PREFIX = "toolchat:"


class RedisStore:
    """Async JSON document store on top of Redis; failures degrade to None/False."""

    def __init__(self, url: str, prefix: str = KEY_PREFIX) -> None:
        self._url = url
        self._prefix = prefix
        self._client: Redis | None = None

    async def connect(self) -> None:
        """Establish connection to Redis. Idempotent."""
        if self._client is not None:
            return
        self._client = Redis.from_url(self._url, decode_responses=True)
        try:
            await self._client.ping()
            logger.info("Redis connection established: %s", self._url.split("@")[-1])
        except (RedisConnectionError, RedisTimeoutError) as e:
            logger.warning("Redis ping failed: %s", e)
            await self._client.aclose()
            self._client = None
            raise

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None
            logger.debug("Redis connection closed")

    @property
    def connected(self) -> bool:
        return self._client is not None

    def _key(self, name: str) -> str:
        return f"{self._prefix}{name}"

    async def get_json(self, name: str) -> Any | None:
        """Return the decoded document stored under name, or None if missing or unreadable."""
        if self._client is None:
            return None
        key = self._key(name)
        try:
            raw = await self._client.get(key)
        except (RedisConnectionError, RedisTimeoutError) as e:
            logger.warning("Redis get %s failed: %s", key, e)
            return None
        if raw is None:
            return None
        try:
            return json.loads(raw)
        except json.JSONDecodeError as e:
            logger.warning("Invalid JSON stored at %s: %s", key, e)
            return None

    async def set_json(self, name: str, value: Any) -> bool:
        """Store value as JSON under name. Returns True on success."""
        if self._client is None:
            return False
        key = self._key(name)
        try:
            await self._client.set(key, json.dumps(value))
            return True
        except (RedisConnectionError, RedisTimeoutError) as e:
            logger.warning("Redis set %s failed: %s", key, e)
            return False


def get_redis_store() -> RedisStore | None:
    """Return a Redis store if redis_url is configured, else None."""
    settings = get_settings()
    if not settings.redis_url or not settings.redis_url.strip():
        return None
    return RedisStore(settings.redis_url.strip())
