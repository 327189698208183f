"""Redis client used for short-lived locks and job status."""

import logging
from datetime import UTC, datetime
from typing import Any

from redis.asyncio import Redis
from redis.asyncio.connection import ConnectionPool
from redis.exceptions import RedisError

from larder.core.config import Constants, settings


logger = logging.getLogger(__name__)


class RedisClient:
    """Async Redis client wrapper with connection pooling.

    Every operation degrades to a no-op result when Redis is not configured
    or fails, so callers can fall back to in-process state.
    """

    def __init__(self, url: str | None = None) -> None:
        """Initialize Redis client."""
        self._client: Redis | None = None
        self._pool: ConnectionPool | None = None
        self._enabled = bool(url)

        # Health tracking
        self._last_successful_operation: datetime | None = None
        self._failure_count = 0
        self._total_operations = 0

        if self._enabled and url:
            try:
                self._pool = ConnectionPool.from_url(
                    url,
                    decode_responses=True,
                    max_connections=Constants.REDIS_MAX_CONNECTIONS,
                )
                self._client = Redis(connection_pool=self._pool)
                logger.info("Redis client initialized")
            except (RedisError, ValueError) as e:
                logger.warning("Failed to initialize Redis client: %s. Running without Redis.", e)
                self._enabled = False
                self._client = None
                self._pool = None
        else:
            logger.info("Redis URL not configured. Running without Redis.")

    @property
    def is_available(self) -> bool:
        """Check if Redis is available."""
        return self._enabled and self._client is not None

    def get_health_status(self) -> dict[str, Any]:
        return {
            "enabled": self._enabled,
            "connected": self.is_available,
            "last_successful_operation": self._last_successful_operation.isoformat()
            if self._last_successful_operation
            else None,
            "failure_count": self._failure_count,
            "total_operations": self._total_operations,
        }

    def _record_success(self) -> None:
        self._last_successful_operation = datetime.now(UTC)
        self._total_operations += 1

    def _record_failure(self) -> None:
        self._failure_count += 1
        self._total_operations += 1

    async def get(self, key: str) -> str | None:
        """Get value from Redis, or None if missing or on error."""
        if not self.is_available or not self._client:
            return None

        try:
            value = await self._client.get(key)
            self._record_success()
            return value
        except RedisError as e:
            self._record_failure()
            logger.warning("Redis GET error for key %s: %s", key, e)
            return None

    async def set(self, key: str, value: str, ttl_seconds: int) -> bool:
        """Set value in Redis with TTL. Returns True on success."""
        if not self.is_available or not self._client:
            return False

        try:
            await self._client.setex(key, ttl_seconds, value)
            self._record_success()
            return True
        except RedisError as e:
            self._record_failure()
            logger.warning("Redis SET error for key %s: %s", key, e)
            return False

    async def set_if_not_exists(self, key: str, value: str, ttl_seconds: int) -> bool | None:
        """Set value only if key doesn't exist (atomic).

        Returns:
            True if the key was set, False if it already existed, None if Redis is unusable
        """
        if not self.is_available or not self._client:
            return None

        try:
            result = await self._client.set(key, value, ex=ttl_seconds, nx=True)
            self._record_success()
            return bool(result)
        except RedisError as e:
            self._record_failure()
            logger.warning("Redis SETNX error for key %s: %s", key, e)
            return None

    async def delete(self, *keys: str) -> bool:
        if not self.is_available or not self._client or not keys:
            return False

        try:
            await self._client.delete(*keys)
            self._record_success()
            return True
        except RedisError as e:
            self._record_failure()
            logger.warning("Redis DELETE error: %s", e)
            return False

    async def increment(self, key: str, ttl_seconds: int | None = None) -> int | None:
        """Increment key value atomically, optionally refreshing its TTL."""
        if not self.is_available or not self._client:
            return None

        try:
            value = await self._client.incr(key)
            if ttl_seconds is not None:
                await self._client.expire(key, ttl_seconds)
            self._record_success()
            return value
        except RedisError as e:
            self._record_failure()
            logger.warning("Redis INCR error for key %s: %s", key, e)
            return None

    async def ping(self) -> bool:
        if not self.is_available or not self._client:
            return False

        try:
            result = await self._client.ping()  # type: ignore[misc]
            return bool(result)
        except RedisError as e:
            logger.warning("Redis PING failed: %s", e)
            return False

    async def close(self) -> None:
        if self._client:
            await self._client.aclose()
            logger.info("Redis client closed")


# Global Redis client instance
redis_client = RedisClient(settings.redis_url)
