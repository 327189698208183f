"""Short-lived claims that stop the same reminder being sent twice.

A claim is keyed by a notification epoch (type, local date, content digest).
Redis ``SET NX EX`` is used when configured so separate workers agree; an
in-process map with expiry is the fallback.
"""

import hashlib
import logging
import time
from datetime import date

from larder.core.redis_client import RedisClient, redis_client


logger = logging.getLogger(__name__)


def notification_epoch(*, notification_type: str, day: date, content: str) -> str:
    digest = hashlib.sha256(content.encode("utf-8")).hexdigest()[:16]
    return f"notification:{notification_type}:{day.isoformat()}:{digest}"


class NotificationGuard:
    """Grants each epoch key to one caller until its TTL lapses."""

    def __init__(self, client: RedisClient | None = None) -> None:
        self._client = client
        self._claims: dict[str, float] = {}

    def _claim_in_memory(self, key: str, ttl_seconds: int) -> bool:
        now = time.monotonic()
        self._claims = {k: expiry for k, expiry in self._claims.items() if expiry > now}
        if key in self._claims:
            return False
        self._claims[key] = now + ttl_seconds
        return True

    async def claim(self, key: str, ttl_seconds: int) -> bool:
        """Return True if the caller now owns ``key``, False if someone else holds it."""
        client = self._client or redis_client
        claimed = await client.set_if_not_exists(key, "1", ttl_seconds)
        if claimed is None:
            return self._claim_in_memory(key, ttl_seconds)
        return claimed

    async def release(self, key: str) -> None:
        """Give a claim back early, e.g. after a failed send so a retry can proceed."""
        self._claims.pop(key, None)
        client = self._client or redis_client
        await client.delete(key)


notification_guard = NotificationGuard()
