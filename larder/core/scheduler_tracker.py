"""Job execution tracking and monitoring for scheduled jobs."""

import asyncio
import logging
from collections import deque
from collections.abc import Awaitable, Callable
from datetime import UTC, datetime
from typing import Any

from larder.core.config import Constants
from larder.core.redis_client import RedisClient, redis_client


logger = logging.getLogger(__name__)

MAX_ERROR_LENGTH = 500
CONSECUTIVE_FAILURE_THRESHOLD = 3


def _key(job_name: str, field: str) -> str:
    return f"scheduler:job:{job_name}:{field}"


class JobTracker:
    """Track job execution history and health status.

    Uses Redis when configured so status survives restarts and is shared by
    workers, otherwise keeps an in-memory record.
    """

    def __init__(self, client: RedisClient | None = None) -> None:
        self._client = client
        self._memory_storage: dict[str, dict[str, Any]] = {}
        self._dead_letter_queue: deque[tuple[str, str, str]] = deque(
            maxlen=Constants.TRACKER_DEAD_LETTER_QUEUE_MAXLEN
        )

    @property
    def _redis(self) -> RedisClient:
        return self._client or redis_client

    def _memory(self, job_name: str) -> dict[str, Any]:
        return self._memory_storage.setdefault(job_name, {})

    async def record_job_start(self, job_name: str) -> None:
        now = datetime.now(UTC).isoformat()
        if self._redis.is_available:
            await self._redis.set(_key(job_name, "current_run"), now, ttl_seconds=3600)
        else:
            self._memory(job_name)["current_run"] = now

    async def record_job_success(self, job_name: str) -> None:
        now = datetime.now(UTC).isoformat()
        ttl = Constants.TRACKER_STATUS_TTL_SECONDS

        if self._redis.is_available:
            await self._redis.set(_key(job_name, "last_success"), now, ttl_seconds=ttl)
            await self._redis.set(_key(job_name, "consecutive_failures"), "0", ttl_seconds=ttl)
            await self._redis.increment(_key(job_name, "success_count"), ttl_seconds=ttl)
            await self._redis.delete(_key(job_name, "current_run"))
        else:
            job_data = self._memory(job_name)
            job_data["last_success"] = now
            job_data["consecutive_failures"] = 0
            job_data["success_count"] = job_data.get("success_count", 0) + 1
            job_data.pop("current_run", None)

    async def record_job_failure(self, job_name: str, error: str) -> int | None:
        """Record failed job execution.

        Returns:
            The number of consecutive failures including this one
        """
        now = datetime.now(UTC).isoformat()
        ttl = Constants.TRACKER_STATUS_TTL_SECONDS

        if self._redis.is_available:
            await self._redis.set(_key(job_name, "last_failure"), now, ttl_seconds=ttl)
            await self._redis.set(_key(job_name, "last_error"), error[:MAX_ERROR_LENGTH], ttl_seconds=ttl)
            consecutive_failures = await self._redis.increment(
                _key(job_name, "consecutive_failures"), ttl_seconds=ttl
            )
            await self._redis.increment(_key(job_name, "failure_count"), ttl_seconds=ttl)
            await self._redis.delete(_key(job_name, "current_run"))
            return consecutive_failures

        job_data = self._memory(job_name)
        job_data["last_failure"] = now
        job_data["last_error"] = error[:MAX_ERROR_LENGTH]
        job_data["consecutive_failures"] = job_data.get("consecutive_failures", 0) + 1
        job_data["failure_count"] = job_data.get("failure_count", 0) + 1
        job_data.pop("current_run", None)
        return job_data["consecutive_failures"]

    async def get_job_status(self, job_name: str) -> dict[str, Any]:
        if self._redis.is_available:
            fields = [
                "last_success",
                "last_failure",
                "last_error",
                "consecutive_failures",
                "success_count",
                "failure_count",
                "current_run",
            ]
            job_data: dict[str, Any] = {}
            for field in fields:
                job_data[field] = await self._redis.get(_key(job_name, field))
        else:
            job_data = self._memory_storage.get(job_name, {})

        return {
            "job_name": job_name,
            "last_success": job_data.get("last_success"),
            "last_failure": job_data.get("last_failure"),
            "last_error": job_data.get("last_error"),
            "consecutive_failures": int(job_data.get("consecutive_failures") or 0),
            "success_count": int(job_data.get("success_count") or 0),
            "failure_count": int(job_data.get("failure_count") or 0),
            "currently_running": job_data.get("current_run") is not None,
            "current_run_started": job_data.get("current_run"),
        }

    async def add_to_dead_letter_queue(self, job_name: str, error: str, context: str) -> None:
        timestamp = datetime.now(UTC).isoformat()
        self._dead_letter_queue.append((job_name, error, context))

        logger.error(
            "Job added to dead letter queue",
            extra={"job_name": job_name, "error": error, "context": context, "timestamp": timestamp},
        )

        if self._redis.is_available:
            await self._redis.set(
                f"scheduler:dlq:{job_name}:{timestamp}",
                f"{error} | {context}",
                ttl_seconds=86400 * 30,
            )

    def get_dead_letter_queue(self) -> list[dict[str, str]]:
        return [
            {"job_name": job_name, "error": error, "context": context}
            for job_name, error, context in self._dead_letter_queue
        ]


# Global job tracker instance
job_tracker = JobTracker()


async def retry_job_with_backoff(
    job_func: Callable[[], Awaitable[None]],
    job_name: str,
    max_retries: int = 3,
    base_delay: float = 2.0,
    tracker: JobTracker | None = None,
) -> None:
    """Execute job with retry logic and exponential backoff.

    Failures never propagate into the scheduler; after the last attempt the
    failure is recorded, and persistent failures go to the dead letter queue.

    Args:
        job_func: Async function to execute
        job_name: Name of the job for tracking
        max_retries: Maximum number of attempts
        base_delay: Base delay in seconds for exponential backoff
        tracker: Tracker to record into, defaults to the global one
    """
    tracker = tracker or job_tracker
    await tracker.record_job_start(job_name)

    last_error = None
    for attempt in range(max_retries):
        try:
            logger.info("Executing %s (attempt %d/%d)", job_name, attempt + 1, max_retries)
            await job_func()
            await tracker.record_job_success(job_name)
            logger.info("%s completed successfully", job_name)
            return
        except Exception as e:
            last_error = str(e)
            logger.error("%s failed on attempt %d/%d: %s", job_name, attempt + 1, max_retries, last_error)

            if attempt < max_retries - 1:
                delay = base_delay**attempt
                logger.info("Retrying %s in %ss", job_name, delay)
                await asyncio.sleep(delay)

    error_msg = f"Failed after {max_retries} attempts: {last_error}"
    consecutive_failures = await tracker.record_job_failure(job_name, error_msg)
    logger.error(
        f"{job_name} failed after all retry attempts",
        extra={"error": error_msg, "consecutive_failures": consecutive_failures},
    )

    if consecutive_failures and consecutive_failures >= CONSECUTIVE_FAILURE_THRESHOLD:
        await tracker.add_to_dead_letter_queue(
            job_name=job_name,
            error=last_error or "Unknown error",
            context=f"Failed {consecutive_failures} consecutive times",
        )
