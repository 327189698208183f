"""Scheduled jobs for automatic low-stock reminders."""

import logging

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger

from larder.core.config import constants, settings
from larder.core.scheduler_tracker import retry_job_with_backoff
from larder.services import reminder_service


logger = logging.getLogger(__name__)

# Global scheduler instance
scheduler = AsyncIOScheduler()


async def daily_low_stock_check() -> None:
    """Run the daily check with retry and tracking."""
    await retry_job_with_backoff(reminder_service.run_daily_check, constants.DAILY_CHECK_JOB)


def start_scheduler() -> None:
    """Start the scheduler and register the daily check.

    This should be called during FastAPI app startup.
    """
    logger.info("Starting scheduler")

    scheduler.add_job(
        daily_low_stock_check,
        trigger=CronTrigger(hour=settings.daily_check_hour, minute=settings.daily_check_minute),
        id=constants.DAILY_CHECK_JOB,
        name="Daily Low-Stock Reminder",
        replace_existing=True,
    )
    logger.info(
        f"Scheduled daily low-stock check: daily at {settings.daily_check_hour}:{settings.daily_check_minute:02d}"
    )

    scheduler.start()
    logger.info("Scheduler started successfully")


def stop_scheduler() -> None:
    """Stop the scheduler.

    This should be called during FastAPI app shutdown.
    """
    if not scheduler.running:
        return
    logger.info("Stopping scheduler")
    scheduler.shutdown(wait=True)
    logger.info("Scheduler stopped")
