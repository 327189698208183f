"""Reminder pipeline: find running-low items, compose, send, and log."""

import logging
from dataclasses import dataclass, field
from datetime import date
from typing import Any

from larder.core import db_client, message_templates
from larder.core.config import Constants, settings
from larder.core.dedup import notification_epoch, notification_guard
from larder.core.errors import NotificationError
from larder.core.logging import log_with_context, span
from larder.domain.item import Item
from larder.domain.notification_log import NotificationChannel, NotificationLog, NotificationType
from larder.interface import email_sender, sms_sender
from larder.services import item_service, replenishment


logger = logging.getLogger(__name__)

COLLECTION = "notification_logs"


@dataclass
class ReminderOutcome:
    """What a reminder run did."""

    sent: bool
    message: str
    low_items: list[Item] = field(default_factory=list)
    recipients: list[str] = field(default_factory=list)
    duplicate: bool = False

    @property
    def items_count(self) -> int:
        return len(self.low_items)


async def get_running_low_items(today: date) -> list[Item]:
    """Active items needed within the configured look-ahead window."""
    items = await item_service.list_active_items()
    summary = replenishment.classify_items(items, today, window_days=settings.running_low_window_days)
    return summary.running_low


async def record_notification(
    *,
    content: str,
    recipients: list[str],
    notification_type: NotificationType,
    channel: NotificationChannel,
) -> NotificationLog:
    """Append an audit entry for a sent reminder."""
    record = await db_client.create_record(
        collection=COLLECTION,
        data={
            "content": content,
            "recipients": ", ".join(recipients),
            "type": notification_type.value,
            "channel": channel.value,
        },
    )
    return NotificationLog.model_validate(record)


async def list_notification_logs(*, limit: int = 50) -> list[NotificationLog]:
    """Most recent notification log entries, newest first."""
    records = await db_client.list_records(collection=COLLECTION, per_page=limit, sort="id DESC")
    return [NotificationLog.model_validate(record) for record in records]


async def _send_email_channel(
    *, low_items: list[Item], body: str, notification_type: NotificationType
) -> list[str]:
    subject = message_templates.reminder_subject(
        item_count=len(low_items),
        automatic=notification_type == NotificationType.AUTOMATIC,
        household_name=settings.household_name,
    )
    result = await email_sender.send_email(to_emails=settings.reminder_emails, subject=subject, text=body)
    if not result.success:
        raise NotificationError(NotificationChannel.EMAIL.value, result.error)

    await record_notification(
        content=body,
        recipients=settings.reminder_emails,
        notification_type=notification_type,
        channel=NotificationChannel.EMAIL,
    )
    return list(settings.reminder_emails)


async def _send_sms_channel(*, low_items: list[Item], notification_type: NotificationType) -> list[str]:
    body = message_templates.compose_sms(low_items, household_name=settings.household_name)
    if body is None:
        return []
    body = message_templates.truncate(body, Constants.SMS_MAX_LENGTH)

    delivered: list[str] = []
    errors: list[str] = []
    for phone in settings.reminder_phones:
        result = await sms_sender.send_sms(to_phone=phone, text=body)
        if result.success:
            delivered.append(phone)
        else:
            errors.append(f"{phone}: {result.error}")

    if delivered:
        await record_notification(
            content=body,
            recipients=delivered,
            notification_type=notification_type,
            channel=NotificationChannel.SMS,
        )
    if errors:
        raise NotificationError(NotificationChannel.SMS.value, "; ".join(errors))
    return delivered


async def send_low_stock_reminder(
    *,
    notification_type: NotificationType,
    today: date | None = None,
) -> ReminderOutcome:
    """Run the full reminder pipeline once.

    Identical reminders triggered concurrently (for example the daily job and
    a manual trigger) are de-duplicated; only the first caller sends.

    Args:
        notification_type: manual or automatic, recorded in the log
        today: Reference date, defaults to the local date

    Returns:
        ReminderOutcome describing what was sent

    Raises:
        NotificationError: If a transport reports failure; item state is unaffected
    """
    with span("reminder_service.send_low_stock_reminder"):
        today = today or date.today()
        low_items = await get_running_low_items(today)

        body = message_templates.compose_email(low_items, household_name=settings.household_name)
        if body is None:
            logger.info("No items need attention", extra={"notification_type": notification_type.value})
            return ReminderOutcome(sent=False, message="No items need attention - no reminder sent")

        send_email = bool(settings.reminder_emails)
        if not send_email and not settings.sms_enabled:
            raise NotificationError(NotificationChannel.EMAIL.value, "no reminder recipients configured")

        epoch = notification_epoch(notification_type=notification_type.value, day=today, content=body)
        if not await notification_guard.claim(epoch, Constants.NOTIFICATION_DEDUP_TTL_SECONDS):
            logger.info("Duplicate reminder suppressed", extra={"epoch": epoch})
            return ReminderOutcome(
                sent=False,
                message="An identical reminder was just sent",
                low_items=low_items,
                duplicate=True,
            )

        recipients: list[str] = []
        try:
            if send_email:
                recipients.extend(
                    await _send_email_channel(low_items=low_items, body=body, notification_type=notification_type)
                )
            if settings.sms_enabled:
                recipients.extend(await _send_sms_channel(low_items=low_items, notification_type=notification_type))
        except NotificationError:
            if not recipients:
                await notification_guard.release(epoch)
            logger.error("Reminder send failed", extra={"epoch": epoch}, exc_info=True)
            raise

        log_with_context(
            logger,
            "info",
            "Reminder sent",
            notification_type=notification_type.value,
            items_count=len(low_items),
            recipients=len(recipients),
        )
        return ReminderOutcome(
            sent=True,
            message="Reminder sent successfully!",
            low_items=low_items,
            recipients=recipients,
        )


async def run_daily_check() -> None:
    """Scheduled entry point for the automatic daily reminder."""
    outcome = await send_low_stock_reminder(notification_type=NotificationType.AUTOMATIC)
    details: dict[str, Any] = {"sent": outcome.sent, "items_count": outcome.items_count}
    logger.info("Daily low-stock check complete", extra=details)
