"""Reminder and free-text reply endpoints, plus the inbound email webhook."""

import logging

from fastapi import APIRouter, Form, Query
from pydantic import BaseModel, Field

from larder.domain.notification_log import NotificationLog, NotificationType
from larder.services import reminder_service, response_service


logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["reminders"])
webhook_router = APIRouter(prefix="/webhook", tags=["webhook"])


class ReplyRequest(BaseModel):
    """Free-text reply submitted through the API."""

    response: str = Field(..., min_length=1, description="What the household said")


class ReplyResponse(BaseModel):
    message: str
    updates_applied: list[str]
    skipped: list[str]


class ReminderResponse(BaseModel):
    message: str
    items_count: int
    recipients: list[str]
    sent: bool
    duplicate: bool = False


async def _process(utterance: str) -> ReplyResponse:
    result = await response_service.process_response(utterance)
    return ReplyResponse(
        message=response_service.summarize(result),
        updates_applied=result.applied,
        skipped=result.skipped,
    )


@router.post("/send-reminder")
async def send_reminder() -> ReminderResponse:
    """Send the running-low reminder now."""
    outcome = await reminder_service.send_low_stock_reminder(notification_type=NotificationType.MANUAL)
    return ReminderResponse(
        message=outcome.message,
        items_count=outcome.items_count,
        recipients=outcome.recipients,
        sent=outcome.sent,
        duplicate=outcome.duplicate,
    )


@router.post("/process-response")
async def process_response(request: ReplyRequest) -> ReplyResponse:
    """Interpret a free-text reply and apply it to the inventory."""
    return await _process(request.response)


@router.get("/notifications")
async def list_notifications(limit: int = Query(default=50, ge=1, le=500)) -> list[NotificationLog]:
    return await reminder_service.list_notification_logs(limit=limit)


@webhook_router.post("/email-reply")
async def email_reply(
    text: str | None = Form(default=None),
    html: str | None = Form(default=None),
    sender: str | None = Form(default=None, alias="from"),
) -> ReplyResponse:
    """Inbound Parse webhook: run the reply part of an email through the reply pipeline."""
    reply = response_service.extract_reply_text(text, html)
    logger.info("Inbound email reply", extra={"sender": sender, "reply_length": len(reply)})
    if not reply:
        return ReplyResponse(message="Empty reply - nothing to process", updates_applied=[], skipped=[])
    return await _process(reply)
