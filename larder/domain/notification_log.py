"""Notification log domain models."""

from datetime import datetime
from enum import StrEnum

from pydantic import BaseModel, Field


class NotificationType(StrEnum):
    """What triggered a reminder."""

    MANUAL = "manual"
    AUTOMATIC = "automatic"


class NotificationChannel(StrEnum):
    """Transport a reminder went out on."""

    EMAIL = "email"
    SMS = "sms"


class NotificationLog(BaseModel):
    """Append-only audit entry for a sent reminder."""

    id: int = Field(..., description="Row id")
    sent_at: datetime = Field(..., description="When the reminder was sent")
    content: str = Field(..., description="Rendered message body")
    recipients: str = Field(..., description="Comma-separated recipient list")
    type: NotificationType = Field(..., description="manual or automatic")
    channel: NotificationChannel = Field(default=NotificationChannel.EMAIL, description="email or sms")
