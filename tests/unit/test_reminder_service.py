"""Tests for the reminder pipeline with patched transports."""

import asyncio
from datetime import date, timedelta
from unittest.mock import AsyncMock, patch

import pytest

from larder.core.config import settings
from larder.core.errors import NotificationError
from larder.domain.item import ItemCreate
from larder.domain.notification_log import NotificationChannel, NotificationType
from larder.interface.email_sender import SendMessageResult
from larder.services import item_service, reminder_service


@pytest.fixture
def recipients(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(settings, "reminder_emails", ["home@example.com"])
    monkeypatch.setattr(settings, "reminder_phones", [])
    monkeypatch.setattr(settings, "household_name", "Hollies")


@pytest.fixture
def mock_send_email():
    with patch(
        "larder.services.reminder_service.email_sender.send_email",
        new_callable=AsyncMock,
        return_value=SendMessageResult(success=True, message_id="msg-1"),
    ) as mock:
        yield mock


@pytest.fixture
def mock_send_sms():
    with patch(
        "larder.services.reminder_service.sms_sender.send_sms",
        new_callable=AsyncMock,
        return_value=SendMessageResult(success=True, message_id="SM1"),
    ) as mock:
        yield mock


async def _add(name: str, *, category: str = "House", days_ago: int, duration: int) -> None:
    await item_service.create_item(
        ItemCreate(
            name=name,
            category=category,
            last_purchased=date.today() - timedelta(days=days_ago),
            estimated_duration_days=duration,
        )
    )


@pytest.mark.unit
class TestGetRunningLowItems:
    async def test_only_items_inside_window(self, sqlite_db):
        await _add("Dog food", category="Pet", days_ago=87, duration=90)
        await _add("Toilet roll", days_ago=5, duration=30)
        await _add("Nappies", category="Baby", days_ago=20, duration=14)

        low = await reminder_service.get_running_low_items(date.today())

        assert [item.name for item in low] == ["Dog food"]


@pytest.mark.unit
class TestSendLowStockReminder:
    async def test_nothing_to_send(self, sqlite_db, recipients, mock_send_email):
        await _add("Toilet roll", days_ago=1, duration=30)

        outcome = await reminder_service.send_low_stock_reminder(notification_type=NotificationType.MANUAL)

        assert outcome.sent is False
        assert outcome.message == "No items need attention - no reminder sent"
        mock_send_email.assert_not_awaited()
        assert await reminder_service.list_notification_logs() == []

    async def test_sends_email_and_logs(self, sqlite_db, recipients, mock_send_email):
        await _add("Dog food", category="Pet", days_ago=87, duration=90)
        await _add("Nappies", category="Baby", days_ago=10, duration=14)

        outcome = await reminder_service.send_low_stock_reminder(notification_type=NotificationType.MANUAL)

        assert outcome.sent is True
        assert outcome.items_count == 2
        assert outcome.recipients == ["home@example.com"]

        kwargs = mock_send_email.await_args.kwargs
        assert kwargs["to_emails"] == ["home@example.com"]
        assert kwargs["subject"] == "Hollies Check-in - 2 items running low"
        assert "\U0001f476 Baby: Nappies" in kwargs["text"]

        logs = await reminder_service.list_notification_logs()
        assert len(logs) == 1
        assert logs[0].type == NotificationType.MANUAL
        assert logs[0].channel == NotificationChannel.EMAIL
        assert logs[0].recipients == "home@example.com"
        assert logs[0].content == kwargs["text"]

    async def test_automatic_subject(self, sqlite_db, recipients, mock_send_email):
        await _add("Dog food", category="Pet", days_ago=87, duration=90)

        await reminder_service.run_daily_check()

        assert mock_send_email.await_args.kwargs["subject"] == "Hollies Daily Check-in - 1 item running low"
        logs = await reminder_service.list_notification_logs()
        assert logs[0].type == NotificationType.AUTOMATIC

    async def test_sms_is_truncated(self, sqlite_db, recipients, monkeypatch, mock_send_email, mock_send_sms):
        monkeypatch.setattr(settings, "twilio_account_sid", "AC123")
        monkeypatch.setattr(settings, "twilio_auth_token", "secret")
        monkeypatch.setattr(settings, "twilio_from_number", "+15550000000")
        monkeypatch.setattr(settings, "reminder_phones", ["+15551112222"])
        for index in range(12):
            await _add(f"Extremely specific product {index}", days_ago=28, duration=30)

        outcome = await reminder_service.send_low_stock_reminder(notification_type=NotificationType.MANUAL)

        text = mock_send_sms.await_args.kwargs["text"]
        assert len(text) == 160
        assert text.endswith("…")
        assert outcome.recipients == ["home@example.com", "+15551112222"]
        channels = {log.channel for log in await reminder_service.list_notification_logs()}
        assert channels == {NotificationChannel.EMAIL, NotificationChannel.SMS}

    async def test_transport_failure_raises_and_allows_retry(self, sqlite_db, recipients, mock_send_email):
        await _add("Dog food", category="Pet", days_ago=87, duration=90)
        mock_send_email.return_value = SendMessageResult(success=False, error="Client error: forbidden")

        with pytest.raises(NotificationError, match="forbidden"):
            await reminder_service.send_low_stock_reminder(notification_type=NotificationType.MANUAL)

        assert await reminder_service.list_notification_logs() == []
        items = await item_service.list_active_items()
        assert items[0].last_purchased == date.today() - timedelta(days=87)

        mock_send_email.return_value = SendMessageResult(success=True)
        outcome = await reminder_service.send_low_stock_reminder(notification_type=NotificationType.MANUAL)
        assert outcome.sent is True

    async def test_no_recipients_configured(self, sqlite_db, monkeypatch, mock_send_email):
        monkeypatch.setattr(settings, "reminder_emails", [])
        monkeypatch.setattr(settings, "reminder_phones", [])
        await _add("Dog food", category="Pet", days_ago=87, duration=90)

        with pytest.raises(NotificationError):
            await reminder_service.send_low_stock_reminder(notification_type=NotificationType.MANUAL)

    async def test_concurrent_identical_reminders_send_once(self, sqlite_db, recipients, mock_send_email):
        await _add("Dog food", category="Pet", days_ago=87, duration=90)

        outcomes = await asyncio.gather(
            reminder_service.send_low_stock_reminder(notification_type=NotificationType.AUTOMATIC),
            reminder_service.send_low_stock_reminder(notification_type=NotificationType.AUTOMATIC),
        )

        assert sorted(outcome.sent for outcome in outcomes) == [False, True]
        assert [outcome.duplicate for outcome in outcomes if not outcome.sent] == [True]
        assert mock_send_email.await_count == 1
        assert len(await reminder_service.list_notification_logs()) == 1
