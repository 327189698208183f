"""Tests for configuration, error classification, filters, locks and de-duplication."""

import asyncio
import json
from datetime import date

import pytest
from pydantic import ValidationError

from larder.core.config import Settings
from larder.core.db_client import build_where
from larder.core.dedup import NotificationGuard, notification_epoch
from larder.core.errors import ErrorCategory, ItemNotFoundError, NotificationError, classify_interpreter_error
from larder.core.locks import KeyedLock
from larder.domain.item import ItemCreate


@pytest.mark.unit
class TestSettings:
    def test_require_credential_with_valid_value(self):
        settings = Settings(sendgrid_api_key="SG.key")

        assert settings.require_credential("sendgrid_api_key", "SendGrid API key") == "SG.key"

    @pytest.mark.parametrize("value", [None, ""])
    def test_require_credential_missing(self, value):
        settings = Settings(openrouter_api_key=value)

        with pytest.raises(ValueError, match="OPENROUTER_API_KEY"):
            settings.require_credential("openrouter_api_key", "OpenRouter API key")

    def test_sms_enabled_needs_every_twilio_setting(self):
        partial = Settings(twilio_account_sid="AC1", twilio_auth_token="t", reminder_phones=["+15550001111"])
        full = Settings(
            twilio_account_sid="AC1",
            twilio_auth_token="t",
            twilio_from_number="+15550000000",
            reminder_phones=["+15550001111"],
        )

        assert partial.sms_enabled is False
        assert full.sms_enabled is True

    def test_recipient_lists_from_environment(self, monkeypatch):
        monkeypatch.setenv("REMINDER_EMAILS", '["a@example.com", "b@example.com"]')

        assert Settings().reminder_emails == ["a@example.com", "b@example.com"]

    def test_comma_separated_recipients_from_environment(self, monkeypatch):
        monkeypatch.setenv("REMINDER_EMAILS", "a@example.com, b@example.com")
        monkeypatch.setenv("REMINDER_PHONES", "+15550001111")

        settings = Settings()

        assert settings.reminder_emails == ["a@example.com", "b@example.com"]
        assert settings.reminder_phones == ["+15550001111"]

    def test_empty_recipient_string_is_empty_list(self, monkeypatch):
        monkeypatch.setenv("REMINDER_EMAILS", "")

        assert Settings().reminder_emails == []

    def test_daily_check_hour_is_validated(self):
        with pytest.raises(ValidationError):
            Settings(daily_check_hour=24)


@pytest.mark.unit
class TestErrors:
    @pytest.mark.parametrize(
        ("exception", "expected"),
        [
            (RuntimeError("Quota exceeded for this key"), ErrorCategory.SERVICE_QUOTA_EXCEEDED),
            (RuntimeError("429 Too Many Requests"), ErrorCategory.RATE_LIMIT_EXCEEDED),
            (RuntimeError("401 Unauthorized"), ErrorCategory.AUTHENTICATION_FAILED),
            (TimeoutError(), ErrorCategory.NETWORK_ERROR),
            (ConnectionError("connection reset"), ErrorCategory.NETWORK_ERROR),
            (RuntimeError("something odd"), ErrorCategory.UNKNOWN),
        ],
    )
    def test_classify(self, exception, expected):
        assert classify_interpreter_error(exception) == expected

    def test_parse_failures_are_malformed_output(self):
        with pytest.raises(json.JSONDecodeError) as decode_error:
            json.loads("rate limit 429 but not json")
        with pytest.raises(ValidationError) as validation_error:
            ItemCreate.model_validate({"name": "x"})

        assert classify_interpreter_error(decode_error.value) == ErrorCategory.MALFORMED_OUTPUT
        assert classify_interpreter_error(validation_error.value) == ErrorCategory.MALFORMED_OUTPUT

    def test_item_not_found_message(self):
        error = ItemNotFoundError(7)

        assert str(error) == "Item not found: 7"
        assert error.item_id == 7
        assert isinstance(error, KeyError)

    def test_notification_error_message(self):
        error = NotificationError("sms", None)

        assert str(error) == "Failed to send sms notification: unknown error"


@pytest.mark.unit
class TestBuildWhere:
    def test_equality_filters_are_bound(self):
        where, params = build_where({"status": "active", "category": "Pet"})

        assert where == "WHERE status = ? AND category = ?"
        assert params == ["active", "Pet"]

    def test_dates_are_bound_as_iso_strings(self):
        assert build_where({"last_purchased": date(2026, 3, 15)}) == ("WHERE last_purchased = ?", ["2026-03-15"])

    def test_no_filters(self):
        assert build_where(None) == ("", [])

    def test_rejects_non_identifier_column(self):
        with pytest.raises(ValueError, match="Invalid filter column"):
            build_where({"name; DROP TABLE items": "x"})


@pytest.mark.unit
class TestKeyedLock:
    async def test_same_key_is_serialized(self):
        locks = KeyedLock()
        order: list[str] = []

        async def worker(name: str) -> None:
            async with locks.hold(1):
                order.append(f"{name}-start")
                await asyncio.sleep(0.01)
                order.append(f"{name}-end")

        await asyncio.gather(worker("a"), worker("b"))

        assert order == ["a-start", "a-end", "b-start", "b-end"]
        assert locks.is_locked(1) is False
        assert locks._locks == {}

    async def test_different_keys_do_not_block(self):
        locks = KeyedLock()

        async with locks.hold(1):
            assert locks.is_locked(1) is True
            async with locks.hold(2):
                assert locks.is_locked(2) is True


@pytest.mark.unit
class TestNotificationGuard:
    def test_epoch_depends_on_type_date_and_content(self):
        base = notification_epoch(notification_type="manual", day=date(2026, 3, 15), content="a")

        assert base.startswith("notification:manual:2026-03-15:")
        assert base == notification_epoch(notification_type="manual", day=date(2026, 3, 15), content="a")
        assert base != notification_epoch(notification_type="automatic", day=date(2026, 3, 15), content="a")
        assert base != notification_epoch(notification_type="manual", day=date(2026, 3, 16), content="a")
        assert base != notification_epoch(notification_type="manual", day=date(2026, 3, 15), content="b")

    async def test_claim_release(self):
        guard = NotificationGuard()

        assert await guard.claim("k", 60) is True
        assert await guard.claim("k", 60) is False
        await guard.release("k")
        assert await guard.claim("k", 60) is True
