"""Reminder SMS sender using the Twilio Messages API."""

import asyncio
import logging

import httpx

from larder.core.config import constants, settings
from larder.interface.email_sender import HTTP_CLIENT_ERROR_END, HTTP_CLIENT_ERROR_START, SendMessageResult


logger = logging.getLogger(__name__)


def format_phone_for_twilio(phone: str) -> str:
    """Normalize a phone number to E.164 with a leading '+'."""
    clean_phone = phone.replace("sms:", "").replace(" ", "").replace("-", "").strip()
    if not clean_phone.startswith("+"):
        clean_phone = f"+{clean_phone}"
    return clean_phone


async def _send_twilio_message(
    *,
    to_phone: str,
    text: str,
    max_retries: int,
    retry_delay: float,
) -> SendMessageResult:
    """Core message sending logic with retry."""
    account_sid = settings.require_credential("twilio_account_sid", "Twilio account SID")
    auth_token = settings.require_credential("twilio_auth_token", "Twilio auth token")
    from_number = settings.require_credential("twilio_from_number", "Twilio sender number")

    url = f"{constants.TWILIO_API_BASE_URL}/Accounts/{account_sid}/Messages.json"
    form = {"To": format_phone_for_twilio(to_phone), "From": from_number, "Body": text}

    for attempt in range(max_retries):
        try:
            async with httpx.AsyncClient(
                timeout=constants.API_TIMEOUT_SECONDS, auth=(account_sid, auth_token)
            ) as client:
                response = await client.post(url, data=form)

                if response.is_success:
                    return SendMessageResult(success=True, message_id=response.json().get("sid"))

                if HTTP_CLIENT_ERROR_START <= response.status_code < HTTP_CLIENT_ERROR_END:
                    return SendMessageResult(success=False, error=f"Client error: {response.text}")

                raise httpx.HTTPStatusError(
                    f"Server error: {response.status_code}", request=response.request, response=response
                )
        except httpx.HTTPError as e:
            logger.warning("SMS send attempt %d/%d failed: %s", attempt + 1, max_retries, e)
            if attempt < max_retries - 1:
                await asyncio.sleep(retry_delay * (2**attempt))
            else:
                return SendMessageResult(success=False, error=f"Failed after retries: {e!s}")

    return SendMessageResult(success=False, error="Max retries exceeded")


async def send_sms(
    *,
    to_phone: str,
    text: str,
    max_retries: int = 3,
    retry_delay: float = 1.0,
) -> SendMessageResult:
    """Send a text message via Twilio with retry logic."""
    return await _send_twilio_message(to_phone=to_phone, text=text, max_retries=max_retries, retry_delay=retry_delay)
