"""Reminder email sender using the SendGrid v3 mail API with retry logic."""

import asyncio
import logging

import httpx
from pydantic import BaseModel, Field

from larder.core.config import constants, settings


logger = logging.getLogger(__name__)


# HTTP status code constants for error handling
HTTP_CLIENT_ERROR_START = 400
HTTP_CLIENT_ERROR_END = 500


class SendMessageResult(BaseModel):
    """Result of sending an email or SMS."""

    success: bool = Field(..., description="Whether the message was accepted by the provider")
    message_id: str | None = Field(None, description="Provider message ID if successful")
    error: str | None = Field(None, description="Error message if failed")


def _build_payload(*, to_emails: list[str], from_email: str, subject: str, text: str) -> dict:
    return {
        "personalizations": [{"to": [{"email": address} for address in to_emails]}],
        "from": {"email": from_email},
        "subject": subject,
        "content": [{"type": "text/plain", "value": text}],
    }


async def send_email(
    *,
    to_emails: list[str],
    subject: str,
    text: str,
    max_retries: int = 3,
    retry_delay: float = 1.0,
) -> SendMessageResult:
    """Send a plain-text email to every recipient in one SendGrid request.

    Client errors (4xx) are returned immediately; server errors and network
    failures are retried with exponential backoff.
    """
    if not to_emails:
        return SendMessageResult(success=False, error="No email recipients configured")
    if not settings.sendgrid_api_key:
        return SendMessageResult(success=False, error="SENDGRID_API_KEY not configured")

    payload = _build_payload(to_emails=to_emails, from_email=settings.from_email, subject=subject, text=text)
    headers = {"Authorization": f"Bearer {settings.sendgrid_api_key}", "Content-Type": "application/json"}

    for attempt in range(max_retries):
        try:
            async with httpx.AsyncClient(timeout=constants.API_TIMEOUT_SECONDS) as client:
                response = await client.post(constants.SENDGRID_API_URL, json=payload, headers=headers)

                if response.is_success:
                    message_id = response.headers.get("X-Message-Id")
                    logger.info("Email sent", extra={"recipients": len(to_emails), "message_id": message_id})
                    return SendMessageResult(success=True, message_id=message_id)

                if HTTP_CLIENT_ERROR_START <= response.status_code < HTTP_CLIENT_ERROR_END:
                    return SendMessageResult(success=False, error=f"Client error: {response.text}")

                raise httpx.HTTPStatusError(
                    f"Server error: {response.status_code}", request=response.request, response=response
                )
        except httpx.HTTPError as e:
            logger.warning("Email send attempt %d/%d failed: %s", attempt + 1, max_retries, e)
            if attempt < max_retries - 1:
                await asyncio.sleep(retry_delay * (2**attempt))
            else:
                return SendMessageResult(success=False, error=f"Failed after retries: {e!s}")

    return SendMessageResult(success=False, error="Max retries exceeded")
