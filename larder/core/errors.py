"""Exception types and error classification for larder."""

import json
from enum import Enum
from typing import Literal

from pydantic import ValidationError


class InvalidItemError(ValueError):
    """Raised when item data fails validation at a write boundary."""


class ItemNotFoundError(KeyError):
    """Raised when an item id does not refer to an active item."""

    def __init__(self, item_id: int) -> None:
        self.item_id = item_id
        super().__init__(f"Item not found: {item_id}")

    def __str__(self) -> str:
        # KeyError would otherwise repr() the message
        return str(self.args[0])


class NotificationError(RuntimeError):
    """Raised when an email or SMS transport reports a failed send."""

    def __init__(self, channel: str, error: str | None) -> None:
        self.channel = channel
        self.error = error
        super().__init__(f"Failed to send {channel} notification: {error or 'unknown error'}")


class ErrorCategory(Enum):
    """Categories of errors that can occur while interpreting a reply."""

    SERVICE_QUOTA_EXCEEDED = "service_quota_exceeded"
    RATE_LIMIT_EXCEEDED = "rate_limit_exceeded"
    AUTHENTICATION_FAILED = "authentication_failed"
    NETWORK_ERROR = "network_error"
    MALFORMED_OUTPUT = "malformed_output"
    UNKNOWN = "unknown"


_PatternType = Literal["quota", "rate_limit", "auth", "network"]

_ERROR_PATTERNS: dict[_PatternType, dict[str, list[str] | set[str]]] = {
    "quota": {
        "phrases": [
            "quota exceeded",
            "insufficient credits",
            "credit limit",
            "credits exhausted",
            "out of credits",
        ],
        "exception_types": set(),
    },
    "rate_limit": {
        "phrases": [
            "rate limit",
            "too many requests",
            "rate_limit_exceeded",
            "throttled",
            "429",
        ],
        "exception_types": set(),
    },
    "auth": {
        "phrases": [
            "authentication failed",
            "invalid api key",
            "unauthorized",
            "invalid token",
            "api key",
            "401",
        ],
        "exception_types": {"AuthenticationError", "PermissionError"},
    },
    "network": {
        "phrases": [
            "connection",
            "timeout",
            "timed out",
            "network",
            "503",
            "502",
            "504",
            "unreachable",
        ],
        "exception_types": {"ConnectionError", "TimeoutError", "ConnectError", "ReadTimeout"},
    },
}


def _match_error_pattern(*, error_str: str, exception_type: str, pattern_type: _PatternType) -> bool:
    """Return True if the error matches the configured pattern type."""
    patterns = _ERROR_PATTERNS[pattern_type]
    return any(phrase in error_str for phrase in patterns["phrases"]) or exception_type in patterns["exception_types"]


def classify_interpreter_error(exception: BaseException) -> ErrorCategory:
    """Classify a failed interpretation call.

    Parse and schema failures are checked first since their messages can
    contain arbitrary model output that would otherwise match the phrase lists.

    Args:
        exception: The exception raised while calling or parsing the model

    Returns:
        The matching ErrorCategory
    """
    if isinstance(exception, json.JSONDecodeError | ValidationError):
        return ErrorCategory.MALFORMED_OUTPUT

    error_str = str(exception).lower()
    exception_type = type(exception).__name__

    if _match_error_pattern(error_str=error_str, exception_type=exception_type, pattern_type="quota"):
        return ErrorCategory.SERVICE_QUOTA_EXCEEDED
    if _match_error_pattern(error_str=error_str, exception_type=exception_type, pattern_type="rate_limit"):
        return ErrorCategory.RATE_LIMIT_EXCEEDED
    if _match_error_pattern(error_str=error_str, exception_type=exception_type, pattern_type="auth"):
        return ErrorCategory.AUTHENTICATION_FAILED
    if _match_error_pattern(error_str=error_str, exception_type=exception_type, pattern_type="network"):
        return ErrorCategory.NETWORK_ERROR
    return ErrorCategory.UNKNOWN
