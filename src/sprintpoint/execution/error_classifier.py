"""Classification of AI provider failures for retry decisions.

Provider SDKs surface throttling and outages in different shapes: some
carry an HTTP status on the exception, some only a message. Classification
looks at the numeric status first and falls back to message markers, with
quota exhaustion detected separately because retrying it never helps.
"""

import math
import re
from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional


class ErrorKind(Enum):
    """Classification of provider errors for retry handling."""

    # 429 / Too Many Requests, including per-minute quota windows
    RATE_LIMIT = "rate_limit"

    # Daily or account-level quota exhausted; retrying cannot succeed
    QUOTA = "quota"

    # 500/502/503/504 style transient failures
    SERVER_FAULT = "server_fault"

    OTHER = "other"


RATE_LIMIT_MARKERS = ("429", "Too Many Requests")

SERVER_FAULT_MARKERS = (
    "500",
    "Internal Server Error",
    "502",
    "Bad Gateway",
    "503",
    "Service Unavailable",
    "504",
    "Gateway Timeout",
)

QUOTA_MARKERS = ("exceeded your current quota", "Quota exceeded", "QuotaFailure")

# A per-minute window resets on its own, so it is throttling rather than quota
PER_MINUTE_MARKERS = ("PerMinute", "per minute")

RETRIABLE_STATUS_CODES = {429}
SERVER_FAULT_STATUS_CODES = {500, 502, 503, 504}

_RETRY_DELAY_PATTERN = re.compile(
    r"retry in\s+(\d+(?:\.\d+)?)\s*(ms|s|sec|secs|seconds?)?\b", re.IGNORECASE
)


@dataclass(frozen=True)
class ClassifiedError:
    """Structured view of a provider failure."""

    kind: ErrorKind
    message: str
    status_code: Optional[int] = None
    suggested_delay: Optional[float] = None

    @property
    def retriable(self) -> bool:
        return self.kind in (ErrorKind.RATE_LIMIT, ErrorKind.SERVER_FAULT)

    @property
    def quota_exceeded(self) -> bool:
        return self.kind is ErrorKind.QUOTA


def parse_retry_delay(message: str) -> Optional[float]:
    """
    Extract a server-suggested retry delay from an error message.

    Recognizes "retry in 1500ms", "retry in 30s" and "retry in 12.5 seconds".
    A bare number above 1000 is taken as milliseconds, otherwise as seconds.

    Returns:
        Delay in seconds, or None when the message carries no hint.
    """
    if not message:
        return None

    match = _RETRY_DELAY_PATTERN.search(message)
    if not match:
        return None

    value = float(match.group(1))
    unit = (match.group(2) or "").lower()

    if unit == "ms":
        return math.ceil(value) / 1000
    if unit:
        return value
    return value / 1000 if value > 1000 else value


def _coerce_status(value: Any) -> Optional[int]:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, str) and value.strip().isdigit():
        return int(value.strip())
    return None


def _extract_status_code(error: Any) -> Optional[int]:
    """Find a numeric HTTP status on an SDK exception or error dict, if any."""
    if isinstance(error, dict):
        for key in ("status_code", "code", "status"):
            status = _coerce_status(error.get(key))
            if status is not None:
                return status
        return None

    for attr in ("status_code", "code", "status"):
        status = _coerce_status(getattr(error, attr, None))
        if status is not None:
            return status

    response = getattr(error, "response", None)
    if response is not None:
        return _coerce_status(getattr(response, "status_code", None))
    return None


def _contains_any(message: str, markers) -> bool:
    return any(marker in message for marker in markers)


def classify_error(error: Any) -> ClassifiedError:
    """
    Classify an exception (or error message) raised by an AI provider.

    Args:
        error: Exception instance, plain message, error dict with
            "message" and "status", or an already classified error
            (returned unchanged)

    Returns:
        ClassifiedError describing kind, status and any suggested delay
    """
    if isinstance(error, ClassifiedError):
        return error

    if isinstance(error, dict):
        message = str(error.get("message") or "")
    else:
        message = str(error) if error is not None else ""
    status_code = _extract_status_code(error)

    suggested = (
        error.get("suggested_delay")
        if isinstance(error, dict)
        else getattr(error, "suggested_delay", None)
    )
    if not isinstance(suggested, (int, float)) or isinstance(suggested, bool):
        suggested = parse_retry_delay(message)

    is_per_minute = _contains_any(message, PER_MINUTE_MARKERS)

    if _contains_any(message, QUOTA_MARKERS) and not is_per_minute:
        kind = ErrorKind.QUOTA
    elif is_per_minute:
        kind = ErrorKind.RATE_LIMIT
    elif status_code is not None:
        if status_code in RETRIABLE_STATUS_CODES:
            kind = ErrorKind.RATE_LIMIT
        elif status_code in SERVER_FAULT_STATUS_CODES:
            kind = ErrorKind.SERVER_FAULT
        else:
            kind = ErrorKind.OTHER
    elif _contains_any(message, RATE_LIMIT_MARKERS):
        kind = ErrorKind.RATE_LIMIT
    elif _contains_any(message, SERVER_FAULT_MARKERS):
        kind = ErrorKind.SERVER_FAULT
    else:
        kind = ErrorKind.OTHER

    return ClassifiedError(
        kind=kind,
        message=message,
        status_code=status_code,
        suggested_delay=suggested,
    )


def is_retriable(error: Any) -> bool:
    """True for rate limits and transient server faults."""
    return classify_error(error).retriable


def is_quota_exceeded(error: Any) -> bool:
    """True when the account quota is exhausted (never retried)."""
    return classify_error(error).quota_exceeded


def suggested_delay(error: Any) -> Optional[float]:
    """Server-suggested delay in seconds, if the error carries one."""
    return classify_error(error).suggested_delay
