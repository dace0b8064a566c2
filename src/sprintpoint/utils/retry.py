"""Retry with exponential backoff for AI provider calls.

Rate limits and transient server faults are retried; quota exhaustion is
surfaced immediately as QuotaExceededError so callers can tell the user to
switch model or provider.
"""

import asyncio
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional

from sprintpoint.execution.error_classifier import ErrorKind, classify_error
from sprintpoint.utils.logger import get_logger

logger = get_logger(__name__)

QUOTA_EXCEEDED_MESSAGE = (
    "API quota exceeded. Change the model or provider in settings and retry."
)


@dataclass
class RetryConfig:
    """Configuration for retry behavior with exponential backoff.

    Attributes:
        max_retries: Retries after the first attempt (default: 5)
        initial_delay: Delay before the first retry in seconds (default: 5.0)
        max_delay: Cap for any single delay in seconds (default: 120.0)
        backoff_factor: Exponential backoff multiplier (default: 2.0)
    """

    max_retries: int = 5
    initial_delay: float = 5.0
    max_delay: float = 120.0
    backoff_factor: float = 2.0


class QuotaExceededError(Exception):
    """Raised when the provider reports an exhausted quota."""

    def __init__(self, detail: str = ""):
        super().__init__(QUOTA_EXCEEDED_MESSAGE)
        self.detail = detail


def retry_config_from_settings(settings: Any) -> RetryConfig:
    """Build a RetryConfig from application settings."""
    return RetryConfig(
        max_retries=settings.retry_max_attempts,
        initial_delay=settings.retry_initial_delay,
        max_delay=settings.retry_max_delay,
    )


def calculate_delay(attempt: int, config: RetryConfig) -> float:
    """Backoff delay for the given 0-based retry attempt."""
    return min(config.initial_delay * (config.backoff_factor**attempt), config.max_delay)


async def with_retry(
    operation: Callable[[], Awaitable[Any]],
    config: Optional[RetryConfig] = None,
    context_name: str = "operation",
    on_retry: Optional[Callable[[str, float], None]] = None,
) -> Any:
    """
    Run an async operation, retrying retriable provider failures.

    Args:
        operation: Zero-argument coroutine factory, called once per attempt
        config: Retry configuration (uses defaults if None)
        context_name: Name used in log messages
        on_retry: Called with a user-facing message and the delay before
            each sleep

    Returns:
        Result of the first successful attempt

    Raises:
        QuotaExceededError: When the provider reports an exhausted quota
        Exception: The last error once retries run out, or any error that
            is not retriable
    """
    if config is None:
        config = RetryConfig()

    attempt = 0
    while True:
        try:
            return await operation()
        except Exception as e:
            classified = classify_error(e)

            if classified.quota_exceeded:
                logger.error(f"{context_name}: quota exceeded, not retrying: {e}")
                raise QuotaExceededError(str(e)) from e

            if not classified.retriable or attempt >= config.max_retries:
                if classified.retriable:
                    logger.error(
                        f"{context_name}: giving up after {attempt + 1} attempts: {e}"
                    )
                raise

            if classified.suggested_delay is not None:
                delay = min(classified.suggested_delay, config.max_delay)
            else:
                delay = calculate_delay(attempt, config)

            label = (
                "Service unavailable"
                if classified.kind is ErrorKind.SERVER_FAULT
                else "Rate limited"
            )
            message = (
                f"{label}: retrying in {delay:.0f}s "
                f"(attempt {attempt + 1}/{config.max_retries})"
            )
            logger.warning(f"{context_name}: {message}: {e}")
            if on_retry is not None:
                on_retry(message, delay)

            await asyncio.sleep(delay)
            attempt += 1
