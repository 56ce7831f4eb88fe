"""Retry with linear backoff, shared by every outbound provider client."""

import asyncio
from typing import Any, Awaitable, Callable, TypeVar

import structlog

from app.core.exceptions import NotificationDeliveryError

logger = structlog.get_logger(__name__)

T = TypeVar("T")

Sleep = Callable[[float], Awaitable[Any]]


async def retry_with_linear_backoff(
    operation: Callable[[], Awaitable[T]],
    *,
    retries: int = 3,
    base_delay: float = 1.0,
    description: str = "send message",
    sleep: Sleep = asyncio.sleep,
    **log_fields: Any,
) -> T:
    """Run ``operation`` up to ``retries`` times.

    Between failed attempts waits ``base_delay * attempt`` seconds (1s, 2s, ...).
    After the last failure raises NotificationDeliveryError carrying the
    attempt count and the last underlying error.
    """
    if retries < 1:
        raise ValueError("retries must be >= 1")

    last_error: Exception | None = None
    for attempt in range(1, retries + 1):
        try:
            return await operation()
        except Exception as e:
            last_error = e
            logger.warning(
                "delivery_attempt_failed",
                operation=description,
                attempt=attempt,
                retries=retries,
                error=str(e),
                **log_fields,
            )

        if attempt < retries:
            await sleep(base_delay * attempt)

    raise NotificationDeliveryError(
        f"Failed to {description} after {retries} attempts: {last_error}",
        attempts=retries,
        last_error=last_error,
    )
