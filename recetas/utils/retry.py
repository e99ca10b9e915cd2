"""Exponential backoff retry for transient model overload.

Only a transient "service overloaded" signal (HTTP 503 / UNAVAILABLE) is retried.
Every other failure, including MalformedResponse and MissingCredential, is
propagated immediately and unchanged.
"""

import asyncio
from typing import Awaitable, Callable, Optional, TypeVar

from google.genai import errors as genai_errors

from recetas.utils.config import config
from recetas.utils.errors import MalformedResponse, MissingCredential, TransientServiceUnavailable
from recetas.utils.logger import logger

T = TypeVar("T")

OVERLOAD_STATUS_CODES = (503,)
OVERLOAD_STATUSES = ("UNAVAILABLE",)
# Fallback only, used when the failure carries no structured status
OVERLOAD_MARKERS = ("503", "overloaded")


def is_transient_overload(exc: BaseException) -> bool:
    """Classify a failure as transient overload (retryable) or permanent.

    Structured signals are checked first: our own TransientServiceUnavailable,
    then the SDK's APIError code/status. Message matching is a fallback for
    errors raised outside the SDK's error types.

    Args:
        exc: The exception raised by the wrapped operation.

    Returns:
        True if the operation should be retried.
    """
    if isinstance(exc, (MalformedResponse, MissingCredential)):
        return False
    if isinstance(exc, TransientServiceUnavailable):
        return True
    if isinstance(exc, genai_errors.APIError):
        if exc.code in OVERLOAD_STATUS_CODES:
            return True
        return (exc.status or "").upper() in OVERLOAD_STATUSES

    message = str(exc).lower()
    return any(marker in message for marker in OVERLOAD_MARKERS)


async def with_retry(
    operation: Callable[[], Awaitable[T]],
    retries: Optional[int] = None,
    initial_delay: Optional[float] = None,
    is_transient: Callable[[BaseException], bool] = is_transient_overload,
) -> T:
    """Run ``operation`` with exponential backoff on transient overload.

    **Retry Strategy:**
    - Transient overload: wait ``delay``, double it, retry (1s → 2s → 4s with defaults)
    - Anything else: re-raise immediately, no delay
    - Retries exhausted: re-raise the last failure

    Args:
        operation: Zero-argument callable returning a fresh awaitable per attempt.
        retries: Retries after the first attempt. Default: config.MAX_RETRIES (3).
        initial_delay: First delay in seconds. Default: config.DELAY_BETWEEN_RETRIES (1).
        is_transient: Classifier deciding whether a failure is retryable.

    Returns:
        The result of the first successful attempt.

    Raises:
        Exception: The last failure, unchanged.
    """
    remaining = config.MAX_RETRIES if retries is None else retries
    delay = config.DELAY_BETWEEN_RETRIES if initial_delay is None else initial_delay
    attempt = 1

    while True:
        try:
            return await operation()
        except Exception as e:
            if not is_transient(e) or remaining <= 0:
                raise

            logger.warning(
                f"Model service overloaded, retrying in {delay}s "
                f"(attempt {attempt + 1}, {remaining} retries left): {e}"
            )
            await asyncio.sleep(delay)
            delay *= 2
            remaining -= 1
            attempt += 1
