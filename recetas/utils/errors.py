"""Exception taxonomy and error handling helpers.

Every failure of an extraction or generation call surfaces as exactly one of:

- MissingCredential: no usable API key was resolved (local, pre-flight, never retried)
- TransientServiceUnavailable: the model service is temporarily overloaded (503);
  retried with backoff, then surfaced
- MalformedResponse: the service answered but the body is not the declared JSON shape
- ServiceError: any other rejection reported by the service (invalid key, bad request, ...)
"""

from typing import Callable, Optional, TypeVar

from recetas.utils.logger import logger

T = TypeVar("T")


class RecetasError(Exception):
    """Base exception for Recetas."""

    pass


class MissingCredential(RecetasError):
    """Raised before any request when no Gemini API key is configured."""

    pass


class TransientServiceUnavailable(RecetasError):
    """Raised when the model service signals a transient overload."""

    def __init__(self, message: str, status_code: Optional[int] = 503) -> None:
        super().__init__(message)
        self.status_code = status_code


class MalformedResponse(RecetasError):
    """Raised when the response text cannot be parsed into the declared shape."""

    def __init__(self, message: str, raw: str = "") -> None:
        super().__init__(message)
        self.raw = raw


class ServiceError(RecetasError):
    """Raised for any other rejection from the model service."""

    def __init__(self, message: str, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.status_code = status_code


def safe_execute_sync(
    func: Callable[[], T],
    operation_name: str,
    log_level: str = "warning",
    default_return: Optional[T] = None,
) -> Optional[T]:
    """Run an optional step, logging and returning ``default_return`` on failure.

    Only for steps whose failure has a documented fallback (image compression,
    corrupted history). Model calls and response parsing never go through here.

    Args:
        func: Callable to execute (no args).
        operation_name: Description for logging.
        log_level: Logging level ("debug", "warning", "error"). Default: "warning".
        default_return: Value returned when ``func`` raises.

    Returns:
        Result of ``func``, or ``default_return`` on exception.
    """
    try:
        return func()
    except Exception as e:
        getattr(logger, log_level, logger.warning)(f"{operation_name}: {e}")
        return default_return
