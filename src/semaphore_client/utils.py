"""
Utilities
=========

Caller-side helpers that sit outside the client itself. The client never
retries on its own; `retry` lets callers such as the command-line entry
point wrap an operation with exponential backoff and jitter.
"""
import random
import time
from functools import wraps
from typing import Callable, Type, TypeVar

import structlog

log = structlog.get_logger(__name__)
T = TypeVar("T")


def retry(
    retryable_exceptions: tuple[Type[Exception], ...],
) -> Callable[[Callable[..., T]], Callable[..., T]]:
    """
    A decorator that retries a method call on specific exceptions.

    The decorated method's instance must expose ``settings`` with
    ``MAX_RETRIES`` and ``MAX_RETRY_BACKOFF_SECONDS``.

    Args:
        retryable_exceptions: A tuple of exception types that should trigger a retry.
    """

    def decorator(func: Callable[..., T]) -> Callable[..., T]:
        @wraps(func)
        def wrapper(self, *args, **kwargs) -> T:
            settings = self.settings
            if settings.MAX_RETRIES < 1:
                raise ValueError("MAX_RETRIES must be >= 1")
            for attempt in range(1, settings.MAX_RETRIES + 1):
                try:
                    return func(self, *args, **kwargs)
                except retryable_exceptions as e:
                    if attempt == settings.MAX_RETRIES:
                        log.exception(
                            "Operation failed after all attempts",
                            operation=func.__name__,
                            attempts=attempt,
                        )
                        raise
                    log.warning(
                        "Operation failed, retrying",
                        operation=func.__name__,
                        error=str(e),
                        attempt=attempt,
                        max_retries=settings.MAX_RETRIES,
                    )
                    _sleep_backoff(attempt, settings)
            # This part should be unreachable if MAX_RETRIES > 0
            raise RuntimeError("Retry loop exited unexpectedly.")

        return wrapper

    return decorator


def _sleep_backoff(attempt: int, settings) -> None:
    """Sleep for a short duration with exponential backoff and jitter."""
    delay = min(
        (2**attempt) * random.uniform(0.8, 1.2),
        settings.MAX_RETRY_BACKOFF_SECONDS,
    )
    log.info(
        "Sleeping before retry",
        delay_seconds=round(delay, 1),
        attempt=attempt,
        max_retries=settings.MAX_RETRIES,
    )
    time.sleep(delay)
