"""
Client Exceptions
=================

Every error raised by the client derives from `SemaphoreError`, so callers
can catch the whole family at once or pick out the kinds they care about:

- `ValidationError`: bad caller input, detected before any network activity.
- `TimeoutFailure`: the server did not answer within the configured timeout.
- `FatalTransportError`: a connection-level failure with no response to inspect.
- `RecoverableApplicationError`: the server answered with an error payload.
- `DecodeError`: a body was retrieved but is not the expected XML.
- `EmptyResultError`: a well-formed response with none of the expected elements.
"""

from __future__ import annotations


class SemaphoreError(Exception):
    """Base exception for all classification client errors."""


class ValidationError(SemaphoreError, ValueError):
    """Raised when a caller passes an invalid argument."""

    def __init__(self, parameter: str, message: str):
        super().__init__(f"{message} (parameter: {parameter})")
        self.parameter = parameter
        self.message = message


class TimeoutFailure(SemaphoreError, TimeoutError):
    """Raised when a call to the server exceeds the configured timeout."""

    def __init__(self, timeout: int):
        super().__init__(
            f"Call to Classification Server timed out after {timeout} seconds"
        )
        self.timeout = timeout


class FatalTransportError(SemaphoreError):
    """
    Raised when the transport failed and no response is available.

    The original exception is kept as ``cause`` and chained as ``__cause__``.
    """

    def __init__(self, cause: BaseException, message: str | None = None):
        super().__init__(message or f"Transport failure: {cause}")
        self.cause = cause


class RecoverableApplicationError(SemaphoreError):
    """Raised for error payloads the server wrote inside a response body."""

    def __init__(self, status_code: int, raw: str, errors: tuple[str, ...] = ()):
        detail = "; ".join(errors) if errors else "no error detail in body"
        super().__init__(
            f"Classification Server returned status {status_code}: {detail}"
        )
        self.status_code = status_code
        self.raw = raw
        self.errors = errors


class DecodeError(SemaphoreError):
    """Raised when a response body cannot be decoded. ``raw`` keeps the body."""

    def __init__(self, operation: str, raw: str, reason: str = ""):
        message = f"Unable to decode response for {operation}"
        if reason:
            message += f": {reason}"
        super().__init__(message)
        self.operation = operation
        self.raw = raw


class EmptyResultError(SemaphoreError):
    """Raised when a response legitimately contains no expected elements."""

    def __init__(self, operation: str, url: str):
        super().__init__(f"No results for {operation} retrieved from {url}")
        self.operation = operation
        self.url = url
