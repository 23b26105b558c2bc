"""
Transport Outcome Classification
================================

Decides what a completed (or failed) HTTP call means for the client. The
Classification Server reports many of its own errors with a non-success
status *and* an XML body describing the problem, so an HTTP error is not
necessarily fatal: when a body is available it is handed to the decoder.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass

import requests


class OutcomeKind(enum.Enum):
    SUCCESS = "success"
    TIMEOUT = "timeout"
    RECOVERABLE_APPLICATION_ERROR = "recoverable_application_error"
    FATAL_TRANSPORT_ERROR = "fatal_transport_error"


@dataclass(frozen=True)
class TransportOutcome:
    kind: OutcomeKind
    response: requests.Response | None = None
    error: BaseException | None = None

    @property
    def has_body(self) -> bool:
        return self.kind in (
            OutcomeKind.SUCCESS,
            OutcomeKind.RECOVERABLE_APPLICATION_ERROR,
        )


def classify_outcome(
    response: requests.Response | None = None,
    error: BaseException | None = None,
) -> TransportOutcome:
    """
    Classify the result of a transport call.

    Exactly one of ``response`` or ``error`` is expected. Cancellation signals
    (anything that is not an ``Exception``, such as ``KeyboardInterrupt``) are
    re-raised immediately.
    """
    if error is not None:
        if not isinstance(error, Exception):
            raise error
        if isinstance(error, requests.exceptions.Timeout):
            return TransportOutcome(OutcomeKind.TIMEOUT, error=error)
        error_response = getattr(error, "response", None)
        if error_response is not None:
            return TransportOutcome(
                OutcomeKind.RECOVERABLE_APPLICATION_ERROR,
                response=error_response,
                error=error,
            )
        return TransportOutcome(OutcomeKind.FATAL_TRANSPORT_ERROR, error=error)

    if response is None:
        raise ValueError("classify_outcome needs a response or an error")
    if response.ok:
        return TransportOutcome(OutcomeKind.SUCCESS, response=response)
    return TransportOutcome(OutcomeKind.RECOVERABLE_APPLICATION_ERROR, response=response)
