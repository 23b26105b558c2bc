"""
Authenticated Requests
======================

Builds outgoing requests for the Classification Server, attaching the API
key when one is configured. Keys are base64 strings; they are validated when
the client is created so a malformed key fails before any network activity.
"""

from __future__ import annotations

import re

import requests
import structlog

from .exceptions import ValidationError

API_KEY_RE = re.compile(
    r"^(?:[A-Za-z0-9+/]{4})*(?:[A-Za-z0-9+/]{2}==|[A-Za-z0-9+/]{3}=|[A-Za-z0-9+/]{4})$"
)


def validate_api_key(api_key: str | None) -> str:
    """Return the key (``""`` when unset), raising if it is not base64."""
    if not api_key:
        return ""
    if not API_KEY_RE.match(api_key):
        raise ValidationError("api_key", "API key is invalid")
    return api_key


def build_request(
    url: str,
    api_key: str,
    method: str = "GET",
    logger=None,
) -> requests.Request:
    """Return an unsent request for ``url`` carrying the API key, if any."""
    log = logger or structlog.get_logger(__name__)
    request = requests.Request(method=method, url=url)
    if api_key:
        request.headers["Authorization"] = f"Bearer {api_key}"
        log.debug("Attached API key to request", url=url)
    return request
