"""
Classification Server Client
============================

This module provides the client for a Semaphore Classification Server. It
validates caller input, encodes submissions as ``multipart/form-data``,
sends them with the configured timeout, and decodes the XML answer into a
`ClassificationResult`.

The server reports many of its own failures with a non-success status and an
XML error body, so such responses are still decoded. Only timeouts and
failures with no response at all are raised as transport errors. The client
never retries; callers wrap it with their own policy if they need one.
"""

from __future__ import annotations

import re
import time
from typing import Callable, Mapping, TypeVar

import requests
import structlog

from .auth import build_request, validate_api_key
from .config import DEFAULT_TIMEOUT_SECONDS, Settings, is_absolute_url, validate_timeout
from .decoder import decode_response, parse_class_names, parse_languages, parse_version
from .exceptions import (
    FatalTransportError,
    TimeoutFailure,
    ValidationError,
)
from .models import (
    ArticleType,
    ClassificationLanguage,
    ClassificationOptions,
    ClassificationResult,
    FileUpload,
    RequestKind,
)
from .multipart import content_type_for, encode_multipart, new_boundary
from .outcome import OutcomeKind, TransportOutcome, classify_outcome

T = TypeVar("T")

UPLOAD_FIELD_NAME = "UploadFile"
TEXT_MINE_PREFIX = "TEXTMINE_"

# Article flag values per endpoint variant. The text mining endpoint expects
# empty values where the classification endpoint expects "1".
ARTICLE_FLAG_VALUES = {
    RequestKind.CLASSIFY: "1",
    RequestKind.TEXT_MINE: "",
}
ARTICLE_FLAGS = {
    ArticleType.SINGLE_ARTICLE: "singlearticle",
    ArticleType.MULTI_ARTICLE: "multiarticle",
}


XML_ENCODING_RE = re.compile(
    rb"""^\s*<\?xml[^>]*?encoding\s*=\s*["']([A-Za-z0-9._-]+)["']"""
)


def _read_body(response: requests.Response) -> str:
    """
    Return the response as text, for ``raw`` and diagnostics.

    The charset comes from the Content-Type header, then the XML declaration,
    then defaults to UTF-8. Parsing always works on ``response.content``.
    """
    if "charset" not in response.headers.get("Content-Type", "").lower():
        match = XML_ENCODING_RE.match(response.content)
        response.encoding = match.group(1).decode("ascii") if match else "utf-8"
    return response.text


def build_form_fields(
    kind: RequestKind,
    title: str,
    alt_body: str,
    meta_values: Mapping[str, str],
    options: ClassificationOptions | None = None,
) -> dict[str, str]:
    """Return the ordered form fields for a classification submission."""
    fields = {
        "operation": "CLASSIFY",
        "title": title,
        "body": alt_body,
    }
    if kind is RequestKind.TEXT_MINE:
        fields["operation_mode"] = "TextMine"

    if options is not None:
        if options.threshold is not None:
            fields["threshold"] = str(options.threshold)
        if options.type:
            fields["type"] = options.type
        if options.clustering_type:
            fields["clustering_type"] = options.clustering_type
        if options.clustering_threshold is not None:
            fields["clustering_threshold"] = str(options.clustering_threshold)
        flag = ARTICLE_FLAGS.get(options.article_type)
        if flag is not None:
            fields[flag] = ARTICLE_FLAG_VALUES[kind]

    for key, value in meta_values.items():
        fields[f"meta_{key}"] = value
    return fields


class ClassificationClient:
    """A client for a Semaphore Classification Server endpoint."""

    def __init__(
        self,
        server_url: str,
        timeout: int = DEFAULT_TIMEOUT_SECONDS,
        api_key: str = "",
        logger=None,
        boundary: str | None = None,
        session: requests.Session | None = None,
    ):
        """
        Args:
            server_url: Absolute URL of the Classification Server endpoint.
            timeout: Seconds to wait for the server before giving up.
            api_key: Optional base64 API key sent with every request.
            logger: Optional structlog-style logger. Defaults to this module's.
            boundary: Multipart boundary token. A random one is generated
                when not given.
            session: Optional ``requests.Session`` to send requests with.
        """
        if not server_url or not is_absolute_url(server_url):
            raise ValidationError("server_url", "Server URL must be an absolute URL")
        try:
            validate_timeout(timeout)
        except ValueError as e:
            raise ValidationError("timeout", str(e)) from e

        self.server_url = server_url
        self.timeout = timeout
        self.api_key = validate_api_key(api_key)
        self.log = logger or structlog.get_logger(__name__)
        self.boundary = boundary or new_boundary()
        self._session = session or requests.Session()

    @classmethod
    def from_settings(cls, settings: Settings, **kwargs) -> ClassificationClient:
        return cls(
            settings.CLASSIFICATION_SERVER_URL,
            timeout=settings.REQUEST_TIMEOUT,
            api_key=settings.CLASSIFICATION_API_KEY,
            **kwargs,
        )

    def close(self) -> None:
        self._session.close()

    def __enter__(self) -> ClassificationClient:
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    # --- Submissions ---

    def classify(
        self,
        title: str,
        document: bytes | None = None,
        file_name: str | None = None,
        meta_values: Mapping[str, str] | None = None,
        alt_body: str = "",
        options: ClassificationOptions | None = None,
    ) -> ClassificationResult:
        """
        Classify a document.

        Args:
            title: Title of the item being classified.
            document: Optional binary document, uploaded as ``UploadFile``.
            file_name: File name of ``document``. Required with a document and
                rejected without one.
            meta_values: Metadata sent as ``meta_<key>`` fields. Required, but
                may be empty.
            alt_body: Text sent as the ``body`` field.
            options: Optional classification options.

        Raises:
            ValidationError: on invalid arguments, before any network activity.
            TimeoutFailure: if the server does not answer in time.
            FatalTransportError: if the request failed without a response.
            DecodeError: if the response body is not valid XML.
        """
        return self._submit(
            RequestKind.CLASSIFY, title, document, file_name, meta_values, alt_body, options
        )

    def text_mine(
        self,
        title: str,
        document: bytes | None = None,
        file_name: str | None = None,
        meta_values: Mapping[str, str] | None = None,
        alt_body: str = "",
        options: ClassificationOptions | None = None,
    ) -> ClassificationResult:
        """Submit a document to the text mining operation mode. See `classify`."""
        return self._submit(
            RequestKind.TEXT_MINE, title, document, file_name, meta_values, alt_body, options
        )

    def _submit(
        self,
        kind: RequestKind,
        title: str,
        document: bytes | None,
        file_name: str | None,
        meta_values: Mapping[str, str] | None,
        alt_body: str,
        options: ClassificationOptions | None,
    ) -> ClassificationResult:
        if meta_values is None:
            raise ValidationError("meta_values", "Missing metaValues")
        has_file_name = bool(file_name and file_name.strip())
        if document is not None and not has_file_name:
            raise ValidationError("file_name", "Documents must have an associated filename")
        if document is None and has_file_name:
            raise ValidationError(
                "document",
                "Filename should not be set unless an associated document is passed",
            )

        self.log.debug(
            "Submitting document",
            kind=kind.value,
            title=title,
            file_name=file_name,
        )
        fields = build_form_fields(kind, title, alt_body, meta_values, options)
        for name, value in fields.items():
            self.log.debug("Added form-data", name=name, value=value)

        files = []
        if document is not None:
            files.append(FileUpload(UPLOAD_FIELD_NAME, file_name, document))

        try:
            return self._post(fields, files)
        except Exception:
            self.log.exception("Classification request failed", kind=kind.value)
            raise

    def _post(self, fields: dict[str, str], files: list[FileUpload]) -> ClassificationResult:
        body = encode_multipart(self.boundary, fields, files)
        request = build_request(self.server_url, self.api_key, "POST", self.log)
        request.headers["Content-Type"] = content_type_for(self.boundary)
        request.data = body
        prepared = self._session.prepare_request(request)

        outcome = self._send(prepared, "CLASSIFY")
        response = outcome.response
        try:
            if outcome.kind is OutcomeKind.RECOVERABLE_APPLICATION_ERROR:
                self.log.warning(
                    "Classification Server returned an error status",
                    status_code=response.status_code,
                )
            raw = _read_body(response)
            result = decode_response(raw, response.status_code, response.content)
        finally:
            response.close()

        self.log.debug("Received response", response=raw)
        return result

    # --- Read-only queries ---

    def get_classification_classes(self) -> list[str]:
        """Return the rule net class names, without text mining classes."""
        return [
            name
            for name in self.get_text_mining_classes()
            if not name.startswith(TEXT_MINE_PREFIX)
        ]

    def get_text_mining_classes(self) -> list[str]:
        """Return every rule net class name, including text mining classes."""
        return self._query("LISTRULENETCLASSES", parse_class_names)

    def get_languages(self) -> list[ClassificationLanguage]:
        return self._query("listlanguages", parse_languages)

    def get_version(self) -> str:
        """Return the server version, or ``"0.0.0.0"`` if it is not reported."""
        return self._query(
            "version", lambda raw, url, content: parse_version(raw, content)
        )

    def _query(
        self, operation: str, parse: Callable[[str, str, bytes], T]
    ) -> T:
        url = f"{self.server_url}?operation={operation}"
        try:
            request = build_request(url, self.api_key, "GET", self.log)
            prepared = self._session.prepare_request(request)

            outcome = self._send(prepared, operation)
            response = outcome.response
            try:
                response.raise_for_status()
                return parse(_read_body(response), url, response.content)
            except requests.exceptions.HTTPError as e:
                raise FatalTransportError(e) from e
            finally:
                response.close()
        except Exception:
            self.log.exception("Query failed", operation=operation, url=url)
            raise

    # --- Transport ---

    def _send(self, prepared: requests.PreparedRequest, operation: str) -> TransportOutcome:
        """
        Send a prepared request and classify what came back.

        Returns an outcome that carries a response. Timeouts and failures
        without a response are raised.
        """
        self.log.debug(
            "Sending request",
            operation=operation,
            method=prepared.method,
            url=prepared.url,
            bytes=len(prepared.body or b""),
        )
        start = time.perf_counter()
        try:
            response = self._session.send(prepared, timeout=self.timeout)
        except requests.exceptions.RequestException as e:
            outcome = classify_outcome(error=e)
            if outcome.kind is OutcomeKind.TIMEOUT:
                self.log.error(
                    "Call to Classification Server timed out",
                    operation=operation,
                    timeout=self.timeout,
                )
                raise TimeoutFailure(self.timeout) from e
            if not outcome.has_body:
                raise FatalTransportError(e) from e
        else:
            outcome = classify_outcome(response=response)

        self.log.debug(
            "Response received",
            operation=operation,
            status_code=outcome.response.status_code,
            elapsed_seconds=round(time.perf_counter() - start, 3),
        )
        return outcome
