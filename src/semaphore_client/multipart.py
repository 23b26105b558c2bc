"""
Multipart Encoding
==================

Builds the ``multipart/form-data`` body posted to the Classification Server.
Form fields are written in the order they were supplied, followed by any file
parts whose contents are copied byte for byte, and a closing boundary. The
encoding itself is done by urllib3, the encoder requests uses for ``files=``
uploads, with our own boundary token.
"""

from __future__ import annotations

import uuid
from typing import Iterable, Mapping

from urllib3.filepost import encode_multipart_formdata

from .exceptions import ValidationError
from .models import FileUpload

BINARY_CONTENT_TYPE = "application/octet-stream"


def new_boundary() -> str:
    """Return a random 32 hex digit boundary token."""
    return uuid.uuid4().hex


def content_type_for(boundary: str) -> str:
    return f"multipart/form-data; boundary={boundary}"


def encode_multipart(
    boundary: str,
    fields: Mapping[str, str | None],
    files: Iterable[FileUpload] = (),
) -> bytes:
    """
    Encode form fields and file uploads into a multipart body.

    Args:
        boundary: The boundary token. Must be non-empty.
        fields: Form fields, written in iteration order. ``None`` values are
            written as empty strings.
        files: File parts, written after the fields.
    """
    if not boundary:
        raise ValidationError("boundary", "Boundary must not be empty")

    parts = [
        (name, "" if value is None else str(value)) for name, value in fields.items()
    ]
    parts.extend(
        (upload.field_name, (upload.file_name, upload.contents, BINARY_CONTENT_TYPE))
        for upload in files
    )
    body, _ = encode_multipart_formdata(parts, boundary=boundary)
    return body
