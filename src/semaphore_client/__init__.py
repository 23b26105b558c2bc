"""
Semaphore Classification Server client.

This package contains:

- the classification client (submissions and read-only server queries)
- the multipart encoder and the XML response decoder
- the classification models, including the `MetaNode` term tree
- environment configuration, logging setup and a command-line entry point
"""

from .client import ClassificationClient
from .decoder import decode_response
from .exceptions import (
    DecodeError,
    EmptyResultError,
    FatalTransportError,
    RecoverableApplicationError,
    SemaphoreError,
    TimeoutFailure,
    ValidationError,
)
from .models import (
    ArticleType,
    ClassificationItem,
    ClassificationLanguage,
    ClassificationOptions,
    ClassificationResult,
    FileUpload,
    MetaNode,
    RequestKind,
)
from .multipart import encode_multipart, new_boundary

__all__ = [
    "ArticleType",
    "ClassificationClient",
    "ClassificationItem",
    "ClassificationLanguage",
    "ClassificationOptions",
    "ClassificationResult",
    "DecodeError",
    "EmptyResultError",
    "FatalTransportError",
    "FileUpload",
    "MetaNode",
    "RecoverableApplicationError",
    "RequestKind",
    "SemaphoreError",
    "TimeoutFailure",
    "ValidationError",
    "decode_response",
    "encode_multipart",
    "new_boundary",
]
