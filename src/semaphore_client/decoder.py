"""
Response Decoding
=================

Turns the XML bodies returned by the Classification Server into model
objects. `decode_response` handles classification responses and builds the
`MetaNode` trees; the remaining helpers parse the flat listings returned by
the read-only query operations.
"""

from __future__ import annotations

import xml.etree.ElementTree as ET

import structlog

from .exceptions import DecodeError, EmptyResultError
from .models import ClassificationLanguage, ClassificationResult, MetaNode

log = structlog.get_logger(__name__)

META_TAG = "META"
ERROR_TAGS = {"error"}
VERSION_PREFIX = "Semaphore "
VERSION_SUFFIX = " - Classification Server"
UNKNOWN_VERSION = "0.0.0.0"


def _parse(raw: str, operation: str, content: bytes | None = None) -> ET.Element:
    """Parse ``content`` when given, so the XML declaration picks the encoding."""
    try:
        return ET.fromstring(raw if content is None else content)
    except ET.ParseError as e:
        raise DecodeError(operation, raw, str(e)) from e


def _parse_score(text: str | None, raw: str) -> float:
    if text is None or not text.strip():
        return 0.0
    try:
        return float(text)
    except ValueError as e:
        raise DecodeError("CLASSIFY", raw, f"invalid score {text!r}") from e


def _build_node(element: ET.Element, raw: str) -> MetaNode:
    value = element.get("value", "")
    node_id = element.get("id", "")
    if not value.strip():
        value = node_id
    children = tuple(
        _build_node(child, raw) for child in element if child.tag == META_TAG
    )
    return MetaNode(
        class_name=element.get("name", ""),
        value=value,
        id=node_id,
        score=_parse_score(element.get("score"), raw),
        children=children,
    )


def find_root_elements(document: ET.Element) -> list[ET.Element]:
    """
    Return every META element that is not nested inside another META element,
    in document order.
    """
    roots = []
    stack = [document]
    while stack:
        element = stack.pop()
        if element.tag == META_TAG:
            roots.append(element)
            continue
        stack.extend(reversed(list(element)))
    return roots


def extract_errors(document: ET.Element) -> tuple[str, ...]:
    """Return the text of every error element in the document."""
    errors = []
    for element in document.iter():
        if isinstance(element.tag, str) and element.tag.lower() in ERROR_TAGS:
            text = "".join(element.itertext()).strip()
            if text:
                errors.append(text)
    return tuple(errors)


def decode_response(
    raw: str, status_code: int = 200, content: bytes | None = None
) -> ClassificationResult:
    """
    Decode a classification response body.

    ``raw`` is the body as text. When the undecoded ``content`` is given it is
    parsed instead, so the encoding named in the XML declaration is honoured.

    Raises:
        DecodeError: if the body is not well-formed XML or a score is not a
            number. The raw body is available on the exception.
    """
    document = _parse(raw, "CLASSIFY", content)
    nodes = tuple(_build_node(element, raw) for element in find_root_elements(document))
    return ClassificationResult(
        raw=raw,
        nodes=nodes,
        status_code=status_code,
        errors=extract_errors(document),
        document=document,
    )


def parse_class_names(
    raw: str, url: str, content: bytes | None = None
) -> list[str]:
    """Return the ``Name`` of every ``Class`` element, in document order."""
    document = _parse(raw, "LISTRULENETCLASSES", content)
    names = [
        element.get("Name")
        for element in document.iter("Class")
        if element.get("Name") is not None
    ]
    if not names:
        raise EmptyResultError("LISTRULENETCLASSES", url)
    return names


def parse_languages(
    raw: str, url: str, content: bytes | None = None
) -> list[ClassificationLanguage]:
    """
    Parse a ``listlanguages`` response.

    Languages missing a required attribute are logged and skipped.
    """
    document = _parse(raw, "listlanguages", content)
    top = next(document.iter("languages"), None)
    if top is None:
        log.warning("No languages element in response", url=url)
        return []

    elements = list(document.iter("language"))
    if not elements:
        log.info("No languages retrieved", url=url)
        return []

    language_type = top.get("type", "")
    languages = []
    for element in elements:
        try:
            languages.append(
                ClassificationLanguage(
                    id=element.attrib["id"],
                    name=element.attrib["name"],
                    display_name=element.attrib["display"],
                    is_default=element.attrib["default"] == "true",
                    has_rules_defined=element.get("has_rules_defined") == "true",
                    type=language_type,
                )
            )
        except KeyError as e:
            log.warning(
                "Skipping language with missing attribute",
                attribute=str(e),
                url=url,
            )
    return languages


def parse_version(raw: str, content: bytes | None = None) -> str:
    """
    Extract ``<version>`` from ``Semaphore <version> - Classification Server...``.
    """
    document = _parse(raw, "version", content)
    top = next(document.iter("version"), None)
    if top is None:
        return UNKNOWN_VERSION

    text = "".join(top.itertext()).replace(VERSION_PREFIX, "", 1)
    end = text.find(VERSION_SUFFIX)
    if end == -1:
        raise DecodeError("version", raw, "unexpected version text")
    return text[:end]
