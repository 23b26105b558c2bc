"""
Classification Models
=====================

Plain, immutable value objects shared by the encoder, the decoder and the
client. `MetaNode` is the recursive tree of classification terms returned by
the server: each node owns its children and holds no reference back to its
parent, so the tree is acyclic by construction.
"""

from __future__ import annotations

import enum
import xml.etree.ElementTree as ET
from dataclasses import dataclass, field
from typing import Iterator

from .exceptions import RecoverableApplicationError


class ArticleType(enum.Enum):
    """How the server should split the submitted text into articles."""

    DEFAULT = "default"
    SERVER_DEFAULT = "server_default"
    SINGLE_ARTICLE = "single_article"
    MULTI_ARTICLE = "multi_article"


class RequestKind(enum.Enum):
    """The server endpoint variant a submission is encoded for."""

    CLASSIFY = "classify"
    TEXT_MINE = "text_mine"


@dataclass(frozen=True)
class ClassificationOptions:
    threshold: int | float | None = None
    type: str | None = None
    clustering_type: str | None = None
    clustering_threshold: int | float | None = None
    article_type: ArticleType = ArticleType.DEFAULT


@dataclass(frozen=True)
class FileUpload:
    field_name: str
    file_name: str
    contents: bytes


@dataclass(frozen=True)
class ClassificationLanguage:
    id: str
    name: str
    display_name: str
    is_default: bool
    has_rules_defined: bool
    type: str


@dataclass(frozen=True)
class ClassificationItem:
    """A single classification term. ``id`` falls back to ``value``."""

    class_name: str
    value: str
    id: str = ""
    score: float = 0.0

    def __post_init__(self):
        if not (self.id or "").strip():
            object.__setattr__(self, "id", self.value)


@dataclass(frozen=True)
class MetaNode(ClassificationItem):
    children: tuple[MetaNode, ...] = ()

    def walk(self) -> Iterator[MetaNode]:
        """Yield this node and every descendant, depth first."""
        stack = [self]
        while stack:
            node = stack.pop()
            yield node
            stack.extend(reversed(node.children))

    def render(self, indent: str = "") -> str:
        """Return the indented debug rendering of this node and its children."""
        lines = []
        stack = [(self, indent)]
        while stack:
            node, prefix = stack.pop()
            lines.append(
                f"{prefix}Class Name:{node.class_name}  ID:{node.id}"
                f"  Value:{node.value}  Score:{format_score(node.score)}\n"
            )
            stack.extend((child, prefix + "    ") for child in reversed(node.children))
        return "".join(lines)

    def __str__(self) -> str:
        return self.render()


def format_score(score: float) -> str:
    """Render a score with single precision significant digits (0.5, 1, 0.87)."""
    return format(score, ".7g")


@dataclass(frozen=True)
class ClassificationResult:
    """
    A decoded classification response.

    Holds the raw body, the HTTP status it arrived with, the top-level
    `MetaNode` trees and any error messages the server wrote into the body.
    The parsed element tree is kept for callers that need other parts of the
    document but takes no part in equality.
    """

    raw: str
    nodes: tuple[MetaNode, ...] = ()
    status_code: int = 200
    errors: tuple[str, ...] = ()
    document: ET.Element | None = field(default=None, compare=False, repr=False)

    def walk(self) -> Iterator[MetaNode]:
        for node in self.nodes:
            yield from node.walk()

    def find(self, class_name: str) -> list[MetaNode]:
        """Return every node in the result with the given class name."""
        return [node for node in self.walk() if node.class_name == class_name]

    def raise_for_error(self) -> None:
        """Raise `RecoverableApplicationError` if the server reported an error."""
        if self.errors or self.status_code >= 400:
            raise RecoverableApplicationError(self.status_code, self.raw, self.errors)

    def __str__(self) -> str:
        return "".join(node.render() for node in self.nodes)
