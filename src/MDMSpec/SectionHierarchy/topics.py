"""Validating decode of raw topic records.

Vendor documents are loosely typed. Rather than probing fields throughout the
builder, every record passes through :func:`decode_topic` once and comes out
as either :class:`AcceptedTopic` or :class:`RejectedTopic`.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping, Optional, Tuple, Union

from ..errors import InvalidSpecStructure

__all__ = [
    "RawTopic",
    "AcceptedTopic",
    "RejectedTopic",
    "TopicDecode",
    "decode_topic",
    "validate_spec_document",
]


@dataclass(frozen=True)
class RawTopic:
    """A vendor topic record after shape validation."""

    title: Optional[str]
    anchor: Optional[str]
    identifiers: Tuple[object, ...]
    abstract: Optional[str] = None
    platforms: Tuple[str, ...] = ()


@dataclass(frozen=True)
class AcceptedTopic:
    position: int
    topic: RawTopic


@dataclass(frozen=True)
class RejectedTopic:
    position: int
    reason: str


TopicDecode = Union[AcceptedTopic, RejectedTopic]


def _text(value: Any) -> Optional[str]:
    if isinstance(value, str) and value.strip():
        return value
    return None


def _abstract(value: Any) -> Optional[str]:
    if isinstance(value, str):
        return value.strip() or None
    if isinstance(value, (list, tuple)):
        parts = [
            item.get("text", "")
            for item in value
            if isinstance(item, Mapping) and isinstance(item.get("text"), str)
        ]
        joined = " ".join(part.strip() for part in parts if part.strip())
        return joined or None
    return None


def decode_topic(obj: object, position: int) -> TopicDecode:
    """Classify ``obj`` as a usable topic record.

    Args:
        obj: One element of a document's ``topicSections`` list.
        position: 1-based position of the element, used for naming and logs.

    Returns:
        AcceptedTopic when ``obj`` is a mapping with a title or anchor and a
        list of identifiers, otherwise RejectedTopic with a reason.
    """

    if not isinstance(obj, Mapping):
        return RejectedTopic(position, f"expected a mapping, got {type(obj).__name__}")
    title = _text(obj.get("title"))
    anchor = _text(obj.get("anchor"))
    if title is None and anchor is None:
        return RejectedTopic(position, "topic has neither a title nor an anchor")
    identifiers = obj.get("identifiers")
    if not isinstance(identifiers, (list, tuple)):
        return RejectedTopic(position, "topic identifiers must be a list")
    raw_platforms = obj.get("platforms")
    platforms: Tuple[str, ...] = ()
    if isinstance(raw_platforms, (list, tuple)):
        platforms = tuple(p for p in raw_platforms if isinstance(p, str) and p)
    topic = RawTopic(
        title=title,
        anchor=anchor,
        identifiers=tuple(identifiers),
        abstract=_abstract(obj.get("abstract")),
        platforms=platforms,
    )
    return AcceptedTopic(position, topic)


def validate_spec_document(document: object) -> Mapping[str, Any]:
    """Check the outer shape of a main specification document.

    Raises:
        InvalidSpecStructure: If ``document`` is not a mapping with a
            ``topicSections`` list and a ``references`` mapping.
    """

    if not isinstance(document, Mapping):
        raise InvalidSpecStructure(
            f"specification must be a JSON object, got {type(document).__name__}"
        )
    if not isinstance(document.get("topicSections"), list):
        raise InvalidSpecStructure("specification is missing a topicSections list")
    if not isinstance(document.get("references"), Mapping):
        raise InvalidSpecStructure("specification is missing a references mapping")
    return document
