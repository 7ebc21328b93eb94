"""Parameter extraction from section documents.

Section documents come in two generations. Current documents describe their
keys in ``primaryContentSections`` entries of kind ``properties`` (older ones
use kind ``declarations``). Bundled stand-in documents instead list symbol
identifiers under ``topicSections`` and describe each in ``references``.
:func:`extract_parameters` understands both and never raises on malformed
entries; they are logged and skipped.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Iterable, List, Mapping, Optional, Sequence, Tuple

from .models import Parameter, ParameterType

LOGGER = logging.getLogger(__name__)

__all__ = [
    "PayloadMetadata",
    "normalize_parameter_type",
    "extract_parameters",
    "extract_payload_metadata",
]

_TYPE_MAP = {
    "boolean": "boolean",
    "bool": "boolean",
    "string": "string",
    "number": "number",
    "integer": "number",
    "int": "number",
    "float": "number",
    "real": "number",
    "array": "array",
    "object": "object",
    "dictionary": "object",
    "dict": "object",
}


def normalize_parameter_type(raw: object) -> ParameterType:
    """Map a vendor type label onto one of the five parameter types.

    ``[string]`` style labels denote arrays; anything unrecognized is a string.
    """

    if not isinstance(raw, str):
        return "string"
    text = raw.strip().lower()
    if text.startswith("[") and text.endswith("]"):
        return "array"
    return _TYPE_MAP.get(text, "string")  # type: ignore[return-value]


def _as_list(value: object) -> Sequence[Any]:
    """Return ``value`` when it is a JSON array, otherwise an empty tuple."""

    if isinstance(value, (list, tuple)):
        return value
    return ()


def _inline_text(content: object, *, paragraphs_only: bool) -> str:
    parts: List[str] = []
    for block in _as_list(content):
        if not isinstance(block, Mapping):
            continue
        if paragraphs_only and block.get("type") != "paragraph":
            continue
        for inline in _as_list(block.get("inlineContent")):
            if not isinstance(inline, Mapping):
                continue
            if isinstance(inline.get("text"), str):
                parts.append(inline["text"])
            elif inline.get("type") == "codeVoice" and isinstance(inline.get("code"), str):
                parts.append(f"`{inline['code']}`")
    return " ".join(part.strip() for part in parts if part.strip())


def _abstract_text(value: object) -> str:
    if isinstance(value, str):
        return value.strip()
    if isinstance(value, (list, tuple)):
        parts = []
        for item in value:
            if isinstance(item, Mapping) and isinstance(item.get("text"), str):
                parts.append(item["text"])
        return " ".join(part.strip() for part in parts if part.strip())
    return ""


def _from_property_item(item: Mapping[str, Any], platforms: Tuple[str, ...]) -> Optional[Parameter]:
    name = item.get("name")
    if not isinstance(name, str) or not name:
        return None
    type_tokens = _as_list(item.get("type"))
    type_text = "".join(
        str(token.get("text") or token.get("kind") or "")
        for token in type_tokens
        if isinstance(token, Mapping)
    )
    default_value = None
    for attribute in _as_list(item.get("attributes")):
        if isinstance(attribute, Mapping) and attribute.get("kind") == "default":
            default_value = attribute.get("value")
            break
    introduced = item.get("introducedVersion")
    return Parameter(
        key=name,
        name=name,
        type=normalize_parameter_type(type_text),
        description=_inline_text(item.get("content"), paragraphs_only=True),
        required=bool(item.get("required", False)),
        deprecated=bool(item.get("deprecated", False)),
        platforms=platforms,
        default_value=default_value,
        introduced_version=str(introduced) if introduced else None,
    )


def _from_declaration(
    declaration: Mapping[str, Any], platforms: Tuple[str, ...]
) -> Optional[Parameter]:
    names = _as_list(declaration.get("names"))
    name = names[0] if names and isinstance(names[0], str) else None
    if not name:
        return None
    types = _as_list(declaration.get("type"))
    type_text = types[0].get("text") if types and isinstance(types[0], Mapping) else None
    attributes = _as_list(declaration.get("attributes"))
    default_value = (
        attributes[0].get("value") if attributes and isinstance(attributes[0], Mapping) else None
    )
    introduced = declaration.get("introducedVersion")
    return Parameter(
        key=name,
        name=name,
        type=normalize_parameter_type(type_text),
        description=_inline_text(declaration.get("content"), paragraphs_only=False),
        required=bool(declaration.get("required", False)),
        platforms=platforms,
        default_value=default_value,
        introduced_version=str(introduced) if introduced else None,
    )


def _from_reference(
    key: str, reference: Mapping[str, Any], platforms: Tuple[str, ...]
) -> Parameter:
    name = reference.get("title") or reference.get("displayName") or reference.get("name") or key
    raw_platforms = reference.get("platforms")
    if isinstance(raw_platforms, Sequence) and not isinstance(raw_platforms, str):
        resolved_platforms = tuple(str(p) for p in raw_platforms)
    else:
        resolved_platforms = platforms
    possible = reference.get("possibleValues") or reference.get("allowedValues") or ()
    return Parameter(
        key=key,
        name=str(name),
        type=normalize_parameter_type(reference.get("type") or reference.get("dataType")),
        description=_abstract_text(reference.get("abstract") or reference.get("description")),
        required=bool(reference.get("required", False)),
        deprecated=bool(reference.get("deprecated", False)),
        platforms=resolved_platforms,
        default_value=reference.get("defaultValue", reference.get("default")),
        possible_values=tuple(possible) if isinstance(possible, (list, tuple)) else (),
    )


def _from_content_sections(document: Mapping[str, Any], platforms: Tuple[str, ...]) -> List[Parameter]:
    parameters: List[Parameter] = []
    for section in _as_list(document.get("primaryContentSections")):
        if not isinstance(section, Mapping):
            continue
        kind = section.get("kind")
        if kind == "properties":
            entries: Iterable[Any] = _as_list(section.get("items"))
            parse = _from_property_item
        elif kind == "declarations":
            entries = _as_list(section.get("declarations"))
            parse = _from_declaration
        else:
            continue
        for entry in entries:
            if not isinstance(entry, Mapping):
                continue
            try:
                parameter = parse(entry, platforms)
            except (TypeError, ValueError, AttributeError, IndexError, KeyError) as exc:
                LOGGER.warning(
                    "skipping malformed %s entry: %s", kind, exc, extra={"stage": "parameters"}
                )
                continue
            if parameter is not None:
                parameters.append(parameter)
    return parameters


def _from_topic_references(document: Mapping[str, Any], platforms: Tuple[str, ...]) -> List[Parameter]:
    references = document.get("references")
    if not isinstance(references, Mapping):
        return []
    parameters: List[Parameter] = []
    for topic in _as_list(document.get("topicSections")):
        if not isinstance(topic, Mapping):
            continue
        for identifier in _as_list(topic.get("identifiers")):
            reference = references.get(identifier) if isinstance(identifier, str) else None
            if not isinstance(reference, Mapping):
                continue
            try:
                parameters.append(_from_reference(identifier, reference, platforms))
            except (TypeError, ValueError, AttributeError, KeyError) as exc:
                LOGGER.warning(
                    "skipping malformed reference %s: %s",
                    identifier,
                    exc,
                    extra={"stage": "parameters"},
                )
    return parameters


def extract_parameters(document: object, *, platforms: Iterable[str] = ()) -> List[Parameter]:
    """Return the parameters described by a section document.

    Args:
        document: Parsed section document.
        platforms: Platforms assigned to parameters whose entry does not
            list its own.

    Returns:
        Parameters in document order; an empty list for unusable documents.
    """

    if not isinstance(document, Mapping):
        return []
    default_platforms = tuple(platforms)
    parameters = _from_content_sections(document, default_platforms)
    if not parameters:
        parameters = _from_topic_references(document, default_platforms)
    LOGGER.debug("extracted %d parameters", len(parameters), extra={"stage": "parameters"})
    return parameters


@dataclass(frozen=True)
class PayloadMetadata:
    title: Optional[str] = None
    abstract: str = ""
    symbol_kind: Optional[str] = None
    platforms: Tuple[str, ...] = ()


def extract_payload_metadata(document: object) -> PayloadMetadata:
    """Return the descriptive header of a section document."""

    if not isinstance(document, Mapping):
        return PayloadMetadata()
    metadata = document.get("metadata")
    metadata = metadata if isinstance(metadata, Mapping) else {}
    platforms: List[str] = []
    for entry in _as_list(metadata.get("platforms")) or _as_list(document.get("platforms")):
        if isinstance(entry, Mapping) and isinstance(entry.get("name"), str):
            platforms.append(entry["name"])
        elif isinstance(entry, str):
            platforms.append(entry)
    title = metadata.get("title")
    return PayloadMetadata(
        title=title if isinstance(title, str) else None,
        abstract=_abstract_text(document.get("abstract") or metadata.get("abstract")),
        symbol_kind=metadata.get("symbolKind") if isinstance(metadata.get("symbolKind"), str) else None,
        platforms=tuple(platforms),
    )
