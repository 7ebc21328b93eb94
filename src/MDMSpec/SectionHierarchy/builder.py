# === NAVMAP v1 ===
# {
#   "module": "MDMSpec.SectionHierarchy.builder",
#   "purpose": "Two-level section hierarchy reconstruction from topic records",
#   "sections": [
#     {"id": "build-sections", "name": "build_sections", "anchor": "function-build-sections", "kind": "function"},
#     {"id": "build-sections-from-document", "name": "build_sections_from_document", "anchor": "function-build-sections-from-document", "kind": "function"},
#     {"id": "summarize-hierarchy", "name": "summarize_hierarchy", "anchor": "function-summarize-hierarchy", "kind": "function"}
#   ]
# }
# === /NAVMAP ===

"""
Section Hierarchy Builder

Turns the ``topicSections`` list of a main specification document into a
flat list of :class:`~MDMSpec.SectionHierarchy.models.Section` objects.

Responsibilities:
- Decode each topic record and skip malformed ones with a warning
- Emit one parent section per topic and one sub-section per referenced
  configuration type, except the type that names the parent itself
- Resolve identifier collisions between topics (first occurrence wins)
- Append synthetic sections for catalogue entries the document omitted

Design Notes:
- The builder is a pure function of its input. Every call starts from an
  empty index so concurrent calls never share state.
- Identity comparisons go through :func:`MDMSpec.keys.normalize_key`.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from typing import Dict, List, Optional, Tuple

from ..diagnostics import DiagnosticsRecorder
from ..errors import IdentifierResolutionError, InvalidSpecStructure, TopicProcessingError
from ..keys import normalize_key
from .catalog import classify_section, merge_known_sections
from .identifiers import extract_config_type, format_config_type_name
from .models import DEFAULT_PLATFORMS, Section
from .topics import AcceptedTopic, RawTopic, RejectedTopic, decode_topic, validate_spec_document

LOGGER = logging.getLogger(__name__)

__all__ = ["build_sections", "build_sections_from_document", "summarize_hierarchy"]


class _SectionIndex:
    """Ordered, identifier-keyed accumulator for one build pass."""

    def __init__(self) -> None:
        self._order: List[str] = []
        self._by_id: Dict[str, Section] = {}

    def get(self, identifier: str) -> Optional[Section]:
        return self._by_id.get(identifier)

    def add(self, section: Section) -> None:
        self._order.append(section.identifier)
        self._by_id[section.identifier] = section

    def replace(self, section: Section) -> None:
        self._by_id[section.identifier] = section

    def sections(self) -> List[Section]:
        return [self._by_id[identifier] for identifier in self._order]


def _report(
    diagnostics: Optional[DiagnosticsRecorder], kind: str, message: str, **fields: object
) -> None:
    extra = {"stage": "hierarchy"}
    if "section" in fields:
        extra["section"] = str(fields["section"])
    LOGGER.warning(message, extra=extra)
    if diagnostics is not None:
        diagnostics.emit(kind, message, **fields)


def _parent_for(topic: RawTopic, position: int) -> Section:
    identifier = normalize_key(topic.title) or f"section{position}"
    name = topic.title or topic.anchor or f"Section {position}"
    metadata = classify_section(name, identifier)
    return Section(
        identifier=identifier,
        name=name,
        platforms=frozenset(topic.platforms) or DEFAULT_PLATFORMS,
        configuration_identifiers=tuple(ref for ref in topic.identifiers if isinstance(ref, str)),
        description=topic.abstract or "",
        category=metadata.category,
        priority=metadata.priority,
        anchor=topic.anchor,
    )


def _sub_sections_for(
    topic: RawTopic,
    parent: Section,
    position: int,
    diagnostics: Optional[DiagnosticsRecorder],
) -> List[Section]:
    children: List[Section] = []
    seen = set()
    for ref in topic.identifiers:
        config_type = extract_config_type(ref)
        identifier = normalize_key(config_type)
        if config_type is None or not identifier:
            error = IdentifierResolutionError(
                f"topic {position}: identifier {ref!r} does not name a configuration type",
                reference=ref,
            )
            _report(diagnostics, "identifier_skipped", str(error), position=position)
            continue
        if identifier == parent.identifier:
            LOGGER.debug(
                "skipping %s: names its own parent", config_type, extra={"stage": "hierarchy"}
            )
            continue
        if identifier in seen:
            continue
        seen.add(identifier)
        display_name = format_config_type_name(config_type)
        metadata = classify_section(display_name, identifier)
        children.append(
            Section(
                identifier=identifier,
                name=display_name,
                is_sub_section=True,
                parent_section=parent.identifier,
                parent_name=parent.name,
                platforms=parent.platforms,
                configuration_identifiers=(str(ref),),
                description=f"{config_type} configuration settings",
                category=metadata.category,
                priority=metadata.priority,
                config_type=config_type,
            )
        )
    return children


def _merge_topic(
    accepted: AcceptedTopic,
    index: _SectionIndex,
    diagnostics: Optional[DiagnosticsRecorder],
) -> Tuple[int, int]:
    topic, position = accepted.topic, accepted.position
    candidate = _parent_for(topic, position)
    existing = index.get(candidate.identifier)

    if existing is None:
        parent = candidate
        index.add(parent)
    elif existing.is_sub_section:
        _report(
            diagnostics,
            "section_collision",
            f"topic {position} ({candidate.name}) collides with sub-section "
            f"{existing.identifier} of {existing.parent_section}; topic dropped",
            section=candidate.identifier,
            position=position,
            action="dropped",
        )
        return 0, 0
    else:
        merged_refs = existing.configuration_identifiers + tuple(
            ref for ref in candidate.configuration_identifiers
            if ref not in existing.configuration_identifiers
        )
        parent = Section(
            identifier=existing.identifier,
            name=existing.name,
            platforms=existing.platforms | candidate.platforms,
            configuration_identifiers=merged_refs,
            description=existing.description or candidate.description,
            category=existing.category,
            priority=existing.priority,
            anchor=existing.anchor,
        )
        index.replace(parent)
        _report(
            diagnostics,
            "section_collision",
            f"topic {position} ({candidate.name}) repeats parent {existing.identifier}; "
            "sub-sections merged",
            section=candidate.identifier,
            position=position,
            action="merged",
        )

    added = 0
    for child in _sub_sections_for(topic, parent, position, diagnostics):
        clash = index.get(child.identifier)
        if clash is not None:
            owner = clash.parent_section or "top level"
            _report(
                diagnostics,
                "section_collision",
                f"sub-section {child.identifier} under {parent.identifier} already "
                f"exists under {owner}; later occurrence dropped",
                section=child.identifier,
                position=position,
                action="dropped",
            )
            continue
        index.add(child)
        added += 1
    return (1 if existing is None else 0), added


def build_sections(
    topics: object,
    *,
    diagnostics: Optional[DiagnosticsRecorder] = None,
    include_known_missing: bool = True,
) -> List[Section]:
    """Build the parent/sub-section list for ``topics``.

    Args:
        topics: The ``topicSections`` list of a main specification document.
        diagnostics: Optional recorder receiving one event per skipped topic,
            skipped identifier, or identifier collision.
        include_known_missing: Append synthetic catalogue sections that the
            document does not already cover.

    Returns:
        Sections in input order (each parent followed by its sub-sections),
        then any synthetic sections.

    Raises:
        InvalidSpecStructure: If ``topics`` is not a sequence of records.
    """

    if isinstance(topics, (str, bytes, Mapping)) or not isinstance(topics, Sequence):
        raise InvalidSpecStructure(
            f"topicSections must be a list of topic records, got {type(topics).__name__}"
        )

    index = _SectionIndex()
    parents = children = 0
    for position, raw in enumerate(topics, start=1):
        decoded = decode_topic(raw, position)
        if isinstance(decoded, RejectedTopic):
            error = TopicProcessingError(
                f"skipping topic {decoded.position}: {decoded.reason}", position=decoded.position
            )
            _report(diagnostics, "topic_rejected", str(error), position=decoded.position)
            continue
        try:
            new_parents, new_children = _merge_topic(decoded, index, diagnostics)
        except ValueError as exc:
            error = TopicProcessingError(f"topic {position} failed: {exc}", position=position)
            _report(diagnostics, "topic_rejected", str(error), position=position)
            continue
        parents += new_parents
        children += new_children

    sections = index.sections()
    if include_known_missing:
        sections.extend(merge_known_sections(sections))

    LOGGER.info(
        "built %d sections (%d parents, %d sub-sections, %d synthetic)",
        len(sections),
        parents,
        children,
        sum(1 for section in sections if section.is_synthetic),
        extra={"stage": "hierarchy"},
    )
    return sections


def build_sections_from_document(
    document: object,
    *,
    diagnostics: Optional[DiagnosticsRecorder] = None,
    include_known_missing: bool = True,
) -> List[Section]:
    """Validate a main specification document and build its sections."""

    spec = validate_spec_document(document)
    return build_sections(
        spec["topicSections"],
        diagnostics=diagnostics,
        include_known_missing=include_known_missing,
    )


def summarize_hierarchy(sections: Sequence[Section]) -> Dict[str, List[str]]:
    """Map each top-level identifier to the identifiers of its sub-sections."""

    summary: Dict[str, List[str]] = {}
    for section in sections:
        if not section.is_sub_section:
            summary.setdefault(section.identifier, [])
    for section in sections:
        if section.is_sub_section and section.parent_section is not None:
            summary.setdefault(section.parent_section, []).append(section.identifier)
    return summary
