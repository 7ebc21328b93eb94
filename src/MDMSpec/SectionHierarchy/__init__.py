"""Section hierarchy reconstruction from device-management topic records."""

from __future__ import annotations

from .builder import build_sections, build_sections_from_document, summarize_hierarchy
from .catalog import KNOWN_SECTIONS, KnownSection, SectionMetadata, classify_section, merge_known_sections
from .identifiers import extract_config_type, format_config_type_name
from .models import DEFAULT_PLATFORMS, Parameter, Section
from .parameters import PayloadMetadata, extract_parameters, extract_payload_metadata
from .topics import AcceptedTopic, RawTopic, RejectedTopic, decode_topic, validate_spec_document

__all__ = [
    "AcceptedTopic",
    "DEFAULT_PLATFORMS",
    "KNOWN_SECTIONS",
    "KnownSection",
    "Parameter",
    "PayloadMetadata",
    "RawTopic",
    "RejectedTopic",
    "Section",
    "SectionMetadata",
    "build_sections",
    "build_sections_from_document",
    "classify_section",
    "decode_topic",
    "extract_config_type",
    "extract_parameters",
    "extract_payload_metadata",
    "format_config_type_name",
    "merge_known_sections",
    "summarize_hierarchy",
    "validate_spec_document",
]
