"""Core types for the section hierarchy.

- Section: the canonical configurable unit handed to the presentation layer
- Parameter: one configurable key inside a section document

Both are frozen dataclasses. Construction-time checks enforce the hierarchy
invariants so that no code path can produce a self-parented section.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field, replace
from typing import Any, Dict, FrozenSet, Iterable, Literal, Optional, Tuple

from ..keys import normalize_key

__all__ = [
    "DEFAULT_PLATFORMS",
    "ParameterType",
    "Parameter",
    "Section",
]

DEFAULT_PLATFORMS: FrozenSet[str] = frozenset({"iOS", "macOS", "tvOS", "watchOS"})

ParameterType = Literal["string", "boolean", "number", "array", "object"]

_SLUG = re.compile(r"^[a-z0-9]+$")


@dataclass(frozen=True)
class Parameter:
    """A single key documented by a section payload.

    Attributes:
        key: Payload key as it appears in a profile.
        name: Display name (usually equal to ``key``).
        type: Normalized value type.
        description: Plain-text description assembled from the documentation.
        required: Whether the key must be present.
        deprecated: Whether the vendor marks the key as deprecated.
        platforms: Platforms that accept the key.
        default_value: Documented default, when present.
        possible_values: Enumerated values, when documented.
        introduced_version: Earliest OS version supporting the key.
    """

    key: str
    name: str
    type: ParameterType = "string"
    description: str = ""
    required: bool = False
    deprecated: bool = False
    platforms: Tuple[str, ...] = ()
    default_value: Optional[Any] = None
    possible_values: Tuple[Any, ...] = ()
    introduced_version: Optional[str] = None

    def __post_init__(self) -> None:
        if not self.key:
            raise ValueError("parameter key must be non-empty")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "key": self.key,
            "name": self.name,
            "type": self.type,
            "description": self.description,
            "required": self.required,
            "deprecated": self.deprecated,
            "platforms": list(self.platforms),
            "defaultValue": self.default_value,
            "possibleValues": list(self.possible_values),
            "introducedVersion": self.introduced_version,
        }


@dataclass(frozen=True)
class Section:
    """A configurable unit derived from a topic record or the known-section catalogue.

    ``parent_section`` and ``parent_name`` are set exactly when
    ``is_sub_section`` is true, and ``parent_section`` never equals
    ``identifier``. ``parameters`` is empty at construction; use
    :meth:`with_parameters` to obtain a populated copy.
    """

    identifier: str
    name: str
    is_sub_section: bool = False
    parent_section: Optional[str] = None
    parent_name: Optional[str] = None
    platforms: FrozenSet[str] = field(default_factory=frozenset)
    is_synthetic: bool = False
    configuration_identifiers: Tuple[str, ...] = ()
    parameters: Tuple[Parameter, ...] = ()
    description: str = ""
    category: str = "Core"
    priority: str = "medium"
    anchor: Optional[str] = None
    config_type: Optional[str] = None
    deprecated: bool = False

    def __post_init__(self) -> None:
        if not _SLUG.match(self.identifier or ""):
            raise ValueError(
                f"section identifier must be a lowercase alphanumeric slug, got {self.identifier!r}"
            )
        if not self.name:
            raise ValueError("section name must be non-empty")
        if self.is_sub_section:
            if not self.parent_section or not self.parent_name:
                raise ValueError(f"sub-section {self.identifier!r} requires parent fields")
            if normalize_key(self.parent_section) == normalize_key(self.identifier):
                raise ValueError(f"section {self.identifier!r} cannot be its own parent")
        elif self.parent_section is not None or self.parent_name is not None:
            raise ValueError(f"top-level section {self.identifier!r} cannot carry parent fields")
        if not isinstance(self.platforms, frozenset):
            object.__setattr__(self, "platforms", frozenset(self.platforms))
        if not isinstance(self.configuration_identifiers, tuple):
            object.__setattr__(
                self, "configuration_identifiers", tuple(self.configuration_identifiers)
            )

    @property
    def document_name(self) -> str:
        """Logical name used to request this section's document."""

        return self.identifier

    def with_parameters(self, parameters: Iterable[Parameter]) -> "Section":
        return replace(self, parameters=tuple(parameters))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "identifier": self.identifier,
            "name": self.name,
            "isSubSection": self.is_sub_section,
            "parentSection": self.parent_section,
            "parentName": self.parent_name,
            "platforms": sorted(self.platforms),
            "isSynthetic": self.is_synthetic,
            "configurationIdentifiers": list(self.configuration_identifiers),
            "parameters": [parameter.to_dict() for parameter in self.parameters],
            "description": self.description,
            "category": self.category,
            "priority": self.priority,
            "anchor": self.anchor,
            "configType": self.config_type,
            "deprecated": self.deprecated,
        }
