"""Configuration-type extraction from documentation cross-references.

Topic records reference their members with opaque strings such as
``doc://com.apple.devicemanagement/documentation/DeviceManagement/CalDAV``.
Only the trailing segment is meaningful here: it names the configuration
type that becomes a sub-section.
"""

from __future__ import annotations

import re
from typing import Optional

__all__ = [
    "STRUCTURAL_SEGMENTS",
    "BRAND_SPELLINGS",
    "extract_config_type",
    "format_config_type_name",
]

_DOC_PATH = re.compile(r"/DeviceManagement/([^/]+)$")

STRUCTURAL_SEGMENTS = frozenset({"DeviceManagement", "documentation", "com.apple.devicemanagement"})

BRAND_SPELLINGS = {
    "CalDAV": "CalDAV",
    "CardDAV": "CardDAV",
    "LDAP": "LDAP",
    "VPN": "VPN",
    "WiFi": "WiFi",
    "AirPlay": "AirPlay",
    "AirPrint": "AirPrint",
}

_WORD_BOUNDARY = re.compile(r"(?<=[a-z0-9])(?=[A-Z])|(?<=[A-Z])(?=[A-Z][a-z])")
_SEPARATORS = re.compile(r"[\s_\-]+")


def extract_config_type(ref: object) -> Optional[str]:
    """Return the configuration-type name referenced by ``ref``.

    Returns ``None`` for non-string or empty input and for references whose
    final segment is a structural path token. Never raises.
    """

    if not isinstance(ref, str) or not ref:
        return None
    match = _DOC_PATH.search(ref)
    if match:
        return match.group(1)
    segment = ref.rsplit("/", 1)[-1]
    if not segment or segment in STRUCTURAL_SEGMENTS:
        return None
    return segment


def format_config_type_name(name: str) -> str:
    """Space out a compact configuration-type name for display.

    >>> format_config_type_name("GoogleAccount")
    'Google Account'
    >>> format_config_type_name("DNSSettings")
    'DNS Settings'
    """

    if not name:
        return "Unknown Configuration"
    if name in BRAND_SPELLINGS:
        return BRAND_SPELLINGS[name]
    spaced = _SEPARATORS.sub(" ", _WORD_BOUNDARY.sub(" ", name)).strip()
    return spaced[:1].upper() + spaced[1:]
