# === NAVMAP v1 ===
# {
#   "module": "MDMSpec.SectionHierarchy.catalog",
#   "purpose": "Known-section catalogue, synthetic section merge, and section classification",
#   "sections": [
#     {"id": "knownsection", "name": "KnownSection", "anchor": "class-knownsection", "kind": "class"},
#     {"id": "merge-known-sections", "name": "merge_known_sections", "anchor": "function-merge-known-sections", "kind": "function"},
#     {"id": "classify-section", "name": "classify_section", "anchor": "function-classify-section", "kind": "function"}
#   ]
# }
# === /NAVMAP ===

"""Known-section catalogue and section classification.

The vendor's main specification regularly omits a handful of payload types
that administrators expect to configure. The catalogue below lists them so
the builder can inject synthetic sections for whichever ones the document
did not mention. The same module classifies every section into a category
and priority used by the presentation layer for grouping and filtering.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Tuple

from ..keys import normalize_key
from .models import Section

LOGGER = logging.getLogger(__name__)

__all__ = [
    "SECTION_CATEGORIES",
    "PRIORITY_LEVELS",
    "KnownSection",
    "KNOWN_SECTIONS",
    "SectionMetadata",
    "SECTION_METADATA",
    "merge_known_sections",
    "classify_section",
]

SECTION_CATEGORIES = (
    "Core",
    "Security",
    "Network",
    "Apps",
    "System",
    "Authentication",
    "Device",
    "UI",
    "Education",
)
PRIORITY_LEVELS = ("high", "medium", "low")

_ALL_PLATFORMS = ("iOS", "macOS", "tvOS", "watchOS")


@dataclass(frozen=True)
class KnownSection:
    """Catalogue entry for a section that may be missing from the vendor document."""

    name: str
    identifier: str
    description: str
    platforms: Tuple[str, ...]
    category: str
    priority: str
    identifiers: Tuple[str, ...]

    def __post_init__(self) -> None:
        if self.category not in SECTION_CATEGORIES:
            raise ValueError(f"unknown category {self.category!r} for {self.identifier}")
        if self.priority not in PRIORITY_LEVELS:
            raise ValueError(f"unknown priority {self.priority!r} for {self.identifier}")

    def to_section(self) -> Section:
        return Section(
            identifier=self.identifier,
            name=self.name,
            platforms=frozenset(self.platforms),
            is_synthetic=True,
            configuration_identifiers=self.identifiers,
            description=self.description,
            category=self.category,
            priority=self.priority,
            anchor=self.identifier,
        )


KNOWN_SECTIONS: Tuple[KnownSection, ...] = (
    KnownSection(
        name="Firewall",
        identifier="firewall",
        description="Configure macOS firewall settings and rules",
        platforms=("macOS",),
        category="Security",
        priority="high",
        identifiers=("com.apple.security.firewall", "Firewall"),
    ),
    KnownSection(
        name="VPN",
        identifier="vpn",
        description="Configure VPN connections and settings",
        platforms=("iOS", "macOS", "tvOS"),
        category="Network",
        priority="high",
        identifiers=("com.apple.vpn.managed", "VPN"),
    ),
    KnownSection(
        name="Certificate Trust Settings",
        identifier="certificatetrustsettings",
        description="Configure certificate trust policies",
        platforms=_ALL_PLATFORMS,
        category="Security",
        priority="medium",
        identifiers=("com.apple.security.certificatetrust", "CertificateTrustSettings"),
    ),
    KnownSection(
        name="Privacy Preferences Policy Control",
        identifier="privacypreferencespolicycontrol",
        description="Configure privacy and security preferences",
        platforms=("macOS",),
        category="Security",
        priority="medium",
        identifiers=("com.apple.TCC.configuration-profile-policy", "PrivacyPreferencesPolicy"),
    ),
    KnownSection(
        name="Software Update",
        identifier="softwareupdate",
        description="Configure automatic software update settings",
        platforms=_ALL_PLATFORMS,
        category="System",
        priority="high",
        identifiers=("com.apple.SoftwareUpdate", "SoftwareUpdate"),
    ),
    KnownSection(
        name="Content Filter",
        identifier="contentfilter",
        description="Configure web content filtering",
        platforms=("iOS", "macOS"),
        category="Security",
        priority="medium",
        identifiers=("com.apple.webcontent-filter", "ContentFilter"),
    ),
    KnownSection(
        name="DNS Settings",
        identifier="dnssettings",
        description="Configure DNS server settings",
        platforms=("iOS", "macOS", "tvOS"),
        category="Network",
        priority="medium",
        identifiers=("com.apple.dnsSettings.managed", "DNSSettings"),
    ),
    KnownSection(
        name="Managed App Configuration",
        identifier="managedappconfiguration",
        description="Configure settings for managed applications",
        platforms=("iOS", "macOS", "tvOS"),
        category="Apps",
        priority="high",
        identifiers=("com.apple.app.managed", "ManagedAppConfiguration"),
    ),
    KnownSection(
        name="Single Sign-On Extensions",
        identifier="singlesignonextensions",
        description="Configure Single Sign-On extensions",
        platforms=("iOS", "macOS"),
        category="Authentication",
        priority="medium",
        identifiers=("com.apple.extensiblesso", "SingleSignOnExtensions"),
    ),
    KnownSection(
        name="Associated Domains",
        identifier="associateddomains",
        description="Configure associated domains for apps",
        platforms=("iOS", "macOS", "tvOS"),
        category="Apps",
        priority="medium",
        identifiers=("com.apple.developer.associated-domains", "AssociatedDomains"),
    ),
)


def _is_present(known: KnownSection, sections: Iterable[Section]) -> bool:
    known_name = known.name.casefold()
    known_key = normalize_key(known.name)
    for existing in sections:
        if existing.identifier == known.identifier:
            return True
        if existing.name.casefold() == known_name:
            return True
        if normalize_key(existing.name) == known_key:
            return True
    return False


def merge_known_sections(
    sections: Iterable[Section],
    catalogue: Iterable[KnownSection] = KNOWN_SECTIONS,
) -> List[Section]:
    """Return synthetic sections for catalogue entries absent from ``sections``.

    An entry is considered present when any existing section shares its
    identifier, its display name (case-insensitively), or its normalized
    name. The result is empty when called on a list that already includes a
    previous merge's output.
    """

    existing = list(sections)
    additions: List[Section] = []
    for known in catalogue:
        if _is_present(known, existing) or _is_present(known, additions):
            continue
        additions.append(known.to_section())
        LOGGER.info(
            "added known section %s (%s)",
            known.name,
            known.category,
            extra={"stage": "merge", "section": known.identifier},
        )
    return additions


@dataclass(frozen=True)
class SectionMetadata:
    category: str
    priority: str


def _meta(category: str, priority: str) -> SectionMetadata:
    return SectionMetadata(category=category, priority=priority)


SECTION_METADATA: Dict[str, SectionMetadata] = {
    # core
    "toplevel": _meta("Core", "high"),
    "top level": _meta("Core", "high"),
    "accounts": _meta("Core", "high"),
    "restrictions": _meta("Core", "high"),
    "systemconfiguration": _meta("Core", "high"),
    "system configuration": _meta("Core", "high"),
    # security and privacy
    "security": _meta("Security", "high"),
    "securityandprivacy": _meta("Security", "high"),
    "security & privacy": _meta("Security", "high"),
    "firewall": _meta("Security", "high"),
    "certificatetrustsettings": _meta("Security", "medium"),
    "certificate trust settings": _meta("Security", "medium"),
    "privacypreferencespolicycontrol": _meta("Security", "medium"),
    "privacy preferences policy control": _meta("Security", "medium"),
    "contentfilter": _meta("Security", "medium"),
    "content filter": _meta("Security", "medium"),
    # network
    "vpn": _meta("Network", "high"),
    "dnssettings": _meta("Network", "medium"),
    "dns settings": _meta("Network", "medium"),
    "wifi": _meta("Network", "high"),
    "cellular": _meta("Network", "high"),
    "proxy": _meta("Network", "medium"),
    # apps
    "appstore": _meta("Apps", "high"),
    "app store": _meta("Apps", "high"),
    "managedappconfiguration": _meta("Apps", "high"),
    "managed app configuration": _meta("Apps", "high"),
    "associateddomains": _meta("Apps", "medium"),
    "associated domains": _meta("Apps", "medium"),
    "appmanagement": _meta("Apps", "high"),
    "app management": _meta("Apps", "high"),
    # system
    "softwareupdate": _meta("System", "high"),
    "software update": _meta("System", "high"),
    "systempreferences": _meta("System", "medium"),
    "system preferences": _meta("System", "medium"),
    "energysaver": _meta("System", "low"),
    "energy saver": _meta("System", "low"),
    "loginwindow": _meta("System", "medium"),
    "login window": _meta("System", "medium"),
    # authentication
    "singlesignonextensions": _meta("Authentication", "medium"),
    "single sign-on extensions": _meta("Authentication", "medium"),
    "activedirectory": _meta("Authentication", "medium"),
    "active directory": _meta("Authentication", "medium"),
    "kerberos": _meta("Authentication", "medium"),
    "ldap": _meta("Authentication", "medium"),
    # device
    "devicemanagement": _meta("Device", "high"),
    "device management": _meta("Device", "high"),
    "airprint": _meta("Device", "medium"),
    "airplay": _meta("Device", "medium"),
    "bluetooth": _meta("Device", "medium"),
    "camera": _meta("Device", "medium"),
    # ui
    "dock": _meta("UI", "low"),
    "finder": _meta("UI", "low"),
    "desktop": _meta("UI", "low"),
    "screensaver": _meta("UI", "low"),
    "screen saver": _meta("UI", "low"),
    # education
    "education": _meta("Education", "medium"),
    "classroom": _meta("Education", "medium"),
    "schoolwork": _meta("Education", "medium"),
}

_KEYWORD_RULES: Tuple[Tuple[Tuple[str, ...], SectionMetadata], ...] = (
    (("security", "privacy", "firewall", "certificate"), _meta("Security", "high")),
    (("network", "vpn", "wifi", "dns"), _meta("Network", "high")),
    (("app", "store"), _meta("Apps", "high")),
    (("system", "update"), _meta("System", "high")),
    (("auth", "login", "kerberos", "ldap"), _meta("Authentication", "medium")),
    (("device", "bluetooth", "camera", "print"), _meta("Device", "medium")),
    (("dock", "finder", "desktop", "screen"), _meta("UI", "low")),
    (("education", "classroom", "school"), _meta("Education", "medium")),
)

_DEFAULT_METADATA = _meta("Core", "medium")


def classify_section(name: Optional[str], identifier: Optional[str] = None) -> SectionMetadata:
    """Return the category and priority for a section.

    Lookup order: exact identifier, exact lower-cased name, substring match
    against the table keys, then keyword rules. Unknown sections default to
    ``Core``/``medium``.
    """

    section_name = (name or "").strip().lower()
    section_id = (identifier or "").strip().lower()

    metadata = SECTION_METADATA.get(section_id) or SECTION_METADATA.get(section_name)
    if metadata is not None:
        return metadata
    if not section_name:
        return _DEFAULT_METADATA

    for key, candidate in SECTION_METADATA.items():
        if key in section_name or section_name in key:
            return candidate

    for keywords, candidate in _KEYWORD_RULES:
        if any(keyword in section_name for keyword in keywords):
            return candidate
    return _DEFAULT_METADATA
