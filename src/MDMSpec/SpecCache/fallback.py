"""Built-in stand-in documents served when every other tier fails.

The main-specification stand-in is a small but structurally valid document,
so the section builder still produces a usable hierarchy offline. A few
common sections ship stand-in parameter lists; any other section resolves to
an empty document.
"""

from __future__ import annotations

import copy
from typing import Any, Dict, List, Optional

from ..keys import MAIN_SPEC_NAME, normalize_section_name

__all__ = ["FALLBACK_MAIN_SPEC", "FALLBACK_SECTIONS", "empty_section_document", "fallback_document"]

_DOC_PREFIX = "doc://com.apple.devicemanagement/documentation/DeviceManagement/"


def _topic_reference(name: str, abstract: str, platforms: List[str]) -> Dict[str, Any]:
    return {
        "type": "topic",
        "kind": "symbol",
        "title": name,
        "abstract": [{"type": "text", "text": abstract}],
        "platforms": platforms,
        "deprecated": False,
        "url": f"/documentation/devicemanagement/{name.lower()}",
    }


def _topic(title: str, *types: str) -> Dict[str, Any]:
    return {"title": title, "anchor": title, "identifiers": [_DOC_PREFIX + name for name in types]}


FALLBACK_MAIN_SPEC: Dict[str, Any] = {
    "metadata": {"title": "Profile-Specific Payload Keys", "role": "collectionGroup", "fallback": True},
    "references": {
        _DOC_PREFIX + "WiFi": _topic_reference("WiFi", "Configure WiFi network settings for devices", ["iOS", "macOS", "tvOS"]),
        _DOC_PREFIX + "VPN": _topic_reference("VPN", "Configure VPN connection settings", ["iOS", "macOS"]),
        _DOC_PREFIX + "Mail": _topic_reference("Mail", "Configure email account settings", ["iOS", "macOS"]),
        _DOC_PREFIX + "Restrictions": _topic_reference(
            "Restrictions", "Configure device restrictions and parental controls", ["iOS", "macOS", "tvOS"]
        ),
        _DOC_PREFIX + "Passcode": _topic_reference("Passcode", "Configure passcode and security requirements", ["iOS", "macOS"]),
        _DOC_PREFIX + "CertificateRoot": _topic_reference(
            "CertificateRoot", "Configure certificate settings for device authentication", ["iOS", "macOS", "tvOS"]
        ),
        _DOC_PREFIX + "CalDAV": _topic_reference("CalDAV", "Configure calendar account settings", ["iOS", "macOS"]),
        _DOC_PREFIX + "CardDAV": _topic_reference("CardDAV", "Configure contacts account settings", ["iOS", "macOS"]),
    },
    "topicSections": [
        _topic("Networking", "WiFi", "VPN"),
        _topic("Mail", "Mail"),
        _topic("Security", "Restrictions", "Passcode"),
        _topic("Certificates", "CertificateRoot"),
        _topic("Accounts", "CalDAV", "CardDAV"),
    ],
}


def _symbol(title: str, value_type: str, abstract: str, platforms: List[str], **extra: Any) -> Dict[str, Any]:
    return {
        "kind": "symbol",
        "type": value_type,
        "title": title,
        "abstract": abstract,
        "platforms": platforms,
        "required": extra.pop("required", False),
        **extra,
    }


def _section(symbols: Dict[str, Dict[str, Any]]) -> Dict[str, Any]:
    return {"topicSections": [{"identifiers": list(symbols)}], "references": symbols}


_TV = ["iOS", "macOS", "tvOS"]
_IM = ["iOS", "macOS"]

FALLBACK_SECTIONS: Dict[str, Dict[str, Any]] = {
    "wifi": _section(
        {
            "wifi-ssid": _symbol("SSID_STR", "String", "The network name (SSID) of the WiFi network", _TV, required=True),
            "wifi-password": _symbol("Password", "String", "The password for the WiFi network", _TV),
            "wifi-security": _symbol(
                "EncryptionType",
                "String",
                "The encryption type for the WiFi network",
                _TV,
                possibleValues=["None", "WEP", "WPA", "WPA2", "WPA3"],
            ),
            "wifi-hidden": _symbol("IsHiddenNetwork", "Boolean", "Whether the network is hidden", _TV),
        }
    ),
    "vpn": _section(
        {
            "vpn-type": _symbol(
                "VPNType",
                "String",
                "The type of VPN connection",
                _IM,
                required=True,
                possibleValues=["L2TP", "PPTP", "IPSec", "IKEv2", "AlwaysOn"],
            ),
            "vpn-server": _symbol("RemoteAddress", "String", "The server address for the VPN connection", _IM, required=True),
            "vpn-username": _symbol("UserName", "String", "The username for VPN authentication", _IM),
            "vpn-password": _symbol("Password", "String", "The password for VPN authentication", _IM),
        }
    ),
    "passcode": _section(
        {
            "passcode-simple": _symbol("allowSimple", "Boolean", "Whether simple passcodes are allowed", _IM),
            "passcode-length": _symbol("minLength", "Integer", "Minimum number of passcode characters", _IM),
            "passcode-age": _symbol("maxPINAgeInDays", "Integer", "Days after which the passcode must change", _IM),
        }
    ),
    "restrictions": _section(
        {
            "restrictions-camera": _symbol("allowCamera", "Boolean", "Whether the camera is available", _TV),
            "restrictions-screenshot": _symbol("allowScreenShot", "Boolean", "Whether screenshots are allowed", _TV),
            "restrictions-appinstall": _symbol("allowAppInstallation", "Boolean", "Whether users may install apps", _IM),
        }
    ),
}


def empty_section_document() -> Dict[str, Any]:
    return {"topicSections": [], "references": {}, "metadata": {"fallback": True}}


def _lookup_section(name: str) -> Optional[Dict[str, Any]]:
    if name in FALLBACK_SECTIONS:
        return FALLBACK_SECTIONS[name]
    for key, document in FALLBACK_SECTIONS.items():
        if key in name or name in key:
            return document
    return None


def fallback_document(name: str) -> Dict[str, Any]:
    """Return a fresh copy of the stand-in document for ``name``."""

    key = normalize_section_name(name)
    if key == MAIN_SPEC_NAME:
        return copy.deepcopy(FALLBACK_MAIN_SPEC)
    document = _lookup_section(key) if key else None
    if document is None:
        return empty_section_document()
    return copy.deepcopy(document)
