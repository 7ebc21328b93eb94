"""Identity helpers used wherever two section names must be compared."""

from __future__ import annotations

import re

__all__ = ["MAIN_SPEC_NAME", "normalize_key", "normalize_section_name", "document_filename"]

_NON_ALNUM = re.compile(r"[^a-z0-9]")


def normalize_key(value: object) -> str:
    """Lower-case ``value`` and drop every non-alphanumeric character.

    Non-string input normalizes to the empty string so callers can treat
    "no usable key" uniformly.
    """

    if not isinstance(value, str):
        return ""
    return _NON_ALNUM.sub("", value.lower())


def normalize_section_name(identifier: str) -> str:
    """Return the logical document name for a section identifier."""

    text = identifier.strip()
    if text.lower().endswith(".json"):
        text = text[: -len(".json")]
    return text.strip().lower()


MAIN_SPEC_NAME = "profile-specific-payload-keys"


def document_filename(name: str) -> str:
    """Return the persisted filename for a logical document name."""

    return f"{normalize_section_name(name)}.json"
