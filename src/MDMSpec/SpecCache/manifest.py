"""Persisted-cache manifest model and the freshness gate.

The scheduled cache job writes ``manifest.json`` next to the cached section
files::

    {
      "generated_at": "2026-01-01T00:00:00Z",
      "total_files": 2,
      "files": {"accounts.json": {"size": 10, "modified": "...", "checksum": "ab12..."}}
    }

Freshness is advisory: stale files are still served, and the orchestrator
merely recommends a refresh.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta
from pathlib import Path
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from ..io import parse_iso_datetime, read_json, utc_now

LOGGER = logging.getLogger(__name__)

__all__ = [
    "MANIFEST_FILENAME",
    "FRESHNESS_WINDOW",
    "ManifestFileEntry",
    "CacheManifest",
    "parse_manifest",
    "load_manifest_file",
    "is_fresh",
]

MANIFEST_FILENAME = "manifest.json"
FRESHNESS_WINDOW = timedelta(hours=24)


class ManifestFileEntry(BaseModel):
    model_config = ConfigDict(extra="ignore", frozen=True)

    size: int = Field(default=0, ge=0)
    modified: Optional[datetime] = None
    checksum: Optional[str] = None

    @field_validator("modified", mode="before")
    @classmethod
    def _parse_modified(cls, value: Any) -> Optional[datetime]:
        return parse_iso_datetime(value)

    @field_validator("checksum", mode="before")
    @classmethod
    def _normalize_checksum(cls, value: Any) -> Optional[str]:
        if isinstance(value, str) and value.strip():
            return value.strip().lower()
        return None


class CacheManifest(BaseModel):
    """Contents and generation time of the persisted-file tier."""

    model_config = ConfigDict(extra="ignore", frozen=True)

    generated_at: Optional[datetime] = Field(
        default=None, description="When the cache job produced this snapshot (UTC)"
    )
    total_files: int = Field(default=0, ge=0)
    files: Dict[str, ManifestFileEntry] = Field(default_factory=dict)

    @field_validator("generated_at", mode="before")
    @classmethod
    def _parse_generated_at(cls, value: Any) -> Optional[datetime]:
        return parse_iso_datetime(value)

    def lists(self, filename: str) -> bool:
        return filename in self.files

    def entry(self, filename: str) -> Optional[ManifestFileEntry]:
        return self.files.get(filename)


def parse_manifest(payload: object) -> Optional[CacheManifest]:
    """Build a :class:`CacheManifest` from decoded JSON, or ``None`` if unusable."""

    if not isinstance(payload, dict):
        return None
    try:
        return CacheManifest.model_validate(payload)
    except ValidationError as exc:
        LOGGER.warning("invalid cache manifest: %s", exc, extra={"stage": "manifest"})
        return None


def load_manifest_file(path: Path) -> Optional[CacheManifest]:
    """Read and parse ``path``; a missing or unreadable file yields ``None``."""

    if not path.exists():
        LOGGER.info("no cache manifest at %s", path, extra={"stage": "manifest"})
        return None
    try:
        payload = read_json(path)
    except (OSError, ValueError) as exc:
        LOGGER.warning("unreadable cache manifest %s: %s", path, exc, extra={"stage": "manifest"})
        return None
    manifest = parse_manifest(payload)
    if manifest is not None:
        LOGGER.info(
            "loaded cache manifest with %d files",
            manifest.total_files or len(manifest.files),
            extra={"stage": "manifest"},
        )
    return manifest


def is_fresh(
    manifest: Optional[CacheManifest],
    *,
    now: Optional[datetime] = None,
    max_age: timedelta = FRESHNESS_WINDOW,
) -> bool:
    """Return ``True`` when ``manifest`` was generated less than ``max_age`` ago.

    An absent manifest or a missing/unparsable ``generated_at`` is not fresh.
    """

    if manifest is None or manifest.generated_at is None:
        return False
    current = parse_iso_datetime(now) if now is not None else utc_now()
    if current is None:
        return False
    return current - manifest.generated_at < max_age
