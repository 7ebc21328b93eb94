"""Local stores backing the persisted-file tier.

Two stores live on disk:

- :class:`CacheFileStore` is the read-only directory populated by the
  scheduled cache job. It is addressed through ``manifest.json``; files the
  manifest does not list are never read.
- :class:`SnapshotStore` holds documents the resolver fetched from the
  network itself, wrapped in ``{"data", "timestamp", "version"}`` envelopes
  and discarded once older than the configured cache duration.
"""

from __future__ import annotations

import hashlib
import json
import logging
from datetime import datetime, timedelta
from pathlib import Path
from typing import Any, Dict, List, Optional

from platformdirs import user_cache_dir

from ..errors import TierUnavailable
from ..io import format_timestamp, parse_iso_datetime, read_json, utc_now, write_json_atomic
from ..keys import document_filename
from .manifest import MANIFEST_FILENAME, CacheManifest, load_manifest_file

LOGGER = logging.getLogger(__name__)

__all__ = [
    "SNAPSHOT_VERSION",
    "default_cache_dir",
    "default_snapshot_dir",
    "CacheFileStore",
    "SnapshotStore",
]

SNAPSHOT_VERSION = "1.0.0"


def default_cache_dir() -> Path:
    return Path(user_cache_dir("mdmspec", appauthor=False)) / "cache"


def default_snapshot_dir() -> Path:
    return Path(user_cache_dir("mdmspec", appauthor=False)) / "snapshots"


class CacheFileStore:
    """Manifest-addressed, read-only JSON blob store."""

    def __init__(self, root: Optional[Path] = None) -> None:
        self.root = root if root is not None else default_cache_dir()

    @property
    def manifest_path(self) -> Path:
        return self.root / MANIFEST_FILENAME

    def load_manifest(self) -> Optional[CacheManifest]:
        return load_manifest_file(self.manifest_path)

    def read(
        self,
        name: str,
        manifest: Optional[CacheManifest],
        *,
        verify_checksum: bool = False,
    ) -> Any:
        """Return the parsed document for ``name``.

        Raises:
            TierUnavailable: If there is no manifest, the manifest does not
                list the file, or the file cannot be read, parsed, or verified.
        """

        filename = document_filename(name)
        if manifest is None:
            raise TierUnavailable("persisted", name, "no cache manifest")
        entry = manifest.entry(filename)
        if entry is None:
            raise TierUnavailable("persisted", name, f"{filename} not listed in manifest")
        path = self.root / filename
        try:
            raw = path.read_bytes()
        except OSError as exc:
            raise TierUnavailable("persisted", name, f"cannot read {path}: {exc}") from exc
        if verify_checksum and entry.checksum:
            digest = hashlib.sha256(raw).hexdigest()
            if digest != entry.checksum:
                raise TierUnavailable("persisted", name, f"checksum mismatch for {filename}")
        try:
            document = json.loads(raw.decode("utf-8"))
        except (UnicodeDecodeError, ValueError) as exc:
            raise TierUnavailable("persisted", name, f"invalid JSON in {filename}: {exc}") from exc
        LOGGER.debug(
            "read %s from cache files (%d bytes)",
            filename,
            len(raw),
            extra={"stage": "resolve", "tier": "persisted", "document": name},
        )
        return document


class SnapshotStore:
    """Write-back store for network results with age-based expiry.

    Args:
        root: Directory holding one envelope file per document.
        max_age: Entries older than this are treated as absent and removed.
    """

    def __init__(self, root: Optional[Path] = None, *, max_age: timedelta = timedelta(hours=24)) -> None:
        self.root = root if root is not None else default_snapshot_dir()
        self.max_age = max_age

    def _path(self, name: str) -> Path:
        return self.root / document_filename(name)

    def read(
        self,
        name: str,
        *,
        now: Optional[datetime] = None,
        max_age: Optional[timedelta] = None,
    ) -> Optional[Any]:
        """Return the stored document for ``name`` unless absent, corrupt, or expired."""

        path = self._path(name)
        if not path.exists():
            return None
        try:
            envelope = read_json(path)
        except (OSError, ValueError) as exc:
            LOGGER.warning(
                "discarding unreadable snapshot %s: %s",
                path,
                exc,
                extra={"stage": "snapshot", "document": name},
            )
            self._discard(path)
            return None
        if not isinstance(envelope, dict) or "data" not in envelope:
            self._discard(path)
            return None
        stored_at = parse_iso_datetime(envelope.get("timestamp"))
        current = now or utc_now()
        limit = max_age if max_age is not None else self.max_age
        if stored_at is None or current - stored_at >= limit:
            LOGGER.debug(
                "snapshot for %s expired", name, extra={"stage": "snapshot", "document": name}
            )
            self._discard(path)
            return None
        return envelope["data"]

    def write(self, name: str, document: Any, *, now: Optional[datetime] = None) -> Path:
        envelope = {
            "data": document,
            "timestamp": format_timestamp(now or utc_now()),
            "version": SNAPSHOT_VERSION,
        }
        return write_json_atomic(self._path(name), envelope)

    def remove(self, name: str) -> None:
        self._discard(self._path(name))

    def clear(self) -> int:
        """Delete every snapshot; return how many files were removed."""

        if not self.root.exists():
            return 0
        removed = 0
        for path in self.root.glob("*.json"):
            self._discard(path)
            removed += 1
        return removed

    def stats(self) -> Dict[str, Any]:
        files: List[Path] = sorted(self.root.glob("*.json")) if self.root.exists() else []
        return {
            "entries": len(files),
            "bytes": sum(path.stat().st_size for path in files),
            "max_age_s": self.max_age.total_seconds(),
        }

    @staticmethod
    def _discard(path: Path) -> None:
        try:
            path.unlink(missing_ok=True)
        except OSError as exc:
            LOGGER.warning("could not remove %s: %s", path, exc, extra={"stage": "snapshot"})
