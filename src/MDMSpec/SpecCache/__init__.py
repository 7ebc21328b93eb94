"""Tiered resolution of documentation JSON documents."""

from __future__ import annotations

from .config import ConfigurationStore, EnvironmentOverrides, ResolverSettings, default_override_path
from .fallback import fallback_document
from .manifest import CacheManifest, ManifestFileEntry, is_fresh, load_manifest_file, parse_manifest
from .network import DEFAULT_BASE_URL, FetchResult, NetworkSource, build_async_retrying, is_retryable
from .resolver import CacheTierResolver, ResolvedDocument, TierAttempt
from .store import CacheFileStore, SnapshotStore

__all__ = [
    "CacheFileStore",
    "CacheManifest",
    "CacheTierResolver",
    "ConfigurationStore",
    "DEFAULT_BASE_URL",
    "EnvironmentOverrides",
    "FetchResult",
    "ManifestFileEntry",
    "NetworkSource",
    "ResolvedDocument",
    "ResolverSettings",
    "SnapshotStore",
    "TierAttempt",
    "build_async_retrying",
    "default_override_path",
    "fallback_document",
    "is_fresh",
    "is_retryable",
    "load_manifest_file",
    "parse_manifest",
]
