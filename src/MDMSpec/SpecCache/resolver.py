# === NAVMAP v1 ===
# {
#   "module": "MDMSpec.SpecCache.resolver",
#   "purpose": "Tiered document resolution: memory, persisted files, network, fallback",
#   "sections": [
#     {"id": "tierattempt", "name": "TierAttempt", "anchor": "class-tierattempt", "kind": "class"},
#     {"id": "resolveddocument", "name": "ResolvedDocument", "anchor": "class-resolveddocument", "kind": "class"},
#     {"id": "cachetierresolver", "name": "CacheTierResolver", "anchor": "class-cachetierresolver", "kind": "class"}
#   ]
# }
# === /NAVMAP ===

"""
Cache Tier Resolver

Resolves a logical document name (``profile-specific-payload-keys``,
``accounts``, ...) through an ordered chain of tiers:

1. memory: documents already resolved in this session
2. persisted: cache files listed in ``manifest.json``, then local snapshots
3. network: the live documentation endpoint, with retry and backoff
4. fallback: built-in stand-in documents, which always succeed

``prefer_cache`` swaps the order of tiers 2 and 3. Tiers run strictly one
after another; the first success wins and every attempt is recorded on the
returned :class:`ResolvedDocument`.

Design:
- The resolver never raises to its caller. Tier failures are logged,
  reported as diagnostics, and fall through.
- The manifest is loaded once per session through a shared task, so
  concurrent first calls wait on the same read.
- Network results are snapshotted in the background; :meth:`drain` waits
  for outstanding writes.
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, field
from datetime import timedelta
from typing import Any, Dict, List, Literal, Optional, Set, Tuple

from ..diagnostics import DiagnosticsRecorder
from ..errors import InvalidSpecStructure, TierUnavailable
from ..io import format_timestamp
from ..keys import MAIN_SPEC_NAME, normalize_section_name
from ..SectionHierarchy.topics import validate_spec_document
from .config import ConfigurationStore, ResolverSettings
from .fallback import fallback_document
from .manifest import FRESHNESS_WINDOW, CacheManifest, is_fresh
from .network import NetworkSource
from .store import CacheFileStore, SnapshotStore

LOGGER = logging.getLogger(__name__)

__all__ = ["TierName", "TierOutcome", "TierAttempt", "ResolvedDocument", "CacheTierResolver"]

TierName = Literal["memory", "persisted", "network", "fallback"]

TierOutcome = Literal[
    "hit",  # tier produced the document
    "miss",  # tier had nothing for this name
    "skipped",  # tier disabled by configuration or force_refresh
    "error",  # tier failed; resolution fell through
]


@dataclass(frozen=True)
class TierAttempt:
    """Record of one tier consulted during a resolution.

    Attributes:
        tier: Tier name.
        outcome: What happened.
        reason: Human-readable detail for misses, skips, and errors.
        elapsed_ms: Wall-clock time spent in the tier.
        network_attempts: HTTP attempts made (network tier only).
    """

    tier: TierName
    outcome: TierOutcome
    reason: str = ""
    elapsed_ms: float = 0.0
    network_attempts: int = 0

    def __post_init__(self) -> None:
        if self.elapsed_ms < 0:
            raise ValueError(f"elapsed_ms must be >= 0, got {self.elapsed_ms}")
        if self.network_attempts and self.tier != "network":
            raise ValueError("network_attempts only applies to the network tier")


@dataclass(frozen=True)
class ResolvedDocument:
    name: str
    document: Any
    tier: TierName
    attempts: Tuple[TierAttempt, ...] = field(default_factory=tuple)

    @property
    def from_fallback(self) -> bool:
        return self.tier == "fallback"

    @property
    def network_attempts(self) -> int:
        return sum(attempt.network_attempts for attempt in self.attempts)


def _elapsed_ms(start: float) -> float:
    return max(0.0, (time.monotonic() - start) * 1000.0)


class CacheTierResolver:
    """Resolve documents through memory, persisted, network, and fallback tiers.

    Args:
        config: Shared configuration store, read on every resolution.
        cache_files: Manifest-addressed store written by the cache job.
        snapshots: Local write-back store for network results.
        network: Live documentation source.
        diagnostics: Recorder receiving tier failures and fallback notices.

    Examples:
        >>> resolver = CacheTierResolver(ConfigurationStore())
        >>> spec = asyncio.run(resolver.resolve_main_spec())
    """

    def __init__(
        self,
        config: ConfigurationStore,
        *,
        cache_files: Optional[CacheFileStore] = None,
        snapshots: Optional[SnapshotStore] = None,
        network: Optional[NetworkSource] = None,
        diagnostics: Optional[DiagnosticsRecorder] = None,
    ) -> None:
        self.config = config
        self.cache_files = cache_files or CacheFileStore()
        self.snapshots = snapshots or SnapshotStore()
        self.network = network or NetworkSource()
        self.diagnostics = diagnostics or DiagnosticsRecorder()
        self._memory: Dict[str, Any] = {}
        self._manifest_task: Optional["asyncio.Future[Optional[CacheManifest]]"] = None
        self._pending_writes: Set["asyncio.Task[None]"] = set()

    # ----------------------------------------------------------------- manifest

    async def manifest(self) -> Optional[CacheManifest]:
        """Return the cache manifest, loading it on first use."""

        if self._manifest_task is None:
            self._manifest_task = asyncio.ensure_future(
                asyncio.to_thread(self.cache_files.load_manifest)
            )
        return await asyncio.shield(self._manifest_task)

    def _loaded_manifest(self) -> Optional[CacheManifest]:
        task = self._manifest_task
        if task is None or not task.done() or task.cancelled() or task.exception() is not None:
            return None
        return task.result()

    def reinitialize(self) -> None:
        """Forget the loaded manifest so the next resolution reads it again."""

        self._manifest_task = None
        LOGGER.info("resolver reinitialized", extra={"stage": "resolve"})

    async def is_cache_fresh(self) -> bool:
        """Whether the manifest is younger than 24 hours.

        ``cache_duration_ms`` bounds local snapshots only, not the manifest.
        """

        settings = self.config.snapshot()
        manifest = await self.manifest() if settings.cache_enabled else None
        return is_fresh(manifest, max_age=FRESHNESS_WINDOW)

    # -------------------------------------------------------------------- tiers

    async def _from_persisted(self, name: str, settings: ResolverSettings) -> Any:
        manifest = await self.manifest()
        try:
            return await asyncio.to_thread(
                self.cache_files.read, name, manifest, verify_checksum=settings.verify_checksums
            )
        except TierUnavailable as exc:
            snapshot = await asyncio.to_thread(
                self.snapshots.read,
                name,
                max_age=timedelta(milliseconds=settings.cache_duration_ms),
            )
            if snapshot is None:
                raise TierUnavailable("persisted", name, f"{exc.reason}; no fresh snapshot") from exc
            LOGGER.debug(
                "served %s from local snapshot",
                name,
                extra={"stage": "resolve", "tier": "persisted", "document": name},
            )
            return snapshot

    def _schedule_snapshot(self, name: str, document: Any) -> None:
        task = asyncio.get_running_loop().create_task(self._write_snapshot(name, document))
        self._pending_writes.add(task)
        task.add_done_callback(self._pending_writes.discard)

    async def _write_snapshot(self, name: str, document: Any) -> None:
        try:
            await asyncio.to_thread(self.snapshots.write, name, document)
        except (OSError, TypeError, ValueError) as exc:
            LOGGER.warning(
                "snapshot write failed for %s: %s",
                name,
                exc,
                extra={"stage": "snapshot", "document": name},
            )

    def _validate(self, name: str, tier: str, document: Any) -> Any:
        if name == MAIN_SPEC_NAME:
            try:
                validate_spec_document(document)
            except InvalidSpecStructure as exc:
                raise TierUnavailable(tier, name, str(exc)) from exc
        return document

    # --------------------------------------------------------------- resolution

    async def resolve_entry(self, name: str, *, force_refresh: bool = False) -> ResolvedDocument:
        """Resolve ``name`` and report which tier answered."""

        key = normalize_section_name(name)
        settings = self.config.snapshot()
        attempts: List[TierAttempt] = []

        if force_refresh:
            attempts.append(TierAttempt("memory", "skipped", "force_refresh"))
        elif key in self._memory:
            attempts.append(TierAttempt("memory", "hit"))
            return ResolvedDocument(key, self._memory[key], "memory", tuple(attempts))
        else:
            attempts.append(TierAttempt("memory", "miss"))

        order: Tuple[TierName, ...] = (
            ("persisted", "network") if settings.prefer_cache else ("network", "persisted")
        )
        for tier in order:
            if tier == "persisted" and not settings.cache_enabled:
                attempts.append(TierAttempt("persisted", "skipped", "cache disabled"))
                continue
            if tier == "network" and not settings.use_live_source:
                attempts.append(TierAttempt("network", "skipped", "live source disabled"))
                continue

            start = time.monotonic()
            network_attempts = 0
            try:
                if tier == "persisted":
                    document = await self._from_persisted(key, settings)
                else:
                    fetched = await self.network.fetch(key, settings)
                    network_attempts = fetched.attempts
                    document = fetched.document
                document = self._validate(key, tier, document)
            except TierUnavailable as exc:
                network_attempts = getattr(exc, "attempts", network_attempts)
                attempts.append(
                    TierAttempt(
                        tier,
                        "error" if tier == "network" else "miss",
                        exc.reason,
                        _elapsed_ms(start),
                        network_attempts if tier == "network" else 0,
                    )
                )
                LOGGER.info(
                    "%s", exc, extra={"stage": "resolve", "tier": tier, "document": key}
                )
                self.diagnostics.emit(
                    "tier_unavailable", str(exc), tier=tier, document=key, reason=exc.reason
                )
                continue
            except Exception as exc:  # pragma: no cover - unexpected tier failure
                LOGGER.exception(
                    "unexpected %s tier failure for %s",
                    tier,
                    key,
                    extra={"stage": "resolve", "tier": tier, "document": key},
                )
                attempts.append(TierAttempt(tier, "error", repr(exc), _elapsed_ms(start)))
                self.diagnostics.emit(
                    "tier_unavailable", f"{tier} tier failed: {exc!r}", tier=tier, document=key
                )
                continue

            attempts.append(
                TierAttempt(tier, "hit", "", _elapsed_ms(start), network_attempts)
            )
            self._memory[key] = document
            if tier == "network" and settings.cache_enabled:
                self._schedule_snapshot(key, document)
            LOGGER.info(
                "resolved %s from %s tier",
                key,
                tier,
                extra={"stage": "resolve", "tier": tier, "document": key},
            )
            return ResolvedDocument(key, document, tier, tuple(attempts))

        document = fallback_document(key)
        attempts.append(TierAttempt("fallback", "hit"))
        LOGGER.warning(
            "using built-in fallback for %s",
            key,
            extra={"stage": "resolve", "tier": "fallback", "document": key},
        )
        self.diagnostics.emit(
            "fallback_used", f"no tier could provide {key}; using built-in fallback", document=key
        )
        return ResolvedDocument(key, document, "fallback", tuple(attempts))

    async def resolve(self, name: str, *, force_refresh: bool = False) -> Any:
        """Return the document for ``name``; never raises."""

        entry = await self.resolve_entry(name, force_refresh=force_refresh)
        return entry.document

    async def resolve_main_spec(self, *, force_refresh: bool = False) -> Any:
        return await self.resolve(MAIN_SPEC_NAME, force_refresh=force_refresh)

    async def resolve_section(self, identifier: str, *, force_refresh: bool = False) -> Any:
        """Resolve a section document by identifier (``"Accounts"``, ``"accounts.json"``...)."""

        return await self.resolve(normalize_section_name(identifier), force_refresh=force_refresh)

    # -------------------------------------------------------------- maintenance

    def clear_memory_cache(self) -> int:
        count = len(self._memory)
        self._memory.clear()
        LOGGER.info("cleared %d memory entries", count, extra={"stage": "resolve", "tier": "memory"})
        return count

    def in_memory(self, name: str) -> bool:
        return normalize_section_name(name) in self._memory

    def cache_stats(self) -> Dict[str, Any]:
        manifest = self._loaded_manifest()
        generated_at = manifest.generated_at if manifest is not None else None
        return {
            "manifest_loaded": manifest is not None,
            "total_files": manifest.total_files if manifest is not None else 0,
            "memory_entries": len(self._memory),
            "memory_keys": sorted(self._memory),
            "generated_at": format_timestamp(generated_at) if generated_at else None,
            "fresh": is_fresh(manifest, max_age=FRESHNESS_WINDOW),
            "pending_writes": len(self._pending_writes),
        }

    async def drain(self) -> None:
        """Wait for background snapshot writes to finish."""

        while self._pending_writes:
            await asyncio.gather(*list(self._pending_writes))

    async def aclose(self) -> None:
        await self.drain()
        await self.network.aclose()
