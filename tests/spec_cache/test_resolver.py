"""Tier ordering, fallbacks, and write-back in the cache tier resolver.

Test Coverage:
- Cache-first mode answers from persisted files without touching the network
- Network-first mode consults the network before persisted files
- Exhausted tiers yield schema-valid fallbacks that are not memoized
- force_refresh bypasses memory; network results are snapshotted
- The manifest is loaded once even under concurrent first calls
"""

from __future__ import annotations

import asyncio
import json
from pathlib import Path
from typing import Callable, List

import httpx

from MDMSpec.keys import MAIN_SPEC_NAME
from MDMSpec.SectionHierarchy.builder import build_sections_from_document
from MDMSpec.SectionHierarchy.topics import validate_spec_document
from MDMSpec.SpecCache.resolver import CacheTierResolver
from MDMSpec.SpecCache.store import SnapshotStore
from tests.conftest import ScriptedHTTP, main_spec, topic, write_cache_files

MAIN_FILE = f"{MAIN_SPEC_NAME}.json"
CACHED_SPEC = main_spec(topic("Accounts", "CalDAV"))
LIVE_SPEC = main_spec(topic("Networking", "WiFi", "VPN"))

ResolverFactory = Callable[..., CacheTierResolver]


def _tiers(entry) -> List[str]:
    return [attempt.tier for attempt in entry.attempts]


def test_cache_first_skips_network(
    tmp_path: Path, make_resolver: ResolverFactory, http: ScriptedHTTP
) -> None:
    write_cache_files(tmp_path / "cache", {MAIN_SPEC_NAME: CACHED_SPEC})
    http.json(MAIN_FILE, LIVE_SPEC)
    resolver = make_resolver()

    async def scenario():
        first = await resolver.resolve_entry(MAIN_SPEC_NAME)
        second = await resolver.resolve_entry(MAIN_SPEC_NAME)
        return first, second

    first, second = asyncio.run(scenario())

    assert first.tier == "persisted"
    assert first.document == CACHED_SPEC
    assert http.requests == []
    assert resolver.in_memory(MAIN_SPEC_NAME)
    assert second.tier == "memory"
    assert _tiers(second) == ["memory"]


def test_network_first_mode(
    tmp_path: Path, make_resolver: ResolverFactory, http: ScriptedHTTP
) -> None:
    write_cache_files(tmp_path / "cache", {MAIN_SPEC_NAME: CACHED_SPEC})
    http.json(MAIN_FILE, LIVE_SPEC)
    resolver = make_resolver(prefer_cache=False)

    async def scenario():
        entry = await resolver.resolve_entry(MAIN_SPEC_NAME)
        await resolver.drain()
        return entry

    entry = asyncio.run(scenario())

    assert entry.tier == "network"
    assert entry.document == LIVE_SPEC
    assert _tiers(entry) == ["memory", "network"]
    assert http.calls_for(MAIN_FILE) == 1
    assert SnapshotStore(tmp_path / "snapshots").read(MAIN_SPEC_NAME) == LIVE_SPEC


def test_network_failure_falls_through_to_persisted(
    tmp_path: Path, make_resolver: ResolverFactory, http: ScriptedHTTP, sleeps: List[float]
) -> None:
    write_cache_files(tmp_path / "cache", {MAIN_SPEC_NAME: CACHED_SPEC})
    http.script(MAIN_FILE, httpx.Response(503))
    resolver = make_resolver(prefer_cache=False, retry_attempts=2)

    entry = asyncio.run(resolver.resolve_entry(MAIN_SPEC_NAME))

    assert entry.tier == "persisted"
    assert _tiers(entry) == ["memory", "network", "persisted"]
    assert entry.network_attempts == 3
    assert entry.attempts[1].outcome == "error"
    assert len(sleeps) == 2
    assert resolver.diagnostics.of_kind("tier_unavailable")[0].fields["tier"] == "network"


def test_persisted_miss_falls_through_to_network(
    tmp_path: Path, make_resolver: ResolverFactory, http: ScriptedHTTP
) -> None:
    write_cache_files(tmp_path / "cache", {"accounts": {"topicSections": []}})
    http.json(MAIN_FILE, LIVE_SPEC)
    resolver = make_resolver()

    entry = asyncio.run(resolver.resolve_entry(MAIN_SPEC_NAME))

    assert entry.tier == "network"
    assert _tiers(entry) == ["memory", "persisted", "network"]
    assert entry.attempts[1].outcome == "miss"


def test_exhausted_tiers_yield_valid_fallback(make_resolver: ResolverFactory) -> None:
    resolver = make_resolver()

    async def scenario():
        first = await resolver.resolve_entry(MAIN_SPEC_NAME)
        second = await resolver.resolve_entry(MAIN_SPEC_NAME)
        return first, second

    first, second = asyncio.run(scenario())

    assert first.from_fallback
    validate_spec_document(first.document)
    assert first.document["metadata"]["fallback"] is True
    assert build_sections_from_document(first.document, include_known_missing=False)
    assert not resolver.in_memory(MAIN_SPEC_NAME)
    assert second.tier == "fallback"
    assert len(resolver.diagnostics.of_kind("fallback_used")) == 2


def test_fallback_documents_are_independent_copies(make_resolver: ResolverFactory) -> None:
    resolver = make_resolver(use_live_source=False)

    async def scenario():
        first = await resolver.resolve_main_spec()
        first["topicSections"].clear()
        return await resolver.resolve_main_spec()

    assert asyncio.run(scenario())["topicSections"]


def test_section_fallback(make_resolver: ResolverFactory, http: ScriptedHTTP) -> None:
    resolver = make_resolver(use_live_source=False, cache_enabled=False)

    async def scenario():
        return (
            await resolver.resolve_entry("wifi"),
            await resolver.resolve_entry("unknownpayload"),
        )

    wifi, unknown = asyncio.run(scenario())

    assert wifi.from_fallback
    assert "wifi-ssid" in wifi.document["references"]
    assert unknown.document["topicSections"] == []
    assert [a.outcome for a in wifi.attempts] == ["miss", "skipped", "skipped", "hit"]
    assert http.requests == []


def test_invalid_main_spec_counts_as_unavailable(
    make_resolver: ResolverFactory, http: ScriptedHTTP
) -> None:
    http.json(MAIN_FILE, {"topicSections": "nope"})
    resolver = make_resolver()

    entry = asyncio.run(resolver.resolve_entry(MAIN_SPEC_NAME))

    assert entry.from_fallback
    assert "topicSections" in entry.attempts[2].reason


def test_force_refresh_bypasses_memory(
    tmp_path: Path, make_resolver: ResolverFactory, http: ScriptedHTTP
) -> None:
    http.script(
        MAIN_FILE,
        httpx.Response(200, json=CACHED_SPEC),
        httpx.Response(200, json=LIVE_SPEC),
    )
    resolver = make_resolver(cache_enabled=False)

    async def scenario():
        first = await resolver.resolve(MAIN_SPEC_NAME)
        cached = await resolver.resolve(MAIN_SPEC_NAME)
        refreshed = await resolver.resolve_entry(MAIN_SPEC_NAME, force_refresh=True)
        return first, cached, refreshed

    first, cached, refreshed = asyncio.run(scenario())

    assert first == cached == CACHED_SPEC
    assert refreshed.document == LIVE_SPEC
    assert refreshed.attempts[0].outcome == "skipped"
    assert http.calls_for(MAIN_FILE) == 2
    assert not (tmp_path / "snapshots").exists()


def test_snapshot_serves_when_manifest_lacks_entry(
    tmp_path: Path, make_resolver: ResolverFactory
) -> None:
    SnapshotStore(tmp_path / "snapshots").write("mail", {"topicSections": [], "references": {}})
    resolver = make_resolver(use_live_source=False)

    entry = asyncio.run(resolver.resolve_entry("mail"))

    assert entry.tier == "persisted"
    assert entry.document == {"topicSections": [], "references": {}}


def test_checksum_verification(tmp_path: Path, make_resolver: ResolverFactory) -> None:
    root = write_cache_files(tmp_path / "cache", {"accounts": {"ok": True}})
    (root / "accounts.json").write_text(json.dumps({"ok": False}), encoding="utf-8")
    resolver = make_resolver(use_live_source=False, verify_checksums=True)

    entry = asyncio.run(resolver.resolve_entry("accounts"))

    assert entry.from_fallback
    assert "checksum mismatch" in entry.attempts[1].reason


def test_resolve_section_normalizes_identifier(
    tmp_path: Path, make_resolver: ResolverFactory
) -> None:
    write_cache_files(tmp_path / "cache", {"accounts": {"topicSections": []}})
    resolver = make_resolver(use_live_source=False)

    document = asyncio.run(resolver.resolve_section("  Accounts.json "))

    assert document == {"topicSections": []}
    assert resolver.in_memory("accounts")


def test_manifest_loaded_once_for_concurrent_calls(
    tmp_path: Path, make_resolver: ResolverFactory
) -> None:
    write_cache_files(tmp_path / "cache", {"accounts": {}, "mail": {}, "vpn": {}})
    resolver = make_resolver(use_live_source=False)
    calls: List[int] = []
    original = resolver.cache_files.load_manifest

    def counting_load():
        calls.append(1)
        return original()

    resolver.cache_files.load_manifest = counting_load  # type: ignore[method-assign]

    async def scenario():
        return await asyncio.gather(*(resolver.resolve(name) for name in ("accounts", "mail", "vpn")))

    assert asyncio.run(scenario()) == [{}, {}, {}]
    assert calls == [1]


def test_cache_stats_and_maintenance(tmp_path: Path, make_resolver: ResolverFactory) -> None:
    write_cache_files(tmp_path / "cache", {"accounts": {}, "mail": {}})
    resolver = make_resolver(use_live_source=False)

    assert resolver.cache_stats()["manifest_loaded"] is False

    async def scenario():
        await resolver.resolve("accounts")
        await resolver.resolve("mail")
        stats = resolver.cache_stats()
        fresh = await resolver.is_cache_fresh()
        await resolver.aclose()
        return stats, fresh

    stats, fresh = asyncio.run(scenario())

    assert stats["manifest_loaded"] is True
    assert stats["total_files"] == 2
    assert stats["memory_keys"] == ["accounts", "mail"]
    assert stats["fresh"] is True
    assert stats["generated_at"].endswith("Z")
    assert fresh is True

    assert resolver.clear_memory_cache() == 2
    resolver.reinitialize()
    assert resolver.cache_stats()["manifest_loaded"] is False


def test_freshness_ignores_snapshot_duration(
    tmp_path: Path, make_resolver: ResolverFactory
) -> None:
    write_cache_files(tmp_path / "cache", {"accounts": {}})
    resolver = make_resolver(use_live_source=False, cache_duration_ms=60_000)

    async def scenario():
        await resolver.resolve("accounts")
        return await resolver.is_cache_fresh(), resolver.cache_stats()["fresh"]

    assert asyncio.run(scenario()) == (True, True)
