# === NAVMAP v1 ===
# {
#   "module": "tests.conftest",
#   "purpose": "Shared pytest fixtures: documents, cache directories, HTTP doubles, resolvers",
#   "sections": [
#     {"id": "documents", "name": "Document builders", "anchor": "documents", "kind": "section"},
#     {"id": "scripted-http", "name": "ScriptedHTTP", "anchor": "class-scriptedhttp", "kind": "class"},
#     {"id": "fixtures", "name": "Fixtures", "anchor": "fixtures", "kind": "section"}
#   ]
# }
# === /NAVMAP ===

"""
Pytest Configuration

Shared fixtures for the section hierarchy and spec cache suites. Every
fixture is hermetic: configuration never reads the real environment or user
config directory, cache directories live under ``tmp_path``, and the network
tier runs on ``httpx.MockTransport``.
"""

from __future__ import annotations

import hashlib
import json
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Union

import httpx
import pytest

from MDMSpec.SpecCache.config import ConfigurationStore
from MDMSpec.SpecCache.network import NetworkSource
from MDMSpec.SpecCache.resolver import CacheTierResolver
from MDMSpec.SpecCache.store import CacheFileStore, SnapshotStore

DOC_PREFIX = "doc://com.apple.devicemanagement/documentation/DeviceManagement/"
TEST_BASE_URL = "https://docs.test/devicemanagement"

# --- documents ---------------------------------------------------------------


def topic(title: Optional[str], *types: str, anchor: Optional[str] = None) -> Dict[str, Any]:
    record: Dict[str, Any] = {"identifiers": [DOC_PREFIX + name for name in types]}
    if title is not None:
        record["title"] = title
    if anchor is not None:
        record["anchor"] = anchor
    return record


def main_spec(*topics: Dict[str, Any]) -> Dict[str, Any]:
    return {"topicSections": list(topics), "references": {}, "metadata": {"title": "test"}}


def properties_document(*names: str) -> Dict[str, Any]:
    return {
        "primaryContentSections": [
            {
                "kind": "properties",
                "items": [
                    {
                        "name": name,
                        "type": [{"kind": "text", "text": "string"}],
                        "required": False,
                        "content": [
                            {"type": "paragraph", "inlineContent": [{"type": "text", "text": f"{name} value"}]}
                        ],
                    }
                    for name in names
                ],
            }
        ]
    }


def write_cache_files(
    root: Path,
    documents: Dict[str, Any],
    *,
    generated_at: Optional[datetime] = None,
    manifest: bool = True,
) -> Path:
    """Write ``documents`` as ``<name>.json`` files plus a matching manifest."""

    root.mkdir(parents=True, exist_ok=True)
    files: Dict[str, Any] = {}
    for name, document in documents.items():
        raw = json.dumps(document).encode("utf-8")
        (root / f"{name}.json").write_bytes(raw)
        files[f"{name}.json"] = {
            "size": len(raw),
            "modified": "2026-01-01T00:00:00Z",
            "checksum": hashlib.sha256(raw).hexdigest(),
        }
    if manifest:
        stamp = generated_at or datetime.now(timezone.utc) - timedelta(hours=1)
        payload = {
            "generated_at": stamp.isoformat().replace("+00:00", "Z"),
            "total_files": len(files),
            "files": files,
        }
        (root / "manifest.json").write_text(json.dumps(payload), encoding="utf-8")
    return root


# --- HTTP doubles ------------------------------------------------------------

Scripted = Union[httpx.Response, Exception, Callable[[httpx.Request], httpx.Response]]


class ScriptedHTTP:
    """MockTransport handler replaying a per-path script of responses.

    Paths without a script answer 404. The last scripted entry repeats once
    the script is exhausted; responses are copied per request.
    """

    def __init__(self) -> None:
        self.requests: List[httpx.Request] = []
        self._scripts: Dict[str, List[Scripted]] = {}

    def script(self, filename: str, *steps: Scripted) -> "ScriptedHTTP":
        self._scripts[filename] = list(steps)
        return self

    def json(self, filename: str, document: Any) -> "ScriptedHTTP":
        return self.script(filename, httpx.Response(200, json=document))

    def calls_for(self, filename: str) -> int:
        return sum(1 for request in self.requests if request.url.path.endswith("/" + filename))

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        filename = request.url.path.rsplit("/", 1)[-1]
        steps = self._scripts.get(filename)
        if not steps:
            return httpx.Response(404, json={"error": "not found"})
        step = steps.pop(0) if len(steps) > 1 else steps[0]
        if isinstance(step, Exception):
            raise step
        if callable(step) and not isinstance(step, httpx.Response):
            return step(request)
        return httpx.Response(step.status_code, headers=step.headers, content=step.content)


# --- fixtures ----------------------------------------------------------------


@pytest.fixture(autouse=True)
def _isolate_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    import os

    for key in list(os.environ):
        if key.upper().startswith("MDMSPEC_"):
            monkeypatch.delenv(key, raising=False)


@pytest.fixture
def config_store(tmp_path: Path) -> ConfigurationStore:
    store = ConfigurationStore(override_path=tmp_path / "config" / "settings.json")
    store.set("retry_delay_ms", 1)
    return store


@pytest.fixture
def http() -> ScriptedHTTP:
    return ScriptedHTTP()


@pytest.fixture
def sleeps() -> List[float]:
    return []


@pytest.fixture
def make_resolver(
    tmp_path: Path, config_store: ConfigurationStore, http: ScriptedHTTP, sleeps: List[float]
) -> Callable[..., CacheTierResolver]:
    """Factory building a resolver over ``tmp_path`` stores and the scripted transport."""

    async def fake_sleep(seconds: float) -> None:
        sleeps.append(seconds)

    def factory(**overrides: Any) -> CacheTierResolver:
        for key, value in overrides.items():
            assert config_store.set(key, value), key
        client = httpx.AsyncClient(transport=httpx.MockTransport(http))
        return CacheTierResolver(
            config_store,
            cache_files=CacheFileStore(tmp_path / "cache"),
            snapshots=SnapshotStore(tmp_path / "snapshots"),
            network=NetworkSource(base_url=TEST_BASE_URL, client=client, sleep=fake_sleep),
        )

    return factory
