"""Network source retry, backoff, and response validation."""

from __future__ import annotations

import asyncio
from typing import List

import httpx
import pytest

from MDMSpec.errors import SourceFetchError
from MDMSpec.SpecCache.config import ResolverSettings
from MDMSpec.SpecCache.network import NetworkSource, build_async_retrying, is_retryable
from tests.conftest import TEST_BASE_URL, ScriptedHTTP


def _settings(**overrides) -> ResolverSettings:
    values = {"retry_attempts": 3, "retry_delay_ms": 1, "request_timeout_ms": 1000}
    values.update(overrides)
    return ResolverSettings(**values)


def _source(http: ScriptedHTTP, sleeps: List[float]) -> NetworkSource:
    async def fake_sleep(seconds: float) -> None:
        sleeps.append(seconds)

    client = httpx.AsyncClient(transport=httpx.MockTransport(http))
    return NetworkSource(base_url=TEST_BASE_URL + "/", client=client, sleep=fake_sleep)


def test_url_for_normalizes_name() -> None:
    source = NetworkSource(base_url=TEST_BASE_URL)
    assert source.url_for(" Accounts.JSON ") == TEST_BASE_URL + "/accounts.json"


def test_transient_failures_then_success(http: ScriptedHTTP, sleeps: List[float]) -> None:
    http.script(
        "accounts.json",
        httpx.Response(503),
        httpx.Response(503),
        httpx.Response(200, json={"topicSections": []}),
    )
    source = _source(http, sleeps)

    result = asyncio.run(source.fetch("accounts", _settings()))

    assert result.document == {"topicSections": []}
    assert result.attempts == 3
    assert http.calls_for("accounts.json") == 3
    assert sleeps == pytest.approx([0.001, 0.002])


def test_retries_are_bounded(http: ScriptedHTTP, sleeps: List[float]) -> None:
    http.script("vpn.json", httpx.Response(500))
    source = _source(http, sleeps)

    with pytest.raises(SourceFetchError) as excinfo:
        asyncio.run(source.fetch("vpn", _settings(retry_attempts=2)))

    assert excinfo.value.status_code == 500
    assert excinfo.value.attempts == 3
    assert http.calls_for("vpn.json") == 3
    assert sleeps == pytest.approx([0.001, 0.002])


def test_not_found_is_not_retried(http: ScriptedHTTP, sleeps: List[float]) -> None:
    source = _source(http, sleeps)

    with pytest.raises(SourceFetchError) as excinfo:
        asyncio.run(source.fetch("missing", _settings()))

    assert excinfo.value.status_code == 404
    assert excinfo.value.retryable is False
    assert excinfo.value.attempts == 1
    assert sleeps == []


def test_non_json_content_type_is_final(http: ScriptedHTTP, sleeps: List[float]) -> None:
    http.script(
        "mail.json",
        httpx.Response(200, text="<html></html>", headers={"content-type": "text/html"}),
    )
    source = _source(http, sleeps)

    with pytest.raises(SourceFetchError, match="expected JSON"):
        asyncio.run(source.fetch("mail", _settings()))
    assert http.calls_for("mail.json") == 1


def test_transport_errors_are_retried(http: ScriptedHTTP, sleeps: List[float]) -> None:
    http.script(
        "wifi.json",
        httpx.ConnectError("connection refused"),
        httpx.ReadTimeout("read timed out"),
        httpx.Response(200, json={"ok": True}),
    )
    source = _source(http, sleeps)

    result = asyncio.run(source.fetch("wifi", _settings()))

    assert result.document == {"ok": True}
    assert result.attempts == 3


def test_slow_attempt_times_out(sleeps: List[float]) -> None:
    async def slow_handler(request: httpx.Request) -> httpx.Response:
        await asyncio.sleep(1)
        return httpx.Response(200, json={})

    async def fake_sleep(seconds: float) -> None:
        sleeps.append(seconds)

    client = httpx.AsyncClient(transport=httpx.MockTransport(slow_handler))
    source = NetworkSource(base_url=TEST_BASE_URL, client=client, sleep=fake_sleep)

    with pytest.raises(SourceFetchError, match="timed out") as excinfo:
        asyncio.run(source.fetch("slow", _settings(request_timeout_ms=10, retry_attempts=1)))
    assert excinfo.value.attempts == 2


@pytest.mark.parametrize(
    ("exc", "expected"),
    [
        (SourceFetchError("x", "HTTP 503", status_code=503), True),
        (SourceFetchError("x", "HTTP 404", status_code=404, retryable=False), False),
        (httpx.ConnectTimeout("slow"), True),
        (asyncio.TimeoutError(), True),
        (ValueError("nope"), False),
    ],
)
def test_is_retryable(exc: BaseException, expected: bool) -> None:
    assert is_retryable(exc) is expected


def test_retrying_controller_stops_after_configured_retries() -> None:
    retrying = build_async_retrying(_settings(retry_attempts=4))
    assert retrying.stop.max_attempt_number == 5
