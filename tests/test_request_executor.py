"""Request executor: time budget, failure taxonomy and encodings."""

import asyncio
import json
import time

import httpx
import pytest

from conftest import make_executor
from lifeease.models import FailureKind, RequestFailedError
from lifeease.services.request_executor import Encoding, EncodedRequest


def _get(endpoint="/health", timeout=5.0):
    return EncodedRequest(endpoint=endpoint, method="GET", timeout=timeout)


def test_success_returns_payload():
    async def run():
        async with make_executor(lambda request: httpx.Response(200, json={"status": "healthy"})) as executor:
            return await executor.execute(_get())

    outcome = asyncio.run(run())
    assert outcome.ok
    assert outcome.payload == {"status": "healthy"}
    assert outcome.unwrap() == {"status": "healthy"}


def test_http_status_failure_keeps_code_and_body():
    async def run():
        async with make_executor(lambda request: httpx.Response(503, text="model loading")) as executor:
            return await executor.execute(_get())

    outcome = asyncio.run(run())
    assert not outcome.ok
    assert outcome.kind is FailureKind.HTTP_STATUS
    assert outcome.status_code == 503
    assert outcome.detail == "model loading"
    with pytest.raises(RequestFailedError) as excinfo:
        outcome.unwrap()
    assert excinfo.value.outcome is outcome


def test_http_status_failure_with_empty_body():
    async def run():
        async with make_executor(lambda request: httpx.Response(404)) as executor:
            return await executor.execute(_get())

    outcome = asyncio.run(run())
    assert outcome.kind is FailureKind.HTTP_STATUS
    assert outcome.status_code == 404
    assert outcome.detail == "No response body"


def test_non_json_body_is_decode_failure_with_truncated_raw():
    raw = "<html>" + "x" * 1000

    async def run():
        async with make_executor(lambda request: httpx.Response(200, text=raw)) as executor:
            return await executor.execute(_get())

    outcome = asyncio.run(run())
    assert outcome.kind is FailureKind.DECODE
    assert outcome.detail == raw[:300]


def test_json_that_is_not_an_object_is_decode_failure():
    async def run():
        async with make_executor(lambda request: httpx.Response(200, json=["a", "b"])) as executor:
            return await executor.execute(_get())

    outcome = asyncio.run(run())
    assert outcome.kind is FailureKind.DECODE


def test_connection_error_is_transport_failure():
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    async def run():
        async with make_executor(handler) as executor:
            return await executor.execute(_get())

    outcome = asyncio.run(run())
    assert outcome.kind is FailureKind.TRANSPORT
    assert "connection refused" in outcome.detail


def test_budget_exceeded_cancels_and_reports_timeout():
    cancelled = []

    async def handler(request):
        try:
            await asyncio.sleep(10)
        except asyncio.CancelledError:
            cancelled.append(True)
            raise
        return httpx.Response(200, json={})

    async def run():
        async with make_executor(handler) as executor:
            started = time.monotonic()
            outcome = await executor.execute(_get(timeout=0.05))
            return outcome, time.monotonic() - started

    outcome, elapsed = asyncio.run(run())
    assert outcome.kind is FailureKind.TIMEOUT
    assert "budget exceeded" in outcome.detail
    assert elapsed < 2
    assert cancelled == [True]


def test_transport_level_timeout_maps_to_timeout():
    def handler(request):
        raise httpx.ReadTimeout("read timed out", request=request)

    async def run():
        async with make_executor(handler) as executor:
            return await executor.execute(_get())

    assert asyncio.run(run()).kind is FailureKind.TIMEOUT


def test_timeout_does_not_affect_other_in_flight_call():
    async def handler(request):
        if request.url.path == "/slow":
            await asyncio.sleep(10)
        else:
            await asyncio.sleep(0.1)
        return httpx.Response(200, json={"path": request.url.path})

    async def run():
        async with make_executor(handler) as executor:
            return await asyncio.gather(
                executor.execute(_get("/slow", timeout=0.05)),
                executor.execute(_get("/fast", timeout=5)),
            )

    slow, fast = asyncio.run(run())
    assert slow.kind is FailureKind.TIMEOUT
    assert fast.ok
    assert fast.payload == {"path": "/fast"}


def test_json_encoding_sends_json_body():
    seen = {}

    def handler(request):
        seen["content_type"] = request.headers["content-type"]
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json={})

    request = EncodedRequest(
        endpoint="/analyze-text",
        method="POST",
        encoding=Encoding.JSON,
        json_body={"text": "hello"},
        timeout=5,
    )

    async def run():
        async with make_executor(handler) as executor:
            return await executor.execute(request)

    assert asyncio.run(run()).ok
    assert seen["content_type"] == "application/json"
    assert seen["body"] == {"text": "hello"}


def test_query_encoding_sends_params():
    seen = {}

    def handler(request):
        seen["session_id"] = request.url.params.get("session_id")
        return httpx.Response(200, json={"history": []})

    request = EncodedRequest(endpoint="/history", encoding=Encoding.QUERY, params={"session_id": "abc 123"}, timeout=5)

    async def run():
        async with make_executor(handler) as executor:
            return await executor.execute(request)

    assert asyncio.run(run()).ok
    assert seen["session_id"] == "abc 123"


def test_encoded_request_rejects_non_positive_budget():
    with pytest.raises(ValueError):
        EncodedRequest(endpoint="/health", timeout=0)
