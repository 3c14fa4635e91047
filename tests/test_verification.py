"""History verification harness driven against the reference backend over ASGI."""

import asyncio

import httpx
import pytest

from conftest import make_router
from lifeease.devserver import create_app
from lifeease.models import FailureKind, RequestFailedError
from lifeease.services.verification import HistoryVerifier


def _verify(context, app, **kwargs):
    async def run():
        router = make_router(context, transport=httpx.ASGITransport(app=app))
        async with router.executor:
            return await HistoryVerifier(router).verify(**kwargs)

    return asyncio.run(run())


def test_name_is_remembered_across_turns(context):
    app = create_app(blocked_terms=[])
    report = _verify(context, app)

    assert report.ok
    assert report.session_id == context.identity.current_id()
    assert report.history_length == 4
    assert report.roles == ["user", "assistant", "user", "assistant"]
    assert report.failed_turns == []
    assert report.guardrail_messages == []
    history = app.state.histories[report.session_id]
    assert history[-1]["text"] == "Your name is Maya."


def test_persona_is_stored_as_client_default(context):
    _verify(context, create_app(blocked_terms=[]), system_prompt="You are a calm coach.")
    assert context.get_system_prompt() == "You are a calm coach."


def test_guardrail_rejection_is_reported_not_raised(context):
    app = create_app(blocked_terms=["maya"])
    report = _verify(context, app)

    assert report.guardrail_messages == ["I can't help with that request."]
    assert report.failed_turns == []
    # Only the second turn reached history.
    assert report.history_length == 2
    assert report.ok


def test_failed_history_fetch_raises(context):
    def handler(request):
        if request.url.path == "/history":
            return httpx.Response(500, text="history store down")
        return httpx.Response(200, json={"success": True, "model_output": "assistant\nok", "history": []})

    async def run():
        router = make_router(context, handler)
        async with router.executor:
            return await HistoryVerifier(router).verify()

    with pytest.raises(RequestFailedError) as excinfo:
        asyncio.run(run())
    assert excinfo.value.outcome.kind is FailureKind.HTTP_STATUS
    assert excinfo.value.outcome.status_code == 500


def test_failed_turns_are_collected(context):
    def handler(request):
        if request.url.path == "/chat":
            raise httpx.ConnectError("refused", request=request)
        return httpx.Response(200, json={"success": True, "history": []})

    async def run():
        router = make_router(context, handler)
        async with router.executor:
            return await HistoryVerifier(router).verify()

    report = asyncio.run(run())
    assert len(report.failed_turns) == 2
    assert not report.ok
    assert report.roles == []
