import os
import re
import sys
import tempfile
from pathlib import Path

# Keep client_state.json out of the repo while tests run; must precede any config import.
os.environ.setdefault("LIFEEASE_DATA_DIR", tempfile.mkdtemp(prefix="lifeease-test-"))

# Ensure repo root on sys.path so `config` and `lifeease` import from the tests tree.
ROOT = Path(__file__).resolve().parent.parent
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

import httpx
import pytest

from lifeease.context import ClientContext
from lifeease.services.content_router import ContentRouter
from lifeease.services.request_executor import RequestExecutor
from lifeease.storage import LocalStore


BASE_URL = "http://testserver"


@pytest.fixture
def context():
    return ClientContext(LocalStore())


def make_executor(handler=None, transport=None) -> RequestExecutor:
    """Executor over httpx.MockTransport(handler), or any transport given."""
    if transport is None:
        transport = httpx.MockTransport(handler)
    return RequestExecutor(base_url=BASE_URL, transport=transport)


def make_router(context, handler=None, transport=None) -> ContentRouter:
    return ContentRouter(make_executor(handler, transport), context)


def multipart_parts(request: httpx.Request):
    """
    Split a multipart request body into [(name, filename, value_bytes), ...]
    in wire order.
    """
    content_type = request.headers["content-type"]
    assert content_type.startswith("multipart/form-data"), content_type
    boundary = content_type.split("boundary=", 1)[1].strip('"').encode()
    parts = []
    for chunk in request.content.split(b"--" + boundary):
        chunk = chunk.strip(b"\r\n")
        if not chunk or chunk == b"--":
            continue
        head, _, body = chunk.partition(b"\r\n\r\n")
        name = re.search(rb'name="([^"]*)"', head).group(1).decode()
        filename = re.search(rb'filename="([^"]*)"', head)
        parts.append((name, filename.group(1).decode() if filename else None, body))
    return parts


def multipart_fields(request: httpx.Request):
    """Filename-less parts as a {name: str} dict."""
    return {name: value.decode() for name, filename, value in multipart_parts(request) if filename is None}


def chat_reply(text: str, session_id: str = "s", history=None) -> dict:
    return {
        "success": True,
        "model_output": f"user\n{text}\nassistant\nreply to {text}",
        "session_id": session_id,
        "history": history or [],
    }
