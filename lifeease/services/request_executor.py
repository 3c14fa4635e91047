"""
REQUEST EXECUTOR MODULE
=======================

Issues one HTTP request against the backend with a bounded time budget and
turns whatever happens into a RequestOutcome. It never raises for network
problems; callers branch on outcome.ok instead of catching exceptions.

FAILURE TAXONOMY:
  timeout      - the budget ran out before the transport finished. The in-flight
                 call is cancelled (asyncio.wait_for cancels it and always clears
                 its timer, on success, failure and cancellation alike).
  transport    - connection refused/reset, DNS failure, protocol error.
  http_status  - the server answered outside 2xx. The body is read best-effort
                 and kept as the detail for diagnostics.
  decode       - 2xx, but the body is not a JSON object. The detail is the first
                 DECODE_SNIPPET_CHARS characters of the raw body.

No retries happen here: a failed request stays failed until the user sends again.
"""

import asyncio
import logging
import time
from enum import Enum
from typing import Any, Dict, Optional, Tuple

import httpx
from pydantic import BaseModel, ConfigDict, Field

from config import API_BASE_URL, DECODE_SNIPPET_CHARS
from lifeease.models import FailureKind, RequestOutcome


logger = logging.getLogger("LifeEase")


# ==============================================================================
# ENCODED REQUEST
# ==============================================================================

class Encoding(str, Enum):
    NONE = "none"
    JSON = "json"
    MULTIPART = "multipart"
    QUERY = "query"


class EncodedRequest(BaseModel):
    """
    A request the router has already shaped: which endpoint, which encoding,
    which fields. Building it is pure, so routing decisions are testable without
    a network.

    files maps a form field name to (filename, content, content_type).
    """
    model_config = ConfigDict(frozen=True)

    endpoint: str
    method: str = "GET"
    encoding: Encoding = Encoding.NONE
    json_body: Optional[Dict[str, Any]] = None
    fields: Dict[str, str] = Field(default_factory=dict)
    files: Dict[str, Tuple[str, bytes, str]] = Field(default_factory=dict)
    params: Dict[str, str] = Field(default_factory=dict)
    timeout: float = Field(..., gt=0)

    def httpx_kwargs(self) -> Dict[str, Any]:
        """Keyword arguments for httpx.AsyncClient.request matching this encoding."""
        if self.encoding is Encoding.JSON:
            return {"json": self.json_body or {}}
        if self.encoding is Encoding.MULTIPART:
            # Plain fields go in as filename-less parts so the body is multipart even
            # without a file, the way a browser FormData is.
            parts: Dict[str, Any] = {name: (None, value.encode("utf-8")) for name, value in self.fields.items()}
            parts.update(self.files)
            return {"files": parts}
        if self.encoding is Encoding.QUERY:
            return {"params": self.params}
        return {}


# ==============================================================================
# EXECUTOR
# ==============================================================================

class RequestExecutor:
    """
    Owns one pooled httpx.AsyncClient. Use as an async context manager, or call
    aclose() when done. A custom transport can be injected (tests use
    httpx.MockTransport; the console can use httpx.ASGITransport).
    """

    def __init__(self, base_url: str = API_BASE_URL, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.base_url = base_url.rstrip("/")
        self.client = httpx.AsyncClient(base_url=self.base_url, transport=transport)

    async def __aenter__(self) -> "RequestExecutor":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self.client.aclose()

    async def _send(self, request: EncodedRequest) -> httpx.Response:
        return await self.client.request(
            request.method,
            request.endpoint,
            timeout=request.timeout,
            **request.httpx_kwargs(),
        )

    async def execute(self, request: EncodedRequest) -> RequestOutcome:
        """Run the request under its time budget and classify the result."""
        started = time.monotonic()
        logger.debug("%s %s (%s, budget %.1fs)", request.method, request.endpoint, request.encoding.value, request.timeout)

        try:
            response = await asyncio.wait_for(self._send(request), timeout=request.timeout)
        except (asyncio.TimeoutError, httpx.TimeoutException):
            elapsed = time.monotonic() - started
            outcome = RequestOutcome.failure(
                FailureKind.TIMEOUT,
                f"{request.timeout:.1f}s budget exceeded after {elapsed:.1f}s",
            )
            return self._log_failure(request, outcome)
        except httpx.RequestError as e:
            outcome = RequestOutcome.failure(FailureKind.TRANSPORT, f"{type(e).__name__}: {e}")
            return self._log_failure(request, outcome)

        if not response.is_success:
            try:
                body = response.text
            except Exception:
                body = ""
            outcome = RequestOutcome.failure(
                FailureKind.HTTP_STATUS,
                body or "No response body",
                status_code=response.status_code,
            )
            return self._log_failure(request, outcome)

        raw = response.text
        try:
            payload = response.json()
        except ValueError:
            payload = None
        if not isinstance(payload, dict):
            outcome = RequestOutcome.failure(FailureKind.DECODE, raw[:DECODE_SNIPPET_CHARS])
            return self._log_failure(request, outcome)

        logger.debug("%s %s -> %s in %.2fs", request.method, request.endpoint, response.status_code, time.monotonic() - started)
        return RequestOutcome.success(payload)

    def _log_failure(self, request: EncodedRequest, outcome: RequestOutcome) -> RequestOutcome:
        logger.warning("%s %s failed: %s", request.method, request.endpoint, outcome.describe())
        return outcome
