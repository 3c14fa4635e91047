"""
SMART CONTENT ROUTER MODULE
===========================

Turns a logical request (text, optional attachments, optional persona) into an
EncodedRequest for the right endpoint and hands it to the RequestExecutor.

ROUTING RULE (route / analyze):
  - attachments present -> multipart POST /analyze with the FIRST attachment as
    "image" plus "text" (if any). Default budget VISION_TIMEOUT.
  - no attachments      -> JSON POST /analyze-text carrying only {"text": ...}.
    Default budget TEXT_TIMEOUT.

SINGLE-ATTACHMENT CONTRACT:
  The backend takes one image per request. Only the first staged attachment is
  forwarded, even when several are staged; the rest are listed in the user's
  Turn but never uploaded. This is logged, not "fixed".

SESSION CORRELATION:
  chat, history and reset-history always carry the session id, captured when the
  request is built (a rotation afterwards does not affect a request in flight).
  health and the analyze endpoints carry no session.

PERSONA PRECEDENCE (chat only):
  explicit per-call system_prompt -> client-wide default from the context -> omitted
  (backend default). An explicit empty per-call prompt suppresses the default.
  route, analyze_text and analyze_vision take no persona: /analyze and
  /analyze-text never receive a system_prompt.
"""

import logging
from typing import Dict, Optional, Sequence, Tuple

from config import (
    HEALTH_TIMEOUT,
    HISTORY_TIMEOUT,
    RESET_TIMEOUT,
    TEXT_TIMEOUT,
    VISION_TIMEOUT,
)
from lifeease.context import ClientContext
from lifeease.models import Attachment, BackendReply, RequestOutcome
from lifeease.services.request_executor import Encoding, EncodedRequest, RequestExecutor


logger = logging.getLogger("LifeEase")

# Form field that carries the forwarded attachment.
IMAGE_FIELD = "image"


def _first_attachment(attachments: Sequence[Attachment]) -> Optional[Attachment]:
    if not attachments:
        return None
    if len(attachments) > 1:
        logger.info(
            "Forwarding only the first of %d attachments (%s); backend accepts one image per request",
            len(attachments),
            attachments[0].name,
        )
    return attachments[0]


def _image_part(attachment: Attachment) -> Dict[str, Tuple[str, bytes, str]]:
    return {IMAGE_FIELD: (attachment.name, attachment.content, attachment.content_type)}


class ContentRouter:
    """
    Builds requests (encode_* methods, pure) and executes them (the rest).
    The context supplies the session id and the client-wide persona default.
    """

    def __init__(self, executor: RequestExecutor, context: ClientContext):
        self.executor = executor
        self.context = context

    # ------------------------------------------------------------------------------
    # ENCODING (no I/O)
    # ------------------------------------------------------------------------------

    def encode_analyze_text(self, text: str, timeout: Optional[float] = None) -> EncodedRequest:
        return EncodedRequest(
            endpoint="/analyze-text",
            method="POST",
            encoding=Encoding.JSON,
            json_body={"text": text},
            timeout=timeout or TEXT_TIMEOUT,
        )

    def encode_analyze_vision(
        self,
        attachments: Sequence[Attachment],
        text: str = "",
        timeout: Optional[float] = None,
    ) -> EncodedRequest:
        first = _first_attachment(attachments)
        fields = {"text": text} if text else {}
        return EncodedRequest(
            endpoint="/analyze",
            method="POST",
            encoding=Encoding.MULTIPART,
            fields=fields,
            files=_image_part(first) if first else {},
            timeout=timeout or VISION_TIMEOUT,
        )

    def encode_route(
        self,
        text: str,
        attachments: Sequence[Attachment] = (),
        timeout: Optional[float] = None,
    ) -> EncodedRequest:
        """The smart routing decision: multipart vision when anything is attached, JSON text otherwise."""
        if attachments:
            return self.encode_analyze_vision(attachments, text, timeout)
        return self.encode_analyze_text(text, timeout)

    def resolve_system_prompt(self, system_prompt: Optional[str] = None) -> str:
        """Per-call override (even ""), else client-wide default; "" means the field is omitted."""
        if system_prompt is not None:
            return system_prompt
        return self.context.get_system_prompt()

    def encode_chat(
        self,
        text: str,
        attachments: Sequence[Attachment] = (),
        system_prompt: Optional[str] = None,
        session_id: Optional[str] = None,
        timeout: Optional[float] = None,
    ) -> EncodedRequest:
        first = _first_attachment(attachments)
        fields = {
            "text": text or "",
            "session_id": session_id or self.context.identity.current_id(),
        }
        persona = self.resolve_system_prompt(system_prompt)
        if persona:
            fields["system_prompt"] = persona
        return EncodedRequest(
            endpoint="/chat",
            method="POST",
            encoding=Encoding.MULTIPART,
            fields=fields,
            files=_image_part(first) if first else {},
            timeout=timeout or (VISION_TIMEOUT if first else TEXT_TIMEOUT),
        )

    def encode_history(self, session_id: Optional[str] = None) -> EncodedRequest:
        return EncodedRequest(
            endpoint="/history",
            method="GET",
            encoding=Encoding.QUERY,
            params={"session_id": session_id or self.context.identity.current_id()},
            timeout=HISTORY_TIMEOUT,
        )

    def encode_reset_history(self, session_id: Optional[str] = None) -> EncodedRequest:
        return EncodedRequest(
            endpoint="/reset-history",
            method="POST",
            encoding=Encoding.MULTIPART,
            fields={"session_id": session_id or self.context.identity.current_id()},
            timeout=RESET_TIMEOUT,
        )

    # ------------------------------------------------------------------------------
    # OPERATIONS
    # ------------------------------------------------------------------------------

    async def health(self) -> RequestOutcome:
        return await self.executor.execute(
            EncodedRequest(endpoint="/health", method="GET", timeout=HEALTH_TIMEOUT)
        )

    async def analyze_text(self, text: str, timeout: Optional[float] = None) -> RequestOutcome:
        return await self.executor.execute(self.encode_analyze_text(text, timeout))

    async def analyze_vision(
        self,
        attachments: Sequence[Attachment],
        text: str = "",
        timeout: Optional[float] = None,
    ) -> RequestOutcome:
        return await self.executor.execute(self.encode_analyze_vision(attachments, text, timeout))

    async def route(
        self,
        text: str,
        attachments: Sequence[Attachment] = (),
        timeout: Optional[float] = None,
    ) -> RequestOutcome:
        return await self.executor.execute(self.encode_route(text, attachments, timeout))

    async def send_chat(
        self,
        text: str,
        attachments: Sequence[Attachment] = (),
        system_prompt: Optional[str] = None,
        session_id: Optional[str] = None,
        timeout: Optional[float] = None,
    ) -> RequestOutcome:
        request = self.encode_chat(text, attachments, system_prompt, session_id, timeout)
        outcome = await self.executor.execute(request)
        if outcome.ok:
            reply = BackendReply.from_payload(outcome.payload)
            logger.info(
                "[chat] session_id=%s history_length=%d",
                reply.session_id or request.fields["session_id"],
                len(reply.history),
            )
        return outcome

    async def fetch_history(self, session_id: Optional[str] = None) -> RequestOutcome:
        request = self.encode_history(session_id)
        outcome = await self.executor.execute(request)
        if outcome.ok:
            reply = BackendReply.from_payload(outcome.payload)
            logger.info(
                "[history] session_id=%s length=%d",
                reply.session_id or request.params["session_id"],
                len(reply.history),
            )
        return outcome

    async def reset_history(self, session_id: Optional[str] = None) -> RequestOutcome:
        return await self.executor.execute(self.encode_reset_history(session_id))

    async def end_conversation(self) -> str:
        """
        Clear this session's server history, then rotate the session id.
        The reset is best-effort: the rotation happens whatever its outcome,
        because the goal is a fresh conversation locally.
        """
        sid = self.context.identity.current_id()
        outcome = await self.reset_history(sid)
        if not outcome.ok:
            logger.warning("History reset for %s failed, rotating anyway: %s", sid, outcome.describe())
        return self.context.identity.rotate()
