"""
CONVERSATION STATE MACHINE MODULE
=================================

Keeps the transcript a chat UI shows and drives the router for each send.

TURN LIFECYCLE:
  user Turn       - created settled on send.
  assistant Turn  - created pending on send (placeholder), then reconciled exactly
                    once: pending -> settled (reply) or pending -> failed (generic
                    error bubble). Terminal states never go back to pending.

SEND FLOW (submit):
  1. Nothing to send (blank text, nothing staged) -> no-op.
  2. Snapshot-and-clear the staged attachments in one step: anything staged after
     this belongs to the next Turn.
  3. Append the user Turn, then the pending assistant Turn. Both are visible
     before the network call resolves.
  4. Schedule the router call as an asyncio Task.

RECONCILIATION:
  The pending Turn is found by its id, never by its position, so replies that
  complete out of order still land on the right placeholder. A reply whose Turn
  was cleared meanwhile (conversation ended) is dropped. A task cancelled before
  it ever ran is failed from its done callback.

MODES:
  analyze - router.route(): JSON text or multipart vision, no session.
  chat    - router.send_chat(): session-correlated, persona-aware. The session id
            is captured when the Turn is submitted.
"""

import asyncio
import functools
import logging
from enum import Enum
from typing import Dict, List, Optional, Sequence, Tuple

from config import GENERIC_ERROR_MESSAGE, ROLE_MARKER
from lifeease.models import (
    Attachment,
    BackendReply,
    FailureKind,
    RequestOutcome,
    Turn,
    TurnRole,
    TurnStatus,
)
from lifeease.services.content_router import ContentRouter
from lifeease.utils.formatting import normalize_reply, upload_acknowledgement


logger = logging.getLogger("LifeEase")

THINKING_TEXT = "⏳ Thinking…"
UPLOADING_TEXT = "⏳ Uploading files…"


class ConversationMode(str, Enum):
    ANALYZE = "analyze"
    CHAT = "chat"


class ConversationStateMachine:
    """
    Owns the transcript and the staged-attachment set for one conversation.
    All mutations happen on the event loop thread, between suspension points.
    """

    def __init__(
        self,
        router: ContentRouter,
        mode: ConversationMode = ConversationMode.ANALYZE,
        role_marker: str = ROLE_MARKER,
        request_timeout: Optional[float] = None,
    ):
        self.router = router
        self.mode = ConversationMode(mode)
        self.role_marker = role_marker
        # None: the router picks the budget (text vs image).
        self.request_timeout = request_timeout
        self._order: List[str] = []
        self._turns: Dict[str, Turn] = {}
        self._staged: List[Attachment] = []
        self._in_flight: Dict[str, asyncio.Task] = {}
        # Set while end_conversation is waiting on the reset.
        self._ending: Optional[asyncio.Event] = None

    # ------------------------------------------------------------------------------
    # READ ACCESS
    # ------------------------------------------------------------------------------

    @property
    def transcript(self) -> List[Turn]:
        return [self._turns[turn_id] for turn_id in self._order]

    @property
    def staged(self) -> Tuple[Attachment, ...]:
        return tuple(self._staged)

    @property
    def pending_count(self) -> int:
        return sum(1 for turn in self._turns.values() if turn.status is TurnStatus.PENDING)

    def get_turn(self, turn_id: str) -> Optional[Turn]:
        return self._turns.get(turn_id)

    # ------------------------------------------------------------------------------
    # ATTACHMENT STAGING
    # ------------------------------------------------------------------------------

    def stage_attachment(self, attachment: Attachment) -> None:
        self._staged.append(attachment)
        logger.debug("Staged %s (%d staged)", attachment.name, len(self._staged))

    def unstage_attachment(self, index: int) -> Optional[Attachment]:
        """Remove one staged attachment by position; invalid (or negative) index is a no-op."""
        if not 0 <= index < len(self._staged):
            return None
        return self._staged.pop(index)

    # ------------------------------------------------------------------------------
    # SEND
    # ------------------------------------------------------------------------------

    def submit(self, raw_text: str) -> Optional[asyncio.Task]:
        """
        Synchronous half of send(): update the transcript optimistically and
        schedule the network call. Returns the Task that resolves to the
        reconciled assistant Turn, or None when there was nothing to send.
        Must be called from a running event loop.
        """
        text = (raw_text or "").strip()
        if not text and not self._staged:
            return None

        loop = asyncio.get_running_loop()

        attachments, self._staged = tuple(self._staged), []

        user_turn = Turn(role=TurnRole.USER, text=text, attachments=attachments)
        placeholder = Turn(
            role=TurnRole.ASSISTANT,
            text=UPLOADING_TEXT if attachments else THINKING_TEXT,
            status=TurnStatus.PENDING,
        )
        self._append(user_turn)
        self._append(placeholder)

        # While end_conversation is resetting, the session id is taken once it has rotated.
        ending = self._ending
        session_id = None
        if ending is None and self.mode is ConversationMode.CHAT:
            session_id = self.router.context.identity.current_id()
        task = loop.create_task(self._dispatch(placeholder.id, text, attachments, session_id, ending))
        self._in_flight[placeholder.id] = task
        task.add_done_callback(functools.partial(self._on_done, placeholder.id))
        return task

    async def send(self, raw_text: str) -> Optional[Turn]:
        """submit() and wait for the reply; returns the reconciled assistant Turn."""
        task = self.submit(raw_text)
        if task is None:
            return None
        return await task

    async def wait_idle(self) -> None:
        """Wait until every in-flight send has been reconciled."""
        while True:
            pending = [task for task in self._in_flight.values() if not task.done()]
            if not pending:
                return
            await asyncio.gather(*pending, return_exceptions=True)

    async def _dispatch(
        self,
        turn_id: str,
        text: str,
        attachments: Sequence[Attachment],
        session_id: Optional[str],
        ending: Optional[asyncio.Event] = None,
    ) -> Optional[Turn]:
        try:
            if ending is not None:
                await ending.wait()
                if self.mode is ConversationMode.CHAT:
                    session_id = self.router.context.identity.current_id()
            if self.mode is ConversationMode.CHAT:
                outcome = await self.router.send_chat(
                    text, attachments, session_id=session_id, timeout=self.request_timeout
                )
            else:
                outcome = await self.router.route(text, attachments, timeout=self.request_timeout)
        except asyncio.CancelledError:
            self._fail(turn_id, RequestOutcome.failure(FailureKind.TRANSPORT, "request cancelled"))
            raise
        except Exception:
            logger.error("Unexpected error while sending turn %s", turn_id, exc_info=True)
            return self._fail(turn_id, RequestOutcome.failure(FailureKind.TRANSPORT, "unexpected client error"))

        if outcome.ok:
            return self._settle(turn_id, outcome, attachments)
        return self._fail(turn_id, outcome)

    def _on_done(self, turn_id: str, task: asyncio.Task) -> None:
        self._in_flight.pop(turn_id, None)
        # A task cancelled before its first step never reaches _dispatch's handler.
        if task.cancelled():
            turn = self._turns.get(turn_id)
            if turn is not None and not turn.is_terminal:
                self._fail(turn_id, RequestOutcome.failure(FailureKind.TRANSPORT, "request cancelled"))

    # ------------------------------------------------------------------------------
    # RECONCILIATION
    # ------------------------------------------------------------------------------

    def compose_reply(self, reply: BackendReply, attachments: Sequence[Attachment]) -> str:
        """Displayed text: upload acknowledgement (if files were sent) then the normalized reply."""
        if reply.is_guardrail_rejection and not reply.model_output:
            body = reply.message
        else:
            body = normalize_reply(reply.model_output or "", self.role_marker)
        if attachments:
            ack = upload_acknowledgement(attachments)
            return f"{ack}\n\n{body}" if body else ack
        return body or "✓"

    def _settle(self, turn_id: str, outcome: RequestOutcome, attachments: Sequence[Attachment]) -> Optional[Turn]:
        reply = BackendReply.from_payload(outcome.payload)
        guardrail = reply.message if reply.is_guardrail_rejection else None
        if guardrail:
            logger.info("Turn %s declined by backend guardrail: %s", turn_id, guardrail)
        return self._replace(
            turn_id,
            text=self.compose_reply(reply, attachments),
            status=TurnStatus.SETTLED,
            guardrail_message=guardrail,
        )

    def _fail(self, turn_id: str, outcome: RequestOutcome) -> Optional[Turn]:
        logger.warning("Turn %s failed: %s", turn_id, outcome.describe())
        return self._replace(
            turn_id,
            text=GENERIC_ERROR_MESSAGE,
            status=TurnStatus.FAILED,
            failure_kind=outcome.kind,
        )

    def _replace(self, turn_id: str, **update) -> Optional[Turn]:
        current = self._turns.get(turn_id)
        if current is None:
            logger.info("Dropping reply for turn %s: no longer in the transcript", turn_id)
            return None
        if current.is_terminal:
            logger.warning("Turn %s is already %s; ignoring second reconciliation", turn_id, current.status.value)
            return current
        updated = current.model_copy(update=update)
        self._turns[turn_id] = updated
        return updated

    def _append(self, turn: Turn) -> None:
        self._order.append(turn.id)
        self._turns[turn.id] = turn

    # ------------------------------------------------------------------------------
    # CONVERSATION LIFECYCLE
    # ------------------------------------------------------------------------------

    def _clear(self) -> None:
        self._order = []
        self._turns = {}
        self._staged = []

    def start_conversation(self) -> str:
        """Begin with an empty transcript on the current session; returns its id."""
        self._clear()
        sid = self.router.context.identity.current_id()
        logger.info("Conversation started on session %s (%s mode)", sid, self.mode.value)
        return sid

    async def end_conversation(self) -> str:
        """
        Clear local state, reset server history (best-effort) and rotate the
        session. Turns submitted while the reset is in flight stay in the new
        transcript and are sent once the new session id exists.
        """
        self._clear()
        ending = asyncio.Event()
        self._ending = ending
        try:
            sid = await self.router.end_conversation()
        finally:
            if self._ending is ending:
                self._ending = None
            ending.set()
        logger.info("Conversation ended; new session %s", sid)
        return sid
