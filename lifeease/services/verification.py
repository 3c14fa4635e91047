"""
HISTORY VERIFICATION HARNESS
============================

Diagnostic smoke test for session correlation: drives two turns through a
chat-mode ConversationStateMachine on one session, then fetches the server's
history and checks that an assistant entry appears among the last few entries.
It catches backends that silently drop turns or lose track of the session.

Not part of the production request path.

  report = await HistoryVerifier(router).verify()
  report.ok  -> True if an "assistant" role is among the last HISTORY_VERIFY_WINDOW entries

A guardrail rejection is reported (report.guardrail_messages), not raised: the
server was reached and declined. A history fetch that fails raises
RequestFailedError, since there is then nothing to verify.
"""

import logging

from config import HISTORY_VERIFY_WINDOW
from lifeease.models import BackendReply, TurnRole, TurnStatus, VerificationReport
from lifeease.services.content_router import ContentRouter
from lifeease.services.conversation import ConversationMode, ConversationStateMachine


logger = logging.getLogger("LifeEase")


class HistoryVerifier:
    def __init__(self, router: ContentRouter):
        self.router = router

    async def verify(
        self,
        first: str = "My name is Maya.",
        second: str = "What is my name?",
        system_prompt: str = "",
    ) -> VerificationReport:
        context = self.router.context
        sid = context.identity.current_id()
        if system_prompt:
            context.set_system_prompt(system_prompt)

        logger.info("[verify] Using session: %s", sid)

        conversation = ConversationStateMachine(self.router, mode=ConversationMode.CHAT)
        guardrail_messages = []
        failed_turns = []
        for label, text in (("First", first), ("Second", second)):
            turn = await conversation.send(text)
            if turn is None:
                continue
            if turn.status is TurnStatus.FAILED:
                logger.warning("[verify] %s turn failed: %s", label, turn.failure_kind.value)
                failed_turns.append(turn.id)
            elif turn.guardrail_message:
                logger.warning("[verify] %s turn blocked by guardrails: %s", label, turn.guardrail_message)
                guardrail_messages.append(turn.guardrail_message)

        payload = (await self.router.fetch_history(sid)).unwrap()
        history = BackendReply.from_payload(payload).history
        roles = [entry.role for entry in history[-HISTORY_VERIFY_WINDOW:]]
        has_assistant = TurnRole.ASSISTANT.value in roles

        logger.info("[verify] Last ~%d roles: %s", HISTORY_VERIFY_WINDOW, roles)
        logger.info("[verify] Assistant present in last %d? %s", HISTORY_VERIFY_WINDOW, "YES" if has_assistant else "NO")

        return VerificationReport(
            session_id=sid,
            roles=roles,
            history_length=len(history),
            ok=has_assistant,
            guardrail_messages=guardrail_messages,
            failed_turns=failed_turns,
        )
