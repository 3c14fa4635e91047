"""
CLIENT CONTEXT
==============

The explicit context object handed to the router and the state machine instead
of ambient globals. It owns two persisted fields, each with one mutation point:

  identity       - the SessionIdentityManager (session id).
  system prompt  - the optional client-wide persona default (set_system_prompt).
"""

import logging
from pathlib import Path
from typing import Optional

from config import CLIENT_STATE_FILE, SYSTEM_PROMPT_KEY
from lifeease.services.session_store import SessionIdentityManager
from lifeease.storage import LocalStore


logger = logging.getLogger("LifeEase")


class ClientContext:
    def __init__(self, store: Optional[LocalStore] = None):
        self.store = store if store is not None else LocalStore()
        self.identity = SessionIdentityManager(self.store)

    @classmethod
    def from_file(cls, path: Path = CLIENT_STATE_FILE) -> "ClientContext":
        """Context backed by the on-disk client state (the normal, persistent setup)."""
        return cls(LocalStore(path))

    def set_system_prompt(self, prompt: Optional[str]) -> None:
        """Store the client-wide persona default; None removes it."""
        if prompt is None:
            self.store.remove(SYSTEM_PROMPT_KEY)
            logger.info("Cleared client-wide system prompt")
        else:
            self.store.set(SYSTEM_PROMPT_KEY, str(prompt))
            logger.info("Stored client-wide system prompt (%d chars)", len(str(prompt)))

    def get_system_prompt(self) -> str:
        return self.store.get(SYSTEM_PROMPT_KEY) or ""
