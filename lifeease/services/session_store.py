"""
SESSION IDENTITY MODULE
=======================

Owns the durable session id that correlates every conversation turn with the
backend's server-side history. The id is created lazily on first use, persisted
in the LocalStore, and replaced only by an explicit rotate() (end of conversation).

Both operations are synchronous and hold the store lock for their whole
read-then-write, so two callers can never see two different "current" ids.
Callers that dispatch a request capture the id once at dispatch time; a later
rotation does not change the id of a request already in flight.
"""

import logging
import uuid

from config import SESSION_ID_KEY
from lifeease.storage import LocalStore


logger = logging.getLogger("LifeEase")


def _new_session_id() -> str:
    return str(uuid.uuid4())


class SessionIdentityManager:
    """Single owner of SESSION_ID_KEY in the store."""

    def __init__(self, store: LocalStore):
        self.store = store

    def current_id(self) -> str:
        """Return the persisted session id, creating and persisting one if absent."""
        with self.store.lock:
            sid = self.store.get(SESSION_ID_KEY)
            if not sid:
                sid = _new_session_id()
                self.store.set(SESSION_ID_KEY, sid)
                logger.info("Created session %s", sid)
            return sid

    def rotate(self) -> str:
        """Discard the current id and persist a fresh one in a single write."""
        with self.store.lock:
            old = self.store.get(SESSION_ID_KEY)
            sid = _new_session_id()
            self.store.set(SESSION_ID_KEY, sid)
        logger.info("Rotated session %s -> %s", old or "(none)", sid)
        return sid
