"""
DATA MODELS MODULE
==================

This file defines the Pydantic models shared by the conversation layer. The
router and executor use them to describe what went over the wire; the state
machine uses them to keep the transcript; the harness uses them to report.

MODELS:
  Attachment          - A staged file (name, size, extension, bytes). Frozen once created.
  Turn                - One user or assistant message in the transcript. Frozen; the
                        state machine replaces the pending assistant Turn on reconciliation.
  FailureKind         - timeout / transport / http_status / decode.
  RequestOutcome      - Tagged result of one network call: success(payload) or failure(kind, detail).
  HistoryEntry        - One entry of the server-side history ({role, text, ...}).
  BackendReply        - Lenient view of the backend's response body.
  VerificationReport  - Result of the history verification harness.
"""

import logging
import mimetypes
import uuid
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator


logger = logging.getLogger("LifeEase")


# ==============================================================================
# ATTACHMENTS
# ==============================================================================

class Attachment(BaseModel):
    """
    A file picked by the user. Owned by the conversation state machine from the
    moment it is staged until it is bundled into a Turn or discarded.
    """
    model_config = ConfigDict(frozen=True)

    name: str
    byte_size: int = Field(..., ge=0)
    extension: str = ""     # Lower-case, without the dot; "" when the name has none.
    content_type: str = "application/octet-stream"
    content: bytes = Field(default=b"", repr=False)

    @classmethod
    def from_bytes(cls, name: str, content: bytes, content_type: Optional[str] = None) -> "Attachment":
        """Build an attachment from raw bytes; extension and content type come from the name."""
        name = name or "file"
        extension = name.rsplit(".", 1)[-1].lower() if "." in name else ""
        guessed, _ = mimetypes.guess_type(name)
        return cls(
            name=name,
            byte_size=len(content),
            extension=extension,
            content_type=content_type or guessed or "application/octet-stream",
            content=content,
        )

    @classmethod
    def from_path(cls, path: Union[str, Path]) -> "Attachment":
        """Read a file from disk. Raises ValueError if the path is not a regular file."""
        path = Path(path).expanduser()
        if not path.is_file():
            raise ValueError(f"Not a file: {path}")
        return cls.from_bytes(path.name, path.read_bytes())


# ==============================================================================
# TURNS
# ==============================================================================

class TurnRole(str, Enum):
    USER = "user"
    ASSISTANT = "assistant"


class TurnStatus(str, Enum):
    PENDING = "pending"
    SETTLED = "settled"
    FAILED = "failed"


class FailureKind(str, Enum):
    TIMEOUT = "timeout"
    TRANSPORT = "transport"
    HTTP_STATUS = "http_status"
    DECODE = "decode"


def new_turn_id() -> str:
    return uuid.uuid4().hex


class Turn(BaseModel):
    """
    One unit of conversation. User Turns are created settled; assistant Turns
    start pending and are reconciled exactly once to settled or failed.

    failure_kind and guardrail_message are diagnostics and never part of `text`.
    """
    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=new_turn_id)
    role: TurnRole
    text: str = ""
    attachments: Tuple[Attachment, ...] = ()
    status: TurnStatus = TurnStatus.SETTLED
    failure_kind: Optional[FailureKind] = None
    guardrail_message: Optional[str] = None

    @property
    def is_terminal(self) -> bool:
        return self.status is not TurnStatus.PENDING


# ==============================================================================
# REQUEST OUTCOMES
# ==============================================================================

class RequestFailedError(Exception):
    """Raised by RequestOutcome.unwrap() when a caller needs the payload or nothing."""

    def __init__(self, outcome: "RequestOutcome"):
        self.outcome = outcome
        super().__init__(outcome.describe())


class RequestOutcome(BaseModel):
    """
    Result of one network call. Exactly one of payload (success) or kind (failure)
    is meaningful; use the success()/failure() constructors rather than building it by hand.
    """
    model_config = ConfigDict(frozen=True)

    ok: bool
    payload: Dict[str, Any] = Field(default_factory=dict)
    kind: Optional[FailureKind] = None
    status_code: Optional[int] = None   # Only for FailureKind.HTTP_STATUS.
    detail: str = ""

    @classmethod
    def success(cls, payload: Dict[str, Any]) -> "RequestOutcome":
        return cls(ok=True, payload=payload)

    @classmethod
    def failure(cls, kind: FailureKind, detail: str = "", status_code: Optional[int] = None) -> "RequestOutcome":
        return cls(ok=False, kind=kind, detail=detail, status_code=status_code)

    def describe(self) -> str:
        if self.ok:
            return "success"
        if self.kind is FailureKind.HTTP_STATUS:
            return f"http_status({self.status_code}): {self.detail}"
        return f"{self.kind.value}: {self.detail}"

    def unwrap(self) -> Dict[str, Any]:
        """Return the payload, or raise RequestFailedError carrying this outcome."""
        if not self.ok:
            raise RequestFailedError(self)
        return self.payload


# ==============================================================================
# BACKEND RESPONSE SHAPE
# ==============================================================================

class HistoryEntry(BaseModel):
    """One server-side history entry. Extra keys (timestamps, image refs) are kept."""
    model_config = ConfigDict(extra="allow")

    role: str = ""
    text: str = ""


class BackendReply(BaseModel):
    """
    Lenient view of what the backend returns. Every field is optional because
    different endpoints fill different subsets (health has none of them).
    """
    model_config = ConfigDict(extra="ignore")

    success: Optional[bool] = None
    message: Optional[str] = None
    model_output: Optional[str] = None
    history: List[HistoryEntry] = Field(default_factory=list)
    session_id: Optional[str] = None

    @field_validator("history", mode="before")
    @classmethod
    def _none_history_is_empty(cls, value: Any) -> Any:
        return [] if value is None else value

    @classmethod
    def from_payload(cls, payload: Dict[str, Any]) -> "BackendReply":
        """Parse a success payload; a body that doesn't fit the shape yields an empty reply."""
        try:
            return cls.model_validate(payload)
        except ValidationError as e:
            logger.warning("Unexpected backend response shape: %s", e)
            return cls()

    @property
    def is_guardrail_rejection(self) -> bool:
        """Server was reached and declined: success is explicitly false and a message explains why."""
        return self.success is False and bool(self.message)


# ==============================================================================
# VERIFICATION
# ==============================================================================

class VerificationReport(BaseModel):
    session_id: str
    roles: List[str]
    history_length: int
    ok: bool
    guardrail_messages: List[str] = Field(default_factory=list)
    failed_turns: List[str] = Field(default_factory=list)
