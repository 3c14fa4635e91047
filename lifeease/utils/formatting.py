"""
FORMATTING UTILITY
==================

Small text helpers for what the transcript shows:

  format_bytes(1536)             -> "1.5 KB"
  normalize_reply(raw, marker)   -> reply text after the last role marker
  upload_acknowledgement(files)  -> "✓ Uploaded 2 files (1.5 KB + 3.0 MB)"
"""

from typing import Sequence

from config import ROLE_MARKER
from lifeease.models import Attachment


_UNITS = ["B", "KB", "MB", "GB", "TB"]


def format_bytes(size: int) -> str:
    """Human-readable size with 1024 steps; whole bytes, one decimal above that."""
    if not size or size <= 0:
        return "0 B"
    value = float(size)
    i = 0
    while value >= 1024 and i < len(_UNITS) - 1:
        value /= 1024
        i += 1
    if i == 0:
        return f"{size} B"
    return f"{value:.1f} {_UNITS[i]}"


def normalize_reply(raw: str, marker: str = ROLE_MARKER) -> str:
    """
    Backend contract: model_output may be the raw chat-template transcript
    ("user\\n...\\nassistant\\n<reply>"). When the marker occurs, the reply is the
    text after its LAST occurrence, trimmed. Without the marker the raw reply is
    returned unchanged.
    """
    if not raw:
        return ""
    if marker and marker in raw:
        return raw.rsplit(marker, 1)[-1].strip()
    return raw


def upload_acknowledgement(attachments: Sequence[Attachment]) -> str:
    count = len(attachments)
    sizes = " + ".join(format_bytes(a.byte_size) for a in attachments)
    return f"✓ Uploaded {count} file{'s' if count > 1 else ''} ({sizes})"
