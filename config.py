"""
CONFIGURATION MODULE
====================

PURPOSE:
  Central place for all LifeEase client settings: backend URL, per-endpoint
  time budgets, local state file, the reply normalization marker, and the
  reference backend's settings. Designed for one client installation per user:
  each person runs their own copy with their own .env and database/ folder.

WHAT THIS FILE DOES:
  - Loads environment variables from .env (so deployment URLs stay out of code).
  - Defines the database/ folder holding client_state.json (session id,
    client-wide system prompt, onboarding profile).
  - Creates that directory if it doesn't exist (so the client can run immediately).
  - Exposes API_BASE_URL and the timeout budget for each backend operation.
  - Holds the role marker and user-facing messages used by the conversation layer.

USAGE:
  Import what you need: `from config import API_BASE_URL, TEXT_TIMEOUT, ROLE_MARKER`
  All services import from here so behaviour is consistent.
"""

import os
import logging
from pathlib import Path
from dotenv import load_dotenv


# -----------------------------------------------------------------------------
# LOGGING
# -----------------------------------------------------------------------------
# Used when we need to log warnings (e.g. an unparsable timeout override).
logger = logging.getLogger(__name__)


# -----------------------------------------------------------------------------
# ENVIRONMENT
# -----------------------------------------------------------------------------
# Load environment variables from .env file (if it exists).
load_dotenv()


# -----------------------------------------------------------------------------
# BASE PATH
# -----------------------------------------------------------------------------
# Points to the folder containing this file (the project root).
BASE_DIR = Path(__file__).parent

# ============================================================================
# LOCAL STATE
# ============================================================================
# client_state.json replaces the browser's localStorage: it holds the durable
# session id, the optional client-wide system prompt and the onboarding profile.
# LIFEEASE_DATA_DIR lets tests and multiple installs point somewhere else.

DATA_DIR = Path(os.getenv("LIFEEASE_DATA_DIR", "").strip() or BASE_DIR / "database")
CLIENT_STATE_FILE = DATA_DIR / "client_state.json"

DATA_DIR.mkdir(parents=True, exist_ok=True)

# Keys inside client_state.json. Each key has exactly one owning component.
SESSION_ID_KEY = "lifeease-session-id"          # SessionIdentityManager
SYSTEM_PROMPT_KEY = "lifeease-system-prompt"    # ClientContext
PROFILE_KEY = "lifeease-profile"                # ProfileStore

# ============================================================================
# BACKEND CONFIGURATION
# ============================================================================
# The conversational-analysis backend. Point LIFEEASE_API_BASE_URL at a deployed
# server, or leave the default and start the reference backend with `python run.py`.

API_BASE_URL = os.getenv("LIFEEASE_API_BASE_URL", "").strip() or "http://localhost:8000"


def _env_seconds(name: str, default: float) -> float:
    """
    Read a timeout budget (seconds) from the environment.
    Falls back to the default when the variable is unset or not a positive number.
    """
    raw = os.getenv(name, "").strip()
    if not raw:
        return default
    try:
        value = float(raw)
    except ValueError:
        logger.warning("Ignoring %s=%r: not a number, using %.0fs", name, raw, default)
        return default
    if value <= 0:
        logger.warning("Ignoring %s=%r: must be positive, using %.0fs", name, raw, default)
        return default
    return value


# ============================================================================
# TIME BUDGETS (seconds)
# ============================================================================
# Short for health checks, medium for text-only analysis, long for payloads that
# carry an image (vision models are slow). History calls are quick lookups.

HEALTH_TIMEOUT = _env_seconds("LIFEEASE_HEALTH_TIMEOUT", 5.0)
TEXT_TIMEOUT = _env_seconds("LIFEEASE_TEXT_TIMEOUT", 60.0)
VISION_TIMEOUT = _env_seconds("LIFEEASE_VISION_TIMEOUT", 180.0)
HISTORY_TIMEOUT = _env_seconds("LIFEEASE_HISTORY_TIMEOUT", 10.0)
RESET_TIMEOUT = _env_seconds("LIFEEASE_RESET_TIMEOUT", 10.0)

# ============================================================================
# CONVERSATION SETTINGS
# ============================================================================
# The backend returns the raw chat-template output in model_output, e.g.
# "user\nHi\nassistant\nHello!". The displayed reply is whatever follows the
# last ROLE_MARKER. Change it together with the backend's template.

ROLE_MARKER = os.getenv("LIFEEASE_ROLE_MARKER", "").strip() or "assistant"

# Shown in place of the reply when the request failed for any reason.
GENERIC_ERROR_MESSAGE = "⚠️ Error reaching server. Please try again."

# How much of an unparsable body is kept for the decode failure detail.
DECODE_SNIPPET_CHARS = 300

# The verification harness inspects this many trailing history entries.
HISTORY_VERIFY_WINDOW = 4

# ============================================================================
# REFERENCE BACKEND
# ============================================================================
# Settings for lifeease.devserver (started by run.py). BLOCKED_TERMS is a
# comma-separated list; messages containing one are declined like a guardrail would.

DEVSERVER_HOST = os.getenv("LIFEEASE_DEVSERVER_HOST", "0.0.0.0")
DEVSERVER_PORT = int(os.getenv("LIFEEASE_DEVSERVER_PORT", "8000"))
BLOCKED_TERMS = [
    term.strip().lower()
    for term in os.getenv("LIFEEASE_BLOCKED_TERMS", "").split(",")
    if term.strip()
]
GUARDRAIL_MESSAGE = "I can't help with that request."
