"""
LIFEEASE REFERENCE BACKEND
==========================

A small FastAPI app that speaks the same contract as the real
conversational-analysis backend, so the client can be developed and tested
without it. There is no model behind it: replies are produced by a tiny echo
"model" that also remembers a name the user told it, which is enough for the
history verification harness ("My name is Maya." / "What is my name?").

ENDPOINTS:
  GET  /               - API name and list of endpoints.
  GET  /health         - Liveness and number of sessions held.
  POST /analyze-text   - JSON {"text"} -> model_output. No history.
  POST /analyze        - multipart image (+ optional text) -> model_output. No history.
  POST /chat           - multipart text, session_id, system_prompt?, image? ->
                         model_output + the session's full history.
  GET  /history        - ?session_id=... -> the session's history.
  POST /reset-history  - multipart session_id -> clears that session's history.

RESPONSE SHAPE:
  {"success": bool, "message"?: str, "model_output"?: str,
   "history"?: [{"role", "text", ...}], "session_id"?: str}

model_output is returned as a raw chat-template transcript
("user\\n<text>\\nassistant\\n<reply>") like the real backend does; the client
strips everything up to the last role marker.

GUARDRAIL:
  Text containing one of BLOCKED_TERMS is declined with success=false and a
  message (HTTP 200, nothing appended to history).

Histories live in memory (app.state.histories) and vanish on restart.
"""

import logging
import re
from contextlib import asynccontextmanager
from typing import List, Optional, Sequence

from fastapi import FastAPI, File, Form, HTTPException, UploadFile
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel

from config import BLOCKED_TERMS, GUARDRAIL_MESSAGE, ROLE_MARKER
from lifeease.utils.formatting import format_bytes


# -----------------------------------------------------------------------------
# LOGGING
# -----------------------------------------------------------------------------
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s | %(levelname)-8s | %(name)-20s | %(message)s',
    datefmt='%Y-%m-%d %H:%M:%S'
)
logger = logging.getLogger("LifeEase")


class AnalyzeTextRequest(BaseModel):
    text: str = ""


# -----------------------------------------------------------------------------
# ECHO MODEL
# -----------------------------------------------------------------------------

_NAME_STATEMENT = re.compile(r"\bmy name is\s+([A-Za-z][\w'-]*)", re.IGNORECASE)
_NAME_QUESTION = re.compile(r"\bwhat(?:'s| is) my name\b", re.IGNORECASE)


def _remembered_name(history: Sequence[dict]) -> Optional[str]:
    for entry in reversed(history):
        if entry.get("role") != "user":
            continue
        match = _NAME_STATEMENT.search(entry.get("text", ""))
        if match:
            return match.group(1)
    return None


def generate_reply(text: str, history: Sequence[dict] = (), image_name: str = "", image_size: int = 0) -> str:
    """Deterministic stand-in for the model: answers name questions from history, echoes the rest."""
    if _NAME_QUESTION.search(text):
        name = _remembered_name(history)
        return f"Your name is {name}." if name else "You haven't told me your name yet."
    match = _NAME_STATEMENT.search(text)
    if match:
        return f"Nice to meet you, {match.group(1)}."
    parts = []
    if image_name:
        parts.append(f"I received {image_name} ({format_bytes(image_size)}).")
    if text:
        parts.append(f"You said: {text}")
    return " ".join(parts) or "I'm here."


def raw_model_output(text: str, reply: str) -> str:
    return f"user\n{text}\n{ROLE_MARKER}\n{reply}"


def _is_blocked(text: str, blocked_terms: Sequence[str]) -> bool:
    lowered = (text or "").lower()
    return any(term in lowered for term in blocked_terms)


# -------------------------------------------------------------------------
# APP FACTORY
# -------------------------------------------------------------------------

def create_app(blocked_terms: Optional[Sequence[str]] = None) -> FastAPI:
    """Build a fresh app with its own in-memory histories (tests build one each)."""
    terms = [t.lower() for t in (BLOCKED_TERMS if blocked_terms is None else blocked_terms)]

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("=" * 60)
        logger.info("LifeEase reference backend - Starting Up...")
        logger.info("Guardrail terms: %s", ", ".join(terms) or "(none)")
        logger.info("=" * 60)
        yield
        logger.info("Shutting down reference backend (%d sessions held)", len(app.state.histories))

    app = FastAPI(
        title="LifeEase Reference Backend",
        description="Echo backend implementing the LifeEase conversation contract",
        lifespan=lifespan,
    )
    app.state.histories = {}

    # Allow any origin so a front end on another port can call this API without CORS errors.
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    def history_for(session_id: str) -> List[dict]:
        if not session_id or len(session_id) > 128:
            raise HTTPException(status_code=400, detail="Invalid session_id")
        return app.state.histories.setdefault(session_id, [])

    # =========================================================================
    # API ENDPOINTS
    # =========================================================================

    @app.get("/")
    async def root():
        return {
            "message": "LifeEase Reference Backend",
            "endpoints": {
                "/health": "Health check",
                "/analyze-text": "Analyze text (JSON)",
                "/analyze": "Analyze an image with optional text (multipart)",
                "/chat": "Chat with session history (multipart)",
                "/history": "Get a session's history",
                "/reset-history": "Clear a session's history",
            },
        }

    @app.get("/health")
    async def health():
        return {"status": "healthy", "sessions": len(app.state.histories)}

    @app.post("/analyze-text")
    async def analyze_text(request: AnalyzeTextRequest):
        if _is_blocked(request.text, terms):
            return {"success": False, "message": GUARDRAIL_MESSAGE}
        reply = generate_reply(request.text)
        return {"success": True, "model_output": raw_model_output(request.text, reply)}

    @app.post("/analyze")
    async def analyze(image: UploadFile = File(...), text: Optional[str] = Form(None)):
        text = text or ""
        if _is_blocked(text, terms):
            return {"success": False, "message": GUARDRAIL_MESSAGE}
        content = await image.read()
        reply = generate_reply(text, image_name=image.filename or "image", image_size=len(content))
        return {"success": True, "model_output": raw_model_output(text, reply)}

    @app.post("/chat")
    async def chat(
        session_id: str = Form(...),
        text: str = Form(""),
        system_prompt: Optional[str] = Form(None),
        image: Optional[UploadFile] = File(None),
    ):
        history = history_for(session_id)
        content = await image.read() if image is not None else b""
        if not text and image is None:
            raise HTTPException(status_code=400, detail="Either text or image is required")

        if _is_blocked(text, terms):
            logger.info("Declined message for session %s", session_id)
            return {"success": False, "message": GUARDRAIL_MESSAGE, "session_id": session_id, "history": history}

        image_name = (image.filename or "image") if image is not None else ""
        reply = generate_reply(text, history, image_name=image_name, image_size=len(content))
        user_entry = {"role": "user", "text": text}
        if image_name:
            user_entry["image"] = image_name
        history.append(user_entry)
        history.append({"role": "assistant", "text": reply})
        if system_prompt:
            logger.debug("Session %s persona: %s", session_id, system_prompt[:80])

        return {
            "success": True,
            "model_output": raw_model_output(text, reply),
            "session_id": session_id,
            "history": history,
        }

    @app.get("/history")
    async def get_history(session_id: str):
        history = history_for(session_id)
        return {"success": True, "session_id": session_id, "history": history}

    @app.post("/reset-history")
    async def reset_history(session_id: str = Form(...)):
        history_for(session_id)
        app.state.histories[session_id] = []
        logger.info("Reset history for session %s", session_id)
        return {"success": True, "session_id": session_id, "history": []}

    return app


app = create_app()
