"""
LIFEEASE CLIENT PACKAGE
=======================

This directory is the main Python package for the LifeEase conversation client.
The presence of __init__.py makes Python treat 'lifeease' as a package, so you can:

  from lifeease.context import ClientContext
  from lifeease.models import Turn, Attachment
  from lifeease.services.conversation import ConversationStateMachine

FILE STRUCTURE:
  lifeease/
    __init__.py   - This file; marks 'lifeease' as a package.
    models.py     - Pydantic models: attachments, turns, request outcomes, backend replies.
    storage.py    - LocalStore: the JSON file that replaces browser localStorage.
    context.py    - ClientContext: explicit owner of session identity and client-wide persona.
    devserver.py  - Reference FastAPI backend (health, analyze, chat, history, reset).
    services/     - Request executor, content router, conversation state machine,
                    session identity, profile store, history verification harness.
    utils/        - Helpers: byte formatting and reply normalization.
"""
