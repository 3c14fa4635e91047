"""
SERVICES PACKAGE
=================

The conversation layer lives here. The UI shell (console.py, or any other
front end) calls these services; they never render anything.

MODULES:
    request_executor - One HTTP call under a time budget -> RequestOutcome
    session_store    - Durable session id: current_id() / rotate()
    content_router   - JSON vs multipart, endpoint choice, session + persona fields
    conversation     - Transcript, staged attachments, optimistic send, reconciliation
    verification     - Two-turn history smoke test
    profile_store    - save_profile() / complete_profile() for the onboarding flow
"""
