"""
LIFEEASE CONSOLE CLIENT - Analyze and Chat modes
================================================

PURPOSE:
This is a command-line front end for the LifeEase conversation layer. It plays
the part a chat UI plays: it stages attachments, submits messages to the
ConversationStateMachine and prints the transcript as turns settle.

MODES:
    1 - Analyze mode: smart routing, JSON for text, multipart when a file is attached.
        No server-side history.
    2 - Chat mode: session-correlated chat with history and the optional persona.

COMMANDS:
    /attach <path>   - Stage a file for the next message
    /detach <n>      - Remove staged file number n
    /staged          - List staged files
    /persona [text]  - Set the client-wide system prompt (no text clears it)
    /history         - Show the server-side history for the current session
    /verify          - Run the two-turn history verification
    /health          - Check the backend
    /clear           - End the conversation (reset server history, new session)
    /quit or /exit   - Exit

USAGE:
    python console.py

    Start the backend first (python run.py), or point LIFEEASE_API_BASE_URL at one.
"""

import asyncio
import logging
import shlex

from config import API_BASE_URL
from lifeease.context import ClientContext
from lifeease.models import Attachment, BackendReply, RequestFailedError, Turn, TurnStatus
from lifeease.services.content_router import ContentRouter
from lifeease.services.conversation import ConversationMode, ConversationStateMachine
from lifeease.services.request_executor import RequestExecutor
from lifeease.services.verification import HistoryVerifier
from lifeease.utils.formatting import format_bytes


logging.basicConfig(
    level=logging.WARNING,
    format='%(asctime)s | %(levelname)-8s | %(name)-20s | %(message)s',
    datefmt='%Y-%m-%d %H:%M:%S'
)
logger = logging.getLogger("LifeEase")


# -----------------------------------------------------------------------------
# UI HELPERS
# -----------------------------------------------------------------------------

def print_header():
    print("\n" + "=" * 60)
    print("LifeEase - Analyze & Chat")
    print("=" * 60)
    print(f"\nBackend: {API_BASE_URL}")
    print("\nModes:")
    print("  1 = Analyze (smart routing, no history)")
    print("  2 = Chat (session history + persona)")
    print("\nCommands:")
    print("  /attach <path>  /detach <n>  /staged  /persona [text]")
    print("  /history  /verify  /health  /clear  /quit")
    print("=" * 60 + "\n")


def format_turn(turn: Turn) -> str:
    label = "You" if turn.role.value == "user" else "LifeEase"
    lines = []
    for attachment in turn.attachments:
        lines.append(f"  📎 {attachment.name} ({format_bytes(attachment.byte_size)})")
    if turn.text:
        lines.append(turn.text)
    if turn.status is TurnStatus.FAILED and turn.failure_kind is not None:
        lines.append(f"  [{turn.failure_kind.value}]")
    return f"{label}: " + "\n".join(lines)


async def read_line(prompt: str):
    """input() on a worker thread so in-flight replies keep settling meanwhile."""
    try:
        return (await asyncio.to_thread(input, prompt)).strip()
    except (KeyboardInterrupt, EOFError):
        return None


# -----------------------------------------------------------------------------
# COMMANDS
# -----------------------------------------------------------------------------

async def show_history(router: ContentRouter) -> None:
    try:
        payload = (await router.fetch_history()).unwrap()
    except RequestFailedError as e:
        print(f"❌ Could not retrieve history: {e}")
        return
    history = BackendReply.from_payload(payload).history
    if not history:
        print("No messages in this session")
        return
    print(f"\n📜 History ({len(history)} entries):")
    print("-" * 60)
    for i, entry in enumerate(history, 1):
        print(f"{i}. {entry.role}: {entry.text}")
    print("-" * 60)


async def run_command(command: str, args: list, router: ContentRouter, conversation: ConversationStateMachine) -> None:
    if command == "/attach":
        if not args:
            print("❌ Usage: /attach <path>")
            return
        try:
            attachment = Attachment.from_path(args[0])
        except (ValueError, OSError) as e:
            print(f"❌ {e}")
            return
        conversation.stage_attachment(attachment)
        print(f"📎 Staged {attachment.name} ({format_bytes(attachment.byte_size)})")
    elif command == "/detach":
        removed = conversation.unstage_attachment(int(args[0]) - 1) if args and args[0].isdigit() else None
        print(f"Removed {removed.name}" if removed else "❌ No such staged file")
    elif command == "/staged":
        if not conversation.staged:
            print("Nothing staged")
        for i, attachment in enumerate(conversation.staged, 1):
            print(f"{i}. {attachment.name} ({format_bytes(attachment.byte_size)})")
    elif command == "/persona":
        prompt = " ".join(args)
        router.context.set_system_prompt(prompt or None)
        print("✅ Persona set" if prompt else "✅ Persona cleared")
    elif command == "/history":
        await show_history(router)
    elif command == "/verify":
        try:
            report = await HistoryVerifier(router).verify()
        except RequestFailedError as e:
            print(f"❌ Verification could not fetch history: {e}")
            return
        print(f"Session: {report.session_id}")
        print(f"Last roles: {report.roles} (history length {report.history_length})")
        for message in report.guardrail_messages:
            print(f"⚠️ Blocked by guardrails: {message}")
        print("✅ Assistant present" if report.ok else "❌ No assistant entry in the last turns")
    elif command == "/health":
        outcome = await router.health()
        print("✅ Backend healthy" if outcome.ok else f"❌ {outcome.describe()}")
    elif command == "/clear":
        sid = await conversation.end_conversation()
        print(f"\n🔄 Conversation ended. New session: {sid}")
    else:
        print(f"❌ Unknown command: {command}")


# -----------------------------------------------------------------------------
# MAIN LOOP
# -----------------------------------------------------------------------------

async def main():
    print_header()
    context = ClientContext.from_file()

    async with RequestExecutor(API_BASE_URL) as executor:
        router = ContentRouter(executor, context)
        conversation = None
        print("Select mode first (1=Analyze, 2=Chat):\n")

        while True:
            user_input = await read_line("\nYou: ")
            if user_input is None or user_input in ("/quit", "/exit"):
                print("\n👋 Goodbye!")
                break

            if user_input in ("1", "2"):
                mode = ConversationMode.ANALYZE if user_input == "1" else ConversationMode.CHAT
                conversation = ConversationStateMachine(router, mode=mode)
                sid = conversation.start_conversation()
                print(f"✅ Switched to {mode.value.upper()} mode (session {sid})\n")
                continue

            if conversation is None:
                print("❌ Please select a mode first (1=Analyze or 2=Chat)")
                continue

            if user_input.startswith("/"):
                try:
                    command, *args = shlex.split(user_input)
                except ValueError as e:
                    print(f"❌ {e}")
                    continue
                await run_command(command, args, router, conversation)
                continue

            turn = await conversation.send(user_input)
            if turn is None:
                print("❌ Nothing to send")
                continue
            print(format_turn(turn))

        if conversation is not None:
            await conversation.wait_idle()


# Run the interactive loop when this file is executed (python console.py).
if __name__ == "__main__":
    asyncio.run(main())
