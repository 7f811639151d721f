#!/usr/bin/env python3
"""English coach - interactive text session.

Usage:
    python -m coach.main                          # Free talk as the default user
    python -m coach.main --feature grammar        # Start in another feature
    python -m coach.main --user-id alice          # Keep a separate history

Commands inside the session:
    /feature <freeTalk|vocabulary|grammar|mistakeReview>
    /explain      Detailed explanation of the latest mistake
    /history      Reprint the transcript
    /quit
"""

import argparse
import asyncio
import logging

from coach.config import settings
from coach.models import Feature, Message
from coach.orchestrator import ConversationOrchestrator
from coach.services.history_store import HistoryStore
from coach.services.llm import LLMService
from coach.services.tts import build_speaker
from coach.ui_utils import (
    FEATURE_DESCRIPTIONS,
    FEATURE_NAMES,
    corrective_phrase,
    explanation_display,
    input_placeholder,
)

logging.basicConfig(level=settings.LOG_LEVEL, format="%(levelname)s: %(message)s")
log = logging.getLogger(__name__)


def format_message(message: Message, tutor_name: str) -> str:
    speaker = "You" if message.sender == "user" else tutor_name
    line = f"{speaker}: {message.text}"
    if message.mistake is not None:
        mistake = message.mistake
        line += (
            f"\n    {corrective_phrase(mistake.original_text, mistake.corrected_text)}: "
            f"\"{mistake.corrected_text}\""
        )
        if mistake.awaiting_retry:
            line += "\n    (Try saying it again. /explain for details)"
    return line


def latest_mistake_id(session: ConversationOrchestrator):
    for message in reversed(session.messages):
        if message.mistake is not None:
            return message.mistake.id
    return None


async def handle_command(session: ConversationOrchestrator, line: str) -> bool:
    """Run a slash command. Returns False when the session should end."""
    command, _, arg = line.partition(" ")
    if command == "/quit":
        return False
    if command == "/feature":
        try:
            feature = Feature(arg.strip())
        except ValueError:
            print(f"Unknown feature: {arg!r}. Choose from {[f.value for f in Feature]}")
            return True
        await session.switch_feature(feature)
        print_feature_banner(feature)
        print_transcript(session)
    elif command == "/explain":
        mistake_id = latest_mistake_id(session)
        if mistake_id is None:
            print("No mistake to explain yet.")
            return True
        await session.explain_mistake(mistake_id)
        source, text = explanation_display(session.find_mistake(mistake_id))
        if source == "brief":
            print("(Russian explanation unavailable, showing English)")
        print(text)
    elif command == "/history":
        print_transcript(session)
    else:
        print(f"Unknown command: {command}")
    return True


def print_feature_banner(feature: Feature) -> None:
    print(f"[{FEATURE_NAMES[feature]}] {FEATURE_DESCRIPTIONS[feature]}")


def print_transcript(session: ConversationOrchestrator) -> None:
    for message in session.messages:
        print(format_message(message, session.tutor_name))


async def run_session(session: ConversationOrchestrator, speak: bool = False) -> None:
    await session.load_history()
    print_feature_banner(session.state.current_feature)
    print_transcript(session)

    while True:
        prompt = input_placeholder(
            session.state.current_feature, session.state.retry_pending_id is not None
        )
        try:
            line = (await asyncio.to_thread(input, f"[{prompt}] > ")).strip()
        except EOFError:
            break
        if not line:
            continue
        if line.startswith("/"):
            if not await handle_command(session, line):
                break
            continue

        count = len(session.messages)
        await session.submit(line, auto_speak=speak)
        # The user turn is already on screen; show everything after it.
        for message in session.messages[count + 1:]:
            print(format_message(message, session.tutor_name))


def main():
    parser = argparse.ArgumentParser(description="English coach")
    parser.add_argument("--user-id", type=str, default="local")
    parser.add_argument(
        "--feature",
        type=str,
        choices=[f.value for f in Feature],
        default=Feature.FREE_TALK.value,
        help="Initial feature (default: freeTalk)",
    )
    parser.add_argument("--data-dir", type=str, default=settings.DATA_DIR)
    parser.add_argument(
        "--speak", action="store_true", help="Synthesize tutor replies with ElevenLabs (written to data/audio/ when SAVE_TTS_AUDIO)"
    )
    args = parser.parse_args()

    log.info(f"Config: user={args.user_id}, feature={args.feature}, model={settings.OPENAI_MODEL}")

    session = ConversationOrchestrator(
        user_id=args.user_id,
        llm=LLMService(),
        store=HistoryStore(args.data_dir),
        speaker=build_speaker() if args.speak else None,
        feature=Feature(args.feature),
    )
    asyncio.run(run_session(session, args.speak))


if __name__ == "__main__":
    main()
