"""
Interactive console tutor.

Type a problem to get a streamed answer. Lines starting with '/' are commands:

    /level <n> [sub-level]  - switch level (1 beginner, 2 intermediate, 3 advanced, 4 general)
    /lang EN|BM             - switch language
    /focus [label]          - list focus areas, or toggle one
    /depth fast|deep        - reasoning depth
    /guided on|off          - guiding questions at the end of explanations
    /name <display name>    - set the name shown on feedback
    /feedback <1-5> <text>  - rate MathMentor and get a mail link for the operator
    /mode                   - forget the tutoring mode so it is asked again
    /clear                  - delete history, focus areas and user
    /quit                   - leave

State and feedback are kept in MATHMENTOR_STATE_PATH between runs.

Usage:
    GEMINI_API_KEY=... python -m mathmentor
"""

import asyncio

from loguru import logger

from mathmentor.config import Settings, configure_logging, load_settings
from mathmentor.factory import build_orchestrator
from tutoring_toolkit.errors import AttachmentError, RequestInFlightError
from tutoring_toolkit.llms.base import LLM
from tutoring_toolkit.orchestration.data_models import Language, LearnerLevel, ReasoningDepth, SubLevel
from tutoring_toolkit.session.controller import TutorSession
from tutoring_toolkit.session.data_models.feedback import StoredFeedbackDatabase
from tutoring_toolkit.session.data_models.user import UserProfileUpdate
from tutoring_toolkit.storage.json_file import JsonFileStore

LEVELS = {
    "1": LearnerLevel.BEGINNER,
    "2": LearnerLevel.INTERMEDIATE,
    "3": LearnerLevel.ADVANCED,
    "4": LearnerLevel.GENERAL,
}

SWITCHES = {"on": True, "off": False}


async def handle_command(session: TutorSession, line: str) -> bool:
    """Run a '/command'. Returns False when the loop should stop."""
    command, _, argument = line[1:].partition(" ")
    argument = argument.strip()
    match command:
        case "quit" | "exit":
            return False
        case "level":
            number, _, sub_level = argument.partition(" ")
            if number not in LEVELS:
                print(f"Unknown level {number!r}. Choose one of {', '.join(LEVELS)}.")
                return True
            await session.change_level(LEVELS[number], SubLevel(sub_level.strip()) if sub_level.strip() else None)
            print(f"Level: {session.state.level.value}")
        case "lang":
            await session.update_preferences(language=Language(argument.upper()))
            print(f"Language: {session.state.language.value}")
        case "focus":
            if argument:
                active = await session.toggle_focus_area(argument)
                print(f"Active focus areas: {', '.join(active) or 'none'}")
            else:
                for label in session.focus_options():
                    marker = "*" if label in session.state.focus_areas else " "
                    print(f" {marker} {label}")
        case "depth":
            await session.update_preferences(reasoning_depth=ReasoningDepth(argument.lower()))
            print(f"Reasoning depth: {session.state.preferences.reasoning_depth.value}")
        case "guided":
            if argument.lower() not in SWITCHES:
                print("Use /guided on or /guided off.")
                return True
            await session.update_preferences(guided_questions=SWITCHES[argument.lower()])
            print(f"Guiding questions: {argument.lower()}")
        case "name":
            if not argument:
                print("Use /name <display name>.")
                return True
            profile = await session.update_user(UserProfileUpdate(display_name=argument))
            print(f"Signed in as {profile.display_name}")
        case "feedback":
            rating, _, message = argument.partition(" ")
            mailto = await session.submit_feedback(int(rating), message)
            print(f"Thank you! Send it to the team with:\n{mailto}")
        case "mode":
            session.state.chat_mode = None
            await session.save()
        case "clear":
            await session.clear_data()
            print("History cleared.")
        case _:
            print(f"Unknown command /{command}")
    return True


async def chat_loop(session: TutorSession) -> None:
    while True:
        line = (await asyncio.to_thread(input, "\nyou> ")).strip()
        if not line:
            continue
        if line.startswith("/"):
            try:
                if not await handle_command(session, line):
                    return
            except ValueError as e:
                print(f"Invalid argument: {e}")
            continue

        print("tutor> ", end="", flush=True)
        printed = ""
        try:
            async for turn in session.process_message_stream(line):
                if turn.text.startswith(printed):
                    print(turn.text[len(printed) :], end="", flush=True)
                else:
                    print(f"\n{turn.text}", end="", flush=True)
                printed = turn.text
        except (AttachmentError, RequestInFlightError) as e:
            print(e.message)
            continue
        print()
        last = session.state.history[-1]
        if last.image is not None:
            print(f"[illustration attached: {last.image.mime_type}, {len(last.image.data)} base64 characters]")
        for citation in last.citations:
            print(f"  source: {citation.title} <{citation.uri}>")


async def open_session(settings: Settings, llm: LLM | None = None) -> TutorSession:
    store = JsonFileStore(settings.state_path)
    return await TutorSession.load(
        build_orchestrator(settings, llm),
        store,
        default_language=settings.default_language,
        feedback_db=StoredFeedbackDatabase(store),
    )


async def main() -> None:
    settings = load_settings()
    configure_logging(settings.log_level)
    session = await open_session(settings)
    logger.info(f"State file: {settings.state_path}")
    print("MathMentor console. Type /quit to leave.")
    await chat_loop(session)


def run() -> None:
    try:
        asyncio.run(main())
    except (KeyboardInterrupt, EOFError):
        pass


if __name__ == "__main__":
    run()
