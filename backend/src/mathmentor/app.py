"""
MathMentor HTTP service.

'create_app' wires the orchestrator, study tools and repositories into a
FastAPI application. Chat, quiz, notes and illustration routes are stateless:
every request carries its full context. '/session/messages' instead drives a
per-user 'TutorSession', including the tutoring-mode dialogue.

Sessions are kept per user id, least recently used first out once more than
'max_sessions' are open. A new session adopts the level, language and
tutoring mode of the user's profile.

Streaming routes emit NDJSON, one event per line:

    {"type": "partial", "text": <cumulative text>, "citations": [...]}
    {"type": "result", ...GenerationResult fields}

Error mapping:
    'AttachmentError'       -> 413 (too large) or 415 (unsupported type)
    'RequestInFlightError'  -> 409
    other 'TutoringError'   -> 502 with the localized message
    invalid level/sub-level -> 422
"""

import asyncio
import json
from collections import OrderedDict
from collections.abc import AsyncGenerator

from fastapi import Depends, FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse, StreamingResponse
from loguru import logger
from pydantic import BaseModel, Field, field_validator

from mathmentor.config import Settings
from mathmentor.factory import build_orchestrator
from tutoring_toolkit.api.auth.base import AuthProvider, HeaderAuthProvider
from tutoring_toolkit.curriculum import focus_options
from tutoring_toolkit.errors import AttachmentError, RequestInFlightError, TutoringError
from tutoring_toolkit.llms.base import LLM, GeneratedImage
from tutoring_toolkit.orchestration.data_models import (
    CHAT_ATTACHMENT_MAX_BYTES,
    CHAT_MIME_PREFIXES,
    Attachment,
    ConversationTurn,
    GenerationRequest,
    GenerationResult,
    ImageSize,
    Language,
    LearnerLevel,
    PartialResponse,
    Quiz,
    QuizDifficulty,
    ReasoningDepth,
    SubLevel,
    TutoringMode,
)
from tutoring_toolkit.session.connectivity import ConnectivityProbe, always_online
from tutoring_toolkit.session.controller import TutorSession, build_feedback_mailto, record_feedback
from tutoring_toolkit.session.data_models.feedback import Feedback, FeedbackDatabase, InMemoryFeedbackDatabase
from tutoring_toolkit.session.state import Preferences
from tutoring_toolkit.session.data_models.user import (
    InMemoryUserProfileDatabase,
    UserProfile,
    UserProfileDatabase,
    UserProfileUpdate,
    get_or_create_profile,
    update_profile,
)
from tutoring_toolkit.storage.in_memory import InMemoryStore

NDJSON_MEDIA_TYPE = "application/x-ndjson"
MAX_SESSIONS = 1000


class QuizInput(BaseModel):
    topic: str = Field(min_length=1)
    level: LearnerLevel = LearnerLevel.INTERMEDIATE
    language: Language = Language.EN
    difficulty: QuizDifficulty = QuizDifficulty.MEDIUM
    focus_areas: list[str] = Field(default_factory=list)


class NotesInput(BaseModel):
    files: list[Attachment] = Field(default_factory=list)
    text: str | None = None
    language: Language = Language.EN


class IllustrationInput(BaseModel):
    description: str = Field(min_length=1)
    size: ImageSize = ImageSize.K1
    high_res: bool = False


class IllustrationOutput(BaseModel):
    image: GeneratedImage | None


class FeedbackInput(BaseModel):
    rating: int = Field(ge=1, le=5)
    message: str
    level: LearnerLevel | None = None
    sub_level: SubLevel | None = None
    language: Language | None = None

    @field_validator("message")
    @classmethod
    def _non_empty(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("Feedback message must not be empty")
        return value


class FeedbackReceipt(BaseModel):
    feedback: Feedback
    mailto: str


class SessionMessageInput(BaseModel):
    text: str = ""
    attachment: Attachment | None = None


class LevelInput(BaseModel):
    level: LearnerLevel
    sub_level: SubLevel | None = None


class FocusAreaInput(BaseModel):
    label: str = Field(min_length=1)


class PreferencesInput(BaseModel):
    language: Language | None = None
    guided_questions: bool | None = None
    reasoning_depth: ReasoningDepth | None = None


class SessionSettings(BaseModel):
    level: LearnerLevel
    sub_level: SubLevel | None
    language: Language
    chat_mode: TutoringMode | None
    focus_areas: list[str]
    focus_options: list[str]
    preferences: Preferences

    @classmethod
    def of(cls, session: TutorSession) -> "SessionSettings":
        state = session.state
        return cls(
            level=state.level,
            sub_level=state.sub_level,
            language=state.language,
            chat_mode=state.chat_mode,
            focus_areas=list(state.focus_areas),
            focus_options=session.focus_options(),
            preferences=state.preferences,
        )


def _ndjson(event: PartialResponse | GenerationResult | ConversationTurn) -> str:
    if isinstance(event, PartialResponse):
        kind = "partial"
    elif isinstance(event, GenerationResult):
        kind = "result"
    else:
        kind = "turn"
    return json.dumps({"type": kind, **event.model_dump(mode="json")}, ensure_ascii=False) + "\n"


def create_app(
    settings: Settings,
    llm: LLM | None = None,
    auth_provider: AuthProvider | None = None,
    profile_db: UserProfileDatabase | None = None,
    feedback_db: FeedbackDatabase | None = None,
    connectivity_probe: ConnectivityProbe = always_online,
    max_sessions: int = MAX_SESSIONS,
) -> FastAPI:
    orchestrator = build_orchestrator(settings, llm)
    auth = auth_provider or HeaderAuthProvider()
    profiles = profile_db or InMemoryUserProfileDatabase()
    feedback_store = feedback_db or InMemoryFeedbackDatabase()
    sessions: OrderedDict[str, TutorSession] = OrderedDict()
    sessions_lock = asyncio.Lock()

    app = FastAPI(title="MathMentor")
    auth.bind_to_app(app)

    @app.exception_handler(AttachmentError)
    async def attachment_error_handler(request: Request, exc: AttachmentError) -> JSONResponse:
        return JSONResponse(status_code=413 if exc.too_large else 415, content={"detail": exc.message})

    @app.exception_handler(RequestInFlightError)
    async def in_flight_error_handler(request: Request, exc: RequestInFlightError) -> JSONResponse:
        return JSONResponse(status_code=409, content={"detail": exc.message})

    @app.exception_handler(TutoringError)
    async def tutoring_error_handler(request: Request, exc: TutoringError) -> JSONResponse:
        return JSONResponse(status_code=502, content={"detail": exc.message, "kind": exc.kind.value})

    @app.post("/chat")
    async def chat(request: GenerationRequest) -> GenerationResult:
        return await orchestrator.solve(request)

    @app.post("/chat/stream")
    async def chat_stream(request: GenerationRequest) -> StreamingResponse:
        # Validate the attachment before the response starts so errors still map to a status code.
        orchestrator.build_conversation(request)

        async def events() -> AsyncGenerator[str, None]:
            async for event in orchestrator.stream_response(request):
                yield _ndjson(event)

        return StreamingResponse(events(), media_type=NDJSON_MEDIA_TYPE)

    @app.post("/quiz")
    async def quiz(quiz_input: QuizInput) -> Quiz:
        return await orchestrator.study_tools.generate_quiz(
            quiz_input.topic,
            quiz_input.level,
            quiz_input.language,
            quiz_input.difficulty,
            quiz_input.focus_areas,
        )

    @app.post("/notes")
    async def notes(notes_input: NotesInput) -> GenerationResult:
        files = list(notes_input.files)
        if notes_input.text and notes_input.text.strip():
            files.append(Attachment.from_text(notes_input.text))
        if not files:
            raise HTTPException(status_code=422, detail="At least one file or some text is required")
        return await orchestrator.study_tools.generate_study_notes(files, notes_input.language)

    @app.post("/illustrations")
    async def illustrations(illustration_input: IllustrationInput) -> IllustrationOutput:
        image = await orchestrator.study_tools.generate_illustration(
            illustration_input.description, illustration_input.size, illustration_input.high_res
        )
        return IllustrationOutput(image=image)

    @app.get("/focus-areas")
    async def focus_areas(
        level: LearnerLevel, sub_level: SubLevel | None = None, language: Language = Language.EN
    ) -> list[str]:
        return focus_options(level, sub_level, language)

    @app.get("/profile")
    async def get_profile(user_id: str = Depends(auth.get_current_user_id)) -> UserProfile:
        return await get_or_create_profile(profiles, user_id)

    @app.put("/profile")
    async def put_profile(
        update: UserProfileUpdate, user_id: str = Depends(auth.get_current_user_id)
    ) -> UserProfile:
        session = sessions.get(user_id)
        if session is not None and session.is_busy:
            raise RequestInFlightError("A response is still being generated for this session.")
        profile = await update_profile(profiles, user_id, update)
        if session is not None:
            await session.sign_in(profile)
        return profile

    @app.post("/feedback")
    async def post_feedback(
        feedback_input: FeedbackInput, user_id: str = Depends(auth.get_current_user_id)
    ) -> FeedbackReceipt:
        profile = await get_or_create_profile(profiles, user_id)
        feedback = await record_feedback(feedback_store, profile, feedback_input.rating, feedback_input.message)
        mailto = build_feedback_mailto(
            feedback,
            feedback_input.level or profile.level,
            feedback_input.sub_level,
            feedback_input.language or profile.language,
        )
        return FeedbackReceipt(feedback=feedback, mailto=mailto)

    @app.get("/feedback")
    async def list_feedback(user_id: str = Depends(auth.get_current_user_id)) -> list[Feedback]:
        return await feedback_store.list_feedback(user_id)

    def evict_idle_sessions(keep: str) -> None:
        excess = len(sessions) - max_sessions
        if excess <= 0:
            return
        idle = [uid for uid, session in sessions.items() if uid != keep and not session.is_busy]
        for stale_id in idle[:excess]:
            logger.info(f"Closing least recently used tutoring session of user {stale_id}")
            del sessions[stale_id]

    async def get_session(user_id: str = Depends(auth.get_current_user_id)) -> TutorSession:
        async with sessions_lock:
            session = sessions.get(user_id)
            if session is None:
                logger.info(f"Opening tutoring session for user {user_id}")
                session = await TutorSession.load(
                    orchestrator,
                    InMemoryStore(),
                    default_language=settings.default_language,
                    feedback_db=feedback_store,
                    connectivity_probe=connectivity_probe,
                )
                await session.sign_in(await get_or_create_profile(profiles, user_id))
                sessions[user_id] = session
                evict_idle_sessions(keep=user_id)
            sessions.move_to_end(user_id)
            return session

    async def get_idle_session(session: TutorSession = Depends(get_session)) -> TutorSession:
        if session.is_busy:
            raise RequestInFlightError("A response is still being generated for this session.")
        return session

    @app.post("/session/messages")
    async def session_message(
        message: SessionMessageInput, session: TutorSession = Depends(get_session)
    ) -> StreamingResponse:
        if not message.text.strip() and message.attachment is None:
            raise HTTPException(status_code=422, detail="A message or an attachment is required")

        turns = session.process_message_stream(message.text, message.attachment)
        # Run up to the first turn here: the session is marked busy before the response starts,
        # and a busy session or a rejected attachment still maps to a status code.
        first_turn = await anext(turns)

        async def events() -> AsyncGenerator[str, None]:
            yield _ndjson(first_turn)
            async for turn in turns:
                yield _ndjson(turn)

        return StreamingResponse(events(), media_type=NDJSON_MEDIA_TYPE)

    @app.get("/session/history")
    async def session_history(session: TutorSession = Depends(get_session)) -> list[ConversationTurn]:
        return session.state.history

    @app.get("/session")
    async def session_settings(session: TutorSession = Depends(get_session)) -> SessionSettings:
        return SessionSettings.of(session)

    @app.put("/session/level")
    async def session_level(
        level_input: LevelInput, session: TutorSession = Depends(get_idle_session)
    ) -> SessionSettings:
        try:
            await session.change_level(level_input.level, level_input.sub_level)
        except ValueError as e:
            raise HTTPException(status_code=422, detail=str(e))
        return SessionSettings.of(session)

    @app.post("/session/focus-areas")
    async def session_focus_area(
        focus_input: FocusAreaInput, session: TutorSession = Depends(get_idle_session)
    ) -> SessionSettings:
        await session.toggle_focus_area(focus_input.label)
        return SessionSettings.of(session)

    @app.put("/session/preferences")
    async def session_preferences(
        preferences_input: PreferencesInput, session: TutorSession = Depends(get_idle_session)
    ) -> SessionSettings:
        await session.update_preferences(
            language=preferences_input.language,
            guided_questions=preferences_input.guided_questions,
            reasoning_depth=preferences_input.reasoning_depth,
        )
        return SessionSettings.of(session)

    @app.delete("/session")
    async def session_clear(session: TutorSession = Depends(get_idle_session)) -> SessionSettings:
        await session.clear_data()
        return SessionSettings.of(session)

    return app
