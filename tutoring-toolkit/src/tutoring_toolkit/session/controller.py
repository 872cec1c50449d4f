"""
Tutoring session controller (Facade).

'TutorSession' is the single owner and mutator of one learner's 'AppState'.
It turns incoming messages into conversation turns: it runs the tutoring-mode
selection dialogue, short-circuits when offline, drives the orchestrator and
persists the state after every completed turn and every settings change.

The two public entry points for message processing are:

    'process_message'        - returns the final model 'ConversationTurn'.
    'process_message_stream' - async generator that yields a snapshot of the
                               model turn for every streamed fragment, then the
                               final turn as stored in the history.

Only one message may be processed at a time; a second one raises
'RequestInFlightError' instead of being queued.
"""

from collections.abc import AsyncGenerator
from typing import Any, Self
from urllib.parse import quote
from uuid import uuid4

from loguru import logger

from tutoring_toolkit.curriculum import check_sub_level, focus_options
from tutoring_toolkit.errors import ErrorKind, RequestInFlightError
from tutoring_toolkit.llms.base import GeneratedImage, Roles
from tutoring_toolkit.orchestration.data_models import (
    CHAT_ATTACHMENT_MAX_BYTES,
    CHAT_MIME_PREFIXES,
    Attachment,
    ConversationTurn,
    GenerationRequest,
    GenerationResult,
    Language,
    LearnerLevel,
    ReasoningDepth,
    SubLevel,
    TutoringMode,
)
from tutoring_toolkit.orchestration.localization import MODE_PROMPT, error_message, mode_set_message
from tutoring_toolkit.orchestration.orchestrator import ResponseOrchestrator
from tutoring_toolkit.session.connectivity import ConnectivityProbe, http_probe
from tutoring_toolkit.session.data_models.feedback import Feedback, FeedbackDatabase, InMemoryFeedbackDatabase
from tutoring_toolkit.session.data_models.user import UserProfile, UserProfileUpdate
from tutoring_toolkit.session.state import AppState, load_state, save_state
from tutoring_toolkit.storage.base import KeyValueStore

FEEDBACK_EMAIL = "ogmathmentor@gmail.com"

MODE_KEYWORDS: dict[str, TutoringMode] = {
    "fast": TutoringMode.FAST,
    "fast answer": TutoringMode.FAST,
    "exam": TutoringMode.EXAM,
    "exam mode": TutoringMode.EXAM,
    "learning": TutoringMode.LEARNING,
    "learning mode": TutoringMode.LEARNING,
}


def match_mode_keyword(text: str) -> TutoringMode | None:
    return MODE_KEYWORDS.get(text.strip().lower())


class TutorSession:
    def __init__(
        self,
        orchestrator: ResponseOrchestrator,
        store: KeyValueStore,
        state: AppState | None = None,
        feedback_db: FeedbackDatabase | None = None,
        connectivity_probe: ConnectivityProbe = http_probe,
    ):
        self.orchestrator = orchestrator
        self.store = store
        self.state = state or AppState()
        self.feedback_db = feedback_db or InMemoryFeedbackDatabase()
        self.connectivity_probe = connectivity_probe
        self._in_flight = False

    @classmethod
    async def load(
        cls,
        orchestrator: ResponseOrchestrator,
        store: KeyValueStore,
        default_language: Language = Language.EN,
        **kwargs: Any,
    ) -> Self:
        """Create a session whose state is rehydrated from 'store'."""
        state = await load_state(store, default_language)
        return cls(orchestrator, store, state=state, **kwargs)

    async def save(self) -> None:
        await save_state(self.store, self.state)

    @property
    def is_busy(self) -> bool:
        return self._in_flight

    async def process_message(
        self, text: str, attachment: Attachment | None = None, image: GeneratedImage | None = None
    ) -> ConversationTurn:
        last_turn = None
        async for turn in self.process_message_stream(text, attachment, image):
            last_turn = turn
        if last_turn is None:
            raise RuntimeError("No turn was produced from the stream")
        return last_turn

    async def process_message_stream(
        self, text: str, attachment: Attachment | None = None, image: GeneratedImage | None = None
    ) -> AsyncGenerator[ConversationTurn, Any]:
        if self._in_flight:
            raise RequestInFlightError("A response is still being generated for this session.")
        if not text.strip() and attachment is None:
            raise ValueError("A message or an attachment is required")
        if attachment is not None:
            attachment.check(CHAT_ATTACHMENT_MAX_BYTES, CHAT_MIME_PREFIXES)

        self._in_flight = True
        try:
            user_turn = ConversationTurn(role=Roles.USER, text=text, attachment=attachment)
            history = self._prior_turns()
            self.state.history.append(user_turn)

            if self.state.level is LearnerLevel.GENERAL:
                async for turn in self._solve(user_turn, TutoringMode.LEARNING, history, image):
                    yield turn
            elif self.state.chat_mode is not None:
                async for turn in self._solve(user_turn, self.state.chat_mode, history, image):
                    yield turn
            else:
                async for turn in self._select_mode(user_turn):
                    yield turn
        finally:
            self._in_flight = False

    async def _select_mode(self, user_turn: ConversationTurn) -> AsyncGenerator[ConversationTurn, Any]:
        mode = match_mode_keyword(user_turn.text)
        if mode is None:
            logger.info("No tutoring mode chosen yet, holding the message as the pending problem")
            self.state.pending_problem = user_turn
            yield await self._reply(MODE_PROMPT[self.state.language])
            return

        logger.info(f"Tutoring mode set to {mode}")
        self.state.chat_mode = mode
        pending = self.state.pending_problem
        if pending is None:
            yield await self._reply(mode_set_message(mode, self.state.language))
            return

        self.state.pending_problem = None
        pending_index = next(i for i, turn in enumerate(self.state.history) if turn is pending)
        history = [turn for turn in self.state.history[:pending_index] if not turn.error]
        async for turn in self._solve(pending, mode, history, image=None):
            yield turn

    async def _solve(
        self,
        problem: ConversationTurn,
        mode: TutoringMode,
        history: list[ConversationTurn],
        image: GeneratedImage | None,
    ) -> AsyncGenerator[ConversationTurn, Any]:
        if not await self.connectivity_probe():
            logger.warning("Offline, skipping the request")
            yield await self._reply(error_message(ErrorKind.OFFLINE, self.state.language), error=True)
            return

        request = GenerationRequest(
            prompt=problem.text,
            history=history,
            level=self.state.level,
            mode=mode,
            language=self.state.language,
            attachment=problem.attachment,
            focus_areas=list(self.state.focus_areas),
            sub_level=self.state.sub_level,
            guided_questions=self.state.preferences.guided_questions,
            reasoning_depth=self.state.preferences.reasoning_depth,
            image=image,
        )

        placeholder_index: int | None = None
        async for event in self.orchestrator.stream_response(request):
            if isinstance(event, GenerationResult):
                final_turn = ConversationTurn(
                    role=Roles.MODEL,
                    text=event.text,
                    image=event.image,
                    citations=event.citations,
                    error=event.is_error,
                )
                if placeholder_index is None:
                    self.state.history.append(final_turn)
                else:
                    self.state.history[placeholder_index] = final_turn
                await self.save()
                yield final_turn
                return

            snapshot = ConversationTurn(role=Roles.MODEL, text=event.text, citations=event.citations)
            if placeholder_index is None:
                self.state.history.append(snapshot)
                placeholder_index = len(self.state.history) - 1
            else:
                self.state.history[placeholder_index] = snapshot
            yield snapshot

    async def _reply(self, text: str, error: bool = False) -> ConversationTurn:
        turn = ConversationTurn(role=Roles.MODEL, text=text, error=error)
        self.state.history.append(turn)
        await self.save()
        return turn

    def _prior_turns(self) -> list[ConversationTurn]:
        # Error turns are local notices, not model output.
        return [turn for turn in self.state.history if not turn.error]

    async def change_level(self, level: LearnerLevel, sub_level: SubLevel | None = None) -> None:
        """Switch level and start over with an empty history.

        Raises:
            ValueError: If 'sub_level' does not belong to 'level'.
        """
        check_sub_level(level, sub_level)
        logger.info(f"Changing level to {level.value} ({sub_level.value if sub_level else 'no sub-level'})")
        self.state.level = level
        self.state.sub_level = sub_level
        self.state.focus_areas = []
        self.state.history = []
        self.state.chat_mode = TutoringMode.LEARNING if level is LearnerLevel.GENERAL else None
        self.state.pending_problem = None
        await self.save()

    def focus_options(self) -> list[str]:
        return focus_options(self.state.level, self.state.sub_level, self.state.language)

    async def toggle_focus_area(self, label: str) -> list[str]:
        if label in self.state.focus_areas:
            self.state.focus_areas.remove(label)
        else:
            self.state.focus_areas.append(label)
        await self.save()
        return list(self.state.focus_areas)

    async def update_preferences(
        self,
        language: Language | None = None,
        guided_questions: bool | None = None,
        reasoning_depth: ReasoningDepth | None = None,
    ) -> None:
        if language is not None:
            self.state.language = language
        if guided_questions is not None:
            self.state.preferences.guided_questions = guided_questions
        if reasoning_depth is not None:
            self.state.preferences.reasoning_depth = reasoning_depth
        await self.save()

    async def sign_in(self, profile: UserProfile) -> None:
        """Attach 'profile' to the session and adopt its level, language and tutoring mode."""
        if profile.level is not self.state.level:
            await self.change_level(profile.level)
        self.state.language = profile.language
        if profile.chat_mode is not None:
            self.state.chat_mode = profile.chat_mode
        self.state.user = profile
        await self.save()

    async def update_user(self, update: UserProfileUpdate) -> UserProfile:
        """Apply 'update' to the signed-in user, creating a guest profile first if nobody is signed in."""
        profile = self.state.user or UserProfile(id=f"guest-{uuid4().hex[:8]}")
        self.state.user = profile.model_copy(update=update.model_dump(exclude_none=True))
        await self.save()
        return self.state.user

    async def submit_feedback(self, rating: int, message: str) -> str:
        """Store the feedback and return a 'mailto:' link addressed to the operator.

        Raises:
            ValueError: If nobody is signed in, or the rating or message is invalid.
        """
        user = self.state.user
        if user is None:
            raise ValueError("Sign in to send feedback")

        feedback = await record_feedback(self.feedback_db, user, rating, message)
        return build_feedback_mailto(feedback, self.state.level, self.state.sub_level, self.state.language)

    async def clear_data(self) -> None:
        logger.info("Clearing history, focus areas and user")
        self.state.history = []
        self.state.focus_areas = []
        self.state.user = None
        self.state.pending_problem = None
        await self.save()


async def record_feedback(db: FeedbackDatabase, user: UserProfile, rating: int, message: str) -> Feedback:
    feedback = await db.create_feedback(
        Feedback(
            id=uuid4().hex,
            user_id=user.id,
            user_name=user.display_name,
            user_avatar=user.avatar_url,
            rating=rating,
            message=message,
        )
    )
    logger.info(f"Feedback {feedback.id} stored ({feedback.rating} star(s))")
    return feedback


def build_feedback_mailto(
    feedback: Feedback, level: LearnerLevel, sub_level: SubLevel | None, language: Language
) -> str:
    subject = f"MathMentor Feedback: {feedback.rating} Stars"
    body = (
        f"Rating: {feedback.rating}/5 Stars\n\n"
        f'User Feedback:\n"{feedback.message}"\n\n'
        "--- Technical Context ---\n"
        f"Learner Level: {level.value}\n"
        f"Current Sub-level: {sub_level.value if sub_level else 'N/A'}\n"
        f"Language: {language.value}\n"
        "Platform: MathMentor AI"
    )
    return f"mailto:{FEEDBACK_EMAIL}?subject={quote(subject)}&body={quote(body)}"
