"""
Data models for the orchestration layer.

'GenerationRequest' bundles everything that determines a single call (prompt,
history, level, mode, language, attachment, preferences). It is built fresh per
call and never persisted. 'ConversationTurn' is the persisted unit of chat
history; 'GenerationResult' is what the orchestrator hands back, successful or
not. Errors are carried as data ('is_error', 'error_kind') so no exception
crosses into the presentation layer.

The enumerations are closed: every table keyed by them ('PROFILE_TABLE',
'MODE_INSTRUCTIONS', 'SYLLABUS_BY_SUB_LEVEL', ...) is total and checked at
import time.
"""

import base64
from datetime import datetime, timezone
from enum import StrEnum
from typing import Self

from pydantic import BaseModel, ConfigDict, Field, model_validator

from tutoring_toolkit.errors import AttachmentError, ErrorKind
from tutoring_toolkit.llms.base import Citation, GeneratedImage, Roles

CHAT_ATTACHMENT_MAX_BYTES = 10 * 1024 * 1024
NOTES_ATTACHMENT_MAX_BYTES = 35 * 1024 * 1024
NOTES_MAX_FILES = 5

CHAT_MIME_PREFIXES = ("image/", "application/pdf")
NOTES_MIME_PREFIXES = ("image/", "application/pdf", "text/plain")

PASTED_TEXT_NAME = "Text Input"


class LearnerLevel(StrEnum):
    BEGINNER = "Beginner (Primary)"
    INTERMEDIATE = "Intermediate (Secondary)"
    ADVANCED = "Advanced (KSSM Add Math / Pre-U)"
    GENERAL = "General AI Tutor"


class SubLevel(StrEnum):
    STANDARD_1 = "Standard 1"
    STANDARD_2 = "Standard 2"
    STANDARD_3 = "Standard 3"
    STANDARD_4 = "Standard 4"
    STANDARD_5 = "Standard 5"
    STANDARD_6 = "Standard 6"
    FORM_1 = "Form 1"
    FORM_2 = "Form 2"
    FORM_3 = "Form 3"
    FORM_4 = "Form 4"
    FORM_5 = "Form 5"
    ESSENTIAL_MATHEMATICS = "Essential Mathematics"


class TutoringMode(StrEnum):
    LEARNING = "learning"
    EXAM = "exam"
    FAST = "fast"


class Language(StrEnum):
    EN = "EN"
    BM = "BM"


class ReasoningDepth(StrEnum):
    FAST = "fast"
    DEEP = "deep"


class ImageSize(StrEnum):
    K1 = "1K"
    K2 = "2K"
    K4 = "4K"


class QuizDifficulty(StrEnum):
    EASY = "easy"
    MEDIUM = "medium"
    HARD = "hard"
    ADAPTIVE = "adaptive"


class Attachment(BaseModel):
    """A file attached to an outgoing turn. Immutable once built."""

    model_config = ConfigDict(frozen=True)

    data: str  # base64
    mime_type: str
    name: str

    @classmethod
    def from_bytes(cls, raw: bytes, mime_type: str, name: str) -> Self:
        return cls(data=base64.b64encode(raw).decode("ascii"), mime_type=mime_type, name=name)

    @classmethod
    def from_text(cls, text: str) -> Self:
        """Wrap pasted text as a pseudo-attachment for study-note synthesis."""
        return cls.from_bytes(text.encode("utf-8"), "text/plain", PASTED_TEXT_NAME)

    @property
    def size_bytes(self) -> int:
        padding = self.data.count("=", max(len(self.data) - 2, 0))
        return len(self.data) * 3 // 4 - padding

    def check(self, max_bytes: int, mime_prefixes: tuple[str, ...]) -> None:
        """Raise 'AttachmentError' if this attachment exceeds 'max_bytes' or has an unsupported type."""
        if self.size_bytes > max_bytes:
            raise AttachmentError(
                f"File '{self.name}' is too large ({self.size_bytes} bytes, limit {max_bytes}).", too_large=True
            )
        if not self.mime_type.startswith(mime_prefixes):
            raise AttachmentError(f"Unsupported file type '{self.mime_type}' for '{self.name}'.")


class ConversationTurn(BaseModel):
    """
    One message of a conversation.

    'timestamp' accepts ISO strings and epoch seconds when rehydrated from
    storage; naive datetimes are treated as UTC.
    """

    role: Roles
    text: str
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    attachment: Attachment | None = None
    image: GeneratedImage | None = None
    citations: list[Citation] = Field(default_factory=list)
    error: bool = False

    @model_validator(mode="after")
    def _coerce_timezone(self) -> Self:
        if self.timestamp.tzinfo is None:
            self.timestamp = self.timestamp.replace(tzinfo=timezone.utc)
        return self


class GenerationRequest(BaseModel):
    prompt: str = ""
    history: list[ConversationTurn] = Field(default_factory=list)
    level: LearnerLevel = LearnerLevel.INTERMEDIATE
    mode: TutoringMode = TutoringMode.LEARNING
    language: Language = Language.EN
    attachment: Attachment | None = None
    focus_areas: list[str] = Field(default_factory=list)
    sub_level: SubLevel | None = None
    guided_questions: bool = True
    reasoning_depth: ReasoningDepth = ReasoningDepth.DEEP
    image: GeneratedImage | None = None

    @model_validator(mode="after")
    def _require_content(self) -> Self:
        if not self.prompt.strip() and self.attachment is None:
            raise ValueError("A prompt or an attachment is required")
        return self


class GenerationResult(BaseModel):
    text: str
    citations: list[Citation] = Field(default_factory=list)
    is_error: bool = False
    error_kind: ErrorKind | None = None
    image: GeneratedImage | None = None
    model_name: str | None = None


class PartialResponse(BaseModel):
    """One streaming event: the cumulative text so far and the citations collected so far."""

    text: str
    citations: list[Citation] = Field(default_factory=list)


class QuizQuestion(BaseModel):
    question: str
    options: list[str] = Field(min_length=2)
    correct_answer_index: int
    explanation: str

    @model_validator(mode="after")
    def _check_answer_index(self) -> Self:
        if not 0 <= self.correct_answer_index < len(self.options):
            raise ValueError(
                f"correct_answer_index {self.correct_answer_index} is out of range for {len(self.options)} options"
            )
        return self


class QuizPayload(BaseModel):
    """The structure the model is asked to return for a quiz."""

    title: str
    questions: list[QuizQuestion] = Field(min_length=1)


class Quiz(QuizPayload):
    difficulty: QuizDifficulty = QuizDifficulty.MEDIUM
