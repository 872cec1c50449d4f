"""
Single-request generation tools: quizzes, study notes and illustrations.

These share the orchestrator's retry policy and error classification but never
stream. Each tool has its own failure contract:

    'generate_quiz'         raises 'TutoringError' with a localized message.
    'generate_study_notes'  returns a 'GenerationResult' with 'is_error' set.
    'generate_illustration' returns None; illustration never fails a caller.
"""

import asyncio

from loguru import logger
from pydantic import ValidationError

from tutoring_toolkit.errors import AttachmentError, ErrorKind, MalformedOutputError, TutoringError, classify_error
from tutoring_toolkit.llms.base import LLM, GeneratedImage, GenerationSettings, ImageSettings, InlineData, LLMMessage, Roles
from tutoring_toolkit.orchestration.data_models import (
    NOTES_ATTACHMENT_MAX_BYTES,
    NOTES_MAX_FILES,
    NOTES_MIME_PREFIXES,
    Attachment,
    GenerationResult,
    ImageSize,
    Language,
    LearnerLevel,
    Quiz,
    QuizDifficulty,
    QuizPayload,
)
from tutoring_toolkit.orchestration.instructions import (
    ILLUSTRATION_PROMPT,
    quiz_instruction,
    quiz_request,
    study_notes_instruction,
    study_notes_request,
)
from tutoring_toolkit.orchestration.localization import STUDY_NOTES_EMPTY, error_message
from tutoring_toolkit.orchestration.profiles import FLASH_MODEL, PRO_MODEL
from tutoring_toolkit.orchestration.retry import DEFAULT_RETRY_POLICY, RetryPolicy, Sleep, call_with_retry

FLASH_IMAGE_MODEL = "gemini-2.5-flash-image"
PRO_IMAGE_MODEL = "gemini-3-pro-image-preview"


class StudyTools:
    def __init__(
        self,
        llm: LLM,
        retry_policy: RetryPolicy = DEFAULT_RETRY_POLICY,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        self.llm = llm
        self.retry_policy = retry_policy
        self.sleep = sleep

    async def generate_quiz(
        self,
        topic: str,
        level: LearnerLevel,
        language: Language,
        difficulty: QuizDifficulty = QuizDifficulty.MEDIUM,
        focus_areas: list[str] | None = None,
    ) -> Quiz:
        settings = GenerationSettings(
            model_name=PRO_MODEL,
            system_instruction=quiz_instruction(language, level, difficulty, focus_areas),
            temperature=0.4,
            response_schema=QuizPayload,
        )
        conversation = [LLMMessage(role=Roles.USER, content=quiz_request(topic, level, difficulty, focus_areas))]
        logger.info(f"Generating {difficulty} quiz on {topic!r} for {level.value}")
        try:
            response = await call_with_retry(
                lambda: self.llm.generate(conversation, settings),
                self.retry_policy,
                self.sleep,
                label="quiz generation",
            )
            payload = _parse_quiz(response.content)
        except Exception as e:
            kind = classify_error(e)
            logger.error(f"Quiz generation failed ({kind}): {e}")
            raise TutoringError(error_message(kind, language), kind=kind) from e
        return Quiz(title=payload.title, questions=payload.questions, difficulty=difficulty)

    async def generate_study_notes(self, files: list[Attachment], language: Language) -> GenerationResult:
        """Synthesize one study sheet from up to 'NOTES_MAX_FILES' attachments.

        Raises:
            AttachmentError: If there are no files, too many files, or a file breaks the size/type limits.
        """
        _check_note_files(files)
        settings = GenerationSettings(
            model_name=FLASH_MODEL,
            system_instruction=study_notes_instruction(language),
            temperature=0.1,
            top_p=0.8,
        )
        conversation = [
            LLMMessage(
                role=Roles.USER,
                content=study_notes_request(len(files)),
                inline_data=[InlineData(mime_type=f.mime_type, data=f.data) for f in files],
            )
        ]
        logger.info(f"Synthesizing study notes from {len(files)} file(s): {[f.name for f in files]}")
        try:
            response = await call_with_retry(
                lambda: self.llm.generate(conversation, settings),
                self.retry_policy,
                self.sleep,
                label="study notes",
            )
        except Exception as e:
            kind = classify_error(e)
            logger.error(f"Study note synthesis failed ({kind}): {e}")
            return GenerationResult(text=error_message(kind, language), is_error=True, error_kind=kind)

        if not response.content.strip():
            return GenerationResult(
                text=STUDY_NOTES_EMPTY[language],
                is_error=True,
                error_kind=ErrorKind.MALFORMED_OUTPUT,
                model_name=FLASH_MODEL,
            )
        return GenerationResult(text=response.content, model_name=FLASH_MODEL)

    async def generate_illustration(
        self,
        description: str,
        size: ImageSize = ImageSize.K1,
        high_res: bool = False,
    ) -> GeneratedImage | None:
        if high_res:
            settings = ImageSettings(model_name=PRO_IMAGE_MODEL, image_size=size.value)
        else:
            settings = ImageSettings(model_name=FLASH_IMAGE_MODEL)
        prompt = ILLUSTRATION_PROMPT.format(description=description.strip())
        try:
            return await call_with_retry(
                lambda: self.llm.generate_image(prompt, settings),
                self.retry_policy,
                self.sleep,
                label="illustration",
            )
        except Exception:
            logger.exception(f"Illustration failed for {description!r}")
            return None


def _parse_quiz(content: str) -> QuizPayload:
    try:
        return QuizPayload.model_validate_json(content.strip() or "{}")
    except ValidationError as e:
        raise MalformedOutputError(f"Quiz response did not match the schema: {e.error_count()} error(s)") from e


def _check_note_files(files: list[Attachment]) -> None:
    if not files:
        raise AttachmentError("At least one file or some text is required.")
    if len(files) > NOTES_MAX_FILES:
        raise AttachmentError(f"Limit of {NOTES_MAX_FILES} files reached.", too_large=True)
    for f in files:
        f.check(NOTES_ATTACHMENT_MAX_BYTES, NOTES_MIME_PREFIXES)
