import json

import pytest

from tutoring_toolkit.errors import AttachmentError, ErrorKind, ProviderError, TutoringError
from tutoring_toolkit.llms.base import GeneratedImage, LLMMessage
from tutoring_toolkit.orchestration.data_models import (
    Attachment,
    ImageSize,
    Language,
    LearnerLevel,
    QuizDifficulty,
    QuizPayload,
)
from tutoring_toolkit.orchestration.localization import STUDY_NOTES_EMPTY, error_message
from tutoring_toolkit.orchestration.profiles import FLASH_MODEL, PRO_MODEL
from tutoring_toolkit.orchestration.study_tools import PRO_IMAGE_MODEL

QUIZ_JSON = json.dumps(
    {
        "title": "Indices",
        "questions": [
            {
                "question": "Simplify $2^3 \\times 2^2$.",
                "options": ["$2^5$", "$2^6$", "$4^5$", "$2^1$"],
                "correct_answer_index": 0,
                "explanation": "Add the exponents: $3 + 2 = 5$.",
            }
        ],
    }
)


@pytest.mark.asyncio
async def test_generate_quiz(study_tools, fake_llm):
    fake_llm.responses = [LLMMessage(content=QUIZ_JSON)]

    quiz = await study_tools.generate_quiz(
        "Indices", LearnerLevel.INTERMEDIATE, Language.EN, QuizDifficulty.HARD, ["Indices"]
    )

    assert quiz.title == "Indices"
    assert quiz.difficulty is QuizDifficulty.HARD
    assert quiz.questions[0].options[quiz.questions[0].correct_answer_index] == "$2^5$"
    conversation, settings = fake_llm.generate_calls[0]
    assert settings.model_name == PRO_MODEL
    assert settings.response_schema is QuizPayload
    assert "Difficulty: hard" in settings.system_instruction
    assert "Indices" in conversation[0].content


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "content",
    [
        "Sure! Here is your quiz.",
        json.dumps({"title": "Empty", "questions": []}),
        QUIZ_JSON.replace('"correct_answer_index": 0', '"correct_answer_index": 7'),
    ],
)
async def test_malformed_quiz_raises_localized_error(study_tools, fake_llm, content):
    fake_llm.responses = [LLMMessage(content=content)]

    with pytest.raises(TutoringError) as excinfo:
        await study_tools.generate_quiz("Indices", LearnerLevel.INTERMEDIATE, Language.BM)

    assert excinfo.value.kind is ErrorKind.MALFORMED_OUTPUT
    assert excinfo.value.message == error_message(ErrorKind.MALFORMED_OUTPUT, Language.BM)


@pytest.mark.asyncio
async def test_quiz_rate_limit_is_retried(study_tools, fake_llm, fake_sleep):
    fake_llm.responses = [ProviderError(code=429), LLMMessage(content=QUIZ_JSON)]

    quiz = await study_tools.generate_quiz("Indices", LearnerLevel.INTERMEDIATE, Language.EN)

    assert quiz.title == "Indices"
    assert fake_sleep.delays == [2.0]


@pytest.mark.asyncio
async def test_study_notes_from_pasted_text(study_tools, fake_llm):
    fake_llm.responses = [LLMMessage(content="# Pythagoras\n$$a^2 + b^2 = c^2$$")]
    files = [
        Attachment.from_text("a^2 + b^2 = c^2 for right triangles"),
        Attachment.from_bytes(b"\x89PNG", "image/png", "diagram.png"),
    ]

    result = await study_tools.generate_study_notes(files, Language.EN)

    assert not result.is_error
    assert result.text.startswith("# Pythagoras")
    assert result.model_name == FLASH_MODEL
    conversation, settings = fake_llm.generate_calls[0]
    assert [blob.mime_type for blob in conversation[0].inline_data] == ["text/plain", "image/png"]
    assert "Analyze all 2 attached materials" in conversation[0].content
    assert settings.top_p == 0.8


@pytest.mark.asyncio
async def test_empty_study_notes_are_an_error(study_tools, fake_llm):
    fake_llm.responses = [LLMMessage(content="   ")]

    result = await study_tools.generate_study_notes([Attachment.from_text("notes")], Language.BM)

    assert result.is_error
    assert result.text == STUDY_NOTES_EMPTY[Language.BM]


@pytest.mark.asyncio
async def test_study_notes_provider_failure_is_localized(study_tools, fake_llm):
    fake_llm.responses = [ProviderError(code=401)]

    result = await study_tools.generate_study_notes([Attachment.from_text("notes")], Language.EN)

    assert result.is_error
    assert result.error_kind is ErrorKind.AUTHENTICATION
    assert result.text == error_message(ErrorKind.AUTHENTICATION, Language.EN)


@pytest.mark.asyncio
async def test_study_notes_file_limits(study_tools, fake_llm):
    with pytest.raises(AttachmentError) as too_many:
        await study_tools.generate_study_notes([Attachment.from_text(str(i)) for i in range(6)], Language.EN)
    with pytest.raises(AttachmentError) as wrong_type:
        await study_tools.generate_study_notes(
            [Attachment.from_bytes(b"PK", "application/zip", "notes.zip")], Language.EN
        )

    assert too_many.value.too_large
    assert not wrong_type.value.too_large
    assert fake_llm.generate_calls == []


@pytest.mark.asyncio
async def test_high_resolution_illustration_uses_pro_image_model(study_tools, fake_llm):
    image = GeneratedImage(mime_type="image/png", data="AAAA")
    fake_llm.images = [image]

    result = await study_tools.generate_illustration("a unit circle", size=ImageSize.K2, high_res=True)

    assert result == image
    _, settings = fake_llm.image_calls[0]
    assert settings.model_name == PRO_IMAGE_MODEL
    assert settings.image_size == "2K"
    assert settings.aspect_ratio == "1:1"


@pytest.mark.asyncio
async def test_illustration_without_image_part_returns_none(study_tools, fake_llm):
    fake_llm.images = [None]

    assert await study_tools.generate_illustration("a cube") is None
