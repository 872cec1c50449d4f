"""
Response orchestrator.

'ResponseOrchestrator' mediates one request/response cycle with the generation
provider. It is stateless between calls; everything that varies per call
arrives in a 'GenerationRequest', and the three strategies (profile table,
instruction composer, retry policy) are injected at construction time.

The entry points are:

    'stream_response' - async generator that yields a 'PartialResponse' with the
                        cumulative text for every fragment, then exactly one
                        final 'GenerationResult' (successful or not).
    'solve'           - drives 'stream_response', forwards each cumulative text
                        to an optional callback and returns the final result.
    'solve_once'      - non-streaming; same request construction, retry and
                        error handling, no illustration post-processing.

A stream is retried only while no fragment has been delivered. Once the caller
has seen text, restarting would shrink the cumulative value it renders, so a
later failure ends the call with an error result instead.

Provider and transport errors never escape; they become error results with a
localized message. 'AttachmentError' is the exception: it describes invalid
caller input and is raised before any request is made.
"""

import asyncio
import re
from collections.abc import AsyncGenerator, Awaitable, Callable, Mapping
from typing import Any

from loguru import logger

from tutoring_toolkit.errors import ErrorKind, classify_error
from tutoring_toolkit.llms.base import LLM, Citation, GenerationSettings, InlineData, LLMMessage, Roles
from tutoring_toolkit.orchestration.data_models import (
    CHAT_ATTACHMENT_MAX_BYTES,
    CHAT_MIME_PREFIXES,
    GenerationRequest,
    GenerationResult,
    PartialResponse,
)
from tutoring_toolkit.orchestration.instructions import build_user_content, compose_system_instruction
from tutoring_toolkit.orchestration.localization import error_message
from tutoring_toolkit.orchestration.profiles import PROFILE_TABLE, ModelProfile, ProfileKey, select_profile
from tutoring_toolkit.orchestration.retry import DEFAULT_RETRY_POLICY, RetryPolicy, Sleep, call_with_retry
from tutoring_toolkit.orchestration.study_tools import StudyTools

ILLUSTRATE_PATTERN = re.compile(r"\[ILLUSTRATE:\s*([\s\S]*?)\]")

ChunkCallback = Callable[[str], Any]
InstructionComposer = Callable[..., str]


class CitationCollector:
    """Accumulates citations in arrival order, keeping the first entry seen for each URI."""

    def __init__(self) -> None:
        self._by_uri: dict[str, Citation] = {}

    def add(self, citations: list[Citation]) -> None:
        for citation in citations:
            self._by_uri.setdefault(citation.uri, citation)

    @property
    def citations(self) -> list[Citation]:
        return list(self._by_uri.values())


class ResponseOrchestrator:
    def __init__(
        self,
        llm: LLM,
        study_tools: StudyTools | None = None,
        profiles: Mapping[ProfileKey, ModelProfile] = PROFILE_TABLE,
        compose_instruction: InstructionComposer = compose_system_instruction,
        retry_policy: RetryPolicy = DEFAULT_RETRY_POLICY,
        sleep: Sleep = asyncio.sleep,
        grounding: bool = True,
    ) -> None:
        self.llm = llm
        self.study_tools = study_tools or StudyTools(llm, retry_policy, sleep)
        self.profiles = profiles
        self.compose_instruction = compose_instruction
        self.retry_policy = retry_policy
        self.sleep = sleep
        self.grounding = grounding

    def build_settings(self, request: GenerationRequest) -> GenerationSettings:
        profile = select_profile(request.level, request.reasoning_depth, request.mode, self.profiles)
        return GenerationSettings(
            model_name=profile.model_name,
            system_instruction=self.compose_instruction(
                language=request.language,
                level=request.level,
                mode=request.mode,
                sub_level=request.sub_level,
                guided_questions=request.guided_questions,
            ),
            temperature=profile.temperature,
            max_output_tokens=profile.max_output_tokens,
            thinking_budget=profile.thinking_budget,
            grounding=self.grounding,
        )

    @staticmethod
    def build_conversation(request: GenerationRequest) -> list[LLMMessage]:
        """Map prior turns to role-tagged messages and append the current user message.

        Raises:
            AttachmentError: If the attachment exceeds the chat size limit or has an unsupported type.
        """
        conversation = [LLMMessage(role=turn.role, content=turn.text) for turn in request.history]
        inline_data = []
        if request.attachment is not None:
            request.attachment.check(CHAT_ATTACHMENT_MAX_BYTES, CHAT_MIME_PREFIXES)
            inline_data.append(InlineData(mime_type=request.attachment.mime_type, data=request.attachment.data))
        conversation.append(
            LLMMessage(
                role=Roles.USER,
                content=build_user_content(
                    request.prompt, request.language, request.level, request.sub_level, request.focus_areas
                ),
                inline_data=inline_data,
            )
        )
        return conversation

    async def stream_response(
        self, request: GenerationRequest
    ) -> AsyncGenerator[PartialResponse | GenerationResult, None]:
        settings = self.build_settings(request)
        conversation = self.build_conversation(request)
        logger.info(
            f"Streaming with {settings.model_name} (level={request.level.value}, mode={request.mode}, "
            f"depth={request.reasoning_depth}, thinking_budget={settings.thinking_budget})"
        )

        attempt = 1
        text = ""
        collector = CitationCollector()
        error_kind: ErrorKind | None = None
        while True:
            text = ""
            collector = CitationCollector()
            delivered = False
            try:
                async for chunk in self.llm.generate_stream(conversation, settings):
                    collector.add(chunk.citations)
                    if not chunk.content:
                        continue
                    text += chunk.content
                    delivered = True
                    yield PartialResponse(text=text, citations=collector.citations)
            except Exception as e:
                if not delivered and self.retry_policy.should_retry(e, attempt):
                    delay = self.retry_policy.delay_for(attempt)
                    logger.warning(
                        f"Stream failed with {classify_error(e)} before any output "
                        f"(attempt {attempt}/{self.retry_policy.max_attempts}), retrying in {delay:.2f}s"
                    )
                    await self.sleep(delay)
                    attempt += 1
                    continue
                error_kind = classify_error(e)
                logger.error(f"Stream failed after {attempt} attempt(s) with {error_kind}: {e}")
            break

        if error_kind is not None:
            yield GenerationResult(
                text=error_message(error_kind, request.language),
                is_error=True,
                error_kind=error_kind,
                model_name=settings.model_name,
            )
            return

        logger.info(f"Stream finished: {len(text)} characters, {len(collector.citations)} citation(s)")
        result = GenerationResult(
            text=text, citations=collector.citations, image=request.image, model_name=settings.model_name
        )
        yield await self._apply_illustration(result)

    async def solve(self, request: GenerationRequest, on_chunk: ChunkCallback | None = None) -> GenerationResult:
        """Stream a response, forwarding each cumulative text to 'on_chunk', and return the final result.

        'on_chunk' may be a plain function or a coroutine function.
        """
        async for event in self.stream_response(request):
            if isinstance(event, GenerationResult):
                return event
            if on_chunk is not None:
                maybe_awaitable = on_chunk(event.text)
                if isinstance(maybe_awaitable, Awaitable):
                    await maybe_awaitable
        raise RuntimeError("Stream ended without a final result")

    async def solve_once(self, request: GenerationRequest) -> GenerationResult:
        settings = self.build_settings(request)
        conversation = self.build_conversation(request)
        logger.info(f"Requesting {settings.model_name} (level={request.level.value}, mode={request.mode})")
        try:
            response = await call_with_retry(
                lambda: self.llm.generate(conversation, settings),
                self.retry_policy,
                self.sleep,
                label="generation",
            )
        except Exception as e:
            kind = classify_error(e)
            logger.error(f"Generation failed with {kind}: {e}")
            return GenerationResult(
                text=error_message(kind, request.language),
                is_error=True,
                error_kind=kind,
                model_name=settings.model_name,
            )

        collector = CitationCollector()
        collector.add(response.citations)
        return GenerationResult(
            text=response.content, citations=collector.citations, image=request.image, model_name=settings.model_name
        )

    async def _apply_illustration(self, result: GenerationResult) -> GenerationResult:
        match = ILLUSTRATE_PATTERN.search(result.text)
        if match is None or result.image is not None:
            return result

        description = match.group(1).strip()
        logger.info(f"Illustration directive found: {description!r}")
        image = await self.study_tools.generate_illustration(description)
        if image is None:
            logger.warning("Illustration unavailable, delivering text only")
        return result.model_copy(update={"text": ILLUSTRATE_PATTERN.sub("", result.text).strip(), "image": image})
