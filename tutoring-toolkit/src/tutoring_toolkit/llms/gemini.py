"""
Google Gemini backend built on the 'google-genai' SDK.

All calls go through the SDK's async surface ('client.aio.models'). SDK
exceptions are converted at this boundary into 'ProviderError', whose 'code',
'status' and 'reason' fields are the only inputs to retry classification. The
'reason' comes from the structured 'ErrorInfo' entry of the error payload, so
an invalid key is recognised without inspecting the message text.

The SDK client is created lazily: an application started without an API key
still constructs its LLM, and every request then fails with
'MissingApiKeyError' instead of crashing at startup.
"""

import base64
from collections.abc import AsyncGenerator
from typing import Any

from google import genai
from google.genai import errors as genai_errors
from google.genai import types as genai_types
from loguru import logger

from tutoring_toolkit.errors import ContentBlockedError, MissingApiKeyError, ProviderError
from tutoring_toolkit.llms.base import (
    LLM,
    Citation,
    GeneratedImage,
    GenerationSettings,
    ImageSettings,
    LLMMessage,
    Roles,
)

DEFAULT_CITATION_TITLE = "Reference"


class GeminiLLM(LLM):
    def __init__(self, api_key: str | None, client: genai.Client | None = None) -> None:
        self.api_key = api_key or ""
        self._client = client

    @property
    def client(self) -> genai.Client:
        if self._client is None:
            if not self.api_key:
                raise MissingApiKeyError("No Gemini API key configured")
            self._client = genai.Client(api_key=self.api_key)
        return self._client

    async def generate(self, conversation: list[LLMMessage], settings: GenerationSettings) -> LLMMessage:
        try:
            response = await self.client.aio.models.generate_content(
                model=settings.model_name,
                contents=self._to_contents(conversation),
                config=self._to_config(settings),
            )
        except genai_errors.APIError as e:
            raise _to_provider_error(e) from e

        _raise_if_blocked(response)
        return LLMMessage(content=response.text or "", role=Roles.MODEL, citations=_extract_citations(response))

    async def generate_stream(
        self, conversation: list[LLMMessage], settings: GenerationSettings
    ) -> AsyncGenerator[LLMMessage, None]:
        try:
            stream = await self.client.aio.models.generate_content_stream(
                model=settings.model_name,
                contents=self._to_contents(conversation),
                config=self._to_config(settings),
            )
            async for chunk in stream:
                _raise_if_blocked(chunk)
                yield LLMMessage(content=chunk.text or "", role=Roles.MODEL, citations=_extract_citations(chunk))
        except genai_errors.APIError as e:
            raise _to_provider_error(e) from e

    async def generate_image(self, prompt: str, settings: ImageSettings) -> GeneratedImage | None:
        image_config = genai_types.ImageConfig(aspect_ratio=settings.aspect_ratio)
        if settings.image_size:
            image_config.image_size = settings.image_size
        try:
            response = await self.client.aio.models.generate_content(
                model=settings.model_name,
                contents=prompt,
                config=genai_types.GenerateContentConfig(image_config=image_config),
            )
        except genai_errors.APIError as e:
            raise _to_provider_error(e) from e

        for candidate in response.candidates or []:
            if candidate.content is None:
                continue
            for part in candidate.content.parts or []:
                if part.inline_data and part.inline_data.data:
                    return GeneratedImage(
                        mime_type=part.inline_data.mime_type or "image/png",
                        data=base64.b64encode(part.inline_data.data).decode("ascii"),
                    )
        logger.debug(f"Model {settings.model_name} returned no image part")
        return None

    @staticmethod
    def _to_contents(conversation: list[LLMMessage]) -> list[genai_types.Content]:
        contents = []
        for message in conversation:
            parts = [genai_types.Part.from_text(text=message.content)]
            parts += [
                genai_types.Part.from_bytes(data=base64.b64decode(blob.data), mime_type=blob.mime_type)
                for blob in message.inline_data
            ]
            contents.append(genai_types.Content(role=message.role.value, parts=parts))
        return contents

    @staticmethod
    def _to_config(settings: GenerationSettings) -> genai_types.GenerateContentConfig:
        config = genai_types.GenerateContentConfig(
            system_instruction=settings.system_instruction,
            temperature=settings.temperature,
            top_p=settings.top_p,
            max_output_tokens=settings.max_output_tokens,
        )
        if settings.thinking_budget is not None:
            config.thinking_config = genai_types.ThinkingConfig(thinking_budget=settings.thinking_budget)
        if settings.grounding:
            config.tools = [genai_types.Tool(google_search=genai_types.GoogleSearch())]
        if settings.response_schema is not None:
            config.response_mime_type = "application/json"
            config.response_schema = settings.response_schema
        return config


def _to_provider_error(error: genai_errors.APIError) -> ProviderError:
    reason = _error_reason(error.details)
    logger.error(f"Gemini API error {error.code} status={error.status} reason={reason}: {error.message}")
    return ProviderError(code=error.code, status=error.status, reason=reason, message=error.message or "")


def _error_reason(details: Any) -> str | None:
    """Extract 'reason' from the first 'ErrorInfo' entry of a Google RPC error payload."""
    if not isinstance(details, dict):
        return None
    payload = details.get("error", details)
    if not isinstance(payload, dict):
        return None
    for entry in payload.get("details") or []:
        if isinstance(entry, dict) and entry.get("reason"):
            return str(entry["reason"])
    return None


def _raise_if_blocked(response: genai_types.GenerateContentResponse) -> None:
    feedback = response.prompt_feedback
    if feedback is not None and feedback.block_reason:
        raise ContentBlockedError(f"Prompt blocked by provider: {feedback.block_reason}")


def _extract_citations(response: genai_types.GenerateContentResponse) -> list[Citation]:
    citations: list[Citation] = []
    for candidate in response.candidates or []:
        metadata = candidate.grounding_metadata
        if metadata is None:
            continue
        for chunk in metadata.grounding_chunks or []:
            if chunk.web and chunk.web.uri:
                citations.append(Citation(title=chunk.web.title or DEFAULT_CITATION_TITLE, uri=chunk.web.uri))
    return citations
