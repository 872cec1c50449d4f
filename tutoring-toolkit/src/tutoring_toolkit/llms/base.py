"""
Core LLM abstractions and message data models.

The concrete backend ('GeminiLLM') implements the 'LLM' ABC. The shared message
format ('LLMMessage') is backend-agnostic so the orchestrator and study tools
never need to know which provider is in use.

'LLMMessage' doubles as the streaming chunk type: 'generate_stream' yields
messages whose 'content' is the newly arrived fragment (a delta, not the
cumulative text) together with any citations attached to that fragment.

Generation parameters vary per request (the model itself is chosen from the
profile table), so they travel in a 'GenerationSettings' object instead of
living on the LLM instance.
"""

from abc import ABC, abstractmethod
from collections.abc import AsyncGenerator
from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field


class Roles(StrEnum):
    """Conversation roles as used by the Gemini content API."""

    USER = "user"
    MODEL = "model"


class InlineData(BaseModel):
    """A binary payload (image, PDF, plain text) sent inline with a message."""

    mime_type: str
    data: str  # base64


class Citation(BaseModel):
    """A grounding source attached by the provider to part of its output."""

    title: str
    uri: str


class LLMMessage(BaseModel):
    """
    A single message in a conversation sent to or received from an LLM.

    'inline_data' carries attachments on user messages. 'citations' is only
    populated on messages coming back from the provider.
    """

    content: str = ""
    role: Roles = Roles.MODEL
    inline_data: list[InlineData] = Field(default_factory=list)
    citations: list[Citation] = Field(default_factory=list)


class GenerationSettings(BaseModel):
    """
    Per-request generation parameters.

    Attributes:
        model_name: Provider model identifier.
        thinking_budget: Token allowance for internal reasoning. 'None' leaves the
            provider default in place, 0 disables thinking.
        grounding: Attach the web-search grounding tool.
        response_schema: Pydantic model class the provider must answer with (as JSON).
    """

    model_config = ConfigDict(arbitrary_types_allowed=True)

    model_name: str
    system_instruction: str | None = None
    temperature: float | None = None
    top_p: float | None = None
    max_output_tokens: int | None = None
    thinking_budget: int | None = None
    grounding: bool = False
    response_schema: type[BaseModel] | None = None


class ImageSettings(BaseModel):
    model_name: str
    aspect_ratio: str = "1:1"
    image_size: str | None = None


class GeneratedImage(BaseModel):
    """An image returned by the provider, kept base64-encoded."""

    mime_type: str
    data: str

    @property
    def data_url(self) -> str:
        return f"data:{self.mime_type};base64,{self.data}"


class LLM(ABC):
    """
    Abstract base class for generation backends.

    Implementations must raise toolkit errors ('ProviderError',
    'ContentBlockedError', 'MissingApiKeyError') rather than SDK-specific
    exceptions, so retry classification stays independent of the SDK.
    """

    @abstractmethod
    async def generate(self, conversation: list[LLMMessage], settings: GenerationSettings) -> LLMMessage:
        """Return a single complete response for the given conversation."""
        pass

    @abstractmethod
    def generate_stream(
        self, conversation: list[LLMMessage], settings: GenerationSettings
    ) -> AsyncGenerator[LLMMessage, None]:
        """Yield response fragments as they arrive from the model."""
        pass

    @abstractmethod
    async def generate_image(self, prompt: str, settings: ImageSettings) -> GeneratedImage | None:
        """Return the first image the model produced for 'prompt', or None if it produced none."""
        pass
