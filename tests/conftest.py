"""
Shared fixtures for the MathMentor tests.

Provides:
- 'FakeLLM': a scripted 'LLM' that records every call
- 'GatedLLM': a 'FakeLLM' whose streams wait until the test releases them
- 'RecordingSleep': a sleep replacement that records backoff delays
- orchestrator, study tools and session fixtures wired to the fakes
"""

import asyncio
from collections.abc import AsyncGenerator

import pytest

from tutoring_toolkit.llms.base import LLM, GeneratedImage, GenerationSettings, ImageSettings, LLMMessage
from tutoring_toolkit.orchestration.orchestrator import ResponseOrchestrator
from tutoring_toolkit.orchestration.study_tools import StudyTools
from tutoring_toolkit.session.connectivity import always_online
from tutoring_toolkit.session.controller import TutorSession
from tutoring_toolkit.storage.in_memory import InMemoryStore


class FakeLLM(LLM):
    """
    Scripted LLM.

    Each entry of 'streams' scripts one 'generate_stream' attempt as a list of
    fragments; an exception in the list is raised when the stream reaches it.
    'responses' and 'images' script 'generate' and 'generate_image' calls the
    same way, one entry per call (an exception entry is raised).
    """

    def __init__(self) -> None:
        self.streams: list[list[LLMMessage | Exception]] = []
        self.responses: list[LLMMessage | Exception] = []
        self.images: list[GeneratedImage | None | Exception] = []
        self.stream_calls: list[tuple[list[LLMMessage], GenerationSettings]] = []
        self.generate_calls: list[tuple[list[LLMMessage], GenerationSettings]] = []
        self.image_calls: list[tuple[str, ImageSettings]] = []

    async def generate(self, conversation: list[LLMMessage], settings: GenerationSettings) -> LLMMessage:
        self.generate_calls.append((conversation, settings))
        result = self.responses.pop(0)
        if isinstance(result, Exception):
            raise result
        return result

    async def generate_stream(
        self, conversation: list[LLMMessage], settings: GenerationSettings
    ) -> AsyncGenerator[LLMMessage, None]:
        self.stream_calls.append((conversation, settings))
        for item in self.streams.pop(0):
            if isinstance(item, Exception):
                raise item
            yield item

    async def generate_image(self, prompt: str, settings: ImageSettings) -> GeneratedImage | None:
        self.image_calls.append((prompt, settings))
        result = self.images.pop(0)
        if isinstance(result, Exception):
            raise result
        return result


class GatedLLM(FakeLLM):
    """Signals 'started' when a stream is opened, then waits for 'release' before the first fragment."""

    def __init__(self) -> None:
        super().__init__()
        self.started = asyncio.Event()
        self.release = asyncio.Event()

    async def generate_stream(
        self, conversation: list[LLMMessage], settings: GenerationSettings
    ) -> AsyncGenerator[LLMMessage, None]:
        self.started.set()
        await self.release.wait()
        async for message in super().generate_stream(conversation, settings):
            yield message


class RecordingSleep:
    def __init__(self) -> None:
        self.delays: list[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


@pytest.fixture
def fake_llm() -> FakeLLM:
    return FakeLLM()


@pytest.fixture
def gated_llm() -> GatedLLM:
    return GatedLLM()


@pytest.fixture
def fake_sleep() -> RecordingSleep:
    return RecordingSleep()


@pytest.fixture
def study_tools(fake_llm: FakeLLM, fake_sleep: RecordingSleep) -> StudyTools:
    return StudyTools(fake_llm, sleep=fake_sleep)


@pytest.fixture
def orchestrator(fake_llm: FakeLLM, fake_sleep: RecordingSleep, study_tools: StudyTools) -> ResponseOrchestrator:
    return ResponseOrchestrator(fake_llm, study_tools=study_tools, sleep=fake_sleep)


@pytest.fixture
def store() -> InMemoryStore:
    return InMemoryStore()


@pytest.fixture
def session(orchestrator: ResponseOrchestrator, store: InMemoryStore) -> TutorSession:
    return TutorSession(orchestrator, store, connectivity_probe=always_online)
