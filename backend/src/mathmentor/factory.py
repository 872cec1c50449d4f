from loguru import logger

from mathmentor.config import Settings
from tutoring_toolkit.llms.base import LLM
from tutoring_toolkit.llms.gemini import GeminiLLM
from tutoring_toolkit.orchestration.orchestrator import ResponseOrchestrator
from tutoring_toolkit.orchestration.study_tools import StudyTools


def build_llm(settings: Settings) -> LLM:
    logger.info(f"LLM backend: Gemini ({'key configured' if settings.api_key else 'no key'})")
    return GeminiLLM(api_key=settings.api_key)


def build_orchestrator(settings: Settings, llm: LLM | None = None) -> ResponseOrchestrator:
    llm = llm or build_llm(settings)
    study_tools = StudyTools(llm, retry_policy=settings.retry_policy)
    return ResponseOrchestrator(llm, study_tools=study_tools, retry_policy=settings.retry_policy)
