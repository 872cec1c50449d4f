"""
Request orchestration for the tutoring toolkit.

The usual entry point is the orchestrator together with the study tools it
shares its retry policy with:

    from tutoring_toolkit.orchestration import ResponseOrchestrator, StudyTools
"""

from tutoring_toolkit.orchestration.orchestrator import ResponseOrchestrator
from tutoring_toolkit.orchestration.retry import RetryPolicy
from tutoring_toolkit.orchestration.study_tools import StudyTools

__all__ = [
    "ResponseOrchestrator",
    "RetryPolicy",
    "StudyTools",
]
