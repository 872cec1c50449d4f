"""
Per-learner session state and the controller that owns it.

    from tutoring_toolkit.session import TutorSession
"""

from tutoring_toolkit.session.controller import TutorSession
from tutoring_toolkit.session.state import AppState, load_state, save_state

__all__ = [
    "AppState",
    "TutorSession",
    "load_state",
    "save_state",
]
