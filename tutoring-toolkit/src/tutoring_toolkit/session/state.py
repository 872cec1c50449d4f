"""
Application state of one tutoring session and its persistence.

'AppState' is the single explicit owner of everything the learner sees between
requests: level, preferences, focus areas, history and the signed-in user. It
is saved as one JSON document per key so each part can be read independently
and a corrupt value only loses that part:

    mathmentor_history      - list of 'ConversationTurn'
    mathmentor_level        - 'LearnerLevel'
    mathmentor_sub_level    - 'SubLevel' or null
    mathmentor_language     - 'Language'
    mathmentor_chat_mode    - 'TutoringMode' or null (not chosen yet)
    mathmentor_focus_areas  - list of focus-area labels
    mathmentor_user         - 'UserProfile' or null
    mathmentor_preferences  - 'Preferences'

The pending problem held during the mode-selection dialogue lives in memory
only.
"""

from typing import Any

from loguru import logger
from pydantic import BaseModel, Field, TypeAdapter, ValidationError

from tutoring_toolkit.orchestration.data_models import (
    ConversationTurn,
    Language,
    LearnerLevel,
    ReasoningDepth,
    SubLevel,
    TutoringMode,
)
from tutoring_toolkit.session.data_models.user import UserProfile
from tutoring_toolkit.storage.base import KeyValueStore

HISTORY_KEY = "mathmentor_history"
LEVEL_KEY = "mathmentor_level"
SUB_LEVEL_KEY = "mathmentor_sub_level"
LANGUAGE_KEY = "mathmentor_language"
CHAT_MODE_KEY = "mathmentor_chat_mode"
FOCUS_AREAS_KEY = "mathmentor_focus_areas"
USER_KEY = "mathmentor_user"
PREFERENCES_KEY = "mathmentor_preferences"


class Preferences(BaseModel):
    guided_questions: bool = True
    reasoning_depth: ReasoningDepth = ReasoningDepth.DEEP


class AppState(BaseModel):
    level: LearnerLevel = LearnerLevel.INTERMEDIATE
    sub_level: SubLevel | None = None
    language: Language = Language.EN
    chat_mode: TutoringMode | None = None
    focus_areas: list[str] = Field(default_factory=list)
    preferences: Preferences = Field(default_factory=Preferences)
    history: list[ConversationTurn] = Field(default_factory=list)
    user: UserProfile | None = None
    pending_problem: ConversationTurn | None = None


_PERSISTED_FIELDS: dict[str, tuple[str, TypeAdapter[Any]]] = {
    HISTORY_KEY: ("history", TypeAdapter(list[ConversationTurn])),
    LEVEL_KEY: ("level", TypeAdapter(LearnerLevel)),
    SUB_LEVEL_KEY: ("sub_level", TypeAdapter(SubLevel | None)),
    LANGUAGE_KEY: ("language", TypeAdapter(Language)),
    CHAT_MODE_KEY: ("chat_mode", TypeAdapter(TutoringMode | None)),
    FOCUS_AREAS_KEY: ("focus_areas", TypeAdapter(list[str])),
    USER_KEY: ("user", TypeAdapter(UserProfile | None)),
    PREFERENCES_KEY: ("preferences", TypeAdapter(Preferences)),
}


async def load_state(store: KeyValueStore, default_language: Language = Language.EN) -> AppState:
    """Rebuild the state from 'store'. Missing keys and values that fail to parse keep their defaults."""
    values: dict[str, Any] = {"language": default_language}
    for key, (field, adapter) in _PERSISTED_FIELDS.items():
        raw = await store.get(key)
        if raw is None:
            continue
        try:
            values[field] = adapter.validate_json(raw)
        except ValidationError as e:
            logger.debug(f"Discarding persisted {key!r}: {e.error_count()} validation error(s)")
    state = AppState(**values)
    logger.info(f"Loaded session state: {len(state.history)} turn(s), level={state.level.value}")
    return state


async def save_state(store: KeyValueStore, state: AppState) -> None:
    for key, (field, adapter) in _PERSISTED_FIELDS.items():
        await store.set(key, adapter.dump_json(getattr(state, field)).decode("utf-8"))
