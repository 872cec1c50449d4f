"""
Model and parameter profiles.

'PROFILE_TABLE' maps every (level, reasoning depth, mode) triple to exactly one
'ModelProfile'. It is derived from two explicit tables: '_LEVEL_DEPTH_PROFILES'
(one entry per level and depth) and '_MODE_OVERRIDES' (modes that pin a profile
regardless of level, currently answer-only). The table is checked for totality
when the module is imported, so adding an enum member without a row fails
loudly instead of silently falling back to a default.
"""

from collections.abc import Mapping
from itertools import product

from pydantic import BaseModel, ConfigDict

from tutoring_toolkit.orchestration.data_models import LearnerLevel, ReasoningDepth, TutoringMode

FLASH_MODEL = "gemini-3-flash-preview"
PRO_MODEL = "gemini-3-pro-preview"


class ModelProfile(BaseModel):
    model_config = ConfigDict(frozen=True)

    model_name: str
    thinking_budget: int
    max_output_tokens: int
    temperature: float = 0.1


ProfileKey = tuple[LearnerLevel, ReasoningDepth, TutoringMode]

ANSWER_ONLY_PROFILE = ModelProfile(model_name=FLASH_MODEL, thinking_budget=0, max_output_tokens=4096)
FLASH_PROFILE = ModelProfile(model_name=FLASH_MODEL, thinking_budget=2048, max_output_tokens=8192)
DEEP_PROFILE = ModelProfile(model_name=PRO_MODEL, thinking_budget=16000, max_output_tokens=32768)
DEEP_ADVANCED_PROFILE = ModelProfile(model_name=PRO_MODEL, thinking_budget=24576, max_output_tokens=32768)

_LEVEL_DEPTH_PROFILES: dict[tuple[LearnerLevel, ReasoningDepth], ModelProfile] = {
    (LearnerLevel.BEGINNER, ReasoningDepth.FAST): FLASH_PROFILE,
    (LearnerLevel.BEGINNER, ReasoningDepth.DEEP): DEEP_PROFILE,
    (LearnerLevel.INTERMEDIATE, ReasoningDepth.FAST): FLASH_PROFILE,
    (LearnerLevel.INTERMEDIATE, ReasoningDepth.DEEP): DEEP_PROFILE,
    (LearnerLevel.ADVANCED, ReasoningDepth.FAST): FLASH_PROFILE,
    (LearnerLevel.ADVANCED, ReasoningDepth.DEEP): DEEP_ADVANCED_PROFILE,
    (LearnerLevel.GENERAL, ReasoningDepth.FAST): FLASH_PROFILE,
    (LearnerLevel.GENERAL, ReasoningDepth.DEEP): DEEP_PROFILE,
}

_MODE_OVERRIDES: dict[TutoringMode, ModelProfile] = {
    TutoringMode.FAST: ANSWER_ONLY_PROFILE,
}


def build_profile_table(
    level_depth_profiles: Mapping[tuple[LearnerLevel, ReasoningDepth], ModelProfile],
    mode_overrides: Mapping[TutoringMode, ModelProfile],
) -> dict[ProfileKey, ModelProfile]:
    """Expand the level/depth table and the mode overrides into a table over every key.

    Raises:
        ValueError: If a (level, depth) pair has no profile.
    """
    missing = [key for key in product(LearnerLevel, ReasoningDepth) if key not in level_depth_profiles]
    if missing:
        raise ValueError(f"Profile table is not total, missing: {missing}")
    return {
        (level, depth, mode): mode_overrides.get(mode, level_depth_profiles[(level, depth)])
        for level, depth, mode in product(LearnerLevel, ReasoningDepth, TutoringMode)
    }


PROFILE_TABLE: dict[ProfileKey, ModelProfile] = build_profile_table(_LEVEL_DEPTH_PROFILES, _MODE_OVERRIDES)


def select_profile(
    level: LearnerLevel,
    depth: ReasoningDepth,
    mode: TutoringMode,
    table: Mapping[ProfileKey, ModelProfile] = PROFILE_TABLE,
) -> ModelProfile:
    return table[(level, depth, mode)]
