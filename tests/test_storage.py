from datetime import timezone

import pytest

from tutoring_toolkit.llms.base import Roles
from tutoring_toolkit.orchestration.data_models import Language, LearnerLevel, ReasoningDepth
from tutoring_toolkit.session.data_models.feedback import Feedback, StoredFeedbackDatabase
from tutoring_toolkit.session.state import (
    HISTORY_KEY,
    LANGUAGE_KEY,
    LEVEL_KEY,
    PREFERENCES_KEY,
    USER_KEY,
    AppState,
    load_state,
    save_state,
)
from tutoring_toolkit.storage.in_memory import InMemoryStore
from tutoring_toolkit.storage.json_file import JsonFileStore


@pytest.mark.asyncio
async def test_unparseable_values_are_discarded():
    store = InMemoryStore(
        {
            LEVEL_KEY: '"Wizard"',
            LANGUAGE_KEY: '"BM"',
            USER_KEY: "{not json",
            PREFERENCES_KEY: '{"guided_questions": false, "reasoning_depth": "fast"}',
        }
    )

    state = await load_state(store)

    assert state.level is LearnerLevel.INTERMEDIATE
    assert state.language is Language.BM
    assert state.user is None
    assert not state.preferences.guided_questions
    assert state.preferences.reasoning_depth is ReasoningDepth.FAST


@pytest.mark.asyncio
async def test_history_timestamps_are_coerced():
    store = InMemoryStore(
        {
            HISTORY_KEY: (
                '[{"role": "user", "text": "hi", "timestamp": "2024-05-01T10:00:00"},'
                ' {"role": "model", "text": "hello", "timestamp": 1714557600}]'
            )
        }
    )

    state = await load_state(store)

    assert [turn.role for turn in state.history] == [Roles.USER, Roles.MODEL]
    assert all(turn.timestamp.tzinfo is not None for turn in state.history)
    assert state.history[0].timestamp.astimezone(timezone.utc).hour == 10


@pytest.mark.asyncio
async def test_default_language_applies_only_without_stored_value():
    assert (await load_state(InMemoryStore(), Language.BM)).language is Language.BM
    assert (await load_state(InMemoryStore({LANGUAGE_KEY: '"EN"'}), Language.BM)).language is Language.EN


@pytest.mark.asyncio
async def test_json_file_store_survives_restart(tmp_path):
    path = tmp_path / "state.json"
    state = AppState(level=LearnerLevel.ADVANCED, focus_areas=["Calculus"])

    await save_state(JsonFileStore(path), state)
    restored = await load_state(JsonFileStore(path))

    assert restored.level is LearnerLevel.ADVANCED
    assert restored.focus_areas == ["Calculus"]


@pytest.mark.asyncio
async def test_corrupt_json_file_is_treated_as_empty(tmp_path):
    path = tmp_path / "state.json"
    path.write_text("{ truncated", encoding="utf-8")
    store = JsonFileStore(path)

    assert await store.get(LEVEL_KEY) is None
    await store.set(LEVEL_KEY, '"General AI Tutor"')
    assert await JsonFileStore(path).get(LEVEL_KEY) == '"General AI Tutor"'


@pytest.mark.asyncio
async def test_json_file_store_delete(tmp_path):
    store = JsonFileStore(tmp_path / "nested" / "state.json")
    await store.set("a", "1")
    await store.set("b", "2")

    await store.delete("a")

    assert await store.get("a") is None
    assert await store.get("b") == "2"


@pytest.mark.asyncio
async def test_stored_feedback_is_listed_newest_first():
    store = InMemoryStore()
    db = StoredFeedbackDatabase(store)
    await db.create_feedback(
        Feedback(id="1", user_id="u", user_name="A", rating=3, message="ok", timestamp="2024-01-01T00:00:00Z")
    )
    await db.create_feedback(
        Feedback(id="2", user_id="u", user_name="A", rating=5, message="great", timestamp="2024-02-01T00:00:00Z")
    )

    feedback = await StoredFeedbackDatabase(store).list_feedback()

    assert [f.id for f in feedback] == ["2", "1"]


@pytest.mark.asyncio
async def test_stored_feedback_can_be_listed_per_user():
    db = StoredFeedbackDatabase(InMemoryStore())
    await db.create_feedback(Feedback(id="1", user_id="u1", user_name="A", rating=3, message="ok"))
    await db.create_feedback(Feedback(id="2", user_id="u2", user_name="B", rating=5, message="great"))

    assert [f.id for f in await db.list_feedback("u2")] == ["2"]
    assert len(await db.list_feedback()) == 2
