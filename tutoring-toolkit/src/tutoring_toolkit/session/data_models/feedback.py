"""
Feedback data model and storage interface.

Feedback is a star rating plus a free-text message sent by a signed-in
learner about the app as a whole. Records are append-only; the controller
also turns each record into a 'mailto:' link for the operator.

Concrete implementations: 'InMemoryFeedbackDatabase' and 'StoredFeedbackDatabase'
(persisted under the 'mathmentor_feedback' key).
"""

from abc import ABC, abstractmethod
from datetime import datetime, timezone

from loguru import logger
from pydantic import BaseModel, Field, TypeAdapter, ValidationError, field_validator

from tutoring_toolkit.storage.base import KeyValueStore

FEEDBACK_KEY = "mathmentor_feedback"


class Feedback(BaseModel):
    """A rating and message left by a user."""

    id: str
    user_id: str
    user_name: str
    user_avatar: str = ""
    rating: int = Field(ge=1, le=5)
    message: str
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @field_validator("message")
    @classmethod
    def _non_empty(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("Feedback message must not be empty")
        return value.strip()


_FEEDBACK_LIST = TypeAdapter(list[Feedback])


def _newest_first(records: list[Feedback], user_id: str | None) -> list[Feedback]:
    selected = [f for f in records if user_id is None or f.user_id == user_id]
    return sorted(selected, key=lambda f: f.timestamp, reverse=True)


class FeedbackDatabase(ABC):
    """Abstract repository for 'Feedback' records."""

    @abstractmethod
    async def create_feedback(self, feedback: Feedback) -> Feedback:
        pass

    @abstractmethod
    async def list_feedback(self, user_id: str | None = None) -> list[Feedback]:
        """Newest first; only the records of 'user_id' when it is given."""
        pass


class InMemoryFeedbackDatabase(FeedbackDatabase):
    def __init__(self) -> None:
        self.records: list[Feedback] = []

    async def create_feedback(self, feedback: Feedback) -> Feedback:
        self.records.append(feedback)
        return feedback

    async def list_feedback(self, user_id: str | None = None) -> list[Feedback]:
        return _newest_first(self.records, user_id)


class StoredFeedbackDatabase(FeedbackDatabase):
    """Keeps all feedback as one JSON array under a single key of a 'KeyValueStore'."""

    def __init__(self, store: KeyValueStore, key: str = FEEDBACK_KEY) -> None:
        self.store = store
        self.key = key

    async def _load(self) -> list[Feedback]:
        raw = await self.store.get(self.key)
        if raw is None:
            return []
        try:
            return _FEEDBACK_LIST.validate_json(raw)
        except ValidationError as e:
            logger.debug(f"Discarding unreadable feedback list under {self.key!r}: {e.error_count()} error(s)")
            return []

    async def create_feedback(self, feedback: Feedback) -> Feedback:
        records = await self._load()
        records.append(feedback)
        await self.store.set(self.key, _FEEDBACK_LIST.dump_json(records).decode("utf-8"))
        return feedback

    async def list_feedback(self, user_id: str | None = None) -> list[Feedback]:
        return _newest_first(await self._load(), user_id)
