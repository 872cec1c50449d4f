"""
Key/value storage abstraction.

Session state is persisted as a handful of string keys, each holding one JSON
document. 'KeyValueStore' is the pluggable backend: 'InMemoryStore' for tests
and server-side sessions, 'JsonFileStore' for the console client. There is no
schema versioning; readers validate what they load and discard what fails.
"""

from abc import ABC, abstractmethod


class KeyValueStore(ABC):
    """Abstract string-to-string store."""

    @abstractmethod
    async def get(self, key: str) -> str | None:
        pass

    @abstractmethod
    async def set(self, key: str, value: str) -> None:
        pass

    @abstractmethod
    async def delete(self, key: str) -> None:
        pass
