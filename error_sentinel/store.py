"""Local error stores: capacity-bounded, insertion-ordered collections of events."""

import abc
import logging

from error_sentinel.models import ErrorEvent

logger = logging.getLogger(__name__)


class ErrorStore(abc.ABC):
    """Contract shared by the in-memory and SQLite stores.

    Once ``count()`` reaches ``capacity``, ``put`` evicts the oldest event
    before inserting, so the store never holds more than ``capacity`` events.
    """

    def __init__(self, capacity: int = 1000):
        self.capacity = capacity

    async def open(self) -> None:
        """Prepare the store for use. No-op unless the backend needs setup."""

    @abc.abstractmethod
    async def put(self, event: ErrorEvent) -> None: ...

    @abc.abstractmethod
    async def get_all(self) -> list[ErrorEvent]: ...

    @abc.abstractmethod
    async def get_errors_by_time_range(self, start: int, end: int) -> list[ErrorEvent]: ...

    @abc.abstractmethod
    async def clear(self) -> None: ...

    @abc.abstractmethod
    async def count(self) -> int: ...

    def close(self) -> None:
        """Release any held resources."""


class MemoryErrorStore(ErrorStore):
    """Volatile store kept in process memory."""

    def __init__(self, capacity: int = 1000):
        super().__init__(capacity)
        self._errors: list[ErrorEvent] = []

    async def put(self, event: ErrorEvent) -> None:
        self._errors.append(event)
        if len(self._errors) > self.capacity:
            self._errors = self._errors[-self.capacity:]

    async def get_all(self) -> list[ErrorEvent]:
        return list(self._errors)

    async def get_errors_by_time_range(self, start: int, end: int) -> list[ErrorEvent]:
        matched = [e for e in self._errors if start <= e.timestamp <= end]
        return sorted(matched, key=lambda e: e.timestamp)

    async def clear(self) -> None:
        self._errors = []

    async def count(self) -> int:
        return len(self._errors)

    def close(self) -> None:
        self._errors = []
