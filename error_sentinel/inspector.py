"""Inspection surface: lists, reports, and clears locally stored errors.

The inspector never talks to a store directly: the engine injects an update
callback (returns current local errors) and a clear callback.
"""

import logging
from typing import Awaitable, Callable, Optional

from error_sentinel.formatter import format_table, format_team_report
from error_sentinel.models import ErrorEvent

logger = logging.getLogger(__name__)


class ErrorInspector:
    def __init__(self) -> None:
        self._update: Optional[Callable[[], Awaitable[list[ErrorEvent]]]] = None
        self._clear: Optional[Callable[[], Awaitable[None]]] = None
        self._errors: list[ErrorEvent] = []

    def set_update_callback(self, callback: Callable[[], Awaitable[list[ErrorEvent]]]) -> None:
        self._update = callback

    def set_clear_callback(self, callback: Callable[[], Awaitable[None]]) -> None:
        self._clear = callback

    @property
    def errors(self) -> list[ErrorEvent]:
        return list(self._errors)

    async def refresh(self) -> list[ErrorEvent]:
        if self._update is None:
            logger.warning("Inspector has no update callback")
            return []
        self._errors = await self._update()
        return list(self._errors)

    async def clear(self) -> None:
        if self._clear is None:
            logger.warning("Inspector has no clear callback")
            return
        await self._clear()
        self._errors = []

    async def render(self) -> str:
        return format_table(await self.refresh())

    async def render_report(self) -> str:
        return format_team_report(await self.refresh())
