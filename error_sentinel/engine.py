"""Intake engine: routes, deduplicates, and dispatches observed API failures."""

import asyncio
import json
import logging
from typing import Callable, Optional

import aiofiles

from error_sentinel.config import SentinelConfig
from error_sentinel.dedup import DedupCache
from error_sentinel.errors import StoreError
from error_sentinel.inspector import ErrorInspector
from error_sentinel.matcher import resolve_team
from error_sentinel.models import ErrorEvent, build_dedup_key, create_error_event, now_ms
from error_sentinel.scheduler import BatchScheduler
from error_sentinel.sqlite_store import SQLiteErrorStore
from error_sentinel.store import ErrorStore, MemoryErrorStore
from error_sentinel.transport import HttpTransport

logger = logging.getLogger(__name__)


class SentinelEngine:
    """Receives failure observations and delivers the ones worth tracking.

    Each ``report`` is decided synchronously and in call order:
    disabled -> drop; unmatched (default team) -> drop; duplicate within the
    window -> drop; otherwise the event is persisted (local mode) or queued
    for batched delivery (remote mode). Persistence and delivery run as tasks
    on the running asyncio loop and never raise into the caller.
    """

    def __init__(
        self,
        config: SentinelConfig,
        store: Optional[ErrorStore] = None,
        transport=None,
        time_func: Optional[Callable[[], int]] = None,
    ):
        self.config = config
        self._now = time_func or now_ms
        self._dedup = DedupCache()
        self._pending: set[asyncio.Task] = set()
        self._destroyed = False
        self._store: Optional[ErrorStore] = None
        self._transport = None
        self._scheduler: Optional[BatchScheduler] = None
        self.inspector = None

        if config.is_remote:
            self._transport = transport or HttpTransport(
                config.backend_url, config.api_key, timeout=config.request_timeout
            )
            self._scheduler = BatchScheduler(
                batch_size=config.batch_size,
                interval=config.batch_interval_ms / 1000,
                deliver=self._transport.send,
            )
        elif store is not None:
            self._store = store
        elif config.durable:
            self._store = SQLiteErrorStore(config.db_path, config.max_local_errors)
        else:
            self._store = MemoryErrorStore(config.max_local_errors)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def start(self) -> None:
        """Open the local store and, when configured, attach and load an inspector."""
        if self._store is not None:
            try:
                await self._store.open()
            except StoreError as exc:
                logger.error("Local error store unavailable: %s", exc)
        if self.config.show_ui and not self.config.is_remote and self.inspector is None:
            inspector = ErrorInspector()
            self.attach_inspector(inspector)
            errors = await inspector.refresh()
            logger.info("Inspector attached with %d stored error(s)", len(errors))
        logger.info(
            "Sentinel started in %s mode with %d routing rule(s)",
            self.config.mode,
            len(self.config.team_mapping),
        )

    def destroy(self) -> None:
        """Release everything without attempting delivery.

        Queued events are dropped, the timer is cancelled, the store is closed
        and the dedup cache is cleared. Sends already in flight are not aborted.
        An HTTP client owned by the transport stays open; use ``shutdown()``
        to close it as well.
        """
        if self._destroyed:
            return
        self._destroyed = True
        dropped = self._scheduler.close() if self._scheduler is not None else 0
        if self._store is not None:
            self._store.close()
        self._dedup.clear()
        self.inspector = None
        logger.info("Sentinel destroyed (%d queued error(s) dropped)", dropped)

    async def shutdown(self) -> None:
        """Destroy, let in-flight work finish, then close the transport."""
        self.destroy()
        await self.wait_pending()
        aclose = getattr(self._transport, "aclose", None)
        if aclose is not None:
            await aclose()

    @property
    def destroyed(self) -> bool:
        return self._destroyed

    # ------------------------------------------------------------------
    # Intake
    # ------------------------------------------------------------------

    def report(
        self,
        endpoint: str,
        method: str,
        status_code: int,
        payload: Optional[str] = None,
        headers: Optional[dict] = None,
    ) -> Optional[ErrorEvent]:
        """Record a failed call. Returns the accepted event, or None if dropped.

        Never raises: a failure here only means the error was not tracked.
        """
        try:
            return self._intake(endpoint, method, status_code, payload, headers)
        except Exception:
            logger.exception("Failed to record error for %s %s", method, endpoint)
            return None

    def _intake(self, endpoint, method, status_code, payload, headers) -> Optional[ErrorEvent]:
        if self._destroyed or not self.config.enabled:
            logger.debug("Sentinel inactive, ignoring %s %s", method, endpoint)
            return None

        method = (method or "GET").upper()
        team = resolve_team(
            endpoint, self.config.team_mapping, self.config.default_team, self.config.origin
        )
        if team == self.config.default_team:
            logger.debug("No team mapped for %s, dropping", endpoint)
            return None

        # Persistence and batching both need the loop; check before touching state
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.warning("No running event loop, dropping error for %s %s", method, endpoint)
            return None

        now = self._now()
        key = build_dedup_key(endpoint, method, status_code, team)
        if not self._dedup.should_accept(key, now, self.config.dedup_window_ms):
            return None

        event = create_error_event(
            endpoint,
            method,
            status_code,
            team,
            timestamp=now,
            username=self._resolve_username(),
            payload=payload,
            headers=headers,
            capture_headers=self.config.capture_headers,
        )

        if self._scheduler is not None:
            self._scheduler.enqueue(event)
        else:
            task = loop.create_task(self._persist(event))
            self._pending.add(task)
            task.add_done_callback(self._pending.discard)
        return event

    def _resolve_username(self) -> Optional[str]:
        if self.config.get_user_name is None:
            return None
        try:
            return self.config.get_user_name()
        except Exception as exc:
            logger.warning("Username lookup failed: %s", exc)
            return None

    async def _persist(self, event: ErrorEvent) -> None:
        try:
            await self._store.put(event)
        except StoreError as exc:
            logger.error("Failed to store error for %s: %s", event.endpoint, exc)

    def flush(self):
        """Send queued events now (remote mode). Safe to call at any time."""
        if self._scheduler is None:
            return None
        return self._scheduler.flush()

    async def wait_pending(self) -> None:
        """Wait for outstanding store writes and in-flight sends."""
        if self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)
        if self._scheduler is not None:
            await self._scheduler.wait_in_flight()

    # ------------------------------------------------------------------
    # Collaborator queries
    # ------------------------------------------------------------------

    def get_capture_headers(self) -> list[str]:
        return list(self.config.capture_headers)

    async def get_local_errors(self) -> list[ErrorEvent]:
        if self._store is None:
            return []
        try:
            return await self._store.get_all()
        except StoreError as exc:
            logger.error("Failed to read local errors: %s", exc)
            return []

    async def get_errors_by_time_range(self, start: int, end: int) -> list[ErrorEvent]:
        if self._store is None:
            return []
        try:
            return await self._store.get_errors_by_time_range(start, end)
        except StoreError as exc:
            logger.error("Failed to read local errors: %s", exc)
            return []

    async def clear_local_errors(self) -> None:
        if self._store is None:
            return
        try:
            await self._store.clear()
        except StoreError as exc:
            logger.error("Failed to clear local errors: %s", exc)

    async def export_local_errors(self) -> str:
        errors = await self.get_local_errors()
        return json.dumps([e.to_dict() for e in errors], indent=2)

    async def export_to_file(self, path: str) -> int:
        """Write the JSON export to *path*. Returns the number of errors written."""
        errors = await self.get_local_errors()
        async with aiofiles.open(path, mode="w", encoding="utf-8") as f:
            await f.write(json.dumps([e.to_dict() for e in errors], indent=2))
        logger.info("Exported %d error(s) to %s", len(errors), path)
        return len(errors)

    def attach_inspector(self, inspector) -> bool:
        """Give an inspection surface the refresh and clear callbacks (local mode only)."""
        if self.config.is_remote:
            logger.warning("Inspector is only available in local mode")
            return False
        inspector.set_update_callback(self.get_local_errors)
        inspector.set_clear_callback(self.clear_local_errors)
        self.inspector = inspector
        return True

    @property
    def scheduler(self) -> Optional[BatchScheduler]:
        return self._scheduler

    @property
    def store(self) -> Optional[ErrorStore]:
        return self._store
