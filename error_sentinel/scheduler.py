"""Batch scheduler: accumulates events for remote delivery.

A batch is flushed when the queue reaches ``batch_size`` or when a single-shot
timer of ``interval`` seconds fires, whichever comes first. Flushing swaps the
whole queue out before the send starts, so events enqueued while a send is in
flight go into the next batch. Delivery is at-most-once: failed batches are
logged and dropped.
"""

import asyncio
import logging
import time
from typing import Awaitable, Callable, Optional

from error_sentinel.errors import DeliveryError
from error_sentinel.models import ErrorEvent

logger = logging.getLogger(__name__)

Deliver = Callable[[list[ErrorEvent]], Awaitable[None]]


class BatchScheduler:
    """Size- and timer-triggered batching on the running asyncio loop."""

    def __init__(
        self,
        batch_size: int,
        interval: float,
        deliver: Deliver,
        loop: Optional[asyncio.AbstractEventLoop] = None,
    ):
        self.batch_size = batch_size
        self.interval = interval
        self._deliver = deliver
        self._loop = loop
        self._queue: list[ErrorEvent] = []
        self._timer: Optional[asyncio.TimerHandle] = None
        self._in_flight: set[asyncio.Task] = set()
        self._sequence = 0
        self._closed = False

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def enqueue(self, event: ErrorEvent) -> None:
        if self._closed:
            logger.debug("Scheduler closed, dropping event for %s", event.endpoint)
            return
        # Resolve the loop first so a missing loop leaves the queue untouched
        loop = self._get_loop()
        if len(self._queue) + 1 >= self.batch_size:
            self._queue.append(event)
            self.flush()
        else:
            self._arm_timer(loop)
            self._queue.append(event)

    def flush(self) -> Optional[asyncio.Task]:
        """Send everything queued now. Returns the send task, or None if empty."""
        self._cancel_timer()
        if not self._queue:
            return None

        batch, self._queue = self._queue, []
        self._sequence += 1
        task = self._get_loop().create_task(self._send(self._sequence, batch))
        self._in_flight.add(task)
        task.add_done_callback(self._in_flight.discard)
        return task

    def close(self) -> int:
        """Cancel the timer and drop queued events without sending them.

        In-flight sends are left to finish. Returns the number dropped.
        """
        self._closed = True
        self._cancel_timer()
        dropped = len(self._queue)
        self._queue = []
        return dropped

    async def wait_in_flight(self) -> None:
        if self._in_flight:
            await asyncio.gather(*list(self._in_flight), return_exceptions=True)

    @property
    def pending_count(self) -> int:
        return len(self._queue)

    @property
    def timer_armed(self) -> bool:
        return self._timer is not None

    @property
    def in_flight_count(self) -> int:
        return len(self._in_flight)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _get_loop(self) -> asyncio.AbstractEventLoop:
        if self._loop is None:
            self._loop = asyncio.get_running_loop()
        return self._loop

    def _arm_timer(self, loop: asyncio.AbstractEventLoop) -> None:
        if self._timer is not None:
            return
        self._timer = loop.call_later(self.interval, self._on_timer)

    def _cancel_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def _on_timer(self) -> None:
        self._timer = None
        self.flush()

    async def _send(self, seq: int, batch: list[ErrorEvent]) -> None:
        start = time.monotonic()
        try:
            await self._deliver(batch)
        except DeliveryError as exc:
            logger.error("Failed to send error batch #%d (%d errors): %s", seq, len(batch), exc)
            return
        except Exception:
            logger.exception("Unexpected failure sending error batch #%d", seq)
            return
        elapsed_ms = (time.monotonic() - start) * 1000
        logger.info("Sent error batch #%d of %d errors in %.1f ms", seq, len(batch), elapsed_ms)
