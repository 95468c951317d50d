"""Time-windowed deduplication of error events."""

import logging

logger = logging.getLogger(__name__)


class DedupCache:
    """Remembers when each key was last accepted.

    A key is accepted when it has not been seen, or was last accepted at least
    ``window`` milliseconds ago. A window of 0 disables deduplication.
    """

    def __init__(self) -> None:
        self._last_seen: dict[str, int] = {}

    def should_accept(self, key: str, now: int, window: int) -> bool:
        if window <= 0:
            return True

        last = self._last_seen.get(key)
        if last is not None and now - last < window:
            logger.debug("Suppressing duplicate %s (%d ms since last)", key, now - last)
            return False

        self._last_seen[key] = now
        self.prune(now, window)
        return True

    def prune(self, now: int, window: int) -> int:
        """Drop entries older than *window*. Returns the number removed."""
        expired = [k for k, seen in self._last_seen.items() if now - seen >= window]
        for key in expired:
            del self._last_seen[key]
        return len(expired)

    def clear(self) -> None:
        self._last_seen.clear()

    def __len__(self) -> int:
        return len(self._last_seen)

    def __contains__(self, key: str) -> bool:
        return key in self._last_seen
