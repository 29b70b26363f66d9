"""Recognise chat events the platform delivers more than once.

Slack retries event delivery when an acknowledgement is late, so the same
message can arrive twice. Keys expire after a TTL on a monotonic clock.
"""

import threading
import time
from collections.abc import Callable

from coach_queue.config.logging_config import get_logger
from coach_queue.domain.availability_constants import DEFAULT_EVENT_DEDUPE_TTL_SECONDS

logger = get_logger(__name__)


class ProcessedEventTracker:
    """TTL set of delivery keys (channel:ts) already handled."""

    def __init__(
        self,
        ttl_seconds: float = DEFAULT_EVENT_DEDUPE_TTL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._ttl_seconds = ttl_seconds
        self._clock = clock
        self._seen: dict[str, float] = {}
        self._lock = threading.Lock()

    def mark_if_new(self, key: str) -> bool:
        """Record the key; return False if it was seen within the TTL."""
        with self._lock:
            self._expire()
            if key in self._seen:
                logger.debug("event_redelivery_ignored", delivery_key=key)
                return False
            self._seen[key] = self._clock()
            return True

    def forget(self, key: str) -> None:
        """Allow a key to be handled again (e.g. after a failed attempt)."""
        with self._lock:
            self._seen.pop(key, None)

    @property
    def tracked_count(self) -> int:
        with self._lock:
            self._expire()
            return len(self._seen)

    def _expire(self) -> None:
        now = self._clock()
        expired = [
            key for key, marked_at in self._seen.items()
            if now - marked_at > self._ttl_seconds
        ]
        for key in expired:
            del self._seen[key]
