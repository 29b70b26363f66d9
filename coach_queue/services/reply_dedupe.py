"""Once-per-day reply latch for (coach, author_id, day)."""

import threading
from datetime import date

from coach_queue.config.logging_config import get_logger

logger = get_logger(__name__)

LatchKey = tuple[str, str, date]


class ReplyDedupeLatch:
    """Remembers which authors were already answered today for each coach.

    Keys carry the day, so entries from previous days are dead weight and
    are dropped by `evict_before` during the daily summary run.
    """

    def __init__(self) -> None:
        self._replied: set[LatchKey] = set()
        self._lock = threading.Lock()

    def try_acquire(self, coach_key: str, author_id: str, day: date) -> bool:
        """Latch the key; return False when it was already latched."""
        key = (coach_key, author_id, day)
        with self._lock:
            if key in self._replied:
                return False
            self._replied.add(key)
            return True

    def release(self, coach_key: str, author_id: str, day: date) -> None:
        with self._lock:
            self._replied.discard((coach_key, author_id, day))

    def has_replied(self, coach_key: str, author_id: str, day: date) -> bool:
        with self._lock:
            return (coach_key, author_id, day) in self._replied

    def evict_before(self, day: date) -> int:
        """Drop entries older than `day`; return how many were removed."""
        with self._lock:
            stale = {key for key in self._replied if key[2] < day}
            self._replied -= stale

        if stale:
            logger.debug("reply_latch_evicted", count=len(stale), before=day.isoformat())
        return len(stale)

    def __len__(self) -> int:
        with self._lock:
            return len(self._replied)
