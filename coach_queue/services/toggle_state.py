"""Per-coach queueing switch, kept in process memory.

Resets to enabled on restart.
"""

import threading
from collections.abc import Iterable

from coach_queue.config.logging_config import get_logger
from coach_queue.domain.exceptions import UnknownCoachError

logger = get_logger(__name__)


class QueueToggleState:
    """Thread-safe map of coach key to queueing flag (default enabled)."""

    def __init__(self, coach_keys: Iterable[str]) -> None:
        self._enabled: dict[str, bool] = {key: True for key in coach_keys}
        self._lock = threading.Lock()

    def _require_known(self, coach_key: str) -> None:
        if coach_key not in self._enabled:
            raise UnknownCoachError(coach_key)

    def is_enabled(self, coach_key: str) -> bool:
        with self._lock:
            self._require_known(coach_key)
            return self._enabled[coach_key]

    def set_enabled(self, coach_key: str, enabled: bool) -> bool:
        """Set the flag and return the previous value."""
        with self._lock:
            self._require_known(coach_key)
            previous = self._enabled[coach_key]
            self._enabled[coach_key] = enabled

        logger.info(
            "queueing_toggled",
            coach=coach_key,
            enabled=enabled,
            previous=previous,
        )
        return previous

    def snapshot(self) -> dict[str, bool]:
        with self._lock:
            return dict(self._enabled)
