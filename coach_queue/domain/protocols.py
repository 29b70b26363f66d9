"""Protocol definitions for dependency inversion.

These abstract interfaces define contracts that adapters must implement.
"""

from collections.abc import Sequence
from datetime import date, datetime
from typing import Any, Protocol

from coach_queue.domain.models import MentionEvent, MentionRecord


class MentionStoreProtocol(Protocol):
    """Protocol for mention record persistence.

    Records are keyed by (coach, author_id, day); the author display name is
    only a label. At most one record per key is maintained by callers
    through find-or-create; the store itself does not enforce it.
    """

    def find_record(
        self, coach: str, author_id: str, day: date
    ) -> MentionRecord | None:
        """Find the record for a coach/author/day.

        Raises:
            StoreUnavailableError: On storage errors
        """
        ...

    def create_record(
        self,
        coach: str,
        author_id: str,
        author: str,
        day: date,
        text: str,
        channel: str,
        *,
        seen_at: datetime,
    ) -> MentionRecord:
        """Create a record holding a single message.

        Raises:
            StoreUnavailableError: On storage errors
        """
        ...

    def append_message(
        self,
        record_id: str,
        text: str,
        channel: str,
        *,
        seen_at: datetime,
        author: str | None = None,
    ) -> MentionRecord:
        """Append a message to an existing record and update its channel.

        A given author label replaces the stored one.

        Raises:
            StoreUnavailableError: On storage errors or unknown record
        """
        ...

    def list_records(self, coach: str, day: date) -> list[MentionRecord]:
        """List a coach's records for a day ordered by first_seen_at, author.

        Raises:
            StoreUnavailableError: On storage errors
        """
        ...

    def list_records_for_coach(self, coach: str) -> list[MentionRecord]:
        """List every record of a coach across days.

        Raises:
            StoreUnavailableError: On storage errors
        """
        ...

    def delete_records(self, record_ids: Sequence[str]) -> int:
        """Delete records by id.

        Returns:
            Number of rows removed

        Raises:
            StoreUnavailableError: On storage errors
        """
        ...


class ChatClientProtocol(Protocol):
    """Protocol for outbound chat operations."""

    def send_reply(self, event: MentionEvent, text: str) -> str:
        """Reply to the original message.

        Returns:
            Message timestamp of the reply

        Raises:
            SlackAPIError: On API communication errors
        """
        ...

    def send_to_channel(self, channel_id: str, text: str) -> str:
        """Post a message to a channel.

        Returns:
            Message timestamp

        Raises:
            SlackAPIError: On API communication errors
        """
        ...

    def get_user_info(self, user_id: str) -> dict[str, Any]:
        """Get user information by ID (with caching)."""
        ...

    def get_channel_label(self, channel_id: str) -> str:
        """Get a human channel label, "Unknown" when lookup fails."""
        ...
