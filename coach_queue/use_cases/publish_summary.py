"""Publish daily summary use case.

Builds the per-coach digest of queued mentions and posts it to the
summary channel.
"""

from collections.abc import Callable, Sequence
from datetime import UTC, date, datetime

from coach_queue.config.logging_config import get_logger
from coach_queue.domain.availability_constants import SLACK_MESSAGE_CHAR_LIMIT
from coach_queue.domain.exceptions import (
    ConfigurationError,
    RateLimitError,
    SlackAPIError,
    StoreUnavailableError,
)
from coach_queue.domain.models import (
    Coach,
    DigestRunResult,
    MentionRecord,
    SummaryEntry,
)
from coach_queue.domain.protocols import ChatClientProtocol, MentionStoreProtocol
from coach_queue.observability.metrics import SUMMARIES_TOTAL
from coach_queue.services.availability import WorkingHoursCalendar
from coach_queue.services.reply_dedupe import ReplyDedupeLatch

logger = get_logger(__name__)


def build_summary_entries(records: Sequence[MentionRecord]) -> list[SummaryEntry]:
    """Collapse records into one entry per author id.

    Messages keep first-occurrence order with exact duplicates removed.
    Authors are ordered by their earliest mention, then by name.

    Example:
        >>> entries = build_summary_entries(records)
        >>> [entry.author for entry in entries]
        ['alice', 'bob']
    """
    by_author: dict[str, SummaryEntry] = {}
    for record in sorted(records, key=lambda r: (r.first_seen_at, r.author)):
        entry = by_author.get(record.author_id)
        if entry is None:
            entry = SummaryEntry(
                author=record.author,
                first_seen_at=record.first_seen_at,
                source_channel=record.source_channel,
            )
            by_author[record.author_id] = entry

        for message in record.messages:
            if message not in entry.messages:
                entry.messages.append(message)

    return sorted(by_author.values(), key=lambda e: (e.first_seen_at, e.author))


def render_summary(
    coach: Coach,
    day: date,
    entries: Sequence[SummaryEntry],
    calendar: WorkingHoursCalendar,
) -> str:
    """Render a digest as Slack mrkdwn text.

    Example:
        *Daily Mention Summary for Jeika* (Tuesday 2026-10-13)
        1. *alice* (first seen 16:00, #general)
           • hi
    """
    lines = [f"*Daily Mention Summary for {coach.display_name}* ({day:%A %Y-%m-%d})"]
    for number, entry in enumerate(entries, start=1):
        first_seen = calendar.to_local(entry.first_seen_at).strftime("%H:%M")
        lines.append(
            f"{number}. *{entry.author}* (first seen {first_seen}, {entry.source_channel})"
        )
        lines.extend(f"   • {message}" for message in entry.messages)
    return "\n".join(lines)


def chunk_summary(text: str, max_chars: int = SLACK_MESSAGE_CHAR_LIMIT) -> list[str]:
    """Split text on line boundaries into chunks no longer than max_chars.

    Lines longer than max_chars are hard-split.
    """
    if max_chars <= 0:
        raise ValueError("max_chars must be positive")

    chunks: list[str] = []
    current: list[str] = []
    current_len = 0
    for line in text.split("\n"):
        pieces = [line[i : i + max_chars] for i in range(0, len(line), max_chars)] or [""]
        for piece in pieces:
            added = len(piece) + (1 if current else 0)
            if current and current_len + added > max_chars:
                chunks.append("\n".join(current))
                current, current_len = [], 0
                added = len(piece)
            current.append(piece)
            current_len += added

    if current:
        chunks.append("\n".join(current))
    return chunks


class SummaryPublisher:
    """Single entry point for scheduled and on-demand digest runs."""

    def __init__(
        self,
        roster: Sequence[Coach],
        store: MentionStoreProtocol,
        chat: ChatClientProtocol,
        calendar: WorkingHoursCalendar,
        summary_channel_id: str,
        *,
        reply_latch: ReplyDedupeLatch | None = None,
        clock: Callable[[], datetime] = lambda: datetime.now(UTC),
    ) -> None:
        self._roster = list(roster)
        self._store = store
        self._chat = chat
        self._calendar = calendar
        self._summary_channel_id = summary_channel_id
        self._reply_latch = reply_latch
        self._clock = clock

    @property
    def calendar(self) -> WorkingHoursCalendar:
        return self._calendar

    def today(self) -> date:
        return self._calendar.local_day(self._clock())

    def build_summary(self, coach: Coach, day: date) -> str | None:
        """Render the coach's digest for a day, None when nothing is queued.

        Raises:
            StoreUnavailableError: On storage errors
        """
        records = self._store.list_records(coach.key, day)
        if not records:
            return None
        entries = build_summary_entries(records)
        return render_summary(coach, day, entries, self._calendar)

    def run_daily_summary_job(
        self, day: date | None = None, *, trigger: str = "schedule"
    ) -> DigestRunResult:
        """Build and post every coach's digest for the day.

        A failure for one coach is logged and does not stop the others.

        Raises:
            ConfigurationError: If no summary channel is configured
        """
        if not self._summary_channel_id:
            raise ConfigurationError("summary_channel_id is not configured")

        target_day = day or self.today()
        result = DigestRunResult(trigger=trigger, day=target_day)
        logger.info(
            "daily_summary_started",
            trigger=trigger,
            day=target_day.isoformat(),
            coaches=len(self._roster),
        )

        for coach in self._roster:
            try:
                summary = self.build_summary(coach, target_day)
                if summary is None:
                    result.empty.append(coach.key)
                    SUMMARIES_TOTAL.labels(status="empty").inc()
                    continue

                for chunk in chunk_summary(summary):
                    self._chat.send_to_channel(self._summary_channel_id, chunk)
            except (StoreUnavailableError, SlackAPIError, RateLimitError) as exc:
                result.failed.append(coach.key)
                SUMMARIES_TOTAL.labels(status="failed").inc()
                logger.error(
                    "daily_summary_coach_failed",
                    coach=coach.key,
                    day=target_day.isoformat(),
                    error=str(exc),
                )
                continue

            result.posted.append(coach.key)
            SUMMARIES_TOTAL.labels(status="posted").inc()
            logger.info("daily_summary_posted", coach=coach.key, day=target_day.isoformat())

        if self._reply_latch is not None:
            self._reply_latch.evict_before(self.today())

        logger.info(
            "daily_summary_completed",
            trigger=trigger,
            posted=len(result.posted),
            empty=len(result.empty),
            failed=len(result.failed),
        )
        return result

    def run_all_summaries_now(self) -> DigestRunResult:
        """On-demand run for the HTTP trigger."""
        return self.run_daily_summary_job(trigger="http")
