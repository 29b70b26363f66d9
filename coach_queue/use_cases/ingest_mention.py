"""Mention ingestion use case.

Queues messages that mention a coach outside their working hours (or while
they paused live mentions) and tells the author, once per day, when the
coach will be back.
"""

from collections.abc import Sequence
from datetime import date, datetime

from coach_queue.config.logging_config import get_logger
from coach_queue.domain.exceptions import (
    ConfigurationError,
    RateLimitError,
    SlackAPIError,
    StoreUnavailableError,
)
from coach_queue.domain.models import (
    Coach,
    IngestionOutcome,
    IngestionResult,
    MentionEvent,
    MentionRecord,
)
from coach_queue.domain.protocols import ChatClientProtocol, MentionStoreProtocol
from coach_queue.observability.metrics import (
    MENTIONS_TOTAL,
    REPLIES_SENT_TOTAL,
    REPLY_FAILURES_TOTAL,
    STORE_FAILURES_TOTAL,
)
from coach_queue.services.availability import WorkingHoursCalendar
from coach_queue.services.event_dedupe import ProcessedEventTracker
from coach_queue.services.mention_classifier import classify, mentioned_coaches
from coach_queue.services.reply_dedupe import ReplyDedupeLatch
from coach_queue.services.toggle_state import QueueToggleState

logger = get_logger(__name__)


def compose_reply(
    coach: Coach,
    event: MentionEvent,
    *,
    position: int,
    availability_note: str | None,
    paused: bool,
) -> str:
    """Build the out-of-office acknowledgement.

    Args:
        coach: Mentioned coach
        event: Original message
        position: 1-based position of the author in today's queue
        availability_note: "today at 10:00" style wording, None if unknown
        paused: Coach is in hours but has queueing switched on manually
    """
    if paused:
        status = f"{coach.display_name} has paused live mentions for now."
    elif availability_note is None:
        status = f"{coach.display_name} has no working hours set up yet."
    else:
        status = (
            f"{coach.display_name} is currently offline and will be back "
            f"{availability_note}."
        )
    return (
        f"Hi <@{event.author_id}>, {status} I've queued your message. "
        f"You're #{position} in line today."
    )


class MentionIngestionPipeline:
    """Classify, record and acknowledge mentions of monitored coaches."""

    def __init__(
        self,
        roster: Sequence[Coach],
        store: MentionStoreProtocol,
        chat: ChatClientProtocol,
        calendar: WorkingHoursCalendar,
        toggles: QueueToggleState,
        reply_latch: ReplyDedupeLatch,
        *,
        event_tracker: ProcessedEventTracker | None = None,
        process_all_mentioned_coaches: bool = False,
    ) -> None:
        self._roster = list(roster)
        self._store = store
        self._chat = chat
        self._calendar = calendar
        self._toggles = toggles
        self._reply_latch = reply_latch
        self._event_tracker = event_tracker
        self._process_all = process_all_mentioned_coaches

    def handle(self, event: MentionEvent) -> list[IngestionResult]:
        """Handle one inbound message.

        Returns:
            One result per coach acted on (a single no-op result otherwise)

        Raises:
            StoreUnavailableError: When the queue could not be written; no
                reply is sent in that case
        """
        if event.is_from_bot:
            return [self._noop(IngestionOutcome.IGNORED_BOT)]

        delivery_key = event.delivery_key
        if (
            delivery_key
            and self._event_tracker is not None
            and not self._event_tracker.mark_if_new(delivery_key)
        ):
            return [self._noop(IngestionOutcome.DUPLICATE_EVENT)]

        if self._process_all:
            coaches = mentioned_coaches(event, self._roster)
        else:
            first = classify(event, self._roster)
            coaches = [first] if first else []

        if not coaches:
            return [self._noop(IngestionOutcome.NO_COACH)]

        results: list[IngestionResult] = []
        try:
            for coach in coaches:
                results.append(self._handle_for_coach(event, coach))
        except StoreUnavailableError:
            if delivery_key and self._event_tracker is not None:
                self._event_tracker.forget(delivery_key)
            raise
        return results

    def _noop(self, outcome: IngestionOutcome) -> IngestionResult:
        MENTIONS_TOTAL.labels(outcome=outcome.value).inc()
        return IngestionResult(outcome=outcome)

    def _handle_for_coach(self, event: MentionEvent, coach: Coach) -> IngestionResult:
        now = self._calendar.to_local(event.received_at)
        day = now.date()
        enabled = self._toggles.is_enabled(coach.key)

        try:
            available = self._calendar.is_available(coach, now)
            has_hours = True
        except ConfigurationError:
            logger.warning("coach_hours_missing_queueing_anyway", coach=coach.key)
            available = False
            has_hours = False

        logger.info(
            "coach_mention_checked",
            coach=coach.key,
            author=event.author_display_name,
            available=available,
            queueing_enabled=enabled,
        )

        if available and enabled:
            MENTIONS_TOTAL.labels(outcome=IngestionOutcome.IN_OFFICE.value).inc()
            return IngestionResult(outcome=IngestionOutcome.IN_OFFICE, coach_key=coach.key)

        try:
            record, outcome = self._record_mention(coach, event, day, now)
        except StoreUnavailableError as exc:
            STORE_FAILURES_TOTAL.labels(operation="record_mention").inc()
            logger.error(
                "mention_queue_failed",
                coach=coach.key,
                author=event.author_display_name,
                error=str(exc),
            )
            raise

        MENTIONS_TOTAL.labels(outcome=outcome.value).inc()
        result = IngestionResult(outcome=outcome, coach_key=coach.key, record=record)

        if not self._reply_latch.try_acquire(coach.key, event.author_id, day):
            logger.debug(
                "reply_already_sent_today",
                coach=coach.key,
                author=event.author_display_name,
            )
            return result

        try:
            position = self._queue_position(coach.key, day, record)
        except StoreUnavailableError as exc:
            self._reply_latch.release(coach.key, event.author_id, day)
            STORE_FAILURES_TOTAL.labels(operation="queue_position").inc()
            logger.error("queue_position_failed", coach=coach.key, error=str(exc))
            raise

        availability_note = (
            self._calendar.describe_next_available(coach, now)
            if has_hours and not available
            else None
        )
        reply_text = compose_reply(
            coach,
            event,
            position=position,
            availability_note=availability_note,
            paused=available and not enabled,
        )

        try:
            self._chat.send_reply(event, reply_text)
        except (SlackAPIError, RateLimitError) as exc:
            self._reply_latch.release(coach.key, event.author_id, day)
            REPLY_FAILURES_TOTAL.labels(coach=coach.key).inc()
            logger.error(
                "queue_reply_failed",
                coach=coach.key,
                author=event.author_display_name,
                error=str(exc),
            )
            return result

        REPLIES_SENT_TOTAL.labels(coach=coach.key).inc()
        logger.info(
            "queue_reply_sent",
            coach=coach.key,
            author=event.author_display_name,
            position=position,
        )
        return result.model_copy(update={"replied": True, "reply_text": reply_text})

    def _record_mention(
        self, coach: Coach, event: MentionEvent, day: date, now: datetime
    ) -> tuple[MentionRecord, IngestionOutcome]:
        """Find-or-create the (coach, author_id, day) record."""
        existing = self._store.find_record(coach.key, event.author_id, day)

        if existing is None:
            record = self._store.create_record(
                coach.key,
                event.author_id,
                event.author_display_name,
                day,
                event.text,
                event.channel_label,
                seen_at=now,
            )
            logger.info(
                "mention_queued",
                coach=coach.key,
                author=event.author_display_name,
                record_id=record.record_id,
            )
            return record, IngestionOutcome.QUEUED

        outcome = (
            IngestionOutcome.DUPLICATE_TEXT
            if existing.has_message(event.text)
            else IngestionOutcome.APPENDED
        )
        # A name that fell back to the raw user id never replaces a resolved one
        resolved_name = (
            event.author_display_name
            if event.author_display_name != event.author_id
            else None
        )
        record = self._store.append_message(
            existing.record_id,
            event.text,
            event.channel_label,
            seen_at=now,
            author=resolved_name,
        )
        logger.info(
            "mention_appended",
            coach=coach.key,
            author=event.author_display_name,
            record_id=record.record_id,
            duplicate=outcome is IngestionOutcome.DUPLICATE_TEXT,
            message_count=len(record.messages),
        )
        return record, outcome

    def _queue_position(self, coach_key: str, day: date, record: MentionRecord) -> int:
        records = self._store.list_records(coach_key, day)
        for index, candidate in enumerate(records, start=1):
            if candidate.record_id == record.record_id:
                return index
        return len(records) + 1
