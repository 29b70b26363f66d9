"""Compose the application object graph from settings."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime

from coach_queue.adapters.repository_factory import create_mention_store
from coach_queue.adapters.slack_client import SlackClient
from coach_queue.config.settings import Settings
from coach_queue.domain.models import Coach
from coach_queue.domain.protocols import ChatClientProtocol, MentionStoreProtocol
from coach_queue.services.availability import WorkingHoursCalendar
from coach_queue.services.event_dedupe import ProcessedEventTracker
from coach_queue.services.reply_dedupe import ReplyDedupeLatch
from coach_queue.services.toggle_state import QueueToggleState
from coach_queue.use_cases.admin_commands import AdminCommandService
from coach_queue.use_cases.ingest_mention import MentionIngestionPipeline
from coach_queue.use_cases.publish_summary import SummaryPublisher


@dataclass(frozen=True, slots=True)
class CoachQueueContainer:
    """Process-wide collaborators shared by the chat, HTTP and scheduler entry points."""

    settings: Settings
    roster: list[Coach]
    calendar: WorkingHoursCalendar
    store: MentionStoreProtocol
    chat: ChatClientProtocol
    toggles: QueueToggleState
    reply_latch: ReplyDedupeLatch
    pipeline: MentionIngestionPipeline
    summaries: SummaryPublisher
    admin: AdminCommandService


def build_container(
    settings: Settings,
    *,
    chat: ChatClientProtocol | None = None,
    store: MentionStoreProtocol | None = None,
    clock: Callable[[], datetime] | None = None,
) -> CoachQueueContainer:
    """Wire every component from settings.

    Raises:
        ConfigurationError: On an invalid roster or time zone
    """
    roster = settings.build_roster()
    calendar = WorkingHoursCalendar(settings.reference_timezone())
    store = store or create_mention_store(settings)
    chat = chat or SlackClient(settings.slack_bot_token.get_secret_value())
    toggles = QueueToggleState(coach.key for coach in roster)
    reply_latch = ReplyDedupeLatch()

    pipeline = MentionIngestionPipeline(
        roster,
        store,
        chat,
        calendar,
        toggles,
        reply_latch,
        event_tracker=ProcessedEventTracker(settings.event_dedupe_ttl_seconds),
        process_all_mentioned_coaches=settings.process_all_mentioned_coaches,
    )
    summaries = SummaryPublisher(
        roster,
        store,
        chat,
        calendar,
        settings.summary_channel_id,
        reply_latch=reply_latch,
        clock=clock or (lambda: datetime.now(UTC)),
    )
    admin = AdminCommandService(
        roster,
        store,
        chat,
        toggles,
        summaries,
        summary_channel_id=settings.summary_channel_id,
        admin_user_ids=settings.admin_user_ids,
    )

    return CoachQueueContainer(
        settings=settings,
        roster=roster,
        calendar=calendar,
        store=store,
        chat=chat,
        toggles=toggles,
        reply_latch=reply_latch,
        pipeline=pipeline,
        summaries=summaries,
        admin=admin,
    )
