"""Pytest configuration and shared fixtures."""

from __future__ import annotations

from collections.abc import Iterable
from datetime import datetime
from pathlib import Path
from typing import Any

import pytest
import pytz

from coach_queue.adapters.repository_factory import sqlite_connection_factory
from coach_queue.adapters.sql_mention_store import SQLMentionStore
from coach_queue.config.settings import Settings
from coach_queue.domain.exceptions import SlackAPIError
from coach_queue.domain.models import Coach, MentionEvent
from coach_queue.services.availability import WorkingHoursCalendar
from coach_queue.services.event_dedupe import ProcessedEventTracker
from coach_queue.services.reply_dedupe import ReplyDedupeLatch
from coach_queue.services.toggle_state import QueueToggleState
from coach_queue.use_cases.app_factory import CoachQueueContainer, build_container
from coach_queue.use_cases.ingest_mention import MentionIngestionPipeline

TZ = pytz.timezone("America/New_York")

COACH_ID = "UCOACH0001"
OTHER_COACH_ID = "UCOACH0002"
SUMMARY_CHANNEL = "CSUMMARY01"


def local_dt(year: int, month: int, day: int, hour: int, minute: int = 0) -> datetime:
    """Aware datetime in the test reference zone."""
    return TZ.localize(datetime(year, month, day, hour, minute))


def make_event(
    text: str = "hi",
    *,
    author: str = "alice",
    author_id: str = "UALICE0001",
    at: datetime | None = None,
    mentioned: Iterable[str] = (COACH_ID,),
    channel_id: str = "CGENERAL01",
    channel_label: str = "#general",
    ts: str | None = None,
    is_from_bot: bool = False,
) -> MentionEvent:
    return MentionEvent(
        author_id=author_id,
        author_display_name=author,
        is_from_bot=is_from_bot,
        text=text,
        mentioned_ids=frozenset(mentioned),
        channel_id=channel_id,
        channel_label=channel_label,
        received_at=at or local_dt(2026, 10, 13, 16, 0),
        message_ts=ts,
    )


class FakeChatClient:
    """In-memory ChatClientProtocol implementation."""

    def __init__(self) -> None:
        self.replies: list[tuple[MentionEvent, str]] = []
        self.channel_posts: list[tuple[str, str]] = []
        self.fail_replies = False
        self.fail_channel_posts = False
        self.users: dict[str, dict[str, Any]] = {}
        self.channels: dict[str, str] = {}

    def send_reply(self, event: MentionEvent, text: str) -> str:
        if self.fail_replies:
            raise SlackAPIError("chat_postMessage failed")
        self.replies.append((event, text))
        return f"{len(self.replies)}.0"

    def send_to_channel(self, channel_id: str, text: str) -> str:
        if self.fail_channel_posts:
            raise SlackAPIError("chat_postMessage failed")
        self.channel_posts.append((channel_id, text))
        return f"{len(self.channel_posts)}.0"

    def get_user_info(self, user_id: str) -> dict[str, Any]:
        return self.users.get(user_id, {"id": user_id, "name": user_id.lower()})

    def get_channel_label(self, channel_id: str) -> str:
        return self.channels.get(channel_id, "Unknown")


@pytest.fixture
def calendar() -> WorkingHoursCalendar:
    return WorkingHoursCalendar(TZ)


@pytest.fixture
def coach() -> Coach:
    """Coach available 10:00-15:00 on weekdays."""
    return Coach(
        key="coach",
        display_name="Coach",
        slack_user_id=COACH_ID,
        windows=["10:00-15:00"],
    )


@pytest.fixture
def other_coach() -> Coach:
    return Coach(
        key="tugce",
        display_name="Tugce",
        slack_user_id=OTHER_COACH_ID,
        windows=["09:00-12:00", "13:00-17:30"],
    )


@pytest.fixture
def roster(coach: Coach, other_coach: Coach) -> list[Coach]:
    return [coach, other_coach]


@pytest.fixture
def db_path(tmp_path: Path) -> str:
    return str(tmp_path / "queue.sqlite")


@pytest.fixture
def store(db_path: str) -> SQLMentionStore:
    return SQLMentionStore(sqlite_connection_factory(db_path))


@pytest.fixture
def chat() -> FakeChatClient:
    return FakeChatClient()


@pytest.fixture
def toggles(roster: list[Coach]) -> QueueToggleState:
    return QueueToggleState(coach.key for coach in roster)


@pytest.fixture
def reply_latch() -> ReplyDedupeLatch:
    return ReplyDedupeLatch()


@pytest.fixture
def pipeline(
    roster: list[Coach],
    store: SQLMentionStore,
    chat: FakeChatClient,
    calendar: WorkingHoursCalendar,
    toggles: QueueToggleState,
    reply_latch: ReplyDedupeLatch,
) -> MentionIngestionPipeline:
    return MentionIngestionPipeline(
        roster,
        store,
        chat,
        calendar,
        toggles,
        reply_latch,
        event_tracker=ProcessedEventTracker(ttl_seconds=60),
    )


@pytest.fixture
def settings(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch, roster: list[Coach]
) -> Settings:
    """Settings isolated from the repository config directory."""
    monkeypatch.chdir(tmp_path)
    return Settings(
        slack_bot_token="xoxb-test",
        timezone="America/New_York",
        coaches=roster,
        summary_channel_id=SUMMARY_CHANNEL,
        admin_user_ids=["UADMIN0001"],
        db_path=str(tmp_path / "container.sqlite"),
    )


@pytest.fixture
def container(settings: Settings, chat: FakeChatClient) -> CoachQueueContainer:
    return build_container(
        settings,
        chat=chat,
        clock=lambda: datetime(2026, 10, 14, 2, 0, tzinfo=pytz.UTC),
    )
