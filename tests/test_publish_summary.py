"""Tests for daily summary building and publishing."""

from datetime import UTC, date, datetime

import pytest

from coach_queue.adapters.sql_mention_store import SQLMentionStore
from coach_queue.domain.exceptions import ConfigurationError, StoreUnavailableError
from coach_queue.domain.models import Coach, MentionRecord
from coach_queue.services.availability import WorkingHoursCalendar
from coach_queue.services.reply_dedupe import ReplyDedupeLatch
from coach_queue.use_cases.publish_summary import (
    SummaryPublisher,
    build_summary_entries,
    chunk_summary,
    render_summary,
)
from tests.conftest import SUMMARY_CHANNEL, FakeChatClient, local_dt

DAY = date(2026, 10, 13)


def _record(author: str, hour: int, messages: list[str], minute: int = 0) -> MentionRecord:
    return MentionRecord(
        record_id=f"{author}-{hour}-{minute}",
        coach="coach",
        author_id=f"U{author.upper()}",
        author=author,
        day=DAY,
        messages=messages,
        first_seen_at=local_dt(2026, 10, 13, hour, minute),
        source_channel="#general",
    )


@pytest.fixture
def publisher(
    roster: list[Coach],
    store: SQLMentionStore,
    chat: FakeChatClient,
    calendar: WorkingHoursCalendar,
    reply_latch: ReplyDedupeLatch,
) -> SummaryPublisher:
    return SummaryPublisher(
        roster,
        store,
        chat,
        calendar,
        SUMMARY_CHANNEL,
        reply_latch=reply_latch,
        clock=lambda: datetime(2026, 10, 14, 2, 0, tzinfo=UTC),  # Tue 22:00 local
    )


def test_entries_ordered_by_first_seen_with_deduplicated_messages() -> None:
    records = [
        _record("carol", 19, ["c1"]),
        _record("alice", 16, ["a1", "a2", "a1"]),
        _record("bob", 17, ["b1"]),
    ]

    entries = build_summary_entries(records)

    assert [e.author for e in entries] == ["alice", "bob", "carol"]
    assert entries[0].messages == ["a1", "a2"]


def test_entries_merge_records_for_the_same_author() -> None:
    records = [
        _record("alice", 18, ["late", "hi"]),
        _record("alice", 16, ["hi", "early"]),
    ]

    entries = build_summary_entries(records)

    assert len(entries) == 1
    assert entries[0].messages == ["hi", "early", "late"]
    assert entries[0].first_seen_at == local_dt(2026, 10, 13, 16)


def test_ties_on_first_seen_break_on_author() -> None:
    entries = build_summary_entries([_record("zed", 16, ["z"]), _record("amy", 16, ["a"])])

    assert [e.author for e in entries] == ["amy", "zed"]


def test_render_summary(coach: Coach, calendar: WorkingHoursCalendar) -> None:
    entries = build_summary_entries(
        [_record("alice", 16, ["hi", "bye"]), _record("bob", 17, ["question"], minute=30)]
    )

    text = render_summary(coach, DAY, entries, calendar)

    assert text.splitlines() == [
        "*Daily Mention Summary for Coach* (Tuesday 2026-10-13)",
        "1. *alice* (first seen 16:00, #general)",
        "   • hi",
        "   • bye",
        "2. *bob* (first seen 17:30, #general)",
        "   • question",
    ]


def test_chunk_summary_respects_limit_and_line_boundaries() -> None:
    text = "\n".join(f"line {i:03d}" for i in range(50))

    chunks = chunk_summary(text, max_chars=100)

    assert all(len(chunk) <= 100 for chunk in chunks)
    assert "\n".join(chunks) == text


def test_chunk_summary_splits_long_lines() -> None:
    chunks = chunk_summary("x" * 25, max_chars=10)

    assert chunks == ["x" * 10, "x" * 10, "x" * 5]


def test_build_summary_none_when_nothing_queued(
    publisher: SummaryPublisher, coach: Coach
) -> None:
    assert publisher.build_summary(coach, DAY) is None


def test_daily_job_posts_only_non_empty_summaries(
    publisher: SummaryPublisher, store: SQLMentionStore, chat: FakeChatClient
) -> None:
    store.create_record(
        "coach", "UALICE0001", "alice", DAY, "hi", "#general",
        seen_at=local_dt(2026, 10, 13, 16),
    )

    result = publisher.run_daily_summary_job()

    assert result.day == DAY
    assert result.posted == ["coach"]
    assert result.empty == ["tugce"]
    assert result.succeeded
    assert len(chat.channel_posts) == 1
    channel, text = chat.channel_posts[0]
    assert channel == SUMMARY_CHANNEL
    assert "*alice*" in text


def test_daily_job_isolates_failures_per_coach(
    mocker,
    roster: list[Coach],
    chat: FakeChatClient,
    calendar: WorkingHoursCalendar,
) -> None:
    store = mocker.Mock()

    def list_records(coach_key: str, day: date) -> list[MentionRecord]:
        if coach_key == "coach":
            raise StoreUnavailableError("connection refused")
        return [_record("bob", 17, ["for tugce"])]

    store.list_records.side_effect = list_records
    publisher = SummaryPublisher(roster, store, chat, calendar, SUMMARY_CHANNEL)

    result = publisher.run_daily_summary_job(DAY)

    assert result.failed == ["coach"]
    assert result.posted == ["tugce"]
    assert not result.succeeded
    assert "Tugce" in chat.channel_posts[0][1]


def test_daily_job_records_slack_failures(
    publisher: SummaryPublisher, store: SQLMentionStore, chat: FakeChatClient
) -> None:
    store.create_record(
        "coach", "UALICE0001", "alice", DAY, "hi", "#general",
        seen_at=local_dt(2026, 10, 13, 16),
    )
    chat.fail_channel_posts = True

    result = publisher.run_daily_summary_job()

    assert result.failed == ["coach"]


def test_daily_job_requires_summary_channel(
    roster: list[Coach],
    store: SQLMentionStore,
    chat: FakeChatClient,
    calendar: WorkingHoursCalendar,
) -> None:
    publisher = SummaryPublisher(roster, store, chat, calendar, "")

    with pytest.raises(ConfigurationError):
        publisher.run_daily_summary_job(DAY)


def test_daily_job_evicts_reply_latch_from_previous_days(
    publisher: SummaryPublisher, reply_latch: ReplyDedupeLatch
) -> None:
    reply_latch.try_acquire("coach", "alice", date(2026, 10, 12))
    reply_latch.try_acquire("coach", "alice", DAY)

    publisher.run_daily_summary_job()

    assert not reply_latch.has_replied("coach", "alice", date(2026, 10, 12))
    assert reply_latch.has_replied("coach", "alice", DAY)


def test_run_all_summaries_now_uses_http_trigger(publisher: SummaryPublisher) -> None:
    result = publisher.run_all_summaries_now()

    assert result.trigger == "http"
    assert result.day == DAY
