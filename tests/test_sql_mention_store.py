"""Tests for SQLMentionStore on SQLite."""

import sqlite3
from concurrent.futures import ThreadPoolExecutor
from contextlib import contextmanager
from datetime import UTC, date, datetime

import pytest

from coach_queue.adapters.repository_factory import sqlite_connection_factory
from coach_queue.adapters.sql_mention_store import SQLMentionStore
from coach_queue.domain.exceptions import StoreUnavailableError
from tests.conftest import local_dt

DAY = date(2026, 10, 13)


def _create(store: SQLMentionStore, author: str, text: str, hour: int, **kwargs):
    return store.create_record(
        "coach",
        kwargs.pop("author_id", f"U{author.upper()}"),
        author,
        kwargs.pop("day", DAY),
        text,
        kwargs.pop("channel", "#general"),
        seen_at=local_dt(2026, 10, 13, hour),
        **kwargs,
    )


def test_create_and_find_record(store: SQLMentionStore) -> None:
    created = _create(store, "alice", "hi", 16, author_id="UALICE0001")

    found = store.find_record("coach", "UALICE0001", DAY)

    assert found is not None
    assert found.record_id == created.record_id
    assert found.author_id == "UALICE0001"
    assert found.messages == ["hi"]
    assert found.first_seen_at == datetime(2026, 10, 13, 20, 0, tzinfo=UTC)
    assert found.source_channel == "#general"


def test_find_record_scoped_by_coach_author_and_day(store: SQLMentionStore) -> None:
    _create(store, "alice", "hi", 16)

    assert store.find_record("coach", "UBOB", DAY) is None
    assert store.find_record("tugce", "UALICE", DAY) is None
    assert store.find_record("coach", "UALICE", date(2026, 10, 14)) is None
    # The display name is a label, not a key
    assert store.find_record("coach", "alice", DAY) is None


def test_append_message_is_idempotent_on_text(store: SQLMentionStore) -> None:
    record = _create(store, "alice", "hi", 16)

    store.append_message(record.record_id, "hi", "#general", seen_at=local_dt(2026, 10, 13, 17))
    updated = store.append_message(
        record.record_id, "bye", "#random", seen_at=local_dt(2026, 10, 13, 18)
    )

    assert updated.messages == ["hi", "bye"]
    stored = store.find_record("coach", "UALICE", DAY)
    assert stored is not None
    assert stored.messages == ["hi", "bye"]
    assert stored.source_channel == "#random"
    assert stored.last_seen_at == datetime(2026, 10, 13, 22, 0, tzinfo=UTC)
    # First-seen never moves forward
    assert stored.first_seen_at == datetime(2026, 10, 13, 20, 0, tzinfo=UTC)


def test_append_message_refreshes_author_label(store: SQLMentionStore) -> None:
    record = _create(store, "UALICE", "hi", 16, author_id="UALICE")

    unchanged = store.append_message(
        record.record_id, "again", "#general", seen_at=local_dt(2026, 10, 13, 17)
    )
    relabelled = store.append_message(
        record.record_id, "more", "#general", seen_at=local_dt(2026, 10, 13, 18), author="alice"
    )

    assert unchanged.author == "UALICE"
    assert relabelled.author == "alice"
    stored = store.find_record("coach", "UALICE", DAY)
    assert stored is not None
    assert stored.author == "alice"
    assert stored.messages == ["hi", "again", "more"]


def test_concurrent_appends_keep_every_message(store: SQLMentionStore) -> None:
    record = _create(store, "alice", "first", 16)
    texts = [f"message {n}" for n in range(20)]

    with ThreadPoolExecutor(max_workers=8) as pool:
        list(
            pool.map(
                lambda text: store.append_message(
                    record.record_id, text, "#general", seen_at=local_dt(2026, 10, 13, 17)
                ),
                texts,
            )
        )

    stored = store.find_record("coach", "UALICE", DAY)
    assert stored is not None
    assert stored.messages[0] == "first"
    assert sorted(stored.messages[1:]) == sorted(texts)


def test_append_to_missing_record_raises(store: SQLMentionStore) -> None:
    with pytest.raises(StoreUnavailableError):
        store.append_message("missing", "hi", "#general", seen_at=local_dt(2026, 10, 13, 16))


def test_list_records_ordered_by_first_seen(store: SQLMentionStore) -> None:
    _create(store, "carol", "late", 18)
    _create(store, "alice", "early", 16)
    _create(store, "bob", "middle", 17)
    _create(store, "dave", "tomorrow", 9, day=date(2026, 10, 14))

    records = store.list_records("coach", DAY)

    assert [r.author for r in records] == ["alice", "bob", "carol"]


def test_list_records_for_coach_spans_days(store: SQLMentionStore) -> None:
    _create(store, "alice", "hi", 16)
    _create(store, "bob", "hi", 9, day=date(2026, 10, 14))

    records = store.list_records_for_coach("coach")

    assert [(r.author, r.day) for r in records] == [
        ("alice", DAY),
        ("bob", date(2026, 10, 14)),
    ]


def test_delete_records(store: SQLMentionStore) -> None:
    keep = _create(store, "alice", "hi", 16)
    drop = _create(store, "bob", "hi", 17)

    assert store.delete_records([drop.record_id, "unknown"]) == 1
    assert store.delete_records([]) == 0
    assert [r.record_id for r in store.list_records("coach", DAY)] == [keep.record_id]


def test_records_survive_a_new_store_instance(db_path: str) -> None:
    first = SQLMentionStore(sqlite_connection_factory(db_path))
    _create(first, "alice", "hi", 16)

    second = SQLMentionStore(sqlite_connection_factory(db_path))

    assert second.find_record("coach", "UALICE", DAY) is not None


def test_driver_errors_become_store_unavailable() -> None:
    @contextmanager
    def broken_conn():
        raise sqlite3.OperationalError("unable to open database file")
        yield  # pragma: no cover

    with pytest.raises(StoreUnavailableError):
        SQLMentionStore(broken_conn)


def test_postgres_placeholders_used_for_non_sqlite_connections(mocker) -> None:
    cursor = mocker.Mock()
    cursor.fetchall.return_value = []
    conn = mocker.Mock()
    conn.cursor.return_value = cursor

    @contextmanager
    def get_conn():
        yield conn

    store = SQLMentionStore(get_conn, create_schema=False)
    store.list_records("coach", DAY)

    query, params = cursor.execute.call_args.args
    assert "coach = %s AND day = %s" in query
    assert params == ("coach", "2026-10-13")


def test_postgres_append_locks_the_row(mocker) -> None:
    cursor = mocker.Mock()
    cursor.fetchone.return_value = None
    conn = mocker.Mock()
    conn.cursor.return_value = cursor

    @contextmanager
    def get_conn():
        yield conn

    store = SQLMentionStore(get_conn, create_schema=False)
    with pytest.raises(StoreUnavailableError):
        store.append_message("missing", "hi", "#general", seen_at=local_dt(2026, 10, 13, 16))

    query, params = cursor.execute.call_args.args
    assert query.endswith("WHERE record_id = %s FOR UPDATE")
    assert params == ("missing",)
    conn.rollback.assert_called_once()
    conn.commit.assert_not_called()
