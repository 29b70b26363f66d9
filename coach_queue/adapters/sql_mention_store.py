"""Mention record persistence over a DB-API connection.

Implements MentionStoreProtocol for SQLite and PostgreSQL; the only
dialect difference is the parameter placeholder.
"""

from __future__ import annotations

import json
import sqlite3
from collections.abc import Callable, Iterator, Sequence
from contextlib import AbstractContextManager, contextmanager
from datetime import UTC, date, datetime
from typing import Any, Final, Protocol
from uuid import uuid4

from coach_queue.config.logging_config import get_logger
from coach_queue.domain.availability_constants import UNKNOWN_CHANNEL
from coach_queue.domain.exceptions import StoreUnavailableError
from coach_queue.domain.models import MentionRecord

logger = get_logger(__name__)


class CursorProtocol(Protocol):
    """Protocol for database cursors used by the store."""

    rowcount: int

    def execute(self, query: str, params: tuple[Any, ...] = ()) -> Any:
        """Execute a SQL statement with positional parameters."""

    def fetchone(self) -> Any:
        """Fetch a single result row."""

    def fetchall(self) -> list[Any]:
        """Fetch all result rows."""

    def close(self) -> None:
        """Release cursor resources."""


class ConnectionProtocol(Protocol):
    """Protocol for connections compatible with the store."""

    def cursor(self) -> CursorProtocol:
        """Create a database cursor."""

    def commit(self) -> None:
        """Commit the active transaction."""

    def rollback(self) -> None:
        """Roll back the active transaction."""


GetConnectionCallable = Callable[[], AbstractContextManager[ConnectionProtocol]]

_COLUMNS: Final[str] = (
    "record_id, coach, author, author_id, day, messages_json, "
    "first_seen_at, last_seen_at, source_channel"
)


def _to_utc_iso(moment: datetime) -> str:
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=UTC)
    return moment.astimezone(UTC).isoformat()


class SQLMentionStore:
    """Mention queue table access."""

    _TABLE_NAME: Final[str] = "mention_records"

    def __init__(
        self,
        get_conn: GetConnectionCallable,
        *,
        driver_errors: tuple[type[Exception], ...] = (sqlite3.Error,),
        create_schema: bool = True,
    ) -> None:
        """Initialize the store.

        Args:
            get_conn: Callable returning a context manager that yields a connection
            driver_errors: Driver exception types translated to StoreUnavailableError
            create_schema: Create the table and index if missing
        """
        self._get_conn = get_conn
        self._driver_errors = driver_errors
        if create_schema:
            self._create_schema()

    # Public API -------------------------------------------------------

    def find_record(
        self, coach: str, author_id: str, day: date
    ) -> MentionRecord | None:
        rows = self._fetch(
            f"SELECT {_COLUMNS} FROM {self._TABLE_NAME} "
            "WHERE coach = {p} AND author_id = {p} AND day = {p} "
            "ORDER BY first_seen_at LIMIT 1",
            (coach, author_id, day.isoformat()),
        )
        return self._row_to_record(rows[0]) if rows else None

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
        record = MentionRecord(
            record_id=str(uuid4()),
            coach=coach,
            author=author,
            author_id=author_id,
            day=day,
            messages=[text],
            first_seen_at=seen_at,
            last_seen_at=seen_at,
            source_channel=channel,
        )
        self._execute(
            f"INSERT INTO {self._TABLE_NAME} ({_COLUMNS}) "
            "VALUES ({p}, {p}, {p}, {p}, {p}, {p}, {p}, {p}, {p})",
            (
                record.record_id,
                record.coach,
                record.author,
                record.author_id,
                record.day.isoformat(),
                json.dumps(record.messages),
                _to_utc_iso(seen_at),
                _to_utc_iso(seen_at),
                record.source_channel,
            ),
        )
        logger.debug("mention_record_created", record_id=record.record_id, coach=coach)
        return record

    def append_message(
        self,
        record_id: str,
        text: str,
        channel: str,
        *,
        seen_at: datetime,
        author: str | None = None,
    ) -> MentionRecord:
        """Append under a write lock so concurrent appends do not drop messages.

        SQLite takes the database write lock up front (BEGIN IMMEDIATE);
        PostgreSQL locks the row (SELECT ... FOR UPDATE).
        """
        with self._connection_scope() as conn:
            cursor = conn.cursor()
            try:
                placeholder = self._placeholder(conn)
                select = (
                    f"SELECT {_COLUMNS} FROM {self._TABLE_NAME} "
                    f"WHERE record_id = {placeholder}"
                )
                if self._is_sqlite(conn):
                    cursor.execute("BEGIN IMMEDIATE")
                else:
                    select += " FOR UPDATE"
                cursor.execute(select, (record_id,))
                row = cursor.fetchone()
                if row is None:
                    conn.rollback()
                    raise StoreUnavailableError(f"Mention record not found: {record_id}")

                record = self._row_to_record(row)
                if not record.has_message(text):
                    record.messages.append(text)
                record.source_channel = channel
                record.last_seen_at = seen_at
                if author:
                    record.author = author

                cursor.execute(
                    f"UPDATE {self._TABLE_NAME} SET messages_json = {placeholder}, "
                    f"source_channel = {placeholder}, last_seen_at = {placeholder}, "
                    f"author = {placeholder} "
                    f"WHERE record_id = {placeholder}",
                    (
                        json.dumps(record.messages),
                        channel,
                        _to_utc_iso(seen_at),
                        record.author,
                        record_id,
                    ),
                )
                conn.commit()
            finally:
                cursor.close()
        return record

    def list_records(self, coach: str, day: date) -> list[MentionRecord]:
        rows = self._fetch(
            f"SELECT {_COLUMNS} FROM {self._TABLE_NAME} "
            "WHERE coach = {p} AND day = {p} ORDER BY first_seen_at, author",
            (coach, day.isoformat()),
        )
        return [self._row_to_record(row) for row in rows]

    def list_records_for_coach(self, coach: str) -> list[MentionRecord]:
        rows = self._fetch(
            f"SELECT {_COLUMNS} FROM {self._TABLE_NAME} "
            "WHERE coach = {p} ORDER BY day, first_seen_at, author",
            (coach,),
        )
        return [self._row_to_record(row) for row in rows]

    def delete_records(self, record_ids: Sequence[str]) -> int:
        if not record_ids:
            return 0
        ids = list(record_ids)
        with self._connection_scope() as conn:
            cursor = conn.cursor()
            try:
                placeholders = ", ".join(self._placeholder(conn) for _ in ids)
                cursor.execute(
                    f"DELETE FROM {self._TABLE_NAME} WHERE record_id IN ({placeholders})",
                    tuple(ids),
                )
                deleted = cursor.rowcount
                conn.commit()
            finally:
                cursor.close()

        logger.info("mention_records_deleted", requested=len(ids), deleted=deleted)
        return deleted

    # Internal helpers -------------------------------------------------

    def _create_schema(self) -> None:
        logger.info("mention_store_schema_creation_started", table=self._TABLE_NAME)
        with self._connection_scope() as conn:
            cursor = conn.cursor()
            try:
                cursor.execute(
                    f"""
                    CREATE TABLE IF NOT EXISTS {self._TABLE_NAME} (
                        record_id TEXT PRIMARY KEY,
                        coach TEXT NOT NULL,
                        author TEXT NOT NULL,
                        author_id TEXT NOT NULL,
                        day TEXT NOT NULL,
                        messages_json TEXT NOT NULL,
                        first_seen_at TEXT NOT NULL,
                        last_seen_at TEXT,
                        source_channel TEXT
                    )
                    """
                )
                cursor.execute(
                    f"CREATE INDEX IF NOT EXISTS idx_{self._TABLE_NAME}_coach_day_author "
                    f"ON {self._TABLE_NAME} (coach, day, author_id)"
                )
                conn.commit()
            finally:
                cursor.close()

    @contextmanager
    def _connection_scope(self) -> Iterator[ConnectionProtocol]:
        try:
            with self._get_conn() as conn:
                yield conn
        except self._driver_errors as exc:
            logger.error("mention_store_error", error=str(exc))
            raise StoreUnavailableError(f"Mention store failure: {exc}") from exc

    @staticmethod
    def _is_sqlite(conn: ConnectionProtocol) -> bool:
        return isinstance(conn, sqlite3.Connection)

    def _placeholder(self, conn: ConnectionProtocol) -> str:
        return "?" if self._is_sqlite(conn) else "%s"

    def _execute(self, query: str, params: tuple[Any, ...]) -> None:
        with self._connection_scope() as conn:
            cursor = conn.cursor()
            try:
                cursor.execute(query.replace("{p}", self._placeholder(conn)), params)
                conn.commit()
            finally:
                cursor.close()

    def _fetch(self, query: str, params: tuple[Any, ...]) -> list[Any]:
        with self._connection_scope() as conn:
            cursor = conn.cursor()
            try:
                cursor.execute(query.replace("{p}", self._placeholder(conn)), params)
                return list(cursor.fetchall())
            finally:
                cursor.close()

    @staticmethod
    def _row_to_record(row: Sequence[Any]) -> MentionRecord:
        return MentionRecord(
            record_id=row[0],
            coach=row[1],
            author=row[2],
            author_id=row[3],
            day=date.fromisoformat(row[4]),
            messages=json.loads(row[5]),
            first_seen_at=datetime.fromisoformat(row[6]),
            last_seen_at=datetime.fromisoformat(row[7]) if row[7] else None,
            source_channel=row[8] or UNKNOWN_CHANNEL,
        )
