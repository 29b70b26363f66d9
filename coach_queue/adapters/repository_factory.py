"""Factory for creating mention store instances."""

import sqlite3
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Final

from psycopg2 import Error as PsycopgError
from psycopg2 import pool as psycopg2_pool

from coach_queue.adapters.sql_mention_store import GetConnectionCallable, SQLMentionStore
from coach_queue.config.logging_config import get_logger
from coach_queue.config.settings import Settings
from coach_queue.domain.exceptions import ConfigurationError, StoreUnavailableError
from coach_queue.domain.protocols import MentionStoreProtocol

logger = get_logger(__name__)

POSTGRES_MIN_CONNECTIONS: Final[int] = 1
POSTGRES_MAX_CONNECTIONS: Final[int] = 5
POSTGRES_CONNECT_TIMEOUT_SECONDS: Final[int] = 10
POSTGRES_STATEMENT_TIMEOUT_MS: Final[int] = 10_000
SQLITE_TIMEOUT_SECONDS: Final[float] = 10.0


def sqlite_connection_factory(db_path: str) -> GetConnectionCallable:
    """Connection-per-call factory for a SQLite file."""

    if db_path != ":memory:":
        Path(db_path).parent.mkdir(parents=True, exist_ok=True)

    @contextmanager
    def _get_conn() -> Iterator[Any]:
        conn = sqlite3.connect(db_path, timeout=SQLITE_TIMEOUT_SECONDS)
        try:
            yield conn
        finally:
            conn.close()

    return _get_conn


def postgres_connection_factory(settings: Settings) -> GetConnectionCallable:
    """Pooled connection factory for PostgreSQL.

    Raises:
        ConfigurationError: If the password secret is missing
        StoreUnavailableError: If the pool cannot be created
    """
    if not settings.postgres_password:
        raise ConfigurationError(
            "POSTGRES_PASSWORD environment variable must be set when using PostgreSQL"
        )

    try:
        pool = psycopg2_pool.ThreadedConnectionPool(
            POSTGRES_MIN_CONNECTIONS,
            POSTGRES_MAX_CONNECTIONS,
            host=settings.postgres_host,
            port=settings.postgres_port,
            database=settings.postgres_database,
            user=settings.postgres_user,
            password=settings.postgres_password.get_secret_value(),
            connect_timeout=POSTGRES_CONNECT_TIMEOUT_SECONDS,
            options=f"-c statement_timeout={POSTGRES_STATEMENT_TIMEOUT_MS}",
        )
    except PsycopgError as exc:
        raise StoreUnavailableError(
            f"Failed to initialize PostgreSQL pool: {exc}"
        ) from exc

    @contextmanager
    def _get_conn() -> Iterator[Any]:
        conn = pool.getconn()
        try:
            yield conn
        except Exception:
            conn.rollback()
            raise
        finally:
            pool.putconn(conn)

    return _get_conn


def create_mention_store(settings: Settings) -> MentionStoreProtocol:
    """Create the mention store selected by settings.

    Raises:
        ValueError: If database_type is not supported
        ConfigurationError: On missing credentials
        StoreUnavailableError: On connection errors
    """
    if settings.database_type == "sqlite":
        logger.info("mention_store_sqlite_selected", path=settings.db_path)
        return SQLMentionStore(sqlite_connection_factory(settings.db_path))

    if settings.database_type == "postgres":
        logger.info(
            "mention_store_postgres_selected",
            host=settings.postgres_host,
            port=settings.postgres_port,
            database=settings.postgres_database,
            user=settings.postgres_user,
        )
        return SQLMentionStore(
            postgres_connection_factory(settings),
            driver_errors=(PsycopgError,),
        )

    raise ValueError(
        f"Unsupported database type: {settings.database_type}. "
        f"Must be 'sqlite' or 'postgres'"
    )
