#!/usr/bin/env python3
"""
Database connection handle.

The orchestrator builds one ``Database`` per run and passes it down to the
loader; nothing holds a module-level connection. The handle hides the two
driver differences the loader cares about: the parameter placeholder and
which driver errors are worth retrying.
"""

import logging
import sqlite3
from pathlib import Path
from typing import Callable, Optional, Sequence, Tuple, Type, Union

import psycopg2

from ..config import DatabaseConfig

logger = logging.getLogger(__name__)


class Database:
    """A DB-API connection plus its dialect details."""

    def __init__(self, connection, placeholder: str = '%s', dialect: str = 'postgresql',
                 error_class: Type[Exception] = Exception,
                 transient_errors: Tuple[Type[Exception], ...] = (),
                 connect_factory: Optional[Callable[[], object]] = None):
        self.connection = connection
        # Reopens the connection after the server dropped it
        self.connect_factory = connect_factory
        self.service_mode_active = False
        self.placeholder = placeholder
        self.dialect = dialect
        self.error_class = error_class
        self.transient_errors = transient_errors
        self.closed = False

    @classmethod
    def connect(cls, config: DatabaseConfig) -> 'Database':
        """Open a PostgreSQL connection (DATABASE_URL or discrete settings)."""
        def open_connection():
            if config.url:
                url = config.url
                # Hosted providers hand out postgres:// URLs
                if url.startswith('postgres://'):
                    url = url.replace('postgres://', 'postgresql://', 1)
                return psycopg2.connect(url, sslmode=config.sslmode, connect_timeout=10)
            return psycopg2.connect(
                host=config.host,
                port=config.port,
                dbname=config.name,
                user=config.user,
                password=config.password,
                sslmode=config.sslmode,
                connect_timeout=10,
            )

        conn = open_connection()
        logger.info("Database connected successfully")
        return cls(conn, placeholder='%s', dialect='postgresql',
                   error_class=psycopg2.Error,
                   transient_errors=(psycopg2.OperationalError,),
                   connect_factory=open_connection)

    @classmethod
    def sqlite(cls, path: Union[str, Path] = ':memory:') -> 'Database':
        """Open a SQLite database (local dry runs and tests)."""
        if str(path) != ':memory:':
            Path(path).parent.mkdir(parents=True, exist_ok=True)
        conn = sqlite3.connect(str(path))
        conn.execute("PRAGMA foreign_keys = ON")
        return cls(conn, placeholder='?', dialect='sqlite',
                   error_class=sqlite3.Error,
                   transient_errors=(sqlite3.OperationalError,))

    def is_transient(self, error: BaseException) -> bool:
        """
        Whether retrying the same work may succeed.

        SQLite raises OperationalError for permanent problems too (missing
        table, bad SQL), so only lock contention counts there.
        """
        if not isinstance(error, self.transient_errors):
            return False
        if self.dialect == 'sqlite':
            message = str(error).lower()
            return 'locked' in message or 'busy' in message
        return True

    @property
    def connection_lost(self) -> bool:
        # psycopg2 sets ``closed`` to non-zero once the server side is gone
        return bool(getattr(self.connection, 'closed', 0))

    def reconnect(self) -> None:
        """
        Replace a dropped connection with a fresh one.

        Service mode is session state, so it is switched on again when it
        was active.
        """
        if self.connect_factory is None:
            raise self.error_class('Connection lost and no way to reopen it')
        logger.warning("Database connection lost, reconnecting")
        try:
            self.connection.close()
        except self.error_class:
            pass
        self.connection = self.connect_factory()
        if self.service_mode_active:
            self.execute('SELECT enable_service_mode()')
            self.commit()
        logger.info("Database reconnected")

    def cursor(self):
        return self.connection.cursor()

    def execute(self, sql: str, params: Sequence = ()) -> list:
        """Run one statement and return all fetched rows (if any)."""
        cur = self.connection.cursor()
        try:
            cur.execute(sql, tuple(params))
            return cur.fetchall() if cur.description else []
        finally:
            cur.close()

    def scalar(self, sql: str, params: Sequence = ()):
        rows = self.execute(sql, params)
        return rows[0][0] if rows else None

    def commit(self) -> None:
        self.connection.commit()

    def rollback(self) -> None:
        self.connection.rollback()

    def table_exists(self, table: str) -> bool:
        if self.dialect == 'sqlite':
            found = self.scalar(
                "SELECT name FROM sqlite_master WHERE type = 'table' AND name = ?", (table,)
            )
        else:
            found = self.scalar("SELECT to_regclass(%s)", (table,))
        return found is not None

    def close(self) -> None:
        if self.closed:
            return
        self.connection.close()
        self.closed = True
        logger.info("Database connections closed")

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()
        return False


def open_database(config: DatabaseConfig, sqlite_path: Optional[Path] = None) -> Database:
    """SQLite when a path is given, PostgreSQL otherwise."""
    if sqlite_path is not None:
        return Database.sqlite(sqlite_path)
    return Database.connect(config)
