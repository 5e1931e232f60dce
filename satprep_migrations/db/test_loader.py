#!/usr/bin/env python3
"""
Tests for the batch loader.

Runs against an in-memory SQLite database through the same Database
handle the pipeline uses.
"""

import sqlite3
import tempfile
from pathlib import Path

import pytest

from satprep_migrations.db import Database, get_table_count, init_schema, service_mode
from satprep_migrations.db.loader import batch_insert, build_insert_sql, group_counts
from satprep_migrations.errors import LoadError

COLUMNS = ('question_id', 'value')


def create_items_db() -> Database:
    db = Database.sqlite()
    db.execute('CREATE TABLE items (question_id TEXT PRIMARY KEY, value INTEGER NOT NULL)')
    db.commit()
    return db


def sample_rows(count, start=0):
    return [(f"q{i}", i) for i in range(start, start + count)]


class FlakyCursor:
    """Cursor that fails its first execute with a transient error."""

    def __init__(self, cursor, state):
        self.cursor = cursor
        self.state = state

    @property
    def rowcount(self):
        return self.cursor.rowcount

    def execute(self, sql, params):
        if self.state['failures'] > 0:
            self.state['failures'] -= 1
            raise sqlite3.OperationalError('database is locked')
        return self.cursor.execute(sql, params)

    def close(self):
        self.cursor.close()


class FlakyDatabase(Database):

    def __init__(self, db: Database, failures: int):
        super().__init__(db.connection, placeholder=db.placeholder, dialect=db.dialect,
                         error_class=db.error_class, transient_errors=db.transient_errors)
        self.state = {'failures': failures}

    def cursor(self):
        return FlakyCursor(self.connection.cursor(), self.state)


class RecordingDatabase:
    """Stands in for a PostgreSQL handle, recording statements."""

    error_class = sqlite3.Error
    dialect = 'postgresql'

    def __init__(self):
        self.statements = []
        self.rollbacks = 0

    def execute(self, sql, params=()):
        self.statements.append(sql)
        return []

    def commit(self):
        pass

    def rollback(self):
        self.rollbacks += 1


def test_build_insert_sql():
    sql = build_insert_sql('items', COLUMNS, 2, 'question_id', '?')
    assert sql == ('INSERT INTO items (question_id, value) VALUES (?, ?), (?, ?) '
                   'ON CONFLICT (question_id) DO NOTHING')
    with pytest.raises(ValueError):
        build_insert_sql('items; DROP TABLE items', COLUMNS, 1, 'question_id')


def test_two_batches_then_idempotent_rerun():
    db = create_items_db()
    rows = sample_rows(1500)

    assert batch_insert(db, 'items', COLUMNS, rows, batch_size=1000) == 1500
    assert get_table_count(db, 'items') == 1500

    assert batch_insert(db, 'items', COLUMNS, rows, batch_size=1000) == 0
    assert get_table_count(db, 'items') == 1500


def test_existing_keys_are_not_overwritten():
    db = create_items_db()
    batch_insert(db, 'items', COLUMNS, [('q1', 1)])
    inserted = batch_insert(db, 'items', COLUMNS, [('q1', 99), ('q2', 2)])

    assert inserted == 1
    assert db.scalar("SELECT value FROM items WHERE question_id = 'q1'") == 1


def test_failing_batch_rolls_back_everything():
    db = create_items_db()
    rows = sample_rows(10)
    rows.append(('bad', None))

    with pytest.raises(LoadError) as exc_info:
        batch_insert(db, 'items', COLUMNS, rows, batch_size=5, max_retries=3, retry_delay=0)

    assert exc_info.value.batch_number == 3
    assert get_table_count(db, 'items') == 0


def test_transient_failure_is_retried():
    db = FlakyDatabase(create_items_db(), failures=1)

    assert batch_insert(db, 'items', COLUMNS, sample_rows(20), batch_size=10,
                        max_retries=2, retry_delay=0) == 20
    assert get_table_count(db, 'items') == 20


def test_retries_exhausted():
    db = FlakyDatabase(create_items_db(), failures=5)

    with pytest.raises(LoadError):
        batch_insert(db, 'items', COLUMNS, sample_rows(5), max_retries=1, retry_delay=0)
    assert db.state['failures'] == 3


def test_empty_and_invalid_input():
    db = create_items_db()
    assert batch_insert(db, 'items', COLUMNS, []) == 0
    with pytest.raises(ValueError):
        batch_insert(db, 'items', COLUMNS, [('q1',)])
    with pytest.raises(ValueError):
        batch_insert(db, 'items', COLUMNS, sample_rows(1), batch_size=0)


class DroppingConnection:
    """Connection whose first statement fails as if the server went away."""

    def __init__(self, connection):
        self.connection = connection
        self.closed = 0

    def cursor(self):
        return DroppingCursor(self)

    def commit(self):
        self.connection.commit()

    def rollback(self):
        self.connection.rollback()

    def close(self):
        self.connection.close()


class DroppingCursor:

    def __init__(self, owner):
        self.owner = owner
        self.rowcount = -1

    def execute(self, sql, params=()):
        self.owner.closed = 2
        raise sqlite3.OperationalError('server closed the connection unexpectedly')

    def close(self):
        pass


class FailingCommitConnection:

    def __init__(self, connection):
        self.connection = connection

    def cursor(self):
        return self.connection.cursor()

    def commit(self):
        raise sqlite3.OperationalError('disk I/O error')

    def rollback(self):
        self.connection.rollback()

    def close(self):
        self.connection.close()


def test_permanent_sqlite_error_fails_at_once(monkeypatch):
    sleeps = []
    monkeypatch.setattr('satprep_migrations.db.loader.time.sleep', sleeps.append)
    db = create_items_db()

    with pytest.raises(LoadError) as exc_info:
        batch_insert(db, 'missing_table', COLUMNS, sample_rows(3), max_retries=3, retry_delay=1.0)

    assert 'no such table' in str(exc_info.value)
    assert sleeps == []
    assert db.is_transient(sqlite3.OperationalError('database is locked'))
    assert not db.is_transient(sqlite3.OperationalError('no such table: items'))
    assert not db.is_transient(sqlite3.IntegrityError('UNIQUE constraint failed'))


def test_lost_connection_is_reopened(monkeypatch):
    monkeypatch.setattr('satprep_migrations.db.loader.time.sleep', lambda seconds: None)
    with tempfile.TemporaryDirectory() as tmp:
        path = Path(tmp) / 'items.db'
        setup = sqlite3.connect(str(path))
        setup.execute('CREATE TABLE items (question_id TEXT PRIMARY KEY, value INTEGER NOT NULL)')
        setup.commit()
        setup.close()

        enabled = []

        def open_connection():
            conn = sqlite3.connect(str(path))
            conn.create_function('enable_service_mode', 0, lambda: enabled.append(True) or 1)
            return conn

        dropping = DroppingConnection(sqlite3.connect(str(path)))
        db = Database(dropping, placeholder='?', dialect='postgresql',
                      error_class=sqlite3.Error,
                      transient_errors=(sqlite3.OperationalError,),
                      connect_factory=open_connection)
        db.service_mode_active = True

        assert batch_insert(db, 'items', COLUMNS, sample_rows(5), max_retries=2) == 5
        assert db.connection is not dropping
        assert enabled == [True]
        assert get_table_count(db, 'items') == 5
        db.close()


def test_commit_failure_is_wrapped():
    plain = create_items_db()
    db = Database(FailingCommitConnection(plain.connection), placeholder='?', dialect='sqlite',
                  error_class=sqlite3.Error, transient_errors=(sqlite3.OperationalError,))

    with pytest.raises(LoadError) as exc_info:
        batch_insert(db, 'items', COLUMNS, sample_rows(15), batch_size=10, max_retries=2)

    assert exc_info.value.batch_number == 2
    assert get_table_count(plain, 'items') == 0


def test_service_mode_disabled_after_failure():
    db = RecordingDatabase()

    with pytest.raises(RuntimeError):
        with service_mode(db):
            raise RuntimeError('load failed')

    assert db.statements == ['SELECT enable_service_mode()', 'SELECT disable_service_mode()']
    assert db.rollbacks == 1


def test_service_mode_off():
    db = RecordingDatabase()
    with service_mode(db, enabled=False):
        pass
    assert db.statements == []


def test_schema_and_group_counts():
    db = Database.sqlite()
    init_schema(db)
    init_schema(db)

    assert db.table_exists('op_question_bank')
    assert db.table_exists('migration_runs')
    assert not db.table_exists('nope')

    columns = ('question_id', 'source', 'module', 'answer_type')
    rows = [('a', 'collegeboard', 'math', 'mcq'),
            ('b', 'collegeboard', 'math', 'spr'),
            ('c', 'princeton', 'en', 'mcq'),
            ('d', 'collegeboard', 'math', 'mcq')]
    assert batch_insert(db, 'op_question_bank', columns, rows) == 4

    counts = group_counts(db, 'op_question_bank', ('source', 'module', 'answer_type'))
    assert ('collegeboard', 'math', 'mcq', 2) in counts
    assert len(counts) == 3

    with pytest.raises(LoadError):
        batch_insert(db, 'op_question_bank', columns, [('e', 'khan', 'math', 'mcq')])
    db.close()
