#!/usr/bin/env python3
"""
Batched, idempotent row loading.

``batch_insert`` writes canonical row tuples with multi-row
``INSERT ... ON CONFLICT (<key>) DO NOTHING`` statements. All batches of
one call share a single transaction: either every batch commits or none
does. Rows whose key already exists are skipped by the database, so a
re-run after a failure is safe.
"""

import logging
import re
import time
from contextlib import contextmanager
from typing import Iterable, List, Optional, Sequence, Tuple

from .connection import Database
from .schema import KEY_COLUMNS
from ..errors import LoadError
from ..progress import ProgressTracker

logger = logging.getLogger(__name__)

DEFAULT_BATCH_SIZE = 1000

IDENTIFIER = re.compile(r'^[A-Za-z_][A-Za-z0-9_]*$')


def _check_identifier(name: str) -> str:
    if not IDENTIFIER.match(name):
        raise ValueError(f"Invalid SQL identifier: {name!r}")
    return name


def build_insert_sql(table: str, columns: Sequence[str], row_count: int,
                     conflict_column: str, placeholder: str = '%s') -> str:
    """
    Multi-row upsert statement for ``row_count`` rows.

    >>> build_insert_sql('t', ['a', 'b'], 2, 'a', '?')
    'INSERT INTO t (a, b) VALUES (?, ?), (?, ?) ON CONFLICT (a) DO NOTHING'
    """
    _check_identifier(table)
    _check_identifier(conflict_column)
    for column in columns:
        _check_identifier(column)

    group = '(' + ', '.join([placeholder] * len(columns)) + ')'
    values = ', '.join([group] * row_count)
    return (
        f"INSERT INTO {table} ({', '.join(columns)}) VALUES {values} "
        f"ON CONFLICT ({conflict_column}) DO NOTHING"
    )


def _insert_all(db: Database, table: str, columns: Sequence[str], rows: List[Tuple],
                batch_size: int, conflict_column: str,
                progress: Optional[ProgressTracker]) -> int:
    """One attempt: every batch inside one transaction."""
    total_inserted = 0
    batch_number = 0
    cursor = None
    try:
        try:
            cursor = db.cursor()
            for batch_number, start in enumerate(range(0, len(rows), batch_size), 1):
                batch = rows[start:start + batch_size]
                sql = build_insert_sql(table, columns, len(batch), conflict_column, db.placeholder)
                params = [value for row in batch for value in row]

                try:
                    cursor.execute(sql, params)
                except db.error_class:
                    logger.debug(f"Values sample: {params[:10]}")
                    raise

                # rowcount excludes conflict-skipped rows
                inserted = max(cursor.rowcount, 0)
                total_inserted += inserted
                logger.debug(f"Inserted batch {batch_number}: {inserted} rows")
                if progress is not None:
                    progress.update(len(batch))

            db.commit()
        except db.error_class as e:
            logger.error(f"Batch insert failed for {table} (batch {batch_number}): {e}")
            raise LoadError(table, batch_number, e) from e
    except Exception:
        try:
            db.rollback()
            logger.error(f"Transaction rolled back for {table}")
        except db.error_class as e:
            logger.error(f"Rollback failed for {table}: {e}")
        raise
    finally:
        if cursor is not None:
            try:
                cursor.close()
            except db.error_class as e:
                logger.debug(f"Cursor close failed for {table}: {e}")

    return total_inserted


def batch_insert(db: Database, table: str, columns: Sequence[str], rows: Iterable[Tuple],
                 batch_size: int = DEFAULT_BATCH_SIZE, conflict_column: Optional[str] = None,
                 max_retries: int = 0, retry_delay: float = 1.0,
                 progress: Optional[ProgressTracker] = None) -> int:
    """
    Insert rows into ``table`` in batches inside one transaction.

    Args:
        db: Database handle
        table: Destination table
        columns: Column names, in row tuple order
        rows: Row tuples
        batch_size: Rows per INSERT statement
        conflict_column: Natural key; conflicting rows are skipped. Defaults
            to the table's key in KEY_COLUMNS, else question_id
        max_retries: Retries of the whole transaction on transient errors
        retry_delay: Initial backoff in seconds, doubled per retry
        progress: Optional tracker updated per batch

    Returns:
        Number of rows actually inserted (conflicts excluded)

    Raises:
        LoadError: a batch failed; nothing from this call was committed
        ValueError: a row does not match ``columns``
    """
    if batch_size < 1:
        raise ValueError(f"batch_size must be positive, got {batch_size}")

    if conflict_column is None:
        conflict_column = KEY_COLUMNS.get(table, 'question_id')

    rows = list(rows)
    if not rows:
        logger.warning(f"No rows to insert into {table}")
        return 0

    for i, row in enumerate(rows):
        if len(row) != len(columns):
            raise ValueError(
                f"Row {i} for {table} has {len(row)} values, expected {len(columns)}"
            )

    attempt = 0
    while True:
        try:
            total = _insert_all(db, table, columns, rows, batch_size, conflict_column, progress)
            break
        except LoadError as e:
            if attempt >= max_retries or not db.is_transient(e.cause):
                raise
            wait = retry_delay * 2 ** attempt
            attempt += 1
            logger.warning(
                f"Transient failure loading {table}, retry {attempt}/{max_retries} in {wait:.1f}s"
            )
            time.sleep(wait)
            if db.connection_lost:
                try:
                    db.reconnect()
                except db.error_class as reconnect_error:
                    raise LoadError(table, e.batch_number, reconnect_error) from reconnect_error
            if progress is not None:
                progress.reset()

    logger.info(f"Successfully inserted {total} rows into {table}")
    return total


@contextmanager
def service_mode(db: Database, enabled: bool = True):
    """
    Bypass row-level security for the duration of a load.

    Calls ``enable_service_mode()`` before and always calls
    ``disable_service_mode()`` afterwards, even when the body fails.
    """
    if not enabled:
        yield
        return

    db.execute('SELECT enable_service_mode()')
    db.commit()
    db.service_mode_active = True
    logger.info('Service mode enabled (RLS bypassed)')

    failed = False
    try:
        yield
    except BaseException:
        failed = True
        raise
    finally:
        try:
            # Clear any aborted transaction left by the body
            db.rollback()
            db.execute('SELECT disable_service_mode()')
            db.commit()
            db.service_mode_active = False
            logger.info('Service mode disabled (RLS re-enabled)')
        except db.error_class as e:
            logger.error(f"Failed to disable service mode: {e}")
            if not failed:
                raise


def get_table_count(db: Database, table: str) -> int:
    """Authoritative row count of a table."""
    return int(db.scalar(f"SELECT COUNT(*) FROM {_check_identifier(table)}") or 0)


def group_counts(db: Database, table: str, columns: Sequence[str]) -> List[Tuple]:
    """Row counts grouped by ``columns``; each result is (*values, count)."""
    cols = ', '.join(_check_identifier(c) for c in columns)
    return db.execute(
        f"SELECT {cols}, COUNT(*) FROM {_check_identifier(table)} "
        f"GROUP BY {cols} ORDER BY {cols}"
    )


def bluebook_test_summary(db: Database) -> List[Tuple]:
    """(test_name, subject, test_date, question_count, module_count) per test."""
    return db.execute(
        "SELECT test_name, subject, test_date, COUNT(*), COUNT(DISTINCT module) "
        "FROM bluebook_test_questions "
        "GROUP BY test_name, subject, test_date "
        "ORDER BY test_date DESC, subject, test_name"
    )
