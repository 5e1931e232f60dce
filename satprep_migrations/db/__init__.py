"""
Database module for loading canonical question rows.

Provides:
- Database: connection handle passed down from the orchestrator
- Destination table schema (PostgreSQL, SQLite for local runs)
- Batched transactional upserts and read-back queries
"""

from .connection import Database, open_database
from .schema import KEY_COLUMNS, init_schema
from .loader import (
    batch_insert,
    bluebook_test_summary,
    get_table_count,
    group_counts,
    service_mode,
)

__all__ = [
    'Database',
    'open_database',
    'KEY_COLUMNS',
    'init_schema',
    'batch_insert',
    'bluebook_test_summary',
    'get_table_count',
    'group_counts',
    'service_mode',
]
