#!/usr/bin/env python3
"""
Destination table schema.

Tables:
- official_practice_questions: official practice exam questions
- op_question_bank: College Board + Princeton Review question bank
- bluebook_test_questions: Bluebook practice test questions
- migration_runs: one audit row per source per run

The DDL is written once with type placeholders and rendered for
PostgreSQL or SQLite.
"""

import logging
from typing import Dict

from .connection import Database

logger = logging.getLogger(__name__)

# Natural key of every destination table
KEY_COLUMNS = {
    'official_practice_questions': 'question_id',
    'op_question_bank': 'question_id',
    'bluebook_test_questions': 'question_id',
    'migration_runs': 'run_id',
}

TYPES = {
    'postgresql': {'json': 'JSONB', 'ts': 'TIMESTAMPTZ', 'bool': 'BOOLEAN', 'now': 'NOW()'},
    'sqlite': {'json': 'TEXT', 'ts': 'TEXT', 'bool': 'INTEGER', 'now': 'CURRENT_TIMESTAMP'},
}

TABLE_DDL: Dict[str, str] = {
    'official_practice_questions': """
        CREATE TABLE IF NOT EXISTS official_practice_questions (
            question_id TEXT PRIMARY KEY,
            exam_id INTEGER,
            exam_name TEXT NOT NULL DEFAULT '',
            answer_type TEXT NOT NULL CHECK (answer_type IN ('mcq', 'spr')),
            stem_text TEXT,
            stem_html TEXT,
            explanation_text TEXT,
            explanation_html TEXT,
            choices {json},
            spr_answers {json},
            meta {json},
            subject TEXT,
            module TEXT,
            difficulty TEXT,
            scraped_at {ts},
            first_question_id INTEGER,
            questions_count INTEGER,
            created_at {ts} DEFAULT {now}
        )
    """,
    'op_question_bank': """
        CREATE TABLE IF NOT EXISTS op_question_bank (
            question_id TEXT PRIMARY KEY,
            question_url TEXT,
            uuid TEXT,
            source TEXT NOT NULL CHECK (source IN ('collegeboard', 'princeton')),
            difficulty TEXT,
            source_order INTEGER,
            primary_class TEXT,
            skill TEXT,
            module TEXT,
            answer_type TEXT NOT NULL CHECK (answer_type IN ('mcq', 'spr')),
            stem_text TEXT,
            stem_html TEXT,
            answer_choices {json},
            correct_choice_letter TEXT,
            spr_answers {json},
            explanation_text TEXT,
            explanation_html TEXT,
            stimulus_text TEXT,
            stimulus_html TEXT,
            meta {json},
            seed_args {json},
            from_seeds {json},
            created_at {ts} DEFAULT {now}
        )
    """,
    'bluebook_test_questions': """
        CREATE TABLE IF NOT EXISTS bluebook_test_questions (
            question_id TEXT PRIMARY KEY,
            test_id TEXT NOT NULL,
            subject TEXT,
            test_name TEXT,
            test_date TEXT,
            module TEXT,
            vip {bool} DEFAULT FALSE,
            fetched_at {ts},
            question_type TEXT NOT NULL CHECK (question_type IN ('mcq', 'spr')),
            article TEXT,
            question TEXT,
            options {json},
            correct_answer TEXT,
            spr_answers {json},
            solution TEXT,
            question_order INTEGER NOT NULL,
            created_at {ts} DEFAULT {now}
        )
    """,
    'migration_runs': """
        CREATE TABLE IF NOT EXISTS migration_runs (
            run_id TEXT PRIMARY KEY,
            source TEXT NOT NULL,
            started_at {ts},
            finished_at {ts},
            records_read INTEGER,
            rows_normalized INTEGER,
            rows_inserted INTEGER,
            rows_skipped INTEGER,
            status TEXT
        )
    """,
}

INDEX_DDL = [
    "CREATE INDEX IF NOT EXISTS idx_official_subject_module ON official_practice_questions (subject, module)",
    "CREATE INDEX IF NOT EXISTS idx_bank_source_module ON op_question_bank (source, module)",
    "CREATE INDEX IF NOT EXISTS idx_bank_difficulty ON op_question_bank (difficulty)",
    "CREATE INDEX IF NOT EXISTS idx_bluebook_test ON bluebook_test_questions (test_id)",
]


def render_ddl(table: str, dialect: str) -> str:
    return TABLE_DDL[table].format(**TYPES[dialect])


def init_schema(db: Database) -> None:
    """Create all tables and indexes if they do not exist."""
    for table in TABLE_DDL:
        db.execute(render_ddl(table, db.dialect))
    for statement in INDEX_DDL:
        db.execute(statement)
    db.commit()
    logger.info(f"Schema ready ({len(TABLE_DDL)} tables)")
