#!/usr/bin/env python3
"""
Main migration orchestrator.

Runs every source through the same path, in a fixed order:
1. Official practice exams   -> official_practice_questions
2. College Board bank        -> op_question_bank
3. Princeton Review bank     -> op_question_bank
4. Bluebook practice tests   -> bluebook_test_questions

Per source: read -> normalize -> batch insert. A failing source aborts the
whole run. After the run, row counts are read back from the tables and
compared with what was attempted.
"""

import argparse
import logging
import signal
import sys
import time
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, Dict, Iterable, List, Optional, Tuple

from .config import Config, CorpusPaths, load_config
from .db import (
    KEY_COLUMNS,
    Database,
    batch_insert,
    bluebook_test_summary,
    get_table_count,
    group_counts,
    init_schema,
    open_database,
    service_mode,
)
from .errors import MigrationError
from .ingest import (
    BaseReader,
    BluebookReader,
    CollegeBoardReader,
    OfficialPracticeReader,
    PrincetonReviewReader,
)
from .normalize import (
    BaseNormalizer,
    BluebookNormalizer,
    CollegeBoardNormalizer,
    OfficialPracticeNormalizer,
    PrincetonReviewNormalizer,
)
from .progress import ProgressTracker

logger = logging.getLogger(__name__)

LOG_FORMAT = '%(asctime)s - %(levelname)s - %(message)s'


@dataclass
class SourceSpec:
    """How to read, normalize and report one source."""
    name: str
    title: str
    make_reader: Callable[[CorpusPaths], BaseReader]
    normalizer_class: type
    # Columns the post-load breakdown is grouped by
    stats_columns: Tuple[str, ...]


SOURCE_SPECS: Dict[str, SourceSpec] = {
    'official': SourceSpec(
        'official', 'Official Practice Questions',
        lambda files: OfficialPracticeReader(files.all_exams),
        OfficialPracticeNormalizer,
        ('subject', 'module', 'answer_type'),
    ),
    'collegeboard': SourceSpec(
        'collegeboard', 'College Board Questions',
        lambda files: CollegeBoardReader(files.oneprep),
        CollegeBoardNormalizer,
        ('source', 'module', 'answer_type'),
    ),
    'princeton': SourceSpec(
        'princeton', 'Princeton Review Questions',
        lambda files: PrincetonReviewReader(files.princeton),
        PrincetonReviewNormalizer,
        ('source', 'module', 'answer_type'),
    ),
    'bluebook': SourceSpec(
        'bluebook', 'Bluebook Questions',
        lambda files: BluebookReader(files.bluebook_dir, files.bluebook_index),
        BluebookNormalizer,
        ('subject', 'module', 'question_type'),
    ),
}

SOURCES = tuple(SOURCE_SPECS)


@dataclass
class SourceResult:
    """Outcome of one source's migration."""
    source: str
    records_read: int = 0
    rows_normalized: int = 0
    rows_inserted: int = 0
    skipped: int = 0
    files_skipped: int = 0
    elapsed: float = 0.0
    skip_reasons: Dict[str, int] = field(default_factory=dict)
    status: str = 'completed'

    @property
    def not_inserted(self) -> int:
        """Normalized rows the database did not take (existing or duplicate ids)."""
        return self.rows_normalized - self.rows_inserted


def collect_rows(reader: BaseReader, normalizer: BaseNormalizer) -> List[Tuple]:
    """Run every record of a reader through a normalizer."""
    rows = []
    for raw, ctx in reader:
        row = normalizer.normalize(raw, ctx)
        if row is not None:
            rows.append(row)
    return rows


def summarize_groups(group_rows: Iterable[Tuple]) -> Dict[str, int]:
    """Collapse (*values, count) rows into 'a - b - c' -> count."""
    grouped = defaultdict(int)
    for *values, count in group_rows:
        key = ' - '.join(str(v) if v is not None else 'N/A' for v in values)
        grouped[key] += int(count)
    return dict(grouped)


class MigrationRunner:
    """Runs sources in order against one database handle."""

    def __init__(self, config: Config, db: Optional[Database] = None,
                 dry_run: bool = False, show_progress: bool = True):
        if db is None and not dry_run:
            raise MigrationError("A database handle is required unless dry_run is set")
        self.config = config
        self.db = db
        self.dry_run = dry_run
        self.show_progress = show_progress
        self.started_at = datetime.now(timezone.utc)
        self.results: Dict[str, SourceResult] = {}

    def run_source(self, source: str) -> SourceResult:
        """Read, normalize and load one source."""
        if source not in SOURCE_SPECS:
            raise MigrationError(f"Unknown source: {source}")
        spec = SOURCE_SPECS[source]

        logger.info('')
        logger.info(spec.title.upper())
        logger.info('=' * len(spec.title))

        start = time.monotonic()
        reader = spec.make_reader(self.config.files)
        normalizer = spec.normalizer_class(run_started_at=self.started_at)

        rows = collect_rows(reader, normalizer)
        logger.info(f"Transformed {len(rows)} {spec.title}")
        normalizer.report()
        if reader.stats['files_skipped']:
            logger.warning(f"  {reader.stats['files_skipped']} member files skipped")

        # Registered before loading so a failed load still shows up in the report
        result = SourceResult(
            source=source,
            records_read=reader.stats['records_read'],
            rows_normalized=len(rows),
            skipped=normalizer.skipped,
            files_skipped=reader.stats['files_skipped'],
            skip_reasons={k: v for k, v in normalizer.stats.items() if k != 'normalized'},
        )
        self.results[source] = result

        if not self.dry_run:
            result.rows_inserted = self.load(spec, normalizer, rows)
        result.elapsed = time.monotonic() - start

        if not self.dry_run:
            if result.not_inserted:
                logger.warning(
                    f"  {result.not_inserted} of {len(rows)} rows were not inserted "
                    f"(ids already present or duplicated in the corpus)"
                )
            self.record_run(result)

        return result

    def load(self, spec: SourceSpec, normalizer: BaseNormalizer, rows: List[Tuple]) -> int:
        settings = self.config.migration
        if not rows:
            logger.warning(f"No {spec.title} to migrate")
            return 0

        progress = ProgressTracker(len(rows), spec.title, interval=settings.progress_interval,
                                   show_bar=self.show_progress)
        try:
            inserted = batch_insert(
                self.db, normalizer.TABLE, normalizer.COLUMNS, rows,
                batch_size=settings.batch_size,
                conflict_column=KEY_COLUMNS[normalizer.TABLE],
                max_retries=settings.max_retries,
                retry_delay=settings.retry_delay,
                progress=progress,
            )
        except Exception as e:
            progress.error(str(e))
            raise
        progress.complete()

        total = get_table_count(self.db, normalizer.TABLE)
        logger.info(f"Migration complete. Total rows in {normalizer.TABLE}: {total}")
        self.log_stats(spec, normalizer.TABLE)
        if spec.name == 'bluebook':
            self.log_test_summary()
        return inserted

    def log_stats(self, spec: SourceSpec, table: str) -> None:
        grouped = summarize_groups(group_counts(self.db, table, spec.stats_columns))
        if not grouped:
            logger.info(f"No stats available for {spec.title}")
            return
        logger.info(f"{spec.title} statistics:")
        for key, count in grouped.items():
            logger.info(f"  {key}: {count:,}")

    def log_test_summary(self) -> None:
        by_subject = defaultdict(lambda: [0, 0])
        for _name, subject, _date, question_count, _modules in bluebook_test_summary(self.db):
            by_subject[subject][0] += 1
            by_subject[subject][1] += int(question_count)
        if not by_subject:
            return
        logger.info('Test summary:')
        for subject, (tests, questions) in by_subject.items():
            logger.info(f"  {subject}: {tests} tests, {questions:,} questions")

    def record_run(self, result: SourceResult) -> None:
        """Write the migration_runs audit row, if that table exists."""
        if not self.db.table_exists('migration_runs'):
            return
        run_id = f"{self.started_at:%Y%m%dT%H%M%S}_{result.source}"
        finished_at = datetime.now(timezone.utc)
        batch_insert(
            self.db, 'migration_runs',
            ('run_id', 'source', 'started_at', 'finished_at', 'records_read',
             'rows_normalized', 'rows_inserted', 'rows_skipped', 'status'),
            [(run_id, result.source, self.started_at.isoformat(), finished_at.isoformat(),
              result.records_read, result.rows_normalized, result.rows_inserted,
              result.skipped, result.status)],
            conflict_column=KEY_COLUMNS['migration_runs'],
        )

    def run(self, sources: Iterable[str] = SOURCES) -> Dict[str, SourceResult]:
        """
        Run the given sources in order.

        The first failure aborts the run. The summary is still logged for
        the sources that ran, with the failing one marked, before the error
        is re-raised.
        """
        sources = list(sources)
        settings = self.config.migration
        logger.info('Starting SAT prep database migration')
        logger.info(f"Sources: {', '.join(sources)}")
        logger.info(f"Batch size: {settings.batch_size}")
        logger.info(f"Max retries: {settings.max_retries}")

        start = time.monotonic()
        for source in sources:
            try:
                self.run_source(source)
            except Exception as e:
                logger.error(f"Source {source} failed: {e}")
                self.results.setdefault(source, SourceResult(source)).status = 'failed'
                self.report(time.monotonic() - start)
                raise
        self.report(time.monotonic() - start)
        return self.results

    @property
    def failed(self) -> bool:
        return any(r.status == 'failed' for r in self.results.values())

    def final_counts(self) -> Dict[str, int]:
        """Row counts read back from each destination table."""
        tables = []
        for result in self.results.values():
            table = SOURCE_SPECS[result.source].normalizer_class.TABLE
            if table not in tables:
                tables.append(table)
        return {table: get_table_count(self.db, table) for table in tables}

    def report(self, elapsed: float) -> None:
        total_attempted = sum(r.rows_normalized for r in self.results.values())
        total_inserted = sum(r.rows_inserted for r in self.results.values())
        rate = total_inserted / elapsed if elapsed > 0 else 0.0

        logger.info('')
        if self.failed:
            logger.info('MIGRATION FAILED')
        else:
            logger.info('MIGRATION COMPLETE' if not self.dry_run else 'DRY RUN COMPLETE')
        logger.info('=' * 50)
        for result in self.results.values():
            title = SOURCE_SPECS[result.source].title
            logger.info(
                f"{title}: read {result.records_read:,}, normalized {result.rows_normalized:,}, "
                f"inserted {result.rows_inserted:,}, skipped {result.skipped:,}"
                + (f", files skipped {result.files_skipped}" if result.files_skipped else '')
                + (' [FAILED]' if result.status == 'failed' else '')
            )
        logger.info('-' * 50)
        logger.info(f"Total rows attempted: {total_attempted:,}")
        logger.info(f"Total rows inserted: {total_inserted:,}")
        logger.info(f"Total time: {elapsed:.1f}s")
        logger.info(f"Speed: {rate:,.0f} rows/second")

        if self.dry_run:
            return

        logger.info('')
        logger.info('FINAL DATABASE COUNTS')
        logger.info('=' * 50)
        try:
            counts = self.final_counts()
        except self.db.error_class as e:
            # The connection may be unusable after the failure that ended the run
            logger.error(f"Could not read back table counts: {e}")
            return
        for table, count in counts.items():
            logger.info(f"{table}: {count:,}")
        logger.info('-' * 40)
        logger.info(f"Total rows in database: {sum(counts.values()):,}")


def setup_logging(level: str = 'INFO', log_file: Optional[str] = None) -> None:
    """Console logging plus an optional log file."""
    handlers = [logging.StreamHandler()]
    if log_file:
        handlers.append(logging.FileHandler(log_file))
    logging.basicConfig(level=getattr(logging, level.upper(), logging.INFO),
                        format=LOG_FORMAT, handlers=handlers, force=True)


def install_signal_handlers(db: Optional[Database]) -> None:
    """Close the connection on SIGINT/SIGTERM and exit."""
    def handler(signum, frame):
        logger.info(f"Received {signal.Signals(signum).name}, shutting down...")
        if db is not None:
            try:
                db.close()
            except Exception as e:
                logger.error(f"Error closing database: {e}")
        sys.exit(128 + signum)

    signal.signal(signal.SIGINT, handler)
    signal.signal(signal.SIGTERM, handler)


def run_migration(config: Config, sources: Iterable[str] = SOURCES,
                  db: Optional[Database] = None, dry_run: bool = False,
                  init: bool = False, show_progress: bool = True) -> Dict[str, SourceResult]:
    """
    Run a migration with the RLS bypass bracket around it.

    Args:
        config: Loaded configuration
        sources: Sources to run, in order
        db: Open database handle (ignored for dry runs)
        dry_run: Read and normalize only
        init: Create the schema first
        show_progress: Show tqdm progress bars

    Returns:
        Per-source results
    """
    runner = MigrationRunner(config, db=None if dry_run else db,
                             dry_run=dry_run, show_progress=show_progress)
    if dry_run:
        return runner.run(sources)

    if init:
        init_schema(db)

    use_service_mode = config.migration.service_mode and db.dialect == 'postgresql'
    with service_mode(db, enabled=use_service_mode):
        return runner.run(sources)


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(
        description='Migrate scraped SAT question corpora into the database',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  satprep-migrate                      # Run all four sources
  satprep-migrate bluebook             # Re-run only the Bluebook tests
  satprep-migrate --dry-run            # Read and normalize, no database
  satprep-migrate --config migrate.yaml --init-schema
  satprep-migrate --sqlite local.db --init-schema   # Local SQLite target
"""
    )
    parser.add_argument('source', nargs='?', choices=SOURCES,
                        help='Run only this source (default: all, in order)')
    parser.add_argument('--config', '-c', type=Path,
                        help='YAML configuration file')
    parser.add_argument('--batch-size', '-b', type=int,
                        help='Rows per INSERT statement (overrides config)')
    parser.add_argument('--dry-run', action='store_true',
                        help='Read and normalize only, do not touch the database')
    parser.add_argument('--init-schema', action='store_true',
                        help='Create destination tables before loading')
    parser.add_argument('--sqlite', type=Path,
                        help='Load into a SQLite file instead of PostgreSQL')
    parser.add_argument('--no-progress', action='store_true',
                        help='Disable progress bars')
    parser.add_argument('--verbose', '-v', action='store_true',
                        help='Debug logging')

    args = parser.parse_args(argv)

    try:
        config = load_config(args.config, validate=not (args.dry_run or args.sqlite))
    except MigrationError as e:
        setup_logging()
        logger.error(f"Configuration error: {e}")
        return 1

    if args.batch_size:
        config.migration.batch_size = args.batch_size

    setup_logging('DEBUG' if args.verbose else config.migration.log_level,
                  config.migration.log_file)

    sources = [args.source] if args.source else list(SOURCES)

    db = None
    try:
        if not args.dry_run:
            logger.info('Testing database connection...')
            db = open_database(config.database, sqlite_path=args.sqlite)
        install_signal_handlers(db)
        run_migration(config, sources, db=db, dry_run=args.dry_run,
                      init=args.init_schema, show_progress=not args.no_progress)
    except MigrationError as e:
        logger.error(f"Migration failed: {e}")
        return 1
    except Exception:
        logger.exception('Migration failed with an unexpected error')
        return 1
    finally:
        if db is not None:
            db.close()

    return 0


if __name__ == '__main__':
    sys.exit(main())
