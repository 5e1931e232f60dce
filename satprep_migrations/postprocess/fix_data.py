#!/usr/bin/env python3
"""
Data-quality fixes over exported table CSVs.

Works on CSV exports of the canonical tables (see ``export_source_csv``),
typically before a bulk upload through another tool:

- Official practice questions: drop rows whose question_id repeats
- Question bank / Bluebook: repair answer kinds that are missing or spelled
  the source's way (``choice``/``write``)

Usage:
    satprep-fix-data export official --output official_practice_questions.csv
    satprep-fix-data dedupe official_practice_questions.csv
    satprep-fix-data answer-types bluebook_test_questions.csv --field question_type
"""

import argparse
import csv
import logging
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Tuple

from ..vocabulary import ANSWER_KIND_MAP, ANSWER_KINDS, MCQ, SPR

logger = logging.getLogger(__name__)

SAMPLE_SIZE = 5

# Serialized forms of "no value" in exported CSVs
EMPTY_VALUES = ('', 'null', 'none', '[]', '{}')


@dataclass
class FixReport:
    """What a fix pass changed."""
    original: int = 0
    duplicates_removed: int = 0
    sample_duplicates: List[str] = field(default_factory=list)
    invalid_fixed: int = 0
    low_confidence: int = 0
    output: int = 0

    def log(self, label: str) -> None:
        logger.info(f"{label}:")
        logger.info(f"  Original records: {self.original}")
        if self.duplicates_removed:
            logger.info(f"  Duplicates removed: {self.duplicates_removed}")
            logger.info(f"  Sample duplicates: {', '.join(self.sample_duplicates)}")
        if self.invalid_fixed:
            logger.info(f"  Answer types fixed: {self.invalid_fixed}")
        if self.low_confidence:
            logger.warning(f"  Defaulted to {MCQ} without evidence: {self.low_confidence}")
        logger.info(f"  Output records: {self.output}")


def is_empty(value) -> bool:
    if value is None:
        return True
    return str(value).strip().lower() in EMPTY_VALUES


def deduplicate(rows: Sequence[Dict], key: str = 'question_id',
                report: Optional[FixReport] = None) -> Tuple[List[Dict], FixReport]:
    """
    Drop rows whose ``key`` was already seen; the first occurrence wins.

    Returns:
        (unique rows, report)
    """
    report = report or FixReport(original=len(rows))
    seen = set()
    unique = []
    for row in rows:
        value = row.get(key)
        if value in seen:
            report.duplicates_removed += 1
            if len(report.sample_duplicates) < SAMPLE_SIZE:
                report.sample_duplicates.append(str(value))
            continue
        seen.add(value)
        unique.append(row)

    report.output = len(unique)
    return unique, report


def infer_answer_types(rows: Sequence[Dict], field: str = 'answer_type',
                       answers_field: str = 'spr_answers', choices_field: str = 'choices',
                       aliases: Optional[Dict[str, str]] = None,
                       report: Optional[FixReport] = None) -> Tuple[List[Dict], FixReport]:
    """
    Repair the answer kind column of each row.

    Known spellings are translated through ``aliases``. Anything else that
    is not mcq/spr is inferred: accepted answers present -> spr, choices
    present -> mcq, otherwise mcq flagged as low confidence.

    Rows are copied, the input is left untouched.
    """
    aliases = ANSWER_KIND_MAP if aliases is None else aliases
    report = report or FixReport(original=len(rows))

    fixed = []
    for row in rows:
        row = dict(row)
        value = row.get(field)
        current = '' if value is None else str(value).strip()

        if current in ANSWER_KINDS:
            fixed.append(row)
            continue

        translated = aliases.get(current.lower())
        if translated in ANSWER_KINDS:
            row[field] = translated
        elif not is_empty(row.get(answers_field)):
            row[field] = SPR
        elif not is_empty(row.get(choices_field)):
            row[field] = MCQ
        else:
            row[field] = MCQ
            report.low_confidence += 1
            logger.debug(f"  No answer data for {row.get('question_id')}, defaulting to {MCQ}")
        report.invalid_fixed += 1
        fixed.append(row)

    report.output = len(fixed)
    return fixed, report


def read_rows(path: Path) -> List[Dict]:
    with open(path, newline='', encoding='utf-8') as f:
        return list(csv.DictReader(f))


def write_rows(path: Path, rows: Sequence[Dict], fieldnames: Optional[Sequence[str]] = None) -> None:
    if fieldnames is None:
        fieldnames = list(rows[0].keys()) if rows else []
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, 'w', newline='', encoding='utf-8') as f:
        writer = csv.DictWriter(f, fieldnames=fieldnames)
        writer.writeheader()
        writer.writerows(rows)


def export_source_csv(source: str, config, output: Path) -> int:
    """
    Read and normalize one source, then write its rows to CSV.

    Returns:
        Number of rows written
    """
    # Imported here so the fix commands do not need the database stack
    from ..pipeline import SOURCE_SPECS, collect_rows

    if source not in SOURCE_SPECS:
        raise ValueError(f"Unknown source: {source}")
    spec = SOURCE_SPECS[source]

    reader = spec.make_reader(config.files)
    normalizer = spec.normalizer_class()
    rows = collect_rows(reader, normalizer)
    normalizer.report()

    columns = normalizer.COLUMNS
    write_rows(output, [dict(zip(columns, row)) for row in rows], fieldnames=columns)
    logger.info(f"Exported {len(rows)} {spec.title} to {output}")
    return len(rows)


def fixed_path(path: Path) -> Path:
    """foo.csv -> foo_fixed.csv"""
    return path.with_name(f"{path.stem}_fixed{path.suffix}")


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(description='Fix data-quality issues in exported table CSVs')
    parser.add_argument('--verbose', '-v', action='store_true', help='Debug logging')
    sub = parser.add_subparsers(dest='command', required=True)

    p_export = sub.add_parser('export', help='Normalize one source and write it as CSV')
    p_export.add_argument('source', choices=('official', 'collegeboard', 'princeton', 'bluebook'))
    p_export.add_argument('--output', '-o', type=Path, required=True)
    p_export.add_argument('--config', '-c', type=Path, help='YAML configuration file')

    p_dedupe = sub.add_parser('dedupe', help='Remove rows with a repeated key')
    p_dedupe.add_argument('input', type=Path)
    p_dedupe.add_argument('--output', '-o', type=Path)
    p_dedupe.add_argument('--key', default='question_id')

    p_types = sub.add_parser('answer-types', help='Repair missing or source-spelled answer kinds')
    p_types.add_argument('input', type=Path)
    p_types.add_argument('--output', '-o', type=Path)
    p_types.add_argument('--field', default='answer_type',
                         help='Answer kind column (question_type for Bluebook)')
    p_types.add_argument('--answers-field', default='spr_answers')
    p_types.add_argument('--choices-field', default='choices',
                         help='Choices column (answer_choices for the question bank, '
                              'options for Bluebook)')

    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format='%(asctime)s - %(levelname)s - %(message)s'
    )

    try:
        if args.command == 'export':
            from ..config import load_config
            config = load_config(args.config, validate=False)
            export_source_csv(args.source, config, args.output)
            return 0

        rows = read_rows(args.input)
        fieldnames = None
        if rows:
            fieldnames = list(rows[0].keys())

        if args.command == 'dedupe':
            rows, report = deduplicate(rows, key=args.key)
        else:
            rows, report = infer_answer_types(rows, field=args.field,
                                              answers_field=args.answers_field,
                                              choices_field=args.choices_field)

        output = args.output or fixed_path(args.input)
        write_rows(output, rows, fieldnames=fieldnames)
        report.log(args.input.name)
        logger.info(f"Fixed file saved: {output}")
    except Exception as e:
        logger.error(f"Error fixing data: {e}")
        return 1

    return 0


if __name__ == '__main__':
    sys.exit(main())
