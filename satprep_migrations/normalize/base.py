#!/usr/bin/env python3
"""
Base class for source record normalization.

A normalizer maps one ``(raw_record, SourceContext)`` pair to a canonical
row tuple whose layout matches ``COLUMNS``. Records that cannot produce a
valid row return None and increment a named counter in ``stats``; data
problems never raise.
"""

import json
import logging
from abc import ABC, abstractmethod
from collections import Counter
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Sequence, Tuple

from ..ingest.base import SourceContext
from ..vocabulary import MCQ, SPR, is_valid_answer_kind, normalize_answer_kind

logger = logging.getLogger(__name__)


def to_json(value: Any) -> Optional[str]:
    """Encode a JSON column value; None stays NULL."""
    if value is None:
        return None
    return json.dumps(value, ensure_ascii=False)


def parse_int(value) -> Optional[int]:
    """Parse an integer from int/str values, None if not numeric."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value) if value.is_integer() else None
    if isinstance(value, str):
        try:
            return int(value.strip())
        except ValueError:
            return None
    return None


def as_bool(value) -> bool:
    """Interpret 0/1, "0"/"1", true/false style flags."""
    if isinstance(value, str):
        return value.strip().lower() in ('1', 'true', 'yes', 'y')
    return bool(value)


def text(value) -> str:
    """Text column value; missing becomes an empty string."""
    if value is None:
        return ''
    return value if isinstance(value, str) else str(value)


def optional_text(value) -> Optional[str]:
    if value is None or value == '':
        return None
    return value if isinstance(value, str) else str(value)


def as_answer_list(value) -> List[str]:
    """
    Canonicalize accepted free-response answers to a list of strings.

    None becomes an empty list, a scalar becomes a one-element list and
    null/blank entries are dropped.
    """
    if value is None:
        return []
    if not isinstance(value, (list, tuple)):
        value = [value]

    answers = []
    for item in value:
        if item is None:
            continue
        item = item if isinstance(item, str) else str(item)
        if item.strip():
            answers.append(item)
    return answers


class BaseNormalizer(ABC):
    """Base class for source-specific normalizers."""

    TABLE: str = ''
    COLUMNS: Tuple[str, ...] = ()

    def __init__(self, source_id: str, run_started_at: Optional[datetime] = None):
        self.source_id = source_id
        self.run_started_at = run_started_at or datetime.now(timezone.utc)
        self.stats = Counter()

    @property
    def run_timestamp(self) -> str:
        """Fallback provenance timestamp, fixed for the normalizer's lifetime."""
        return self.run_started_at.isoformat()

    def skip(self, reason: str, record_id=None) -> None:
        """Count a rejected record."""
        self.stats[reason] += 1
        logger.debug(f"  Skipping {self.source_id} record {record_id}: {reason}")

    def resolve_answer_kind(self, value, record_id) -> Optional[str]:
        """
        Translate the discriminator to mcq/spr.

        Counts and returns None when it is missing or not translatable.
        """
        kind = normalize_answer_kind(value)
        if kind is None:
            self.skip('no_answer_type', record_id)
            return None
        if not is_valid_answer_kind(kind):
            self.skip('invalid_answer_type', record_id)
            return None
        return kind

    def find_correct_letter(self, choices: Sequence[Dict], record_id,
                            letter_key: str = 'letter') -> Optional[str]:
        """
        Letter of the first choice flagged correct.

        More than one flagged choice is counted under ``multiple_correct``
        and logged; the first one is kept.
        """
        flagged = [c for c in choices if c.get('is_correct')]
        if not flagged:
            return None
        if len(flagged) > 1:
            self.stats['multiple_correct'] += 1
            letters = ', '.join(str(c.get(letter_key)) for c in flagged)
            logger.warning(
                f"  {self.source_id} question {record_id} has {len(flagged)} correct "
                f"choices ({letters}), keeping the first"
            )
        return flagged[0].get(letter_key)

    def has_answer(self, answer_type: str, record_id, choices: Optional[list],
                   answers: Optional[list], correct: Optional[str] = None) -> bool:
        """
        Check that an mcq row has choices and an spr row has an answer.

        Counts the record under ``incomplete`` when it does not.
        """
        if answer_type == MCQ:
            ok = bool(choices)
        elif answer_type == SPR:
            ok = bool(answers) or bool(correct)
        else:
            ok = False

        if not ok:
            self.skip('incomplete', record_id)
        return ok

    def create_row(self, **values) -> Tuple:
        """
        Build a row tuple in COLUMNS order.

        Raises:
            ValueError: a column is missing or unknown (programming error)
        """
        missing = [c for c in self.COLUMNS if c not in values]
        extra = [k for k in values if k not in self.COLUMNS]
        if missing or extra:
            raise ValueError(
                f"{type(self).__name__} row mismatch: missing={missing} extra={extra}"
            )
        return tuple(values[c] for c in self.COLUMNS)

    @abstractmethod
    def transform(self, raw: Dict, ctx: SourceContext) -> Optional[Tuple]:
        """
        Map one raw record to a canonical row.

        Returns:
            Row tuple, or None after counting the skip reason
        """
        pass

    def normalize(self, raw, ctx: SourceContext) -> Optional[Tuple]:
        """Normalize one record, counting outcomes."""
        if not isinstance(raw, dict):
            self.skip('malformed')
            return None

        try:
            row = self.transform(raw, ctx)
        except (TypeError, AttributeError, KeyError) as e:
            # Nested structure of an unexpected shape (e.g. a string where a
            # list of choices was expected)
            logger.warning(f"  Malformed {self.source_id} record at position {ctx.position}: {e}")
            self.skip('malformed')
            return None

        if row is not None:
            self.stats['normalized'] += 1
        return row

    @property
    def skipped(self) -> int:
        """Total records rejected for any reason."""
        return sum(v for k, v in self.stats.items()
                   if k not in ('normalized', 'multiple_correct'))

    def report(self) -> None:
        """Log skip reasons."""
        if self.skipped:
            logger.info(f"  Skipped: {self.skipped} records")
            for reason, count in sorted(self.stats.items()):
                if reason not in ('normalized', 'multiple_correct') and count:
                    logger.info(f"    - {reason}: {count}")
        if self.stats['multiple_correct']:
            logger.warning(
                f"  {self.stats['multiple_correct']} questions with more than one correct choice"
            )
