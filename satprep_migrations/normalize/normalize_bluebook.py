#!/usr/bin/env python3
"""
Bluebook practice test normalization.

Converts questions of the per-test member files to
``bluebook_test_questions`` rows. Question kinds ``choice``/``write`` are
stored as ``mcq``/``spr``.

Member files usually carry a ``metadata.testId``; when they do not, the
test id is derived from test name, subject, module and date so re-runs
produce the same key. One manifest entry covers both modules of a test and
member files of the two modules share the same ``testId``, so each row is
keyed by ``<test_id>_<subject>_<module>_q<position>``.
"""

import logging
import re
from typing import Dict, List, Optional, Tuple

from .base import BaseNormalizer, as_answer_list, as_bool, text, to_json
from ..ingest.base import SourceContext
from ..vocabulary import MCQ, SPR, normalize_subject, normalize_test_module

logger = logging.getLogger(__name__)

NON_ALNUM = re.compile(r'[^a-z0-9]+')


def derive_test_id(test_name: Optional[str], subject: Optional[str],
                   module: Optional[str], date: Optional[str]) -> str:
    """
    Deterministic test id from its descriptive fields.

    Lowercased, every run of characters outside [a-z0-9] collapsed to one
    underscore, no leading or trailing underscore.

    >>> derive_test_id('March 2025 SAT', 'Math', 'module1', '2025-03-01')
    'march_2025_sat_math_module1_2025_03_01'
    """
    parts = [str(p) if p not in (None, '') else 'unknown'
             for p in (test_name, subject, module, date)]
    base = '_'.join(parts).lower()
    return NON_ALNUM.sub('_', base).strip('_')


def question_key(test_id: str, subject: Optional[str], module: Optional[str],
                 position: int) -> str:
    """
    Natural key of one question within a test module.

    >>> question_key('mar25', 'math', 'module2', 4)
    'mar25_math_module2_q4'
    """
    return f"{test_id}_{subject or 'unknown'}_{module or 'unknown'}_q{position}"


class Normalizer(BaseNormalizer):
    """Bluebook test question normalizer."""

    TABLE = 'bluebook_test_questions'
    COLUMNS = (
        'question_id', 'test_id', 'subject', 'test_name', 'test_date', 'module',
        'vip', 'fetched_at', 'question_type', 'article', 'question', 'options',
        'correct_answer', 'spr_answers', 'solution', 'question_order',
    )

    def __init__(self, **kwargs):
        super().__init__('bluebook', **kwargs)

    def map_options(self, raw_options) -> List[Dict]:
        if not isinstance(raw_options, list):
            return []
        return [
            {'name': text(option.get('name')), 'content': text(option.get('content'))}
            for option in raw_options
            if isinstance(option, dict)
        ]

    def transform(self, raw: Dict, ctx: SourceContext) -> Optional[Tuple]:
        test_id = ctx.test_id or derive_test_id(ctx.test_name, ctx.subject,
                                                ctx.module, ctx.test_date)
        if not ctx.position:
            self.skip('no_id')
            return None
        subject = normalize_subject(ctx.subject)
        module = normalize_test_module(ctx.module)
        question_id = question_key(test_id, subject, module, ctx.position)

        question_type = self.resolve_answer_kind(raw.get('type'), question_id)
        if question_type is None:
            return None

        correct = raw.get('correct')
        if isinstance(correct, list):
            correct = ', '.join(str(c) for c in correct if c is not None)
        correct = text(correct)

        options = None
        spr_answers = None
        if question_type == MCQ:
            options = self.map_options(raw.get('options'))
        elif question_type == SPR:
            spr_answers = as_answer_list(raw.get('spr_answers'))

        if not self.has_answer(question_type, question_id, options, spr_answers, correct):
            return None

        return self.create_row(
            question_id=question_id,
            test_id=test_id,
            subject=subject,
            test_name=text(ctx.test_name),
            test_date=ctx.test_date or None,
            module=module,
            vip=as_bool(ctx.vip),
            fetched_at=ctx.fetched_at or self.run_timestamp,
            question_type=question_type,
            article=text(raw.get('article')),
            question=text(raw.get('question')),
            options=to_json(options),
            correct_answer=correct,
            spr_answers=to_json(spr_answers),
            solution=text(raw.get('solution')),
            question_order=ctx.position,
        )
