#!/usr/bin/env python3
"""
Official practice exam normalization.

Converts questions from the nested exam corpus to
``official_practice_questions`` rows. Subject, module and difficulty are
not stored per question; they are inferred from the exam name
(e.g. "SAT Practice #4 - Reading and Writing - Module 2").
"""

import logging
from typing import Dict, List, Optional, Tuple

from .base import BaseNormalizer, as_answer_list, parse_int, text, to_json
from ..ingest.base import SourceContext
from ..vocabulary import ENGLISH, EASY, HARD, MATH, MCQ, MEDIUM, MODULE_1, MODULE_2, SPR

logger = logging.getLogger(__name__)


def parse_exam_name(exam_name: Optional[str]) -> Tuple[Optional[str], Optional[str]]:
    """
    Infer (subject, module) from an exam name.

    >>> parse_exam_name('SAT Practice #1 - Math - Module 2')
    ('math', 'module2')
    """
    if not exam_name:
        return None, None

    name = exam_name.lower()

    subject = None
    if 'english' in name or 'reading' in name or 'writing' in name:
        subject = ENGLISH
    elif 'math' in name:
        subject = MATH

    module = None
    if 'module 1' in name:
        module = MODULE_1
    elif 'module 2' in name:
        module = MODULE_2

    return subject, module


def determine_difficulty(exam_name: Optional[str]) -> str:
    """
    Difficulty code from the exam name.

    Practice test 1 is the easiest, practice test 6 and "advanced" exams the
    hardest; everything else is medium.
    """
    if not exam_name:
        return MEDIUM

    name = exam_name.lower()
    if 'practice #1' in name or 'practice test 1' in name:
        return EASY
    if 'practice #6' in name or 'advanced' in name:
        return HARD
    return MEDIUM


class Normalizer(BaseNormalizer):
    """Official practice exam normalizer."""

    TABLE = 'official_practice_questions'
    COLUMNS = (
        'question_id', 'exam_id', 'exam_name', 'answer_type',
        'stem_text', 'stem_html', 'explanation_text', 'explanation_html',
        'choices', 'spr_answers', 'meta', 'subject', 'module', 'difficulty',
        'scraped_at', 'first_question_id', 'questions_count',
    )

    def __init__(self, **kwargs):
        super().__init__('official', **kwargs)

    def map_choices(self, raw_choices) -> List[Dict]:
        if not isinstance(raw_choices, list):
            return []
        return [
            {
                'id': choice.get('id'),
                'letter': choice.get('letter'),
                'html': text(choice.get('html')),
                'text': text(choice.get('text')),
                'is_correct': bool(choice.get('is_correct')),
            }
            for choice in raw_choices
            if isinstance(choice, dict)
        ]

    def transform(self, raw: Dict, ctx: SourceContext) -> Optional[Tuple]:
        question_id = raw.get('question_id')
        if not question_id:
            self.skip('no_id')
            return None

        answer_type = self.resolve_answer_kind(raw.get('answer_type'), question_id)
        if answer_type is None:
            return None

        choices = None
        spr_answers = None
        if answer_type == MCQ:
            choices = self.map_choices(raw.get('choices'))
            # No letter column in this table; called only to count multiple_correct
            self.find_correct_letter(choices, question_id)
        elif answer_type == SPR:
            spr_answers = as_answer_list(raw.get('spr_answers'))

        if not self.has_answer(answer_type, question_id, choices, spr_answers):
            return None

        subject, module = parse_exam_name(ctx.exam_name)

        return self.create_row(
            question_id=str(question_id),
            exam_id=parse_int(ctx.exam_id),
            exam_name=text(ctx.exam_name),
            answer_type=answer_type,
            stem_text=text(raw.get('stem_text')),
            stem_html=text(raw.get('stem_html')),
            explanation_text=text(raw.get('explanation_text')),
            explanation_html=text(raw.get('explanation_html')),
            choices=to_json(choices),
            spr_answers=to_json(spr_answers),
            meta=to_json(raw.get('meta')),
            subject=subject,
            module=module,
            difficulty=determine_difficulty(ctx.exam_name),
            scraped_at=ctx.scraped_at or self.run_timestamp,
            first_question_id=parse_int(ctx.first_question_id),
            questions_count=parse_int(ctx.questions_count),
        )
