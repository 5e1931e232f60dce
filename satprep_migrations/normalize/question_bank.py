#!/usr/bin/env python3
"""
Shared layout of the ``op_question_bank`` table.

College Board and Princeton Review questions land in the same table,
told apart by the ``source`` column.
"""

from typing import Dict, List

from .base import BaseNormalizer, parse_int, text


class QuestionBankNormalizer(BaseNormalizer):
    """Base for normalizers writing to op_question_bank."""

    TABLE = 'op_question_bank'
    COLUMNS = (
        'question_id', 'question_url', 'uuid', 'source', 'difficulty',
        'source_order', 'primary_class', 'skill', 'module', 'answer_type',
        'stem_text', 'stem_html', 'answer_choices', 'correct_choice_letter',
        'spr_answers', 'explanation_text', 'explanation_html',
        'stimulus_text', 'stimulus_html', 'meta', 'seed_args', 'from_seeds',
    )

    def map_choices(self, raw_choices, with_explanation: bool = True) -> List[Dict]:
        """Map raw answer choices to {id, text, letter, order, is_correct, explanation}."""
        if not isinstance(raw_choices, list):
            return []
        return [
            {
                'id': choice.get('id'),
                'text': text(choice.get('text')),
                'letter': choice.get('letter'),
                'order': parse_int(choice.get('order')) or 0,
                'is_correct': bool(choice.get('is_correct')),
                'explanation': text(choice.get('explanation')) if with_explanation else '',
            }
            for choice in raw_choices
            if isinstance(choice, dict)
        ]
