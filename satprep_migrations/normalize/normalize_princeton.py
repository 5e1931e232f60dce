#!/usr/bin/env python3
"""
Princeton Review question normalization.

Answer data lives in ``page_data``, stem and stimulus in ``specs``,
classification in ``meta`` (domain -> primary class, skill, section ->
module, difficulty). The whole ``meta`` object is kept as provenance.
"""

import logging
from typing import Dict, Optional, Tuple

from .base import as_answer_list, optional_text, text, to_json
from .question_bank import QuestionBankNormalizer
from ..ingest.base import SourceContext
from ..vocabulary import MCQ, SPR, normalize_difficulty, normalize_section

logger = logging.getLogger(__name__)


def _dict(value) -> Dict:
    return value if isinstance(value, dict) else {}


class Normalizer(QuestionBankNormalizer):
    """Princeton Review normalizer."""

    def __init__(self, **kwargs):
        super().__init__('princeton', **kwargs)

    def transform(self, raw: Dict, ctx: SourceContext) -> Optional[Tuple]:
        question_id = raw.get('id')
        if not question_id:
            self.skip('no_id')
            return None

        page_data = _dict(raw.get('page_data'))
        specs = _dict(raw.get('specs'))
        meta = _dict(raw.get('meta'))

        answer_type = self.resolve_answer_kind(page_data.get('answer_type'), question_id)
        if answer_type is None:
            return None

        answer_choices = None
        correct_letter = None
        spr_answers = None
        if answer_type == MCQ:
            # No per-choice explanations in this source
            answer_choices = self.map_choices(page_data.get('answer_choices'),
                                              with_explanation=False)
            correct_letter = self.find_correct_letter(answer_choices, question_id)
        elif answer_type == SPR:
            spr_answers = as_answer_list(page_data.get('spr_answers'))

        if not self.has_answer(answer_type, question_id, answer_choices, spr_answers):
            return None

        return self.create_row(
            question_id=str(question_id),
            question_url=optional_text(raw.get('url')),
            uuid=None,
            source=self.source_id,
            difficulty=normalize_difficulty(meta.get('difficulty')),
            source_order=None,
            primary_class=optional_text(meta.get('domain')),
            skill=optional_text(meta.get('skill')),
            module=normalize_section(meta.get('section')),
            answer_type=answer_type,
            stem_text=text(specs.get('stem_text')),
            stem_html=text(specs.get('stem_html')),
            answer_choices=to_json(answer_choices),
            correct_choice_letter=correct_letter,
            spr_answers=to_json(spr_answers),
            explanation_text=optional_text(specs.get('explanation_text')),
            explanation_html=optional_text(specs.get('explanation_html')),
            stimulus_text=optional_text(specs.get('stimulus_text')),
            stimulus_html=optional_text(specs.get('stimulus_html')),
            meta=to_json(meta),
            seed_args=None,
            from_seeds=None,
        )
