#!/usr/bin/env python3
"""
College Board (OnePrep SAT suite) question bank normalization.

Records come in two shapes: content on the record itself, or content in a
``page_data`` substructure with identifiers in ``meta_from_seed``. Fields
are looked up on the record first, then in the substructures.

Primary class, skill and module come from the ``seed_args`` /
``from_seeds`` strings (see classification.py).
"""

import logging
from typing import Dict, Optional, Tuple

from .base import as_answer_list, optional_text, parse_int, text, to_json
from .question_bank import QuestionBankNormalizer
from ..classification import Classification, parse_classification
from ..ingest.base import SourceContext
from ..vocabulary import MCQ, SPR, normalize_difficulty, normalize_section

logger = logging.getLogger(__name__)


def _dict(value) -> Dict:
    return value if isinstance(value, dict) else {}


class Normalizer(QuestionBankNormalizer):
    """College Board question bank normalizer."""

    def __init__(self, **kwargs):
        super().__init__('collegeboard', **kwargs)

    def transform(self, raw: Dict, ctx: SourceContext) -> Optional[Tuple]:
        page_data = _dict(raw.get('page_data'))
        seed_meta = _dict(raw.get('meta_from_seed'))

        def pick(key, *fallbacks):
            for source in (raw, page_data, seed_meta):
                for name in (key,) + fallbacks:
                    value = source.get(name)
                    if value is not None and value != '':
                        return value
            return None

        question_id = pick('question_id', 'id')
        if not question_id:
            self.skip('no_id')
            return None

        answer_type = self.resolve_answer_kind(pick('answer_type'), question_id)
        if answer_type is None:
            return None

        answer_choices = None
        correct_letter = None
        spr_answers = None
        if answer_type == MCQ:
            answer_choices = self.map_choices(pick('answer_choices'))
            correct_letter = self.find_correct_letter(answer_choices, question_id)
        elif answer_type == SPR:
            spr_answers = as_answer_list(pick('spr_answers'))

        if not self.has_answer(answer_type, question_id, answer_choices, spr_answers):
            return None

        seed_args = raw.get('seed_args')
        from_seeds = raw.get('from_seeds')
        classification = parse_classification(seed_args, from_seeds) or Classification()

        return self.create_row(
            question_id=str(question_id),
            question_url=optional_text(pick('question_url')),
            uuid=optional_text(pick('uuid')),
            source=self.source_id,
            difficulty=normalize_difficulty(pick('difficulty')),
            source_order=parse_int(pick('source_order')),
            primary_class=classification.primary_class,
            skill=classification.skill,
            module=normalize_section(classification.module),
            answer_type=answer_type,
            stem_text=text(pick('stem_text')),
            stem_html=text(pick('stem_html')),
            answer_choices=to_json(answer_choices),
            correct_choice_letter=correct_letter,
            spr_answers=to_json(spr_answers),
            explanation_text=text(pick('explanation_text')),
            explanation_html=text(pick('explanation_html')),
            stimulus_text=optional_text(pick('stimulus_text')),
            stimulus_html=optional_text(pick('stimulus_html')),
            meta=None,
            seed_args=to_json(seed_args),
            from_seeds=to_json(from_seeds),
        )
