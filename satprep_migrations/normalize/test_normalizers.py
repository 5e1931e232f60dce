#!/usr/bin/env python3
"""
Tests for the source normalizers.
"""

import json
import re
from datetime import datetime, timezone

from satprep_migrations.ingest.base import SourceContext
from satprep_migrations.normalize import (
    BluebookNormalizer,
    CollegeBoardNormalizer,
    OfficialPracticeNormalizer,
    PrincetonReviewNormalizer,
    derive_test_id,
)
from satprep_migrations.normalize.normalize_official import determine_difficulty, parse_exam_name

RUN_STARTED = datetime(2025, 6, 1, tzinfo=timezone.utc)


def as_dict(normalizer, row):
    return dict(zip(normalizer.COLUMNS, row))


def official_ctx(**overrides):
    values = dict(source='official', position=1, exam_id='12',
                  exam_name='SAT Practice #4 - Reading and Writing - Module 2',
                  first_question_id='100', questions_count=27,
                  scraped_at='2025-01-01T00:00:00Z')
    values.update(overrides)
    return SourceContext(**values)


def test_exam_name_inference():
    assert parse_exam_name('SAT Practice #4 - Reading and Writing - Module 2') == ('english', 'module2')
    assert parse_exam_name('SAT Practice #1 - Math - Module 1') == ('math', 'module1')
    assert parse_exam_name(None) == (None, None)
    assert determine_difficulty('SAT Practice #1 - Math - Module 1') == 'E'
    assert determine_difficulty('SAT Practice #6 - Math') == 'H'
    assert determine_difficulty('Advanced Math Module') == 'H'
    assert determine_difficulty('SAT Practice #3 - Math') == 'M'


def test_official_mcq_row():
    normalizer = OfficialPracticeNormalizer(run_started_at=RUN_STARTED)
    raw = {
        'question_id': 'abc123',
        'answer_type': 'mcq',
        'stem_text': 'Which choice?',
        'choices': [
            {'id': 1, 'letter': 'A', 'text': 'one', 'is_correct': False},
            {'id': 2, 'letter': 'B', 'text': 'two', 'is_correct': True},
        ],
        'meta': {'domain': 'Craft'},
    }
    row = as_dict(normalizer, normalizer.normalize(raw, official_ctx()))

    assert row['question_id'] == 'abc123'
    assert row['exam_id'] == 12
    assert row['subject'] == 'english'
    assert row['module'] == 'module2'
    assert row['difficulty'] == 'M'
    assert row['spr_answers'] is None
    assert json.loads(row['choices'])[1]['is_correct'] is True
    assert row['explanation_text'] == ''
    assert row['first_question_id'] == 100
    assert normalizer.stats['normalized'] == 1


def test_official_spr_and_fallback_timestamp():
    normalizer = OfficialPracticeNormalizer(run_started_at=RUN_STARTED)
    raw = {'question_id': 'q9', 'answer_type': 'spr', 'spr_answers': ['3/4', '.75', None]}
    row = as_dict(normalizer, normalizer.normalize(raw, official_ctx(scraped_at=None)))

    assert row['choices'] is None
    assert json.loads(row['spr_answers']) == ['3/4', '.75']
    assert row['scraped_at'] == RUN_STARTED.isoformat()


def test_missing_id_or_kind_skipped_once():
    normalizer = OfficialPracticeNormalizer()
    ctx = official_ctx()

    assert normalizer.normalize({'answer_type': 'mcq'}, ctx) is None
    assert normalizer.normalize({'question_id': 'x'}, ctx) is None
    assert normalizer.normalize({'question_id': 'y', 'answer_type': 'essay'}, ctx) is None
    assert normalizer.normalize('not a record', ctx) is None
    assert normalizer.normalize({'question_id': 'z', 'answer_type': 'mcq', 'choices': 'oops'}, ctx) is None

    assert normalizer.stats['no_id'] == 1
    assert normalizer.stats['no_answer_type'] == 1
    assert normalizer.stats['invalid_answer_type'] == 1
    assert normalizer.stats['malformed'] == 1
    assert normalizer.stats['incomplete'] == 1
    assert normalizer.skipped == 5
    assert normalizer.stats['normalized'] == 0


def test_collegeboard_classification_row():
    normalizer = CollegeBoardNormalizer()
    raw = {
        'question_id': 'cb-1',
        'answer_type': 'mcq',
        'difficulty': 'Hard',
        'seed_args': ['primary_class=Q', 'skill=Q.A.', 'module=math'],
        'answer_choices': [
            {'id': 'a', 'letter': 'A', 'text': '1', 'order': 1, 'is_correct': False},
            {'id': 'b', 'letter': 'B', 'text': '2', 'order': 2, 'is_correct': True},
        ],
    }
    row = as_dict(normalizer, normalizer.normalize(raw, SourceContext('collegeboard', 1)))

    assert row['primary_class'] == 'Q'
    assert row['skill'] == 'Q.A.'
    assert row['module'] == 'math'
    assert row['correct_choice_letter'] == 'B'
    assert row['source'] == 'collegeboard'
    assert row['difficulty'] == 'H'
    assert row['meta'] is None
    assert json.loads(row['seed_args']) == raw['seed_args']


def test_collegeboard_page_data_shape():
    normalizer = CollegeBoardNormalizer()
    raw = {
        'page_data': {'answer_type': 'spr', 'spr_answers': ['12'], 'stem_text': 'Solve'},
        'meta_from_seed': {'question_id': 'cb-2', 'uuid': 'u-2'},
        'from_seeds': ['module=English'],
    }
    row = as_dict(normalizer, normalizer.normalize(raw, SourceContext('collegeboard', 2)))

    assert row['question_id'] == 'cb-2'
    assert row['uuid'] == 'u-2'
    assert row['answer_type'] == 'spr'
    assert row['stem_text'] == 'Solve'
    assert row['module'] == 'en'
    assert row['primary_class'] is None
    assert row['answer_choices'] is None


def test_multiple_correct_keeps_first():
    normalizer = CollegeBoardNormalizer()
    raw = {
        'question_id': 'cb-3',
        'answer_type': 'mcq',
        'answer_choices': [
            {'letter': 'A', 'is_correct': True},
            {'letter': 'C', 'is_correct': True},
        ],
    }
    row = as_dict(normalizer, normalizer.normalize(raw, SourceContext('collegeboard', 3)))

    assert row['correct_choice_letter'] == 'A'
    assert normalizer.stats['multiple_correct'] == 1
    assert normalizer.skipped == 0


def test_princeton_row():
    normalizer = PrincetonReviewNormalizer()
    raw = {
        'id': 'pr-1',
        'url': 'https://example.com/q/pr-1',
        'page_data': {
            'answer_type': 'mcq',
            'answer_choices': [{'letter': 'D', 'text': 'x', 'is_correct': True}],
        },
        'specs': {'stem_text': 'Stem', 'stimulus_text': 'Passage'},
        'meta': {'domain': 'Algebra', 'skill': 'Linear equations', 'section': 'Math',
                 'difficulty': 'Medium'},
    }
    row = as_dict(normalizer, normalizer.normalize(raw, SourceContext('princeton', 1)))

    assert row['source'] == 'princeton'
    assert row['primary_class'] == 'Algebra'
    assert row['module'] == 'math'
    assert row['difficulty'] == 'M'
    assert row['correct_choice_letter'] == 'D'
    assert row['stimulus_text'] == 'Passage'
    assert row['explanation_text'] is None
    assert json.loads(row['answer_choices'])[0]['explanation'] == ''
    assert json.loads(row['meta'])['skill'] == 'Linear equations'


def test_derived_test_id_is_stable():
    first = derive_test_id('March 2025 SAT', 'Math', 'module1', '2025-03-01')
    second = derive_test_id('March 2025 SAT', 'Math', 'module1', '2025-03-01')

    assert first == second
    assert re.fullmatch(r'[a-z0-9_]+', first)
    assert derive_test_id(None, 'Math', 'module1', None) == 'unknown_math_module1_unknown'


def test_bluebook_rows():
    normalizer = BluebookNormalizer(run_started_at=RUN_STARTED)
    ctx = SourceContext('bluebook', position=3, test_name='March 2025 SAT',
                        test_date='2025-03-01', subject='Math', module='module1', vip=1)

    mcq = as_dict(normalizer, normalizer.normalize({
        'type': 'choice',
        'question': 'What is x?',
        'options': [{'name': 'A', 'content': '2'}, {'name': 'B', 'content': '3'}],
        'correct': 'B',
    }, ctx))
    assert mcq['question_id'] == 'march_2025_sat_math_module1_2025_03_01_math_module1_q3'
    assert mcq['question_type'] == 'mcq'
    assert mcq['subject'] == 'math'
    assert mcq['vip'] is True
    assert mcq['question_order'] == 3
    assert mcq['fetched_at'] == RUN_STARTED.isoformat()

    ctx.test_id = 'mar25'
    spr = as_dict(normalizer, normalizer.normalize({
        'type': 'write', 'question': 'Solve', 'correct': ['4', '4.0'],
    }, ctx))
    assert spr['question_id'] == 'mar25_math_module1_q3'
    assert spr['question_type'] == 'spr'
    assert spr['correct_answer'] == '4, 4.0'
    assert spr['options'] is None

    assert normalizer.normalize({'type': 'choice', 'options': []}, ctx) is None
    assert normalizer.stats['incomplete'] == 1


def test_bluebook_modules_sharing_test_id():
    normalizer = BluebookNormalizer()
    raw = {'type': 'write', 'question': 'Solve', 'correct': '4'}
    keys = []
    for subject, module in (('Math', 'module1'), ('Math', 'module2'), ('English', 'module1')):
        ctx = SourceContext('bluebook', position=1, test_id='march-2025',
                            test_name='March 2025 SAT', subject=subject, module=module)
        keys.append(as_dict(normalizer, normalizer.normalize(raw, ctx))['question_id'])

    assert keys == ['march-2025_math_module1_q1', 'march-2025_math_module2_q1',
                    'march-2025_english_module1_q1']
    assert normalizer.stats['normalized'] == 3


def test_official_multiple_correct_counted():
    normalizer = OfficialPracticeNormalizer()
    raw = {
        'question_id': 'dup-correct',
        'answer_type': 'mcq',
        'choices': [{'letter': 'A', 'is_correct': True}, {'letter': 'B', 'is_correct': True}],
    }
    row = normalizer.normalize(raw, official_ctx())

    assert row is not None
    assert normalizer.stats['multiple_correct'] == 1
    assert normalizer.skipped == 0
