#!/usr/bin/env python3
"""
Tests for fix_data.py
"""

import json
import tempfile
from pathlib import Path

from satprep_migrations.config import Config, CorpusPaths
from satprep_migrations.postprocess import (
    deduplicate,
    export_source_csv,
    infer_answer_types,
    read_rows,
    write_rows,
)
from satprep_migrations.postprocess.fix_data import fixed_path, main


def test_deduplicate_keeps_first():
    rows = [
        {'question_id': 'X', 'stem_text': 'first'},
        {'question_id': 'Y', 'stem_text': 'other'},
        {'question_id': 'X', 'stem_text': 'second'},
    ]
    unique, report = deduplicate(rows)

    assert len(unique) == len(rows) - 1
    assert unique[0]['stem_text'] == 'first'
    assert report.original == 3
    assert report.duplicates_removed == 1
    assert report.sample_duplicates == ['X']
    assert report.output == 2


def test_duplicate_samples_capped():
    rows = [{'question_id': str(i % 2)} for i in range(20)]
    _, report = deduplicate(rows)
    assert report.duplicates_removed == 18
    assert len(report.sample_duplicates) == 5


def test_infer_answer_types():
    rows = [
        {'question_id': '1', 'answer_type': 'mcq', 'spr_answers': '', 'choices': '[]'},
        {'question_id': '2', 'answer_type': 'choice', 'spr_answers': '', 'choices': '[{}]'},
        {'question_id': '3', 'answer_type': 'write', 'spr_answers': '', 'choices': ''},
        {'question_id': '4', 'answer_type': '', 'spr_answers': '["4"]', 'choices': ''},
        {'question_id': '5', 'answer_type': 'null', 'spr_answers': 'null', 'choices': '[{"letter": "A"}]'},
        {'question_id': '6', 'answer_type': 'bogus', 'spr_answers': '[]', 'choices': 'null'},
    ]
    fixed, report = infer_answer_types(rows)

    assert [r['answer_type'] for r in fixed] == ['mcq', 'mcq', 'spr', 'spr', 'mcq', 'mcq']
    assert report.invalid_fixed == 5
    assert report.low_confidence == 1
    # Input rows are left untouched
    assert rows[1]['answer_type'] == 'choice'


def test_bluebook_column_names():
    rows = [{'question_id': 'b1', 'question_type': 'oops', 'spr_answers': '', 'options': '[{"name": "A"}]'}]
    fixed, report = infer_answer_types(rows, field='question_type', choices_field='options')
    assert fixed[0]['question_type'] == 'mcq'
    assert report.low_confidence == 0


def test_csv_round_trip_and_cli():
    with tempfile.TemporaryDirectory() as tmp:
        path = Path(tmp) / 'official_practice_questions.csv'
        write_rows(path, [
            {'question_id': 'X', 'stem_text': 'has, comma'},
            {'question_id': 'X', 'stem_text': 'dup'},
        ])
        assert read_rows(path)[0]['stem_text'] == 'has, comma'

        assert main(['dedupe', str(path)]) == 0
        output = fixed_path(path)
        assert output.name == 'official_practice_questions_fixed.csv'
        assert len(read_rows(output)) == 1

        assert main(['dedupe', str(Path(tmp) / 'missing.csv')]) == 1


def test_export_source_csv():
    with tempfile.TemporaryDirectory() as tmp:
        root = Path(tmp)
        with open(root / 'princeton.json', 'w', encoding='utf-8') as f:
            json.dump([
                {'id': 'pr1', 'page_data': {'answer_type': 'spr', 'spr_answers': ['2']}},
                {'id': 'pr2'},
            ], f)
        config = Config(files=CorpusPaths(princeton=root / 'princeton.json').resolve(root))
        output = root / 'out' / 'princeton.csv'

        assert export_source_csv('princeton', config, output) == 1
        rows = read_rows(output)

    assert rows[0]['question_id'] == 'pr1'
    assert rows[0]['answer_type'] == 'spr'
    assert json.loads(rows[0]['spr_answers']) == ['2']
    assert rows[0]['meta'] == '{}'
