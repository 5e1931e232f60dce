#!/usr/bin/env python3
"""
Official practice exam corpus reader.

The corpus is one JSON document::

    {"scraped_at": "...", "exams": [
        {"exam_id": "12", "name": "SAT Practice #1 - Math - Module 1",
         "first_question_id": "...", "questions_count": 22,
         "questions": [{...}, ...]},
        ...
    ]}

Every question is tagged with its owning exam.
"""

import logging
from pathlib import Path
from typing import Dict, Iterator, Tuple

from .base import BaseReader, SourceContext
from ..errors import CorpusError

logger = logging.getLogger(__name__)


class OfficialPracticeReader(BaseReader):
    """Reads the nested exam -> questions document."""

    def __init__(self, path: Path):
        super().__init__('official', path)

    def read(self) -> Iterator[Tuple[Dict, SourceContext]]:
        data = self.load_json(self.path)

        if not isinstance(data, dict) or not isinstance(data.get('exams'), list):
            raise CorpusError(self.source_id, self.path, 'missing exams array')

        exams = data['exams']
        scraped_at = data.get('scraped_at')
        logger.info(f"  Parsed {len(exams)} exams (scraped at {scraped_at})")

        for exam in exams:
            if not isinstance(exam, dict) or not isinstance(exam.get('questions'), list):
                exam_id = exam.get('exam_id') if isinstance(exam, dict) else None
                logger.warning(f"  Exam {exam_id} has no questions array, skipping")
                self.stats['exams_skipped'] += 1
                continue

            self.stats['exams_read'] += 1
            for i, question in enumerate(exam['questions']):
                self.stats['records_read'] += 1
                yield question, SourceContext(
                    source=self.source_id,
                    position=i + 1,
                    exam_id=exam.get('exam_id'),
                    exam_name=exam.get('name'),
                    first_question_id=exam.get('first_question_id'),
                    questions_count=exam.get('questions_count'),
                    scraped_at=scraped_at,
                )
