#!/usr/bin/env python3
"""
College Board question bank corpus reader.

The corpus is one JSON document with a flat ``questions`` array. Question
content sits either on the record itself or in a ``page_data``
substructure; the normalizer handles both.
"""

import logging
from pathlib import Path
from typing import Dict, Iterator, Tuple

from .base import BaseReader, SourceContext
from ..errors import CorpusError

logger = logging.getLogger(__name__)


class CollegeBoardReader(BaseReader):
    """Reads the flat College Board question array."""

    def __init__(self, path: Path):
        super().__init__('collegeboard', path)

    def read(self) -> Iterator[Tuple[Dict, SourceContext]]:
        data = self.load_json(self.path)

        if not isinstance(data, dict) or not isinstance(data.get('questions'), list):
            raise CorpusError(self.source_id, self.path, 'missing questions array')

        questions = data['questions']
        logger.info(f"  Parsed {len(questions)} College Board questions")

        for i, question in enumerate(questions):
            self.stats['records_read'] += 1
            yield question, SourceContext(source=self.source_id, position=i + 1)
