#!/usr/bin/env python3
"""
Princeton Review corpus reader.

The corpus is a top-level JSON array of question objects, each with
``page_data`` (answer data), ``specs`` (stem/stimulus) and ``meta``
(classification) substructures.
"""

import logging
from pathlib import Path
from typing import Dict, Iterator, Tuple

from .base import BaseReader, SourceContext
from ..errors import CorpusError

logger = logging.getLogger(__name__)


class PrincetonReviewReader(BaseReader):

    def __init__(self, path: Path):
        super().__init__('princeton', path)

    def read(self) -> Iterator[Tuple[Dict, SourceContext]]:
        data = self.load_json(self.path)

        if not isinstance(data, list):
            raise CorpusError(self.source_id, self.path, 'expected a JSON array')

        logger.info(f"  Parsed {len(data)} Princeton Review questions")

        for i, question in enumerate(data):
            self.stats['records_read'] += 1
            yield question, SourceContext(source=self.source_id, position=i + 1)
