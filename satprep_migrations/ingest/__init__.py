"""
Corpus readers for the scraped question sources.

Each reader:
1. Locates and parses the on-disk corpus (one file or a manifest + files)
2. Yields (raw_record, SourceContext) pairs lazily
3. Counts records read and member files skipped
"""

from .base import BaseReader, SourceContext
from .official import OfficialPracticeReader
from .collegeboard import CollegeBoardReader
from .princeton import PrincetonReviewReader
from .bluebook import BluebookReader

__all__ = [
    'BaseReader',
    'SourceContext',
    'OfficialPracticeReader',
    'CollegeBoardReader',
    'PrincetonReviewReader',
    'BluebookReader',
]
