"""
Data normalization modules.

Each source has its own normalizer that:
1. Takes (raw_record, SourceContext) pairs from its reader
2. Translates source vocabulary to the canonical one
3. Returns a row tuple in its table's column order, or None (counted)
"""

from .base import BaseNormalizer
from .normalize_official import Normalizer as OfficialPracticeNormalizer
from .normalize_collegeboard import Normalizer as CollegeBoardNormalizer
from .normalize_princeton import Normalizer as PrincetonReviewNormalizer
from .normalize_bluebook import Normalizer as BluebookNormalizer, derive_test_id

__all__ = [
    'BaseNormalizer',
    'OfficialPracticeNormalizer',
    'CollegeBoardNormalizer',
    'PrincetonReviewNormalizer',
    'BluebookNormalizer',
    'derive_test_id',
]
