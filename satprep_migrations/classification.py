"""
College Board classification extraction.

The question bank scrape does not store primary class, skill and module as
fields. They are embedded as ``key=value`` fragments (joined with ``&``)
inside the ``seed_args`` strings used to drive the scraper, and in the
``from_seeds`` strings inherited from parent seeds. ``seed_args`` wins over
``from_seeds`` key by key.
"""

from dataclasses import dataclass
from typing import Dict, Iterable, Optional

CLASSIFICATION_KEYS = ('primary_class', 'skill', 'module')


@dataclass(frozen=True)
class Classification:
    """Classification triple of a question bank item."""
    primary_class: Optional[str] = None
    skill: Optional[str] = None
    module: Optional[str] = None

    def is_empty(self) -> bool:
        return not (self.primary_class or self.skill or self.module)


def parse_fragments(text: str) -> Dict[str, str]:
    """
    Parse ``key=value`` fragments out of a seed string.

    Accepts bare fragments (``skill=Q.A.``), query strings
    (``primary_class=Q&skill=Q.A.``) and full URLs (``...?module=math``).
    Only classification keys are returned; empty values are ignored.

    >>> parse_fragments('primary_class=Q&skill=Q.A.')
    {'primary_class': 'Q', 'skill': 'Q.A.'}
    """
    if '?' in text:
        text = text.split('?', 1)[1]

    values = {}
    for fragment in text.split('&'):
        key, sep, value = fragment.partition('=')
        key = key.strip()
        value = value.strip()
        if not sep or key not in CLASSIFICATION_KEYS or not value:
            continue
        values[key] = value
    return values


def _collect(items: Optional[Iterable]) -> Dict[str, str]:
    values = {}
    if not isinstance(items, (list, tuple)):
        return values
    for item in items:
        if not isinstance(item, str):
            continue
        for key, value in parse_fragments(item).items():
            # Later fragments overwrite earlier ones within the same list
            values[key] = value
    return values


def parse_classification(seed_args=None, from_seeds=None) -> Optional[Classification]:
    """
    Extract the classification triple from seed arguments.

    Either list may be absent. Returns None when neither list yields any
    classification key.
    """
    preferred = _collect(seed_args)
    fallback = _collect(from_seeds)

    merged = dict(fallback)
    merged.update(preferred)

    result = Classification(
        primary_class=merged.get('primary_class'),
        skill=merged.get('skill'),
        module=merged.get('module'),
    )
    if result.is_empty():
        return None
    return result
