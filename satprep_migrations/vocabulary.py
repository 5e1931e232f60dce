"""
Canonical vocabulary shared by every normalizer.

Each source spells difficulty, subject, module and answer kind its own way.
Normalizers translate through the maps below; a value that is not in a map
passes through unchanged so unexpected spellings are never dropped.
"""

from typing import Dict, Optional

# Answer kinds
MCQ = 'mcq'
SPR = 'spr'
ANSWER_KINDS = (MCQ, SPR)

ANSWER_KIND_MAP = {
    'mcq': MCQ,
    'choice': MCQ,
    'multiple_choice': MCQ,
    'spr': SPR,
    'write': SPR,
    'free_response': SPR,
}

# Difficulty codes
EASY = 'E'
MEDIUM = 'M'
HARD = 'H'

DIFFICULTY_MAP = {
    'e': EASY,
    'easy': EASY,
    'm': MEDIUM,
    'medium': MEDIUM,
    'h': HARD,
    'hard': HARD,
}

# Subjects (official practice and Bluebook tests)
ENGLISH = 'english'
MATH = 'math'

SUBJECT_MAP = {
    'english': ENGLISH,
    'en': ENGLISH,
    'reading': ENGLISH,
    'writing': ENGLISH,
    'reading and writing': ENGLISH,
    'math': MATH,
    'maths': MATH,
}

# Question bank sections
SECTION_MAP = {
    'english': 'en',
    'en': 'en',
    'reading': 'en',
    'writing': 'en',
    'reading and writing': 'en',
    'math': 'math',
}

# Test modules
MODULE_1 = 'module1'
MODULE_2 = 'module2'

TEST_MODULE_MAP = {
    'module1': MODULE_1,
    'module 1': MODULE_1,
    'm1': MODULE_1,
    '1': MODULE_1,
    'module2': MODULE_2,
    'module 2': MODULE_2,
    'm2': MODULE_2,
    '2': MODULE_2,
}


def _translate(value, mapping: Dict[str, str]) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    if not text:
        return None
    return mapping.get(text.lower(), text)


def normalize_answer_kind(value) -> Optional[str]:
    """Map a source answer kind (choice/write/mcq/spr...) to mcq or spr."""
    return _translate(value, ANSWER_KIND_MAP)


def normalize_difficulty(value) -> Optional[str]:
    """Map Easy/E/easy etc. to the E/M/H codes."""
    return _translate(value, DIFFICULTY_MAP)


def normalize_subject(value) -> Optional[str]:
    return _translate(value, SUBJECT_MAP)


def normalize_section(value) -> Optional[str]:
    """Map a question bank section (English, Math, Reading...) to en/math."""
    return _translate(value, SECTION_MAP)


def normalize_test_module(value) -> Optional[str]:
    return _translate(value, TEST_MODULE_MAP)


def is_valid_answer_kind(value) -> bool:
    return value in ANSWER_KINDS
