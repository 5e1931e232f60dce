"""
Base class for corpus readers.
"""

import json
import logging
from abc import ABC, abstractmethod
from collections import Counter
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Iterator, Optional, Tuple

from ..errors import CorpusError

logger = logging.getLogger(__name__)


@dataclass
class SourceContext:
    """
    Provenance the normalizer needs that is not in the raw record itself.

    Single-file corpora fill the exam fields, the Bluebook reader fills the
    test fields. ``position`` is the 1-based index within the owning exam
    or test file.
    """
    source: str
    position: int = 0

    # Official practice exams
    exam_id: Any = None
    exam_name: Optional[str] = None
    first_question_id: Any = None
    questions_count: Any = None
    scraped_at: Optional[str] = None

    # Bluebook tests
    test_id: Optional[str] = None
    test_name: Optional[str] = None
    test_date: Optional[str] = None
    subject: Optional[str] = None
    module: Optional[str] = None
    vip: Any = None
    fetched_at: Optional[str] = None
    file_path: Optional[Path] = None


class BaseReader(ABC):
    """Base class for source-specific corpus readers."""

    def __init__(self, source_id: str, path: Path):
        self.source_id = source_id
        self.path = Path(path)
        self.stats = Counter()

    def load_json(self, path: Path) -> Any:
        """
        Parse a top-level corpus file.

        Raises:
            CorpusError: file missing, unreadable or not valid JSON
        """
        logger.info(f"Reading {self.source_id} corpus: {path}")
        try:
            with open(path, encoding='utf-8') as f:
                return json.load(f)
        except FileNotFoundError:
            raise CorpusError(self.source_id, path, 'file not found')
        except (OSError, UnicodeDecodeError) as e:
            raise CorpusError(self.source_id, path, str(e))
        except json.JSONDecodeError as e:
            raise CorpusError(self.source_id, path, f"invalid JSON: {e}")

    @abstractmethod
    def read(self) -> Iterator[Tuple[Dict, SourceContext]]:
        """
        Yield raw records with their source context.

        Raises:
            CorpusError: the corpus as a whole cannot be read
        """
        pass

    def __iter__(self):
        return self.read()
