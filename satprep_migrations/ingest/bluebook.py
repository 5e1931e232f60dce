#!/usr/bin/env python3
"""
Bluebook practice test corpus reader.

The corpus is a directory of per-test JSON files plus an index manifest::

    bluebookplus_tests_output/
        index.json
        math/<test files>.json
        english/<test files>.json

The manifest groups tests by subject; each entry names up to two module
files::

    {"summary": {"totalTests": 120, "successfulTests": 118},
     "subjects": {"Math": [{"testName": "March 2025 SAT", "date": "2025-03-01",
                            "vip": 1, "module1": "march_m1.json",
                            "module2": "march_m2.json"}, ...],
                  "English": [...]}}

Each member file holds a ``metadata`` object and a ``questions`` array. A
member file that is missing or malformed is logged and skipped; its
siblings are still read.
"""

import json
import logging
from pathlib import Path
from typing import Dict, Iterator, List, Optional, Tuple

from .base import BaseReader, SourceContext
from ..errors import CorpusError

logger = logging.getLogger(__name__)

MODULE_KEYS = ('module1', 'module2')


class BluebookReader(BaseReader):
    """Reads the manifest, then every member test file it lists."""

    def __init__(self, directory: Path, index_path: Optional[Path] = None):
        super().__init__('bluebook', directory)
        self.index_path = Path(index_path) if index_path else self.path / 'index.json'

    def load_manifest(self) -> Dict[str, List[Dict]]:
        """Parse the index manifest and return its subject -> tests mapping."""
        manifest = self.load_json(self.index_path)

        if not isinstance(manifest, dict) or not isinstance(manifest.get('subjects'), dict):
            raise CorpusError(self.source_id, self.index_path, 'missing subjects mapping')

        summary = manifest.get('summary') or {}
        logger.info(f"  Found {summary.get('totalTests', 0)} total tests")
        logger.info(f"  Successful tests: {summary.get('successfulTests', 0)}")

        return manifest['subjects']

    def load_member(self, file_path: Path) -> Optional[Dict]:
        """
        Parse one member test file.

        Returns None (and counts the file as skipped) when it cannot be used.
        """
        try:
            with open(file_path, encoding='utf-8') as f:
                data = json.load(f)
        except FileNotFoundError:
            logger.error(f"  Test file not found: {file_path}")
            self.stats['files_skipped'] += 1
            return None
        except (OSError, UnicodeDecodeError, json.JSONDecodeError) as e:
            logger.error(f"  Failed to read/parse {file_path}: {e}")
            self.stats['files_skipped'] += 1
            return None

        if not isinstance(data, dict) or not isinstance(data.get('questions'), list):
            logger.warning(f"  No questions found in {file_path}")
            self.stats['files_skipped'] += 1
            return None

        self.stats['files_read'] += 1
        return data

    def read(self) -> Iterator[Tuple[Dict, SourceContext]]:
        subjects = self.load_manifest()

        for subject, tests in subjects.items():
            if not isinstance(tests, list):
                logger.warning(f"  Subject {subject} has no test list, skipping")
                continue

            subject_dir = self.path / str(subject).lower()
            logger.info(f"  Processing {len(tests)} {subject} tests")

            for test in tests:
                if not isinstance(test, dict):
                    self.stats['tests_skipped'] += 1
                    continue

                for module in MODULE_KEYS:
                    file_name = test.get(module)
                    if not file_name:
                        continue

                    file_path = subject_dir / file_name
                    logger.debug(f"  Processing file: {file_path}")
                    data = self.load_member(file_path)
                    if data is None:
                        continue

                    metadata = data.get('metadata')
                    if not isinstance(metadata, dict):
                        metadata = {}

                    for i, question in enumerate(data['questions']):
                        self.stats['records_read'] += 1
                        yield question, SourceContext(
                            source=self.source_id,
                            position=i + 1,
                            test_id=metadata.get('testId'),
                            test_name=test.get('testName'),
                            test_date=test.get('date'),
                            subject=subject,
                            module=module,
                            vip=test.get('vip'),
                            fetched_at=metadata.get('fetchedAt'),
                            file_path=file_path,
                        )
