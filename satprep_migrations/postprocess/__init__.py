"""
Data-quality post-processing of exported table CSVs.
"""

from .fix_data import (
    FixReport,
    deduplicate,
    export_source_csv,
    infer_answer_types,
    read_rows,
    write_rows,
)

__all__ = [
    'FixReport',
    'deduplicate',
    'export_source_csv',
    'infer_answer_types',
    'read_rows',
    'write_rows',
]
