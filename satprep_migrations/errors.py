"""
Exceptions raised by the migration pipeline.

Record- and file-level problems are counted by readers and normalizers and
never raised; only source-level and transactional failures end up here.
"""


class MigrationError(Exception):
    """Base class for pipeline failures that abort a run."""


class ConfigError(MigrationError):
    """Missing or invalid configuration (e.g. database credentials)."""


class CorpusError(MigrationError):
    """A source corpus (or its manifest) could not be read or parsed."""

    def __init__(self, source: str, path, reason: str):
        self.source = source
        self.path = path
        self.reason = reason
        super().__init__(f"{source}: cannot read corpus {path}: {reason}")


class LoadError(MigrationError):
    """A batch insert failed and its transaction was rolled back."""

    def __init__(self, table: str, batch_number: int, cause: Exception):
        self.table = table
        self.batch_number = batch_number
        self.cause = cause
        super().__init__(
            f"Batch {batch_number} into {table} failed, transaction rolled back: {cause}"
        )
