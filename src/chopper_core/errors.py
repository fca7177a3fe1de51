"""Exception hierarchy for chopper-grep.

Every error raised by the core derives from ``ChopperError`` so callers can
catch the whole family at the CLI boundary. Validation errors additionally
derive from ``ValueError``.
"""

from __future__ import annotations

from typing import List, Optional


class ChopperError(Exception):
    """Base exception for chopper-grep errors."""


class ConfigError(ChopperError):
    """Raised when configuration cannot be loaded or validated."""


class InvalidArgumentError(ChopperError, ValueError):
    """Raised when an operation receives an argument outside its contract."""


class DimensionMismatchError(ChopperError, ValueError):
    """Raised when an embedding does not have exactly the configured dimension."""

    def __init__(self, expected: int, actual: int, *, context: str = "embedding"):
        super().__init__(f"{context} must have length {expected}, got {actual}")
        self.expected = expected
        self.actual = actual
        self.context = context


class SchemaMismatchError(ChopperError):
    """Raised when an existing store was created with an incompatible layout."""

    def __init__(self, message: str, *, existing_dimension: Optional[int] = None,
                 requested_dimension: Optional[int] = None):
        super().__init__(message)
        self.existing_dimension = existing_dimension
        self.requested_dimension = requested_dimension


class StorageError(ChopperError):
    """Base class for failures of the underlying SQLite storage."""


class StorageUnavailableError(StorageError):
    """The database file or the vector extension cannot be opened."""


class StorageBusyError(StorageError):
    """The database is locked by another connection."""


class ChunkNotFoundError(ChopperError, KeyError):
    """Raised when a chunk id does not exist in the store."""

    def __init__(self, chunk_id: int):
        super().__init__(f"chunk {chunk_id} not found")
        self.chunk_id = chunk_id

    def __str__(self) -> str:
        return str(self.args[0])


class EmbeddingGenerationError(ChopperError):
    """Raised when the embedding collaborator fails and the policy is ``fail``."""

    def __init__(self, message: str, *, file_path: Optional[str] = None):
        super().__init__(message)
        self.file_path = file_path


class PartialBatchFailure(ChopperError):
    """A bulk insert batch failed after earlier batches were committed.

    Committed batches are retained. ``committed_ids`` lists the identities of
    every record that was committed before the failing batch.
    """

    def __init__(
        self,
        *,
        failed_batch: int,
        batches_committed: int,
        committed_ids: List[int],
        cause: BaseException,
    ):
        super().__init__(
            f"batch {failed_batch} failed after {batches_committed} committed batch(es) "
            f"({len(committed_ids)} records kept): {cause}"
        )
        self.failed_batch = failed_batch
        self.batches_committed = batches_committed
        self.committed_ids = committed_ids
        self.cause = cause


__all__ = [
    "ChopperError",
    "ConfigError",
    "InvalidArgumentError",
    "DimensionMismatchError",
    "SchemaMismatchError",
    "StorageError",
    "StorageUnavailableError",
    "StorageBusyError",
    "ChunkNotFoundError",
    "EmbeddingGenerationError",
    "PartialBatchFailure",
]
