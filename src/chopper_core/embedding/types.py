from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import List, Optional


class EmbeddingFailurePolicy(str, Enum):
    """What indexing does with a chunk whose embedding could not be produced."""

    FAIL = "fail"  # raise EmbeddingGenerationError
    SKIP = "skip"  # drop the chunk
    ZERO = "zero"  # store an all-zero vector as a sentinel


@dataclass(frozen=True)
class EmbeddingOutcome:
    """Result of embedding one text: a vector or an error, never both."""

    vector: Optional[List[float]] = None
    error: Optional[str] = None

    def __post_init__(self) -> None:
        if (self.vector is None) == (self.error is None):
            raise ValueError("EmbeddingOutcome needs exactly one of vector or error")

    @property
    def ok(self) -> bool:
        return self.vector is not None

    @classmethod
    def success(cls, vector: List[float]) -> "EmbeddingOutcome":
        return cls(vector=list(vector))

    @classmethod
    def failure(cls, error: str) -> "EmbeddingOutcome":
        return cls(error=error or "unknown embedding error")
