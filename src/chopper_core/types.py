from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List, Optional, Sequence
import math
import struct

from .errors import DimensionMismatchError, InvalidArgumentError

DEFAULT_EMBEDDING_DIM = 384
# Distance reported between a zero vector and anything else.
ZERO_VECTOR_DISTANCE = 1.0


@dataclass
class ChunkRecord:
    """A stored fragment of source text together with its embedding."""

    file_name: str
    file_path: str
    chunk_text: str
    embedding: List[float] = field(default_factory=list)
    inline_document: Optional[str] = None
    parent_path: Optional[str] = None
    entity_name: Optional[str] = None
    id: Optional[int] = None  # assigned by the store on insert


@dataclass(frozen=True)
class SearchResult:
    """A ranked match: the chunk fields plus its cosine distance to the query."""

    id: int
    file_name: str
    file_path: str
    chunk_text: str
    inline_document: Optional[str]
    parent_path: Optional[str]
    entity_name: Optional[str]
    distance: float

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def validate_dimension(dimension: int) -> int:
    if isinstance(dimension, bool) or not isinstance(dimension, int) or dimension <= 0:
        raise InvalidArgumentError(f"dimension must be a positive integer, got {dimension!r}")
    return dimension


def ensure_embedding_dim(vector: Sequence[float], dimension: int, *, context: str = "embedding") -> None:
    """Fail unless ``vector`` has exactly ``dimension`` components.

    Vectors are never truncated or padded.
    """
    if vector is None:
        raise DimensionMismatchError(dimension, 0, context=context)
    if len(vector) != dimension:
        raise DimensionMismatchError(dimension, len(vector), context=context)


def encode_embedding(vector: Sequence[float]) -> bytes:
    """Pack a vector as little-endian float32, the on-disk and vec0 wire format.

    Zero vectors are written as +0.0 throughout so they compare equal as bytes.
    """
    if is_zero_vector(vector):
        vector = zero_embedding(len(vector))
    try:
        return struct.pack(f"<{len(vector)}f", *vector)
    except struct.error as e:
        raise InvalidArgumentError(f"embedding contains non-numeric values: {e}") from e


def decode_embedding(payload: bytes) -> List[float]:
    if len(payload) % 4:
        raise InvalidArgumentError(f"embedding payload length {len(payload)} is not a multiple of 4")
    return list(struct.unpack(f"<{len(payload) // 4}f", payload))


def zero_embedding(dimension: int) -> List[float]:
    return [0.0] * dimension


def is_zero_vector(vector: Sequence[float]) -> bool:
    """True when every component is zero; cosine distance is undefined for such vectors."""
    return not any(vector)


def cosine_distance(a: Sequence[float], b: Sequence[float]) -> float:
    """Reference cosine distance, used to cross-check index results."""
    dot = sum(x * y for x, y in zip(a, b))
    na = math.sqrt(sum(x * x for x in a))
    nb = math.sqrt(sum(y * y for y in b))
    if na == 0 or nb == 0:
        return ZERO_VECTOR_DISTANCE
    return 1.0 - dot / (na * nb)


__all__ = [
    "DEFAULT_EMBEDDING_DIM",
    "ZERO_VECTOR_DISTANCE",
    "ChunkRecord",
    "SearchResult",
    "validate_dimension",
    "ensure_embedding_dim",
    "encode_embedding",
    "decode_embedding",
    "zero_embedding",
    "is_zero_vector",
    "cosine_distance",
]
