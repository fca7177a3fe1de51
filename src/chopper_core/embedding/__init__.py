from .adapter import EmbeddingAdapter
from .factory import resolve_embedder
from .noop import NoOpEmbeddingAdapter
from .types import EmbeddingFailurePolicy, EmbeddingOutcome

__all__ = [
    "EmbeddingAdapter",
    "EmbeddingFailurePolicy",
    "EmbeddingOutcome",
    "NoOpEmbeddingAdapter",
    "resolve_embedder",
]
