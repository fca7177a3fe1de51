import hashlib
from typing import List

from .adapter import EmbeddingAdapter


class NoOpEmbeddingAdapter(EmbeddingAdapter):
    """Deterministic NoOp adapter for testing.

    It generates a pseudo-vector based on sha256(text), so it is stable across
    platforms as long as UTF-8 encoding is used.
    """

    def __init__(self, model_name: str = "noop-embedding", dimension: int = 384):
        super().__init__(model_name, dimension)

    def embed_batch(self, texts: List[str]) -> List[List[float]]:
        vectors: List[List[float]] = []
        for text in texts:
            h = hashlib.sha256(text.encode("utf-8")).digest()
            vectors.append([(h[i % len(h)] / 255.0) * 2 - 1 for i in range(self._dimension)])
        return vectors
