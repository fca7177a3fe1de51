from __future__ import annotations

from abc import ABC, abstractmethod
from typing import List
import logging

from .types import EmbeddingOutcome

logger = logging.getLogger(__name__)


class EmbeddingAdapter(ABC):
    """Abstract base class for embedding providers."""

    def __init__(self, model_name: str, dimension: int):
        if not model_name:
            raise ValueError("model_name must be non-empty")
        if dimension <= 0:
            raise ValueError("dimension must be > 0")
        self._model_name = model_name
        self._dimension = dimension

    @property
    def model_name(self) -> str:
        return self._model_name

    @property
    def dimension(self) -> int:
        return self._dimension

    @abstractmethod
    def embed_batch(self, texts: List[str]) -> List[List[float]]:
        """Generate embeddings for a batch of texts. May raise."""
        raise NotImplementedError

    def embed_outcomes(self, texts: List[str]) -> List[EmbeddingOutcome]:
        """Embed ``texts`` without raising.

        A failed batch is retried text by text so one bad input does not
        take the others down. Vectors of the wrong length are failures.
        """
        if not texts:
            return []
        try:
            vectors = self.embed_batch(list(texts))
            if len(vectors) != len(texts):
                raise RuntimeError(
                    f"embedding count {len(vectors)} does not match input count {len(texts)}"
                )
            return [self._check(v) for v in vectors]
        except Exception as e:
            if len(texts) == 1:
                return [EmbeddingOutcome.failure(f"{type(e).__name__}: {e}")]
            logger.warning(f"Batch embedding failed ({e}); retrying {len(texts)} texts individually")

        outcomes: List[EmbeddingOutcome] = []
        for text in texts:
            try:
                vectors = self.embed_batch([text])
                if len(vectors) != 1:
                    raise RuntimeError(f"expected 1 embedding, got {len(vectors)}")
                outcomes.append(self._check(vectors[0]))
            except Exception as e:
                outcomes.append(EmbeddingOutcome.failure(f"{type(e).__name__}: {e}"))
        return outcomes

    def _check(self, vector) -> EmbeddingOutcome:
        if vector is None:
            return EmbeddingOutcome.failure("embedding provider returned no vector")
        values = [float(x) for x in vector]
        if len(values) != self._dimension:
            return EmbeddingOutcome.failure(
                f"embedding must have length {self._dimension}, got {len(values)} "
                f"(model={self._model_name!r})"
            )
        return EmbeddingOutcome.success(values)
