"""sentence-transformers embedding adapter (optional dependency)."""

from typing import Any, List, Optional
import importlib
import logging

from .adapter import EmbeddingAdapter

logger = logging.getLogger(__name__)

DEFAULT_MODEL = "sentence-transformers/all-MiniLM-L6-v2"


class SentenceTransformersEmbeddingAdapter(EmbeddingAdapter):
    """Local embeddings with mean pooling and L2 normalization.

    The model is loaded on first use; constructing the adapter never
    downloads anything.
    """

    def __init__(
        self,
        model_name: str = DEFAULT_MODEL,
        dimension: int = 384,
        device: Optional[str] = None,
        batch_size: int = 32,
        normalize_embeddings: bool = True,
    ) -> None:
        super().__init__(model_name, dimension)
        if batch_size <= 0:
            raise ValueError("batch_size must be > 0")
        self._device = device
        self._batch_size = batch_size
        self._normalize = normalize_embeddings
        self._model: Optional[Any] = None

    def _ensure_model(self) -> Any:
        if self._model is not None:
            return self._model

        try:
            module = importlib.import_module("sentence_transformers")
        except ImportError as e:
            raise ImportError(
                "sentence-transformers package required for local embeddings. "
                "Install with: pip install 'chopper-grep[embeddings]'"
            ) from e

        logger.info(f"Loading embedding model {self.model_name}")
        self._model = module.SentenceTransformer(self.model_name, device=self._device)
        return self._model

    def embed_batch(self, texts: List[str]) -> List[List[float]]:
        model = self._ensure_model()
        try:
            encoded = model.encode(
                texts,
                batch_size=self._batch_size,
                normalize_embeddings=self._normalize,
                convert_to_numpy=True,
                show_progress_bar=False,
            )
        except Exception as e:
            raise RuntimeError(f"sentence-transformers embedding failed: {e}") from e
        return [[float(x) for x in row] for row in encoded]
