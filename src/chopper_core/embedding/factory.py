from __future__ import annotations

import importlib.util
from typing import Any, Dict

from .adapter import EmbeddingAdapter
from .noop import NoOpEmbeddingAdapter


def resolve_embedder(config: Dict[str, Any]) -> EmbeddingAdapter:
    """Resolve embedding adapter from configuration."""

    provider = str(config.get("provider", "noop")).strip().lower()
    dimension = int(config.get("dimension", 384))
    options = config.get("options")
    merged = dict(options) if isinstance(options, dict) else {}

    if provider == "noop":
        model_name = str(config.get("model") or "noop-embedding").strip()
        return NoOpEmbeddingAdapter(model_name=model_name, dimension=dimension)

    if provider in {"sentence-transformers", "sentence_transformers", "huggingface"}:
        # Fail fast on a missing library; the model itself loads lazily.
        if importlib.util.find_spec("sentence_transformers") is None:
            raise ValueError(
                "sentence-transformers adapter not available. "
                "Install with: pip install 'chopper-grep[embeddings]'"
            )

        from .sentence_transformers_adapter import DEFAULT_MODEL, SentenceTransformersEmbeddingAdapter

        model_name = str(config.get("model") or DEFAULT_MODEL).strip()
        device = merged.get("device")
        return SentenceTransformersEmbeddingAdapter(
            model_name=model_name,
            dimension=dimension,
            device=str(device) if device is not None else None,
            batch_size=int(merged.get("batch_size", 32)),
            normalize_embeddings=bool(merged.get("normalize_embeddings", True)),
        )

    raise ValueError(f"Unknown embedding provider: {provider}")
