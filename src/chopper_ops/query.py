"""Query operations: text -> embedding -> k nearest chunks."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Optional
import time

from chopper_core.config import ChopperConfig
from chopper_core.embedding import EmbeddingAdapter, resolve_embedder
from chopper_core.errors import EmbeddingGenerationError
from chopper_core.store import DEFAULT_TOP_K, ChunkStore
from chopper_core.types import SearchResult


@dataclass
class QueryResult:
    query: str
    k: int
    results: List[SearchResult] = field(default_factory=list)
    duration_ms: float = 0.0


def query_text(
    text: str,
    config: ChopperConfig,
    *,
    store: ChunkStore,
    k: int = DEFAULT_TOP_K,
    embedder: Optional[EmbeddingAdapter] = None,
) -> QueryResult:
    """Embed ``text`` and return the ``k`` closest stored chunks.

    A failed query embedding always raises; the failure policy only applies
    to indexing.
    """
    if not text or not text.strip():
        raise ValueError("query text must be non-empty")
    t0 = time.perf_counter()

    embedder = embedder or resolve_embedder(config.embedder_config())
    outcome = embedder.embed_outcomes([text])[0]
    if not outcome.ok:
        raise EmbeddingGenerationError(f"Query embedding failed: {outcome.error}")

    results = store.search(outcome.vector, k)
    return QueryResult(
        query=text,
        k=k,
        results=results,
        duration_ms=(time.perf_counter() - t0) * 1000,
    )


__all__ = ["QueryResult", "query_text"]
