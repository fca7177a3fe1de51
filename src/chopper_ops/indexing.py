"""Indexing operations: directory -> chunks -> embeddings -> chunk store."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Iterator, List, Optional, Union
import logging
import time

from chopper_core.chunking import ChunkDescriptor, iter_file_chunks
from chopper_core.config import ChopperConfig
from chopper_core.embedding import EmbeddingAdapter, EmbeddingFailurePolicy, resolve_embedder
from chopper_core.errors import ConfigError, EmbeddingGenerationError
from chopper_core.store import ChunkStore
from chopper_core.types import ChunkRecord, zero_embedding

logger = logging.getLogger(__name__)

DEFAULT_EMBED_BATCH = 32


@dataclass
class IndexResult:
    files_processed: int
    chunks_extracted: int
    chunks_indexed: int
    chunks_skipped: int
    chunks_zero_filled: int
    batches_committed: int
    duration_ms: float
    db_path: Optional[str] = None


@dataclass
class _Counters:
    files: int = 0
    extracted: int = 0
    skipped: int = 0
    zero_filled: int = 0


def _to_record(chunk: ChunkDescriptor, vector: List[float]) -> ChunkRecord:
    return ChunkRecord(
        file_name=Path(chunk.file_path).name,
        file_path=chunk.file_path,
        chunk_text=chunk.content,
        inline_document=chunk.documentation or None,
        parent_path=chunk.parent_path,
        entity_name=chunk.entity_name,
        embedding=vector,
    )


def _embed_pending(
    pending: List[ChunkDescriptor],
    embedder: EmbeddingAdapter,
    policy: EmbeddingFailurePolicy,
    counters: _Counters,
) -> Iterator[ChunkRecord]:
    outcomes = embedder.embed_outcomes([c.content for c in pending])
    for chunk, outcome in zip(pending, outcomes):
        if outcome.ok:
            yield _to_record(chunk, outcome.vector)
            continue

        where = f"{chunk.file_path}:{chunk.start_line}"
        if policy is EmbeddingFailurePolicy.FAIL:
            raise EmbeddingGenerationError(
                f"Embedding failed for {where}: {outcome.error}", file_path=chunk.file_path
            )
        if policy is EmbeddingFailurePolicy.SKIP:
            counters.skipped += 1
            logger.warning(f"Skipping chunk {where}: {outcome.error}")
            continue
        counters.zero_filled += 1
        logger.warning(f"Storing zero vector for chunk {where}: {outcome.error}")
        yield _to_record(chunk, zero_embedding(embedder.dimension))


def _iter_records(
    root: Path,
    config: ChopperConfig,
    embedder: EmbeddingAdapter,
    counters: _Counters,
    embed_batch: int,
) -> Iterator[ChunkRecord]:
    options = config.chunking.to_options()
    policy = config.embedding.on_failure
    pending: List[ChunkDescriptor] = []

    for _, chunks in iter_file_chunks(root, options):
        counters.files += 1
        for chunk in chunks:
            counters.extracted += 1
            pending.append(chunk)
            if len(pending) >= embed_batch:
                yield from _embed_pending(pending, embedder, policy, counters)
                pending = []

    if pending:
        yield from _embed_pending(pending, embedder, policy, counters)


def index_directory(
    root: Union[str, Path],
    config: ChopperConfig,
    *,
    store: ChunkStore,
    embedder: Optional[EmbeddingAdapter] = None,
    embed_batch: int = DEFAULT_EMBED_BATCH,
) -> IndexResult:
    """Chunk, embed and store every eligible file under ``root``.

    Records stream into ``store.bulk_insert`` so at most one batch is held in
    memory. Batches committed before a failure stay committed; a failure after
    the first commit, including an embedding failure under the ``fail`` policy,
    surfaces as ``PartialBatchFailure``.
    """
    t0 = time.perf_counter()
    root_path = Path(root)
    if not root_path.exists():
        raise FileNotFoundError(f"Directory not found: {root_path}")

    embedder = embedder or resolve_embedder(config.embedder_config())
    if embedder.dimension != store.dimension:
        raise ConfigError(
            f"Embedder dimension {embedder.dimension} does not match store dimension {store.dimension}"
        )

    counters = _Counters()
    records = _iter_records(root_path, config, embedder, counters, embed_batch)
    bulk = store.bulk_insert(records, batch_size=config.store.batch_size)

    duration_ms = (time.perf_counter() - t0) * 1000
    logger.info(
        f"Indexed {bulk.inserted} chunk(s) from {counters.files} file(s) in {duration_ms:.1f}ms "
        f"(skipped={counters.skipped}, zero_filled={counters.zero_filled})"
    )
    return IndexResult(
        files_processed=counters.files,
        chunks_extracted=counters.extracted,
        chunks_indexed=bulk.inserted,
        chunks_skipped=counters.skipped,
        chunks_zero_filled=counters.zero_filled,
        batches_committed=bulk.batches_committed,
        duration_ms=duration_ms,
        db_path=store.path,
    )


__all__ = ["IndexResult", "index_directory"]
