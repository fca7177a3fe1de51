"""Embedding-indexed chunk store.

``ChunkStore`` owns one SQLite connection for its lifetime. Use
:func:`open_store` to obtain one; it creates or migrates the schema before
returning. The store is a context manager and releases the connection
exactly once.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from itertools import count, islice
from pathlib import Path
from typing import Any, Iterable, Iterator, List, Optional, Sequence, Tuple, Union
import logging
import sqlite3

from ..errors import (
    ChunkNotFoundError,
    InvalidArgumentError,
    PartialBatchFailure,
    StorageUnavailableError,
)
from ..types import (
    DEFAULT_EMBEDDING_DIM,
    ZERO_VECTOR_DISTANCE,
    ChunkRecord,
    SearchResult,
    decode_embedding,
    encode_embedding,
    ensure_embedding_dim,
    is_zero_vector,
    validate_dimension,
    zero_embedding,
)
from . import sync
from .connection import open_connection, transaction, translate_sqlite_error
from .schema import CHUNKS_TABLE, VEC_TABLE, ZERO_NORM_COLUMN, ensure_schema

logger = logging.getLogger(__name__)

DEFAULT_BATCH_SIZE = 500
DEFAULT_TOP_K = 5
# sqlite-vec refuses KNN queries with k above this value.
KNN_MAX_K = 4096

_CHUNK_COLUMNS = "id, file_name, file_path, chunk_text, inline_document, parent_path, entity_name"


@dataclass
class BulkInsertResult:
    inserted_ids: List[int] = field(default_factory=list)
    batches_committed: int = 0

    @property
    def inserted(self) -> int:
        return len(self.inserted_ids)


@dataclass
class ConsistencyReport:
    chunk_count: int
    index_count: int
    orphaned_index_ids: List[int]
    unindexed_chunk_ids: List[int]

    @property
    def ok(self) -> bool:
        return not self.orphaned_index_ids and not self.unindexed_chunk_ids


def _batches(records: Iterable[ChunkRecord], size: int) -> Iterator[List[ChunkRecord]]:
    it = iter(records)
    while True:
        batch = list(islice(it, size))
        if not batch:
            return
        yield batch


class ChunkStore:
    """Chunk metadata and its vector index, kept in lockstep."""

    def __init__(self, conn: sqlite3.Connection, *, dimension: int, path: Optional[str] = None):
        self._conn: Optional[sqlite3.Connection] = conn
        self._dimension = validate_dimension(dimension)
        self._path = path

    @property
    def dimension(self) -> int:
        return self._dimension

    @property
    def path(self) -> Optional[str]:
        return self._path

    @property
    def closed(self) -> bool:
        return self._conn is None

    @property
    def connection(self) -> sqlite3.Connection:
        return self._require_conn()

    def close(self) -> None:
        if self._conn is None:
            return
        conn, self._conn = self._conn, None
        conn.close()
        logger.debug(f"Closed chunk store {self._path}")

    def __enter__(self) -> "ChunkStore":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def _require_conn(self) -> sqlite3.Connection:
        if self._conn is None:
            raise StorageUnavailableError("chunk store is closed")
        return self._conn

    def _fetch(self, sql: str, params: Sequence[Any] = ()) -> List[Tuple[Any, ...]]:
        conn = self._require_conn()
        try:
            return conn.execute(sql, tuple(params)).fetchall()
        except sqlite3.Error as e:
            raise translate_sqlite_error(e) from e

    # -- ingestion -----------------------------------------------------------

    def insert_single(self, record: ChunkRecord) -> int:
        """Insert one chunk and its index entry; returns the new id."""
        ensure_embedding_dim(record.embedding, self._dimension)
        payload = encode_embedding(record.embedding)
        with transaction(self._require_conn()) as conn:
            chunk_id = sync.insert_chunk(conn, record, payload)
        record.id = chunk_id
        return chunk_id

    def bulk_insert(
        self,
        records: Iterable[ChunkRecord],
        batch_size: int = DEFAULT_BATCH_SIZE,
    ) -> BulkInsertResult:
        """Insert ``records`` in consecutive atomic batches of at most ``batch_size``.

        Each batch is validated in full and then committed as one transaction.
        Batches are independent: if batch N fails, batches before it stay
        committed. A failure in the first batch re-raises the underlying
        error; a later failure raises ``PartialBatchFailure`` carrying the ids
        already committed. An exception raised while drawing from ``records``
        is a failure of the batch being filled.
        """
        if isinstance(batch_size, bool) or not isinstance(batch_size, int) or batch_size <= 0:
            raise InvalidArgumentError(f"batch_size must be a positive integer, got {batch_size!r}")

        conn = self._require_conn()
        result = BulkInsertResult()
        batches = _batches(records, batch_size)

        for batch_no in count():
            batch: List[ChunkRecord] = []
            try:
                # Errors raised by the input iterable count against this batch.
                batch = next(batches, [])
                if not batch:
                    break
                payloads = []
                for record in batch:
                    ensure_embedding_dim(record.embedding, self._dimension)
                    payloads.append(encode_embedding(record.embedding))

                batch_ids: List[int] = []
                with transaction(conn):
                    for record, payload in zip(batch, payloads):
                        batch_ids.append(sync.insert_chunk(conn, record, payload))
            except Exception as e:
                logger.error(
                    f"Bulk insert batch {batch_no} ({len(batch)} records) failed; "
                    f"{result.batches_committed} batch(es) already committed: {e}"
                )
                if result.batches_committed == 0:
                    raise
                raise PartialBatchFailure(
                    failed_batch=batch_no,
                    batches_committed=result.batches_committed,
                    committed_ids=list(result.inserted_ids),
                    cause=e,
                ) from e

            for record, chunk_id in zip(batch, batch_ids):
                record.id = chunk_id
            result.inserted_ids.extend(batch_ids)
            result.batches_committed += 1
            logger.debug(f"Committed batch {batch_no} ({len(batch_ids)} records)")

        return result

    # -- storage-level mutations ---------------------------------------------

    def replace(self, chunk_id: int, record: ChunkRecord) -> None:
        """Replace every field of an existing chunk, including its embedding."""
        ensure_embedding_dim(record.embedding, self._dimension)
        payload = encode_embedding(record.embedding)
        with transaction(self._require_conn()) as conn:
            if not sync.replace_chunk(conn, chunk_id, record, payload):
                raise ChunkNotFoundError(chunk_id)
        record.id = chunk_id

    def delete(self, chunk_id: int) -> bool:
        """Delete a chunk and its index entry. Returns False if it did not exist."""
        with transaction(self._require_conn()) as conn:
            return sync.delete_chunk(conn, chunk_id)

    # -- reads ---------------------------------------------------------------

    def get(self, chunk_id: int) -> Optional[ChunkRecord]:
        rows = self._fetch(
            f"SELECT {_CHUNK_COLUMNS}, embedding FROM {CHUNKS_TABLE} WHERE id = ?",
            (chunk_id,),
        )
        if not rows:
            return None
        cid, file_name, file_path, chunk_text, inline_document, parent_path, entity_name, blob = rows[0]
        return ChunkRecord(
            id=int(cid),
            file_name=file_name,
            file_path=file_path,
            chunk_text=chunk_text,
            inline_document=inline_document,
            parent_path=parent_path,
            entity_name=entity_name,
            embedding=decode_embedding(blob),
        )

    def count(self) -> int:
        return int(self._fetch(f"SELECT COUNT(*) FROM {CHUNKS_TABLE}")[0][0])

    def index_count(self) -> int:
        return int(self._fetch(f"SELECT COUNT(*) FROM {VEC_TABLE}")[0][0])

    def index_ids(self) -> List[int]:
        return [int(r[0]) for r in self._fetch(f"SELECT rowid FROM {VEC_TABLE} ORDER BY rowid")]

    def chunk_ids(self) -> List[int]:
        return [int(r[0]) for r in self._fetch(f"SELECT id FROM {CHUNKS_TABLE} ORDER BY id")]

    def check_consistency(self) -> ConsistencyReport:
        chunk_ids = set(self.chunk_ids())
        index_ids = set(self.index_ids())
        return ConsistencyReport(
            chunk_count=len(chunk_ids),
            index_count=len(index_ids),
            orphaned_index_ids=sorted(index_ids - chunk_ids),
            unindexed_chunk_ids=sorted(chunk_ids - index_ids),
        )

    def search(self, query_embedding: Sequence[float], k: int = DEFAULT_TOP_K) -> List[SearchResult]:
        """Return up to ``k`` chunks closest to ``query_embedding`` by cosine distance.

        Results are ordered by ascending distance, ties by id. ``k <= 0``
        returns an empty list. Index hits whose chunk row is gone are dropped.
        Cosine distance is undefined for all-zero vectors; a zero vector on
        either side is reported at ``ZERO_VECTOR_DISTANCE``.
        """
        ensure_embedding_dim(query_embedding, self._dimension, context="query embedding")
        if k <= 0:
            return []
        if k > KNN_MAX_K:
            raise InvalidArgumentError(f"k must be <= {KNN_MAX_K}, got {k}")

        payload = encode_embedding(query_embedding)
        if is_zero_vector(query_embedding):
            rows = self._fetch(f"SELECT id FROM {CHUNKS_TABLE} ORDER BY id LIMIT ?", (int(k),))
            hits = [(int(r[0]), ZERO_VECTOR_DISTANCE) for r in rows]
        else:
            hits = self._nearest(payload, k) + [
                (chunk_id, ZERO_VECTOR_DISTANCE) for chunk_id in self._zero_vector_ids(k)
            ]
            hits.sort(key=lambda h: (h[1], h[0]))
        return self._with_metadata(hits, k)

    def _knn(self, payload: bytes, fetch: int) -> List[Tuple[int, float]]:
        rows = self._fetch(
            f"""
            SELECT rowid, distance
            FROM {VEC_TABLE}
            WHERE embedding MATCH ? AND k = ? AND {ZERO_NORM_COLUMN} = 0
            """,
            (payload, int(fetch)),
        )
        hits = [
            (int(r[0]), ZERO_VECTOR_DISTANCE if r[1] is None else float(r[1]))
            for r in rows
        ]
        hits.sort(key=lambda h: (h[1], h[0]))
        return hits

    def _nearest(self, payload: bytes, k: int) -> List[Tuple[int, float]]:
        """Nearest non-zero index entries, including every entry tied with the k-th.

        vec0 picks arbitrarily among rows tied at its k-th distance, so the
        fetch widens until the last fetched distance lies strictly beyond
        the k-th one or the index is exhausted.
        """
        fetch = k
        while True:
            hits = self._knn(payload, fetch)
            if len(hits) < fetch or fetch >= KNN_MAX_K or hits[-1][1] > hits[k - 1][1]:
                return hits
            fetch = min(fetch * 2, KNN_MAX_K)

    def _zero_vector_ids(self, limit: int) -> List[int]:
        zero = encode_embedding(zero_embedding(self._dimension))
        rows = self._fetch(
            f"SELECT id FROM {CHUNKS_TABLE} WHERE embedding = ? ORDER BY id LIMIT ?",
            (zero, int(limit)),
        )
        return [int(r[0]) for r in rows]

    def _with_metadata(self, hits: List[Tuple[int, float]], k: int) -> List[SearchResult]:
        if not hits:
            return []
        ids = [chunk_id for chunk_id, _ in hits]
        rows = self._fetch(
            f"SELECT {_CHUNK_COLUMNS} FROM {CHUNKS_TABLE} WHERE id IN ({','.join('?' * len(ids))})",
            ids,
        )
        by_id = {int(r[0]): r for r in rows}

        results: List[SearchResult] = []
        for chunk_id, distance in hits:
            row = by_id.get(chunk_id)
            if row is None:
                continue  # deleted after the index lookup
            results.append(
                SearchResult(
                    id=chunk_id,
                    file_name=row[1],
                    file_path=row[2],
                    chunk_text=row[3],
                    inline_document=row[4],
                    parent_path=row[5],
                    entity_name=row[6],
                    distance=distance,
                )
            )
            if len(results) == k:
                break
        return results


def open_store(
    path: Union[str, Path],
    dimension: int = DEFAULT_EMBEDDING_DIM,
    *,
    busy_timeout_ms: int = 5000,
) -> ChunkStore:
    """Open (creating if needed) the chunk store at ``path``."""
    validate_dimension(dimension)
    conn = open_connection(path, busy_timeout_ms=busy_timeout_ms)
    try:
        ensure_schema(conn, dimension)
    except BaseException:
        conn.close()
        raise
    return ChunkStore(conn, dimension=dimension, path=str(path))


__all__ = [
    "DEFAULT_BATCH_SIZE",
    "DEFAULT_TOP_K",
    "KNN_MAX_K",
    "BulkInsertResult",
    "ConsistencyReport",
    "ChunkStore",
    "open_store",
]
