"""Schema creation and migration for the chunk store.

Layout:
- ``code_chunks``: chunk metadata plus the embedding as little-endian float32 bytes
- ``vec_index``: sqlite-vec ``vec0`` table keyed by the same rowid, cosine metric,
  partitioned on ``zero_norm`` so all-zero vectors never enter a KNN scan
- ``meta``: key/value pairs recording the dimension, metric and schema version

The store is bound to a single embedding dimension. Opening it with another
dimension fails fast and leaves the file untouched.
"""

from __future__ import annotations

from typing import List, Optional
import logging
import re
import sqlite3

from ..errors import SchemaMismatchError
from ..types import decode_embedding, encode_embedding, is_zero_vector, validate_dimension
from .connection import transaction

logger = logging.getLogger(__name__)

CHUNKS_TABLE = "code_chunks"
VEC_TABLE = "vec_index"
META_TABLE = "meta"

METRIC = "cosine"
SCHEMA_VERSION = "3"

ZERO_NORM_COLUMN = "zero_norm"
INSERT_INDEX_SQL = (
    f"INSERT INTO {VEC_TABLE}(rowid, embedding, {ZERO_NORM_COLUMN}) VALUES (?, ?, ?)"
)

# Trigger-based mirroring from earlier releases. Mirroring now happens in
# store.sync, so these would double-insert into vec_index.
LEGACY_TRIGGERS = (
    "code_chunks_after_insert",
    "code_chunks_after_update",
    "code_chunks_after_delete",
)

# Columns added after the first release; older tables get them via ALTER TABLE.
OPTIONAL_COLUMNS = (
    ("parent_path", "TEXT"),
    ("entity_name", "TEXT"),
)

_VEC_DIM_RE = re.compile(r"float\s*\[\s*(\d+)\s*\]", re.IGNORECASE)


def _table_exists(conn: sqlite3.Connection, name: str) -> bool:
    row = conn.execute(
        "SELECT 1 FROM sqlite_master WHERE type = 'table' AND name = ?", (name,)
    ).fetchone()
    return row is not None


def _read_meta(conn: sqlite3.Connection, key: str) -> Optional[str]:
    if not _table_exists(conn, META_TABLE):
        return None
    row = conn.execute(f"SELECT value FROM {META_TABLE} WHERE key = ?", (key,)).fetchone()
    return row[0] if row else None


def _write_meta(conn: sqlite3.Connection, key: str, value: str) -> None:
    conn.execute(
        f"INSERT OR REPLACE INTO {META_TABLE} (key, value) VALUES (?, ?)",
        (key, value),
    )


def existing_dimension(conn: sqlite3.Connection) -> Optional[int]:
    """Dimension the store was created with, or None for a fresh file.

    Prefers the ``meta`` record; falls back to the ``float[N]`` declaration
    of a vec_index table created without one.
    """
    recorded = _read_meta(conn, "dimension")
    if recorded is not None:
        return int(recorded)

    row = conn.execute(
        "SELECT sql FROM sqlite_master WHERE type = 'table' AND name = ?", (VEC_TABLE,)
    ).fetchone()
    if row and row[0]:
        match = _VEC_DIM_RE.search(row[0])
        if match:
            return int(match.group(1))
    return None


def _chunk_columns(conn: sqlite3.Connection) -> List[str]:
    return [r[1] for r in conn.execute(f"PRAGMA table_info({CHUNKS_TABLE})").fetchall()]


def _vec_is_partitioned(conn: sqlite3.Connection) -> bool:
    row = conn.execute(
        "SELECT sql FROM sqlite_master WHERE type = 'table' AND name = ?", (VEC_TABLE,)
    ).fetchone()
    return bool(row and row[0] and ZERO_NORM_COLUMN in row[0])


def _backfill_index(conn: sqlite3.Connection) -> int:
    rows = conn.execute(f"SELECT id, embedding FROM {CHUNKS_TABLE} ORDER BY id").fetchall()
    for chunk_id, blob in rows:
        zero = is_zero_vector(decode_embedding(blob))
        if zero:
            canonical = encode_embedding(decode_embedding(blob))
            if canonical != blob:
                conn.execute(f"UPDATE {CHUNKS_TABLE} SET embedding = ? WHERE id = ?", (canonical, chunk_id))
                blob = canonical
        conn.execute(INSERT_INDEX_SQL, (chunk_id, blob, int(zero)))
    return len(rows)


def ensure_schema(conn: sqlite3.Connection, dimension: int) -> None:
    """Create or migrate the store layout for ``dimension``. Idempotent."""
    validate_dimension(dimension)

    with transaction(conn):
        found = existing_dimension(conn)
        if found is not None and found != dimension:
            raise SchemaMismatchError(
                f"Vector index dimension mismatch: store={found} requested={dimension}",
                existing_dimension=found,
                requested_dimension=dimension,
            )
        found_metric = _read_meta(conn, "metric")
        if found_metric is not None and found_metric != METRIC:
            raise SchemaMismatchError(
                f"Vector index metric mismatch: store={found_metric} requested={METRIC}"
            )

        conn.execute(
            f"CREATE TABLE IF NOT EXISTS {META_TABLE} (key TEXT PRIMARY KEY, value TEXT NOT NULL)"
        )
        conn.execute(
            f"""
            CREATE TABLE IF NOT EXISTS {CHUNKS_TABLE} (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                file_name TEXT NOT NULL,
                file_path TEXT NOT NULL,
                chunk_text TEXT NOT NULL,
                inline_document TEXT,
                parent_path TEXT,
                entity_name TEXT,
                embedding BLOB NOT NULL
            )
            """
        )

        columns = _chunk_columns(conn)
        for name, decl in OPTIONAL_COLUMNS:
            if name not in columns:
                conn.execute(f"ALTER TABLE {CHUNKS_TABLE} ADD COLUMN {name} {decl}")
                logger.info(f"Added column {CHUNKS_TABLE}.{name}")

        for trigger in LEGACY_TRIGGERS:
            conn.execute(f"DROP TRIGGER IF EXISTS {trigger}")

        if _table_exists(conn, VEC_TABLE) and not _vec_is_partitioned(conn):
            # The index is derived data; rebuild it in the current layout.
            conn.execute(f"DROP TABLE {VEC_TABLE}")
            logger.info(f"Dropped {VEC_TABLE} without {ZERO_NORM_COLUMN} partition for rebuild")

        if not _table_exists(conn, VEC_TABLE):
            conn.execute(
                f"""
                CREATE VIRTUAL TABLE {VEC_TABLE} USING vec0(
                    embedding float[{dimension}] distance_metric={METRIC},
                    {ZERO_NORM_COLUMN} integer partition key
                )
                """
            )
            # Rows written before the index existed get their mirror now.
            backfilled = _backfill_index(conn)
            logger.info(
                f"Created {VEC_TABLE} (dimension={dimension}, metric={METRIC}, backfilled={backfilled})"
            )

        _write_meta(conn, "dimension", str(dimension))
        _write_meta(conn, "metric", METRIC)
        _write_meta(conn, "schema_version", SCHEMA_VERSION)


__all__ = [
    "CHUNKS_TABLE",
    "VEC_TABLE",
    "META_TABLE",
    "METRIC",
    "SCHEMA_VERSION",
    "LEGACY_TRIGGERS",
    "ZERO_NORM_COLUMN",
    "INSERT_INDEX_SQL",
    "ensure_schema",
    "existing_dimension",
]
