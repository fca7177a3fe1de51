"""Metadata writes and their vector-index mirror.

Every function here writes ``code_chunks`` and ``vec_index`` together and
must be called inside :func:`chopper_core.store.connection.transaction`.
Nothing else in the package writes either table, so after any committed
transaction each chunk row has exactly one index entry and vice versa.
"""

from __future__ import annotations

from enum import Enum
from typing import Optional
import sqlite3

from ..types import ChunkRecord, decode_embedding, is_zero_vector
from .schema import CHUNKS_TABLE, INSERT_INDEX_SQL, VEC_TABLE


class Mutation(str, Enum):
    CREATE = "create"
    REPLACE = "replace"
    DELETE = "delete"


def mirror_mutation(
    conn: sqlite3.Connection,
    mutation: Mutation,
    chunk_id: int,
    payload: Optional[bytes] = None,
) -> None:
    """Apply ``mutation`` for ``chunk_id`` to the vector index."""
    if not conn.in_transaction:
        raise RuntimeError("vector index mirror must run inside a transaction")

    if mutation is Mutation.CREATE:
        _insert_entry(conn, chunk_id, payload)
    elif mutation is Mutation.REPLACE:
        # Delete then insert; vec0 never sees a partially rewritten vector.
        conn.execute(f"DELETE FROM {VEC_TABLE} WHERE rowid = ?", (chunk_id,))
        _insert_entry(conn, chunk_id, payload)
    elif mutation is Mutation.DELETE:
        conn.execute(f"DELETE FROM {VEC_TABLE} WHERE rowid = ?", (chunk_id,))
    else:
        raise ValueError(f"Unknown mutation: {mutation!r}")


def _insert_entry(conn: sqlite3.Connection, chunk_id: int, payload: Optional[bytes]) -> None:
    if payload is None:
        raise ValueError("payload is required to create an index entry")
    zero = is_zero_vector(decode_embedding(payload))
    conn.execute(INSERT_INDEX_SQL, (int(chunk_id), payload, int(zero)))


def insert_chunk(conn: sqlite3.Connection, record: ChunkRecord, payload: bytes) -> int:
    cur = conn.execute(
        f"""
        INSERT INTO {CHUNKS_TABLE}
            (file_name, file_path, chunk_text, inline_document, parent_path, entity_name, embedding)
        VALUES (?, ?, ?, ?, ?, ?, ?)
        """,
        (
            record.file_name,
            record.file_path,
            record.chunk_text,
            record.inline_document,
            record.parent_path,
            record.entity_name,
            payload,
        ),
    )
    chunk_id = int(cur.lastrowid)
    mirror_mutation(conn, Mutation.CREATE, chunk_id, payload)
    return chunk_id


def replace_chunk(conn: sqlite3.Connection, chunk_id: int, record: ChunkRecord, payload: bytes) -> bool:
    """Replace every field of ``chunk_id``. Returns False if the row does not exist."""
    cur = conn.execute(
        f"""
        UPDATE {CHUNKS_TABLE}
        SET file_name = ?, file_path = ?, chunk_text = ?, inline_document = ?,
            parent_path = ?, entity_name = ?, embedding = ?
        WHERE id = ?
        """,
        (
            record.file_name,
            record.file_path,
            record.chunk_text,
            record.inline_document,
            record.parent_path,
            record.entity_name,
            payload,
            chunk_id,
        ),
    )
    if cur.rowcount == 0:
        return False
    mirror_mutation(conn, Mutation.REPLACE, chunk_id, payload)
    return True


def delete_chunk(conn: sqlite3.Connection, chunk_id: int) -> bool:
    cur = conn.execute(f"DELETE FROM {CHUNKS_TABLE} WHERE id = ?", (chunk_id,))
    if cur.rowcount == 0:
        return False
    mirror_mutation(conn, Mutation.DELETE, chunk_id)
    return True


__all__ = ["Mutation", "mirror_mutation", "insert_chunk", "replace_chunk", "delete_chunk"]
