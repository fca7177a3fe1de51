from .chunk_store import (
    DEFAULT_BATCH_SIZE,
    DEFAULT_TOP_K,
    KNN_MAX_K,
    BulkInsertResult,
    ChunkStore,
    ConsistencyReport,
    open_store,
)
from .connection import open_connection, transaction
from .schema import ensure_schema, existing_dimension

__all__ = [
    "DEFAULT_BATCH_SIZE",
    "DEFAULT_TOP_K",
    "KNN_MAX_K",
    "BulkInsertResult",
    "ChunkStore",
    "ConsistencyReport",
    "open_store",
    "open_connection",
    "transaction",
    "ensure_schema",
    "existing_dimension",
]
