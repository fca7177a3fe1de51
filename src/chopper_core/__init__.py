"""chopper-grep core: embedding-indexed code chunk store."""

from .__version__ import __version__, __version_info__

from .chunking import ChunkDescriptor, ChunkingOptions, chunk_source, iter_directory_chunks
from .config import ChopperConfig, ConfigLoader
from .embedding import (
    EmbeddingAdapter,
    EmbeddingFailurePolicy,
    EmbeddingOutcome,
    NoOpEmbeddingAdapter,
    resolve_embedder,
)
from .errors import (
    ChopperError,
    ChunkNotFoundError,
    ConfigError,
    DimensionMismatchError,
    EmbeddingGenerationError,
    InvalidArgumentError,
    PartialBatchFailure,
    SchemaMismatchError,
    StorageBusyError,
    StorageError,
    StorageUnavailableError,
)
from .store import BulkInsertResult, ChunkStore, ConsistencyReport, open_store
from .types import DEFAULT_EMBEDDING_DIM, ChunkRecord, SearchResult

__all__ = [
    # Version
    "__version__",
    "__version_info__",
    # Types
    "DEFAULT_EMBEDDING_DIM",
    "ChunkRecord",
    "SearchResult",
    # Store
    "BulkInsertResult",
    "ChunkStore",
    "ConsistencyReport",
    "open_store",
    # Config
    "ChopperConfig",
    "ConfigLoader",
    # Chunking
    "ChunkDescriptor",
    "ChunkingOptions",
    "chunk_source",
    "iter_directory_chunks",
    # Embedding
    "EmbeddingAdapter",
    "EmbeddingFailurePolicy",
    "EmbeddingOutcome",
    "NoOpEmbeddingAdapter",
    "resolve_embedder",
    # Errors
    "ChopperError",
    "ChunkNotFoundError",
    "ConfigError",
    "DimensionMismatchError",
    "EmbeddingGenerationError",
    "InvalidArgumentError",
    "PartialBatchFailure",
    "SchemaMismatchError",
    "StorageBusyError",
    "StorageError",
    "StorageUnavailableError",
]
