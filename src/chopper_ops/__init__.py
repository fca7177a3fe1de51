"""Operations layer: wires chunk extraction, embedding and the chunk store."""

from .indexing import IndexResult, index_directory
from .query import QueryResult, query_text

__all__ = ["IndexResult", "index_directory", "QueryResult", "query_text"]
