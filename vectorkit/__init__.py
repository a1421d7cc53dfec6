"""
vectorkit - Approximate Nearest-Neighbor Vector Index

An in-memory HNSW index over fixed-dimension embeddings tagged with document
ids, owner ids and metadata, with JSON snapshot persistence.
"""

__version__ = "0.1.0"

from vectorkit.index import HNSWIndex
from vectorkit.storage import VectorStorageManager
from vectorkit.document import VectorDocument, SearchResult, IndexStats
from vectorkit.config import (
    IndexConfig,
    get_default_config,
    get_fast_config,
    get_high_recall_config,
)
from vectorkit.exceptions import (
    VectorIndexError,
    DimensionMismatchError,
    EmptyIndexError,
    InvalidParameterError,
    DocumentNotFoundError,
    DuplicateDocumentError,
    PersistenceError,
)

__all__ = [
    "HNSWIndex",
    "VectorStorageManager",
    "VectorDocument",
    "SearchResult",
    "IndexStats",
    "IndexConfig",
    "get_default_config",
    "get_fast_config",
    "get_high_recall_config",
    "VectorIndexError",
    "DimensionMismatchError",
    "EmptyIndexError",
    "InvalidParameterError",
    "DocumentNotFoundError",
    "DuplicateDocumentError",
    "PersistenceError",
]
