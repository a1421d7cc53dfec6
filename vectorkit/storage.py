"""
Vector storage manager: an index bound to a snapshot file.

VectorStorageManager wraps an HNSWIndex with the bookkeeping an application
needs around it: loading the snapshot at startup, inserting large document
sets in batches with progress reporting, keeping recently indexed documents
in a bounded cache, and saving after every change.
"""

import logging
import math
from collections import OrderedDict
from pathlib import Path
from typing import Callable, List, Optional, Sequence, Tuple

import numpy as np
import numpy.typing as npt

from vectorkit.config import IndexConfig
from vectorkit.document import IndexStats, SearchResult, VectorDocument
from vectorkit.exceptions import InvalidParameterError, PersistenceError
from vectorkit.index import HNSWIndex
from vectorkit.persistence import PathLike

logger = logging.getLogger(__name__)

Vector = npt.NDArray[np.float32]
ProgressCallback = Callable[[float], None]

STATUS_READY = "ready"
STATUS_INDEXING = "indexing"
STATUS_DONE = "indexed"
STATUS_INDEXING_FAILED = "indexing failed"
STATUS_LOADED = "loaded"
STATUS_LOAD_FAILED = "load failed"


class VectorStorageManager:
    """
    Owns one HNSWIndex and the snapshot file it is persisted to.

    Attributes:
        is_indexing: True while index_documents is running
        progress: Fraction of the current (or last) indexing run completed
        status: Short human-readable state
    """

    def __init__(
        self,
        index_path: PathLike,
        config: Optional[IndexConfig] = None,
        batch_size: int = 100,
        cache_limit: int = 10000,
        autoload: bool = True,
    ) -> None:
        """
        Args:
            index_path: Snapshot file to load from and save to
            config: Index configuration (defaults to get_default_config())
            batch_size: Documents inserted per batch in index_documents
            cache_limit: Maximum number of documents kept in the cache
            autoload: Load the snapshot now if the file exists
        """
        if batch_size < 1:
            raise InvalidParameterError("batch_size must be >= 1")
        if cache_limit < 1:
            raise InvalidParameterError("cache_limit must be >= 1")

        self.index_path = Path(index_path)
        self.config = config
        self.batch_size = batch_size
        self.cache_limit = cache_limit

        self.index = HNSWIndex(config=config)
        self._cache: "OrderedDict[str, VectorDocument]" = OrderedDict()

        self.is_indexing = False
        self.progress = 0.0
        self.status = STATUS_READY

        if autoload and self.index_path.exists():
            self.load_index()

    def load_index(self) -> bool:
        """
        Load the snapshot into the index.

        A missing or corrupt snapshot is logged and leaves the index as it was.

        Returns:
            True if the snapshot was loaded
        """
        try:
            self.index.load(self.index_path)
        except PersistenceError as exc:
            self.status = STATUS_LOAD_FAILED
            logger.error("Failed to load index: %s", exc)
            return False

        self.status = STATUS_LOADED
        return True

    def save_index(self) -> None:
        """Write the index to its snapshot file."""
        self.index_path.parent.mkdir(parents=True, exist_ok=True)
        self.index.save(self.index_path)

    def index_documents(
        self,
        documents: Sequence[VectorDocument],
        progress: Optional[ProgressCallback] = None,
    ) -> None:
        """
        Insert documents in batches of batch_size, then save.

        Batches are inserted atomically. If one fails, the earlier batches stay
        in the index and the error propagates.

        Args:
            documents: Documents to insert
            progress: Called with the completed fraction after each batch
        """
        if not documents:
            return

        self.is_indexing = True
        self.status = STATUS_INDEXING
        self.progress = 0.0

        total_batches = math.ceil(len(documents) / self.batch_size)
        try:
            for batch_index in range(total_batches):
                start = batch_index * self.batch_size
                batch = list(documents[start:start + self.batch_size])

                self.index.add(batch)
                for document in batch:
                    self._cache_document(document)

                self.progress = (batch_index + 1) / total_batches
                if progress is not None:
                    progress(self.progress)
                logger.debug(
                    "Indexed batch %d/%d (%d documents)",
                    batch_index + 1, total_batches, len(batch),
                )
            self.status = STATUS_DONE
        finally:
            self.is_indexing = False
            if self.status == STATUS_INDEXING:
                self.status = STATUS_INDEXING_FAILED

        self.save_index()

    def _cache_document(self, document: VectorDocument) -> None:
        self._cache[document.id] = document
        self._cache.move_to_end(document.id)

        if len(self._cache) > self.cache_limit:
            # Evict the oldest third in one go
            evict_count = max(1, len(self._cache) // 3)
            for _ in range(evict_count):
                self._cache.popitem(last=False)
            logger.debug("Evicted %d documents from cache", evict_count)

    def warm_up(self, limit: int = 1000) -> int:
        """
        Fill the cache with the most recently created documents in the index.

        Documents already cached are left where they are.

        Args:
            limit: How many recent documents to consider

        Returns:
            Number of documents newly added to the cache
        """
        added = 0
        # Oldest first so the newest documents are evicted last
        for document in reversed(self.index.recent_documents(limit)):
            if document.id not in self._cache:
                self._cache_document(document)
                added += 1

        self.status = STATUS_READY
        logger.debug("Warmed cache with %d documents", added)
        return added

    def get_document(self, document_id: str) -> VectorDocument:
        """
        Return a document, from the cache when possible.

        Raises:
            DocumentNotFoundError: If the index has no such document
        """
        document = self._cache.get(document_id)
        if document is not None:
            return document
        return self.index.get_document(document_id)

    def cached_count(self) -> int:
        return len(self._cache)

    def search_similar(self, query: Vector, limit: int = 10) -> List[SearchResult]:
        return self.index.search(query, limit=limit)

    def batch_search(
        self, queries: Sequence[Tuple[Vector, int]], limit: int = 10
    ) -> List[List[SearchResult]]:
        """
        Run several queries. Each uses min(limit, its own limit).

        Args:
            queries: (query vector, per-query limit) pairs
            limit: Global cap on results per query

        Returns:
            One result list per query, in order
        """
        return [
            self.search_similar(query, limit=min(limit, query_limit))
            for query, query_limit in queries
        ]

    def remove_document(self, document_id: str) -> None:
        """
        Remove a document from the index and cache, then save.

        Raises:
            DocumentNotFoundError: If the index has no such document
        """
        self.index.remove(document_id)
        self._cache.pop(document_id, None)
        self.save_index()

    def clear_index(self) -> None:
        """Drop every document and save the empty index."""
        self._cache.clear()
        self.index.clear()
        self.progress = 0.0
        self.status = STATUS_READY
        self.save_index()

    def get_stats(self) -> IndexStats:
        return self.index.stats
