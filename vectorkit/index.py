"""
HNSW vector index: the main entry point of vectorkit.

HNSWIndex stores (id, owner_id, vector, metadata) documents and answers
approximate k-nearest-neighbor queries over them. It owns its graph outright
and guards it with a readers-writer lock: search, stats and save share the
graph, while add, remove, load and clear get it exclusively.
"""

import contextlib
import logging
import threading
import time
from typing import Any, Dict, Iterable, List, Optional, Sequence

import numpy as np
import numpy.typing as npt

from vectorkit.config import IndexConfig, get_default_config
from vectorkit.document import (
    IndexStats,
    SearchResult,
    VectorDocument,
    similarity_from_distance,
)
from vectorkit.exceptions import (
    DimensionMismatchError,
    DocumentNotFoundError,
    DuplicateDocumentError,
    InvalidParameterError,
)
from vectorkit.graph_validator import GraphValidator
from vectorkit.hnsw.builder import HNSWBuilder
from vectorkit.hnsw.distance import get_distance_function
from vectorkit.hnsw.graph import HNSWGraph, HNSWNode
from vectorkit.hnsw.searcher import HNSWSearcher
from vectorkit.hnsw.utils import assign_layer
from vectorkit.persistence import PathLike, load_snapshot, save_snapshot

logger = logging.getLogger(__name__)

Vector = npt.NDArray[np.float32]

# Rough fixed cost of one node object (ids, level, dict headers)
NODE_OVERHEAD_BYTES = 96
# Size of one stored float32 component
FLOAT_BYTES = 4
# Size of one neighbor reference (a UUID on disk)
ID_BYTES = 16


class RWLock:
    """
    Readers-writer lock: many concurrent readers or a single writer.

    Not reentrant. A writer waits for active readers to drain and blocks new
    readers while it holds the lock.
    """

    def __init__(self) -> None:
        self._read_ready = threading.Condition(threading.Lock())
        self._readers = 0

    @contextlib.contextmanager
    def read(self):
        with self._read_ready:
            self._readers += 1
        try:
            yield
        finally:
            with self._read_ready:
                self._readers -= 1
                if self._readers == 0:
                    self._read_ready.notify_all()

    @contextlib.contextmanager
    def write(self):
        with self._read_ready:
            while self._readers > 0:
                self._read_ready.wait()
            yield


class HNSWIndex:
    """
    In-memory approximate nearest-neighbor index over fixed-dimension vectors.

    The index operates on pre-computed embeddings. It never produces vectors
    and never interprets owner ids or metadata.

    Example:
        >>> index = HNSWIndex(seed=7)
        >>> index.add([
        ...     VectorDocument(owner_id="file-a", vector=[0.0, 0.0], id="a"),
        ...     VectorDocument(owner_id="file-b", vector=[1.0, 1.0], id="b"),
        ... ])
        ['a', 'b']
        >>> [r.document_id for r in index.search([0.0, 1.0], limit=2)]
        ['a', 'b']
    """

    def __init__(
        self,
        config: Optional[IndexConfig] = None,
        rng: Optional[np.random.Generator] = None,
        **overrides: Any,
    ) -> None:
        """
        Create an empty index.

        Args:
            config: Structural constants (defaults to get_default_config())
            rng: Random source for level assignment. Overrides config.seed
            **overrides: Individual IndexConfig fields, e.g. ef_search=50

        Raises:
            InvalidParameterError: If any parameter is outside its valid domain
        """
        if config is None:
            config = get_default_config()
        if overrides:
            config = config.replace(**overrides)
        self.config = config

        self._rng = rng if rng is not None else np.random.default_rng(config.seed)
        self._lock = RWLock()
        self._graph = self._new_graph()
        self._builder = HNSWBuilder(self._graph, ef_construction=config.ef_construction)
        self._searcher = HNSWSearcher(self._graph, ef_search=config.ef_search)

        self.build_start_time = time.monotonic()

    def _new_graph(self) -> HNSWGraph:
        return HNSWGraph(
            dimension=None,
            M=self.config.M,
            m_max=self.config.m_max,
            max_level=self.config.max_level,
            level_multiplier=self.config.level_multiplier,
            distance_fn=get_distance_function(self.config.metric),
        )

    def _install_graph(self, graph: HNSWGraph) -> None:
        self._graph = graph
        self._builder = HNSWBuilder(graph, ef_construction=self.config.ef_construction)
        self._searcher = HNSWSearcher(graph, ef_search=self.config.ef_search)

    @property
    def dimension(self) -> Optional[int]:
        """Vector length fixed by the first insert, or None while empty."""
        with self._lock.read():
            return self._graph.dimension

    def add(self, documents: Iterable[VectorDocument]) -> List[str]:
        """
        Insert a batch of documents.

        The whole batch is validated before anything is inserted: on any error
        the index is left exactly as it was.

        Args:
            documents: Documents to insert, in order

        Returns:
            The inserted document ids, in input order

        Raises:
            DimensionMismatchError: If a vector's length differs from the index
                dimension (or from the first vector of the batch while empty)
            DuplicateDocumentError: If an id already exists or repeats in the batch
            InvalidParameterError: If a vector is empty
        """
        documents = list(documents)
        if not documents:
            return []

        with self._lock.write():
            self._validate_batch(documents)

            for document in documents:
                level = assign_layer(
                    self._rng,
                    level_multiplier=self._graph.level_multiplier,
                    max_level=self._graph.max_level,
                )
                self._builder.insert(
                    document.vector,
                    level,
                    document_id=document.id,
                    owner_id=document.owner_id,
                    metadata=document.metadata,
                    created_at=document.created_at,
                )

            logger.debug(
                "Inserted %d documents (total=%d, max_level=%d)",
                len(documents),
                self._graph.size(),
                self._graph.get_max_level(),
            )

        return [document.id for document in documents]

    def _validate_batch(self, documents: Sequence[VectorDocument]) -> None:
        dimension = self._graph.dimension
        if dimension is None:
            dimension = len(documents[0].vector)
            if dimension == 0:
                raise InvalidParameterError("Vector must have at least one component")

        seen = set()
        for document in documents:
            if len(document.vector) != dimension:
                raise DimensionMismatchError(dimension, len(document.vector))
            if document.id in seen or self._graph.has_document(document.id):
                raise DuplicateDocumentError(
                    f"ID '{document.id}' already exists in the index"
                )
            seen.add(document.id)

    def remove(self, document_id: str) -> None:
        """
        Remove a document and every edge that points at it.

        Args:
            document_id: Id of the document to remove

        Raises:
            DocumentNotFoundError: If no document has this id
        """
        with self._lock.write():
            node = self._graph.get_node_by_document(document_id)
            if node is None:
                raise DocumentNotFoundError(document_id)

            self._graph.remove_node(node.id)

            logger.debug("Removed document %s (total=%d)", document_id, self._graph.size())

    def search(self, query: Vector, limit: int = 10) -> List[SearchResult]:
        """
        Find the documents closest to a query vector.

        Args:
            query: Query vector, same length as the indexed vectors
            limit: Maximum number of results

        Returns:
            Up to min(limit, len(index)) results, closest first. Empty when the
            index holds no documents

        Raises:
            DimensionMismatchError: If the query length differs from the index dimension
            InvalidParameterError: If limit is negative
        """
        if limit < 0:
            raise InvalidParameterError(f"limit must be >= 0, got {limit}")

        query = np.asarray(query, dtype=np.float32).reshape(-1)

        with self._lock.read():
            if self._graph.size() == 0:
                return []

            if len(query) != self._graph.dimension:
                raise DimensionMismatchError(self._graph.dimension, len(query), context="Query")

            hits = self._searcher.search(query, k=limit)

            results = []
            for node_id, distance in hits:
                node = self._graph.get_node(node_id)
                distance = max(float(distance), 0.0)
                results.append(
                    SearchResult(
                        document_id=node.document_id,
                        owner_id=node.owner_id,
                        similarity=similarity_from_distance(distance),
                        distance=distance,
                        metadata=dict(node.metadata),
                    )
                )

        return results

    def get_document(self, document_id: str) -> VectorDocument:
        """
        Rebuild the stored document for an id.

        Raises:
            DocumentNotFoundError: If no document has this id
        """
        with self._lock.read():
            node = self._graph.get_node_by_document(document_id)
            if node is None:
                raise DocumentNotFoundError(document_id)
            return _node_to_document(node)

    def recent_documents(self, limit: int) -> List[VectorDocument]:
        """
        The most recently created documents, newest first.

        Documents with equal timestamps come back most recently inserted first.

        Raises:
            InvalidParameterError: If limit is negative
        """
        if limit < 0:
            raise InvalidParameterError(f"limit must be >= 0, got {limit}")

        with self._lock.read():
            nodes = list(self._graph.iter_nodes())
            nodes.reverse()
            nodes.sort(key=lambda node: node.created_at, reverse=True)
            return [_node_to_document(node) for node in nodes[:limit]]

    def save(self, path: PathLike) -> None:
        """
        Write a full snapshot of the index to a file.

        Raises:
            PersistenceError: If the file cannot be written
        """
        with self._lock.read():
            save_snapshot(self._graph, path)

    def load(self, path: PathLike) -> None:
        """
        Replace the index contents with a snapshot.

        The snapshot is decoded completely before the live graph is swapped,
        so a failed load leaves the index untouched.

        Raises:
            PersistenceError: If the file is missing, unreadable, or malformed
        """
        graph = load_snapshot(path, self._graph)
        with self._lock.write():
            self._install_graph(graph)

    def clear(self) -> None:
        """Drop every document. The dimension becomes unset again."""
        with self._lock.write():
            self._install_graph(self._new_graph())
            logger.info("Cleared index")

    @property
    def stats(self) -> IndexStats:
        """Document count, dimension, estimated memory and age of the index."""
        with self._lock.read():
            dimension = self._graph.dimension or 0
            memory = 0
            for node in self._graph.iter_nodes():
                memory += NODE_OVERHEAD_BYTES + len(node.vector) * FLOAT_BYTES
                for layer in range(node.level + 1):
                    memory += len(node.get_neighbors(layer)) * ID_BYTES

            return IndexStats(
                document_count=self._graph.size(),
                vector_dimension=dimension,
                memory_usage=memory,
                build_time=time.monotonic() - self.build_start_time,
            )

    def check_integrity(self) -> Dict[str, Any]:
        """Run graph invariant checks. See GraphValidator.validate."""
        with self._lock.read():
            return GraphValidator(self._graph).validate()

    def __len__(self) -> int:
        with self._lock.read():
            return self._graph.size()

    def __contains__(self, document_id: object) -> bool:
        if not isinstance(document_id, str):
            return False
        with self._lock.read():
            return self._graph.has_document(document_id)

    def __repr__(self) -> str:
        return f"HNSWIndex(documents={len(self)}, dim={self.dimension}, config={self.config!r})"


def _node_to_document(node: HNSWNode) -> VectorDocument:
    return VectorDocument(
        owner_id=node.owner_id,
        vector=node.vector.copy(),
        metadata=node.metadata,
        id=node.document_id,
        created_at=node.created_at,
    )
