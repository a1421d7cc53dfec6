"""
HNSW graph data structures.

This module defines the core data structures for storing the HNSW graph:
- HNSWNode: a single inserted vector with its connections
- HNSWGraph: arena of nodes plus the document-id lookup and entry point

Nodes live in an arena keyed by dense integer ids handed out in insertion
order. Edges reference these integer ids, and a document_id -> node id map
makes lookups by the caller's id O(1). Layer 0 contains every node; each
higher layer contains only nodes whose assigned level reaches it.
"""

import math
import uuid
from datetime import datetime, timezone
from typing import Dict, Iterator, List, Optional

import numpy as np
import numpy.typing as npt

from vectorkit.exceptions import (
    DimensionMismatchError,
    DuplicateDocumentError,
    InvalidParameterError,
)
from vectorkit.hnsw.distance import DistanceFunction, squared_euclidean
from vectorkit.hnsw.utils import select_neighbors_simple

Vector = npt.NDArray[np.float32]


class HNSWNode:
    """
    Represents a single node in the HNSW graph.

    Each node carries the caller's document fields (document_id, owner_id,
    metadata, created_at) next to its vector, and one neighbor list per layer
    from 0 up to its assigned level.
    """

    def __init__(
        self,
        node_id: int,
        vector: Vector,
        level: int,
        document_id: Optional[str] = None,
        owner_id: str = "",
        metadata: Optional[Dict[str, str]] = None,
        created_at: Optional[datetime] = None,
    ) -> None:
        """
        Create a new HNSW node.

        Args:
            node_id: Arena id of this node
            vector: The vector data (1D numpy array)
            level: Maximum layer this node appears in (0 = base layer only)
            document_id: Caller's id for the document (defaults to a fresh UUID)
            owner_id: Opaque reference passed through to search results
            metadata: String-to-string mapping passed through to search results
            created_at: Creation timestamp of the source document
        """
        self.id = node_id
        self.vector = vector
        self.level = level
        self.document_id = document_id if document_id is not None else str(uuid.uuid4())
        self.owner_id = owner_id
        self.metadata: Dict[str, str] = dict(metadata) if metadata else {}
        self.created_at = created_at if created_at is not None else datetime.now(timezone.utc)

        # Neighbors organized by layer: {layer_num: [neighbor_id1, neighbor_id2, ...]}
        self.neighbors: Dict[int, List[int]] = {layer: [] for layer in range(level + 1)}

    def add_neighbor(self, neighbor_id: int, layer: int) -> None:
        """
        Add a connection to another node at a specific layer.

        Args:
            neighbor_id: ID of the neighbor node to connect to
            layer: Which layer to add the connection at
        """
        if layer > self.level:
            raise ValueError(
                f"Cannot add neighbor at layer {layer} (node max level is {self.level})"
            )

        if neighbor_id not in self.neighbors[layer]:
            self.neighbors[layer].append(neighbor_id)

    def remove_neighbor(self, neighbor_id: int, layer: int) -> bool:
        """
        Drop a connection at a layer.

        Returns:
            True if the connection existed
        """
        if layer > self.level or neighbor_id not in self.neighbors[layer]:
            return False

        self.neighbors[layer].remove(neighbor_id)
        return True

    def get_neighbors(self, layer: int) -> List[int]:
        """
        Get all neighbors at a specific layer.

        Args:
            layer: Which layer to query

        Returns:
            List of neighbor node IDs at that layer (empty above the node's level)
        """
        if layer > self.level:
            return []

        return self.neighbors[layer]

    def __repr__(self) -> str:
        """String representation for debugging."""
        return (
            f"HNSWNode(id={self.id}, document_id={self.document_id!r}, "
            f"level={self.level}, dim={len(self.vector)})"
        )


class HNSWGraph:
    """
    Container for the entire HNSW graph structure.

    Manages all nodes, tracks the entry point for searches, and holds the
    structural constants (M, m_max, max_level, level_multiplier).
    """

    def __init__(
        self,
        dimension: Optional[int] = None,
        M: int = 16,
        m_max: Optional[int] = None,
        max_level: int = 16,
        level_multiplier: Optional[float] = None,
        distance_fn: Optional[DistanceFunction] = None,
    ) -> None:
        """
        Initialize an empty HNSW graph.

        Args:
            dimension: Dimensionality of vectors (None = taken from the first node)
            M: Neighbors selected per layer during insertion
            m_max: Hard cap on neighbors per layer per node (default: 2*M)
            max_level: Highest layer a node may be assigned to
            level_multiplier: Scale of the level draw (default: 1/ln(2))
            distance_fn: Distance between two vectors (default: squared Euclidean)
        """
        self.dimension = dimension
        self.M = M
        self.m_max = m_max if m_max is not None else 2 * M
        self.max_level = max_level
        self.level_multiplier = (
            level_multiplier if level_multiplier is not None else 1.0 / math.log(2.0)
        )
        self.distance_fn: DistanceFunction = distance_fn or squared_euclidean

        # Arena of nodes, iteration order is insertion order
        self.nodes: Dict[int, HNSWNode] = {}

        # Caller's document id -> arena id
        self._document_index: Dict[str, int] = {}

        # Entry point: the node at the highest layer where searches begin
        self.entry_point: Optional[int] = None

        self._next_id = 0

    def empty_copy(self) -> "HNSWGraph":
        """A new empty graph with the same parameters."""
        return HNSWGraph(
            dimension=None,
            M=self.M,
            m_max=self.m_max,
            max_level=self.max_level,
            level_multiplier=self.level_multiplier,
            distance_fn=self.distance_fn,
        )

    def add_node(
        self,
        vector: Vector,
        level: int,
        document_id: Optional[str] = None,
        owner_id: str = "",
        metadata: Optional[Dict[str, str]] = None,
        created_at: Optional[datetime] = None,
    ) -> int:
        """
        Add a new node to the graph structure (without connecting it yet).

        The first node fixes the graph dimension if it was not given.

        Args:
            vector: Vector data for the node
            level: Maximum layer this node should appear in
            document_id: Caller's id (fresh UUID if None)
            owner_id: Opaque owner reference
            metadata: Opaque string mapping
            created_at: Source document timestamp

        Returns:
            The arena ID assigned to the new node
        """
        if len(vector) == 0:
            raise InvalidParameterError("Vector must have at least one component")

        if self.dimension is not None and len(vector) != self.dimension:
            raise DimensionMismatchError(self.dimension, len(vector))

        if not 0 <= level <= self.max_level:
            raise InvalidParameterError(
                f"Level {level} outside [0, {self.max_level}]"
            )

        node_id = self._next_id
        node = HNSWNode(
            node_id,
            vector,
            level,
            document_id=document_id,
            owner_id=owner_id,
            metadata=metadata,
            created_at=created_at,
        )

        if node.document_id in self._document_index:
            raise DuplicateDocumentError(
                f"ID '{node.document_id}' already exists in the index"
            )

        if self.dimension is None:
            self.dimension = len(vector)

        self._next_id += 1
        self.nodes[node_id] = node
        self._document_index[node.document_id] = node_id

        # Update entry point if this is the first node or if it's at a higher layer
        if self.entry_point is None or level > self.nodes[self.entry_point].level:
            self.entry_point = node_id

        return node_id

    def get_node(self, node_id: int) -> Optional[HNSWNode]:
        """
        Retrieve a node by its arena ID.

        Returns:
            The HNSWNode, or None if not found
        """
        return self.nodes.get(node_id)

    def get_node_by_document(self, document_id: str) -> Optional[HNSWNode]:
        """Retrieve a node by the caller's document id, or None."""
        node_id = self._document_index.get(document_id)
        if node_id is None:
            return None
        return self.nodes[node_id]

    def has_document(self, document_id: str) -> bool:
        return document_id in self._document_index

    def add_edge(self, node1_id: int, node2_id: int, layer: int) -> None:
        """
        Create a bidirectional connection between two nodes at a specific layer.

        Args:
            node1_id: First node ID
            node2_id: Second node ID
            layer: Layer at which to create the connection
        """
        node1 = self.nodes.get(node1_id)
        node2 = self.nodes.get(node2_id)

        if node1 is None or node2 is None:
            raise ValueError(f"Node not found: {node1_id} or {node2_id}")

        node1.add_neighbor(node2_id, layer)
        node2.add_neighbor(node1_id, layer)

    def distance(self, query: Vector, node_id: int) -> float:
        """Distance from a query vector to a stored node."""
        return self.distance_fn(query, self.nodes[node_id].vector)

    def remove_node(self, node_id: int) -> HNSWNode:
        """
        Remove a node and every edge pointing at it.

        Nodes that lose an edge to the removed node are offered the removed
        node's own neighbors at that layer as replacements, keeping their
        m_max closest. If the entry point is removed, the first remaining node
        with the highest level takes over.

        Args:
            node_id: Arena ID of the node to remove

        Returns:
            The removed node

        Raises:
            KeyError: If no node has this ID
        """
        removed = self.nodes.pop(node_id)
        del self._document_index[removed.document_id]

        for layer in range(removed.level + 1):
            replacements = [
                n for n in removed.get_neighbors(layer) if n in self.nodes
            ]

            for node in self.nodes.values():
                if node.level < layer or not node.remove_neighbor(node_id, layer):
                    continue
                self._repair_neighbors(node, layer, replacements)

        if self.entry_point == node_id:
            self.entry_point = None
            best_level = -1
            for node in self.nodes.values():
                if node.level > best_level:
                    best_level = node.level
                    self.entry_point = node.id

        return removed

    def _repair_neighbors(
        self, node: HNSWNode, layer: int, replacements: List[int]
    ) -> None:
        candidates = list(node.neighbors[layer])
        for candidate_id in replacements:
            if candidate_id != node.id and candidate_id not in candidates:
                candidates.append(candidate_id)

        if len(candidates) > self.m_max:
            distances = [
                self.distance_fn(node.vector, self.nodes[c].vector) for c in candidates
            ]
            candidates = select_neighbors_simple(candidates, distances, self.m_max)

        node.neighbors[layer] = candidates

    def iter_nodes(self) -> Iterator[HNSWNode]:
        """Iterate over nodes in insertion order."""
        return iter(self.nodes.values())

    def get_max_level(self) -> int:
        """
        Get the maximum layer level in the graph (level of entry point).

        Returns:
            Maximum layer number, or -1 if graph is empty
        """
        if self.entry_point is None:
            return -1

        return self.nodes[self.entry_point].level

    def size(self) -> int:
        """
        Get the total number of nodes in the graph.

        Returns:
            Number of nodes
        """
        return len(self.nodes)

    def __len__(self) -> int:
        return len(self.nodes)

    def __repr__(self) -> str:
        """String representation for debugging."""
        return (
            f"HNSWGraph(nodes={self.size()}, max_level={self.get_max_level()}, "
            f"M={self.M}, m_max={self.m_max}, dim={self.dimension})"
        )
