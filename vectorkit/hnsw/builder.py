"""
HNSW graph construction and insertion logic.

This module handles adding new nodes to the HNSW graph. The insertion algorithm:
1. Adds the node to the arena at its pre-drawn level
2. Descends greedily from the entry point through the layers above that level
3. At each layer from the node's level down to 0, runs a bounded local search
   (ef_construction wide) and connects the node to its M closest candidates
4. Prunes any neighbor list that grows past m_max back to its m_max closest
"""

from datetime import datetime
from typing import Dict, Optional

import numpy as np
import numpy.typing as npt

from vectorkit.hnsw.graph import HNSWGraph
from vectorkit.hnsw.searcher import greedy_descent, search_layer
from vectorkit.hnsw.utils import select_neighbors_simple

Vector = npt.NDArray[np.float32]


class HNSWBuilder:
    """
    Handles insertion of nodes into the HNSW graph.

    This class encapsulates the logic for adding new vectors to the index,
    including neighbor search, connection creation, and pruning.
    """

    def __init__(self, graph: HNSWGraph, ef_construction: int = 200) -> None:
        """
        Initialize builder with a graph to operate on.

        Args:
            graph: The HNSWGraph to insert nodes into
            ef_construction: Candidate pool size for the per-layer search
        """
        self.graph = graph
        self.ef_construction = ef_construction

    def insert(
        self,
        vector: Vector,
        level: int,
        document_id: Optional[str] = None,
        owner_id: str = "",
        metadata: Optional[Dict[str, str]] = None,
        created_at: Optional[datetime] = None,
    ) -> int:
        """
        Insert a new node into the graph at a specific level.

        Args:
            vector: Vector data for the new node
            level: Maximum layer for this node
            document_id: Caller's document id
            owner_id: Opaque owner reference
            metadata: Opaque string mapping
            created_at: Source document timestamp

        Returns:
            Arena ID of the inserted node
        """
        previous_entry = self.graph.entry_point
        previous_top = self.graph.get_max_level()

        node_id = self.graph.add_node(
            vector,
            level,
            document_id=document_id,
            owner_id=owner_id,
            metadata=metadata,
            created_at=created_at,
        )

        # First node in the graph: nothing to connect to
        if previous_entry is None:
            return node_id

        # Zoom in through the layers this node doesn't reach
        current_nearest = greedy_descent(
            self.graph, vector, previous_entry, top_layer=previous_top, bottom_layer=level
        )

        for layer in range(min(level, previous_top), -1, -1):
            candidates = search_layer(
                self.graph,
                vector,
                current_nearest,
                num_closest=self.ef_construction,
                layer=layer,
            )
            candidates = [(d, c) for d, c in candidates if c != node_id]
            if not candidates:
                continue

            # Already sorted by distance, so the M closest are the prefix
            neighbors = [c for _, c in candidates[: self.graph.M]]

            for neighbor_id in neighbors:
                self.graph.add_edge(node_id, neighbor_id, layer)

            for neighbor_id in neighbors:
                self._prune_neighbors(neighbor_id, layer)

            current_nearest = [c for _, c in candidates]

        return node_id

    def _prune_neighbors(self, node_id: int, layer: int) -> None:
        """
        Shrink a node's neighbor list at a layer back to m_max.

        Keeps the m_max neighbors closest to the node's own vector. The pruned
        neighbors keep their edge back to this node.

        Args:
            node_id: Node to prune
            layer: Which layer to prune at
        """
        node = self.graph.get_node(node_id)
        neighbors = [n for n in node.get_neighbors(layer) if n in self.graph.nodes]

        if len(neighbors) <= self.graph.m_max:
            node.neighbors[layer] = neighbors
            return

        distances = [
            self.graph.distance(node.vector, neighbor_id) for neighbor_id in neighbors
        ]

        node.neighbors[layer] = select_neighbors_simple(
            neighbors, distances, self.graph.m_max
        )
