"""
HNSW search algorithm.

This module handles querying the HNSW graph to find approximate nearest neighbors.
The search algorithm:
1. Starts at the graph's entry point (top layer)
2. Greedily navigates down through layers to get closer to the query
3. At layer 0, expands the search using the ef_search parameter
4. Returns the k nearest neighbors

search_layer is the bounded local search shared with insertion.

Results with equal distance are ordered by node id, which is insertion order.
"""

import heapq
from typing import List, Optional, Sequence, Set, Tuple

import numpy as np
import numpy.typing as npt

from vectorkit.hnsw.graph import HNSWGraph

Vector = npt.NDArray[np.float32]


def search_layer(
    graph: HNSWGraph,
    query: Vector,
    entry_points: Sequence[int],
    num_closest: int,
    layer: int,
) -> List[Tuple[float, int]]:
    """
    Best-first search for the nearest nodes at a single layer.

    Follows SEARCH-LAYER from Malkov & Yashunin: a min-heap of candidates to
    expand and a bounded max-heap of results. The search stops once the
    closest unexpanded candidate is farther than the worst kept result.
    Neighbor ids missing from the graph are skipped.

    Args:
        graph: Graph to search
        query: Query vector
        entry_points: Starting node IDs
        num_closest: Maximum number of results to keep (ef)
        layer: Which layer to search on

    Returns:
        Up to num_closest (distance, node_id) pairs, closest first
    """
    visited: Set[int] = set()

    # (distance, node_id), closest on top
    candidates: List[Tuple[float, int]] = []
    # (-distance, -node_id), worst on top
    results: List[Tuple[float, int]] = []

    for node_id in entry_points:
        if node_id in visited or graph.get_node(node_id) is None:
            continue
        visited.add(node_id)
        dist = graph.distance(query, node_id)
        heapq.heappush(candidates, (dist, node_id))
        heapq.heappush(results, (-dist, -node_id))
        if len(results) > num_closest:
            heapq.heappop(results)

    while candidates:
        current_dist, current_id = heapq.heappop(candidates)

        # Nothing left that could improve the result set
        if current_dist > -results[0][0]:
            break

        current_node = graph.get_node(current_id)
        if current_node is None:
            continue

        for neighbor_id in current_node.get_neighbors(layer):
            if neighbor_id in visited:
                continue
            visited.add(neighbor_id)

            neighbor_node = graph.get_node(neighbor_id)
            if neighbor_node is None or neighbor_node.level < layer:
                continue

            dist = graph.distance(query, neighbor_id)

            if len(results) < num_closest or dist < -results[0][0]:
                heapq.heappush(candidates, (dist, neighbor_id))
                heapq.heappush(results, (-dist, -neighbor_id))
                if len(results) > num_closest:
                    heapq.heappop(results)

    return sorted((-neg_dist, -neg_id) for neg_dist, neg_id in results)


def greedy_descent(
    graph: HNSWGraph,
    query: Vector,
    entry_point: int,
    top_layer: int,
    bottom_layer: int,
) -> List[int]:
    """
    Walk from top_layer down to (but not including) bottom_layer, keeping the
    single closest node on each layer.

    Returns:
        Entry point list for the search at bottom_layer
    """
    current_nearest = [entry_point]
    for layer in range(top_layer, bottom_layer, -1):
        found = search_layer(graph, query, current_nearest, num_closest=1, layer=layer)
        if found:
            current_nearest = [node_id for _, node_id in found]
    return current_nearest


class HNSWSearcher:
    """
    Handles search queries on the HNSW graph.

    This class provides the search functionality to find k nearest neighbors
    for a given query vector.
    """

    def __init__(self, graph: HNSWGraph, ef_search: int = 100) -> None:
        """
        Initialize searcher with a graph.

        Args:
            graph: The HNSWGraph to search in
            ef_search: Size of candidate list during search (higher = better recall)
        """
        self.graph = graph
        self.ef_search = ef_search

    def search(
        self, query: Vector, k: int, ef_search: Optional[int] = None
    ) -> List[Tuple[int, float]]:
        """
        Search for k nearest neighbors to the query vector.

        Args:
            query: Query vector to search for
            k: Number of nearest neighbors to return
            ef_search: Override default ef_search for this query

        Returns:
            List of (node_id, distance) tuples, sorted by distance (closest first)
        """
        if self.graph.size() == 0 or k <= 0:
            return []

        ef = ef_search if ef_search is not None else self.ef_search

        # Ensure ef is at least k
        ef = max(ef, k)

        entry_point = self.graph.entry_point
        current_nearest = greedy_descent(
            self.graph,
            query,
            entry_point,
            top_layer=self.graph.get_max_level(),
            bottom_layer=0,
        )

        candidates = search_layer(
            self.graph, query, current_nearest, num_closest=ef, layer=0
        )

        return [(node_id, dist) for dist, node_id in candidates[:k]]
