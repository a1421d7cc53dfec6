"""Graph validation and connectivity checks for HNSW indexes.

Inserts and removals rewrite neighbor lists all over the graph. These checks
confirm the structural invariants still hold afterwards: every edge points at
a live node on a layer it belongs to, no list exceeds m_max, and the base
layer stays reachable from the entry point.
"""

from collections import deque
from typing import Any, Dict, List, Set, Tuple

from vectorkit.hnsw.graph import HNSWGraph

# (node_id, layer, neighbor_id)
EdgeRef = Tuple[int, int, int]


class GraphValidator:
    """Validates graph structure and connectivity properties."""

    def __init__(self, graph: HNSWGraph) -> None:
        self.graph = graph

    def find_dangling_edges(self) -> List[EdgeRef]:
        """Edges whose target is missing or does not reach the edge's layer.

        Returns:
            List of (node_id, layer, neighbor_id) triples
        """
        dangling = []
        for node in self.graph.iter_nodes():
            for layer in range(node.level + 1):
                for neighbor_id in node.get_neighbors(layer):
                    neighbor = self.graph.get_node(neighbor_id)
                    if neighbor is None or neighbor.level < layer or neighbor_id == node.id:
                        dangling.append((node.id, layer, neighbor_id))
        return dangling

    def find_degree_violations(self) -> List[Tuple[int, int, int]]:
        """Neighbor lists longer than m_max.

        Returns:
            List of (node_id, layer, list_length) triples
        """
        violations = []
        for node in self.graph.iter_nodes():
            for layer in range(node.level + 1):
                degree = len(node.get_neighbors(layer))
                if degree > self.graph.m_max:
                    violations.append((node.id, layer, degree))
        return violations

    def unreachable_nodes(self, layer: int = 0) -> Set[int]:
        """Nodes at a layer that a BFS from the entry point never reaches.

        Args:
            layer: Layer to traverse

        Returns:
            Set of node IDs present at that layer but not reachable
        """
        at_layer = {node.id for node in self.graph.iter_nodes() if node.level >= layer}
        entry = self.graph.entry_point
        if entry is None:
            return set()

        visited: Set[int] = {entry}
        queue: deque = deque([entry])

        while queue:
            current = queue.popleft()
            node = self.graph.get_node(current)
            if node is None:
                continue
            for neighbor in node.get_neighbors(layer):
                if neighbor not in visited and neighbor in at_layer:
                    visited.add(neighbor)
                    queue.append(neighbor)

        return at_layer - visited

    def get_graph_statistics(self) -> Dict[str, float]:
        """Compute overall graph statistics.

        Returns:
            Dictionary with node_count, edge_count (directed, all layers),
            avg_degree / min_degree / max_degree at layer 0, and max_level
        """
        if self.graph.size() == 0:
            return {
                "node_count": 0,
                "edge_count": 0,
                "avg_degree": 0.0,
                "min_degree": 0,
                "max_degree": 0,
                "max_level": -1,
            }

        degrees = [len(node.get_neighbors(0)) for node in self.graph.iter_nodes()]
        edge_count = sum(
            len(node.get_neighbors(layer))
            for node in self.graph.iter_nodes()
            for layer in range(node.level + 1)
        )

        return {
            "node_count": self.graph.size(),
            "edge_count": edge_count,
            "avg_degree": sum(degrees) / len(degrees),
            "min_degree": min(degrees),
            "max_degree": max(degrees),
            "max_level": self.graph.get_max_level(),
        }

    def validate(self) -> Dict[str, Any]:
        """Run every check.

        Returns:
            Report with "valid" (no dangling edges and no degree violations),
            the individual findings, and the graph statistics
        """
        dangling = self.find_dangling_edges()
        violations = self.find_degree_violations()

        return {
            "valid": not dangling and not violations,
            "dangling_edges": dangling,
            "degree_violations": violations,
            "unreachable": sorted(self.unreachable_nodes(0)),
            "statistics": self.get_graph_statistics(),
        }
