"""
HNSW (Hierarchical Navigable Small World) implementation module.

This module contains the core HNSW algorithm components for building and searching
graph-based approximate nearest neighbor indexes.

Components:
- distance: Distance metrics (squared L2, cosine)
- utils: Helper functions (layer assignment, neighbor selection)
- graph: Node arena and graph container
- builder: Insertion algorithm
- searcher: Layer search and k-NN query algorithm
"""

from vectorkit.hnsw.distance import cosine_similarity, cosine_distance, squared_euclidean
from vectorkit.hnsw.graph import HNSWNode, HNSWGraph
from vectorkit.hnsw.builder import HNSWBuilder
from vectorkit.hnsw.searcher import HNSWSearcher, search_layer

__all__ = [
    "cosine_similarity",
    "cosine_distance",
    "squared_euclidean",
    "HNSWNode",
    "HNSWGraph",
    "HNSWBuilder",
    "HNSWSearcher",
    "search_layer",
]
