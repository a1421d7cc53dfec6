"""
Utility functions for HNSW graph construction.

- Layer assignment: decides the highest layer a new node participates in
- Neighbor selection: chooses which edges to keep when building the graph

Layer assignment draws from an exponential distribution so that most nodes
live only in layer 0 and each layer above holds a shrinking fraction of the
one below. Those sparse upper layers are the "express lanes" a search uses to
get close to its target before zooming in.
"""

import math
from typing import List, Optional

import numpy as np

DEFAULT_LEVEL_MULTIPLIER = 1.0 / math.log(2.0)
DEFAULT_MAX_LEVEL = 16


def assign_layer(
    rng: Optional[np.random.Generator] = None,
    level_multiplier: float = DEFAULT_LEVEL_MULTIPLIER,
    max_level: int = DEFAULT_MAX_LEVEL,
) -> int:
    """
    Randomly assign a layer for a new node.

    Formula: layer = floor(-ln(u) * level_multiplier) with u uniform in (0, 1],
    clamped to max_level. With the default multiplier 1/ln(2), a node reaches
    layer l + 1 with probability 1/2 given it reached layer l.

    Args:
        rng: Random source (pass a seeded Generator for reproducible graphs)
        level_multiplier: Scale of the exponential draw
        max_level: Highest layer that can be returned

    Returns:
        Layer number in [0, max_level]

    Example:
        >>> rng = np.random.default_rng(42)
        >>> layers = [assign_layer(rng) for _ in range(10000)]
        >>> layers.count(0) / 10000  # ~0.5
    """
    if rng is None:
        rng = np.random.default_rng()

    # Generator.random() is in [0, 1); flip it to (0, 1] so log() is finite
    random_value = 1.0 - rng.random()

    layer = int(math.floor(-math.log(random_value) * level_multiplier))

    return min(layer, max_level)


def select_neighbors_simple(
    candidates: List[int], distances: List[float], M: int
) -> List[int]:
    """
    Select the M nearest candidates.

    Candidates at equal distance keep their input order (stable sort).

    Args:
        candidates: List of node IDs
        distances: List of distances (parallel to candidates, lower = closer)
        M: Maximum number of neighbors to select

    Returns:
        List of selected node IDs (up to M nodes, sorted by distance)

    Example:
        >>> select_neighbors_simple([10, 20, 30, 40], [0.5, 0.2, 0.8, 0.3], M=2)
        [20, 40]
    """
    if len(candidates) == 0:
        return []

    paired = list(zip(candidates, distances))
    paired_sorted = sorted(paired, key=lambda x: x[1])

    return [node_id for node_id, _ in paired_sorted[:M]]
