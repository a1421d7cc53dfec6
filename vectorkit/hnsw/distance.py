"""
Distance and similarity metrics for vector comparisons.

The index ranks neighbors by squared Euclidean distance. Squaring is monotonic
over non-negative reals, so dropping the square root keeps the nearest-neighbor
ordering while saving one sqrt per comparison.

Cosine similarity is kept as an alternative metric. It is only used when an
index is configured with metric="cosine".
"""

from typing import Callable, Dict

import numpy as np
import numpy.typing as npt

from vectorkit.exceptions import InvalidParameterError

Vector = npt.NDArray[np.float32]
DistanceFunction = Callable[[Vector, Vector], float]


def squared_euclidean(v1: Vector, v2: Vector) -> float:
    """
    Compute the squared Euclidean distance between two vectors.

    Only the first min(len(v1), len(v2)) components are compared. The index
    enforces a single dimension, so in practice both lengths are equal.

    Args:
        v1: First vector (1D numpy array)
        v2: Second vector (1D numpy array)

    Returns:
        Sum of squared component differences (0 means identical)

    Example:
        >>> squared_euclidean(np.array([0.0, 0.0]), np.array([1.0, 1.0]))
        2.0
    """
    n = min(len(v1), len(v2))
    diff = v1[:n] - v2[:n]
    return float(np.dot(diff, diff))


def cosine_similarity(v1: Vector, v2: Vector) -> float:
    """
    Compute cosine similarity between two vectors.

    Ranges from -1 (opposite directions) to 1 (same direction).

    Args:
        v1: First vector (1D numpy array)
        v2: Second vector (1D numpy array)

    Returns:
        Similarity score between -1 and 1 (higher means more similar)
    """
    n = min(len(v1), len(v2))
    v1 = v1[:n]
    v2 = v2[:n]

    dot_product = np.dot(v1, v2)
    norm_v1 = np.linalg.norm(v1)
    norm_v2 = np.linalg.norm(v2)

    # Zero vectors have no direction
    if norm_v1 == 0.0 or norm_v2 == 0.0:
        return 0.0

    return float(dot_product / (norm_v1 * norm_v2))


def cosine_distance(v1: Vector, v2: Vector) -> float:
    """
    Compute cosine distance (1 - cosine similarity), clamped to [0, 2].
    """
    return min(max(1.0 - cosine_similarity(v1, v2), 0.0), 2.0)


_METRICS: Dict[str, DistanceFunction] = {
    "l2": squared_euclidean,
    "cosine": cosine_distance,
}


def get_distance_function(metric: str) -> DistanceFunction:
    """
    Look up a distance function by metric name.

    Args:
        metric: "l2" or "cosine"

    Returns:
        Function taking two vectors and returning a non-negative distance

    Raises:
        InvalidParameterError: If the metric name is unknown
    """
    try:
        return _METRICS[metric]
    except KeyError:
        raise InvalidParameterError(
            f"Unknown metric '{metric}', expected one of {sorted(_METRICS)}"
        ) from None
