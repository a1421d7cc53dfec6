"""
Metrics for evaluating search quality.

This module provides functions to:
- Compute exact ground truth via brute force search
- Compute recall@k (fraction of ground truth neighbors retrieved)
"""

from typing import List, Sequence

import numpy as np


def brute_force_knn(vectors: np.ndarray, query: np.ndarray, k: int) -> List[int]:
    """
    Find the exact k nearest rows of ``vectors`` by squared Euclidean distance.

    Ties are broken by row index, matching the index's insertion-order
    tie-break.

    Args:
        vectors: Array of shape (n, dimension)
        query: Query vector of shape (dimension,)
        k: Number of neighbors

    Returns:
        Row indices of the k nearest vectors, closest first
    """
    if len(vectors) == 0 or k <= 0:
        return []

    diffs = np.asarray(vectors, dtype=np.float32) - np.asarray(query, dtype=np.float32)
    distances = np.einsum("ij,ij->i", diffs, diffs)

    order = np.argsort(distances, kind="stable")
    return [int(i) for i in order[:k]]


def compute_recall_at_k(
    retrieved_ids: Sequence,
    ground_truth_ids: Sequence,
    k: int = 10
) -> float:
    """
    Compute recall@k: fraction of ground truth neighbors retrieved.

    Args:
        retrieved_ids: IDs returned by search (ordered by relevance)
        ground_truth_ids: True k-nearest neighbor IDs
        k: Number of neighbors to consider

    Returns:
        Recall@k value between 0.0 and 1.0

    Example:
        >>> compute_recall_at_k([1, 2, 3, 99, 98], [1, 2, 3, 4, 5], k=5)
        0.6
    """
    if k <= 0:
        return 0.0

    retrieved_set = set(retrieved_ids[:k])
    ground_truth_set = set(ground_truth_ids[:k])

    # Small collections can have fewer than k true neighbors
    denominator = min(k, len(ground_truth_set))
    if denominator == 0:
        return 0.0

    return len(retrieved_set & ground_truth_set) / denominator
