"""Recall comparison across configuration presets.

Builds the same dataset with the fast, default and high-recall presets and
reports recall@10 against brute-force ground truth, plus build and query time.
"""

import sys
import os
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import time
from typing import Dict, List

import numpy as np
from vectorkit import (
    HNSWIndex,
    IndexConfig,
    VectorDocument,
    get_default_config,
    get_fast_config,
    get_high_recall_config,
)
from vectorkit.metrics import brute_force_knn, compute_recall_at_k


def generate_dataset(n_vectors: int = 2000, dim: int = 64, seed: int = 42) -> np.ndarray:
    """Gaussian vectors of shape (n_vectors, dim)."""
    return np.random.default_rng(seed).standard_normal((n_vectors, dim)).astype(np.float32)


def evaluate(config: IndexConfig, vectors: np.ndarray, queries: np.ndarray,
             ground_truth: List[List[int]], k: int = 10) -> Dict[str, float]:
    """Build an index with config and measure recall and timings."""
    index = HNSWIndex(config=config.replace(seed=0))
    documents = [
        VectorDocument(owner_id=str(i), vector=v, id=str(i)) for i, v in enumerate(vectors)
    ]

    start = time.perf_counter()
    index.add(documents)
    build_seconds = time.perf_counter() - start

    recalls = []
    start = time.perf_counter()
    for query, truth in zip(queries, ground_truth):
        retrieved = [int(r.document_id) for r in index.search(query, limit=k)]
        recalls.append(compute_recall_at_k(retrieved, truth, k))
    query_ms = (time.perf_counter() - start) * 1000 / len(queries)

    return {
        "recall": float(np.mean(recalls)),
        "build_seconds": build_seconds,
        "query_ms": query_ms,
    }


def main():
    vectors = generate_dataset()
    queries = generate_dataset(n_vectors=100, seed=43)
    k = 10

    print("Computing ground truth...")
    ground_truth = [brute_force_knn(vectors, q, k) for q in queries]

    print(f"\n{'preset':<14}{'recall@10':>10}{'build (s)':>12}{'query (ms)':>12}")
    for config in (get_fast_config(), get_default_config(), get_high_recall_config()):
        result = evaluate(config, vectors, queries, ground_truth, k)
        print(
            f"{config.config_name:<14}{result['recall']:>10.3f}"
            f"{result['build_seconds']:>12.2f}{result['query_ms']:>12.2f}"
        )


if __name__ == "__main__":
    main()
