"""Quick start guide for vectorkit.

This example shows the minimal code needed to:
1. Index a batch of pre-computed embeddings
2. Search for the closest documents
3. Save the index and load it back
4. Remove a document
"""

import sys
import os
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import tempfile

import numpy as np
from vectorkit import HNSWIndex, VectorDocument


def main():
    print("="*60)
    print("vectorkit Quick Start")
    print("="*60)

    # Step 1: Create synthetic embeddings
    print("\n1. Creating dataset...")
    rng = np.random.default_rng(42)
    vectors = rng.standard_normal((500, 64)).astype(np.float32)

    documents = [
        VectorDocument(
            owner_id=f"file-{i:04d}",
            vector=vector,
            metadata={"type": "example", "title": f"Document {i}"},
            id=f"doc-{i:04d}",
        )
        for i, vector in enumerate(vectors)
    ]
    print(f"   Created {len(documents)} documents of dimension {vectors.shape[1]}")

    # Step 2: Build the index
    print("\n2. Building HNSW index...")
    index = HNSWIndex(seed=7)
    index.add(documents)

    stats = index.stats
    print(f"   Indexed {stats.document_count} documents")
    print(f"   Estimated memory: {stats.memory_usage / 1024:.1f} KiB")

    # Step 3: Search
    print("\n3. Searching...")
    query = vectors[10] + 0.05 * rng.standard_normal(64).astype(np.float32)
    results = index.search(query, limit=5)

    for rank, result in enumerate(results, 1):
        print(
            f"      {rank}. {result.document_id} "
            f"(owner {result.owner_id}, similarity {result.similarity:.4f})"
        )

    # Step 4: Persist and reload
    print("\n4. Saving and loading...")
    with tempfile.TemporaryDirectory() as tmp:
        path = os.path.join(tmp, "vector_index.json")
        index.save(path)

        restored = HNSWIndex()
        restored.load(path)

        same = [r.document_id for r in restored.search(query, limit=5)] == \
            [r.document_id for r in results]
        print(f"   Reloaded {len(restored)} documents, same results: {same}")

    # Step 5: Remove a document
    print("\n5. Removing the best match...")
    index.remove(results[0].document_id)
    print(f"   New best match: {index.search(query, limit=1)[0].document_id}")
    print(f"   Graph valid: {index.check_integrity()['valid']}")

    print("\n" + "="*60)
    print("Quick Start Complete!")
    print("="*60)


if __name__ == "__main__":
    main()
