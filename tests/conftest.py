"""
Pytest configuration and shared fixtures for vectorkit tests
"""

import pytest
import numpy as np
from typing import Callable, List

from vectorkit import VectorDocument


@pytest.fixture
def rng() -> np.random.Generator:
    """Seeded random generator."""
    return np.random.default_rng(42)


@pytest.fixture
def sample_vectors() -> np.ndarray:
    """Generate sample vectors for testing."""
    return np.random.default_rng(42).random((100, 8)).astype(np.float32)


@pytest.fixture
def make_documents() -> Callable[..., List[VectorDocument]]:
    """Build documents with predictable ids doc_0, doc_1, ..."""

    def _make(vectors, prefix: str = "doc") -> List[VectorDocument]:
        return [
            VectorDocument(
                owner_id=f"file_{i}",
                vector=vec,
                metadata={"position": str(i)},
                id=f"{prefix}_{i}",
            )
            for i, vec in enumerate(vectors)
        ]

    return _make
