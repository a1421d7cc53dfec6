"""
Caller-facing records: documents going in, results and stats coming out.

The index never looks inside owner_id or metadata. They travel with the
vector and come back verbatim in search results.
"""

import uuid
from dataclasses import dataclass, field, asdict
from datetime import datetime, timezone
from typing import Any, Dict

import numpy as np
import numpy.typing as npt

Vector = npt.NDArray[np.float32]


def _new_id() -> str:
    return str(uuid.uuid4())


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class VectorDocument:
    """
    A single embedding to insert into the index.

    Args:
        owner_id: Reference to the external entity this vector represents
        vector: Embedding values (converted to a 1D float32 array)
        metadata: String-to-string mapping copied into search results
        id: Unique document id (a fresh UUID if not given)
        created_at: Creation timestamp, informational only
    """

    owner_id: str
    vector: Vector
    metadata: Dict[str, str] = field(default_factory=dict)
    id: str = field(default_factory=_new_id)
    created_at: datetime = field(default_factory=_utcnow)

    def __post_init__(self) -> None:
        # frozen dataclass: normalize fields through object.__setattr__
        object.__setattr__(self, "vector", np.asarray(self.vector, dtype=np.float32).reshape(-1))
        object.__setattr__(self, "metadata", dict(self.metadata))


@dataclass(frozen=True, eq=False)
class SearchResult:
    """One hit returned by a query. Results compare equal only by their own id."""

    document_id: str
    owner_id: str
    similarity: float
    distance: float
    metadata: Dict[str, str]
    id: str = field(default_factory=_new_id)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, SearchResult):
            return NotImplemented
        return self.id == other.id

    def __hash__(self) -> int:
        return hash(self.id)


@dataclass(frozen=True)
class IndexStats:
    """Read-only snapshot of index size and cost."""

    document_count: int
    vector_dimension: int
    memory_usage: int  # bytes
    build_time: float  # seconds since the index was created

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def similarity_from_distance(distance: float) -> float:
    """Map a distance in [0, inf) to a score in (0, 1], 1 for identical vectors."""
    return 1.0 / (1.0 + distance)
