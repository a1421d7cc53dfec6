"""Configuration for vectorkit indexes.

Usage:
    from vectorkit import HNSWIndex, IndexConfig

    # Default config
    index = HNSWIndex()

    # Custom config
    config = IndexConfig(M=8, m_max=16, ef_search=50)
    index = HNSWIndex(config=config)

    # From file
    config = IndexConfig.from_json("my_config.json")
    index = HNSWIndex(config=config)
"""

from typing import Dict, Any, Optional
import json
import math
from dataclasses import dataclass, asdict, fields

from vectorkit.exceptions import InvalidParameterError

VALID_METRICS = ("l2", "cosine")


@dataclass
class IndexConfig:
    """Structural constants for an HNSW index.

    Graph shape:
        M: Neighbors selected per layer while inserting a node
        m_max: Hard cap on neighbors kept per layer per node
        max_level: Highest layer a node can be assigned to
        level_multiplier: Scale of the exponential level draw (1/ln 2 halves
            the node count on every layer going up)

    Search breadth:
        ef_construction: Candidate pool size while inserting
        ef_search: Candidate pool size while querying

    Misc:
        metric: "l2" (squared Euclidean) or "cosine"
        seed: Seed for the level generator (None = nondeterministic)
    """

    # HNSW defaults
    M: int = 16
    m_max: int = 32
    max_level: int = 16
    ef_construction: int = 200
    ef_search: int = 100
    level_multiplier: float = 1.0 / math.log(2.0)

    metric: str = "l2"
    seed: Optional[int] = None

    # Metadata
    config_name: str = "default"

    def __post_init__(self):
        """Validate configuration."""
        if self.M < 1:
            raise InvalidParameterError("M must be >= 1")

        if self.m_max < self.M:
            raise InvalidParameterError(
                f"m_max ({self.m_max}) must be >= M ({self.M})"
            )

        if self.max_level < 0:
            raise InvalidParameterError("max_level must be >= 0")

        if self.ef_construction < 1:
            raise InvalidParameterError("ef_construction must be >= 1")

        if self.ef_search < 1:
            raise InvalidParameterError("ef_search must be >= 1")

        if not self.level_multiplier > 0.0:
            raise InvalidParameterError("level_multiplier must be positive")

        if self.metric not in VALID_METRICS:
            raise InvalidParameterError(f"metric must be one of {list(VALID_METRICS)}")

    def to_dict(self) -> Dict[str, Any]:
        """Convert config to dictionary."""
        return asdict(self)

    def to_json(self, filepath: str) -> None:
        """Save configuration to JSON file."""
        with open(filepath, 'w') as f:
            json.dump(self.to_dict(), f, indent=2)

    def replace(self, **overrides: Any) -> 'IndexConfig':
        """Return a copy with some fields overridden (validated again)."""
        values = self.to_dict()
        values.update(overrides)
        return self.from_dict(values)

    @classmethod
    def from_dict(cls, config_dict: Dict[str, Any]) -> 'IndexConfig':
        """Load configuration from dictionary."""
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(config_dict) - known)
        if unknown:
            raise InvalidParameterError(f"Unknown config keys: {unknown}")
        return cls(**config_dict)

    @classmethod
    def from_json(cls, filepath: str) -> 'IndexConfig':
        """Load configuration from JSON file."""
        with open(filepath, 'r') as f:
            config_dict = json.load(f)
        return cls.from_dict(config_dict)

    def __repr__(self) -> str:
        """String representation."""
        return (
            f"IndexConfig("
            f"{self.config_name}, "
            f"M={self.M}, m_max={self.m_max}, "
            f"ef_c={self.ef_construction}, ef_s={self.ef_search}, "
            f"metric={self.metric})"
        )


# Preset configurations

def get_default_config() -> IndexConfig:
    """Default configuration (recommended)."""
    return IndexConfig(config_name="default")


def get_fast_config() -> IndexConfig:
    """Smaller graph and candidate pools for quick builds.

    Recall drops noticeably past a few thousand vectors.
    """
    return IndexConfig(
        config_name="fast",
        M=8,
        m_max=16,
        ef_construction=64,
        ef_search=32,
    )


def get_high_recall_config() -> IndexConfig:
    """Wider candidate pools and denser graph, slower inserts and queries."""
    return IndexConfig(
        config_name="high_recall",
        M=32,
        m_max=64,
        ef_construction=400,
        ef_search=200,
    )
