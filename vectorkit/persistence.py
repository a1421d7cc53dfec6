"""
Snapshot persistence for HNSW graphs.

A snapshot is a JSON array of node records in insertion order:

    [
      {
        "id": "...",              # node id (same as document_id)
        "document_id": "...",
        "owner_id": "...",
        "vector": [0.1, 0.2, ...],
        "neighbors": [["doc-a", "doc-b"], ["doc-a"]],   # one list per layer
        "metadata": {"key": "value"},
        "created_at": "2025-12-27T10:00:00+00:00"
      },
      ...
    ]

Neighbors are stored by document id so a snapshot does not depend on arena
numbering. Loading renumbers nodes in file order, which preserves insertion
order and with it the tie-breaking of equal distances.
"""

import json
import logging
import os
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import numpy as np

from vectorkit.exceptions import PersistenceError, VectorIndexError
from vectorkit.hnsw.graph import HNSWGraph, HNSWNode

logger = logging.getLogger(__name__)

PathLike = Union[str, "os.PathLike[str]"]


def node_to_record(node: HNSWNode, graph: HNSWGraph) -> Dict[str, Any]:
    """Encode one node as a JSON-compatible record."""
    neighbors: List[List[str]] = []
    for layer in range(node.level + 1):
        layer_ids = []
        for neighbor_id in node.get_neighbors(layer):
            neighbor = graph.get_node(neighbor_id)
            if neighbor is not None:
                layer_ids.append(neighbor.document_id)
        neighbors.append(layer_ids)

    return {
        "id": node.document_id,
        "document_id": node.document_id,
        "owner_id": node.owner_id,
        "vector": [float(x) for x in node.vector],
        "neighbors": neighbors,
        "metadata": dict(node.metadata),
        "created_at": node.created_at.isoformat(),
    }


def save_snapshot(graph: HNSWGraph, path: PathLike) -> None:
    """
    Write the full node set of a graph to a JSON snapshot.

    The snapshot is written to a temporary sibling file first and then moved
    over the target, so a failed write never leaves a truncated snapshot.

    Args:
        graph: Graph to serialize
        path: Destination file

    Raises:
        PersistenceError: If the file cannot be written
    """
    path = Path(path)
    records = [node_to_record(node, graph) for node in graph.iter_nodes()]
    tmp = path.with_name(path.name + ".tmp")

    try:
        with open(tmp, "w", encoding="utf-8") as f:
            json.dump(records, f, ensure_ascii=False)
        os.replace(tmp, path)
    except OSError as exc:
        raise PersistenceError("Failed to write snapshot", str(path)) from exc

    logger.info("Saved %d nodes to %s", len(records), path)


def load_snapshot(path: PathLike, template: HNSWGraph) -> HNSWGraph:
    """
    Read a JSON snapshot into a new graph.

    The returned graph copies its parameters (M, m_max, max_level, distance)
    from ``template``; the template itself is not modified.

    Args:
        path: Snapshot file
        template: Graph whose parameters the loaded graph should use

    Returns:
        A fully linked graph

    Raises:
        PersistenceError: If the file is missing, unreadable, or malformed
    """
    path = Path(path)

    try:
        with open(path, "r", encoding="utf-8") as f:
            records = json.load(f)
    except OSError as exc:
        raise PersistenceError("Failed to read snapshot", str(path)) from exc
    except ValueError as exc:
        raise PersistenceError("Snapshot is not valid JSON", str(path)) from exc

    try:
        graph = _decode_records(records, template)
    except (KeyError, TypeError, ValueError, VectorIndexError) as exc:
        raise PersistenceError(f"Malformed snapshot ({exc})", str(path)) from exc

    logger.info("Loaded %d nodes from %s", graph.size(), path)
    return graph


def _decode_vector(value: Any) -> np.ndarray:
    if not isinstance(value, list):
        raise TypeError("'vector' must be an array of numbers")
    for component in value:
        if isinstance(component, bool) or not isinstance(component, (int, float)):
            raise TypeError(f"'vector' component {component!r} is not a number")
    return np.asarray(value, dtype=np.float32)


def _decode_string(record: Dict[str, Any], key: str, default: Optional[str] = None) -> str:
    value = record.get(key, default)
    if not isinstance(value, str):
        raise TypeError(f"'{key}' must be a string")
    return value


def _decode_metadata(value: Any) -> Dict[str, str]:
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise TypeError("'metadata' must be an object")
    for key, item in value.items():
        if not isinstance(item, str):
            raise TypeError(f"metadata value for '{key}' must be a string")
    return dict(value)


def _decode_neighbors(value: Any) -> List[List[str]]:
    if not isinstance(value, list) or not value:
        raise ValueError("'neighbors' must hold at least the layer 0 list")
    for layer_ids in value:
        if not isinstance(layer_ids, list):
            raise TypeError("each 'neighbors' layer must be an array of ids")
        for document_id in layer_ids:
            if not isinstance(document_id, str):
                raise TypeError(f"neighbor id {document_id!r} is not a string")
    return value


def _decode_records(records: Any, template: HNSWGraph) -> HNSWGraph:
    if not isinstance(records, list):
        raise TypeError("top-level value must be an array of node records")

    graph = template.empty_copy()
    pending_edges = []

    for record in records:
        if not isinstance(record, dict):
            raise TypeError("node records must be objects")

        vector = _decode_vector(record["vector"])
        neighbors = _decode_neighbors(record["neighbors"])
        document_id = _decode_string(record, "document_id", record["id"])
        owner_id = _decode_string(record, "owner_id", "")
        metadata = _decode_metadata(record.get("metadata"))

        created_at = record.get("created_at")
        if created_at is not None:
            created_at = datetime.fromisoformat(created_at)

        node_id = graph.add_node(
            vector,
            level=len(neighbors) - 1,
            document_id=document_id,
            owner_id=owner_id,
            metadata=metadata,
            created_at=created_at,
        )
        pending_edges.append((node_id, neighbors))

    dropped = 0
    for node_id, neighbors in pending_edges:
        node = graph.nodes[node_id]
        for layer, layer_ids in enumerate(neighbors):
            for document_id in layer_ids:
                neighbor = graph.get_node_by_document(document_id)
                if neighbor is None or neighbor.level < layer or neighbor.id == node_id:
                    dropped += 1
                    continue
                node.add_neighbor(neighbor.id, layer)

    if dropped:
        logger.warning("Dropped %d dangling neighbor references while loading", dropped)

    return graph
