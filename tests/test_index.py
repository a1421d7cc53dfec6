"""
End-to-end tests for HNSWIndex.

These tests verify the complete functionality of the index API:
- Adding document batches (atomic validation, duplicate ids)
- Searching for nearest neighbors and result shape
- Dimension validation
- Removal with graph repair
- Statistics
- Determinism with a seeded random source
"""

import threading
from datetime import datetime, timedelta, timezone
from concurrent.futures import ThreadPoolExecutor

import numpy as np
import pytest
from vectorkit import (
    HNSWIndex,
    IndexConfig,
    VectorDocument,
    DimensionMismatchError,
    DocumentNotFoundError,
    DuplicateDocumentError,
    InvalidParameterError,
)
from vectorkit.index import NODE_OVERHEAD_BYTES, RWLock


def _abc_documents():
    return [
        VectorDocument(owner_id="file-a", vector=[0.0, 0.0], id="A", metadata={"name": "a"}),
        VectorDocument(owner_id="file-b", vector=[1.0, 1.0], id="B", metadata={"name": "b"}),
        VectorDocument(owner_id="file-c", vector=[10.0, 10.0], id="C", metadata={"name": "c"}),
    ]


def test_create_index_with_defaults():
    index = HNSWIndex()

    assert index.config.M == 16
    assert index.config.m_max == 32
    assert index.config.max_level == 16
    assert index.config.ef_construction == 200
    assert index.config.ef_search == 100
    assert index.dimension is None
    assert len(index) == 0


def test_keyword_overrides():
    index = HNSWIndex(ef_search=50, M=8, m_max=16)

    assert index.config.ef_search == 50
    assert index.config.M == 8


def test_invalid_parameters_rejected():
    with pytest.raises(InvalidParameterError):
        HNSWIndex(ef_search=0)

    with pytest.raises(InvalidParameterError):
        HNSWIndex(config=IndexConfig(), m_max=4, M=8)


def test_add_returns_ids_and_updates_stats(sample_vectors, make_documents):
    index = HNSWIndex(seed=1)
    documents = make_documents(sample_vectors)

    ids = index.add(documents)

    assert ids == [doc.id for doc in documents]
    stats = index.stats
    assert stats.document_count == len(sample_vectors)
    assert stats.vector_dimension == sample_vectors.shape[1]
    assert index.dimension == sample_vectors.shape[1]


def test_add_empty_batch_is_noop():
    index = HNSWIndex()
    assert index.add([]) == []
    assert index.dimension is None


def test_add_generates_ids():
    index = HNSWIndex(seed=0)
    ids = index.add([VectorDocument(owner_id="f", vector=[1.0, 2.0])])

    assert len(ids) == 1
    assert ids[0] in index


def test_dimension_mismatch_leaves_index_unchanged(make_documents):
    index = HNSWIndex(seed=0)
    index.add(make_documents(np.ones((3, 4), dtype=np.float32)))

    bad_batch = [
        VectorDocument(owner_id="ok", vector=np.zeros(4), id="ok"),
        VectorDocument(owner_id="bad", vector=np.zeros(5), id="bad"),
    ]
    with pytest.raises(DimensionMismatchError):
        index.add(bad_batch)

    assert index.stats.document_count == 3
    assert "ok" not in index


def test_first_batch_mismatch_leaves_dimension_unset():
    index = HNSWIndex(seed=0)
    batch = [
        VectorDocument(owner_id="a", vector=[1.0, 2.0]),
        VectorDocument(owner_id="b", vector=[1.0, 2.0, 3.0]),
    ]

    with pytest.raises(DimensionMismatchError):
        index.add(batch)

    assert index.dimension is None
    assert len(index) == 0


def test_empty_vector_rejected():
    index = HNSWIndex()
    with pytest.raises(InvalidParameterError):
        index.add([VectorDocument(owner_id="a", vector=[])])


def test_duplicate_ids_rejected():
    index = HNSWIndex(seed=0)
    index.add([VectorDocument(owner_id="a", vector=[1.0, 0.0], id="x")])

    with pytest.raises(DuplicateDocumentError):
        index.add([VectorDocument(owner_id="b", vector=[0.0, 1.0], id="x")])

    with pytest.raises(DuplicateDocumentError):
        index.add([
            VectorDocument(owner_id="b", vector=[0.0, 1.0], id="y"),
            VectorDocument(owner_id="c", vector=[1.0, 1.0], id="y"),
        ])

    assert len(index) == 1
    assert "y" not in index


def test_search_empty_index_returns_empty_list():
    index = HNSWIndex()

    assert index.search([1.0, 2.0, 3.0], limit=5) == []


def test_search_dimension_mismatch(make_documents):
    index = HNSWIndex(seed=0)
    index.add(make_documents(np.ones((2, 3), dtype=np.float32)))

    with pytest.raises(DimensionMismatchError):
        index.search([1.0, 2.0], limit=1)


def test_search_negative_limit():
    index = HNSWIndex()
    with pytest.raises(InvalidParameterError):
        index.search([1.0], limit=-1)


def test_search_zero_limit(make_documents):
    index = HNSWIndex(seed=0)
    index.add(make_documents(np.ones((2, 3), dtype=np.float32)))

    assert index.search([1.0, 1.0, 1.0], limit=0) == []


def test_tied_results_follow_insertion_order():
    """Query [0,1]: A and B are both at distance 1, C at 181"""
    index = HNSWIndex(seed=3)
    index.add(_abc_documents())

    results = index.search([0.0, 1.0], limit=2)

    assert [r.document_id for r in results] == ["A", "B"]
    assert [r.distance for r in results] == [1.0, 1.0]
    assert [r.similarity for r in results] == [0.5, 0.5]

    all_results = index.search([0.0, 1.0], limit=10)
    assert [r.document_id for r in all_results] == ["A", "B", "C"]
    assert all_results[2].distance == 181.0


def test_search_result_fields():
    index = HNSWIndex(seed=3)
    index.add(_abc_documents())

    first, second = index.search([0.0, 0.0], limit=2)

    assert first.document_id == "A"
    assert first.owner_id == "file-a"
    assert first.distance == 0.0
    assert first.similarity == 1.0
    assert first.metadata == {"name": "a"}
    assert second.similarity == pytest.approx(1.0 / 3.0)
    assert first.id != second.id
    assert first != second


def test_result_metadata_is_a_copy():
    index = HNSWIndex(seed=3)
    index.add(_abc_documents())

    result = index.search([0.0, 0.0], limit=1)[0]
    result.metadata["name"] = "changed"

    assert index.search([0.0, 0.0], limit=1)[0].metadata == {"name": "a"}


def test_results_bounded_and_sorted(sample_vectors, make_documents):
    index = HNSWIndex(seed=2)
    index.add(make_documents(sample_vectors))
    rng = np.random.default_rng(0)

    for k in (1, 5, 10, 250):
        query = rng.random(sample_vectors.shape[1]).astype(np.float32)
        results = index.search(query, limit=k)

        assert len(results) <= min(k, len(sample_vectors))
        distances = [r.distance for r in results]
        assert all(a <= b for a, b in zip(distances, distances[1:]))
        assert all(0.0 < r.similarity <= 1.0 for r in results)


def test_limit_larger_than_index_returns_everything(make_documents):
    index = HNSWIndex(seed=0)
    index.add(make_documents(np.eye(4, dtype=np.float32)))

    assert len(index.search([1.0, 0.0, 0.0, 0.0], limit=100)) == 4


def test_exact_match_recall():
    """Querying with a stored vector finds that document at distance 0"""
    rng = np.random.default_rng(0)
    vectors = rng.random((300, 16)).astype(np.float32)
    index = HNSWIndex(seed=0)
    index.add([VectorDocument(owner_id=str(i), vector=v, id=f"v{i}") for i, v in enumerate(vectors)])

    for i in range(50):
        top = index.search(vectors[i], limit=1)[0]
        assert top.document_id == f"v{i}"
        assert top.distance == 0.0


def test_remove_unknown_id_raises_consistently():
    index = HNSWIndex()

    for _ in range(2):
        with pytest.raises(DocumentNotFoundError):
            index.remove("missing")

    index.add([VectorDocument(owner_id="a", vector=[1.0], id="a")])
    with pytest.raises(KeyError):
        index.remove("missing")


def test_removed_documents_never_returned(sample_vectors, make_documents):
    index = HNSWIndex(seed=4, M=4, m_max=8)
    index.add(make_documents(sample_vectors))

    removed = {f"doc_{i}" for i in range(0, 100, 7)}
    for document_id in removed:
        index.remove(document_id)

    assert len(index) == 100 - len(removed)

    for i in range(100):
        results = index.search(sample_vectors[i], limit=10)
        assert not removed & {r.document_id for r in results}

    report = index.check_integrity()
    assert report["valid"], report
    assert report["dangling_edges"] == []


def test_removed_vector_query_finds_other_documents():
    index = HNSWIndex(seed=3)
    index.add(_abc_documents())

    index.remove("A")

    results = index.search([0.0, 0.0], limit=3)
    assert [r.document_id for r in results] == ["B", "C"]


def test_remove_then_readd_same_id():
    index = HNSWIndex(seed=0)
    index.add([VectorDocument(owner_id="a", vector=[1.0, 0.0], id="x")])
    index.remove("x")

    index.add([VectorDocument(owner_id="a", vector=[0.0, 1.0], id="x")])

    assert index.search([0.0, 1.0], limit=1)[0].document_id == "x"


def test_remove_everything_then_search():
    index = HNSWIndex(seed=3)
    index.add(_abc_documents())

    for document_id in ("A", "B", "C"):
        index.remove(document_id)

    assert index.search([0.0, 1.0], limit=3) == []
    assert index.stats.document_count == 0


def test_memory_usage_single_document():
    index = HNSWIndex(seed=0)
    index.add([VectorDocument(owner_id="a", vector=[1.0, 2.0, 3.0, 4.0])])

    assert index.stats.memory_usage == NODE_OVERHEAD_BYTES + 4 * 4


def test_memory_usage_counts_neighbor_lists():
    index = HNSWIndex(seed=0)
    index.add(_abc_documents()[:2])

    graph = index._graph
    level_a = graph.get_node_by_document("A").level
    level_b = graph.get_node_by_document("B").level
    shared_layers = min(level_a, level_b) + 1

    expected = 2 * (NODE_OVERHEAD_BYTES + 2 * 4) + 2 * shared_layers * 16
    assert index.stats.memory_usage == expected


def test_stats_on_empty_index():
    stats = HNSWIndex().stats

    assert stats.document_count == 0
    assert stats.vector_dimension == 0
    assert stats.memory_usage == 0
    assert stats.build_time >= 0.0


def test_build_time_grows():
    index = HNSWIndex()
    first = index.stats.build_time
    second = index.stats.build_time

    assert second >= first >= 0.0
    assert set(index.stats.to_dict()) == {
        "document_count", "vector_dimension", "memory_usage", "build_time"
    }


def test_get_document_round_trips_fields():
    index = HNSWIndex(seed=0)
    document = VectorDocument(owner_id="file-1", vector=[0.5, 0.25], metadata={"k": "v"}, id="d1")
    index.add([document])

    stored = index.get_document("d1")

    assert stored.owner_id == "file-1"
    assert stored.metadata == {"k": "v"}
    assert np.array_equal(stored.vector, document.vector)
    assert stored.created_at == document.created_at

    with pytest.raises(DocumentNotFoundError):
        index.get_document("nope")


def test_clear_resets_index(make_documents):
    index = HNSWIndex(seed=0)
    index.add(make_documents(np.ones((3, 2), dtype=np.float32)))

    index.clear()

    assert len(index) == 0
    assert index.dimension is None
    index.add([VectorDocument(owner_id="a", vector=[1.0, 2.0, 3.0])])
    assert index.dimension == 3


def test_same_seed_builds_same_graph(sample_vectors, make_documents):
    index_a = HNSWIndex(seed=99)
    index_b = HNSWIndex(seed=99)
    index_a.add(make_documents(sample_vectors))
    index_b.add(make_documents(sample_vectors))

    for node_a, node_b in zip(index_a._graph.iter_nodes(), index_b._graph.iter_nodes()):
        assert node_a.level == node_b.level
        assert node_a.neighbors == node_b.neighbors

    query = sample_vectors[0] * 0.5
    results_a = [(r.document_id, r.distance) for r in index_a.search(query, limit=10)]
    results_b = [(r.document_id, r.distance) for r in index_b.search(query, limit=10)]
    assert results_a == results_b


def test_injected_rng_controls_levels(make_documents):
    vectors = np.random.default_rng(0).random((30, 4)).astype(np.float32)
    index_a = HNSWIndex(rng=np.random.default_rng(5))
    index_b = HNSWIndex(rng=np.random.default_rng(5))
    index_a.add(make_documents(vectors))
    index_b.add(make_documents(vectors))

    levels_a = [n.level for n in index_a._graph.iter_nodes()]
    levels_b = [n.level for n in index_b._graph.iter_nodes()]
    assert levels_a == levels_b


def test_cosine_metric():
    index = HNSWIndex(seed=0, metric="cosine")
    index.add([
        VectorDocument(owner_id="x", vector=[2.0, 0.0], id="x"),
        VectorDocument(owner_id="y", vector=[0.0, 1.0], id="y"),
    ])

    results = index.search([1.0, 0.0], limit=2)

    assert [r.document_id for r in results] == ["x", "y"]
    assert results[0].distance == pytest.approx(0.0, abs=1e-6)
    assert results[1].distance == pytest.approx(1.0)


def test_contains_and_len(make_documents):
    index = HNSWIndex(seed=0)
    index.add(make_documents(np.ones((2, 2), dtype=np.float32)))

    assert "doc_0" in index
    assert "doc_9" not in index
    assert 5 not in index
    assert len(index) == 2


def test_concurrent_searches_during_inserts(sample_vectors, make_documents):
    index = HNSWIndex(seed=0, M=4, m_max=8, ef_construction=32)
    documents = make_documents(sample_vectors)
    index.add(documents[:10])

    def writer():
        for start in range(10, 100, 10):
            index.add(documents[start:start + 10])

    def reader(i):
        results = index.search(sample_vectors[i % 10], limit=5)
        assert len(results) <= 5
        return results[0].document_id

    with ThreadPoolExecutor(max_workers=4) as pool:
        write_future = pool.submit(writer)
        read_futures = [pool.submit(reader, i) for i in range(40)]
        write_future.result()
        for future in read_futures:
            assert future.result().startswith("doc_")

    assert len(index) == 100


def test_rwlock_writer_waits_for_readers():
    lock = RWLock()
    events = []
    reader_in = threading.Event()
    release_reader = threading.Event()

    def reader():
        with lock.read():
            reader_in.set()
            release_reader.wait(timeout=5)
            events.append("read-done")

    def writer():
        reader_in.wait(timeout=5)
        with lock.write():
            events.append("write")

    t_reader = threading.Thread(target=reader)
    t_writer = threading.Thread(target=writer)
    t_reader.start()
    t_writer.start()

    reader_in.wait(timeout=5)
    release_reader.set()
    t_reader.join(timeout=5)
    t_writer.join(timeout=5)

    assert events == ["read-done", "write"]


def test_len_and_contains_wait_for_writer():
    index = HNSWIndex()
    index.add([VectorDocument(owner_id="a", vector=[1.0, 0.0], id="x")])
    answers = {}

    def read_size():
        answers["len"] = len(index)
        answers["contains"] = "x" in index

    with index._lock.write():
        reader = threading.Thread(target=read_size)
        reader.start()
        reader.join(timeout=0.2)
        assert reader.is_alive(), "Reads should block while a writer holds the lock"
        assert answers == {}

    reader.join(timeout=5)
    assert answers == {"len": 1, "contains": True}


def test_recent_documents_newest_first():
    start = datetime(2025, 6, 1, tzinfo=timezone.utc)
    index = HNSWIndex(seed=0)
    index.add([
        VectorDocument(owner_id="o", vector=[0.0], id="old", created_at=start),
        VectorDocument(owner_id="o", vector=[1.0], id="new", created_at=start + timedelta(hours=2)),
        VectorDocument(owner_id="o", vector=[2.0], id="mid", created_at=start + timedelta(hours=1)),
        VectorDocument(owner_id="o", vector=[3.0], id="mid2", created_at=start + timedelta(hours=1)),
    ])

    assert [d.id for d in index.recent_documents(10)] == ["new", "mid2", "mid", "old"]
    assert [d.id for d in index.recent_documents(2)] == ["new", "mid2"]
    assert index.recent_documents(0) == []

    with pytest.raises(InvalidParameterError):
        index.recent_documents(-1)
