import pytest
from sqlalchemy.dialects import postgresql

from helpdesk_ai.db.session import vector_index_ddl
from helpdesk_ai.services.vector_store import InMemoryVectorStore, PgVectorStore, VectorStoreError
from helpdesk_ai.settings import settings


def _store():
    return InMemoryVectorStore(dimension=3)


def test_upsert_is_idempotent_and_replaces_vector():
    store = _store()
    store.upsert("t1", [1.0, 0.0, 0.0])
    first_update = store.updated_at("t1")

    store.upsert("t1", [0.0, 1.0, 0.0])
    store.upsert("t1", [0.0, 1.0, 0.0])

    assert len(store) == 1
    assert store.updated_at("t1") >= first_update
    results = store.nearest_neighbors([0.0, 1.0, 0.0], limit=5, threshold=0.5)
    assert [item.ticket_id for item in results] == ["t1"]
    assert results[0].similarity == pytest.approx(1.0)


def test_deleted_ticket_is_never_returned():
    store = _store()
    store.upsert("keep", [1.0, 0.0, 0.0])
    store.upsert("gone", [1.0, 0.0, 0.0])

    assert store.delete("gone") is True
    assert store.delete("gone") is False

    for query in ([1.0, 0.0, 0.0], [0.0, 1.0, 0.0], [1.0, 1.0, 1.0]):
        assert "gone" not in [item.ticket_id for item in store.nearest_neighbors(query, 10, -1.0)]


def test_results_sorted_descending_with_stable_ties_and_limit():
    store = _store()
    store.upsert("b", [1.0, 0.0, 0.0])
    store.upsert("a", [1.0, 0.0, 0.0])
    store.upsert("c", [1.0, 1.0, 0.0])
    store.upsert("d", [0.0, 0.0, 1.0])

    results = store.nearest_neighbors([1.0, 0.0, 0.0], limit=3, threshold=0.0)

    assert [item.ticket_id for item in results] == ["a", "b", "c"]
    similarities = [item.similarity for item in results]
    assert similarities == sorted(similarities, reverse=True)
    assert all(0.0 <= value <= 1.0 for value in similarities)


def test_threshold_is_strict():
    store = _store()
    store.upsert("orthogonal", [0.0, 1.0, 0.0])

    assert store.nearest_neighbors([1.0, 0.0, 0.0], limit=5, threshold=0.0) == []


def test_opposite_vectors_are_clamped_to_zero():
    store = _store()
    store.upsert("opposite", [-1.0, 0.0, 0.0])

    results = store.nearest_neighbors([1.0, 0.0, 0.0], limit=5, threshold=-2.0)

    assert results[0].similarity == 0.0


def test_zero_limit_returns_nothing():
    store = _store()
    store.upsert("t1", [1.0, 0.0, 0.0])

    assert store.nearest_neighbors([1.0, 0.0, 0.0], limit=0, threshold=0.0) == []


def test_dimension_mismatch_raises_store_error():
    with pytest.raises(VectorStoreError):
        _store().upsert("t1", [1.0, 0.0])


def test_similar_ticket_serialises_with_camel_case_id():
    store = _store()
    store.upsert("t1", [1.0, 0.0, 0.0])

    assert store.nearest_neighbors([1.0, 0.0, 0.0], 1, 0.5)[0].as_dict() == {"ticketId": "t1", "similarity": 1.0}


def test_pgvector_query_uses_cosine_distance_threshold_and_limit():
    stmt = PgVectorStore.build_neighbors_query([0.1] * settings.pgvector_dimension, limit=5, threshold=0.7)

    sql = str(stmt.compile(dialect=postgresql.dialect()))

    assert "<=>" in sql
    assert "ORDER BY" in sql
    assert "LIMIT" in sql
    assert "ticket_embeddings" in sql


def test_pgvector_store_rejects_wrong_dimension_before_touching_database():
    store = PgVectorStore(engine=None, dimension=4)

    with pytest.raises(VectorStoreError):
        store.nearest_neighbors([1.0, 2.0], limit=3, threshold=0.5)


@pytest.mark.parametrize(
    "index_type, expected",
    [("hnsw", "USING hnsw (embedding vector_cosine_ops) WITH (m = 16, ef_construction = 64)"), ("ivfflat", "WITH (lists = 100)")],
)
def test_vector_index_ddl_follows_configuration(monkeypatch, index_type, expected):
    monkeypatch.setattr(settings, "pgvector_index_type", index_type)
    monkeypatch.setattr(settings, "pgvector_m", 16)
    monkeypatch.setattr(settings, "pgvector_ef_construction", 64)
    monkeypatch.setattr(settings, "pgvector_list_size", 100)

    assert expected in vector_index_ddl()


def test_unknown_index_type_is_rejected(monkeypatch):
    monkeypatch.setattr(settings, "pgvector_index_type", "btree")

    with pytest.raises(ValueError):
        vector_index_ddl()
