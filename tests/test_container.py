import pytest

from conftest import HashingEmbedder, StubProvider
from helpdesk_ai.services.container import ServiceContainer, build_vector_store
from helpdesk_ai.services.knowledge import StaticKnowledgeSource
from helpdesk_ai.services.vector_store import InMemoryVectorStore, PgVectorStore
from helpdesk_ai.settings import settings


@pytest.mark.parametrize("backend, expected", [("memory", InMemoryVectorStore), (" PGVector ", PgVectorStore)])
def test_build_vector_store(sqlite_engine, monkeypatch, backend, expected):
    monkeypatch.setattr(settings, "vector_store_backend", backend)

    assert isinstance(build_vector_store(sqlite_engine), expected)


def test_unknown_vector_store_backend(sqlite_engine, monkeypatch):
    monkeypatch.setattr(settings, "vector_store_backend", "faiss")

    with pytest.raises(ValueError):
        build_vector_store(sqlite_engine)


def test_container_wires_shared_clients(sqlite_engine, memory_store):
    provider = StubProvider()
    services = ServiceContainer(
        engine=sqlite_engine,
        provider=provider,
        embedder=HashingEmbedder(),
        store=memory_store,
        knowledge=StaticKnowledgeSource(),
    )

    assert services.support_agent._provider is provider
    assert services.chat_agent._provider is provider
    assert services.ticket_service.list_tickets() == []

    services.close()
