from __future__ import annotations

import logging
import threading
from typing import Optional

from sqlalchemy.engine import Engine

from helpdesk_ai.agents.chat_agent import ChatAgent
from helpdesk_ai.agents.support_agent import SupportAgent
from helpdesk_ai.agents.ticket_generator import TicketGenerator
from helpdesk_ai.db.session import create_db_engine, create_session_factory
from helpdesk_ai.services.cache import TTLCache
from helpdesk_ai.services.embeddings import EmbeddingClient
from helpdesk_ai.services.knowledge import KnowledgeSource, StaticKnowledgeSource
from helpdesk_ai.services.llm_provider import LLMProvider
from helpdesk_ai.services.ticket_ai_service import TicketAIService
from helpdesk_ai.services.ticket_service import TicketService
from helpdesk_ai.services.vector_store import InMemoryVectorStore, PgVectorStore, VectorStore
from helpdesk_ai.settings import settings
from helpdesk_ai.utils.paths import get_knowledge_dataset_path

logger = logging.getLogger(__name__)


def build_vector_store(engine: Engine) -> VectorStore:
    backend = settings.vector_store_backend.strip().lower()
    if backend == "pgvector":
        return PgVectorStore(engine)
    if backend == "memory":
        return InMemoryVectorStore()
    raise ValueError(f"Unsupported vector store backend: {settings.vector_store_backend}")


def build_knowledge_source() -> KnowledgeSource:
    if not settings.enable_knowledge_extraction:
        return StaticKnowledgeSource()
    return StaticKnowledgeSource.from_file(get_knowledge_dataset_path())


class ServiceContainer:
    """Owns the process-wide clients and the services built on them."""

    def __init__(
        self,
        *,
        engine: Optional[Engine] = None,
        provider: Optional[LLMProvider] = None,
        embedder: Optional[EmbeddingClient] = None,
        store: Optional[VectorStore] = None,
        knowledge: Optional[KnowledgeSource] = None,
    ) -> None:
        self.engine = engine or create_db_engine()
        self.session_factory = create_session_factory(self.engine)
        self.provider = provider or LLMProvider()
        self.embedder = embedder or EmbeddingClient()
        self.store = store or build_vector_store(self.engine)
        self.embedding_cache = TTLCache(settings.ai_cache_ttl) if settings.ai_cache_enabled else None
        self.ticket_ai = TicketAIService(embedder=self.embedder, store=self.store, cache=self.embedding_cache)
        self.ticket_service = TicketService(self.session_factory, ticket_ai=self.ticket_ai)
        self.support_agent = SupportAgent(self.provider, self.ticket_ai, knowledge or build_knowledge_source())
        self.chat_agent = ChatAgent(self.provider)
        self.ticket_generator = TicketGenerator(self.provider)

    def close(self) -> None:
        self.provider.close()
        self.embedder.close()
        self.engine.dispose()
        logger.info("services.closed")


_container: Optional[ServiceContainer] = None
_lock = threading.Lock()


def get_services() -> ServiceContainer:
    global _container
    if _container is None:
        with _lock:
            if _container is None:
                _container = ServiceContainer()
                logger.info(
                    "services.started",
                    extra={"vector_store": settings.vector_store_backend, "ai_configured": settings.ai_configured},
                )
    return _container


def shutdown_services() -> None:
    global _container
    with _lock:
        if _container is not None:
            _container.close()
            _container = None


def get_ticket_ai_service() -> TicketAIService:
    return get_services().ticket_ai


def get_support_agent() -> SupportAgent:
    return get_services().support_agent


def get_chat_agent() -> ChatAgent:
    return get_services().chat_agent


def get_ticket_generator() -> TicketGenerator:
    return get_services().ticket_generator


def get_ticket_service() -> TicketService:
    return get_services().ticket_service
