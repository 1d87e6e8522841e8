from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import List, Optional

from helpdesk_ai.services.cache import TTLCache
from helpdesk_ai.services.embeddings import EmbeddingClient
from helpdesk_ai.services.vector_store import SimilarTicket, VectorStore
from helpdesk_ai.settings import settings

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TicketContent:
    title: str
    description: str
    id: Optional[str] = None
    category: Optional[str] = None
    device: Optional[str] = None
    additional_info: Optional[str] = None

    @classmethod
    def from_model(cls, ticket) -> "TicketContent":
        category = getattr(ticket, "category", None)
        return cls(
            id=ticket.id,
            title=ticket.title,
            description=ticket.description,
            category=getattr(category, "name", None),
            device=ticket.device,
            additional_info=ticket.additional_info,
        )


def compose_ticket_text(ticket: TicketContent) -> str:
    lines = [f"Title: {ticket.title}", f"Description: {ticket.description}"]
    if ticket.category:
        lines.append(f"Category: {ticket.category}")
    if ticket.device:
        lines.append(f"Device: {ticket.device}")
    if ticket.additional_info:
        lines.append(f"Additional Info: {ticket.additional_info}")
    return "\n".join(lines)


class TicketAIService:
    """Embeds tickets and looks up their nearest neighbours."""

    def __init__(
        self,
        *,
        embedder: EmbeddingClient,
        store: VectorStore,
        threshold: Optional[float] = None,
        max_results: Optional[int] = None,
        cache: Optional[TTLCache[List[float]]] = None,
    ) -> None:
        self._embedder = embedder
        self._store = store
        self._threshold = threshold
        self._max_results = max_results
        self._cache = cache

    @property
    def threshold(self) -> float:
        return settings.similarity_match_threshold if self._threshold is None else self._threshold

    @property
    def max_results(self) -> int:
        return settings.similarity_max_results if self._max_results is None else self._max_results

    def process_ticket(self, ticket: TicketContent) -> bool:
        """Embed and store a ticket. Failures are logged and reported as ``False``."""
        if not ticket.id:
            logger.warning("ticket_ai.process.skipped", extra={"reason": "missing_ticket_id"})
            return False
        try:
            vector = self._embedder.embed(compose_ticket_text(ticket))
            self._store.upsert(ticket.id, vector)
        except Exception:
            logger.exception("ticket_ai.process.error", extra={"ticket_id": ticket.id})
            return False
        logger.info("ticket_ai.process.success", extra={"ticket_id": ticket.id})
        return True

    def handle_ticket_deletion(self, ticket_id: str) -> bool:
        try:
            removed = self._store.delete(ticket_id)
        except Exception:
            logger.exception("ticket_ai.delete.error", extra={"ticket_id": ticket_id})
            return False
        logger.info("ticket_ai.delete.success", extra={"ticket_id": ticket_id, "removed": removed})
        return True

    def find_similar_tickets_for_ticket(self, ticket: TicketContent, limit: Optional[int] = None) -> List[SimilarTicket]:
        vector = self._embed(compose_ticket_text(ticket))
        return self._store.nearest_neighbors(vector, self._limit(limit), self.threshold)

    def search_tickets(self, query: str, limit: Optional[int] = None) -> List[SimilarTicket]:
        vector = self._embed(query)
        return self._store.nearest_neighbors(vector, self._limit(limit), self.threshold)

    def _limit(self, limit: Optional[int]) -> int:
        return self.max_results if limit is None else limit

    def _embed(self, text: str) -> List[float]:
        """Embedding for a lookup, reused from the cache when one is configured."""
        if self._cache is None:
            return self._embedder.embed(text)
        cached = self._cache.get(text)
        if cached is not None:
            logger.debug("ticket_ai.embedding.cache_hit")
            return cached
        vector = self._embedder.embed(text)
        self._cache.set(text, vector)
        return vector
