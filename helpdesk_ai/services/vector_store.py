from __future__ import annotations

import logging
import math
import threading
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Dict, List, Optional, Protocol, Sequence, runtime_checkable

from sqlalchemy import delete, func, select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

from helpdesk_ai.db.models import TicketEmbedding
from helpdesk_ai.settings import settings

logger = logging.getLogger(__name__)


class VectorStoreError(RuntimeError):
    """Raised when the vector store cannot be reached or a statement fails."""


@dataclass(frozen=True)
class SimilarTicket:
    ticket_id: str
    similarity: float

    def as_dict(self) -> Dict[str, object]:
        return {"ticketId": self.ticket_id, "similarity": self.similarity}


@runtime_checkable
class VectorStore(Protocol):
    def upsert(self, ticket_id: str, vector: Sequence[float]) -> None:
        ...

    def delete(self, ticket_id: str) -> bool:
        ...

    def nearest_neighbors(self, vector: Sequence[float], limit: int, threshold: float) -> List[SimilarTicket]:
        ...


def _clamp_similarity(value: float) -> float:
    return max(0.0, min(1.0, float(value)))


def _rank(candidates: List[SimilarTicket], limit: int) -> List[SimilarTicket]:
    candidates.sort(key=lambda item: (-item.similarity, item.ticket_id))
    return candidates[:limit]


class PgVectorStore:
    """Ticket vectors in PostgreSQL, compared with pgvector's cosine distance."""

    def __init__(self, engine: Engine, *, dimension: Optional[int] = None) -> None:
        self._engine = engine
        self.dimension = dimension or settings.pgvector_dimension

    def upsert(self, ticket_id: str, vector: Sequence[float]) -> None:
        values = self._validated(vector)
        stmt = pg_insert(TicketEmbedding).values(ticket_id=ticket_id, embedding=values, updated_at=func.now())
        stmt = stmt.on_conflict_do_update(
            index_elements=[TicketEmbedding.ticket_id],
            set_={"embedding": stmt.excluded.embedding, "updated_at": func.now()},
        )
        try:
            with self._engine.begin() as conn:
                conn.execute(stmt)
        except SQLAlchemyError as exc:
            logger.error("vector_store.upsert.error", extra={"ticket_id": ticket_id, "error": str(exc)})
            raise VectorStoreError("Failed to store ticket embedding.") from exc

    def delete(self, ticket_id: str) -> bool:
        stmt = delete(TicketEmbedding).where(TicketEmbedding.ticket_id == ticket_id)
        try:
            with self._engine.begin() as conn:
                result = conn.execute(stmt)
        except SQLAlchemyError as exc:
            logger.error("vector_store.delete.error", extra={"ticket_id": ticket_id, "error": str(exc)})
            raise VectorStoreError("Failed to delete ticket embedding.") from exc
        return bool(result.rowcount)

    def nearest_neighbors(self, vector: Sequence[float], limit: int, threshold: float) -> List[SimilarTicket]:
        if limit <= 0:
            return []
        stmt = self.build_neighbors_query(self._validated(vector), limit, threshold)
        try:
            with self._engine.connect() as conn:
                rows = conn.execute(stmt).all()
        except SQLAlchemyError as exc:
            logger.error("vector_store.query.error", extra={"error": str(exc)})
            raise VectorStoreError("Failed to find similar tickets.") from exc
        return _rank(
            [SimilarTicket(ticket_id=row.ticket_id, similarity=_clamp_similarity(row.similarity)) for row in rows],
            limit,
        )

    @staticmethod
    def build_neighbors_query(vector: List[float], limit: int, threshold: float):
        distance = TicketEmbedding.embedding.cosine_distance(vector)
        similarity = (1 - distance).label("similarity")
        return (
            select(TicketEmbedding.ticket_id, similarity)
            .where(1 - distance > threshold)
            .order_by(distance.asc(), TicketEmbedding.ticket_id.asc())
            .limit(limit)
        )

    def _validated(self, vector: Sequence[float]) -> List[float]:
        values = [float(value) for value in vector]
        if len(values) != self.dimension:
            raise VectorStoreError(f"Vector has {len(values)} dimensions, column expects {self.dimension}.")
        return values


@dataclass
class _StoredVector:
    vector: List[float]
    norm: float
    updated_at: datetime


class InMemoryVectorStore:
    """Process-local store with exact cosine search, for development and tests."""

    def __init__(self, *, dimension: Optional[int] = None) -> None:
        self.dimension = dimension or settings.pgvector_dimension
        self._rows: Dict[str, _StoredVector] = {}
        self._lock = threading.Lock()

    def __len__(self) -> int:
        return len(self._rows)

    def __contains__(self, ticket_id: object) -> bool:
        return ticket_id in self._rows

    def upsert(self, ticket_id: str, vector: Sequence[float]) -> None:
        values = self._validated(vector)
        row = _StoredVector(vector=values, norm=_norm(values), updated_at=datetime.now(timezone.utc))
        with self._lock:
            self._rows[ticket_id] = row

    def delete(self, ticket_id: str) -> bool:
        with self._lock:
            return self._rows.pop(ticket_id, None) is not None

    def updated_at(self, ticket_id: str) -> Optional[datetime]:
        row = self._rows.get(ticket_id)
        return row.updated_at if row else None

    def nearest_neighbors(self, vector: Sequence[float], limit: int, threshold: float) -> List[SimilarTicket]:
        if limit <= 0:
            return []
        query = self._validated(vector)
        query_norm = _norm(query)
        with self._lock:
            rows = list(self._rows.items())

        candidates: List[SimilarTicket] = []
        for ticket_id, row in rows:
            similarity = _cosine_similarity(query, query_norm, row.vector, row.norm)
            if similarity > threshold:
                candidates.append(SimilarTicket(ticket_id=ticket_id, similarity=_clamp_similarity(similarity)))
        return _rank(candidates, limit)

    def _validated(self, vector: Sequence[float]) -> List[float]:
        values = [float(value) for value in vector]
        if len(values) != self.dimension:
            raise VectorStoreError(f"Vector has {len(values)} dimensions, store expects {self.dimension}.")
        return values


def _norm(vector: Sequence[float]) -> float:
    return math.sqrt(sum(value * value for value in vector))


def _cosine_similarity(a: Sequence[float], a_norm: float, b: Sequence[float], b_norm: float) -> float:
    if a_norm == 0 or b_norm == 0:
        return 0.0
    dot = sum(x * y for x, y in zip(a, b))
    return dot / (a_norm * b_norm)
