import re
import zlib
from typing import Any, Dict, List, Optional

import pytest
from pydantic import ValidationError
from sqlalchemy import create_engine
from sqlalchemy.pool import StaticPool

from helpdesk_ai.db.models import Base
from helpdesk_ai.db.session import create_session_factory
from helpdesk_ai.services.llm_provider import LLMProviderError, ModelTier, StructuredOutputError
from helpdesk_ai.services.vector_store import InMemoryVectorStore

DIMENSION = 16


class HashingEmbedder:
    """Bag-of-words vectors, so equal texts map to equal vectors."""

    def __init__(self, dimension: int = DIMENSION, fail: bool = False) -> None:
        self.dimension = dimension
        self.fail = fail
        self.calls: List[str] = []

    def embed(self, text: str) -> List[float]:
        self.calls.append(text)
        if self.fail:
            from helpdesk_ai.services.embeddings import EmbeddingError

            raise EmbeddingError("embedding offline")
        vector = [0.0] * self.dimension
        for word in re.findall(r"\w+", text.lower()):
            vector[zlib.crc32(word.encode("utf-8")) % self.dimension] += 1.0
        return vector

    def close(self) -> None:
        pass


class StubProvider:
    """Records prompts and replays queued replies for each kind of call."""

    def __init__(
        self,
        *,
        structured: Optional[List[Any]] = None,
        texts: Optional[List[Any]] = None,
    ) -> None:
        self.structured = list(structured or [])
        self.texts = list(texts or [])
        self.structured_calls: List[Dict[str, Any]] = []
        self.text_calls: List[Dict[str, Any]] = []

    @property
    def call_count(self) -> int:
        return len(self.structured_calls) + len(self.text_calls)

    def _next(self, queue: List[Any]) -> Any:
        if not queue:
            raise LLMProviderError("no reply queued")
        reply = queue.pop(0)
        if isinstance(reply, Exception):
            raise reply
        return reply

    def generate_structured(self, prompt: str, instructions: str, tier: ModelTier = ModelTier.standard):
        self.structured_calls.append({"prompt": prompt, "instructions": instructions, "tier": tier})
        return self._next(self.structured)

    def generate_model(self, prompt: str, instructions: str, schema, tier: ModelTier = ModelTier.standard):
        data = self.generate_structured(prompt, instructions, tier)
        try:
            return schema.model_validate(data)
        except ValidationError as exc:
            raise StructuredOutputError(f"Structured reply does not match {schema.__name__}.", raw_text=str(data)) from exc

    def generate(self, prompt: str) -> str:
        self.text_calls.append({"prompt": prompt, "system_prompt": None})
        return self._next(self.texts)

    def generate_advanced(self, prompt: str) -> str:
        return self.generate(prompt)

    def generate_response(self, *, system_prompt, user_message, tier=ModelTier.standard, temperature=None) -> str:
        self.text_calls.append({"prompt": user_message, "system_prompt": system_prompt, "temperature": temperature})
        return self._next(self.texts)

    def close(self) -> None:
        pass


@pytest.fixture
def embedder() -> HashingEmbedder:
    return HashingEmbedder()


@pytest.fixture
def memory_store() -> InMemoryVectorStore:
    return InMemoryVectorStore(dimension=DIMENSION)


@pytest.fixture
def sqlite_engine():
    engine = create_engine(
        "sqlite+pysqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(sqlite_engine):
    return create_session_factory(sqlite_engine)
