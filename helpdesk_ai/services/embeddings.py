from __future__ import annotations

import logging
from typing import List, Optional, Sequence

from openai import OpenAI

from helpdesk_ai.settings import settings
from helpdesk_ai.utils.text import normalise_whitespace

logger = logging.getLogger(__name__)

Vector = List[float]


class EmbeddingError(RuntimeError):
    """Raised when text cannot be turned into a vector of the configured width."""


class EmbeddingClient:
    def __init__(
        self,
        *,
        model: Optional[str] = None,
        dimension: Optional[int] = None,
        client: Optional[OpenAI] = None,
        api_key: Optional[str] = None,
    ) -> None:
        self.model = model or settings.openai_embedding_model
        self.dimension = dimension or settings.pgvector_dimension
        self.api_key = api_key or settings.openai_api_key
        self._client = client

    def _get_client(self) -> OpenAI:
        if self._client is None:
            if not self.api_key:
                raise EmbeddingError("OpenAI API key is not configured.")
            self._client = OpenAI(api_key=self.api_key, organization=settings.openai_organization)
        return self._client

    def close(self) -> None:
        if self._client is not None:
            self._client.close()
            self._client = None

    def embed(self, text: str) -> Vector:
        return self.embed_batch([text])[0]

    def embed_batch(self, texts: Sequence[str]) -> List[Vector]:
        cleaned = [normalise_whitespace(text) for text in texts]
        if not cleaned:
            raise EmbeddingError("Nothing to embed.")
        if any(not text for text in cleaned):
            raise EmbeddingError("Text to embed cannot be empty.")

        client = self._get_client()
        try:
            response = client.embeddings.create(model=self.model, input=cleaned, dimensions=self.dimension)
        except Exception as exc:
            logger.error("embeddings.error", extra={"model": self.model, "error": str(exc)})
            raise EmbeddingError("Failed to generate embeddings.") from exc

        data = sorted(response.data, key=lambda item: item.index)
        if len(data) != len(cleaned):
            raise EmbeddingError(f"Expected {len(cleaned)} embeddings, provider returned {len(data)}.")

        vectors: List[Vector] = []
        for item in data:
            vector = [float(value) for value in item.embedding]
            if len(vector) != self.dimension:
                raise EmbeddingError(
                    f"Embedding has {len(vector)} dimensions, vector column expects {self.dimension}."
                )
            vectors.append(vector)

        logger.debug("embeddings.completed", extra={"model": self.model, "count": len(vectors)})
        return vectors
