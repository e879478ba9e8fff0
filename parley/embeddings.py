"""Batched embedding requests with response validation."""

from __future__ import annotations

import logging
from typing import List, Sequence

from .config import Config
from .content_generator import ContentGenerator
from .errors import EmbeddingError

EmbeddingVector = List[float]


class EmbeddingService:
    """Embeds texts through the provider, one batched call per invocation."""

    def __init__(self, config: Config, content_generator: ContentGenerator) -> None:
        self.config = config
        self.content_generator = content_generator
        self.logger = logging.getLogger("parley.embeddings")

    def embed(self, texts: Sequence[str]) -> List[EmbeddingVector]:
        """Return one vector per input text, in input order.

        Raises:
            EmbeddingError: the response has no embeddings, the wrong number
                of them, or an empty vector for some input.
        """

        if not texts:
            return []

        texts = list(texts)
        response = self.content_generator.embed_content(
            model=self.config.get_embedding_model(),
            contents=texts,
        )

        embeddings = response.embeddings
        if not embeddings:
            raise EmbeddingError("No embeddings found in API response.")

        if len(embeddings) != len(texts):
            raise EmbeddingError(
                "API returned a mismatched number of embeddings. "
                f"Expected {len(texts)}, got {len(embeddings)}."
            )

        vectors: List[EmbeddingVector] = []
        for index, embedding in enumerate(embeddings):
            values = embedding.values if embedding is not None else None
            if not values:
                raise EmbeddingError(
                    f'API returned an empty embedding for input text at index {index}: "{texts[index]}"'
                )
            vectors.append([float(value) for value in values])

        self.logger.debug("Embedded texts", extra={"input_count": len(texts)})
        return vectors


__all__ = ["EmbeddingService", "EmbeddingVector"]
