"""
Vector-based semantic scoring.

Embeds a query and scores entries by cosine similarity against the cached
per-entry embeddings. Entries without an embedding score 0.
"""

from __future__ import annotations

import math
from collections.abc import Sequence

from ..embedding_cache import EmbeddingCache
from ..embeddings import EmbeddingProvider
from ..errors import ConfigurationError, DimensionMismatchError
from ..models import Entry


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """Return dot(a, b) / (|a| * |b|); 0.0 when either vector has zero norm."""
    if len(a) != len(b):
        raise DimensionMismatchError(
            f"embedding dimensions differ: {len(a)} != {len(b)}"
        )
    dot = math.fsum(x * y for x, y in zip(a, b))
    norm_a = math.sqrt(math.fsum(x * x for x in a))
    norm_b = math.sqrt(math.fsum(y * y for y in b))
    if norm_a == 0 or norm_b == 0:
        return 0.0
    return dot / (norm_a * norm_b)


class VectorScorer:
    """Embed a query and compare it with cached entry embeddings."""

    def __init__(self, provider: EmbeddingProvider, cache: EmbeddingCache) -> None:
        self.provider = provider
        self.cache = cache

    async def prepare(self, entries: Sequence[Entry]) -> None:
        """Ensure entry embeddings are available for this request."""
        await self.cache.ensure(entries)
        if not len(self.cache):
            raise ConfigurationError(
                "embedding cache is empty and could not be populated",
                provider=self.provider.name,
            )

    async def embed_query(self, query: str) -> list[float]:
        embedding = await self.provider.embed_query(query)
        dimension = self.cache.dimension
        if dimension is not None and dimension != len(embedding):
            raise DimensionMismatchError(
                f"query embedding has {len(embedding)} dimensions, "
                f"cached embeddings have {dimension}"
            )
        return embedding

    def score(self, query_embedding: Sequence[float], entry: Entry) -> float:
        embedding = self.cache.get(entry.key)
        if embedding is None:
            return 0.0
        return cosine_similarity(query_embedding, embedding)
