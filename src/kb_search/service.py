"""
Search service: validates requests and assembles the result envelope.

This is the single entry point used by the HTTP server and the CLI.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any

from .config import Settings
from .embedding_cache import EmbeddingCache
from .embeddings import create_embedding_provider
from .errors import ValidationError
from .models import ResultItem, SearchRequest, SearchResponse, Strategy
from .narration import NarrationGenerator, create_text_generators
from .search import FallbackRouter, RankingEngine, VectorScorer
from .store import EntryStore

logger = logging.getLogger(__name__)


class SearchService:
    """Knowledge base search with optional vector ranking and narration."""

    def __init__(
        self,
        store: EntryStore,
        engine: RankingEngine | None = None,
        narrator: NarrationGenerator | None = None,
    ) -> None:
        self.store = store
        self.engine = engine or RankingEngine(store)
        self.narrator = narrator

    async def search(
        self,
        request: SearchRequest,
        *,
        now: datetime | None = None,
    ) -> SearchResponse:
        query = _validated_query(request)
        options = request.to_options()
        logger.info("Search: %r (%s)", query, options.category or "all")

        outcome = await self.engine.search(query, options, now=now)

        narration: str | None = None
        if request.include_narration and self.narrator is not None and outcome.results:
            narration = await self.narrator.narrate(query, outcome.results)

        return SearchResponse(
            narration=narration,
            results=[ResultItem.from_scored(scored) for scored in outcome.results],
            total=outcome.total,
            degraded=outcome.degraded,
            strategy=outcome.strategy,
        )

    def text_search(
        self,
        request: SearchRequest,
        *,
        now: datetime | None = None,
    ) -> SearchResponse:
        """Lexical-only search without narration."""
        query = _validated_query(request)
        options = request.model_copy(update={"prefer_remote": False}).to_options()
        results = self.engine.rank_local(query, options, now=now)
        return SearchResponse(
            results=[ResultItem.from_scored(scored) for scored in results],
            total=len(results),
            degraded=False,
            strategy=Strategy.LOCAL,
        )

    def health(self) -> dict[str, Any]:
        snapshot = self.store.load()
        vector = self.engine.router.vector
        return {
            "status": "ok",
            "entries": len(snapshot.entries),
            "categories": len(snapshot.categories),
            "embeddingsCached": len(vector.cache) if vector is not None else 0,
            "vectorSearch": vector is not None,
            "aiAvailable": vector is not None
            or (self.narrator is not None and self.narrator.available),
        }


def _validated_query(request: SearchRequest) -> str:
    query = request.query.strip()
    if not query:
        raise ValidationError("Query is required")
    return query


def build_service(settings: Settings) -> SearchService:
    """Wire store, scorers and narration providers from settings."""
    store = EntryStore(settings.kb_path)

    vector: VectorScorer | None = None
    provider = create_embedding_provider(settings)
    if provider is not None:
        cache = EmbeddingCache(settings.cache_path, provider)
        vector = VectorScorer(provider, cache)
        logger.info("Vector search enabled (%s, %s)", provider.name, provider.model)
    else:
        logger.info("No embedding key configured; using lexical search only")

    router = FallbackRouter(vector=vector, remote_timeout=settings.provider_timeout)
    generators = create_text_generators(settings)
    narrator = NarrationGenerator(generators) if generators else None
    return SearchService(store, RankingEngine(store, router), narrator)
