"""
kb_search - ranked retrieval over a small knowledge base.

Entries are scored lexically or by embedding similarity, with automatic
fallback to lexical scoring when the embedding provider is unavailable,
and can be summarized by a text-generation provider.

Example usage:
    >>> from kb_search import EntryStore, RankingEngine, SearchOptions
    >>> engine = RankingEngine(EntryStore("kb.json"))
    >>> results = await engine.rank("karpathy tokenizer", SearchOptions(prefer_remote=False))
"""

from .errors import (
    ConfigurationError,
    DimensionMismatchError,
    KBSearchError,
    LoadError,
    ProviderError,
    SettingsError,
    ValidationError,
)
from .models import (
    Entry,
    KBStats,
    ResultItem,
    ScoredEntry,
    SearchOptions,
    SearchRequest,
    SearchResponse,
    Snapshot,
    Strategy,
)
from .search import FallbackRouter, LexicalScorer, RankingEngine, VectorScorer
from .embedding_cache import EmbeddingCache
from .narration import NarrationGenerator
from .service import SearchService, build_service
from .store import EntryStore

__all__ = [
    # Errors
    "ConfigurationError",
    "DimensionMismatchError",
    "KBSearchError",
    "LoadError",
    "ProviderError",
    "SettingsError",
    "ValidationError",
    # Models
    "Entry",
    "KBStats",
    "ResultItem",
    "ScoredEntry",
    "SearchOptions",
    "SearchRequest",
    "SearchResponse",
    "Snapshot",
    "Strategy",
    # Engine
    "EntryStore",
    "EmbeddingCache",
    "FallbackRouter",
    "LexicalScorer",
    "RankingEngine",
    "VectorScorer",
    "NarrationGenerator",
    "SearchService",
    "build_service",
]
