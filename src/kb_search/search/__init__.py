"""Search helpers for the knowledge base."""

from .engine import RankOutcome, RankingEngine
from .filters import apply_filters, filter_by_category, filter_by_date
from .lexical import LexicalMatch, LexicalScorer, query_tokens
from .ranker import rank_entries
from .router import FallbackRouter
from .semantic import VectorScorer, cosine_similarity

__all__ = [
    "RankOutcome",
    "RankingEngine",
    "apply_filters",
    "filter_by_category",
    "filter_by_date",
    "LexicalMatch",
    "LexicalScorer",
    "query_tokens",
    "rank_entries",
    "FallbackRouter",
    "VectorScorer",
    "cosine_similarity",
]
