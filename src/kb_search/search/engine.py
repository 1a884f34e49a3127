"""
Ranking engine: filter, score, sort and truncate knowledge base entries.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from ..models import ScoredEntry, SearchOptions, Strategy
from ..store import EntryStore
from .filters import apply_filters
from .ranker import rank_entries
from .router import FallbackRouter


@dataclass(frozen=True)
class RankOutcome:
    """Ranked results together with how they were produced."""

    results: list[ScoredEntry]
    strategy: Strategy
    preferred: Strategy

    @property
    def degraded(self) -> bool:
        return self.strategy is not self.preferred

    @property
    def total(self) -> int:
        return len(self.results)


class RankingEngine:
    """Retrieval engine over an entry store with lexical and vector strategies."""

    def __init__(self, store: EntryStore, router: FallbackRouter | None = None) -> None:
        self.store = store
        self.router = router or FallbackRouter()

    async def search(
        self,
        query: str,
        options: SearchOptions | None = None,
        *,
        now: datetime | None = None,
    ) -> RankOutcome:
        options = options or SearchOptions()
        preferred = Strategy.REMOTE if options.prefer_remote else Strategy.LOCAL

        snapshot = self.store.load()
        candidates = apply_filters(snapshot.entries, options)
        scored, strategy = await self.router.score(
            query,
            snapshot_entries=snapshot.entries,
            candidates=candidates,
            options=options,
            now=now,
        )
        return RankOutcome(
            results=rank_entries(scored, strategy=strategy, limit=options.limit),
            strategy=strategy,
            preferred=preferred,
        )

    async def rank(
        self,
        query: str,
        options: SearchOptions | None = None,
        *,
        now: datetime | None = None,
    ) -> list[ScoredEntry]:
        outcome = await self.search(query, options, now=now)
        return outcome.results

    def rank_local(
        self,
        query: str,
        options: SearchOptions | None = None,
        *,
        now: datetime | None = None,
    ) -> list[ScoredEntry]:
        """Lexical-only ranking; never touches an external provider."""
        options = options or SearchOptions(prefer_remote=False)
        candidates = apply_filters(self.store.load().entries, options)
        scored = self.router.score_local(query, candidates, now=now)
        return rank_entries(scored, strategy=Strategy.LOCAL, limit=options.limit)
