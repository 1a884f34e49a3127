"""
Strategy selection between vector (REMOTE) and lexical (LOCAL) scoring.

Each request starts in REMOTE when the caller prefers it and a vector
scorer is configured. Any provider failure drops that request to LOCAL;
nothing carries over to the next request.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Sequence
from datetime import datetime

from ..errors import ProviderError
from ..models import Entry, ScoredEntry, SearchOptions, Strategy
from .lexical import LexicalScorer
from .semantic import VectorScorer

logger = logging.getLogger(__name__)


class FallbackRouter:
    """Pick a scorer per request and degrade to lexical scoring on failure."""

    def __init__(
        self,
        lexical: LexicalScorer | None = None,
        vector: VectorScorer | None = None,
        *,
        remote_timeout: float | None = None,
    ) -> None:
        self.lexical = lexical or LexicalScorer()
        self.vector = vector
        self.remote_timeout = remote_timeout
        self._pending: set[asyncio.Future] = set()

    @property
    def remote_available(self) -> bool:
        return self.vector is not None

    def initial_strategy(self, options: SearchOptions) -> Strategy:
        if options.prefer_remote and self.vector is not None:
            return Strategy.REMOTE
        return Strategy.LOCAL

    async def score(
        self,
        query: str,
        *,
        snapshot_entries: Sequence[Entry],
        candidates: Sequence[Entry],
        options: SearchOptions,
        now: datetime | None = None,
    ) -> tuple[list[ScoredEntry], Strategy]:
        """Score candidates, returning the scores and the strategy that produced them."""
        if self.initial_strategy(options) is Strategy.REMOTE:
            try:
                scored = await asyncio.wait_for(
                    self._score_remote(query, snapshot_entries, candidates),
                    timeout=self.remote_timeout,
                )
                return scored, Strategy.REMOTE
            except ProviderError as exc:
                logger.warning("Vector search unavailable, falling back to lexical: %s", exc)
            except asyncio.TimeoutError:
                logger.warning(
                    "Vector search timed out after %ss, falling back to lexical",
                    self.remote_timeout,
                )
        return self.score_local(query, candidates, now=now), Strategy.LOCAL

    def score_local(
        self,
        query: str,
        candidates: Sequence[Entry],
        *,
        now: datetime | None = None,
    ) -> list[ScoredEntry]:
        scored: list[ScoredEntry] = []
        for entry in candidates:
            match = self.lexical.score(query, entry, now=now)
            scored.append(
                ScoredEntry(
                    entry=entry,
                    score=match.score,
                    matched_terms=match.matched,
                    strategy=Strategy.LOCAL,
                )
            )
        return scored

    async def _score_remote(
        self,
        query: str,
        snapshot_entries: Sequence[Entry],
        candidates: Sequence[Entry],
    ) -> list[ScoredEntry]:
        assert self.vector is not None
        # A cache build outlives a timed-out request so the next one can use it.
        prepare = asyncio.ensure_future(self.vector.prepare(snapshot_entries))
        self._pending.add(prepare)
        prepare.add_done_callback(self._pending.discard)
        prepare.add_done_callback(_log_prepare_failure)
        await asyncio.shield(prepare)
        query_embedding = await self.vector.embed_query(query)
        return [
            ScoredEntry(
                entry=entry,
                score=self.vector.score(query_embedding, entry),
                strategy=Strategy.REMOTE,
            )
            for entry in candidates
        ]


def _log_prepare_failure(task: asyncio.Future) -> None:
    if task.cancelled():
        return
    exc = task.exception()
    if exc is None:
        return
    if isinstance(exc, ProviderError):
        logger.debug("Embedding cache preparation failed: %s", exc)
    else:
        logger.error("Embedding cache preparation failed: %s", exc, exc_info=exc)
