"""
Ranking helpers for ordering scored entries.
"""

from __future__ import annotations

from ..models import ScoredEntry, Strategy


def rank_entries(
    scored: list[ScoredEntry], *, strategy: Strategy, limit: int
) -> list[ScoredEntry]:
    """Sort descending by score and apply the strategy's zero-score policy and limit.

    ``sorted`` is stable, so equal scores keep their snapshot order.
    """
    ordered = sorted(scored, key=lambda item: -item.score)
    if strategy is Strategy.LOCAL:
        # An entry without lexical overlap is not a result.
        ordered = [item for item in ordered if item.score > 0]
    return ordered[: max(limit, 1)]
