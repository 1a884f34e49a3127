"""
Keyword-overlap relevance scoring with title, summary, source and recency boosts.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone

from ..models import Entry, parse_timestamp

logger = logging.getLogger(__name__)

MIN_TOKEN_LENGTH = 3

TITLE_PHRASE_BOOST = 10
TITLE_ALL_TERMS_BOOST = 5
SUMMARY_PHRASE_BOOST = 3
SOURCE_PHRASE_BOOST = 2


@dataclass(frozen=True)
class LexicalMatch:
    score: float
    matched: frozenset[str]


def query_tokens(query: str) -> list[str]:
    """Lowercased whitespace tokens, dropping short noise words."""
    return [t for t in query.lower().split() if len(t) >= MIN_TOKEN_LENGTH]


def searchable_text(entry: Entry) -> str:
    return " ".join(
        (
            entry.title,
            entry.summary or "",
            entry.category,
            entry.source,
            " ".join(entry.tags),
        )
    ).lower()


def recency_boost(date: str | None, now: datetime) -> int:
    if not date:
        return 0
    try:
        entry_date = parse_timestamp(date)
    except ValueError:
        logger.debug("Ignoring unparseable entry date %r", date)
        return 0
    days_old = (now - entry_date).total_seconds() / 86400
    if days_old < 30:
        return 2
    if days_old < 90:
        return 1
    return 0


class LexicalScorer:
    """Score entries against a query without any external dependency."""

    def score(self, query: str, entry: Entry, *, now: datetime | None = None) -> LexicalMatch:
        query_lower = query.strip().lower()
        tokens = query_tokens(query_lower)
        text = searchable_text(entry)

        score = 0
        matched: set[str] = set()
        for token in tokens:
            if token in text:
                score += 1
                matched.add(token)

        title = entry.title.lower()
        if query_lower and query_lower in title:
            score += TITLE_PHRASE_BOOST
        elif tokens and all(token in title for token in tokens):
            score += TITLE_ALL_TERMS_BOOST

        if query_lower and entry.summary and query_lower in entry.summary.lower():
            score += SUMMARY_PHRASE_BOOST
        if query_lower and query_lower in entry.source.lower():
            score += SOURCE_PHRASE_BOOST

        # Recency only reorders entries that matched the query at all.
        if score > 0:
            score += recency_boost(entry.date, now or datetime.now(timezone.utc))
        return LexicalMatch(score=float(score), matched=frozenset(matched))
