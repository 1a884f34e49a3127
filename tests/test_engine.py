"""Tests for filtering, ranking and lexical/vector fallback routing."""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Any

import pytest
from google.genai import errors as genai_errors

from kb_search.embedding_cache import EmbeddingCache
from kb_search.embeddings import GeminiEmbeddingProvider
from kb_search.errors import DimensionMismatchError
from kb_search.models import SearchOptions, Strategy
from kb_search.search import FallbackRouter, RankingEngine, VectorScorer, apply_filters
from kb_search.store import EntryStore

from .conftest import NOW, FakeEmbeddingProvider, write_kb

LOCAL = SearchOptions(prefer_remote=False)


def _engine(kb_file: Path, provider: FakeEmbeddingProvider | None = None, **router_kwargs):
    store = EntryStore(kb_file)
    vector = None
    if provider is not None:
        vector = VectorScorer(provider, EmbeddingCache(None, provider))
    return RankingEngine(store, FallbackRouter(vector=vector, **router_kwargs))


@pytest.mark.asyncio
async def test_karpathy_scenario_excludes_zero_scores(tmp_path: Path) -> None:
    kb_file = write_kb(
        tmp_path / "kb.json",
        {
            "entries": [
                {
                    "id": 1,
                    "title": "Karpathy releases new tokenizer",
                    "category": "research",
                    "date": "2024-01-01",
                },
                {"id": 2, "title": "Weather report", "category": "misc", "date": "2024-06-01"},
            ],
            "categories": ["research", "misc"],
        },
    )
    outcome = await _engine(kb_file).search("karpathy tokenizer", LOCAL, now=NOW)

    assert [r.entry.id for r in outcome.results] == [1]
    assert outcome.strategy is Strategy.LOCAL
    assert outcome.degraded is False
    assert outcome.results[0].matched_terms == {"karpathy", "tokenizer"}


def test_category_filter_applies_before_scoring(kb_file: Path) -> None:
    snapshot = EntryStore(kb_file).load()
    filtered = apply_filters(snapshot.entries, SearchOptions(category="research"))
    assert [e.id for e in filtered] == [1, 4]


def test_date_filters_are_inclusive_and_pass_undated(kb_file: Path) -> None:
    snapshot = EntryStore(kb_file).load()
    options = SearchOptions(date_from="2024-01-01", date_to="2024-06-01")
    assert [e.id for e in apply_filters(snapshot.entries, options)] == [1, 2, 4]
    options = SearchOptions(date_from="2025-12-20")
    assert [e.id for e in apply_filters(snapshot.entries, options)] == [3, 4]


@pytest.mark.asyncio
@pytest.mark.parametrize("category", ["research", "misc", "tools", "nonexistent"])
async def test_filtering_only_narrows_results(kb_file: Path, category: str) -> None:
    engine = _engine(kb_file)
    unfiltered = {r.entry.id for r in await engine.rank("karpathy agent llm", LOCAL, now=NOW)}
    filtered = await engine.rank(
        "karpathy agent llm",
        SearchOptions(category=category, prefer_remote=False),
        now=NOW,
    )
    assert {r.entry.id for r in filtered} <= unfiltered
    assert all(r.entry.category.lower() == category for r in filtered)


@pytest.mark.asyncio
async def test_ties_keep_snapshot_order(tmp_path: Path) -> None:
    entries = [
        {"id": i, "title": f"Notes {i}", "summary": "about agents", "category": "misc"}
        for i in (5, 3, 9, 1)
    ]
    kb_file = write_kb(tmp_path / "kb.json", {"entries": entries})
    results = await _engine(kb_file).rank("agents", LOCAL, now=NOW)
    assert [r.entry.id for r in results] == [5, 3, 9, 1]


@pytest.mark.asyncio
async def test_limit_truncates(kb_file: Path) -> None:
    results = await _engine(kb_file).rank(
        "karpathy", SearchOptions(limit=1, prefer_remote=False), now=NOW
    )
    assert len(results) == 1


@pytest.mark.asyncio
async def test_vector_strategy_keeps_all_filtered_entries(kb_file: Path) -> None:
    provider = FakeEmbeddingProvider()
    outcome = await _engine(kb_file, provider).search("tokenizer", SearchOptions(), now=NOW)

    assert outcome.strategy is Strategy.REMOTE
    assert outcome.degraded is False
    assert outcome.results[0].entry.id == 1
    assert len(outcome.results) == 4
    scores = [r.score for r in outcome.results]
    assert scores == sorted(scores, reverse=True)
    assert provider.query_calls == ["tokenizer"]


@pytest.mark.asyncio
async def test_vector_failure_falls_back_to_lexical(kb_file: Path) -> None:
    provider = FakeEmbeddingProvider(fail_query=True)
    engine = _engine(kb_file, provider)

    outcome = await engine.search("karpathy", SearchOptions(), now=NOW)
    local = await engine.rank("karpathy", LOCAL, now=NOW)

    assert outcome.degraded is True
    assert outcome.strategy is Strategy.LOCAL
    assert [(r.entry.id, r.score) for r in outcome.results] == [
        (r.entry.id, r.score) for r in local
    ]


@pytest.mark.asyncio
async def test_empty_cache_falls_back_to_lexical(kb_file: Path) -> None:
    provider = FakeEmbeddingProvider(fail_batches={1})
    outcome = await _engine(kb_file, provider).search("karpathy", SearchOptions(), now=NOW)
    assert outcome.degraded is True
    assert provider.query_calls == []


@pytest.mark.asyncio
async def test_fallback_is_per_request(kb_file: Path) -> None:
    provider = FakeEmbeddingProvider(fail_query=True)
    engine = _engine(kb_file, provider)

    assert (await engine.search("karpathy", SearchOptions(), now=NOW)).degraded is True
    provider.fail_query = False
    assert (await engine.search("karpathy", SearchOptions(), now=NOW)).degraded is False


@pytest.mark.asyncio
async def test_remote_requested_without_provider_is_degraded(kb_file: Path) -> None:
    outcome = await _engine(kb_file).search("karpathy", SearchOptions(), now=NOW)
    assert outcome.strategy is Strategy.LOCAL
    assert outcome.degraded is True


@pytest.mark.asyncio
async def test_local_preference_never_calls_provider(kb_file: Path) -> None:
    provider = FakeEmbeddingProvider()
    outcome = await _engine(kb_file, provider).search("karpathy", LOCAL, now=NOW)
    assert outcome.degraded is False
    assert provider.batch_calls == []
    assert provider.query_calls == []


@pytest.mark.asyncio
async def test_dimension_mismatch_is_not_a_fallback(kb_file: Path) -> None:
    provider = FakeEmbeddingProvider(query_dim=2)
    with pytest.raises(DimensionMismatchError):
        await _engine(kb_file, provider).search("karpathy", SearchOptions(), now=NOW)


class _SlowProvider(FakeEmbeddingProvider):
    async def embed_query(self, query: str) -> list[float]:
        await asyncio.sleep(1)
        return await super().embed_query(query)


@pytest.mark.asyncio
async def test_remote_timeout_falls_back(kb_file: Path) -> None:
    engine = _engine(kb_file, _SlowProvider(), remote_timeout=0.05)
    outcome = await engine.search("karpathy", SearchOptions(), now=NOW)
    assert outcome.degraded is True
    assert outcome.strategy is Strategy.LOCAL


def test_rank_local_matches_lexical_search(kb_file: Path) -> None:
    engine = _engine(kb_file, FakeEmbeddingProvider())
    results = engine.rank_local("agent", now=NOW)
    assert [r.entry.id for r in results] == [3]
    assert results[0].strategy is Strategy.LOCAL


class _UnparseableEmbedModels:
    async def embed_content(self, **kwargs: Any) -> Any:
        raise genai_errors.UnknownApiResponseError("Failed to parse response as JSON")


class _UnparseableEmbedClient:
    models = _UnparseableEmbedModels()

    @property
    def aio(self) -> "_UnparseableEmbedClient":
        return self


@pytest.mark.asyncio
async def test_unparseable_provider_response_falls_back(kb_file: Path) -> None:
    provider = GeminiEmbeddingProvider(model="gemini-test", dim=7, client=_UnparseableEmbedClient())
    store = EntryStore(kb_file)
    vector = VectorScorer(provider, EmbeddingCache(None, provider))
    engine = RankingEngine(store, FallbackRouter(vector=vector))

    outcome = await engine.search("karpathy", SearchOptions(), now=NOW)

    assert outcome.degraded is True
    assert outcome.strategy is Strategy.LOCAL
    assert [r.entry.id for r in outcome.results] == [1, 3]


@pytest.mark.asyncio
async def test_unwritable_cache_path_still_serves_vector_search(kb_file: Path, tmp_path: Path) -> None:
    blocker = tmp_path / "afile"
    blocker.write_text("not a directory")
    provider = FakeEmbeddingProvider()
    cache = EmbeddingCache(blocker / "cache.json", provider)
    engine = RankingEngine(
        EntryStore(kb_file), FallbackRouter(vector=VectorScorer(provider, cache))
    )

    first = await engine.search("tokenizer", SearchOptions(), now=NOW)
    second = await engine.search("tokenizer", SearchOptions(), now=NOW)

    assert first.strategy is Strategy.REMOTE
    assert first.degraded is False
    assert [r.entry.id for r in first.results] == [r.entry.id for r in second.results]
    assert len(provider.batch_calls) == 1


class _LateFailingVector(VectorScorer):
    async def prepare(self, entries) -> None:
        await asyncio.sleep(0.1)
        raise RuntimeError("cache build crashed")


@pytest.mark.asyncio
async def test_cache_build_failure_after_timeout_is_logged(kb_file: Path, caplog) -> None:
    provider = FakeEmbeddingProvider()
    router = FallbackRouter(
        vector=_LateFailingVector(provider, EmbeddingCache(None, provider)),
        remote_timeout=0.02,
    )
    engine = RankingEngine(EntryStore(kb_file), router)

    with caplog.at_level(logging.ERROR, logger="kb_search.search.router"):
        outcome = await engine.search("karpathy", SearchOptions(), now=NOW)
        assert outcome.degraded is True
        await asyncio.sleep(0.3)

    assert "Embedding cache preparation failed: cache build crashed" in caplog.text
    assert not router._pending
