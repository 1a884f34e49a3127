import json
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

import pytest

from kb_search.errors import ProviderError
from kb_search.models import Entry

NOW = datetime(2026, 1, 1, tzinfo=timezone.utc)

VOCABULARY = ("tokenizer", "karpathy", "weather", "agent", "llm", "vision")


def make_entry(**fields: Any) -> Entry:
    data: dict[str, Any] = {"id": 1, "title": "Untitled"}
    data.update(fields)
    return Entry.model_validate(data)


def keyword_vector(text: str) -> list[float]:
    """Deterministic embedding: keyword counts plus a small constant axis."""
    lowered = text.lower()
    return [float(lowered.count(word)) for word in VOCABULARY] + [0.1]


class FakeEmbeddingProvider:
    """Records calls and returns keyword-count embeddings."""

    name = "fake"
    model = "fake-embedding"

    def __init__(
        self,
        *,
        fail_batches: set[int] | None = None,
        fail_query: bool = False,
        query_dim: int | None = None,
    ) -> None:
        self.batch_calls: list[list[str]] = []
        self.query_calls: list[str] = []
        self.fail_batches = fail_batches or set()
        self.fail_query = fail_query
        self.query_dim = query_dim

    async def embed_texts(self, texts: list[str]) -> list[list[float]]:
        self.batch_calls.append(list(texts))
        if len(self.batch_calls) in self.fail_batches:
            raise ProviderError("batch rejected", provider=self.name)
        return [keyword_vector(text) for text in texts]

    async def embed_query(self, query: str) -> list[float]:
        self.query_calls.append(query)
        if self.fail_query:
            raise ProviderError("network down", provider=self.name)
        vector = keyword_vector(query)
        if self.query_dim is not None:
            vector = (vector + [0.0] * self.query_dim)[: self.query_dim]
        return vector


class FakeTextGenerator:
    def __init__(self, name: str, *, reply: str | None = None, error: str | None = None) -> None:
        self.name = name
        self.reply = reply
        self.error = error
        self.calls: list[list[dict[str, str]]] = []

    async def generate(self, messages, *, max_tokens: int, temperature: float) -> str:
        self.calls.append(messages)
        if self.error is not None:
            raise ProviderError(self.error, provider=self.name)
        return self.reply or ""


SAMPLE_KB: dict[str, Any] = {
    "lastUpdated": "2025-12-30T08:00:00Z",
    "categories": ["research", "misc", "tools"],
    "entries": [
        {
            "id": 1,
            "title": "Karpathy releases new tokenizer",
            "summary": "A minimal BPE tokenizer for LLM training.",
            "category": "research",
            "source": "Andrej Karpathy",
            "tags": ["tokenizer", "llm"],
            "date": "2024-01-01",
            "url": "https://example.com/tokenizer",
        },
        {
            "id": 2,
            "title": "Weather report",
            "summary": "Sunny with a chance of rain.",
            "category": "misc",
            "source": "Met Office",
            "tags": [],
            "date": "2024-06-01",
            "url": "https://example.com/weather",
        },
        {
            "id": 3,
            "title": "Building agent frameworks",
            "summary": "How agent loops call tools with an LLM.",
            "category": "tools",
            "source": "Andrej Karpathy",
            "tags": ["agent"],
            "addedAt": "2025-12-20T10:00:00Z",
            "url": "https://example.com/agents",
        },
        {
            "id": 4,
            "title": "Vision transformers explained",
            "summary": None,
            "category": "Research",
            "source": "",
            "tags": ["vision"],
            "url": "https://example.com/vit",
        },
    ],
}


def write_kb(path: Path, data: dict[str, Any] | None = None) -> Path:
    path.write_text(json.dumps(SAMPLE_KB if data is None else data))
    return path


@pytest.fixture()
def kb_file(tmp_path: Path) -> Path:
    return write_kb(tmp_path / "kb.json")


@pytest.fixture()
def no_provider_keys(monkeypatch) -> None:
    for name in (
        "GOOGLE_API_KEY",
        "OPENAI_API_KEY",
        "OPENROUTER_API_KEY",
        "KB_SEARCH_EMBEDDING_PROVIDER",
        "KB_SEARCH_EMBEDDING_MODEL",
        "KB_SEARCH_EMBEDDING_DIM",
        "KB_SEARCH_EMBEDDINGS_CACHE",
        "KB_SEARCH_KB_PATH",
    ):
        monkeypatch.delenv(name, raising=False)
