"""
Embedding providers for vector-based semantic search.

Wraps the Google GenAI and OpenAI embedding APIs behind one async interface.
Each call embeds exactly the texts it is given; batching is left to the
caller so a failed batch can be skipped on its own.
"""

from __future__ import annotations

import os
from typing import Any, Protocol

import httpx
import openai
from google.genai import Client as GenAIClient
from google.genai import errors as genai_errors
from google.genai.types import HttpOptions

from .config import Settings
from .errors import ConfigurationError, ProviderError


_DEFAULT_GEMINI_MODEL = "gemini-embedding-001"
_DEFAULT_GEMINI_DIM = 768
_DEFAULT_OPENAI_MODEL = "text-embedding-3-small"


class EmbeddingProvider(Protocol):
    """Async interface shared by embedding backends."""

    name: str
    model: str

    async def embed_texts(self, texts: list[str]) -> list[list[float]]:
        """Embed documents, returning one vector per text in input order."""

    async def embed_query(self, query: str) -> list[float]:
        """Embed a single search query."""


def _check_vectors(
    vectors: list[list[float]], expected: int, *, provider: str
) -> list[list[float]]:
    if len(vectors) != expected:
        raise ProviderError(
            f"expected {expected} embeddings, got {len(vectors)}", provider=provider
        )
    for vector in vectors:
        if not vector:
            raise ProviderError("provider returned an empty embedding", provider=provider)
    return vectors


class GeminiEmbeddingProvider:
    """Generate text embeddings via Google GenAI."""

    name = "gemini"

    def __init__(
        self,
        *,
        api_key: str | None = None,
        model: str | None = None,
        dim: int | None = None,
        timeout: float | None = None,
        client: Any | None = None,
    ) -> None:
        self.model = model or os.getenv("KB_SEARCH_EMBEDDING_MODEL", _DEFAULT_GEMINI_MODEL)
        self.dim = dim or int(os.getenv("KB_SEARCH_EMBEDDING_DIM", str(_DEFAULT_GEMINI_DIM)))

        if client is not None:
            self._client = client
        else:
            resolved_key = api_key or os.getenv("GOOGLE_API_KEY")
            if resolved_key is None:
                raise ConfigurationError(
                    "GOOGLE_API_KEY not found. "
                    "Provide api_key or set the environment variable.",
                    provider=self.name,
                )
            http_options = (
                HttpOptions(timeout=int(timeout * 1000)) if timeout else None
            )
            self._client = GenAIClient(api_key=resolved_key, http_options=http_options)

    async def embed_texts(self, texts: list[str]) -> list[list[float]]:
        vectors = await self._embed(texts, task_type="RETRIEVAL_DOCUMENT")
        return _check_vectors(vectors, len(texts), provider=self.name)

    async def embed_query(self, query: str) -> list[float]:
        vectors = await self._embed([query], task_type="RETRIEVAL_QUERY")
        return _check_vectors(vectors, 1, provider=self.name)[0]

    async def _embed(self, contents: list[str], *, task_type: str) -> list[list[float]]:
        try:
            result = await self._client.aio.models.embed_content(
                model=self.model,
                contents=contents,
                config={
                    "task_type": task_type,
                    "output_dimensionality": self.dim,
                },
            )
        except (
            genai_errors.APIError,
            genai_errors.UnknownApiResponseError,
            httpx.HTTPError,
        ) as exc:
            raise ProviderError(str(exc), provider=self.name) from exc
        if not result.embeddings:
            raise ProviderError("response contained no embeddings", provider=self.name)
        return [list(emb.values or []) for emb in result.embeddings]


class OpenAIEmbeddingProvider:
    """Generate text embeddings via the OpenAI embeddings endpoint."""

    name = "openai"

    def __init__(
        self,
        *,
        api_key: str | None = None,
        model: str | None = None,
        timeout: float | None = None,
        client: Any | None = None,
    ) -> None:
        self.model = model or os.getenv("KB_SEARCH_EMBEDDING_MODEL", _DEFAULT_OPENAI_MODEL)

        if client is not None:
            self._client = client
        else:
            resolved_key = api_key or os.getenv("OPENAI_API_KEY")
            if resolved_key is None:
                raise ConfigurationError(
                    "OPENAI_API_KEY not found. "
                    "Provide api_key or set the environment variable.",
                    provider=self.name,
                )
            self._client = openai.AsyncOpenAI(api_key=resolved_key, timeout=timeout)

    async def embed_texts(self, texts: list[str]) -> list[list[float]]:
        vectors = await self._embed(texts)
        return _check_vectors(vectors, len(texts), provider=self.name)

    async def embed_query(self, query: str) -> list[float]:
        vectors = await self._embed([query])
        return _check_vectors(vectors, 1, provider=self.name)[0]

    async def _embed(self, texts: list[str]) -> list[list[float]]:
        try:
            response = await self._client.embeddings.create(model=self.model, input=texts)
        except openai.OpenAIError as exc:
            raise ProviderError(str(exc), provider=self.name) from exc
        data = sorted(response.data or [], key=lambda item: item.index)
        return [list(item.embedding) for item in data]


def create_embedding_provider(settings: Settings) -> EmbeddingProvider | None:
    """Build the configured embedding provider, or None when no key is set."""
    if settings.embedding_provider == "gemini" and settings.google_api_key:
        return GeminiEmbeddingProvider(
            api_key=settings.google_api_key,
            model=settings.embedding_model,
            dim=settings.embedding_dim,
            timeout=settings.provider_timeout,
        )
    if settings.embedding_provider == "openai" and settings.openai_api_key:
        return OpenAIEmbeddingProvider(
            api_key=settings.openai_api_key,
            model=settings.embedding_model,
            timeout=settings.provider_timeout,
        )
    return None
