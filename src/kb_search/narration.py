"""
Best-effort natural-language narration of ranked search results.

Providers are tried in priority order; the first one that answers wins.
If every provider fails, or none is configured, the narration is omitted.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import Any, Protocol

import httpx
import openai
from google.genai import Client as GenAIClient
from google.genai import errors as genai_errors
from google.genai.types import HttpOptions

from .config import Settings
from .errors import ProviderError
from .models import ScoredEntry

logger = logging.getLogger(__name__)

OPENROUTER_BASE_URL = "https://openrouter.ai/api/v1"

SYSTEM_PROMPT = (
    "You are a knowledge base assistant. Answer the user's question using ONLY "
    "the provided knowledge base entries. Be concise, direct, and cite entry "
    "numbers [1], [2] etc. If no entries are relevant, say so. Format with markdown."
)

MAX_CONTEXT_RESULTS = 10
MAX_SUMMARY_CHARS = 600
MAX_OUTPUT_TOKENS = 500
TEMPERATURE = 0.3

Message = dict[str, str]


class TextGenerator(Protocol):
    """Async interface shared by text-generation backends."""

    name: str

    async def generate(
        self,
        messages: list[Message],
        *,
        max_tokens: int,
        temperature: float,
    ) -> str:
        """Return generated text or raise ProviderError."""


class GeminiTextGenerator:
    """Text generation via Google GenAI."""

    name = "gemini"

    def __init__(
        self,
        *,
        api_key: str,
        model: str = "gemini-2.0-flash",
        timeout: float | None = None,
        client: Any | None = None,
    ) -> None:
        self.model = model
        if client is not None:
            self._client = client
        else:
            http_options = HttpOptions(timeout=int(timeout * 1000)) if timeout else None
            self._client = GenAIClient(api_key=api_key, http_options=http_options)

    async def generate(
        self,
        messages: list[Message],
        *,
        max_tokens: int,
        temperature: float,
    ) -> str:
        system = "\n\n".join(m["content"] for m in messages if m["role"] == "system")
        contents = [
            {
                "role": "model" if m["role"] == "assistant" else "user",
                "parts": [{"text": m["content"]}],
            }
            for m in messages
            if m["role"] != "system"
        ]
        try:
            response = await self._client.aio.models.generate_content(
                model=self.model,
                contents=contents,
                config={
                    "system_instruction": system or None,
                    "max_output_tokens": max_tokens,
                    "temperature": temperature,
                },
            )
        except (
            genai_errors.APIError,
            genai_errors.UnknownApiResponseError,
            httpx.HTTPError,
        ) as exc:
            raise ProviderError(str(exc), provider=self.name) from exc
        text = response.text
        if not text:
            raise ProviderError("response contained no text", provider=self.name)
        return text


class OpenAIChatGenerator:
    """Text generation via an OpenAI-compatible chat completions endpoint."""

    def __init__(
        self,
        *,
        api_key: str,
        model: str = "gpt-4.1-mini",
        name: str = "openai",
        base_url: str | None = None,
        timeout: float | None = None,
        client: Any | None = None,
    ) -> None:
        self.name = name
        self.model = model
        if client is not None:
            self._client = client
        else:
            self._client = openai.AsyncOpenAI(
                api_key=api_key, base_url=base_url, timeout=timeout
            )

    async def generate(
        self,
        messages: list[Message],
        *,
        max_tokens: int,
        temperature: float,
    ) -> str:
        try:
            response = await self._client.chat.completions.create(
                model=self.model,
                messages=messages,
                max_tokens=max_tokens,
                temperature=temperature,
            )
        except openai.OpenAIError as exc:
            raise ProviderError(str(exc), provider=self.name) from exc
        if not response.choices:
            raise ProviderError("response contained no choices", provider=self.name)
        content = response.choices[0].message.content
        if not content:
            raise ProviderError("response contained no text", provider=self.name)
        return content


class ProviderChain:
    """Ordered list of text generators tried until one succeeds."""

    def __init__(self, providers: Sequence[TextGenerator]) -> None:
        self.providers = list(providers)

    def __bool__(self) -> bool:
        return bool(self.providers)

    async def generate(
        self,
        messages: list[Message],
        *,
        max_tokens: int = MAX_OUTPUT_TOKENS,
        temperature: float = TEMPERATURE,
    ) -> str:
        last_error: ProviderError | None = None
        for provider in self.providers:
            try:
                return await provider.generate(
                    messages, max_tokens=max_tokens, temperature=temperature
                )
            except ProviderError as exc:
                logger.warning("Narration provider %s failed: %s", provider.name, exc)
                last_error = exc
        if last_error is None:
            raise ProviderError("no text-generation provider configured")
        raise last_error


def build_context(
    results: Sequence[ScoredEntry], *, max_results: int = MAX_CONTEXT_RESULTS
) -> str:
    """Numbered, bounded textual context describing the top results."""
    blocks: list[str] = []
    for rank, scored in enumerate(results[:max_results], start=1):
        entry = scored.entry
        summary = entry.summary or "No summary"
        if len(summary) > MAX_SUMMARY_CHARS:
            summary = summary[:MAX_SUMMARY_CHARS] + "..."
        blocks.append(
            f"[{rank}] {entry.title}\n"
            f"{summary}\n"
            f"Source: {entry.source or 'unknown'} | {entry.date or 'unknown date'}\n"
            f"URL: {entry.url or 'N/A'}"
        )
    return "\n\n".join(blocks)


def build_messages(
    query: str,
    results: Sequence[ScoredEntry],
    *,
    max_results: int = MAX_CONTEXT_RESULTS,
) -> list[Message]:
    context = build_context(results, max_results=max_results)
    return [
        {"role": "system", "content": SYSTEM_PROMPT},
        {
            "role": "user",
            "content": f"Question: {query}\n\nKnowledge Base entries:\n"
            f"{context or 'No matching entries found.'}",
        },
    ]


class NarrationGenerator:
    """Turn ranked results into a short synthesis, or None on any failure."""

    def __init__(
        self,
        providers: ProviderChain | Sequence[TextGenerator],
        *,
        max_results: int = MAX_CONTEXT_RESULTS,
    ) -> None:
        if not isinstance(providers, ProviderChain):
            providers = ProviderChain(providers)
        self.chain = providers
        self.max_results = max_results

    @property
    def available(self) -> bool:
        return bool(self.chain)

    async def narrate(self, query: str, results: Sequence[ScoredEntry]) -> str | None:
        if not self.chain or not results:
            return None
        messages = build_messages(query, results, max_results=self.max_results)
        try:
            return await self.chain.generate(messages)
        except ProviderError as exc:
            logger.error("All narration providers failed: %s", exc)
            return None


def create_text_generators(settings: Settings) -> list[TextGenerator]:
    """Providers in priority order: Gemini, OpenRouter, then OpenAI."""
    providers: list[TextGenerator] = []
    if settings.google_api_key:
        providers.append(
            GeminiTextGenerator(
                api_key=settings.google_api_key,
                model=settings.gemini_narration_model,
                timeout=settings.provider_timeout,
            )
        )
    if settings.openrouter_api_key:
        providers.append(
            OpenAIChatGenerator(
                api_key=settings.openrouter_api_key,
                model=settings.openrouter_narration_model,
                name="openrouter",
                base_url=OPENROUTER_BASE_URL,
                timeout=settings.provider_timeout,
            )
        )
    if settings.openai_api_key:
        providers.append(
            OpenAIChatGenerator(
                api_key=settings.openai_api_key,
                model=settings.openai_narration_model,
                timeout=settings.provider_timeout,
            )
        )
    return providers
