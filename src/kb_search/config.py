"""
Configuration helpers for the knowledge base and its providers.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from .errors import SettingsError


DEFAULT_KB_PATH = "~/.kb_search/kb.json"
ENV_KB_PATH = "KB_SEARCH_KB_PATH"
ENV_CACHE_PATH = "KB_SEARCH_EMBEDDINGS_CACHE"
CACHE_FILENAME = ".embeddings-cache.json"

_DEFAULT_TIMEOUT = 30.0


def resolve_kb_path(override_path: str | None = None) -> str:
    """
    Resolve the knowledge base JSON path from CLI override, env var, or default.

    Precedence:
    1) explicit override_path
    2) KB_SEARCH_KB_PATH
    3) default path
    """
    raw_path = override_path or os.getenv(ENV_KB_PATH) or DEFAULT_KB_PATH
    return str(Path(raw_path).expanduser().resolve())


def resolve_cache_path(kb_path: str, override_path: str | None = None) -> str:
    """
    Resolve the embeddings cache path.

    Defaults to a hidden file next to the knowledge base file.
    """
    raw_path = override_path or os.getenv(ENV_CACHE_PATH)
    if raw_path:
        return str(Path(raw_path).expanduser().resolve())
    return str(Path(kb_path).parent / CACHE_FILENAME)


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return float(raw)
    except ValueError:
        raise SettingsError(f"{name} must be a number, got {raw!r}") from None


def _env_int(name: str) -> int | None:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return None
    try:
        return int(raw)
    except ValueError:
        raise SettingsError(f"{name} must be an integer, got {raw!r}") from None


@dataclass(frozen=True)
class Settings:
    """Runtime settings collected from the environment."""

    kb_path: str
    cache_path: str
    google_api_key: str | None = None
    openai_api_key: str | None = None
    openrouter_api_key: str | None = None
    embedding_provider: str | None = None
    embedding_model: str | None = None
    embedding_dim: int | None = None
    gemini_narration_model: str = "gemini-2.0-flash"
    openrouter_narration_model: str = "openai/gpt-4.1-mini"
    openai_narration_model: str = "gpt-4.1-mini"
    provider_timeout: float = _DEFAULT_TIMEOUT

    @classmethod
    def from_env(
        cls,
        *,
        kb_path: str | None = None,
        cache_path: str | None = None,
    ) -> "Settings":
        resolved_kb = resolve_kb_path(kb_path)
        google_key = os.getenv("GOOGLE_API_KEY") or None
        openai_key = os.getenv("OPENAI_API_KEY") or None

        embedding_provider = os.getenv("KB_SEARCH_EMBEDDING_PROVIDER") or None
        if embedding_provider is None:
            if google_key:
                embedding_provider = "gemini"
            elif openai_key:
                embedding_provider = "openai"
        elif embedding_provider not in {"gemini", "openai"}:
            raise SettingsError(
                "KB_SEARCH_EMBEDDING_PROVIDER must be 'gemini' or 'openai', "
                f"got {embedding_provider!r}"
            )

        return cls(
            kb_path=resolved_kb,
            cache_path=resolve_cache_path(resolved_kb, cache_path),
            google_api_key=google_key,
            openai_api_key=openai_key,
            openrouter_api_key=os.getenv("OPENROUTER_API_KEY") or None,
            embedding_provider=embedding_provider,
            embedding_model=os.getenv("KB_SEARCH_EMBEDDING_MODEL") or None,
            embedding_dim=_env_int("KB_SEARCH_EMBEDDING_DIM"),
            gemini_narration_model=os.getenv(
                "KB_SEARCH_NARRATION_MODEL_GEMINI", cls.gemini_narration_model
            ),
            openrouter_narration_model=os.getenv(
                "KB_SEARCH_NARRATION_MODEL_OPENROUTER", cls.openrouter_narration_model
            ),
            openai_narration_model=os.getenv(
                "KB_SEARCH_NARRATION_MODEL_OPENAI", cls.openai_narration_model
            ),
            provider_timeout=_env_float("KB_SEARCH_PROVIDER_TIMEOUT", _DEFAULT_TIMEOUT),
        )

    @property
    def ai_available(self) -> bool:
        return bool(self.google_api_key or self.openai_api_key or self.openrouter_api_key)
