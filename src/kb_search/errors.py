"""
Error taxonomy for knowledge base search.
"""

from __future__ import annotations


class KBSearchError(Exception):
    """Base class for all kb_search errors."""


class LoadError(KBSearchError):
    """Raised when the knowledge base source is missing or malformed."""


class ProviderError(KBSearchError):
    """Raised when an embedding or text-generation provider call fails."""

    def __init__(self, message: str, *, provider: str | None = None) -> None:
        super().__init__(message)
        self.provider = provider

    def __str__(self) -> str:
        message = super().__str__()
        if self.provider:
            return f"[{self.provider}] {message}"
        return message


class ConfigurationError(ProviderError):
    """Raised when a remote capability is requested but no key is configured."""


class SettingsError(KBSearchError, ValueError):
    """Raised when an environment setting has an invalid value."""


class ValidationError(KBSearchError, ValueError):
    """Raised when a search request or its filters are invalid."""


class DimensionMismatchError(KBSearchError, ValueError):
    """Raised when two embeddings of different lengths are compared."""
