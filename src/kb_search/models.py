"""
Data models for knowledge base entries, search options and responses.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
    model_validator,
)

from .errors import ValidationError


def parse_timestamp(value: str) -> datetime:
    """Parse an ISO date or timestamp; naive values are taken as UTC."""
    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    parsed = datetime.fromisoformat(text)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


class Entry(BaseModel):
    """A single knowledge base record."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    id: int | str
    title: str
    summary: str | None = None
    category: str = ""
    source: str = ""
    tags: tuple[str, ...] = ()
    date: str | None = None
    url: str = ""

    @model_validator(mode="before")
    @classmethod
    def _date_from_added_at(cls, data: Any) -> Any:
        if isinstance(data, dict) and not data.get("date") and data.get("addedAt"):
            data = {**data, "date": data["addedAt"]}
        return data

    @field_validator("id", mode="before")
    @classmethod
    def _check_id(cls, value: Any) -> Any:
        if isinstance(value, bool) or not isinstance(value, (int, str)):
            raise ValueError(f"id must be an integer or string, got {value!r}")
        if isinstance(value, str) and not value.strip():
            raise ValueError("id must not be empty")
        return value

    @field_validator("title")
    @classmethod
    def _check_title(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("title must not be empty")
        return value

    @field_validator("category", "source", "url", mode="before")
    @classmethod
    def _none_to_empty(cls, value: Any) -> Any:
        return "" if value is None else value

    @field_validator("date", mode="before")
    @classmethod
    def _blank_date(cls, value: Any) -> Any:
        if isinstance(value, str) and not value.strip():
            return None
        return value

    @field_validator("tags", mode="before")
    @classmethod
    def _normalize_tags(cls, value: Any) -> Any:
        if value is None:
            return ()
        if isinstance(value, str):
            raise ValueError("tags must be a list of strings")
        return value

    @property
    def key(self) -> str:
        """Stable string key used by the embedding cache."""
        return str(self.id)


@dataclass(frozen=True)
class Snapshot:
    """Immutable view of the knowledge base as loaded from its source."""

    entries: tuple[Entry, ...]
    categories: tuple[str, ...]
    last_updated: str | None
    mtime: float
    _by_key: dict[str, Entry] = field(default_factory=dict, repr=False, compare=False)

    def __post_init__(self) -> None:
        if not self._by_key:
            self._by_key.update({entry.key: entry for entry in self.entries})

    def get(self, entry_id: int | str) -> Entry | None:
        return self._by_key.get(str(entry_id))


@dataclass(frozen=True)
class KBStats:
    """Aggregate counts derived from a snapshot."""

    total_entries: int
    categories: tuple[str, ...]
    sources: int
    last_updated: str | None


class Strategy(str, Enum):
    """Scoring strategy used for a request."""

    REMOTE = "remote"
    LOCAL = "local"


@dataclass(frozen=True)
class ScoredEntry:
    """Entry scored for a single query."""

    entry: Entry
    score: float
    matched_terms: frozenset[str] = frozenset()
    strategy: Strategy = Strategy.LOCAL

    @property
    def relevance(self) -> int:
        """0-100 relevance percentage for display."""
        if self.strategy is Strategy.REMOTE:
            return max(0, min(100, round(self.score * 100)))
        return max(0, int(min(self.score * 10, 100)))


@dataclass(frozen=True)
class SearchOptions:
    """Structural filters and knobs for a ranking request."""

    category: str | None = None
    date_from: str | None = None
    date_to: str | None = None
    limit: int = 10
    prefer_remote: bool = True

    def __post_init__(self) -> None:
        if isinstance(self.limit, bool) or not isinstance(self.limit, int) or self.limit < 1:
            raise ValidationError(f"limit must be a positive integer, got {self.limit!r}")
        for name in ("date_from", "date_to"):
            value = getattr(self, name)
            if value is None:
                continue
            try:
                parse_timestamp(value)
            except (TypeError, ValueError, AttributeError):
                raise ValidationError(f"{name} is not a valid date: {value!r}") from None
        if self.date_from and self.date_to and self.date_from > self.upper_date_bound:
            raise ValidationError("date_from must not be later than date_to")

    @property
    def category_filter(self) -> str | None:
        """Lowercased category to filter on, or None for no filter."""
        if self.category is None:
            return None
        normalized = self.category.strip().lower()
        if not normalized or normalized == "all":
            return None
        return normalized

    @property
    def upper_date_bound(self) -> str | None:
        """Inclusive upper bound; a bare date covers the whole day."""
        if self.date_to is None:
            return None
        if len(self.date_to.strip()) == 10:
            return f"{self.date_to.strip()}T23:59:59Z"
        return self.date_to


class SearchRequest(BaseModel):
    """Search request as received from the HTTP and CLI adapters."""

    model_config = ConfigDict(populate_by_name=True)

    query: str = ""
    category: str | None = None
    date_from: str | None = Field(
        default=None, validation_alias=AliasChoices("dateFrom", "date_from")
    )
    date_to: str | None = Field(
        default=None, validation_alias=AliasChoices("dateTo", "date_to")
    )
    limit: int = 10
    include_narration: bool = Field(
        default=True,
        validation_alias=AliasChoices(
            "includeNarration", "includeSummary", "include_narration"
        ),
    )
    prefer_remote: bool = Field(
        default=True, validation_alias=AliasChoices("preferRemote", "prefer_remote")
    )

    def to_options(self) -> SearchOptions:
        return SearchOptions(
            category=self.category,
            date_from=self.date_from or None,
            date_to=self.date_to or None,
            limit=self.limit,
            prefer_remote=self.prefer_remote,
        )


class ResultItem(BaseModel):
    """Entry fields plus a display relevance percentage."""

    id: int | str
    title: str
    summary: str | None = None
    category: str = ""
    source: str = ""
    tags: list[str] = Field(default_factory=list)
    date: str | None = None
    url: str = ""
    relevance: int

    @classmethod
    def from_scored(cls, scored: ScoredEntry) -> "ResultItem":
        entry = scored.entry
        return cls(
            id=entry.id,
            title=entry.title,
            summary=entry.summary,
            category=entry.category,
            source=entry.source,
            tags=list(entry.tags),
            date=entry.date,
            url=entry.url,
            relevance=scored.relevance,
        )


class SearchResponse(BaseModel):
    """Result envelope returned for every search."""

    narration: str | None = None
    results: list[ResultItem] = Field(default_factory=list)
    total: int = 0
    degraded: bool = False
    strategy: Strategy = Strategy.LOCAL
