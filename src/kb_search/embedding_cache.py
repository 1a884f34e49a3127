"""
Per-entry embedding cache.

The cache is loaded from a JSON file mapping entry id to vector, or built by
embedding every entry in fixed-size batches. A batch that fails is logged
and skipped; its entries stay without an embedding and score 0 under the
vector strategy. Builds are serialized so concurrent requests never issue
duplicate provider calls.
"""

from __future__ import annotations

import asyncio
import json
import logging
import os
import tempfile
from collections.abc import Sequence
from pathlib import Path

from .embeddings import EmbeddingProvider
from .errors import ProviderError
from .models import Entry

logger = logging.getLogger(__name__)

DEFAULT_BATCH_SIZE = 100


def entry_embedding_text(entry: Entry) -> str:
    """Text representation of an entry sent to the embedding provider."""
    return f"{entry.title}. {entry.summary or ''} {entry.category} {' '.join(entry.tags)}"


class EmbeddingCache:
    """In-memory map of entry key to embedding, persisted as JSON."""

    def __init__(
        self,
        path: str | Path | None = None,
        provider: EmbeddingProvider | None = None,
        *,
        batch_size: int = DEFAULT_BATCH_SIZE,
    ) -> None:
        self.path = Path(path).expanduser() if path is not None else None
        self.provider = provider
        self.batch_size = max(batch_size, 1)
        self._vectors: dict[str, list[float]] = {}
        self._ready = False
        self._build_lock = asyncio.Lock()

    def __len__(self) -> int:
        return len(self._vectors)

    def __contains__(self, entry_id: object) -> bool:
        return str(entry_id) in self._vectors

    @property
    def ready(self) -> bool:
        return self._ready

    @property
    def dimension(self) -> int | None:
        for vector in self._vectors.values():
            return len(vector)
        return None

    def get(self, entry_id: int | str) -> list[float] | None:
        return self._vectors.get(str(entry_id))

    async def ensure(self, entries: Sequence[Entry]) -> None:
        """Make the cache available, loading or building it at most once."""
        if self._ready:
            return
        async with self._build_lock:
            if self._ready:
                return
            if self.load():
                return
            if self.provider is None:
                logger.info("No embedding provider configured, skipping embeddings generation")
                return
            await self.build(entries)

    def load(self) -> bool:
        """Load the persisted mapping; return True when a usable cache was read."""
        if self.path is None or not self.path.exists():
            return False
        try:
            raw = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as exc:
            logger.error("Failed to load embeddings cache %s: %s", self.path, exc)
            return False

        vectors = _validate_mapping(raw)
        if vectors is None:
            logger.error("Ignoring malformed embeddings cache %s", self.path)
            return False
        if not vectors:
            return False

        self._vectors = vectors
        self._ready = True
        logger.info("Loaded %d embeddings from cache", len(vectors))
        return True

    async def build(self, entries: Sequence[Entry]) -> int:
        """Embed every entry batch by batch and persist the finished map."""
        if self.provider is None:
            raise ProviderError("no embedding provider configured")

        total_batches = (len(entries) + self.batch_size - 1) // self.batch_size
        logger.info("Generating embeddings for %d entries...", len(entries))

        vectors: dict[str, list[float]] = {}
        for number, start in enumerate(range(0, len(entries), self.batch_size), start=1):
            batch = entries[start : start + self.batch_size]
            texts = [entry_embedding_text(entry) for entry in batch]
            try:
                embedded = await self.provider.embed_texts(texts)
            except ProviderError as exc:
                logger.error(
                    "Failed to generate embeddings for batch %d/%d: %s",
                    number,
                    total_batches,
                    exc,
                )
                continue
            for entry, vector in zip(batch, embedded):
                vectors[entry.key] = vector
            logger.info("Batch %d/%d complete", number, total_batches)

        if not vectors:
            logger.warning("No embeddings were generated; cache left empty")
            return 0

        self._vectors = vectors
        self._ready = True
        try:
            self.save()
        except OSError as exc:
            logger.error("Failed to save embeddings cache %s: %s", self.path, exc)
        return len(vectors)

    def save(self) -> None:
        """Write the whole map to disk, replacing any previous file."""
        if self.path is None:
            return
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(
            prefix=self.path.name, suffix=".tmp", dir=str(self.path.parent)
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                json.dump(self._vectors, handle)
            os.replace(tmp_name, self.path)
        except OSError:
            Path(tmp_name).unlink(missing_ok=True)
            raise
        logger.info("Embeddings cache saved to %s", self.path)


def _validate_mapping(raw: object) -> dict[str, list[float]] | None:
    if not isinstance(raw, dict):
        return None
    vectors: dict[str, list[float]] = {}
    dimension: int | None = None
    for key, value in raw.items():
        if not isinstance(value, list) or not value:
            return None
        if not all(
            isinstance(x, (int, float)) and not isinstance(x, bool) for x in value
        ):
            return None
        if dimension is None:
            dimension = len(value)
        elif len(value) != dimension:
            return None
        vectors[str(key)] = [float(x) for x in value]
    return vectors
