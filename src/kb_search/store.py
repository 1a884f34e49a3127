"""
Entry store: loads the knowledge base JSON and keeps an immutable snapshot.

The snapshot is swapped as a whole whenever the source file's modification
time changes, so readers always hold a complete, consistent view.
"""

from __future__ import annotations

import json
import logging
import os
import random
import threading
from pathlib import Path
from typing import Any

import pydantic

from .errors import LoadError
from .models import Entry, KBStats, Snapshot

logger = logging.getLogger(__name__)


class EntryStore:
    """Owns the current knowledge base snapshot and its reload policy."""

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path).expanduser()
        self._snapshot: Snapshot | None = None
        self._lock = threading.Lock()

    @property
    def current(self) -> Snapshot | None:
        """The last loaded snapshot, without checking the source."""
        return self._snapshot

    def load(self) -> Snapshot:
        """Return the current snapshot, reparsing the source if it changed."""
        try:
            mtime = os.stat(self.path).st_mtime
        except FileNotFoundError:
            raise LoadError(f"Knowledge base not found: {self.path}") from None
        except OSError as exc:
            raise LoadError(f"Cannot access knowledge base {self.path}: {exc}") from exc

        with self._lock:
            snapshot = self._snapshot
            if snapshot is not None and snapshot.mtime == mtime:
                return snapshot
            snapshot = self._parse(mtime)
            self._snapshot = snapshot

        logger.info(
            "Loaded %d entries, %d categories from %s",
            len(snapshot.entries),
            len(snapshot.categories),
            self.path,
        )
        return snapshot

    def get_stats(self) -> KBStats:
        """Aggregate counts for the current snapshot; loads only if nothing is loaded."""
        snapshot = self._snapshot or self.load()
        sources = {entry.source for entry in snapshot.entries if entry.source}
        return KBStats(
            total_entries=len(snapshot.entries),
            categories=snapshot.categories,
            sources=len(sources),
            last_updated=snapshot.last_updated,
        )

    def get_random(
        self,
        category: str | None = None,
        *,
        rng: random.Random | None = None,
    ) -> Entry | None:
        """Pick a uniformly random entry, optionally within one category."""
        entries: list[Entry] = list(self.load().entries)
        if category and category.lower() != "all":
            wanted = category.lower()
            entries = [e for e in entries if e.category.lower() == wanted]
        if not entries:
            return None
        return (rng or random).choice(entries)

    def get_entry(self, entry_id: int | str) -> Entry | None:
        return self.load().get(entry_id)

    def _parse(self, mtime: float) -> Snapshot:
        try:
            raw = json.loads(self.path.read_text(encoding="utf-8"))
        except OSError as exc:
            raise LoadError(f"Failed to read knowledge base {self.path}: {exc}") from exc
        except json.JSONDecodeError as exc:
            raise LoadError(f"Knowledge base {self.path} is not valid JSON: {exc}") from exc
        return build_snapshot(raw, mtime=mtime, origin=str(self.path))


def build_snapshot(raw: Any, *, mtime: float = 0.0, origin: str = "<data>") -> Snapshot:
    """Validate raw knowledge base data and build a snapshot from it."""
    if not isinstance(raw, dict):
        raise LoadError(f"{origin}: expected a JSON object at the top level")
    raw_entries = raw.get("entries")
    if not isinstance(raw_entries, list):
        raise LoadError(f"{origin}: 'entries' must be a list")

    entries: list[Entry] = []
    seen: set[str] = set()
    for index, item in enumerate(raw_entries):
        try:
            entry = Entry.model_validate(item)
        except pydantic.ValidationError as exc:
            raise LoadError(f"{origin}: invalid entry at index {index}: {exc}") from exc
        if entry.key in seen:
            raise LoadError(f"{origin}: duplicate entry id {entry.id!r}")
        seen.add(entry.key)
        entries.append(entry)

    raw_categories = raw.get("categories")
    if raw_categories is None:
        categories = tuple(dict.fromkeys(e.category for e in entries if e.category))
    elif isinstance(raw_categories, list) and all(isinstance(c, str) for c in raw_categories):
        categories = tuple(raw_categories)
    else:
        raise LoadError(f"{origin}: 'categories' must be a list of strings")

    last_updated = raw.get("lastUpdated")
    return Snapshot(
        entries=tuple(entries),
        categories=categories,
        last_updated=str(last_updated) if last_updated is not None else None,
        mtime=mtime,
    )
