"""
Structural filters applied to candidate entries before scoring.
"""

from __future__ import annotations

from collections.abc import Iterable

from ..models import Entry, SearchOptions


def filter_by_category(entries: Iterable[Entry], category: str | None) -> list[Entry]:
    """Case-insensitive exact category match; None keeps everything."""
    if category is None:
        return list(entries)
    return [entry for entry in entries if entry.category.lower() == category]


def filter_by_date(
    entries: Iterable[Entry],
    *,
    date_from: str | None = None,
    date_to: str | None = None,
) -> list[Entry]:
    """Inclusive string-comparable date bounds; undated entries always pass."""
    kept: list[Entry] = []
    for entry in entries:
        if entry.date is None:
            kept.append(entry)
            continue
        if date_from is not None and entry.date < date_from:
            continue
        if date_to is not None and entry.date > date_to:
            continue
        kept.append(entry)
    return kept


def apply_filters(entries: Iterable[Entry], options: SearchOptions) -> list[Entry]:
    """Apply category, then date_from, then date_to, preserving snapshot order."""
    filtered = filter_by_category(entries, options.category_filter)
    if options.date_from is not None:
        filtered = filter_by_date(filtered, date_from=options.date_from)
    if options.date_to is not None:
        filtered = filter_by_date(filtered, date_to=options.upper_date_bound)
    return filtered
