"""
Chat-friendly rendering of search responses.

Pure string helpers: markdown escaping plus a bounded summary of the top
results, suitable for chat platforms and the terminal.
"""

from __future__ import annotations

from .models import SearchResponse

_MARKDOWN_SPECIALS = "\\*_[]()~`>"
_ESCAPE_TABLE = str.maketrans({ch: f"\\{ch}" for ch in _MARKDOWN_SPECIALS})

MAX_NARRATION_CHARS = 500
MAX_TITLE_CHARS = 60
MAX_SUMMARY_CHARS = 120
MAX_LISTED_RESULTS = 5


def escape_markdown(text: str | None) -> str:
    """Backslash-escape markdown control characters."""
    if not text:
        return ""
    return text.translate(_ESCAPE_TABLE)


def escape_url(url: str) -> str:
    return url.replace(")", "\\)")


def _truncate(text: str, limit: int) -> tuple[str, bool]:
    if len(text) > limit:
        return text[:limit], True
    return text, False


def format_results(
    response: SearchResponse,
    query: str,
    *,
    detailed: bool = False,
    include_urls: bool = True,
) -> str:
    """Render a response as escaped markdown text."""
    if not response.results:
        return f'🔍 No results found for "{escape_markdown(query)}"'

    lines: list[str] = [
        f'🔍 *Search Results: "{escape_markdown(query)}"*',
        f"Found {response.total} entries",
        "",
    ]

    if response.narration:
        narration, truncated = _truncate(response.narration, MAX_NARRATION_CHARS)
        lines.append("✦ *AI Summary*")
        lines.append(escape_markdown(narration))
        if truncated:
            lines.append("...")
        lines.append("")

    lines.append("*Top Results:*")
    for index, item in enumerate(response.results[:MAX_LISTED_RESULTS], start=1):
        title, truncated = _truncate(item.title, MAX_TITLE_CHARS)
        lines.append(f"{index}\\. *{escape_markdown(title)}*{'...' if truncated else ''}")
        lines.append(
            f"   📁 {escape_markdown(item.category) or 'Uncategorized'}"
            f" · 👤 {escape_markdown(item.source or 'Unknown')}"
        )
        if include_urls and item.url:
            lines.append(f"   🔗 [View Entry]({escape_url(item.url)})")
        if detailed and item.summary:
            summary, truncated = _truncate(item.summary, MAX_SUMMARY_CHARS)
            lines.append(f"   📝 {escape_markdown(summary)}{'...' if truncated else ''}")
        lines.append(f"   📊 {item.relevance}% match")
        lines.append("")

    if len(response.results) > MAX_LISTED_RESULTS:
        lines.append(f"_...and {len(response.results) - MAX_LISTED_RESULTS} more results_")

    if response.degraded:
        lines.append("")
        lines.append("⚠️ _Using local search (semantic search unavailable)_")

    return "\n".join(lines)
