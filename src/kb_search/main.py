import asyncio
from typing import Annotated, List, Optional

from typer import Argument, Exit, Option, Typer
from rich.console import Console
from rich.markdown import Markdown
from rich.panel import Panel

from .config import Settings
from .errors import KBSearchError
from .formatting import format_results
from .logging_config import configure_logging
from .models import SearchRequest
from .service import build_service

app = Typer(help="Search a knowledge base of titled, summarized entries.")

KBPathOption = Annotated[
    Optional[str],
    Option("--kb", help="Path to the knowledge base JSON (default: KB_SEARCH_KB_PATH)."),
]


@app.callback()
def main(
    verbose: Annotated[
        bool, Option("--verbose", "-v", help="Enable debug logging.")
    ] = False,
) -> None:
    configure_logging(verbose)


async def run_search(request: SearchRequest, kb_path: str | None = None):
    service = build_service(Settings.from_env(kb_path=kb_path))
    return await service.search(request)


@app.command()
def search(
    query: Annotated[List[str], Argument(help="Free-text search query.")],
    category: Annotated[
        Optional[str], Option("--category", "-c", help="Only entries in this category.")
    ] = None,
    date_from: Annotated[
        Optional[str], Option("--from", help="Earliest entry date (inclusive).")
    ] = None,
    date_to: Annotated[
        Optional[str], Option("--to", help="Latest entry date (inclusive).")
    ] = None,
    limit: Annotated[int, Option("--limit", "-n", help="Maximum results.")] = 10,
    local: Annotated[
        bool, Option("--local", help="Use lexical search only, no provider calls.")
    ] = False,
    no_narration: Annotated[
        bool, Option("--no-narration", help="Skip the generated summary.")
    ] = False,
    detailed: Annotated[
        bool, Option("--detailed", help="Include entry summaries.")
    ] = False,
    kb_path: KBPathOption = None,
) -> None:
    """Search the knowledge base."""
    console = Console()
    text = " ".join(query)
    try:
        request = SearchRequest(
            query=text,
            category=category,
            date_from=date_from,
            date_to=date_to,
            limit=limit,
            include_narration=not (no_narration or local),
            prefer_remote=not local,
        )
        with console.status(status=f'Searching "{text}"...'):
            response = asyncio.run(run_search(request, kb_path))
    except KBSearchError as exc:
        console.print(f"[bold red]Search failed:[/] {exc}")
        raise Exit(code=1)

    panel = Panel(
        Markdown(format_results(response, text, detailed=detailed)),
        title_align="left",
        title="Search results",
        border_style="bold yellow" if response.degraded else "bold green",
    )
    console.print(panel)


@app.command()
def stats(kb_path: KBPathOption = None) -> None:
    """Show knowledge base statistics."""
    console = Console()
    try:
        service = build_service(Settings.from_env(kb_path=kb_path))
        kb_stats = service.store.get_stats()
    except KBSearchError as exc:
        console.print(f"[bold red]{exc}[/]")
        raise Exit(code=1)
    content = (
        f"**Total Entries:** {kb_stats.total_entries}\n\n"
        f"**Categories:** {', '.join(kb_stats.categories) or 'none'}\n\n"
        f"**Unique Sources:** {kb_stats.sources}\n\n"
        f"**Last Updated:** {kb_stats.last_updated or 'unknown'}"
    )
    console.print(Panel(Markdown(content), title="Knowledge Base Stats", title_align="left"))


@app.command()
def random(
    category: Annotated[Optional[str], Argument(help="Restrict to one category.")] = None,
    kb_path: KBPathOption = None,
) -> None:
    """Show a random entry."""
    console = Console()
    try:
        service = build_service(Settings.from_env(kb_path=kb_path))
        entry = service.store.get_random(category)
    except KBSearchError as exc:
        console.print(f"[bold red]{exc}[/]")
        raise Exit(code=1)
    if entry is None:
        suffix = f' in category "{category}"' if category else ""
        console.print(f"[bold red]No entries found{suffix}[/]")
        raise Exit(code=1)

    lines = [
        f"**Title:** {entry.title}",
        f"**Category:** {entry.category}",
        f"**Source:** {entry.source}",
        f"**Date:** {entry.date or 'N/A'}",
        f"**URL:** {entry.url}",
    ]
    if entry.summary:
        summary = entry.summary[:200] + ("..." if len(entry.summary) > 200 else "")
        lines.append(f"**Summary:** {summary}")
    console.print(Panel(Markdown("\n\n".join(lines)), title="Random Entry", title_align="left"))


@app.command()
def serve(
    host: Annotated[str, Option("--host", help="Bind address.")] = "127.0.0.1",
    port: Annotated[int, Option("--port", "-p", help="Port to listen on.")] = 3456,
) -> None:
    """Run the HTTP search API."""
    from .server import run_server

    run_server(host=host, port=port)
