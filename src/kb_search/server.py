"""
FastAPI server for knowledge base search.

Thin HTTP adapter over SearchService: search with optional narration,
lexical-only search, entry lookup, categories, stats and a random entry.
"""

import asyncio
from dataclasses import asdict

from fastapi import Depends, FastAPI
from fastapi.responses import JSONResponse

from .config import Settings
from .errors import DimensionMismatchError, LoadError, ValidationError
from .models import SearchRequest
from .service import SearchService, build_service

app = FastAPI(title="kb-search", description="Knowledge base search API")

_SERVICE: SearchService | None = None


def get_service() -> SearchService:
    """Return the process-wide service, building it from the environment once."""
    global _SERVICE
    if _SERVICE is None:
        _SERVICE = build_service(Settings.from_env())
    return _SERVICE


def reset_service() -> None:
    global _SERVICE
    _SERVICE = None


def _error(message: str, status_code: int) -> JSONResponse:
    return JSONResponse({"error": message}, status_code=status_code)


@app.get("/health")
async def health(service: SearchService = Depends(get_service)):
    """Report entry counts and which remote capabilities are configured."""
    try:
        return await asyncio.to_thread(service.health)
    except LoadError as exc:
        return _error(str(exc), 500)


@app.post("/search")
async def search(request: SearchRequest, service: SearchService = Depends(get_service)):
    """Ranked search with vector scoring when available and optional narration."""
    try:
        response = await service.search(request)
    except ValidationError as exc:
        return _error(str(exc), 400)
    except (LoadError, DimensionMismatchError) as exc:
        return _error(str(exc), 500)
    return response.model_dump(mode="json")


@app.post("/text-search")
async def text_search(request: SearchRequest, service: SearchService = Depends(get_service)):
    """Lexical-only search; never calls an external provider."""
    try:
        response = await asyncio.to_thread(service.text_search, request)
    except ValidationError as exc:
        return _error(str(exc), 400)
    except LoadError as exc:
        return _error(str(exc), 500)
    return response.model_dump(mode="json")


@app.get("/entry/{entry_id}")
async def get_entry(entry_id: str, service: SearchService = Depends(get_service)):
    try:
        entry = await asyncio.to_thread(service.store.get_entry, entry_id)
    except LoadError as exc:
        return _error(str(exc), 500)
    if entry is None:
        return _error("Entry not found", 404)
    return entry.model_dump(mode="json")


@app.get("/categories")
async def categories(service: SearchService = Depends(get_service)):
    try:
        snapshot = await asyncio.to_thread(service.store.load)
    except LoadError as exc:
        return _error(str(exc), 500)
    return list(snapshot.categories)


@app.get("/stats")
async def stats(service: SearchService = Depends(get_service)):
    try:
        kb_stats = await asyncio.to_thread(service.store.get_stats)
    except LoadError as exc:
        return _error(str(exc), 500)
    data = asdict(kb_stats)
    data["categories"] = list(kb_stats.categories)
    return data


@app.get("/random")
async def random_entry(
    category: str | None = None, service: SearchService = Depends(get_service)
):
    try:
        entry = await asyncio.to_thread(service.store.get_random, category)
    except LoadError as exc:
        return _error(str(exc), 500)
    if entry is None:
        return _error("No entries found", 404)
    return entry.model_dump(mode="json")


def run_server(host: str = "127.0.0.1", port: int = 3456):
    """Run the FastAPI server."""
    import uvicorn

    uvicorn.run(app, host=host, port=port)


if __name__ == "__main__":
    run_server()
