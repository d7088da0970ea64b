"""
src/main.py
FastAPI application: all endpoints for Roadboard.
Endpoints: GET /health, GET /api/roadmap, GET /api/aks-issues, GET /api/cache-info,
GET /api/progress, WS /ws/progress, POST /api/refresh/abort, GET /api/retry-queue
"""

from contextlib import asynccontextmanager
from typing import Any
import json
import logging

from fastapi import FastAPI, HTTPException, Request, WebSocket, WebSocketDisconnect
from fastapi.responses import StreamingResponse
from dotenv import load_dotenv

from src.config import Settings
from src.context import AppContext, build_app_context
from src.enrichment.orchestrator import RefreshCancelled
from src.shared import CollectionType, parse_collection_type
from src.stream import stream_progress

logger = logging.getLogger(__name__)
load_dotenv()


def initialize_context() -> AppContext:
    """Build the process context; a cache store failure aborts startup."""
    settings = Settings.from_env()
    try:
        return build_app_context(settings)
    except Exception:
        logger.exception("Failed to initialize Roadboard cache store at %s.", settings.db_path)
        raise


@asynccontextmanager
async def lifespan(app: FastAPI):
    """FastAPI lifespan hook for startup/shutdown side effects."""
    context = getattr(app.state, "context", None) or initialize_context()
    app.state.context = context
    if context.settings.background_enabled:
        context.start_background()
    try:
        yield
    finally:
        await context.aclose()


app = FastAPI(title="Roadboard", lifespan=lifespan)


def _context(request: Request) -> AppContext:
    return request.app.state.context


def _collection(value: str | None) -> CollectionType:
    try:
        return parse_collection_type(value)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=f"Unknown collection type: {value}") from exc


async def _get_collection(
    context: AppContext, collection: CollectionType, refresh: bool
) -> list[dict[str, Any]]:
    """
    Resolve a collection through its refresh coordinator.

    Raises:
        HTTPException 409: Refresh was aborted.
        HTTPException 500: Refresh failed; the previous snapshot stays servable.
    """
    coordinator = context.coordinators[collection]
    try:
        return await coordinator.get_collection(force_refresh=refresh)
    except RefreshCancelled as exc:
        raise HTTPException(status_code=409, detail=str(exc)) from exc
    except Exception as exc:
        raise HTTPException(
            status_code=500, detail=f"Failed to fetch {collection.value} data"
        ) from exc


@app.get("/health")
def health_check() -> dict[str, str]:
    """Return service health status."""
    return {"status": "ok"}


@app.get("/api/roadmap")
async def roadmap(request: Request, refresh: bool = False) -> list[dict[str, Any]]:
    """
    Return enriched project board items.

    Args:
        refresh: Bypass the snapshot and rebuild.
    Returns:
        Roadmap records.
    """
    return await _get_collection(_context(request), CollectionType.ROADMAP, refresh)


@app.get("/api/aks-issues")
@app.get("/api/issues")
async def issues(request: Request, refresh: bool = False) -> list[dict[str, Any]]:
    """Return enriched open issues."""
    return await _get_collection(_context(request), CollectionType.ISSUES, refresh)


@app.get("/api/cache-info")
def cache_info(request: Request, type: str | None = None) -> dict[str, Any]:
    """Return `{lastUpdated, isCached}` for one collection snapshot."""
    collection = _collection(type)
    try:
        return _context(request).coordinators[collection].cache_info()
    except Exception as exc:
        logger.exception("Error getting cache info for %s.", collection.value)
        raise HTTPException(status_code=500, detail="Failed to get cache info") from exc


@app.get("/api/progress")
async def progress(request: Request, type: str | None = None) -> StreamingResponse:
    """Stream refresh progress as server-sent events for a bounded duration."""
    context = _context(request)
    broadcaster = context.broadcasters[_collection(type)]
    return StreamingResponse(
        stream_progress(broadcaster, max_seconds=context.settings.progress_stream_seconds),
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache", "Connection": "keep-alive"},
    )


@app.websocket("/ws/progress")
async def progress_socket(websocket: WebSocket, type: str | None = None) -> None:
    """Push refresh progress over a WebSocket until the client disconnects."""
    try:
        collection = parse_collection_type(type)
    except ValueError:
        await websocket.close(code=1008)
        return
    broadcaster = websocket.app.state.context.broadcasters[collection]
    await websocket.accept()
    queue = broadcaster.subscribe()
    try:
        while True:
            event = await queue.get()
            if event is None:
                logger.warning("Closing progress WebSocket for %s after it fell behind.", collection.value)
                await websocket.close(code=1013)
                return
            await websocket.send_text(json.dumps(event.to_dict()))
    except (WebSocketDisconnect, RuntimeError):
        logger.info("Progress WebSocket for %s closed.", collection.value)
    finally:
        broadcaster.unsubscribe(queue)


@app.post("/api/refresh/abort")
async def abort_refresh(request: Request, type: str | None = None) -> dict[str, str]:
    """Ask the in-flight refresh of a collection to stop before its next batch."""
    collection = _collection(type)
    aborted = _context(request).coordinators[collection].abort()
    return {"status": "aborting" if aborted else "idle"}


@app.get("/api/retry-queue")
async def retry_queue(request: Request) -> dict[str, Any]:
    """Return pending and abandoned timeline retries."""
    return _context(request).retry_queue.status()

