import os
import platform
import time
import traceback
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any, List, Optional

import psutil
from fastapi import APIRouter, Body, Depends, FastAPI, HTTPException, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import ValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException

from config import load_config
from database import StoreError, VideoStore
from log_setup import get_logger, setup_logging
from query import count_tags, query_videos, video_stats
from schemas import VideoCreate, VideoQuery, VideoUpdate

__version__ = "1.0.0"

logger = get_logger(__name__)


def envelope(
    status_code: int = 200,
    data: Any = None,
    error: Optional[str] = None,
    message: Optional[str] = None,
    **extra: Any,
) -> JSONResponse:
    """Build the {success, data, error, message} response body, omitting unset keys."""
    body = {"success": status_code < 400}
    if data is not None:
        body["data"] = data
    if error is not None:
        body["error"] = error
    if message is not None:
        body["message"] = message
    body.update(extra)
    return JSONResponse(status_code=status_code, content=jsonable_encoder(body, by_alias=True))


def validation_details(errors: List[dict]) -> List[dict]:
    return [
        {"loc": list(err.get("loc", ())), "msg": err.get("msg", ""), "type": err.get("type", "")}
        for err in errors
    ]


def now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def get_store(request: Request) -> VideoStore:
    return request.app.state.store


def store_failure(request: Request, exc: StoreError, message: str) -> JSONResponse:
    logger.error(
        "store_failure",
        method=request.method,
        path=request.url.path,
        error=str(exc),
        cause=repr(exc.__cause__),
    )
    return envelope(500, error="Internal server error", message=message)


# ---------------------------------------------------------------------------
# /api/videos
# ---------------------------------------------------------------------------

videos_router = APIRouter(prefix="/api/videos", tags=["videos"])


@videos_router.get("")
def list_videos(request: Request, store: VideoStore = Depends(get_store)):
    """List videos with title search, tag filter, sorting and pagination"""
    try:
        params = VideoQuery.model_validate(dict(request.query_params))
    except ValidationError as e:
        return envelope(
            400,
            error="Invalid query parameters",
            details=validation_details(e.errors(include_url=False)),
        )

    try:
        page = query_videos(store.load_all(), params)
    except StoreError as e:
        return store_failure(request, e, "Failed to fetch videos")
    return envelope(data=page)


@videos_router.get("/stats")
def get_video_stats(request: Request, store: VideoStore = Depends(get_store)):
    try:
        stats = video_stats(store.load_all())
    except StoreError as e:
        return store_failure(request, e, "Failed to fetch video statistics")
    return envelope(data=stats)


@videos_router.get("/{video_id}")
def get_video(video_id: str, request: Request, store: VideoStore = Depends(get_store)):
    try:
        video = store.get(video_id)
    except StoreError as e:
        return store_failure(request, e, "Failed to fetch video")
    if video is None:
        raise HTTPException(status_code=404, detail="Video not found")
    return envelope(data=video)


@videos_router.post("")
def create_video(
    request: Request,
    payload: Any = Body(None),
    store: VideoStore = Depends(get_store),
):
    """
    Create a video from {title, tags?}.
    - id, thumbnail_url, created_at, duration and views are assigned here
    """
    try:
        body = VideoCreate.model_validate(payload if payload is not None else {})
    except ValidationError as e:
        return envelope(400, error="Invalid video data", details=validation_details(e.errors(include_url=False)))

    try:
        video = store.create(body)
    except StoreError as e:
        return store_failure(request, e, "Failed to create video")
    return envelope(201, data=video, message="Video created successfully")


@videos_router.put("/{video_id}")
def update_video(
    video_id: str,
    request: Request,
    payload: Any = Body(None),
    store: VideoStore = Depends(get_store),
):
    """Partially update a video; only title and tags are applied"""
    try:
        body = VideoUpdate.model_validate(payload if payload is not None else {})
    except ValidationError as e:
        return envelope(400, error="Invalid video data", details=validation_details(e.errors(include_url=False)))

    try:
        video = store.update(video_id, body)
    except StoreError as e:
        return store_failure(request, e, "Failed to update video")
    if video is None:
        raise HTTPException(status_code=404, detail="Video not found")
    return envelope(data=video, message="Video updated successfully")


@videos_router.delete("/{video_id}")
def delete_video(video_id: str, request: Request, store: VideoStore = Depends(get_store)):
    try:
        deleted = store.delete(video_id)
    except StoreError as e:
        return store_failure(request, e, "Failed to delete video")
    if not deleted:
        raise HTTPException(status_code=404, detail="Video not found")
    return envelope(message="Video deleted successfully")


# ---------------------------------------------------------------------------
# /api/tags, /api/health
# ---------------------------------------------------------------------------

tags_router = APIRouter(prefix="/api/tags", tags=["tags"])


@tags_router.get("")
def list_tags(request: Request, store: VideoStore = Depends(get_store)):
    """All tags with usage counts, most used first"""
    try:
        tags = count_tags(store.load_all())
    except StoreError as e:
        return store_failure(request, e, "Failed to fetch tags")
    return envelope(data=tags)


health_router = APIRouter(prefix="/api/health", tags=["health"])


def _health_payload(request: Request) -> dict:
    return {
        "status": "healthy",
        "timestamp": now_iso(),
        "uptime": round(time.monotonic() - request.app.state.started_at, 3),
        "environment": request.app.state.config["app_env"],
        "version": __version__,
    }


@health_router.get("")
def health(request: Request):
    return envelope(data=_health_payload(request), message="Service is running")


@health_router.get("/detailed")
def health_detailed(request: Request):
    store: VideoStore = request.app.state.store
    process = psutil.Process(os.getpid())
    memory = process.memory_info()
    cpu = process.cpu_times()
    payload = _health_payload(request)
    payload.update({
        "pid": process.pid,
        "memory": {"rss": memory.rss, "vms": memory.vms},
        "cpu": {"user": cpu.user, "system": cpu.system},
        "platform": platform.platform(),
        "python_version": platform.python_version(),
        "data_file": {
            "path": str(store.path),
            "exists": store.path.exists(),
            "size_bytes": store.path.stat().st_size if store.path.exists() else 0,
        },
    })
    return envelope(data=payload, message="Detailed service health")


# ---------------------------------------------------------------------------
# App
# ---------------------------------------------------------------------------

def create_app(config: Optional[dict] = None) -> FastAPI:
    config = config or load_config()
    setup_logging(config["log_level"], json_output=config["log_json"])

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info(
            "server_started",
            environment=config["app_env"],
            url=f"http://{config['host']}:{config['port']}",
            api_base="/api",
            data_path=config["data_path"],
        )
        yield
        logger.info("server_stopped")

    app = FastAPI(title="Video Library Dashboard API", version=__version__, lifespan=lifespan)
    app.state.config = config
    app.state.started_at = time.monotonic()
    app.state.store = VideoStore(
        config["data_path"],
        default_duration=config["default_video_duration"],
        thumbnail_base_url=config["thumbnail_base_url"],
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=[config["frontend_url"]],
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization"],
    )

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        path = request.url.path
        if path == "/health" or path.startswith("/api/health"):
            return await call_next(request)

        start = time.perf_counter()
        response = await call_next(request)
        elapsed_ms = round((time.perf_counter() - start) * 1000, 1)
        log = logger.error if response.status_code >= 400 else logger.info
        log(
            "request",
            method=request.method,
            path=path,
            status=response.status_code,
            duration_ms=elapsed_ms,
            client=request.client.host if request.client else None,
        )
        return response

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        if exc.status_code == 404 and exc.detail == "Not Found":
            return envelope(404, error="Route not found", message=f"Cannot {request.method} {request.url.path}")
        return envelope(exc.status_code, error=str(exc.detail))

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        error = "Invalid video data" if request.method in ("POST", "PUT") else "Invalid query parameters"
        return envelope(400, error=error, details=validation_details(exc.errors()))

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception):
        logger.error(
            "unhandled_exception",
            method=request.method,
            path=request.url.path,
            params=dict(request.path_params),
            query=dict(request.query_params),
            exc_info=exc,
        )
        extra = {}
        if config["app_env"] == "development":
            extra["stack"] = "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))
        return envelope(500, error="Internal server error", **extra)

    @app.get("/")
    def read_root():
        return {
            "success": True,
            "message": "Video Library Dashboard API Server",
            "version": __version__,
            "status": "running",
            "timestamp": now_iso(),
        }

    @app.get("/health")
    def root_health():
        return {"success": True, "status": "healthy", "timestamp": now_iso()}

    @app.get("/api")
    def api_info():
        return {
            "success": True,
            "message": "Video Library Dashboard API",
            "version": __version__,
            "endpoints": {
                "videos": "/api/videos",
                "stats": "/api/videos/stats",
                "tags": "/api/tags",
                "health": "/api/health",
            },
        }

    app.include_router(videos_router)
    app.include_router(tags_router)
    app.include_router(health_router)
    return app


app = create_app()

if __name__ == "__main__":
    import uvicorn

    settings = app.state.config
    uvicorn.run(app, host=settings["host"], port=settings["port"], log_config=None)
