"""FastAPI application factory."""

from __future__ import annotations

import logging
import time
from contextlib import asynccontextmanager
from datetime import UTC, datetime
from pathlib import Path

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import FileResponse, JSONResponse, Response
from fastapi.staticfiles import StaticFiles
from starlette.exceptions import HTTPException as StarletteHTTPException

from chiefsnews.api.ratelimit import API_RATE_LIMIT, REFRESH_RATE_LIMIT, RateLimiter
from chiefsnews.api.routes import router
from chiefsnews.config import DEFAULT_REFRESH_CRON, FeedRegistry, Settings
from chiefsnews.services.ingestor import FeedIngestor
from chiefsnews.services.scheduler import RefreshScheduler
from chiefsnews.store import ArticleStore, ensure_database_url

logger = logging.getLogger(__name__)

STATIC_DIR = Path(__file__).resolve().parents[1] / "static"

SECURITY_HEADERS = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "DENY",
    "Referrer-Policy": "no-referrer",
    "Cross-Origin-Opener-Policy": "same-origin",
}
CONTENT_SECURITY_POLICY = (
    "default-src 'self'; script-src 'self'; style-src 'self'; "
    "img-src 'self' https: http: data:; object-src 'none'; frame-ancestors 'none'"
)
# Interactive docs load their assets from a CDN.
_CSP_EXEMPT_PREFIXES = ("/docs", "/redoc")


def _error(status_code: int, message: str, headers: dict | None = None) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"success": False, "error": message},
        headers=headers,
    )


def _apply_security_headers(response: Response, path: str) -> Response:
    for header, value in SECURITY_HEADERS.items():
        response.headers.setdefault(header, value)
    if not path.startswith(_CSP_EXEMPT_PREFIXES):
        response.headers.setdefault("Content-Security-Policy", CONTENT_SECURITY_POLICY)
    return response


def _build_scheduler(ingestor: FeedIngestor, expression: str) -> RefreshScheduler:
    try:
        return RefreshScheduler.from_cron(ingestor, expression)
    except ValueError as exc:
        logger.warning("%s; falling back to %r", exc, DEFAULT_REFRESH_CRON)
        return RefreshScheduler.from_cron(ingestor, DEFAULT_REFRESH_CRON)


def create_app(
    settings: Settings | None = None,
    *,
    store: ArticleStore | None = None,
    ingestor: FeedIngestor | None = None,
    enable_scheduler: bool = True,
) -> FastAPI:
    """Build the application with its store, ingestor and scheduler.

    Collaborators can be passed in directly; anything omitted is constructed
    from ``settings`` (which defaults to :meth:`Settings.from_env`).
    """

    settings = settings or Settings.from_env()
    if store is None:
        store = ArticleStore(ensure_database_url(settings.database_path))
    if ingestor is None:
        registry = FeedRegistry(settings.feeds_path)
        ingestor = FeedIngestor(registry, store, timeout=settings.fetch_timeout)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        scheduler = _build_scheduler(ingestor, settings.refresh_cron) if enable_scheduler else None
        app.state.scheduler = scheduler
        if scheduler is not None:
            scheduler.start()
        logger.info("Chiefs News running with %d articles stored", store.count_total())
        try:
            yield
        finally:
            logger.info("Shutting down gracefully")
            if scheduler is not None:
                await scheduler.stop()
            store.close()

    app = FastAPI(
        title="Chiefs News",
        description="Kansas City Chiefs news aggregator API",
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.store = store
    app.state.ingestor = ingestor
    app.state.registry = ingestor.registry
    app.state.scheduler = None
    app.state.started_at = time.monotonic()
    app.state.api_limiter = RateLimiter(API_RATE_LIMIT)
    app.state.refresh_limiter = RateLimiter(
        REFRESH_RATE_LIMIT,
        message="Too many refresh requests, please try again later.",
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=[settings.cors_origin],
        allow_methods=["GET", "POST"],
        allow_headers=["Content-Type"],
    )

    @app.middleware("http")
    async def security_headers(request: Request, call_next):
        response = await call_next(request)
        return _apply_security_headers(response, request.url.path)

    @app.exception_handler(StarletteHTTPException)
    async def http_error(request: Request, exc: StarletteHTTPException) -> JSONResponse:
        message = "Not found" if exc.status_code == 404 else str(exc.detail)
        return _error(exc.status_code, message, getattr(exc, "headers", None))

    @app.exception_handler(RequestValidationError)
    async def validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
        return _error(400, "Invalid request parameters")

    @app.exception_handler(Exception)
    async def unhandled_error(request: Request, exc: Exception) -> JSONResponse:
        logger.error(
            "Unhandled error on %s %s", request.method, request.url.path, exc_info=exc
        )
        # Served by ServerErrorMiddleware, outside the header and CORS middleware.
        response = _apply_security_headers(_error(500, "Internal server error"), request.url.path)
        origin = request.headers.get("origin")
        if origin and settings.cors_origin in ("*", origin):
            response.headers["Access-Control-Allow-Origin"] = settings.cors_origin
        return response

    app.include_router(router, prefix="/api")

    @app.get("/health")
    async def health() -> dict:
        return {
            "status": "ok",
            "uptime": round(time.monotonic() - app.state.started_at, 3),
            "articles": app.state.store.count_total(),
            "timestamp": datetime.now(UTC).isoformat(),
        }

    @app.get("/", include_in_schema=False)
    async def index() -> FileResponse:
        return FileResponse(STATIC_DIR / "index.html")

    app.mount("/static", StaticFiles(directory=STATIC_DIR), name="static")

    return app
