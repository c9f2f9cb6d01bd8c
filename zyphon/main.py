"""Zyphon FastAPI application entry point."""

from __future__ import annotations

import uuid
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse, Response
from starlette.exceptions import HTTPException as StarletteHTTPException

from zyphon import __version__
from zyphon.config import Settings, get_settings
from zyphon.db import SessionFactory, close_db, get_async_session, init_db
from zyphon.errors import ZyphonError, first_validation_message
from zyphon.log_config import configure_logging
from zyphon.services.audit import AuditLogger
from zyphon.services.background import BackgroundDispatcher
from zyphon.services.gateway import (
    ChatHandler,
    DesignSpecHandler,
    ImageHandler,
    PdfHandler,
)
from zyphon.services.http import http_client_manager
from zyphon.services.providers import (
    ChatProvider,
    HTTPPdfRenderer,
    ImageProvider,
    OpenAICompatibleChatProvider,
    PdfRenderer,
    ReplicateImageProvider,
)
from zyphon.services.ratelimit import InMemoryRateLimitStore, RateLimiter, RateLimitSweeper
from zyphon.services.storage import ObjectStorage, build_storage

logger = structlog.get_logger()

GATEWAY_PATH_PREFIX = "/api/zyphon/"


def install_services(
    app: FastAPI,
    settings: Settings,
    *,
    chat_provider: ChatProvider,
    image_provider: ImageProvider,
    pdf_renderer: PdfRenderer,
    storage: ObjectStorage,
    session_factory: SessionFactory = get_async_session,
    rate_limiter: RateLimiter | None = None,
) -> None:
    """Construct long-lived services and attach them to ``app.state``."""
    dispatcher = BackgroundDispatcher()
    app.state.dispatcher = dispatcher
    app.state.session_factory = session_factory
    app.state.rate_limiter = rate_limiter or RateLimiter(InMemoryRateLimitStore())
    app.state.audit_logger = AuditLogger(dispatcher, session_factory)

    handlers = [
        ChatHandler(
            chat_provider,
            llm_config=settings.llm,
            gateway_config=settings.gateway,
        ),
        ImageHandler(image_provider, storage, gateway_config=settings.gateway),
        PdfHandler(pdf_renderer, storage, gateway_config=settings.gateway),
        DesignSpecHandler(
            chat_provider,
            llm_config=settings.llm,
            gateway_config=settings.gateway,
        ),
    ]
    app.state.capability_handlers = {h.capability.name: h for h in handlers}


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events."""
    settings = get_settings()

    # Startup
    logger.info("zyphon.startup", version=__version__)
    await init_db()
    await http_client_manager.startup()

    install_services(
        app,
        settings,
        chat_provider=OpenAICompatibleChatProvider(settings.llm),
        image_provider=ReplicateImageProvider(settings.image),
        pdf_renderer=HTTPPdfRenderer(settings.pdf),
        storage=build_storage(settings.storage),
    )
    sweeper = RateLimitSweeper(
        app.state.rate_limiter,
        interval_seconds=settings.rate_limits.sweep_interval_seconds,
    )
    await sweeper.start()

    yield

    # Shutdown
    logger.info("zyphon.shutdown")
    await sweeper.stop()
    await app.state.dispatcher.drain()
    await http_client_manager.shutdown()
    await close_db()


def _cors_headers(settings: Settings) -> dict[str, str]:
    headers = {
        "Access-Control-Allow-Methods": "POST, OPTIONS",
        "Access-Control-Allow-Headers": "Content-Type, Authorization",
        "Access-Control-Max-Age": "86400",
    }
    if settings.gateway.allowed_origins:
        headers["Access-Control-Allow-Origin"] = settings.gateway.allowed_origins[0]
    return headers


def create_app() -> FastAPI:
    """Create and configure FastAPI application."""
    settings = get_settings()
    configure_logging(settings.logging)

    app = FastAPI(
        title="Zyphon",
        description="API-key gateway for AI generation capabilities",
        version=__version__,
        lifespan=lifespan,
    )

    # Gateway CORS (innermost, so request id wraps it)
    @app.middleware("http")
    async def gateway_cors_middleware(request: Request, call_next):
        if not request.url.path.startswith(GATEWAY_PATH_PREFIX):
            return await call_next(request)

        cors = _cors_headers(get_settings())
        if request.method == "OPTIONS":
            return Response(status_code=204, headers=cors)

        response = await call_next(request)
        response.headers.update(cors)
        return response

    # Request ID middleware
    @app.middleware("http")
    async def request_id_middleware(request: Request, call_next):
        """Add request ID to all requests."""
        request_id = request.headers.get("X-Request-Id") or str(uuid.uuid4())
        request.state.request_id = request_id

        response = await call_next(request)
        response.headers["X-Request-Id"] = request_id
        return response

    # Error handlers
    @app.exception_handler(ZyphonError)
    async def zyphon_error_handler(request: Request, exc: ZyphonError):
        """Handle Zyphon errors with the response envelope."""
        return JSONResponse(
            status_code=exc.status_code,
            content=exc.to_dict(),
            headers=exc.headers(),
        )

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        return JSONResponse(
            status_code=400,
            content={"ok": False, "error": first_validation_message(list(exc.errors()))},
        )

    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(request: Request, exc: StarletteHTTPException):
        return JSONResponse(
            status_code=exc.status_code,
            content={"ok": False, "error": str(exc.detail)},
            headers=exc.headers,
        )

    @app.exception_handler(Exception)
    async def unexpected_error_handler(request: Request, exc: Exception):
        logger.exception(
            "zyphon.unhandled_error",
            path=request.url.path,
            request_id=getattr(request.state, "request_id", None),
        )
        return JSONResponse(
            status_code=500,
            content={"ok": False, "error": "Internal server error"},
        )

    # Health check
    @app.get("/health")
    async def health() -> dict[str, str]:
        """Health check endpoint."""
        return {"status": "ok", "version": __version__}

    from zyphon.api import router as api_router

    app.include_router(api_router)

    return app


# Create default app instance
app = create_app()


if __name__ == "__main__":
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "zyphon.main:app",
        host=settings.server.host,
        port=settings.server.port,
    )
