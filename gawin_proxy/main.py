import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Optional

import httpx
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from starlette.exceptions import HTTPException as StarletteHTTPException

from .core.config import (
    APP_VERSION,
    LOG_LEVEL_FROM_ENV,
    OCR_ANALYSIS_ROUTE,
    BROWSER_SESSION_MAX_AGE_SECONDS,
    BROWSER_SESSION_SWEEP_INTERVAL_SECONDS,
)
from .core.database import async_session_maker, init_db
from .core.errors import GawinError
from .core.http_client import build_http_client, close_http_client
from .core.logging_utils import configure_logging
from .api import admin as admin_router
from .api import browser_automation as browser_router
from .api import chat as chat_router
from .api import ocr as ocr_router
from .middleware import AccessLogMiddleware
from .services.browser_sessions import BrowserAutomationService, SessionFactory, SessionPool, launch_playwright_session
from .services.chat_pipeline import ChatPipeline
from .services.fallback import FallbackSequencer
from .services.ocr import OCRService
from .services.providers import ProviderRegistry, build_provider_adapters
from .services.terminal_responder import TerminalResponder
from .services.usage_store import UsageStore
from .services.validation import ValidationService
from .utils.helpers import error_response

configure_logging(LOG_LEVEL_FROM_ENV)

logger = logging.getLogger("Gawin.Main")


def build_chat_pipelines(registry: ProviderRegistry, validation_service: ValidationService,
                         responder: TerminalResponder, usage_store: Optional[UsageStore]):
    recorder = usage_store.record if usage_store else None
    return {
        route: ChatPipeline(route, validation_service, FallbackSequencer(registry.chain_for(route)), responder, recorder)
        for route in registry.routes()
    }


def create_app(
    http_transport: Optional[httpx.AsyncBaseTransport] = None,
    browser_session_factory: SessionFactory = launch_playwright_session,
    responder_seed: Optional[int] = None,
) -> FastAPI:
    """
    ``http_transport`` replaces the network for every provider call and
    ``browser_session_factory`` replaces Chromium; both exist for tests.
    """

    @asynccontextmanager
    async def lifespan(app_instance: FastAPI):
        logger.info("Lifespan: application starting up...")

        try:
            await init_db()
        except Exception as e:
            logger.error(f"Lifespan: database initialization failed: {e}", exc_info=True)

        app_instance.state.http_client = build_http_client(http_transport)

        registry = ProviderRegistry(build_provider_adapters())
        validation_service = ValidationService()
        responder = TerminalResponder(seed=responder_seed)
        usage_store = UsageStore(async_session_maker)
        app_instance.state.provider_registry = registry
        app_instance.state.chat_pipelines = build_chat_pipelines(registry, validation_service, responder, usage_store)
        logger.info(f"Lifespan: chat routes ready: {registry.routes()}")

        vision_chain = registry.vision_chain()
        app_instance.state.ocr_service = OCRService(
            validation_service,
            FallbackSequencer(vision_chain) if vision_chain else None,
            FallbackSequencer(registry.chain_for(OCR_ANALYSIS_ROUTE)),
        )

        session_pool = SessionPool(max_age=BROWSER_SESSION_MAX_AGE_SECONDS)
        app_instance.state.session_pool = session_pool
        app_instance.state.browser_service = BrowserAutomationService(session_pool, browser_session_factory)
        reaper = asyncio.create_task(session_pool.run_reaper(BROWSER_SESSION_SWEEP_INTERVAL_SECONDS))

        yield

        logger.info("Lifespan: application shutting down...")
        reaper.cancel()
        try:
            await reaper
        except asyncio.CancelledError:
            logger.info("Lifespan: browser session reaper stopped.")
        await session_pool.close_all()

        await close_http_client(getattr(app_instance.state, "http_client", None))
        if hasattr(app_instance.state, "http_client"):
            delattr(app_instance.state, "http_client")
        logger.info("Lifespan: shutdown complete.")

    app = FastAPI(
        title="Gawin Proxy",
        description=f"Multi-provider chat API with fallback, version: {APP_VERSION}",
        version=APP_VERSION,
        lifespan=lifespan,
        docs_url="/docs",
        redoc_url="/redoc"
    )

    @app.exception_handler(GawinError)
    async def gawin_error_handler(request: Request, exc: GawinError):
        return error_response(exc.status_code, exc.error, exc.details)

    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(request: Request, exc: StarletteHTTPException):
        return error_response(exc.status_code, str(exc.detail), headers=getattr(exc, "headers", None))

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        return error_response(400, "Invalid request", str(exc.errors()[:3]))

    @app.exception_handler(Exception)
    async def unexpected_error_handler(request: Request, exc: Exception):
        logger.error(f"Unhandled error on {request.method} {request.url.path}: {exc}", exc_info=exc)
        return error_response(500, "Internal server error")

    app.add_middleware(AccessLogMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["X-Request-ID"]
    )
    app.add_middleware(GZipMiddleware, minimum_size=500)

    # fixed paths first; /api/{route} would otherwise shadow them
    app.include_router(admin_router.router, prefix="/api/admin", tags=["Admin"])
    app.include_router(ocr_router.router)
    app.include_router(browser_router.router)
    app.include_router(chat_router.router)

    @app.get("/", status_code=200, include_in_schema=False, tags=["Utilities"])
    async def root():
        return {
            "message": "Gawin Proxy API is running",
            "version": APP_VERSION,
            "status": "ok",
            "endpoints": {
                "chat": "/api/{groq|deepseek|gemini|perplexity}",
                "ocr": "/api/ocr",
                "browser": "/api/browser-automation",
                "health": "/health",
                "docs": "/docs",
            }
        }

    @app.get("/health", status_code=200, include_in_schema=False, tags=["Utilities"])
    async def health_check(request: Request):
        client_from_state = getattr(request.app.state, "http_client", None)
        client_status = "ok"
        detail_message = "HTTP client initialized and seems operational."

        if client_from_state is None:
            client_status = "error"
            detail_message = "HTTP client not initialized in app.state."
        elif client_from_state.is_closed:
            client_status = "warning"
            detail_message = "HTTP client in app.state is closed."

        pool = getattr(request.app.state, "session_pool", None)
        return {
            "status": client_status,
            "detail": detail_message,
            "app_version": APP_VERSION,
            "browser_sessions": len(pool) if pool is not None else 0,
        }

    logger.info(f"FastAPI Gawin Proxy v{APP_VERSION} initialized.")
    return app


app = create_app()
