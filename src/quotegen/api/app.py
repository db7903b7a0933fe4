"""
FastAPI application factory.

Wires the record store, pricing engine and routes together and renders every
failure as ``{"error": true, "message": ...}``.
"""

import time
from contextlib import asynccontextmanager
from typing import Optional

import structlog
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from quotegen import __version__
from quotegen.api.routes import router
from quotegen.config import AppConfig, get_config
from quotegen.context import ClientContextError
from quotegen.pricing.engine import PricingEngine, QuoteGenerationError
from quotegen.store.interface import RecordStore
from quotegen.store.salesforce import SalesforceStore

logger = structlog.get_logger(__name__)


def error_response(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": True, "message": message})


def _describe_validation_error(exc: RequestValidationError) -> str:
    parts = []
    for error in exc.errors():
        location = ".".join(str(p) for p in error.get("loc", ()) if p != "body")
        parts.append(f"{location}: {error.get('msg')}" if location else str(error.get("msg")))
    return "Invalid request: " + "; ".join(parts)


def register_exception_handlers(app: FastAPI) -> None:
    """Map service errors onto HTTP responses."""

    @app.exception_handler(ClientContextError)
    async def client_context_error_handler(request: Request, exc: ClientContextError):
        logger.warning("client_context_rejected", path=request.url.path, error=str(exc))
        return error_response(401, str(exc))

    @app.exception_handler(QuoteGenerationError)
    async def quote_generation_error_handler(request: Request, exc: QuoteGenerationError):
        logger.warning(
            "quote_generation_failed",
            status=exc.status_code,
            outcome_unknown=exc.outcome_unknown,
            error=exc.message,
        )
        return error_response(exc.status_code, exc.message)

    @app.exception_handler(RequestValidationError)
    async def request_validation_error_handler(request: Request, exc: RequestValidationError):
        return error_response(400, _describe_validation_error(exc))

    @app.exception_handler(Exception)
    async def unexpected_error_handler(request: Request, exc: Exception):
        logger.exception("unhandled_error", path=request.url.path)
        return error_response(500, f"An unexpected error occurred: {exc}")


def create_app(
    config: Optional[AppConfig] = None,
    store: Optional[RecordStore] = None,
) -> FastAPI:
    """
    Create the HTTP application.

    Args:
        config: Application configuration. Uses global config if not provided.
        store: Record store (a SalesforceStore is created if not provided)

    Returns:
        Configured FastAPI application
    """
    config = config or get_config()
    store = store or SalesforceStore(config)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        await store.connect()
        logger.info("app_started", environment=config.environment.value, version=__version__)
        try:
            yield
        finally:
            await store.disconnect()
            logger.info("app_stopped")

    app = FastAPI(
        title="Pricing Engine",
        description="Leverage dynamic pricing calculation logic and rules to calculate pricing information.",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.config = config
    app.state.store = store
    app.state.engine = PricingEngine(store, config)

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(method=request.method, path=request.url.path)
        start = time.perf_counter()
        status = 500
        try:
            response = await call_next(request)
            status = response.status_code
            return response
        finally:
            logger.info(
                "request_completed",
                status=status,
                duration_ms=round((time.perf_counter() - start) * 1000, 1),
            )

    register_exception_handlers(app)
    app.include_router(router, prefix="/api")
    return app
