import logging
import time
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.api.routes import error_response, router
from app.core.logger import EndpointFilter, add_file_handler, get_logger, set_console_level
from app.core.store import KeyValueStore, SqlKeyValueStore
from trading_dashboard.settings import Settings

logger = get_logger("Main")


def create_app(
    settings: Optional[Settings] = None,
    store: Optional[KeyValueStore] = None,
) -> FastAPI:
    """Build the API. Without an explicit ``store`` a SQL store is opened from settings."""
    settings = settings or Settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        # Suppress uvicorn access logs for polling endpoints
        logging.getLogger("uvicorn.access").addFilter(EndpointFilter("/health"))
        set_console_level(settings.log_level)
        if settings.log_file:
            add_file_handler(settings.log_file)

        logger.info("Starting trading dashboard API...")
        owned_store: Optional[SqlKeyValueStore] = None
        if store is None:
            owned_store = SqlKeyValueStore.from_url(settings.database_url)
            await owned_store.init()
            app.state.store = owned_store
            logger.info("Database initialized")
        try:
            yield
        finally:
            logger.info("Shutting down...")
            if owned_store is not None:
                await owned_store.close()
            logger.info("Trading dashboard API stopped")

    app = FastAPI(title="Trading Dashboard", lifespan=lifespan)
    app.state.settings = settings
    if store is not None:
        app.state.store = store

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        started = time.perf_counter()
        response = await call_next(request)
        elapsed_ms = (time.perf_counter() - started) * 1000
        if request.url.path != "/health":
            logger.info(
                f"{request.method} {request.url.path} {response.status_code} {elapsed_ms:.1f}ms"
            )
        return response

    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(request: Request, exc: StarletteHTTPException):
        response = error_response(exc.status_code, str(exc.detail))
        if exc.headers:
            response.headers.update(exc.headers)
        return response

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        return error_response(422, "Invalid request")

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception):
        logger.error(f"Unhandled error on {request.method} {request.url.path}: {exc}")
        return error_response(500, "Internal server error")

    @app.get("/health")
    async def health():
        return {"status": "ok"}

    app.include_router(router, prefix=settings.normalized_prefix())
    return app


app = create_app()
