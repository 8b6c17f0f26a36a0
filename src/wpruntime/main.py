"""WordPress runtime FastAPI application."""

import logging
from contextlib import asynccontextmanager
from typing import Callable

import uvicorn
from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

from wpruntime import __version__
from wpruntime.api.dependencies import close_runtime, init_runtime
from wpruntime.api.health import router as health_router
from wpruntime.api.v1 import apps_router, dependencies_router
from wpruntime.config import get_settings
from wpruntime.errors import WPRuntimeError
from wpruntime.logging import setup_logging
from wpruntime.logging_schema import LogEvent

# Import metrics to ensure they are registered
import wpruntime.metrics  # noqa: F401

_settings = get_settings()
setup_logging(_settings.logging)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler."""
    logger.info(
        "Starting WordPress runtime",
        extra={"event": LogEvent.APP_STARTED, "version": __version__},
    )
    await init_runtime()
    yield
    logger.info("Shutting down WordPress runtime", extra={"event": LogEvent.APP_STOPPED})
    await close_runtime()


app = FastAPI(
    title="WordPress Runtime",
    description="Local PHP + MySQL process supervisor for WordPress apps",
    version=__version__,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=_settings.server.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(WPRuntimeError)
async def runtime_error_handler(request: Request, exc: WPRuntimeError) -> JSONResponse:
    logger.warning(
        "Runtime error",
        extra={
            "event": LogEvent.RUNTIME_ERROR,
            "error_code": exc.code.value,
            "error_message": exc.message,
            "path": request.url.path,
            "method": request.method,
        },
    )
    return JSONResponse(
        status_code=exc.status_code,
        content=exc.to_response().model_dump(),
    )


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception(
        "Unhandled exception",
        extra={
            "event": LogEvent.UNHANDLED_EXCEPTION,
            "path": request.url.path,
            "method": request.method,
        },
    )
    return JSONResponse(
        status_code=500,
        content={"detail": "Internal server error"},
    )


@app.middleware("http")
async def api_key_middleware(
    request: Request, call_next: Callable[[Request], Response]
) -> Response:
    """Validate API key for non-health endpoints."""
    settings = get_settings()

    if request.url.path in ("/health", "/metrics"):
        return await call_next(request)

    if settings.server.api_key:
        auth_header = request.headers.get("Authorization", "")
        if auth_header != f"Bearer {settings.server.api_key}":
            return Response(
                content='{"detail": "Invalid API key"}',
                status_code=401,
                media_type="application/json",
            )

    return await call_next(request)


app.include_router(health_router)


@app.get("/metrics", include_in_schema=False)
async def metrics() -> Response:
    """Expose Prometheus metrics."""
    return Response(
        content=generate_latest(),
        media_type=CONTENT_TYPE_LATEST,
    )


app.include_router(apps_router, prefix="/api/v1")
app.include_router(dependencies_router, prefix="/api/v1")


def main() -> None:
    """Run the runtime server."""
    settings = get_settings()
    uvicorn.run(
        "wpruntime.main:app",
        host=settings.server.host,
        port=settings.server.port,
        reload=False,
    )


if __name__ == "__main__":
    main()
