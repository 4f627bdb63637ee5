"""FastAPI application entry point."""

import structlog
from contextlib import asynccontextmanager
from typing import AsyncGenerator

import httpx
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from remarketing_service import __version__
from remarketing_service.api.v1.router import api_router
from remarketing_service.config import get_settings
from remarketing_service.exceptions import (
    ConfigurationError,
    PersistenceError,
    ValidationError,
)
from remarketing_service.infrastructure.collaborators import build_collaborators
from remarketing_service.infrastructure.database.connection import (
    get_async_engine,
    get_async_session_factory,
)
from remarketing_service.infrastructure.redis import connect_redis
from remarketing_service.log_config import configure_logging

configure_logging(get_settings())

logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan manager for startup and shutdown events."""
    settings = get_settings()
    logger.info(
        "Starting Cart Remarketing Service",
        app_env=settings.app_env,
        debug=settings.debug,
        message_generator=settings.message_generator,
        email_service=settings.email_service,
    )

    engine = get_async_engine(settings)
    http_client = httpx.AsyncClient(timeout=settings.collaborator_timeout_seconds)
    app.state.session_factory = get_async_session_factory(engine)
    app.state.collaborators = build_collaborators(settings, http_client)
    app.state.redis = await connect_redis(settings)

    yield

    await http_client.aclose()
    if app.state.redis is not None:
        await app.state.redis.aclose()
    await engine.dispose()
    logger.info("Shutting down Cart Remarketing Service")


def _error_response(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"success": False, "error": message})


def register_exception_handlers(app: FastAPI) -> None:
    """Map the service error taxonomy onto HTTP responses."""

    @app.exception_handler(ValidationError)
    async def validation_error_handler(request: Request, exc: ValidationError) -> JSONResponse:
        return _error_response(400, str(exc))

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        errors = "; ".join(
            f"{'.'.join(str(part) for part in error['loc'])}: {error['msg']}"
            for error in exc.errors()
        )
        return _error_response(400, errors or "Invalid request body")

    @app.exception_handler(PersistenceError)
    async def persistence_error_handler(request: Request, exc: PersistenceError) -> JSONResponse:
        logger.error("Persistence failure", path=request.url.path, error=str(exc))
        return _error_response(500, str(exc))

    @app.exception_handler(ConfigurationError)
    async def configuration_error_handler(
        request: Request, exc: ConfigurationError
    ) -> JSONResponse:
        logger.error("Configuration error", path=request.url.path, error=str(exc))
        return _error_response(503, str(exc))

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.exception("Unhandled error", path=request.url.path, error=str(exc))
        return _error_response(500, "Internal server error")


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()

    app = FastAPI(
        title="Cart Remarketing API",
        description="Abandoned-cart ingestion and tiered follow-up outreach",
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_exception_handlers(app)
    app.include_router(api_router, prefix="/api/v1")

    return app


app = create_app()


def run() -> None:
    """Run the application using uvicorn."""
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "remarketing_service.main:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=settings.debug,
        workers=1 if settings.debug else settings.api_workers,
    )


if __name__ == "__main__":
    run()
