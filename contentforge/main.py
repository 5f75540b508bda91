from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from typing import Optional
import logging
import time

from contentforge import __version__
from contentforge.api import accounts, content, schedule
from contentforge.config import Settings, get_settings
from contentforge.database import SessionLocal, engine, init_db
from contentforge.dependencies import ServiceContainer
from contentforge.errors import AdapterError, ContentForgeError, InvalidRequestError, InvalidStateError, NotFoundError
from contentforge.middleware.rate_limiter import RateLimiter

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


def _error_response(status_code: int, error: str, message: str) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={
            "error": error,
            "message": message,
            "status_code": status_code
        }
    )


def create_app(settings: Optional[Settings] = None, services: Optional[ServiceContainer] = None) -> FastAPI:
    """
    Build the API application.

    With `services` the caller owns the components (tests); otherwise they
    are built on startup from settings against the configured database.
    """
    settings = settings or get_settings()

    app = FastAPI(
        title="ContentForge API",
        description="Multi-platform content generation and scheduled publishing",
        version=__version__,
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
    )
    app.state.settings = settings
    app.state.services = services

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        start_time = time.time()
        skip_logging = request.url.path in ("/health",)

        if not skip_logging:
            logger.info(f"🔍 {request.method} {request.url.path}")

        response = await call_next(request)

        process_time = time.time() - start_time
        if response.status_code >= 400:
            logger.warning(f"🔍 {request.method} {request.url.path} - {response.status_code} - {process_time:.4f}s")
        elif not skip_logging:
            logger.info(f"🔍 {request.method} {request.url.path} - {response.status_code} - {process_time:.4f}s")
        return response

    app.middleware("http")(RateLimiter(
        max_requests_per_minute=settings.rate_limit_per_minute,
        max_concurrent_per_ip=settings.rate_limit_concurrent,
    ))

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"] if settings.debug else settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        max_age=3600,
    )

    @app.on_event("startup")
    async def startup_event():
        """Initialize the application."""
        logger.info("Starting ContentForge API...")

        if app.state.services is None:
            init_db(engine)
            app.state.services = ServiceContainer(settings, SessionLocal)
            logger.info("Services initialized")

        if settings.scheduler_enabled:
            app.state.services.scheduler.start_background()
            logger.info("Publish scheduler started")

        logger.info("ContentForge API started successfully")

    @app.on_event("shutdown")
    async def shutdown_event():
        """Clean up resources."""
        logger.info("Shutting down ContentForge API...")
        if app.state.services is not None:
            await app.state.services.aclose()

    # Health check endpoints
    @app.get("/")
    async def root():
        """Health check endpoint."""
        return {
            "message": "ContentForge API",
            "version": __version__,
            "status": "healthy",
            "environment": settings.environment
        }

    @app.get("/health")
    async def health_check():
        """Detailed health check."""
        services = app.state.services
        return {
            "status": "healthy",
            "environment": settings.environment,
            "debug": settings.debug,
            "generator": "available" if services is not None and services.generator.is_available() else "unavailable",
            "scheduler": "running" if services is not None and services.scheduler.running else "stopped",
            "platforms": services.registry.platforms() if services is not None else [],
        }

    # Include API routers
    app.include_router(content.router, prefix="/api")
    app.include_router(accounts.router, prefix="/api")
    app.include_router(schedule.router, prefix="/api")

    # Error handlers
    @app.exception_handler(NotFoundError)
    async def not_found_handler(request, exc):
        return _error_response(404, "Not Found", str(exc))

    @app.exception_handler(InvalidStateError)
    async def invalid_state_handler(request, exc):
        return _error_response(409, "Invalid State", str(exc))

    @app.exception_handler(InvalidRequestError)
    async def invalid_request_handler(request, exc):
        return _error_response(422, "Invalid Request", str(exc))

    @app.exception_handler(AdapterError)
    async def platform_error_handler(request, exc):
        return _error_response(502, "Bad Gateway", str(exc))

    @app.exception_handler(ContentForgeError)
    async def internal_error_handler(request, exc):
        logger.error(f"Internal server error: {exc}")
        return _error_response(500, "Internal Server Error", "An internal server error occurred")

    return app


app = create_app()
