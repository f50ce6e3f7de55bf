from contextlib import asynccontextmanager
from typing import Any, AsyncGenerator

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from designreview.app.api import admin_router, analysis_router
from designreview.app.core.config import settings
from designreview.app.core.logging import get_logger, setup_logging
from designreview.app.exceptions import RateLimitExceededError, ReviewServiceError
from designreview.app.middleware.rate_limit import build_rate_limit_presets
from designreview.app.middleware.rate_limit.adapter import (
    RateLimitMiddleware,
    rate_limit_response,
)
from designreview.app.middleware.rate_limit.presets import API_GENERAL
from designreview.app.middleware.request_id import RequestIdMiddleware, get_request_id
from designreview.app.services.analysis import AnalysisService
from designreview.app.services.rate_limiter import RateLimitService


def create_app() -> FastAPI:
    """Create and configure the FastAPI application.

    The rate limit service and the analysis service (with its dispatch
    queue) are built here, once per application, and exposed on
    ``app.state`` for request handlers.

    Returns:
        Configured FastAPI application instance
    """
    setup_logging()
    logger = get_logger(__name__)

    rate_limiter = RateLimitService(
        presets=build_rate_limit_presets(settings),
        cleanup_interval=settings.rate_limit_cleanup_interval_seconds,
        enabled=settings.rate_limit_enabled,
    )
    analysis = AnalysisService.from_settings(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        """Start the limiter sweep on startup; drain AI calls and stop it on shutdown."""
        await app.state.rate_limiter.start()
        if not app.state.analysis.provider.is_configured:
            logger.warning("GEMINI_API_KEY is not set; image analysis will fail")

        logger.info(
            "Application startup complete",
            extra={
                "rate_limit_enabled": app.state.rate_limiter.enabled,
                "debug_mode": settings.debug,
            }
        )

        yield

        await app.state.analysis.shutdown()
        await app.state.rate_limiter.stop()
        logger.info("Application shutdown complete")

    app = FastAPI(
        title="Design Review Service",
        description="AI design feedback with per-identity rate limiting",
        version="0.1.0",
        lifespan=lifespan
    )
    app.state.rate_limiter = rate_limiter
    app.state.analysis = analysis

    # Add middleware (order matters: last added = first executed)
    app.add_middleware(
        RateLimitMiddleware,
        preset=API_GENERAL,
        path_prefix=settings.rate_limit_path_prefix,
    )

    app.add_middleware(RequestIdMiddleware)

    # CORS middleware (outermost - handles preflight requests first)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=False,
        allow_methods=["GET", "POST", "DELETE", "OPTIONS"],
        allow_headers=["*"],
        expose_headers=[
            "X-Request-ID",
            "X-RateLimit-Limit",
            "X-RateLimit-Remaining",
            "X-RateLimit-Reset",
            "Retry-After",
        ],
        max_age=600,
    )

    app.include_router(analysis_router)
    app.include_router(admin_router)

    @app.get("/health")
    async def health(request: Request) -> dict[str, Any]:
        """Health check with limiter, dispatch queue and provider status."""
        rate_limiter = request.app.state.rate_limiter
        analysis = request.app.state.analysis
        status = "ok"
        if not analysis.provider.is_configured:
            status = "degraded"
        return {
            "status": status,
            "components": {
                "rate_limiter": {
                    "status": "ok" if rate_limiter.is_running else "stopped",
                    "tracked_keys": len(rate_limiter.store),
                },
                "dispatch_queue": analysis.dispatch_queue.get_stats(),
                "provider": {
                    "name": "gemini",
                    "model": analysis.provider.model,
                    "configured": analysis.provider.is_configured,
                },
            },
        }

    @app.exception_handler(RateLimitExceededError)
    async def rate_limit_exceeded_handler(request: Request, exc: RateLimitExceededError) -> JSONResponse:
        """Handle RateLimitExceededError and return HTTP 429 response."""
        return rate_limit_response(exc)

    @app.exception_handler(ReviewServiceError)
    async def service_error_handler(request: Request, exc: ReviewServiceError) -> JSONResponse:
        """Handle provider and other service errors with their own status codes."""
        request_id = get_request_id(request)
        logger.warning(
            f"{type(exc).__name__}: {exc.message}",
            extra={"request_id": request_id, "status_code": exc.status_code},
        )
        content = exc.to_response()
        content["request_id"] = request_id
        return JSONResponse(status_code=exc.status_code, content=content)

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        """Global exception handler for unhandled exceptions.

        Never returns a traceback to the client; full details go to the
        server log. Debug mode adds the exception message.
        """
        request_id = get_request_id(request)

        logger.exception(
            f"Unhandled exception [request_id={request_id}]",
            extra={
                "request_id": request_id,
                "exception_type": type(exc).__name__,
            }
        )

        content = {
            "error": "internal_error",
            "message": "Internal server error",
            "request_id": request_id,
        }
        if settings.debug:
            content["message"] = str(exc)
            content["exception_type"] = type(exc).__name__
        return JSONResponse(status_code=500, content=content)

    return app


# Create the application instance
app = create_app()
