"""FastAPI application factory."""

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from surveypulse.core.config import settings
from surveypulse.core.exceptions import AppException
from surveypulse.core.logging import configure_logging
from surveypulse.db.mongodb import close_mongodb, connect_mongodb, ensure_indexes, get_mongodb
from surveypulse.db.redis import close_redis, connect_redis, get_redis_optional
from surveypulse.domains.action.router import router as action_router
from surveypulse.domains.assignment.router import router as assignment_router
from surveypulse.domains.invite.router import router as invite_router
from surveypulse.domains.response.router import router as response_router
from surveypulse.domains.segment.router import router as segment_router
from surveypulse.integrations.geo import GeoLocator
from surveypulse.integrations.notifications import SocketIONotificationSink
from surveypulse.jobs.factory import create_job_queue
from surveypulse.middlewares.security import RateLimitMiddleware, SecurityHeadersMiddleware
from surveypulse.pipeline.factory import build_response_processor, select_llm_provider
from surveypulse.scheduler import PipelineScheduler
from surveypulse.sockets.server import sio

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator:
    """Application lifespan events."""
    # Startup
    configure_logging(settings.log_level)
    logger.info(f"Starting SurveyPulse in {settings.environment} mode...")

    await connect_mongodb()
    db = get_mongodb()
    await ensure_indexes(db)
    await connect_redis()

    notifications = SocketIONotificationSink(sio, db)
    processor = build_response_processor(
        settings, db, notifications, llm=select_llm_provider(settings)
    )
    queue = create_job_queue(processor.handle, settings, db, get_redis_optional())
    if settings.embedded_worker:
        await queue.start()

    scheduler = PipelineScheduler(db, settings, notifications)
    scheduler.start()

    app.state.job_queue = queue
    app.state.notifications = notifications
    app.state.geo = GeoLocator(settings.geo_lookup_url, settings.geo_lookup_timeout_seconds)

    yield

    # Shutdown
    logger.info("Shutting down SurveyPulse...")
    scheduler.stop()
    await queue.close()
    await close_mongodb()
    await close_redis()


def _error_body(code: str, message: str, details: dict | None = None) -> dict:
    return {"error": {"code": code, "message": message, "details": details or {}}}


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    app = FastAPI(
        title="SurveyPulse",
        description="Post-response intelligence for survey feedback",
        version="0.1.0",
        docs_url="/docs" if settings.is_development else None,
        redoc_url="/redoc" if settings.is_development else None,
        lifespan=lifespan,
    )

    # Security middlewares (order matters: first added = last executed)
    app.add_middleware(SecurityHeadersMiddleware)

    # Rate limiting (only in production)
    if settings.is_production:
        app.add_middleware(RateLimitMiddleware)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=["Authorization", "Content-Type"],
        expose_headers=["X-RateLimit-Limit", "X-RateLimit-Remaining"],
    )

    # Exception handlers
    @app.exception_handler(AppException)
    async def app_exception_handler(request: Request, exc: AppException):
        return JSONResponse(
            status_code=exc.status_code,
            content=exc.to_dict(),
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        errors = [
            {
                "field": ".".join(str(part) for part in error["loc"][1:]),
                "message": error["msg"],
            }
            for error in exc.errors()
        ]
        return JSONResponse(
            status_code=400,
            content=_error_body("VALIDATION_ERROR", "Invalid request", {"errors": errors}),
        )

    @app.exception_handler(Exception)
    async def general_exception_handler(request: Request, exc: Exception):
        logger.exception(f"Unhandled error on {request.method} {request.url.path}")
        if settings.is_development:
            return JSONResponse(
                status_code=500,
                content=_error_body("INTERNAL_ERROR", str(exc), {"type": type(exc).__name__}),
            )
        return JSONResponse(
            status_code=500,
            content=_error_body("INTERNAL_ERROR", "An unexpected error occurred"),
        )

    # Health check endpoint
    @app.get("/health")
    async def health_check():
        return {"status": "healthy", "environment": settings.environment}

    # API info endpoint
    @app.get("/")
    async def root():
        return {
            "name": "SurveyPulse API",
            "version": "0.1.0",
            "docs": "/docs" if settings.is_development else None,
        }

    # Register routers
    _register_routers(app)

    return app


def _register_routers(app: FastAPI) -> None:
    """Register all API routers."""
    api_prefix = settings.api_prefix

    app.include_router(response_router, prefix=api_prefix, tags=["Responses"])
    app.include_router(invite_router, prefix=api_prefix, tags=["Invites"])
    app.include_router(action_router, prefix=api_prefix, tags=["Actions"])
    app.include_router(assignment_router, prefix=api_prefix, tags=["Assignment Rules"])
    app.include_router(segment_router, prefix=api_prefix, tags=["Segments"])
