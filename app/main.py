"""Activity Chat API - Main Application Module.

This module initializes the FastAPI application with configuration,
middleware, routing, the realtime hub and lifecycle management for the
chat subsystem.
"""

import logging
import sys
import uuid
from contextlib import asynccontextmanager
from datetime import datetime
from pathlib import Path

# Add the project root to Python path if running directly
if __name__ == "__main__":
    project_root = Path(__file__).parent.parent
    sys.path.insert(0, str(project_root))

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.core.config import ConfigValidator, get_config_summary, settings
from app.core.logging import setup_logging
from app.database import AsyncSessionLocal, engine
from app.realtime.hub import RealtimeHub
from models import Base

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Manage application lifecycle events."""
    setup_logging()
    logger.info("Starting %s v%s (%s)", settings.app_name, settings.version, settings.environment)
    ConfigValidator.validate_required_settings()
    if not settings.clerk_secret_key:
        logger.warning("CLERK_SECRET_KEY is not set; bearer tokens are accepted without signature verification")
    logger.debug("Configuration: %s", get_config_summary())

    # Development mode: auto-create tables; elsewhere the schema is managed externally
    if settings.is_development:
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info("Database tables created/verified")

    app.state.hub = RealtimeHub()

    yield

    logger.info("Shutting down %s", settings.app_name)
    await app.state.hub.shutdown()
    await engine.dispose()
    logger.info("Database connections closed")


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    app = FastAPI(
        title=settings.app_name,
        description="Realtime chat for activities: direct and group chats, presence and direct messages",
        version=settings.version,
        lifespan=lifespan,
        docs_url=settings.docs_url if settings.is_development else None,
        redoc_url=settings.redoc_url if settings.is_development else None,
    )

    # Add middleware
    setup_middleware(app)

    # Add exception handlers
    setup_exception_handlers(app)

    # Include routers
    setup_routers(app)

    return app


def setup_middleware(app: FastAPI):
    """Configure application middleware."""
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Request ID middleware
    @app.middleware("http")
    async def add_request_id(request: Request, call_next):
        request_id = str(uuid.uuid4())
        request.state.request_id = request_id
        response = await call_next(request)
        response.headers["X-Request-ID"] = request_id
        return response


def _error_response(request: Request, status_code: int, message: str, error_code: str, details=None):
    return JSONResponse(
        status_code=status_code,
        content={
            "status": "error",
            "message": message,
            "error_code": error_code,
            "details": details,
            "timestamp": datetime.utcnow().isoformat(),
            "request_id": getattr(request.state, "request_id", None),
        },
    )


def setup_exception_handlers(app: FastAPI):
    """Configure global exception handlers."""

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        # Application exceptions carry a structured detail
        if isinstance(exc.detail, dict) and "message" in exc.detail:
            message = exc.detail["message"]
            error_code = exc.detail.get("error_code", "HTTP_ERROR")
            details = exc.detail.get("details")
        else:
            message = str(exc.detail) if exc.detail else "An error occurred"
            error_code = "HTTP_ERROR"
            details = None

        return _error_response(request, exc.status_code, message, error_code, details)

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        errors = []
        for error in exc.errors():
            error_dict = {
                "loc": error.get("loc", []),
                "msg": str(error.get("msg", "Validation error")),
                "type": error.get("type", "value_error"),
            }
            if "input" in error:
                error_dict["input"] = str(error["input"])
            errors.append(error_dict)

        return _error_response(request, 422, "Validation error", "VALIDATION_ERROR", errors)

    @app.exception_handler(SQLAlchemyError)
    async def database_exception_handler(request: Request, exc: SQLAlchemyError):
        logger.error("Unhandled database error: %s", exc)
        return _error_response(request, 500, "Internal server error", "INTERNAL_ERROR")


def setup_routers(app: FastAPI):
    """Configure application routers."""
    from app.domains.chat.controller import router as chat_router
    from app.domains.direct_message.controller import router as direct_message_router
    from app.realtime.gateway import router as realtime_router

    @app.get("/health")
    async def health_check():
        """Health check covering the database and the realtime hub."""
        db_status = "healthy"
        try:
            async with AsyncSessionLocal() as db:
                await db.execute(text("SELECT 1"))
        except SQLAlchemyError as e:
            logger.warning("Health check database probe failed: %s", e)
            db_status = "unhealthy"

        hub = getattr(app.state, "hub", None)
        return {
            "status": "healthy" if db_status == "healthy" else "degraded",
            "version": settings.version,
            "environment": settings.environment,
            "timestamp": datetime.utcnow().isoformat(),
            "services": {
                "database": db_status,
                "realtime": "healthy" if hub is not None else "not_started",
            },
            "online_users": len(hub.presence) if hub is not None else 0,
        }

    @app.get("/")
    async def root():
        """Root endpoint with API information."""
        return {
            "name": settings.app_name,
            "version": settings.version,
            "description": "Realtime chat for activities",
            "docs_url": settings.docs_url if settings.is_development else None,
            "websocket_url": "/ws",
        }

    app.include_router(chat_router)
    app.include_router(direct_message_router)
    app.include_router(realtime_router)


# Create the application instance
app = create_app()


def main():
    """Entry point for running the application directly."""
    import uvicorn

    uvicorn.run(
        "app.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.reload and settings.is_development,
        log_level=settings.log_level.value.lower(),
    )


if __name__ == "__main__":
    main()
