"""FastAPI application for statusflow.

This module provides:
- Application factory with lifespan-managed services
- Mapping of StatusFlowError subclasses to JSON error responses
- Health check endpoint
- CORS configuration
"""

from contextlib import asynccontextmanager
from datetime import UTC, datetime
from typing import Any

import structlog
from fastapi import FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from statusflow.api.dependencies import build_services, get_services, has_services, set_services
from statusflow.config import configure_logging, settings
from statusflow.errors import StatusFlowError

logger = structlog.get_logger(__name__)


class ErrorResponse(BaseModel):
    """Error response model."""

    error: str = Field(..., description="Error message")
    detail: str | None = Field(default=None, description="Detailed error information")
    error_type: str | None = Field(default=None, description="Exception class name")
    details: dict[str, Any] = Field(default_factory=dict, description="Structured error details")


# ============================================================================
# Application Setup
# ============================================================================


@asynccontextmanager
async def lifespan(app: FastAPI):  # noqa: ARG001
    """Application lifespan handler."""
    logger.info("application_starting")

    if not has_services():
        set_services(build_services(settings))
    services = get_services()
    await services.start()

    yield

    logger.info("application_shutting_down")
    await services.stop()


OPENAPI_TAGS = [
    {
        "name": "Transitions",
        "description": "Entity state machines, transition validation and status changes.",
    },
    {
        "name": "Notifications",
        "description": "In-app notifications polled by the tenant dashboard.",
    },
    {
        "name": "Webhooks",
        "description": "Webhook subscriptions, the queue-driven delivery worker and dead letters.",
    },
    {
        "name": "Health",
        "description": "Liveness check.",
    },
]


def create_app(
    title: str = "StatusFlow API",
    version: str = "1.0.0",
    cors_origins: list[str] | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        title: API title.
        version: API version.
        cors_origins: Allowed CORS origins.

    Returns:
        Configured FastAPI application.
    """
    app = FastAPI(
        title=title,
        version=version,
        lifespan=lifespan,
        openapi_tags=OPENAPI_TAGS,
    )

    origins = cors_origins or ["*"]
    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(StatusFlowError)
    async def statusflow_exception_handler(
        request: Request, exc: StatusFlowError  # noqa: ARG001
    ) -> JSONResponse:
        if exc.status_code >= 500:
            logger.error("request_failed", **exc.to_dict())
        else:
            logger.info("request_rejected", error_type=exc.__class__.__name__, message=exc.message)
        return JSONResponse(
            status_code=exc.status_code,
            content=ErrorResponse(
                error=exc.message,
                error_type=exc.__class__.__name__,
                details=exc.details,
            ).model_dump(),
        )

    @app.exception_handler(HTTPException)
    async def http_exception_handler(
        request: Request, exc: HTTPException  # noqa: ARG001
    ) -> JSONResponse:
        return JSONResponse(
            status_code=exc.status_code,
            content=ErrorResponse(
                error=exc.detail if isinstance(exc.detail, str) else str(exc.detail),
                detail=None,
            ).model_dump(),
        )

    @app.exception_handler(Exception)
    async def general_exception_handler(
        request: Request, exc: Exception  # noqa: ARG001
    ) -> JSONResponse:
        logger.error("unhandled_exception", error=str(exc), exc_info=True)
        return JSONResponse(
            status_code=500,
            content=ErrorResponse(
                error="Internal server error",
                detail=str(exc) if app.debug else None,
            ).model_dump(),
        )

    register_routes(app)

    return app


def register_routes(app: FastAPI) -> None:
    """Register all routes on the application.

    Args:
        app: FastAPI application.
    """
    from statusflow.api.notifications import router as notifications_router
    from statusflow.api.transitions import router as transitions_router
    from statusflow.api.webhooks import router as webhooks_router

    app.include_router(transitions_router)
    app.include_router(notifications_router)
    app.include_router(webhooks_router)

    @app.get("/health", tags=["Health"])
    async def health() -> dict[str, Any]:
        """Basic liveness check."""
        return {"status": "ok", "timestamp": datetime.now(UTC).isoformat()}


def main() -> None:
    """Run the API with uvicorn."""
    import uvicorn

    configure_logging(settings)
    uvicorn.run(create_app(), host="0.0.0.0", port=8000)  # noqa: S104
