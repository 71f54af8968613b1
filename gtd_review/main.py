"""
FastAPI application entry point.

Run with: uvicorn gtd_review.main:app --reload
"""

from contextlib import asynccontextmanager
import uuid

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
import structlog

from gtd_review.core.config import settings
from gtd_review.core.logging import bind_request, clear_request, configure_logging
from gtd_review.persistence.database import init_database
from gtd_review.api.routes import health, reviews, tasks
from gtd_review.api.exception_handlers import setup_exception_handlers

# Configure logging before anything else
configure_logging()
log = structlog.get_logger(__name__)


# =============================================================================
# Correlation ID Middleware
# =============================================================================


class CorrelationIDMiddleware(BaseHTTPMiddleware):
    """
    Middleware that adds a unique correlation ID to each request.

    - Generates a UUID4 request_id for each incoming request
    - Binds it (and the X-User-ID, when sent) to the structlog context
    - Adds X-Request-ID header to responses
    """

    async def dispatch(self, request: Request, call_next):
        request_id = str(uuid.uuid4())

        bind_request(request_id, request.headers.get("X-User-ID"))

        try:
            response = await call_next(request)
            response.headers["X-Request-ID"] = request_id
            return response
        finally:
            clear_request()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan manager.

    Handles startup and shutdown events.
    """
    log.info(
        "application_starting",
        debug=settings.debug,
        database_path=str(settings.database_path),
    )

    await init_database()

    log.info("application_started")

    yield

    log.info("application_shutting_down")


app = FastAPI(
    title="GTD Review",
    description="Guided daily and weekly GTD reviews",
    version="0.1.0",
    lifespan=lifespan,
    debug=settings.debug,
)

# CORS middleware for development
if settings.debug:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

app.add_middleware(CorrelationIDMiddleware)

setup_exception_handlers(app)

app.include_router(health.router, tags=["system"])
app.include_router(reviews.router)
app.include_router(tasks.router)


@app.get("/")
async def root():
    """Root endpoint with basic info."""
    return {"name": "GTD Review", "version": "0.1.0", "status": "running"}


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "gtd_review.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
    )
