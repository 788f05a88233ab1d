"""FastAPI application entry point.

Wires together: middleware, exception handlers, routes, metrics.
Validates config at startup and flushes pending memory writes on shutdown.
"""

from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException

from insight.api import get_memory_store
from insight.api import router as insight_router
from shared.config import settings
from shared.database import dispose_engine
from shared.exceptions import ProblemDetailError
from shared.logging import configure_logging
from shared.metrics import create_metrics_app
from shared.middleware import (
    RequestIdMiddleware,
    http_exception_handler,
    problem_detail_handler,
    request_validation_handler,
)

logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown lifecycle."""
    configure_logging(json_output=True)
    logger.info(
        "app_starting",
        remote_store_enabled=settings.remote_store_enabled,
        database_url=settings.database_url.split("@")[-1],  # hide credentials
        cache_dir=settings.cache_dir,
    )
    yield
    logger.info("app_shutting_down")
    if get_memory_store.cache_info().currsize:
        await get_memory_store().drain()
    await dispose_engine()


app = FastAPI(
    title="Health Insight Engine API",
    description=(
        "Scores daily health metrics, maps them to tiers, and keeps a longitudinal "
        "per-subject memory of completed analyses."
    ),
    version="1.0.0",
    lifespan=lifespan,
)

app.add_middleware(RequestIdMiddleware)

# All errors emit application/problem+json (RFC 9457)
app.add_exception_handler(ProblemDetailError, problem_detail_handler)
app.add_exception_handler(RequestValidationError, request_validation_handler)
app.add_exception_handler(StarletteHTTPException, http_exception_handler)

app.include_router(insight_router)

metrics_app = create_metrics_app()
app.mount("/metrics", metrics_app)


@app.get("/health")
async def health():
    return {"status": "ok"}
