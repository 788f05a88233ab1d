"""FastAPI router for the health insight engine.

Endpoints:
- POST   /api/v1/subjects/{id}/score
- POST   /api/v1/subjects/{id}/baselines
- POST   /api/v1/subjects/{id}/analyses
- GET    /api/v1/subjects/{id}/memory
- DELETE /api/v1/subjects/{id}/memory
"""

import time
from datetime import UTC, datetime
from functools import lru_cache
from typing import Any

from fastapi import APIRouter, Depends, Response
from pydantic import BaseModel, Field

from insight.baseline import recent_baselines, spread_baselines, weekly_summaries
from insight.domain.models import NarrativeAnalysis, RawDailyMetricEntry
from insight.domain.validation import to_violations, validate_series
from insight.memory import MemoryContext
from insight.pipeline import record_analysis, score_series
from insight.quality import assess_quality
from insight.store import MemoryStore, build_memory_store
from shared.config import settings
from shared.exceptions import MemoryNotFoundError, SeriesValidationError
from shared.metrics import api_requests_total, api_response_duration_seconds
from shared.middleware import request_id_var

router = APIRouter(prefix="/api/v1")


# --- Dependencies ---


@lru_cache(maxsize=1)
def get_memory_store() -> MemoryStore:
    return build_memory_store()


# --- Request models ---


class ScoreRequest(BaseModel):
    entries: list[RawDailyMetricEntry]
    window_days: int | None = Field(None, ge=1, le=365)


class BaselineRequest(BaseModel):
    entries: list[RawDailyMetricEntry]


class AnalysisRequest(BaseModel):
    """A completed narrative analysis plus the series it was based on."""

    analysis: NarrativeAnalysis
    health_score: int | None = Field(None, ge=0, le=100)
    entries: list[RawDailyMetricEntry] = Field(default_factory=list)
    display_name: str | None = None
    data_source: str | None = None
    known_conditions: list[str] = Field(default_factory=list)


# --- Response helpers ---


def _meta() -> dict[str, Any]:
    return {
        "request_id": request_id_var.get(""),
        "timestamp": datetime.now(UTC).isoformat(),
        "api_version": settings.api_version,
    }


def _validate(entries: list[RawDailyMetricEntry]) -> None:
    errors = validate_series(entries)
    if errors:
        raise SeriesValidationError(to_violations(errors))


def _observe(endpoint: str, method: str, status_code: int, start_time: float) -> None:
    api_requests_total.labels(endpoint=endpoint, method=method, status_code=str(status_code)).inc()
    api_response_duration_seconds.labels(endpoint=endpoint).observe(time.monotonic() - start_time)


# --- Endpoints ---


@router.post("/subjects/{subject_id}/score")
async def post_score(subject_id: str, body: ScoreRequest):
    """Composite score and tier over the trailing window.

    ``data.score`` is null (not 0) when no contributing metric has data.
    """
    start_time = time.monotonic()
    _validate(body.entries)

    window_days = body.window_days or settings.score_window_days
    result = score_series(body.entries, window_days, subject_id)

    _observe("score", "POST", 200, start_time)
    return {"data": result.model_dump(mode="json"), "meta": _meta()}


@router.post("/subjects/{subject_id}/baselines")
async def post_baselines(subject_id: str, body: BaselineRequest):
    """Robust baselines, weekly summaries and a data-quality report."""
    start_time = time.monotonic()
    _validate(body.entries)

    data = {
        "subject_id": subject_id,
        "recent": {k: v.model_dump(mode="json") for k, v in recent_baselines(body.entries).items()},
        "spread": {k: v.model_dump(mode="json") for k, v in spread_baselines(body.entries).items()},
        "weekly": [w.model_dump(mode="json") for w in weekly_summaries(body.entries)],
        "quality": assess_quality(body.entries).model_dump(mode="json"),
    }

    _observe("baselines", "POST", 200, start_time)
    return {"data": data, "meta": _meta()}


@router.post("/subjects/{subject_id}/analyses", status_code=201)
async def post_analysis(
    subject_id: str,
    body: AnalysisRequest,
    store: MemoryStore = Depends(get_memory_store),
):
    """Record a completed analysis and return the updated memory.

    If ``health_score`` is omitted it is computed from ``entries``; when
    neither yields a score the request fails with 422 score-unavailable.
    """
    start_time = time.monotonic()
    _validate(body.entries)

    context = MemoryContext(
        data_source=body.data_source,
        display_name=body.display_name,
        known_conditions=body.known_conditions,
    )
    result = await record_analysis(
        store,
        subject_id,
        body.analysis,
        body.entries,
        context,
        health_score=body.health_score,
        window_days=settings.score_window_days,
    )

    _observe("analyses", "POST", 201, start_time)
    return {
        "data": {
            "health_score": result.health_score,
            "score_source": result.score_source,
            "tier_changed": result.tier_changed,
            "memory": result.memory.to_document(),
        },
        "meta": _meta(),
    }


@router.get("/subjects/{subject_id}/memory")
async def get_memory(subject_id: str, store: MemoryStore = Depends(get_memory_store)):
    start_time = time.monotonic()

    memory = await store.load(subject_id)
    if memory is None:
        raise MemoryNotFoundError(subject_id)

    _observe("memory", "GET", 200, start_time)
    return {"data": memory.to_document(), "meta": _meta()}


@router.delete("/subjects/{subject_id}/memory", status_code=204)
async def delete_memory(subject_id: str, store: MemoryStore = Depends(get_memory_store)):
    """Remove cached and durable memory. Deleting twice is a no-op."""
    start_time = time.monotonic()
    await store.clear(subject_id)
    _observe("memory", "DELETE", 204, start_time)
    return Response(status_code=204)
