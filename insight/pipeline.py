"""Analysis pipeline: score → load memory → update → save.

Everything except the store I/O is pure computation; the store decides
whether the remote document is reachable and never fails the pipeline
because of it.
"""

from collections.abc import Sequence
from dataclasses import dataclass

import structlog

from insight.domain.models import Memory, NarrativeAnalysis, RawDailyMetricEntry, ScoreResult
from insight.memory import MemoryContext, update_memory
from insight.scoring import evaluate, tier_changed
from insight.store import MemoryStore
from shared.exceptions import ScoreUnavailableError
from shared.metrics import memory_updates_total, score_evaluations_total

logger = structlog.get_logger()


@dataclass
class AnalysisRecordResult:
    """Outcome of recording one completed analysis."""

    memory: Memory
    health_score: int
    score_source: str  # "supplied" or "computed"
    tier_changed: bool


def score_series(
    entries: Sequence[RawDailyMetricEntry], window_days: int, subject_id: str | None = None
) -> ScoreResult:
    """Evaluate a series and record the outcome."""
    result = evaluate(entries, window_days)
    outcome = "available" if result.is_available else "unavailable"
    score_evaluations_total.labels(outcome=outcome).inc()
    logger.info(
        "score_evaluated",
        subject_id=subject_id,
        outcome=outcome,
        score=result.score,
        tier=result.tier.key if result.tier else None,
        entries=len(entries),
    )
    return result


async def record_analysis(
    store: MemoryStore,
    subject_id: str | None,
    analysis: NarrativeAnalysis,
    entries: Sequence[RawDailyMetricEntry],
    context: MemoryContext,
    health_score: int | None = None,
    window_days: int = 7,
) -> AnalysisRecordResult:
    """Fold one completed analysis into the subject's memory and persist it.

    When ``health_score`` is not supplied it is computed from ``entries``;
    if that is unavailable too, ScoreUnavailableError is raised before any
    state is touched.
    """
    score_source = "supplied"
    if health_score is None:
        health_score = score_series(entries, window_days, subject_id).score
        score_source = "computed"
    if health_score is None:
        raise ScoreUnavailableError()

    existing = await store.load(subject_id)
    previous_score = None
    if existing and existing.recent_analyses:
        previous_score = existing.recent_analyses[0].health_score

    memory = update_memory(existing, analysis, health_score, entries, context)
    await store.save(subject_id, memory)

    changed = tier_changed(previous_score, health_score)
    memory_updates_total.inc()
    logger.info(
        "memory_updated",
        subject_id=subject_id,
        health_score=health_score,
        score_source=score_source,
        interaction_count=memory.interaction_count,
        history_size=len(memory.recent_analyses),
        tier_changed=changed,
    )
    return AnalysisRecordResult(
        memory=memory,
        health_score=health_score,
        score_source=score_source,
        tier_changed=changed,
    )
