"""
Longitudinal memory update.

``update_memory`` derives the next Memory from the previous one and one
completed analysis.  It is a pure function: the previous Memory is never
mutated, and the only outside information (display name, data source, the
clock) arrives through an injected :class:`MemoryContext`.

Steps, each feeding the next:

1. **Bootstrap** an empty memory when the subject has none.
2. **Profile refresh**: display name (only if unset), data source
   (always), milestone label + transition trail, baselines from the metric
   series (only overwritten when data exists), fitness level from the score.
3. **Summary insertion**: newest first, capped at 3.
4. **Insight re-derivation**: supplement history, persistent weaknesses,
   notable score swings (capped at 5), training/recovery pattern text and
   the sleep trend.
5. **Metadata**: interaction count and last-updated timestamp.

The new Memory replaces the old one wholesale in storage, so every field
this module does not touch must be carried forward by the copy.
"""

from __future__ import annotations

import string
from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import UTC, datetime

from insight.baseline import (
    HRV_RHR_BASELINE_DAYS,
    WEEKLY_SUMMARY_WEEKS,
    average,
    clean,
    median,
    round_half_up,
    trailing_trend,
    weekly_summaries,
)
from insight.domain.models import (
    AnalysisSummary,
    Memory,
    NarrativeAnalysis,
    RawDailyMetricEntry,
)
from insight.summary import build_analysis_summary, supplement_names

# ======================================================================
# Configuration
# ======================================================================

MAX_RECENT_ANALYSES = 3
MAX_NOTABLE_EVENTS = 5
NOTABLE_SCORE_SWING = 5
MIN_KEYWORD_LENGTH = 4
MIN_KEYWORD_MATCHES = 2
MIN_PATTERN_TEXT_LENGTH = 10
MAX_PATTERN_LENGTH = 100
MIN_VO2MAX_SAMPLES = 2
SLEEP_TREND_THRESHOLD_HOURS = 0.25

# Sleep profile uses the whole weekly-summary horizon.
SLEEP_PROFILE_DAYS = 7 * WEEKLY_SUMMARY_WEEKS

# (exclusive upper bound, level), checked in order.
_FITNESS_BANDS: list[tuple[int, str]] = [
    (40, "beginner"),
    (60, "intermediate"),
    (80, "advanced"),
]
_TOP_FITNESS_LEVEL = "elite"


@dataclass
class MemoryContext:
    """Outside facts the update needs, injected by the caller."""

    data_source: str | None = None
    display_name: str | None = None
    known_conditions: list[str] = field(default_factory=list)
    now: datetime | None = None

    def timestamp(self) -> datetime:
        return self.now or datetime.now(UTC)


# ======================================================================
# Helpers
# ======================================================================


def fitness_level(score: int) -> str:
    for upper, level in _FITNESS_BANDS:
        if score < upper:
            return level
    return _TOP_FITNESS_LEVEL


def extract_keywords(text: str) -> list[str]:
    """Lower-cased whitespace tokens, punctuation-trimmed, 4+ characters."""
    tokens = (token.strip(string.punctuation) for token in text.lower().split())
    return [token for token in tokens if len(token) >= MIN_KEYWORD_LENGTH]


def month_year(moment: datetime) -> str:
    return moment.strftime("%b %Y")


def _pattern_text(text: str) -> str | None:
    if len(text) <= MIN_PATTERN_TEXT_LENGTH:
        return None
    return text.split(".", 1)[0][:MAX_PATTERN_LENGTH]


# ======================================================================
# Step 2: profile
# ======================================================================


def _refresh_milestone(memory: Memory, new_label: str) -> None:
    if not new_label:
        return
    profile = memory.user_profile
    previous = profile.current_milestone
    profile.current_milestone = new_label

    if previous and previous != new_label:
        trail = profile.milestone_history
        if trail and trail.endswith(previous):
            profile.milestone_history = f"{trail} → {new_label}"
        else:
            profile.milestone_history = f"{previous} → {new_label}"


def _refresh_baselines(memory: Memory, series: Sequence[RawDailyMetricEntry]) -> None:
    profile = memory.user_profile

    sleep_values = clean(series, "sleep_hours", SLEEP_PROFILE_DAYS)
    if sleep_values:
        profile.typical_sleep_hours = round_half_up(average(sleep_values), 1)

    hrv_values = sorted(clean(series, "hrv_ms", HRV_RHR_BASELINE_DAYS))
    if hrv_values:
        profile.baseline_hrv = round_half_up(median(hrv_values))

    rhr_values = sorted(clean(series, "resting_hr", HRV_RHR_BASELINE_DAYS))
    if rhr_values:
        profile.baseline_rhr = round_half_up(median(rhr_values))

    vo2_values = clean(series, "vo2max", SLEEP_PROFILE_DAYS)
    if len(vo2_values) >= MIN_VO2MAX_SAMPLES:
        low = int(round_half_up(min(vo2_values)))
        high = int(round_half_up(max(vo2_values)))
        profile.vo2max_range = str(low) if low == high else f"{low}-{high}"


def update_profile(
    memory: Memory,
    analysis: NarrativeAnalysis,
    series: Sequence[RawDailyMetricEntry] | None,
    latest_score: int | None,
    context: MemoryContext,
) -> None:
    profile = memory.user_profile

    if profile.display_name is None:
        profile.display_name = context.display_name

    profile.data_source = context.data_source

    for condition in context.known_conditions:
        if condition and condition not in profile.known_conditions:
            profile.known_conditions.append(condition)

    _refresh_milestone(memory, analysis.milestone_label)

    if series:
        _refresh_baselines(memory, series)

    if latest_score is not None:
        profile.fitness_level = fitness_level(latest_score)


# ======================================================================
# Step 3: history
# ======================================================================


def insert_summary(memory: Memory, summary: AnalysisSummary) -> None:
    memory.recent_analyses = [summary, *memory.recent_analyses][:MAX_RECENT_ANALYSES]


# ======================================================================
# Step 4: insights
# ======================================================================


def detect_persistent_weaknesses(
    bottlenecks: Sequence[str], older: Sequence[AnalysisSummary]
) -> list[str]:
    """Bottlenecks with 2+ keywords already present in older findings."""
    previous_findings = " ".join(s.key_findings_en for s in older).lower()
    persistent = []
    for bottleneck in bottlenecks:
        matches = sum(1 for kw in extract_keywords(bottleneck) if kw in previous_findings)
        if matches >= MIN_KEYWORD_MATCHES:
            persistent.append(bottleneck)
    return persistent


def score_swing_event(
    recent: AnalysisSummary, previous: AnalysisSummary, now: datetime
) -> str | None:
    diff = recent.health_score - previous.health_score
    if abs(diff) < NOTABLE_SCORE_SWING:
        return None
    direction = "improving" if diff > 0 else "declining"
    return (
        f"{month_year(now)}: score {direction} "
        f"({previous.health_score} → {recent.health_score})"
    )


def sleep_trend_text(series: Sequence[RawDailyMetricEntry]) -> str | None:
    """Trailing 3 weeks of average sleep vs the weeks before them."""
    weekly = [
        w.averages["sleep_hours"]
        for w in reversed(weekly_summaries(series))
        if w.averages.get("sleep_hours") is not None
    ]
    result = trailing_trend(weekly, SLEEP_TREND_THRESHOLD_HOURS)
    if result is None:
        return None
    earlier, recent, direction = result
    if direction == "stable":
        return f"Sleep stable around {round_half_up(average(weekly), 1)}h"
    return (
        f"Sleep {direction}: {round_half_up(earlier, 1)}h → "
        f"{round_half_up(recent, 1)}h (last 3 weeks)"
    )


def update_insights(
    memory: Memory,
    analysis: NarrativeAnalysis,
    series: Sequence[RawDailyMetricEntry] | None,
    now: datetime,
) -> None:
    insights = memory.longitudinal_insights

    supplements = supplement_names(analysis)
    if supplements:
        insights.supplement_history = ", ".join(supplements)

    if len(memory.recent_analyses) >= 2:
        persistent = detect_persistent_weaknesses(
            analysis.bottlenecks_en, memory.recent_analyses[1:]
        )
        # An empty recomputation keeps the previous list.
        if persistent:
            insights.persistent_weaknesses = persistent

        event = score_swing_event(memory.recent_analyses[0], memory.recent_analyses[1], now)
        if event:
            insights.notable_events = [event, *insights.notable_events][:MAX_NOTABLE_EVENTS]

    training = _pattern_text(analysis.training_adjustments)
    if training is not None:
        insights.training_pattern = training

    recovery = _pattern_text(analysis.recovery_changes)
    if recovery is not None:
        insights.recovery_pattern = recovery

    if series:
        trend = sleep_trend_text(series)
        if trend:
            insights.sleep_trend = trend


# ======================================================================
# Main entry point
# ======================================================================


def update_memory(
    existing: Memory | None,
    analysis: NarrativeAnalysis,
    latest_score: int,
    series: Sequence[RawDailyMetricEntry] | None = None,
    context: MemoryContext | None = None,
) -> Memory:
    """Derive the next Memory after one completed analysis.

    Args:
        existing: Memory as last stored, or None for a first analysis.
        analysis: The completed narrative analysis.
        latest_score: Composite score of this analysis (0-100).
        series: Metric series the analysis was based on; refreshes the
            profile baselines and sleep trend when given.
        context: Injected outside facts (display name, source, clock).

    Returns:
        A new :class:`Memory`; ``existing`` is left untouched.
    """
    context = context or MemoryContext()
    now = context.timestamp()

    memory = existing.model_copy(deep=True) if existing else Memory.bootstrap(now)

    update_profile(memory, analysis, series, latest_score, context)

    summary = build_analysis_summary(analysis, latest_score, created_at=now)
    insert_summary(memory, summary)

    update_insights(memory, analysis, series, now)

    memory.interaction_count += 1
    memory.last_updated_date = now
    return memory
