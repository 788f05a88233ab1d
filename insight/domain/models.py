"""Domain models for the health insight engine.

Two families live here:

- Input/derived values (RawDailyMetricEntry, MetricBaseline, ScoreResult,
  Tier, weekly summaries, data-quality report). These are recomputed on
  demand and never persisted as a source of truth.
- The durable per-subject Memory aggregate (UserProfile,
  LongitudinalInsights, AnalysisSummary). It serializes to a JSON document
  with camelCase keys and ISO-8601 timestamps.

Design principles:
- Nullable measurement fields: None = "not measured", never "zero"
- "Unavailable" results are None, distinguishable from a real 0
- AnalysisSummary is frozen once built; history only grows or evicts
"""

from datetime import UTC, date, datetime
from enum import StrEnum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

MEMORY_SCHEMA_VERSION = 1


# --- Metric series ---


class RawDailyMetricEntry(BaseModel):
    """One calendar day of observations for a subject.

    Zero or non-finite values are accepted here and treated as absent by the
    baseline engine; impossible values are filtered there, not rejected here.
    """

    date: date
    sleep_hours: float | None = None
    deep_sleep_hours: float | None = None
    rem_sleep_hours: float | None = None
    hrv_ms: float | None = None
    resting_hr: float | None = None
    vo2max: float | None = None
    steps: float | None = None
    active_calories: float | None = None
    training_load: float | None = None
    readiness_score: float | None = None
    strain: float | None = None
    weight_kg: float | None = None
    body_fat_percent: float | None = None
    workout_count: int | None = None


class MetricBaseline(BaseModel):
    """Summary statistics of one metric over a trailing window of valid samples."""

    metric: str
    window_days: int | None
    sample_count: int
    average: float | None
    median: float | None
    iqr: float | None


class WeeklySummary(BaseModel):
    week_number: int  # 1 = the week ending on the latest entry
    start_date: date
    end_date: date
    averages: dict[str, float | None]
    workout_count: int | None
    valid_days_count: int


class QualityStatus(StrEnum):
    INSUFFICIENT = "INSUFFICIENT_DATA"
    LIMITED = "LIMITED_DATA"
    GOOD = "GOOD_DATA"
    HIGH_CONFIDENCE = "HIGH_CONFIDENCE_DATA"


class DataQualityReport(BaseModel):
    total_days: int
    coverage: dict[str, int]
    status: dict[str, QualityStatus]
    flags: list[str]
    reliability_score: int = Field(..., ge=0, le=100)


# --- Scoring ---


class Tier(BaseModel):
    """One of five ordered score bands. Range is half-open [min_score, max_score)."""

    model_config = ConfigDict(frozen=True)

    key: str
    name: str
    label: str
    index: int = Field(..., ge=0, le=4)
    color: str
    asset_name: str
    min_score: int
    max_score: int

    def contains(self, score: int) -> bool:
        return self.min_score <= score < self.max_score


class ScoreComponents(BaseModel):
    """Sub-scores (0-100) of each input; None when the input was absent."""

    readiness: float | None = None
    sleep: float | None = None
    hrv: float | None = None
    strain: float | None = None


class ScoreResult(BaseModel):
    score: int | None = Field(None, ge=0, le=100)
    components: ScoreComponents
    tier: Tier | None = None
    tier_hash: str | None = None
    trend: str | None = None

    @property
    def is_available(self) -> bool:
        return self.score is not None


# --- Narrative analysis (input from the narrative-generation collaborator) ---


class SupplementRecommendation(BaseModel):
    name_en: str
    name_he: str = ""
    dosage: str = ""
    timing: str = ""
    reason: str = ""


class NarrativeAnalysis(BaseModel):
    """Structured result of one completed narrative analysis. Read-only input."""

    milestone_label: str = ""
    summary_en: str = ""
    summary_he: str = ""
    bottlenecks_en: list[str] = Field(default_factory=list)
    bottlenecks_he: list[str] = Field(default_factory=list)
    directive_stop: str | None = None
    directive_start: str | None = None
    directive_watch: str | None = None
    supplements: list[SupplementRecommendation] = Field(default_factory=list)
    training_adjustments: str = ""
    recovery_changes: str = ""


# --- Durable memory document ---


class DocumentModel(BaseModel):
    """Base for every model persisted inside the memory document."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class AnalysisSummary(DocumentModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    date: datetime
    subject_label: str
    health_score: int = Field(..., ge=0, le=100)
    key_findings_en: str = Field("", max_length=200)
    key_findings_he: str = Field("", max_length=200)
    directive_stop: str | None = None
    directive_start: str | None = None
    directive_watch: str | None = None
    supplements: tuple[str, ...] = ()


class UserProfile(DocumentModel):
    display_name: str | None = None
    data_source: str | None = None
    typical_sleep_hours: float | None = None
    baseline_hrv: float | None = Field(None, alias="baselineHRV")
    baseline_rhr: float | None = Field(None, alias="baselineRHR")
    vo2max_range: str | None = None
    fitness_level: str | None = None
    known_conditions: list[str] = Field(default_factory=list)
    current_milestone: str | None = None
    milestone_history: str | None = None


class LongitudinalInsights(DocumentModel):
    sleep_trend: str | None = None
    recovery_pattern: str | None = None
    training_pattern: str | None = None
    key_strengths: list[str] = Field(default_factory=list)
    persistent_weaknesses: list[str] = Field(default_factory=list)
    supplement_history: str | None = None
    notable_events: list[str] = Field(default_factory=list)


class Memory(DocumentModel):
    user_profile: UserProfile = Field(default_factory=UserProfile)
    longitudinal_insights: LongitudinalInsights = Field(default_factory=LongitudinalInsights)
    recent_analyses: list[AnalysisSummary] = Field(default_factory=list)

    interaction_count: int = Field(0, ge=0)
    first_analysis_date: datetime
    last_updated_date: datetime

    # Checked by any migration logic before the rest of the document is trusted.
    schema_version: int = MEMORY_SCHEMA_VERSION

    @classmethod
    def bootstrap(cls, now: datetime | None = None) -> "Memory":
        """Fresh, empty memory for a subject's first analysis."""
        now = now or datetime.now(UTC)
        return cls(first_analysis_date=now, last_updated_date=now)

    def to_document(self) -> dict[str, Any]:
        """JSON-compatible document as written to cache and durable store."""
        return self.model_dump(mode="json", by_alias=True)
