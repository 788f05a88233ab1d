"""Data-quality assessment of a metric series.

Reports how much usable data backs each metric so that downstream
consumers can tell a confident baseline from a guess:

- coverage: count of present, plausible samples per metric
- status: INSUFFICIENT (<5) / LIMITED (<14) / GOOD (<30) / HIGH_CONFIDENCE
- flags: data gaps, thin metrics, suspicious day-to-day jumps
- reliability: 0-100 coverage ratio weighted towards the key metrics
"""

from collections.abc import Sequence

from insight.baseline import normalize_missing, sort_series, valid_value
from insight.domain.models import DataQualityReport, QualityStatus, RawDailyMetricEntry

COVERAGE_METRICS: tuple[str, ...] = (
    "sleep_hours",
    "hrv_ms",
    "resting_hr",
    "vo2max",
    "steps",
    "active_calories",
    "training_load",
    "readiness_score",
    "weight_kg",
    "body_fat_percent",
)

# Percentage points; they sum to 100.
_RELIABILITY_WEIGHTS: dict[str, int] = {
    "sleep_hours": 25,
    "hrv_ms": 20,
    "resting_hr": 15,
    "steps": 15,
    "active_calories": 10,
    "vo2max": 5,
    "weight_kg": 5,
    "body_fat_percent": 5,
}

_STATUS_THRESHOLDS: list[tuple[QualityStatus, int]] = [
    (QualityStatus.INSUFFICIENT, 5),
    (QualityStatus.LIMITED, 14),
    (QualityStatus.GOOD, 30),
]

_GAP_RUN_DAYS = 5
_HRV_JUMP_RATIO = 0.4
_RHR_JUMP_RATIO = 0.3
_GAP_METRICS = ("sleep_hours", "hrv_ms", "steps")


def coverage(series: Sequence[RawDailyMetricEntry]) -> dict[str, int]:
    counts = {metric: 0 for metric in COVERAGE_METRICS}
    for entry in series:
        for metric in COVERAGE_METRICS:
            if valid_value(entry, metric) is not None:
                counts[metric] += 1
    return counts


def quality_status(count: int) -> QualityStatus:
    for status, upper in _STATUS_THRESHOLDS:
        if count < upper:
            return status
    return QualityStatus.HIGH_CONFIDENCE


def _relative_jump(previous: float | None, current: float | None) -> float | None:
    if previous is None or current is None or previous <= 0:
        return None
    return abs(current - previous) / previous


def quality_flags(
    series: Sequence[RawDailyMetricEntry], counts: dict[str, int]
) -> list[str]:
    ordered = sort_series(series)
    flags: list[str] = []

    # One warning per run of consecutive days without sleep, HRV or steps.
    missing_run = 0
    for entry in ordered:
        has_data = any(normalize_missing(getattr(entry, m)) is not None for m in _GAP_METRICS)
        if has_data:
            missing_run = 0
            continue
        missing_run += 1
        if missing_run == _GAP_RUN_DAYS:
            flags.append(
                f"DATA_GAP_WARNING: {_GAP_RUN_DAYS}+ consecutive days without data "
                f"(ending {entry.date.isoformat()})"
            )

    for metric in COVERAGE_METRICS:
        if counts[metric] < _STATUS_THRESHOLDS[0][1]:
            flags.append(f"INSUFFICIENT_DATA: {metric} ({counts[metric]}/{len(ordered)} days)")

    for previous, current in zip(ordered, ordered[1:]):
        hrv_jump = _relative_jump(
            normalize_missing(previous.hrv_ms), normalize_missing(current.hrv_ms)
        )
        if hrv_jump is not None and hrv_jump > _HRV_JUMP_RATIO:
            flags.append(
                f"POTENTIAL_SENSOR_ERROR: HRV change of {int(hrv_jump * 100)}% "
                f"on {current.date.isoformat()}"
            )
        rhr_jump = _relative_jump(
            normalize_missing(previous.resting_hr), normalize_missing(current.resting_hr)
        )
        if rhr_jump is not None and rhr_jump > _RHR_JUMP_RATIO:
            flags.append(
                f"POTENTIAL_SENSOR_ERROR: RHR change of {int(rhr_jump * 100)}% "
                f"on {current.date.isoformat()}"
            )

    return flags


def reliability_score(counts: dict[str, int], total_days: int) -> int:
    if total_days <= 0:
        return 0
    weighted = sum(
        (counts.get(metric, 0) / total_days) * weight
        for metric, weight in _RELIABILITY_WEIGHTS.items()
    )
    score = weighted * 100 / sum(_RELIABILITY_WEIGHTS.values())
    return int(min(100, max(0, score)))


def assess_quality(series: Sequence[RawDailyMetricEntry]) -> DataQualityReport:
    counts = coverage(series)
    return DataQualityReport(
        total_days=len(series),
        coverage=counts,
        status={metric: quality_status(count) for metric, count in counts.items()},
        flags=quality_flags(series, counts),
        reliability_score=reliability_score(counts, len(series)),
    )
