"""
Baseline engine: cleaning and robust summary statistics of metric series.

Cleaning
--------
A sample is dropped (never clamped) when it is:

- absent: None, exactly zero, NaN or infinite (sensors report gaps as 0),
- implausible: outside the fixed per-metric range in ``PLAUSIBLE_RANGES``.

Metrics without a range entry are only filtered for absence.

Statistics
----------
- ``average``: arithmetic mean, None for no values.
- ``median``: classic even/odd rule on a pre-sorted list, None for no values.
- ``iqr``: ``sorted[3n // 4] - sorted[n // 4]``, None below 4 values.

Windows
-------
Windows are calendar days anchored at the latest entry's date, so a
14-day window over a series with gaps holds fewer than 14 samples.
"""

from __future__ import annotations

import math
from collections.abc import Sequence
from datetime import date, timedelta

from insight.domain.models import MetricBaseline, RawDailyMetricEntry, WeeklySummary

# ======================================================================
# Configuration
# ======================================================================

# Inclusive plausible ranges per metric.
PLAUSIBLE_RANGES: dict[str, tuple[float, float]] = {
    "sleep_hours": (2.0, 14.0),
    "deep_sleep_hours": (0.5, 5.0),
    "rem_sleep_hours": (0.5, 4.0),
    "hrv_ms": (15.0, 150.0),
    "resting_hr": (35.0, 100.0),
    "vo2max": (25.0, 85.0),
    "steps": (500.0, 80_000.0),
    "active_calories": (50.0, 5_000.0),
    "training_load": (0.0, 5_000.0),
    "readiness_score": (0.0, 100.0),
    "weight_kg": (30.0, 200.0),
    "body_fat_percent": (3.0, 45.0),
}

# Numeric metrics carried by RawDailyMetricEntry.
METRICS: tuple[str, ...] = (*PLAUSIBLE_RANGES, "strain")

HRV_RHR_BASELINE_DAYS = 14
IQR_BASELINE_DAYS = 21
TRAILING_TREND_SIZE = 3
WEEKLY_SUMMARY_WEEKS = 13

# Weekly averages are reported for these metrics.
_WEEKLY_METRICS: tuple[str, ...] = (
    "sleep_hours",
    "deep_sleep_hours",
    "rem_sleep_hours",
    "hrv_ms",
    "resting_hr",
    "steps",
    "training_load",
    "readiness_score",
    "vo2max",
)

# A day counts as "valid" when any of these has a real measurement.
_VALID_DAY_METRICS: tuple[str, ...] = ("sleep_hours", "hrv_ms", "steps", "active_calories")


# ======================================================================
# Rounding
# ======================================================================


def round_half_up(value: float, ndigits: int = 0) -> float:
    """Round with halves away from zero (Python's round() is banker's)."""
    factor = 10**ndigits
    scaled = abs(value) * factor
    return math.copysign(math.floor(scaled + 0.5) / factor, value)


# ======================================================================
# Cleaning
# ======================================================================


def normalize_missing(value: float | None) -> float | None:
    """Map 0 / NaN / ±inf / None to None ("no measurement")."""
    if value is None:
        return None
    value = float(value)
    if value == 0 or math.isnan(value) or math.isinf(value):
        return None
    return value


def is_outlier(metric: str, value: float) -> bool:
    bounds = PLAUSIBLE_RANGES.get(metric)
    if bounds is None:
        return False
    low, high = bounds
    return not low <= value <= high


def valid_value(entry: RawDailyMetricEntry, metric: str) -> float | None:
    """The entry's value for ``metric`` if present and plausible, else None."""
    value = normalize_missing(getattr(entry, metric))
    if value is None or is_outlier(metric, value):
        return None
    return value


def sort_series(series: Sequence[RawDailyMetricEntry]) -> list[RawDailyMetricEntry]:
    return sorted(series, key=lambda e: e.date)


def trailing_window(
    series: Sequence[RawDailyMetricEntry], days: int | None
) -> list[RawDailyMetricEntry]:
    """Entries dated within ``days`` calendar days ending on the latest entry.

    ``days=None`` keeps the whole history. Output is sorted by date.
    """
    ordered = sort_series(series)
    if days is None or not ordered:
        return ordered
    start = ordered[-1].date - timedelta(days=days - 1)
    return [e for e in ordered if e.date >= start]


def clean(
    series: Sequence[RawDailyMetricEntry], metric: str, window: int | None = None
) -> list[float]:
    """Valid values of ``metric`` over the trailing window, in date order."""
    values: list[float] = []
    for entry in trailing_window(series, window):
        value = valid_value(entry, metric)
        if value is not None:
            values.append(value)
    return values


# ======================================================================
# Statistics
# ======================================================================


def average(values: Sequence[float]) -> float | None:
    if not values:
        return None
    return sum(values) / len(values)


def median(sorted_values: Sequence[float]) -> float | None:
    """Median of an ascending list. The caller sorts."""
    n = len(sorted_values)
    if n == 0:
        return None
    mid = n // 2
    if n % 2 == 0:
        return (sorted_values[mid - 1] + sorted_values[mid]) / 2
    return sorted_values[mid]


def iqr(values: Sequence[float]) -> float | None:
    """Inter-quartile range; None for fewer than 4 values."""
    if len(values) < 4:
        return None
    ordered = sorted(values)
    n = len(ordered)
    return ordered[(3 * n) // 4] - ordered[n // 4]


def compute_baseline(
    series: Sequence[RawDailyMetricEntry], metric: str, window: int | None
) -> MetricBaseline:
    values = clean(series, metric, window)
    return MetricBaseline(
        metric=metric,
        window_days=window,
        sample_count=len(values),
        average=average(values),
        median=median(sorted(values)),
        iqr=iqr(values),
    )


def recent_baselines(series: Sequence[RawDailyMetricEntry]) -> dict[str, MetricBaseline]:
    """14-day HRV and resting-HR baselines (median is the robust centre)."""
    return {
        metric: compute_baseline(series, metric, HRV_RHR_BASELINE_DAYS)
        for metric in ("hrv_ms", "resting_hr")
    }


def spread_baselines(series: Sequence[RawDailyMetricEntry]) -> dict[str, MetricBaseline]:
    """21-day average + IQR of sleep, HRV and resting HR."""
    return {
        metric: compute_baseline(series, metric, IQR_BASELINE_DAYS)
        for metric in ("sleep_hours", "hrv_ms", "resting_hr")
    }


# ======================================================================
# Weekly summaries and trailing trends
# ======================================================================


def weekly_summaries(
    series: Sequence[RawDailyMetricEntry], weeks: int = WEEKLY_SUMMARY_WEEKS
) -> list[WeeklySummary]:
    """Per-week averages going back ``weeks`` weeks from the latest entry.

    Week 1 ends on the latest entry's date. Empty weeks are still reported
    (all averages None, zero valid days).
    """
    ordered = sort_series(series)
    if not ordered:
        return []

    end_anchor: date = ordered[-1].date
    summaries: list[WeeklySummary] = []

    for week_index in range(weeks):
        week_end = end_anchor - timedelta(days=7 * week_index)
        week_start = week_end - timedelta(days=6)
        entries = [e for e in ordered if week_start <= e.date <= week_end]

        averages = {m: average(clean(entries, m)) for m in _WEEKLY_METRICS}
        workouts = sum(e.workout_count or 0 for e in entries)
        valid_days = sum(
            1
            for e in entries
            if any(normalize_missing(getattr(e, m)) is not None for m in _VALID_DAY_METRICS)
        )

        summaries.append(
            WeeklySummary(
                week_number=week_index + 1,
                start_date=week_start,
                end_date=week_end,
                averages=averages,
                workout_count=workouts if workouts > 0 else None,
                valid_days_count=valid_days,
            )
        )

    return summaries


def trailing_trend(
    values: Sequence[float], threshold: float, size: int = TRAILING_TREND_SIZE
) -> tuple[float, float, str] | None:
    """Compare the mean of the trailing ``size`` values with all earlier ones.

    ``values`` are oldest → newest. Returns ``(earlier, recent, direction)``
    where direction is improving / declining / stable, or None when there is
    not at least one value before the trailing block.
    """
    if len(values) <= size:
        return None
    earlier = average(values[:-size])
    recent = average(values[-size:])
    diff = recent - earlier
    if diff >= threshold:
        direction = "improving"
    elif diff <= -threshold:
        direction = "declining"
    else:
        direction = "stable"
    return earlier, recent, direction
