"""
Composite health score and tier mapping.

Score
-----
Four inputs, each turned into a 0-100 sub-score by a fixed curve and then
weighted:

    readiness  0.40   already 0-100, clamped
    sleep      0.25   step function on hours (7.5 / 7.0 / 6.0 / 5.0)
    HRV        0.20   linear, ~10 ms -> 0 and ~80 ms -> 100
    strain     0.15   banded, 3-6 optimal, 2-7 acceptable

Only the weights of present inputs are summed, and the weighted total is
divided by that sum, so a missing input never drags the score towards
zero.  With no input at all the score is None ("unavailable"), never 0.

The curve anchors and tier boundaries are calibration constants and are
reproduced exactly.

Tiers
-----
Five contiguous bands partition [0, 100]:

    [0,25) [25,45) [45,65) [65,82) [82,100]

Consumers detect a tier change through ``tier_hash``, which depends on the
ordinal only, so noise inside a band never looks like a change.
"""

from __future__ import annotations

from collections.abc import Sequence

from insight.baseline import average, clean, round_half_up, sort_series, trailing_trend
from insight.domain.models import RawDailyMetricEntry, ScoreComponents, ScoreResult, Tier

# ======================================================================
# Configuration
# ======================================================================

READINESS_WEIGHT = 0.40
SLEEP_WEIGHT = 0.25
HRV_WEIGHT = 0.20
STRAIN_WEIGHT = 0.15

# (min hours, sub-score), checked top-down.
_SLEEP_STEPS: list[tuple[float, float]] = [
    (7.5, 100.0),
    (7.0, 85.0),
    (6.0, 60.0),
    (5.0, 35.0),
]
_SLEEP_FLOOR = 15.0

_HRV_ZERO_MS = 10.0
_HRV_SPAN_MS = 70.0

_STRAIN_OPTIMAL = (3.0, 6.0, 85.0)
_STRAIN_ACCEPTABLE = (2.0, 7.0, 65.0)
_STRAIN_OFF_BALANCE = 40.0

SCORE_TREND_THRESHOLD = 5.0

TIERS: tuple[Tier, ...] = (
    Tier(key="needs_attention", name="Fiat Panda", label="Needs Attention", index=0,
         color="accent_danger", asset_name="CarFiatPanda", min_score=0, max_score=25),
    Tier(key="okay", name="Toyota Corolla", label="Okay", index=1,
         color="accent_warning", asset_name="CarToyotaCorolla", min_score=25, max_score=45),
    Tier(key="good_condition", name="BMW M3", label="Good Condition", index=2,
         color="accent_primary", asset_name="CarBMWM3", min_score=45, max_score=65),
    Tier(key="excellent", name="Porsche 911 Turbo", label="Excellent", index=3,
         color="accent_secondary", asset_name="CarPorsche911", min_score=65, max_score=82),
    Tier(key="peak_performance", name="Ferrari SF90 Stradale", label="Peak Performance",
         index=4, color="accent_success", asset_name="CarFerrariSF90", min_score=82,
         max_score=101),
)


def _clamp(value: float, low: float = 0.0, high: float = 100.0) -> float:
    return max(low, min(high, value))


# ======================================================================
# Sub-score curves
# ======================================================================


def readiness_subscore(readiness: float) -> float:
    return _clamp(readiness)


def sleep_subscore(hours: float) -> float:
    for threshold, score in _SLEEP_STEPS:
        if hours >= threshold:
            return score
    return _SLEEP_FLOOR


def hrv_subscore(hrv_ms: float) -> float:
    return _clamp((hrv_ms - _HRV_ZERO_MS) * (100.0 / _HRV_SPAN_MS))


def strain_subscore(strain: float) -> float:
    low, high, score = _STRAIN_OPTIMAL
    if low <= strain <= high:
        return score
    low, high, score = _STRAIN_ACCEPTABLE
    if low <= strain <= high:
        return score
    return _STRAIN_OFF_BALANCE


# ======================================================================
# Composite
# ======================================================================


def score_components(
    readiness_avg: float | None,
    sleep_hours_avg: float | None,
    hrv_avg: float | None,
    strain_avg: float | None,
) -> ScoreComponents:
    return ScoreComponents(
        readiness=readiness_subscore(readiness_avg) if readiness_avg is not None else None,
        sleep=sleep_subscore(sleep_hours_avg) if sleep_hours_avg is not None else None,
        hrv=hrv_subscore(hrv_avg) if hrv_avg is not None else None,
        strain=strain_subscore(strain_avg) if strain_avg is not None else None,
    )


def combine(components: ScoreComponents) -> int | None:
    """Weighted, renormalised composite of the present sub-scores."""
    total = 0.0
    weight_sum = 0.0
    for sub_score, weight in (
        (components.readiness, READINESS_WEIGHT),
        (components.sleep, SLEEP_WEIGHT),
        (components.hrv, HRV_WEIGHT),
        (components.strain, STRAIN_WEIGHT),
    ):
        if sub_score is None:
            continue
        total += sub_score * weight
        weight_sum += weight

    if weight_sum == 0:
        return None
    return int(round_half_up(_clamp(total / weight_sum)))


def compute_score(
    readiness_avg: float | None = None,
    sleep_hours_avg: float | None = None,
    hrv_avg: float | None = None,
    strain_avg: float | None = None,
) -> int | None:
    """Composite 0-100 score, or None when all four inputs are absent."""
    return combine(score_components(readiness_avg, sleep_hours_avg, hrv_avg, strain_avg))


# ======================================================================
# Tiers
# ======================================================================


def tier_for_score(score: int) -> Tier:
    """Total mapping: scores outside [0, 100] fall into the nearest end tier."""
    for tier in TIERS:
        if tier.contains(score):
            return tier
    return TIERS[0] if score < 0 else TIERS[-1]


def tier_hash(score: int) -> str:
    return f"tier_{tier_for_score(score).index}"


def tier_changed(previous_score: int | None, new_score: int | None) -> bool:
    """True when the tier identity differs. Unavailable counts as its own state."""
    previous = tier_hash(previous_score) if previous_score is not None else None
    new = tier_hash(new_score) if new_score is not None else None
    return previous != new


# ======================================================================
# Evaluation over a metric series
# ======================================================================


def _averages(series: Sequence[RawDailyMetricEntry], window: int | None) -> tuple:
    return (
        average(clean(series, "readiness_score", window)),
        average(clean(series, "sleep_hours", window)),
        average(clean(series, "hrv_ms", window)),
        average(clean(series, "strain", window)),
    )


def daily_scores(series: Sequence[RawDailyMetricEntry]) -> list[int]:
    """Score of each day on its own, oldest first; days without data are skipped."""
    scores = []
    for entry in sort_series(series):
        score = compute_score(*_averages([entry], None))
        if score is not None:
            scores.append(score)
    return scores


def score_trend(scores: Sequence[int]) -> str | None:
    """improving / declining / stable for the trailing 3 scores vs all earlier ones."""
    result = trailing_trend([float(s) for s in scores], SCORE_TREND_THRESHOLD)
    return result[2] if result else None


def evaluate(series: Sequence[RawDailyMetricEntry], window_days: int = 7) -> ScoreResult:
    """Score + tier from the trailing ``window_days`` of a series."""
    components = score_components(*_averages(series, window_days))
    score = combine(components)
    if score is None:
        return ScoreResult(score=None, components=components)
    return ScoreResult(
        score=score,
        components=components,
        tier=tier_for_score(score),
        tier_hash=tier_hash(score),
        trend=score_trend(daily_scores(series)),
    )
