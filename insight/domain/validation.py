"""Structural validation rules for a subject's metric series.

Only structural problems are reported here. Absent or implausible
measurements are data-quality issues and are filtered silently by the
baseline engine instead.
Returns a list of ValidationError; empty list means valid.
"""

from collections import Counter
from dataclasses import dataclass
from datetime import date, timedelta
from typing import Any

from insight.domain.models import RawDailyMetricEntry

# Tolerates entries stamped in a timezone ahead of the server.
_FUTURE_TOLERANCE = timedelta(days=1)


@dataclass
class ValidationError:
    field: str
    rule: str
    reason: str
    value: Any


def validate_series(
    entries: list[RawDailyMetricEntry], today: date | None = None
) -> list[ValidationError]:
    """Validate a series before any statistics are computed on it."""
    errors: list[ValidationError] = []
    today = today or date.today()

    # Rule 1: entries are uniquely keyed by date
    counts = Counter(entry.date for entry in entries)
    for day, count in sorted(counts.items()):
        if count > 1:
            errors.append(
                ValidationError("date", "unique", "duplicate_date", day.isoformat())
            )

    # Rule 2: no future dates
    for entry in entries:
        if entry.date > today + _FUTURE_TOLERANCE:
            errors.append(
                ValidationError("date", "no_future", "future_date", entry.date.isoformat())
            )

    # Rule 3: workout counts are non-negative
    for entry in entries:
        if entry.workout_count is not None and entry.workout_count < 0:
            errors.append(
                ValidationError(
                    "workout_count", "non_negative", "negative_workout_count", entry.workout_count
                )
            )

    return errors


def to_violations(errors: list[ValidationError]) -> list[dict[str, Any]]:
    return [
        {"field": e.field, "rule": e.rule, "reason": e.reason, "value": str(e.value)}
        for e in errors
    ]
