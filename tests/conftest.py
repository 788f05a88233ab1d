"""Shared test fixtures."""

import json
import sys
from datetime import UTC, date, datetime, timedelta
from pathlib import Path

import pytest

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from insight.domain.models import NarrativeAnalysis, RawDailyMetricEntry  # noqa: E402
from insight.memory import MemoryContext  # noqa: E402

FIXTURES_DIR = Path(__file__).parent / "fixtures"
SUBJECT_ID = "subject-7f3a"
ANCHOR_DATE = date(2026, 3, 15)
NOW = datetime(2026, 3, 15, 9, 30, tzinfo=UTC)


def load_fixture(name: str) -> dict:
    return json.loads((FIXTURES_DIR / name).read_text())


def make_series(days: int, end: date = ANCHOR_DATE, **values) -> list[RawDailyMetricEntry]:
    """``days`` consecutive entries ending on ``end``, every day carrying ``values``."""
    return [
        RawDailyMetricEntry(date=end - timedelta(days=days - 1 - i), **values)
        for i in range(days)
    ]


@pytest.fixture
def narrative_analysis() -> NarrativeAnalysis:
    return NarrativeAnalysis.model_validate(load_fixture("narrative_analysis.json"))


@pytest.fixture
def steady_series() -> list[RawDailyMetricEntry]:
    """21 days of plausible, unchanging measurements."""
    return make_series(
        21,
        sleep_hours=7.2,
        hrv_ms=45.0,
        resting_hr=58.0,
        readiness_score=80.0,
        strain=4.0,
        steps=9000.0,
        active_calories=450.0,
    )


@pytest.fixture
def memory_context() -> MemoryContext:
    return MemoryContext(data_source="oura", display_name="Noa", now=NOW)
