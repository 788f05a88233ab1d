"""Tests for the analysis pipeline (unit-level, no DB)."""

import pytest

from insight.cache import InMemoryCache
from insight.pipeline import record_analysis, score_series
from insight.store import MemoryStore
from shared.exceptions import ScoreUnavailableError
from tests.conftest import SUBJECT_ID, make_series


@pytest.fixture
def store():
    return MemoryStore(cache=InMemoryCache())


class TestScoreSeries:
    def test_available(self, steady_series):
        assert score_series(steady_series, 7, SUBJECT_ID).score == 76

    def test_unavailable(self):
        assert score_series(make_series(7, steps=9000.0), 7).score is None


class TestRecordAnalysis:
    @pytest.mark.asyncio
    async def test_supplied_score(self, store, narrative_analysis, steady_series, memory_context):
        result = await record_analysis(
            store, SUBJECT_ID, narrative_analysis, steady_series, memory_context, health_score=45
        )
        assert result.health_score == 45
        assert result.score_source == "supplied"
        assert result.tier_changed is True
        assert result.memory.user_profile.fitness_level == "intermediate"
        assert store.load_cached(SUBJECT_ID) == result.memory

    @pytest.mark.asyncio
    async def test_computed_score(self, store, narrative_analysis, steady_series, memory_context):
        result = await record_analysis(
            store, SUBJECT_ID, narrative_analysis, steady_series, memory_context
        )
        assert result.health_score == 76
        assert result.score_source == "computed"
        assert result.memory.recent_analyses[0].health_score == 76
        assert result.memory.user_profile.baseline_hrv == 45.0

    @pytest.mark.asyncio
    async def test_unavailable_score_touches_nothing(
        self, store, narrative_analysis, memory_context
    ):
        with pytest.raises(ScoreUnavailableError):
            await record_analysis(
                store, SUBJECT_ID, narrative_analysis, make_series(3), memory_context
            )
        assert store.load_cached(SUBJECT_ID) is None

    @pytest.mark.asyncio
    async def test_builds_on_stored_memory(self, store, narrative_analysis, memory_context):
        await record_analysis(
            store, SUBJECT_ID, narrative_analysis, [], memory_context, health_score=60
        )
        result = await record_analysis(
            store, SUBJECT_ID, narrative_analysis, [], memory_context, health_score=68
        )
        memory = result.memory
        assert memory.interaction_count == 2
        assert [s.health_score for s in memory.recent_analyses] == [68, 60]
        assert memory.longitudinal_insights.notable_events[0].endswith(
            "score improving (60 → 68)"
        )
        assert result.tier_changed is True

    @pytest.mark.asyncio
    async def test_same_tier_not_reported_as_change(
        self, store, narrative_analysis, memory_context
    ):
        await record_analysis(
            store, SUBJECT_ID, narrative_analysis, [], memory_context, health_score=66
        )
        result = await record_analysis(
            store, SUBJECT_ID, narrative_analysis, [], memory_context, health_score=80
        )
        assert result.tier_changed is False
