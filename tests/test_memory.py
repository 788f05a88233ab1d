"""Tests for the longitudinal memory update."""

from datetime import timedelta

import pytest

from insight.domain.models import AnalysisSummary, Memory, NarrativeAnalysis
from insight.memory import (
    MemoryContext,
    detect_persistent_weaknesses,
    extract_keywords,
    fitness_level,
    sleep_trend_text,
    update_memory,
)
from tests.conftest import ANCHOR_DATE, NOW, make_series


def _summary(score: int, findings: str = "", days_ago: int = 7) -> AnalysisSummary:
    return AnalysisSummary(
        date=NOW - timedelta(days=days_ago),
        subject_label="Porsche 911 Turbo",
        health_score=score,
        key_findings_en=findings,
    )


def _memory_with(*summaries: AnalysisSummary) -> Memory:
    memory = Memory.bootstrap(NOW - timedelta(days=60))
    memory.recent_analyses = list(summaries)
    memory.interaction_count = len(summaries)
    return memory


class TestScenarios:
    def test_score_swing_adds_notable_event(self, narrative_analysis, memory_context):
        existing = _memory_with(_summary(60, days_ago=7), _summary(58, days_ago=14))

        memory = update_memory(existing, narrative_analysis, 68, context=memory_context)

        assert [s.health_score for s in memory.recent_analyses] == [68, 60, 58]
        assert memory.longitudinal_insights.notable_events == [
            f"{NOW:%b %Y}: score improving (60 → 68)"
        ]

    def test_first_analysis(self, narrative_analysis, memory_context):
        memory = update_memory(None, narrative_analysis, 45, context=memory_context)

        assert memory.user_profile.fitness_level == "intermediate"
        assert memory.interaction_count == 1
        assert len(memory.recent_analyses) == 1
        assert memory.longitudinal_insights.notable_events == []
        assert memory.first_analysis_date == NOW
        assert memory.last_updated_date == NOW


class TestHistory:
    def test_capped_at_three_most_recent_first(self, narrative_analysis, memory_context):
        memory = None
        for score in (50, 52, 54, 56, 58):
            memory = update_memory(memory, narrative_analysis, score, context=memory_context)
        assert [s.health_score for s in memory.recent_analyses] == [58, 56, 54]
        assert memory.interaction_count == 5

    def test_notable_events_capped_at_five(self, narrative_analysis, memory_context):
        memory = None
        for score in (40, 60, 40, 60, 40, 60, 40, 60):
            memory = update_memory(memory, narrative_analysis, score, context=memory_context)
        events = memory.longitudinal_insights.notable_events
        assert len(events) == 5
        assert events[0].endswith("score improving (40 → 60)")
        assert events[1].endswith("score declining (60 → 40)")

    def test_small_swing_adds_no_event(self, narrative_analysis, memory_context):
        existing = _memory_with(_summary(60))
        memory = update_memory(existing, narrative_analysis, 64, context=memory_context)
        assert memory.longitudinal_insights.notable_events == []

    def test_existing_memory_not_mutated(self, narrative_analysis, memory_context):
        existing = _memory_with(_summary(60), _summary(58))
        before = existing.model_dump()
        update_memory(existing, narrative_analysis, 68, context=memory_context)
        assert existing.model_dump() == before


class TestProfile:
    def test_display_name_only_filled_when_unset(self, narrative_analysis):
        memory = update_memory(
            None, narrative_analysis, 50, context=MemoryContext(display_name="Noa", now=NOW)
        )
        memory = update_memory(
            memory, narrative_analysis, 50, context=MemoryContext(display_name="Other", now=NOW)
        )
        assert memory.user_profile.display_name == "Noa"

    def test_data_source_always_overwritten(self, narrative_analysis):
        memory = update_memory(
            None, narrative_analysis, 50, context=MemoryContext(data_source="oura", now=NOW)
        )
        memory = update_memory(
            memory, narrative_analysis, 50, context=MemoryContext(data_source="whoop", now=NOW)
        )
        assert memory.user_profile.data_source == "whoop"

    def test_known_conditions_appended(self, narrative_analysis):
        context = MemoryContext(known_conditions=["asthma"], now=NOW)
        memory = update_memory(None, narrative_analysis, 50, context=context)
        context = MemoryContext(known_conditions=["asthma", "anemia"], now=NOW)
        memory = update_memory(memory, narrative_analysis, 50, context=context)
        assert memory.user_profile.known_conditions == ["asthma", "anemia"]

    def test_milestone_trail_is_append_only(self, memory_context):
        memory = None
        for label in ("Fiat Panda", "Fiat Panda", "Toyota Corolla", "BMW M3", "Toyota Corolla"):
            analysis = NarrativeAnalysis(milestone_label=label)
            memory = update_memory(memory, analysis, 50, context=memory_context)
        profile = memory.user_profile
        assert profile.current_milestone == "Toyota Corolla"
        assert profile.milestone_history == "Fiat Panda → Toyota Corolla → BMW M3 → Toyota Corolla"

    def test_foreign_trail_restarts_from_current_label(self, memory_context):
        existing = update_memory(
            None, NarrativeAnalysis(milestone_label="BMW M3"), 50, context=memory_context
        )
        existing.user_profile.milestone_history = "Stage 1 > Stage 2"
        memory = update_memory(
            existing, NarrativeAnalysis(milestone_label="Porsche 911 Turbo"), 70,
            context=memory_context,
        )
        assert memory.user_profile.milestone_history == "BMW M3 → Porsche 911 Turbo"

    def test_first_milestone_starts_no_trail(self, memory_context):
        memory = update_memory(
            None, NarrativeAnalysis(milestone_label="BMW M3"), 50, context=memory_context
        )
        assert memory.user_profile.current_milestone == "BMW M3"
        assert memory.user_profile.milestone_history is None

    def test_baselines_from_series(self, narrative_analysis, memory_context):
        series = make_series(21, sleep_hours=7.25, hrv_ms=45.0, resting_hr=57.5)
        series[-1] = series[-1].model_copy(update={"vo2max": 44.4})
        series[-2] = series[-2].model_copy(update={"vo2max": 46.5})

        memory = update_memory(None, narrative_analysis, 70, series, memory_context)

        profile = memory.user_profile
        assert profile.typical_sleep_hours == 7.3
        assert profile.baseline_hrv == 45.0
        assert profile.baseline_rhr == 58.0
        assert profile.vo2max_range == "44-47"

    def test_vo2max_range_needs_two_samples(self, narrative_analysis, memory_context):
        series = make_series(7, vo2max=45.0)[-1:]
        memory = update_memory(None, narrative_analysis, 70, series, memory_context)
        assert memory.user_profile.vo2max_range is None

    def test_vo2max_single_value_range(self, narrative_analysis, memory_context):
        series = make_series(5, vo2max=45.2)
        memory = update_memory(None, narrative_analysis, 70, series, memory_context)
        assert memory.user_profile.vo2max_range == "45"

    def test_baselines_kept_without_new_data(self, narrative_analysis, memory_context):
        memory = update_memory(
            None, narrative_analysis, 70, make_series(14, hrv_ms=50.0), memory_context
        )
        memory = update_memory(
            memory, narrative_analysis, 70, make_series(14, steps=8000.0), memory_context
        )
        assert memory.user_profile.baseline_hrv == 50.0

    @pytest.mark.parametrize(
        "score,level",
        [
            (0, "beginner"),
            (39, "beginner"),
            (40, "intermediate"),
            (59, "intermediate"),
            (60, "advanced"),
            (79, "advanced"),
            (80, "elite"),
            (100, "elite"),
        ],
    )
    def test_fitness_bands(self, score, level):
        assert fitness_level(score) == level


class TestInsights:
    def test_supplement_history(self, narrative_analysis, memory_context):
        memory = update_memory(None, narrative_analysis, 50, context=memory_context)
        assert memory.longitudinal_insights.supplement_history == "Magnesium Glycinate, Creatine"

    def test_supplement_history_kept_when_none_recommended(
        self, narrative_analysis, memory_context
    ):
        memory = update_memory(None, narrative_analysis, 50, context=memory_context)
        memory = update_memory(memory, NarrativeAnalysis(), 50, context=memory_context)
        assert memory.longitudinal_insights.supplement_history == "Magnesium Glycinate, Creatine"

    def test_training_and_recovery_patterns(self, narrative_analysis, memory_context):
        memory = update_memory(None, narrative_analysis, 50, context=memory_context)
        insights = memory.longitudinal_insights
        assert insights.training_pattern == "Keep two zone 2 sessions per week"
        assert insights.recovery_pattern == "Hold a consistent 23:00 bedtime"

    def test_trivial_pattern_text_ignored(self, narrative_analysis, memory_context):
        memory = update_memory(None, narrative_analysis, 50, context=memory_context)
        short = NarrativeAnalysis(training_adjustments="Rest more.", recovery_changes="")
        memory = update_memory(memory, short, 50, context=memory_context)
        assert memory.longitudinal_insights.training_pattern == "Keep two zone 2 sessions per week"

    def test_empty_first_sentence_is_stored(self, narrative_analysis, memory_context):
        memory = update_memory(None, narrative_analysis, 50, context=memory_context)
        leading_period = NarrativeAnalysis(training_adjustments=". Increase zone 2 volume")
        memory = update_memory(memory, leading_period, 50, context=memory_context)
        assert memory.longitudinal_insights.training_pattern == ""
        assert memory.longitudinal_insights.recovery_pattern == "Hold a consistent 23:00 bedtime"

    def test_pattern_truncated_to_100_chars(self, memory_context):
        analysis = NarrativeAnalysis(training_adjustments="z" * 150)
        memory = update_memory(None, analysis, 50, context=memory_context)
        assert memory.longitudinal_insights.training_pattern == "z" * 100

    def test_persistent_weakness_detected(self, narrative_analysis, memory_context):
        existing = _memory_with(_summary(60, findings="Recovery deficit. Hydration is low"))
        memory = update_memory(existing, narrative_analysis, 62, context=memory_context)
        assert memory.longitudinal_insights.persistent_weaknesses == [
            "Chronic recovery deficit from poor hydration"
        ]

    def test_empty_recomputation_keeps_previous_weaknesses(self, memory_context):
        existing = _memory_with(_summary(60, findings="Unrelated"))
        existing.longitudinal_insights.persistent_weaknesses = ["Low HRV"]
        analysis = NarrativeAnalysis(bottlenecks_en=["Something entirely new"])
        memory = update_memory(existing, analysis, 61, context=memory_context)
        assert memory.longitudinal_insights.persistent_weaknesses == ["Low HRV"]

    def test_unrelated_fields_carried_forward(self, narrative_analysis, memory_context):
        existing = _memory_with(_summary(60))
        existing.longitudinal_insights.key_strengths = ["Consistent training"]
        memory = update_memory(existing, narrative_analysis, 61, context=memory_context)
        assert memory.longitudinal_insights.key_strengths == ["Consistent training"]
        assert memory.first_analysis_date == existing.first_analysis_date


class TestKeywords:
    def test_extract_keywords(self):
        assert extract_keywords("Poor, sleep; quality! of HRV") == ["poor", "sleep", "quality"]

    def test_needs_two_matches(self):
        older = [_summary(60, findings="sleep debt")]
        assert detect_persistent_weaknesses(["Sleep debt again"], older) == ["Sleep debt again"]
        assert detect_persistent_weaknesses(["Sleep apnea"], older) == []

    def test_ignores_newest_summary(self):
        assert detect_persistent_weaknesses(["Sleep debt"], []) == []


class TestSleepTrend:
    def test_improving(self):
        series = make_series(
            21, end=ANCHOR_DATE - timedelta(days=21), sleep_hours=6.5
        ) + make_series(21, sleep_hours=7.5)
        assert sleep_trend_text(series) == "Sleep improving: 6.5h → 7.5h (last 3 weeks)"

    def test_declining(self):
        series = make_series(
            21, end=ANCHOR_DATE - timedelta(days=21), sleep_hours=7.5
        ) + make_series(21, sleep_hours=6.5)
        assert sleep_trend_text(series) == "Sleep declining: 7.5h → 6.5h (last 3 weeks)"

    def test_stable(self):
        assert sleep_trend_text(make_series(28, sleep_hours=7.0)) == "Sleep stable around 7.0h"

    def test_needs_four_weeks(self):
        assert sleep_trend_text(make_series(21, sleep_hours=7.0)) is None

    def test_written_into_insights(self, narrative_analysis, memory_context):
        memory = update_memory(
            None, narrative_analysis, 60, make_series(28, sleep_hours=7.0), memory_context
        )
        assert memory.longitudinal_insights.sleep_trend == "Sleep stable around 7.0h"
