"""Analysis summary builder: one completed narrative → a compact record.

The summary keeps just enough of an analysis to personalize later ones:
date, subject label, score, two short findings strings (one per language),
the stop/start/watch directives and supplement names.
"""

from datetime import UTC, datetime

from insight.domain.models import AnalysisSummary, NarrativeAnalysis

MAX_FINDINGS_LENGTH = 200
ELLIPSIS = "..."
_MAX_FINDING_PARTS = 2


def first_sentence(text: str) -> str:
    """Text up to the first '.', stripped. Text without a '.' is returned whole."""
    return text.split(".", 1)[0].strip()


def truncate_findings(text: str) -> str:
    if len(text) <= MAX_FINDINGS_LENGTH:
        return text
    return text[: MAX_FINDINGS_LENGTH - len(ELLIPSIS)] + ELLIPSIS


def build_key_findings(bottlenecks: list[str], summary: str) -> str:
    """First two non-empty bottlenecks, else the first sentence of the summary.

    Parts are joined with ". " and the result is capped at 200 characters.
    """
    parts: list[str] = []
    for bottleneck in bottlenecks:
        trimmed = bottleneck.strip()
        if trimmed:
            parts.append(trimmed)
        if len(parts) == _MAX_FINDING_PARTS:
            break

    if not parts and summary:
        parts.append(first_sentence(summary))

    return truncate_findings(". ".join(parts))


def supplement_names(analysis: NarrativeAnalysis) -> tuple[str, ...]:
    return tuple(s.name_en for s in analysis.supplements if s.name_en.strip())


def build_analysis_summary(
    analysis: NarrativeAnalysis,
    health_score: int,
    subject_label: str | None = None,
    created_at: datetime | None = None,
) -> AnalysisSummary:
    """Compress ``analysis`` into an immutable AnalysisSummary.

    ``subject_label`` defaults to the analysis's milestone label.
    """
    return AnalysisSummary(
        date=created_at or datetime.now(UTC),
        subject_label=subject_label if subject_label is not None else analysis.milestone_label,
        health_score=health_score,
        key_findings_en=build_key_findings(analysis.bottlenecks_en, analysis.summary_en),
        key_findings_he=build_key_findings(analysis.bottlenecks_he, analysis.summary_he),
        directive_stop=analysis.directive_stop,
        directive_start=analysis.directive_start,
        directive_watch=analysis.directive_watch,
        supplements=supplement_names(analysis),
    )
