"""RFC 9457 Problem Details exception hierarchy.

All API errors extend ProblemDetailError and are converted to
application/problem+json responses by the exception handler middleware.
"""


class ProblemDetailError(Exception):
    def __init__(
        self,
        type_uri: str,
        title: str,
        status: int,
        detail: str,
        violations: list[dict] | None = None,
    ):
        self.type_uri = type_uri
        self.title = title
        self.status = status
        self.detail = detail
        self.violations = violations
        super().__init__(detail)


class SeriesValidationError(ProblemDetailError):
    def __init__(self, violations: list[dict]):
        super().__init__(
            type_uri="https://api.health-insight.dev/problems/series-validation-error",
            title="Validation Error",
            status=422,
            detail=f"Metric series contains {len(violations)} validation error(s)",
            violations=violations,
        )


class MemoryNotFoundError(ProblemDetailError):
    def __init__(self, subject_id: str):
        super().__init__(
            type_uri="https://api.health-insight.dev/problems/memory-not-found",
            title="Memory Not Found",
            status=404,
            detail=f"No memory is stored for subject '{subject_id}'",
        )


class ScoreUnavailableError(ProblemDetailError):
    def __init__(self):
        super().__init__(
            type_uri="https://api.health-insight.dev/problems/score-unavailable",
            title="Score Unavailable",
            status=422,
            detail=(
                "No health_score was supplied and the metric series has no readiness, "
                "sleep, HRV or strain data to compute one."
            ),
        )
