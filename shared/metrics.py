"""Prometheus metrics for engine observability.

Counters and histograms for scoring, memory updates and store I/O.
Exposed via /metrics endpoint.
"""

from prometheus_client import Counter, Histogram, make_asgi_app

# Engine counters
score_evaluations_total = Counter(
    "score_evaluations_total",
    "Total composite score evaluations",
    ["outcome"],  # outcome: available, unavailable
)

memory_updates_total = Counter(
    "memory_updates_total",
    "Total longitudinal memory updates",
)

# Store counters
memory_reads_total = Counter(
    "memory_reads_total",
    "Memory reads by the source that answered",
    ["source"],  # source: remote, cache, empty
)

memory_remote_writes_total = Counter(
    "memory_remote_writes_total",
    "Remote memory document writes",
    ["outcome"],  # outcome: ok, failed, skipped
)

# API counters
api_requests_total = Counter(
    "api_requests_total",
    "Total API requests",
    ["endpoint", "method", "status_code"],
)

# Histograms
memory_remote_read_duration_seconds = Histogram(
    "memory_remote_read_duration_seconds",
    "Duration of remote memory reads, including timeouts",
)

api_response_duration_seconds = Histogram(
    "api_response_duration_seconds",
    "Duration of API responses",
    ["endpoint"],
)


def create_metrics_app():
    """Create ASGI app for /metrics endpoint."""
    return make_asgi_app()
