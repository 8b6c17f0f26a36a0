"""Prometheus metrics definitions for wp-runtime.

Tracks instance bring-up and teardown:
- start duration and failures (by error code)
- running instance count
- forced kills after graceful shutdown timed out
- dependency installation attempts
"""

from prometheus_client import Counter, Gauge, Histogram

# =============================================================================
# Histogram Buckets
# =============================================================================
# Cold starts include mysqld --initialize (up to ~60s)
_BUCKETS_START = (
    0.5, 1, 2, 4, 8,
    15, 30, 60, 120,
)  # 9 buckets

# =============================================================================
# Instance Lifecycle Metrics
# =============================================================================

WPRT_START_DURATION = Histogram(
    "wprt_instance_start_duration_seconds",
    "Duration of successful instance bring-up",
    buckets=_BUCKETS_START,
)

WPRT_START_FAILURES = Counter(
    "wprt_instance_start_failures_total",
    "Total failed instance bring-ups",
    ["error_code"],  # ErrorCode value, or "unexpected"
)

WPRT_INSTANCES_RUNNING = Gauge(
    "wprt_instances_running",
    "Number of registered running instances",
)

WPRT_FORCED_KILLS = Counter(
    "wprt_forced_kills_total",
    "Processes force-killed after graceful stop timed out",
    ["process"],  # database, interpreter
)

# =============================================================================
# Dependency Installation Metrics
# =============================================================================

WPRT_INSTALL_ATTEMPTS = Counter(
    "wprt_install_attempts_total",
    "Dependency installation attempts",
    ["dependency", "outcome"],  # outcome: success, failure, declined
)
