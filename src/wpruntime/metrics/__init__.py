"""Prometheus metrics for wp-runtime.

Import this module to register all metrics with the default registry.
"""

from wpruntime.metrics.collector import (
    WPRT_FORCED_KILLS,
    WPRT_INSTALL_ATTEMPTS,
    WPRT_INSTANCES_RUNNING,
    WPRT_START_DURATION,
    WPRT_START_FAILURES,
)

__all__ = [
    "WPRT_FORCED_KILLS",
    "WPRT_INSTALL_ATTEMPTS",
    "WPRT_INSTANCES_RUNNING",
    "WPRT_START_DURATION",
    "WPRT_START_FAILURES",
]
