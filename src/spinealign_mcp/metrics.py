"""Optional metrics collection for operational visibility.

Provides Prometheus-compatible metrics for monitoring SpineAlign MCP.
Metrics are disabled by default and can be enabled via environment variable.

Usage:
    # Enable metrics:
    export SPINEALIGN_METRICS_ENABLED=true

    # In code:
    from spinealign_mcp.metrics import track_operation

    with track_operation("measure_landmarks"):
        result = extract_measurements(session)

Metrics exported:
    - spinealign_operation_duration_seconds: Histogram of tool operation durations
    - spinealign_operation_total: Counter of operations by name and status
    - spinealign_simulation_step_total: Counter of simulation steps applied/skipped
"""

import logging
import os
import time
from collections.abc import Generator
from contextlib import contextmanager

from spinealign_mcp.constants import METRICS_ENV_VAR

logger = logging.getLogger("spinealign-mcp")

# Check if metrics are enabled via environment variable
METRICS_ENABLED = os.environ.get(METRICS_ENV_VAR, "").lower() == "true"


class NullMetric:
    """Null object pattern for metrics when disabled.

    Provides the same interface as Prometheus metrics but does nothing.
    """

    def labels(self, *args, **kwargs) -> "NullMetric":
        """Return self for chaining."""
        return self

    def inc(self, amount: float = 1) -> None:
        pass

    def observe(self, value: float) -> None:
        pass


if METRICS_ENABLED:
    try:
        from prometheus_client import Counter, Histogram

        logger.info("Metrics collection enabled (prometheus_client)")

        OPERATION_DURATION = Histogram(
            "spinealign_operation_duration_seconds",
            "Tool operation duration in seconds",
            ["operation"],
            buckets=(0.0005, 0.001, 0.0025, 0.005, 0.01, 0.025, 0.05, 0.1),
        )

        OPERATION_TOTAL = Counter(
            "spinealign_operation_total", "Total tool operations", ["operation", "status"]
        )

        SIMULATION_STEP_TOTAL = Counter(
            "spinealign_simulation_step_total",
            "Simulated correction steps by outcome",
            ["region", "step", "outcome"],
        )

    except ImportError:
        logger.warning(
            f"{METRICS_ENV_VAR}=true but prometheus_client not installed. "
            "Install with: pip install 'spinealign-mcp[metrics]'"
        )
        METRICS_ENABLED = False
        OPERATION_DURATION = NullMetric()
        OPERATION_TOTAL = NullMetric()
        SIMULATION_STEP_TOTAL = NullMetric()

else:
    OPERATION_DURATION = NullMetric()
    OPERATION_TOTAL = NullMetric()
    SIMULATION_STEP_TOTAL = NullMetric()


@contextmanager
def track_operation(operation: str) -> Generator[None, None, None]:
    """Context manager to track operation duration and status.

    Args:
        operation: Name of the tool operation (e.g., "simulate_correction")

    Yields:
        None
    """
    start_time = time.perf_counter()
    status = "success"

    try:
        yield
    except Exception:
        status = "error"
        raise
    finally:
        duration = time.perf_counter() - start_time
        OPERATION_DURATION.labels(operation=operation).observe(duration)
        OPERATION_TOTAL.labels(operation=operation, status=status).inc()

        if logger.isEnabledFor(logging.DEBUG):
            logger.debug(f"Metric: {operation} {status} in {duration:.4f}s")


def record_simulation_step(region: str, step: str, applied: bool) -> None:
    """Count one simulation step as applied or skipped."""
    outcome = "applied" if applied else "skipped"
    SIMULATION_STEP_TOTAL.labels(region=region, step=step, outcome=outcome).inc()


def is_metrics_enabled() -> bool:
    """Check if metrics collection is enabled.

    Returns:
        True if metrics are enabled and prometheus_client is available
    """
    return METRICS_ENABLED
