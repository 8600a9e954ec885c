"""
Prometheus metrics for Claim Reserves.
"""

import time
from collections.abc import Callable
from functools import wraps
from typing import ParamSpec, TypeVar

from prometheus_client import Counter, Histogram, start_http_server

# ============================================================================
# Adjustment Metrics
# ============================================================================

adjustments_total = Counter(
    "claim_reserves_adjustments_total",
    "Adjustment requests by outcome",
    ["outcome"],  # approved, capped, rejected
)

cascade_reductions_total = Counter(
    "claim_reserves_cascade_reductions_total",
    "Coverages reduced to free shared-ceiling capacity",
)

# ============================================================================
# Ledger Metrics
# ============================================================================

ledger_commits_total = Counter(
    "claim_reserves_ledger_commits_total",
    "Coverage commits written by the ledger writer",
    ["movement_type"],
)

batch_rollbacks_total = Counter(
    "claim_reserves_batch_rollbacks_total",
    "Adjustment batches rolled back after a persistence failure",
)

batch_duration_seconds = Histogram(
    "claim_reserves_batch_duration_seconds",
    "Duration of adjustment batch processing in seconds",
    ["operation"],
    buckets=(0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0),
)

batches_processed_total = Counter(
    "claim_reserves_batches_processed_total",
    "Adjustment batches processed",
    ["operation", "status"],  # status: success, failure
)

P = ParamSpec("P")
R = TypeVar("R")


def track_batch_duration(operation: str) -> Callable[[Callable[P, R]], Callable[P, R]]:
    """Decorator recording duration and success/failure of a batch operation."""

    def decorator(func: Callable[P, R]) -> Callable[P, R]:
        @wraps(func)
        def wrapper(*args: P.args, **kwargs: P.kwargs) -> R:
            start = time.perf_counter()
            status = "success"
            try:
                return func(*args, **kwargs)
            except Exception:
                status = "failure"
                raise
            finally:
                batch_duration_seconds.labels(operation=operation).observe(
                    time.perf_counter() - start
                )
                batches_processed_total.labels(operation=operation, status=status).inc()

        return wrapper

    return decorator


def start_metrics_server(port: int = 9090) -> None:
    """Start Prometheus metrics HTTP server."""
    start_http_server(port)
