"""
Prometheus metrics for schema inference passes.

Provides counters and histograms for tracking:
- Documents analyzed and skipped
- Schema variants and child tables discovered
- Many-to-many relationship detections
- Analysis pass duration
"""

import time
from typing import Callable
from functools import wraps
from prometheus_client import (
    Counter,
    Histogram,
    generate_latest,
    CONTENT_TYPE_LATEST,
    CollectorRegistry,
)

# Create a dedicated registry
REGISTRY = CollectorRegistry()

# ========== Counters ==========

documents_processed_total = Counter(
    "documents_processed_total",
    "Total number of sampled documents seen by the inference core",
    ["status"],  # analyzed/skipped
    registry=REGISTRY,
)

schema_variants_detected_total = Counter(
    "schema_variants_detected_total",
    "Total number of distinct document schema signatures detected",
    registry=REGISTRY,
)

child_tables_detected_total = Counter(
    "child_tables_detected_total",
    "Total number of child tables proposed",
    ["table_type"],  # Array/NestedObject/ManyToMany
    registry=REGISTRY,
)

many_to_many_detected_total = Counter(
    "many_to_many_detected_total",
    "Total number of array fields classified as many-to-many reference data",
    registry=REGISTRY,
)

# ========== Histograms ==========

analysis_duration_seconds = Histogram(
    "analysis_duration_seconds",
    "Time to analyze one collection sample",
    ["status"],  # success/failure
    buckets=(0.001, 0.005, 0.01, 0.05, 0.1, 0.5, 1.0, 5.0),
    registry=REGISTRY,
)


# ========== Metric Decorators ==========

def track_analysis_time(func: Callable):
    """Decorator to track the duration of a collection analysis pass."""
    @wraps(func)
    def wrapper(*args, **kwargs):
        start_time = time.time()
        status = "success"
        try:
            return func(*args, **kwargs)
        except Exception:
            status = "failure"
            raise
        finally:
            duration = time.time() - start_time
            analysis_duration_seconds.labels(status=status).observe(duration)

    return wrapper


def get_metrics() -> bytes:
    """
    Get current metrics in Prometheus format.

    Returns:
        Metrics as bytes
    """
    return generate_latest(REGISTRY)


def get_metrics_content_type() -> str:
    """Get content type for metrics response."""
    return CONTENT_TYPE_LATEST
