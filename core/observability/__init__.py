"""
Observability Module for the Order Sync Pipeline

Provides:
- Structured logging with correlation IDs
- Metrics collection (batches, order outcomes, processing times)
"""

from core.observability.metrics import (
    MetricsCollector,
    get_metrics,
    record_batch_started,
    record_batch_completed,
    record_batch_aborted,
    record_order_outcome,
    record_processing_time,
)

from core.observability.logging import (
    configure_logging,
    get_logger,
    CorrelationContext,
    with_correlation,
)

__all__ = [
    # Metrics
    "MetricsCollector",
    "get_metrics",
    "record_batch_started",
    "record_batch_completed",
    "record_batch_aborted",
    "record_order_outcome",
    "record_processing_time",
    # Logging
    "configure_logging",
    "get_logger",
    "CorrelationContext",
    "with_correlation",
]
