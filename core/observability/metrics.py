"""
Metrics Collection for the Order Sync Pipeline

Collects and exposes metrics for:
- Batch lifecycle (started, completed, aborted)
- Order outcomes by sync state
- Processing times (average, p95)

Metrics are held in-memory for the life of the worker process.
"""

import statistics
from collections import defaultdict
from dataclasses import dataclass, field
from threading import Lock
from typing import Any, Dict, List, Optional


# =============================================================================
# Metric Data Classes
# =============================================================================

@dataclass
class BatchMetrics:
    """Metrics for batch execution."""
    started: int = 0
    completed: int = 0
    aborted: int = 0
    in_progress: int = 0

    # Abort reasons (configuration, token, ...)
    aborted_by_reason: Dict[str, int] = field(default_factory=lambda: defaultdict(int))


@dataclass
class OrderMetrics:
    """Per-order outcome counters keyed by sync state."""
    processed: int = 0
    by_state: Dict[str, int] = field(default_factory=lambda: defaultdict(int))


@dataclass
class TimingMetrics:
    """Processing time metrics."""
    # Raw timing samples (keep last N for percentile calculations)
    samples: List[float] = field(default_factory=list)
    max_samples: int = 1000

    by_stage: Dict[str, List[float]] = field(default_factory=lambda: defaultdict(list))

    def add_sample(self, duration_ms: float, stage: str = None):
        """Add a timing sample."""
        self.samples.append(duration_ms)
        if len(self.samples) > self.max_samples:
            self.samples = self.samples[-self.max_samples:]

        if stage:
            self.by_stage[stage].append(duration_ms)
            if len(self.by_stage[stage]) > self.max_samples:
                self.by_stage[stage] = self.by_stage[stage][-self.max_samples:]

    def get_average(self, stage: str = None) -> float:
        """Get average processing time."""
        samples = self.by_stage.get(stage, []) if stage else self.samples
        return statistics.mean(samples) if samples else 0.0

    def get_p95(self, stage: str = None) -> float:
        """Get 95th percentile processing time."""
        samples = self.by_stage.get(stage, []) if stage else self.samples
        if not samples:
            return 0.0
        sorted_samples = sorted(samples)
        idx = int(len(sorted_samples) * 0.95)
        return sorted_samples[min(idx, len(sorted_samples) - 1)]


# =============================================================================
# Metrics Collector (Singleton)
# =============================================================================

class MetricsCollector:
    """
    Thread-safe metrics collector for the order sync pipeline.

    Usage:
        metrics = MetricsCollector.instance()
        metrics.record_batch_started("batch-001", order_count=3)
        metrics.record_order_outcome("SUCCESS", duration_ms=420)
    """

    _instance: Optional["MetricsCollector"] = None
    _lock = Lock()

    def __init__(self):
        self.batches = BatchMetrics()
        self.orders = OrderMetrics()
        self.timings = TimingMetrics()
        self._lock = Lock()

    @classmethod
    def instance(cls) -> "MetricsCollector":
        """Get singleton instance."""
        if cls._instance is None:
            with cls._lock:
                if cls._instance is None:
                    cls._instance = cls()
        return cls._instance

    # =========================================================================
    # Batch Metrics
    # =========================================================================

    def record_batch_started(self, batch_id: str, order_count: int = 0):
        """Record a batch start."""
        with self._lock:
            self.batches.started += 1
            self.batches.in_progress += 1

    def record_batch_completed(self, batch_id: str, duration_ms: float = None):
        """Record a batch that ran through all of its orders."""
        with self._lock:
            self.batches.completed += 1
            self.batches.in_progress = max(0, self.batches.in_progress - 1)
            if duration_ms:
                self.timings.add_sample(duration_ms, "batch")

    def record_batch_aborted(self, batch_id: str, reason: str):
        """Record a batch stopped before any order was processed."""
        with self._lock:
            self.batches.aborted += 1
            self.batches.in_progress = max(0, self.batches.in_progress - 1)
            self.batches.aborted_by_reason[reason] += 1

    # =========================================================================
    # Order Metrics
    # =========================================================================

    def record_order_outcome(self, state: str, duration_ms: float = None):
        """Record the terminal sync state of one order."""
        with self._lock:
            self.orders.processed += 1
            self.orders.by_state[state] += 1
            if duration_ms:
                self.timings.add_sample(duration_ms, "order")

    # =========================================================================
    # Timing Metrics
    # =========================================================================

    def record_processing_time(self, stage: str, duration_ms: float):
        """Record a processing time sample."""
        with self._lock:
            self.timings.add_sample(duration_ms, stage)

    def get_timing_stats(self, stage: str = None) -> Dict[str, float]:
        """Get timing statistics for a stage."""
        with self._lock:
            return {
                "average_ms": self.timings.get_average(stage),
                "p95_ms": self.timings.get_p95(stage),
                "sample_count": len(self.timings.by_stage.get(stage, []) if stage else self.timings.samples),
            }

    # =========================================================================
    # Summary
    # =========================================================================

    def get_summary(self) -> Dict[str, Any]:
        """Get a summary of all metrics."""
        with self._lock:
            return {
                "batches": {
                    "started": self.batches.started,
                    "completed": self.batches.completed,
                    "aborted": self.batches.aborted,
                    "in_progress": self.batches.in_progress,
                    "aborted_by_reason": dict(self.batches.aborted_by_reason),
                },
                "orders": {
                    "processed": self.orders.processed,
                    "by_state": dict(self.orders.by_state),
                },
                "timings": {
                    "overall": {
                        "average_ms": self.timings.get_average(),
                        "p95_ms": self.timings.get_p95(),
                    },
                    "by_stage": {
                        stage: {
                            "average_ms": self.timings.get_average(stage),
                            "p95_ms": self.timings.get_p95(stage),
                        }
                        for stage in self.timings.by_stage.keys()
                    },
                },
            }


# =============================================================================
# Module-level convenience functions
# =============================================================================

def get_metrics() -> MetricsCollector:
    """Get the global metrics collector."""
    return MetricsCollector.instance()


def record_batch_started(batch_id: str, order_count: int = 0):
    """Record a batch start."""
    get_metrics().record_batch_started(batch_id, order_count)


def record_batch_completed(batch_id: str, duration_ms: float = None):
    """Record a batch completion."""
    get_metrics().record_batch_completed(batch_id, duration_ms)


def record_batch_aborted(batch_id: str, reason: str):
    """Record a batch abort."""
    get_metrics().record_batch_aborted(batch_id, reason)


def record_order_outcome(state: str, duration_ms: float = None):
    """Record an order outcome."""
    get_metrics().record_order_outcome(state, duration_ms)


def record_processing_time(stage: str, duration_ms: float):
    """Record a processing time sample."""
    get_metrics().record_processing_time(stage, duration_ms)
