"""
In-process counters and duration summaries for the pipeline.

Recorded metrics:
- llm_calls{status=ok|error}, llm_call_duration_seconds
- extractions{outcome=ok|degraded}
- analyses{type=...,status=...}
- workflow_runs{status=completed|failed|skipped|rejected}
- follow_up_actions_created
- scheduler_sweeps{sweep=pending|pattern}

Counters are updated from workflow pool threads, so every mutation holds a lock.
"""

import logging
import threading
import time
from collections import defaultdict
from contextlib import contextmanager
from typing import Dict, List, Optional

logger = logging.getLogger(__name__)


class MetricsCollector:
    """Thread-safe counters and histograms keyed by name plus labels."""

    def __init__(self):
        self._lock = threading.Lock()
        self.counters: Dict[str, int] = defaultdict(int)
        self.histograms: Dict[str, List[float]] = defaultdict(list)

    def increment(self, metric_name: str, value: int = 1, labels: Optional[Dict[str, str]] = None):
        key = self._make_key(metric_name, labels)
        with self._lock:
            self.counters[key] += value
            total = self.counters[key]
        logger.debug(f"[METRIC] {key} += {value} (total: {total})")

    def observe(self, metric_name: str, value: float, labels: Optional[Dict[str, str]] = None):
        key = self._make_key(metric_name, labels)
        with self._lock:
            self.histograms[key].append(value)

    @contextmanager
    def timer(self, metric_name: str, labels: Optional[Dict[str, str]] = None):
        """
        Time the enclosed block and record it as ``<metric_name>_duration_seconds``.

        Unlike a name-keyed start/stop pair this is safe when the same metric is
        timed concurrently from several threads.
        """
        started = time.monotonic()
        try:
            yield
        finally:
            self.observe(f"{metric_name}_duration_seconds", time.monotonic() - started, labels)

    def get_counter(self, metric_name: str, labels: Optional[Dict[str, str]] = None) -> int:
        with self._lock:
            return self.counters.get(self._make_key(metric_name, labels), 0)

    def _make_key(self, metric_name: str, labels: Optional[Dict[str, str]]) -> str:
        if labels:
            label_str = ",".join(f"{k}={v}" for k, v in sorted(labels.items()))
            return f"{metric_name}{{{label_str}}}"
        return metric_name

    def log_summary(self):
        """Log all counters and histogram summaries."""
        with self._lock:
            counters = dict(self.counters)
            histograms = {k: list(v) for k, v in self.histograms.items()}

        logger.info("=" * 70)
        logger.info("METRICS SUMMARY")
        logger.info("=" * 70)

        if counters:
            logger.info("Counters:")
            for key, value in sorted(counters.items()):
                logger.info(f"  {key}: {value}")

        if histograms:
            logger.info("Durations:")
            for key, values in sorted(histograms.items()):
                if values:
                    logger.info(
                        f"  {key}: count={len(values)} avg={sum(values) / len(values):.2f} "
                        f"min={min(values):.2f} max={max(values):.2f}"
                    )

        logger.info("=" * 70)

    def reset(self):
        with self._lock:
            self.counters.clear()
            self.histograms.clear()


# Global metrics instance
_metrics = MetricsCollector()


def get_metrics() -> MetricsCollector:
    """Get the global metrics collector."""
    return _metrics
