"""Tests for the in-process metrics collector."""

import threading

from pv_agent.core.metrics import MetricsCollector


class TestMetricsCollector:
    """Counters and timers."""

    def test_labels_are_part_of_key(self):
        metrics = MetricsCollector()
        metrics.increment("llm_calls", labels={"status": "ok"})
        metrics.increment("llm_calls", labels={"status": "ok"})
        metrics.increment("llm_calls", labels={"status": "error"})

        assert metrics.get_counter("llm_calls", {"status": "ok"}) == 2
        assert metrics.get_counter("llm_calls", {"status": "error"}) == 1
        assert metrics.get_counter("llm_calls") == 0

    def test_concurrent_increments_are_not_lost(self):
        metrics = MetricsCollector()

        def work():
            for _ in range(1000):
                metrics.increment("workflow_runs")

        threads = [threading.Thread(target=work) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert metrics.get_counter("workflow_runs") == 8000

    def test_timer_records_duration(self):
        metrics = MetricsCollector()

        with metrics.timer("llm_call"):
            pass

        assert len(metrics.histograms["llm_call_duration_seconds"]) == 1

    def test_reset(self):
        metrics = MetricsCollector()
        metrics.increment("x")
        metrics.reset()

        assert metrics.get_counter("x") == 0
