"""Tests for the pending and pattern sweeps."""

import datetime
from unittest.mock import Mock

import pytest

from pv_agent.core.utils import to_iso
from pv_agent.scheduler.scheduler import PharmacovigilanceScheduler

NOW = datetime.datetime(2024, 6, 1, 12, 0, tzinfo=datetime.timezone.utc)


def _ago(minutes):
    return to_iso(NOW - datetime.timedelta(minutes=minutes))


@pytest.fixture
def agent():
    workflow_agent = Mock()
    workflow_agent.classifier.pattern_min_events = 5
    workflow_agent.dispatch.return_value = Mock()
    workflow_agent.dispatch_pattern_detection.return_value = Mock()
    return workflow_agent


@pytest.fixture
def scheduler(agent, db_path):
    return PharmacovigilanceScheduler(agent, db_path=db_path, staleness_minutes=5, pattern_time="02:00")


class TestPendingSweep:
    """NEW cases older than the staleness threshold are dispatched."""

    def test_only_stale_new_cases_are_dispatched(self, scheduler, agent, make_event):
        stale = make_event(created_at=_ago(10))
        make_event(created_at=_ago(1))
        make_event(status="CONFIRMED", created_at=_ago(60))

        assert scheduler.run_pending_sweep(now=NOW) == 1
        agent.dispatch.assert_called_once_with(stale.id)

    def test_unreadable_timestamp_is_skipped(self, scheduler, agent, make_event):
        make_event(created_at="yesterday-ish")
        stale = make_event(created_at=_ago(10))

        assert scheduler.run_pending_sweep(now=NOW) == 1
        agent.dispatch.assert_called_once_with(stale.id)

    def test_naive_now_is_utc(self, scheduler, agent, make_event):
        make_event(created_at=_ago(10))

        assert scheduler.run_pending_sweep(now=NOW.replace(tzinfo=None)) == 1

    def test_rejected_dispatch_is_not_counted(self, scheduler, agent, make_event):
        agent.dispatch.return_value = None
        make_event(created_at=_ago(10))

        assert scheduler.run_pending_sweep(now=NOW) == 0
        agent.dispatch.assert_called_once()

    def test_failures_are_swallowed(self, scheduler, agent, make_event):
        agent.dispatch.side_effect = RuntimeError("pool gone")
        make_event(created_at=_ago(10))

        assert scheduler.run_pending_sweep(now=NOW) == 0

    def test_records_last_run(self, scheduler):
        scheduler.run_pending_sweep(now=NOW)

        assert scheduler.get_status()["last_pending_run"] == NOW.isoformat()


class TestPatternSweep:
    """Daily cross-case analysis."""

    def test_skipped_below_threshold(self, scheduler, agent, make_event):
        for _ in range(4):
            make_event()

        assert scheduler.run_pattern_sweep() is False
        agent.dispatch_pattern_detection.assert_not_called()

    def test_dispatched_at_threshold(self, scheduler, agent, make_event):
        for _ in range(5):
            make_event()

        assert scheduler.run_pattern_sweep() is True
        assert len(agent.dispatch_pattern_detection.call_args.args[0]) == 5

    def test_failures_are_swallowed(self, scheduler, agent, make_event):
        agent.dispatch_pattern_detection.side_effect = RuntimeError("boom")
        for _ in range(5):
            make_event()

        assert scheduler.run_pattern_sweep() is False


class TestLifecycle:
    """Start and stop of the timer thread."""

    def test_start_and_stop(self, scheduler):
        scheduler.start()
        try:
            status = scheduler.get_status()
            assert status["running"] is True
            assert len(status["next_jobs"]) == 2
            assert status["pattern_schedule"] == "daily at 02:00"
        finally:
            scheduler.stop()

        assert scheduler.get_status()["running"] is False
        assert scheduler.get_status()["next_jobs"] == []

    def test_start_twice_keeps_one_thread(self, scheduler):
        scheduler.start()
        try:
            thread = scheduler._scheduler_thread
            scheduler.start()
            assert scheduler._scheduler_thread is thread
            assert len(scheduler.get_status()["next_jobs"]) == 2
        finally:
            scheduler.stop()
