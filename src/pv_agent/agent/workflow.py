"""
Workflow agent: classify a case, derive follow-up actions from its severity,
and move it out of NEW.

Runs are dispatched onto a bounded worker pool and never raise to the caller.
A case id is claimed from dispatch until its run finishes, so it is queued or
processed by at most one run at a time; a second trigger for an id that is
already in flight is skipped.
"""

import datetime
import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from pathlib import Path
from typing import Callable, List, Optional, Sequence, Set

from pv_agent.core.config import (
    DB_PATH,
    FOLLOW_UP_DUE_DAYS,
    WORKFLOW_MAX_WORKERS,
    WORKFLOW_QUEUE_CAPACITY,
)
from pv_agent.core.db import get_connection, get_event_by_id, save_event, save_follow_up_actions
from pv_agent.core.exceptions import NotFoundError
from pv_agent.core.metrics import get_metrics
from pv_agent.core.models import ESCALATING_SEVERITIES, AdverseEvent, FollowUpAction
from pv_agent.core.utils import now_utc, to_iso

logger = logging.getLogger(__name__)

# (action_type, description, assigned_to)
_INVESTIGATION = ("INVESTIGATION", "Immediate investigation required due to severe adverse event", "Safety Team")
_REGULATORY = ("REGULATORY_SUBMISSION", "Prepare regulatory submission for severe adverse event", "Regulatory Team")
_PATIENT_FOLLOW_UP = ("PATIENT_FOLLOW_UP", "Schedule patient follow-up for moderate adverse event", "Clinical Team")
_SAFETY_REVIEW = ("DRUG_SAFETY_REVIEW", "Review drug safety profile based on new adverse event", "Drug Safety Team")


def determine_follow_up_actions(
    event: AdverseEvent,
    now: Optional[datetime.datetime] = None,
    due_days: int = FOLLOW_UP_DUE_DAYS,
) -> List[FollowUpAction]:
    """
    Actions for one workflow run, derived from severity alone:
    SEVERE / LIFE_THREATENING -> investigation + regulatory submission,
    MODERATE -> patient follow-up, and always a drug safety review.
    """
    if event.severity in ESCALATING_SEVERITIES:
        templates = [_INVESTIGATION, _REGULATORY]
    elif event.severity == "MODERATE":
        templates = [_PATIENT_FOLLOW_UP]
    else:
        templates = []
    templates.append(_SAFETY_REVIEW)

    due_date = to_iso((now or now_utc()) + datetime.timedelta(days=due_days))
    return [
        FollowUpAction(
            adverse_event_id=event.id,
            action_type=action_type,
            description=description,
            assigned_to=assigned_to,
            due_date=due_date,
        )
        for action_type, description, assigned_to in templates
    ]


def next_status(severity: Optional[str]) -> str:
    return "UNDER_INVESTIGATION" if severity in ESCALATING_SEVERITIES else "CONFIRMED"


class PharmacovigilanceAgent:
    """
    Orchestrates classification, follow-up actions and status updates per case.

    Args:
        classifier: AdverseEventClassifier
        db_path: SQLite database with the cases
        max_workers: concurrent workflow runs
        queue_capacity: runs allowed to wait for a worker before dispatch is refused
        due_days: follow-up action due date offset
    """

    def __init__(
        self,
        classifier,
        db_path: Path = DB_PATH,
        max_workers: int = WORKFLOW_MAX_WORKERS,
        queue_capacity: int = WORKFLOW_QUEUE_CAPACITY,
        due_days: int = FOLLOW_UP_DUE_DAYS,
    ):
        self.classifier = classifier
        self.db_path = db_path
        self.due_days = due_days

        self._executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="pv-workflow")
        self._slots = threading.BoundedSemaphore(max_workers + queue_capacity)
        self._in_flight: Set[int] = set()
        self._in_flight_lock = threading.Lock()

    # ---- per-case exclusion ----

    def _claim(self, event_id: int) -> bool:
        with self._in_flight_lock:
            if event_id in self._in_flight:
                return False
            self._in_flight.add(event_id)
            return True

    def _release(self, event_id: int) -> None:
        with self._in_flight_lock:
            self._in_flight.discard(event_id)

    def is_processing(self, event_id: int) -> bool:
        with self._in_flight_lock:
            return event_id in self._in_flight

    # ---- synchronous run ----

    def process_event(self, event_id: int) -> Optional[str]:
        """
        Run the full workflow for one case on the calling thread.

        Returns the case's new status, or None when the run was skipped or
        failed. Never raises.
        """
        if not self._claim(event_id):
            self._skip_duplicate(event_id)
            return None
        return self._process_claimed(event_id)

    def _skip_duplicate(self, event_id: int) -> None:
        logger.warning(f"Adverse event {event_id} is already queued or being processed; skipping duplicate trigger")
        get_metrics().increment("workflow_runs", labels={"status": "skipped"})

    def _process_claimed(self, event_id: int) -> Optional[str]:
        """Workflow run for an id the caller has already claimed; releases the claim."""
        metrics = get_metrics()
        try:
            with metrics.timer("workflow_run"):
                status = self._run_workflow(event_id)
            metrics.increment("workflow_runs", labels={"status": "completed"})
            return status
        except NotFoundError as e:
            logger.error(f"Workflow aborted: {e}")
            metrics.increment("workflow_runs", labels={"status": "failed"})
            return None
        except Exception as e:
            logger.error(f"Error in automated workflow for adverse event {event_id}: {e}", exc_info=True)
            metrics.increment("workflow_runs", labels={"status": "failed"})
            return None
        finally:
            self._release(event_id)

    def _run_workflow(self, event_id: int) -> str:
        logger.info(f"Starting automated workflow for adverse event ID: {event_id}")
        conn = get_connection(self.db_path)
        try:
            event = get_event_by_id(conn, event_id)
            if event is None:
                raise NotFoundError(f"Adverse event not found: {event_id}")

            try:
                self.classifier.classify(event, conn)
            except Exception as e:
                logger.error(f"Classification failed for {event.case_number}, continuing workflow: {e}")

            actions = determine_follow_up_actions(event, now_utc(), self.due_days)
            save_follow_up_actions(conn, actions)
            get_metrics().increment("follow_up_actions_created", len(actions))
            for action in actions:
                logger.info(
                    f"Created follow-up action: {action.action_type} for case {event.case_number} "
                    f"(assigned to {action.assigned_to}, due {action.due_date})"
                )

            event.status = next_status(event.severity)
            save_event(conn, event)
            logger.info(f"Completed automated workflow for {event.case_number}: status {event.status}")
            return event.status
        finally:
            conn.close()

    # ---- dispatch ----

    def _submit(self, label: str, fn: Callable, *args) -> Optional[Future]:
        if not self._slots.acquire(blocking=False):
            logger.warning(f"Workflow backlog full; rejecting {label}")
            get_metrics().increment("workflow_runs", labels={"status": "rejected"})
            return None
        try:
            future = self._executor.submit(fn, *args)
        except RuntimeError as e:
            self._slots.release()
            logger.warning(f"Cannot dispatch {label}: {e}")
            return None

        def _on_done(f: Future) -> None:
            self._slots.release()
            if not f.cancelled() and f.exception() is not None:
                logger.error(f"Background task {label} failed: {f.exception()}")

        future.add_done_callback(_on_done)
        return future

    def dispatch(self, event_id: int) -> Optional[Future]:
        """
        Queue a workflow run; returns its Future, or None if the case is
        already queued or running, or the backlog is full.
        """
        if not self._claim(event_id):
            self._skip_duplicate(event_id)
            return None
        future = self._submit(f"workflow for event {event_id}", self._process_claimed, event_id)
        if future is None:
            self._release(event_id)
        return future

    def dispatch_pattern_detection(self, events: Sequence[AdverseEvent]) -> Optional[Future]:
        return self._submit("pattern detection", self._run_pattern_detection, list(events))

    def _run_pattern_detection(self, events: List[AdverseEvent]):
        try:
            return self.classifier.detect_patterns(events)
        except Exception as e:
            logger.error(f"Pattern detection failed: {e}", exc_info=True)
            return None

    def shutdown(self, wait: bool = True) -> None:
        self._executor.shutdown(wait=wait)
        logger.info("Workflow agent stopped")
