"""
Scheduler for periodic adverse event processing.

Implements:
- Pending sweep: cases still NEW after the staleness threshold are dispatched
  to the workflow agent
- Daily pattern sweep: cross-case pattern detection over all cases

Sweeps only dispatch work to the agent's pool; they never classify inline.
"""

import datetime
import logging
import threading
import time
from pathlib import Path
from typing import Optional

import schedule

from pv_agent.core.config import (
    DB_PATH,
    LOG_FILE,
    LOG_LEVEL,
    PATTERN_ANALYSIS_TIME,
    PENDING_STALENESS_MINUTES,
    PENDING_SWEEP_INTERVAL_MINUTES,
)
from pv_agent.core.db import find_all_events, find_events_by_status, get_connection, init_db
from pv_agent.core.metrics import get_metrics
from pv_agent.core.utils import now_utc, parse_iso

logger = logging.getLogger(__name__)


class PharmacovigilanceScheduler:
    """
    Owns its own schedule.Scheduler and timer thread; nothing is registered
    on the schedule module's default scheduler.

    Default schedules:
    - Pending sweep: every 5 minutes
    - Pattern sweep: daily at 02:00
    """

    def __init__(
        self,
        agent,
        db_path: Path = DB_PATH,
        sweep_interval_minutes: int = PENDING_SWEEP_INTERVAL_MINUTES,
        staleness_minutes: int = PENDING_STALENESS_MINUTES,
        pattern_time: str = PATTERN_ANALYSIS_TIME,
        poll_seconds: float = 1.0,
    ):
        """
        Initialize the scheduler.

        Args:
            agent: PharmacovigilanceAgent that receives dispatched work
            db_path: SQLite database with the cases
            sweep_interval_minutes: Minutes between pending sweeps
            staleness_minutes: Minimum age of a NEW case before it is swept
            pattern_time: Daily time for pattern detection (HH:MM format)
            poll_seconds: How often the timer thread checks for due jobs
        """
        self.agent = agent
        self.db_path = db_path
        self.sweep_interval_minutes = sweep_interval_minutes
        self.staleness_minutes = staleness_minutes
        self.pattern_time = pattern_time
        self.poll_seconds = poll_seconds

        self._jobs = schedule.Scheduler()
        self._stop_event = threading.Event()
        self._scheduler_thread: Optional[threading.Thread] = None
        self._last_pending_run: Optional[datetime.datetime] = None
        self._last_pattern_run: Optional[datetime.datetime] = None

    def run_pending_sweep(self, now: Optional[datetime.datetime] = None) -> int:
        """
        Dispatch a workflow run for every NEW case created before now - staleness.

        Returns the number of cases dispatched. Failures are logged, not raised.
        """
        now = now or now_utc()
        if now.tzinfo is None:
            now = now.replace(tzinfo=datetime.timezone.utc)
        cutoff = now - datetime.timedelta(minutes=self.staleness_minutes)
        dispatched = 0
        try:
            conn = get_connection(self.db_path)
            try:
                pending = find_events_by_status(conn, "NEW")
            finally:
                conn.close()

            for event in pending:
                if not event.created_at:
                    continue
                try:
                    created_at = parse_iso(event.created_at)
                except ValueError as e:
                    logger.warning(
                        f"[SCHEDULER] Skipping {event.case_number}: unreadable created_at "
                        f"'{event.created_at}' ({e})"
                    )
                    continue
                if created_at < cutoff:
                    logger.info(f"[SCHEDULER] Processing pending adverse event: {event.case_number}")
                    if self.agent.dispatch(event.id) is not None:
                        dispatched += 1

            self._last_pending_run = now
            get_metrics().increment("scheduler_sweeps", labels={"sweep": "pending", "status": "success"})
            logger.info(f"[SCHEDULER] Pending sweep dispatched {dispatched} of {len(pending)} NEW events")
        except Exception as e:
            get_metrics().increment("scheduler_sweeps", labels={"sweep": "pending", "status": "error"})
            logger.error(f"[SCHEDULER] Error processing pending adverse events: {e}", exc_info=True)
        return dispatched

    def run_pattern_sweep(self) -> bool:
        """
        Dispatch pattern detection over all cases. Returns True if dispatched;
        below the minimum case count nothing is dispatched.
        """
        try:
            conn = get_connection(self.db_path)
            try:
                events = find_all_events(conn)
            finally:
                conn.close()

            self._last_pattern_run = now_utc()
            if len(events) < self.agent.classifier.pattern_min_events:
                logger.info(f"[SCHEDULER] Skipping pattern analysis: only {len(events)} adverse events")
                return False

            logger.info(f"[SCHEDULER] Dispatching pattern analysis for {len(events)} adverse events")
            dispatched = self.agent.dispatch_pattern_detection(events) is not None
            get_metrics().increment("scheduler_sweeps", labels={"sweep": "pattern", "status": "success"})
            return dispatched
        except Exception as e:
            get_metrics().increment("scheduler_sweeps", labels={"sweep": "pattern", "status": "error"})
            logger.error(f"[SCHEDULER] Error performing pattern analysis: {e}", exc_info=True)
            return False

    def _scheduler_loop(self):
        """Main scheduler loop."""
        logger.info("[SCHEDULER] Starting scheduler loop...")
        while not self._stop_event.is_set():
            self._jobs.run_pending()
            self._stop_event.wait(self.poll_seconds)

    def start(self, run_initial_sweep: bool = False):
        """
        Start the scheduler.

        Args:
            run_initial_sweep: If True, run a pending sweep immediately on start
        """
        if self._scheduler_thread and self._scheduler_thread.is_alive():
            logger.warning("[SCHEDULER] Scheduler already running")
            return

        self._stop_event.clear()
        self._jobs.every(self.sweep_interval_minutes).minutes.do(self.run_pending_sweep)
        logger.info(f"[SCHEDULER] Pending sweep scheduled every {self.sweep_interval_minutes} minutes")
        self._jobs.every().day.at(self.pattern_time).do(self.run_pattern_sweep)
        logger.info(f"[SCHEDULER] Pattern analysis scheduled daily at {self.pattern_time}")

        if run_initial_sweep:
            logger.info("[SCHEDULER] Running initial pending sweep...")
            self.run_pending_sweep()

        self._scheduler_thread = threading.Thread(
            target=self._scheduler_loop, name="pv-scheduler", daemon=True
        )
        self._scheduler_thread.start()
        logger.info("[SCHEDULER] Scheduler started")

    def stop(self):
        """Stop the scheduler."""
        self._stop_event.set()
        if self._scheduler_thread:
            self._scheduler_thread.join(timeout=5)
            self._scheduler_thread = None
        self._jobs.clear()
        get_metrics().log_summary()
        logger.info("[SCHEDULER] Scheduler stopped")

    def get_status(self) -> dict:
        """Get current scheduler status."""
        return {
            "running": bool(self._scheduler_thread and self._scheduler_thread.is_alive()),
            "sweep_interval_minutes": self.sweep_interval_minutes,
            "staleness_minutes": self.staleness_minutes,
            "pattern_schedule": f"daily at {self.pattern_time}",
            "last_pending_run": self._last_pending_run.isoformat() if self._last_pending_run else None,
            "last_pattern_run": self._last_pattern_run.isoformat() if self._last_pattern_run else None,
            "next_jobs": [str(job) for job in self._jobs.get_jobs()],
        }


def build_agent(db_path: Path = DB_PATH):
    """Wire the LLM client, classifier and workflow agent from configuration."""
    from pv_agent.agent.workflow import PharmacovigilanceAgent
    from pv_agent.pipeline.classification.classifier import AdverseEventClassifier
    from pv_agent.pipeline.llm_client import OllamaLLMClient

    classifier = AdverseEventClassifier(OllamaLLMClient(), db_path=db_path)
    return PharmacovigilanceAgent(classifier, db_path=db_path)


# CLI entry point
def main():
    """CLI entry point for the scheduler."""
    import argparse

    from pv_agent.core.logging_utils import configure_logging
    from pv_agent.core.seed import seed_sample_data

    parser = argparse.ArgumentParser(description="Pharmacovigilance Agent Scheduler")
    parser.add_argument(
        "--mode",
        choices=["scheduler", "sweep-once", "patterns-once"],
        default="scheduler",
        help="Run mode: scheduler (continuous) or a single sweep",
    )
    parser.add_argument(
        "--sweep-interval",
        type=int,
        default=PENDING_SWEEP_INTERVAL_MINUTES,
        help=f"Minutes between pending sweeps (default: {PENDING_SWEEP_INTERVAL_MINUTES})",
    )
    parser.add_argument(
        "--staleness",
        type=int,
        default=PENDING_STALENESS_MINUTES,
        help=f"Minutes a NEW case waits before the sweep picks it up (default: {PENDING_STALENESS_MINUTES})",
    )
    parser.add_argument(
        "--pattern-time",
        default=PATTERN_ANALYSIS_TIME,
        help=f"Daily time for pattern analysis (default: {PATTERN_ANALYSIS_TIME})",
    )
    parser.add_argument("--db", type=Path, default=DB_PATH, help="SQLite database path")
    parser.add_argument("--init-db", action="store_true", help="Create tables before running")
    parser.add_argument("--seed", action="store_true", help="Insert sample data if the store is empty")
    parser.add_argument(
        "--run-initial-sweep",
        action="store_true",
        help="Run a pending sweep immediately on scheduler start",
    )
    parser.add_argument(
        "--log-level",
        default=LOG_LEVEL,
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level",
    )
    parser.add_argument("--log-file", type=Path, default=None, help=f"Also log to a file (e.g. {LOG_FILE})")

    args = parser.parse_args()
    configure_logging(args.log_level, args.log_file)

    if args.init_db or args.seed:
        conn = get_connection(args.db)
        try:
            init_db(conn)
            if args.seed:
                seed_sample_data(conn)
        finally:
            conn.close()

    agent = build_agent(args.db)
    scheduler = PharmacovigilanceScheduler(
        agent,
        db_path=args.db,
        sweep_interval_minutes=args.sweep_interval,
        staleness_minutes=args.staleness,
        pattern_time=args.pattern_time,
    )

    if args.mode == "sweep-once":
        scheduler.run_pending_sweep()
        agent.shutdown(wait=True)
        get_metrics().log_summary()
        return

    if args.mode == "patterns-once":
        scheduler.run_pattern_sweep()
        agent.shutdown(wait=True)
        get_metrics().log_summary()
        return

    scheduler.start(run_initial_sweep=args.run_initial_sweep)

    # Keep main thread alive
    try:
        while True:
            time.sleep(60)
            logger.debug(f"Scheduler status: {scheduler.get_status()}")
    except KeyboardInterrupt:
        logger.info("Shutting down scheduler...")
        scheduler.stop()
        agent.shutdown(wait=True)


if __name__ == "__main__":
    main()
