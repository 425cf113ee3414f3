"""Committee snapshot scheduler.

Holds a single APScheduler one-shot job for the next snapshot. Arming a new
run always removes the previous job first, so at most one is pending. Overdue
periods (server down across a boundary, or a shortened term) are caught up in
a bounded loop before the next job is armed.

A biannual cron job runs ``snapshot_if_due`` as a safety net; it only takes a
snapshot when the latest period has already ended, so it cannot duplicate one
the one-shot job just took.
"""

import itertools
import logging
import threading
from collections.abc import Callable
from datetime import datetime

from apscheduler.jobstores.base import JobLookupError
from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.cron import CronTrigger
from apscheduler.triggers.date import DateTrigger
from sqlalchemy.orm import Session

from memberhub.models.committee import CommitteeSnapshot
from memberhub.services.committee import CommitteeService, add_term, get_committee_service

logger = logging.getLogger("memberhub.scheduler")

NEXT_SNAPSHOT_JOB_ID = "committee-next-snapshot"
FALLBACK_JOB_ID = "committee-snapshot-fallback"
MAX_CATCH_UP = 50


class SnapshotScheduler:
    """Owns the "next snapshot" timer and re-arms it after every run or settings change."""

    def __init__(
        self,
        session_factory: Callable[[], Session],
        committee: CommitteeService | None = None,
        scheduler: BackgroundScheduler | None = None,
        clock: Callable[[], datetime] = datetime.utcnow,
        max_catch_up: int = MAX_CATCH_UP,
    ) -> None:
        self.session_factory = session_factory
        self.committee = committee or get_committee_service()
        self.scheduler = scheduler or BackgroundScheduler(timezone="UTC")
        self.clock = clock
        self.max_catch_up = max_catch_up
        self.next_run: datetime | None = None
        self._job = None
        self._job_seq = itertools.count(1)
        self._lock = threading.RLock()

    # --- timer handle ---

    def arm(self, run_at: datetime, callback: Callable[..., None]) -> None:
        """Replace any pending run with one at ``run_at`` (naive UTC).

        ``callback`` is called with the id of the job that fired as ``job_id``.
        """
        with self._lock:
            self.cancel()
            # Fresh id per run: APScheduler removes a fired job by id after dispatching it
            job_id = f"{NEXT_SNAPSHOT_JOB_ID}-{next(self._job_seq)}"
            self._job = self.scheduler.add_job(
                callback,
                trigger=DateTrigger(run_date=run_at, timezone="UTC"),
                id=job_id,
                kwargs={"job_id": job_id},
                misfire_grace_time=None,
            )
            self.next_run = run_at

    @property
    def pending_job_id(self) -> str | None:
        return self._job.id if self._job is not None else None

    def cancel(self) -> None:
        with self._lock:
            if self._job is not None:
                try:
                    self._job.remove()
                except JobLookupError:
                    # Already fired and removed by APScheduler
                    pass
            self._job = None
            self.next_run = None

    # --- scheduling ---
    #
    # Everything that may insert a snapshot runs under self._lock, so the
    # one-shot job, the cron fallback and request threads never check and
    # insert the same period concurrently.

    def compute_next_run(self, db: Session) -> datetime:
        """When the current period ends, or one term from now if there is no snapshot yet."""
        latest = self.committee.latest_snapshot(db)
        if latest is not None:
            return latest.period_end
        return add_term(self.clock(), self.committee.get_settings(db).term_years)

    def schedule_next(self) -> datetime | None:
        """Catch up on overdue periods, then arm the timer for the next boundary."""
        with self._lock:
            db = self.session_factory()
            try:
                for _ in range(self.max_catch_up):
                    next_run = self.compute_next_run(db)
                    if next_run > self.clock():
                        logger.info("Scheduling next committee snapshot on %s", next_run.isoformat())
                        self.arm(next_run, self._fire)
                        return next_run
                    logger.warning("Committee snapshot overdue since %s, taking it now", next_run.isoformat())
                    self.committee.take_snapshot(db, now=self.clock())
                logger.error("Snapshot catch-up stopped after %d iterations; check term_years", self.max_catch_up)
                return None
            finally:
                db.close()

    def _fire(self, job_id: str) -> None:
        with self._lock:
            if self.pending_job_id == job_id:
                self._job = None
            db = self.session_factory()
            try:
                self.committee.snapshot_if_due(db, now=self.clock())
            except Exception:
                logger.exception("Scheduled committee snapshot failed")
                db.rollback()
            finally:
                db.close()
            try:
                self.schedule_next()
            except Exception:
                logger.exception("Failed to re-arm committee snapshot timer")

    def take_manual_snapshot(self, db: Session) -> CommitteeSnapshot:
        """Take an out-of-cycle snapshot and move the timer to the new boundary."""
        with self._lock:
            snapshot = self.committee.take_snapshot(db, now=self.clock())
            self.schedule_next()
            return snapshot

    def update_term(self, db: Session, term_years: int) -> datetime | None:
        """Persist a new term, take an overdue or first snapshot, and re-arm the timer."""
        with self._lock:
            self.committee.set_term_years(db, term_years)
            latest = self.committee.latest_snapshot(db)
            if latest is None or latest.period_end <= self.clock():
                self.committee.take_snapshot(db, now=self.clock())
            return self.schedule_next()

    def run_fallback(self) -> None:
        with self._lock:
            db = self.session_factory()
            try:
                if self.committee.snapshot_if_due(db, now=self.clock()) is not None:
                    self.schedule_next()
            except Exception:
                logger.exception("Fallback committee snapshot failed")
                db.rollback()
            finally:
                db.close()

    # --- lifecycle ---

    def start(self) -> None:
        self.scheduler.add_job(
            self.run_fallback,
            trigger=CronTrigger(month="1,7", day=1, hour=0, minute=0, timezone="UTC"),
            id=FALLBACK_JOB_ID,
            replace_existing=True,
        )
        if not self.scheduler.running:
            self.scheduler.start()
        self.schedule_next()

    def shutdown(self) -> None:
        self.cancel()
        if self.scheduler.running:
            self.scheduler.shutdown(wait=False)


_snapshot_scheduler: SnapshotScheduler | None = None


def get_snapshot_scheduler() -> SnapshotScheduler:
    """Get singleton snapshot scheduler instance."""
    global _snapshot_scheduler
    if _snapshot_scheduler is None:
        from memberhub.database import SessionLocal

        _snapshot_scheduler = SnapshotScheduler(session_factory=SessionLocal)
    return _snapshot_scheduler


def set_snapshot_scheduler(scheduler: SnapshotScheduler | None) -> None:
    """Swap the process-wide scheduler (used by tests)."""
    global _snapshot_scheduler
    _snapshot_scheduler = scheduler
