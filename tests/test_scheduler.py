"""Tests for the committee snapshot scheduler."""

import threading
import time
from datetime import datetime

from apscheduler.schedulers.background import BackgroundScheduler
from dateutil.relativedelta import relativedelta
from sqlalchemy.orm import Session

from memberhub.models.committee import CommitteeSnapshot
from memberhub.services.committee import CommitteeService
from memberhub.services.scheduler import FALLBACK_JOB_ID, NEXT_SNAPSHOT_JOB_ID, SnapshotScheduler

NOW = datetime(2030, 1, 1, 12, 0, 0)


class FakeClock:
    def __init__(self, now: datetime = NOW) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now


def _scheduler(db_session: Session, clock: FakeClock, **kwargs) -> SnapshotScheduler:
    kwargs.setdefault("committee", CommitteeService())
    return SnapshotScheduler(
        session_factory=lambda: db_session,
        scheduler=BackgroundScheduler(timezone="UTC"),
        clock=clock,
        **kwargs,
    )


def _pending(scheduler: SnapshotScheduler) -> list:
    return [job for job in scheduler.scheduler.get_jobs() if job.id.startswith(NEXT_SNAPSHOT_JOB_ID)]


def _snapshots(db_session: Session) -> list[CommitteeSnapshot]:
    return db_session.query(CommitteeSnapshot).order_by(CommitteeSnapshot.period_start).all()


class TestSettingsChange:
    """Tests for re-arming on term updates."""

    def test_first_update_takes_snapshot(self, db_session: Session):
        scheduler = _scheduler(db_session, FakeClock())
        next_run = scheduler.update_term(db_session, 2)

        snapshots = _snapshots(db_session)
        assert len(snapshots) == 1
        assert snapshots[0].period_start == NOW
        assert snapshots[0].period_end == NOW + relativedelta(years=2)
        assert next_run == NOW + relativedelta(years=2)
        assert scheduler.next_run == next_run
        assert len(_pending(scheduler)) == 1

    def test_longer_term_keeps_current_boundary(self, db_session: Session):
        scheduler = _scheduler(db_session, FakeClock())
        scheduler.update_term(db_session, 2)
        next_run = scheduler.update_term(db_session, 3)

        assert len(_snapshots(db_session)) == 1
        assert next_run == NOW + relativedelta(years=2)
        assert CommitteeService().get_settings(db_session).term_years == 3
        assert len(_pending(scheduler)) == 1

    def test_overdue_period_is_taken_on_update(self, db_session: Session):
        clock = FakeClock()
        scheduler = _scheduler(db_session, clock)
        scheduler.update_term(db_session, 2)

        clock.now = NOW + relativedelta(years=2, days=1)
        next_run = scheduler.update_term(db_session, 1)

        snapshots = _snapshots(db_session)
        assert len(snapshots) == 2
        assert snapshots[1].period_start == snapshots[0].period_end
        assert next_run == snapshots[1].period_end


class TestScheduleNext:
    """Tests for arming and catch-up."""

    def test_no_snapshot_arms_one_term_from_now(self, db_session: Session):
        scheduler = _scheduler(db_session, FakeClock())
        assert scheduler.schedule_next() == NOW + relativedelta(years=2)
        assert _snapshots(db_session) == []

    def test_catch_up_after_downtime(self, db_session: Session):
        db_session.add(
            CommitteeSnapshot(
                data={"leadership": [], "member": []},
                period_start=NOW - relativedelta(years=7),
                period_end=NOW - relativedelta(years=5),
                taken_at=NOW - relativedelta(years=7),
            )
        )
        db_session.commit()
        scheduler = _scheduler(db_session, FakeClock())

        next_run = scheduler.schedule_next()

        snapshots = _snapshots(db_session)
        assert len(snapshots) == 4
        for previous, current in zip(snapshots, snapshots[1:]):
            assert current.period_start == previous.period_end
        assert next_run == NOW + relativedelta(years=1)
        assert next_run > NOW

    def test_catch_up_is_bounded(self, db_session: Session):
        db_session.add(
            CommitteeSnapshot(
                data={"leadership": [], "member": []},
                period_start=NOW - relativedelta(years=100),
                period_end=NOW - relativedelta(years=98),
                taken_at=NOW - relativedelta(years=100),
            )
        )
        db_session.commit()
        scheduler = _scheduler(db_session, FakeClock(), max_catch_up=3)

        assert scheduler.schedule_next() is None
        assert len(_snapshots(db_session)) == 4
        assert _pending(scheduler) == []


class TestTimer:
    """Tests for the single pending job."""

    def test_arm_replaces_previous_job(self, db_session: Session):
        scheduler = _scheduler(db_session, FakeClock())
        scheduler.arm(NOW + relativedelta(years=1), lambda job_id: None)
        scheduler.arm(NOW + relativedelta(years=2), lambda job_id: None)

        assert len(_pending(scheduler)) == 1
        assert scheduler.next_run == NOW + relativedelta(years=2)

    def test_cancel(self, db_session: Session):
        scheduler = _scheduler(db_session, FakeClock())
        scheduler.arm(NOW + relativedelta(years=1), lambda job_id: None)
        scheduler.cancel()
        scheduler.cancel()
        assert _pending(scheduler) == []
        assert scheduler.next_run is None

    def test_fire_takes_snapshot_and_rearms(self, db_session: Session):
        clock = FakeClock()
        scheduler = _scheduler(db_session, clock)
        scheduler.update_term(db_session, 2)

        clock.now = NOW + relativedelta(years=2)
        scheduler._fire(scheduler.pending_job_id)

        snapshots = _snapshots(db_session)
        assert len(snapshots) == 2
        assert scheduler.next_run == NOW + relativedelta(years=4)
        assert scheduler.scheduler.get_job(scheduler.pending_job_id) is not None

    def test_stale_fire_does_not_duplicate(self, db_session: Session):
        clock = FakeClock()
        scheduler = _scheduler(db_session, clock)
        scheduler.update_term(db_session, 2)

        # Boundary already handled elsewhere
        clock.now = NOW + relativedelta(years=2)
        CommitteeService().take_snapshot(db_session, now=clock.now)
        scheduler._fire(scheduler.pending_job_id)

        assert len(_snapshots(db_session)) == 2
        assert scheduler.next_run == NOW + relativedelta(years=4)

    def test_stale_job_does_not_drop_newer_handle(self, db_session: Session):
        clock = FakeClock()
        scheduler = _scheduler(db_session, clock)
        scheduler.update_term(db_session, 2)
        old_job_id = scheduler.pending_job_id

        # Re-armed by a settings change while the old job was being dispatched
        scheduler.update_term(db_session, 3)
        clock.now = NOW + relativedelta(years=1)
        scheduler._fire(old_job_id)

        assert len(_pending(scheduler)) == 1
        assert scheduler.pending_job_id == _pending(scheduler)[0].id
        assert len(_snapshots(db_session)) == 1


class TestFallback:
    """Tests for the biannual safety net."""

    def test_fallback_skips_when_not_due(self, db_session: Session):
        clock = FakeClock()
        scheduler = _scheduler(db_session, clock)
        scheduler.update_term(db_session, 2)

        clock.now = NOW + relativedelta(months=6)
        scheduler.run_fallback()
        assert len(_snapshots(db_session)) == 1

    def test_fallback_catches_missed_boundary(self, db_session: Session):
        clock = FakeClock()
        scheduler = _scheduler(db_session, clock)
        scheduler.update_term(db_session, 2)

        clock.now = NOW + relativedelta(years=2, months=1)
        scheduler.run_fallback()
        assert len(_snapshots(db_session)) == 2
        assert scheduler.next_run == NOW + relativedelta(years=4)


class TestLifecycle:
    """Tests for starting and stopping the background scheduler."""

    def test_start_and_shutdown(self, db_session: Session):
        scheduler = _scheduler(db_session, FakeClock(datetime.utcnow()))
        scheduler.start()
        try:
            job_ids = {job.id for job in scheduler.scheduler.get_jobs()}
            assert job_ids == {FALLBACK_JOB_ID, scheduler.pending_job_id}
            assert scheduler.next_run is not None
        finally:
            scheduler.shutdown()
        assert not scheduler.scheduler.running


class SlowCommitteeService(CommitteeService):
    """Pauses between the due check and the insert, and notes overlapping calls."""

    def __init__(self) -> None:
        super().__init__()
        self.active = 0
        self.overlapped = False
        self.guard = threading.Lock()

    def snapshot_if_due(self, db, now=None):
        with self.guard:
            self.active += 1
            self.overlapped = self.overlapped or self.active > 1
        try:
            time.sleep(0.05)
            return super().snapshot_if_due(db, now=now)
        finally:
            with self.guard:
                self.active -= 1


class TestConcurrency:
    """Tests for runs that race each other."""

    def test_fire_and_fallback_take_one_snapshot(self, db_session: Session):
        clock = FakeClock()
        committee = SlowCommitteeService()
        scheduler = _scheduler(db_session, clock, committee=committee)
        scheduler.update_term(db_session, 2)
        job_id = scheduler.pending_job_id

        clock.now = NOW + relativedelta(years=2, days=1)
        threads = [
            threading.Thread(target=scheduler._fire, args=(job_id,)),
            threading.Thread(target=scheduler.run_fallback),
        ]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join(timeout=10)

        assert not committee.overlapped
        snapshots = _snapshots(db_session)
        assert len(snapshots) == 2
        assert snapshots[1].period_start == snapshots[0].period_end
        assert scheduler.next_run == snapshots[1].period_end
