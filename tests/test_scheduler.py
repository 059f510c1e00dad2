"""Tests for JobScheduler and SchedulerRegistry."""

import asyncio
import signal
from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock, Mock

import pytest
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from freezegun import freeze_time

from domains.reminders import JobScheduler, JobStore
from domains.reminders.scheduler import POLL_JOB_ID
from registry import SchedulerRegistry

PAYLOAD = {"user_id": 111, "channel_id": 500, "guild_id": 900, "description": "pay rent", "message_url": None}


def _later(hours=1):
    return datetime.now(timezone.utc) + timedelta(hours=hours)


class TestTriggers:

    def test_create_arms_trigger(self, job_scheduler):
        job = job_scheduler.create_and_schedule("reminder", PAYLOAD, _later())

        trigger = job_scheduler.scheduler.get_job(job.id)
        assert trigger is not None
        assert trigger.args == (job.id,)

    def test_cancel_removes_trigger(self, job_scheduler):
        job = job_scheduler.create_and_schedule("reminder", PAYLOAD, _later())

        assert job_scheduler.cancel(job.id) == 1
        assert job_scheduler.scheduler.get_job(job.id) is None
        assert job_scheduler.cancel(job.id) == 0

    def test_cancel_by_filter(self, job_scheduler):
        a = job_scheduler.create_and_schedule("reminder", PAYLOAD, _later(1))
        b = job_scheduler.create_and_schedule("reminder", PAYLOAD, _later(2))
        other = job_scheduler.create_and_schedule("reminder", dict(PAYLOAD, user_id=222), _later(3))

        assert job_scheduler.cancel_by_filter(kind="reminder", payload_filter={"user_id": 111}) == 2
        assert job_scheduler.scheduler.get_job(a.id) is None
        assert job_scheduler.scheduler.get_job(b.id) is None
        assert job_scheduler.scheduler.get_job(other.id) is not None

    def test_mark_failed_removes_trigger(self, job_scheduler):
        job = job_scheduler.create_and_schedule("reminder", PAYLOAD, _later())

        job_scheduler.mark_failed(job, "broken")

        assert job_scheduler.scheduler.get_job(job.id) is None
        assert job_scheduler.query(kind="reminder") == []


class TestReload:

    def test_reload_pending_after_restart(self, job_store):
        job_store.create("reminder", PAYLOAD, _later(1))
        job_store.create("reminder", PAYLOAD, _later(2))
        failed = job_store.create("reminder", PAYLOAD, _later(3))
        job_store.mark_failed(failed.id, "broken")

        restarted = JobScheduler(job_store, scheduler=AsyncIOScheduler(timezone=timezone.utc))

        assert restarted.reload_pending() == 2
        assert restarted.scheduler.get_job(failed.id) is None

    def test_reload_includes_overdue_jobs(self, job_store):
        """Jobs that came due while the bot was down still fire."""
        overdue = job_store.create("reminder", PAYLOAD, datetime.now(timezone.utc) - timedelta(hours=2))

        restarted = JobScheduler(job_store, scheduler=AsyncIOScheduler(timezone=timezone.utc))

        assert restarted.reload_pending() == 1
        assert restarted.scheduler.get_job(overdue.id).misfire_grace_time is None

    def test_reload_releases_stale_locks(self, job_store, monkeypatch):
        job = job_store.create("reminder", PAYLOAD, _later())
        job_store.claim(job.id, run_at=job.next_run_at)

        restarted = JobScheduler(job_store, scheduler=AsyncIOScheduler(timezone=timezone.utc))
        monkeypatch.setattr(restarted, "LOCK_LIFETIME", timedelta(seconds=-1))

        assert restarted.reload_pending() == 1
        assert job_store.get(job.id).locked_at is None

    def test_restart_soon_after_crash_rearms_claimed_job(self, job_store):
        """A claim left by a crashed run expires and the job is armed again."""
        job = job_store.create("reminder", PAYLOAD, _later())
        job_store.claim(job.id, run_at=job.next_run_at)

        restarted = JobScheduler(job_store, scheduler=AsyncIOScheduler(timezone=timezone.utc))

        # The claim is still fresh at startup
        assert restarted.reload_pending() == 0
        assert restarted.scheduler.get_job(job.id) is None

        later = datetime.now(timezone.utc).replace(tzinfo=None) + timedelta(minutes=11)
        with freeze_time(later):
            assert restarted.poll_for_new_jobs() == 1

        assert restarted.scheduler.get_job(job.id) is not None
        assert job_store.get(job.id).locked_at is None

    @pytest.mark.asyncio
    async def test_poll_keeps_lock_of_running_job(self, job_scheduler, monkeypatch):
        started = asyncio.Event()
        release = asyncio.Event()

        async def slow_handler(job):
            started.set()
            await release.wait()

        job_scheduler.define("reminder", slow_handler)
        job = job_scheduler.create_and_schedule("reminder", PAYLOAD, _later())

        run = asyncio.ensure_future(job_scheduler.run_job(job.id))
        await started.wait()
        monkeypatch.setattr(job_scheduler, "LOCK_LIFETIME", timedelta(seconds=-1))

        assert job_scheduler.poll_for_new_jobs() == 0
        assert job_scheduler.store.get(job.id).locked_at is not None

        release.set()
        assert await run is True

    def test_poll_picks_up_new_jobs(self, job_scheduler):
        job_scheduler.create_and_schedule("reminder", PAYLOAD, _later(1))
        # Written directly to the table, e.g. by another process
        external = job_scheduler.store.create("reminder", PAYLOAD, _later(2))

        assert job_scheduler.poll_for_new_jobs() == 1
        assert job_scheduler.scheduler.get_job(external.id) is not None
        assert job_scheduler.poll_for_new_jobs() == 0


class TestLifecycle:

    @pytest.mark.asyncio
    async def test_start_and_stop(self, tmp_path):
        store = JobStore(str(tmp_path / "jobs.db"))
        pending = store.create("reminder", PAYLOAD, _later())
        job_scheduler = JobScheduler(store, poll_seconds=30)

        await job_scheduler.start()
        try:
            assert job_scheduler.scheduler.running
            assert job_scheduler.scheduler.get_job(POLL_JOB_ID) is not None
            assert job_scheduler.scheduler.get_job(pending.id) is not None
        finally:
            await job_scheduler.stop()

        assert not job_scheduler.scheduler.running
        assert job_scheduler.store._connection is None

    @pytest.mark.asyncio
    async def test_stop_waits_for_running_job(self, tmp_path):
        store = JobStore(str(tmp_path / "jobs.db"))
        job_scheduler = JobScheduler(store, scheduler=AsyncIOScheduler(timezone=timezone.utc))
        started = asyncio.Event()
        finished = []

        async def slow_handler(job):
            started.set()
            await asyncio.sleep(0.05)
            finished.append(job.id)

        job_scheduler.define("reminder", slow_handler)
        job = job_scheduler.create_and_schedule("reminder", PAYLOAD, _later())

        run = asyncio.ensure_future(job_scheduler._run(job.id))
        await started.wait()
        run.cancel()  # What APScheduler does to running jobs on shutdown

        await job_scheduler.stop()

        assert finished == [job.id]

    @pytest.mark.asyncio
    async def test_handler_error_marks_failed(self, job_scheduler):
        async def broken(job):
            raise RuntimeError("boom")

        job_scheduler.define("reminder", broken)
        job = job_scheduler.create_and_schedule("reminder", PAYLOAD, _later())

        assert await job_scheduler.run_job(job.id) is True

        stored = job_scheduler.store.get(job.id)
        assert stored.failed_at is not None
        assert "boom" in stored.fail_reason


class TestRegistry:

    def test_acquire_reuses_scheduler(self, tmp_path):
        registry = SchedulerRegistry()
        path = str(tmp_path / "jobs.db")

        first = registry.acquire(path)
        second = registry.acquire(path)
        other = registry.acquire(str(tmp_path / "other.db"))

        assert first is second
        assert other is not first
        assert len(registry.all_schedulers()) == 2
        assert first.name == path

    @pytest.mark.asyncio
    async def test_shutdown_all_stops_every_scheduler(self):
        registry = SchedulerRegistry()
        good = Mock(stop=AsyncMock())
        bad = Mock(stop=AsyncMock(side_effect=RuntimeError("stuck")))
        registry._schedulers = {"a.db": good, "b.db": bad}

        await registry.shutdown_all()

        good.stop.assert_awaited_once()
        bad.stop.assert_awaited_once()

    def test_install_handlers_once(self):
        registry = SchedulerRegistry()
        loop = Mock()

        assert registry.install_shutdown_handlers(loop) is True
        assert registry.install_shutdown_handlers(loop) is False

        installed = {call.args[0] for call in loop.add_signal_handler.call_args_list}
        assert signal.SIGTERM in installed
        assert signal.SIGINT in installed

    @pytest.mark.asyncio
    async def test_signal_stops_then_calls_back(self):
        registry = SchedulerRegistry()
        scheduler = Mock(stop=AsyncMock())
        registry._schedulers = {"a.db": scheduler}
        on_stopped = AsyncMock()

        await registry._handle_signal(signal.SIGTERM, on_stopped)
        await registry._handle_signal(signal.SIGTERM, on_stopped)

        scheduler.stop.assert_awaited_once()
        on_stopped.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_signal_task_kept_until_done(self, monkeypatch):
        registry = SchedulerRegistry()
        scheduler = Mock(stop=AsyncMock())
        registry._schedulers = {"a.db": scheduler}
        on_stopped = AsyncMock()

        loop = asyncio.get_running_loop()
        add_signal_handler = Mock()
        monkeypatch.setattr(loop, "add_signal_handler", add_signal_handler)
        registry.install_shutdown_handlers(loop, on_stopped=on_stopped)

        trigger = add_signal_handler.call_args_list[0].args[1]
        trigger()

        assert len(registry._signal_tasks) == 1
        await asyncio.gather(*registry._signal_tasks)
        await asyncio.sleep(0)

        assert registry._signal_tasks == set()
        scheduler.stop.assert_awaited_once()
        on_stopped.assert_awaited_once()
