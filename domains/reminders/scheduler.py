"""Fire stored jobs on time with APScheduler.

The SQLite job table is the source of truth; APScheduler only holds one
date trigger per pending job. Triggers are rebuilt from the table on
startup, so jobs survive restarts and fire at least once.
"""

import asyncio
from datetime import datetime, timedelta, timezone
from typing import Awaitable, Callable, Optional

from apscheduler.jobstores.base import JobLookupError
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.date import DateTrigger
from apscheduler.triggers.interval import IntervalTrigger

from logger import logger
from .models import ScheduledJob
from .store import JobStore

JobHandler = Callable[[ScheduledJob], Awaitable[None]]

POLL_JOB_ID = "job_store_polling"


class JobScheduler:
    """Schedules, cancels and runs jobs kept in a JobStore."""

    # A claimed job not finished after this long is assumed abandoned
    LOCK_LIFETIME = timedelta(minutes=10)

    def __init__(
        self,
        store: JobStore,
        scheduler: Optional[AsyncIOScheduler] = None,
        poll_seconds: int = 60
    ):
        """Initialize scheduler.

        Args:
            store: Job table to read and write
            scheduler: APScheduler instance (a new UTC one by default)
            poll_seconds: Interval for picking up jobs written elsewhere
        """
        self.store = store
        self.scheduler = scheduler or AsyncIOScheduler(timezone=timezone.utc)
        self.poll_seconds = poll_seconds

        self._handlers: dict[str, JobHandler] = {}
        # Job ids that currently have an APScheduler trigger
        self._scheduled_ids: set[str] = set()
        # Runs that must be allowed to finish on shutdown
        self._in_flight: set[asyncio.Task] = set()
        # Job ids claimed by this process and not yet finished
        self._running_ids: set[str] = set()

    @property
    def name(self) -> str:
        return self.store.db_path

    def define(self, kind: str, handler: JobHandler) -> None:
        """Register the coroutine that runs jobs of ``kind``."""
        self._handlers[kind] = handler

    def create_and_schedule(self, kind: str, payload: dict, run_at: datetime) -> ScheduledJob:
        """Persist a job and arm its trigger.

        If the trigger cannot be added the row is removed again, so a failed
        create never shows up in queries.

        Returns:
            The stored job
        """
        job = self.store.create(kind, payload, run_at)
        try:
            self._add_trigger(job)
        except Exception:
            self.store.cancel(job.id)
            raise

        logger.info(f"Scheduled {kind} job {job.id} at {run_at.isoformat()}")
        return job

    def query(
        self,
        kind: Optional[str] = None,
        payload_filter: Optional[dict] = None,
        order_by: str = "next_run_at"
    ) -> list[ScheduledJob]:
        """Active (not failed) jobs matching a filter, sorted ascending."""
        return self.store.query(kind=kind, payload_filter=payload_filter, order_by=order_by)

    def cancel(self, job_id: str) -> int:
        """Cancel a job by id.

        Returns:
            Number of jobs cancelled; 0 if it had already fired or been deleted
        """
        count = self.store.cancel(job_id)
        self._remove_trigger(job_id)
        if count:
            logger.info(f"Cancelled job {job_id}")
        return count

    def cancel_by_filter(self, kind: Optional[str] = None, payload_filter: Optional[dict] = None) -> int:
        """Cancel every job matching a filter.

        Returns:
            Number of jobs cancelled
        """
        ids = self.store.cancel_by_filter(kind=kind, payload_filter=payload_filter)
        for job_id in ids:
            self._remove_trigger(job_id)
        logger.info(f"Cancelled {len(ids)} job(s) matching kind={kind} filter={payload_filter}")
        return len(ids)

    def mark_failed(self, job: ScheduledJob, reason: str) -> None:
        """Keep a job for inspection but never run it again."""
        self.store.mark_failed(job.id, reason)
        self._remove_trigger(job.id)
        logger.warning(f"Job {job.id} marked failed: {reason}")

    def delete(self, job: ScheduledJob) -> None:
        """Remove a job that finished."""
        self.store.delete(job.id)
        self._remove_trigger(job.id)

    def _add_trigger(self, job: ScheduledJob) -> None:
        self.scheduler.add_job(
            self._run,
            trigger=DateTrigger(run_date=job.next_run_at),
            args=[job.id],
            id=job.id,
            name=f"{job.kind}:{job.id[:8]}",
            replace_existing=True,
            misfire_grace_time=None,  # late jobs still fire (e.g. after downtime)
        )
        self._scheduled_ids.add(job.id)

    def _remove_trigger(self, job_id: str) -> None:
        self._scheduled_ids.discard(job_id)
        try:
            self.scheduler.remove_job(job_id)
        except JobLookupError:
            pass  # Already fired or never armed

    async def _run(self, job_id: str) -> None:
        """APScheduler entry point; shields the run so shutdown lets it finish."""
        task = asyncio.ensure_future(self.run_job(job_id))
        self._in_flight.add(task)
        task.add_done_callback(self._in_flight.discard)
        await asyncio.shield(task)

    async def run_job(self, job_id: str) -> bool:
        """Claim a due job and hand it to its kind's handler.

        Returns:
            True if a handler ran, False if the job was gone or already claimed
        """
        self._scheduled_ids.discard(job_id)

        job = self.store.get(job_id)
        if job is None:
            logger.debug(f"Job {job_id} no longer exists, skipping run")
            return False

        handler = self._handlers.get(job.kind)
        if handler is None:
            reason = f"No handler defined for job kind '{job.kind}'"
            logger.error(f"{reason} (job {job_id})")
            self.store.mark_failed(job_id, reason)
            return False

        # The nominal fire time becomes last_run_at, even if we are late
        if not self.store.claim(job_id, run_at=job.next_run_at or datetime.now(timezone.utc)):
            logger.warning(f"Job {job_id} already claimed by another run, skipping")
            return False

        self._running_ids.add(job_id)
        try:
            job = self.store.get(job_id)
            await handler(job)
        except Exception as e:
            logger.exception(f"Handler for job {job_id} raised: {e}")
            self.store.mark_failed(job_id, f"Handler raised: {e}")
        finally:
            self._running_ids.discard(job_id)
        return True

    def _release_expired_locks(self) -> int:
        """Unlock claims older than LOCK_LIFETIME whose run is not in this process."""
        return self.store.release_stale_locks(
            datetime.now(timezone.utc) - self.LOCK_LIFETIME,
            keep=self._running_ids
        )

    def reload_pending(self) -> int:
        """Arm triggers for every pending job in the store.

        Call this on startup to restore jobs after a restart. Jobs whose
        time passed while the bot was down fire straight away.

        Returns:
            Count of jobs loaded
        """
        self._release_expired_locks()

        loaded = 0
        for job in self.store.get_pending():
            try:
                self._add_trigger(job)
                loaded += 1
            except Exception as e:
                logger.error(f"Failed to reload job {job.id}: {e}")

        logger.info(f"Reloaded {loaded} pending jobs from {self.name}")
        return loaded

    def poll_for_new_jobs(self) -> int:
        """Arm triggers for pending jobs that were written by another process.

        Jobs whose claim expired (their run died, e.g. in a crash shortly
        before a restart) are unlocked first and armed again.

        Returns:
            Count of new jobs scheduled
        """
        self._release_expired_locks()

        added = 0
        for job in self.store.get_pending():
            if job.id in self._scheduled_ids:
                continue
            try:
                self._add_trigger(job)
                added += 1
                logger.info(f"Picked up new job from store: {job.id} ({job.kind})")
            except Exception as e:
                logger.error(f"Failed to schedule new job {job.id}: {e}")
        return added

    async def _poll_task(self) -> None:
        count = self.poll_for_new_jobs()
        if count > 0:
            logger.info(f"Polling picked up {count} new job(s)")

    async def start(self) -> None:
        """Reload pending jobs, start polling and start APScheduler."""
        self.reload_pending()
        self.scheduler.add_job(
            self._poll_task,
            trigger=IntervalTrigger(seconds=self.poll_seconds),
            id=POLL_JOB_ID,
            name="Poll job store for new jobs",
            replace_existing=True
        )
        self.scheduler.start()
        logger.info(f"Job scheduler started for {self.name} with {len(self.scheduler.get_jobs())} triggers")

    async def stop(self) -> None:
        """Stop firing new jobs and wait for running ones to settle."""
        if self.scheduler.running:
            self.scheduler.shutdown(wait=False)
            # AsyncIOScheduler may defer shutdown to the next loop iteration
            while self.scheduler.running:
                await asyncio.sleep(0)

        if self._in_flight:
            logger.info(f"Waiting for {len(self._in_flight)} running job(s) to finish")
            await asyncio.gather(*self._in_flight, return_exceptions=True)

        self.store.close()
        logger.info(f"Job scheduler stopped for {self.name}")
