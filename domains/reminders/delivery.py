"""Deliver reminders when their job fires."""

from typing import TYPE_CHECKING

from logger import logger
from . import config
from .config import ReminderLabels, DEFAULT_LABELS
from .documents import build_reminder_document
from .errors import MalformedJob
from .models import ScheduledJob
from .scheduler import JobScheduler

if TYPE_CHECKING:
    from domains.base import ChatGateway


class DeliveryWorker:
    """Posts a triggered reminder and retires its job.

    A delivered job is deleted so it never fires again. A job that cannot be
    delivered is marked failed and left in the store for operators; it is
    not retried and the user is not told.
    """

    def __init__(
        self,
        jobs: JobScheduler,
        gateway: "ChatGateway",
        labels: ReminderLabels = DEFAULT_LABELS
    ):
        self.jobs = jobs
        self.gateway = gateway
        self.labels = labels

    def register(self) -> None:
        """Make this worker the handler for reminder jobs."""
        self.jobs.define(self.labels.job_kind, self.handle_reminder_job)

    async def handle_reminder_job(self, job: ScheduledJob) -> None:
        """Fire a reminder - mention the user in the reminder's channel.

        This is called by the JobScheduler when the reminder time arrives.
        The displayed time is the job's ``last_run_at`` (the time it was
        due), not the time the message actually goes out.

        Args:
            job: The claimed job
        """
        try:
            if job.payload is None or job.last_run_at is None:
                raise MalformedJob(f"Bad job data for {job.id}: payload={job.payload} last_run_at={job.last_run_at}")

            record = job.record
            channel_mention = await self.gateway.destination_mention(record.channel_id)
            user_mention = await self.gateway.user_mention(record.user_id)

            doc = build_reminder_document(
                self.labels.triggered_title,
                job.last_run_at,
                record,
                channel_mention,
                config.COLOR_TRIGGERED
            )
            await self.gateway.send(record.channel_id, user_mention, doc)

            self.jobs.delete(job)
            logger.info(f"[{self.labels.class_name}] Fired {self.labels.reminder_type} {job.id}: {record.description}")

        except Exception as e:
            err = f"[{self.labels.class_name}] Failed to finish reminder job {job.id}: {e}"
            logger.error(err)
            self.jobs.mark_failed(job, err)
