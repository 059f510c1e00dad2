"""Create, list and delete reminders, and render them as documents."""

from dataclasses import dataclass
from datetime import datetime
from typing import TYPE_CHECKING, Optional

from logger import logger
from . import config
from .config import ReminderLabels, DEFAULT_LABELS
from .documents import (
    Document,
    build_error_document,
    build_notice_document,
    build_reminder_document,
)
from .errors import DestinationUnavailable, InconsistentJobState, ReminderNotFound, TimeParseError
from .models import ReminderRecord
from .pagination import build_listing_rows, encode_position, wrap_index
from .scheduler import JobScheduler
from .timeparse import parse_when

if TYPE_CHECKING:
    from domains.base import ChatGateway


@dataclass
class DeleteResult:
    """Outcome of a confirmed delete.

    ``document`` is the re-rendered list, or None when the original message
    should lose all of its controls. ``notice`` is the short ephemeral
    follow-up (success or error).
    """
    document: Optional[Document]
    notice: Document

    @property
    def succeeded(self) -> bool:
        return self.document is not None


class ReminderManager:
    """Reminder lifecycle on top of a JobScheduler."""

    def __init__(
        self,
        jobs: JobScheduler,
        gateway: "ChatGateway",
        labels: ReminderLabels = DEFAULT_LABELS,
        timezone_name: str = "UTC"
    ):
        self.jobs = jobs
        self.gateway = gateway
        self.labels = labels
        self.timezone_name = timezone_name

    @property
    def _tag(self) -> str:
        return f"[{self.labels.class_name}]"

    async def create_reminder(
        self,
        record: ReminderRecord,
        when_text: str,
        now: Optional[datetime] = None
    ) -> Document:
        """Schedule a new reminder.

        Nothing is stored unless the time parses, the channel resolves and
        the job is saved and armed.

        Args:
            record: Who, where and what
            when_text: Free-text time, e.g. "4 hours"
            now: Current time (for tests)

        Returns:
            "Created new reminder" document, or an error document
        """
        logger.info(f"{self._tag} create_reminder() with data: {record} at '{when_text}'")

        try:
            run_at = parse_when(when_text, now=now, tz=self.timezone_name)
            channel_mention = await self.gateway.destination_mention(record.channel_id)
        except (TimeParseError, DestinationUnavailable) as e:
            logger.warning(f"{self._tag} Error creating {self.labels.reminder_type}: {e}")
            return build_error_document(f"Failed to create {self.labels.reminder_type}", str(e))

        try:
            job = self.jobs.create_and_schedule(self.labels.job_kind, record.to_dict(), run_at)
        except Exception as e:
            logger.error(f"{self._tag} Error saving {self.labels.reminder_type}: {e}")
            return build_error_document(f"Failed to save {self.labels.reminder_type}", str(e))

        doc = build_reminder_document(
            f"Created new {self.labels.reminder_type}",
            job.next_run_at,
            record,
            channel_mention,
            config.COLOR_CREATED
        )
        doc.ephemeral = True
        return doc

    async def render(self, title: str, when: datetime, record: ReminderRecord, color: int) -> Document:
        """Render a stored reminder, tolerating a channel that has since gone away."""
        try:
            channel_mention = await self.gateway.destination_mention(record.channel_id)
        except DestinationUnavailable as e:
            logger.warning(f"{self._tag} Rendering reminder for unreachable channel: {e}")
            channel_mention = "(channel unavailable)"
        return build_reminder_document(title, when, record, channel_mention, color)

    async def list_reminders(self, user_id: int, guild_id: int, requested_index: int) -> Document:
        """Show one reminder out of the user's list for this server.

        Out-of-range indexes wrap around, so Previous on the first item
        shows the last and Next on the last shows the first.

        Raises:
            InconsistentJobState: If the selected job has no next run time
        """
        jobs = self.jobs.query(
            kind=self.labels.job_kind,
            payload_filter={"user_id": user_id, "guild_id": guild_id},
            order_by="next_run_at"
        )

        count = len(jobs)
        if count == 0:
            return build_error_document(
                f"Error Getting {self.labels.type_title} List",
                f"You have no {self.labels.reminder_type}s set."
            )

        index = wrap_index(requested_index, count)
        job = jobs[index]

        if job.next_run_at is None:
            raise InconsistentJobState(f"{self._tag} Job {job.id} has no next run time")

        doc = await self.render(
            encode_position(index, count, self.labels.type_title),
            job.next_run_at,
            job.record,
            config.COLOR_LIST
        )
        doc.rows = build_listing_rows(job.id, self.labels)
        doc.ephemeral = True
        return doc

    async def delete_reminder(self, job_id: str, fallback_index: int, user_id: int, guild_id: int) -> DeleteResult:
        """Cancel a reminder and re-render the list at ``fallback_index``.

        Returns:
            DeleteResult; when the cancel fails the document is None so the
            caller strips the controls from the stale message

        Raises:
            InconsistentJobState: If the list cannot be re-rendered after
                the reminder was deleted
        """
        logger.info(f"{self._tag} delete_reminder() job {job_id} for user {user_id}")
        try:
            if self.jobs.cancel(job_id) == 0:
                raise ReminderNotFound("No jobs were deleted")
        except Exception as e:
            logger.error(f"{self._tag} Error deleting {self.labels.reminder_type}: {e}")
            notice = build_error_document(f"Failed to delete {self.labels.reminder_type}", str(e))
            return DeleteResult(document=None, notice=notice)

        document = await self.list_reminders(user_id, guild_id, fallback_index)
        return DeleteResult(
            document=document,
            notice=build_notice_document(f"Deleted {self.labels.reminder_type}")
        )
