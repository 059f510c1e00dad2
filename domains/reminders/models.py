"""Reminder payload and scheduled job records."""

from dataclasses import dataclass, asdict
from datetime import datetime
from typing import Optional


@dataclass(frozen=True)
class ReminderRecord:
    """Payload stored with each reminder job."""
    user_id: int
    channel_id: int
    guild_id: int
    description: str
    message_url: Optional[str] = None  # Link to the message the reminder is about

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> "ReminderRecord":
        return cls(
            user_id=int(data["user_id"]),
            channel_id=int(data["channel_id"]),
            guild_id=int(data["guild_id"]),
            description=data["description"],
            message_url=data.get("message_url"),
        )


@dataclass
class ScheduledJob:
    """A row in the job store."""
    id: str
    kind: str
    payload: Optional[dict]
    next_run_at: Optional[datetime]
    last_run_at: Optional[datetime] = None
    locked_at: Optional[datetime] = None
    failed_at: Optional[datetime] = None
    fail_reason: Optional[str] = None
    created_at: Optional[datetime] = None

    @property
    def record(self) -> Optional[ReminderRecord]:
        """The payload as a ReminderRecord, or None if there is no payload."""
        if self.payload is None:
            return None
        return ReminderRecord.from_dict(self.payload)
