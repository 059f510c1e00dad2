"""Reminders module for one-off scheduled notifications.

Uses APScheduler date triggers with SQLite persistence. List position and
delete-flow state ride along inside the rendered messages.
"""

from .config import ReminderLabels, DEFAULT_LABELS
from .models import ReminderRecord, ScheduledJob
from .errors import (
    ReminderError,
    TimeParseError,
    ReminderNotFound,
    InconsistentJobState,
    DestinationUnavailable,
    MalformedJob,
)
from .store import JobStore
from .scheduler import JobScheduler
from .timeparse import parse_when
from .pagination import encode_position, decode_position, wrap_index
from .manager import ReminderManager, DeleteResult
from .interactions import ReminderInteractions, ButtonClick, ClickOutcome
from .delivery import DeliveryWorker

__all__ = [
    "ReminderLabels",
    "DEFAULT_LABELS",
    "ReminderRecord",
    "ScheduledJob",
    "ReminderError",
    "TimeParseError",
    "ReminderNotFound",
    "InconsistentJobState",
    "DestinationUnavailable",
    "MalformedJob",
    "JobStore",
    "JobScheduler",
    "parse_when",
    "encode_position",
    "decode_position",
    "wrap_index",
    "ReminderManager",
    "DeleteResult",
    "ReminderInteractions",
    "ButtonClick",
    "ClickOutcome",
    "DeliveryWorker",
]
