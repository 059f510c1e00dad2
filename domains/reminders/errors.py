"""Exceptions raised by the reminders domain."""


class ReminderError(Exception):
    """Base class for reminder failures."""


class TimeParseError(ReminderError):
    """The "when" text could not be turned into a future time."""


class ReminderNotFound(ReminderError):
    """Cancelling a job affected no rows (already fired or deleted)."""


class InconsistentJobState(ReminderError):
    """A stored job breaks an invariant, e.g. a listed job with no next run."""


class DestinationUnavailable(ReminderError):
    """The channel or user for a reminder can no longer be reached."""


class MalformedJob(ReminderError):
    """A fired job is missing its payload or its fire time."""
