"""Platform-agnostic rendered documents.

A Document is what the reminder core hands to the chat surface: a title,
body fields, a colour and rows of button controls. ``discord_ui`` turns it
into an embed and a view.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Optional

from . import config
from .models import ReminderRecord


class ControlStyle(Enum):
    """Button styles the chat surface knows how to draw."""
    PRIMARY = "primary"
    SECONDARY = "secondary"
    DANGER = "danger"


@dataclass(frozen=True)
class Control:
    """A clickable button identified by its custom id."""
    custom_id: str
    label: str
    style: ControlStyle = ControlStyle.SECONDARY
    disabled: bool = False


@dataclass(frozen=True)
class DocumentField:
    """One name/value line in a document body."""
    name: str
    value: str
    inline: bool = False


@dataclass
class Document:
    """A rendered message: embed content plus control rows."""
    title: str
    color: int
    description: Optional[str] = None
    fields: list[DocumentField] = field(default_factory=list)
    rows: list[list[Control]] = field(default_factory=list)
    ephemeral: bool = False

    def field_value(self, name: str) -> Optional[str]:
        """Value of the first field called ``name``, if any."""
        for f in self.fields:
            if f.name == name:
                return f.value
        return None


def format_fire_time(when: datetime) -> str:
    """Discord timestamp markup, rendered in each reader's own timezone."""
    return f"<t:{round(when.timestamp())}:F>"


def build_reminder_document(
    title: str,
    when: datetime,
    record: ReminderRecord,
    channel_mention: str,
    color: int
) -> Document:
    """Render a reminder body.

    Args:
        title: Document title (created, triggered or list position)
        when: Fire time to display
        record: The reminder payload
        channel_mention: Resolved destination, e.g. "<#123>"
        color: Embed colour

    Returns:
        Document with Description, Reminder Time, Channel and optional
        Message Reference fields
    """
    doc = Document(
        title=title,
        color=color,
        fields=[
            DocumentField("Description:", record.description),
            DocumentField("Reminder Time:", format_fire_time(when)),
            DocumentField("Channel:", channel_mention),
        ]
    )

    if record.message_url is not None:
        doc.fields.append(DocumentField("Message Reference:", record.message_url))

    return doc


def build_error_document(title: str, reason: str) -> Document:
    """Red error document with the reason as its description."""
    return Document(
        title=title,
        description=reason,
        color=config.COLOR_ERROR,
        ephemeral=True
    )


def build_notice_document(title: str, color: int = config.COLOR_DELETED) -> Document:
    """Short title-only notice, e.g. "Deleted reminder"."""
    return Document(title=title, color=color, ephemeral=True)
