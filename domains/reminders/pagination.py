"""List position and control identifiers carried inside rendered messages.

There is no session store. Which reminder a user is looking at lives only in
the embed title ("Reminder 2 of 5"), and which job a delete button targets
lives only in the button's custom id ("ReminderBot_btnDeletePrompt__<hex>").
Both come back to us verbatim on the next click.

Changing the title label or a prefix breaks buttons on messages that were
already sent.
"""

import re

from . import config
from .config import ReminderLabels, DEFAULT_LABELS
from .documents import Control, ControlStyle

_SEPARATOR = " of "
_JOB_ID = re.compile(rf"^[0-9a-f]{{{config.JOB_ID_LENGTH}}}$")


def encode_position(position: int, total: int, label: str = DEFAULT_LABELS.type_title) -> str:
    """Title for item ``position`` (0-based) of ``total``: "Reminder 1 of 3"."""
    return f"{label} {position + 1}{_SEPARATOR}{total}"


def decode_position(text: str, label: str = DEFAULT_LABELS.type_title) -> int:
    """Recover the 0-based position from a title made by ``encode_position``.

    Only the number between the label and " of " is read; the total is
    ignored.

    Raises:
        ValueError: If the text is not a position title
    """
    prefix = f"{label} "
    if not text or not text.startswith(prefix):
        raise ValueError(f"Not a list title: {text!r}")

    end = text.find(_SEPARATOR, len(prefix))
    if end == -1:
        raise ValueError(f"List title has no position separator: {text!r}")

    number = text[len(prefix):end]
    if not number.isdigit() or int(number) < 1:
        raise ValueError(f"List title has a bad position: {text!r}")

    return int(number) - 1


def wrap_index(requested: int, count: int) -> int:
    """Circular list index: before the first is the last, after the last is the first."""
    if count <= 0:
        raise ValueError("Cannot wrap an index into an empty list")
    if requested < 0:
        return count - 1
    if requested >= count:
        return 0
    return requested


def control_id(prefix: str, job_id: str) -> str:
    """Custom id for a delete-flow button targeting ``job_id``."""
    return f"{prefix}{config.CONTROL_ID_SEPARATOR}{job_id}"


def parse_control_id(custom_id: str, labels: ReminderLabels = DEFAULT_LABELS) -> tuple[str, str]:
    """Split a delete-flow custom id into (prefix, job_id).

    Raises:
        ValueError: If the id has an unknown prefix or a malformed job id
    """
    for prefix in (labels.btn_delete_prompt, labels.btn_delete_confirm, labels.btn_delete_cancel):
        head = f"{prefix}{config.CONTROL_ID_SEPARATOR}"
        if custom_id.startswith(head):
            job_id = custom_id[len(head):]
            if not _JOB_ID.match(job_id):
                raise ValueError(f"Malformed job id in control: {custom_id!r}")
            return prefix, job_id

    raise ValueError(f"Unknown control id: {custom_id!r}")


def is_reminder_control(custom_id: str, labels: ReminderLabels = DEFAULT_LABELS) -> bool:
    """True for any button this flavour's list messages carry."""
    if custom_id in (labels.btn_prev, labels.btn_next):
        return True
    return any(
        custom_id.startswith(f"{prefix}{config.CONTROL_ID_SEPARATOR}")
        for prefix in (labels.btn_delete_prompt, labels.btn_delete_confirm, labels.btn_delete_cancel)
    )


def build_nav_row(labels: ReminderLabels = DEFAULT_LABELS) -> list[Control]:
    """Previous / Next buttons."""
    return [
        Control(labels.btn_prev, "Previous", ControlStyle.PRIMARY),
        Control(labels.btn_next, "Next", ControlStyle.PRIMARY),
    ]


def build_delete_prompt_button(job_id: str, labels: ReminderLabels = DEFAULT_LABELS,
                               disabled: bool = False) -> Control:
    return Control(control_id(labels.btn_delete_prompt, job_id), "Delete", ControlStyle.DANGER, disabled)


def build_listing_rows(job_id: str, labels: ReminderLabels = DEFAULT_LABELS) -> list[list[Control]]:
    """Controls while browsing: navigation plus an armed Delete button."""
    return [build_nav_row(labels), [build_delete_prompt_button(job_id, labels)]]


def build_prompting_rows(job_id: str, labels: ReminderLabels = DEFAULT_LABELS) -> list[list[Control]]:
    """Controls while a delete is awaiting confirmation."""
    return [
        build_nav_row(labels),
        [
            build_delete_prompt_button(job_id, labels, disabled=True),
            Control(control_id(labels.btn_delete_confirm, job_id), "Confirm", ControlStyle.DANGER),
            Control(control_id(labels.btn_delete_cancel, job_id), "Cancel", ControlStyle.SECONDARY),
        ]
    ]
