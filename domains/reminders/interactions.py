"""Button clicks on reminder list messages.

Each list message moves through three states without any server memory:

- Listing: Previous / Next and an armed Delete button
- PromptingDelete: Delete greyed out, Confirm and Cancel shown
- Deleted: the job is cancelled and the list re-renders one item back

The current position is read back from the embed title and the target job
from the clicked button's custom id. Paging away from a prompt simply
abandons it.
"""

from dataclasses import dataclass
from typing import Optional

from logger import logger
from .config import ReminderLabels
from .documents import Control, Document
from .manager import ReminderManager
from .pagination import (
    build_listing_rows,
    build_prompting_rows,
    decode_position,
    is_reminder_control,
    parse_control_id,
)


@dataclass
class ButtonClick:
    """A button activation, stripped of platform types."""
    custom_id: str
    user_id: int
    guild_id: int
    invoking_user_id: Optional[int]  # Who ran the command that produced the message
    message_title: Optional[str]


@dataclass
class ClickOutcome:
    """What to do to the clicked message.

    ``document`` replaces the whole message; otherwise ``rows`` (if not
    None) replaces only the controls, and an empty list removes them all.
    With neither set the click is just acknowledged.
    """
    handled: bool = True
    document: Optional[Document] = None
    rows: Optional[list[list[Control]]] = None
    followup: Optional[Document] = None

    @property
    def is_noop(self) -> bool:
        return self.document is None and self.rows is None and self.followup is None


class ReminderInteractions:
    """Routes list-message button clicks for one reminder flavour."""

    def __init__(self, manager: ReminderManager):
        self.manager = manager

    @property
    def labels(self) -> ReminderLabels:
        return self.manager.labels

    def _current_position(self, title: Optional[str]) -> int:
        try:
            return decode_position(title, self.labels.type_title)
        except ValueError as e:
            # Fall back to the first item rather than trusting odd text
            logger.warning(f"[{self.labels.class_name}] Could not read list position: {e}")
            return 0

    async def handle_button_click(self, click: ButtonClick) -> ClickOutcome:
        """Apply one button click.

        Clicks from anyone other than the user who opened the list are
        acknowledged and otherwise ignored.

        Returns:
            ClickOutcome (``handled`` is False for buttons that are not ours)
        """
        if not is_reminder_control(click.custom_id, self.labels):
            return ClickOutcome(handled=False)

        if click.invoking_user_id is None or click.user_id != click.invoking_user_id:
            logger.info(
                f"[{self.labels.class_name}] Ignoring click on {click.custom_id} "
                f"from {click.user_id} (list belongs to {click.invoking_user_id})"
            )
            return ClickOutcome()

        logger.info(f"[{self.labels.class_name}] Got button click: {click.custom_id}")
        position = self._current_position(click.message_title)

        if click.custom_id == self.labels.btn_prev:
            return ClickOutcome(
                document=await self.manager.list_reminders(click.user_id, click.guild_id, position - 1)
            )
        if click.custom_id == self.labels.btn_next:
            return ClickOutcome(
                document=await self.manager.list_reminders(click.user_id, click.guild_id, position + 1)
            )

        try:
            prefix, job_id = parse_control_id(click.custom_id, self.labels)
        except ValueError as e:
            logger.warning(f"[{self.labels.class_name}] {e}")
            return ClickOutcome()

        if prefix == self.labels.btn_delete_prompt:
            return ClickOutcome(rows=build_prompting_rows(job_id, self.labels))

        if prefix == self.labels.btn_delete_cancel:
            return ClickOutcome(rows=build_listing_rows(job_id, self.labels))

        # Confirm
        result = await self.manager.delete_reminder(job_id, position - 1, click.user_id, click.guild_id)
        if result.succeeded:
            return ClickOutcome(document=result.document, followup=result.notice)
        return ClickOutcome(rows=[], followup=result.notice)
