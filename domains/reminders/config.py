"""Reminders domain configuration - labels, control ids, colours."""

from dataclasses import dataclass

# Job kind stored with every reminder job
JOB_KIND_REMINDER = "reminder"

# Modal inputs
MAX_DESCRIPTION_LENGTH = 80
CONTEXT_CREATE_NAME = "Create reminder"
SUBCMD_CREATE = "create"
SUBCMD_LIST = "list"

# Embed colours
COLOR_CREATED = 0x00FF00
COLOR_LIST = 0x8D8F91
COLOR_TRIGGERED = 0xFFFFFF
COLOR_ERROR = 0xFF0000
COLOR_DELETED = 0x00FF00

# Separator between a control prefix and the job id it targets.
# Changing it breaks buttons on messages already sent.
CONTROL_ID_SEPARATOR = "__"

# Job ids are uuid4 hex strings
JOB_ID_LENGTH = 32

DISCORD_MESSAGE_URL = "https://discord.com/channels/{guild_id}/{channel_id}/{message_id}"


@dataclass(frozen=True)
class ReminderLabels:
    """Labels and identifiers for one reminder flavour.

    The list title and every control prefix end up inside messages that
    users can still click days later, so these are part of the wire format.
    """
    class_name: str = "ReminderBot"
    reminder_type: str = "reminder"
    type_title: str = "Reminder"
    triggered_title: str = "Reminder Triggered"
    job_kind: str = JOB_KIND_REMINDER

    @property
    def btn_prev(self) -> str:
        return f"{self.class_name}_btnPrev"

    @property
    def btn_next(self) -> str:
        return f"{self.class_name}_btnNext"

    @property
    def btn_delete_prompt(self) -> str:
        return f"{self.class_name}_btnDeletePrompt"

    @property
    def btn_delete_confirm(self) -> str:
        return f"{self.class_name}_btnDeleteConfirm"

    @property
    def btn_delete_cancel(self) -> str:
        return f"{self.class_name}_btnDeleteCancel"

    @property
    def create_modal_prefix(self) -> str:
        return f"{self.class_name}_createReminderModal{CONTROL_ID_SEPARATOR}"

    @property
    def input_time_id(self) -> str:
        return f"{self.class_name}_timeTextInput"

    @property
    def input_description_id(self) -> str:
        return f"{self.class_name}_descriptionInput"


CREATE_MODAL_SUFFIX_NOREPLY = "noreply"

DEFAULT_LABELS = ReminderLabels()
