"""Discord rendering and input for reminders.

Converts Documents into embeds and button rows, builds the create modal,
and adapts raw component interactions into ButtonClick objects.
"""

from typing import Optional

import discord

from domains.base import ChatGateway
from logger import logger
from . import config
from .documents import ControlStyle, Control, Document, build_error_document
from .errors import DestinationUnavailable
from .interactions import ButtonClick, ClickOutcome, ReminderInteractions
from .manager import ReminderManager
from .models import ReminderRecord

_BUTTON_STYLES = {
    ControlStyle.PRIMARY: discord.ButtonStyle.primary,
    ControlStyle.SECONDARY: discord.ButtonStyle.secondary,
    ControlStyle.DANGER: discord.ButtonStyle.danger,
}


def to_embed(doc: Document) -> discord.Embed:
    """Convert a Document to a Discord embed."""
    embed = discord.Embed(title=doc.title, description=doc.description, color=doc.color)
    for f in doc.fields:
        embed.add_field(name=f.name, value=f.value, inline=f.inline)
    return embed


def to_view(rows: list[list[Control]]) -> Optional[discord.ui.View]:
    """Lay out control rows as a view, or None when there are no controls.

    Clicks are routed by custom id in ``on_interaction``, so the view is
    stopped straight away and discord.py never keeps it in its view store.
    """
    if not rows:
        return None

    view = discord.ui.View(timeout=None)
    for row_index, row in enumerate(rows):
        for control in row:
            view.add_item(discord.ui.Button(
                style=_BUTTON_STYLES[control.style],
                label=control.label,
                custom_id=control.custom_id,
                disabled=control.disabled,
                row=row_index
            ))
    view.stop()
    return view


def build_message_url(guild_id: int, channel_id: int, message_id: int) -> str:
    return config.DISCORD_MESSAGE_URL.format(guild_id=guild_id, channel_id=channel_id, message_id=message_id)


async def send_document(interaction: discord.Interaction, doc: Document) -> None:
    """Reply with a document, as a follow-up if the interaction was already answered."""
    kwargs = {"embed": to_embed(doc), "ephemeral": doc.ephemeral}
    view = to_view(doc.rows)
    if view is not None:
        kwargs["view"] = view

    if interaction.response.is_done():
        await interaction.followup.send(**kwargs)
    else:
        await interaction.response.send_message(**kwargs)


class DiscordGateway(ChatGateway):
    """ChatGateway backed by the live Discord client."""

    def __init__(self, client: discord.Client):
        self.client = client

    async def _messageable(self, channel_id: int):
        channel = self.client.get_channel(channel_id)
        if channel is None:
            try:
                channel = await self.client.fetch_channel(channel_id)
            except discord.HTTPException as e:
                raise DestinationUnavailable(f"Channel ID is unexpected: {channel_id} ({e})") from e

        if not isinstance(channel, discord.abc.Messageable):
            raise DestinationUnavailable(f"Channel ID is unexpected: {channel_id}")
        return channel

    async def destination_mention(self, channel_id: int) -> str:
        channel = await self._messageable(channel_id)
        return channel.mention

    async def user_mention(self, user_id: int) -> str:
        user = self.client.get_user(user_id)
        if user is None:
            try:
                user = await self.client.fetch_user(user_id)
            except discord.HTTPException as e:
                raise DestinationUnavailable(f"User ID is unexpected: {user_id} ({e})") from e
        return user.mention

    async def send(self, channel_id: int, content: str, document: Document) -> None:
        channel = await self._messageable(channel_id)
        try:
            await channel.send(
                content=content,
                embed=to_embed(document),
                allowed_mentions=discord.AllowedMentions(users=True)
            )
        except discord.HTTPException as e:
            raise DestinationUnavailable(f"Could not post to channel {channel_id}: {e}") from e


class CreateReminderModal(discord.ui.Modal):
    """Asks for the time and description of a new reminder."""

    def __init__(self, manager: ReminderManager, message_id: Optional[int] = None):
        labels = manager.labels
        suffix = str(message_id) if message_id is not None else config.CREATE_MODAL_SUFFIX_NOREPLY
        super().__init__(
            title=f"Create a New {labels.type_title}",
            custom_id=f"{labels.create_modal_prefix}{suffix}"
        )
        self.manager = manager
        self.message_id = message_id

        self.time_input = discord.ui.TextInput(
            label='When ("4 hours", "12/31/2022 8:30pm", etc)',
            custom_id=labels.input_time_id,
            style=discord.TextStyle.short,
            required=True
        )
        self.description_input = discord.ui.TextInput(
            label=f"{labels.type_title} description",
            custom_id=labels.input_description_id,
            style=discord.TextStyle.paragraph,
            required=True,
            min_length=1,
            max_length=config.MAX_DESCRIPTION_LENGTH
        )
        self.add_item(self.time_input)
        self.add_item(self.description_input)

    async def on_submit(self, interaction: discord.Interaction) -> None:
        if interaction.channel_id is None or interaction.guild_id is None:
            logger.error(f"Got modal submission outside a server channel: {self.custom_id}, skipping")
            await send_document(interaction, build_error_document(
                f"Failed to create {self.manager.labels.reminder_type}",
                "Reminders can only be created in a server channel."
            ))
            return

        await interaction.response.defer(ephemeral=True, thinking=True)

        message_url = None
        if self.message_id is not None:
            message_url = build_message_url(interaction.guild_id, interaction.channel_id, self.message_id)

        record = ReminderRecord(
            user_id=interaction.user.id,
            channel_id=interaction.channel_id,
            guild_id=interaction.guild_id,
            description=self.description_input.value,
            message_url=message_url
        )
        doc = await self.manager.create_reminder(record, self.time_input.value)
        await interaction.edit_original_response(embed=to_embed(doc))

    async def on_error(self, interaction: discord.Interaction, error: Exception) -> None:
        logger.exception(f"Create modal failed: {error}")
        await send_document(interaction, build_error_document(
            f"Failed to create {self.manager.labels.reminder_type}", "Unknown error"
        ))


def build_click(interaction: discord.Interaction) -> Optional[ButtonClick]:
    """Extract a ButtonClick from a component interaction, if it is a button."""
    if interaction.type != discord.InteractionType.component or interaction.message is None:
        return None

    custom_id = (interaction.data or {}).get("custom_id")
    if not custom_id:
        return None

    metadata = interaction.message.interaction_metadata
    embeds = interaction.message.embeds
    return ButtonClick(
        custom_id=custom_id,
        user_id=interaction.user.id,
        guild_id=interaction.guild_id,
        invoking_user_id=metadata.user.id if metadata is not None else None,
        message_title=embeds[0].title if embeds else None
    )


async def apply_click_outcome(interaction: discord.Interaction, outcome: ClickOutcome) -> None:
    """Edit the clicked message according to a ClickOutcome."""
    if outcome.document is not None:
        await interaction.response.edit_message(
            embed=to_embed(outcome.document),
            view=to_view(outcome.document.rows)
        )
    elif outcome.rows is not None:
        await interaction.response.edit_message(view=to_view(outcome.rows))
    else:
        await interaction.response.defer()

    if outcome.followup is not None:
        await interaction.followup.send(embed=to_embed(outcome.followup), ephemeral=True)


async def handle_component_interaction(
    interaction: discord.Interaction,
    interactions: ReminderInteractions
) -> bool:
    """Route a button click on a reminder list message.

    Returns:
        True if the click belonged to reminders and was answered
    """
    click = build_click(interaction)
    if click is None:
        return False

    try:
        outcome = await interactions.handle_button_click(click)
    except Exception as e:
        logger.exception(f"Button click {click.custom_id} failed: {e}")
        if not interaction.response.is_done():
            await send_document(interaction, build_error_document("Something went wrong", str(e)))
        return True

    if not outcome.handled:
        return False

    await apply_click_outcome(interaction, outcome)
    return True
