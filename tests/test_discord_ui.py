"""Tests for the Discord adapter layer."""

import uuid
from unittest.mock import AsyncMock, Mock

import discord
import pytest

from domains.reminders import ClickOutcome, DestinationUnavailable
from domains.reminders.discord_ui import (
    DiscordGateway,
    apply_click_outcome,
    build_click,
    build_message_url,
    to_embed,
    to_view,
)
from domains.reminders.documents import build_error_document, build_notice_document
from domains.reminders.pagination import build_prompting_rows


def _component_interaction(custom_id, title="Reminder 1 of 2", invoker=111, clicker=111):
    interaction = Mock()
    interaction.type = discord.InteractionType.component
    interaction.data = {"custom_id": custom_id}
    interaction.user = Mock(id=clicker)
    interaction.guild_id = 900
    interaction.message = Mock(
        interaction_metadata=Mock(user=Mock(id=invoker)) if invoker is not None else None,
        embeds=[discord.Embed(title=title)]
    )
    interaction.response.edit_message = AsyncMock()
    interaction.response.defer = AsyncMock()
    interaction.followup.send = AsyncMock()
    return interaction


def _http_error():
    return discord.NotFound(Mock(status=404, reason="Not Found"), "Unknown Channel")


class TestRendering:

    def test_to_embed(self):
        doc = build_error_document("Failed to create reminder", "bad time")
        embed = to_embed(doc)

        assert embed.title == "Failed to create reminder"
        assert embed.description == "bad time"
        assert embed.color.value == 0xFF0000

    def test_message_url(self):
        assert build_message_url(1, 2, 3) == "https://discord.com/channels/1/2/3"

    @pytest.mark.asyncio
    async def test_to_view_rows(self):
        job_id = uuid.uuid4().hex
        view = to_view(build_prompting_rows(job_id))

        buttons = view.children
        assert [b.label for b in buttons] == ["Previous", "Next", "Delete", "Confirm", "Cancel"]
        assert [b.row for b in buttons] == [0, 0, 1, 1, 1]
        assert buttons[2].disabled is True
        assert buttons[3].style == discord.ButtonStyle.danger
        assert buttons[3].custom_id == f"ReminderBot_btnDeleteConfirm__{job_id}"

    @pytest.mark.asyncio
    async def test_to_view_empty(self):
        assert to_view([]) is None


class TestClicks:

    def test_build_click(self):
        click = build_click(_component_interaction("ReminderBot_btnNext", invoker=111, clicker=222))

        assert click.custom_id == "ReminderBot_btnNext"
        assert click.user_id == 222
        assert click.invoking_user_id == 111
        assert click.guild_id == 900
        assert click.message_title == "Reminder 1 of 2"

    def test_build_click_without_metadata(self):
        click = build_click(_component_interaction("ReminderBot_btnNext", invoker=None))

        assert click.invoking_user_id is None

    def test_build_click_ignores_other_interactions(self):
        interaction = _component_interaction("ReminderBot_btnNext")
        interaction.type = discord.InteractionType.application_command

        assert build_click(interaction) is None

    @pytest.mark.asyncio
    async def test_apply_document(self):
        interaction = _component_interaction("ReminderBot_btnNext")
        doc = build_notice_document("Reminder 2 of 2")

        await apply_click_outcome(interaction, ClickOutcome(document=doc))

        kwargs = interaction.response.edit_message.await_args.kwargs
        assert kwargs["embed"].title == "Reminder 2 of 2"
        assert kwargs["view"] is None
        interaction.followup.send.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_apply_rows_removes_controls(self):
        interaction = _component_interaction("ReminderBot_btnDeleteConfirm__" + "0" * 32)
        notice = build_error_document("Failed to delete reminder", "No jobs were deleted")

        await apply_click_outcome(interaction, ClickOutcome(rows=[], followup=notice))

        interaction.response.edit_message.assert_awaited_once_with(view=None)
        followup = interaction.followup.send.await_args.kwargs
        assert followup["embed"].title == "Failed to delete reminder"
        assert followup["ephemeral"] is True

    @pytest.mark.asyncio
    async def test_apply_noop_defers(self):
        interaction = _component_interaction("ReminderBot_btnNext")

        await apply_click_outcome(interaction, ClickOutcome())

        interaction.response.defer.assert_awaited_once()
        interaction.response.edit_message.assert_not_awaited()


class TestGateway:

    @pytest.mark.asyncio
    async def test_cached_channel(self):
        channel = Mock(spec=discord.TextChannel)
        channel.mention = "<#500>"
        client = Mock()
        client.get_channel.return_value = channel

        assert await DiscordGateway(client).destination_mention(500) == "<#500>"

    @pytest.mark.asyncio
    async def test_missing_channel(self):
        client = Mock()
        client.get_channel.return_value = None
        client.fetch_channel = AsyncMock(side_effect=_http_error())

        with pytest.raises(DestinationUnavailable):
            await DiscordGateway(client).destination_mention(500)

    @pytest.mark.asyncio
    async def test_channel_that_cannot_receive_messages(self):
        client = Mock()
        client.get_channel.return_value = Mock(spec=discord.CategoryChannel)

        with pytest.raises(DestinationUnavailable):
            await DiscordGateway(client).destination_mention(500)

    @pytest.mark.asyncio
    async def test_send_mentions_user(self):
        channel = Mock(spec=discord.TextChannel)
        channel.send = AsyncMock()
        client = Mock()
        client.get_channel.return_value = channel

        await DiscordGateway(client).send(500, "<@111>", build_notice_document("Reminder Triggered"))

        kwargs = channel.send.await_args.kwargs
        assert kwargs["content"] == "<@111>"
        assert kwargs["embed"].title == "Reminder Triggered"
        assert kwargs["allowed_mentions"].users is True

    @pytest.mark.asyncio
    async def test_unknown_user(self):
        client = Mock()
        client.get_user.return_value = None
        client.fetch_user = AsyncMock(side_effect=_http_error())

        with pytest.raises(DestinationUnavailable):
            await DiscordGateway(client).user_mention(111)
