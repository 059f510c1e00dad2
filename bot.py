"""Discord Reminder Bot - Main Bot.

Lets users create reminders with /reminder create or the "Create reminder"
message action, browse and delete them with /reminder list, and posts each
reminder in its channel when it is due.
"""

import asyncio

import discord
from discord import app_commands
from discord.ext import commands

from registry import SchedulerRegistry
from logger import logger
from config import DISCORD_TOKEN, REMINDER_DB_PATH, REMINDER_POLL_SECONDS, REMINDER_TIMEZONE

from domains.reminders import DeliveryWorker, ReminderInteractions, ReminderManager
from domains.reminders.config import CONTEXT_CREATE_NAME, SUBCMD_CREATE, SUBCMD_LIST
from domains.reminders.discord_ui import (
    CreateReminderModal,
    DiscordGateway,
    handle_component_interaction,
    send_document,
)

# Initialize bot
intents = discord.Intents.default()
bot = commands.Bot(command_prefix="/", intents=intents)

# One job scheduler per database, stopped together on shutdown
scheduler_registry = SchedulerRegistry()
job_scheduler = scheduler_registry.acquire(REMINDER_DB_PATH, poll_seconds=REMINDER_POLL_SECONDS)

# Reminder components share the client through the gateway
gateway = DiscordGateway(bot)
reminders = ReminderManager(job_scheduler, gateway, timezone_name=REMINDER_TIMEZONE)
reminder_buttons = ReminderInteractions(reminders)
delivery = DeliveryWorker(job_scheduler, gateway)
delivery.register()


@bot.event
async def on_ready():
    """Called when bot is connected and ready."""
    logger.info(f"Logged in as {bot.user}")

    # Sync slash commands with Discord
    try:
        synced = await bot.tree.sync()
        logger.info(f"Synced {len(synced)} slash commands")
    except Exception as e:
        logger.error(f"Failed to sync slash commands: {e}")

    # on_ready fires again after reconnects; only start once
    if not job_scheduler.scheduler.running:
        await job_scheduler.start()


@bot.event
async def on_interaction(interaction: discord.Interaction):
    """Route button clicks on reminder list messages."""
    if interaction.user.id == bot.user.id:
        return

    if interaction.type == discord.InteractionType.component:
        await handle_component_interaction(interaction, reminder_buttons)


reminder_group = app_commands.Group(
    name="reminder",
    description="Create, delete, or view your reminders."
)


@reminder_group.command(
    name=SUBCMD_CREATE,
    description="Creates a reminder. If used in a reply, will remind you about that message."
)
async def cmd_reminder_create(interaction: discord.Interaction):
    """Open the create-reminder modal."""
    logger.info(f"/reminder create from: {interaction.user.id}")
    await interaction.response.send_modal(CreateReminderModal(reminders))


@reminder_group.command(
    name=SUBCMD_LIST,
    description="Lists your reminders, which also allows you to delete them."
)
async def cmd_reminder_list(interaction: discord.Interaction):
    """Show the first of the user's reminders with paging buttons."""
    logger.info(f"/reminder list from: {interaction.user.id}")
    if interaction.guild_id is None:
        await interaction.response.send_message("Reminders only work inside a server.", ephemeral=True)
        return

    doc = await reminders.list_reminders(interaction.user.id, interaction.guild_id, 0)
    await send_document(interaction, doc)


bot.tree.add_command(reminder_group)


@bot.tree.context_menu(name=CONTEXT_CREATE_NAME)
async def ctx_create_reminder(interaction: discord.Interaction, message: discord.Message):
    """Open the create-reminder modal linked to the target message."""
    logger.info(f"Create reminder from {interaction.user.id} on message {message.id}")
    await interaction.response.send_modal(CreateReminderModal(reminders, message_id=message.id))


@bot.tree.error
async def on_app_command_error(interaction: discord.Interaction, error: app_commands.AppCommandError):
    """Log command failures and tell the user something went wrong."""
    logger.exception(f"Command {interaction.command.name if interaction.command else '?'} failed: {error}")
    message = "Something went wrong, try again shortly."
    if interaction.response.is_done():
        await interaction.followup.send(message, ephemeral=True)
    else:
        await interaction.response.send_message(message, ephemeral=True)


@bot.event
async def on_error(event, *args, **kwargs):
    """Handle errors."""
    logger.exception(f"Bot error in {event}: {args}")


async def run_bot():
    """Start the bot and stop the job schedulers on termination signals."""
    async with bot:
        scheduler_registry.install_shutdown_handlers(asyncio.get_running_loop(), on_stopped=bot.close)
        await bot.start(DISCORD_TOKEN)


def main():
    """Entry point."""
    if not DISCORD_TOKEN:
        logger.error("DISCORD_TOKEN not set")
        return

    logger.info("Starting Reminder Bot...")
    asyncio.run(run_bot())


if __name__ == "__main__":
    main()
