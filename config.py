"""Global configuration for the Reminder Bot."""

import os
from pathlib import Path
from dotenv import load_dotenv

load_dotenv()

# Discord
DISCORD_TOKEN = os.getenv("DISCORD_TOKEN")

# Data directory (shared by the job database and logs)
DATA_DIR = Path(os.getenv("LOCALAPPDATA", ".")) / "reminder-bot"

# Job store
REMINDER_DB_PATH = os.getenv("REMINDER_DB_PATH", str(DATA_DIR / "reminders.db"))

# How often to look for jobs written by another process (seconds)
REMINDER_POLL_SECONDS = int(os.getenv("REMINDER_POLL_SECONDS", "60"))

# Zone assumed for absolute dates typed without an offset
REMINDER_TIMEZONE = os.getenv("REMINDER_TIMEZONE", "UTC")

# Logging
LOG_DIR = Path(os.getenv("LOG_DIR", str(DATA_DIR / "logs")))
LOG_DIR.mkdir(parents=True, exist_ok=True)

# Level for the bot's own log output (DEBUG, INFO, WARNING, ...)
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
