"""Logging for the Reminder Bot.

Everything goes to one file per day in LOG_DIR. The console only gets
output when the bot runs in a terminal.
"""

import logging
import sys
from datetime import date

from config import LOG_DIR, LOG_LEVEL

FILE_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
CONSOLE_FORMAT = "%(asctime)s | %(levelname)-8s | %(message)s"

# Library loggers worth keeping: missed triggers, rate limits, gateway drops
LIBRARY_LOGGERS = ("apscheduler", "discord")


def _log_file_handler(level: int) -> logging.FileHandler:
    handler = logging.FileHandler(LOG_DIR / f"reminders-{date.today().isoformat()}.log", encoding="utf-8")
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(FILE_FORMAT, datefmt="%Y-%m-%d %H:%M:%S"))
    return handler


def setup_logging(level_name: str = LOG_LEVEL) -> logging.Logger:
    """Build the ``reminder_bot`` logger and hook library warnings into its file."""
    level = logging.getLevelName(level_name.upper())
    if not isinstance(level, int):
        level = logging.INFO

    bot_logger = logging.getLogger("reminder_bot")
    bot_logger.setLevel(level)
    bot_logger.handlers.clear()

    file_handler = _log_file_handler(level)
    bot_logger.addHandler(file_handler)

    for library in LIBRARY_LOGGERS:
        library_logger = logging.getLogger(library)
        library_logger.setLevel(logging.WARNING)
        library_logger.addHandler(file_handler)

    if sys.stdout is not None and sys.stdout.isatty():
        console = logging.StreamHandler(sys.stdout)
        console.setLevel(level)
        console.setFormatter(logging.Formatter(CONSOLE_FORMAT, datefmt="%H:%M:%S"))
        bot_logger.addHandler(console)

    return bot_logger


logger = setup_logging()
