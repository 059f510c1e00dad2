"""Domain modules for the Reminder Bot."""

from .base import ChatGateway

__all__ = ["ChatGateway"]
