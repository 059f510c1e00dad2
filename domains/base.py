"""Base chat gateway class.

The reminder core never touches the Discord client directly. It resolves
and messages channels through a ChatGateway, which ``bot.py`` builds around
the live client.
"""

from abc import ABC, abstractmethod

from domains.reminders.documents import Document


class ChatGateway(ABC):
    """What the reminder core needs from the chat platform."""

    @abstractmethod
    async def destination_mention(self, channel_id: int) -> str:
        """Mention text for a channel, e.g. "<#123>".

        Raises:
            DestinationUnavailable: If the channel is gone or cannot receive messages
        """
        pass

    @abstractmethod
    async def user_mention(self, user_id: int) -> str:
        """Mention text for a user, e.g. "<@456>".

        Raises:
            DestinationUnavailable: If the user cannot be resolved
        """
        pass

    @abstractmethod
    async def send(self, channel_id: int, content: str, document: Document) -> None:
        """Post a document to a channel with ``content`` above it.

        Raises:
            DestinationUnavailable: If the channel is gone or cannot receive messages
        """
        pass
