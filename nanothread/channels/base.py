"""Base interface for the messaging-platform client."""

from abc import ABC, abstractmethod
from dataclasses import dataclass

from nanothread.models.chat import InboundMessage


@dataclass(frozen=True)
class OutboundFile:
    """A file attached to an outgoing reply (e.g. a rendered formula)."""
    filename: str
    data: bytes


class PlatformClient(ABC):
    """
    Abstract gateway client for a chat platform.

    Each platform adapter (Discord, etc.) implements this interface. The
    message controller only ever talks to the platform through it.
    """

    name: str = "base"

    @property
    @abstractmethod
    def bot_user_id(self) -> str:
        """The agent's own user id on the platform."""
        pass

    @property
    def bot_name(self) -> str:
        return "Bot"

    @abstractmethod
    async def reply(
        self,
        message: InboundMessage,
        content: str,
        files: list[OutboundFile] | None = None,
    ) -> InboundMessage:
        """
        Send ``content`` as a reply to ``message``.

        Returns:
            The sent message, so its id can be recorded in the thread.
        """
        pass

    @abstractmethod
    async def send_typing(self, channel_id: str) -> None:
        """Show a typing indicator in a channel."""
        pass

    @abstractmethod
    async def fetch_recent(self, channel_id: str, limit: int = 50) -> list[InboundMessage]:
        """
        Recent messages in a channel, newest first.

        Args:
            channel_id: Channel to read.
            limit: Maximum number of messages.
        """
        pass

    @abstractmethod
    async def delete(self, message: InboundMessage) -> None:
        """Delete a message previously sent by the agent."""
        pass
