"""Chat data model: inbound platform events, reconstructed turns, threads and memory."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Literal, Optional

from nanothread.utils.helpers import sanitize_display_name

ChatRole = Literal["user", "assistant"]
ScopeMode = Literal["guild", "user"]


@dataclass(frozen=True)
class Attachment:
    """A file attached to an inbound message."""
    url: str
    content_type: str = "application/octet-stream"
    name: str = "file"


@dataclass(frozen=True)
class Sticker:
    url: str


@dataclass
class InboundMessage:
    """
    A raw message event as delivered by the platform gateway.

    Only the fields this core reads are modelled; gateway adapters fill
    them from their native event objects.
    """

    id: str
    channel_id: str
    author_id: str
    content: str
    author_name: str = ""
    attachments: list[Attachment] = field(default_factory=list)
    stickers: list[Sticker] = field(default_factory=list)
    reference_id: Optional[str] = None  # Parent message id if this is a reply
    guild_id: Optional[str] = None  # None for direct messages
    author_is_bot: bool = False
    mentions_everyone: bool = False
    mentioned_ids: list[str] = field(default_factory=list)
    created_at: datetime = field(default_factory=datetime.now)

    @property
    def is_direct(self) -> bool:
        return self.guild_id is None

    def mentions(self, user_id: str) -> bool:
        return user_id in self.mentioned_ids


def scope_key_for(guild_id: Optional[str], author_id: str, mode: ScopeMode = "guild") -> str:
    """
    Compute the scope under which threads and cooldowns are partitioned.

    ``guild`` mode uses the guild id, falling back to the DM peer for direct
    messages; ``user`` mode always partitions by author.
    """
    if mode == "user":
        return author_id
    return guild_id or author_id


@dataclass(frozen=True)
class ChatMessage:
    """One turn of a conversation thread. Immutable once created."""

    id: str
    role: ChatRole
    display_name: str
    content: str
    author_id: Optional[str] = None  # Only for user turns
    reply_to_id: Optional[str] = None
    attachment_refs: tuple[str, ...] = ()

    @classmethod
    def from_inbound(
        cls,
        message: InboundMessage,
        role: ChatRole,
        bot_name: Optional[str] = None,
        content: Optional[str] = None,
    ) -> "ChatMessage":
        """
        Build a turn from a platform message.

        Args:
            message: The inbound (or sent) platform message.
            role: ``user`` for people, ``assistant`` for the bot's own replies.
            bot_name: Display name used for assistant turns.
            content: Override for the message text (e.g. with mentions stripped).
        """
        if role == "user":
            name = sanitize_display_name(message.author_name or message.author_id)
        else:
            name = bot_name or "Bot"
        images = tuple(
            a.url for a in message.attachments if a.content_type.startswith("image/")
        )
        return cls(
            id=message.id,
            role=role,
            display_name=name,
            content=message.content if content is None else content,
            author_id=message.author_id if role == "user" else None,
            reply_to_id=message.reference_id,
            attachment_refs=images,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "role": self.role,
            "name": self.display_name,
            "userId": self.author_id,
            "content": self.content,
            "replyToId": self.reply_to_id,
            "attachmentUrls": list(self.attachment_refs),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ChatMessage":
        return cls(
            id=data["id"],
            role=data.get("role", "user"),
            display_name=data.get("name", ""),
            content=data.get("content", ""),
            author_id=data.get("userId"),
            reply_to_id=data.get("replyToId"),
            attachment_refs=tuple(data.get("attachmentUrls") or ()),
        )


@dataclass
class ConversationThread:
    """A single root plus its reply chain, keyed by message id."""

    messages: dict[str, ChatMessage] = field(default_factory=dict)
    archives: int = 0  # Times the thread hit the message limit and was cleared

    def add(self, message: ChatMessage) -> None:
        self.messages[message.id] = message

    def get(self, message_id: Optional[str]) -> Optional[ChatMessage]:
        if message_id is None:
            return None
        return self.messages.get(message_id)

    def clear(self) -> None:
        self.messages.clear()
        self.archives += 1

    @property
    def size(self) -> int:
        return len(self.messages)

    @property
    def is_archived(self) -> bool:
        return self.archives > 0

    def summarise(self, last_n: int = 3) -> str:
        """Join the content of the most recent ``last_n`` turns."""
        return "\n".join(m.content for m in list(self.messages.values())[-last_n:])

    def to_dict(self) -> dict[str, Any]:
        return {
            "messages": [[mid, m.to_dict()] for mid, m in self.messages.items()],
            "archives": self.archives,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ConversationThread":
        return cls(
            messages={mid: ChatMessage.from_dict(m) for mid, m in data.get("messages", [])},
            archives=int(data.get("archives", 0)),
        )


@dataclass(frozen=True)
class MemoryEntry:
    """One long-term recollection. ``timestamp`` is milliseconds since the epoch."""

    timestamp: int
    content: str

    @classmethod
    def now(cls, content: str) -> "MemoryEntry":
        return cls(timestamp=int(datetime.now().timestamp() * 1000), content=content)

    def to_dict(self) -> dict[str, Any]:
        return {"timestamp": self.timestamp, "content": self.content}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "MemoryEntry":
        return cls(timestamp=int(data.get("timestamp", 0)), content=str(data.get("content", "")))
