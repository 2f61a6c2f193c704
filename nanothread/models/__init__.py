"""Data models for nanothread."""

from nanothread.models.blocks import (
    Block,
    FileBlock,
    ImageBlock,
    TextBlock,
    block_to_payload,
    blocks_to_payload,
)
from nanothread.models.chat import (
    Attachment,
    ChatMessage,
    ChatRole,
    ConversationThread,
    InboundMessage,
    MemoryEntry,
    Sticker,
    scope_key_for,
)

__all__ = [
    "Block",
    "TextBlock",
    "ImageBlock",
    "FileBlock",
    "block_to_payload",
    "blocks_to_payload",
    "Attachment",
    "Sticker",
    "InboundMessage",
    "ChatMessage",
    "ChatRole",
    "ConversationThread",
    "MemoryEntry",
    "scope_key_for",
]
