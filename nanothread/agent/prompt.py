"""Prompt assembly: background context first, live conversation last."""

from datetime import datetime
from typing import Any, Callable, Iterable, Optional, Sequence

from loguru import logger

from nanothread.agent.formatting import clean_turn_text, sanitise_input, system_metadata
from nanothread.models.blocks import Block, TextBlock, blocks_to_payload
from nanothread.models.chat import ConversationThread, MemoryEntry

DEFAULT_MAX_MEMORY_ENTRIES = 50
CLONE_STYLE_ENTRIES = 5
CLONE_STYLE_CHARS = 150


def persona_description(base: str, style_entries: Optional[Sequence[MemoryEntry]] = None) -> str:
    """
    Persona text, optionally followed by a snippet of the clone's recent style.

    ``style_entries`` is only given when the speaker is the clone identity.
    """
    if style_entries is None:
        return base
    if style_entries:
        snippet = " ".join(e.content for e in style_entries[-CLONE_STYLE_ENTRIES:])[:CLONE_STYLE_CHARS]
    else:
        snippet = "Not enough data to learn your personality."
    return f"{base}\n\nAs a clone, your recent style: {snippet}"


class PromptAssembler:
    """
    Builds the ordered message list for one model call.

    System entries come first in a fixed order: persona, memory,
    reply-context note, channel history, then the time and formatting guide.
    A single user entry follows with the reconstructed reply chain, the
    extracted content blocks and any leftover links.
    """

    def __init__(
        self,
        max_memory_entries: int = DEFAULT_MAX_MEMORY_ENTRIES,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.max_memory_entries = max_memory_entries
        self.clock = clock or datetime.now

    def reconstruct(self, thread: ConversationThread, start_message_id: str) -> list[TextBlock]:
        """
        Walk ``reply_to_id`` back from the start message, oldest turn first.

        The walk stops at a message with no parent or whose parent is not in
        the thread.
        """
        turns: list[TextBlock] = []
        visited: set[str] = set()
        cursor: Optional[str] = start_message_id
        while cursor and cursor not in visited:
            visited.add(cursor)
            turn = thread.get(cursor)
            if turn is None:
                break
            verb = "asked" if turn.role == "user" else "replied"
            turns.append(TextBlock(f"{turn.display_name} {verb}: {clean_turn_text(turn.content)}"))
            cursor = turn.reply_to_id
        turns.reverse()
        return turns

    def build(
        self,
        thread: ConversationThread,
        start_message_id: str,
        persona: str,
        memory: Sequence[MemoryEntry],
        extra_blocks: Iterable[Block],
        *,
        reply_context: Optional[str] = None,
        channel_history: Optional[str] = None,
        markdown_guide: Optional[str] = None,
        generic_urls: Iterable[str] = (),
        memory_label: str = "Long-term memory:",
    ) -> list[dict[str, Any]]:
        """
        Build the complete message list for a model call.

        Args:
            thread: Thread holding the reply chain.
            start_message_id: Id of the live message the chain is walked from.
            persona: Persona text; skipped when empty.
            memory: Recalled memory, oldest first; only the most recent
                ``max_memory_entries`` are used.
            extra_blocks: Extracted content for the live message.
            reply_context: Note about what the live message replies to.
            channel_history: Recent channel lines, oldest first.
            markdown_guide: Formatting guide; when not None a system entry
                with the current time and the guide is added.
            generic_urls: Links that did not become blocks.
            memory_label: Heading for the memory entry.

        Returns:
            OpenAI-style message dicts; the last one is always the user entry.
        """
        messages: list[dict[str, Any]] = []

        if persona:
            messages.append({"role": "system", "content": sanitise_input(persona)})

        recent = list(memory)[-self.max_memory_entries:] if self.max_memory_entries > 0 else []
        if recent:
            lines = "\n".join(sanitise_input(e.content) for e in recent)
            messages.append({"role": "system", "content": f"{memory_label}\n{lines}"})

        if reply_context:
            messages.append({"role": "system", "content": sanitise_input(reply_context)})

        if channel_history:
            messages.append({"role": "system", "content": f"Recent channel history:\n{sanitise_input(channel_history)}"})

        if markdown_guide is not None:
            messages.append({"role": "system", "content": system_metadata(markdown_guide, self.clock())})

        user_blocks: list[Block] = list(self.reconstruct(thread, start_message_id))
        user_blocks.extend(extra_blocks)
        user_blocks.extend(TextBlock(sanitise_input(f"[link] {url}")) for url in generic_urls)
        if not user_blocks:
            user_blocks = [TextBlock("")]
        messages.append({"role": "user", "content": blocks_to_payload(user_blocks)})

        logger.debug(
            f"Prompt built: {len(messages) - 1} system entries, {len(user_blocks)} user blocks, "
            f"{len(recent)} memory entries"
        )
        return messages
