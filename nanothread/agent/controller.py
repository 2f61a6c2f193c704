"""Message controller: decides whether to reply and runs the reply workflow."""

from typing import Callable, Iterable, Optional

from loguru import logger

from nanothread.agent.formatting import strip_bot_mention
from nanothread.agent.prompt import PromptAssembler, persona_description
from nanothread.agent.reply import ReplyService
from nanothread.channels.base import OutboundFile, PlatformClient
from nanothread.config.schema import PersonaConfig
from nanothread.errors import ConfigurationError
from nanothread.extract import ContentExtractor
from nanothread.memory.store import MemoryStore
from nanothread.models.blocks import TextBlock
from nanothread.models.chat import ChatMessage, ConversationThread, InboundMessage, MemoryEntry, ScopeMode, scope_key_for
from nanothread.session.store import SessionStore
from nanothread.utils.timers import DelayedTask

INTERJECTION_INSTRUCTION = (
    "[System instruction] This is a random interjection: respond as a spontaneous comment, "
    "not as an answer to a question."
)
REPLY_FAILED_TEXT = "⚠️ Sorry, I hit a snag generating that reply."

INTERJECTION_MIN_MESSAGES = 10  # User messages since the bot last spoke
CHANNEL_HISTORY_FETCH = 100
CHANNEL_HISTORY_CHARS = 500


class MessageController:
    """
    Entry point for every inbound platform message.

    A message gets a reply when it mentions the agent in a guild, arrives
    as a direct message, or wins a random interjection draw in a busy
    channel. Interjections are debounced so a burst of messages from one
    author gets a single reply to the last of them.
    """

    def __init__(
        self,
        client: PlatformClient,
        session: SessionStore,
        extractor: ContentExtractor,
        assembler: PromptAssembler,
        replies: ReplyService,
        user_memory: MemoryStore,
        clone_memory: MemoryStore,
        persona: Optional[PersonaConfig] = None,
        use_persona: bool = True,
        clone_user_id: str = "",
        scope_mode: ScopeMode = "guild",
        ready: Optional[Callable[[], bool]] = None,
    ):
        self.client = client
        self.session = session
        self.extractor = extractor
        self.assembler = assembler
        self.replies = replies
        self.user_memory = user_memory
        self.clone_memory = clone_memory
        self.persona = persona or PersonaConfig()
        self.use_persona = use_persona
        self.clone_user_id = clone_user_id or self.persona.clone_user_id
        self.scope_mode = scope_mode
        self.ready = ready or (lambda: True)

    async def preload(self, scopes: Iterable[str]) -> None:
        """Load persisted conversations for known scopes at startup."""
        await self.session.preload(scopes)

    async def handle(self, message: InboundMessage) -> None:
        self.session.note_message(message.channel_id, message.author_is_bot)

        if message.author_is_bot or (not message.is_direct and message.mentions_everyone) or not self.ready():
            logger.debug(f"Ignored message {message.id}")
            return

        key = f"{message.channel_id}_{message.author_id}"
        mentioned = not message.is_direct and message.mentions(self.client.bot_user_id)

        if (
            not mentioned
            and not message.is_direct
            and self.session.messages_since_bot(message.channel_id) >= INTERJECTION_MIN_MESSAGES
            and self.session.rate_gate.should_interject(message.guild_id)
        ):
            logger.debug(f"Queued interjection for {key}")
            self.session.schedule_interjection(key, lambda: self.reply_safely(message, interject=True))
            return

        if self.session.interjection_pending(key):
            self.session.schedule_interjection(key, lambda: self.reply_safely(message, interject=True))
            return

        if mentioned or message.is_direct:
            await self.reply_safely(message, interject=False)
            return

        logger.debug("No mention or interjection; skipping")

    async def reply_safely(self, message: InboundMessage, interject: bool = False) -> None:
        """``reply`` with a user-facing apology when it fails."""
        try:
            await self.reply(message, interject)
        except ConfigurationError:
            raise
        except Exception as e:
            logger.error(f"Error in reply workflow for {message.id}: {e}")
            try:
                await self.client.reply(message, REPLY_FAILED_TEXT)
            except Exception as send_error:
                logger.error(f"Failed to send error reply: {send_error}")

    async def reply(self, message: InboundMessage, interject: bool = False) -> Optional[InboundMessage]:
        """
        Run the full reply workflow for one message.

        Returns:
            The sent reply, or None when the cooldown refused the message.
        """
        user_id = message.author_id
        clean = strip_bot_mention(message.content, self.client.bot_user_id)
        await self._send_typing(message.channel_id)

        is_clone = bool(self.clone_user_id) and user_id == self.clone_user_id
        if is_clone:
            logger.debug("Updating clone memory")
            await self.clone_memory.append(user_id, MemoryEntry.now(clean))

        if not self.session.rate_gate.try_acquire(message.guild_id, user_id):
            await self._cooldown_notice(message)
            return None

        scope = scope_key_for(message.guild_id, user_id, self.scope_mode)
        await self.session.load_scope(scope)
        threads = self.session.threads
        thread_id, thread = threads.resolve(scope, message)
        user_turn = ChatMessage.from_inbound(message, "user", content=clean)
        threads.record(scope, thread_id, user_turn)

        channel_history = await self._channel_history(message)
        extraction = await self.extractor.extract(message)

        summary = threads.archive_if_full(scope, thread_id)
        if summary is not None:
            await self.user_memory.append(user_id, MemoryEntry.now(f"🔖 {summary}"))
            # The live turn starts the cleared thread
            threads.record(scope, thread_id, user_turn)

        blocks = list(extraction.blocks)
        if interject:
            blocks.insert(0, TextBlock(INTERJECTION_INSTRUCTION))

        memory_store = self.clone_memory if is_clone else self.user_memory
        memory = await memory_store.recall(user_id)
        persona = ""
        if self.use_persona:
            persona = persona_description(self.persona.base_description, memory if is_clone else None)

        messages = self.assembler.build(
            thread,
            message.id,
            persona,
            memory,
            blocks,
            reply_context=self._reply_context(message, thread),
            channel_history=channel_history,
            markdown_guide=self.persona.markdown_guide,
            generic_urls=extraction.generic_urls,
            memory_label="Clone memory:" if is_clone else "Long-term memory:",
        )

        result = await self.replies.generate(messages, user_id)
        files = [OutboundFile(f"math-{i}.png", data) for i, data in enumerate(result.math_images)]
        sent = await self.client.reply(message, result.text, files)
        logger.debug(f"Reply sent id={sent.id}")

        threads.record(scope, thread_id, ChatMessage(
            id=sent.id,
            role="assistant",
            display_name=self.client.bot_name,
            content=result.text,
            reply_to_id=message.id,
        ))
        await self.user_memory.append(user_id, MemoryEntry.now(f"Replied: {result.text}"))
        await self.session.save()
        return sent

    def _reply_context(self, message: InboundMessage, thread: ConversationThread) -> Optional[str]:
        if message.reference_id and thread.get(message.reference_id) is None:
            return "This message replies to an earlier message that is no longer in the conversation history."
        return None

    async def _send_typing(self, channel_id: str) -> None:
        try:
            await self.client.send_typing(channel_id)
        except Exception as e:
            logger.debug(f"Typing indicator failed: {e}")

    async def _cooldown_notice(self, message: InboundMessage) -> None:
        """Tell the user about the cooldown; the notice removes itself when it ends."""
        seconds = self.session.configs.get(message.guild_id).cooldown_seconds
        notice = await self.client.reply(message, f"⏳ Cooldown: {seconds:.2f}s")
        DelayedTask(
            seconds,
            lambda: self._delete_quietly(notice),
            clock=self.session.clock,
            name=f"cooldown-notice:{notice.id}",
        ).start()

    async def _delete_quietly(self, notice: InboundMessage) -> None:
        try:
            await self.client.delete(notice)
        except Exception as e:
            logger.debug(f"Could not delete cooldown notice {notice.id}: {e}")

    async def _channel_history(self, message: InboundMessage) -> Optional[str]:
        """
        Recent channel lines as ``[HH:MM] name: content``, oldest first.

        Messages are taken newest first until about 500 characters of
        content have been collected.
        """
        try:
            recent = await self.client.fetch_recent(message.channel_id, limit=CHANNEL_HISTORY_FETCH)
        except Exception as e:
            logger.error(f"Failed to fetch channel history: {e}")
            return None

        total = 0
        lines: list[str] = []
        for msg in sorted(recent, key=lambda m: m.created_at, reverse=True):
            if total >= CHANNEL_HISTORY_CHARS:
                break
            total += len(msg.content)
            lines.append(f"[{msg.created_at:%H:%M}] {msg.author_name or msg.author_id}: {msg.content}")
        lines.reverse()
        logger.debug(f"Collected {len(lines)} history lines")
        return "\n".join(lines) or None
