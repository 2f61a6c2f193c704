"""Reply-chain thread resolution.

Each scope owns two maps: thread id -> ``ConversationThread`` and message id
-> thread id. A message that replies to a known message inherits its thread;
anything else starts a new one named ``{channel_id}-{message_id}``.

The id map is never pruned. When a thread reaches the message limit its
message bodies are cleared but every id it ever held still maps to it, so a
reply to an evicted message stays in the same thread.
"""

from typing import Any, Optional

from loguru import logger

from nanothread.models.chat import ChatMessage, ConversationThread, InboundMessage

DEFAULT_MESSAGE_LIMIT = 10


class ThreadResolver:
    """Maps inbound messages to conversation threads, per scope."""

    def __init__(self, message_limit: int = DEFAULT_MESSAGE_LIMIT):
        self.message_limit = message_limit
        self._histories: dict[str, dict[str, ConversationThread]] = {}
        self._id_maps: dict[str, dict[str, str]] = {}
        self._dirty: set[str] = set()

    def has_scope(self, scope: str) -> bool:
        return scope in self._id_maps

    def _ensure_scope(self, scope: str) -> tuple[dict[str, ConversationThread], dict[str, str]]:
        if scope not in self._id_maps:
            self._histories[scope] = {}
            self._id_maps[scope] = {}
            logger.debug(f"Initialized thread history for scope {scope}")
        return self._histories[scope], self._id_maps[scope]

    def resolve_thread_id(self, scope: str, message: InboundMessage) -> str:
        """
        Thread id for an inbound message, recording the message's membership.

        A reply to an unknown message (never seen, or from before a restart
        without a snapshot) starts an isolated thread rather than being
        repaired.
        """
        _, ids = self._ensure_scope(scope)
        parent = message.reference_id
        if parent and parent in ids:
            thread_id = ids[parent]
        else:
            thread_id = f"{message.channel_id}-{message.id}"
        ids[message.id] = thread_id
        self._dirty.add(scope)
        logger.debug(f"Message {message.id} in scope {scope} -> thread {thread_id}")
        return thread_id

    def resolve(self, scope: str, message: InboundMessage) -> tuple[str, ConversationThread]:
        """Resolve the thread id and return it with its (possibly new) thread."""
        thread_id = self.resolve_thread_id(scope, message)
        return thread_id, self.thread(scope, thread_id)

    def thread(self, scope: str, thread_id: str) -> ConversationThread:
        threads, _ = self._ensure_scope(scope)
        if thread_id not in threads:
            threads[thread_id] = ConversationThread()
            logger.debug(f"Started new thread {thread_id}")
        return threads[thread_id]

    def thread_id_for(self, scope: str, message_id: str) -> Optional[str]:
        return self._id_maps.get(scope, {}).get(message_id)

    def record(self, scope: str, thread_id: str, message: ChatMessage) -> None:
        """Insert a turn into a thread and map its id to the thread."""
        _, ids = self._ensure_scope(scope)
        self.thread(scope, thread_id).add(message)
        ids[message.id] = thread_id
        self._dirty.add(scope)

    def archive_if_full(self, scope: str, thread_id: str) -> Optional[str]:
        """
        Clear a thread that has reached the message limit.

        Returns:
            A summary of the last turns if the thread was archived, else None.
            The caller is expected to move the summary into long-term memory.
        """
        thread = self.thread(scope, thread_id)
        if thread.size < self.message_limit:
            return None
        summary = thread.summarise()
        thread.clear()
        self._dirty.add(scope)
        logger.debug(f"Archived thread {thread_id} in scope {scope} at {self.message_limit} messages")
        return summary

    def dirty_scopes(self) -> set[str]:
        return set(self._dirty)

    def mark_clean(self, scope: str) -> None:
        self._dirty.discard(scope)

    def snapshot(self, scope: str) -> dict[str, Any]:
        """JSON-safe copy of one scope's threads and id map."""
        threads, ids = self._ensure_scope(scope)
        return {
            "threads": {tid: thread.to_dict() for tid, thread in threads.items()},
            "idMap": [[mid, tid] for mid, tid in ids.items()],
        }

    def restore(self, scope: str, data: dict[str, Any]) -> None:
        """Replace one scope's state from a ``snapshot``."""
        self._histories[scope] = {
            tid: ConversationThread.from_dict(t) for tid, t in (data.get("threads") or {}).items()
        }
        self._id_maps[scope] = {mid: tid for mid, tid in (data.get("idMap") or [])}
        self._dirty.discard(scope)
        logger.debug(
            f"Restored scope {scope}: {len(self._histories[scope])} threads, "
            f"{len(self._id_maps[scope])} mapped messages"
        )
