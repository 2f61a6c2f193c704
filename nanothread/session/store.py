"""Session state shared by the message controller.

One ``SessionStore`` is built at startup and owns everything that lives for
the lifetime of the process: the thread resolver, the rate gate, pending
interjection timers and the per-channel "messages since bot" counters.
"""

import asyncio
import random
from collections import defaultdict
from typing import Iterable, Optional

from loguru import logger

from nanothread.config.scopes import ScopeConfigStore
from nanothread.session.rate_gate import RateGate
from nanothread.session.threads import DEFAULT_MESSAGE_LIMIT, ThreadResolver
from nanothread.storage.persistence import EncryptedStore
from nanothread.utils.timers import Callback, Clock, DelayedTask

CONVERSATIONS_NAMESPACE = "conversations"
INTERJECTION_DEBOUNCE_SECONDS = 2.0


class SessionStore:
    """
    Process-lifetime session state.

    Conversation snapshots are loaded per scope on first use (or through
    ``preload``) and written back by ``save`` for every scope touched since
    the last save.
    """

    def __init__(
        self,
        configs: ScopeConfigStore,
        persistence: EncryptedStore,
        clock: Optional[Clock] = None,
        rng: Optional[random.Random] = None,
        message_limit: int = DEFAULT_MESSAGE_LIMIT,
        debounce_seconds: float = INTERJECTION_DEBOUNCE_SECONDS,
    ):
        self.configs = configs
        self.persistence = persistence
        self.clock = clock
        self.debounce_seconds = debounce_seconds
        self.threads = ThreadResolver(message_limit)
        self.rate_gate = RateGate(configs, clock=clock, rng=rng)
        self._interjections: dict[str, DelayedTask] = {}
        self._since_bot: dict[str, int] = {}
        self._load_locks: defaultdict[str, asyncio.Lock] = defaultdict(asyncio.Lock)

    # Messages-since-bot counters

    def note_message(self, channel_id: str, from_bot: bool) -> int:
        """Count a channel message; a message from the bot resets the count."""
        if from_bot:
            self._since_bot[channel_id] = 0
        else:
            self._since_bot[channel_id] = self._since_bot.get(channel_id, 0) + 1
        return self._since_bot[channel_id]

    def messages_since_bot(self, channel_id: str) -> int:
        return self._since_bot.get(channel_id, 0)

    # Interjection debounce

    def interjection_pending(self, key: str) -> bool:
        task = self._interjections.get(key)
        return task is not None and task.pending

    def interjection_task(self, key: str) -> Optional[DelayedTask]:
        return self._interjections.get(key)

    def schedule_interjection(self, key: str, callback: Callback) -> DelayedTask:
        """
        (Re)start the debounce timer for ``key``.

        Any pending timer for the same key is cancelled first, so only the
        latest message's callback ever runs.
        """
        existing = self._interjections.pop(key, None)
        if existing is not None:
            existing.cancel()

        def fire():
            self._interjections.pop(key, None)
            return callback()

        task = DelayedTask(self.debounce_seconds, fire, clock=self.clock, name=f"interjection:{key}")
        self._interjections[key] = task
        task.start()
        logger.debug(f"Interjection scheduled for {key} in {self.debounce_seconds}s")
        return task

    def cancel_interjections(self) -> None:
        for task in self._interjections.values():
            task.cancel()
        self._interjections.clear()

    # Conversation persistence

    async def load_scope(self, scope: str) -> None:
        """
        Restore a scope's snapshot from disk unless it is already in memory.

        Loads of one scope are serialised, and state already in memory is
        never replaced by a snapshot.
        """
        if self.threads.has_scope(scope):
            return
        async with self._load_locks[scope]:
            if self.threads.has_scope(scope):
                return
            data = await self.persistence.aload(CONVERSATIONS_NAMESPACE, scope, fallback=None)
            if self.threads.has_scope(scope):
                return
            if isinstance(data, dict):
                self.threads.restore(scope, data)
            elif data is not None:
                logger.warning(f"Unexpected conversation format for scope {scope}; starting empty")

    async def preload(self, scopes: Iterable[str]) -> None:
        count = 0
        for scope in scopes:
            await self.load_scope(scope)
            count += 1
        logger.info(f"Preloaded conversations for {count} scope(s)")

    async def save(self) -> int:
        """
        Persist every dirty scope.

        Returns:
            Number of scopes written. A scope that fails to write stays dirty
            and is retried on the next save.
        """
        written = 0
        for scope in sorted(self.threads.dirty_scopes()):
            try:
                await self.persistence.asave(CONVERSATIONS_NAMESPACE, scope, self.threads.snapshot(scope))
            except (OSError, TypeError, ValueError) as e:
                logger.error(f"Failed to save conversations for scope {scope}: {e}")
                continue
            self.threads.mark_clean(scope)
            written += 1
        if written:
            logger.debug(f"Saved conversations for {written} scope(s)")
        return written
