"""Long-term memory per identity.

Entries are append-only and ordered oldest first. Every append trims the
list back under the character budget before it is cached and persisted,
so readers only ever see trimmed state.
"""

import asyncio
from collections import defaultdict
from typing import Any, Optional

from loguru import logger

from nanothread.memory.trim import MAX_MEMORY_CHARS, total_chars, trim_memory
from nanothread.models.chat import MemoryEntry
from nanothread.storage.persistence import EncryptedStore

USER_NAMESPACE = "memory/user"
CLONE_NAMESPACE = "memory/clone"


class MemoryStore:
    """
    Cached, encrypted, budget-bounded memory for one namespace.

    Persistence failures never propagate: the cache keeps the update and the
    next successful write carries it to disk.
    """

    def __init__(
        self,
        persistence: EncryptedStore,
        namespace: str = USER_NAMESPACE,
        budget: int = MAX_MEMORY_CHARS,
    ):
        self.persistence = persistence
        self.namespace = namespace
        self.budget = budget
        self._cache: dict[str, list[MemoryEntry]] = {}
        self._locks: defaultdict[str, asyncio.Lock] = defaultdict(asyncio.Lock)

    async def append(self, identity: str, entry: MemoryEntry) -> None:
        """Add an entry, trim to budget, cache, and persist."""
        async with self._locks[identity]:
            existing = await self._load(identity)
            entries = trim_memory(existing + [entry], self.budget)
            dropped = len(existing) + 1 - len(entries)
            self._cache[identity] = entries
            logger.debug(
                f"Memory {self.namespace}/{identity}: {len(entries)} entries, "
                f"{total_chars(entries)} chars, {dropped} trimmed"
            )

            try:
                await self.persistence.asave(self.namespace, identity, [e.to_dict() for e in entries])
            except (OSError, TypeError, ValueError) as e:
                logger.error(f"Failed to persist memory {self.namespace}/{identity}: {e}")

    async def recall(self, identity: str) -> list[MemoryEntry]:
        """Entries for an identity, oldest first. Never trims."""
        return list(await self._load(identity))

    def cached(self, identity: str) -> Optional[list[MemoryEntry]]:
        entries = self._cache.get(identity)
        return list(entries) if entries is not None else None

    def clear(self, identity: str) -> None:
        """Drop one identity from the cache; the next read goes to disk."""
        self._cache.pop(identity, None)

    async def _load(self, identity: str) -> list[MemoryEntry]:
        if identity in self._cache:
            return self._cache[identity]
        raw = await self.persistence.aload(self.namespace, identity, fallback=[])
        entries = self._parse(identity, raw)
        self._cache[identity] = entries
        return entries

    def _parse(self, identity: str, raw: Any) -> list[MemoryEntry]:
        if not isinstance(raw, list):
            logger.warning(f"Unexpected memory format for {self.namespace}/{identity}; starting empty")
            return []
        return [MemoryEntry.from_dict(item) for item in raw if isinstance(item, dict)]
