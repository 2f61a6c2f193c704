"""Long-term memory for nanothread."""

from nanothread.memory.store import CLONE_NAMESPACE, USER_NAMESPACE, MemoryStore
from nanothread.memory.trim import MAX_MEMORY_CHARS, trim_memory

__all__ = [
    "MemoryStore",
    "USER_NAMESPACE",
    "CLONE_NAMESPACE",
    "MAX_MEMORY_CHARS",
    "trim_memory",
]
