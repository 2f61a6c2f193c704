"""Character-budget trimming for long-term memory."""

from nanothread.models.chat import MemoryEntry

MAX_MEMORY_CHARS = 1_000


def total_chars(entries: list[MemoryEntry]) -> int:
    return sum(len(e.content) for e in entries)


def trim_memory(entries: list[MemoryEntry], max_chars: int = MAX_MEMORY_CHARS) -> list[MemoryEntry]:
    """
    Drop the oldest entries until the combined content fits ``max_chars``.

    Args:
        entries: Memory entries, oldest first.
        max_chars: Hard cap on the summed ``len(content)``.

    Returns:
        A new list holding the most recent entries that fit.
    """
    out = list(entries)
    total = total_chars(out)
    while total > max_chars and out:
        removed = out.pop(0)
        total -= len(removed.content)
    return out
