"""Utility functions for nanothread."""

from nanothread.utils.helpers import (
    atomic_write_text,
    ensure_dir,
    safe_filename,
    sanitize_display_name,
    strip_query,
)
from nanothread.utils.timers import AsyncioClock, Clock, DelayedTask, ManualClock

__all__ = [
    "atomic_write_text",
    "ensure_dir",
    "safe_filename",
    "sanitize_display_name",
    "strip_query",
    "Clock",
    "AsyncioClock",
    "ManualClock",
    "DelayedTask",
]
