"""nanothread - conversation context for a chat agent living in a messaging platform."""

__version__ = "0.1.0"
