"""Chat platform interface."""

from nanothread.channels.base import OutboundFile, PlatformClient

__all__ = ["PlatformClient", "OutboundFile"]
