"""Shared fixtures for nanothread tests."""

import itertools
from datetime import datetime, timedelta

import pytest

from nanothread.channels.base import OutboundFile, PlatformClient
from nanothread.config.scopes import ScopeConfigStore
from nanothread.models.chat import InboundMessage
from nanothread.storage.crypto import Cipher
from nanothread.storage.persistence import EncryptedStore
from nanothread.utils.timers import ManualClock

BOT_ID = "999"


class FakePlatformClient(PlatformClient):
    """In-memory platform client recording everything sent through it."""

    name = "fake"

    def __init__(self, recent: list[InboundMessage] | None = None):
        self.sent: list[tuple[InboundMessage, str, list[OutboundFile]]] = []
        self.deleted: list[str] = []
        self.typing: list[str] = []
        self.recent = recent or []
        self._ids = itertools.count(5000)

    @property
    def bot_user_id(self) -> str:
        return BOT_ID

    @property
    def bot_name(self) -> str:
        return "Nano"

    async def reply(self, message, content, files=None):
        self.sent.append((message, content, list(files or [])))
        return InboundMessage(
            id=str(next(self._ids)),
            channel_id=message.channel_id,
            author_id=BOT_ID,
            author_name="Nano",
            content=content,
            reference_id=message.id,
            guild_id=message.guild_id,
            author_is_bot=True,
        )

    async def send_typing(self, channel_id):
        self.typing.append(channel_id)

    async def fetch_recent(self, channel_id, limit=50):
        return self.recent[:limit]

    async def delete(self, message):
        self.deleted.append(message.id)

    @property
    def texts(self) -> list[str]:
        return [content for _, content, _ in self.sent]


@pytest.fixture
def cipher():
    """Cipher with a fixed test secret."""
    return Cipher("test-secret")


@pytest.fixture
def store(tmp_path, cipher):
    """Encrypted store rooted in a temp directory."""
    return EncryptedStore(tmp_path / "data", cipher)


@pytest.fixture
def configs(tmp_path):
    """Scope configuration backed by a temp file."""
    return ScopeConfigStore(tmp_path / "guildConfigs.json")


@pytest.fixture
def clock():
    return ManualClock()


@pytest.fixture
def make_message():
    """Factory for inbound messages with sensible defaults."""
    base_time = datetime(2024, 5, 1, 12, 0, 0)

    def _make(
        id: str,
        content: str = "hello",
        author_id: str = "u1",
        author_name: str = "alice",
        channel_id: str = "chan1",
        guild_id: str | None = "g1",
        reference_id: str | None = None,
        **kwargs,
    ) -> InboundMessage:
        kwargs.setdefault("created_at", base_time + timedelta(minutes=int(id) if id.isdigit() else 0))
        return InboundMessage(
            id=id,
            channel_id=channel_id,
            author_id=author_id,
            author_name=author_name,
            content=content,
            guild_id=guild_id,
            reference_id=reference_id,
            **kwargs,
        )

    return _make
