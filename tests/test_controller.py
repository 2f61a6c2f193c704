"""Tests for the message controller workflow."""

import asyncio
import random
from datetime import datetime
from unittest.mock import AsyncMock

import httpx
import pytest

from conftest import BOT_ID, FakePlatformClient
from nanothread.agent.controller import INTERJECTION_INSTRUCTION, REPLY_FAILED_TEXT, MessageController
from nanothread.agent.prompt import PromptAssembler
from nanothread.agent.reply import ReplyService
from nanothread.config.schema import PersonaConfig
from nanothread.extract import ContentExtractor
from nanothread.memory.store import CLONE_NAMESPACE, USER_NAMESPACE, MemoryStore
from nanothread.providers.base import LLMResponse
from nanothread.session.store import CONVERSATIONS_NAMESPACE, SessionStore


class AlwaysHit(random.Random):
    def random(self):
        return 0.0


@pytest.fixture
def provider():
    provider = AsyncMock()
    provider.get_default_model = lambda: "openai/gpt-4o"
    provider.chat.return_value = LLMResponse(content="Sure thing")
    return provider


@pytest.fixture
def platform():
    return FakePlatformClient()


@pytest.fixture
def build(configs, store, clock, provider, platform):
    """Factory for a controller wired to in-memory collaborators."""
    http = httpx.AsyncClient(transport=httpx.MockTransport(lambda request: httpx.Response(404)))

    def _build(message_limit=10, clone_user_id="", persona=None):
        session = SessionStore(configs, store, clock=clock, rng=AlwaysHit(), message_limit=message_limit)
        return MessageController(
            client=platform,
            session=session,
            extractor=ContentExtractor(http),
            assembler=PromptAssembler(),
            replies=ReplyService(provider),
            user_memory=MemoryStore(store, USER_NAMESPACE),
            clone_memory=MemoryStore(store, CLONE_NAMESPACE),
            persona=persona or PersonaConfig(base_description="You are Nano."),
            clone_user_id=clone_user_id,
        )

    return _build


def prompt_texts(provider, call=-1) -> list[str]:
    """All text parts of the user entry of a provider call."""
    messages = provider.chat.await_args_list[call].args[0]
    return [part["text"] for part in messages[-1]["content"] if part["type"] == "text"]


def system_texts(provider, call=-1) -> list[str]:
    messages = provider.chat.await_args_list[call].args[0]
    return [m["content"] for m in messages if m["role"] == "system"]


class TestReplyDecision:
    """Test which messages get a reply."""

    @pytest.mark.asyncio
    async def test_mention_gets_reply(self, build, platform, make_message):
        controller = build()
        await controller.handle(make_message("1", content=f"<@{BOT_ID}> hi there", mentioned_ids=[BOT_ID]))

        assert platform.texts == ["Sure thing"]
        assert platform.typing == ["chan1"]

    @pytest.mark.asyncio
    async def test_direct_message_gets_reply(self, build, platform, make_message):
        await build().handle(make_message("1", guild_id=None))
        assert platform.texts == ["Sure thing"]

    @pytest.mark.asyncio
    async def test_busy_direct_message_replies_immediately(self, build, platform, make_message):
        """A DM never enters the interjection draw, however busy the channel."""
        controller = build()
        for _ in range(12):
            controller.session.note_message("dm1", from_bot=False)

        await controller.handle(make_message("1", channel_id="dm1", guild_id=None))

        assert platform.texts == ["Sure thing"]
        assert controller.session.interjection_task("dm1_u1") is None

    @pytest.mark.asyncio
    async def test_unmentioned_guild_message_ignored(self, build, platform, provider, make_message):
        await build().handle(make_message("1"))
        assert platform.sent == []
        provider.chat.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_bots_and_everyone_ignored(self, build, platform, make_message):
        controller = build()
        await controller.handle(make_message("1", author_is_bot=True, mentioned_ids=[BOT_ID]))
        await controller.handle(make_message("2", mentions_everyone=True, mentioned_ids=[BOT_ID]))
        assert platform.sent == []

    @pytest.mark.asyncio
    async def test_not_ready_ignored(self, build, platform, make_message):
        controller = build()
        controller.ready = lambda: False
        await controller.handle(make_message("1", guild_id=None))
        assert platform.sent == []


class TestReplyWorkflow:
    """Test the effects of one reply."""

    @pytest.mark.asyncio
    async def test_records_thread_memory_and_saves(self, build, platform, provider, store, make_message):
        controller = build()
        await controller.handle(make_message("1", content=f"<@{BOT_ID}> what's up", mentioned_ids=[BOT_ID]))

        assert prompt_texts(provider)[0] == "alice asked: what's up"
        assert system_texts(provider)[0] == "You are Nano."

        thread = controller.session.threads.thread("g1", "chan1-1")
        assert [m.role for m in thread.messages.values()] == ["user", "assistant"]
        assert thread.get("5000").reply_to_id == "1"

        memory = await controller.user_memory.recall("u1")
        assert memory[-1].content == "Replied: Sure thing"
        assert store.exists(CONVERSATIONS_NAMESPACE, "g1")

    @pytest.mark.asyncio
    async def test_follow_up_sees_whole_chain(self, build, configs, provider, make_message):
        configs.disable_cooldown("g1")
        controller = build()
        await controller.handle(make_message("1", content="first", mentioned_ids=[BOT_ID]))
        await controller.handle(make_message("2", content="second", reference_id="5000", mentioned_ids=[BOT_ID]))

        assert prompt_texts(provider) == [
            "alice asked: first",
            "Nano replied: Sure thing",
            "alice asked: second",
        ]

    @pytest.mark.asyncio
    async def test_orphan_reply_gets_context_note(self, build, provider, make_message):
        await build().handle(make_message("1", reference_id="ancient", mentioned_ids=[BOT_ID]))
        assert any("no longer in the conversation history" in s for s in system_texts(provider))

    @pytest.mark.asyncio
    async def test_channel_history_oldest_first(self, build, platform, provider, make_message):
        platform.recent = [
            make_message("3", content="newest", author_name="carol", created_at=datetime(2024, 5, 1, 12, 3)),
            make_message("2", content="older", author_name="bob", created_at=datetime(2024, 5, 1, 12, 2)),
        ]
        await build().handle(make_message("4", mentioned_ids=[BOT_ID]))

        assert "Recent channel history:\n[12:02] bob: older\n[12:03] carol: newest" in system_texts(provider)

    @pytest.mark.asyncio
    async def test_archive_moves_summary_to_memory(self, build, configs, make_message):
        """At the message limit the thread is summarised into memory and restarted."""
        configs.disable_cooldown("g1")
        controller = build(message_limit=4)
        await controller.handle(make_message("1", content="one", mentioned_ids=[BOT_ID]))
        await controller.handle(make_message("2", content="two", reference_id="5000", mentioned_ids=[BOT_ID]))
        await controller.handle(make_message("3", content="three", reference_id="5001", mentioned_ids=[BOT_ID]))

        memory = [e.content for e in await controller.user_memory.recall("u1")]
        assert "🔖 two\nSure thing\nthree" in memory
        thread = controller.session.threads.thread("g1", "chan1-1")
        assert thread.is_archived
        assert list(thread.messages) == ["3", "5002"]

    @pytest.mark.asyncio
    async def test_clone_memory_and_persona(self, build, provider, make_message):
        controller = build(clone_user_id="u1")
        await controller.handle(make_message("1", content="yo whats good", mentioned_ids=[BOT_ID]))

        assert [e.content for e in await controller.clone_memory.recall("u1")] == ["yo whats good"]
        systems = system_texts(provider)
        assert systems[0].startswith("You are Nano.\n\nAs a clone, your recent style: yo whats good")
        assert systems[1] == "Clone memory:\nyo whats good"

    @pytest.mark.asyncio
    async def test_failure_sends_apology(self, build, platform, make_message):
        controller = build()
        controller.extractor.extract = AsyncMock(side_effect=RuntimeError("boom"))
        await controller.handle(make_message("1", mentioned_ids=[BOT_ID]))
        assert platform.texts == [REPLY_FAILED_TEXT]

    @pytest.mark.asyncio
    async def test_concurrent_messages_on_unloaded_scope(self, build, make_message):
        """Two users replying at once after a restart both keep their threads."""
        first = build()
        await first.handle(make_message("1", mentioned_ids=[BOT_ID]))

        second = build()
        await asyncio.gather(
            second.handle(make_message("2", author_id="u1", mentioned_ids=[BOT_ID])),
            second.handle(make_message("3", author_id="u2", author_name="bob", mentioned_ids=[BOT_ID])),
        )

        threads = second.session.threads
        assert threads.thread_id_for("g1", "5000") == "chan1-1"
        assert threads.thread_id_for("g1", "2") == "chan1-2"
        assert threads.thread_id_for("g1", "3") == "chan1-3"
        assert threads.thread("g1", "chan1-2").get("2") is not None

    @pytest.mark.asyncio
    async def test_preload_restores_threads(self, build, store, make_message):
        first = build()
        await first.handle(make_message("1", mentioned_ids=[BOT_ID]))

        second = build()
        await second.preload(["g1"])
        assert second.session.threads.thread_id_for("g1", "5000") == "chan1-1"


class TestCooldownFlow:
    @pytest.mark.asyncio
    async def test_second_message_gets_self_deleting_notice(self, build, platform, provider, clock, make_message):
        controller = build()
        await controller.handle(make_message("1", mentioned_ids=[BOT_ID]))
        await controller.handle(make_message("2", mentioned_ids=[BOT_ID]))

        assert platform.texts == ["Sure thing", "⏳ Cooldown: 2.50s"]
        assert provider.chat.await_count == 1

        clock.advance(2.5)
        await asyncio.sleep(0)
        await asyncio.sleep(0)
        assert platform.deleted == ["5001"]


class TestInterjections:
    """Test random interjections in busy channels."""

    @pytest.mark.asyncio
    async def test_debounced_interjection(self, build, platform, provider, clock, make_message):
        """After ten messages an interjection is queued and replies to the last message of the burst."""
        controller = build()
        for i in range(1, 10):
            await controller.handle(make_message(str(i), author_id=f"other{i}"))
        assert platform.sent == []

        await controller.handle(make_message("10", content="so anyway"))
        await controller.handle(make_message("11", content="as I was saying"))
        task = controller.session.interjection_task("chan1_u1")
        assert task is not None and task.pending

        clock.advance(2)
        await task.last_run

        assert [m.id for m, _, _ in platform.sent] == ["11"]
        assert prompt_texts(provider)[1] == INTERJECTION_INSTRUCTION

    @pytest.mark.asyncio
    async def test_bot_message_resets_counter(self, build, make_message):
        controller = build()
        for i in range(1, 5):
            await controller.handle(make_message(str(i), author_id=f"other{i}"))
        await controller.handle(make_message("12", author_id=BOT_ID, author_is_bot=True))

        assert controller.session.messages_since_bot("chan1") == 0
