"""Tests for prompt assembly and text formatting."""

from datetime import datetime

import pytest

from nanothread.agent.formatting import (
    fix_math_formatting,
    fix_mentions,
    sanitise_input,
    strip_bot_mention,
    system_metadata,
)
from nanothread.agent.prompt import PromptAssembler, persona_description
from nanothread.models.blocks import ImageBlock, TextBlock
from nanothread.models.chat import ChatMessage, ConversationThread, MemoryEntry

FIXED_NOW = datetime(2024, 5, 1, 9, 30, 15)


@pytest.fixture
def assembler():
    return PromptAssembler(max_memory_entries=50, clock=lambda: FIXED_NOW)


@pytest.fixture
def chain():
    """root (alice) -> reply (bot) -> follow-up (bob)."""
    thread = ConversationThread()
    thread.add(ChatMessage("1", "user", "alice", "what is 2+2?", author_id="u1"))
    thread.add(ChatMessage("2", "assistant", "Nano", "4", reply_to_id="1"))
    thread.add(ChatMessage("3", "user", "bob", "and 3+3?", author_id="u2", reply_to_id="2"))
    return thread


class TestFormatting:
    def test_sanitise_input(self):
        text = "<@123> hi <@!456> <@&789> <:wave:111> <a:dance:222>"
        assert sanitise_input(text) == "hi   wave dance"

    def test_fix_mentions(self):
        assert fix_mentions("<@!12> <34> mail@x") == "<12> <34> mailx"

    def test_fix_math_formatting(self):
        assert fix_math_formatting(r"see [\frac{1}{2}] and [plain]") == r"see `[\frac{1}{2}]` and [plain]"

    def test_strip_bot_mention(self):
        assert strip_bot_mention("<@999> hello <@!999>", "999") == "hello"

    def test_system_metadata(self):
        assert system_metadata("Guide", FIXED_NOW) == "_Current time: May 01, 2024, 09:30:15_\n\nGuide"
        assert system_metadata("", FIXED_NOW) == "_Current time: May 01, 2024, 09:30:15_"


class TestPersonaDescription:
    def test_plain(self):
        assert persona_description("Base") == "Base"

    def test_clone_style_snippet(self):
        entries = [MemoryEntry(i, f"line{i}") for i in range(7)]
        text = persona_description("Base", entries)
        assert text == "Base\n\nAs a clone, your recent style: line2 line3 line4 line5 line6"

    def test_clone_without_data(self):
        assert persona_description("Base", []).endswith("Not enough data to learn your personality.")


class TestReconstruct:
    def test_oldest_first_with_speakers(self, assembler, chain):
        turns = assembler.reconstruct(chain, "3")
        assert [t.text for t in turns] == [
            "alice asked: what is 2+2?",
            "Nano replied: 4",
            "bob asked: and 3+3?",
        ]

    def test_dangling_parent_stops_walk(self, assembler):
        thread = ConversationThread()
        thread.add(ChatMessage("5", "user", "alice", "hi", reply_to_id="gone"))
        assert [t.text for t in assembler.reconstruct(thread, "5")] == ["alice asked: hi"]

    def test_unknown_start_is_empty(self, assembler, chain):
        assert assembler.reconstruct(chain, "nope") == []

    def test_cycle_terminates(self, assembler):
        thread = ConversationThread()
        thread.add(ChatMessage("a", "user", "x", "1", reply_to_id="b"))
        thread.add(ChatMessage("b", "user", "y", "2", reply_to_id="a"))
        assert len(assembler.reconstruct(thread, "a")) == 2


class TestBuild:
    """Test ordering of the assembled prompt."""

    def test_fixed_order(self, assembler, chain):
        messages = assembler.build(
            chain,
            "3",
            "You are Nano.",
            [MemoryEntry(1, "likes cats")],
            [ImageBlock("https://cdn/x.png")],
            reply_context="Replying to an old message.",
            channel_history="[09:00] carol: hi",
            markdown_guide="Use markdown.",
            generic_urls=["https://example.com"],
        )

        assert [m["role"] for m in messages] == ["system"] * 5 + ["user"]
        assert messages[0]["content"] == "You are Nano."
        assert messages[1]["content"] == "Long-term memory:\nlikes cats"
        assert messages[2]["content"] == "Replying to an old message."
        assert messages[3]["content"] == "Recent channel history:\n[09:00] carol: hi"
        assert messages[4]["content"].endswith("Use markdown.")

        user = messages[5]["content"]
        assert user[0] == {"type": "text", "text": "alice asked: what is 2+2?"}
        assert user[2] == {"type": "text", "text": "bob asked: and 3+3?"}
        assert user[3] == {"type": "image_url", "image_url": {"url": "https://cdn/x.png"}}
        assert user[4] == {"type": "text", "text": "[link] https://example.com"}

    def test_optional_sections_omitted(self, assembler, chain):
        messages = assembler.build(chain, "3", "", [], [])
        assert len(messages) == 1
        assert messages[0]["role"] == "user"

    def test_empty_prompt_has_single_empty_text(self, assembler):
        messages = assembler.build(ConversationThread(), "x", "", [], [])
        assert messages == [{"role": "user", "content": [{"type": "text", "text": ""}]}]

    def test_memory_limited_to_most_recent(self, chain):
        assembler = PromptAssembler(max_memory_entries=2)
        memory = [MemoryEntry(i, f"m{i}") for i in range(5)]
        messages = assembler.build(chain, "3", "", memory, [], memory_label="Clone memory:")
        assert messages[0]["content"] == "Clone memory:\nm3\nm4"

    def test_mentions_removed_from_turns(self, assembler):
        thread = ConversationThread()
        thread.add(ChatMessage("1", "user", "alice", "<@123> hey <:smile:42>"))
        messages = assembler.build(thread, "1", "", [], [TextBlock("extra")])
        assert messages[-1]["content"][0]["text"] == "alice asked: hey smile"
