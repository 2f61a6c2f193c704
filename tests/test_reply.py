"""Tests for reply generation and the LiteLLM provider adapter."""

from types import SimpleNamespace
from unittest.mock import AsyncMock

import pytest

from nanothread.agent.reply import QUOTA_TEXT, UNAVAILABLE_TEXT, ReplyService
from nanothread.errors import ConfigurationError, ModelNotFoundError, ProviderError, QuotaExceededError
from nanothread.providers import litellm_provider
from nanothread.providers.base import LLMResponse
from nanothread.providers.litellm_provider import LiteLLMProvider


def make_provider(content="Hello there", side_effect=None):
    provider = AsyncMock()
    provider.get_default_model = lambda: "openai/gpt-4o"
    if side_effect is not None:
        provider.chat.side_effect = side_effect
    else:
        provider.chat.return_value = LLMResponse(content=content, usage={"prompt_tokens": 10, "completion_tokens": 2})
    return provider


class TestReplyService:
    """Test provider calls and failure texts."""

    @pytest.mark.asyncio
    async def test_plain_reply(self):
        provider = make_provider("  Hi!  ")
        result = await ReplyService(provider).generate([{"role": "user", "content": []}], "u1")

        assert result.text == "Hi!"
        assert result.math_images == []
        assert provider.chat.await_args.kwargs["user"] == "u1"
        assert provider.chat.await_args.kwargs["model"] == "openai/gpt-4o"

    @pytest.mark.asyncio
    async def test_quota_error_text(self):
        service = ReplyService(make_provider(side_effect=QuotaExceededError("quota")))
        assert (await service.generate([], "u1")).text == QUOTA_TEXT

    @pytest.mark.asyncio
    async def test_generic_error_text(self):
        service = ReplyService(make_provider(side_effect=ProviderError("boom")))
        assert (await service.generate([], "u1")).text == UNAVAILABLE_TEXT

    @pytest.mark.asyncio
    async def test_empty_reply_is_failure(self):
        service = ReplyService(make_provider("   "))
        assert (await service.generate([], "u1")).text == UNAVAILABLE_TEXT

    @pytest.mark.asyncio
    async def test_missing_fine_tuned_model_is_fatal(self):
        service = ReplyService(make_provider(side_effect=ModelNotFoundError("nope")), model="ft:x", fine_tuned=True)
        with pytest.raises(ConfigurationError):
            await service.generate([], "u1")

    @pytest.mark.asyncio
    async def test_missing_base_model_is_not_fatal(self):
        service = ReplyService(make_provider(side_effect=ModelNotFoundError("nope")))
        assert (await service.generate([], "u1")).text == UNAVAILABLE_TEXT


class TestFormulaRendering:
    """Test LaTeX extraction from replies."""

    @pytest.mark.asyncio
    async def test_formulas_rendered_and_stripped(self):
        renderer = AsyncMock(side_effect=[b"png1", b"png2"])
        text = "The answer:\n\n\\[x^2\\]\n\nand\n\n```latex\n\\frac{1}{2}\n```\n\ndone"
        result = await ReplyService(make_provider(text), renderer=renderer).generate([], "u1")

        assert result.math_images == [b"png1", b"png2"]
        assert [c.args[0] for c in renderer.await_args_list] == ["x^2", "\\frac{1}{2}"]
        assert result.text == "The answer:\nand\ndone"

    @pytest.mark.asyncio
    async def test_renderer_failure_skips_image(self):
        renderer = AsyncMock(side_effect=RuntimeError("bad tex"))
        result = await ReplyService(make_provider("a \\$\\$y\\$\\$ b"), renderer=renderer).generate([], "u1")

        assert result.math_images == []
        assert result.text == "a  b"

    @pytest.mark.asyncio
    async def test_bare_dollar_formula_left_in_text(self):
        """Only the backslash-escaped dollar delimiters are rendered."""
        renderer = AsyncMock(return_value=b"png")
        result = await ReplyService(make_provider("x $$y$$ z"), renderer=renderer).generate([], "u1")

        assert result.text == "x $$y$$ z"
        renderer.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_plain_code_blocks_kept(self):
        text = "```python\nprint(1)\n```"
        result = await ReplyService(make_provider(text)).generate([], "u1")
        assert result.text == text


class TestLiteLLMProvider:
    """Test request building and error mapping."""

    @pytest.mark.asyncio
    async def test_parses_response(self, monkeypatch):
        response = SimpleNamespace(
            choices=[SimpleNamespace(message=SimpleNamespace(content="hey"), finish_reason="stop")],
            usage=SimpleNamespace(prompt_tokens=5, completion_tokens=1, total_tokens=6),
        )
        fake = AsyncMock(return_value=response)
        monkeypatch.setattr(litellm_provider, "acompletion", fake)

        provider = LiteLLMProvider(api_key="k", default_model="openai/gpt-4o")
        result = await provider.chat([{"role": "user", "content": "hi"}], user="u1")

        assert result.content == "hey"
        assert result.usage["total_tokens"] == 6
        kwargs = fake.await_args.kwargs
        assert kwargs["model"] == "openai/gpt-4o"
        assert kwargs["api_key"] == "k"
        assert kwargs["user"] == "u1"

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "message, expected",
        [
            ("Error code: 429 - insufficient_quota", QuotaExceededError),
            ("The model `ft:abc` does not exist (model_not_found)", ModelNotFoundError),
            ("connection reset", ProviderError),
        ],
    )
    async def test_error_mapping(self, monkeypatch, message, expected):
        monkeypatch.setattr(litellm_provider, "acompletion", AsyncMock(side_effect=RuntimeError(message)))

        with pytest.raises(expected):
            await LiteLLMProvider(api_key="k").chat([])
