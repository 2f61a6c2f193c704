"""Reply generation: provider call, failure texts and formula rendering."""

import re
from dataclasses import dataclass, field
from typing import Any, Optional, Protocol

from loguru import logger

from nanothread.errors import ConfigurationError, ModelNotFoundError, ProviderError, QuotaExceededError
from nanothread.providers.base import LLMProvider

QUOTA_TEXT = "⚠️ The assistant is out of quota."
UNAVAILABLE_TEXT = "⚠️ Sorry, I couldn’t complete that request right now."

# ```latex fences, \[ ... \] and the backslash-escaped \$\$ ... \$\$ (a bare $$ is not matched)
FORMULA_RE = re.compile(
    r"```latex\s*([\s\S]+?)\s*```|\\\[(.+?)\\\]|\\\$\\\$(.+?)\\\$\\\$",
    re.DOTALL,
)
_BLANK_LINES_RE = re.compile(r"(\r?\n){2,}")


class MathRenderer(Protocol):
    """Renders a TeX formula to PNG bytes."""

    async def __call__(self, tex: str) -> bytes: ...


@dataclass
class ReplyResult:
    text: str
    math_images: list[bytes] = field(default_factory=list)


class ReplyService:
    """
    Calls the model and post-processes its reply.

    Args:
        provider: Language-model provider.
        model: Model to request; defaults to the provider's.
        fine_tuned: True when ``model`` is a fine-tuned model. A missing
            fine-tuned model is a configuration error, not a transient one.
        renderer: Optional formula renderer; without one formulas are still
            stripped from the text.
    """

    def __init__(
        self,
        provider: LLMProvider,
        model: Optional[str] = None,
        fine_tuned: bool = False,
        renderer: Optional[MathRenderer] = None,
        max_tokens: int = 512,
        temperature: float = 0.9,
    ):
        self.provider = provider
        self.model = model or provider.get_default_model()
        self.fine_tuned = fine_tuned
        self.renderer = renderer
        self.max_tokens = max_tokens
        self.temperature = temperature

    async def generate(self, messages: list[dict[str, Any]], user_id: str) -> ReplyResult:
        """
        Generate a reply for an assembled prompt.

        Provider failures become user-facing fallback texts.

        Raises:
            ConfigurationError: The configured fine-tuned model does not exist.
        """
        logger.info(f"📝 Prompt → model={self.model}, entries={len(messages)}")
        try:
            response = await self.provider.chat(
                messages,
                model=self.model,
                max_tokens=self.max_tokens,
                temperature=self.temperature,
                user=user_id,
            )
            text = (response.content or "").strip()
            if not text:
                raise ProviderError("Empty AI response")
        except ModelNotFoundError as e:
            if self.fine_tuned:
                logger.error(f"Fine-tuned model not found: {self.model}")
                raise ConfigurationError(f"Fine-tuned model not found: {self.model}") from e
            logger.error(f"Model error: {e}")
            return ReplyResult(UNAVAILABLE_TEXT)
        except QuotaExceededError as e:
            logger.error(f"Model error: {e}")
            return ReplyResult(QUOTA_TEXT)
        except ProviderError as e:
            logger.error(f"Model error: {e}")
            return ReplyResult(UNAVAILABLE_TEXT)

        if response.usage:
            logger.info(
                f"📝 Prompt tokens: {response.usage.get('prompt_tokens', '?')}, "
                f"completion tokens: {response.usage.get('completion_tokens', '?')}"
            )
        return await self.render_formulas(text)

    async def render_formulas(self, text: str) -> ReplyResult:
        """Render every formula, then strip them and collapse blank lines."""
        images: list[bytes] = []
        for match in FORMULA_RE.finditer(text):
            tex = (match.group(1) or match.group(2) or match.group(3) or "").strip()
            if not tex or self.renderer is None:
                continue
            try:
                images.append(await self.renderer(tex))
            except Exception as e:
                logger.warning(f"Math rendering failed for {tex!r}: {e}")

        cleaned = _BLANK_LINES_RE.sub("\n", FORMULA_RE.sub("", text)).strip()
        return ReplyResult(cleaned, images)
