"""LiteLLM provider implementation for multi-provider support."""

from typing import Any

import litellm
from litellm import acompletion
from loguru import logger

from nanothread.errors import ModelNotFoundError, ProviderError, QuotaExceededError
from nanothread.providers.base import LLMProvider, LLMResponse


class LiteLLMProvider(LLMProvider):
    """
    LLM provider using LiteLLM for multi-provider support.

    Models are addressed with LiteLLM's ``provider/model`` names, e.g.
    ``openai/gpt-4o`` or a fine-tuned ``openai/ft:gpt-4o:...``.
    """

    def __init__(
        self,
        api_key: str | None = None,
        api_base: str | None = None,
        default_model: str = "openai/gpt-4o",
        top_p: float = 0.9,
        frequency_penalty: float = 0.1,
    ):
        super().__init__(api_key, api_base)
        self.default_model = default_model
        self.top_p = top_p
        self.frequency_penalty = frequency_penalty

        # Disable LiteLLM logging noise
        litellm.suppress_debug_info = True
        # Drop parameters a given provider does not accept
        litellm.drop_params = True

    async def chat(
        self,
        messages: list[dict[str, Any]],
        model: str | None = None,
        max_tokens: int = 512,
        temperature: float = 0.9,
        user: str | None = None,
    ) -> LLMResponse:
        """
        Send a chat completion request via LiteLLM.

        Args:
            messages: List of message dicts with 'role' and 'content'.
            model: Model identifier (e.g., 'openai/gpt-4o').
            max_tokens: Maximum tokens in response.
            temperature: Sampling temperature.
            user: End-user id forwarded to the provider.

        Returns:
            LLMResponse with the reply text.
        """
        model = model or self.default_model

        kwargs: dict[str, Any] = {
            "model": model,
            "messages": messages,
            "max_tokens": max_tokens,
            "temperature": temperature,
            "top_p": self.top_p,
            "frequency_penalty": self.frequency_penalty,
        }
        if self.api_key:
            kwargs["api_key"] = self.api_key
        if self.api_base:
            kwargs["api_base"] = self.api_base
        if user:
            kwargs["user"] = user

        try:
            response = await acompletion(**kwargs)
        except Exception as e:
            raise self._map_error(model, e) from e
        return self._parse_response(response)

    def _map_error(self, model: str, error: Exception) -> ProviderError:
        """Translate a LiteLLM exception into the provider error hierarchy."""
        text = str(error)
        if "insufficient_quota" in text:
            return QuotaExceededError(f"Out of quota calling {model}: {text}")
        if isinstance(error, litellm.exceptions.NotFoundError) or "model_not_found" in text:
            return ModelNotFoundError(f"Model not found: {model}")
        logger.debug(f"LiteLLM {type(error).__name__} for {model}: {text}")
        return ProviderError(f"Error calling {model}: {text}")

    def _parse_response(self, response: Any) -> LLMResponse:
        """Parse LiteLLM response into our standard format."""
        choice = response.choices[0]
        message = choice.message

        usage = {}
        if hasattr(response, "usage") and response.usage:
            usage = {
                "prompt_tokens": response.usage.prompt_tokens,
                "completion_tokens": response.usage.completion_tokens,
                "total_tokens": response.usage.total_tokens,
            }

        return LLMResponse(
            content=message.content,
            finish_reason=choice.finish_reason or "stop",
            usage=usage,
        )

    def get_default_model(self) -> str:
        """Get the default model."""
        return self.default_model
