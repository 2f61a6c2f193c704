"""LLM provider abstraction module."""

from nanothread.providers.base import LLMProvider, LLMResponse
from nanothread.providers.litellm_provider import LiteLLMProvider

__all__ = ["LLMProvider", "LLMResponse", "LiteLLMProvider"]
