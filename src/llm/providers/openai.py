"""OpenAI provider."""

from typing import Optional

import structlog
from openai import APIError, APITimeoutError, AuthenticationError, OpenAI, RateLimitError

from ..base import LLMAuthError, LLMError, LLMProvider, LLMRateLimitError, LLMTimeoutError

logger = structlog.get_logger()


class OpenAIProvider(LLMProvider):
    provider_name = "openai"

    def __init__(self, model: str, api_key: Optional[str] = None, client=None):
        self.model = model
        self.client = client or OpenAI(api_key=api_key)

    def translate_error(self, e: Exception) -> LLMError:
        if isinstance(e, AuthenticationError):
            return LLMAuthError(f"OpenAI auth failed: {e}")
        if isinstance(e, RateLimitError):
            return LLMRateLimitError(f"OpenAI rate limit: {e}")
        if isinstance(e, APITimeoutError):
            return LLMTimeoutError(f"OpenAI request timed out: {e}")
        if isinstance(e, APIError):
            return LLMError(f"OpenAI API error: {e}")
        return super().translate_error(e)

    def _send(self, messages, system, max_tokens, temperature) -> Optional[str]:
        full_messages = [{"role": "system", "content": system}] if system else []
        full_messages.extend(messages)

        kwargs = {"model": self.model, "max_tokens": max_tokens, "messages": full_messages}
        if temperature is not None:
            kwargs["temperature"] = temperature

        response = self.client.chat.completions.create(**kwargs)
        if not response.choices:
            return None
        choice = response.choices[0]
        if choice.finish_reason == "length":
            logger.warning("llm.truncated", provider=self.provider_name, model=self.model, max_tokens=max_tokens)
        return choice.message.content
