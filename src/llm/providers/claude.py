"""Claude (Anthropic) provider."""

from typing import Optional

import structlog
from anthropic import Anthropic, APIError, APITimeoutError, AuthenticationError, RateLimitError

from ..base import LLMAuthError, LLMError, LLMProvider, LLMRateLimitError, LLMTimeoutError

logger = structlog.get_logger()


class ClaudeProvider(LLMProvider):
    provider_name = "claude"

    def __init__(self, model: str, api_key: Optional[str] = None, client=None):
        self.model = model
        self.client = client or Anthropic(api_key=api_key)

    def translate_error(self, e: Exception) -> LLMError:
        if isinstance(e, AuthenticationError):
            return LLMAuthError(f"Claude auth failed: {e}")
        if isinstance(e, RateLimitError):
            return LLMRateLimitError(f"Claude rate limit: {e}")
        if isinstance(e, APITimeoutError):
            return LLMTimeoutError(f"Claude request timed out: {e}")
        if isinstance(e, APIError):
            return LLMError(f"Claude API error: {e}")
        return super().translate_error(e)

    def _send(self, messages, system, max_tokens, temperature) -> Optional[str]:
        kwargs = {
            "model": self.model,
            "max_tokens": max_tokens,
            "messages": messages,
        }
        if system:
            kwargs["system"] = system
        if temperature is not None:
            kwargs["temperature"] = temperature

        response = self.client.messages.create(**kwargs)
        if response.stop_reason == "max_tokens":
            logger.warning("llm.truncated", provider=self.provider_name, model=self.model, max_tokens=max_tokens)
        # responses may hold several text blocks
        return "".join(block.text for block in response.content if block.type == "text")
