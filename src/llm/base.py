"""Provider interface used by the explainer."""

from abc import ABC, abstractmethod
from typing import Optional


class LLMError(Exception):
    """Base LLM error."""


class LLMRateLimitError(LLMError):
    """Rate limit hit; safe to retry after backoff."""


class LLMTimeoutError(LLMError):
    """Request timed out; safe to retry."""


class LLMAuthError(LLMError):
    """Authentication failure. Never retried."""


class LLMEmptyResponseError(LLMError):
    """Provider answered without any text."""


class LLMProvider(ABC):
    """Text generation over one vendor SDK.

    Subclasses implement `_send` and `translate_error`; `generate` owns the
    shared checks so every provider fails the same way.
    """

    provider_name: str = "base"
    model: str = ""

    def generate(
        self,
        messages: list[dict],
        system: Optional[str] = None,
        max_tokens: int = 800,
        temperature: Optional[float] = None,
    ) -> str:
        """Generate a response from messages.

        Args:
            messages: List of {"role": ..., "content": ...} dicts
            system: Optional system prompt
            max_tokens: Max response tokens
            temperature: Sampling temperature; None keeps the vendor default

        Returns:
            Generated text, stripped

        Raises:
            LLMError (or a subclass) for every failure, SDK errors included.
        """
        if not messages:
            raise LLMError("No messages to send")
        try:
            text = self._send(messages, system, max_tokens, temperature)
        except LLMError:
            raise
        except Exception as e:
            raise self.translate_error(e) from e

        text = (text or "").strip()
        if not text:
            raise LLMEmptyResponseError(f"{self.provider_name} returned empty content")
        return text

    @abstractmethod
    def _send(
        self,
        messages: list[dict],
        system: Optional[str],
        max_tokens: int,
        temperature: Optional[float],
    ) -> Optional[str]:
        """Make the SDK call and return raw text (None when there is none)."""

    def translate_error(self, e: Exception) -> LLMError:
        return LLMError(f"{self.provider_name} error: {e}")

    def __repr__(self) -> str:
        return f"{type(self).__name__}(model={self.model!r})"
