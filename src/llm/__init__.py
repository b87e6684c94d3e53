"""LLM providers for decision explanations."""

from .base import (
    LLMAuthError,
    LLMEmptyResponseError,
    LLMError,
    LLMProvider,
    LLMRateLimitError,
    LLMTimeoutError,
)
from .factory import PROVIDERS, create_cheap_provider, create_llm_provider, resolve_provider

__all__ = [
    "PROVIDERS",
    "LLMProvider",
    "create_llm_provider",
    "create_cheap_provider",
    "resolve_provider",
    "LLMError",
    "LLMRateLimitError",
    "LLMTimeoutError",
    "LLMAuthError",
    "LLMEmptyResponseError",
]
