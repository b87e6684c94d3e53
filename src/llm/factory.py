"""Provider resolution: explicit name, API key prefix, then environment."""

import os
from dataclasses import dataclass
from typing import Optional

import structlog

from .base import LLMError, LLMProvider

logger = structlog.get_logger()


@dataclass(frozen=True)
class ProviderSpec:
    name: str
    env_var: str
    key_prefix: str
    default_model: str
    cheap_model: str


# Order matters: "sk-ant-" must be tried before the bare "sk-" prefix.
PROVIDERS: dict[str, ProviderSpec] = {
    "claude": ProviderSpec(
        name="claude",
        env_var="ANTHROPIC_API_KEY",
        key_prefix="sk-ant-",
        default_model="claude-sonnet-4-20250514",
        cheap_model="claude-haiku-4-20250514",
    ),
    "openai": ProviderSpec(
        name="openai",
        env_var="OPENAI_API_KEY",
        key_prefix="sk-",
        default_model="gpt-4o",
        cheap_model="gpt-4o-mini",
    ),
}


def resolve_provider(provider: Optional[str] = None, api_key: Optional[str] = None) -> ProviderSpec:
    """Pick a provider spec.

    "auto"/None tries the key prefix first, then whichever env var is set.
    """
    name = provider or "auto"
    if name != "auto":
        spec = PROVIDERS.get(name)
        if spec is None:
            raise LLMError(f"Unknown provider: {name}. Use: {', '.join(PROVIDERS)}")
        return spec

    if api_key:
        for spec in PROVIDERS.values():
            if api_key.startswith(spec.key_prefix):
                return spec

    for spec in PROVIDERS.values():
        if os.getenv(spec.env_var):
            return spec
    env_vars = ", ".join(spec.env_var for spec in PROVIDERS.values())
    raise LLMError(f"No LLM API key found. Set one of: {env_vars}")


def create_llm_provider(
    provider: Optional[str] = None,
    api_key: Optional[str] = None,
    model: Optional[str] = None,
    client=None,
    cheap: bool = False,
) -> LLMProvider:
    """Create an LLM provider instance.

    Args:
        provider: "claude", "openai", "auto", or None (auto-detect)
        api_key: Explicit API key (overrides env var)
        model: Model name (None = the provider's default or cheap model)
        client: Pre-built SDK client for testing/DI
        cheap: Default to the provider's cheap model
    """
    spec = resolve_provider(provider, api_key)
    if not api_key and client is None:
        api_key = os.getenv(spec.env_var)
    model = model or (spec.cheap_model if cheap else spec.default_model)

    if spec.name == "claude":
        from .providers.claude import ClaudeProvider

        instance = ClaudeProvider(model=model, api_key=api_key, client=client)
    else:
        from .providers.openai import OpenAIProvider

        instance = OpenAIProvider(model=model, api_key=api_key, client=client)

    logger.debug("llm.provider_created", provider=spec.name, model=model)
    return instance


def create_cheap_provider(
    provider: Optional[str] = None,
    api_key: Optional[str] = None,
    model: Optional[str] = None,
    client=None,
) -> LLMProvider:
    """Cheap-tier provider; explanations are short and descriptive."""
    return create_llm_provider(provider=provider, api_key=api_key, model=model, client=client, cheap=True)
