"""Builds the provider-specific ``LlmGateway`` for an invocation config."""

from __future__ import annotations

from repo_qa.domain.entities import LlmProvider, LLMInvocationConfig
from repo_qa.domain.exceptions import LlmAuthError, UnsupportedProviderError
from repo_qa.infrastructure.anthropic_adapter import AnthropicAdapter
from repo_qa.infrastructure.openai_adapter import OpenAIAdapter

OPENROUTER_BASE_URL = "https://openrouter.ai/api/v1"

# Used when the caller leaves the model blank.
DEFAULT_MODELS: dict[LlmProvider, str] = {
    LlmProvider.OPENAI: "gpt-4o-mini",
    LlmProvider.ANTHROPIC: "claude-sonnet-4-5-20250929",
    LlmProvider.OPENROUTER: "openai/gpt-4o-mini",
}

# Key prefixes issued by each provider's own endpoint.
API_KEY_PREFIXES: dict[LlmProvider, str] = {
    LlmProvider.OPENAI: "sk-",
    LlmProvider.ANTHROPIC: "sk-ant-",
    LlmProvider.OPENROUTER: "sk-or-",
}


def resolve_provider(provider: LlmProvider | str) -> LlmProvider:
    """Map a raw provider value onto the closed set, or fail locally."""
    try:
        return LlmProvider(provider)
    except ValueError:
        raise UnsupportedProviderError(f"Unsupported LLM provider: {provider}") from None


def validate_api_key(provider: LlmProvider, api_key: str) -> None:
    """Reject a key that cannot belong to *provider* before any request is made."""
    prefix = API_KEY_PREFIXES[provider]
    if not api_key.strip().startswith(prefix):
        raise LlmAuthError(
            f"The API key does not look like a {provider.value} key "
            f"(expected it to start with '{prefix}')."
        )


def create_llm_gateway(
    config: LLMInvocationConfig,
    *,
    timeout: float = 120.0,
    openrouter_base_url: str = OPENROUTER_BASE_URL,
) -> OpenAIAdapter | AnthropicAdapter:
    """Construct a client for *config*; no network traffic happens here.

    A blank model falls back to the provider's entry in ``DEFAULT_MODELS``.
    The key format is only checked against the provider's own endpoint,
    since a custom ``base_url`` may issue keys of any shape.
    """
    provider = resolve_provider(config.provider)
    if not config.base_url:
        validate_api_key(provider, config.api_key)
    model = config.model.strip() or DEFAULT_MODELS[provider]

    if provider is LlmProvider.OPENAI:
        return OpenAIAdapter(config.api_key, model, base_url=config.base_url, timeout=timeout)

    if provider is LlmProvider.ANTHROPIC:
        return AnthropicAdapter(config.api_key, model, timeout=timeout)

    return OpenAIAdapter(
        config.api_key,
        model,
        base_url=config.base_url or openrouter_base_url,
        provider_name="OpenRouter",
        timeout=timeout,
    )
