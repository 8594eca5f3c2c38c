"""
LLM Module - Unified interface for LLM providers.

Usage:
    from llm import get_client

    client = get_client()  # Uses config settings
    response = client.generate("Your prompt here")
    print(response.content)

Supported providers:
- openai: any OpenAI-compatible Chat Completions endpoint (LLM_BASE_URL)
"""
from typing import Optional

from config import settings
from .base import (
    LLMClient,
    LLMResponse,
    Message,
    LLMError,
    LLMTimeoutError,
    set_llm_context,
    get_llm_context,
)
from .openai_client import OpenAICompatibleClient


# Provider mapping
_PROVIDERS = {
    "openai": OpenAICompatibleClient,
}

# Default models per provider
_DEFAULT_MODELS = {
    "openai": "gpt-4o-mini",
}


def get_client(
    provider: Optional[str] = None,
    api_key: Optional[str] = None,
    model: Optional[str] = None,
    verify_ssl: Optional[bool] = None,
) -> LLMClient:
    """
    Get an LLM client instance.

    Args:
        provider: Provider name. Defaults to settings.LLM_PROVIDER
        api_key: API key. Defaults to settings.LLM_API_KEY
        model: Model name. Defaults to settings.LLM_MODEL or provider default
        verify_ssl: Whether to verify SSL. Defaults to settings.LLM_VERIFY_SSL

    Raises:
        ValueError: unknown provider or missing API key
    """
    provider = (provider or settings.LLM_PROVIDER).lower()

    if provider not in _PROVIDERS:
        raise ValueError(f"Unknown LLM provider: {provider}. Available: {list(_PROVIDERS.keys())}")

    api_key = api_key if api_key is not None else settings.LLM_API_KEY
    if not api_key:
        raise ValueError(f"API key required for provider: {provider}")

    model = model or settings.LLM_MODEL or _DEFAULT_MODELS.get(provider)

    if verify_ssl is None:
        verify_ssl = settings.LLM_VERIFY_SSL

    client_class = _PROVIDERS[provider]
    return client_class(
        api_key=api_key,
        model=model,
        base_url=settings.LLM_BASE_URL or None,
        timeout=settings.LLM_TIMEOUT_SECONDS,
        verify_ssl=verify_ssl,
    )


__all__ = [
    "get_client",
    "LLMClient",
    "LLMResponse",
    "Message",
    "LLMError",
    "LLMTimeoutError",
    "OpenAICompatibleClient",
    "set_llm_context",
    "get_llm_context",
]
