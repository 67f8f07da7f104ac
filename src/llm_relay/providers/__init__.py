"""Provider adapters: one per wire format, all speaking canonical events."""

from .anthropic_provider import AnthropicProvider
from .base import ProviderAdapter
from .gemini_provider import GeminiProvider
from .ollama import OllamaProvider
from .openai_provider import OpenAIProvider
from .openrouter_provider import OpenRouterProvider

__all__ = [
    "ProviderAdapter",
    "AnthropicProvider",
    "GeminiProvider",
    "OllamaProvider",
    "OpenAIProvider",
    "OpenRouterProvider",
]
