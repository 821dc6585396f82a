"""
LLM Provider modules for code generation.

Supported providers:
- Anthropic (default, Claude)
- OpenAI (fallback when only an OpenAI key is configured)
"""

from .base import LLMProvider, LLMResponse, LLMConfig, Message, ProviderStatus
from .anthropic_provider import AnthropicProvider
from .openai_provider import OpenAIProvider
from .manager import LLMManager, LLMManagerConfig

__all__ = [
    "LLMProvider",
    "LLMResponse",
    "LLMConfig",
    "Message",
    "ProviderStatus",
    "AnthropicProvider",
    "OpenAIProvider",
    "LLMManager",
    "LLMManagerConfig",
]
