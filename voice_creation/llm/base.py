"""
Base classes for LLM providers.

Provides a unified interface for the code generation backends,
so Anthropic and OpenAI can be swapped through configuration.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Optional, List, Dict, Any
from enum import Enum


class ProviderStatus(str, Enum):
    """Status of an LLM provider."""
    AVAILABLE = "available"
    RATE_LIMITED = "rate_limited"
    ERROR = "error"
    NOT_CONFIGURED = "not_configured"


@dataclass
class LLMConfig:
    """Configuration for an LLM provider."""
    provider_name: str
    model: str
    api_key: Optional[str] = None
    base_url: Optional[str] = None
    temperature: float = 0.1
    max_tokens: int = 8000
    timeout: int = 300
    extra_params: Dict[str, Any] = field(default_factory=dict)


@dataclass
class Message:
    """A single message in a conversation."""
    role: str  # "system", "user", "assistant"
    content: str


@dataclass
class LLMResponse:
    """Response from an LLM provider."""
    content: str
    model: str
    provider: str
    usage: Dict[str, int] = field(default_factory=dict)  # tokens used
    finish_reason: str = "stop"
    raw_response: Optional[Any] = None

    @property
    def tokens_used(self) -> int:
        """Total tokens used in this request."""
        return self.usage.get("total_tokens", 0)


class LLMProvider(ABC):
    """
    Abstract base class for LLM providers.

    Generation is one blocking call that returns the whole payload; callers
    on an event loop run it in a worker thread.
    """

    def __init__(self, config: LLMConfig):
        self.config = config
        self._status = ProviderStatus.NOT_CONFIGURED

    @property
    def name(self) -> str:
        """Provider name."""
        return self.config.provider_name

    @property
    def model(self) -> str:
        """Current model."""
        return self.config.model

    @property
    def status(self) -> ProviderStatus:
        """Current provider status."""
        return self._status

    @abstractmethod
    def is_available(self) -> bool:
        """Check if the provider is available and configured."""
        pass

    @abstractmethod
    def chat(
        self,
        messages: List[Message],
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
        **kwargs
    ) -> LLMResponse:
        """
        Send a chat completion request.

        Args:
            messages: List of conversation messages
            temperature: Override default temperature
            max_tokens: Override default max tokens
            **kwargs: Provider-specific parameters

        Returns:
            LLMResponse with the model's response
        """
        pass

    def complete(
        self,
        prompt: str,
        system_prompt: Optional[str] = None,
        **kwargs
    ) -> LLMResponse:
        """
        Simple completion with a single prompt.

        Args:
            prompt: The user prompt
            system_prompt: Optional system prompt
            **kwargs: Additional parameters

        Returns:
            LLMResponse with the model's response
        """
        messages = []
        if system_prompt:
            messages.append(Message(role="system", content=system_prompt))
        messages.append(Message(role="user", content=prompt))
        return self.chat(messages, **kwargs)

    def _mark_failure(self, error: Exception):
        """Record a failed request on the provider status."""
        error_str = str(error).lower()
        if "rate_limit" in error_str or "429" in error_str or "quota" in error_str:
            self._status = ProviderStatus.RATE_LIMITED
        else:
            self._status = ProviderStatus.ERROR
