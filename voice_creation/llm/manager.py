"""
LLM Manager - Unified interface for the code generation providers.

Picks the preferred configured provider and tracks usage. A failed call is
never retried here: generation runs are long and expensive, and the caller
surfaces the failure to the user instead.
"""

import logging
from typing import Optional, List, Dict, Any
from dataclasses import dataclass, field
from datetime import datetime

from .base import LLMProvider, LLMResponse, Message, ProviderStatus
from .anthropic_provider import AnthropicProvider
from .openai_provider import OpenAIProvider

logger = logging.getLogger(__name__)


PROVIDER_CLASSES = {
    "anthropic": AnthropicProvider,
    "openai": OpenAIProvider,
}


@dataclass
class ProviderUsage:
    """Per-provider request accounting."""
    requests: int = 0
    tokens: int = 0
    last_request: Optional[datetime] = None
    errors: int = 0
    successes: int = 0
    last_error: Optional[str] = None


@dataclass
class LLMManagerConfig:
    """Configuration for the LLM Manager."""
    # First available provider wins; the rest are selection fallbacks
    provider_priority: List[str] = field(default_factory=lambda: ["anthropic", "openai"])

    default_models: Dict[str, str] = field(default_factory=lambda: {
        "anthropic": AnthropicProvider.DEFAULT_MODEL,
        "openai": OpenAIProvider.DEFAULT_MODEL,
    })

    api_keys: Dict[str, Optional[str]] = field(default_factory=dict)
    temperature: float = 0.1
    max_tokens: int = 8000


class LLMManager:
    """
    Manages the generation providers.

    Usage:
        manager = LLMManager.from_config(app_config)
        response = manager.complete(prompt, system_prompt=CODEGEN_SYSTEM_PROMPT)
    """

    def __init__(
        self,
        config: Optional[LLMManagerConfig] = None,
        providers: Optional[Dict[str, LLMProvider]] = None,
    ):
        self.config = config or LLMManagerConfig()
        self._providers: Dict[str, LLMProvider] = {}
        self._usage: Dict[str, ProviderUsage] = {}
        self._current_provider: Optional[str] = None

        if providers is not None:
            for name, provider in providers.items():
                self._register(name, provider)
            self._select_provider()
        else:
            self._initialize_providers()

    @classmethod
    def from_config(cls, app_config) -> "LLMManager":
        """Build a manager from AppConfig, preferring its configured provider."""
        preferred = app_config.codegen_provider
        priority = [preferred] + [name for name in PROVIDER_CLASSES if name != preferred]
        models = {name: cls_.DEFAULT_MODEL for name, cls_ in PROVIDER_CLASSES.items()}
        models[preferred] = app_config.codegen_model
        return cls(LLMManagerConfig(
            provider_priority=priority,
            default_models=models,
            api_keys={
                "anthropic": app_config.anthropic_api_key,
                "openai": app_config.openai_api_key,
            },
            temperature=app_config.codegen_temperature,
            max_tokens=app_config.codegen_max_tokens,
        ))

    def _register(self, name: str, provider: LLMProvider):
        self._providers[name] = provider
        self._usage[name] = ProviderUsage()

    def _initialize_providers(self):
        """Initialize every provider that has credentials."""
        for name in self.config.provider_priority:
            provider_cls = PROVIDER_CLASSES.get(name)
            if provider_cls is None:
                logger.warning(f"Unknown LLM provider '{name}' ignored")
                continue
            provider = provider_cls(
                api_key=self.config.api_keys.get(name),
                model=self.config.default_models.get(name, provider_cls.DEFAULT_MODEL),
                temperature=self.config.temperature,
                max_tokens=self.config.max_tokens,
            )
            if provider.is_available():
                self._register(name, provider)
                logger.info(f"✓ {name} provider initialized ({provider.model})")

        self._select_provider()

    def _select_provider(self) -> Optional[str]:
        """Select the best available provider."""
        for provider_name in self.config.provider_priority:
            provider = self._providers.get(provider_name)
            if provider is not None and provider.is_available():
                self._current_provider = provider_name
                return provider_name

        self._current_provider = None
        return None

    @property
    def current_provider(self) -> Optional[LLMProvider]:
        """Get the currently selected provider."""
        if self._current_provider:
            return self._providers.get(self._current_provider)
        return None

    @property
    def available_providers(self) -> List[str]:
        """List of available provider names."""
        return list(self._providers.keys())

    @property
    def is_available(self) -> bool:
        """Check if any LLM provider is available."""
        return self._select_provider() is not None

    def get_status(self) -> Dict[str, Any]:
        """Get status of all providers."""
        status = {
            "current_provider": self._current_provider,
            "providers": {}
        }

        for name, provider in self._providers.items():
            usage = self._usage.get(name, ProviderUsage())
            status["providers"][name] = {
                "status": provider.status.value,
                "model": provider.model,
                "requests": usage.requests,
                "tokens": usage.tokens,
                "errors": usage.errors,
                "last_error": usage.last_error,
            }

        return status

    def chat(
        self,
        messages: List[Message],
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
        **kwargs
    ) -> LLMResponse:
        """
        Send a chat completion request to the selected provider.

        Raises:
            RuntimeError: If no provider is configured
            Exception: Whatever the provider SDK raised; not retried
        """
        target_provider = self._select_provider()
        if not target_provider:
            raise RuntimeError(
                "No code generation provider available. "
                "Set ANTHROPIC_API_KEY or OPENAI_API_KEY."
            )

        llm = self._providers[target_provider]
        usage = self._usage[target_provider]
        usage.requests += 1
        usage.last_request = datetime.now()

        try:
            response = llm.chat(
                messages=messages,
                temperature=temperature,
                max_tokens=max_tokens,
                **kwargs
            )
        except Exception as e:
            usage.errors += 1
            usage.last_error = str(e)[:200]
            logger.error(f"❌ {target_provider} request failed: {usage.last_error}")
            raise

        usage.successes += 1
        usage.tokens += response.tokens_used
        if llm.status != ProviderStatus.AVAILABLE:
            llm._status = ProviderStatus.AVAILABLE
        return response

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
