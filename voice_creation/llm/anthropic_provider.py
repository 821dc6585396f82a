"""
Anthropic Provider for code generation.

Claude is the default generator: one messages call, system prompt passed
separately, text blocks of the reply joined into the payload.
"""

import logging
import os
from typing import Optional, List

from anthropic import Anthropic

from .base import LLMProvider, LLMConfig, LLMResponse, Message, ProviderStatus

logger = logging.getLogger(__name__)


class AnthropicProvider(LLMProvider):
    """Anthropic provider using the official Anthropic SDK."""

    DEFAULT_MODEL = "claude-3-5-sonnet-20241022"

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: str = DEFAULT_MODEL,
        base_url: Optional[str] = None,
        **kwargs
    ):
        """
        Initialize Anthropic provider.

        Args:
            api_key: Anthropic API key (or set ANTHROPIC_API_KEY env var)
            model: Model to use
            base_url: Custom base URL (optional)
        """
        self.api_key = api_key or os.getenv("ANTHROPIC_API_KEY")
        self.base_url = base_url or os.getenv("ANTHROPIC_BASE_URL")

        config = LLMConfig(
            provider_name="anthropic",
            model=model,
            api_key=self.api_key,
            base_url=self.base_url,
            **kwargs
        )
        super().__init__(config)

        self._client = None
        self._init_client()

    def _init_client(self):
        """Initialize the Anthropic client."""
        if not self.api_key:
            self._status = ProviderStatus.NOT_CONFIGURED
            return

        client_kwargs = {
            "api_key": self.api_key,
            "timeout": self.config.timeout,
        }
        if self.base_url:
            client_kwargs["base_url"] = self.base_url

        try:
            self._client = Anthropic(**client_kwargs)
            self._status = ProviderStatus.AVAILABLE
        except Exception as e:
            logger.error(f"Failed to initialize Anthropic client: {e}")
            self._status = ProviderStatus.ERROR

    def is_available(self) -> bool:
        """Check if Anthropic is available and configured."""
        return self._client is not None and self.api_key is not None

    def chat(
        self,
        messages: List[Message],
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
        **kwargs
    ) -> LLMResponse:
        """Send a messages request to Anthropic."""
        if not self.is_available():
            raise RuntimeError("Anthropic provider is not available. Check ANTHROPIC_API_KEY.")

        # Anthropic takes the system prompt as a separate parameter
        system_parts = [m.content for m in messages if m.role == "system"]
        chat_messages = [
            {"role": m.role, "content": m.content}
            for m in messages
            if m.role != "system"
        ]

        request = {
            "model": self.config.model,
            "max_tokens": max_tokens or self.config.max_tokens,
            "temperature": self.config.temperature if temperature is None else temperature,
            "messages": chat_messages,
            **kwargs,
        }
        if system_parts:
            request["system"] = "\n\n".join(system_parts)

        try:
            response = self._client.messages.create(**request)
        except Exception as e:
            self._mark_failure(e)
            if self._status == ProviderStatus.RATE_LIMITED:
                logger.warning("⚠️ Anthropic rate limit or quota exceeded")
            raise

        content = "".join(
            block.text for block in response.content
            if getattr(block, "type", None) == "text"
        )
        input_tokens = response.usage.input_tokens if response.usage else 0
        output_tokens = response.usage.output_tokens if response.usage else 0

        return LLMResponse(
            content=content,
            model=response.model,
            provider="anthropic",
            usage={
                "prompt_tokens": input_tokens,
                "completion_tokens": output_tokens,
                "total_tokens": input_tokens + output_tokens,
            },
            finish_reason=response.stop_reason or "stop",
            raw_response=response
        )
