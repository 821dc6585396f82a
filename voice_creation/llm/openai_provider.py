"""
OpenAI Provider - the code generation fallback.

Asks for a JSON object reply so the files payload arrives without prose or
fences around it. OPENAI_BASE_URL points it at a compatible endpoint.
"""

import logging
import os
from typing import Optional, List

from openai import OpenAI

from .base import LLMProvider, LLMConfig, LLMResponse, Message, ProviderStatus

logger = logging.getLogger(__name__)


class OpenAIProvider(LLMProvider):
    """Fallback generator behind AnthropicProvider."""

    DEFAULT_MODEL = "gpt-4o"

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: str = DEFAULT_MODEL,
        base_url: Optional[str] = None,
        json_output: bool = True,
        **kwargs
    ):
        api_key = api_key or os.getenv("OPENAI_API_KEY")
        super().__init__(LLMConfig(
            provider_name="openai",
            model=model,
            api_key=api_key,
            base_url=base_url or os.getenv("OPENAI_BASE_URL"),
            **kwargs
        ))
        self.json_output = json_output

        self._client = None
        if not api_key:
            self._status = ProviderStatus.NOT_CONFIGURED
            return
        try:
            self._client = OpenAI(api_key=api_key, base_url=self.config.base_url, timeout=self.config.timeout)
            self._status = ProviderStatus.AVAILABLE
        except Exception as e:
            logger.error(f"Failed to initialize OpenAI client: {e}")
            self._status = ProviderStatus.ERROR

    def is_available(self) -> bool:
        return self._client is not None

    def chat(
        self,
        messages: List[Message],
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
        **kwargs
    ) -> LLMResponse:
        """One chat completion; the system prompt stays a "system" message."""
        if not self.is_available():
            raise RuntimeError("OpenAI provider is not available. Check OPENAI_API_KEY.")

        if self.json_output:
            kwargs.setdefault("response_format", {"type": "json_object"})

        try:
            response = self._client.chat.completions.create(
                model=self.config.model,
                messages=[{"role": m.role, "content": m.content} for m in messages],
                temperature=self.config.temperature if temperature is None else temperature,
                max_tokens=max_tokens or self.config.max_tokens,
                **kwargs
            )
        except Exception as e:
            self._mark_failure(e)
            if self._status == ProviderStatus.RATE_LIMITED:
                logger.warning("⚠️ OpenAI rate limit or quota exceeded")
            raise

        choice = response.choices[0]
        usage = response.usage
        if choice.finish_reason == "length":
            logger.warning("⚠️ OpenAI reply hit max_tokens, the files payload is probably cut off")

        return LLMResponse(
            content=choice.message.content or "",
            model=response.model,
            provider="openai",
            usage={
                "prompt_tokens": usage.prompt_tokens if usage else 0,
                "completion_tokens": usage.completion_tokens if usage else 0,
                "total_tokens": usage.total_tokens if usage else 0,
            },
            finish_reason=choice.finish_reason or "stop",
            raw_response=response
        )
