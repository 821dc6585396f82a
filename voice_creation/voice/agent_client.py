"""
Upstream speech agent client.

The hosted voice agent does speech-to-text, runs the ideation LLM and speaks
the replies. We hold one WebSocket to it per browser session: binary frames
are audio in both directions, text frames are JSON lifecycle and
conversation events. The Settings handshake is sent once after connecting.
"""

from __future__ import annotations

import asyncio
import json
import logging
from typing import AsyncIterator, Optional, Union

from websockets.asyncio.client import connect
from websockets.exceptions import ConnectionClosed, WebSocketException

from ..prompts.ideation_prompt import IDEATION_GREETING, IDEATION_PROMPT

logger = logging.getLogger(__name__)


Frame = Union[str, bytes]


def build_agent_settings(config) -> dict:
    """
    The one-time Settings message: audio format, models, prompt and greeting.

    Args:
        config: AppConfig (sample rate and agent model names)
    """
    return {
        "type": "Settings",
        "audio": {
            "input": {
                "encoding": "linear16",
                "sample_rate": config.agent_sample_rate,
            },
            "output": {
                "encoding": "linear16",
                "sample_rate": config.agent_sample_rate,
                "container": "none",
            },
        },
        "agent": {
            "listen": {
                "provider": {"type": "deepgram", "model": config.agent_listen_model},
            },
            "think": {
                "provider": {"type": "open_ai", "model": config.agent_think_model},
                "prompt": IDEATION_PROMPT.strip(),
            },
            "speak": {
                "provider": {"type": "deepgram", "model": config.agent_speak_model},
            },
            "greeting": IDEATION_GREETING,
        },
    }


class AgentUnavailable(Exception):
    """Could not connect to the speech agent."""


class SpeechAgentClient:
    """
    WebSocket client for the hosted speech agent.

    Usage:
        agent = SpeechAgentClient.from_config(config)
        await agent.connect()
        async for frame in agent.frames():
            ...
        await agent.close()
    """

    def __init__(self, url: str, api_key: Optional[str], settings: dict):
        self.url = url
        self.api_key = api_key
        self.settings = settings
        self._ws = None

    @classmethod
    def from_config(cls, config) -> "SpeechAgentClient":
        return cls(
            url=config.agent_url,
            api_key=config.deepgram_api_key,
            settings=build_agent_settings(config),
        )

    @property
    def connected(self) -> bool:
        return self._ws is not None

    async def connect(self):
        """Open the socket and send the Settings handshake."""
        if not self.api_key:
            raise AgentUnavailable("DEEPGRAM_API_KEY is not set")

        try:
            self._ws = await connect(
                self.url,
                additional_headers={"Authorization": f"Token {self.api_key}"},
                max_size=None,
            )
        except (OSError, asyncio.TimeoutError, WebSocketException) as e:
            raise AgentUnavailable(f"Could not connect to speech agent at {self.url}: {e}") from e

        logger.info(f"🎙️ Connected to speech agent {self.url}")
        await self._ws.send(json.dumps(self.settings))

    async def frames(self) -> AsyncIterator[Frame]:
        """Yield frames until the agent closes the connection."""
        if self._ws is None:
            return
        try:
            async for frame in self._ws:
                yield frame
        except ConnectionClosed as e:
            logger.info(f"Agent connection closed: {e}")

    async def send_audio(self, data: bytes):
        await self._send(data)

    async def send_json(self, message: dict):
        await self._send(json.dumps(message))

    async def _send(self, payload: Frame):
        if self._ws is None:
            return
        try:
            await self._ws.send(payload)
        except ConnectionClosed:
            logger.debug("Agent connection closed, dropping outgoing frame")

    async def close(self):
        if self._ws is None:
            return
        ws, self._ws = self._ws, None
        await ws.close()
        logger.info("🎙️ Speech agent connection closed")
