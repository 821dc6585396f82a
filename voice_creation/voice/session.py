"""
Per-connection voice session.

Relays between the browser socket and the speech agent:

    browser --audio--> agent          (opaque, untouched)
    agent   --audio--> browser        (opaque, untouched)
    agent   --JSON---> controller     (conversation text, lifecycle, errors)
    browser --JSON---> controller     ({"type": "reset"} / {"type": "cancel"})
                   \-> agent          (anything else)

When the agent side ends, the session resets and closes the browser socket.
When the browser leaves, any running generation is cancelled and the agent
connection closed.
"""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Optional

from simple_websocket import ConnectionClosed

from ..agents.conversation import ConversationController
from ..channels import BrowserSocketChannel
from ..schemas.events import text_message
from .agent_client import AgentUnavailable, SpeechAgentClient

logger = logging.getLogger(__name__)


# How often the blocking browser receive wakes up to notice shutdown
RECEIVE_POLL_SECONDS = 1.0


class VoiceSession:
    """
    One browser connection and its speech agent.

    Usage:
        session = VoiceSession(BrowserSocketChannel(ws), SpeechAgentClient.from_config(config), orchestrator)
        await session.run()
    """

    def __init__(
        self,
        browser: BrowserSocketChannel,
        agent: SpeechAgentClient,
        orchestrator,
        poll_interval: float = RECEIVE_POLL_SECONDS,
    ):
        self.browser = browser
        self.agent = agent
        self.controller = ConversationController(browser, orchestrator)
        self.poll_interval = poll_interval

    async def run(self):
        """Relay until either side goes away."""
        try:
            await self.agent.connect()
        except AgentUnavailable as e:
            logger.error(f"❌ {e}")
            await self.browser.send_json(text_message("system", f"Voice agent unavailable: {e}"))
            await self.browser.close()
            return

        upstream = asyncio.create_task(self._pump_agent(), name="agent-pump")
        downstream = asyncio.create_task(self._pump_browser(), name="browser-pump")

        try:
            try:
                done, _ = await asyncio.wait({upstream, downstream}, return_when=asyncio.FIRST_COMPLETED)
            finally:
                for task in (upstream, downstream):
                    task.cancel()
                await asyncio.gather(upstream, downstream, return_exceptions=True)

            if downstream in done:
                logger.info("🔌 Browser disconnected")
                await self.controller.shutdown()
            else:
                logger.info("🔌 Agent side ended, resetting session")
                await self.controller.reset()
                await self.browser.close()
        finally:
            await self.agent.close()

    async def _pump_agent(self):
        async for frame in self.agent.frames():
            if isinstance(frame, bytes):
                await self.browser.send_bytes(frame)
                continue

            try:
                message = json.loads(frame)
            except json.JSONDecodeError:
                logger.warning(f"⚠️ Malformed JSON from agent dropped: {frame[:200]!r}")
                continue
            if not isinstance(message, dict):
                logger.warning(f"⚠️ Unexpected agent message dropped: {message!r}")
                continue

            await self.controller.handle_upstream_message(message)
            if self.browser.closed:
                return

    async def _pump_browser(self):
        while True:
            try:
                frame = await asyncio.to_thread(self.browser.receive, self.poll_interval)
            except ConnectionClosed:
                return

            if frame is None:
                if self.browser.closed:
                    return
                continue

            if isinstance(frame, (bytes, bytearray)):
                await self.agent.send_audio(bytes(frame))
            else:
                await self._handle_browser_text(frame)

    async def _handle_browser_text(self, frame: str):
        try:
            message = json.loads(frame)
        except json.JSONDecodeError:
            logger.warning(f"⚠️ Malformed JSON from browser dropped: {frame[:200]!r}")
            return
        if not isinstance(message, dict):
            logger.warning(f"⚠️ Unexpected browser message dropped: {message!r}")
            return

        msg_type: Optional[str] = message.get("type")
        if msg_type == "reset":
            await self.controller.reset()
        elif msg_type == "cancel":
            if not await self.controller.cancel():
                logger.info("Cancel requested with no generation running")
        else:
            await self.agent.send_json(message)
