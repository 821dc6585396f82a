"""
Tests for the per-connection voice relay.

The browser socket is a fake with the flask-sock ``send/receive/close``
surface wrapped in the real BrowserSocketChannel; the speech agent is a
fake with the SpeechAgentClient surface.
"""

import asyncio
import json
import sys
import time
from pathlib import Path

import pytest
from simple_websocket import ConnectionClosed

sys.path.insert(0, str(Path(__file__).parent.parent))

from voice_creation.channels import BrowserSocketChannel
from voice_creation.config import AppConfig
from voice_creation.voice import AgentUnavailable, SpeechAgentClient, VoiceSession, build_agent_settings


ASSISTANT_TEXT = {"type": "ConversationText", "role": "assistant", "content": "What should we build?"}


class FakeWS:
    def __init__(self, incoming=()):
        self.incoming = list(incoming)
        self.sent = []
        self.closed = False

    def send(self, data):
        if self.closed:
            raise ConnectionClosed()
        self.sent.append(data)

    def receive(self, timeout=None):
        if self.incoming:
            item = self.incoming.pop(0)
            if isinstance(item, Exception):
                raise item
            return item
        if self.closed:
            raise ConnectionClosed()
        time.sleep(timeout or 0)
        return None

    def close(self):
        self.closed = True

    @property
    def sent_json(self):
        return [json.loads(s) for s in self.sent if isinstance(s, str)]


class FakeAgent:
    def __init__(self, frames=None, connect_error=None):
        # None keeps the agent connected until closed
        self._frames = frames
        self.connect_error = connect_error
        self.audio = []
        self.json = []
        self.closed = False
        self._closed_event = None

    async def connect(self):
        if self.connect_error is not None:
            raise self.connect_error
        self._closed_event = asyncio.Event()

    async def frames(self):
        if self._frames is None:
            await self._closed_event.wait()
            return
        for frame in self._frames:
            yield frame

    async def send_audio(self, data):
        self.audio.append(data)

    async def send_json(self, message):
        self.json.append(message)

    async def close(self):
        self.closed = True
        if self._closed_event is not None:
            self._closed_event.set()


class IdleOrchestrator:
    async def run(self, spec, session_id, sink):
        raise AssertionError("no generation expected")


def run_session(ws, agent):
    session = VoiceSession(BrowserSocketChannel(ws), agent, IdleOrchestrator(), poll_interval=0.02)
    asyncio.run(session.run())
    return session


class TestAgentSide:
    def test_relays_audio_and_text_then_closes_browser(self):
        ws = FakeWS()
        agent = FakeAgent(frames=[b"\x00\x01\x02", json.dumps(ASSISTANT_TEXT)])

        run_session(ws, agent)

        assert ws.sent[0] == b"\x00\x01\x02"
        assert ws.sent_json[0] == {"type": "text", "role": "assistant", "content": "What should we build?"}
        assert ws.sent_json[-1]["phase"] == "Ideation"
        assert ws.closed
        assert agent.closed

    def test_malformed_agent_frames_are_dropped(self):
        ws = FakeWS()
        agent = FakeAgent(frames=["not json", "[1, 2]", json.dumps(ASSISTANT_TEXT)])

        run_session(ws, agent)

        texts = [m for m in ws.sent_json if m["type"] == "text"]
        assert texts == [{"type": "text", "role": "assistant", "content": "What should we build?"}]

    def test_agent_unavailable(self):
        ws = FakeWS()
        agent = FakeAgent(connect_error=AgentUnavailable("DEEPGRAM_API_KEY is not set"))

        run_session(ws, agent)

        assert ws.sent_json == [{
            "type": "text",
            "role": "system",
            "content": "Voice agent unavailable: DEEPGRAM_API_KEY is not set",
        }]
        assert ws.closed


class TestBrowserSide:
    def test_relays_audio_and_control_to_agent(self):
        ws = FakeWS([b"mic-audio", '{"type": "KeepAlive"}', "not json", "[1]", ConnectionClosed()])
        agent = FakeAgent()

        run_session(ws, agent)

        assert agent.audio == [b"mic-audio"]
        assert agent.json == [{"type": "KeepAlive"}]
        assert agent.closed

    def test_reset_request(self):
        ws = FakeWS(['{"type": "reset"}', ConnectionClosed()])
        agent = FakeAgent()

        run_session(ws, agent)

        assert ws.sent_json == [{"type": "phase_transition", "phase": "Ideation", "sessionId": None}]
        assert agent.json == []

    def test_cancel_with_nothing_running(self):
        ws = FakeWS(['{"type": "cancel"}', ConnectionClosed()])
        agent = FakeAgent()

        run_session(ws, agent)

        assert ws.sent == []
        assert agent.json == []


class TestAgentClient:
    def test_settings_message(self):
        settings = build_agent_settings(AppConfig(agent_sample_rate=16000, agent_think_model="gpt-4o"))

        assert settings["type"] == "Settings"
        assert settings["audio"]["input"] == {"encoding": "linear16", "sample_rate": 16000}
        assert settings["audio"]["output"]["sample_rate"] == 16000
        assert settings["agent"]["think"]["provider"]["model"] == "gpt-4o"
        assert "YAML" in settings["agent"]["think"]["prompt"]
        assert settings["agent"]["greeting"]

    def test_connect_without_key(self):
        client = SpeechAgentClient.from_config(AppConfig(deepgram_api_key=None))

        with pytest.raises(AgentUnavailable):
            asyncio.run(client.connect())
        assert not client.connected
