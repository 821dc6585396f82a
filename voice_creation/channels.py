"""
Outward channels: where phase changes, transcripts, generation events and
agent audio go.

``EventSink`` is what the controller and orchestrator write to. The browser
WebSocket (a flask-sock ``Server`` object, which is blocking) is wrapped so
writes happen in a worker thread and never stall the event loop.
"""

from __future__ import annotations

import asyncio
import json
import logging
import threading
from abc import ABC, abstractmethod
from typing import Optional

from simple_websocket import ConnectionClosed

logger = logging.getLogger(__name__)


class EventSink(ABC):
    """Ordered destination for outward messages of one session."""

    @abstractmethod
    async def send_json(self, message: dict):
        """Deliver one JSON message."""

    async def send_bytes(self, data: bytes):
        """Deliver one binary frame (agent audio). Sinks without audio drop it."""

    async def close(self):
        """Close the channel; later sends are dropped."""


class BrowserSocketChannel(EventSink):
    """
    EventSink over a flask-sock WebSocket.

    Sends are serialized with a lock so frames from the event loop and from
    worker threads never interleave. Once the socket is gone, sends are
    dropped quietly: a browser that left must not break a generation run.
    """

    def __init__(self, ws):
        self.ws = ws
        self._lock = threading.Lock()
        # FIFO, so messages leave in the order they were sent
        self._order = asyncio.Lock()
        self.closed = False

    def _send(self, payload):
        with self._lock:
            if self.closed:
                return
            try:
                self.ws.send(payload)
            except ConnectionClosed:
                self.closed = True
                logger.info("🔌 Browser socket closed, dropping outgoing messages")

    async def _deliver(self, payload):
        async with self._order:
            if self.closed:
                return
            await asyncio.to_thread(self._send, payload)

    async def send_json(self, message: dict):
        await self._deliver(json.dumps(message))

    async def send_bytes(self, data: bytes):
        await self._deliver(data)

    def receive(self, timeout: Optional[float] = None):
        """Blocking receive; None on timeout. Raises ConnectionClosed when the browser leaves."""
        return self.ws.receive(timeout=timeout)

    async def close(self):
        with self._lock:
            if self.closed:
                return
            self.closed = True
        try:
            await asyncio.to_thread(self.ws.close)
        except ConnectionClosed:
            pass
