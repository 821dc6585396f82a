"""
Readiness probe for locally spawned dev servers.

Two jobs:
- find_open_port: first bindable port in a range (probe-then-release, so a
  concurrent probe can still race us; the supervisor retries once)
- wait_for_ready / wait_for_http: notice when the server can take traffic,
  either from its log output or by answering HTTP on its port

Neither wait has its own timeout; the supervisor races them against a deadline.
"""

from __future__ import annotations

import asyncio
import logging
import re
import socket
from typing import AsyncIterable, Callable, Optional, Sequence

import requests

from .errors import NoPortAvailable

logger = logging.getLogger(__name__)


# Long enough to hold a keyword or "localhost:65535" split across two chunks
MATCH_WINDOW = 64


def _port_is_free(port: int, host: str) -> bool:
    sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    try:
        sock.bind((host, port))
        sock.listen(1)
        return True
    except OSError:
        return False
    finally:
        sock.close()


def find_open_port(start: int = 4000, end: int = 4100, host: str = "0.0.0.0") -> int:
    """
    Return the first port in ``start..end`` (inclusive) that can be bound.

    Raises:
        NoPortAvailable: if the whole range is taken
    """
    for port in range(start, end + 1):
        if _port_is_free(port, host):
            return port
    raise NoPortAvailable(start, end)


def ready_matcher(port: int, keywords: Sequence[str] = ("ready",)) -> Callable[[str], bool]:
    """
    Build the default predicate: a ready keyword or the bound port shows up in the output.

    Keywords match whole words only, so "address already in use" is not "ready".
    """
    patterns = [re.compile(rf"\b{re.escape(k.lower())}\b") for k in keywords if k]
    port_marker = f"localhost:{port}"

    def matches(text: str) -> bool:
        text_lower = text.lower()
        return port_marker in text_lower or any(p.search(text_lower) for p in patterns)

    return matches


async def wait_for_ready(
    chunks: AsyncIterable[str],
    matcher: Callable[[str], bool],
) -> Optional[str]:
    """
    Consume output chunks until one satisfies ``matcher``.

    The predicate sees the tail of the previous chunk plus the new one, so a
    marker split across reads still matches.

    Returns:
        The matching text, or None if the stream ended first
    """
    window = ""
    async for chunk in chunks:
        window = window[-MATCH_WINDOW:] + chunk
        if matcher(window):
            return window
    return None


def is_reachable(url: str, timeout: float = 2.0) -> bool:
    """True if anything answers HTTP at ``url`` (any status code)."""
    try:
        requests.get(url, timeout=timeout, allow_redirects=False)
        return True
    except requests.RequestException:
        return False


async def wait_for_http(url: str, interval: float = 1.0) -> str:
    """Poll ``url`` until it answers; returns the url."""
    while True:
        if await asyncio.to_thread(is_reachable, url):
            logger.debug(f"🌐 {url} is answering HTTP")
            return url
        await asyncio.sleep(interval)
