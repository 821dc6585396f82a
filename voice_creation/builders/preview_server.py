"""
Local preview server - install and serve a generated project.

The supervisor runs two child processes in the project directory:

1. The install command, to completion (bounded by a timeout)
2. The serve command, left running as a detached dev server

Every byte either process writes is relayed to ``on_log`` in order. ``start``
resolves once the dev server looks ready (a ready keyword or its port shows up
in the output, or the URL answers HTTP) and fails instead of hanging if the
server dies first or the deadline passes.
"""

from __future__ import annotations

import asyncio
import codecs
import logging
import os
import signal
from dataclasses import dataclass, field
from pathlib import Path
from typing import Awaitable, Callable, Optional, Sequence

from .errors import InstallFailed, PreviewTimeout, ServeFailedBeforeReady
from .readiness import find_open_port, ready_matcher, wait_for_http, wait_for_ready

logger = logging.getLogger(__name__)


LogCallback = Callable[[str], Awaitable[None]]

READ_CHUNK_BYTES = 4096
LOG_TAIL_CHARS = 2000

# Grace period for the output pump to drain after a child exits
DRAIN_TIMEOUT = 2.0

_PORT_IN_USE_MARKERS = ("address already in use", "eaddrinuse")


def _signal_group(process: asyncio.subprocess.Process, sig: int):
    """Signal the child's whole process group (it leads its own session)."""
    try:
        if hasattr(os, "killpg"):
            os.killpg(process.pid, sig)
        else:
            process.send_signal(sig)
    except ProcessLookupError:
        pass


class OutputTap:
    """
    Collects a child's output as it is pumped.

    Keeps a bounded tail for error messages and, until ``detach`` is called,
    queues every chunk for a readiness waiter.
    """

    def __init__(self, tail_chars: int = LOG_TAIL_CHARS):
        self.tail_chars = tail_chars
        self._tail = ""
        self._queue: asyncio.Queue[Optional[str]] = asyncio.Queue()
        self._listening = True

    @property
    def tail(self) -> str:
        return self._tail.strip()

    def feed(self, chunk: str):
        self._tail = (self._tail + chunk)[-self.tail_chars:]
        if self._listening:
            self._queue.put_nowait(chunk)

    def close(self):
        self._queue.put_nowait(None)

    def detach(self):
        """Stop queueing chunks; nobody is waiting on them any more."""
        self._listening = False

    async def chunks(self):
        while True:
            chunk = await self._queue.get()
            if chunk is None:
                return
            yield chunk


async def _pump_output(
    stream: asyncio.StreamReader,
    tap: OutputTap,
    on_log: Optional[LogCallback],
):
    decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
    try:
        while True:
            data = await stream.read(READ_CHUNK_BYTES)
            if not data:
                break
            text = decoder.decode(data)
            if not text:
                continue
            tap.feed(text)
            if on_log is not None:
                try:
                    await on_log(text)
                except Exception as e:
                    logger.warning(f"⚠️ Log relay failed: {e}")
    finally:
        tap.close()


async def _drain(pump: asyncio.Task):
    done, _ = await asyncio.wait({pump}, timeout=DRAIN_TIMEOUT)
    if not done:
        pump.cancel()


@dataclass
class PreviewHandle:
    """A running dev server. ``stop`` releases it; safe to call from any thread."""
    url: str
    port: int
    process: asyncio.subprocess.Process = field(repr=False)
    _pump: Optional[asyncio.Task] = field(default=None, repr=False)

    @property
    def pid(self) -> int:
        return self.process.pid

    @property
    def alive(self) -> bool:
        return self.process.returncode is None

    def stop(self):
        """Send SIGTERM to the dev server's process group if it is still running."""
        if not self.alive:
            return
        logger.info(f"🛑 Stopping preview at {self.url} (pid {self.pid})")
        _signal_group(self.process, signal.SIGTERM)


class LocalPreviewServer:
    """
    Process supervisor for generated projects.

    Usage:
        server = LocalPreviewServer.from_config(config)
        handle = await server.start(repo_dir, on_log=relay)
        ...
        handle.stop()
    """

    def __init__(
        self,
        install_command: Sequence[str] = ("npm", "install", "--ignore-scripts"),
        serve_command: Sequence[str] = ("npm", "run", "dev", "--", "--port", "{port}"),
        port_range: tuple[int, int] = (4000, 4100),
        preview_host: str = "localhost",
        install_timeout: float = 600.0,
        ready_timeout: Optional[float] = 180.0,
        ready_keywords: Sequence[str] = ("ready",),
        http_probe: bool = True,
    ):
        self.install_command = list(install_command)
        self.serve_command = list(serve_command)
        self.port_range = port_range
        self.preview_host = preview_host
        self.install_timeout = install_timeout
        self.ready_timeout = ready_timeout
        self.ready_keywords = tuple(ready_keywords)
        self.http_probe = http_probe

    @classmethod
    def from_config(cls, config) -> "LocalPreviewServer":
        return cls(
            install_command=config.install_command,
            serve_command=config.serve_command,
            port_range=config.port_range,
            preview_host=config.preview_host,
            install_timeout=config.install_timeout,
            ready_timeout=config.ready_timeout,
            ready_keywords=config.ready_keywords,
            http_probe=config.http_probe,
        )

    async def start(self, project_dir: Path, on_log: Optional[LogCallback] = None) -> PreviewHandle:
        """
        Install dependencies, then start the dev server and wait until it is ready.

        Raises:
            NoPortAvailable: the preview port range is exhausted
            InstallFailed: install exited non-zero or timed out
            ServeFailedBeforeReady: the dev server exited before it was ready
            PreviewTimeout: the dev server was not ready in time (it is killed)
        """
        project_dir = Path(project_dir)
        await self._install(project_dir, on_log)

        port = await asyncio.to_thread(find_open_port, *self.port_range)
        try:
            return await self._serve(project_dir, port, on_log)
        except ServeFailedBeforeReady as e:
            if not any(marker in e.log_tail.lower() for marker in _PORT_IN_USE_MARKERS):
                raise
            logger.warning(f"⚠️ Port {port} was taken before the dev server bound it, probing again")

        # One retry only; a second collision propagates
        port = await asyncio.to_thread(find_open_port, *self.port_range)
        return await self._serve(project_dir, port, on_log)

    async def _spawn(self, command: list[str], cwd: Path, env: Optional[dict] = None):
        logger.info(f"▶️ Running: {' '.join(command)} (in {cwd})")
        return await asyncio.create_subprocess_exec(
            *command,
            cwd=str(cwd),
            env=env,
            stdin=asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.STDOUT,
            start_new_session=True,
        )

    async def _install(self, project_dir: Path, on_log: Optional[LogCallback]):
        if not self.install_command:
            return

        process = await self._spawn(self.install_command, project_dir)
        tap = OutputTap()
        tap.detach()
        pump = asyncio.create_task(_pump_output(process.stdout, tap, on_log))

        try:
            exit_code = await asyncio.wait_for(process.wait(), timeout=self.install_timeout)
        except asyncio.TimeoutError:
            logger.error(f"❌ Install timed out after {self.install_timeout:g}s")
            _signal_group(process, signal.SIGKILL)
            await process.wait()
            await _drain(pump)
            raise InstallFailed(None, tap.tail, timed_out=True)
        except asyncio.CancelledError:
            _signal_group(process, signal.SIGKILL)
            pump.cancel()
            raise

        await _drain(pump)
        if exit_code != 0:
            logger.error(f"❌ Install exited with {exit_code}")
            raise InstallFailed(exit_code, tap.tail)
        logger.info("✅ Dependencies installed")

    async def _serve(self, project_dir: Path, port: int, on_log: Optional[LogCallback]) -> PreviewHandle:
        command = [part.replace("{port}", str(port)) for part in self.serve_command]
        env = {**os.environ, "PORT": str(port)}
        url = f"http://{self.preview_host}:{port}"

        process = await self._spawn(command, project_dir, env=env)
        tap = OutputTap()
        pump = asyncio.create_task(_pump_output(process.stdout, tap, on_log))

        output_ready = asyncio.create_task(
            wait_for_ready(tap.chunks(), ready_matcher(port, self.ready_keywords))
        )
        exited = asyncio.create_task(process.wait())
        waiters = {output_ready, exited}
        http_ready = None
        if self.http_probe:
            http_ready = asyncio.create_task(wait_for_http(url))
            waiters.add(http_ready)

        try:
            done, _ = await asyncio.wait(
                waiters, timeout=self.ready_timeout, return_when=asyncio.FIRST_COMPLETED
            )
        except asyncio.CancelledError:
            _signal_group(process, signal.SIGKILL)
            pump.cancel()
            raise
        finally:
            for task in waiters:
                if not task.done():
                    task.cancel()

        became_ready = (
            (output_ready in done and output_ready.result() is not None)
            or (http_ready is not None and http_ready in done)
        )

        if exited in done or (output_ready in done and not became_ready):
            try:
                exit_code = await asyncio.wait_for(process.wait(), timeout=DRAIN_TIMEOUT)
            except asyncio.TimeoutError:
                _signal_group(process, signal.SIGKILL)
                exit_code = await process.wait()
            await _drain(pump)
            logger.error(f"❌ Dev server exited with {exit_code} before it was ready")
            raise ServeFailedBeforeReady(exit_code, tap.tail)

        if not done:
            logger.error(f"❌ Dev server not ready after {self.ready_timeout:g}s, killing it")
            _signal_group(process, signal.SIGKILL)
            await process.wait()
            await _drain(pump)
            raise PreviewTimeout(self.ready_timeout)

        tap.detach()
        logger.info(f"🚀 Dev server ready at {url} (pid {process.pid})")
        return PreviewHandle(url=url, port=port, process=process, _pump=pump)
