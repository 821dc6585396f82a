"""
Code Generation Orchestrator

Turns an approved Specification into a running preview:

1. Ask the generation model for the project as a JSON files array
2. Parse and validate the response
3. Write the files to {generation_root}/{session_id}/repo
4. Install and serve the project with the preview supervisor

Progress goes to an EventSink as codegen-* messages. Every run that emits
codegen-start ends with exactly one of codegen-complete, codegen-error or
codegen-cancelled, and nothing after it.
"""

from __future__ import annotations

import asyncio
import logging
import time
from pathlib import Path
from typing import Optional

from ..channels import EventSink
from ..prompts.codegen_prompt import CODEGEN_SYSTEM_PROMPT, build_codegen_prompt
from ..schemas.events import (
    GenerationCancelled,
    GenerationComplete,
    GenerationEvent,
    GenerationFailed,
    GenerationStarted,
    LogChunk,
    PreviewReady,
    ValidationPassed,
)
from ..schemas.project import GeneratedFile, GenerationResult, RunStatus
from ..schemas.specification import Specification
from .errors import ModelCallFailed, PipelineError
from .output_parser import parse_generated_files
from .preview_server import LocalPreviewServer, PreviewHandle
from .workspace import (
    build_file_tree,
    dedupe_files,
    describe_tree,
    prepare_repo_dir,
    write_generated_file,
)

logger = logging.getLogger(__name__)


class EventStream:
    """
    Ordered, terminal-guarded view of a sink for one run.

    After a terminal event every further event is dropped, including late
    dev server output relayed by the supervisor.
    """

    def __init__(self, sink: EventSink):
        self.sink = sink
        self.finished = False
        self._lock = asyncio.Lock()

    async def emit(self, event: GenerationEvent):
        async with self._lock:
            if self.finished:
                logger.debug(f"Dropping {event.type} after the run finished")
                return
            if event.terminal:
                self.finished = True
            await self.sink.send_json(event.to_dict())

    async def log(self, chunk: str):
        await self.emit(LogChunk(chunk))


class CodeGenerationOrchestrator:
    """
    Runs one generation per approved specification.

    Usage:
        orchestrator = CodeGenerationOrchestrator.from_config(config, registry)
        result = await orchestrator.run(spec, session_id, sink)
        if result.succeeded:
            print(result.preview_url)
    """

    def __init__(
        self,
        model,
        supervisor: LocalPreviewServer,
        generation_root: Path = Path("generated"),
        registry=None,
    ):
        """
        Args:
            model: Anything with ``complete(prompt, system_prompt)`` returning an
                object with ``.content`` (an LLMManager in production)
            supervisor: Starts the dev server for a written project
            generation_root: Parent of every session directory
            registry: Optional SessionRegistry recording runs for the HTTP API
        """
        self.model = model
        self.supervisor = supervisor
        self.generation_root = Path(generation_root)
        self.registry = registry

    @classmethod
    def from_config(cls, config, registry=None) -> "CodeGenerationOrchestrator":
        from ..llm.manager import LLMManager

        return cls(
            model=LLMManager.from_config(config),
            supervisor=LocalPreviewServer.from_config(config),
            generation_root=config.generation_root,
            registry=registry,
        )

    async def run(self, spec: Specification, session_id: str, sink: EventSink) -> GenerationResult:
        """
        Generate, write and serve the project for ``spec``.

        Failures are reported as codegen-error and a FAILED result; they do
        not raise. Cancellation emits codegen-cancelled, stops the dev server
        if it was started, and re-raises CancelledError.
        """
        events = EventStream(sink)
        started = time.monotonic()
        result = GenerationResult(session_id=session_id, status=RunStatus.IN_PROGRESS)
        preview: Optional[PreviewHandle] = None
        self._record_start(session_id, spec)

        logger.info(f"🏗️ Starting code generation for {spec.project_name!r} ({session_id})")

        try:
            await events.emit(GenerationStarted(session_id))

            files = await self._generate_files(spec)
            await events.emit(ValidationPassed())

            repo = await self._materialize(session_id, files, result, events)

            preview = await self.supervisor.start(repo, on_log=events.log)

            result.preview_url = preview.url
            result.status = RunStatus.COMPLETED
            result.duration_ms = _elapsed_ms(started)

            await events.log(f"🎉 Preview ready at: {preview.url}")
            await events.emit(PreviewReady(preview.url))
            await events.emit(GenerationComplete(
                duration_ms=result.duration_ms,
                preview_url=preview.url,
                repo_path=result.repo_path,
            ))
            logger.info(f"✅ Generation {session_id} complete in {result.duration_ms}ms: {preview.url}")

        except asyncio.CancelledError:
            logger.info(f"🛑 Generation {session_id} cancelled")
            if preview is not None:
                preview.stop()
                preview = None
            result.status = RunStatus.CANCELLED
            result.preview_url = None
            result.duration_ms = _elapsed_ms(started)
            self._record_finish(result, None)
            await events.emit(GenerationCancelled())
            raise

        except Exception as e:
            if isinstance(e, PipelineError):
                message = str(e)
                logger.error(f"❌ Generation {session_id} failed: {message}")
            else:
                message = f"Unexpected error during code generation: {e}"
                logger.exception(f"❌ Generation {session_id} crashed")
            if preview is not None:
                preview.stop()
                preview = None
            result.status = RunStatus.FAILED
            result.error = message
            result.preview_url = None
            result.duration_ms = _elapsed_ms(started)
            self._record_finish(result, None)
            await events.emit(GenerationFailed(message))
            return result

        self._record_finish(result, preview)
        return result

    async def _generate_files(self, spec: Specification) -> list[GeneratedFile]:
        prompt = build_codegen_prompt(spec)
        logger.info("🤖 Calling the generation model...")

        try:
            response = await asyncio.to_thread(self.model.complete, prompt, CODEGEN_SYSTEM_PROMPT)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            raise ModelCallFailed(f"Code generation model call failed: {e}") from e

        content = getattr(response, "content", "") or ""
        if not content.strip():
            raise ModelCallFailed("Code generation model returned an empty response")

        logger.info(f"📨 Model returned {len(content)} characters, parsing generated files...")
        logger.debug(f"Raw model response: {content[:500]}")
        return parse_generated_files(content)

    async def _materialize(
        self,
        session_id: str,
        files: list[GeneratedFile],
        result: GenerationResult,
        events: EventStream,
    ) -> Path:
        repo = await asyncio.to_thread(prepare_repo_dir, self.generation_root, session_id)
        result.repo_path = str(repo)

        for generated in dedupe_files(files):
            await asyncio.to_thread(write_generated_file, repo, generated)
            result.files_written.append(generated.path)
            await events.log(f"Created: {generated.path}")

        tree = await asyncio.to_thread(build_file_tree, repo)
        result.file_tree = tree
        file_count = sum(1 for _ in tree.iter_files())
        await events.log(f"Project structure created successfully! ({file_count} files)\n{describe_tree(tree)}")
        logger.info(f"📁 Wrote {file_count} files to {repo}")
        return repo

    def _record_start(self, session_id: str, spec: Specification):
        if self.registry is None:
            return
        loop = asyncio.get_running_loop()
        task = asyncio.current_task()

        def cancel():
            loop.call_soon_threadsafe(task.cancel)

        self.registry.begin(session_id, spec.project_name, cancel=cancel if task else None)

    def _record_finish(self, result: GenerationResult, preview: Optional[PreviewHandle]):
        if self.registry is not None:
            self.registry.finish(result, preview=preview)


def _elapsed_ms(started: float) -> int:
    return int((time.monotonic() - started) * 1000)
