"""
Conversation Phase Controller

Drives one browser session through the build lifecycle:

    IDEATION -> PROMPT_REVIEW -> TRANSITIONING -> CODE_GENERATION

- Assistant text is fed to the SpecificationExtractor; a complete spec moves
  the session to PROMPT_REVIEW (a newer spec replaces the candidate)
- A user approval phrase in PROMPT_REVIEW mints a session id and starts the
  CodeGenerationOrchestrator as a background task
- A failed or cancelled run, an explicit reset, or an upstream error sends the
  session back to IDEATION and discards the spec and session id

State lives in one SessionState per connection; nothing here is global.
"""

from __future__ import annotations

import asyncio
import logging
import time
import uuid
from dataclasses import dataclass, field
from typing import Optional

from ..channels import EventSink
from ..schemas.events import ConversationPhase, phase_transition_message, text_message
from ..schemas.project import GenerationResult
from ..schemas.specification import Specification
from ..signals import is_approval
from .spec_extractor import ObservationKind, SpecificationExtractor

logger = logging.getLogger(__name__)


NO_SPEC_HINT = "Please generate the complete YAML first before proceeding to build."

TEXT_MESSAGE_TYPES = ("ConversationText", "text")


def new_session_id() -> str:
    """``session-<epoch ms>-<9 hex chars>``"""
    return f"session-{int(time.time() * 1000)}-{uuid.uuid4().hex[:9]}"


@dataclass
class SessionState:
    """Conversation state of one connected client."""
    phase: ConversationPhase = ConversationPhase.IDEATION
    extractor: SpecificationExtractor = field(default_factory=SpecificationExtractor)
    approved_specification: Optional[Specification] = None
    session_id: Optional[str] = None

    @property
    def pending_spec_text(self) -> Optional[str]:
        """Raw text of a spec block still streaming in."""
        return self.extractor.pending_text

    def clear(self):
        self.phase = ConversationPhase.IDEATION
        self.extractor.reset()
        self.approved_specification = None
        self.session_id = None

    def to_dict(self) -> dict:
        return {
            "phase": self.phase.value,
            "session_id": self.session_id,
            "has_specification": self.approved_specification is not None,
            "collecting_specification": self.extractor.is_open,
        }


class ConversationController:
    """
    Phase state machine for one session.

    Usage:
        controller = ConversationController(sink, orchestrator)
        await controller.handle_upstream_message({"type": "ConversationText", ...})
        ...
        await controller.shutdown()
    """

    def __init__(self, sink: EventSink, orchestrator, state: Optional[SessionState] = None):
        self.sink = sink
        self.orchestrator = orchestrator
        self.state = state or SessionState()
        self._generation: Optional[asyncio.Task] = None

    @property
    def phase(self) -> ConversationPhase:
        return self.state.phase

    @property
    def generation_task(self) -> Optional[asyncio.Task]:
        return self._generation

    async def _set_phase(self, phase: ConversationPhase):
        previous = self.state.phase
        self.state.phase = phase
        logger.info(f"🔀 Phase: {previous.value} -> {phase.value}")
        await self.sink.send_json(phase_transition_message(phase, self.state.session_id))

    # =========================================================================
    # INBOUND MESSAGES
    # =========================================================================

    async def handle_upstream_message(self, message: dict):
        """Handle one JSON message from the speech agent."""
        msg_type = message.get("type")

        if msg_type in TEXT_MESSAGE_TYPES:
            role = message.get("role")
            content = message.get("content")
            if not isinstance(role, str) or not isinstance(content, str):
                logger.warning(f"⚠️ Malformed conversation text ignored: {message}")
                return
            logger.info(f"{role}: {content}")
            await self.sink.send_json(text_message(role, content))
            await self.handle_text(role, content)

        elif msg_type == "Error":
            logger.error(f"❌ Agent error: {message}")
            await self.reset()
            await self.sink.close()

        elif msg_type in ("Welcome", "SettingsApplied"):
            logger.info(f"Agent {msg_type}: {message}")

        else:
            logger.debug(f"Other agent message: {msg_type}")

    async def handle_text(self, role: str, content: str):
        """Apply one conversation text to the state machine."""
        if role == "assistant":
            await self._observe_assistant(content)
        elif role == "user":
            await self._observe_user(content)

    async def _observe_assistant(self, content: str):
        if self.state.phase not in (ConversationPhase.IDEATION, ConversationPhase.PROMPT_REVIEW):
            return

        # Whole messages are line-terminated so consecutive ones do not run together
        chunk = content if content.endswith("\n") else content + "\n"
        observation = self.state.extractor.observe("assistant", chunk)
        if observation.kind is not ObservationKind.COMPLETE:
            return

        spec = observation.specification
        if self.state.approved_specification is not None:
            logger.info(f"✏️ Updated spec replaces the candidate: {spec.project_name!r}")
        self.state.approved_specification = spec

        if self.state.phase is ConversationPhase.IDEATION:
            logger.info(f"✅ Complete spec captured, entering prompt review: {spec.project_name!r}")
            await self._set_phase(ConversationPhase.PROMPT_REVIEW)

    async def _observe_user(self, content: str):
        if not is_approval(content):
            if self.state.phase is ConversationPhase.PROMPT_REVIEW:
                logger.debug(f"🔍 No approval in user message: {content!r}")
            return

        phase = self.state.phase
        if (
            phase is ConversationPhase.PROMPT_REVIEW
            and self.state.approved_specification is not None
            and self._generation is None
        ):
            logger.info(f"🚀 User approved the spec: {content!r}")
            await self._begin_generation()
        elif phase in (ConversationPhase.IDEATION, ConversationPhase.PROMPT_REVIEW):
            logger.warning(f"❌ Approval detected but no spec captured yet: {content!r}")
            await self.sink.send_json(text_message("system", NO_SPEC_HINT))
        else:
            logger.info(f"Approval ignored, already in {phase.value}")

    # =========================================================================
    # GENERATION
    # =========================================================================

    async def _begin_generation(self):
        spec = self.state.approved_specification
        self.state.session_id = new_session_id()
        session_id = self.state.session_id

        await self._set_phase(ConversationPhase.TRANSITIONING)
        await self._set_phase(ConversationPhase.CODE_GENERATION)
        self._generation = asyncio.create_task(
            self._run_generation(spec, session_id), name=f"codegen-{session_id}"
        )

    async def _run_generation(self, spec: Specification, session_id: str) -> Optional[GenerationResult]:
        try:
            result = await self.orchestrator.run(spec, session_id, self.sink)
        except asyncio.CancelledError:
            logger.info(f"🛑 Generation {session_id} cancelled, back to ideation")
            await self._discard(session_id)
            raise
        except Exception:
            # The orchestrator reports its own failures; this is a bug in it
            logger.exception(f"❌ Orchestrator raised for {session_id}")
            await self._discard(session_id)
            return None
        finally:
            if self._generation is asyncio.current_task():
                self._generation = None

        if result.succeeded:
            logger.info(f"✅ Code generation completed: {result.preview_url}")
        else:
            logger.error(f"❌ Code generation failed: {result.error}")
            await self._discard(session_id)
        return result

    async def _discard(self, session_id: str):
        """Back to IDEATION after a failed or cancelled run, unless something already moved on."""
        if self.state.session_id != session_id:
            return
        self.state.clear()
        await self._set_phase(ConversationPhase.IDEATION)

    # =========================================================================
    # CONTROL
    # =========================================================================

    async def cancel(self) -> bool:
        """
        Cancel the in-flight generation run, if any, and wait for it to wind down.

        Returns:
            True if a run was cancelled
        """
        task = self._generation
        if task is None or task.done():
            return False
        session_id = self.state.session_id
        task.cancel()
        await asyncio.gather(task, return_exceptions=True)
        # A task cancelled before it ever ran never reaches its own cleanup
        if self._generation is task:
            self._generation = None
            logger.info(f"🛑 Generation {session_id} cancelled before it started, back to ideation")
            await self._discard(session_id)
        return True

    async def reset(self):
        """Explicit reset: stop any run and return to IDEATION with nothing pending."""
        logger.info("🔄 Resetting conversation")
        if await self.cancel():
            # The cancelled run already reset the state
            if self.state.phase is ConversationPhase.IDEATION and self.state.session_id is None:
                return
        self.state.clear()
        await self._set_phase(ConversationPhase.IDEATION)

    async def shutdown(self):
        """The browser left: stop any run. A completed preview stays up."""
        await self.cancel()
