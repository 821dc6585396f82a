"""
Conversation phases and the outward event stream.

Every message the browser receives from the server is built here, so the
wire format lives in one place:

    {"type": "phase_transition", "phase": "CodeGeneration", "sessionId": ...}
    {"type": "codegen-start", "sessionId": ...}
    {"type": "codegen-validation-passed"}
    {"type": "codegen-log", "chunk": ...}
    {"type": "codegen-preview-ready", "url": ...}
    {"type": "codegen-complete", "duration": ms, "previewUrl": ..., "repoPath": ...}
    {"type": "codegen-error", "error": ...}
    {"type": "codegen-cancelled"}
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import ClassVar, Optional


class ConversationPhase(Enum):
    """Conversation phases, in the order a session moves through them."""
    IDEATION = "Ideation"
    PROMPT_REVIEW = "PromptReview"
    TRANSITIONING = "Transitioning"
    CODE_GENERATION = "CodeGeneration"


def phase_transition_message(phase: ConversationPhase, session_id: Optional[str]) -> dict:
    return {"type": "phase_transition", "phase": phase.value, "sessionId": session_id}


def text_message(role: str, content: str) -> dict:
    return {"type": "text", "role": role, "content": content}


@dataclass(frozen=True)
class GenerationEvent:
    """Base class for code generation lifecycle events."""
    type: ClassVar[str] = ""
    terminal: ClassVar[bool] = False

    def to_dict(self) -> dict:
        return {"type": self.type}


@dataclass(frozen=True)
class GenerationStarted(GenerationEvent):
    session_id: str
    type: ClassVar[str] = "codegen-start"

    def to_dict(self) -> dict:
        return {"type": self.type, "sessionId": self.session_id}


@dataclass(frozen=True)
class ValidationPassed(GenerationEvent):
    type: ClassVar[str] = "codegen-validation-passed"


@dataclass(frozen=True)
class LogChunk(GenerationEvent):
    chunk: str
    type: ClassVar[str] = "codegen-log"

    def to_dict(self) -> dict:
        return {"type": self.type, "chunk": self.chunk}


@dataclass(frozen=True)
class PreviewReady(GenerationEvent):
    url: str
    type: ClassVar[str] = "codegen-preview-ready"

    def to_dict(self) -> dict:
        return {"type": self.type, "url": self.url}


@dataclass(frozen=True)
class GenerationComplete(GenerationEvent):
    duration_ms: int
    preview_url: str
    repo_path: str
    type: ClassVar[str] = "codegen-complete"
    terminal: ClassVar[bool] = True

    def to_dict(self) -> dict:
        return {
            "type": self.type,
            "duration": self.duration_ms,
            "previewUrl": self.preview_url,
            "repoPath": self.repo_path,
        }


@dataclass(frozen=True)
class GenerationFailed(GenerationEvent):
    message: str
    type: ClassVar[str] = "codegen-error"
    terminal: ClassVar[bool] = True

    def to_dict(self) -> dict:
        return {"type": self.type, "error": self.message}


@dataclass(frozen=True)
class GenerationCancelled(GenerationEvent):
    type: ClassVar[str] = "codegen-cancelled"
    terminal: ClassVar[bool] = True
