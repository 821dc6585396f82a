"""
Schema definitions for the voice creation pipeline.
"""

from .specification import Specification, SpecificationIncomplete, REQUIRED_FIELDS
from .events import (
    ConversationPhase,
    GenerationEvent,
    GenerationStarted,
    ValidationPassed,
    LogChunk,
    PreviewReady,
    GenerationComplete,
    GenerationFailed,
    GenerationCancelled,
    phase_transition_message,
    text_message,
)
from .project import GeneratedFile, FileTreeNode, GenerationResult, RunStatus

__all__ = [
    "Specification",
    "SpecificationIncomplete",
    "REQUIRED_FIELDS",
    "ConversationPhase",
    "GenerationEvent",
    "GenerationStarted",
    "ValidationPassed",
    "LogChunk",
    "PreviewReady",
    "GenerationComplete",
    "GenerationFailed",
    "GenerationCancelled",
    "phase_transition_message",
    "text_message",
    "GeneratedFile",
    "FileTreeNode",
    "GenerationResult",
    "RunStatus",
]
