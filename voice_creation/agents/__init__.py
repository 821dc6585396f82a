"""
Conversation agents: spec extraction and the phase controller.
"""

from .spec_extractor import (
    Observation,
    ObservationKind,
    SpecificationExtractor,
    extract_specification,
)
from .conversation import ConversationController, SessionState, new_session_id

__all__ = [
    "Observation",
    "ObservationKind",
    "SpecificationExtractor",
    "extract_specification",
    "ConversationController",
    "SessionState",
    "new_session_id",
]
