"""
Voice interface for the app builder.

Speech recognition, the ideation LLM and speech synthesis all run in a
hosted voice agent; this package connects to it and relays each browser
session through the conversation controller.

Components:
- SpeechAgentClient: WebSocket client for the hosted agent
- VoiceSession: per-browser relay between the two sockets
"""

from .agent_client import AgentUnavailable, SpeechAgentClient, build_agent_settings
from .session import VoiceSession

__all__ = [
    "AgentUnavailable",
    "SpeechAgentClient",
    "build_agent_settings",
    "VoiceSession",
]
