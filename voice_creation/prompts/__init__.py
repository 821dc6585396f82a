"""
Prompt templates for the voice creation pipeline.
"""

from .codegen_prompt import CODEGEN_SYSTEM_PROMPT, build_codegen_prompt
from .ideation_prompt import IDEATION_GREETING, IDEATION_PROMPT

__all__ = [
    "CODEGEN_SYSTEM_PROMPT",
    "build_codegen_prompt",
    "IDEATION_GREETING",
    "IDEATION_PROMPT",
]
