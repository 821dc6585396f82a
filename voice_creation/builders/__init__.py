"""
Project builders

Turn an approved specification into a running local preview:
- CodeGenerationOrchestrator: model call, parsing, file writing, preview
- LocalPreviewServer: install + dev server supervision
"""

from .codegen_builder import CodeGenerationOrchestrator, EventStream
from .errors import (
    PipelineError,
    NoPortAvailable,
    InstallFailed,
    ServeFailedBeforeReady,
    PreviewTimeout,
    ModelCallFailed,
    UnparseableGenerationOutput,
    InvalidGenerationOutput,
)
from .output_parser import PARSE_STRATEGIES, parse_generated_files
from .preview_server import LocalPreviewServer, PreviewHandle
from .readiness import find_open_port, wait_for_ready

__all__ = [
    'CodeGenerationOrchestrator',
    'EventStream',
    'PipelineError',
    'NoPortAvailable',
    'InstallFailed',
    'ServeFailedBeforeReady',
    'PreviewTimeout',
    'ModelCallFailed',
    'UnparseableGenerationOutput',
    'InvalidGenerationOutput',
    'PARSE_STRATEGIES',
    'parse_generated_files',
    'LocalPreviewServer',
    'PreviewHandle',
    'find_open_port',
    'wait_for_ready',
]
