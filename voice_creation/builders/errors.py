"""
Error taxonomy for the code generation pipeline.

Every failure the orchestrator can report is one of these. The message is
what the browser sees in ``codegen-error``, so it must never contain raw
model output beyond the short preview kept for diagnostics.
"""

from __future__ import annotations

from typing import Optional


class PipelineError(Exception):
    """Base class for failures that end a generation run."""


class NoPortAvailable(PipelineError):
    """Every port in the preview range is taken."""

    def __init__(self, start: int, end: int):
        self.start = start
        self.end = end
        super().__init__(f"No open port found in range {start}-{end} (preview capacity exhausted)")


def _tail_suffix(log_tail: str) -> str:
    return f"\n{log_tail}" if log_tail else ""


class InstallFailed(PipelineError):
    """The dependency install step exited non-zero or timed out."""

    def __init__(self, exit_code: Optional[int], log_tail: str = "", timed_out: bool = False):
        self.exit_code = exit_code
        self.log_tail = log_tail
        self.timed_out = timed_out
        if timed_out:
            reason = "timed out"
        else:
            reason = f"exited with {exit_code}"
        super().__init__(f"Dependency install {reason}{_tail_suffix(log_tail)}")


class ServeFailedBeforeReady(PipelineError):
    """The dev server exited before it ever reported being ready."""

    def __init__(self, exit_code: Optional[int], log_tail: str = ""):
        self.exit_code = exit_code
        self.log_tail = log_tail
        super().__init__(
            f"Dev server exited with {exit_code} before it was ready{_tail_suffix(log_tail)}"
        )


class PreviewTimeout(PipelineError):
    """The dev server did not become ready before the deadline."""

    def __init__(self, timeout: float):
        self.timeout = timeout
        super().__init__(f"Dev server was not ready after {timeout:g}s")


class ModelCallFailed(PipelineError):
    """Transport, auth or empty-response failure of the generation model."""


class UnparseableGenerationOutput(PipelineError):
    """No parser strategy could read a files array out of the model response."""

    def __init__(self, preview: str):
        self.preview = preview
        super().__init__("Failed to parse generated project files from the model response")


class InvalidGenerationOutput(PipelineError):
    """The files array parsed but its entries are unusable (empty or unsafe paths)."""
