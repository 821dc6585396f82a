"""
Generated project schema: files from the model, the tree on disk, run outcome.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional


class RunStatus(Enum):
    """Status of a code generation run."""
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"

    @property
    def finished(self) -> bool:
        return self in (RunStatus.COMPLETED, RunStatus.FAILED, RunStatus.CANCELLED)


@dataclass(frozen=True)
class GeneratedFile:
    """One file of the model's output; ``path`` is relative to the repo root."""
    path: str
    content: str


@dataclass
class FileTreeNode:
    """A directory (``children`` is a list, maybe empty) or a file (``children`` is None)."""
    name: str
    absolute_path: str
    children: Optional[list["FileTreeNode"]] = None

    @property
    def is_dir(self) -> bool:
        return self.children is not None

    def iter_files(self):
        """Yield every file node below (or at) this node."""
        if self.children is None:
            yield self
            return
        for child in self.children:
            yield from child.iter_files()

    def to_dict(self) -> dict:
        data = {"name": self.name, "path": self.absolute_path}
        if self.children is not None:
            data["children"] = [c.to_dict() for c in self.children]
        return data


@dataclass
class GenerationResult:
    """Outcome of one orchestrator run."""
    session_id: str
    status: RunStatus
    preview_url: Optional[str] = None
    repo_path: Optional[str] = None
    error: Optional[str] = None
    duration_ms: int = 0
    files_written: list[str] = field(default_factory=list)
    file_tree: Optional[FileTreeNode] = None

    @property
    def succeeded(self) -> bool:
        return self.status == RunStatus.COMPLETED

    def to_dict(self) -> dict:
        return {
            "session_id": self.session_id,
            "status": self.status.value,
            "preview_url": self.preview_url,
            "repo_path": self.repo_path,
            "error": self.error,
            "duration_ms": self.duration_ms,
            "files_written": self.files_written,
        }
