"""
Process-wide registry of code generation runs.

The Flask routes read it from request threads while runs update it from the
event loop thread, so every access goes through one lock. Finished runs are
pruned after a TTL and their previews stopped.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Optional

from .schemas.project import FileTreeNode, GenerationResult, RunStatus

logger = logging.getLogger(__name__)


DEFAULT_TTL_SECONDS = 3600


@dataclass
class GenerationRecord:
    """What the server remembers about one run."""
    session_id: str
    project_name: str
    status: RunStatus = RunStatus.IN_PROGRESS
    started_at: datetime = field(default_factory=datetime.now)
    completed_at: Optional[datetime] = None
    preview_url: Optional[str] = None
    repo_path: Optional[str] = None
    error: Optional[str] = None
    duration_ms: int = 0
    file_tree: Optional[FileTreeNode] = None
    # Thread-safe callable that cancels the in-flight run
    cancel: Optional[Callable[[], None]] = field(default=None, repr=False)
    # Live dev server; anything with .alive and .stop()
    preview: Optional[object] = field(default=None, repr=False)

    @property
    def preview_alive(self) -> bool:
        return self.preview is not None and self.preview.alive

    def to_dict(self) -> dict:
        return {
            "session_id": self.session_id,
            "project_name": self.project_name,
            "status": self.status.value,
            "started_at": self.started_at.isoformat(),
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
            "preview_url": self.preview_url,
            "preview_alive": self.preview_alive,
            "repo_path": self.repo_path,
            "error": self.error,
            "duration_ms": self.duration_ms,
        }


class SessionRegistry:
    """
    Lock-guarded map of session id to GenerationRecord.

    Usage:
        registry = SessionRegistry(ttl_seconds=3600)
        registry.begin(session_id, "Todo App", cancel=cancel_run)
        registry.finish(result, preview=handle)
    """

    def __init__(self, ttl_seconds: int = DEFAULT_TTL_SECONDS):
        self.ttl_seconds = ttl_seconds
        self._records: dict[str, GenerationRecord] = {}
        self._lock = threading.Lock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)

    def begin(
        self,
        session_id: str,
        project_name: str,
        cancel: Optional[Callable[[], None]] = None,
    ) -> GenerationRecord:
        """Register a run that just started, replacing any earlier record for the id."""
        record = GenerationRecord(session_id=session_id, project_name=project_name, cancel=cancel)
        with self._lock:
            previous = self._records.get(session_id)
            self._records[session_id] = record
        if previous is not None and previous.preview_alive:
            previous.preview.stop()
        return record

    def finish(self, result: GenerationResult, preview: Optional[object] = None):
        """Store the outcome of a run."""
        with self._lock:
            record = self._records.get(result.session_id)
            if record is None:
                return
            record.status = result.status
            record.completed_at = datetime.now()
            record.preview_url = result.preview_url
            record.repo_path = result.repo_path
            record.error = result.error
            record.duration_ms = result.duration_ms
            record.file_tree = result.file_tree
            record.preview = preview
            record.cancel = None

    def get(self, session_id: str) -> Optional[GenerationRecord]:
        with self._lock:
            return self._records.get(session_id)

    def list(self) -> list[GenerationRecord]:
        """All records, newest first."""
        with self._lock:
            records = list(self._records.values())
        return sorted(records, key=lambda r: r.started_at, reverse=True)

    def stop(self, session_id: str) -> bool:
        """
        Cancel a running run, or stop the preview of a finished one.

        Returns:
            False if the session is unknown
        """
        with self._lock:
            record = self._records.get(session_id)
            if record is None:
                return False
            cancel = record.cancel
            preview = record.preview

        if cancel is not None and not record.status.finished:
            logger.info(f"🛑 Cancelling generation run {session_id}")
            cancel()
        elif preview is not None:
            preview.stop()
        return True

    def prune(self, now: Optional[datetime] = None) -> list[str]:
        """Remove finished runs older than the TTL, stopping their previews."""
        now = now or datetime.now()
        expired: list[GenerationRecord] = []

        with self._lock:
            for session_id, record in list(self._records.items()):
                if not record.status.finished or record.completed_at is None:
                    continue
                if (now - record.completed_at).total_seconds() > self.ttl_seconds:
                    expired.append(self._records.pop(session_id))

        for record in expired:
            if record.preview is not None:
                try:
                    record.preview.stop()
                except OSError as e:
                    logger.warning(f"Could not stop preview for {record.session_id}: {e}")
        if expired:
            logger.info(f"🧹 Pruned {len(expired)} finished session(s)")
        return [r.session_id for r in expired]

    def stop_all(self):
        """Stop every live preview and cancel every running run (server shutdown)."""
        for record in self.list():
            if record.cancel is not None and not record.status.finished:
                record.cancel()
            elif record.preview is not None:
                record.preview.stop()
