"""
Project directory handling: ``{generation_root}/{session_id}/repo``.
"""

from __future__ import annotations

import logging
import re
import shutil
from pathlib import Path

from ..schemas.project import FileTreeNode, GeneratedFile
from .errors import InvalidGenerationOutput

logger = logging.getLogger(__name__)


SESSION_ID_RE = re.compile(r"^session-\d+-[0-9a-z]{9}$")


def is_valid_session_id(session_id: str) -> bool:
    return bool(session_id) and SESSION_ID_RE.match(session_id) is not None


def session_dir(root: Path, session_id: str) -> Path:
    return Path(root) / session_id


def repo_dir(root: Path, session_id: str) -> Path:
    return session_dir(root, session_id) / "repo"


def prepare_repo_dir(root: Path, session_id: str) -> Path:
    """Create an empty repo directory for the session, wiping any earlier run."""
    target = session_dir(root, session_id)
    if target.exists():
        logger.info(f"🧹 Removing previous output for {session_id}")
        shutil.rmtree(target)
    repo = target / "repo"
    repo.mkdir(parents=True)
    return repo


def resolve_inside(repo: Path, relative: str) -> Path:
    """Resolve ``relative`` under ``repo``; refuses anything that lands outside it."""
    base = Path(repo).resolve()
    target = (base / relative).resolve()
    if target != base and base not in target.parents:
        raise InvalidGenerationOutput(f"Generated file path escapes the project directory: {relative!r}")
    return target


def write_generated_file(repo: Path, generated: GeneratedFile) -> Path:
    target = resolve_inside(repo, generated.path)
    target.parent.mkdir(parents=True, exist_ok=True)
    target.write_text(generated.content, encoding="utf-8")
    return target


def dedupe_files(files: list[GeneratedFile]) -> list[GeneratedFile]:
    """Last write wins for repeated paths; first-seen order is kept."""
    latest: dict[str, GeneratedFile] = {}
    for generated in files:
        latest[generated.path] = generated
    return list(latest.values())


def build_file_tree(path: Path) -> FileTreeNode:
    path = Path(path)
    if path.is_dir():
        children = [build_file_tree(child) for child in sorted(path.iterdir(), key=lambda p: p.name)]
        return FileTreeNode(name=path.name, absolute_path=str(path), children=children)
    return FileTreeNode(name=path.name, absolute_path=str(path))


def describe_tree(node: FileTreeNode, indent: str = "") -> str:
    """Indented text outline of a tree, directories suffixed with ``/``."""
    lines = []
    for child in node.children or []:
        if child.is_dir:
            lines.append(f"{indent}{child.name}/")
            nested = describe_tree(child, indent + "  ")
            if nested:
                lines.append(nested)
        else:
            lines.append(f"{indent}{child.name}")
    return "\n".join(lines)
