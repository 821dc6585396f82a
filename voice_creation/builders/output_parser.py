"""
Parse the generation model's response into GeneratedFile entries.

The model is asked for ``{"files": [{"path": ..., "content": ...}]}`` but often
wraps it in prose or code fences, or writes content fields as backtick strings.
Each strategy below is a pure ``text -> files-or-None`` function; they are
tried in order and the first that yields a ``files`` array wins.
"""

from __future__ import annotations

import json
import logging
import re
from pathlib import PurePosixPath
from typing import Any, Callable, Optional

from ..schemas.project import GeneratedFile
from .errors import InvalidGenerationOutput, UnparseableGenerationOutput

logger = logging.getLogger(__name__)


PREVIEW_CHARS = 200

ParseStrategy = Callable[[str], Optional[list]]

_FENCED_JSON_RE = re.compile(r"```(?:json)?[ \t]*\r?\n(.*?)\r?\n?[ \t]*```", re.IGNORECASE | re.DOTALL)
_FILES_OBJECT_RE = re.compile(r'\{[\s\S]*"files"[\s\S]*\}')
_ANY_OBJECT_RE = re.compile(r"\{[\s\S]*\}")
_FENCE_MARKER_RE = re.compile(r"```(?:json)?[ \t]*\r?\n?", re.IGNORECASE)
_BACKTICK_CONTENT_RE = re.compile(r'("content":\s*)`([^`]*)`')


def _files_array(text: str) -> Optional[list]:
    # strict=False lets raw newlines and tabs through inside strings
    try:
        data = json.loads(text, strict=False)
    except ValueError:
        return None
    if isinstance(data, dict) and isinstance(data.get("files"), list):
        return data["files"]
    return None


def from_fenced_block(text: str) -> Optional[list]:
    """A ```json (or bare) fenced block holding the object."""
    for match in _FENCED_JSON_RE.finditer(text):
        files = _files_array(match.group(1).strip())
        if files is not None:
            return files
    return None


def from_files_object(text: str) -> Optional[list]:
    """The widest ``{...}`` span that mentions "files"."""
    match = _FILES_OBJECT_RE.search(text)
    return _files_array(match.group(0)) if match else None


def from_any_object(text: str) -> Optional[list]:
    """The widest ``{...}`` span at all."""
    match = _ANY_OBJECT_RE.search(text)
    return _files_array(match.group(0)) if match else None


def from_repaired_backticks(text: str) -> Optional[list]:
    """Strip fences and surrounding prose, then turn `content` backtick strings into JSON strings."""
    cleaned = _FENCE_MARKER_RE.sub("", text).replace("```", "")
    start, end = cleaned.find("{"), cleaned.rfind("}")
    if start == -1 or end <= start:
        return None
    cleaned = cleaned[start:end + 1]
    # json.dumps escapes backslash, quote, newline, CR, tab, form feed and backspace
    cleaned = _BACKTICK_CONTENT_RE.sub(lambda m: m.group(1) + json.dumps(m.group(2)), cleaned)
    return _files_array(cleaned)


PARSE_STRATEGIES: tuple[ParseStrategy, ...] = (
    from_fenced_block,
    from_files_object,
    from_any_object,
    from_repaired_backticks,
)


def _coerce_content(content: Any) -> str:
    if content is None:
        return ""
    if isinstance(content, (dict, list)):
        return json.dumps(content, indent=2)
    return content if isinstance(content, str) else str(content)


def normalize_path(raw: str) -> str:
    """
    Normalize a generated path to a relative POSIX path.

    Raises:
        InvalidGenerationOutput: absolute paths or paths leaving the repo
    """
    candidate = raw.strip().replace("\\", "/")
    path = PurePosixPath(candidate)
    if path.is_absolute() or re.match(r"^[A-Za-z]:", candidate):
        raise InvalidGenerationOutput(f"Generated file path must be relative: {raw!r}")

    parts = [p for p in path.parts if p not in ("", ".")]
    if ".." in parts:
        raise InvalidGenerationOutput(f"Generated file path escapes the project directory: {raw!r}")
    if not parts:
        raise InvalidGenerationOutput(f"Generated file path is empty: {raw!r}")
    return "/".join(parts)


def validate_files(entries: list) -> list[GeneratedFile]:
    """Turn raw ``files`` entries into GeneratedFile values, in order."""
    if not entries:
        raise InvalidGenerationOutput("Model response contained an empty files array")

    files = []
    for index, entry in enumerate(entries):
        if not isinstance(entry, dict):
            raise InvalidGenerationOutput(f"files[{index}] is not an object")
        path = entry.get("path")
        if not isinstance(path, str) or not path.strip():
            raise InvalidGenerationOutput(f"files[{index}] has no path")
        files.append(GeneratedFile(path=normalize_path(path), content=_coerce_content(entry.get("content"))))
    return files


def parse_generated_files(text: str) -> list[GeneratedFile]:
    """
    Run the strategy chain over a raw model response.

    Raises:
        UnparseableGenerationOutput: no strategy produced a files array
        InvalidGenerationOutput: the array was found but an entry is unusable
    """
    for strategy in PARSE_STRATEGIES:
        entries = strategy(text or "")
        if entries is not None:
            logger.info(f"📦 Parsed {len(entries)} file entries ({strategy.__name__})")
            return validate_files(entries)

    preview = (text or "")[:PREVIEW_CHARS]
    logger.error(f"❌ Could not parse model response. Raw response: {preview}...")
    raise UnparseableGenerationOutput(preview)
