"""
Specification Extractor - pull the YAML spec out of streamed assistant speech.

The speech agent reads the proposed spec back to the user as a ```yaml block,
but the text reaches us as conversation events that may split the block at
arbitrary points (or never fence it at all). The extractor:

1. Notices a ```yaml opener (even one split across two chunks) and starts buffering
2. Keeps buffering until a closing fence shows up
3. Treats "moving on" phrases from the assistant as an implicit closer once
   the buffer holds a complete spec
4. Otherwise tries each chunk on its own, for blocks that arrived whole

Extraction is all-or-nothing: a Specification comes back only when all seven
required fields are present. Malformed input never raises.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional

import yaml

from ..schemas.specification import Specification, SpecificationIncomplete, missing_fields
from ..signals import is_moving_on

logger = logging.getLogger(__name__)


FENCE = "```"
MAX_PENDING_CHARS = 64 * 1024

# Enough trailing characters of the previous chunk to catch an opener split in two
OPENER_LOOKBEHIND = 16

_OPENER_RE = re.compile(r"```[ \t]*ya?ml\b", re.IGNORECASE)

# Tried in order; every match is validated before it is accepted
_BLOCK_PATTERNS = (
    re.compile(r"```[ \t]*ya?ml[ \t]*\r?\n(.*?)\r?\n?[ \t]*```", re.IGNORECASE | re.DOTALL),
    re.compile(r"```[ \t]*\r?\n(.*?)\r?\n[ \t]*```", re.DOTALL),
    re.compile(r"```[ \t]*ya?ml[ \t]*\r?\n?(.*)$", re.IGNORECASE | re.DOTALL),
)

_TOP_LEVEL_KEY_RE = re.compile(r"^([A-Za-z_][\w\-]*):[ \t]*(.*)$")
_BLOCK_SCALAR_MARKERS = ("|", "|-", "|+", ">", ">-", ">+")


class ObservationKind(Enum):
    """What a single observed chunk produced."""
    NONE = "none"            # nothing spec-like going on
    PARTIAL = "partial"      # a block is open and still streaming in
    COMPLETE = "complete"    # a full Specification was extracted


@dataclass(frozen=True)
class Observation:
    """Tagged result of ``SpecificationExtractor.observe``."""
    kind: ObservationKind
    specification: Optional[Specification] = None

    @classmethod
    def none(cls) -> "Observation":
        return cls(ObservationKind.NONE)

    @classmethod
    def partial(cls) -> "Observation":
        return cls(ObservationKind.PARTIAL)

    @classmethod
    def complete(cls, specification: Specification) -> "Observation":
        return cls(ObservationKind.COMPLETE, specification)


# =============================================================================
# ONE-SHOT EXTRACTION
# =============================================================================

def _unquote(value: str) -> str:
    value = value.strip()
    if len(value) >= 2 and value[0] == value[-1] and value[0] in ("'", '"'):
        return value[1:-1]
    return value


def _parse_scalar(value: str) -> Any:
    value = value.strip()
    if value.startswith("[") and value.endswith("]"):
        inner = value[1:-1].strip()
        return [_unquote(v) for v in inner.split(",") if v.strip()] if inner else []
    return _unquote(value)


def _parse_loose(block: str) -> dict:
    """
    Line-based reading of the flat spec layout, for YAML the model wrote loosely.

    Understands ``key: value``, ``key: |`` block text, ``- item`` lists and one
    level of ``sub: value`` mappings. Prose lines that are not keys are skipped.
    """
    data: dict[str, Any] = {}
    current: Optional[str] = None
    mode: Optional[str] = None  # text | block | open | list | map

    for raw in block.splitlines():
        line = raw.rstrip()
        stripped = line.strip()
        if not stripped or stripped.startswith("#"):
            continue
        indent = len(line) - len(line.lstrip())

        if indent == 0 and not stripped.startswith("-"):
            match = _TOP_LEVEL_KEY_RE.match(stripped)
            if match is None:
                # Prose between keys ends whatever value was being read
                current, mode = None, None
                continue
            current = match.group(1)
            value = (match.group(2) or "").strip()
            if value in _BLOCK_SCALAR_MARKERS:
                data[current], mode = "", "block"
            elif value:
                data[current], mode = _parse_scalar(value), "text"
            else:
                data[current], mode = None, "open"
            continue

        if current is None:
            continue

        if mode == "block":
            data[current] = f"{data[current]}\n{stripped}" if data[current] else stripped
        elif stripped.startswith("-") and mode in ("open", "list"):
            if not isinstance(data[current], list):
                data[current] = []
            data[current].append(_unquote(stripped[1:]))
            mode = "list"
        elif ":" in stripped and mode in ("open", "map"):
            key, _, value = stripped.partition(":")
            if not isinstance(data[current], dict):
                data[current] = {}
            data[current][key.strip()] = _unquote(value)
            mode = "map"
        elif mode == "text" and isinstance(data[current], str):
            data[current] = f"{data[current]} {stripped}"

    return data


def _parse_block(block: str) -> Optional[Specification]:
    try:
        data = yaml.safe_load(block)
    except yaml.YAMLError:
        data = None

    if not isinstance(data, dict) or missing_fields(data):
        data = _parse_loose(block)

    try:
        return Specification.from_dict(data)
    except SpecificationIncomplete as exc:
        logger.debug(f"⚠️ YAML found but incomplete: {exc}")
        return None


def _unfenced_candidate(text: str) -> Optional[str]:
    """Cut an unfenced spec out of prose, starting at ``project_name:``."""
    lines = text.splitlines()
    start = next((i for i, line in enumerate(lines) if "project_name:" in line), None)
    if start is None:
        return None

    first = lines[start]
    block_lines = [first[first.index("project_name:"):]]
    seen_ui_style = "ui_style:" in first

    for line in lines[start + 1:]:
        stripped = line.strip()
        if stripped.startswith(FENCE):
            break
        if seen_ui_style:
            is_continuation = line[:1] in (" ", "\t", "-")
            if not stripped or not (is_continuation or _TOP_LEVEL_KEY_RE.match(stripped)):
                break
        if "ui_style:" in line:
            seen_ui_style = True
        block_lines.append(line)

    return "\n".join(block_lines)


def extract_specification(text: str) -> Optional[Specification]:
    """
    Find and parse a complete spec anywhere in ``text``.

    Fenced blocks are tried first (```yaml, then a bare fence, then an
    unterminated ```yaml), then a keyword scan for unfenced YAML.

    Returns:
        A Specification when all required fields are present, else None
    """
    if not text:
        return None

    for pattern in _BLOCK_PATTERNS:
        for match in pattern.finditer(text):
            spec = _parse_block(match.group(1).strip())
            if spec is not None:
                logger.info(f"✅ COMPLETE YAML extracted: {spec.project_name!r}")
                return spec

    if all(key in text for key in ("project_name:", "users:", "goal:", "features:", "tech_stack:")):
        candidate = _unfenced_candidate(text)
        if candidate:
            spec = _parse_block(candidate)
            if spec is not None:
                logger.info(f"✅ COMPLETE YAML extracted without code fence: {spec.project_name!r}")
                return spec

    return None


# =============================================================================
# STREAMING EXTRACTION
# =============================================================================

class SpecificationExtractor:
    """
    Incremental extractor fed one conversation chunk at a time.

    Chunks are concatenated verbatim, so callers holding whole messages should
    line-terminate them first.

    Usage:
        extractor = SpecificationExtractor()
        obs = extractor.observe("assistant", chunk)
        if obs.kind is ObservationKind.COMPLETE:
            use(obs.specification)
    """

    def __init__(self, max_pending_chars: int = MAX_PENDING_CHARS):
        self.max_pending_chars = max_pending_chars
        self.pending_text: Optional[str] = None
        self._body_start = 0
        self._tail = ""

    @property
    def is_open(self) -> bool:
        return self.pending_text is not None

    def reset(self):
        """Drop any half-received block."""
        self.pending_text = None
        self._body_start = 0
        self._tail = ""

    extract = staticmethod(extract_specification)

    def observe(self, role: str, chunk: str) -> Observation:
        """
        Feed one chunk of conversation text.

        Args:
            role: "assistant" or "user" - only assistant text can carry a spec
            chunk: Raw text as received

        Returns:
            Observation tagged NONE, PARTIAL or COMPLETE
        """
        if role != "assistant" or not chunk:
            return Observation.none()

        if self.pending_text is None:
            return self._observe_closed(chunk)
        return self._observe_open(chunk)

    def _observe_closed(self, chunk: str) -> Observation:
        window = self._tail + chunk
        match = _OPENER_RE.search(window)

        if match is None:
            self._tail = window[-OPENER_LOOKBEHIND:]
            spec = extract_specification(chunk)
            return Observation.complete(spec) if spec else Observation.none()

        logger.info("🔍 YAML block started")
        self._tail = ""
        self.pending_text = window[match.start():]
        self._body_start = match.end() - match.start()

        if self._has_closer(self._body_start):
            return self._finish("block closed in the same chunk")
        if is_moving_on(self.pending_text[self._body_start:]):
            return self._try_moving_on()
        return Observation.partial()

    def _observe_open(self, chunk: str) -> Observation:
        previous_len = len(self.pending_text)
        self.pending_text += chunk

        if len(self.pending_text) > self.max_pending_chars:
            logger.warning(
                f"⚠️ YAML buffer passed {self.max_pending_chars} chars without closing, abandoning it"
            )
            self.reset()
            return Observation.none()

        # Back up two characters in case the closing fence was split
        if self._has_closer(max(self._body_start, previous_len - 2)):
            return self._finish("closing fence")
        if is_moving_on(chunk):
            return self._try_moving_on()

        logger.debug("📝 Accumulating YAML content...")
        return Observation.partial()

    def _has_closer(self, start: int) -> bool:
        return self.pending_text.find(FENCE, start) != -1

    def _try_moving_on(self) -> Observation:
        """
        A moving-on phrase closes the block only if the buffer already holds a
        complete spec. Spec values can contain the same phrases ("let me know
        about due chores"), so an incomplete buffer keeps collecting until the
        closing fence or the size cap.
        """
        spec = extract_specification(self.pending_text)
        if spec is None:
            logger.debug("📝 Moving-on phrase inside an incomplete block, still collecting")
            return Observation.partial()

        self.reset()
        logger.info("🔚 YAML block finished (assistant moved on)")
        return Observation.complete(spec)

    def _finish(self, reason: str) -> Observation:
        text = self.pending_text or ""
        self.reset()

        spec = extract_specification(text)
        if spec is None:
            logger.info(f"⚠️ Could not extract a complete spec ({reason}), buffer discarded")
            return Observation.none()

        logger.info(f"🔚 YAML block finished ({reason})")
        return Observation.complete(spec)
