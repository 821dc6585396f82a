"""
Shared phrase detection for conversation text.

Central module for recognising conversational intent from short utterances.
Used by the conversation controller (approval of a proposed spec) and by the
spec extractor (noticing that the assistant has moved on mid-YAML).

Matching is deliberately plain: lower-case, trim, substring containment.
It over-matches ("yes, but not yet" counts as approval); the user can always
restate approval, so responsiveness wins over precision here.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional


class PhraseIntent(Enum):
    """What a matched phrase tells us about the utterance."""
    APPROVAL = "approval"      # User accepts the proposed spec: "looks good, let's build"
    MOVING_ON = "moving_on"    # Assistant finished reading the spec: "would you like to edit..."


@dataclass(frozen=True)
class PhraseMatch:
    """A single detected intent phrase."""
    intent: PhraseIntent
    phrase: str
    normalized_text: str


# ── Phrase tables ────────────────────────────────────────────────────────────

PHRASE_PATTERNS: dict[PhraseIntent, tuple[str, ...]] = {
    PhraseIntent.APPROVAL: (
        "looks good",
        "that looks good",
        "yes",
        "perfect",
        "great",
        "awesome",
        "i like that",
        "that works",
        "let's build",
        "let's go",
        "ready",
        "is ready",
        "it's ready",
        "the prompt is ready",
        "prompt is ready",
        "approved",
        "correct",
        "that's right",
        "sounds good",
        "good to go",
        "let's do it",
        "let's start",
        "move on",
        "next step",
        "continue",
        "proceed",
    ),
    PhraseIntent.MOVING_ON: (
        "would you like to edit",
        "is it ready",
        "starting code generation",
        "great!",
        "perfect!",
        "let me know",
        "you're welcome",
        "if you're ready",
    ),
}

# Speech transcripts and LLM output disagree on apostrophes
_APOSTROPHES = str.maketrans({"’": "'", "‘": "'", "ʼ": "'"})


def normalize_utterance(text: str) -> str:
    """Lower-case, trim and straighten apostrophes."""
    return (text or "").translate(_APOSTROPHES).strip().lower()


def detect_phrase(text: str, intent: PhraseIntent) -> Optional[PhraseMatch]:
    """
    Find the first phrase of ``intent`` contained in ``text``.

    Args:
        text: Utterance or message chunk to scan
        intent: Which phrase table to use

    Returns:
        PhraseMatch for the first matching phrase, or None
    """
    normalized = normalize_utterance(text)
    if not normalized:
        return None

    for phrase in PHRASE_PATTERNS[intent]:
        if phrase in normalized:
            return PhraseMatch(intent=intent, phrase=phrase, normalized_text=normalized)
    return None


def is_approval(utterance: str) -> bool:
    """True if the user utterance reads as approval of the pending spec."""
    return detect_phrase(utterance, PhraseIntent.APPROVAL) is not None


def is_moving_on(chunk: str) -> bool:
    """True if an assistant chunk sounds like the spec has been read out in full."""
    return detect_phrase(chunk, PhraseIntent.MOVING_ON) is not None
