"""
Tests for approval and moving-on phrase detection.
"""

import sys
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).parent.parent))

from voice_creation.signals import (
    PhraseIntent,
    detect_phrase,
    is_approval,
    is_moving_on,
    normalize_utterance,
)


class TestApproval:
    @pytest.mark.parametrize("utterance", [
        "Looks good",
        "  YES  ",
        "Perfect, let's build it",
        "Let’s build",
        "the prompt is ready",
        "ok proceed",
        "sounds good to me",
        "That's right.",
    ])
    def test_approval_phrases(self, utterance):
        assert is_approval(utterance)

    def test_over_inclusive_match(self):
        # Containment on purpose: hedged approvals still count
        assert is_approval("yes, but not yet")

    @pytest.mark.parametrize("utterance", [
        "",
        "   ",
        "Can you add a dark mode?",
        "tell me more about the dashboard",
        "I want to change the name",
        "no",
    ])
    def test_not_approval(self, utterance):
        assert not is_approval(utterance)

    def test_approval_is_case_and_whitespace_insensitive(self):
        for variant in ("looks good", "LOOKS GOOD", "\tLooks Good\n"):
            assert is_approval(variant)


class TestMovingOn:
    @pytest.mark.parametrize("chunk", [
        "Would you like to edit this prompt or is it ready?",
        "Great! Let's get started.",
        "Let me know if anything needs to change.",
        "Starting code generation now.",
    ])
    def test_moving_on_phrases(self, chunk):
        assert is_moving_on(chunk)

    @pytest.mark.parametrize("chunk", [
        "features:\n  - Login",
        "tech_stack:\n  frontend: Next.js",
        "great work on the idea",
    ])
    def test_yaml_lines_are_not_moving_on(self, chunk):
        assert not is_moving_on(chunk)


class TestDetectPhrase:
    def test_reports_first_matching_phrase(self):
        match = detect_phrase("That looks good, yes", PhraseIntent.APPROVAL)

        assert match is not None
        assert match.intent is PhraseIntent.APPROVAL
        assert match.phrase == "looks good"
        assert match.normalized_text == "that looks good, yes"

    def test_normalize_straightens_apostrophes(self):
        assert normalize_utterance("  It’s READY ") == "it's ready"
        assert normalize_utterance(None) == ""
