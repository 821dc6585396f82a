"""
Tests for project directory handling and the outward event wire format.
"""

import sys
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).parent.parent))

from voice_creation.builders.errors import InvalidGenerationOutput
from voice_creation.builders.workspace import (
    build_file_tree,
    dedupe_files,
    describe_tree,
    is_valid_session_id,
    prepare_repo_dir,
    resolve_inside,
    write_generated_file,
)
from voice_creation.schemas.events import (
    ConversationPhase,
    GenerationCancelled,
    GenerationComplete,
    GenerationFailed,
    LogChunk,
    phase_transition_message,
)
from voice_creation.schemas.project import GeneratedFile


SESSION_ID = "session-1700000000000-abc123def"


class TestSessionIds:
    @pytest.mark.parametrize("session_id", [SESSION_ID, "session-1-000000000"])
    def test_valid(self, session_id):
        assert is_valid_session_id(session_id)

    @pytest.mark.parametrize("session_id", [
        "", "session-abc-abc123def", "session-1-ABC123DEF", "session-1-abc", "../session-1-abc123def",
    ])
    def test_invalid(self, session_id):
        assert not is_valid_session_id(session_id)


class TestRepoDir:
    def test_prepare_wipes_earlier_output(self, tmp_path):
        repo = prepare_repo_dir(tmp_path, SESSION_ID)
        (repo / "stale.txt").write_text("old")
        (repo.parent / "notes.txt").write_text("old")

        repo = prepare_repo_dir(tmp_path, SESSION_ID)

        assert repo == tmp_path / SESSION_ID / "repo"
        assert list(repo.iterdir()) == []
        assert list(repo.parent.iterdir()) == [repo]

    def test_write_creates_parents(self, tmp_path):
        target = write_generated_file(tmp_path, GeneratedFile("app/api/route.ts", "export {}"))

        assert target.read_text() == "export {}"
        assert target == (tmp_path / "app" / "api" / "route.ts").resolve()

    def test_resolve_refuses_escape(self, tmp_path):
        with pytest.raises(InvalidGenerationOutput):
            resolve_inside(tmp_path / "repo", "../outside.txt")

    def test_dedupe_keeps_first_position(self):
        files = [GeneratedFile("a", "1"), GeneratedFile("b", "2"), GeneratedFile("a", "3")]

        assert dedupe_files(files) == [GeneratedFile("a", "3"), GeneratedFile("b", "2")]


class TestFileTree:
    def test_tree_and_outline(self, tmp_path):
        (tmp_path / "src" / "components").mkdir(parents=True)
        (tmp_path / "src" / "components" / "Button.tsx").write_text("")
        (tmp_path / "package.json").write_text("{}")
        (tmp_path / "empty").mkdir()

        tree = build_file_tree(tmp_path)

        assert tree.is_dir
        assert [c.name for c in tree.children] == ["empty", "package.json", "src"]
        assert tree.children[0].children == []
        assert tree.children[1].children is None
        assert sorted(n.name for n in tree.iter_files()) == ["Button.tsx", "package.json"]
        assert describe_tree(tree) == "empty/\npackage.json\nsrc/\n  components/\n    Button.tsx"


class TestEvents:
    def test_wire_format(self):
        assert phase_transition_message(ConversationPhase.CODE_GENERATION, SESSION_ID) == {
            "type": "phase_transition",
            "phase": "CodeGeneration",
            "sessionId": SESSION_ID,
        }
        assert LogChunk("npm WARN").to_dict() == {"type": "codegen-log", "chunk": "npm WARN"}
        assert GenerationComplete(1234, "http://localhost:4000", "/repo").to_dict() == {
            "type": "codegen-complete",
            "duration": 1234,
            "previewUrl": "http://localhost:4000",
            "repoPath": "/repo",
        }
        assert GenerationFailed("boom").to_dict() == {"type": "codegen-error", "error": "boom"}
        assert GenerationCancelled().to_dict() == {"type": "codegen-cancelled"}

    def test_terminal_flags(self):
        assert GenerationComplete(0, "u", "r").terminal
        assert GenerationFailed("x").terminal
        assert GenerationCancelled().terminal
        assert not LogChunk("x").terminal
