"""
Tests for reading the files array out of a generation model response.
"""

import json
import sys
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).parent.parent))

from voice_creation.builders.errors import InvalidGenerationOutput, UnparseableGenerationOutput
from voice_creation.builders.output_parser import (
    PREVIEW_CHARS,
    from_any_object,
    from_fenced_block,
    from_files_object,
    from_repaired_backticks,
    normalize_path,
    parse_generated_files,
)
from voice_creation.schemas.project import GeneratedFile


FILES = {"files": [
    {"path": "package.json", "content": "{\n  \"name\": \"todo\"\n}"},
    {"path": "app/page.tsx", "content": "export default function Page() {}\n"},
]}


class TestStrategies:
    def test_plain_json(self):
        files = parse_generated_files(json.dumps(FILES))

        assert files == [
            GeneratedFile("package.json", "{\n  \"name\": \"todo\"\n}"),
            GeneratedFile("app/page.tsx", "export default function Page() {}\n"),
        ]

    def test_fenced_block_in_prose(self):
        text = f"Here is your project:\n```json\n{json.dumps(FILES, indent=2)}\n```\nHave fun!"

        assert from_fenced_block(text) == FILES["files"]
        assert [f.path for f in parse_generated_files(text)] == ["package.json", "app/page.tsx"]

    def test_files_object_after_prose(self):
        text = f"Sure thing. {json.dumps(FILES)} Let me know if you need more."

        assert from_fenced_block(text) is None
        assert from_files_object(text) == FILES["files"]

    def test_any_object_needs_files_key(self):
        assert from_any_object('{"project": "todo"}') is None
        assert from_any_object('note {"files": []} end') == []

    def test_raw_newlines_inside_strings(self):
        text = '{"files": [{"path": "a.txt", "content": "line one\nline two"}]}'

        files = parse_generated_files(text)

        assert files[0].content == "line one\nline two"

    def test_backtick_content_in_prose_and_fence(self):
        text = (
            "Sure! Here is the project.\n"
            "```json\n"
            '{"files": [{"path": "index.js", "content": `console.log("hi");\nconst a = 1;`}]}\n'
            "```\n"
            "Enjoy!"
        )

        assert from_fenced_block(text) is None
        assert from_repaired_backticks(text) is not None

        files = parse_generated_files(text)

        assert files == [GeneratedFile("index.js", 'console.log("hi");\nconst a = 1;')]

    def test_object_content_is_serialized(self):
        text = json.dumps({"files": [{"path": "tsconfig.json", "content": {"strict": True}}]})

        files = parse_generated_files(text)

        assert files[0].content == json.dumps({"strict": True}, indent=2)

    def test_missing_content_becomes_empty(self):
        files = parse_generated_files('{"files": [{"path": ".gitkeep"}]}')

        assert files == [GeneratedFile(".gitkeep", "")]


class TestFailures:
    def test_unparseable_keeps_only_a_preview(self):
        text = "I am sorry, I cannot help with that. " * 20

        with pytest.raises(UnparseableGenerationOutput) as exc_info:
            parse_generated_files(text)

        assert exc_info.value.preview == text[:PREVIEW_CHARS]
        assert "sorry" not in str(exc_info.value)

    def test_empty_response(self):
        with pytest.raises(UnparseableGenerationOutput):
            parse_generated_files("")

    def test_empty_files_array(self):
        with pytest.raises(InvalidGenerationOutput):
            parse_generated_files('{"files": []}')

    def test_entry_without_path(self):
        with pytest.raises(InvalidGenerationOutput):
            parse_generated_files('{"files": [{"content": "x"}]}')

    def test_entry_not_an_object(self):
        with pytest.raises(InvalidGenerationOutput):
            parse_generated_files('{"files": ["index.js"]}')


class TestNormalizePath:
    @pytest.mark.parametrize("raw,expected", [
        ("src/app.ts", "src/app.ts"),
        ("./README.md", "README.md"),
        ("src\\components\\Button.tsx", "src/components/Button.tsx"),
        ("  public//favicon.ico ", "public/favicon.ico"),
    ])
    def test_normalized(self, raw, expected):
        assert normalize_path(raw) == expected

    @pytest.mark.parametrize("raw", [
        "../evil.sh",
        "src/../../evil.sh",
        "/etc/passwd",
        "C:\\Windows\\system.ini",
        ".",
    ])
    def test_rejected(self, raw):
        with pytest.raises(InvalidGenerationOutput):
            normalize_path(raw)
