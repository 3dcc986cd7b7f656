"""Tests for read_file and search_file."""

from __future__ import annotations

import json
from typing import TYPE_CHECKING

import pytest

from agent_toolbox.application.control import run_stream
from agent_toolbox.application.file_tools import ReadFileTool, SearchFileTool
from agent_toolbox.application.messages import ErrorMessage, ToolsMessage
from agent_toolbox.application.models import PermissionLevel, ToolCallParameter

if TYPE_CHECKING:
    from pathlib import Path


def read(file_path: str, **options: int) -> ToolCallParameter:
    return ToolCallParameter(name="read_file", parameters={"filePath": file_path, **options})


def search(file_path: str, pattern: str, **options: bool) -> ToolCallParameter:
    return ToolCallParameter(
        name="search_file",
        parameters={"filePath": file_path, "pattern": pattern, **options},
    )


@pytest.fixture
def workspace(tmp_path: Path) -> Path:
    """150行の long.txt と短い greet.txt を持つワークスペース."""
    (tmp_path / "long.txt").write_text("\n".join(f"line{i}" for i in range(1, 151)))
    (tmp_path / "greet.txt").write_text("Hello\nworld\nhello again")
    return tmp_path


class TestReadFileTool:
    """ReadFileTool のテスト."""

    def test_definition(self, workspace: Path) -> None:
        """read_file は確認不要のツール."""
        tool = ReadFileTool(workspace)
        assert tool.definition.permission == PermissionLevel.NONE
        assert tool.get_permission_prompt is None

    def test_first_page(self, workspace: Path) -> None:
        """既定では先頭から100行を返す."""
        yielded, response = run_stream(ReadFileTool(workspace).call(read("long.txt")))

        message = yielded[0]
        assert isinstance(message, ToolsMessage)
        assert message.tool_name == "read_file"
        assert message.content.startswith(
            "File: long.txt\nShowing lines 1-100 of 150\n\n1→line1\n"
        )
        assert message.result.splitlines()[-1] == "100→line100"
        assert response.usage.output_tokens == len(message.result)
        assert response.usage.tools_used == 1

    def test_second_page(self, workspace: Path) -> None:
        """開始行を指定するとそこから読み込む."""
        yielded, _ = run_stream(ReadFileTool(workspace).call(read("long.txt", startLine=101)))

        assert "Showing lines 101-150 of 150" in yielded[0].content
        assert yielded[0].result.startswith("101→line101")

    def test_line_count(self, workspace: Path) -> None:
        """行数を指定できる."""
        yielded, _ = run_stream(
            ReadFileTool(workspace).call(read("greet.txt", startLine=2, lineCount=1))
        )
        assert yielded[0].result == "2→world"

    @pytest.mark.parametrize(
        ("options", "expected"),
        [
            ({"startLine": 0}, "Start line must be 1 or greater"),
            ({"lineCount": 0}, "Line count must be between 1 and 100"),
            ({"lineCount": 101}, "Line count must be between 1 and 100"),
        ],
    )
    def test_invalid_range(self, workspace: Path, options: dict[str, int], expected: str) -> None:
        """範囲外の開始行や行数はエラーになる."""
        yielded, _ = run_stream(ReadFileTool(workspace).call(read("long.txt", **options)))

        assert isinstance(yielded[0], ErrorMessage)
        assert yielded[0].content == expected

    def test_missing_file(self, workspace: Path) -> None:
        """読み込みに失敗した場合はエラーメッセージになる."""
        yielded, _ = run_stream(ReadFileTool(workspace).call(read("missing.txt")))

        assert isinstance(yielded[0], ErrorMessage)
        assert yielded[0].content.startswith("Failed to read file: ")
        assert yielded[0].error == "FileNotFoundError"

    def test_outside_workspace(self, workspace: Path) -> None:
        """ワークスペース外のファイルは読めない."""
        yielded, _ = run_stream(ReadFileTool(workspace).call(read("../secret.txt")))
        assert yielded[0].content == (
            "Access denied: Cannot read files outside workspace (../secret.txt)"
        )


class TestSearchFileTool:
    """SearchFileTool のテスト."""

    def test_case_sensitive_by_default(self, workspace: Path) -> None:
        """既定では大文字と小文字を区別する."""
        yielded, response = run_stream(
            SearchFileTool(workspace).call(search("greet.txt", "hello"))
        )

        message = yielded[0]
        assert message.content == (
            "File: greet.txt\nFound 1 match for pattern: hello\n\n3→hello again"
        )
        assert json.loads(message.result) == [
            {"lineNumber": 3, "content": "hello again", "match": "hello"}
        ]
        assert response.usage.input_tokens == len("Hello\nworld\nhello again")
        assert response.usage.output_tokens == len(message.content)

    def test_case_insensitive(self, workspace: Path) -> None:
        """caseSensitive=False では大文字と小文字を区別しない."""
        yielded, _ = run_stream(
            SearchFileTool(workspace).call(search("greet.txt", "hello", caseSensitive=False))
        )
        assert "Found 2 matches for pattern: hello" in yielded[0].content

    def test_no_matches(self, workspace: Path) -> None:
        """一致しない場合もエラーにはならない."""
        yielded, _ = run_stream(SearchFileTool(workspace).call(search("greet.txt", "zzz")))

        assert isinstance(yielded[0], ToolsMessage)
        assert yielded[0].content == "File: greet.txt\nNo matches found for pattern: zzz"
        assert yielded[0].result == "[]"

    def test_missing_file(self, workspace: Path) -> None:
        """存在しないファイルはエラーになる."""
        yielded, _ = run_stream(SearchFileTool(workspace).call(search("none.txt", "x")))
        assert yielded[0].content == "File not found: none.txt"

    def test_invalid_pattern(self, workspace: Path) -> None:
        """不正な正規表現はエラーになる."""
        yielded, _ = run_stream(SearchFileTool(workspace).call(search("greet.txt", "[")))
        assert yielded[0].content.startswith("Invalid regex pattern: ")
