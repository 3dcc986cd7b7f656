"""replace_all and replace_first tools."""

from __future__ import annotations

import re
from typing import TYPE_CHECKING

from agent_toolbox.application.diff import DiffLine, generate_contextual_diff
from agent_toolbox.application.file_tools.base import (
    FileParameters,
    FileTool,
    ToolExecutionError,
    plural,
    render_excerpt,
    truncate,
)
from agent_toolbox.application.messages import FileOperationMessage
from agent_toolbox.application.models import PermissionLevel, Usage

if TYPE_CHECKING:
    from pathlib import Path

    from agent_toolbox.application.models import ToolCallParameter


class RegexReplaceParameters(FileParameters):
    """正規表現置換ツールのパラメータ."""

    pattern: str
    content: str


def _schema() -> dict[str, object]:
    return {
        "type": "object",
        "properties": {
            "filePath": {
                "type": "string",
                "description": "Path to the file",
            },
            "pattern": {
                "type": "string",
                "description": "Regex pattern to match",
            },
            "content": {
                "type": "string",
                "description": "Replacement content",
            },
        },
        "required": ["filePath", "pattern", "content"],
    }


def compile_pattern(pattern: str, flags: int = 0) -> re.Pattern[str]:
    """
    正規表現をコンパイルする.

    Raises:
        ToolExecutionError: パターンが不正な場合
    """
    try:
        return re.compile(pattern, flags)
    except re.error as e:
        raise ToolExecutionError(f"Invalid regex pattern: {e}", "Invalid regex") from e


def line_of(text: str, index: int) -> int:
    """文字位置 index がある行番号（1始まり）を返す."""
    return text.count("\n", 0, index) + 1


class _RegexReplaceTool(FileTool[RegexReplaceParameters]):
    parameters_model = RegexReplaceParameters
    parameter_schema = _schema()
    failure_prefix = "Failed to replace content in file"

    def _load(self, params: RegexReplaceParameters) -> tuple[Path, re.Pattern[str], str]:
        path = self.resolve_path(params.file_path, "modify")
        self.require_file(path, params.file_path)
        regex = compile_pattern(params.pattern)
        return path, regex, self.filesystem.read_file(path)


class ReplaceAllTool(_RegexReplaceTool):
    """正規表現に一致する箇所をすべて置換する."""

    name = "replace_all"
    description = "Replace all occurrences matching regex in file with new content"
    permission = PermissionLevel.STRICT

    def get_permission_prompt(self, parameter: ToolCallParameter) -> str:
        file_path = parameter.parameters.get("filePath", "")
        pattern = str(parameter.parameters.get("pattern", ""))
        content = str(parameter.parameters.get("content", ""))
        return (
            f'Allow agent to replace all "{truncate(pattern, 20)}" with '
            f'"{truncate(content, 20)}" in file "{file_path}"?'
        )

    def execute(self, params: RegexReplaceParameters) -> tuple[FileOperationMessage, Usage]:
        path, regex, original = self._load(params)

        matches = list(regex.finditer(original))
        if not matches:
            raise ToolExecutionError(
                f"No matches found for pattern: {params.pattern}", "No matches found"
            )

        updated = regex.sub(params.content, original)
        self.filesystem.write_file(path, updated)

        changes = [
            DiffLine(
                line_number=line_of(original, match.start()),
                type="modified",
                old_text=match.group(0),
                new_text=params.content,
            )
            for match in matches
        ]
        diff = generate_contextual_diff(original.split("\n"), updated.split("\n"), changes)

        header = (
            f"File: {params.file_path}\nSuccessfully replaced {len(matches)} "
            f"{plural(len(matches), 'occurrence')} of pattern\n"
            f"Pattern: {params.pattern}\nReplacement: {params.content}"
        )
        report = render_excerpt(header, [original], [updated])
        message = FileOperationMessage.create(
            report, sender=self.name, file_path=str(path), diffs=diff.lines
        )
        return message, Usage(
            input_tokens=len(original),
            output_tokens=max(0, len(updated) - len(original)),
        )


class ReplaceFirstTool(_RegexReplaceTool):
    """正規表現に最初に一致した箇所だけを置換する."""

    name = "replace_first"
    description = "Replace first occurrence matching regex in file with new content"
    permission = PermissionLevel.LOOSE

    def get_permission_prompt(self, parameter: ToolCallParameter) -> str:
        file_path = parameter.parameters.get("filePath", "")
        pattern = str(parameter.parameters.get("pattern", ""))
        content = str(parameter.parameters.get("content", ""))
        return (
            f'Allow agent to replace first "{truncate(pattern, 25, 22)}" with '
            f'"{truncate(content, 24, 21)}" in file "{file_path}"?'
        )

    def execute(self, params: RegexReplaceParameters) -> tuple[FileOperationMessage, Usage]:
        path, regex, original = self._load(params)

        match = regex.search(original)
        if match is None:
            raise ToolExecutionError(
                f"No match found for pattern: {params.pattern}", "No match found"
            )

        updated = regex.sub(params.content, original, count=1)
        self.filesystem.write_file(path, updated)

        line_number = line_of(original, match.start())
        original_lines = original.split("\n")
        modified_lines = updated.split("\n")
        diff = generate_contextual_diff(
            original_lines,
            modified_lines,
            [
                DiffLine(
                    line_number=line_number,
                    type="modified",
                    old_text=match.group(0),
                    new_text=params.content,
                )
            ],
        )

        context_start = max(1, line_number - 2)
        context_end = min(len(original_lines), line_number + 2)
        header = (
            f"File: {params.file_path}\nSuccessfully replaced first occurrence of "
            f"pattern at line {line_number}\n"
            f"Pattern: {params.pattern}\nReplacement: {params.content}"
        )
        report = render_excerpt(
            header,
            original_lines[context_start - 1 : context_end],
            modified_lines[context_start - 1 : context_end],
        )
        message = FileOperationMessage.create(
            report, sender=self.name, file_path=str(path), diffs=diff.lines
        )
        return message, Usage(
            input_tokens=len(original),
            output_tokens=max(0, len(updated) - len(original)),
        )
