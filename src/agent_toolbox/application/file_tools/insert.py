"""insert_at_line tool."""

from __future__ import annotations

from typing import TYPE_CHECKING

from pydantic import Field

from agent_toolbox.application.diff import generate_insert_diff
from agent_toolbox.application.file_tools.base import (
    FileParameters,
    FileTool,
    ToolExecutionError,
    plural,
    render_excerpt,
    truncate,
)
from agent_toolbox.application.file_tools.delete import check_line_number
from agent_toolbox.application.messages import FileOperationMessage
from agent_toolbox.application.models import PermissionLevel, Usage

if TYPE_CHECKING:
    from agent_toolbox.application.models import ToolCallParameter

# ファイル末尾を超えて挿入できる行数
MAX_LINES_BEYOND_END = 5


class InsertAtLineParameters(FileParameters):
    """insert_at_line のパラメータ."""

    line_number: int = Field(alias="lineNumber")
    content: str


class InsertAtLineTool(FileTool[InsertAtLineParameters]):
    """
    指定した行の位置にテキストを挿入する.

    ファイル末尾より後ろの行を指定した場合は空行で埋める。
    ファイルが存在しなければ作成する.
    """

    name = "insert_at_line"
    description = "Insert text at specific line number"
    permission = PermissionLevel.LOOSE
    parameters_model = InsertAtLineParameters
    failure_prefix = "Failed to insert content in file"
    parameter_schema = {
        "type": "object",
        "properties": {
            "filePath": {
                "type": "string",
                "description": "Path to the file",
            },
            "lineNumber": {
                "type": "number",
                "description": "Line number to insert at (1-based)",
            },
            "content": {
                "type": "string",
                "description": "Content to insert",
            },
        },
        "required": ["filePath", "lineNumber", "content"],
    }

    def get_permission_prompt(self, parameter: ToolCallParameter) -> str:
        file_path = parameter.parameters.get("filePath", "")
        line_number = parameter.parameters.get("lineNumber")
        content = str(parameter.parameters.get("content", ""))
        line_count = len(content.split("\n"))
        return (
            f"Allow agent to insert {line_count} {plural(line_count, 'line')} "
            f'at line {line_number} in file "{file_path}"? '
            f'(Content: "{truncate(content, 42, 39)}")'
        )

    def execute(self, params: InsertAtLineParameters) -> tuple[FileOperationMessage, Usage]:
        check_line_number(params.line_number)
        path = self.resolve_path(params.file_path, "modify")
        file_exists = self.filesystem.exists(path)

        original_lines: list[str] = []
        if file_exists:
            original_lines = self.filesystem.read_file(path).split("\n")
            if params.line_number > len(original_lines) + MAX_LINES_BEYOND_END:
                raise ToolExecutionError(
                    f"Line number {params.line_number} is beyond file end + 1 "
                    f"({len(original_lines) + 1} max)",
                    "Line number out of range",
                )

        index = params.line_number - 1
        padded_lines = original_lines + [""] * max(0, index - len(original_lines))
        content_lines = params.content.split("\n")
        new_lines = padded_lines[:index] + content_lines + padded_lines[index:]
        self.filesystem.write_file(path, "\n".join(new_lines))

        diff = generate_insert_diff(padded_lines, params.content, params.line_number)

        end_line = params.line_number + len(content_lines) - 1
        context_start = max(1, params.line_number - 2)
        operation = "edited" if file_exists else "created"
        line_range = str(params.line_number)
        if end_line > params.line_number:
            line_range = f"{params.line_number}-{end_line}"
        header = (
            f"File: {params.file_path}\nSuccessfully {operation} - inserted content at "
            f"{plural(len(content_lines), 'line')} {line_range}"
        )
        report = render_excerpt(
            header,
            padded_lines[context_start - 1 : params.line_number - 1],
            new_lines[context_start - 1 : end_line + 2],
        )
        message = FileOperationMessage.create(
            report, sender=self.name, file_path=str(path), diffs=diff.lines
        )
        return message, Usage(input_tokens=len(params.content))
