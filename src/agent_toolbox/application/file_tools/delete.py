"""delete_at_line tool."""

from __future__ import annotations

from typing import TYPE_CHECKING

from pydantic import Field

from agent_toolbox.application.diff import generate_delete_diff
from agent_toolbox.application.file_tools.base import (
    FileParameters,
    FileTool,
    ToolExecutionError,
    render_excerpt,
)
from agent_toolbox.application.messages import FileOperationMessage
from agent_toolbox.application.models import PermissionLevel, Usage

if TYPE_CHECKING:
    from agent_toolbox.application.models import ToolCallParameter


class DeleteAtLineParameters(FileParameters):
    """delete_at_line のパラメータ."""

    line_number: int = Field(alias="lineNumber")


def check_line_number(line_number: int) -> None:
    """1未満の行番号を拒否する."""
    if line_number < 1:
        raise ToolExecutionError("Line number must be 1 or greater", "Invalid line number")


def check_line_in_file(line_number: int, lines: list[str]) -> None:
    """ファイルの行数を超える行番号を拒否する."""
    if line_number > len(lines):
        raise ToolExecutionError(
            f"Line number {line_number} exceeds file length ({len(lines)} lines)",
            "Line number out of range",
        )


class DeleteAtLineTool(FileTool[DeleteAtLineParameters]):
    """指定した行を削除する."""

    name = "delete_at_line"
    description = "Delete text at specific line number"
    permission = PermissionLevel.LOOSE
    parameters_model = DeleteAtLineParameters
    failure_prefix = "Failed to delete line from file"
    parameter_schema = {
        "type": "object",
        "properties": {
            "filePath": {
                "type": "string",
                "description": "Path to the file",
            },
            "lineNumber": {
                "type": "number",
                "description": "Line number to delete (1-based)",
            },
        },
        "required": ["filePath", "lineNumber"],
    }

    def get_permission_prompt(self, parameter: ToolCallParameter) -> str:
        file_path = parameter.parameters.get("filePath", "")
        line_number = parameter.parameters.get("lineNumber")
        return f'Allow agent to delete line {line_number} from file "{file_path}"?'

    def execute(self, params: DeleteAtLineParameters) -> tuple[FileOperationMessage, Usage]:
        check_line_number(params.line_number)
        path = self.resolve_path(params.file_path, "modify")
        self.require_file(path, params.file_path)

        lines = self.filesystem.read_file(path).split("\n")
        check_line_in_file(params.line_number, lines)

        index = params.line_number - 1
        modified_lines = lines[:index] + lines[index + 1 :]
        self.filesystem.write_file(path, "\n".join(modified_lines))

        diff = generate_delete_diff(lines, params.line_number)
        context_start = max(1, params.line_number - 2)
        context_end = min(len(lines), params.line_number + 2)
        report = render_excerpt(
            f"File: {params.file_path}\nSuccessfully deleted line {params.line_number}",
            lines[context_start - 1 : context_end],
            modified_lines[context_start - 1 : min(len(modified_lines), context_end - 1)],
        )
        message = FileOperationMessage.create(
            report, sender=self.name, file_path=str(path), diffs=diff.lines
        )
        return message, Usage()
