"""replace_at_line tool."""

from __future__ import annotations

from typing import TYPE_CHECKING

from pydantic import Field

from agent_toolbox.application.diff import generate_replace_diff
from agent_toolbox.application.file_tools.base import (
    FileParameters,
    FileTool,
    render_excerpt,
    truncate,
)
from agent_toolbox.application.file_tools.delete import (
    check_line_in_file,
    check_line_number,
)
from agent_toolbox.application.messages import FileOperationMessage
from agent_toolbox.application.models import PermissionLevel, Usage

if TYPE_CHECKING:
    from agent_toolbox.application.models import ToolCallParameter


class ReplaceAtLineParameters(FileParameters):
    """replace_at_line のパラメータ."""

    line_number: int = Field(alias="lineNumber")
    content: str


class ReplaceAtLineTool(FileTool[ReplaceAtLineParameters]):
    """指定した行の内容を置き換える."""

    name = "replace_at_line"
    description = "Replace text at specific line number"
    permission = PermissionLevel.LOOSE
    parameters_model = ReplaceAtLineParameters
    failure_prefix = "Failed to replace line in file"
    parameter_schema = {
        "type": "object",
        "properties": {
            "filePath": {
                "type": "string",
                "description": "Path to the file",
            },
            "lineNumber": {
                "type": "number",
                "description": "Line number to replace (1-based)",
            },
            "content": {
                "type": "string",
                "description": "New content for the line",
            },
        },
        "required": ["filePath", "lineNumber", "content"],
    }

    def get_permission_prompt(self, parameter: ToolCallParameter) -> str:
        file_path = parameter.parameters.get("filePath", "")
        line_number = parameter.parameters.get("lineNumber")
        content = str(parameter.parameters.get("content", ""))
        return (
            f'Allow agent to replace line {line_number} in file "{file_path}" '
            f'with: "{truncate(content, 40)}"?'
        )

    def execute(self, params: ReplaceAtLineParameters) -> tuple[FileOperationMessage, Usage]:
        check_line_number(params.line_number)
        path = self.resolve_path(params.file_path, "modify")
        self.require_file(path, params.file_path)

        lines = self.filesystem.read_file(path).split("\n")
        check_line_in_file(params.line_number, lines)

        index = params.line_number - 1
        old_text = lines[index]
        modified_lines = [*lines]
        modified_lines[index] = params.content
        self.filesystem.write_file(path, "\n".join(modified_lines))

        diff = generate_replace_diff(lines, params.line_number, params.content)
        context_start = max(1, params.line_number - 2)
        context_end = min(len(lines), params.line_number + 2)
        report = render_excerpt(
            f"File: {params.file_path}\nSuccessfully replaced content at line {params.line_number}",
            lines[context_start - 1 : context_end],
            modified_lines[context_start - 1 : context_end],
        )
        message = FileOperationMessage.create(
            report, sender=self.name, file_path=str(path), diffs=diff.lines
        )
        return message, Usage(input_tokens=len(old_text), output_tokens=len(params.content))
