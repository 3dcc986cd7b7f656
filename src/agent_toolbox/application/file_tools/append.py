"""append_file tool."""

from __future__ import annotations

from typing import TYPE_CHECKING

from agent_toolbox.application.diff import generate_append_diff
from agent_toolbox.application.file_tools.base import (
    FileParameters,
    FileTool,
    plural,
    render_excerpt,
    truncate,
)
from agent_toolbox.application.messages import FileOperationMessage
from agent_toolbox.application.models import PermissionLevel, Usage

if TYPE_CHECKING:
    from agent_toolbox.application.models import ToolCallParameter


class AppendFileParameters(FileParameters):
    """append_file のパラメータ."""

    content: str


class AppendFileTool(FileTool[AppendFileParameters]):
    """ファイル末尾にテキストを追記する。ファイルがなければ作成する."""

    name = "append_file"
    description = "Append text to end of file"
    permission = PermissionLevel.LOOSE
    parameters_model = AppendFileParameters
    failure_prefix = "Failed to append to file"
    parameter_schema = {
        "type": "object",
        "properties": {
            "filePath": {
                "type": "string",
                "description": "Path to the file",
            },
            "content": {
                "type": "string",
                "description": "Content to append",
            },
        },
        "required": ["filePath", "content"],
    }

    def get_permission_prompt(self, parameter: ToolCallParameter) -> str:
        file_path = parameter.parameters.get("filePath", "")
        content = str(parameter.parameters.get("content", ""))
        line_count = len(content.split("\n"))
        return (
            f"Allow agent to append {line_count} {plural(line_count, 'line')} "
            f'to file "{file_path}"? (Content: "{truncate(content, 50)}")'
        )

    def execute(self, params: AppendFileParameters) -> tuple[FileOperationMessage, Usage]:
        path = self.resolve_path(params.file_path, "write")
        file_exists = self.filesystem.exists(path)

        original_lines: list[str] = []
        start_line = 1
        if file_exists:
            original = self.filesystem.read_file(path)
            original_lines = original.split("\n")
            start_line = len(original_lines) + (0 if original.endswith("\n") else 1)

        self.filesystem.append_file(path, params.content)

        diff = generate_append_diff(original_lines, params.content, start_line)
        content_lines = params.content.split("\n")
        end_line = start_line + len(content_lines) - 1
        context_start = max(1, start_line - 2)

        operation = "appended to" if file_exists else "created and appended to"
        line_range = f"{start_line}-{end_line}" if end_line > start_line else str(start_line)
        header = (
            f"File: {params.file_path}\nSuccessfully {operation} - added content at "
            f"{plural(len(content_lines), 'line')} {line_range}"
        )
        report = render_excerpt(
            header,
            original_lines[context_start - 1 : start_line - 1],
            [*original_lines, *content_lines][context_start - 1 : end_line],
        )
        message = FileOperationMessage.create(
            report, sender=self.name, file_path=str(path), diffs=diff.lines
        )
        return message, Usage(input_tokens=len(params.content))
