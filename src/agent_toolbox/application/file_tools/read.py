"""read_file and search_file tools."""

from __future__ import annotations

import json
import re

from pydantic import Field

from agent_toolbox.application.file_tools.base import (
    FileParameters,
    FileTool,
    ToolExecutionError,
)
from agent_toolbox.application.file_tools.regex import compile_pattern
from agent_toolbox.application.messages import ToolsMessage
from agent_toolbox.application.models import PermissionLevel, Usage

MAX_LINE_COUNT = 100


def number_lines(lines: list[str], first_line: int) -> str:
    """各行に ``N→`` 形式の行番号を付ける."""
    return "\n".join(f"{first_line + i}→{line}" for i, line in enumerate(lines))


class ReadFileParameters(FileParameters):
    """read_file のパラメータ."""

    start_line: int = Field(default=1, alias="startLine")
    line_count: int = Field(default=MAX_LINE_COUNT, alias="lineCount")


class ReadFileTool(FileTool[ReadFileParameters]):
    """ファイルを最大100行ずつ読み込む."""

    name = "read_file"
    description = "Read file content with pagination (100 lines per page)"
    permission = PermissionLevel.NONE
    parameters_model = ReadFileParameters
    failure_prefix = "Failed to read file"
    parameter_schema = {
        "type": "object",
        "properties": {
            "filePath": {
                "type": "string",
                "description": "Path to the file",
            },
            "startLine": {
                "type": "number",
                "description": "Starting line number (1-based)",
                "default": 1,
            },
            "lineCount": {
                "type": "number",
                "description": "Number of lines to read",
                "default": MAX_LINE_COUNT,
            },
        },
        "required": ["filePath"],
    }

    def execute(self, params: ReadFileParameters) -> tuple[ToolsMessage, Usage]:
        if params.start_line < 1:
            raise ToolExecutionError("Start line must be 1 or greater", "Invalid start line")
        if not 1 <= params.line_count <= MAX_LINE_COUNT:
            raise ToolExecutionError(
                f"Line count must be between 1 and {MAX_LINE_COUNT}", "Invalid line count"
            )
        path = self.resolve_path(params.file_path, "read")

        lines = self.filesystem.read_file(path).split("\n")
        end_line = min(params.start_line + params.line_count - 1, len(lines))
        formatted = number_lines(lines[params.start_line - 1 : end_line], params.start_line)

        content = (
            f"File: {params.file_path}\n"
            f"Showing lines {params.start_line}-{end_line} of {len(lines)}\n\n{formatted}"
        )
        message = ToolsMessage.create(
            content,
            sender=self.name,
            parameters=params.model_dump(by_alias=True),
            result=formatted,
        )
        return message, Usage(output_tokens=len(formatted))


class SearchFileParameters(FileParameters):
    """search_file のパラメータ."""

    pattern: str
    case_sensitive: bool = Field(default=True, alias="caseSensitive")


class SearchFileTool(FileTool[SearchFileParameters]):
    """ファイルの各行を正規表現で検索する."""

    name = "search_file"
    description = "Search for regex pattern in file and return matching lines with line numbers"
    permission = PermissionLevel.NONE
    parameters_model = SearchFileParameters
    failure_prefix = "Failed to search file"
    parameter_schema = {
        "type": "object",
        "properties": {
            "filePath": {
                "type": "string",
                "description": "Path to the file",
            },
            "pattern": {
                "type": "string",
                "description": "Regex pattern to search for",
            },
            "caseSensitive": {
                "type": "boolean",
                "description": "Whether search should be case sensitive",
                "default": True,
            },
        },
        "required": ["filePath", "pattern"],
    }

    def execute(self, params: SearchFileParameters) -> tuple[ToolsMessage, Usage]:
        path = self.resolve_path(params.file_path, "read")
        self.require_file(path, params.file_path)
        regex = compile_pattern(params.pattern, 0 if params.case_sensitive else re.IGNORECASE)

        text = self.filesystem.read_file(path)
        matches = []
        for index, line in enumerate(text.split("\n")):
            found = regex.search(line)
            if found is not None:
                matches.append(
                    {"lineNumber": index + 1, "content": line, "match": found.group(0)}
                )

        if not matches:
            content = f"File: {params.file_path}\nNo matches found for pattern: {params.pattern}"
        else:
            noun = "match" if len(matches) == 1 else "matches"
            listing = "\n".join(f"{m['lineNumber']}→{m['content']}" for m in matches)
            content = (
                f"File: {params.file_path}\nFound {len(matches)} {noun} "
                f"for pattern: {params.pattern}\n\n{listing}"
            )

        message = ToolsMessage.create(
            content,
            sender=self.name,
            parameters=params.model_dump(by_alias=True),
            result=json.dumps(matches, ensure_ascii=False),
        )
        return message, Usage(input_tokens=len(text), output_tokens=len(content))
