"""Toolbox bundling the file tools."""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING

from agent_toolbox.application.control import drain
from agent_toolbox.application.diff import (
    format_merged_file_operations,
    merge_file_operations,
)
from agent_toolbox.application.file_tools.append import AppendFileTool
from agent_toolbox.application.file_tools.delete import DeleteAtLineTool
from agent_toolbox.application.file_tools.insert import InsertAtLineTool
from agent_toolbox.application.file_tools.read import ReadFileTool, SearchFileTool
from agent_toolbox.application.file_tools.regex import ReplaceAllTool, ReplaceFirstTool
from agent_toolbox.application.file_tools.replace import ReplaceAtLineTool
from agent_toolbox.application.messages import ErrorMessage, FileOperationMessage
from agent_toolbox.application.models import (
    AsyncControlResponse,
    PermissionLevel,
    Usage,
)
from agent_toolbox.infrastructure.logging import get_logger

if TYPE_CHECKING:
    from agent_toolbox.application.file_tools.base import FileTool
    from agent_toolbox.application.messages import Message
    from agent_toolbox.application.models import (
        ToolCallParameter,
        ToolDefinition,
        ToolStream,
    )
    from agent_toolbox.infrastructure.filesystem import FileSystem

logger = get_logger(__name__)

SENDER = "file-toolbox"
BATCH_FILE_PATH = "batch-operation"

# 黙って実行し、結果をまとめて報告するファイル変更系ツール
FILE_OPERATION_TOOLS = frozenset({
    "append_file",
    "delete_at_line",
    "insert_at_line",
    "replace_at_line",
    "replace_all",
    "replace_first",
})
READ_TOOLS = frozenset({"read_file", "search_file"})


class FileToolbox:
    """
    ワークスペース内のファイルを読み書きするツールをまとめたツールボックス.

    複数の呼び出しを受けた場合、ファイル変更系ツールは途中のメッセージを出さずに実行し、
    差分をマージした1つのレポートにまとめる.
    """

    def __init__(
        self,
        workspace_root: Path | str | None = None,
        filesystem: FileSystem | None = None,
    ) -> None:
        """
        Initialize FileToolbox.

        Args:
            workspace_root: ツールがアクセスできるワークスペースのルート（省略時はカレントディレクトリ）
            filesystem: ファイル操作の実装（省略時はローカルディスク）
        """
        root = Path(workspace_root) if workspace_root is not None else Path.cwd()
        tools: list[FileTool] = [
            AppendFileTool(root, filesystem),
            DeleteAtLineTool(root, filesystem),
            InsertAtLineTool(root, filesystem),
            ReadFileTool(root, filesystem),
            ReplaceAllTool(root, filesystem),
            ReplaceAtLineTool(root, filesystem),
            ReplaceFirstTool(root, filesystem),
            SearchFileTool(root, filesystem),
        ]
        self._tools: dict[str, FileTool] = {tool.name: tool for tool in tools}

    @property
    def tools(self) -> list[ToolDefinition]:
        """提供するツールの定義一覧."""
        return [tool.definition for tool in self._tools.values()]

    def call_tool(self, parameter: ToolCallParameter) -> ToolStream:
        """
        ツールを1つ実行する.

        Args:
            parameter: ツール呼び出し

        Returns:
            実行ストリーム
        """
        tool = self._tools.get(parameter.name)
        if tool is None:
            logger.warning("Unknown tool requested", tool=parameter.name)
            message = ErrorMessage.create(f"Unknown tool: {parameter.name}", sender=SENDER)
            yield message
            return AsyncControlResponse(messages=[message], usage=Usage(tools_used=1))
        return (yield from tool.call(parameter))

    def call_tools(self, parameters: list[ToolCallParameter]) -> ToolStream:
        """
        複数のツールを順に実行する.

        読み取り系などファイル変更以外のツールを先に実行してメッセージをそのまま流し、
        ファイル変更系ツールは黙って実行した後、結果を1つのメッセージにまとめて yield する。
        ファイル変更系ツールのエラーは yield せず最終結果にだけ含める.

        Args:
            parameters: ツール呼び出しのリスト

        Returns:
            実行ストリーム
        """
        if not parameters:
            return AsyncControlResponse()
        if len(parameters) == 1:
            return (yield from self.call_tool(parameters[0]))

        file_operations = [p for p in parameters if p.name in FILE_OPERATION_TOOLS]
        other_tools = [p for p in parameters if p.name not in FILE_OPERATION_TOOLS]

        messages: list[Message] = []
        usage = Usage()
        for parameter in other_tools:
            response = yield from self.call_tool(parameter)
            messages.extend(response.messages)
            usage = usage + response.usage

        errors: list[Message] = []
        operations: list[FileOperationMessage] = []
        for parameter in file_operations:
            response = drain(self.call_tool(parameter))
            usage = usage + response.usage
            for message in response.messages:
                if isinstance(message, FileOperationMessage):
                    operations.append(message)
                else:
                    errors.append(message)

        summary = self._summarize(operations)
        if summary is not None:
            yield summary

        logger.info(
            "File batch completed",
            calls=len(parameters),
            file_operations=len(operations),
            errors=len(errors),
        )
        messages.extend(errors)
        if summary is not None:
            messages.append(summary)
        return AsyncControlResponse(messages=messages, usage=usage)

    def _summarize(self, operations: list[FileOperationMessage]) -> FileOperationMessage | None:
        if not operations:
            return None
        if len(operations) == 1:
            return operations[0]
        content = format_merged_file_operations(merge_file_operations(operations))
        return FileOperationMessage.create(
            content,
            sender=SENDER,
            file_path=BATCH_FILE_PATH,
            diffs=[diff for operation in operations for diff in operation.diffs],
        )

    def get_permission_prompt(self, parameter: ToolCallParameter) -> str:
        """
        1件の呼び出しに対する確認文を返す.

        Args:
            parameter: ツール呼び出し

        Returns:
            確認文
        """
        tool = self._tools.get(parameter.name)
        if tool is not None and tool.get_permission_prompt is not None:
            return tool.get_permission_prompt(parameter)
        file_path = parameter.parameters.get("filePath", "")
        return f'Allow agent to perform {parameter.name} operation "{file_path}"?'

    def get_batch_loose_permission_prompt(self, parameters: list[ToolCallParameter]) -> str:
        """
        複数の呼び出しをまとめて確認する文を返す.

        Args:
            parameters: 確認が必要な呼び出し

        Returns:
            確認文
        """
        gated = [
            p
            for p in parameters
            if p.name not in self._tools
            or self._tools[p.name].permission != PermissionLevel.NONE
        ]
        if not gated:
            return "Allow agent to perform file operations?"
        if len(gated) == 1:
            return self.get_permission_prompt(gated[0])

        reads = sum(1 for p in gated if p.name in READ_TOOLS)
        writes = len(gated) - reads
        actions = []
        if reads:
            actions.append(f"read {reads} file{'' if reads == 1 else 's'}")
        if writes:
            actions.append(f"modify {writes} file{'' if writes == 1 else 's'}")
        return f"Allow agent to {' and '.join(actions)}?"
