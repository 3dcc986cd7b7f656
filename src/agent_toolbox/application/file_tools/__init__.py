"""File tools."""

from agent_toolbox.application.file_tools.append import AppendFileTool
from agent_toolbox.application.file_tools.base import (
    FileTool,
    ToolExecutionError,
    WorkspaceAccessError,
)
from agent_toolbox.application.file_tools.delete import DeleteAtLineTool
from agent_toolbox.application.file_tools.insert import InsertAtLineTool
from agent_toolbox.application.file_tools.read import ReadFileTool, SearchFileTool
from agent_toolbox.application.file_tools.regex import ReplaceAllTool, ReplaceFirstTool
from agent_toolbox.application.file_tools.replace import ReplaceAtLineTool
from agent_toolbox.application.file_tools.toolbox import FileToolbox

__all__ = [
    "AppendFileTool",
    "DeleteAtLineTool",
    "FileTool",
    "FileToolbox",
    "InsertAtLineTool",
    "ReadFileTool",
    "ReplaceAllTool",
    "ReplaceAtLineTool",
    "ReplaceFirstTool",
    "SearchFileTool",
    "ToolExecutionError",
    "WorkspaceAccessError",
]
