"""Application layer."""

from agent_toolbox.application.control import drain, run_stream
from agent_toolbox.application.messages import (
    ChoiceMessage,
    ErrorMessage,
    FileOperationMessage,
    Message,
    ToolsMessage,
    UserChoiceMessage,
)
from agent_toolbox.application.models import (
    AsyncControl,
    AsyncControlResponse,
    PermissionLevel,
    ToolCallParameter,
    ToolDefinition,
    Usage,
)
from agent_toolbox.application.settings import InMemorySettingsStore, SettingsStore
from agent_toolbox.application.tool_with_permission import ToolWithPermission
from agent_toolbox.application.toolbox_with_permission import ToolboxWithPermission

__all__ = [
    "AsyncControl",
    "AsyncControlResponse",
    "ChoiceMessage",
    "ErrorMessage",
    "FileOperationMessage",
    "InMemorySettingsStore",
    "Message",
    "PermissionLevel",
    "SettingsStore",
    "ToolCallParameter",
    "ToolDefinition",
    "ToolWithPermission",
    "ToolboxWithPermission",
    "ToolsMessage",
    "Usage",
    "UserChoiceMessage",
    "drain",
    "run_stream",
]
