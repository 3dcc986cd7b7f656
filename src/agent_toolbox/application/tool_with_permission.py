"""Permission gate around a single tool."""

from __future__ import annotations

from typing import TYPE_CHECKING

from agent_toolbox.application.messages import ErrorMessage
from agent_toolbox.application.models import (
    AsyncControlResponse,
    PermissionLevel,
    Usage,
)
from agent_toolbox.application.permission import request_tool_permission
from agent_toolbox.infrastructure.logging import get_logger

if TYPE_CHECKING:
    from agent_toolbox.application.interfaces import Tool
    from agent_toolbox.application.models import (
        PromptSource,
        ToolCallParameter,
        ToolDefinition,
        ToolStream,
    )
    from agent_toolbox.application.settings import SettingsStore

logger = get_logger(__name__)


class ToolWithPermission:
    """
    ツールの権限ティアに従ってユーザーの許可を得てから実行するラッパー.

    - none: そのまま実行する
    - always: 毎回 Allow / Deny を確認し、記録しない
    - loose: ツール名単位で許可・拒否を記録する
    - strict: ツール名とパラメータの組み合わせ単位で記録する
    """

    def __init__(self, tool: Tool, settings: SettingsStore) -> None:
        """
        Initialize ToolWithPermission.

        Args:
            tool: 実行するツール
            settings: 許可・拒否の記録先
        """
        self._tool = tool
        self._settings = settings
        self._prompt_source: PromptSource | None = tool.get_permission_prompt

    @property
    def definition(self) -> ToolDefinition:
        """ラップしているツールの定義."""
        return self._tool.definition

    def get_permission_prompt(self, parameter: ToolCallParameter) -> str:
        """
        権限確認の文面を返す.

        ツールが独自の文面を持たない場合は汎用の文面を使う.

        Args:
            parameter: ツール呼び出し

        Returns:
            確認文
        """
        if self._prompt_source is not None:
            return self._prompt_source(parameter)
        return f"Allow agent to execute {self.definition.name}?"

    def call(self, parameter: ToolCallParameter) -> ToolStream:
        """
        権限を確認してからツールを実行する.

        Args:
            parameter: ツール呼び出し

        Returns:
            実行ストリーム
        """
        name = self.definition.name
        permission = self.definition.permission

        if permission == PermissionLevel.NONE:
            return (yield from self._tool.call(parameter))

        if permission not in (
            PermissionLevel.LOOSE,
            PermissionLevel.STRICT,
            PermissionLevel.ALWAYS,
        ):
            logger.error("Unknown permission level", tool=name, permission=permission)
            return (yield from self._error(f"Unknown permission level: {permission}"))

        allowed = yield from request_tool_permission(
            self._settings,
            name,
            permission,
            parameter.parameters,
            self.get_permission_prompt(parameter),
        )
        if not allowed:
            logger.warning("Permission denied", tool=name, permission=permission)
            return (yield from self._error("Permission denied to execute tool"))

        logger.info("Permission granted", tool=name, permission=permission)
        return (yield from self._tool.call(parameter))

    def _error(self, content: str) -> ToolStream:
        message = ErrorMessage.create(content, sender=self.definition.name)
        yield message
        return AsyncControlResponse(messages=[message], usage=Usage(tools_used=1))
