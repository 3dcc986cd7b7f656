"""Protocols for tools and toolboxes."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from agent_toolbox.application.models import (
        BatchPromptSource,
        PromptSource,
        ToolCallParameter,
        ToolDefinition,
        ToolStream,
    )


class Tool(Protocol):
    """単一のツール.

    get_permission_prompt は独自の確認文を持たないツールでは None.
    """

    definition: ToolDefinition
    get_permission_prompt: PromptSource | None

    def call(self, parameter: ToolCallParameter) -> ToolStream:
        """ツールを実行する."""
        ...


class Toolbox(Protocol):
    """複数のツールをまとめて提供するツールボックス.

    確認文のフックを持たない場合、各 get_*_prompt は None.
    """

    get_permission_prompt: PromptSource | None
    get_batch_loose_permission_prompt: BatchPromptSource | None

    @property
    def tools(self) -> list[ToolDefinition]:
        """提供するツールの定義一覧."""
        ...

    def call_tool(self, parameter: ToolCallParameter) -> ToolStream:
        """ツールを1つ実行する."""
        ...

    def call_tools(self, parameters: list[ToolCallParameter]) -> ToolStream:
        """複数のツールを順に実行する."""
        ...
