"""Data models shared by tools, toolboxes and permission gates."""

from __future__ import annotations

from collections.abc import Callable, Generator
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any, Literal, TypeAlias

if TYPE_CHECKING:
    from agent_toolbox.application.messages import Message


class PermissionLevel(str, Enum):
    """ツールに付与される権限ティア."""

    NONE = "none"
    LOOSE = "loose"
    STRICT = "strict"
    ALWAYS = "always"


@dataclass(frozen=True)
class ToolDefinition:
    """ツールの定義（LLM に渡すカタログの1項目）."""

    name: str
    description: str
    parameters: dict[str, Any]
    permission: PermissionLevel | str


@dataclass(frozen=True)
class ToolCallParameter:
    """ツール呼び出し要求."""

    name: str
    parameters: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class Usage:
    """トークン数とツール呼び出し回数."""

    input_tokens: int = 0
    output_tokens: int = 0
    tools_used: int = 0

    def __add__(self, other: Usage) -> Usage:
        """使用量を合算する."""
        return Usage(
            input_tokens=self.input_tokens + other.input_tokens,
            output_tokens=self.output_tokens + other.output_tokens,
            tools_used=self.tools_used + other.tools_used,
        )


@dataclass(frozen=True)
class AsyncControl:
    """中断中の実行を再開するときに送る値."""

    response_message: Message | None = None


@dataclass(frozen=True)
class AsyncControlResponse:
    """ツール・ツールボックス実行の最終結果."""

    messages: list[Message] = field(default_factory=list)
    usage: Usage = field(default_factory=Usage)
    completed_reason: Literal["completed"] = "completed"


# ツール実行の型: Message を yield し、AsyncControl を受け取り、AsyncControlResponse を返す
ToolStream: TypeAlias = Generator["Message", "AsyncControl | None", AsyncControlResponse]

# 権限確認プロンプトの生成関数
PromptSource: TypeAlias = Callable[[ToolCallParameter], str]
BatchPromptSource: TypeAlias = Callable[[list[ToolCallParameter]], str]
