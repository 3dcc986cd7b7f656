"""Permission gate around a toolbox, with batch negotiation."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from agent_toolbox.application.messages import ErrorMessage
from agent_toolbox.application.models import (
    AsyncControlResponse,
    PermissionLevel,
    Usage,
)
from agent_toolbox.application.permission import (
    check_permission,
    create_permission_choice_message,
    extract_choice,
    generate_permission_key,
    is_allow_choice,
    negotiate_permission,
    record_choice,
)
from agent_toolbox.infrastructure.logging import get_logger

if TYPE_CHECKING:
    from collections.abc import Generator

    from agent_toolbox.application.interfaces import Toolbox
    from agent_toolbox.application.messages import Message
    from agent_toolbox.application.models import (
        AsyncControl,
        ToolCallParameter,
        ToolDefinition,
        ToolStream,
    )
    from agent_toolbox.application.settings import SettingsStore

logger = get_logger(__name__)

SENDER = "toolbox-with-permission"


@dataclass
class PermissionGroup:
    """同じ権限ティアのツール呼び出しのまとまり."""

    tools: list[ToolCallParameter] = field(default_factory=list)
    needs_permission: list[ToolCallParameter] = field(default_factory=list)
    pre_approved: list[ToolCallParameter] = field(default_factory=list)
    pre_denied: list[ToolCallParameter] = field(default_factory=list)


@dataclass
class _BatchResult:
    messages: list[Message] = field(default_factory=list)
    usage: Usage = field(default_factory=Usage)

    def add(self, response: AsyncControlResponse) -> None:
        self.messages.extend(response.messages)
        self.usage = self.usage + response.usage


class ToolboxWithPermission:
    """
    ツールボックスの各ツールを権限ティアに従って実行するラッパー.

    call_tools はバッチを次の順に処理する:
    1. none ティア: 確認なしで実行
    2. loose ティア: 未判定のものをまとめて1回だけ確認
    3. strict / always ティア: 確認が必要なものを1件ずつ確認
    4. 事前に許可済みの strict ティア: 確認なしで実行
    """

    def __init__(self, toolbox: Toolbox, settings: SettingsStore) -> None:
        """
        Initialize ToolboxWithPermission.

        Args:
            toolbox: 実行するツールボックス
            settings: 許可・拒否の記録先
        """
        self._toolbox = toolbox
        self._settings = settings
        self._prompt_source = toolbox.get_permission_prompt
        self._batch_prompt_source = toolbox.get_batch_loose_permission_prompt

    @property
    def tools(self) -> list[ToolDefinition]:
        """ラップしているツールボックスのツール定義."""
        return self._toolbox.tools

    def _find_tool(self, name: str) -> ToolDefinition | None:
        return next((tool for tool in self.tools if tool.name == name), None)

    def get_permission_prompt(self, parameter: ToolCallParameter) -> str:
        """
        1件の呼び出しに対する確認文を返す.

        Args:
            parameter: ツール呼び出し

        Returns:
            確認文
        """
        if self._prompt_source is not None:
            return self._prompt_source(parameter)
        return f"Allow agent to execute {parameter.name}?"

    def get_batch_loose_permission_prompt(self, parameters: list[ToolCallParameter]) -> str:
        """
        loose ティアの呼び出しをまとめて確認する文を返す.

        Args:
            parameters: 確認が必要な呼び出し

        Returns:
            確認文
        """
        if self._batch_prompt_source is not None:
            return self._batch_prompt_source(parameters)
        names = ", ".join(parameter.name for parameter in parameters)
        return f"Allow agent to execute these tools: {names}"

    def call_tool(self, parameter: ToolCallParameter) -> ToolStream:
        """
        ツールを1つ実行する.

        Args:
            parameter: ツール呼び出し

        Returns:
            実行ストリーム
        """
        tool = self._find_tool(parameter.name)
        if tool is None:
            return (yield from self._unknown_tool(parameter))
        if tool.permission == PermissionLevel.NONE:
            return (yield from self._toolbox.call_tool(parameter))
        return (yield from self.call_tools([parameter]))

    def call_tools(self, parameters: list[ToolCallParameter]) -> ToolStream:
        """
        複数のツールを権限を確認しながら順に実行する.

        Args:
            parameters: ツール呼び出しのリスト

        Returns:
            実行ストリーム
        """
        if not parameters:
            return AsyncControlResponse()

        result = _BatchResult()
        groups, rejected = self._group_by_permission(parameters)

        for message in rejected:
            yield from self._record_error(result, message)

        for parameter in groups[PermissionLevel.NONE].tools:
            result.add((yield from self._toolbox.call_tool(parameter)))

        yield from self._run_loose_batch(groups[PermissionLevel.LOOSE], result)

        for level in (PermissionLevel.STRICT, PermissionLevel.ALWAYS):
            for parameter in groups[level].needs_permission:
                yield from self._run_individually(parameter, level, result)

        for level in (PermissionLevel.STRICT, PermissionLevel.ALWAYS):
            for parameter in groups[level].pre_denied:
                yield from self._record_error(result, self._denied_message(parameter))

        for parameter in groups[PermissionLevel.STRICT].pre_approved:
            result.add((yield from self._toolbox.call_tool(parameter)))

        logger.info(
            "Batch completed",
            calls=len(parameters),
            tools_used=result.usage.tools_used,
        )
        return AsyncControlResponse(messages=result.messages, usage=result.usage)

    def _group_by_permission(
        self, parameters: list[ToolCallParameter]
    ) -> tuple[dict[PermissionLevel, PermissionGroup], list[ErrorMessage]]:
        groups = {level: PermissionGroup() for level in PermissionLevel}
        rejected: list[ErrorMessage] = []
        for parameter in parameters:
            tool = self._find_tool(parameter.name)
            if tool is None:
                rejected.append(self._unknown_message(parameter))
                continue
            try:
                level = PermissionLevel(tool.permission)
            except ValueError:
                logger.error(
                    "Unknown permission level", tool=tool.name, permission=tool.permission
                )
                rejected.append(
                    ErrorMessage.create(
                        f"Unknown permission level: {tool.permission}", sender=SENDER
                    )
                )
                continue

            group = groups[level]
            group.tools.append(parameter)
            if level == PermissionLevel.NONE:
                continue

            check = check_permission(self._settings, parameter.name, level, parameter.parameters)
            if check.allowed:
                group.pre_approved.append(parameter)
            elif check.needs_user_input:
                group.needs_permission.append(parameter)
            else:
                group.pre_denied.append(parameter)
        return groups, rejected

    def _run_loose_batch(
        self, group: PermissionGroup, result: _BatchResult
    ) -> Generator[Message, AsyncControl | None, None]:
        for parameter in group.pre_denied:
            yield from self._record_error(result, self._denied_message(parameter))

        if not group.needs_permission:
            for parameter in group.pre_approved:
                result.add((yield from self._toolbox.call_tool(parameter)))
            return

        choice_message = create_permission_choice_message(
            self.get_batch_loose_permission_prompt(group.needs_permission)
        )
        choice = extract_choice((yield from negotiate_permission(choice_message)))
        record_choice(
            self._settings,
            choice,
            [
                generate_permission_key(p.name, PermissionLevel.LOOSE, p.parameters)
                for p in group.needs_permission
            ],
        )

        if is_allow_choice(choice):
            logger.info(
                "Batch permission granted", count=len(group.needs_permission), choice=choice
            )
            approved = [p for p in group.tools if not any(p is d for d in group.pre_denied)]
            for parameter in approved:
                result.add((yield from self._toolbox.call_tool(parameter)))
            return

        logger.warning("Batch permission denied", count=len(group.needs_permission), choice=choice)
        for parameter in group.pre_approved:
            result.add((yield from self._toolbox.call_tool(parameter)))
        for parameter in group.needs_permission:
            yield from self._record_error(result, self._denied_message(parameter))

    def _run_individually(
        self,
        parameter: ToolCallParameter,
        level: PermissionLevel,
        result: _BatchResult,
    ) -> Generator[Message, AsyncControl | None, None]:
        choice_message = create_permission_choice_message(
            self.get_permission_prompt(parameter),
            allow_always=level != PermissionLevel.ALWAYS,
        )
        choice = extract_choice((yield from negotiate_permission(choice_message)))
        if level == PermissionLevel.STRICT:
            record_choice(
                self._settings,
                choice,
                [generate_permission_key(parameter.name, level, parameter.parameters)],
            )

        if not is_allow_choice(choice):
            logger.warning("Permission denied", tool=parameter.name, permission=level)
            yield from self._record_error(result, self._denied_message(parameter))
            return

        logger.info("Permission granted", tool=parameter.name, permission=level, choice=choice)
        result.add((yield from self._toolbox.call_tool(parameter)))

    def _record_error(
        self, result: _BatchResult, message: ErrorMessage
    ) -> Generator[Message, AsyncControl | None, None]:
        yield message
        result.add(AsyncControlResponse(messages=[message], usage=Usage(tools_used=1)))

    def _denied_message(self, parameter: ToolCallParameter) -> ErrorMessage:
        return ErrorMessage.create(
            f"Permission denied to execute {parameter.name}", sender=SENDER
        )

    def _unknown_message(self, parameter: ToolCallParameter) -> ErrorMessage:
        logger.warning("Unknown tool requested", tool=parameter.name)
        return ErrorMessage.create(f"Unknown tool: {parameter.name}", sender=SENDER)

    def _unknown_tool(self, parameter: ToolCallParameter) -> ToolStream:
        message = self._unknown_message(parameter)
        yield message
        return AsyncControlResponse(messages=[message], usage=Usage(tools_used=1))
