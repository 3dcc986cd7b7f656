"""Permission keys, choice messages and the negotiation state machine."""

from __future__ import annotations

import json
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Any

from agent_toolbox.application.messages import (
    Choice,
    ChoiceMessage,
    Message,
    UserChoiceMessage,
    generate_unique_id,
)
from agent_toolbox.application.models import PermissionLevel
from agent_toolbox.infrastructure.logging import get_logger

if TYPE_CHECKING:
    from collections.abc import Generator

    from agent_toolbox.application.models import AsyncControl
    from agent_toolbox.application.settings import SettingsStore

logger = get_logger(__name__)

PERMISSION_SENDER = "permission"

ALLOW = "allow"
ALWAYS_ALLOW = "always_allow"
DENY = "deny"
ALWAYS_DENY = "always_deny"

_STANDARD_CHOICES = (
    Choice(label="Allow", value=ALLOW),
    Choice(label="Always Allow", value=ALWAYS_ALLOW),
    Choice(label="Deny", value=DENY),
    Choice(label="Always Deny", value=ALWAYS_DENY),
)
_ONE_TIME_CHOICES = (
    Choice(label="Allow", value=ALLOW),
    Choice(label="Deny", value=DENY),
)


class NegotiationState(str, Enum):
    """権限ネゴシエーションの状態."""

    AWAITING_PROMPT = "awaiting_prompt"
    AWAITING_RESPONSE = "awaiting_response"
    RESOLVED = "resolved"


@dataclass(frozen=True)
class PermissionCheck:
    """設定ストアによる事前判定の結果."""

    allowed: bool
    needs_user_input: bool


def generate_permission_key(
    tool_name: str,
    permission: PermissionLevel | str,
    parameters: dict[str, Any] | None = None,
) -> str:
    """
    設定ストアに記録するパーミッションキーを生成する.

    strict ティアではパラメータのキーをソートした JSON を付加するため、
    キーの順序が違うだけの同じ呼び出しは同じキーになる.

    Args:
        tool_name: ツール名
        permission: 権限ティア
        parameters: 呼び出しパラメータ

    Returns:
        パーミッションキー
    """
    if permission == PermissionLevel.STRICT:
        ordered = dict(sorted((parameters or {}).items()))
        serialized = json.dumps(ordered, separators=(",", ":"), ensure_ascii=False)
        return f"{tool_name}({serialized})"
    return tool_name


def check_permission(
    settings: SettingsStore,
    tool_name: str,
    permission: PermissionLevel | str,
    parameters: dict[str, Any] | None = None,
) -> PermissionCheck:
    """
    設定ストアの記録から、ユーザーへの確認が必要かを判定する.

    許可と拒否の両方が記録されている場合は許可を優先する.

    Args:
        settings: 設定ストア
        tool_name: ツール名
        permission: 権限ティア
        parameters: 呼び出しパラメータ

    Returns:
        判定結果
    """
    if permission == PermissionLevel.NONE:
        return PermissionCheck(allowed=True, needs_user_input=False)
    if permission == PermissionLevel.ALWAYS:
        return PermissionCheck(allowed=False, needs_user_input=True)

    key = generate_permission_key(tool_name, permission, parameters)
    if settings.is_tool_allowed(key):
        return PermissionCheck(allowed=True, needs_user_input=False)
    if settings.is_tool_denied(key):
        return PermissionCheck(allowed=False, needs_user_input=False)
    return PermissionCheck(allowed=False, needs_user_input=True)


def create_permission_choice_message(
    prompt: str, *, allow_always: bool = True
) -> ChoiceMessage:
    """
    権限確認の ChoiceMessage を生成する.

    Args:
        prompt: 確認文
        allow_always: Always Allow / Always Deny を選択肢に含めるかどうか

    Returns:
        権限確認メッセージ
    """
    choices = list(_STANDARD_CHOICES if allow_always else _ONE_TIME_CHOICES)
    options = "\n".join(f"- {choice.label} ({choice.value})" for choice in choices)
    return ChoiceMessage(
        id=generate_unique_id("permission-choice"),
        content=f"Asking user for choices:\n{prompt}\n{options}",
        sender=PERMISSION_SENDER,
        prompt=prompt,
        choices=choices,
    )


def extract_choice(response: Message | None) -> str:
    """
    回答メッセージから選択された値を取り出す.

    user-choice 以外のメッセージや不正な回答は拒否として扱う.

    Args:
        response: ユーザーの回答

    Returns:
        選択された値
    """
    if not isinstance(response, UserChoiceMessage):
        return DENY
    return response.selected_value or DENY


def is_allow_choice(choice: str) -> bool:
    """選択値が許可を意味するかどうか."""
    return choice in (ALLOW, ALWAYS_ALLOW)


def record_choice(
    settings: SettingsStore,
    choice: str,
    keys: list[str],
) -> None:
    """
    Always Allow / Always Deny の回答を設定ストアに記録する.

    Args:
        settings: 設定ストア
        choice: 選択値
        keys: 記録するパーミッションキー
    """
    for key in keys:
        if choice == ALWAYS_ALLOW:
            settings.add_allowed_tool(key)
        elif choice == ALWAYS_DENY:
            settings.add_denied_tool(key)


def handle_permission_response(
    settings: SettingsStore,
    response: Message | None,
    tool_name: str,
    permission: PermissionLevel | str,
    parameters: dict[str, Any] | None = None,
) -> bool:
    """
    回答を解釈し、必要なら設定ストアに記録する.

    always ティアの回答は記録しない.

    Args:
        settings: 設定ストア
        response: ユーザーの回答
        tool_name: ツール名
        permission: 権限ティア
        parameters: 呼び出しパラメータ

    Returns:
        許可された場合True
    """
    choice = extract_choice(response)
    if permission != PermissionLevel.ALWAYS:
        record_choice(
            settings, choice, [generate_permission_key(tool_name, permission, parameters)]
        )
    allowed = is_allow_choice(choice)
    logger.info(
        "Permission response received",
        tool=tool_name,
        permission=permission,
        choice=choice,
        allowed=allowed,
    )
    return allowed


def negotiate_permission(
    choice_message: ChoiceMessage,
) -> Generator[Message, AsyncControl | None, Message | None]:
    """
    ChoiceMessage を提示し、ユーザーの回答を受け取る.

    同じ ChoiceMessage を告知 (AWAITING_PROMPT) と回答待ち (AWAITING_RESPONSE) の
    2回 yield し、2回目の再開時に送られた AsyncControl の回答を返す.

    Args:
        choice_message: 提示する権限確認メッセージ

    Returns:
        ユーザーの回答。回答がない場合None
    """
    state = NegotiationState.AWAITING_PROMPT
    response: Message | None = None
    while state is not NegotiationState.RESOLVED:
        control = yield choice_message
        if state is NegotiationState.AWAITING_PROMPT:
            state = NegotiationState.AWAITING_RESPONSE
        else:
            response = control.response_message if control is not None else None
            state = NegotiationState.RESOLVED
    return response


def request_tool_permission(
    settings: SettingsStore,
    tool_name: str,
    permission: PermissionLevel | str,
    parameters: dict[str, Any] | None,
    prompt: str,
) -> Generator[Message, AsyncControl | None, bool]:
    """
    設定ストアの記録を確認し、必要ならユーザーに許可を求める.

    Args:
        settings: 設定ストア
        tool_name: ツール名
        permission: 権限ティア
        parameters: 呼び出しパラメータ
        prompt: 確認文

    Returns:
        実行が許可された場合True
    """
    check = check_permission(settings, tool_name, permission, parameters)
    if check.allowed:
        return True
    if not check.needs_user_input:
        logger.warning("Tool denied by settings", tool=tool_name)
        return False

    choice_message = create_permission_choice_message(
        prompt, allow_always=permission != PermissionLevel.ALWAYS
    )
    response = yield from negotiate_permission(choice_message)
    return handle_permission_response(settings, response, tool_name, permission, parameters)
