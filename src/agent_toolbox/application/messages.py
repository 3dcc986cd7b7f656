"""Messages emitted by tools, toolboxes and permission gates."""

from __future__ import annotations

import secrets
import string
import time
from datetime import datetime
from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

from agent_toolbox.application.diff import DiffLine  # noqa: TC001

_ID_ALPHABET = string.ascii_lowercase + string.digits
_ID_RANDOM_LENGTH = 9


def generate_unique_id(prefix: str) -> str:
    """
    一意なメッセージIDを生成する.

    形式は ``{prefix}-{ミリ秒タイムスタンプ}-{base36の乱数9文字}``.

    Args:
        prefix: ID の接頭辞

    Returns:
        生成されたID
    """
    random_part = "".join(
        secrets.choice(_ID_ALPHABET) for _ in range(_ID_RANDOM_LENGTH)
    )
    return f"{prefix}-{int(time.time() * 1000)}-{random_part}"


class MessageType(str, Enum):
    """メッセージ種別."""

    ERROR = "error"
    FILE_OPERATION = "file_operation"
    CHOICE = "choice"
    USER_CHOICE = "user-choice"
    TOOL = "tool"


class Message(BaseModel):
    """全メッセージ共通の項目."""

    model_config = ConfigDict(frozen=True)

    id: str
    content: str
    type: str
    sender: str
    timestamp: datetime = Field(default_factory=datetime.now)


class ErrorMessage(Message):
    """ツール実行や権限ネゴシエーションの失敗を表すメッセージ."""

    type: Literal["error"] = "error"
    error: str

    @classmethod
    def create(cls, content: str, sender: str, error: str | None = None) -> ErrorMessage:
        """
        ErrorMessage を生成する.

        Args:
            content: 表示用のエラーメッセージ
            sender: 送信元コンポーネント
            error: エラー理由（省略時は content と同じ）

        Returns:
            生成されたメッセージ
        """
        return cls(
            id=generate_unique_id("error"),
            content=content,
            sender=sender,
            error=error if error is not None else content,
        )


class FileOperationMessage(Message):
    """ファイル変更の結果と差分を表すメッセージ."""

    type: Literal["file_operation"] = "file_operation"
    file_path: str
    diffs: list[DiffLine] = Field(default_factory=list)

    @classmethod
    def create(
        cls, content: str, sender: str, file_path: str, diffs: list[DiffLine]
    ) -> FileOperationMessage:
        """FileOperationMessage を生成する."""
        return cls(
            id=generate_unique_id("file-operation"),
            content=content,
            sender=sender,
            file_path=file_path,
            diffs=diffs,
        )


class Choice(BaseModel):
    """選択肢."""

    model_config = ConfigDict(frozen=True)

    label: str
    value: str


class ChoiceMessage(Message):
    """ユーザーに選択を求めるメッセージ."""

    type: Literal["choice"] = "choice"
    prompt: str
    choices: list[Choice]


class UserChoiceMessage(Message):
    """ChoiceMessage に対するユーザーの回答."""

    type: Literal["user-choice"] = "user-choice"
    choice: int
    choices: list[Choice]

    @property
    def selected_value(self) -> str | None:
        """
        選択された選択肢の値を返す.

        Returns:
            選択肢の値。インデックスが範囲外の場合None
        """
        if 0 <= self.choice < len(self.choices):
            return self.choices[self.choice].value
        return None

    @classmethod
    def answer(
        cls, question: ChoiceMessage, value: str, sender: str = "user"
    ) -> UserChoiceMessage:
        """
        ChoiceMessage に対する回答を生成する.

        Args:
            question: 回答対象の ChoiceMessage
            value: 選択する選択肢の値
            sender: 回答者

        Returns:
            回答メッセージ

        Raises:
            ValueError: value が選択肢に含まれない場合
        """
        values = [choice.value for choice in question.choices]
        if value not in values:
            msg = f"'{value}' is not one of the offered choices: {', '.join(values)}"
            raise ValueError(msg)
        return cls(
            id=generate_unique_id("user-choice"),
            content=value,
            sender=sender,
            choice=values.index(value),
            choices=question.choices,
        )


class ToolsMessage(Message):
    """読み取り系ツールの結果メッセージ."""

    type: Literal["tool"] = "tool"
    tool_name: str
    parameters: dict[str, Any] = Field(default_factory=dict)
    result: str = ""

    @classmethod
    def create(
        cls,
        content: str,
        sender: str,
        parameters: dict[str, Any],
        result: str,
    ) -> ToolsMessage:
        """ToolsMessage を生成する."""
        return cls(
            id=generate_unique_id("tool"),
            content=content,
            sender=sender,
            tool_name=sender,
            parameters=parameters,
            result=result,
        )
