"""Driving tool streams from the caller side."""

from __future__ import annotations

from typing import TYPE_CHECKING

from agent_toolbox.application.messages import ChoiceMessage
from agent_toolbox.application.models import AsyncControl

if TYPE_CHECKING:
    from collections.abc import Callable

    from agent_toolbox.application.messages import Message
    from agent_toolbox.application.models import AsyncControlResponse, ToolStream


def drain(stream: ToolStream) -> AsyncControlResponse:
    """
    途中のメッセージを捨てて実行を最後まで進める.

    権限確認が発生した場合は回答なし（拒否）として扱われる.

    Args:
        stream: ツールの実行ストリーム

    Returns:
        最終結果
    """
    try:
        while True:
            next(stream)
    except StopIteration as stop:
        return stop.value  # type: ignore[no-any-return]


def run_stream(
    stream: ToolStream,
    responder: Callable[[ChoiceMessage], Message | None] | None = None,
) -> tuple[list[Message], AsyncControlResponse]:
    """
    実行ストリームを最後まで進め、途中のメッセージと最終結果を返す.

    ChoiceMessage は告知と回答待ちの2回続けて yield される.
    2回目の時点で responder を呼び出し、その回答を AsyncControl として送り返す.

    Args:
        stream: ツールの実行ストリーム
        responder: 権限確認に回答する関数（省略時は常に回答なし）

    Returns:
        yield されたメッセージのリストと最終結果
    """
    yielded: list[Message] = []
    announced: ChoiceMessage | None = None
    control: AsyncControl | None = None
    try:
        while True:
            message = stream.send(control)
            yielded.append(message)
            control = None
            if not isinstance(message, ChoiceMessage):
                continue
            if announced is not None and announced.id == message.id:
                answer = responder(message) if responder is not None else None
                control = AsyncControl(response_message=answer)
                announced = None
            else:
                announced = message
    except StopIteration as stop:
        return yielded, stop.value
