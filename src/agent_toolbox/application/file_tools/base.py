"""Common behavior of the file tools."""

from __future__ import annotations

from abc import ABC, abstractmethod
from pathlib import Path
from typing import TYPE_CHECKING, Any, ClassVar, Generic, TypeVar

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from agent_toolbox.application.messages import ErrorMessage
from agent_toolbox.application.models import (
    AsyncControlResponse,
    PermissionLevel,
    ToolDefinition,
    Usage,
)
from agent_toolbox.infrastructure.filesystem import FileSystem, LocalFileSystem
from agent_toolbox.infrastructure.logging import get_logger

if TYPE_CHECKING:
    from agent_toolbox.application.messages import Message
    from agent_toolbox.application.models import PromptSource, ToolCallParameter, ToolStream

logger = get_logger(__name__)


class ToolExecutionError(Exception):
    """ツールの入力検証や前提条件の違反."""

    def __init__(self, message: str, reason: str | None = None) -> None:
        """
        Initialize ToolExecutionError.

        Args:
            message: ユーザーに表示するメッセージ
            reason: エラー理由の短い説明（省略時は message と同じ）
        """
        super().__init__(message)
        self.message = message
        self.reason = reason or message


class WorkspaceAccessError(ToolExecutionError):
    """ワークスペース外のパスにアクセスしようとした場合の例外."""

    def __init__(self, file_path: str, access: str) -> None:
        """
        Initialize WorkspaceAccessError.

        Args:
            file_path: 要求されたパス
            access: アクセス種別（read, write, modify）
        """
        super().__init__(
            f"Access denied: Cannot {access} files outside workspace ({file_path})",
            "Access denied: File outside workspace",
        )
        self.file_path = file_path


class FileParameters(BaseModel):
    """ファイルツール共通のパラメータ."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    file_path: str = Field(alias="filePath")


def truncate(text: str, limit: int, keep: int | None = None) -> str:
    """
    確認文に埋め込むために文字列を切り詰める.

    Args:
        text: 対象の文字列
        limit: この長さを超えたら切り詰める
        keep: 切り詰め時に残す文字数（省略時は limit）

    Returns:
        切り詰めた文字列（切り詰めた場合は "..." 付き）
    """
    if len(text) <= limit:
        return text
    return text[: limit if keep is None else keep] + "..."


def plural(count: int, word: str) -> str:
    """count が1以外なら word に s を付ける."""
    return word if count == 1 else f"{word}s"


def render_excerpt(header: str, before: list[str], after: list[str]) -> str:
    """ファイル操作結果の before / after 付きレポートを組み立てる."""
    return (
        f"{header}\n\nbefore:\n```\n"
        + "\n".join(before)
        + "\n```\n\nafter:\n```\n"
        + "\n".join(after)
        + "\n```"
    )


ParametersT = TypeVar("ParametersT", bound=FileParameters)


class FileTool(ABC, Generic[ParametersT]):
    """
    ワークスペース内の1ファイルを扱うツールの基底クラス.

    サブクラスは execute でメッセージと使用量を返すか、
    ToolExecutionError を送出する。call はどのような失敗も
    ErrorMessage に変換し、例外を呼び出し側に伝えない.
    """

    name: ClassVar[str]
    description: ClassVar[str]
    permission: ClassVar[PermissionLevel]
    parameter_schema: ClassVar[dict[str, Any]]
    parameters_model: ClassVar[type[FileParameters]]
    failure_prefix: ClassVar[str]

    # 独自の確認文を持つツールはメソッドで上書きする
    get_permission_prompt: PromptSource | None = None

    def __init__(
        self,
        workspace_root: Path | str,
        filesystem: FileSystem | None = None,
    ) -> None:
        """
        Initialize FileTool.

        Args:
            workspace_root: アクセスを許可するワークスペースのルート
            filesystem: ファイル操作の実装（省略時はローカルディスク）
        """
        self.workspace_root = Path(workspace_root).resolve()
        self.filesystem: FileSystem = filesystem or LocalFileSystem()
        self.definition = ToolDefinition(
            name=self.name,
            description=self.description,
            parameters=self.parameter_schema,
            permission=self.permission,
        )

    def parse_parameters(self, parameter: ToolCallParameter) -> ParametersT:
        """
        パラメータを型付きモデルに変換する.

        Args:
            parameter: ツール呼び出し

        Returns:
            検証済みのパラメータ

        Raises:
            ValidationError: パラメータがスキーマに合わない場合
        """
        params = self.parameters_model.model_validate(parameter.parameters)
        return params  # type: ignore[return-value]

    def resolve_path(self, file_path: str, access: str) -> Path:
        """
        ワークスペースからの相対パスを絶対パスに解決する.

        Args:
            file_path: 要求されたパス
            access: エラーメッセージ用のアクセス種別

        Returns:
            解決済みの絶対パス

        Raises:
            WorkspaceAccessError: ワークスペース外を指している場合
        """
        resolved = (self.workspace_root / file_path).resolve()
        try:
            resolved.relative_to(self.workspace_root)
        except ValueError:
            logger.warning(
                "Rejected path outside workspace",
                tool=self.name,
                file_path=file_path,
                workspace_root=str(self.workspace_root),
            )
            raise WorkspaceAccessError(file_path, access) from None
        return resolved

    def require_file(self, path: Path, file_path: str) -> None:
        """ファイルが存在しなければ ToolExecutionError を送出する."""
        if not self.filesystem.exists(path):
            raise ToolExecutionError(f"File not found: {file_path}", "File not found")

    @abstractmethod
    def execute(self, params: ParametersT) -> tuple[Message, Usage]:
        """
        ツール固有の処理を行う.

        Args:
            params: 検証済みのパラメータ

        Returns:
            結果メッセージと使用量（tools_used を除く）

        Raises:
            ToolExecutionError: 入力検証や前提条件に失敗した場合
        """

    def call(self, parameter: ToolCallParameter) -> ToolStream:
        """
        ツールを実行し、結果メッセージを1つ yield する.

        Args:
            parameter: ツール呼び出し

        Returns:
            実行ストリーム
        """
        try:
            params = self.parse_parameters(parameter)
            message, usage = self.execute(params)
        except ValidationError as e:
            details = "; ".join(
                f"{'.'.join(str(part) for part in error['loc'])}: {error['msg']}"
                for error in e.errors()
            )
            logger.warning("Invalid tool parameters", tool=self.name, details=details)
            message = self._error(
                f"Invalid parameters for {self.name}: {details}", "Invalid parameters"
            )
            usage = Usage()
        except ToolExecutionError as e:
            logger.info("Tool rejected request", tool=self.name, reason=e.reason)
            message = self._error(e.message, e.reason)
            usage = Usage()
        except Exception as e:
            logger.exception("Tool execution failed", tool=self.name)
            message = self._error(f"{self.failure_prefix}: {e}", type(e).__name__)
            usage = Usage()
        else:
            logger.debug("Tool executed", tool=self.name, usage=usage)

        yield message
        return AsyncControlResponse(messages=[message], usage=usage + Usage(tools_used=1))

    def _error(self, content: str, reason: str) -> ErrorMessage:
        return ErrorMessage.create(content, sender=self.name, error=reason)
