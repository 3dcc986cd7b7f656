"""Configuration management."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Annotated

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict


class Config(BaseSettings):
    """アプリケーション設定."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ワークスペース設定
    workspace_root: Path = Field(
        default_factory=Path.cwd,
        description="ファイルツールがアクセスできるワークスペースのルート",
    )

    # 権限設定（設定ストアの初期値）
    allowed_tools: Annotated[list[str], NoDecode] = Field(
        default_factory=list,
        description="事前に許可するパーミッションキー",
    )
    denied_tools: Annotated[list[str], NoDecode] = Field(
        default_factory=list,
        description="事前に拒否するパーミッションキー",
    )

    # ログ設定
    log_level: str = Field(
        default="INFO",
        description="latest.log に出力する最低ログレベル",
    )
    log_dir: str = Field(
        default="logs",
        description="ログ出力ディレクトリ",
    )
    log_backup_count: int = Field(
        default=7,
        ge=0,
        description="ログローテーションの保持日数",
    )

    @field_validator("allowed_tools", "denied_tools", mode="before")
    @classmethod
    def parse_tool_keys(cls, v: str | list[str]) -> list[str]:
        """パーミッションキーをパースする（JSON配列またはカンマ区切り文字列）."""
        if isinstance(v, str):
            stripped = v.strip()
            if not stripped:
                return []
            try:
                parsed = json.loads(stripped)
            except json.JSONDecodeError:
                return [key.strip() for key in stripped.split(",") if key.strip()]
            if isinstance(parsed, list):
                return [str(key) for key in parsed]
            return [stripped]
        return v

    @field_validator("workspace_root", mode="after")
    @classmethod
    def resolve_workspace_root(cls, v: Path) -> Path:
        """workspace_root を絶対パスに正規化する."""
        return v.expanduser().resolve()


# グローバル設定インスタンス（シングルトン）
_config: Config | None = None


def get_config() -> Config:
    """
    グローバル設定インスタンスを取得する.

    Returns:
        設定インスタンス
    """
    global _config
    if _config is None:
        _config = Config()
    return _config
