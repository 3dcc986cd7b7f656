"""Tests for configuration management."""

from __future__ import annotations

from pathlib import Path

import pytest

from agent_toolbox.infrastructure import config as config_module
from agent_toolbox.infrastructure.config import Config, get_config


@pytest.fixture(autouse=True)
def _isolate_env(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    """.env や既存の環境変数の影響を受けないようにする."""
    monkeypatch.chdir(tmp_path)
    for name in (
        "WORKSPACE_ROOT",
        "ALLOWED_TOOLS",
        "DENIED_TOOLS",
        "LOG_LEVEL",
        "LOG_DIR",
        "LOG_BACKUP_COUNT",
    ):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setattr(config_module, "_config", None)


def test_config_default_values(tmp_path: Path) -> None:
    """デフォルト値が正しく設定されることを確認する."""
    config = Config()

    assert config.workspace_root == tmp_path.resolve()
    assert config.allowed_tools == []
    assert config.denied_tools == []
    assert config.log_level == "INFO"
    assert config.log_dir == "logs"
    assert config.log_backup_count == 7


def test_config_workspace_root_from_env(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    """WORKSPACE_ROOT が絶対パスに解決されることを確認する."""
    workspace = tmp_path / "workspace"
    workspace.mkdir()
    monkeypatch.setenv("WORKSPACE_ROOT", "workspace")

    config = Config()

    assert config.workspace_root == workspace.resolve()


def test_config_tool_keys_json_array(monkeypatch: pytest.MonkeyPatch) -> None:
    """allowed_tools がJSON配列形式で設定できることを確認する."""
    monkeypatch.setenv("ALLOWED_TOOLS", '["append_file", "delete_at_line"]')

    config = Config()

    assert config.allowed_tools == ["append_file", "delete_at_line"]


def test_config_tool_keys_comma_separated(monkeypatch: pytest.MonkeyPatch) -> None:
    """denied_tools がカンマ区切り文字列で設定できることを確認する."""
    monkeypatch.setenv("DENIED_TOOLS", "replace_all, insert_at_line")

    config = Config()

    assert config.denied_tools == ["replace_all", "insert_at_line"]


def test_config_tool_keys_empty_string(monkeypatch: pytest.MonkeyPatch) -> None:
    """空文字列の場合は空リストになることを確認する."""
    monkeypatch.setenv("ALLOWED_TOOLS", "")

    config = Config()

    assert config.allowed_tools == []


def test_config_from_env_file(tmp_path: Path) -> None:
    """.env ファイルから設定を読み込めることを確認する."""
    (tmp_path / ".env").write_text(
        "LOG_LEVEL=DEBUG\nLOG_BACKUP_COUNT=14\n", encoding="utf-8"
    )

    config = Config()

    assert config.log_level == "DEBUG"
    assert config.log_backup_count == 14


def test_config_negative_backup_count_rejected(monkeypatch: pytest.MonkeyPatch) -> None:
    """負の保持日数はエラーになることを確認する."""
    monkeypatch.setenv("LOG_BACKUP_COUNT", "-1")

    with pytest.raises(ValueError, match="log_backup_count"):
        Config()


def test_get_config_is_singleton() -> None:
    """get_config が同じインスタンスを返すことを確認する."""
    assert get_config() is get_config()
