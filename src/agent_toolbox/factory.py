"""Wiring of the permission-gated file toolbox."""

from __future__ import annotations

from typing import TYPE_CHECKING

from agent_toolbox.application.file_tools.toolbox import FileToolbox
from agent_toolbox.application.settings import InMemorySettingsStore, SettingsStore
from agent_toolbox.application.toolbox_with_permission import ToolboxWithPermission
from agent_toolbox.infrastructure.config import Config, get_config
from agent_toolbox.infrastructure.logging import get_logger

if TYPE_CHECKING:
    from agent_toolbox.infrastructure.filesystem import FileSystem

logger = get_logger(__name__)


def create_settings_store(config: Config) -> InMemorySettingsStore:
    """
    設定の allowed_tools / denied_tools を初期値とする設定ストアを作成する.

    Args:
        config: アプリケーション設定

    Returns:
        設定ストア
    """
    return InMemorySettingsStore(
        allowed_tools=config.allowed_tools,
        denied_tools=config.denied_tools,
    )


def create_file_toolbox(
    config: Config | None = None,
    settings: SettingsStore | None = None,
    filesystem: FileSystem | None = None,
) -> ToolboxWithPermission:
    """
    権限確認付きのファイルツールボックスを作成する.

    Args:
        config: アプリケーション設定（省略時はグローバル設定）
        settings: 設定ストア（省略時は config から作成）
        filesystem: ファイル操作の実装（省略時はローカルディスク）

    Returns:
        権限確認付きのツールボックス
    """
    config = config or get_config()
    store = settings if settings is not None else create_settings_store(config)
    logger.info("Creating file toolbox", workspace_root=str(config.workspace_root))
    return ToolboxWithPermission(FileToolbox(config.workspace_root, filesystem), store)
