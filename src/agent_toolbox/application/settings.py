"""Allow/deny memoization of permission decisions."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol

from agent_toolbox.infrastructure.logging import get_logger

if TYPE_CHECKING:
    from collections.abc import Iterable

logger = get_logger(__name__)


class SettingsStore(Protocol):
    """パーミッションキーごとの許可・拒否を記録するストア."""

    def is_tool_allowed(self, key: str) -> bool:
        """キーが許可リストにあるかどうか."""
        ...

    def is_tool_denied(self, key: str) -> bool:
        """キーが拒否リストにあるかどうか."""
        ...

    def add_allowed_tool(self, key: str) -> None:
        """キーを許可リストに追加する."""
        ...

    def add_denied_tool(self, key: str) -> None:
        """キーを拒否リストに追加する."""
        ...

    def remove_allowed_tool(self, key: str) -> None:
        """キーを許可リストから削除する."""
        ...

    def remove_denied_tool(self, key: str) -> None:
        """キーを拒否リストから削除する."""
        ...


class InMemorySettingsStore:
    """
    プロセス内で完結する SettingsStore 実装.

    同じキーが許可リストと拒否リストの両方に入ることはない.
    後から追加した方が優先される.
    """

    def __init__(
        self,
        allowed_tools: Iterable[str] = (),
        denied_tools: Iterable[str] = (),
    ) -> None:
        """
        Initialize InMemorySettingsStore.

        Args:
            allowed_tools: 初期状態で許可するキー
            denied_tools: 初期状態で拒否するキー（allowed_tools と重複した場合はこちらが優先）
        """
        self._allowed: list[str] = []
        self._denied: list[str] = []
        for key in allowed_tools:
            self.add_allowed_tool(key)
        for key in denied_tools:
            self.add_denied_tool(key)

    @property
    def allowed_tools(self) -> list[str]:
        """許可リストのコピー."""
        return list(self._allowed)

    @property
    def denied_tools(self) -> list[str]:
        """拒否リストのコピー."""
        return list(self._denied)

    def is_tool_allowed(self, key: str) -> bool:
        return key in self._allowed

    def is_tool_denied(self, key: str) -> bool:
        return key in self._denied

    def add_allowed_tool(self, key: str) -> None:
        if key in self._denied:
            self._denied.remove(key)
        if key not in self._allowed:
            self._allowed.append(key)
        logger.info("Tool added to allow list", key=key)

    def add_denied_tool(self, key: str) -> None:
        if key in self._allowed:
            self._allowed.remove(key)
        if key not in self._denied:
            self._denied.append(key)
        logger.info("Tool added to deny list", key=key)

    def remove_allowed_tool(self, key: str) -> None:
        if key in self._allowed:
            self._allowed.remove(key)
            logger.info("Tool removed from allow list", key=key)

    def remove_denied_tool(self, key: str) -> None:
        if key in self._denied:
            self._denied.remove(key)
            logger.info("Tool removed from deny list", key=key)
